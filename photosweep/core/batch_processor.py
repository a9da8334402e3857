# core/batch_processor.py

import logging
import multiprocessing as mp
import time
from concurrent.futures import ThreadPoolExecutor, ProcessPoolExecutor
from concurrent.futures import FIRST_COMPLETED, Future, wait
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Iterable, Optional, Tuple, Union

from tqdm import tqdm

from photosweep.config import SystemConfig
from photosweep.core.errors import BatchLimitError, PhotoSweepError
from photosweep.core.ingest import IngestFailure, IngestReport, PhotoIngestor
from photosweep.utils.logging_config import PerformanceLogger

logger = logging.getLogger(__name__)

BatchItem = Union[str, Path, Tuple[str, bytes]]


@dataclass
class BatchResult:
    """Partial success is the normal outcome of a batch"""
    processed: List[IngestReport] = field(default_factory=list)
    errors: List[IngestFailure] = field(default_factory=list)

    @property
    def success(self) -> bool:
        return not self.errors

    def to_dict(self) -> dict:
        return {
            'uploaded': len(self.processed),
            'photos': [r.to_dict() for r in self.processed],
            'errors': [e.to_dict() for e in self.errors],
        }


@dataclass
class _Job:
    index: int
    name: str
    timeout: float
    started: Optional[float] = None


class BatchProcessor:
    """
    Parallel per-file analysis for an upload batch
    """

    # seconds between deadline checks
    POLL_INTERVAL = 0.05

    def __init__(self,
                 n_workers: int = None,
                 use_threading: bool = False,
                 max_batch_size: int = 10,
                 timeout_base: float = 10.0,
                 timeout_per_mb: float = 2.0,
                 show_progress: bool = False,
                 performance_logger: Optional[PerformanceLogger] = None):
        self.n_workers = n_workers or mp.cpu_count()
        self.use_threading = use_threading
        self.max_batch_size = max_batch_size
        self.timeout_base = timeout_base
        self.timeout_per_mb = timeout_per_mb
        self.show_progress = show_progress
        self.performance_logger = performance_logger

    @classmethod
    def from_config(cls, config: SystemConfig, **kwargs) -> 'BatchProcessor':
        return cls(n_workers=config.n_workers,
                   use_threading=config.use_threading,
                   max_batch_size=config.max_batch_size,
                   timeout_base=config.timeout_base_seconds,
                   timeout_per_mb=config.timeout_per_mb_seconds,
                   **kwargs)

    def timeout_for(self, size_bytes: int) -> float:
        """Per-file time budget, proportional to file size"""
        return self.timeout_base + self.timeout_per_mb * size_bytes / (1024 ** 2)

    def ingest_batch(self,
                     ingestor: PhotoIngestor,
                     files: Iterable[BatchItem],
                     blur_threshold: Optional[float] = None) -> BatchResult:
        """
        Analyze a batch of uploads in parallel.

        A file's time budget starts when a worker picks it up, so files
        queued behind others are not charged for the wait. Files over
        budget are reported as 'Timeout'; with a process pool their
        workers are terminated.

        Args:
            ingestor: Configured PhotoIngestor
            files: Paths on disk, or (filename, bytes) pairs
            blur_threshold: Quality threshold for the is_blurry flag

        Returns:
            BatchResult with reports in submission order and one
            IngestFailure per rejected file
        """
        files = list(files)
        if len(files) > self.max_batch_size:
            raise BatchLimitError(
                f"{len(files)} files submitted, at most {self.max_batch_size} per batch"
            )

        result = BatchResult()
        if not files:
            return result

        started = time.perf_counter()
        executor_class = ThreadPoolExecutor if self.use_threading else ProcessPoolExecutor
        executor = executor_class(max_workers=min(self.n_workers, len(files)))
        outcomes: Dict[int, Union[IngestReport, IngestFailure]] = {}
        abandoned = False

        try:
            jobs: Dict[Future, _Job] = {}
            for index, item in enumerate(files):
                if isinstance(item, (str, Path)):
                    name, size = Path(item).name, self._file_size(item)
                    future = executor.submit(ingestor.ingest_file, item, blur_threshold)
                else:
                    name, data = item
                    size = len(data)
                    future = executor.submit(ingestor.ingest, data, name, blur_threshold)
                jobs[future] = _Job(index, name, self.timeout_for(size))

            pending = set(jobs)
            with tqdm(total=len(jobs), desc="Analyzing photos",
                      disable=not self.show_progress) as progress:
                while pending:
                    done, pending = wait(pending, timeout=self.POLL_INTERVAL,
                                         return_when=FIRST_COMPLETED)
                    for future in done:
                        job = jobs[future]
                        outcomes[job.index] = self._collect(future, job)
                        progress.update(1)

                    now = time.monotonic()
                    for future in list(pending):
                        job = jobs[future]
                        if job.started is None:
                            # process pools mark the next queued call running before a worker takes it
                            if future.running():
                                job.started = now
                            continue
                        if now - job.started > job.timeout:
                            future.cancel()
                            pending.discard(future)
                            abandoned = True
                            logger.error("Analysis of %s exceeded %.1fs", job.name, job.timeout)
                            outcomes[job.index] = IngestFailure(
                                job.name, 'Timeout', f"Analysis exceeded {job.timeout:.1f}s")
                            progress.update(1)
        finally:
            if abandoned:
                self._stop_workers(executor)
            executor.shutdown(wait=False, cancel_futures=True)

        for index in sorted(outcomes):
            outcome = outcomes[index]
            if isinstance(outcome, IngestFailure):
                result.errors.append(outcome)
            else:
                result.processed.append(outcome)

        duration = time.perf_counter() - started
        logger.info("Batch of %d files: %d analyzed, %d failed in %.2fs",
                    len(files), len(result.processed), len(result.errors), duration)
        if self.performance_logger is not None:
            self.performance_logger.log_metric('ingest_batch', duration,
                                               files=len(files),
                                               failed=len(result.errors))
        return result

    @staticmethod
    def _collect(future: Future, job: _Job) -> Union[IngestReport, IngestFailure]:
        try:
            return future.result()
        except PhotoSweepError as e:
            logger.warning("Rejected %s (%s): %s", job.name, e.reason, e)
            return IngestFailure(job.name, e.reason, str(e))
        except Exception as e:
            # failures stay per file
            logger.exception("Unexpected failure analyzing %s", job.name)
            return IngestFailure(job.name, 'InternalError', str(e))

    @staticmethod
    def _stop_workers(executor):
        """Terminate pool processes still busy with abandoned files"""
        if not isinstance(executor, ProcessPoolExecutor):
            return  # threads cannot be interrupted; they finish in the background

        terminate = getattr(executor, 'terminate_workers', None)  # Python 3.14+
        if terminate is not None:
            terminate()
            return
        for process in list((executor._processes or {}).values()):
            process.terminate()

    @staticmethod
    def _file_size(path: Union[str, Path]) -> int:
        try:
            return Path(path).stat().st_size
        except OSError:
            return 0
