# core/ingest.py

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional, Union

from photosweep.config import SystemConfig
from photosweep.core.errors import DecodeError, ThumbnailError
from photosweep.core.hashing import ContentHasher, PerceptualHasher
from photosweep.core.pixel_source import ImageSource, decode
from photosweep.core.quality import QualityAnalyzer, QualityReport
from photosweep.core.thumbnail import ThumbnailGenerator
from photosweep.security.input_validation import SecurityValidator

logger = logging.getLogger(__name__)


@dataclass
class IngestReport:
    """Everything computed for one uploaded file"""
    filename: str
    size: int
    content_hash: str
    perceptual_hash: Optional[str]
    quality: QualityReport
    is_blurry: bool
    width: Optional[int] = None
    height: Optional[int] = None
    format: Optional[str] = None
    thumbnail: Optional[bytes] = None
    warnings: List[str] = field(default_factory=list)
    path: Optional[str] = None

    def to_dict(self, include_thumbnail: bool = False) -> dict:
        data = {
            'filename': self.filename,
            'size': self.size,
            'content_hash': self.content_hash,
            'perceptual_hash': self.perceptual_hash,
            'width': self.width,
            'height': self.height,
            'format': self.format,
            'quality': self.quality.quality,
            'brightness': self.quality.brightness,
            'contrast': self.quality.contrast,
            'sharpness': self.quality.sharpness,
            'is_screenshot': self.quality.is_screenshot,
            'is_blurry': self.is_blurry,
            'has_thumbnail': self.thumbnail is not None,
            'warnings': list(self.warnings),
        }
        if include_thumbnail:
            data['thumbnail'] = self.thumbnail
        return data


@dataclass(frozen=True)
class IngestFailure:
    """A file the batch could not accept"""
    filename: str
    reason: str
    message: str

    def to_dict(self) -> dict:
        return {'filename': self.filename, 'reason': self.reason, 'error': self.message}


class PhotoIngestor:
    """
    Per-file analysis at upload time: content hash, perceptual hash,
    quality metrics and a thumbnail.

    Unsupported formats and hash failures reject the file. Decode and
    thumbnail failures only degrade the report.
    """

    def __init__(self, config: Optional[SystemConfig] = None,
                 render_thumbnails: bool = True):
        self.config = config or SystemConfig()
        self.render_thumbnails = render_thumbnails
        self.content_hasher = ContentHasher(self.config.duplicate_detection.hash_algorithm)
        self.perceptual_hasher = PerceptualHasher(self.config.duplicate_detection.hash_size)
        self.analyzer = QualityAnalyzer(self.config.quality)
        self.thumbnailer = ThumbnailGenerator(self.config.thumbnail.max_dimension,
                                              self.config.thumbnail.jpeg_quality)

    def ingest(self, data: bytes, filename: str,
               blur_threshold: Optional[float] = None) -> IngestReport:
        """Analyze an in-memory upload"""
        SecurityValidator.require_supported_format(filename)
        content_hash = self.content_hasher.hash_bytes(data)
        return self._analyze(data, filename, len(data), content_hash, blur_threshold)

    def ingest_file(self, file_path: Union[str, Path],
                    blur_threshold: Optional[float] = None) -> IngestReport:
        """Analyze a file on disk; the content hash is streamed"""
        path = Path(file_path)
        SecurityValidator.require_supported_format(path.name)
        content_hash = self.content_hasher.hash_file(path)
        report = self._analyze(path, path.name, path.stat().st_size,
                               content_hash, blur_threshold)
        report.path = str(path)
        return report

    def _analyze(self, source: ImageSource, filename: str, size: int,
                 content_hash: str, blur_threshold: Optional[float]) -> IngestReport:
        threshold = self.config.catalog.blur_threshold \
            if blur_threshold is None else blur_threshold
        warnings = []

        try:
            buffer = decode(source, filename)
        except DecodeError as e:
            logger.warning("Analysis of %s fell back to neutral values: %s", filename, e)
            warnings.append(f"{e.reason}: {e}")
            buffer = None

        if buffer is not None:
            quality = self.analyzer.analyze(buffer)
            perceptual_hash = self.perceptual_hasher.hash(buffer)
        else:
            quality = QualityReport.neutral()
            perceptual_hash = None

        thumbnail = None
        if self.render_thumbnails:
            try:
                thumbnail = self.thumbnailer.generate(source, filename=filename)
            except ThumbnailError as e:
                logger.warning("No thumbnail for %s: %s", filename, e)
                warnings.append(f"{e.reason}: {e}")

        return IngestReport(
            filename=filename,
            size=size,
            content_hash=content_hash,
            perceptual_hash=perceptual_hash,
            quality=quality,
            is_blurry=quality.is_blurry(threshold),
            width=buffer.width if buffer is not None else None,
            height=buffer.height if buffer is not None else None,
            format=buffer.format if buffer is not None else None,
            thumbnail=thumbnail,
            warnings=warnings,
        )
