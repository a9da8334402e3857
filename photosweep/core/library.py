# core/library.py

import logging
import mimetypes
import uuid
from datetime import datetime
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Sequence, Union

from photosweep.config import SystemConfig
from photosweep.core.batch_processor import BatchProcessor, BatchResult
from photosweep.core.catalog import CatalogPage, CatalogQuery, CatalogSummary, PhotoCatalogFilter
from photosweep.core.database import PhotoDatabase
from photosweep.core.duplicate_grouper import DuplicateGrouper
from photosweep.core.ingest import IngestReport, PhotoIngestor
from photosweep.core.locks import UserLockRegistry
from photosweep.core.models import DuplicateAssignment, PhotoAnalysis, PhotoRecord
from photosweep.security.input_validation import SecurityValidator

logger = logging.getLogger(__name__)

MAX_TAG_LENGTH = 20


class PhotoLibrary:
    """
    Ties the analysis engine to a photo store: imports batches, reruns the
    grouping pass and answers catalog queries per user.
    """

    def __init__(self, config: Optional[SystemConfig] = None,
                 database: Optional[PhotoDatabase] = None,
                 batch_processor: Optional[BatchProcessor] = None):
        self.config = config or SystemConfig()
        self.database = database or PhotoDatabase(self.config.database_path)
        self.ingestor = PhotoIngestor(self.config)
        self.batch_processor = batch_processor or BatchProcessor.from_config(self.config)
        self.grouper = DuplicateGrouper(self.config.duplicate_detection.similarity_threshold)
        self.catalog = PhotoCatalogFilter(self.config.catalog.blur_threshold,
                                          self.config.catalog.default_limit,
                                          self.config.catalog.max_limit)
        self.thumbnail_dir = Path(self.config.thumbnail_dir)
        self._locks = UserLockRegistry()

    # Ingest

    def import_files(self, user_id: str, paths: Iterable[Union[str, Path]],
                     blur_threshold: Optional[float] = None) -> BatchResult:
        """
        Analyze and store files in batches of at most max_batch_size.

        Failed files are reported in the result and never stored.
        """
        paths = [Path(p) for p in paths]
        combined = BatchResult()
        size = self.batch_processor.max_batch_size

        for start in range(0, len(paths), size):
            chunk = paths[start:start + size]
            result = self.batch_processor.ingest_batch(self.ingestor, chunk, blur_threshold)
            for report in result.processed:
                self.add_report(user_id, report)
            combined.processed.extend(result.processed)
            combined.errors.extend(result.errors)

        return combined

    def add_report(self, user_id: str, report: IngestReport,
                   created_at: Optional[datetime] = None) -> PhotoRecord:
        """Store an ingest report as a new active photo"""
        photo_id = uuid.uuid4().hex
        thumbnail_path = None
        if report.thumbnail is not None:
            thumbnail_path = self.thumbnail_dir / f"thumb_{photo_id}.jpg"
            thumbnail_path.parent.mkdir(parents=True, exist_ok=True)
            thumbnail_path.write_bytes(report.thumbnail)

        quality = report.quality
        photo = PhotoRecord(
            photo_id=photo_id,
            user_id=user_id,
            original_name=SecurityValidator.sanitize_filename(report.filename),
            size=report.size,
            created_at=created_at or datetime.now(),
            mime_type=mimetypes.guess_type(report.filename)[0],
            path=report.path,
            thumbnail_path=str(thumbnail_path) if thumbnail_path else None,
            width=report.width,
            height=report.height,
            analysis=PhotoAnalysis(
                content_hash=report.content_hash,
                perceptual_hash=report.perceptual_hash,
                quality=quality.quality,
                brightness=quality.brightness,
                contrast=quality.contrast,
                sharpness=quality.sharpness,
                is_blurry=report.is_blurry,
                is_screenshot=quality.is_screenshot,
            ),
        )
        return self.database.add_photo(photo)

    # Grouping

    def refresh_duplicates(self, user_id: str) -> List[DuplicateAssignment]:
        """
        Recompute duplicate marks over the user's active photos.

        Snapshot, compute and write-back all happen under the user's lock.
        Returns the duplicate assignments.
        """
        with self._locks.lock_for(user_id):
            snapshot = self.database.list_photos(user_id, 'active', newest_first=True)
            assignments = self.grouper.assign(snapshot)
            self.database.apply_duplicate_assignments(assignments)

        duplicates = [a for a in assignments if a.is_duplicate]
        logger.info("User %s: %d duplicates among %d active photos",
                    user_id, len(duplicates), len(snapshot))
        return duplicates

    def find_similar(self, user_id: str,
                     max_distance: Optional[int] = None) -> Dict[str, List[str]]:
        snapshot = self.database.list_photos(user_id, 'active', newest_first=True)
        return self.grouper.find_similar(snapshot, max_distance)

    # Catalog

    def list_photos(self, user_id: str, query: Optional[CatalogQuery] = None,
                    **params) -> CatalogPage:
        return self.catalog.query(self.database.list_photos(user_id), query, **params)

    def find_blurry(self, user_id: str, threshold: Optional[float] = None) -> List[PhotoRecord]:
        return self.catalog.find_blurry(self.database.list_photos(user_id, 'active'), threshold)

    def find_screenshots(self, user_id: str) -> List[PhotoRecord]:
        return self.catalog.find_screenshots(self.database.list_photos(user_id, 'active'))

    def stats(self, user_id: str) -> CatalogSummary:
        return self.catalog.summary(self.database.list_photos(user_id, 'active'))

    # Lifecycle

    def get_photo(self, user_id: str, photo_id: str) -> PhotoRecord:
        """Fetch a photo and count the view"""
        photo = self.database.get_photo(user_id, photo_id)
        return self.database.update_fields(user_id, photo_id, views=photo.views + 1)

    def trash(self, user_id: str, photo_id: str) -> PhotoRecord:
        self.database.get_photo(user_id, photo_id)
        return self.database.update_fields(user_id, photo_id, status='trash')

    def restore(self, user_id: str, photo_id: str) -> PhotoRecord:
        self.database.get_photo(user_id, photo_id, status='trash')
        return self.database.update_fields(user_id, photo_id, status='active')

    def purge(self, user_id: str, photo_id: str) -> PhotoRecord:
        """Mark a trashed photo as deleted, pending removal by empty_purged()"""
        self.database.get_photo(user_id, photo_id, status='trash')
        return self.database.update_fields(user_id, photo_id, status='deleted')

    def empty_purged(self, user_id: str) -> List[PhotoRecord]:
        """Drop deleted photos from the store along with their thumbnails"""
        removed = self.database.delete_photos(user_id, 'deleted')
        for photo in removed:
            if photo.thumbnail_path:
                try:
                    Path(photo.thumbnail_path).unlink()
                except FileNotFoundError:
                    logger.debug("Thumbnail already gone: %s", photo.thumbnail_path)
        return removed

    def toggle_favorite(self, user_id: str, photo_id: str) -> PhotoRecord:
        photo = self.database.get_photo(user_id, photo_id, status='active')
        return self.database.update_fields(user_id, photo_id, favorite=not photo.favorite)

    def set_tags(self, user_id: str, photo_id: str, tags: Sequence[str]) -> PhotoRecord:
        cleaned = [str(tag).strip() for tag in tags]
        for tag in cleaned:
            if not 1 <= len(tag) <= MAX_TAG_LENGTH:
                raise ValueError(f"Tags must be 1-{MAX_TAG_LENGTH} characters: {tag!r}")
        self.database.get_photo(user_id, photo_id, status='active')
        return self.database.update_fields(user_id, photo_id, tags=cleaned)

    def close(self):
        self.database.close()
