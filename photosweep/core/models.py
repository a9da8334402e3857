# core/models.py

from dataclasses import dataclass, field, replace, asdict
from datetime import datetime
from typing import Optional, Tuple

PHOTO_STATUSES = ('active', 'trash', 'deleted')


@dataclass(frozen=True)
class PhotoAnalysis:
    """Per-photo analysis fields computed at ingest and by the grouping pass"""
    content_hash: Optional[str] = None
    perceptual_hash: Optional[str] = None
    quality: Optional[float] = None
    brightness: Optional[float] = None
    contrast: Optional[float] = None
    sharpness: Optional[float] = None
    is_blurry: bool = False
    is_screenshot: bool = False
    is_duplicate: bool = False
    duplicate_group: Optional[str] = None


@dataclass(frozen=True)
class PhotoRecord:
    """A stored photo as seen by the grouping and catalog passes"""
    photo_id: str
    original_name: str
    size: int
    created_at: datetime
    user_id: Optional[str] = None
    mime_type: Optional[str] = None
    path: Optional[str] = None
    thumbnail_path: Optional[str] = None
    width: Optional[int] = None
    height: Optional[int] = None
    status: str = 'active'
    favorite: bool = False
    tags: Tuple[str, ...] = ()
    views: int = 0
    analysis: PhotoAnalysis = field(default_factory=PhotoAnalysis)

    @property
    def content_hash(self) -> Optional[str]:
        return self.analysis.content_hash

    @property
    def perceptual_hash(self) -> Optional[str]:
        return self.analysis.perceptual_hash

    @property
    def quality(self) -> Optional[float]:
        return self.analysis.quality

    @property
    def is_duplicate(self) -> bool:
        return self.analysis.is_duplicate

    @property
    def duplicate_group(self) -> Optional[str]:
        return self.analysis.duplicate_group

    @property
    def is_screenshot(self) -> bool:
        return self.analysis.is_screenshot

    def with_analysis(self, **changes) -> 'PhotoRecord':
        return replace(self, analysis=replace(self.analysis, **changes))

    def to_dict(self) -> dict:
        data = asdict(self)
        data['created_at'] = self.created_at.isoformat()
        data['tags'] = list(self.tags)
        return data


@dataclass(frozen=True)
class DuplicateAssignment:
    """Outcome of a grouping pass for one photo"""
    photo_id: str
    is_duplicate: bool
    duplicate_group: Optional[str] = None
