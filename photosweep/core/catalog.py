# core/catalog.py

import math
from dataclasses import dataclass, asdict
from typing import Callable, Dict, List, Optional, Sequence, Tuple

from photosweep.core.errors import InvalidQueryError
from photosweep.core.models import PHOTO_STATUSES, PhotoRecord

FILTERS = ('all', 'duplicates', 'blurry', 'screenshots', 'favorites')

# sort name -> (key, descending)
SORTS: Dict[str, Tuple[Callable[[PhotoRecord], object], bool]] = {
    'date-desc': (lambda p: p.created_at, True),
    'date-asc': (lambda p: p.created_at, False),
    'size-desc': (lambda p: p.size, True),
    'size-asc': (lambda p: p.size, False),
    'name-asc': (lambda p: p.original_name.casefold(), False),
    'name-desc': (lambda p: p.original_name.casefold(), True),
}


@dataclass
class CatalogQuery:
    """Parameters of a catalog listing"""
    status: str = 'active'
    filter: str = 'all'
    sort: str = 'date-desc'
    page: int = 1
    limit: int = 20
    blur_threshold: Optional[float] = None

    def validate(self, max_limit: int = 100) -> 'CatalogQuery':
        if self.status not in PHOTO_STATUSES:
            raise InvalidQueryError(f"Invalid status: {self.status!r}")
        if self.filter not in FILTERS:
            raise InvalidQueryError(f"Invalid filter: {self.filter!r}")
        if self.sort not in SORTS:
            raise InvalidQueryError(f"Invalid sort option: {self.sort!r}")
        if not isinstance(self.page, int) or self.page < 1:
            raise InvalidQueryError("page must be an integer >= 1")
        if not isinstance(self.limit, int) or not 1 <= self.limit <= max_limit:
            raise InvalidQueryError(f"limit must be an integer in [1, {max_limit}]")
        if self.blur_threshold is not None and not 0.0 <= self.blur_threshold <= 1.0:
            raise InvalidQueryError("blur_threshold must lie in [0, 1]")
        return self


@dataclass(frozen=True)
class Pagination:
    page: int
    limit: int
    total: int
    total_pages: int
    has_next: bool
    has_prev: bool

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass(frozen=True)
class CatalogPage:
    photos: List[PhotoRecord]
    pagination: Pagination

    def to_dict(self) -> dict:
        return {
            'photos': [p.to_dict() for p in self.photos],
            'pagination': self.pagination.to_dict(),
        }


@dataclass(frozen=True)
class CatalogSummary:
    """Counts over a user's active photos"""
    total_photos: int
    duplicate_photos: int
    blurry_photos: int
    screenshot_photos: int
    favorite_photos: int
    storage_used: int

    def to_dict(self) -> dict:
        return asdict(self)


class PhotoCatalogFilter:
    """
    Filter, sort and paginate a photo collection using its precomputed
    analysis fields
    """

    def __init__(self, blur_threshold: float = 0.7, default_limit: int = 20,
                 max_limit: int = 100):
        self.blur_threshold = blur_threshold
        self.default_limit = default_limit
        self.max_limit = max_limit

    def query(self, photos: Sequence[PhotoRecord],
              query: Optional[CatalogQuery] = None, **params) -> CatalogPage:
        """
        Answer a listing request.

        Args:
            photos: The user's photos in creation order; this order breaks
                    sort ties, so repeated calls page identically
            query: CatalogQuery, or pass its fields as keyword arguments

        Returns:
            CatalogPage with the requested slice and pagination metadata
        """
        if query is None:
            params.setdefault('limit', self.default_limit)
            query = CatalogQuery(**params)
        query.validate(self.max_limit)

        selected = self.select(photos, query.status, query.filter,
                               query.blur_threshold)
        ordered = self.sort(selected, query.sort)
        return self.paginate(ordered, query.page, query.limit)

    def select(self, photos: Sequence[PhotoRecord], status: str = 'active',
               filter: str = 'all',
               blur_threshold: Optional[float] = None) -> List[PhotoRecord]:
        if filter not in FILTERS:
            raise InvalidQueryError(f"Invalid filter: {filter!r}")
        threshold = self.blur_threshold if blur_threshold is None else blur_threshold

        predicates = {
            'all': lambda p: True,
            'duplicates': lambda p: p.is_duplicate,
            'blurry': lambda p: p.quality is not None and p.quality < threshold,
            'screenshots': lambda p: p.is_screenshot,
            'favorites': lambda p: p.favorite,
        }
        predicate = predicates[filter]
        return [p for p in photos if p.status == status and predicate(p)]

    @staticmethod
    def sort(photos: Sequence[PhotoRecord], sort: str = 'date-desc') -> List[PhotoRecord]:
        if sort not in SORTS:
            raise InvalidQueryError(f"Invalid sort option: {sort!r}")
        key, descending = SORTS[sort]
        # sorted() is stable in both directions, so ties keep input order
        return sorted(photos, key=key, reverse=descending)

    @staticmethod
    def paginate(photos: Sequence[PhotoRecord], page: int, limit: int) -> CatalogPage:
        total = len(photos)
        total_pages = math.ceil(total / limit)
        start = (page - 1) * limit

        pagination = Pagination(
            page=page,
            limit=limit,
            total=total,
            total_pages=total_pages,
            has_next=page < total_pages,
            has_prev=page > 1,
        )
        return CatalogPage(photos=list(photos[start:start + limit]),
                           pagination=pagination)

    def find_blurry(self, photos: Sequence[PhotoRecord],
                    threshold: Optional[float] = None) -> List[PhotoRecord]:
        """Active photos scoring below the quality threshold, newest first"""
        return self.sort(self.select(photos, 'active', 'blurry', threshold), 'date-desc')

    def find_screenshots(self, photos: Sequence[PhotoRecord]) -> List[PhotoRecord]:
        """Active photos classified as screenshots, newest first"""
        return self.sort(self.select(photos, 'active', 'screenshots'), 'date-desc')

    def summary(self, photos: Sequence[PhotoRecord],
                blur_threshold: Optional[float] = None) -> CatalogSummary:
        active = self.select(photos, 'active', 'all')
        return CatalogSummary(
            total_photos=len(active),
            duplicate_photos=len(self.select(active, 'active', 'duplicates')),
            blurry_photos=len(self.select(active, 'active', 'blurry', blur_threshold)),
            screenshot_photos=len(self.select(active, 'active', 'screenshots')),
            favorite_photos=len(self.select(active, 'active', 'favorites')),
            storage_used=sum(p.size for p in active),
        )
