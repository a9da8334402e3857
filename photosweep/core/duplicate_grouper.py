# core/duplicate_grouper.py

import logging
from collections import defaultdict
from typing import Dict, List, Optional, Sequence

from photosweep.core.hashing import PerceptualHasher
from photosweep.core.models import DuplicateAssignment, PhotoRecord

logger = logging.getLogger(__name__)


class DuplicateGrouper:
    """
    Exact-duplicate grouping by content hash.

    Input is a snapshot of one user's photos ordered newest first. Within a
    content-hash group the first photo in that order (the most recently
    created) is kept as the representative; every other member is marked
    as a duplicate pointing at it. Each call recomputes everything from the
    snapshot, so repeated calls on unchanged input give identical results.
    """

    def __init__(self, similarity_threshold: int = 5):
        self.similarity_threshold = similarity_threshold
        self._perceptual = PerceptualHasher()

    def assign(self, photos: Sequence[PhotoRecord]) -> List[DuplicateAssignment]:
        """
        One assignment per input photo, in input order.

        Representatives and unique photos get is_duplicate=False and no
        group, which clears marks left over from earlier passes.
        """
        self._check_unique_ids(photos)

        representative_of = {}
        for photo in photos:
            if photo.content_hash is None:
                continue  # unhashable photos never join a group
            representative_of.setdefault(photo.content_hash, photo.photo_id)

        assignments = []
        for photo in photos:
            representative = representative_of.get(photo.content_hash) \
                if photo.content_hash is not None else None

            if representative is None or representative == photo.photo_id:
                assignments.append(DuplicateAssignment(photo.photo_id, False, None))
            else:
                assignments.append(
                    DuplicateAssignment(photo.photo_id, True, representative)
                )

        return assignments

    def group(self, photos: Sequence[PhotoRecord]) -> List[DuplicateAssignment]:
        """Duplicate assignments only, in input order"""
        duplicates = [a for a in self.assign(photos) if a.is_duplicate]
        logger.info("Grouping pass over %d photos found %d duplicates",
                    len(photos), len(duplicates))
        return duplicates

    def groups(self, photos: Sequence[PhotoRecord]) -> Dict[str, List[str]]:
        """Map each representative photo id to its duplicate ids"""
        result = defaultdict(list)
        for assignment in self.group(photos):
            result[assignment.duplicate_group].append(assignment.photo_id)
        return dict(result)

    @staticmethod
    def apply(photos: Sequence[PhotoRecord],
              assignments: Sequence[DuplicateAssignment]) -> List[PhotoRecord]:
        """Return copies of photos with the assignments written in"""
        by_id = {a.photo_id: a for a in assignments}
        updated = []
        for photo in photos:
            assignment = by_id.get(photo.photo_id)
            if assignment is None:
                updated.append(photo)
                continue
            updated.append(photo.with_analysis(
                is_duplicate=assignment.is_duplicate,
                duplicate_group=assignment.duplicate_group,
            ))
        return updated

    def find_similar(self, photos: Sequence[PhotoRecord],
                     max_distance: Optional[int] = None) -> Dict[str, List[str]]:
        """
        Near-duplicate clusters by perceptual hash distance

        Greedy single pass in input order: each unclaimed photo becomes a
        representative and claims every later photo within max_distance.
        Byte-identical copies are left to assign(); only the first photo of
        each content hash takes part here.

        Time Complexity: O(n^2) hash comparisons
        """
        self._check_unique_ids(photos)
        max_distance = self.similarity_threshold if max_distance is None else max_distance

        candidates = []
        seen_hashes = set()
        for photo in photos:
            if not photo.perceptual_hash:
                continue
            if photo.content_hash is not None:
                if photo.content_hash in seen_hashes:
                    continue
                seen_hashes.add(photo.content_hash)
            candidates.append(photo)

        clusters = {}
        processed = set()

        for i, photo in enumerate(candidates):
            if photo.photo_id in processed:
                continue
            processed.add(photo.photo_id)

            members = []
            for other in candidates[i + 1:]:
                if other.photo_id in processed:
                    continue
                distance = self._perceptual.hamming_distance(
                    photo.perceptual_hash, other.perceptual_hash
                )
                if distance <= max_distance:
                    members.append(other.photo_id)
                    processed.add(other.photo_id)

            if members:
                clusters[photo.photo_id] = members

        return clusters

    @staticmethod
    def _check_unique_ids(photos: Sequence[PhotoRecord]):
        seen = set()
        for photo in photos:
            if photo.photo_id in seen:
                raise ValueError(f"Photo id {photo.photo_id!r} appears more than once")
            seen.add(photo.photo_id)
