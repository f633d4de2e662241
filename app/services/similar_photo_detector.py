from dataclasses import dataclass, field
from datetime import timedelta
from typing import Callable, Dict, List, Optional

from flask import current_app

from app.services.errors import PhotoLoadError
from app.services.photo_analysis import HASH_BITS, hamming_distance
from app.utils.logging_utils import get_logger

logger = get_logger("cleanup")

FALLBACK_WINDOW = timedelta(hours=24)

KEEP_FIRST = "keep_first"
KEEP_SECOND = "keep_second"
KEEP_BOTH = "keep_both"


@dataclass(frozen=True)
class PhotoComparison:
    photo_id_1: object
    photo_id_2: object
    distance: int
    similarity_score: int
    recommended: str


@dataclass
class SimilarPhotoGroup:
    photos: List = field(default_factory=list)
    best_photo_id: object = None
    photos_to_delete: List = field(default_factory=list)


def similarity_from_distance(distance: int) -> int:
    return int(round(100 * (1 - distance / HASH_BITS)))


def _threshold() -> int:
    return int(current_app.config.get("PHOTO_SIMILARITY_THRESHOLD", 85))


def group_photos_by_potential_similarity(photos) -> List[List]:
    """
    Candidate groups worth comparing pairwise.  Photos sharing a CRM job id
    form one group; the rest are grouped greedily around a seed photo when
    the category matches and the timestamps are less than 24 hours apart.
    Groups of one are dropped.
    """
    groups: List[List] = []
    by_job: Dict[str, List] = {}
    without_job = []
    for photo in photos:
        if photo.job_id:
            by_job.setdefault(photo.job_id, []).append(photo)
        else:
            without_job.append(photo)

    for job_id, job_photos in by_job.items():
        if len(job_photos) > 1:
            groups.append(job_photos)
            logger.debug("Found %s photos from job %s", len(job_photos), job_id)

    grouped = set()
    for i, seed in enumerate(without_job):
        if seed.id in grouped:
            continue
        group = [seed]
        grouped.add(seed.id)
        for other in without_job[i + 1:]:
            if other.id in grouped:
                continue
            if other.category == seed.category and abs(other.taken_at - seed.taken_at) < FALLBACK_WINDOW:
                group.append(other)
                grouped.add(other.id)
        if len(group) > 1:
            groups.append(group)
            logger.debug("Found %s photos without job id (category + time fallback)", len(group))

    return groups


def compare_photos(photo_1, photo_2, hash_1: str, hash_2: str, threshold: Optional[int] = None) -> PhotoComparison:
    threshold = _threshold() if threshold is None else threshold
    distance = hamming_distance(hash_1, hash_2)
    score = similarity_from_distance(distance)
    if score >= threshold:
        recommended = KEEP_SECOND if (photo_2.quality_score or 0) > (photo_1.quality_score or 0) else KEEP_FIRST
    else:
        recommended = KEEP_BOTH
    return PhotoComparison(photo_1.id, photo_2.id, distance, score, recommended)


def _best_photo_key(photo):
    # highest quality, then earliest, then lowest id
    return (-(photo.quality_score or 0), photo.taken_at, str(photo.id))


class _UnionFind:
    def __init__(self):
        self.parent: Dict = {}

    def find(self, item):
        self.parent.setdefault(item, item)
        root = item
        while self.parent[root] != root:
            root = self.parent[root]
        while self.parent[item] != root:
            self.parent[item], item = root, self.parent[item]
        return root

    def union(self, a, b):
        root_a, root_b = self.find(a), self.find(b)
        if root_a != root_b:
            self.parent[root_b] = root_a


def find_similar_photos(photos, hash_for: Callable = None) -> List[SimilarPhotoGroup]:
    """
    Compare every pair inside each candidate group and collapse pairs at or
    above the similarity threshold into connected components.  ``hash_for``
    maps a photo to its hex hash (default: the stored ``phash``); a photo
    without a hash is skipped.
    """
    hash_for = hash_for or (lambda p: p.phash)
    threshold = _threshold()
    results: List[SimilarPhotoGroup] = []

    for candidates in group_photos_by_potential_similarity(photos):
        hashes = {}
        for photo in candidates:
            try:
                value = hash_for(photo)
            except PhotoLoadError as exc:
                logger.warning("Skipping photo %s: %s", photo.id, exc)
                continue
            if value:
                hashes[photo.id] = value

        usable = [p for p in candidates if p.id in hashes]
        uf = _UnionFind()
        for i, first in enumerate(usable):
            for second in usable[i + 1:]:
                comparison = compare_photos(first, second, hashes[first.id], hashes[second.id], threshold)
                if comparison.recommended != KEEP_BOTH:
                    logger.info("Similar pair %s ~ %s score=%s", first.id, second.id, comparison.similarity_score)
                    uf.union(first.id, second.id)

        components: Dict = {}
        for photo in usable:
            if photo.id in uf.parent:
                components.setdefault(uf.find(photo.id), []).append(photo)

        for members in components.values():
            if len(members) < 2:
                continue
            best = min(members, key=_best_photo_key)
            results.append(SimilarPhotoGroup(
                photos=members,
                best_photo_id=best.id,
                photos_to_delete=[p.id for p in members if p.id != best.id],
            ))

    logger.info("find_similar_photos photos=%s groups=%s", len(photos), len(results))
    return results
