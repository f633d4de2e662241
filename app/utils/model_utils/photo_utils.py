from __future__ import annotations

from datetime import datetime
from typing import Dict, Iterable, List, Optional, Set

from app.extensions import db
from app.models.Composite import BeforeAfterComposite
from app.models.Photo import Photo
from app.security_utils import coerce_uuid
from app.utils.logging_utils import get_logger, log_context

from .base import create_instance, delete_instance, get_instance, list_instances, update_instance

logger = get_logger("photos")


def create_photo(commit: bool = True, *, actor_id: Optional[str] = None, **attributes) -> Photo:
    return create_instance(Photo, commit=commit, actor_id=actor_id, event_name="photo.create", **attributes)


def get_photo(photo_id) -> Optional[Photo]:
    ident = coerce_uuid(photo_id)
    if ident is None:
        return None
    return get_instance(Photo, ident, context={"function": "get_photo"})


def list_photos(
    *,
    category: Optional[str] = None,
    quality: Optional[str] = None,
    status: Optional[str] = None,
    good_only: bool = False,
) -> List[Photo]:
    """
    ``quality`` is ``good``/``poor``, ``status`` is ``used``/``unused``;
    any other value leaves that dimension unfiltered.
    """
    filters = []
    if category:
        filters.append(Photo.category == category)
    if good_only or quality == "good":
        filters.append(Photo.is_good_quality.is_(True))
    elif quality == "poor":
        filters.append(Photo.is_good_quality.is_(False))
    if status == "used":
        filters.append(Photo.is_used.is_(True))
    elif status == "unused":
        filters.append(Photo.is_used.is_(False))
    return list_instances(
        Photo,
        filters=filters,
        order_by=[Photo.quality_score.desc(), Photo.fetched_at.desc()],
        context={"function": "list_photos"},
    )


def all_photos() -> List[Photo]:
    return list_instances(Photo, order_by=Photo.fetched_at.asc(), context={"function": "all_photos"})


def photos_for_job(job_id: str) -> List[Photo]:
    return list_instances(
        Photo,
        filters=[Photo.job_id == job_id],
        order_by=[Photo.uploaded_at.asc(), Photo.fetched_at.asc()],
        context={"function": "photos_for_job", "job_id": job_id},
    )


def photos_since(since: datetime) -> List[Photo]:
    """Photos uploaded at or after ``since``; rows without an upload time never count."""
    return list_instances(
        Photo,
        filters=[Photo.uploaded_at.isnot(None), Photo.uploaded_at >= since],
        order_by=Photo.uploaded_at.asc(),
        context={"function": "photos_since"},
    )


def update_photo(photo: Photo, commit: bool = True, *, actor_id: Optional[str] = None, **attributes) -> Photo:
    return update_instance(photo, commit=commit, actor_id=actor_id, event_name="photo.update", **attributes)


def delete_photo(photo_or_id, commit: bool = True, *, actor_id: Optional[str] = None) -> bool:
    target = photo_or_id if isinstance(photo_or_id, Photo) else coerce_uuid(photo_or_id)
    if target is None:
        return False
    return delete_instance(Photo, target, commit=commit, actor_id=actor_id, event_name="photo.delete")


def referenced_photo_ids() -> Set:
    """Ids of photos some composite still points at."""
    rows = db.session.query(BeforeAfterComposite.before_photo_id, BeforeAfterComposite.after_photo_id).all()
    referenced = set()
    for before_id, after_id in rows:
        if before_id is not None:
            referenced.add(before_id)
        if after_id is not None:
            referenced.add(after_id)
    return referenced


def group_by_job(photos: Iterable[Photo]) -> Dict[str, List[Photo]]:
    grouped: Dict[str, List[Photo]] = {}
    for photo in photos:
        if photo.job_id:
            grouped.setdefault(photo.job_id, []).append(photo)
    with log_context(function="group_by_job"):
        logger.debug("group_by_job jobs=%s", len(grouped))
    return grouped
