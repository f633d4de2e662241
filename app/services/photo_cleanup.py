import json
import threading
import time
from typing import Optional

from app.extensions import db
from app.security_utils import audit_log
from app.services.photo_analysis import ensure_phash
from app.services.similar_photo_detector import find_similar_photos
from app.utils.logging_utils import get_logger, log_context
from app.utils.model_utils import photo_utils

logger = get_logger("cleanup")

_cleanup_lock = threading.Lock()


def execute_photo_cleanup(dry_run: bool = False, actor_id: Optional[str] = None) -> dict:
    """
    Collapse groups of near-identical photos down to their best member.
    Photos referenced by a composite are never deleted.
    """
    photos = photo_utils.all_photos()
    if len(photos) < 2:
        return {
            "success": True,
            "message": "Not enough photos to compare",
            "groups_found": 0,
            "photos_deleted": 0,
        }

    logger.info("Analyzing %s photos for similarity dry_run=%s", len(photos), dry_run)
    groups = find_similar_photos(photos, hash_for=ensure_phash)
    # persist hashes computed during the scan, dry run included
    db.session.commit()

    if not groups:
        return {
            "success": True,
            "message": "No similar photos found",
            "groups_found": 0,
            "photos_deleted": 0,
            "groups": [],
        }

    protected = photo_utils.referenced_photo_ids()
    by_id = {p.id: p for p in photos}
    deleted = 0
    summaries = []
    for group in groups:
        removable = [pid for pid in group.photos_to_delete if pid not in protected]
        skipped = len(group.photos_to_delete) - len(removable)
        if skipped:
            logger.info("Keeping %s photos of group %s used by composites", skipped, group.best_photo_id)
        if not dry_run:
            for pid in removable:
                db.session.delete(by_id[pid])
            deleted += len(removable)
        logger.info("Group kept=%s deleting=%s dry_run=%s", group.best_photo_id, len(removable), dry_run)
        summaries.append({
            "photo_count": len(group.photos),
            "kept_photo_id": str(group.best_photo_id),
            "deleted_count": 0 if dry_run else len(removable),
        })

    if not dry_run:
        db.session.commit()
        audit_log(
            "photo.cleanup",
            user_id=actor_id,
            detail=json.dumps({"groups_found": len(groups), "photos_deleted": deleted}),
        )

    if dry_run:
        message = f"Found {len(groups)} groups of similar photos (dry run, nothing deleted)"
    else:
        message = f"Found {len(groups)} groups of similar photos and deleted {deleted} duplicates"
    return {
        "success": True,
        "message": message,
        "groups_found": len(groups),
        "photos_deleted": deleted,
        "groups": summaries,
    }


def run_cleanup() -> Optional[dict]:
    """Scheduled entry point.  Skips (returns ``None``) while another run is active."""
    if not _cleanup_lock.acquire(blocking=False):
        logger.info("Photo cleanup already in progress, skipping")
        return None
    started = time.monotonic()
    try:
        with log_context(job="photo_cleanup"):
            logger.info("Starting scheduled similar photo cleanup")
            result = execute_photo_cleanup()
            logger.info("Photo cleanup finished in %.1fs groups=%s deleted=%s",
                        time.monotonic() - started, result["groups_found"], result["photos_deleted"])
            return result
    except Exception:
        db.session.rollback()
        logger.exception("Photo cleanup failed after %.1fs", time.monotonic() - started)
        return {"success": False, "message": "Photo cleanup failed", "groups_found": 0, "photos_deleted": 0}
    finally:
        _cleanup_lock.release()
