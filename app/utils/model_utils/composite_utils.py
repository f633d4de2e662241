from __future__ import annotations

from datetime import datetime, timedelta
from typing import List, Optional

from sqlalchemy import or_

from app.extensions import db
from app.models.Composite import BeforeAfterComposite
from app.security_utils import coerce_uuid
from app.utils.logging_utils import get_logger

from .base import create_instance, first_instance, get_instance, list_instances, update_instance

logger = get_logger("composites")


def save_composites(composites: List[BeforeAfterComposite], *, actor_id: Optional[str] = None) -> List[BeforeAfterComposite]:
    """Persist freshly rendered composites in one commit."""
    if not composites:
        return []
    db.session.add_all(composites)
    db.session.commit()
    logger.info("Saved %s composites ids=%s", len(composites), [str(c.id) for c in composites])
    return composites


def create_composite(commit: bool = True, *, actor_id: Optional[str] = None, **attributes) -> BeforeAfterComposite:
    return create_instance(BeforeAfterComposite, commit=commit, actor_id=actor_id,
                           event_name="composite.create", **attributes)


def get_composite(composite_id) -> Optional[BeforeAfterComposite]:
    ident = coerce_uuid(composite_id)
    if ident is None:
        return None
    return get_instance(BeforeAfterComposite, ident, context={"function": "get_composite"})


def list_composites() -> List[BeforeAfterComposite]:
    return list_instances(BeforeAfterComposite, order_by=BeforeAfterComposite.created_at.desc(),
                          context={"function": "list_composites"})


def _claimable(stale_before: Optional[datetime]):
    if stale_before is None:
        return BeforeAfterComposite.posting_started_at.is_(None)
    return or_(BeforeAfterComposite.posting_started_at.is_(None),
               BeforeAfterComposite.posting_started_at < stale_before)


def unused_composites(stale_before: Optional[datetime] = None) -> List[BeforeAfterComposite]:
    """Unposted composites nobody is currently posting; claims older than ``stale_before`` count as free."""
    return list_instances(
        BeforeAfterComposite,
        filters=[BeforeAfterComposite.posted_at.is_(None), _claimable(stale_before)],
        order_by=BeforeAfterComposite.created_at.asc(),
        context={"function": "unused_composites"},
    )


def composite_created_between(start: datetime, end: datetime) -> Optional[BeforeAfterComposite]:
    return first_instance(
        BeforeAfterComposite,
        filters=[BeforeAfterComposite.created_at >= start, BeforeAfterComposite.created_at < end],
    )


def composite_created_on_day(day_start: datetime) -> bool:
    return composite_created_between(day_start, day_start + timedelta(days=1)) is not None


def mark_posted(
    composite: BeforeAfterComposite,
    *,
    facebook_post_id: Optional[str],
    instagram_post_id: Optional[str],
    posted_at: datetime,
    actor_id: Optional[str] = None,
) -> BeforeAfterComposite:
    return update_instance(
        composite,
        actor_id=actor_id,
        event_name="composite.posted",
        facebook_post_id=facebook_post_id,
        instagram_post_id=instagram_post_id,
        posted_at=posted_at,
        posting_started_at=None,
    )


def claim_for_posting(composite_id, *, now: datetime, stale_before: Optional[datetime] = None) -> bool:
    """Mark an unposted composite as being posted. Only one caller gets ``True``."""
    claimed = (
        db.session.query(BeforeAfterComposite)
        .filter(
            BeforeAfterComposite.id == composite_id,
            BeforeAfterComposite.posted_at.is_(None),
            _claimable(stale_before),
        )
        .update({BeforeAfterComposite.posting_started_at: now}, synchronize_session=False)
    )
    db.session.commit()
    if claimed != 1:
        logger.info("Composite %s already claimed or posted", composite_id)
        return False
    return True


def release_posting_claim(composite_id) -> None:
    (
        db.session.query(BeforeAfterComposite)
        .filter(BeforeAfterComposite.id == composite_id, BeforeAfterComposite.posted_at.is_(None))
        .update({BeforeAfterComposite.posting_started_at: None}, synchronize_session=False)
    )
    db.session.commit()
    logger.info("Released posting claim on composite %s", composite_id)
