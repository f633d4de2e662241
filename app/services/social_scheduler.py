from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Optional

from flask import current_app
from sqlalchemy.exc import IntegrityError

from app.extensions import db
from app.models.Composite import BeforeAfterComposite
from app.models.JobRun import JobRun
from app.models.enumerations import JobRunStatus
from app.security_utils import as_utc
from app.services.errors import CompositeClaimed, NoCompositeAvailable, SocialPostError
from app.services.social_media_poster import SocialMediaPoster
from app.utils.logging_utils import get_logger, log_context
from app.utils.model_utils import composite_utils, job_run_utils

logger = get_logger("social")

WEEKLY_JOB_NAME = "weekly_social_post"

POSTED = "posted"
SKIPPED = "skipped"
OUTSIDE_WINDOW = "outside_window"
FAILED = "failed"


@dataclass(frozen=True)
class WeeklyPostOutcome:
    status: str
    period_key: Optional[str] = None
    composite_id: Optional[str] = None
    attempts: int = 0
    error: Optional[str] = None


def default_caption() -> str:
    cfg = current_app.config
    return (f"Check out this amazing transformation! \U0001F527✨\n\n"
            f"Call us at {cfg['BUSINESS_PHONE']} or visit {cfg['BUSINESS_URL']}")


def _claim_cutoff(now: datetime) -> datetime:
    return now - timedelta(minutes=int(current_app.config.get("COMPOSITE_POST_CLAIM_MINUTES", 30)))


def select_best_composite(now: Optional[datetime] = None) -> Optional[BeforeAfterComposite]:
    """Highest before+after score among unposted, unclaimed composites; the oldest wins ties."""
    now = now or datetime.now(timezone.utc)
    best = None
    for composite in composite_utils.unused_composites(stale_before=_claim_cutoff(now)):
        if best is None or composite.total_score > best.total_score:
            best = composite
    return best


def mark_composite_as_posted(composite_id, facebook_post_id=None, instagram_post_id=None,
                             actor_id=None) -> Optional[BeforeAfterComposite]:
    composite = composite_utils.get_composite(composite_id)
    if composite is None:
        return None
    return composite_utils.mark_posted(
        composite,
        facebook_post_id=facebook_post_id or None,
        instagram_post_id=instagram_post_id or None,
        posted_at=datetime.now(timezone.utc),
        actor_id=actor_id,
    )


def post_composite(composite: BeforeAfterComposite, poster: Optional[SocialMediaPoster] = None,
                   actor_id=None) -> dict:
    """
    Claim ``composite`` and send it to every platform.

    Raises ``CompositeClaimed`` when another caller holds the claim or already
    posted it, and ``SocialPostError`` when no platform accepted the post.  The
    claim is released on any failure so the composite can be posted later.
    """
    poster = poster or SocialMediaPoster()
    composite_id = composite.id
    now = datetime.now(timezone.utc)
    with log_context(composite_id=str(composite_id)):
        if not composite_utils.claim_for_posting(composite_id, now=now, stale_before=_claim_cutoff(now)):
            raise CompositeClaimed(composite_id)

        try:
            result = poster.post_to_all(composite.composite_url, composite.caption or default_caption())
        except Exception:
            db.session.rollback()
            composite_utils.release_posting_claim(composite_id)
            raise

        if not result["facebook_post_id"] and not result["instagram_post_id"]:
            logger.error("Composite %s was not accepted by any platform", composite_id)
            composite_utils.release_posting_claim(composite_id)
            raise SocialPostError(composite_id)

        composite_utils.mark_posted(
            composite,
            facebook_post_id=result["facebook_post_id"],
            instagram_post_id=result["instagram_post_id"],
            posted_at=datetime.now(timezone.utc),
            actor_id=actor_id,
        )
        logger.info("Composite %s posted facebook=%s instagram=%s",
                    composite_id, result["facebook_post_id"], result["instagram_post_id"])
        return result


def manually_post_best(poster: Optional[SocialMediaPoster] = None, actor_id=None):
    """Post the best unused composite; returns ``(composite, platform ids)``."""
    while True:
        composite = select_best_composite()
        if composite is None:
            raise NoCompositeAvailable("No unused composites available for posting")
        try:
            return composite, post_composite(composite, poster=poster, actor_id=actor_id)
        except CompositeClaimed:
            # lost the race; the winner's claim hides it from the next selection
            continue


def weekly_period_key(when: datetime) -> str:
    year, week, _ = when.isocalendar()
    return f"{year}-W{week:02d}"


def in_weekly_window(when: datetime) -> bool:
    """From the configured weekday and hour until the end of that ISO week."""
    cfg = current_app.config
    start = (int(cfg.get("WEEKLY_POST_WEEKDAY", 1)), int(cfg.get("WEEKLY_POST_HOUR", 15)))
    return (when.weekday(), when.hour) >= start


def _claim_slot(period_key: str, now: datetime) -> Optional[JobRun]:
    """
    Take the weekly slot.  Returns the claimed run, or ``None`` when it is
    already running/succeeded or another worker won the race.
    """
    existing = job_run_utils.get_job_run(WEEKLY_JOB_NAME, period_key)
    if existing is None:
        run = JobRun(job_name=WEEKLY_JOB_NAME, period_key=period_key,
                     status=JobRunStatus.RUNNING, attempts=1, started_at=now)
        db.session.add(run)
        try:
            db.session.commit()
        except IntegrityError:
            db.session.rollback()
            logger.info("Weekly slot %s claimed by another worker", period_key)
            return None
        return run

    if existing.status != JobRunStatus.FAILED:
        logger.info("Weekly slot %s already %s", period_key, existing.status.value)
        return None

    # only one retrier can flip failed -> running
    claimed = (
        db.session.query(JobRun)
        .filter(JobRun.id == existing.id, JobRun.status == JobRunStatus.FAILED)
        .update({
            JobRun.status: JobRunStatus.RUNNING,
            JobRun.attempts: JobRun.attempts + 1,
            JobRun.started_at: now,
            JobRun.finished_at: None,
            JobRun.error: None,
        }, synchronize_session=False)
    )
    db.session.commit()
    if claimed != 1:
        return None
    db.session.refresh(existing)
    return existing


def run_weekly_post(now: Optional[datetime] = None, poster: Optional[SocialMediaPoster] = None) -> WeeklyPostOutcome:
    now = as_utc(now) or datetime.now(timezone.utc)
    if not in_weekly_window(now):
        return WeeklyPostOutcome(status=OUTSIDE_WINDOW)

    period_key = weekly_period_key(now)
    with log_context(job=WEEKLY_JOB_NAME, period=period_key):
        run = _claim_slot(period_key, now)
        if run is None:
            return WeeklyPostOutcome(status=SKIPPED, period_key=period_key)

        try:
            composite, _ = manually_post_best(poster=poster)
        except (NoCompositeAvailable, SocialPostError) as exc:
            db.session.rollback()
            return _finish_failed(run, period_key, str(exc))
        except Exception as exc:
            db.session.rollback()
            logger.exception("Weekly post crashed")
            return _finish_failed(run, period_key, f"{type(exc).__name__}: {exc}")

        run.status = JobRunStatus.SUCCEEDED
        run.result_ref = str(composite.id)
        run.finished_at = datetime.now(timezone.utc)
        db.session.commit()
        logger.info("Weekly post succeeded composite=%s attempt=%s", composite.id, run.attempts)
        return WeeklyPostOutcome(status=POSTED, period_key=period_key, composite_id=str(composite.id),
                                 attempts=run.attempts)


def _finish_failed(run: JobRun, period_key: str, error: str) -> WeeklyPostOutcome:
    run = db.session.get(JobRun, run.id)
    run.status = JobRunStatus.FAILED
    run.error = error
    run.finished_at = datetime.now(timezone.utc)
    db.session.commit()
    logger.warning("Weekly post failed attempt=%s: %s", run.attempts, error)
    return WeeklyPostOutcome(status=FAILED, period_key=period_key, attempts=run.attempts, error=error)
