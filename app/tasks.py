"""
Celery application and the periodic jobs it drives.

Worker and beat run against the Flask app built in ``celery_worker.py``:

    celery -A celery_worker.celery worker --beat --loglevel=info
"""

from dataclasses import asdict
from datetime import datetime, timedelta, timezone

from celery import Celery, Task
from celery.schedules import crontab
from flask import Flask, current_app, has_app_context

from app.security_utils import as_utc
from app.services.before_after_composer import create_daily_composites
from app.services.photo_cleanup import run_cleanup
from app.services.social_scheduler import run_weekly_post
from app.utils.logging_utils import get_logger

logger = get_logger("tasks")


class ContextTask(Task):
    """Run every task inside the Flask application context."""
    def __call__(self, *args, **kwargs):
        if has_app_context():
            return self.run(*args, **kwargs)
        with self.app.flask_app.app_context():
            return self.run(*args, **kwargs)


celery_app = Celery("home_services", task_cls=ContextTask)


def configure_celery(app: Flask) -> Celery:
    celery_app.conf.update({
        "broker_url": app.config["CELERY_BROKER_URL"],
        "result_backend": app.config["CELERY_RESULT_BACKEND"],
        "task_always_eager": app.config.get("CELERY_TASK_ALWAYS_EAGER", False),
        "task_serializer": "json",
        "result_serializer": "json",
        "accept_content": ["json"],
        "result_expires": 3600,
        "timezone": "UTC",
        "enable_utc": True,
        "worker_prefetch_multiplier": 1,
        "task_acks_late": True,
        "worker_hijack_root_logger": False,
        "beat_schedule": {
            "photo-cleanup": {
                "task": "photos.cleanup",
                "schedule": timedelta(hours=app.config.get("PHOTO_CLEANUP_INTERVAL_HOURS", 24)),
            },
            "daily-composites": {
                "task": "composites.daily",
                "schedule": crontab(minute=0),
            },
            "weekly-social-post": {
                "task": "social.weekly_post",
                "schedule": crontab(minute=5),
            },
        },
    })

    celery_app.flask_app = app
    app.extensions["celery"] = celery_app
    app.logger.info("Celery configured broker=%s eager=%s",
                    app.config["CELERY_BROKER_URL"], celery_app.conf.task_always_eager)
    return celery_app


@celery_app.task(name="photos.cleanup")
def photo_cleanup_task():
    result = run_cleanup()
    if result is None:
        return {"skipped": True}
    return result


@celery_app.task(name="composites.daily")
def daily_composites_task(now_iso=None):
    now = as_utc(datetime.fromisoformat(now_iso)) if now_iso else datetime.now(timezone.utc)
    if not current_app.config.get("DAILY_COMPOSITES_ENABLED"):
        return {"skipped": True, "reason": "disabled"}
    if now.hour != int(current_app.config.get("DAILY_COMPOSITE_HOUR", 2)):
        return {"skipped": True, "reason": "outside_window"}
    created = create_daily_composites(now)
    logger.info("daily_composites_task created=%s", created)
    return {"skipped": False, "created": created}


@celery_app.task(name="social.weekly_post")
def weekly_social_post_task(now_iso=None):
    if not current_app.config.get("WEEKLY_POST_ENABLED"):
        return {"status": "disabled"}
    now = datetime.fromisoformat(now_iso) if now_iso else None
    outcome = run_weekly_post(now)
    if outcome.status != "outside_window":
        logger.info("weekly_social_post_task status=%s period=%s", outcome.status, outcome.period_key)
    return asdict(outcome)
