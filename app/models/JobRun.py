from datetime import datetime, timezone

from sqlalchemy import Enum as SqlEnum

from app.extensions import db
from app.models.enumerations import JobRunStatus


class JobRun(db.Model):
    """
    One row per scheduled side effect slot.  ``(job_name, period_key)`` is
    unique, so a second worker trying to claim the same slot fails on insert.
    """
    __tablename__ = 'job_runs'
    __table_args__ = (
        db.UniqueConstraint('job_name', 'period_key', name='uq_job_runs_job_period'),
    )

    id = db.Column(db.Integer, primary_key=True, autoincrement=True)
    job_name = db.Column(db.String(64), nullable=False)
    period_key = db.Column(db.String(32), nullable=False)
    status = db.Column(SqlEnum(JobRunStatus), nullable=False, default=JobRunStatus.RUNNING)
    attempts = db.Column(db.Integer, nullable=False, default=1)
    result_ref = db.Column(db.String(128), nullable=True)
    error = db.Column(db.Text, nullable=True)
    started_at = db.Column(db.DateTime(timezone=True), nullable=False, default=lambda: datetime.now(timezone.utc))
    finished_at = db.Column(db.DateTime(timezone=True), nullable=True)
