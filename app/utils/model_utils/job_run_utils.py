from __future__ import annotations

from typing import Optional

from app.models.JobRun import JobRun

from .base import first_instance, list_instances


def get_job_run(job_name: str, period_key: str) -> Optional[JobRun]:
    return first_instance(JobRun, filters=[JobRun.job_name == job_name, JobRun.period_key == period_key])


def list_job_runs(job_name: Optional[str] = None, limit: int = 50):
    filters = [JobRun.job_name == job_name] if job_name else None
    return list_instances(JobRun, filters=filters, order_by=JobRun.started_at.desc(), limit=limit,
                          context={"function": "list_job_runs"})
