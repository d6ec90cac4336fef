"""
Scheduled sync job system for ERP Sync.

This module runs the coupon, catalog and stock sync jobs on recurring
APScheduler triggers, with one execution lock and one persisted result
snapshot per job type.
"""

from . import jobs  # noqa: F401  registers the sync jobs
from .manager import CronManager
from .registry import JobRegistration, JobRegistry, job_registry
from .runner import JobRunner
from .types import JobKeys, JobStatus, JobType, RunResult, ScheduleState, SyncOutcome

__all__ = [
    "CronManager",
    "JobRunner",
    "JobRegistry",
    "JobRegistration",
    "job_registry",
    "JobType",
    "JobKeys",
    "JobStatus",
    "RunResult",
    "ScheduleState",
    "SyncOutcome",
]
