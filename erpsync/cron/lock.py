"""
Per-job execution lock backed by expiring flags.
"""

from datetime import datetime
from typing import Optional

from ..options.store import TransientStore
from .registry import JobRegistry, job_registry
from .types import JobKeys, JobType


class ExecutionLock:
    """
    Prevents overlapping runs of the same job type.

    The lock is a flag with a job-specific lifetime. If a run dies without
    releasing it, the flag expires and the next scheduled run proceeds.
    A run that outlives its lock is not detected, so a later run may overlap
    with it.
    """

    def __init__(
        self, transients: TransientStore, registry: Optional[JobRegistry] = None
    ):
        self.transients = transients
        self.registry = registry or job_registry

    async def try_acquire(self, job_type: JobType) -> bool:
        """
        Take the lock for a job type.

        Returns:
            False if a live lock already exists, True once the lock is held
        """
        ttl = self.registry.require_job(job_type).lock_ttl
        return await self.transients.add(JobKeys.for_job(job_type).lock, 1, ttl)

    async def release(self, job_type: JobType) -> None:
        await self.transients.delete(JobKeys.for_job(job_type).lock)

    async def is_held(self, job_type: JobType) -> bool:
        return await self.transients.get(JobKeys.for_job(job_type).lock) is not None

    async def expires_at(self, job_type: JobType) -> Optional[datetime]:
        return await self.transients.expires_at(JobKeys.for_job(job_type).lock)
