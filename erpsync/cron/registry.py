"""
Job registry mapping each job type to its sync function and run policy.
"""

from dataclasses import dataclass
from typing import Awaitable, Callable, Dict, Mapping, Optional, Tuple

from ..sync.service import SyncService
from .types import JobType

# Calls one operation on the sync service and returns the job's counters
SyncJobFunction = Callable[[SyncService], Awaitable[Mapping[str, int]]]


@dataclass(frozen=True)
class JobRegistration:
    """
    Frozen dataclass representing a registered sync job with its metadata.
    """

    job_type: JobType
    function: SyncJobFunction
    description: str
    counters: Tuple[str, ...]
    lock_ttl: int
    stagger: int


class JobRegistry:
    """
    Registry for sync job functions with their run policy.

    Each job type is registered once, with the counter names its result
    carries, the lifetime of its execution lock and the delay before its
    first scheduled run.
    """

    def __init__(self):
        # job type -> JobRegistration
        self._jobs: Dict[JobType, JobRegistration] = {}

    def register(
        self,
        job_type: JobType,
        counters: Tuple[str, ...],
        lock_ttl: int,
        stagger: int,
        description: str = "",
    ):
        """
        Decorator to register a sync job function.

        Args:
            job_type: Job type the function runs for
            counters: Names of the counters the function returns
            lock_ttl: Execution lock lifetime in seconds
            stagger: Seconds between (re)scheduling and the first run
            description: Human-readable description of the job

        Returns:
            Decorated job function

        Example:
            ```python
            @job_registry.register(
                JobType.STOCK,
                counters=("updated", "skipped", "errors", "total"),
                lock_ttl=10 * 60,
                stagger=180,
                description="Update stock and prices",
            )
            async def stock_sync(service: SyncService):
                return await service.update_products_stock()
            ```
        """

        def decorator(func: SyncJobFunction) -> SyncJobFunction:
            if job_type in self._jobs:
                raise ValueError(f"Job type '{job_type.value}' is already registered")
            self._jobs[job_type] = JobRegistration(
                job_type=job_type,
                function=func,
                description=description,
                counters=tuple(counters),
                lock_ttl=lock_ttl,
                stagger=stagger,
            )
            return func

        return decorator

    def get_job(self, job_type: JobType) -> Optional[JobRegistration]:
        return self._jobs.get(job_type)

    def require_job(self, job_type: JobType) -> JobRegistration:
        registration = self._jobs.get(job_type)
        if registration is None:
            raise ValueError(f"Job type '{job_type.value}' not registered")
        return registration

    def get_all_jobs(self) -> Dict[JobType, JobRegistration]:
        return self._jobs.copy()

    def is_registered(self, job_type: JobType) -> bool:
        return job_type in self._jobs


# Global job registry instance
job_registry = JobRegistry()
