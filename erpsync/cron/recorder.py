"""
Persistence of the last run result of each job type.
"""

from typing import Optional

from pydantic import ValidationError

from ..logger import logger
from ..options.store import OptionStore
from .registry import JobRegistry, job_registry
from .types import JobKeys, JobType, RunResult


class OutcomeRecorder:
    """
    Stores one result snapshot per job type.

    Each save overwrites the previous snapshot; there is no history.
    """

    def __init__(self, store: OptionStore, registry: Optional[JobRegistry] = None):
        self.store = store
        self.registry = registry or job_registry

    async def save(self, result: RunResult) -> None:
        keys = JobKeys.for_job(result.job_type)
        await self.store.set(keys.last_result, result.to_option_value())

    async def last_result(self, job_type: JobType) -> Optional[RunResult]:
        """
        Get the last persisted result of a job type.

        Returns:
            RunResult, or None if the job never ran or the snapshot is unreadable
        """
        data = await self.store.get(JobKeys.for_job(job_type).last_result)
        if not data:
            return None

        counters = self.registry.require_job(job_type).counters
        try:
            return RunResult.from_option_value(job_type, data, counters)
        except (KeyError, TypeError, ValueError, ValidationError) as e:
            logger.warning(f"Unreadable last result for {job_type.value} job: {e}")
            return None
