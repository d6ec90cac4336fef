"""
Job Runner - executes one sync job invocation end to end.
"""

import asyncio
import sys
import time
from datetime import datetime
from typing import Optional

import psutil

from ..logger import log_event, log_exception, logger
from ..options.store import OptionStore, TransientStore
from ..sync.service import SyncService
from .intervals import IntervalResolver, default_interval
from .lock import ExecutionLock
from .recorder import OutcomeRecorder
from .registry import JobRegistration, JobRegistry, job_registry
from .types import JobHandler, JobType, RunResult, SyncOutcome

if sys.platform != "win32":
    import resource


def _rss_kb() -> int:
    return int(psutil.Process().memory_info().rss / 1024)


def _peak_rss_kb() -> int:
    """Process high-water mark of resident memory, in KB."""
    info = psutil.Process().memory_info()
    # Windows reports the peak working set directly
    peak_wset = getattr(info, "peak_wset", None)
    if peak_wset is not None:
        return int(peak_wset / 1024)

    max_rss = resource.getrusage(resource.RUSAGE_SELF).ru_maxrss
    # ru_maxrss is bytes on macOS and KB elsewhere
    if sys.platform == "darwin":
        return int(max_rss / 1024)
    return int(max_rss)


class JobRunner:
    """
    Runs sync jobs under their execution lock and records the outcome.

    A run either is skipped because the job's lock is held, or it takes the
    lock, calls the sync service, persists a RunResult and releases the lock.
    Sync failures end up in ``RunResult.error`` and never propagate.
    """

    def __init__(
        self,
        service: SyncService,
        store: OptionStore,
        transients: TransientStore,
        registry: Optional[JobRegistry] = None,
    ):
        self.service = service
        self.registry = registry or job_registry
        self.lock = ExecutionLock(transients, self.registry)
        self.recorder = OutcomeRecorder(store, self.registry)
        self.intervals = IntervalResolver(store)

    async def run(self, job_type: JobType) -> Optional[RunResult]:
        """
        Run a job once.

        Args:
            job_type: Job to run

        Returns:
            The finalized RunResult, or None if the run was skipped because
            another run of the same job holds the lock or the lock could not
            be taken
        """
        registration = self.registry.require_job(job_type)
        label = job_type.value

        acquired = await self._acquire(job_type)
        if acquired is None:
            log_event(f"ERP Sync {label} cron skipped (lock unavailable)", {})
            return None
        if not acquired:
            log_event(f"ERP Sync {label} cron skipped (locked)", {})
            return None

        started = time.perf_counter()
        mem_usage_kb = _rss_kb()
        result = RunResult(
            job_type=job_type,
            time=datetime.now(),
            mem_usage_kb=mem_usage_kb,
            counters={name: 0 for name in registration.counters},
        )

        try:
            interval = await self._read_interval(job_type) or default_interval(job_type)
            log_event(
                f"ERP Sync {label} cron run start",
                {
                    "mem_usage_kb": mem_usage_kb,
                    "mem_peak_kb": max(mem_usage_kb, _peak_rss_kb()),
                    "interval": interval,
                },
            )

            outcome = await self._call_delegate(registration)
            if outcome.ok:
                result.success = True
                for name in registration.counters:
                    result.counters[name] = int(outcome.counters.get(name, 0))
            else:
                result.error = outcome.error
        except asyncio.CancelledError:
            result.error = "Run was cancelled"
            raise
        except Exception as e:
            result.success = False
            result.error = str(e) or type(e).__name__
            logger.error(f"ERP Sync {label} run failed: {result.error}", exc_info=True)
        finally:
            result.duration_ms = int(round((time.perf_counter() - started) * 1000))
            result.mem_peak_kb = max(mem_usage_kb, _rss_kb(), _peak_rss_kb())
            try:
                await self._persist(result)
                log_event(
                    f"ERP Sync {label} cron run end",
                    {
                        "success": 1 if result.success else 0,
                        **result.counters,
                        "error": result.error,
                        "duration_ms": result.duration_ms,
                        "mem_peak_kb": result.mem_peak_kb,
                    },
                )
            finally:
                await self._release(job_type)

        return result

    async def _call_delegate(self, registration: JobRegistration) -> SyncOutcome:
        try:
            counters = await registration.function(self.service)
        except Exception as e:
            message = str(e) or type(e).__name__
            log_event(
                f"ERP Sync {registration.job_type.value} cron sync failed",
                {"error": message},
            )
            return SyncOutcome.failure(message)
        return SyncOutcome.success(counters)

    @log_exception("Failed to acquire execution lock")
    async def _acquire(self, job_type: JobType) -> Optional[bool]:
        return await self.lock.try_acquire(job_type)

    @log_exception("Failed to read interval of {job_type}")
    async def _read_interval(self, job_type: JobType) -> Optional[str]:
        return await self.intervals.read_interval(job_type)

    @log_exception("Failed to record run result")
    async def _persist(self, result: RunResult) -> None:
        await self.recorder.save(result)

    @log_exception("Failed to release execution lock")
    async def _release(self, job_type: JobType) -> None:
        await self.lock.release(job_type)

    def handler_for(self, job_type: JobType) -> JobHandler:
        """
        Build the zero-argument scheduler handler of a job type.

        The handler never raises, so a failing run cannot disable the
        schedule.
        """

        @log_exception(f"Scheduled {job_type.value} sync failed")
        async def handler() -> None:
            await self.run(job_type)

        handler.__name__ = f"run_{job_type.value}_sync"
        return handler
