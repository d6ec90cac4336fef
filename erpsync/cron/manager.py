"""
Cron Manager - scheduling and lifecycle of the sync jobs.
"""

from datetime import datetime, timedelta, timezone
from typing import Dict, Optional, Tuple

from ..config import settings
from ..db.database import init_db
from ..logger import log_event, log_exception, logger
from ..options.migration import migrate_legacy_options
from ..options.store import OptionStore, TransientStore
from ..sync.service import HttpSyncService, SyncService
from .intervals import IntervalResolver, coerce_interval, interval_seconds
from .recorder import OutcomeRecorder
from .registry import JobRegistry, job_registry
from .runner import JobRunner
from .scheduler import HostScheduler
from .types import JobHandler, JobKeys, JobStatus, JobType, RunResult, ScheduleState

SETTINGS_WATCH_EVENT = "erp_sync_settings_watch"


class CronManager:
    """
    Core sync job management class.

    Keeps the scheduler's triggers aligned with the stored enabled/interval
    settings of each job type and binds every job event to its runner
    handler.
    """

    def __init__(
        self,
        service: Optional[SyncService] = None,
        store: Optional[OptionStore] = None,
        transients: Optional[TransientStore] = None,
        scheduler: Optional[HostScheduler] = None,
        registry: Optional[JobRegistry] = None,
    ):
        self.registry = registry or job_registry
        self.store = store or OptionStore()
        self.transients = transients or TransientStore()
        self.scheduler = scheduler or HostScheduler()
        self.intervals = IntervalResolver(self.store)
        self.recorder = OutcomeRecorder(self.store, self.registry)
        self.runner = JobRunner(
            service or HttpSyncService(), self.store, self.transients, self.registry
        )
        # job type -> scheduler handler
        self.handlers: Dict[JobType, JobHandler] = {
            job_type: self.runner.handler_for(job_type)
            for job_type in self.registry.get_all_jobs()
        }
        # job type -> (enabled, interval) last applied by reconcile
        self._applied: Dict[JobType, Tuple[bool, str]] = {}
        self._initialized = False

    async def initialize(self, create_tables: bool = True) -> None:
        """
        Prepare storage, run one-time migrations, start the scheduler and
        register the triggers of enabled jobs.
        """
        if self._initialized:
            return

        if create_tables:
            await init_db()

        # Migrations run before any trigger exists
        await migrate_legacy_options(self.store)
        await self.intervals.migrate_all()

        self.scheduler.start()
        await self.reconcile_all()

        if settings.settings_watch_seconds > 0:
            self.scheduler.schedule_event(
                SETTINGS_WATCH_EVENT,
                datetime.now(timezone.utc)
                + timedelta(seconds=settings.settings_watch_seconds),
                settings.settings_watch_seconds,
                self._watch_settings,
            )

        self._initialized = True
        logger.info("Cron manager initialized")

    async def shutdown(self) -> None:
        self.scheduler.shutdown()
        self._initialized = False

    async def is_enabled(self, job_type: JobType) -> bool:
        return bool(await self.store.get(JobKeys.for_job(job_type).enabled, False))

    async def reconcile(self, job_type: JobType, force: bool = False) -> ScheduleState:
        """
        Align the trigger of a job type with its stored settings.

        Args:
            job_type: Job to reconcile
            force: Re-register the trigger even if one exists

        Returns:
            The resulting schedule state
        """
        registration = self.registry.require_job(job_type)
        keys = JobKeys.for_job(job_type)
        label = job_type.value

        enabled = await self.is_enabled(job_type)
        interval = await self.intervals.read_interval(job_type)
        scheduled = self.scheduler.is_scheduled(keys.event)

        if enabled:
            if not scheduled or force:
                self.scheduler.unschedule(keys.event)
                first_run = datetime.now(timezone.utc) + timedelta(
                    seconds=registration.stagger
                )
                self.scheduler.schedule_event(
                    keys.event,
                    first_run,
                    interval_seconds(interval),
                    self.handlers[job_type],
                )
                log_event(f"ERP Sync {label} cron scheduled", {"interval": interval})
        elif scheduled:
            self.scheduler.unschedule(keys.event)
            log_event(f"ERP Sync {label} cron unscheduled", {"interval": interval})

        self._applied[job_type] = (enabled, interval)
        return ScheduleState(
            enabled=enabled,
            interval=interval,
            next_fire=self.scheduler.next_scheduled(keys.event),
        )

    async def reconcile_all(self, force: bool = False) -> Dict[JobType, ScheduleState]:
        return {
            job_type: await self.reconcile(job_type, force)
            for job_type in self.registry.get_all_jobs()
        }

    async def reschedule_after_settings_change(self) -> None:
        await self.reconcile_all(force=True)

    async def refresh_settings(self) -> None:
        """
        Pick up settings changed by another process.

        Jobs whose enabled flag or interval differs from what was last
        applied are reconciled with force; the others without.
        """
        for job_type in self.registry.get_all_jobs():
            current = (
                await self.is_enabled(job_type),
                await self.intervals.read_interval(job_type),
            )
            changed = self._applied.get(job_type) != current
            await self.reconcile(job_type, force=changed)

    @log_exception("Settings refresh failed")
    async def _watch_settings(self) -> None:
        await self.refresh_settings()

    async def activate(self) -> None:
        await self.reconcile_all(force=True)

    async def deactivate(self) -> None:
        for job_type in self.registry.get_all_jobs():
            self.clear_schedule(job_type)

    def clear_schedule(self, job_type: JobType) -> bool:
        return self.scheduler.unschedule(JobKeys.for_job(job_type).event)

    async def update_settings(
        self,
        job_type: JobType,
        enabled: Optional[bool] = None,
        interval: Optional[str] = None,
    ) -> ScheduleState:
        """
        Store new settings for a job type and re-register its trigger.

        Args:
            job_type: Job to configure
            enabled: New enabled flag, unchanged if None
            interval: New interval key, unchanged if None; keys the job does
                not accept are replaced by the job's default

        Returns:
            The resulting schedule state
        """
        keys = JobKeys.for_job(job_type)
        if enabled is not None:
            await self.store.set(keys.enabled, enabled)
        if interval is not None:
            await self.store.set(keys.interval, coerce_interval(job_type, interval))
        return await self.reconcile(job_type, force=True)

    async def run_now(self, job_type: JobType) -> Optional[RunResult]:
        """Run a job immediately, outside its schedule. The lock still applies."""
        return await self.runner.run(job_type)

    def next_run_time(self, job_type: JobType) -> Optional[datetime]:
        return self.scheduler.next_scheduled(JobKeys.for_job(job_type).event)

    def next_run_human(self, job_type: JobType) -> str:
        next_run = self.next_run_time(job_type)
        if next_run is None:
            return "—"
        return next_run.astimezone().strftime("%Y-%m-%d %H:%M:%S")

    async def schedule_state(self, job_type: JobType) -> ScheduleState:
        return ScheduleState(
            enabled=await self.is_enabled(job_type),
            interval=await self.intervals.read_interval(job_type),
            next_fire=self.next_run_time(job_type),
        )

    async def status(self, job_type: JobType) -> JobStatus:
        return JobStatus(
            job_type=job_type,
            schedule=await self.schedule_state(job_type),
            last_result=await self.recorder.last_result(job_type),
        )
