"""
Recurring trigger registration on top of APScheduler.
"""

from datetime import datetime, timezone
from typing import Optional

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger

from .types import JobHandler


class HostScheduler:
    """
    Registers one recurring trigger per event name.

    Event names double as APScheduler job ids, so an event has at most one
    trigger. Clearing an event that has no trigger does nothing.
    """

    def __init__(self, scheduler: Optional[AsyncIOScheduler] = None):
        self.scheduler = scheduler or AsyncIOScheduler(timezone=timezone.utc)

    @property
    def running(self) -> bool:
        return self.scheduler.running

    def start(self) -> None:
        if not self.scheduler.running:
            self.scheduler.start()

    def shutdown(self) -> None:
        if self.scheduler.running:
            self.scheduler.shutdown(wait=False)

    def is_scheduled(self, event: str) -> bool:
        return self.scheduler.get_job(event) is not None

    def next_scheduled(self, event: str) -> Optional[datetime]:
        """
        Get the next fire time of an event.

        Returns:
            Next fire time, or None if the event has no trigger
        """
        job = self.scheduler.get_job(event)
        if job is None:
            return None

        # Jobs added before the scheduler starts have no next_run_time yet
        next_run = getattr(job, "next_run_time", None)
        if next_run is None and not self.scheduler.running:
            next_run = job.trigger.get_next_fire_time(None, datetime.now(timezone.utc))
        return next_run

    def schedule_event(
        self,
        event: str,
        first_run: datetime,
        interval_seconds: int,
        handler: JobHandler,
    ) -> None:
        """
        Register a recurring trigger for an event.

        Args:
            event: Event name
            first_run: Time of the first fire
            interval_seconds: Seconds between fires
            handler: Zero-argument coroutine function to call on each fire
        """
        trigger = IntervalTrigger(
            seconds=interval_seconds, start_date=first_run, timezone=timezone.utc
        )
        self.scheduler.add_job(
            handler,
            trigger=trigger,
            id=event,
            name=event,
            replace_existing=True,
            max_instances=1,
            coalesce=True,
        )

    def unschedule(self, event: str) -> bool:
        """
        Remove the trigger of an event.

        Returns:
            True if a trigger was removed
        """
        if self.scheduler.get_job(event) is None:
            return False
        self.scheduler.remove_job(event)
        return True
