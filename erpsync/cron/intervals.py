"""
Recurrence intervals available to the sync jobs.

Each job type accepts a subset of the interval catalogue. A stored interval
that is not in that subset falls back to the job's default. Values written by
the legacy ``wdcs_`` plugin are rewritten once to the current namespace.
"""

from dataclasses import dataclass
from typing import Dict, Optional, Tuple

from ..logger import log_event
from ..options.store import OptionStore
from .types import JobKeys, JobType

LEGACY_PREFIX = "wdcs_"
CURRENT_PREFIX = "erp_sync_"

MINUTE_IN_SECONDS = 60
HOUR_IN_SECONDS = 60 * MINUTE_IN_SECONDS
DAY_IN_SECONDS = 24 * HOUR_IN_SECONDS


@dataclass(frozen=True)
class Interval:
    key: str
    seconds: int
    display: str


INTERVALS: Dict[str, Interval] = {
    interval.key: interval
    for interval in (
        Interval("erp_sync_5min", 5 * MINUTE_IN_SECONDS, "Every 5 minutes (ERP Sync)"),
        Interval("erp_sync_10min", 10 * MINUTE_IN_SECONDS, "Every 10 minutes (ERP Sync)"),
        Interval("erp_sync_15min", 15 * MINUTE_IN_SECONDS, "Every 15 minutes (ERP Sync)"),
        Interval("erp_sync_30min", 30 * MINUTE_IN_SECONDS, "Every 30 minutes (ERP Sync)"),
        Interval("erp_sync_hourly", HOUR_IN_SECONDS, "Hourly (ERP Sync)"),
        Interval("erp_sync_twicedaily", 12 * HOUR_IN_SECONDS, "Twice Daily (ERP Sync)"),
        Interval("erp_sync_daily", DAY_IN_SECONDS, "Daily (ERP Sync)"),
    )
}

# job type -> (allowed keys, default key)
ALLOWED_INTERVALS: Dict[JobType, Tuple[Tuple[str, ...], str]] = {
    JobType.COUPON: (
        ("erp_sync_5min", "erp_sync_10min", "erp_sync_15min"),
        "erp_sync_10min",
    ),
    JobType.CATALOG: (
        ("erp_sync_hourly", "erp_sync_twicedaily", "erp_sync_daily"),
        "erp_sync_daily",
    ),
    JobType.STOCK: (
        (
            "erp_sync_5min",
            "erp_sync_10min",
            "erp_sync_15min",
            "erp_sync_30min",
            "erp_sync_hourly",
        ),
        "erp_sync_15min",
    ),
}


def allowed_intervals(job_type: JobType) -> Tuple[str, ...]:
    return ALLOWED_INTERVALS[job_type][0]


def default_interval(job_type: JobType) -> str:
    return ALLOWED_INTERVALS[job_type][1]


def coerce_interval(job_type: JobType, raw: Optional[str]) -> str:
    """Return ``raw`` if the job type allows it, otherwise the job's default."""
    allowed, default = ALLOWED_INTERVALS[job_type]
    if raw in allowed:
        return raw
    return default


def interval_seconds(key: str) -> int:
    return INTERVALS[key].seconds


def interval_display(key: str) -> str:
    return INTERVALS[key].display


def is_legacy_key(raw: Optional[str]) -> bool:
    return bool(raw) and raw.startswith(LEGACY_PREFIX)


def rewrite_legacy_key(raw: str) -> str:
    return CURRENT_PREFIX + raw[len(LEGACY_PREFIX) :]


class IntervalResolver:
    """
    Resolves stored interval values to keys the job type accepts.

    The only write this class ever performs is the one-time rewrite of a
    legacy interval key, guarded by a per-job migration flag.
    """

    def __init__(self, store: OptionStore):
        self.store = store

    async def resolve(self, job_type: JobType, raw: Optional[str]) -> str:
        """
        Resolve a raw stored interval value.

        Args:
            job_type: Job the interval belongs to
            raw: Stored value, possibly empty or carrying the legacy prefix

        Returns:
            An interval key in the job type's allow-list
        """
        key = raw or ""
        if is_legacy_key(key):
            keys = JobKeys.for_job(job_type)
            if not await self.store.get(keys.interval_migrated, False):
                key = rewrite_legacy_key(key)
                await self.store.set(keys.interval, key)
                await self.store.set(keys.interval_migrated, True)
                log_event(
                    "ERP Sync interval key migrated",
                    {"job": job_type.value, "from": raw, "to": key},
                )
        return coerce_interval(job_type, key)

    async def read_interval(self, job_type: JobType) -> str:
        """Read the stored interval of a job type and resolve it."""
        keys = JobKeys.for_job(job_type)
        raw = await self.store.get(keys.interval, default_interval(job_type))
        return await self.resolve(job_type, str(raw) if raw is not None else "")

    async def migrate_all(self) -> Dict[JobType, str]:
        """Resolve every job's stored interval once, before scheduling starts."""
        return {job_type: await self.read_interval(job_type) for job_type in JobType}
