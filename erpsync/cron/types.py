"""
Type definitions for the scheduled sync jobs.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, Mapping, Optional, Tuple

from pydantic import BaseModel, Field

# Zero-argument coroutine function bound to the host scheduler
JobHandler = Callable[[], Awaitable[Any]]


class JobType(str, Enum):
    """The independent sync workloads."""

    COUPON = "coupon"
    CATALOG = "catalog"
    STOCK = "stock"


@dataclass(frozen=True)
class JobKeys:
    """
    Namespaced storage keys and scheduler event name for one job type.

    Every key of a job type is built here so that keys of different job
    types never collide.
    """

    enabled: str
    interval: str
    interval_migrated: str
    last_result: str
    lock: str
    event: str

    @classmethod
    def for_job(cls, job_type: JobType) -> "JobKeys":
        if job_type is JobType.COUPON:
            # Coupon sync predates the other jobs and keeps its unqualified names
            prefix = "erp_sync_cron"
            event = "erp_sync_cron_sync"
        else:
            prefix = f"erp_sync_{job_type.value}_cron"
            event = f"erpsync_cron_{job_type.value}_sync"

        return cls(
            enabled=f"{prefix}_enabled",
            interval=f"{prefix}_interval",
            interval_migrated=f"{prefix}_interval_migrated",
            last_result=f"{prefix}_last_result",
            lock=f"{prefix}_lock",
            event=event,
        )


class RunResult(BaseModel):
    """
    Outcome of a single job run.

    Created with zeroed counters when the run starts and finalized once when
    it ends. The persisted form is flat: counters sit next to the common
    fields.
    """

    job_type: JobType
    time: datetime
    success: bool = False
    duration_ms: int = 0
    mem_usage_kb: int = 0
    mem_peak_kb: int = 0
    error: str = ""
    counters: Dict[str, int] = Field(default_factory=dict)

    def to_option_value(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "time": self.time.strftime("%Y-%m-%d %H:%M:%S"),
            "success": self.success,
            **self.counters,
            "error": self.error,
            "duration_ms": self.duration_ms,
            "mem_usage_kb": self.mem_usage_kb,
            "mem_peak_kb": self.mem_peak_kb,
        }
        return data

    @classmethod
    def from_option_value(
        cls,
        job_type: JobType,
        data: Mapping[str, Any],
        counter_names: Tuple[str, ...],
    ) -> "RunResult":
        return cls(
            job_type=job_type,
            time=datetime.strptime(data["time"], "%Y-%m-%d %H:%M:%S"),
            success=bool(data.get("success", False)),
            duration_ms=int(data.get("duration_ms", 0)),
            mem_usage_kb=int(data.get("mem_usage_kb", 0)),
            mem_peak_kb=int(data.get("mem_peak_kb", 0)),
            error=str(data.get("error", "")),
            counters={name: int(data.get(name, 0)) for name in counter_names},
        )


@dataclass(frozen=True)
class SyncOutcome:
    """Result of a delegate sync call: counters on success, a message on failure."""

    ok: bool
    counters: Dict[str, int] = field(default_factory=dict)
    error: str = ""

    @classmethod
    def success(cls, counters: Mapping[str, int]) -> "SyncOutcome":
        return cls(ok=True, counters=dict(counters))

    @classmethod
    def failure(cls, message: str) -> "SyncOutcome":
        return cls(ok=False, error=message)


class ScheduleState(BaseModel):
    enabled: bool
    interval: str
    next_fire: Optional[datetime] = None


class JobStatus(BaseModel):
    """Schedule state and last run of one job type, for operators."""

    job_type: JobType
    schedule: ScheduleState
    last_result: Optional[RunResult] = None
