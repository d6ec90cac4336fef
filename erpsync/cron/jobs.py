"""
The three scheduled sync jobs.

Each job calls one sync service operation and maps its response to the
counters recorded in the job's run result. Missing fields count as zero.
"""

from typing import Any, Dict, Mapping

from ..sync.service import SyncService
from .intervals import MINUTE_IN_SECONDS
from .registry import job_registry
from .types import JobType


def _count(response: Mapping[str, Any], field: str) -> int:
    return int(response.get(field) or 0)


@job_registry.register(
    JobType.COUPON,
    counters=("created", "remote"),
    lock_ttl=10 * MINUTE_IN_SECONDS,
    stagger=60,
    description="Import new coupons from the ERP",
)
async def coupon_sync(service: SyncService) -> Dict[str, int]:
    response = await service.import_new_only()
    return {
        "created": _count(response, "created"),
        "remote": _count(response, "total_remote"),
    }


@job_registry.register(
    JobType.CATALOG,
    counters=("created", "updated", "errors", "total"),
    lock_ttl=30 * MINUTE_IN_SECONDS,
    stagger=120,
    description="Import the product catalog from the ERP",
)
async def catalog_sync(service: SyncService) -> Dict[str, int]:
    response = await service.import_products_catalog()
    return {
        name: _count(response, name) for name in ("created", "updated", "errors", "total")
    }


@job_registry.register(
    JobType.STOCK,
    counters=("updated", "skipped", "errors", "total"),
    lock_ttl=10 * MINUTE_IN_SECONDS,
    stagger=180,
    description="Update product stock and prices from the ERP",
)
async def stock_sync(service: SyncService) -> Dict[str, int]:
    response = await service.update_products_stock()
    return {
        name: _count(response, name) for name in ("updated", "skipped", "errors", "total")
    }
