"""
Tests for interval resolution and the one-time legacy interval rewrite.
"""

from unittest.mock import patch

import pytest

from erpsync.cron.intervals import (
    IntervalResolver,
    allowed_intervals,
    coerce_interval,
    default_interval,
    interval_display,
    interval_seconds,
)
from erpsync.cron.types import JobKeys, JobType


class TestIntervalCatalogue:
    def test_interval_seconds(self):
        assert interval_seconds("erp_sync_5min") == 300
        assert interval_seconds("erp_sync_30min") == 1800
        assert interval_seconds("erp_sync_twicedaily") == 12 * 3600
        assert interval_seconds("erp_sync_daily") == 86400

    def test_interval_display(self):
        assert interval_display("erp_sync_hourly") == "Hourly (ERP Sync)"

    def test_allowed_intervals_are_known(self):
        for job_type in JobType:
            for key in allowed_intervals(job_type):
                assert interval_seconds(key) > 0
            assert default_interval(job_type) in allowed_intervals(job_type)

    @pytest.mark.parametrize(
        "job_type,default",
        [
            (JobType.COUPON, "erp_sync_10min"),
            (JobType.CATALOG, "erp_sync_daily"),
            (JobType.STOCK, "erp_sync_15min"),
        ],
    )
    def test_defaults(self, job_type, default):
        assert default_interval(job_type) == default


class TestCoerceInterval:
    def test_allowed_value_is_kept(self):
        assert coerce_interval(JobType.STOCK, "erp_sync_30min") == "erp_sync_30min"

    def test_value_allowed_for_other_job_falls_back(self):
        # Hourly is a stock interval but not a coupon interval
        assert coerce_interval(JobType.COUPON, "erp_sync_hourly") == "erp_sync_10min"
        assert coerce_interval(JobType.CATALOG, "erp_sync_5min") == "erp_sync_daily"

    @pytest.mark.parametrize("raw", ["", None, "garbage", "wdcs_5min"])
    def test_invalid_value_falls_back(self, raw):
        assert coerce_interval(JobType.COUPON, raw) == "erp_sync_10min"


class TestIntervalResolver:
    async def test_valid_value_resolves_without_writes(self, store):
        resolver = IntervalResolver(store)

        with patch.object(store, "set", wraps=store.set) as spy_set:
            key = await resolver.resolve(JobType.COUPON, "erp_sync_15min")

        assert key == "erp_sync_15min"
        spy_set.assert_not_called()

    async def test_invalid_value_resolves_to_default(self, store):
        resolver = IntervalResolver(store)

        assert await resolver.resolve(JobType.CATALOG, "every-second") == "erp_sync_daily"
        assert not await store.exists(JobKeys.for_job(JobType.CATALOG).interval)

    async def test_legacy_value_is_rewritten_once(self, store):
        resolver = IntervalResolver(store)
        keys = JobKeys.for_job(JobType.COUPON)

        key = await resolver.resolve(JobType.COUPON, "wdcs_5min")

        assert key == "erp_sync_5min"
        assert await store.get(keys.interval) == "erp_sync_5min"
        assert await store.get(keys.interval_migrated) is True

        # The migrated value now reads without any write
        with patch.object(store, "set", wraps=store.set) as spy_set:
            assert await resolver.resolve(JobType.COUPON, "erp_sync_5min") == (
                "erp_sync_5min"
            )
        spy_set.assert_not_called()

    async def test_legacy_value_after_migration_falls_back(self, store):
        resolver = IntervalResolver(store)
        keys = JobKeys.for_job(JobType.COUPON)
        await store.set(keys.interval_migrated, True)

        with patch.object(store, "set", wraps=store.set) as spy_set:
            key = await resolver.resolve(JobType.COUPON, "wdcs_15min")

        assert key == "erp_sync_10min"
        spy_set.assert_not_called()

    async def test_legacy_rewrite_outside_allow_list_uses_default(self, store):
        resolver = IntervalResolver(store)

        key = await resolver.resolve(JobType.CATALOG, "wdcs_5min")

        assert key == "erp_sync_daily"
        assert await store.get(JobKeys.for_job(JobType.CATALOG).interval) == (
            "erp_sync_5min"
        )

    async def test_migration_flags_are_per_job(self, store):
        resolver = IntervalResolver(store)

        await resolver.resolve(JobType.COUPON, "wdcs_10min")
        assert await resolver.resolve(JobType.STOCK, "wdcs_30min") == "erp_sync_30min"

        assert await store.get(JobKeys.for_job(JobType.STOCK).interval_migrated)

    async def test_read_interval_defaults_when_unset(self, store):
        resolver = IntervalResolver(store)

        assert await resolver.read_interval(JobType.STOCK) == "erp_sync_15min"

    async def test_migrate_all(self, store):
        await store.set(JobKeys.for_job(JobType.COUPON).interval, "wdcs_15min")
        await store.set(JobKeys.for_job(JobType.CATALOG).interval, "erp_sync_hourly")

        resolved = await IntervalResolver(store).migrate_all()

        assert resolved == {
            JobType.COUPON: "erp_sync_15min",
            JobType.CATALOG: "erp_sync_hourly",
            JobType.STOCK: "erp_sync_15min",
        }
        assert await store.get(JobKeys.for_job(JobType.COUPON).interval) == (
            "erp_sync_15min"
        )
