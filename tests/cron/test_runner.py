"""
Tests for the job runner: locking, outcome recording and failure handling.
"""

from unittest.mock import patch

import pytest
from sqlalchemy.exc import OperationalError

from erpsync.cron.runner import JobRunner
from erpsync.cron.types import JobKeys, JobType


@pytest.fixture
def runner(sync_service, store, transients) -> JobRunner:
    return JobRunner(sync_service, store, transients)


class TestSuccessfulRuns:
    async def test_coupon_sync_records_counters(self, runner, sync_service, store):
        sync_service.import_new_only.return_value = {"created": 3, "total_remote": 10}

        result = await runner.run(JobType.COUPON)

        assert result is not None
        assert result.success is True
        assert result.counters == {"created": 3, "remote": 10}
        assert result.error == ""

        stored = await store.get(JobKeys.for_job(JobType.COUPON).last_result)
        assert stored["success"] is True
        assert stored["created"] == 3
        assert stored["remote"] == 10
        assert stored["error"] == ""
        assert stored["duration_ms"] >= 0
        assert stored["mem_peak_kb"] > 0

    async def test_catalog_sync_records_counters(self, runner, sync_service):
        sync_service.import_products_catalog.return_value = {
            "created": 2,
            "updated": 5,
            "errors": 1,
            "total": 8,
        }

        result = await runner.run(JobType.CATALOG)

        assert result.counters == {"created": 2, "updated": 5, "errors": 1, "total": 8}

    async def test_missing_counters_count_as_zero(self, runner, sync_service):
        sync_service.update_products_stock.return_value = {"updated": 4}

        result = await runner.run(JobType.STOCK)

        assert result.success is True
        assert result.counters == {"updated": 4, "skipped": 0, "errors": 0, "total": 0}

    async def test_memory_and_duration_are_stamped(self, runner):
        result = await runner.run(JobType.COUPON)

        assert result.duration_ms >= 0
        assert result.mem_usage_kb > 0
        assert result.mem_peak_kb >= result.mem_usage_kb

    async def test_lock_released_after_success(self, runner):
        await runner.run(JobType.STOCK)

        assert not await runner.lock.is_held(JobType.STOCK)

    async def test_result_is_readable_back(self, runner, sync_service):
        sync_service.import_new_only.return_value = {"created": 1, "total_remote": 4}
        await runner.run(JobType.COUPON)

        last = await runner.recorder.last_result(JobType.COUPON)

        assert last is not None
        assert last.success is True
        assert last.counters == {"created": 1, "remote": 4}


class TestFailedRuns:
    async def test_failure_is_recorded_not_raised(self, runner, sync_service, store):
        sync_service.import_products_catalog.side_effect = RuntimeError("timeout")

        result = await runner.run(JobType.CATALOG)

        assert result.success is False
        assert result.error == "timeout"
        assert result.counters == {"created": 0, "updated": 0, "errors": 0, "total": 0}

        stored = await store.get(JobKeys.for_job(JobType.CATALOG).last_result)
        assert stored["success"] is False
        assert stored["error"] == "timeout"

    async def test_lock_released_after_failure(self, runner, sync_service):
        sync_service.import_products_catalog.side_effect = RuntimeError("timeout")

        await runner.run(JobType.CATALOG)

        assert not await runner.lock.is_held(JobType.CATALOG)

    @pytest.mark.parametrize(
        "job_type,operation",
        [
            (JobType.COUPON, "import_new_only"),
            (JobType.CATALOG, "import_products_catalog"),
            (JobType.STOCK, "update_products_stock"),
        ],
    )
    async def test_every_job_releases_lock_on_failure(
        self, runner, sync_service, job_type, operation
    ):
        getattr(sync_service, operation).side_effect = OSError("connection reset")

        result = await runner.run(job_type)

        assert result.success is False
        assert result.error == "connection reset"
        assert not await runner.lock.is_held(job_type)

    async def test_next_run_proceeds_after_failure(self, runner, sync_service):
        sync_service.import_products_catalog.side_effect = [
            RuntimeError("timeout"),
            {"created": 1, "updated": 0, "errors": 0, "total": 1},
        ]

        first = await runner.run(JobType.CATALOG)
        second = await runner.run(JobType.CATALOG)

        assert first.success is False
        assert second is not None
        assert second.success is True
        assert sync_service.import_products_catalog.await_count == 2

    async def test_exception_without_message(self, runner, sync_service):
        sync_service.import_new_only.side_effect = ConnectionResetError()

        result = await runner.run(JobType.COUPON)

        assert result.error == "ConnectionResetError"

    async def test_persist_failure_still_releases_lock(self, runner):
        with patch.object(
            runner.recorder, "save", side_effect=RuntimeError("database is locked")
        ):
            result = await runner.run(JobType.STOCK)

        assert result is not None
        assert not await runner.lock.is_held(JobType.STOCK)

    async def test_interval_read_failure_uses_default(self, runner, sync_service, caplog):
        with patch.object(
            runner.intervals,
            "read_interval",
            side_effect=RuntimeError("database is locked"),
        ):
            result = await runner.run(JobType.COUPON)

        assert result is not None
        assert result.success is True
        sync_service.import_new_only.assert_awaited_once()
        assert not await runner.lock.is_held(JobType.COUPON)
        assert "database is locked" in caplog.text
        assert '"interval": "erp_sync_10min"' in caplog.text

    async def test_failure_after_lock_is_recorded(self, runner, store):
        with patch.object(
            runner, "_call_delegate", side_effect=RuntimeError("database is locked")
        ):
            result = await runner.run(JobType.CATALOG)

        assert result is not None
        assert result.success is False
        assert result.error == "database is locked"
        stored = await store.get(JobKeys.for_job(JobType.CATALOG).last_result)
        assert stored["success"] is False
        assert stored["error"] == "database is locked"
        assert not await runner.lock.is_held(JobType.CATALOG)

    async def test_unexpected_failure_without_message(self, runner):
        with patch.object(runner, "_call_delegate", side_effect=KeyError()):
            result = await runner.run(JobType.STOCK)

        assert result.error == "KeyError"

    async def test_peak_memory_is_high_water_mark(self, runner):
        with patch("erpsync.cron.runner._peak_rss_kb", return_value=10**9):
            result = await runner.run(JobType.COUPON)

        assert result.mem_peak_kb == 10**9
        assert result.mem_usage_kb < result.mem_peak_kb


class TestSkippedRuns:
    async def test_lock_storage_failure_skips_run(self, runner, sync_service, store):
        with patch.object(
            runner.lock,
            "try_acquire",
            side_effect=OperationalError("INSERT", {}, Exception("disk I/O error")),
        ):
            result = await runner.run(JobType.STOCK)

        assert result is None
        sync_service.update_products_stock.assert_not_awaited()
        assert not await store.exists(JobKeys.for_job(JobType.STOCK).last_result)

    @pytest.mark.parametrize("job_type", list(JobType))
    async def test_held_lock_skips_run(self, runner, sync_service, store, job_type):
        await runner.lock.try_acquire(job_type)

        result = await runner.run(job_type)

        assert result is None
        sync_service.import_new_only.assert_not_awaited()
        sync_service.import_products_catalog.assert_not_awaited()
        sync_service.update_products_stock.assert_not_awaited()
        assert not await store.exists(JobKeys.for_job(job_type).last_result)

    async def test_skip_does_not_release_foreign_lock(self, runner):
        await runner.lock.try_acquire(JobType.COUPON)

        await runner.run(JobType.COUPON)

        assert await runner.lock.is_held(JobType.COUPON)

    async def test_overlapping_stock_run_is_skipped(self, runner, sync_service, store):
        inner_results = []

        async def update_stock():
            # A second trigger fires while the first run is still working
            inner_results.append(await runner.run(JobType.STOCK))
            return {"updated": 7, "skipped": 1, "errors": 0, "total": 8}

        sync_service.update_products_stock.side_effect = update_stock

        result = await runner.run(JobType.STOCK)

        assert inner_results == [None]
        assert sync_service.update_products_stock.await_count == 1
        stored = await store.get(JobKeys.for_job(JobType.STOCK).last_result)
        assert stored["updated"] == 7
        assert stored == result.to_option_value()

    async def test_skipped_run_keeps_previous_snapshot(self, runner, sync_service, store):
        sync_service.update_products_stock.return_value = {"updated": 2, "total": 2}
        await runner.run(JobType.STOCK)
        snapshot = await store.get(JobKeys.for_job(JobType.STOCK).last_result)

        await runner.lock.try_acquire(JobType.STOCK)
        assert await runner.run(JobType.STOCK) is None

        assert await store.get(JobKeys.for_job(JobType.STOCK).last_result) == snapshot


class TestSchedulerHandler:
    async def test_handler_runs_job(self, runner, sync_service):
        handler = runner.handler_for(JobType.COUPON)

        await handler()

        sync_service.import_new_only.assert_awaited_once()

    async def test_handler_never_raises(self, runner, caplog):
        handler = runner.handler_for(JobType.STOCK)

        with patch.object(runner, "run", side_effect=RuntimeError("storage down")):
            assert await handler() is None

        assert "storage down" in caplog.text
