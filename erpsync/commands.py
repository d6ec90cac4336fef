import argparse
import asyncio
import signal

from .cron import CronManager, JobStatus, JobType
from .cron.intervals import ALLOWED_INTERVALS, interval_display
from .db.database import init_db
from .logger import logger
from .options.migration import migrate_legacy_options


def format_status(status: JobStatus, next_run: str = "—") -> str:
    schedule = status.schedule
    lines = [
        f"[{status.job_type.value}]",
        f"  enabled:  {'yes' if schedule.enabled else 'no'}",
        f"  interval: {schedule.interval} ({interval_display(schedule.interval)})",
        f"  next run: {next_run}",
    ]

    result = status.last_result
    if result is None:
        lines.append("  last run: —")
    else:
        counters = ", ".join(f"{k}={v}" for k, v in result.counters.items())
        lines.append(
            f"  last run: {result.time:%Y-%m-%d %H:%M:%S} "
            f"success={'yes' if result.success else 'no'} {counters} "
            f"duration_ms={result.duration_ms}"
        )
        if result.error:
            lines.append(f"  error:    {result.error}")
    return "\n".join(lines)


async def serve(manager: CronManager) -> None:
    await manager.initialize()

    stop = asyncio.Event()
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, stop.set)

    logger.info("Scheduler running, press Ctrl+C to stop")
    try:
        await stop.wait()
    finally:
        await manager.shutdown()


async def run_job(manager: CronManager, job_type: JobType) -> int:
    await init_db()
    result = await manager.run_now(job_type)
    if result is None:
        logger.warning(
            f"{job_type.value} sync skipped, its execution lock is held or unavailable"
        )
        return 1

    print(format_status(await manager.status(job_type)))
    return 0 if result.success else 1


async def show_status(manager: CronManager, job_types: list[JobType]) -> int:
    await init_db()
    for job_type in job_types:
        print(format_status(await manager.status(job_type)))
    return 0


async def configure(
    manager: CronManager,
    job_type: JobType,
    enabled: bool | None,
    interval: str | None,
) -> int:
    await init_db()
    state = await manager.update_settings(job_type, enabled=enabled, interval=interval)
    if interval is not None and state.interval != interval:
        logger.warning(
            f"Interval {interval} is not available for {job_type.value} sync, "
            f"using {state.interval}"
        )
    print(
        format_status(
            await manager.status(job_type), next_run=manager.next_run_human(job_type)
        )
    )
    return 0


async def migrate(manager: CronManager) -> int:
    await init_db()
    count = await migrate_legacy_options(manager.store)
    intervals = await manager.intervals.migrate_all()
    logger.info(f"Migrated {count} legacy options")
    for job_type, interval in intervals.items():
        logger.info(f"{job_type.value} sync interval: {interval}")
    return 0


def main(argv: list[str] | None = None) -> int:
    job_choices = [job_type.value for job_type in JobType]
    all_intervals = sorted(
        {key for allowed, _ in ALLOWED_INTERVALS.values() for key in allowed}
    )

    parser = argparse.ArgumentParser(prog="erpsync")
    subparsers = parser.add_subparsers(dest="command", required=True)

    subparsers.add_parser("serve", help="Run the scheduler until interrupted")

    run_parser = subparsers.add_parser("run", help="Run one sync job now")
    run_parser.add_argument("job", choices=job_choices)

    status_parser = subparsers.add_parser(
        "status", help="Show job settings and last run"
    )
    status_parser.add_argument("job", nargs="?", choices=job_choices)

    configure_parser = subparsers.add_parser("configure", help="Change job settings")
    configure_parser.add_argument("job", choices=job_choices)
    enable_group = configure_parser.add_mutually_exclusive_group()
    enable_group.add_argument(
        "--enable", dest="enabled", action="store_true", default=None
    )
    enable_group.add_argument(
        "--disable", dest="enabled", action="store_false", default=None
    )
    configure_parser.add_argument("--interval", choices=all_intervals)

    subparsers.add_parser("migrate", help="Migrate legacy WDCS options")

    args = parser.parse_args(argv)
    manager = CronManager()

    if args.command == "serve":
        asyncio.run(serve(manager))
        return 0
    if args.command == "run":
        return asyncio.run(run_job(manager, JobType(args.job)))
    if args.command == "status":
        job_types = [JobType(args.job)] if args.job else list(JobType)
        return asyncio.run(show_status(manager, job_types))
    if args.command == "configure":
        return asyncio.run(
            configure(manager, JobType(args.job), args.enabled, args.interval)
        )
    if args.command == "migrate":
        return asyncio.run(migrate(manager))
    return 2
