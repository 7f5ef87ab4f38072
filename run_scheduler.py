#!/usr/bin/env python3
"""
Standalone SnapBet scheduler service (no ops API).

Suitable for systemd or supervisor: logs JSON to stdout and shuts the
scheduler down on SIGTERM or SIGINT.

Usage:
    python run_scheduler.py                          # run until stopped
    python run_scheduler.py --list-jobs              # print the schedule
    python run_scheduler.py --trigger cleanup        # one job now, then exit
    python run_scheduler.py --trigger cleanup --dry-run
    python run_scheduler.py --trigger bankroll-reset --force
"""
import argparse
import asyncio
import signal
import sys

from snapbet_jobs.core.config import settings
from snapbet_jobs.core.database import SessionLocal
from snapbet_jobs.core.exceptions import UnknownJobError
from snapbet_jobs.core.logging import configure_logging, get_logger
from snapbet_jobs.core.scheduler import JobScheduler
from snapbet_jobs.jobs import build_jobs
from snapbet_jobs.jobs.base import JobOptions

logger = get_logger(__name__)


def build_scheduler() -> JobScheduler:
    return JobScheduler(build_jobs(SessionLocal, settings), timezone=settings.SCHEDULER_TIMEZONE)


async def serve(scheduler: JobScheduler) -> None:
    """Run the scheduler until a stop signal arrives."""
    stop = asyncio.Event()
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGTERM, signal.SIGINT):
        loop.add_signal_handler(sig, stop.set)

    scheduler.start()
    logger.info(f"🚀 Scheduler running {len(scheduler.jobs)} jobs (tz={settings.SCHEDULER_TIMEZONE})")

    await stop.wait()

    logger.info("⏹️  Stop signal received")
    scheduler.stop()


def print_schedule(scheduler: JobScheduler) -> None:
    width = max(len(job.name) for job in scheduler.jobs)
    print(f"{'JOB':<{width}}  {'SCHEDULE':<14}  {'TIMEOUT':>8}  DESCRIPTION")
    for job in scheduler.jobs:
        flag = " (destructive)" if job.destructive else ""
        print(f"{job.name:<{width}}  {job.schedule:<14}  {job.timeout:>7g}s  {job.config.description}{flag}")


async def trigger(scheduler: JobScheduler, job_name: str, dry_run: bool, force: bool = False) -> bool:
    """Run one job immediately, ignoring its schedule."""
    try:
        [result] = await scheduler.run_once(job_name, JobOptions(dry_run=dry_run, force=force))
    except UnknownJobError as e:
        print(f"❌ {e}")
        return False

    mark = "✅" if result.success else "❌"
    print(f"{mark} {job_name}: {result.message}")
    return result.success


def parse_args(argv=None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Run the SnapBet job scheduler")
    mode = parser.add_mutually_exclusive_group()
    mode.add_argument("--list-jobs", action="store_true", help="Print the schedule and exit")
    mode.add_argument("--trigger", metavar="JOB", help="Run a single job by name and exit")
    parser.add_argument("--dry-run", action="store_true", help="With --trigger: preview without writing")
    parser.add_argument("--force", action="store_true", help="With --trigger: allow a destructive job to write")
    return parser.parse_args(argv)


def main(argv=None) -> int:
    args = parse_args(argv)
    configure_logging(level=settings.LOG_LEVEL, json_output=settings.LOG_JSON)

    missing = settings.missing_required()
    if missing:
        logger.error(f"❌ Missing required settings: {', '.join(missing)}")
        return 1

    scheduler = build_scheduler()

    if args.list_jobs:
        print_schedule(scheduler)
        return 0

    if args.trigger:
        return 0 if asyncio.run(trigger(scheduler, args.trigger, args.dry_run, args.force)) else 1

    asyncio.run(serve(scheduler))
    return 0


if __name__ == "__main__":
    sys.exit(main())
