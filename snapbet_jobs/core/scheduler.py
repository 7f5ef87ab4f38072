"""
Job scheduler for the SnapBet job runner.

APScheduler fires ``tick`` once a minute (and once at startup); each tick
evaluates every job's cron schedule against the wall clock in the scheduler's
timezone and runs the due ones sequentially, in declaration order.

Jobs never overlap. ``tick`` and ``run_once`` share one ``asyncio.Lock``, so
a manual run from the CLI or API waits for an in-flight tick and vice versa.
The tick itself is a single APScheduler job with ``max_instances=1``.

The scheduler is constructed explicitly with its jobs:

    scheduler = JobScheduler(build_jobs(SessionLocal))
    scheduler.start()
"""
import asyncio
import logging
from datetime import datetime
from typing import Dict, List, Optional, Sequence

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger
from apscheduler.util import astimezone

from snapbet_jobs.core import metrics
from snapbet_jobs.core.exceptions import UnknownJobError
from snapbet_jobs.jobs.base import BaseJob, JobOptions, JobResult
from snapbet_jobs.utils.timezone import cron_weekday, local_now

logger = logging.getLogger(__name__)

TICK_JOB_ID = "snapbet_tick"


def _field_matches(field: str, value: int) -> bool:
    for part in field.split(","):
        part = part.strip()
        if part == "*":
            return True
        if part.startswith("*/"):
            step = int(part[2:])
            if step > 0 and value % step == 0:
                return True
            continue
        if int(part) == value:
            return True
    return False


def is_due(schedule: str, now: datetime) -> bool:
    """
    Whether a five-field cron expression matches ``now`` (minute precision).

    Each field accepts ``*``, ``*/N``, an integer, or a comma list of those.
    Day of week uses cron numbering (0 = Sunday).

    Examples:
        >>> is_due("*/30 * * * *", datetime(2025, 1, 6, 12, 30))
        True
        >>> is_due("0 0 * * 1", datetime(2025, 1, 6, 0, 0))  # Monday midnight
        True
    """
    fields = schedule.split()
    if len(fields) != 5:
        raise ValueError(f"Invalid cron schedule '{schedule}': expected 5 fields")

    minute, hour, day, month, weekday = fields
    return (
        _field_matches(minute, now.minute)
        and _field_matches(hour, now.hour)
        and _field_matches(day, now.day)
        and _field_matches(month, now.month)
        and _field_matches(weekday, cron_weekday(now))
    )


class JobScheduler:
    """
    Minute-tick scheduler over an ordered list of jobs.

    Args:
        jobs: Jobs in declaration order
        timezone: IANA zone the cron fields are evaluated in
    """

    def __init__(self, jobs: Sequence[BaseJob], timezone: str = "UTC"):
        self.jobs: List[BaseJob] = list(jobs)
        self.timezone = timezone
        self.tz = astimezone(timezone)
        self.lock = asyncio.Lock()
        self.scheduler: Optional[AsyncIOScheduler] = None
        self.running = False
        self.last_tick: Optional[datetime] = None
        self.last_results: Dict[str, JobResult] = {}

    def get_job(self, job_name: str) -> BaseJob:
        for job in self.jobs:
            if job.name == job_name:
                return job
        raise UnknownJobError(job_name)

    def due_jobs(self, now: datetime) -> List[BaseJob]:
        return [job for job in self.jobs if is_due(job.schedule, now)]

    # ========================================================================
    # Execution
    # ========================================================================

    def local_now(self) -> datetime:
        """Naive wall-clock time in the scheduler's timezone."""
        return local_now(self.tz)

    async def tick(self, now: Optional[datetime] = None) -> List[JobResult]:
        """
        Run every job due at ``now``, one after another.

        ``now`` is naive wall-clock time in the scheduler's timezone. A
        scheduled run authorizes destructive jobs, so options carry ``force``.
        """
        async with self.lock:
            now = (now or self.local_now()).replace(second=0, microsecond=0)
            self.last_tick = now

            due = self.due_jobs(now)
            if not due:
                logger.debug(f"No jobs due at {now.isoformat()}")
                return []

            logger.info(f"⏰ Tick {now.isoformat()}: {', '.join(job.name for job in due)}")

            results = []
            for job in due:
                results.append(await self._run_job(job, JobOptions(force=True)))
            return results

    async def run_once(
        self,
        job_name: Optional[str] = None,
        options: Optional[JobOptions] = None,
        include_destructive: bool = True,
    ) -> List[JobResult]:
        """
        Run one named job, or every job in declaration order, ignoring schedules.

        Raises:
            UnknownJobError: If ``job_name`` is not registered
        """
        options = options or JobOptions()

        if job_name is not None:
            job = self.get_job(job_name)
            async with self.lock:
                return [await self._run_job(job, options)]

        results = []
        async with self.lock:
            for job in self.jobs:
                if job.destructive and not include_destructive:
                    logger.info(f"⏭️ Skipping {job.name} (destructive)")
                    continue
                results.append(await self._run_job(job, options))
        return results

    async def _run_job(self, job: BaseJob, options: JobOptions) -> JobResult:
        # execute() converts job failures into results; anything escaping it
        # is still contained so later jobs in the tick run.
        try:
            result = await job.execute(options)
        except Exception as e:
            logger.exception(f"❌ {job.name} crashed: {e}")
            result = JobResult(
                success=False,
                message=f"Job failed: {e}",
                job_name=job.name,
                dry_run=options.dry_run,
                details={"error": str(e), "error_type": type(e).__name__},
            )
        self.last_results[job.name] = result
        return result

    # ========================================================================
    # Lifecycle
    # ========================================================================

    def start(self) -> None:
        """Start the minute tick; its first run fires immediately."""
        if self.running:
            logger.warning("Scheduler already running")
            return

        logger.info("Starting job scheduler...")

        self.scheduler = AsyncIOScheduler(
            timezone=self.timezone,
            job_defaults={
                'coalesce': True,  # Combine missed runs into one
                'max_instances': 1,  # Never overlap ticks
                'misfire_grace_time': 30
            }
        )
        self.scheduler.add_job(
            self.tick,
            trigger=CronTrigger(minute='*', timezone=self.timezone),
            id=TICK_JOB_ID,
            name='SnapBet job tick',
            next_run_time=datetime.now(self.tz),
        )
        self.scheduler.start()
        self.running = True

        metrics.update_scheduler_metrics(self)
        logger.info(f"✅ Scheduler started with {len(self.jobs)} jobs")
        self._log_scheduled_jobs()

    def stop(self) -> None:
        if not self.running:
            return

        logger.info("Stopping scheduler...")
        self.scheduler.shutdown(wait=False)
        self.running = False
        metrics.update_scheduler_metrics(self)
        logger.info("✅ Scheduler stopped")

    def status(self) -> dict:
        """Running flag, registered jobs and the last result of each job."""
        next_tick = None
        if self.running and self.scheduler is not None:
            tick_job = self.scheduler.get_job(TICK_JOB_ID)
            if tick_job is not None and tick_job.next_run_time is not None:
                next_tick = tick_job.next_run_time.isoformat()

        return {
            "running": self.running,
            "timezone": self.timezone,
            "last_tick": self.last_tick.isoformat() if self.last_tick else None,
            "next_tick": next_tick,
            "jobs": [
                {
                    "name": job.name,
                    "description": job.config.description,
                    "schedule": job.schedule,
                    "timeout": job.timeout,
                    "last_result": (
                        self.last_results[job.name].model_dump()
                        if job.name in self.last_results else None
                    ),
                }
                for job in self.jobs
            ],
        }

    def _log_scheduled_jobs(self) -> None:
        for job in self.jobs:
            logger.info(f"📅 Scheduled: {job.name} ({job.schedule})")
