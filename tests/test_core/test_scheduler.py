"""Tests for cron evaluation and the JobScheduler.

Test Strategy:
1. is_due() on every field form: *, */N, exact, comma list, day of week
2. tick() runs only due jobs, sequentially, in declaration order
3. A failing job does not stop the jobs after it
4. run_once() ignores schedules and rejects unknown names
5. tick() and run_once() never interleave, and ticks authorize destructive jobs
6. The default tick time is wall-clock time in the scheduler's timezone
"""
import asyncio
from datetime import datetime, timedelta
from zoneinfo import ZoneInfo

import pytest

from snapbet_jobs.core.exceptions import UnknownJobError
from snapbet_jobs.core.scheduler import JobScheduler, is_due
from snapbet_jobs.jobs import JOB_CLASSES, build_jobs
from snapbet_jobs.jobs.base import BaseJob, JobConfig, JobOptions, JobResult

MONDAY_MIDNIGHT = datetime(2025, 1, 6, 0, 0)
SUNDAY_NOON = datetime(2025, 1, 5, 12, 0)


class RecordingJob(BaseJob):
    """Appends its name to a shared list and optionally raises."""

    def __init__(self, name, schedule, calls, fail=False, destructive=False):
        super().__init__(session_factory=lambda: None)
        self.config = JobConfig(name=name, description=name, schedule=schedule)
        self.calls = calls
        self.fail = fail
        self.destructive = destructive
        self.options = None

    async def execute(self, options=None):
        self.options = options
        self.calls.append(self.name)
        if self.fail:
            raise RuntimeError(f"{self.name} exploded")
        return JobResult(success=True, message="ok", job_name=self.name)

    async def run(self, db, options):
        raise NotImplementedError


class SlowJob(RecordingJob):
    """Records start and end around a pause so overlapping runs show up."""

    async def execute(self, options=None):
        self.calls.append(f"{self.name}:start")
        await asyncio.sleep(0.05)
        self.calls.append(f"{self.name}:end")
        return JobResult(success=True, message="ok", job_name=self.name)


class TestIsDue:
    """Test suite for five-field cron matching."""

    # Field forms
    # ─────────────────────────────────────────────────────────────

    def test_every_minute(self):
        """Should match any time for '* * * * *'."""
        assert is_due("* * * * *", datetime(2025, 3, 14, 15, 9))

    def test_step_minutes(self):
        """Should match */30 at :00 and :30 only."""
        assert is_due("*/30 * * * *", datetime(2025, 1, 1, 10, 30))
        assert is_due("*/30 * * * *", datetime(2025, 1, 1, 10, 0))
        assert not is_due("*/30 * * * *", datetime(2025, 1, 1, 10, 15))

    def test_top_of_hour(self):
        """Should match '0 * * * *' only at minute zero."""
        assert is_due("0 * * * *", datetime(2025, 1, 1, 7, 0))
        assert not is_due("0 * * * *", datetime(2025, 1, 1, 7, 1))

    def test_exact_hour(self):
        """Should match '0 3 * * *' at 03:00 only."""
        assert is_due("0 3 * * *", datetime(2025, 1, 1, 3, 0))
        assert not is_due("0 3 * * *", datetime(2025, 1, 1, 4, 0))

    def test_comma_list(self):
        """Should match any entry of a comma list."""
        assert is_due("0 6,18 * * *", datetime(2025, 1, 1, 18, 0))
        assert not is_due("0 6,18 * * *", datetime(2025, 1, 1, 12, 0))

    # Day of week (0 = Sunday)
    # ─────────────────────────────────────────────────────────────

    def test_monday_midnight(self):
        """Should match the weekly bankroll reset on Monday 00:00."""
        assert is_due("0 0 * * 1", MONDAY_MIDNIGHT)

    def test_weekly_not_on_sunday(self):
        """Should not match the Monday schedule on Sunday midnight."""
        assert not is_due("0 0 * * 1", datetime(2025, 1, 5, 0, 0))

    def test_sunday_is_zero(self):
        """Should treat day-of-week 0 as Sunday."""
        assert is_due("0 12 * * 0", SUNDAY_NOON)

    # Day of month / month
    # ─────────────────────────────────────────────────────────────

    def test_day_and_month(self):
        """Should honor explicit day-of-month and month fields."""
        assert is_due("0 0 1 1 *", datetime(2025, 1, 1, 0, 0))
        assert not is_due("0 0 1 1 *", datetime(2025, 2, 1, 0, 0))

    def test_invalid_field_count(self):
        """Should reject expressions without five fields."""
        with pytest.raises(ValueError):
            is_due("* * *", MONDAY_MIDNIGHT)


class TestJobScheduler:
    """Test suite for tick and run_once."""

    # Tick
    # ─────────────────────────────────────────────────────────────

    @pytest.mark.asyncio
    async def test_tick_runs_only_due_jobs_in_order(self):
        """Should run due jobs sequentially in declaration order."""
        calls = []
        scheduler = JobScheduler([
            RecordingJob("hourly", "0 * * * *", calls),
            RecordingJob("nightly", "0 3 * * *", calls),
            RecordingJob("half-hourly", "*/30 * * * *", calls),
        ])

        await scheduler.tick(datetime(2025, 1, 1, 10, 0))

        assert calls == ["hourly", "half-hourly"]
        assert scheduler.last_tick == datetime(2025, 1, 1, 10, 0)

    @pytest.mark.asyncio
    async def test_tick_continues_after_failure(self):
        """Should keep running later jobs when one raises."""
        calls = []
        scheduler = JobScheduler([
            RecordingJob("first", "* * * * *", calls, fail=True),
            RecordingJob("second", "* * * * *", calls),
        ])

        results = await scheduler.tick(datetime(2025, 1, 1, 10, 0))

        assert calls == ["first", "second"]
        assert [r.success for r in results] == [False, True]
        assert "exploded" in scheduler.last_results["first"].message

    @pytest.mark.asyncio
    async def test_tick_with_nothing_due(self):
        """Should return no results when nothing is due."""
        scheduler = JobScheduler([RecordingJob("nightly", "0 3 * * *", [])])
        assert await scheduler.tick(datetime(2025, 1, 1, 10, 7)) == []

    # run_once
    # ─────────────────────────────────────────────────────────────

    @pytest.mark.asyncio
    async def test_run_once_all_ignores_schedule(self):
        """Should run every job in declaration order regardless of schedule."""
        calls = []
        scheduler = JobScheduler([
            RecordingJob("a", "0 3 * * *", calls),
            RecordingJob("b", "0 0 * * 1", calls),
        ])

        await scheduler.run_once()

        assert calls == ["a", "b"]

    @pytest.mark.asyncio
    async def test_run_once_can_skip_destructive(self):
        """Should skip destructive jobs when asked."""
        calls = []
        scheduler = JobScheduler([
            RecordingJob("safe", "* * * * *", calls),
            RecordingJob("reset", "* * * * *", calls, destructive=True),
        ])

        await scheduler.run_once(include_destructive=False)

        assert calls == ["safe"]

    @pytest.mark.asyncio
    async def test_run_once_single_job(self):
        """Should run only the named job."""
        calls = []
        scheduler = JobScheduler([
            RecordingJob("a", "* * * * *", calls),
            RecordingJob("b", "* * * * *", calls),
        ])

        results = await scheduler.run_once("b", JobOptions(dry_run=True))

        assert calls == ["b"]
        assert results[0].job_name == "b"

    @pytest.mark.asyncio
    async def test_run_once_unknown_job(self):
        """Should raise UnknownJobError for an unregistered name."""
        scheduler = JobScheduler([RecordingJob("a", "* * * * *", [])])
        with pytest.raises(UnknownJobError):
            await scheduler.run_once("nope")

    # Serialization and force
    # ─────────────────────────────────────────────────────────────

    @pytest.mark.asyncio
    async def test_tick_and_run_once_do_not_interleave(self):
        """Should finish the in-flight tick before a manual run starts."""
        calls = []
        scheduler = JobScheduler([
            SlowJob("ticked", "* * * * *", calls),
            SlowJob("manual", "0 3 * * *", calls),
        ])

        await asyncio.gather(
            scheduler.tick(datetime(2025, 1, 1, 10, 0)),
            scheduler.run_once("manual"),
        )

        assert calls == ["ticked:start", "ticked:end", "manual:start", "manual:end"]

    @pytest.mark.asyncio
    async def test_concurrent_run_once_calls_serialize(self):
        """Should run two manual triggers one after the other."""
        calls = []
        scheduler = JobScheduler([
            SlowJob("a", "* * * * *", calls),
            SlowJob("b", "* * * * *", calls),
        ])

        await asyncio.gather(scheduler.run_once("a"), scheduler.run_once("b"))

        assert calls == ["a:start", "a:end", "b:start", "b:end"]

    @pytest.mark.asyncio
    async def test_tick_forces_destructive_jobs(self):
        """Should pass force so a scheduled destructive job is allowed to write."""
        reset = RecordingJob("reset", "0 0 * * 1", [], destructive=True)
        scheduler = JobScheduler([reset])

        await scheduler.tick(MONDAY_MIDNIGHT)

        assert reset.options.force is True
        assert reset.options.dry_run is False

    # Timezone
    # ─────────────────────────────────────────────────────────────

    def test_local_now_uses_scheduler_timezone(self):
        """Should report naive wall-clock time in the configured zone."""
        scheduler = JobScheduler([], timezone="America/New_York")

        expected = datetime.now(ZoneInfo("America/New_York")).replace(tzinfo=None)

        assert scheduler.local_now().tzinfo is None
        assert abs(scheduler.local_now() - expected) < timedelta(seconds=5)

    @pytest.mark.asyncio
    async def test_default_tick_time_is_local(self):
        """Should stamp last_tick with the zone's wall clock when no time is given."""
        scheduler = JobScheduler([], timezone="Asia/Tokyo")

        await scheduler.tick()

        expected = datetime.now(ZoneInfo("Asia/Tokyo")).replace(tzinfo=None)
        assert abs(expected - scheduler.last_tick) < timedelta(minutes=1, seconds=5)

    # Registry
    # ─────────────────────────────────────────────────────────────

    def test_declared_jobs_and_schedules(self, session_factory):
        """Should register every job in declaration order with its schedule."""
        jobs = build_jobs(session_factory)

        assert [(job.name, job.schedule) for job in jobs] == [
            ("content-expiration", "0 * * * *"),
            ("game-updates", "*/5 * * * *"),
            ("game-settlement", "*/30 * * * *"),
            ("odds-updates", "*/30 * * * *"),
            ("badge-calculation", "0 * * * *"),
            ("stats-rollup", "0 * * * *"),
            ("notifications", "*/5 * * * *"),
            ("bankroll-reset", "0 0 * * 1"),
            ("cleanup", "0 3 * * *"),
            ("media-cleanup", "0 4 * * *"),
        ]
        assert len(JOB_CLASSES) == len(jobs)
        assert [job.name for job in jobs if job.destructive] == ["bankroll-reset"]

    def test_status_before_start(self):
        """Should report a stopped scheduler with its job table."""
        scheduler = JobScheduler([RecordingJob("a", "0 * * * *", [])])
        status = scheduler.status()

        assert status["running"] is False
        assert status["jobs"][0]["name"] == "a"
        assert status["jobs"][0]["schedule"] == "0 * * * *"
        assert status["jobs"][0]["last_result"] is None
