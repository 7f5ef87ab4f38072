"""
Notifications job: queue game-start reminders, expiring-content warnings and
the Monday weekly recap. Delivery happens outside the job runner.
"""
import logging
from collections import OrderedDict

from snapbet_jobs.jobs.base import BaseJob, JobConfig, JobOptions, JobResult
from snapbet_jobs.services.notifications.planner import NotificationPlanner
from snapbet_jobs.utils.timezone import local_now, utcnow

logger = logging.getLogger(__name__)


class NotificationJob(BaseJob):
    config = JobConfig(
        name="notifications",
        description="Queue game start, content expiration and weekly recap notifications",
        schedule="*/5 * * * *",
        timeout=120,
    )

    async def run(self, db, options: JobOptions) -> JobResult:
        planner = NotificationPlanner(
            db,
            now=utcnow(),
            local_now=local_now(self.settings.SCHEDULER_TIMEZONE),
            game_start_notice_minutes=self.settings.GAME_START_NOTICE_MINUTES,
            expiry_warning_minutes=self.settings.EXPIRY_WARNING_MINUTES,
            content_ttl_hours=self.settings.CONTENT_TTL_HOURS,
            weekly_recap_hour=self.settings.WEEKLY_RECAP_HOUR,
        )

        planned = OrderedDict([
            ("game_start", planner.game_start(limit=options.limit)),
            ("content_expiring", planner.content_expiring(limit=options.limit)),
            ("weekly_recap", planner.weekly_recap(limit=options.limit)),
        ])
        counts = {kind: len(rows) for kind, rows in planned.items()}
        total = sum(counts.values())

        if options.verbose:
            for kind, count in counts.items():
                logger.info(f"  🔔 {kind}: {count}")

        if options.dry_run:
            return JobResult(
                success=True,
                message=f"Would queue {total} notifications",
                affected=total,
                details=counts,
            )

        for rows in planned.values():
            db.add_all(rows)
        db.flush()

        return JobResult(
            success=True,
            message=f"Queued {total} notifications",
            affected=total,
            details=counts,
        )
