"""
Badge calculation job.

Every run recomputes the qualifying set for the whole catalogue and
reconciles it with the active awards: new qualifiers earn the badge, users
who stopped qualifying lose it (lost_at is stamped and a history row is
written). A (user, badge) pair that survives keeps its original earned_at, so
rerunning on unchanged data changes nothing.
"""
import logging

from snapbet_jobs.jobs.base import BaseJob, JobConfig, JobOptions, JobResult
from snapbet_jobs.services.badges.badge_calculator import BADGES_BY_ID, BadgeCalculator
from snapbet_jobs.services.badges.badge_ledger import BadgeLedger
from snapbet_jobs.utils.timezone import utcnow

logger = logging.getLogger(__name__)


class BadgeCalculationJob(BaseJob):
    config = JobConfig(
        name="badge-calculation",
        description="Calculate weekly badges for all users",
        schedule="0 * * * *",
        timeout=300,
    )

    async def run(self, db, options: JobOptions) -> JobResult:
        now = utcnow()
        calculator = BadgeCalculator(db, now=now, window_days=self.settings.BADGE_WINDOW_DAYS)
        awards = calculator.calculate_all()

        counts = {badge_id: len(user_ids) for badge_id, user_ids in awards.items()}
        total = sum(counts.values())

        if options.verbose:
            for badge_id, user_ids in awards.items():
                badge = BADGES_BY_ID[badge_id]
                logger.info(f"  {badge.emoji} {badge.name}: {len(user_ids)} users")

        ledger = BadgeLedger(db, now=now)

        if options.dry_run:
            changes = ledger.diff(awards)
            return JobResult(
                success=True,
                message=f"Would award {total} badges across {len(awards)} badge types",
                affected=total,
                details={
                    "badges": counts,
                    "newly_earned": len(changes.earned),
                    "revoked": len(changes.lost),
                },
            )

        changes = ledger.apply(awards)

        return JobResult(
            success=True,
            message=f"Calculated {len(awards)} badge types, awarded {total} badges",
            affected=total,
            details={
                "badges": counts,
                "newly_earned": len(changes.earned),
                "revoked": len(changes.lost),
            },
        )
