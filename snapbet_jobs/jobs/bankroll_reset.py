"""
Weekly bankroll reset.

Every bankroll goes back to the base amount plus a bonus per referral, and
each user gets a system notification. Destructive: the CLI requires --force
(or a typed confirmation) before running it outside dry-run mode.
"""
import asyncio
import logging

from snapbet_jobs.jobs.base import BaseJob, JobConfig, JobOptions, JobResult
from snapbet_jobs.models import Notification
from snapbet_jobs.repositories import BankrollRepository
from snapbet_jobs.utils.timezone import utcnow

logger = logging.getLogger(__name__)

RESET_BATCH_SIZE = 100
NOTIFICATION_BATCH_SIZE = 50


class BankrollResetJob(BaseJob):
    config = JobConfig(
        name="bankroll-reset",
        description="Reset all user bankrolls to base + referral bonuses",
        schedule="0 0 * * 1",
        timeout=600,
    )

    destructive = True

    def reset_amount(self, referral_count: int) -> int:
        return self.settings.BANKROLL_BASE_AMOUNT + (referral_count or 0) * self.settings.REFERRAL_BONUS_AMOUNT

    async def run(self, db, options: JobOptions) -> JobResult:
        repo = BankrollRepository(db)
        pairs = repo.find_with_users(limit=options.limit)

        if not pairs:
            return JobResult(success=True, message="No bankrolls to reset", affected=0)

        amounts = {user.id: self.reset_amount(user.referral_count) for _, user in pairs}
        total_new_balance = sum(amounts.values())
        summary = {
            "total_new_balance": total_new_balance,
            "average_balance": round(total_new_balance / len(amounts)),
        }

        if options.dry_run:
            if options.verbose:
                for user_id, amount in amounts.items():
                    logger.info(f"  💰 {user_id}: ${amount / 100:,.2f}")
            return JobResult(
                success=True,
                message=f"Would reset {len(pairs)} bankrolls",
                affected=len(pairs),
                details=summary,
            )

        now = utcnow()
        reset = 0
        for start in range(0, len(pairs), RESET_BATCH_SIZE):
            for bankroll, user in pairs[start:start + RESET_BATCH_SIZE]:
                amount = amounts[user.id]
                bankroll.balance = amount
                bankroll.weekly_deposit = amount
                bankroll.season_high = amount
                bankroll.season_low = amount
                bankroll.last_reset = now
                bankroll.reset_count = (bankroll.reset_count or 0) + 1
                reset += 1
            db.flush()
            if options.verbose:
                logger.info(f"  💰 Reset {reset} of {len(pairs)} bankrolls")
            await asyncio.sleep(0)

        notified = self._queue_notifications(db, amounts)

        return JobResult(
            success=True,
            message=f"Reset {reset} bankrolls",
            affected=reset,
            details={**summary, "notifications": notified},
        )

    def _queue_notifications(self, db, amounts: dict) -> int:
        user_ids = list(amounts)
        for start in range(0, len(user_ids), NOTIFICATION_BATCH_SIZE):
            batch = user_ids[start:start + NOTIFICATION_BATCH_SIZE]
            db.add_all([
                Notification(
                    user_id=user_id,
                    type="system",
                    data={
                        "message": (
                            f"Your bankroll has been reset to ${amounts[user_id] / 100:,.2f}. "
                            "Good luck this week!"
                        ),
                        "action": "bankroll_reset",
                        "amount": amounts[user_id],
                    },
                )
                for user_id in batch
            ])
            db.flush()
        return len(user_ids)
