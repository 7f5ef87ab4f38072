"""
Stats rollup job.

For each user who bet in the last week, recompute lifetime statistics from
the full settled-bet ledger and overwrite the bankroll aggregates. This is a
recomputation, not an increment, so retroactive settlement corrections are
picked up on the next run.
"""
import asyncio
import logging
from datetime import timedelta

from snapbet_jobs.jobs.base import BaseJob, JobConfig, JobOptions, JobResult, summarize_errors
from snapbet_jobs.repositories import BankrollRepository, BetRepository
from snapbet_jobs.services.badges.stats_calculator import compute_user_stats
from snapbet_jobs.utils.timezone import utcnow

logger = logging.getLogger(__name__)

ACTIVE_WINDOW_DAYS = 7


class StatsRollupJob(BaseJob):
    config = JobConfig(
        name="stats-rollup",
        description="Recalculate user betting statistics",
        schedule="0 * * * *",
        timeout=600,
    )

    async def run(self, db, options: JobOptions) -> JobResult:
        bets = BetRepository(db)
        bankrolls = BankrollRepository(db)

        since = utcnow() - timedelta(days=ACTIVE_WINDOW_DAYS)
        user_ids = bets.user_ids_with_bets_since(since)

        if not user_ids:
            return JobResult(success=True, message="No active users to update stats for", affected=0)

        if options.limit:
            user_ids = user_ids[:options.limit]

        if options.dry_run:
            return JobResult(
                success=True,
                message=f"Would update stats for {len(user_ids)} users",
                affected=len(user_ids),
                details={"total_users": len(user_ids)},
            )

        updated = 0
        errors = []

        for user_id in user_ids:
            stats = compute_user_stats(bets.settled_for_user(user_id))

            bankroll = bankrolls.lock_for_user(user_id)
            if bankroll is None:
                errors.append(f"User {user_id}: no bankroll")
                continue

            bankroll.total_wagered = stats.total_wagered
            bankroll.total_won = stats.total_won
            bankroll.win_count = stats.wins
            bankroll.loss_count = stats.losses
            bankroll.push_count = stats.pushes
            bankroll.biggest_win = stats.biggest_win
            bankroll.biggest_loss = stats.biggest_loss
            bankroll.stats_metadata = stats.to_metadata()
            updated += 1

            if options.verbose:
                logger.info(
                    f"  📊 {user_id}: {stats.total_bets} bets, "
                    f"{stats.win_rate * 100:.1f}% win rate, streak {stats.current_streak:+d}"
                )
            await asyncio.sleep(0)

        return JobResult(
            success=not errors,
            message=f"Updated stats for {updated}/{len(user_ids)} users",
            affected=updated,
            details={
                "total_users": len(user_ids),
                "updated": updated,
                "errors": summarize_errors(errors),
            },
        )
