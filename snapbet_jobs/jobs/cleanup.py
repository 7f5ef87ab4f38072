"""
Daily database housekeeping.

Steps, in order:
1. Orphaned reactions (post missing or soft-deleted) are deleted
2. Pending bets on cancelled games are cancelled and their stake refunded
3. Notifications past retention are deleted
4. Job execution audit rows past retention are deleted

``limit`` caps each step independently.
"""
import asyncio
import logging
from collections import OrderedDict
from datetime import timedelta

from snapbet_jobs.jobs.base import BaseJob, JobConfig, JobOptions, JobResult, summarize_errors
from snapbet_jobs.models import Bet, Notification, Post, Reaction
from snapbet_jobs.repositories import (
    BankrollRepository,
    BaseRepository,
    BetRepository,
    GameRepository,
    JobExecutionRepository,
)
from snapbet_jobs.utils.timezone import utcnow

logger = logging.getLogger(__name__)


class CleanupJob(BaseJob):
    config = JobConfig(
        name="cleanup",
        description="Remove orphaned data and old records",
        schedule="0 3 * * *",
        timeout=600,
    )

    async def run(self, db, options: JobOptions) -> JobResult:
        now = utcnow()
        counts = OrderedDict()
        errors = []

        counts["reactions"] = self._orphaned_reactions(db, options)
        await asyncio.sleep(0)

        counts["bets"] = self._cancelled_game_bets(db, options, now, errors)
        await asyncio.sleep(0)

        notification_cutoff = now - timedelta(days=self.settings.NOTIFICATION_RETENTION_DAYS)
        notifications = BaseRepository(Notification, db)
        notification_ids = notifications.ids_where(Notification.created_at < notification_cutoff, limit=options.limit)
        counts["notifications"] = len(notification_ids)
        if not options.dry_run:
            notifications.delete_by_ids(notification_ids)
        await asyncio.sleep(0)

        execution_cutoff = now - timedelta(days=self.settings.EXECUTION_RETENTION_DAYS)
        executions = JobExecutionRepository(db)
        execution_ids = executions.ids_older_than(execution_cutoff, limit=options.limit)
        counts["job_executions"] = len(execution_ids)
        if not options.dry_run:
            executions.delete_by_ids(execution_ids)

        if options.verbose:
            for name, count in counts.items():
                logger.info(f"  🧹 {name}: {count}")

        total = sum(counts.values())
        verb = "Would clean" if options.dry_run else "Cleaned"
        message = f"{verb} {total} records"
        if errors:
            message += f" ({len(errors)} errors)"

        return JobResult(
            success=not errors,
            message=message,
            affected=total,
            details={**counts, "errors": summarize_errors(errors)},
        )

    # ========================================================================
    # Steps
    # ========================================================================

    def _orphaned_reactions(self, db, options: JobOptions) -> int:
        repo = BaseRepository(Reaction, db)
        live_post = db.query(Post.id).filter(
            Post.id == Reaction.post_id,
            Post.deleted_at.is_(None)
        ).exists()

        ids = repo.ids_where(~live_post, limit=options.limit)
        if not options.dry_run:
            repo.delete_by_ids(ids)
        return len(ids)

    def _cancelled_game_bets(self, db, options: JobOptions, now, errors: list) -> int:
        """Cancel pending bets on cancelled games and refund each stake."""
        bets = BetRepository(db)
        cancelled_games = GameRepository(db).find_cancelled_ids()
        bet_ids = bets.pending_ids_for_games(cancelled_games, limit=options.limit)

        if options.dry_run or not bet_ids:
            return len(bet_ids)

        bankrolls = BankrollRepository(db)
        locked = {}
        cancelled = 0

        for bet in bets.where(Bet.id.in_(bet_ids), Bet.status == "pending"):
            bankroll = locked.get(bet.user_id)
            if bankroll is None:
                bankroll = bankrolls.lock_for_user(bet.user_id)
                if bankroll is None:
                    errors.append(f"Bet {bet.id}: no bankroll for user {bet.user_id}")
                    continue
                locked[bet.user_id] = bankroll

            bet.status = "cancelled"
            bet.settled_at = now
            bankroll.balance += bet.stake
            cancelled += 1

        db.flush()
        return cancelled
