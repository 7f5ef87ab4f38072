"""
Game settlement job.

Every 30 minutes: find completed games with final scores that still have
pending bets, and settle each one. A game that cannot be settled, or a bad
bet, is recorded and the remaining games still settle.

All games settle in the job's single transaction: a store error anywhere
rolls back every game, so the reported counts always match what was written.
Badges are refreshed for the users each game touched.
"""
import asyncio
import logging

from snapbet_jobs.core.exceptions import SettlementError
from snapbet_jobs.jobs.base import BaseJob, JobConfig, JobOptions, JobResult, summarize_errors
from snapbet_jobs.repositories import GameRepository
from snapbet_jobs.services.betting.settlement_service import SettlementService

logger = logging.getLogger(__name__)


class GameSettlementJob(BaseJob):
    config = JobConfig(
        name="game-settlement",
        description="Settle pending bets on completed games",
        schedule="*/30 * * * *",
        timeout=600,
    )

    async def run(self, db, options: JobOptions) -> JobResult:
        games = GameRepository(db).find_settleable(limit=options.limit)

        if not games:
            return JobResult(success=True, message="No games to settle", affected=0)

        service = SettlementService(db, badge_window_days=self.settings.BADGE_WINDOW_DAYS)

        if options.dry_run:
            return self._preview(service, games, options)

        settled_games = 0
        settled_bets = 0
        total_paid_out = 0
        badges_earned = 0
        badges_lost = 0
        affected_users = set()
        errors = []

        for game in games:
            # SettlementError is raised before the game writes anything
            try:
                result = await service.settle_game(game.id, commit=False)
            except SettlementError as e:
                errors.append(str(e))
                continue

            settled_games += 1
            settled_bets += result.settled_count
            total_paid_out += result.total_paid_out
            badges_earned += result.badges_earned
            badges_lost += result.badges_lost
            affected_users |= result.affected_user_ids
            errors.extend(result.errors)

            if options.verbose:
                logger.info(
                    f"  🏁 {game.away_team} @ {game.home_team} "
                    f"({game.away_score}-{game.home_score}): {result.settled_count} bets"
                )
            await asyncio.sleep(0)

        message = f"Settled {settled_games} games with {settled_bets} bets"
        if errors:
            message += f" ({len(errors)} errors)"

        return JobResult(
            success=not errors,
            message=message,
            affected=settled_bets,
            details={
                "candidate_games": len(games),
                "settled_games": settled_games,
                "total_paid_out": total_paid_out,
                "affected_users": len(affected_users),
                "badges_earned": badges_earned,
                "badges_lost": badges_lost,
                "error_count": len(errors),
                "errors": summarize_errors(errors),
            },
        )

    def _preview(self, service: SettlementService, games, options: JobOptions) -> JobResult:
        totals = {"bets": 0, "wins": 0, "losses": 0, "pushes": 0, "total_staked": 0, "total_winnings": 0}
        errors = []

        for game in games:
            try:
                preview = service.preview_settlement(game.id)
            except SettlementError as e:
                errors.append(str(e))
                continue

            totals["bets"] += preview.total_bets
            totals["wins"] += preview.wins
            totals["losses"] += preview.losses
            totals["pushes"] += preview.pushes
            totals["total_staked"] += preview.total_staked
            totals["total_winnings"] += preview.total_winnings
            errors.extend(preview.errors)

            if options.verbose:
                logger.info(
                    f"  🔍 {game.away_team} @ {game.home_team}: {preview.total_bets} bets "
                    f"({preview.wins}W/{preview.losses}L/{preview.pushes}P)"
                )

        message = f"Would settle {len(games)} games with {totals['bets']} bets"
        if errors:
            message += f" ({len(errors)} errors)"

        return JobResult(
            success=not errors,
            message=message,
            affected=totals["bets"],
            details={
                "candidate_games": len(games),
                **totals,
                "error_count": len(errors),
                "errors": summarize_errors(errors),
            },
        )
