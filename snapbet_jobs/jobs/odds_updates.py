"""Odds updates job: simulate line movement for games starting within 24 hours."""
import asyncio
import logging
import random
from typing import Optional

from snapbet_jobs.jobs.base import BaseJob, JobConfig, JobOptions, JobResult, summarize_errors
from snapbet_jobs.repositories import GameRepository
from snapbet_jobs.services.market.odds_simulator import OddsSimulator
from snapbet_jobs.utils.timezone import utcnow

logger = logging.getLogger(__name__)

LOOKAHEAD_HOURS = 24


class OddsUpdateJob(BaseJob):
    config = JobConfig(
        name="odds-updates",
        description="Update odds and simulate line movements for upcoming games",
        schedule="*/30 * * * *",
        timeout=120,
    )

    def __init__(self, session_factory, app_settings=None, rng: Optional[random.Random] = None):
        super().__init__(session_factory, app_settings)
        self.simulator = OddsSimulator(rng)

    async def run(self, db, options: JobOptions) -> JobResult:
        now = utcnow()
        games = GameRepository(db).find_upcoming_scheduled(hours=LOOKAHEAD_HOURS, now=now, limit=options.limit)

        if not games:
            return JobResult(success=True, message="No upcoming games to update odds for", affected=0)

        if options.dry_run:
            if options.verbose:
                for game in games:
                    logger.info(f"  📊 {game.away_team} @ {game.home_team} ({game.commence_time.isoformat()})")
            return JobResult(
                success=True,
                message=f"Would update odds for {len(games)} games",
                affected=len(games),
                details={"total_games": len(games)},
            )

        updated = 0
        movements = {"initial": 0, "sharp": 0, "public": 0, "none": 0}
        errors = []

        for game in games:
            try:
                simulated = self.simulator.simulate(game, now)
            except (KeyError, TypeError, ValueError) as e:
                errors.append(f"Game {game.id}: malformed odds data ({e})")
                continue

            game.odds_data = simulated.odds
            game.last_updated = now
            updated += 1
            movements[simulated.movement] += 1

            if options.verbose:
                markets = simulated.odds["bookmakers"][0]["markets"]
                spread = markets.get("spreads", {}).get("line", 0)
                total = markets.get("totals", {}).get("line", 0)
                logger.info(
                    f"  📊 {game.away_team} @ {game.home_team}: {simulated.movement} "
                    f"(spread {spread:+g}, total {total:g})"
                )
            await asyncio.sleep(0)

        return JobResult(
            success=not errors,
            message=f"Updated odds for {updated}/{len(games)} games",
            affected=updated,
            details={
                "total_games": len(games),
                "updated": updated,
                "movements": movements,
                "errors": summarize_errors(errors),
            },
        )
