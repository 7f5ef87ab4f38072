"""
Game updates job: drive simulated games through scheduled -> live -> completed.

Every 5 minutes, in order:
1. advance the score of every live game still inside its window
2. complete live games that started more than GAME_DURATION_HOURS ago,
   keeping their score or inventing a final one
3. start scheduled games whose start time fell within the last
   GAME_START_WINDOW_MINUTES (status live, score 0-0)

``limit`` caps each step separately. Completed games are picked up by
game-settlement on its next run.
"""
import asyncio
import logging
import random
from datetime import timedelta
from typing import Optional

from snapbet_jobs.jobs.base import BaseJob, JobConfig, JobOptions, JobResult
from snapbet_jobs.repositories import GameRepository
from snapbet_jobs.services.market.score_simulator import ScoreSimulator
from snapbet_jobs.utils.timezone import utcnow

logger = logging.getLogger(__name__)


class GameUpdateJob(BaseJob):
    config = JobConfig(
        name="game-updates",
        description="Update game scores and status for live and recently completed games",
        schedule="*/5 * * * *",
        timeout=120,
    )

    def __init__(self, session_factory, app_settings=None, rng: Optional[random.Random] = None):
        super().__init__(session_factory, app_settings)
        self.simulator = ScoreSimulator(rng)

    async def run(self, db, options: JobOptions) -> JobResult:
        now = utcnow()
        repo = GameRepository(db)

        cutoff = now - timedelta(hours=self.settings.GAME_DURATION_HOURS)
        live = repo.find_live(started_since=cutoff, limit=options.limit)
        finished = repo.find_live(started_before=cutoff, limit=options.limit)
        starting = repo.find_starting(self.settings.GAME_START_WINDOW_MINUTES, now=now, limit=options.limit)

        counts = {"live_updated": len(live), "completed": len(finished), "started": len(starting)}
        total = sum(counts.values())

        if options.dry_run:
            if options.verbose:
                for game in starting:
                    logger.info(f"  🎮 Would start {game.away_team} @ {game.home_team}")
                for game in finished:
                    logger.info(f"  🏁 Would complete {game.away_team} @ {game.home_team}")
            return JobResult(
                success=True,
                message=(
                    f"Would update {total} games ({counts['live_updated']} live, "
                    f"{counts['completed']} completed, {counts['started']} started)"
                ),
                affected=total,
                details=counts,
            )

        for game in live:
            score = self.simulator.advance(game, now)
            game.home_score, game.away_score = score.home, score.away
            game.last_updated = now
            if options.verbose:
                logger.info(f"  🏈 {game.away_team} {score.away} @ {game.home_team} {score.home}")
            await asyncio.sleep(0)

        for game in finished:
            if game.home_score is None or game.away_score is None:
                score = self.simulator.final_score(game)
                game.home_score, game.away_score = score.home, score.away
            game.status = "completed"
            game.last_updated = now
            if options.verbose:
                logger.info(
                    f"  🏁 Final: {game.away_team} {game.away_score} @ {game.home_team} {game.home_score}"
                )

        for game in starting:
            game.status = "live"
            game.home_score = 0
            game.away_score = 0
            game.last_updated = now
            if options.verbose:
                logger.info(f"  🎮 Started: {game.away_team} @ {game.home_team}")

        db.flush()

        return JobResult(
            success=True,
            message=(
                f"Updated {total} games ({counts['live_updated']} live, "
                f"{counts['completed']} completed, {counts['started']} started)"
            ),
            affected=total,
            details=counts,
        )
