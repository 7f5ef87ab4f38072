"""Tests for the game-updates job.

Test Strategy:
1. Scheduled games start (live, 0-0) only inside the start window
2. Live games inside their window get a higher simulated score
3. Live games past GAME_DURATION_HOURS complete, keeping or inventing a score
4. Dry runs count the same games and write nothing
5. ``limit`` caps each step
"""
import random
from datetime import timedelta

import pytest
from sqlalchemy.orm import Session

from snapbet_jobs.jobs import GameUpdateJob
from snapbet_jobs.jobs.base import JobOptions
from snapbet_jobs.models import Game


def reload(db: Session, game_id: str) -> Game:
    db.expire_all()
    return db.get(Game, game_id)


class TestGameUpdateJob:
    """Test suite for GameUpdateJob."""

    # Starting games
    # ─────────────────────────────────────────────────────────────

    @pytest.mark.asyncio
    async def test_starts_games_inside_window(self, db_session: Session, session_factory, create_game, now):
        """Should start games that began in the last 30 minutes and leave the rest scheduled."""
        starting = create_game(commence_time=now - timedelta(minutes=10))
        upcoming = create_game(commence_time=now + timedelta(minutes=10))
        stale = create_game(commence_time=now - timedelta(minutes=45))

        result = await GameUpdateJob(session_factory, rng=random.Random(1)).execute()

        assert result.success is True
        assert result.details["started"] == 1
        started = reload(db_session, starting.id)
        assert (started.status, started.home_score, started.away_score) == ("live", 0, 0)
        assert reload(db_session, upcoming.id).status == "scheduled"
        assert reload(db_session, stale.id).status == "scheduled"

    # Live games
    # ─────────────────────────────────────────────────────────────

    @pytest.mark.asyncio
    async def test_advances_live_scores(self, db_session: Session, session_factory, create_game, now):
        """Should raise the score of a live NBA game halfway through."""
        game = create_game(status="live", home_score=10, away_score=8, commence_time=now - timedelta(minutes=24))

        result = await GameUpdateJob(session_factory, rng=random.Random(2)).execute()

        updated = reload(db_session, game.id)
        assert result.details["live_updated"] == 1
        assert updated.status == "live"
        assert updated.home_score >= 10 and updated.away_score >= 8
        assert updated.home_score + updated.away_score > 18
        assert updated.last_updated is not None

    @pytest.mark.asyncio
    async def test_completes_finished_game_keeping_score(self, db_session: Session, session_factory,
                                                         create_game, now):
        """Should complete a live game after three hours without touching its score."""
        game = create_game(status="live", home_score=112, away_score=108, commence_time=now - timedelta(hours=4))

        result = await GameUpdateJob(session_factory, rng=random.Random(3)).execute()

        finished = reload(db_session, game.id)
        assert result.details["completed"] == 1
        assert result.details["live_updated"] == 0
        assert (finished.status, finished.home_score, finished.away_score) == ("completed", 112, 108)

    @pytest.mark.asyncio
    async def test_completes_unscored_game_with_final_score(self, db_session: Session, session_factory,
                                                            create_game, now):
        """Should invent a final score for a finished game that has none."""
        game = create_game(status="live", commence_time=now - timedelta(hours=4))

        await GameUpdateJob(session_factory, rng=random.Random(4)).execute()

        finished = reload(db_session, game.id)
        assert finished.status == "completed"
        assert finished.home_score is not None and finished.away_score is not None
        assert finished.home_score >= 0 and finished.away_score >= 0

    # Dry run and limit
    # ─────────────────────────────────────────────────────────────

    @pytest.mark.asyncio
    async def test_dry_run_writes_nothing(self, db_session: Session, session_factory, create_game, now):
        """Should report every step and leave all games untouched."""
        starting = create_game(commence_time=now - timedelta(minutes=5))
        finished = create_game(status="live", home_score=90, away_score=95, commence_time=now - timedelta(hours=5))

        result = await GameUpdateJob(session_factory, rng=random.Random(5)).execute(JobOptions(dry_run=True))

        assert result.success is True
        assert result.message == "Would update 2 games (0 live, 1 completed, 1 started)"
        assert reload(db_session, starting.id).status == "scheduled"
        assert reload(db_session, finished.id).status == "live"

    @pytest.mark.asyncio
    async def test_limit_caps_each_step(self, db_session: Session, session_factory, create_game, now):
        """Should start only as many games as the limit allows."""
        first = create_game(commence_time=now - timedelta(minutes=20))
        second = create_game(commence_time=now - timedelta(minutes=5))

        result = await GameUpdateJob(session_factory, rng=random.Random(6)).execute(JobOptions(limit=1))

        assert result.details["started"] == 1
        assert reload(db_session, first.id).status == "live"
        assert reload(db_session, second.id).status == "scheduled"
