"""
Game Repository for settlement, odds and game lifecycle queries.

Usage:
    repo = GameRepository(db)
    games = repo.find_settleable()
    upcoming = repo.find_upcoming_scheduled(hours=24)
    live = repo.find_live()
"""
from datetime import datetime, timedelta
from typing import List, Optional

from snapbet_jobs.models import Bet, Game
from snapbet_jobs.repositories.base import BaseRepository
from snapbet_jobs.utils.timezone import utcnow


class GameRepository(BaseRepository[Game]):
    """Repository for game data access."""

    def __init__(self, db):
        super().__init__(Game, db)

    def find_settleable(self, limit: Optional[int] = None) -> List[Game]:
        """
        Completed games with a final score that still have pending bets.

        Ordered by start time so a limited run settles the oldest games first.
        """
        pending_exists = self.db.query(Bet.id).filter(
            Bet.game_id == Game.id,
            Bet.status == "pending"
        ).exists()

        query = self.db.query(Game).filter(
            Game.status == "completed",
            Game.home_score.isnot(None),
            Game.away_score.isnot(None),
            pending_exists
        ).order_by(Game.commence_time, Game.id)

        if limit is not None:
            query = query.limit(limit)
        return query.all()

    def find_upcoming_scheduled(
        self,
        hours: int = 24,
        now: Optional[datetime] = None,
        limit: Optional[int] = None
    ) -> List[Game]:
        """Scheduled games starting between now and ``hours`` from now."""
        now = now or utcnow()
        query = self.db.query(Game).filter(
            Game.status == "scheduled",
            Game.commence_time > now,
            Game.commence_time <= now + timedelta(hours=hours)
        ).order_by(Game.commence_time, Game.id)

        if limit is not None:
            query = query.limit(limit)
        return query.all()

    def find_starting(self, window_minutes: int, now: Optional[datetime] = None,
                      limit: Optional[int] = None) -> List[Game]:
        """Scheduled games whose start time fell within the last ``window_minutes``."""
        now = now or utcnow()
        query = self.db.query(Game).filter(
            Game.status == "scheduled",
            Game.commence_time <= now,
            Game.commence_time > now - timedelta(minutes=window_minutes)
        ).order_by(Game.commence_time, Game.id)

        if limit is not None:
            query = query.limit(limit)
        return query.all()

    def find_live(
        self,
        started_before: Optional[datetime] = None,
        started_since: Optional[datetime] = None,
        limit: Optional[int] = None
    ) -> List[Game]:
        """Live games, optionally bounded by start time (before is exclusive, since inclusive)."""
        query = self.db.query(Game).filter(Game.status == "live")
        if started_before is not None:
            query = query.filter(Game.commence_time < started_before)
        if started_since is not None:
            query = query.filter(Game.commence_time >= started_since)
        query = query.order_by(Game.commence_time, Game.id)

        if limit is not None:
            query = query.limit(limit)
        return query.all()

    def find_cancelled_ids(self) -> List[str]:
        """IDs of all cancelled games."""
        return [row[0] for row in self.db.query(Game.id).filter(Game.status == "cancelled").all()]
