"""
Bet Repository.

Every settlement read filters on ``status == 'pending'``: that filter is what
makes settling a game twice a no-op.
"""
from datetime import datetime
from typing import Iterable, List, Optional

from snapbet_jobs.models import Bet
from snapbet_jobs.repositories.base import BaseRepository

SETTLED_STATUSES = ("won", "lost", "push")
DECIDED_STATUSES = ("won", "lost")


class BetRepository(BaseRepository[Bet]):
    """Repository for bet data access."""

    def __init__(self, db):
        super().__init__(Bet, db)

    # ========================================================================
    # Settlement
    # ========================================================================

    def find_pending_for_game(self, game_id: str) -> List[Bet]:
        """Pending bets on one game, oldest first."""
        return self.db.query(Bet).filter(
            Bet.game_id == game_id,
            Bet.status == "pending"
        ).order_by(Bet.created_at, Bet.id).all()

    def pending_ids_for_games(self, game_ids: Iterable[str], limit: Optional[int] = None) -> List[str]:
        """IDs of pending bets on any of the given games."""
        game_ids = list(game_ids)
        if not game_ids:
            return []
        return self.ids_where(Bet.game_id.in_(game_ids), Bet.status == "pending", limit=limit)

    # ========================================================================
    # History (badges & stats)
    # ========================================================================

    def find_since(
        self,
        since: datetime,
        until: Optional[datetime] = None,
        statuses: Optional[Iterable[str]] = None
    ) -> List[Bet]:
        """
        Bets created in [since, until), ordered by user then creation time.

        Args:
            since: Inclusive lower bound on created_at
            until: Exclusive upper bound on created_at
            statuses: Restrict to these statuses (all statuses if None)
        """
        query = self.db.query(Bet).filter(Bet.created_at >= since)
        if until is not None:
            query = query.filter(Bet.created_at < until)
        if statuses is not None:
            query = query.filter(Bet.status.in_(list(statuses)))
        return query.order_by(Bet.user_id, Bet.created_at, Bet.id).all()

    def settled_for_user(self, user_id: str) -> List[Bet]:
        """Every settled bet a user has ever placed, oldest first."""
        return self.db.query(Bet).filter(
            Bet.user_id == user_id,
            Bet.status.in_(SETTLED_STATUSES)
        ).order_by(Bet.created_at, Bet.id).all()

    def user_ids_with_bets_since(self, since: datetime) -> List[str]:
        """Distinct users with at least one bet created since ``since``."""
        rows = self.db.query(Bet.user_id).filter(
            Bet.created_at >= since
        ).distinct().order_by(Bet.user_id).all()
        return [row[0] for row in rows]
