"""
Bankroll Repository.

Bankroll rows are shared between settlement (balance, counters) and the
stats rollup (aggregates). Writers lock the row with ``lock_for_user`` and
do their read-modify-write inside the same transaction.
"""
from typing import List, Optional

from snapbet_jobs.models import Bankroll, User
from snapbet_jobs.repositories.base import BaseRepository


class BankrollRepository(BaseRepository[Bankroll]):
    """Repository for bankroll data access."""

    def __init__(self, db):
        super().__init__(Bankroll, db)

    def lock_for_user(self, user_id: str) -> Optional[Bankroll]:
        """
        Load a user's bankroll with a row lock (SELECT ... FOR UPDATE).

        The lock is held until the caller commits or rolls back. SQLite
        ignores FOR UPDATE; it serializes writers at the database level.
        """
        return self.db.query(Bankroll).filter(
            Bankroll.user_id == user_id
        ).with_for_update().first()

    def find_with_users(self, limit: Optional[int] = None, offset: int = 0) -> List[tuple]:
        """(Bankroll, User) pairs ordered by user id for batched processing."""
        query = self.db.query(Bankroll, User).join(
            User, User.id == Bankroll.user_id
        ).order_by(Bankroll.user_id).offset(offset)

        if limit is not None:
            query = query.limit(limit)
        return query.all()
