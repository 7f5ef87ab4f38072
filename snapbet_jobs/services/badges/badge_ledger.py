"""
Badge ledger: reconciles the active badge set with a fresh calculation.

A badge is active while its user_badges row has no lost_at. Reconciling:
- inserts a row (earned_at = now) for each newly qualifying (user, badge)
- stamps lost_at on each active row that no longer qualifies
- appends one badge_history row per change ("earned" or "lost")

Rows are never deleted, so a user's badge history survives losing a badge.
Earning the same badge again later opens a new row.

Reconciliation can be scoped to a set of users (settlement refreshes only the
users whose bets it just settled); the hourly job reconciles everyone.
"""
import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, Iterable, List, Optional, Set, Tuple

from sqlalchemy.orm import Session

from snapbet_jobs.models import BadgeHistory, UserBadge
from snapbet_jobs.utils.timezone import utcnow

logger = logging.getLogger(__name__)

EARNED = "earned"
LOST = "lost"

Pair = Tuple[str, str]  # (user_id, badge_id)


@dataclass
class BadgeChanges:
    earned: List[Pair] = field(default_factory=list)
    lost: List[Pair] = field(default_factory=list)

    @property
    def total(self) -> int:
        return len(self.earned) + len(self.lost)


def award_pairs(awards: Dict[str, List[str]]) -> Set[Pair]:
    """Flatten ``{badge_id: [user_ids]}`` into (user_id, badge_id) pairs."""
    return {(user_id, badge_id) for badge_id, user_ids in awards.items() for user_id in user_ids}


class BadgeLedger:
    """
    Args:
        db: Session owned by the caller; nothing is committed here
        now: Timestamp for earned_at, lost_at and history rows
    """

    def __init__(self, db: Session, now: Optional[datetime] = None):
        self.db = db
        self.now = now or utcnow()

    def active(self, user_ids: Optional[Iterable[str]] = None) -> Dict[Pair, UserBadge]:
        query = self.db.query(UserBadge).filter(UserBadge.lost_at.is_(None))
        if user_ids is not None:
            query = query.filter(UserBadge.user_id.in_(list(user_ids)))
        return {(row.user_id, row.badge_id): row for row in query}

    def diff(
        self,
        awards: Dict[str, List[str]],
        user_ids: Optional[Iterable[str]] = None
    ) -> BadgeChanges:
        """What ``apply`` would change, without writing."""
        scope = set(user_ids) if user_ids is not None else None
        if scope is not None and not scope:
            return BadgeChanges()

        current = award_pairs(awards)
        if scope is not None:
            current = {pair for pair in current if pair[0] in scope}
        active = self.active(scope)

        return BadgeChanges(
            earned=sorted(current - active.keys()),
            lost=sorted(active.keys() - current),
        )

    def apply(
        self,
        awards: Dict[str, List[str]],
        user_ids: Optional[Iterable[str]] = None
    ) -> BadgeChanges:
        """
        Bring the active badge set in line with ``awards``.

        Args:
            awards: Qualifying users per badge id
            user_ids: Only reconcile these users (None reconciles everyone)
        """
        changes = self.diff(awards, user_ids)
        if not changes.total:
            return changes

        active = self.active({user_id for user_id, _ in changes.lost})
        for pair in changes.lost:
            active[pair].lost_at = self.now

        for user_id, badge_id in changes.earned:
            self.db.add(UserBadge(user_id=user_id, badge_id=badge_id, earned_at=self.now))

        self.db.add_all(
            [BadgeHistory(user_id=u, badge_id=b, action=EARNED, created_at=self.now) for u, b in changes.earned]
            + [BadgeHistory(user_id=u, badge_id=b, action=LOST, created_at=self.now) for u, b in changes.lost]
        )
        self.db.flush()

        logger.info(f"🏅 Badges: +{len(changes.earned)} earned, -{len(changes.lost)} lost")
        return changes
