"""
Weekly badge qualification.

Every badge is an independent predicate over the bets created in a trailing
window (7 days by default). Qualification is re-derived from scratch on every
run; nothing is carried over from the previous award set.

"Top user" badges go to a single user: highest metric wins, ties go to the
lowest user id so the same data always produces the same winner.
"""
import logging
from collections import defaultdict
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Callable, Dict, Iterable, List, Optional, Tuple

from sqlalchemy.orm import Session

from snapbet_jobs.models import Bet, Post, User
from snapbet_jobs.repositories import BetRepository
from snapbet_jobs.utils.timezone import most_recent_sunday, utcnow

logger = logging.getLogger(__name__)

HOT_STREAK_MIN = 3
SHARP_MIN_BETS = 10
SHARP_MIN_WIN_RATE = 0.6
MOST_ACTIVE_MIN_BETS = 20
TAIL_FADE_MIN_WINS = 3
ROOKIE_MAX_ACCOUNT_DAYS = 7
ROOKIE_MIN_BETS = 5
SUNDAY_SWEEP_MIN_BETS = 3


@dataclass(frozen=True)
class BadgeDefinition:
    id: str
    name: str
    emoji: str
    description: str


BADGES: Tuple[BadgeDefinition, ...] = (
    BadgeDefinition("hot_streak", "Hot Streak", "🔥", "3+ wins in a row this week"),
    BadgeDefinition("profit_king", "Profit King", "💰", "Highest profit this week"),
    BadgeDefinition("riding_wave", "Riding the Wave", "🌊", "Most successful tails this week"),
    BadgeDefinition("sharp", "Sharp", "🎯", "Best win rate this week (10+ bets)"),
    BadgeDefinition("fade_god", "Fade God", "🎪", "Most successful fades this week"),
    BadgeDefinition("most_active", "Most Active", "⚡", "Most bets placed this week (20+)"),
    BadgeDefinition("rookie", "Rookie", "🐣", "New this week and already 5+ bets in"),
    BadgeDefinition("ghost", "Ghost", "👻", "Posted this week without placing a bet"),
    BadgeDefinition("sunday_sweep", "Sunday Sweep", "🧹", "Won every Sunday bet (3+)"),
)

BADGES_BY_ID = {badge.id: badge for badge in BADGES}


def _top_user(scores: Dict[str, float]) -> Optional[Tuple[str, float]]:
    if not scores:
        return None
    user_id, score = min(scores.items(), key=lambda item: (-item[1], item[0]))
    return user_id, score


def _group_by_user(bets: Iterable[Bet]) -> Dict[str, List[Bet]]:
    grouped: Dict[str, List[Bet]] = defaultdict(list)
    for bet in bets:
        grouped[bet.user_id].append(bet)
    for user_bets in grouped.values():
        user_bets.sort(key=lambda b: (b.created_at, b.id))
    return grouped


class BadgeCalculator:
    """
    Computes the qualifying users for every badge in the catalogue.

    Args:
        db: Database session (read only)
        now: Reference time for the window (defaults to current UTC time)
        window_days: Trailing window length
    """

    def __init__(self, db: Session, now: Optional[datetime] = None, window_days: int = 7):
        self.db = db
        self.now = now or utcnow()
        self.window_start = self.now - timedelta(days=window_days)
        self.bets = BetRepository(db)
        self._window_bets: Optional[List[Bet]] = None

    @property
    def window_bets(self) -> List[Bet]:
        if self._window_bets is None:
            self._window_bets = self.bets.find_since(self.window_start, until=self.now)
        return self._window_bets

    def calculators(self) -> Dict[str, Callable[[], List[str]]]:
        return {
            "hot_streak": self.hot_streak,
            "profit_king": self.profit_king,
            "riding_wave": self.riding_wave,
            "sharp": self.sharp,
            "fade_god": self.fade_god,
            "most_active": self.most_active,
            "rookie": self.rookie,
            "ghost": self.ghost,
            "sunday_sweep": self.sunday_sweep,
        }

    def calculate_all(self) -> Dict[str, List[str]]:
        """Badge id -> sorted list of qualifying user ids."""
        return {badge_id: sorted(calc()) for badge_id, calc in self.calculators().items()}

    # ========================================================================
    # Streak / profit / rate / volume
    # ========================================================================

    def hot_streak(self) -> List[str]:
        """Users with HOT_STREAK_MIN+ consecutive wins among decided bets."""
        decided = [b for b in self.window_bets if b.status in ("won", "lost")]
        qualified = []
        for user_id, user_bets in _group_by_user(decided).items():
            run = best = 0
            for bet in user_bets:
                run = run + 1 if bet.status == "won" else 0
                best = max(best, run)
            if best >= HOT_STREAK_MIN:
                qualified.append(user_id)
        return qualified

    def profit_king(self) -> List[str]:
        profits: Dict[str, int] = defaultdict(int)
        for bet in self.window_bets:
            if bet.status in ("won", "lost", "push"):
                profits[bet.user_id] += (bet.actual_win or 0) - bet.stake

        top = _top_user(profits)
        if top and top[1] > 0:
            return [top[0]]
        return []

    def sharp(self) -> List[str]:
        """Best win rate among users with enough decided bets to matter."""
        totals: Dict[str, List[int]] = defaultdict(lambda: [0, 0])
        for bet in self.window_bets:
            if bet.status in ("won", "lost"):
                totals[bet.user_id][1] += 1
                if bet.status == "won":
                    totals[bet.user_id][0] += 1

        rates = {
            user_id: wins / total
            for user_id, (wins, total) in totals.items()
            if total >= SHARP_MIN_BETS
        }
        top = _top_user(rates)
        if top and top[1] >= SHARP_MIN_WIN_RATE:
            return [top[0]]
        return []

    def most_active(self) -> List[str]:
        counts: Dict[str, int] = defaultdict(int)
        for bet in self.window_bets:
            counts[bet.user_id] += 1

        top = _top_user(counts)
        if top and top[1] >= MOST_ACTIVE_MIN_BETS:
            return [top[0]]
        return []

    # ========================================================================
    # Behavioral
    # ========================================================================

    def _top_winning(self, flag: str) -> List[str]:
        counts: Dict[str, int] = defaultdict(int)
        for bet in self.window_bets:
            if getattr(bet, flag) and bet.status == "won":
                counts[bet.user_id] += 1

        top = _top_user(counts)
        if top and top[1] >= TAIL_FADE_MIN_WINS:
            return [top[0]]
        return []

    def riding_wave(self) -> List[str]:
        return self._top_winning("is_tail")

    def fade_god(self) -> List[str]:
        return self._top_winning("is_fade")

    # ========================================================================
    # Cohort / inverse / calendar
    # ========================================================================

    def rookie(self) -> List[str]:
        """Accounts younger than a week that already cleared the activity floor."""
        cutoff = self.now - timedelta(days=ROOKIE_MAX_ACCOUNT_DAYS)
        new_user_ids = {
            row[0] for row in self.db.query(User.id).filter(User.created_at >= cutoff).all()
        }
        counts: Dict[str, int] = defaultdict(int)
        for bet in self.window_bets:
            if bet.user_id in new_user_ids:
                counts[bet.user_id] += 1
        return [user_id for user_id, count in counts.items() if count >= ROOKIE_MIN_BETS]

    def ghost(self) -> List[str]:
        """Users who posted in the window but placed no bets."""
        posters = {
            row[0] for row in self.db.query(Post.user_id).filter(
                Post.created_at >= self.window_start,
                Post.created_at < self.now
            ).distinct().all()
        }
        bettors = {bet.user_id for bet in self.window_bets}
        return list(posters - bettors)

    def sunday_sweep(self) -> List[str]:
        """Users who won every decided bet placed on the most recent Sunday."""
        sunday = most_recent_sunday(self.now)
        sunday_bets = self.bets.find_since(
            sunday, until=sunday + timedelta(days=1), statuses=("won", "lost")
        )

        records: Dict[str, List[int]] = defaultdict(lambda: [0, 0])
        for bet in sunday_bets:
            records[bet.user_id][1] += 1
            if bet.status == "won":
                records[bet.user_id][0] += 1

        return [
            user_id
            for user_id, (wins, total) in records.items()
            if total >= SUNDAY_SWEEP_MIN_BETS and wins == total
        ]
