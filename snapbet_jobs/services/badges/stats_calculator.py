"""
Lifetime betting statistics, recomputed from the full settled-bet ledger.

Pushes are principal-neutral: they count toward push totals and per-team
counts, but never touch win/loss counts or streaks.
"""
from collections import defaultdict
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional

PERFECT_DAY_MIN_BETS = 3


@dataclass
class UserStats:
    total_bets: int = 0
    wins: int = 0
    losses: int = 0
    pushes: int = 0
    total_wagered: int = 0
    total_won: int = 0
    net_profit: int = 0
    biggest_win: int = 0
    biggest_loss: int = 0
    current_streak: int = 0  # +N on a win streak, -N on a losing streak
    best_streak: int = 0
    team_bet_counts: Dict[str, int] = field(default_factory=dict)
    daily_records: Dict[str, Dict[str, int]] = field(default_factory=dict)
    perfect_days: List[str] = field(default_factory=list)
    last_bet_date: Optional[str] = None

    @property
    def win_rate(self) -> float:
        decided = self.wins + self.losses
        return round(self.wins / decided, 4) if decided else 0.0

    def to_metadata(self) -> Dict:
        """JSON-ready payload for ``bankrolls.stats_metadata``."""
        return {
            "total_bets": self.total_bets,
            "win_rate": self.win_rate,
            "net_profit": self.net_profit,
            "current_streak": self.current_streak,
            "best_streak": self.best_streak,
            "team_bet_counts": dict(self.team_bet_counts),
            "daily_records": {day: dict(record) for day, record in self.daily_records.items()},
            "perfect_days": list(self.perfect_days),
            "last_bet_date": self.last_bet_date,
        }


def _bet_team(bet) -> Optional[str]:
    details = bet.bet_details or {}
    team = details.get("team")
    return team if isinstance(team, str) and team else None


def compute_user_stats(bets: Iterable) -> UserStats:
    """
    Aggregate a user's settled bets.

    Args:
        bets: Settled bets (won / lost / push); any other status is ignored.
            Ordered oldest first so streaks read in placement order.
    """
    stats = UserStats()
    daily: Dict[str, Dict[str, int]] = defaultdict(lambda: {"wins": 0, "losses": 0, "pushes": 0})
    teams: Dict[str, int] = defaultdict(int)
    streak = 0

    for bet in sorted(bets, key=lambda b: (b.created_at, b.id)):
        if bet.status not in ("won", "lost", "push"):
            continue

        stats.total_bets += 1
        stats.total_wagered += bet.stake
        actual_win = bet.actual_win or 0
        day = bet.created_at.date().isoformat()
        stats.last_bet_date = day

        team = _bet_team(bet)
        if team:
            teams[team] += 1

        if bet.status == "won":
            stats.wins += 1
            stats.total_won += actual_win
            stats.biggest_win = max(stats.biggest_win, actual_win - bet.stake)
            daily[day]["wins"] += 1
            streak = streak + 1 if streak > 0 else 1
            stats.best_streak = max(stats.best_streak, streak)
        elif bet.status == "lost":
            stats.losses += 1
            stats.biggest_loss = max(stats.biggest_loss, bet.stake)
            daily[day]["losses"] += 1
            streak = streak - 1 if streak < 0 else -1
        else:
            stats.pushes += 1
            daily[day]["pushes"] += 1

        stats.net_profit += actual_win - bet.stake

    stats.current_streak = streak
    stats.team_bet_counts = dict(sorted(teams.items()))
    stats.daily_records = dict(sorted(daily.items()))
    stats.perfect_days = [
        day for day, record in stats.daily_records.items()
        if record["wins"] + record["losses"] >= PERFECT_DAY_MIN_BETS and record["losses"] == 0
    ]
    return stats
