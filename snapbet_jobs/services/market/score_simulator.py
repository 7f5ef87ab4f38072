"""
Simulated scoring for live games.

There is no live score feed: each run advances a live game's score toward
the pace expected for the minutes played, leaning toward the spread favorite.
A game that reaches the end of its window without a score gets a final score
derived from its posted spread and total.

Pace per sport:
- NBA: ~220 combined points over 48 minutes, added evenly with +/-2 noise
- NFL: ~45 combined points over 60 minutes, added as scoring plays
  (field goal 40%, touchdown + PAT 50%, touchdown + 2pt 10%)
- anything else keeps its current score
"""
import random
from dataclasses import dataclass
from datetime import datetime
from typing import Optional, Tuple

from snapbet_jobs.utils.timezone import utcnow

NBA = "basketball_nba"
NFL = "americanfootball_nfl"

# Expected combined points and regulation minutes by sport key
SCORING_PACE = {
    NBA: (220, 48),
    NFL: (45, 60),
}
DEFAULT_GAME_MINUTES = 90

# Final-score variance (+/- points per side)
FINAL_VARIANCE = {NBA: 10}
DEFAULT_FINAL_VARIANCE = 3

FIELD_GOAL_SHARE = 0.4
TOUCHDOWN_SHARE = 0.9
POINTS_PER_PLAY = 5


@dataclass(frozen=True)
class Score:
    home: int
    away: int


def posted_lines(odds_data: Optional[dict]) -> Tuple[float, Optional[float]]:
    """(home spread, total) from the first bookmaker; spread 0 and no total when absent."""
    bookmakers = (odds_data or {}).get("bookmakers") or []
    markets = (bookmakers[0].get("markets") if bookmakers else None) or {}
    spread = (markets.get("spreads") or {}).get("line") or 0
    total = (markets.get("totals") or {}).get("line")
    return float(spread), total


class ScoreSimulator:
    """
    Advances live scores and invents final scores.

    Args:
        rng: Random source; pass a seeded ``random.Random`` for reproducible runs
    """

    def __init__(self, rng: Optional[random.Random] = None):
        self.rng = rng or random.Random()

    def progress(self, game, now: Optional[datetime] = None) -> float:
        """Share of regulation played, between 0 and 1."""
        now = now or utcnow()
        _, minutes = SCORING_PACE.get(game.sport, (0, DEFAULT_GAME_MINUTES))
        elapsed = (now - game.commence_time).total_seconds() / 60
        return min(1.0, max(0.0, elapsed / minutes))

    def advance(self, game, now: Optional[datetime] = None) -> Score:
        """Next live score for a game; never lower than the current one."""
        current = Score(game.home_score or 0, game.away_score or 0)
        if game.sport not in SCORING_PACE:
            return current

        spread, _ = posted_lines(game.odds_data)
        progress = self.progress(game, now)
        expected_total = SCORING_PACE[game.sport][0] * progress

        if current.home + current.away >= expected_total:
            return current
        if game.sport == NFL:
            return self._nfl_plays(current, spread, expected_total)
        return self._nba_pace(current, spread, progress, expected_total)

    def _nba_pace(self, current: Score, spread: float, progress: float, expected_total: float) -> Score:
        points = int((expected_total - current.home - current.away) // 2)
        home_edge = int(abs(spread) * progress) if spread < 0 else 0
        away_edge = int(abs(spread) * progress) if spread > 0 else 0
        return Score(
            home=max(current.home, current.home + points + home_edge + self.rng.randint(-2, 2)),
            away=max(current.away, current.away + points + away_edge + self.rng.randint(-2, 2)),
        )

    def _nfl_plays(self, current: Score, spread: float, expected_total: float) -> Score:
        home, away = current.home, current.away
        plays = int((expected_total - home - away) // POINTS_PER_PLAY)
        # a negative home spread makes the home side more likely to score
        home_share = min(0.9, max(0.1, 0.5 - spread / 50))

        for _ in range(plays):
            roll = self.rng.random()
            if roll < FIELD_GOAL_SHARE:
                points = 3
            elif roll < TOUCHDOWN_SHARE:
                points = 7
            else:
                points = 8
            if self.rng.random() < home_share:
                home += points
            else:
                away += points
        return Score(home, away)

    def final_score(self, game) -> Score:
        """A plausible final score from the posted spread and total."""
        spread, total = posted_lines(game.odds_data)
        if total is None:
            total = SCORING_PACE.get(game.sport, (45, 0))[0]

        variance = FINAL_VARIANCE.get(game.sport, DEFAULT_FINAL_VARIANCE)
        home = int(total / 2 - spread / 2) + self.rng.randint(-variance, variance)
        away = int(total / 2 + spread / 2) + self.rng.randint(-variance, variance)
        return Score(home=max(0, home), away=max(0, away))
