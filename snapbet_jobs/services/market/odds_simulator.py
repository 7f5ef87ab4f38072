"""
Simulated market movement for upcoming games.

There is no live odds feed: lines drift on each run to emulate a market,
and drift harder as kickoff approaches.

Odds shape stored in ``games.odds_data``:
    {
        "bookmakers": [{
            "key": "snapbet",
            "title": "SnapBet",
            "last_update": "2025-01-05T18:00:00",
            "markets": {
                "h2h": {"home": -150, "away": 130},
                "spreads": {"line": -3.5, "home": -110, "away": -110},
                "totals": {"line": 225.5, "over": -110, "under": -110}
            }
        }]
    }

Each run rolls one of three outcomes per game:
- sharp move (40%): 0.5-2 point spread shift, 0.5-1.5 point total shift,
  juice skewed to the side taking action, moneyline re-derived from spread
- public move (30%): half-point nudges, moneyline +/-5
- no movement (30%)
"""
import copy
import math
import random
from dataclasses import dataclass
from datetime import datetime
from typing import Dict, Optional

from snapbet_jobs.utils.timezone import hours_until, utcnow

BOOKMAKER_KEY = "snapbet"
BOOKMAKER_TITLE = "SnapBet"

STANDARD_JUICE = -110
SHARP_JUICE = -115
SOFT_JUICE = -105

SHARP_MOVE_THRESHOLD = 0.4
PUBLIC_MOVE_THRESHOLD = 0.7

# (minimum |spread|, favorite moneyline, underdog moneyline), widest band first
MONEYLINE_BANDS = (
    (10.0, -400, 320),
    (7.0, -300, 250),
    (3.5, -200, 170),
    (1.0, -130, 110),
)
PICKEM_MONEYLINE = (-110, -110)

# Baseline combined score and +/- variance by sport key
TOTAL_BASELINES = {
    "basketball_nba": (225, 10),
}
DEFAULT_TOTAL_BASELINE = (45, 5)


def round_to_half(value: float) -> float:
    """Round to the nearest half point, halves rounding up (3.25 -> 3.5)."""
    return math.floor(value * 2 + 0.5) / 2


def movement_factor(hours_to_game: float) -> float:
    """Movement intensity: high inside 6 hours, medium inside 12, low otherwise."""
    if hours_to_game < 6:
        return 0.8
    if hours_to_game < 12:
        return 0.5
    return 0.3


def moneyline_from_spread(spread: float) -> Dict[str, int]:
    """
    Derive a moneyline from the home spread.

    A negative spread makes the home side the favorite.

    Examples:
        >>> moneyline_from_spread(-7.5)
        {'home': -300, 'away': 250}
        >>> moneyline_from_spread(2.0)
        {'home': 110, 'away': -130}
    """
    favorite, underdog = PICKEM_MONEYLINE
    for minimum, fav, dog in MONEYLINE_BANDS:
        if abs(spread) >= minimum:
            favorite, underdog = fav, dog
            break

    if spread < 0:
        return {"home": favorite, "away": underdog}
    return {"home": underdog, "away": favorite}


def _nudge_american(value: int, delta: int) -> int:
    """Shift an American price, skipping the invalid (-100, 100) gap."""
    moved = value + delta
    if -100 < moved < 100:
        moved += 200 if delta > 0 else -200
    return moved


@dataclass
class SimulatedOdds:
    odds: Dict
    movement: str  # initial, sharp, public, none


class OddsSimulator:
    """
    Evolves a game's posted lines.

    Args:
        rng: Random source; pass a seeded ``random.Random`` for reproducible runs
    """

    def __init__(self, rng: Optional[random.Random] = None):
        self.rng = rng or random.Random()

    def _sign(self) -> int:
        return -1 if self.rng.random() < 0.5 else 1

    # ========================================================================
    # Entry point
    # ========================================================================

    def simulate(self, game, now: Optional[datetime] = None) -> SimulatedOdds:
        """Return the next odds snapshot for a game (input is never mutated)."""
        now = now or utcnow()
        current = game.odds_data or {}
        bookmakers = current.get("bookmakers") or []

        if not bookmakers or not bookmakers[0].get("markets"):
            return SimulatedOdds(self.generate_initial_odds(game.sport, now), "initial")

        factor = movement_factor(max(0.0, hours_until(game.commence_time, now)))
        roll = self.rng.random()

        if roll < SHARP_MOVE_THRESHOLD:
            return SimulatedOdds(self.apply_sharp_movement(current, factor, now), "sharp")
        if roll < PUBLIC_MOVE_THRESHOLD:
            return SimulatedOdds(self.apply_public_movement(current, factor, now), "public")
        return SimulatedOdds(copy.deepcopy(current), "none")

    # ========================================================================
    # Line generation & movement
    # ========================================================================

    def generate_initial_odds(self, sport: str, now: Optional[datetime] = None) -> Dict:
        """Opening lines from a sport baseline plus bounded random variance."""
        base_total, variance = TOTAL_BASELINES.get(sport, DEFAULT_TOTAL_BASELINE)
        total = base_total + self.rng.uniform(-variance, variance)
        spread = round_to_half(self.rng.uniform(-5, 5))

        if spread < 0:
            h2h = {"home": -150, "away": 130}
        else:
            h2h = {"home": 130, "away": -150}

        return self._wrap(
            {
                "h2h": h2h,
                "spreads": {"line": spread, "home": STANDARD_JUICE, "away": STANDARD_JUICE},
                "totals": {"line": float(round(total)), "over": STANDARD_JUICE, "under": STANDARD_JUICE},
            },
            now,
        )

    def apply_sharp_movement(self, current: Dict, factor: float, now: Optional[datetime] = None) -> Dict:
        markets = copy.deepcopy(current["bookmakers"][0]["markets"])

        spread_move = self._sign() * self.rng.uniform(0.5, 2.0) * factor
        total_move = self._sign() * self.rng.uniform(0.5, 1.5) * factor

        spreads = markets.get("spreads")
        if spreads:
            spreads["line"] = round_to_half(spreads["line"] + spread_move)
            if spread_move > 0:
                spreads["home"], spreads["away"] = SHARP_JUICE, SOFT_JUICE
            else:
                spreads["home"], spreads["away"] = SOFT_JUICE, SHARP_JUICE

        totals = markets.get("totals")
        if totals:
            totals["line"] = round_to_half(totals["line"] + total_move)
            if total_move > 0:
                totals["over"], totals["under"] = SHARP_JUICE, SOFT_JUICE
            else:
                totals["over"], totals["under"] = SOFT_JUICE, SHARP_JUICE

        if markets.get("h2h") and spreads:
            markets["h2h"] = moneyline_from_spread(spreads["line"])

        return self._wrap(markets, now, base=current["bookmakers"][0])

    def apply_public_movement(self, current: Dict, factor: float, now: Optional[datetime] = None) -> Dict:
        markets = copy.deepcopy(current["bookmakers"][0]["markets"])

        spread_move = self._sign() * 0.5 * factor
        total_move = self._sign() * 0.5 * factor

        spreads = markets.get("spreads")
        if spreads:
            spreads["line"] = round_to_half(spreads["line"] + spread_move)

        totals = markets.get("totals")
        if totals:
            totals["line"] = round_to_half(totals["line"] + total_move)

        h2h = markets.get("h2h")
        if h2h:
            delta = 5 if spread_move > 0 else -5
            h2h["home"] = _nudge_american(h2h["home"], delta)
            h2h["away"] = _nudge_american(h2h["away"], -delta)

        return self._wrap(markets, now, base=current["bookmakers"][0])

    @staticmethod
    def _wrap(markets: Dict, now: Optional[datetime], base: Optional[Dict] = None) -> Dict:
        bookmaker = {
            "key": BOOKMAKER_KEY,
            "title": BOOKMAKER_TITLE,
        }
        if base:
            bookmaker.update({k: v for k, v in base.items() if k != "markets"})
        bookmaker["last_update"] = (now or utcnow()).isoformat()
        bookmaker["markets"] = markets
        return {"bookmakers": [bookmaker]}
