"""
Bet outcome calculation.

Resolves a single bet against a final score. Pure functions only: nothing
here touches the database, so the settlement service and the dry-run preview
share exactly the same rules.

Rules:
- Spread: margin from the selected team's side plus the line;
  > 0 won, < 0 lost, == 0 push.
- Moneyline: selected team outscores the opponent to win; a tie is a push.
- Total: combined score against the line; equal is a push.

Amounts (integer cents):
- won:  stake + payout
- lost: 0
- push: stake
"""
from dataclasses import dataclass
from typing import Literal, Union

from pydantic import BaseModel, ConfigDict, ValidationError

from snapbet_jobs.core.exceptions import InvalidBetError
from snapbet_jobs.services.betting.odds_math import calculate_total_return

WON = "won"
LOST = "lost"
PUSH = "push"


class SpreadDetails(BaseModel):
    model_config = ConfigDict(extra="ignore")

    team: str
    line: float


class MoneylineDetails(BaseModel):
    model_config = ConfigDict(extra="ignore")

    team: str


class TotalDetails(BaseModel):
    model_config = ConfigDict(extra="ignore")

    total_type: Literal["over", "under"]
    line: float


BetDetails = Union[SpreadDetails, MoneylineDetails, TotalDetails]

_DETAILS_BY_TYPE = {
    "spread": SpreadDetails,
    "moneyline": MoneylineDetails,
    "total": TotalDetails,
}


@dataclass(frozen=True)
class Outcome:
    """Terminal status and amount credited back to the bankroll."""
    status: str
    actual_win: int


def parse_bet_details(bet) -> BetDetails:
    """
    Validate a bet's JSON details against its bet type.

    Raises:
        InvalidBetError: unknown bet type or details that fail validation
    """
    model = _DETAILS_BY_TYPE.get(bet.bet_type)
    if model is None:
        raise InvalidBetError(bet.id, f"unknown bet type '{bet.bet_type}'")

    try:
        return model.model_validate(bet.bet_details or {})
    except ValidationError as e:
        fields = ", ".join(".".join(str(p) for p in err["loc"]) or "details" for err in e.errors())
        raise InvalidBetError(bet.id, f"invalid {bet.bet_type} details ({fields})") from e


def _team_side(bet, game, team: str) -> str:
    team = team.strip()
    if team == game.home_team:
        return "home"
    if team == game.away_team:
        return "away"
    raise InvalidBetError(bet.id, f"team '{team}' is not playing in this game")


def _status_from_margin(margin: float) -> str:
    if margin > 0:
        return WON
    if margin < 0:
        return LOST
    return PUSH


def determine_status(bet, game) -> str:
    """
    Decide won/lost/push for a bet on a game with a final score.

    Raises:
        InvalidBetError: malformed details or a team not in the game
    """
    details = parse_bet_details(bet)
    home_score = game.home_score
    away_score = game.away_score

    if isinstance(details, TotalDetails):
        actual_total = home_score + away_score
        if details.total_type == "over":
            return _status_from_margin(actual_total - details.line)
        return _status_from_margin(details.line - actual_total)

    side = _team_side(bet, game, details.team)
    if side == "home":
        margin = home_score - away_score
    else:
        margin = away_score - home_score

    if isinstance(details, SpreadDetails):
        return _status_from_margin(margin + details.line)

    # Moneyline: a tied final score returns the stake
    return _status_from_margin(margin)


def calculate_outcome(bet, game) -> Outcome:
    """
    Resolve a bet into its terminal status and credited amount.

    Example:
        Home 112, away 108; spread bet on home -3.5, stake 2000 at -110:
        margin 112 - 108 - 3.5 = 0.5 > 0, so Outcome("won", 3818).
    """
    status = determine_status(bet, game)

    if status == WON:
        return Outcome(WON, calculate_total_return(bet.stake, bet.odds))
    if status == PUSH:
        return Outcome(PUSH, bet.stake)
    return Outcome(LOST, 0)
