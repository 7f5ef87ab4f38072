"""
Settlement service: turns a completed game's pending bets into terminal bets.

For each pending bet on the game:
1. Resolve the outcome (won / lost / push) and the credited amount
2. Mark the bet terminal (status, actual_win, settled_at)
3. Credit the owner's bankroll under a row lock
4. Queue a bet-outcome notification

Once the game's bets are settled, badges are re-derived for the users whose
bets changed.

Per-bet problems (malformed details, missing bankroll) are collected and
reported; they never abort the rest of the game. Store errors propagate.

Bets already in a terminal status are never selected again, so settling the
same game twice is a no-op the second time.
"""
import asyncio
import logging
from dataclasses import dataclass, field
from types import SimpleNamespace
from typing import Dict, List, Optional, Set, Tuple

from sqlalchemy.orm import Session

from snapbet_jobs.core import metrics
from snapbet_jobs.core.exceptions import GameNotFoundError, GameNotSettleableError, InvalidBetError
from snapbet_jobs.models import Bankroll, Bet, Game, Notification
from snapbet_jobs.repositories import BankrollRepository, BetRepository, GameRepository
from snapbet_jobs.services.badges.badge_calculator import BadgeCalculator
from snapbet_jobs.services.badges.badge_ledger import BadgeLedger
from snapbet_jobs.services.betting.outcome_calculator import LOST, PUSH, WON, Outcome, calculate_outcome
from snapbet_jobs.utils.timezone import utcnow

logger = logging.getLogger(__name__)


@dataclass
class SettlementResult:
    """What one settle_game call changed."""
    game_id: str
    settled_count: int = 0
    total_paid_out: int = 0
    wins: int = 0
    losses: int = 0
    pushes: int = 0
    errors: List[str] = field(default_factory=list)
    affected_user_ids: Set[str] = field(default_factory=set)
    badges_earned: int = 0
    badges_lost: int = 0

    def to_dict(self) -> Dict:
        return {
            "game_id": self.game_id,
            "settled_count": self.settled_count,
            "total_paid_out": self.total_paid_out,
            "wins": self.wins,
            "losses": self.losses,
            "pushes": self.pushes,
            "errors": list(self.errors),
            "affected_user_ids": sorted(self.affected_user_ids),
            "badges_earned": self.badges_earned,
            "badges_lost": self.badges_lost,
        }


@dataclass
class SettlementPreview:
    """Read-only tally of what settling a game would do."""
    game_id: str
    total_bets: int = 0
    wins: int = 0
    losses: int = 0
    pushes: int = 0
    total_staked: int = 0
    total_winnings: int = 0
    errors: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict:
        return {
            "game_id": self.game_id,
            "total_bets": self.total_bets,
            "wins": self.wins,
            "losses": self.losses,
            "pushes": self.pushes,
            "total_staked": self.total_staked,
            "total_winnings": self.total_winnings,
            "errors": list(self.errors),
        }


class SettlementService:
    """Settles bets for completed games."""

    def __init__(self, db: Session, badge_window_days: int = 7):
        self.db = db
        self.badge_window_days = badge_window_days
        self.games = GameRepository(db)
        self.bets = BetRepository(db)
        self.bankrolls = BankrollRepository(db)

    # ========================================================================
    # Lookups
    # ========================================================================

    def _get_game(self, game_id: str) -> Game:
        game = self.games.find_by_id(game_id)
        if game is None:
            raise GameNotFoundError(game_id)
        return game

    @staticmethod
    def _check_settleable(game) -> None:
        if game.status != "completed":
            raise GameNotSettleableError(game.id, f"status is '{game.status}', expected 'completed'")
        if game.home_score is None or game.away_score is None:
            raise GameNotSettleableError(game.id, "final score is missing")

    # ========================================================================
    # Preview (dry run)
    # ========================================================================

    def preview_settlement(
        self,
        game_id: str,
        final_score: Optional[Tuple[int, int]] = None
    ) -> SettlementPreview:
        """
        Tally the outcome of settling a game without writing anything.

        Args:
            game_id: Game to preview
            final_score: Optional (home, away) score to preview a manual
                settlement before it is recorded
        """
        game = self._get_game(game_id)
        if final_score is not None:
            game = SimpleNamespace(
                id=game.id,
                home_team=game.home_team,
                away_team=game.away_team,
                status="completed",
                home_score=final_score[0],
                away_score=final_score[1],
            )
        self._check_settleable(game)

        preview = SettlementPreview(game_id=game_id)
        for bet in self.bets.find_pending_for_game(game_id):
            try:
                outcome = calculate_outcome(bet, game)
            except (InvalidBetError, ValueError) as e:
                preview.errors.append(str(e))
                continue

            preview.total_bets += 1
            preview.total_staked += bet.stake
            preview.total_winnings += outcome.actual_win
            if outcome.status == WON:
                preview.wins += 1
            elif outcome.status == LOST:
                preview.losses += 1
            else:
                preview.pushes += 1

        return preview

    # ========================================================================
    # Settlement
    # ========================================================================

    async def settle_game(self, game_id: str, commit: bool = True) -> SettlementResult:
        """
        Settle every pending bet on a completed game.

        Args:
            game_id: Game to settle
            commit: Commit when done (the caller owns the transaction if False)

        Returns:
            SettlementResult with counts, payout total and per-bet errors

        Raises:
            GameNotFoundError: unknown game id
            GameNotSettleableError: game not completed or missing a score
        """
        game = self._get_game(game_id)
        self._check_settleable(game)

        result = SettlementResult(game_id=game_id)
        now = utcnow()
        locked: Dict[str, Bankroll] = {}

        for bet in self.bets.find_pending_for_game(game_id):
            try:
                outcome = calculate_outcome(bet, game)
            except (InvalidBetError, ValueError) as e:
                logger.warning(f"⚠️ Skipping bet {bet.id}: {e}")
                result.errors.append(str(e))
                continue

            bankroll = locked.get(bet.user_id)
            if bankroll is None:
                bankroll = self.bankrolls.lock_for_user(bet.user_id)
                if bankroll is None:
                    result.errors.append(f"Bet {bet.id}: no bankroll for user {bet.user_id}")
                    continue
                locked[bet.user_id] = bankroll

            bet.status = outcome.status
            bet.actual_win = outcome.actual_win
            bet.settled_at = now

            self._credit_bankroll(bankroll, bet, outcome)
            self._queue_notification(bet, outcome, game)

            result.settled_count += 1
            result.total_paid_out += outcome.actual_win
            result.affected_user_ids.add(bet.user_id)
            if outcome.status == WON:
                result.wins += 1
            elif outcome.status == LOST:
                result.losses += 1
            else:
                result.pushes += 1
            metrics.record_bet_settled(outcome.status)

            await asyncio.sleep(0)

        if result.affected_user_ids:
            changes = self._refresh_badges(result.affected_user_ids, now)
            result.badges_earned = len(changes.earned)
            result.badges_lost = len(changes.lost)

        if commit:
            self.db.commit()

        logger.info(
            f"✅ Game {game_id}: settled {result.settled_count} bets, "
            f"paid out {result.total_paid_out} ({len(result.errors)} errors)"
        )
        return result

    async def settle_manually(
        self,
        game_id: str,
        home_score: int,
        away_score: int,
        force: bool = False
    ) -> SettlementResult:
        """
        Record a final score by hand and settle the game.

        Refuses to overwrite an existing final score unless ``force`` is set.
        """
        game = self._get_game(game_id)

        if game.status == "cancelled":
            raise GameNotSettleableError(game_id, "game was cancelled")
        if game.home_score is not None and game.away_score is not None and not force:
            raise GameNotSettleableError(
                game_id,
                f"already has a final score ({game.home_score}-{game.away_score}); use force to override"
            )
        if home_score < 0 or away_score < 0:
            raise GameNotSettleableError(game_id, "scores cannot be negative")

        game.home_score = home_score
        game.away_score = away_score
        game.status = "completed"
        game.last_updated = utcnow()
        self.db.flush()

        logger.info(f"📝 Recorded final score for {game.away_team} @ {game.home_team}: {away_score}-{home_score}")
        return await self.settle_game(game_id)

    # ========================================================================
    # Side effects
    # ========================================================================

    def _refresh_badges(self, user_ids: Set[str], now):
        awards = BadgeCalculator(self.db, now=now, window_days=self.badge_window_days).calculate_all()
        return BadgeLedger(self.db, now=now).apply(awards, user_ids=user_ids)

    @staticmethod
    def _credit_bankroll(bankroll: Bankroll, bet: Bet, outcome: Outcome) -> None:
        """Apply one settled bet to a locked bankroll row."""
        bankroll.balance += outcome.actual_win

        if outcome.status == WON:
            bankroll.win_count += 1
            bankroll.total_won += outcome.actual_win
            bankroll.biggest_win = max(bankroll.biggest_win, outcome.actual_win - bet.stake)
        elif outcome.status == LOST:
            bankroll.loss_count += 1
            bankroll.biggest_loss = max(bankroll.biggest_loss, bet.stake)
        elif outcome.status == PUSH:
            bankroll.push_count += 1

        bankroll.season_high = max(bankroll.season_high, bankroll.balance)
        bankroll.season_low = min(bankroll.season_low, bankroll.balance)

    def _queue_notification(self, bet: Bet, outcome: Outcome, game: Game) -> None:
        if outcome.status == WON:
            message = f"Your bet won! +${(outcome.actual_win - bet.stake) / 100:.2f}"
        elif outcome.status == PUSH:
            message = "Your bet pushed. Stake returned."
        else:
            message = "Your bet lost."

        self.db.add(Notification(
            user_id=bet.user_id,
            type="bet_outcome",
            data={
                "bet_id": bet.id,
                "game_id": game.id,
                "status": outcome.status,
                "stake": bet.stake,
                "actual_win": outcome.actual_win,
                "matchup": f"{game.away_team} @ {game.home_team}",
                "message": message,
            },
        ))
