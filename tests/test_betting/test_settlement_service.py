"""Integration tests for SettlementService against an in-memory database.

Test Strategy:
1. The 112-108 scenario: terminal statuses, credited amounts, bankroll balances
2. Idempotence: settling a game twice changes nothing the second time
3. Push neutrality: a push returns exactly the stake and touches no W/L counters
4. Per-bet errors are collected while the rest of the game settles
5. Preview never writes; manual settlement records the score first
"""
import pytest
from sqlalchemy.orm import Session

from snapbet_jobs.core.exceptions import GameNotFoundError, GameNotSettleableError
from snapbet_jobs.models import Bankroll, Bet, Notification
from snapbet_jobs.services.betting.settlement_service import SettlementService


def bankroll_for(db: Session, user) -> Bankroll:
    return db.query(Bankroll).filter(Bankroll.user_id == user.id).one()


class TestSettleGame:
    """Test suite for settle_game."""

    # Core scenario
    # ─────────────────────────────────────────────────────────────

    @pytest.mark.asyncio
    async def test_112_108_scenario(self, db_session: Session, create_user, create_game, create_bet):
        """Should settle a spread and a total bet with the expected amounts and balances."""
        alice = create_user(balance=50000)
        bob = create_user(balance=50000)
        game = create_game(status="completed", home_score=112, away_score=108)
        b1 = create_bet(alice, game, bet_type="spread",
                        bet_details={"team": game.home_team, "line": -3.5}, stake=2000)
        b2 = create_bet(bob, game, bet_type="total",
                        bet_details={"total_type": "over", "line": 215.5}, stake=1000)

        result = await SettlementService(db_session).settle_game(game.id)

        assert result.settled_count == 2
        assert result.wins == 2
        assert result.total_paid_out == 3818 + 1909
        assert result.errors == []

        db_session.expire_all()
        assert db_session.get(Bet, b1.id).status == "won"
        assert db_session.get(Bet, b1.id).actual_win == 3818
        assert db_session.get(Bet, b2.id).actual_win == 1909
        assert db_session.get(Bet, b1.id).settled_at is not None
        assert bankroll_for(db_session, alice).balance == 50000 + 3818
        assert bankroll_for(db_session, bob).balance == 50000 + 1909

    @pytest.mark.asyncio
    async def test_lost_bet_credits_nothing(self, db_session: Session, create_user, create_game, create_bet):
        """Should mark a losing bet lost with actual_win 0 and leave the balance unchanged."""
        user = create_user(balance=10000)
        game = create_game(status="completed", home_score=100, away_score=110)
        bet = create_bet(user, game, bet_type="moneyline", bet_details={"team": game.home_team}, stake=1500)

        await SettlementService(db_session).settle_game(game.id)

        db_session.expire_all()
        settled = db_session.get(Bet, bet.id)
        assert settled.status == "lost"
        assert settled.actual_win == 0
        bankroll = bankroll_for(db_session, user)
        assert bankroll.balance == 10000
        assert bankroll.loss_count == 1
        assert bankroll.biggest_loss == 1500

    # Idempotence
    # ─────────────────────────────────────────────────────────────

    @pytest.mark.asyncio
    async def test_settling_twice_is_a_noop(self, db_session: Session, create_user, create_game, create_bet):
        """Should settle nothing and credit nothing on a second run."""
        user = create_user(balance=0)
        game = create_game(status="completed", home_score=112, away_score=108)
        create_bet(user, game, stake=2000)

        service = SettlementService(db_session)
        first = await service.settle_game(game.id)
        db_session.expire_all()
        balance_after_first = bankroll_for(db_session, user).balance
        notifications_after_first = db_session.query(Notification).count()

        second = await service.settle_game(game.id)
        db_session.expire_all()

        assert first.settled_count == 1
        assert second.settled_count == 0
        assert second.total_paid_out == 0
        assert bankroll_for(db_session, user).balance == balance_after_first
        assert db_session.query(Notification).count() == notifications_after_first

    # Push neutrality
    # ─────────────────────────────────────────────────────────────

    @pytest.mark.asyncio
    async def test_push_returns_exact_stake(self, db_session: Session, create_user, create_game, create_bet):
        """Should return the stake and only bump push_count."""
        user = create_user(balance=20000)
        game = create_game(status="completed", home_score=108, away_score=104)
        bet = create_bet(user, game, bet_details={"team": game.home_team, "line": -4}, stake=3000)

        result = await SettlementService(db_session).settle_game(game.id)

        db_session.expire_all()
        bankroll = bankroll_for(db_session, user)
        assert result.pushes == 1
        assert db_session.get(Bet, bet.id).status == "push"
        assert db_session.get(Bet, bet.id).actual_win == 3000
        assert bankroll.balance == 23000
        assert bankroll.push_count == 1
        assert bankroll.win_count == 0
        assert bankroll.loss_count == 0

    # Errors
    # ─────────────────────────────────────────────────────────────

    @pytest.mark.asyncio
    async def test_malformed_bet_is_skipped(self, db_session: Session, create_user, create_game, create_bet):
        """Should collect an error for a malformed bet, leave it pending and settle the rest."""
        user = create_user()
        game = create_game(status="completed", home_score=112, away_score=108)
        bad = create_bet(user, game, bet_type="spread", bet_details={"team": game.home_team})
        good = create_bet(user, game, bet_type="total", bet_details={"total_type": "over", "line": 200})

        result = await SettlementService(db_session).settle_game(game.id)

        db_session.expire_all()
        assert result.settled_count == 1
        assert len(result.errors) == 1
        assert bad.id in result.errors[0]
        assert db_session.get(Bet, bad.id).status == "pending"
        assert db_session.get(Bet, good.id).status == "won"

    @pytest.mark.asyncio
    async def test_missing_bankroll_is_per_bet_error(self, db_session: Session, create_user, create_game, create_bet):
        """Should skip a bet whose owner has no bankroll row."""
        user = create_user(with_bankroll=False)
        game = create_game(status="completed", home_score=112, away_score=108)
        bet = create_bet(user, game)

        result = await SettlementService(db_session).settle_game(game.id)

        db_session.expire_all()
        assert result.settled_count == 0
        assert "no bankroll" in result.errors[0]
        assert db_session.get(Bet, bet.id).status == "pending"

    @pytest.mark.asyncio
    async def test_incomplete_game_rejected(self, db_session: Session, create_game):
        """Should refuse to settle a game without a final score."""
        game = create_game(status="live", home_score=50, away_score=48)

        with pytest.raises(GameNotSettleableError):
            await SettlementService(db_session).settle_game(game.id)

    @pytest.mark.asyncio
    async def test_unknown_game(self, db_session: Session):
        """Should raise GameNotFoundError for an unknown id."""
        with pytest.raises(GameNotFoundError):
            await SettlementService(db_session).settle_game("missing")

    # Side effects
    # ─────────────────────────────────────────────────────────────

    @pytest.mark.asyncio
    async def test_outcome_notification_queued(self, db_session: Session, create_user, create_game, create_bet):
        """Should queue one bet_outcome notification per settled bet."""
        user = create_user()
        game = create_game(status="completed", home_score=112, away_score=108)
        bet = create_bet(user, game, stake=2000)

        await SettlementService(db_session).settle_game(game.id)

        notification = db_session.query(Notification).one()
        assert notification.user_id == user.id
        assert notification.type == "bet_outcome"
        assert notification.data["bet_id"] == bet.id
        assert notification.data["status"] == "won"
        assert notification.data["actual_win"] == 3818


class TestPreviewSettlement:
    """Test suite for the read-only preview."""

    def test_preview_writes_nothing(self, db_session: Session, create_user, create_game, create_bet):
        """Should tally outcomes while every bet stays pending."""
        user = create_user()
        game = create_game(status="completed", home_score=112, away_score=108)
        create_bet(user, game, stake=2000)
        create_bet(user, game, bet_type="total", bet_details={"total_type": "under", "line": 215.5})

        preview = SettlementService(db_session).preview_settlement(game.id)

        assert preview.total_bets == 2
        assert preview.wins == 1
        assert preview.losses == 1
        assert preview.total_staked == 3000
        assert preview.total_winnings == 3818
        assert db_session.query(Bet).filter(Bet.status == "pending").count() == 2

    def test_preview_with_hypothetical_score(self, db_session: Session, create_user, create_game, create_bet):
        """Should preview against a supplied score for a game that is not final yet."""
        user = create_user()
        game = create_game(status="live")
        create_bet(user, game, bet_type="moneyline", bet_details={"team": game.away_team})

        preview = SettlementService(db_session).preview_settlement(game.id, final_score=(99, 101))

        assert preview.wins == 1
        db_session.expire_all()
        assert db_session.get(type(game), game.id).home_score is None


class TestSettleManually:
    """Test suite for recording a score by hand."""

    @pytest.mark.asyncio
    async def test_records_score_and_settles(self, db_session: Session, create_user, create_game, create_bet):
        """Should mark the game completed with the given score and settle its bets."""
        user = create_user(balance=0)
        game = create_game(status="live")
        create_bet(user, game, stake=2000)

        result = await SettlementService(db_session).settle_manually(game.id, 112, 108)

        db_session.expire_all()
        refreshed = db_session.get(type(game), game.id)
        assert refreshed.status == "completed"
        assert (refreshed.home_score, refreshed.away_score) == (112, 108)
        assert result.settled_count == 1
        assert bankroll_for(db_session, user).balance == 3818

    @pytest.mark.asyncio
    async def test_existing_score_requires_force(self, db_session: Session, create_game):
        """Should refuse to overwrite a recorded score without force."""
        game = create_game(status="completed", home_score=100, away_score=90)

        with pytest.raises(GameNotSettleableError, match="already has a final score"):
            await SettlementService(db_session).settle_manually(game.id, 90, 100)

    @pytest.mark.asyncio
    async def test_force_overwrites_score(self, db_session: Session, create_game):
        """Should overwrite the score when forced."""
        game = create_game(status="completed", home_score=100, away_score=90)

        await SettlementService(db_session).settle_manually(game.id, 90, 100, force=True)

        db_session.expire_all()
        assert db_session.get(type(game), game.id).home_score == 90

    @pytest.mark.asyncio
    async def test_cancelled_game_rejected(self, db_session: Session, create_game):
        """Should never settle a cancelled game."""
        game = create_game(status="cancelled")

        with pytest.raises(GameNotSettleableError, match="cancelled"):
            await SettlementService(db_session).settle_manually(game.id, 1, 0)

    @pytest.mark.asyncio
    async def test_negative_score_rejected(self, db_session: Session, create_game):
        """Should reject negative scores."""
        game = create_game(status="live")

        with pytest.raises(GameNotSettleableError, match="negative"):
            await SettlementService(db_session).settle_manually(game.id, -1, 3)
