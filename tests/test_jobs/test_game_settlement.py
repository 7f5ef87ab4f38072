"""Tests for the game-settlement job.

Test Strategy:
1. Only completed games with both scores and pending bets are candidates
2. Dry runs preview without writing
3. A malformed bet fails the run but the rest of the game still settles
4. Re-running after settlement finds nothing to do
5. A store error on a later game rolls back every game in the run
6. Settled users get their badges refreshed in the same transaction
"""
from datetime import timedelta

import pytest
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import Session

from snapbet_jobs.jobs import GameSettlementJob
from snapbet_jobs.jobs.base import JobOptions
from snapbet_jobs.models import BadgeHistory, Bankroll, Bet, JobExecution, Notification, UserBadge
from snapbet_jobs.services.betting.settlement_service import SettlementService


class TestGameSettlementJob:
    """Test suite for GameSettlementJob."""

    # Candidate selection
    # ─────────────────────────────────────────────────────────────

    @pytest.mark.asyncio
    async def test_nothing_to_settle(self, session_factory, create_user, create_game, create_bet):
        """Should report no games when only scheduled games have pending bets."""
        create_bet(create_user(), create_game(status="scheduled"))

        result = await GameSettlementJob(session_factory).execute()

        assert result.success is True
        assert result.message == "No games to settle"
        assert result.affected == 0

    @pytest.mark.asyncio
    async def test_settles_completed_games(self, db_session: Session, session_factory,
                                           create_user, create_game, create_bet):
        """Should settle every pending bet on completed games and credit bankrolls."""
        user = create_user(balance=0)
        game = create_game(status="completed", home_score=112, away_score=108)
        create_bet(user, game, stake=2000)
        create_bet(user, game, bet_type="total", bet_details={"total_type": "over", "line": 215.5})
        missing_score = create_game(status="completed", home_score=None, away_score=None)
        untouched = create_bet(user, missing_score)

        result = await GameSettlementJob(session_factory).execute()

        db_session.expire_all()
        assert result.success is True
        assert result.message == "Settled 1 games with 2 bets"
        assert result.affected == 2
        assert result.details["total_paid_out"] == 3818 + 1909
        assert db_session.query(Bankroll).one().balance == 3818 + 1909
        assert db_session.get(Bet, untouched.id).status == "pending"

    # Dry run / idempotence
    # ─────────────────────────────────────────────────────────────

    @pytest.mark.asyncio
    async def test_dry_run_previews(self, db_session: Session, session_factory,
                                    create_user, create_game, create_bet):
        """Should preview counts and leave every bet pending."""
        user = create_user()
        game = create_game(status="completed", home_score=112, away_score=108)
        create_bet(user, game, stake=2000)

        result = await GameSettlementJob(session_factory).execute(JobOptions(dry_run=True))

        db_session.expire_all()
        assert result.message == "Would settle 1 games with 1 bets"
        assert result.details["wins"] == 1
        assert result.details["total_winnings"] == 3818
        assert db_session.query(Bet).filter(Bet.status == "pending").count() == 1

    @pytest.mark.asyncio
    async def test_second_run_is_noop(self, db_session: Session, session_factory,
                                      create_user, create_game, create_bet):
        """Should find no candidates once a game is settled."""
        user = create_user(balance=0)
        game = create_game(status="completed", home_score=112, away_score=108)
        create_bet(user, game, stake=2000)

        await GameSettlementJob(session_factory).execute()
        second = await GameSettlementJob(session_factory).execute()

        db_session.expire_all()
        assert second.message == "No games to settle"
        assert db_session.query(Bankroll).one().balance == 3818

    # Errors
    # ─────────────────────────────────────────────────────────────

    @pytest.mark.asyncio
    async def test_malformed_bet_reported(self, db_session: Session, session_factory,
                                          create_user, create_game, create_bet):
        """Should report a partial success with the error and settle the valid bet."""
        user = create_user()
        game = create_game(status="completed", home_score=112, away_score=108)
        create_bet(user, game, bet_type="moneyline", bet_details={})
        create_bet(user, game, stake=2000)

        result = await GameSettlementJob(session_factory).execute()

        assert result.success is False
        assert result.message == "Settled 1 games with 1 bets (1 errors)"
        assert result.details["error_count"] == 1
        assert "moneyline" in result.details["errors"][0]

    @pytest.mark.asyncio
    async def test_limit_caps_games(self, session_factory, create_user, create_game, create_bet):
        """Should settle at most `limit` games."""
        user = create_user()
        for _ in range(3):
            create_bet(user, create_game(status="completed", home_score=100, away_score=90))

        result = await GameSettlementJob(session_factory).execute(JobOptions(limit=2))

        assert result.details["settled_games"] == 2

    @pytest.mark.asyncio
    async def test_store_error_rolls_back_every_game(self, db_session: Session, session_factory,
                                                     create_user, create_game, create_bet, monkeypatch):
        """Should leave the first game unsettled when the second game hits a store error."""
        user = create_user(balance=500)
        first = create_bet(user, create_game(status="completed", home_score=112, away_score=108), stake=2000)
        create_bet(user, create_game(status="completed", home_score=100, away_score=90), stake=2000)

        real_settle = SettlementService.settle_game
        calls = []

        async def flaky_settle(self, game_id, commit=True):
            calls.append(game_id)
            if len(calls) == 2:
                raise OperationalError("UPDATE bankrolls", {}, Exception("database is locked"))
            return await real_settle(self, game_id, commit=commit)

        monkeypatch.setattr(SettlementService, "settle_game", flaky_settle)

        result = await GameSettlementJob(session_factory).execute()

        db_session.expire_all()
        assert len(calls) == 2
        assert result.success is False
        assert result.affected == 0
        assert result.details["error_type"] == "OperationalError"
        assert db_session.get(Bet, first.id).status == "pending"
        assert db_session.query(Bankroll).one().balance == 500
        assert db_session.query(Notification).count() == 0
        assert db_session.query(JobExecution).one().success is False

    @pytest.mark.asyncio
    async def test_dry_run_reports_unresolvable_bets(self, session_factory, create_user, create_game, create_bet):
        """Should mark a preview failed when some bets cannot be resolved."""
        user = create_user()
        game = create_game(status="completed", home_score=112, away_score=108)
        create_bet(user, game, bet_type="moneyline", bet_details={})
        create_bet(user, game, stake=2000)

        result = await GameSettlementJob(session_factory).execute(JobOptions(dry_run=True))

        assert result.success is False
        assert result.message == "Would settle 1 games with 1 bets (1 errors)"
        assert result.details["error_count"] == 1

    # Badges
    # ─────────────────────────────────────────────────────────────

    @pytest.mark.asyncio
    async def test_refreshes_badges_for_settled_users(self, db_session: Session, session_factory,
                                                      create_user, create_game, create_bet, now):
        """Should award badges earned by the settled bets and log them in history."""
        winner = create_user()
        bystander = create_user()
        game = create_game(status="completed", home_score=112, away_score=108)
        for i in range(3):
            create_bet(winner, game, stake=2000, created_at=now - timedelta(hours=5 - i))
        db_session.add(UserBadge(user_id=bystander.id, badge_id="ghost", earned_at=now))
        db_session.commit()

        result = await GameSettlementJob(session_factory).execute()

        db_session.expire_all()
        active = {
            row.badge_id for row in db_session.query(UserBadge)
            .filter(UserBadge.user_id == winner.id, UserBadge.lost_at.is_(None))
        }
        assert "hot_streak" in active
        assert result.details["affected_users"] == 1
        assert result.details["badges_earned"] == len(active)
        assert db_session.query(BadgeHistory).filter(BadgeHistory.user_id == winner.id).count() == len(active)
        bystander_badge = db_session.query(UserBadge).filter(UserBadge.user_id == bystander.id).one()
        assert bystander_badge.lost_at is None
