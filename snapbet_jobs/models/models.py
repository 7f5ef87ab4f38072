"""
Database models for the SnapBet background jobs.

Only the tables the jobs read or write are modelled here. Column names match
the app database; all timestamps are naive UTC.
"""
import uuid
from datetime import datetime

from sqlalchemy import Column, String, Integer, DateTime, ForeignKey, Boolean, Text, Index, JSON
from sqlalchemy.orm import relationship, declarative_base

from snapbet_jobs.utils.timezone import utcnow

Base = declarative_base()


def _uuid() -> str:
    return str(uuid.uuid4())


# =============================================================================
# USERS & BANKROLLS
# =============================================================================

class User(Base):
    """App user; the jobs only need identity, activity and media fields."""
    __tablename__ = "users"

    id = Column(String(36), primary_key=True, default=_uuid)
    username = Column(String(50), nullable=False, unique=True)
    avatar_url = Column(Text, nullable=True)
    referral_count = Column(Integer, nullable=False, default=0)
    created_at = Column(DateTime, nullable=False, default=utcnow)
    last_seen_at = Column(DateTime, nullable=True)

    bankroll = relationship("Bankroll", back_populates="user", uselist=False)


class Bankroll(Base):
    """
    One bankroll per user.

    Amounts are integer cents. stats_metadata carries the rolled-up
    statistics written by the stats-rollup job:
        current_streak, best_streak, perfect_days, team_bet_counts,
        daily_records, last_bet_date, total_bets, win_rate, net_profit
    """
    __tablename__ = "bankrolls"

    id = Column(String(36), primary_key=True, default=_uuid)
    user_id = Column(String(36), ForeignKey("users.id"), nullable=False, unique=True, index=True)
    balance = Column(Integer, nullable=False, default=100000)
    total_wagered = Column(Integer, nullable=False, default=0)
    total_won = Column(Integer, nullable=False, default=0)
    win_count = Column(Integer, nullable=False, default=0)
    loss_count = Column(Integer, nullable=False, default=0)
    push_count = Column(Integer, nullable=False, default=0)
    season_high = Column(Integer, nullable=False, default=100000)
    season_low = Column(Integer, nullable=False, default=100000)
    biggest_win = Column(Integer, nullable=False, default=0)
    biggest_loss = Column(Integer, nullable=False, default=0)
    weekly_deposit = Column(Integer, nullable=False, default=100000)
    last_reset = Column(DateTime, nullable=True)
    reset_count = Column(Integer, nullable=False, default=0)
    stats_metadata = Column(JSON, nullable=False, default=dict)
    updated_at = Column(DateTime, nullable=False, default=utcnow, onupdate=utcnow)

    user = relationship("User", back_populates="bankroll")


# =============================================================================
# GAMES & BETS
# =============================================================================

class Game(Base):
    """
    A scheduled or finished game.

    Scores are only populated once the game is live or completed; only
    completed games with both scores are settled.
    """
    __tablename__ = "games"

    id = Column(String(64), primary_key=True, default=_uuid)
    sport = Column(String(50), nullable=False, index=True)  # 'basketball_nba', 'americanfootball_nfl'
    sport_title = Column(String(20), nullable=True)
    home_team = Column(String(100), nullable=False)
    away_team = Column(String(100), nullable=False)
    commence_time = Column(DateTime, nullable=False, index=True)
    status = Column(String(16), nullable=False, default="scheduled", index=True)  # scheduled, live, completed, cancelled
    home_score = Column(Integer, nullable=True)
    away_score = Column(Integer, nullable=True)
    odds_data = Column(JSON, nullable=True)
    last_updated = Column(DateTime, nullable=True)
    created_at = Column(DateTime, nullable=False, default=utcnow)

    bets = relationship("Bet", back_populates="game")

    __table_args__ = (
        Index('ix_games_status_commence', 'status', 'commence_time'),
    )


class Bet(Base):
    """
    A user's wager on a game.

    bet_details by bet_type:
        spread     {"team": str, "line": float}
        moneyline  {"team": str}
        total      {"total_type": "over" | "under", "line": float}

    actual_win is set exactly when status is won, lost or push.
    """
    __tablename__ = "bets"

    id = Column(String(36), primary_key=True, default=_uuid)
    user_id = Column(String(36), ForeignKey("users.id"), nullable=False, index=True)
    game_id = Column(String(64), ForeignKey("games.id"), nullable=False, index=True)
    bet_type = Column(String(16), nullable=False)  # spread, moneyline, total
    bet_details = Column(JSON, nullable=False, default=dict)
    stake = Column(Integer, nullable=False)
    odds = Column(Integer, nullable=False)
    potential_win = Column(Integer, nullable=False, default=0)
    actual_win = Column(Integer, nullable=True)
    status = Column(String(16), nullable=False, default="pending", index=True)  # pending, won, lost, push, cancelled
    is_tail = Column(Boolean, nullable=False, default=False)
    is_fade = Column(Boolean, nullable=False, default=False)
    original_bet_id = Column(String(36), ForeignKey("bets.id"), nullable=True)
    created_at = Column(DateTime, nullable=False, default=utcnow, index=True)
    settled_at = Column(DateTime, nullable=True)
    archived = Column(Boolean, nullable=False, default=False)  # hidden from feeds, kept for stats

    game = relationship("Game", back_populates="bets")

    __table_args__ = (
        Index('ix_bets_game_status', 'game_id', 'status'),
        Index('ix_bets_user_created', 'user_id', 'created_at'),
    )


# =============================================================================
# CONTENT
# =============================================================================

class Post(Base):
    """Feed post; pick posts link to the bet they share."""
    __tablename__ = "posts"

    id = Column(String(36), primary_key=True, default=_uuid)
    user_id = Column(String(36), ForeignKey("users.id"), nullable=False, index=True)
    post_type = Column(String(16), nullable=False, default="content")  # content, pick
    bet_id = Column(String(36), ForeignKey("bets.id"), nullable=True)
    caption = Column(Text, nullable=True)
    media_url = Column(Text, nullable=True)
    thumbnail_url = Column(Text, nullable=True)
    created_at = Column(DateTime, nullable=False, default=utcnow, index=True)
    expires_at = Column(DateTime, nullable=True, index=True)
    deleted_at = Column(DateTime, nullable=True, index=True)

    bet = relationship("Bet")


class Story(Base):
    """Ephemeral story; always carries an explicit expires_at."""
    __tablename__ = "stories"

    id = Column(String(36), primary_key=True, default=_uuid)
    user_id = Column(String(36), ForeignKey("users.id"), nullable=False, index=True)
    media_url = Column(Text, nullable=True)
    created_at = Column(DateTime, nullable=False, default=utcnow)
    expires_at = Column(DateTime, nullable=False, index=True)
    deleted_at = Column(DateTime, nullable=True, index=True)


class Message(Base):
    """Chat message; ephemeral when expires_at is set."""
    __tablename__ = "messages"

    id = Column(String(36), primary_key=True, default=_uuid)
    chat_id = Column(String(36), nullable=False, index=True)
    sender_id = Column(String(36), ForeignKey("users.id"), nullable=False)
    content = Column(Text, nullable=True)
    media_url = Column(Text, nullable=True)
    created_at = Column(DateTime, nullable=False, default=utcnow)
    expires_at = Column(DateTime, nullable=True, index=True)
    deleted_at = Column(DateTime, nullable=True, index=True)


class Comment(Base):
    __tablename__ = "comments"

    id = Column(String(36), primary_key=True, default=_uuid)
    post_id = Column(String(36), nullable=False, index=True)
    user_id = Column(String(36), ForeignKey("users.id"), nullable=False)
    content = Column(Text, nullable=False, default="")
    created_at = Column(DateTime, nullable=False, default=utcnow)
    deleted_at = Column(DateTime, nullable=True, index=True)


class Reaction(Base):
    __tablename__ = "reactions"

    id = Column(String(36), primary_key=True, default=_uuid)
    post_id = Column(String(36), nullable=False, index=True)
    user_id = Column(String(36), ForeignKey("users.id"), nullable=False)
    emoji = Column(String(16), nullable=False)
    created_at = Column(DateTime, nullable=False, default=utcnow)
    archived = Column(Boolean, nullable=False, default=False)


class PickAction(Base):
    """Tail or fade of a pick post."""
    __tablename__ = "pick_actions"

    id = Column(String(36), primary_key=True, default=_uuid)
    post_id = Column(String(36), nullable=False, index=True)
    user_id = Column(String(36), ForeignKey("users.id"), nullable=False)
    action_type = Column(String(8), nullable=False)  # tail, fade
    resulting_bet_id = Column(String(36), ForeignKey("bets.id"), nullable=True)
    created_at = Column(DateTime, nullable=False, default=utcnow)
    archived = Column(Boolean, nullable=False, default=False)


class StoryView(Base):
    __tablename__ = "story_views"

    id = Column(String(36), primary_key=True, default=_uuid)
    story_id = Column(String(36), nullable=False, index=True)
    viewer_id = Column(String(36), ForeignKey("users.id"), nullable=False)
    viewed_at = Column(DateTime, nullable=False, default=utcnow)


# =============================================================================
# BADGES, NOTIFICATIONS & JOB AUDIT
# =============================================================================

class UserBadge(Base):
    """Weekly badge award; active while lost_at is NULL."""
    __tablename__ = "user_badges"

    id = Column(String(36), primary_key=True, default=_uuid)
    user_id = Column(String(36), ForeignKey("users.id"), nullable=False, index=True)
    badge_id = Column(String(32), nullable=False)
    earned_at = Column(DateTime, nullable=False, default=utcnow)
    lost_at = Column(DateTime, nullable=True)

    __table_args__ = (
        Index('ix_user_badges_user_badge', 'user_id', 'badge_id'),
    )


class BadgeHistory(Base):
    """Append-only log of badges earned and lost."""
    __tablename__ = "badge_history"

    id = Column(String(36), primary_key=True, default=_uuid)
    user_id = Column(String(36), ForeignKey("users.id"), nullable=False, index=True)
    badge_id = Column(String(32), nullable=False)
    action = Column(String(16), nullable=False)  # earned | lost
    created_at = Column(DateTime, nullable=False, default=utcnow)


class Notification(Base):
    """Queued notification; delivery happens outside the job runner."""
    __tablename__ = "notifications"

    id = Column(String(36), primary_key=True, default=_uuid)
    user_id = Column(String(36), ForeignKey("users.id"), nullable=False, index=True)
    type = Column(String(32), nullable=False)
    data = Column(JSON, nullable=False, default=dict)
    read = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime, nullable=False, default=utcnow, index=True)


class JobExecution(Base):
    """Append-only audit record written once per non-dry-run job execution."""
    __tablename__ = "job_executions"

    id = Column(String(36), primary_key=True, default=_uuid)
    job_name = Column(String(64), nullable=False, index=True)
    success = Column(Boolean, nullable=False)
    message = Column(Text, nullable=True)
    affected_count = Column(Integer, nullable=False, default=0)
    duration_ms = Column(Integer, nullable=False, default=0)
    details = Column(JSON, nullable=True)
    executed_by = Column(String(64), nullable=False, default="local-script")
    created_at = Column(DateTime, nullable=False, default=utcnow, index=True)

    __table_args__ = (
        Index('ix_job_executions_job_created', 'job_name', 'created_at'),
    )
