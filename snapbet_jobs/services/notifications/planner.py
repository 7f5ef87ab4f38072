"""
Notification planning for the notifications job.

Each planner method returns the notifications that should be queued now and
have not been queued already:

- game_start: one per user with pending bets on games starting within
  GAME_START_NOTICE_MINUTES, listing only games not yet announced to them
- content_expiring: one per live content post expiring within
  EXPIRY_WARNING_MINUTES
- weekly_recap: Mondays at WEEKLY_RECAP_HOUR (scheduler timezone), one per
  user who bet during the past week

Bet outcomes are queued by settlement itself and are not planned here.
Nothing is written; the job adds the returned rows.
"""
import logging
from collections import defaultdict
from datetime import datetime, timedelta
from typing import Dict, List, Optional, Set

from sqlalchemy import and_, or_
from sqlalchemy.orm import Session

from snapbet_jobs.models import Bankroll, Bet, Game, Notification, Post
from snapbet_jobs.repositories import BetRepository
from snapbet_jobs.utils.timezone import cron_weekday, utcnow

logger = logging.getLogger(__name__)

GAME_START = "game_start"
CONTENT_EXPIRING = "content_expiring"
WEEKLY_RECAP = "weekly_recap"

MONDAY = 1
CAPTION_PREVIEW_CHARS = 50


class NotificationPlanner:
    """
    Args:
        db: Database session (read only)
        now: Naive UTC reference time
        local_now: Naive wall-clock time in the scheduler timezone (defaults to ``now``)
    """

    def __init__(
        self,
        db: Session,
        now: Optional[datetime] = None,
        local_now: Optional[datetime] = None,
        game_start_notice_minutes: int = 30,
        expiry_warning_minutes: int = 60,
        content_ttl_hours: int = 24,
        weekly_recap_hour: int = 9,
    ):
        self.db = db
        self.now = now or utcnow()
        self.local_now = local_now or self.now
        self.game_start_notice = timedelta(minutes=game_start_notice_minutes)
        self.expiry_warning = timedelta(minutes=expiry_warning_minutes)
        self.content_ttl = timedelta(hours=content_ttl_hours)
        self.weekly_recap_hour = weekly_recap_hour

    def _already_sent(self, type_: str, since: datetime) -> List[Notification]:
        return self.db.query(Notification).filter(
            Notification.type == type_,
            Notification.created_at >= since,
        ).all()

    # ========================================================================
    # Game starts
    # ========================================================================

    def game_start(self, limit: Optional[int] = None) -> List[Notification]:
        games = self.db.query(Game).filter(
            Game.status == "scheduled",
            Game.commence_time >= self.now,
            Game.commence_time <= self.now + self.game_start_notice,
        ).order_by(Game.commence_time, Game.id).all()
        if not games:
            return []

        by_id = {game.id: game for game in games}
        pending = self.db.query(Bet.user_id, Bet.game_id).filter(
            Bet.game_id.in_(list(by_id)),
            Bet.status == "pending",
        ).distinct().all()

        announced: Dict[str, Set[str]] = defaultdict(set)
        for sent in self._already_sent(GAME_START, self.now - timedelta(days=1)):
            announced[sent.user_id].update((sent.data or {}).get("game_ids", []))

        user_games: Dict[str, List[str]] = defaultdict(list)
        for user_id, game_id in pending:
            if game_id not in announced[user_id] and game_id not in user_games[user_id]:
                user_games[user_id].append(game_id)

        notifications = []
        for user_id in sorted(user_games)[:limit]:
            game_ids = sorted(user_games[user_id], key=lambda gid: (by_id[gid].commence_time, gid))
            matchups = ", ".join(f"{by_id[gid].away_team} @ {by_id[gid].home_team}" for gid in game_ids)
            minutes = int(self.game_start_notice.total_seconds() // 60)
            notifications.append(Notification(
                user_id=user_id,
                type=GAME_START,
                data={
                    "title": "Games Starting Soon!",
                    "message": f"Your games start within {minutes} minutes: {matchups}",
                    "game_ids": game_ids,
                },
            ))
        return notifications

    # ========================================================================
    # Expiring content
    # ========================================================================

    def content_expiring(self, limit: Optional[int] = None) -> List[Notification]:
        horizon = self.now + self.expiry_warning
        query = self.db.query(Post).filter(
            Post.post_type == "content",
            Post.deleted_at.is_(None),
            or_(
                and_(Post.expires_at.isnot(None), Post.expires_at > self.now, Post.expires_at <= horizon),
                and_(
                    Post.expires_at.is_(None),
                    Post.created_at > self.now - self.content_ttl,
                    Post.created_at <= horizon - self.content_ttl,
                ),
            ),
        ).order_by(Post.id)

        warned = {
            (sent.data or {}).get("post_id")
            for sent in self._already_sent(CONTENT_EXPIRING, self.now - self.content_ttl)
        }

        notifications = []
        for post in query:
            if post.id in warned:
                continue
            caption = (post.caption or "post")[:CAPTION_PREVIEW_CHARS]
            notifications.append(Notification(
                user_id=post.user_id,
                type=CONTENT_EXPIRING,
                data={
                    "title": "Post Expiring Soon",
                    "message": f'Your post "{caption}" expires within the hour',
                    "post_id": post.id,
                },
            ))
            if limit is not None and len(notifications) >= limit:
                break
        return notifications

    # ========================================================================
    # Weekly recap
    # ========================================================================

    def is_recap_time(self) -> bool:
        return cron_weekday(self.local_now) == MONDAY and self.local_now.hour == self.weekly_recap_hour

    def weekly_recap(self, limit: Optional[int] = None) -> List[Notification]:
        if not self.is_recap_time():
            return []

        active = BetRepository(self.db).user_ids_with_bets_since(self.now - timedelta(days=7))
        recapped = {sent.user_id for sent in self._already_sent(WEEKLY_RECAP, self.now - timedelta(days=1))}
        recipients = sorted(set(active) - recapped)[:limit]
        if not recipients:
            return []

        bankrolls = {
            bankroll.user_id: bankroll
            for bankroll in self.db.query(Bankroll).filter(Bankroll.user_id.in_(recipients))
        }

        notifications = []
        for user_id in recipients:
            bankroll = bankrolls.get(user_id)
            if bankroll is None:
                continue
            decided = bankroll.win_count + bankroll.loss_count
            win_rate = round(bankroll.win_count / decided * 100, 1) if decided else 0.0
            profit = bankroll.total_won - bankroll.total_wagered
            sign = "+" if profit >= 0 else "-"
            notifications.append(Notification(
                user_id=user_id,
                type=WEEKLY_RECAP,
                data={
                    "message": (
                        f"Your week: {win_rate}% win rate, {sign}${abs(profit) / 100:,.2f}. "
                        "Ready for another week?"
                    ),
                    "action": "view_profile",
                    "stats": {
                        "win_rate": win_rate,
                        "profit": profit,
                        "wins": bankroll.win_count,
                        "losses": bankroll.loss_count,
                    },
                },
            ))
        return notifications
