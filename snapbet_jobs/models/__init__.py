"""
Models Module

Usage:
    from snapbet_jobs.models import Bet, Game, Bankroll
"""
from snapbet_jobs.models.models import (
    Base,
    User,
    Bankroll,
    Game,
    Bet,
    Post,
    Story,
    Message,
    Comment,
    Reaction,
    PickAction,
    StoryView,
    UserBadge,
    BadgeHistory,
    Notification,
    JobExecution,
)

__all__ = [
    "Base",
    "User",
    "Bankroll",
    "Game",
    "Bet",
    "Post",
    "Story",
    "Message",
    "Comment",
    "Reaction",
    "PickAction",
    "StoryView",
    "UserBadge",
    "BadgeHistory",
    "Notification",
    "JobExecution",
]
