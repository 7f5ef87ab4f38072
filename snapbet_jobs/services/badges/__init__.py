from snapbet_jobs.services.badges.badge_calculator import BADGES, BADGES_BY_ID, BadgeCalculator, BadgeDefinition
from snapbet_jobs.services.badges.badge_ledger import BadgeChanges, BadgeLedger
from snapbet_jobs.services.badges.stats_calculator import UserStats, compute_user_stats

__all__ = [
    "BADGES",
    "BADGES_BY_ID",
    "BadgeCalculator",
    "BadgeDefinition",
    "BadgeChanges",
    "BadgeLedger",
    "UserStats",
    "compute_user_stats",
]
