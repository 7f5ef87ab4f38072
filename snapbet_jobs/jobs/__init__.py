"""
Background jobs.

Usage:
    from snapbet_jobs.core.database import SessionLocal
    from snapbet_jobs.jobs import build_jobs

    jobs = build_jobs(SessionLocal)
"""
from typing import List, Optional

from snapbet_jobs.core.config import Settings
from snapbet_jobs.core.database import SessionFactory
from snapbet_jobs.jobs.base import BaseJob, JobConfig, JobOptions, JobResult
from snapbet_jobs.jobs.content_expiration import ContentExpirationJob
from snapbet_jobs.jobs.game_updates import GameUpdateJob
from snapbet_jobs.jobs.game_settlement import GameSettlementJob
from snapbet_jobs.jobs.odds_updates import OddsUpdateJob
from snapbet_jobs.jobs.badge_calculation import BadgeCalculationJob
from snapbet_jobs.jobs.stats_rollup import StatsRollupJob
from snapbet_jobs.jobs.notifications import NotificationJob
from snapbet_jobs.jobs.bankroll_reset import BankrollResetJob
from snapbet_jobs.jobs.cleanup import CleanupJob
from snapbet_jobs.jobs.media_cleanup import MediaCleanupJob

# Declaration order is also the order "run all" and a scheduler tick use.
JOB_CLASSES = (
    ContentExpirationJob,
    GameUpdateJob,
    GameSettlementJob,
    OddsUpdateJob,
    BadgeCalculationJob,
    StatsRollupJob,
    NotificationJob,
    BankrollResetJob,
    CleanupJob,
    MediaCleanupJob,
)


def build_jobs(session_factory: SessionFactory, app_settings: Optional[Settings] = None) -> List[BaseJob]:
    """Instantiate every job against one session factory."""
    return [job_class(session_factory, app_settings) for job_class in JOB_CLASSES]


__all__ = [
    "BaseJob",
    "JobConfig",
    "JobOptions",
    "JobResult",
    "ContentExpirationJob",
    "GameUpdateJob",
    "GameSettlementJob",
    "OddsUpdateJob",
    "BadgeCalculationJob",
    "StatsRollupJob",
    "NotificationJob",
    "BankrollResetJob",
    "CleanupJob",
    "MediaCleanupJob",
    "JOB_CLASSES",
    "build_jobs",
]
