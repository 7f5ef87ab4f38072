"""
Repository Layer

Usage:
    from snapbet_jobs.repositories import BetRepository, GameRepository

    game_repo = GameRepository(db)
    games = game_repo.find_settleable(limit=10)
"""
from snapbet_jobs.repositories.base import BaseRepository
from snapbet_jobs.repositories.game_repository import GameRepository
from snapbet_jobs.repositories.bet_repository import BetRepository
from snapbet_jobs.repositories.bankroll_repository import BankrollRepository
from snapbet_jobs.repositories.job_execution_repository import JobExecutionRepository
from snapbet_jobs.repositories.content_repository import ArchiveRepository, ContentRepository, DependentRepository

__all__ = [
    "BaseRepository",
    "GameRepository",
    "BetRepository",
    "BankrollRepository",
    "JobExecutionRepository",
    "ContentRepository",
    "ArchiveRepository",
    "DependentRepository",
]
