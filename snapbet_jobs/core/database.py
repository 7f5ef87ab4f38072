"""
Database configuration and session management.

Jobs never share a session: the scheduler and CLI hand each job a session
factory and the job opens (and closes) its own session per execution.
"""
import os
from typing import Callable

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker, Session
from sqlalchemy.pool import QueuePool, StaticPool

from snapbet_jobs.core.config import settings

SessionFactory = Callable[[], Session]


def build_engine(database_url: str) -> Engine:
    """
    Create an engine for the given URL.

    SQLite URLs (used by tests and local dry runs) get a StaticPool so every
    session sees the same in-memory database.
    """
    echo = os.getenv("SQL_ECHO", "false").lower() == "true"

    if database_url.startswith("sqlite"):
        return create_engine(
            database_url,
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
            echo=echo,
        )

    return create_engine(
        database_url,
        poolclass=QueuePool,
        pool_size=5,
        max_overflow=10,
        pool_pre_ping=True,  # Verify connections before using
        echo=echo,
    )


def build_session_factory(engine: Engine) -> sessionmaker:
    """Create a session factory bound to the engine."""
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


engine = build_engine(settings.DATABASE_URL)

SessionLocal = build_session_factory(engine)
