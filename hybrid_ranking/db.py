"""Centralized PostgreSQL engine factory.

All resources share a single SQLAlchemy engine per process. Dagster's
DefaultRunLauncher spawns one subprocess per run, so each run (and each CLI
invocation) gets exactly one engine.

Uses NullPool: connections are opened on demand and returned immediately
after use. The embedding worker pool and the ranking path run their queries
in worker threads (asyncio.to_thread), so at most one connection per
in-flight query is held.
"""

import asyncio
import os
import threading
from collections.abc import Callable
from typing import TypeVar

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.exc import InterfaceError, OperationalError
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import NullPool

from hybrid_ranking.errors import TransientExternalError

T = TypeVar("T")

_lock = threading.Lock()
_engine: Engine | None = None
_session_factory: sessionmaker | None = None


def build_url() -> str:
    host = os.getenv("POSTGRES_HOST", "localhost")
    port = os.getenv("POSTGRES_PORT", "5432")
    user = os.getenv("POSTGRES_USER", "ranking")
    password = os.getenv("POSTGRES_PASSWORD", "ranking_dev")
    database = os.getenv("POSTGRES_DB", "hybrid_ranking")
    return f"postgresql+psycopg://{user}:{password}@{host}:{port}/{database}"


def get_engine() -> Engine:
    """Return the process-wide SQLAlchemy engine, creating it on first call."""
    global _engine, _session_factory
    if _engine is None:
        with _lock:
            if _engine is None:
                _engine = create_engine(build_url(), poolclass=NullPool)
                _session_factory = sessionmaker(bind=_engine)
    return _engine


def get_session() -> Session:
    """Create a new session from the shared engine."""
    get_engine()
    return _session_factory()


async def run_in_session(operation: str, fn: Callable[[Session], T]) -> T:
    """Run ``fn(session)`` in a worker thread with a fresh session.

    Connection-level failures (database down, network drop) are raised as
    TransientExternalError so callers can retry or fall back.
    """

    def _call() -> T:
        with get_session() as session:
            return fn(session)

    try:
        return await asyncio.to_thread(_call)
    except (OperationalError, InterfaceError) as exc:
        raise TransientExternalError(
            f"Database unavailable during {operation}: {exc.__class__.__name__}",
            operation=operation,
        ) from exc
