"""
pawprint.database.engine — Database Connection & Async Helper
==============================================================

SQLAlchemy + psycopg2 is synchronous, while the API routes are ``async``.
Every store call from a route goes through :func:`run_db`, which ships the
synchronous service function to a worker thread so the event loop stays
free::

    from pawprint.database.engine import create_db_engine, init_db, run_db

    engine = create_db_engine()          # DATABASE_URL from .env
    init_db(engine)                      # dev/test only; Alembic owns prod

    result = await run_db(points_service.award, engine, user_id, "write_post")

PostgreSQL is the production store.  ``sqlite://`` URLs are accepted for
local runs and the test suite: the ledger's upserts have a SQLite rendering,
and an in-memory database is pinned to a single shared connection so the
worker threads behind :func:`run_db` all see the same tables.
"""

from __future__ import annotations

import asyncio
import logging
import os
from collections.abc import Callable
from contextlib import contextmanager
from typing import ParamSpec, TypeVar

from sqlalchemy import Engine, create_engine, make_url
from sqlalchemy.orm import Session
from sqlalchemy.pool import StaticPool

from pawprint.database.models import Base

logger = logging.getLogger(__name__)

P = ParamSpec("P")
T = TypeVar("T")


# ---------------------------------------------------------------------------
# Engine creation
# ---------------------------------------------------------------------------
def create_db_engine(
    url: str | None = None,
    *,
    pool_size: int = 5,
    max_overflow: int = 10,
) -> Engine:
    """Build a SQLAlchemy :class:`Engine` for the points store.

    *url* defaults to the ``DATABASE_URL`` env var.  Pool sizing applies to
    server databases only; SQLite ignores it.

    Raises
    ------
    RuntimeError
        If neither *url* nor ``DATABASE_URL`` is set.
    """
    url = url or os.getenv("DATABASE_URL")
    if not url:
        raise RuntimeError(
            "DATABASE_URL is not set.  "
            "Copy .env.example → .env and set a valid PostgreSQL URL."
        )

    parsed = make_url(url)
    if parsed.get_backend_name() == "sqlite":
        options: dict = {"connect_args": {"check_same_thread": False}}
        if parsed.database in (None, "", ":memory:"):
            options["poolclass"] = StaticPool
        engine = create_engine(parsed, echo=False, **options)
    else:
        engine = create_engine(
            parsed,
            echo=False,
            pool_size=pool_size,
            max_overflow=max_overflow,
            pool_pre_ping=True,   # Reconnect stale connections automatically
            pool_timeout=10,
            pool_recycle=3600,
        )
    logger.info(
        "Database engine created → %s (%s)",
        parsed.host or parsed.database or "memory", parsed.get_backend_name(),
    )
    return engine


# ---------------------------------------------------------------------------
# Schema initialization
# ---------------------------------------------------------------------------
def init_db(engine: Engine) -> None:
    """Create the users / ledger / ownership / counter tables if missing.

    Production schemas come from ``alembic upgrade head``; this is the
    shortcut used by the test fixtures and throwaway SQLite runs.
    """
    Base.metadata.create_all(engine)
    logger.info("Pawprint tables verified on %s", engine.url.get_backend_name())


# ---------------------------------------------------------------------------
# Session helper
# ---------------------------------------------------------------------------
@contextmanager
def get_session(engine: Engine):
    """Yield a :class:`Session` that commits on success and rolls back on
    exception."""
    session = Session(engine)
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


# ---------------------------------------------------------------------------
# Async bridge
# ---------------------------------------------------------------------------
async def run_db(func: Callable[P, T], *args: P.args, **kwargs: P.kwargs) -> T:
    """Run a **synchronous** database function on a background thread.

    Thin wrapper over :func:`asyncio.to_thread`; every route that touches
    the store awaits through here.
    """
    return await asyncio.to_thread(func, *args, **kwargs)
