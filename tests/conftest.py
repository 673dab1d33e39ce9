"""
tests/conftest.py — Shared Test Fixtures
=========================================
"""

from __future__ import annotations

import os

# ---------------------------------------------------------------------------
# Ensure a valid JWT_SECRET is always set for test runs.
# This must happen before any import of pawprint.api.deps which validates
# the secret at module-load time.
# ---------------------------------------------------------------------------
_TEST_JWT_SECRET = "test-secret-for-pytest-only-" + "x" * 40  # > 32 chars
os.environ.setdefault("JWT_SECRET", _TEST_JWT_SECRET)

from datetime import date  # noqa: E402

import pytest  # noqa: E402
from sqlalchemy import Engine  # noqa: E402

# ---------------------------------------------------------------------------
# Make JSONB columns work in SQLite for testing.
# SQLite doesn't support JSONB natively, but SQLAlchemy's JSON type works.
# We register a custom type compiler so SQLite renders JSONB as TEXT.
# ---------------------------------------------------------------------------
from sqlalchemy.dialects.postgresql import JSONB as PG_JSONB  # noqa: E402
from sqlalchemy.orm import Session  # noqa: E402

from pawprint.database.engine import create_db_engine, init_db  # noqa: E402
from pawprint.database.models import OwnedItem, User  # noqa: E402

_jsonb_sqlite_registered = False

TODAY = date(2026, 3, 14)


def _register_jsonb_sqlite_compat():
    """Register SQLite compilation for PG JSONB type (idempotent).

    Also maps BigInteger → INTEGER so autoincrement works on SQLite.
    """
    global _jsonb_sqlite_registered
    if _jsonb_sqlite_registered:
        return
    from sqlalchemy import BigInteger
    from sqlalchemy.ext.compiler import compiles

    @compiles(PG_JSONB, "sqlite")
    def _compile_jsonb_as_text(type_, compiler, **kw):
        return "TEXT"

    @compiles(BigInteger, "sqlite")
    def _compile_bigint_as_integer(type_, compiler, **kw):
        return "INTEGER"

    _jsonb_sqlite_registered = True


_register_jsonb_sqlite_compat()


@pytest.fixture
def db_engine() -> Engine:
    """Create an in-memory SQLite engine with all Pawprint tables.

    JSONB columns are transparently mapped to TEXT for SQLite compatibility.
    ``create_db_engine`` pins in-memory SQLite to one shared connection so
    the worker threads behind ``run_db`` see the same database.
    """
    engine = create_db_engine("sqlite://")
    init_db(engine)
    return engine


@pytest.fixture
def db_session(db_engine: Engine):
    """Provide a session for direct assertions against the store."""
    with Session(db_engine) as session:
        yield session
        session.rollback()


def make_user(
    engine: Engine,
    user_id: str = "user-1",
    *,
    points: int = 0,
    total_earned: int | None = None,
    nickname: str | None = None,
    email: str | None = None,
    is_admin: bool = False,
) -> str:
    """Insert a user row directly and return its id."""
    with Session(engine) as session:
        session.add(User(
            id=user_id,
            nickname=nickname or user_id,
            email=email,
            is_admin=is_admin,
            points=points,
            total_points_earned=points if total_earned is None else total_earned,
            equipped_accessory_slugs=[],
        ))
        session.commit()
    return user_id


def give_item(engine: Engine, user_id: str, slug: str, category: str, price: int = 0) -> None:
    """Insert an OwnedItem row directly (bypassing the purchase flow)."""
    with Session(engine) as session:
        session.add(OwnedItem(
            user_id=user_id, item_slug=slug, category=category, purchase_price=price
        ))
        session.commit()


def make_token(sub: str = "user-1", email: str | None = None) -> str:
    """Create a user JWT.  Usable as both a fixture helper and a factory."""
    import jwt

    from pawprint.api.deps import JWT_ALGORITHM, JWT_SECRET

    payload: dict = {"sub": sub}
    if email:
        payload["email"] = email
    return jwt.encode(payload, JWT_SECRET, algorithm=JWT_ALGORITHM)


def make_admin_token(sub: str = "admin-1", email: str = "admin@example.com") -> str:
    """Create a JWT for an allow-listed admin email."""
    return make_token(sub=sub, email=email)


@pytest.fixture
def admin_token():
    """Generate a valid admin JWT for use in API integration tests."""
    return make_admin_token()
