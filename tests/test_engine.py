"""
tests/test_engine.py — Engine Factory & Async Bridge Tests
===========================================================
"""

from __future__ import annotations

import asyncio

import pytest
from conftest import make_user
from sqlalchemy import inspect
from sqlalchemy.pool import StaticPool

from pawprint.database.engine import create_db_engine, init_db, run_db
from pawprint.services import points_service


def test_missing_database_url(monkeypatch):
    monkeypatch.delenv("DATABASE_URL", raising=False)
    with pytest.raises(RuntimeError, match="DATABASE_URL"):
        create_db_engine()


def test_url_from_environment(monkeypatch):
    monkeypatch.setenv("DATABASE_URL", "sqlite://")
    assert create_db_engine().url.get_backend_name() == "sqlite"


def test_in_memory_sqlite_shares_one_connection():
    engine = create_db_engine("sqlite://")
    assert isinstance(engine.pool, StaticPool)


def test_file_sqlite_uses_regular_pool(tmp_path):
    engine = create_db_engine(f"sqlite:///{tmp_path / 'pawprint.db'}")
    assert not isinstance(engine.pool, StaticPool)


def test_init_db_creates_every_table():
    engine = create_db_engine("sqlite://")
    init_db(engine)
    init_db(engine)  # idempotent
    assert set(inspect(engine).get_table_names()) >= {
        "users", "point_transactions", "owned_items", "point_award_counters",
    }


def test_run_db_sees_the_same_in_memory_database(db_engine):
    make_user(db_engine, points=42)
    balance = asyncio.run(run_db(points_service.get_balance, db_engine, "user-1"))
    assert balance.points == 42
