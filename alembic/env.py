"""Alembic environment for the Pawprint points store.

The target URL comes from ``DATABASE_URL`` (``.env`` is honoured) and
falls back to ``sqlalchemy.url`` in ``alembic.ini``.  Autogenerate
compares column types as well as names, so a widened slug column or a
JSON → JSONB switch shows up in the diff.  SQLite targets run in batch
mode because ALTER TABLE there cannot drop or retype columns.
"""

from __future__ import annotations

import os
from logging.config import fileConfig

from dotenv import load_dotenv
from sqlalchemy import engine_from_config, make_url, pool

from alembic import context

load_dotenv()

config = context.config

database_url = os.getenv("DATABASE_URL")
if database_url:
    config.set_main_option("sqlalchemy.url", database_url)

if config.config_file_name is not None:
    fileConfig(config.config_file_name)

from pawprint.database.models import Base  # noqa: E402

target_metadata = Base.metadata


def _configure_options(url) -> dict:
    return {
        "target_metadata": target_metadata,
        "compare_type": True,
        "render_as_batch": url.get_backend_name() == "sqlite",
    }


def run_migrations_offline() -> None:
    """Emit the migration SQL to stdout without connecting."""
    url = make_url(config.get_main_option("sqlalchemy.url"))
    context.configure(
        url=url,
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
        **_configure_options(url),
    )
    with context.begin_transaction():
        context.run_migrations()


def run_migrations_online() -> None:
    """Apply migrations over a single unpooled connection."""
    connectable = engine_from_config(
        config.get_section(config.config_ini_section, {}),
        prefix="sqlalchemy.",
        poolclass=pool.NullPool,
    )
    with connectable.connect() as connection:
        context.configure(connection=connection, **_configure_options(connectable.url))
        with context.begin_transaction():
            context.run_migrations()


if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()
