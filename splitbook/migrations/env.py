"""
Alembic environment for the ledger schema.

The database comes from DATABASE_URL, or TEST_DATABASE_URL when TEST_RUN is
set; importing splitbook.config loads the .env files first.
"""

from __future__ import annotations

import os
from logging.config import fileConfig

from alembic import context
from sqlalchemy import engine_from_config, pool

import splitbook.config  # noqa: F401  (loads .env)
from splitbook.app.extensions import db
from splitbook.app.models import (  # noqa: F401
    activity_log,
    expense,
    group,
    membership,
    split,
    user,
)


def _database_url() -> str:
    name = "TEST_DATABASE_URL" if os.getenv("TEST_RUN") else "DATABASE_URL"
    url = os.environ[name]
    if url.startswith("postgres://"):
        url = "postgresql://" + url[len("postgres://"):]
    return url


alembic_cfg = context.config
alembic_cfg.set_main_option("sqlalchemy.url", _database_url())
if alembic_cfg.config_file_name is not None:
    fileConfig(alembic_cfg.config_file_name)

_configure_kwargs = {"target_metadata": db.metadata, "compare_type": True}


def run_offline() -> None:
    context.configure(
        url=alembic_cfg.get_main_option("sqlalchemy.url"),
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
        **_configure_kwargs,
    )
    with context.begin_transaction():
        context.run_migrations()


def run_online() -> None:
    engine = engine_from_config(
        alembic_cfg.get_section(alembic_cfg.config_ini_section, {}),
        prefix="sqlalchemy.",
        poolclass=pool.NullPool,
    )
    with engine.connect() as connection:
        context.configure(connection=connection, **_configure_kwargs)
        with context.begin_transaction():
            context.run_migrations()


if context.is_offline_mode():
    run_offline()
else:
    run_online()
