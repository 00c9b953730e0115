"""Alembic environment: migrations run against the sync database URL from settings."""

import os
import sys
from logging.config import fileConfig
from pathlib import Path

from alembic import context
from sqlalchemy import create_engine, pool

# Make the src/ layout importable when running alembic from a checkout
project_root = Path(__file__).resolve().parents[2]
sys.path.insert(0, str(project_root / "src"))

from nearby_ingest.config.settings import get_settings  # noqa: E402
from nearby_ingest.models import Base  # noqa: E402

config = context.config

if config.config_file_name is not None:
    fileConfig(config.config_file_name)

target_metadata = Base.metadata


def _database_url() -> str:
    # ALEMBIC_DATABASE_URL > NEARBY_DATABASE_URL_SYNC > alembic.ini
    if os.environ.get("ALEMBIC_DATABASE_URL"):
        return os.environ["ALEMBIC_DATABASE_URL"]
    if os.environ.get("NEARBY_DATABASE_URL_SYNC"):
        return get_settings().database_url_sync
    return config.get_main_option("sqlalchemy.url")


def run_migrations_offline() -> None:
    context.configure(
        url=_database_url(),
        target_metadata=target_metadata,
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
    )

    with context.begin_transaction():
        context.run_migrations()


def run_migrations_online() -> None:
    connectable = create_engine(_database_url(), poolclass=pool.NullPool)

    with connectable.connect() as connection:
        context.configure(connection=connection, target_metadata=target_metadata)

        with context.begin_transaction():
            context.run_migrations()


if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()
