"""Alembic environment for The Sephirots.

The database URL comes from ``DATABASE_URL`` (via ``.env``) and falls back
to ``sqlalchemy.url`` in ``alembic.ini``.  Online runs reuse the
application's engine factory so migrations connect the same way the API does.
"""

from __future__ import annotations

import os
from logging.config import fileConfig

from dotenv import load_dotenv

from alembic import context

load_dotenv()

config = context.config
if config.config_file_name is not None:
    fileConfig(config.config_file_name)

from sephirots.database.engine import create_db_engine  # noqa: E402
from sephirots.database.models import Base  # noqa: E402

target_metadata = Base.metadata

# Type and server-default drift both show up in autogenerate
COMPARE_OPTIONS = {"compare_type": True, "compare_server_default": True}


def _database_url() -> str:
    url = os.getenv("DATABASE_URL") or config.get_main_option("sqlalchemy.url")
    if not url:
        raise RuntimeError("Set DATABASE_URL or sqlalchemy.url before running migrations")
    return url


def run_migrations_offline() -> None:
    """Render the migration SQL without a connection."""
    context.configure(
        url=_database_url(),
        target_metadata=target_metadata,
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
        **COMPARE_OPTIONS,
    )
    with context.begin_transaction():
        context.run_migrations()


def run_migrations_online() -> None:
    engine = create_db_engine(_database_url())
    try:
        with engine.connect() as connection:
            context.configure(
                connection=connection, target_metadata=target_metadata, **COMPARE_OPTIONS,
            )
            with context.begin_transaction():
                context.run_migrations()
    finally:
        engine.dispose()


if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()
