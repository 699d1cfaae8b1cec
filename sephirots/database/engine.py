"""
sephirots.database.engine — Engine Factory, Bootstrap & Async Bridge
======================================================================

Services are plain synchronous functions that take an :class:`Engine` and
open their own ``Session``.  FastAPI runs ``def`` endpoints in its
threadpool, so routes call them directly.  Coroutines (the lifespan hook)
use :func:`run_db` to push the call onto a worker thread.

Usage::

    from sephirots.database.engine import create_db_engine, init_db, run_db

    engine = create_db_engine()          # DATABASE_URL from .env
    init_db(engine)                      # tables + default settings + catalogs

    reactions = await run_db(reaction_service.get_reactions, engine, "discussion", 7)
"""

from __future__ import annotations

import asyncio
import logging
import os
from collections.abc import Callable
from typing import ParamSpec, TypeVar

from sqlalchemy import Engine, create_engine
from sqlalchemy.engine import make_url

from sephirots.database.models import Base

logger = logging.getLogger(__name__)

P = ParamSpec("P")
T = TypeVar("T")

# Queue sizing for the PostgreSQL pool; SQLite URLs use SQLAlchemy's defaults
_POOL_OPTIONS = {
    "pool_size": 5,
    "max_overflow": 10,
    "pool_pre_ping": True,
    "pool_timeout": 10,
    "pool_recycle": 1800,
}


def create_db_engine(url: str | None = None) -> Engine:
    """Build the application :class:`Engine`.

    *url* defaults to ``DATABASE_URL``.  A ``sqlite`` URL is accepted for
    local experiments and gets ``check_same_thread=False`` so the
    threadpool can share it.

    Raises
    ------
    RuntimeError
        If no URL is given and ``DATABASE_URL`` is unset.
    """
    url = url or os.getenv("DATABASE_URL")
    if not url:
        raise RuntimeError(
            "DATABASE_URL is not set.  "
            "Copy .env.example → .env and point it at the Sephirots database."
        )

    parsed = make_url(url)
    if parsed.get_backend_name() == "sqlite":
        engine = create_engine(url, connect_args={"check_same_thread": False})
    else:
        engine = create_engine(url, **_POOL_OPTIONS)
    logger.info(
        "Database engine ready → %s (%s)",
        parsed.host or parsed.database, parsed.get_backend_name(),
    )
    return engine


def init_db(engine: Engine) -> None:
    """Create missing tables, then seed settings and catalogs.

    Idempotent, so the API runs it on every start.  Production schemas are
    owned by Alembic (``alembic upgrade head``); here ``create_all`` only
    fills gaps on a fresh dev or test database.
    """
    from sephirots.database.seed import seed_catalogs, seed_default_settings

    Base.metadata.create_all(engine)
    seed_default_settings(engine)
    seed_catalogs(engine)
    logger.info("Schema checked; %d tables registered", len(Base.metadata.tables))


async def run_db(func: Callable[P, T], *args: P.args, **kwargs: P.kwargs) -> T:
    """Await a synchronous service call on a worker thread."""
    return await asyncio.to_thread(func, *args, **kwargs)
