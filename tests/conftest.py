"""
tests/conftest.py — Shared Test Fixtures
=========================================
"""

from __future__ import annotations

import os

# ---------------------------------------------------------------------------
# Ensure a valid JWT_SECRET is always set for test runs.
# This must happen before any import of sephirots.api.deps which validates
# the secret at module-load time.
# ---------------------------------------------------------------------------
_TEST_JWT_SECRET = "test-secret-for-pytest-only-" + "x" * 40  # > 32 chars
os.environ.setdefault("JWT_SECRET", _TEST_JWT_SECRET)

from datetime import UTC, datetime, timedelta  # noqa: E402

import pytest  # noqa: E402
from sqlalchemy import Engine, create_engine, event  # noqa: E402

# ---------------------------------------------------------------------------
# Make JSONB columns work in SQLite for testing.
# SQLite doesn't support JSONB natively, but SQLAlchemy's JSON type works.
# We register a custom type compiler so SQLite renders JSONB as TEXT.
# ---------------------------------------------------------------------------
from sqlalchemy.dialects.postgresql import JSONB as PG_JSONB  # noqa: E402
from sqlalchemy.orm import Session  # noqa: E402

from sephirots.database.models import (  # noqa: E402
    Base,
    Discussion,
    Proposal,
    ProposalStatus,
    Quest,
    Reward,
    User,
)

_jsonb_sqlite_registered = False


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
    """In-memory SQLite engine with every table created, nothing seeded.

    StaticPool shares one connection across threads (FastAPI runs sync
    endpoints in its threadpool).  pysqlite's own transaction handling is
    switched off so SAVEPOINTs behave as they do on PostgreSQL.
    """
    from sqlalchemy.pool import StaticPool

    engine = create_engine(
        "sqlite://",
        echo=False,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )

    @event.listens_for(engine, "connect")
    def _disable_pysqlite_transactions(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine, "begin")
    def _emit_begin(conn):
        conn.exec_driver_sql("BEGIN")

    Base.metadata.create_all(engine)
    return engine


@pytest.fixture
def seeded_engine(db_engine: Engine) -> Engine:
    """``db_engine`` plus default settings and the reference catalogs."""
    from sephirots.database.engine import init_db

    init_db(db_engine)
    return db_engine


# ---------------------------------------------------------------------------
# Row factories — each opens and closes its own session
# ---------------------------------------------------------------------------
def make_user(engine: Engine, username: str = "seeker", **fields) -> int:
    with Session(engine) as session:
        user = User(username=username, display_name=fields.pop("display_name", username), **fields)
        session.add(user)
        session.commit()
        return user.id


def make_discussion(engine: Engine, user_id: int, title: str = "On the Middle Pillar", **fields) -> int:
    with Session(engine) as session:
        discussion = Discussion(
            title=title, content=fields.pop("content", "Balance between the pillars."),
            user_id=user_id, **fields,
        )
        session.add(discussion)
        session.commit()
        return discussion.id


def make_reward(engine: Engine, name: str = "Star Chart", points_cost: int = 100, **fields) -> int:
    with Session(engine) as session:
        reward = Reward(name=name, points_cost=points_cost, **fields)
        session.add(reward)
        session.commit()
        return reward.id


def make_quest(engine: Engine, requirements: dict, points: int = 25, **fields) -> int:
    with Session(engine) as session:
        quest = Quest(
            title=fields.pop("title", "Test Quest"), requirements=requirements,
            points=points, **fields,
        )
        session.add(quest)
        session.commit()
        return quest.id


def make_proposal(engine: Engine, user_id: int, votes_required: int = 3, **fields) -> int:
    with Session(engine) as session:
        proposal = Proposal(
            title=fields.pop("title", "Open a meditation circle"),
            description=fields.pop("description", "Weekly, on Thursdays."),
            proposed_by=user_id,
            status=fields.pop("status", ProposalStatus.ACTIVE),
            votes_required=votes_required,
            voting_ends_at=fields.pop("voting_ends_at", datetime.now(UTC) + timedelta(days=7)),
            **fields,
        )
        session.add(proposal)
        session.commit()
        return proposal.id


def points_of(engine: Engine, user_id: int) -> int:
    with Session(engine) as session:
        return session.get(User, user_id).points


# ---------------------------------------------------------------------------
# API
# ---------------------------------------------------------------------------
def make_token(user_id: int, username: str = "member", *, is_admin: bool = False) -> str:
    """Create a member JWT.  Usable from any test module."""
    from sephirots.api.deps import issue_token

    return issue_token(user_id, username, is_admin=is_admin)


def auth(token: str) -> dict:
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def client(seeded_engine: Engine):
    """TestClient wired to the seeded SQLite engine and a fixed config."""
    from fastapi.testclient import TestClient

    from sephirots.api import main
    from sephirots.api.routes import donations
    from sephirots.config import SephirotsConfig

    cfg = SephirotsConfig(
        community_name="The Sephirots",
        community_motto="Wisdom grows where many roots meet",
        api_port=8000,
        frontend_url="http://localhost:5173",
    )
    main.app.dependency_overrides[main.get_engine] = lambda: seeded_engine
    main.app.dependency_overrides[donations.get_config] = lambda: cfg
    yield TestClient(main.app, raise_server_exceptions=False)
    main.app.dependency_overrides.clear()
