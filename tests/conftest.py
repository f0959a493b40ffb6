"""
tests/conftest.py — Shared Test Fixtures
=========================================
"""

from __future__ import annotations

import os

# ---------------------------------------------------------------------------
# Ensure a valid JWT_SECRET is always set for test runs.
# This must happen before any import of kudos.api.deps which validates
# the secret at module-load time.
# ---------------------------------------------------------------------------
_TEST_JWT_SECRET = "test-secret-for-pytest-only-" + "x" * 40  # > 32 chars
os.environ.setdefault("JWT_SECRET", _TEST_JWT_SECRET)

import pytest  # noqa: E402
from sqlalchemy import Engine, create_engine, event  # noqa: E402

# ---------------------------------------------------------------------------
# Make JSONB columns work in SQLite for testing.
# SQLite doesn't support JSONB natively, but SQLAlchemy's JSON type works.
# We register a custom type compiler so SQLite renders JSONB as TEXT.
# ---------------------------------------------------------------------------
from sqlalchemy.dialects.postgresql import JSONB as PG_JSONB  # noqa: E402
from sqlalchemy.ext.compiler import compiles  # noqa: E402
from sqlalchemy.orm import Session  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

from kudos.database.engine import init_db  # noqa: E402
from kudos.database.models import User  # noqa: E402
from kudos.services.identity_service import Caller  # noqa: E402


@compiles(PG_JSONB, "sqlite")
def _compile_jsonb_as_text(type_, compiler, **kw):
    return "TEXT"


@pytest.fixture
def db_engine() -> Engine:
    """Create an in-memory SQLite engine with all Kudos tables.

    Uses StaticPool so every session (and ``asyncio.to_thread`` worker)
    shares the same in-memory database.  pysqlite's implicit transaction
    handling is switched off so SAVEPOINT and ROLLBACK behave as they do
    on PostgreSQL.
    """
    engine = create_engine(
        "sqlite://",
        echo=False,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )

    @event.listens_for(engine, "connect")
    def _disable_pysqlite_begin(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine, "begin")
    def _emit_begin(conn):
        conn.exec_driver_sql("BEGIN")

    init_db(engine)
    return engine


@pytest.fixture
def db_session(db_engine: Engine):
    """Provide a session that rolls back after each test."""
    with Session(db_engine) as session:
        yield session
        session.rollback()


# ---------------------------------------------------------------------------
# Callers
# ---------------------------------------------------------------------------
@pytest.fixture
def reviewer() -> Caller:
    return Caller(user_id="rev-1", display_name="Rita Reviewer", is_reviewer=True)


@pytest.fixture
def alice() -> Caller:
    return Caller(user_id="user-a", display_name="Alice")


@pytest.fixture
def bob() -> Caller:
    return Caller(user_id="user-b", display_name="Bob")


def add_user(engine: Engine, caller: Caller) -> None:
    """Mirror *caller* into the users table, as an authenticated request would."""
    with Session(engine) as session:
        session.merge(User(
            id=caller.user_id,
            display_name=caller.display_name,
            avatar_url=caller.avatar_url,
            is_reviewer=caller.is_reviewer,
        ))
        session.commit()


# ---------------------------------------------------------------------------
# API
# ---------------------------------------------------------------------------
def make_token(
    sub: str = "user-a",
    name: str = "Alice",
    is_reviewer: bool = False,
) -> str:
    """Create a signed identity JWT as the identity provider would."""
    import jwt

    from kudos.api.deps import JWT_ALGORITHM, JWT_SECRET

    return jwt.encode(
        {"sub": sub, "name": name, "is_reviewer": is_reviewer},
        JWT_SECRET,
        algorithm=JWT_ALGORITHM,
    )


@pytest.fixture
def client(db_engine, tmp_path):
    """FastAPI TestClient wired to the in-memory database."""
    from fastapi.testclient import TestClient

    from kudos.api.deps import get_config, get_engine
    from kudos.api.main import app
    from kudos.config import KudosConfig

    cfg = KudosConfig(upload_dir=str(tmp_path / "uploads"))
    app.dependency_overrides[get_engine] = lambda: db_engine
    app.dependency_overrides[get_config] = lambda: cfg
    yield TestClient(app, raise_server_exceptions=False)
    app.dependency_overrides.clear()
