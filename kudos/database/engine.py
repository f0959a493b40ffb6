"""
kudos.database.engine — Database Connection & Transaction Helpers
==================================================================

**Why this file exists:**
Every review decision writes to several tables at once (submission status,
score ledger, feed, audit log).  Those writes only stay consistent if they
share one session and one transaction, and if a slow or unreachable
database fails the request visibly instead of hanging it.

This module owns both halves:

* :func:`create_db_engine` bounds every wait: ``pool_timeout`` for a free
  connection, and on PostgreSQL ``connect_timeout`` plus a server-side
  ``statement_timeout``.
* :func:`ledger_session` is the unit of work used by the service layer.  It
  commits on success, rolls back on any exception, and turns driver-level
  connection failures and timeouts into
  :class:`~kudos.errors.DependencyUnavailable`.
* :func:`read_session` does the same translation for queries that never
  commit.

Usage::

    from kudos.database.engine import create_db_engine, init_db, ledger_session

    engine = create_db_engine()          # reads DATABASE_URL from .env
    init_db(engine)                      # CREATE TABLE IF NOT EXISTS …

    with ledger_session(engine) as session:
        session.add(FeedPost(...))
"""

from __future__ import annotations

import logging
import os
from collections.abc import Iterator
from contextlib import contextmanager

from sqlalchemy import Engine, create_engine
from sqlalchemy.exc import OperationalError
from sqlalchemy.exc import TimeoutError as PoolTimeoutError
from sqlalchemy.orm import Session

from kudos.config import DEFAULT_CONFIG, KudosConfig
from kudos.database.models import Base
from kudos.errors import DependencyUnavailable

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Engine creation
# ---------------------------------------------------------------------------
def create_db_engine(
    cfg: KudosConfig | None = None,
    url: str | None = None,
) -> Engine:
    """Build a SQLAlchemy :class:`Engine` from ``DATABASE_URL``.

    The pool is sized for a single API process:
    * ``pool_size=5`` — five persistent connections.
    * ``max_overflow=10`` — up to 10 extra connections under load.
    * ``pool_timeout`` — ``cfg.database_timeout_seconds``.
    * ``pool_recycle=3600`` — recycle connections after 1 hour.

    Raises
    ------
    RuntimeError
        If no URL is given and ``DATABASE_URL`` is not set.
    """
    cfg = cfg or DEFAULT_CONFIG
    url = url or os.getenv("DATABASE_URL")
    if not url:
        raise RuntimeError(
            "DATABASE_URL is not set.  "
            "Copy .env.example → .env and set a valid PostgreSQL URL."
        )

    timeout = cfg.database_timeout_seconds
    connect_args: dict = {}
    if url.startswith("postgresql"):
        connect_args = {
            "connect_timeout": timeout,
            "options": f"-c statement_timeout={timeout * 1000}",
        }

    engine = create_engine(
        url,
        echo=False,        # Set True for SQL debugging
        pool_size=5,
        max_overflow=10,
        pool_pre_ping=True,
        pool_timeout=timeout,
        pool_recycle=3600,
        connect_args=connect_args,
    )
    logger.info("Database engine created → %s", engine.url.host)
    return engine


# ---------------------------------------------------------------------------
# Schema initialization
# ---------------------------------------------------------------------------
def init_db(engine: Engine) -> None:
    """Create all tables defined in :mod:`kudos.database.models`.

    .. note::

        In production the schema is managed by Alembic (``alembic upgrade
        head``).  ``create_all`` is retained as a safety net for dev/test
        environments where Alembic may not have run.
    """
    Base.metadata.create_all(engine)
    logger.info("Database tables verified / created.")


# ---------------------------------------------------------------------------
# Session helpers
# ---------------------------------------------------------------------------
@contextmanager
def get_session(engine: Engine) -> Iterator[Session]:
    """Yield a :class:`Session` that auto-commits on success and rolls back
    on exception.
    """
    session = Session(engine, expire_on_commit=False)
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


@contextmanager
def read_session(engine: Engine) -> Iterator[Session]:
    """Read-only :class:`Session` for queries that never commit.

    Loaded objects stay usable after the block.  Connection failures and
    timeouts raise :class:`DependencyUnavailable`, as in
    :func:`ledger_session`.
    """
    session = Session(engine, expire_on_commit=False)
    try:
        yield session
    except (OperationalError, PoolTimeoutError) as exc:
        logger.exception("Ledger store unavailable during read")
        raise DependencyUnavailable(
            "The database is unavailable. Please try again."
        ) from exc
    finally:
        session.close()


@contextmanager
def ledger_session(engine: Engine) -> Iterator[Session]:
    """Unit of work for multi-table ledger writes.

    Same commit / rollback contract as :func:`get_session`, but a database
    that is unreachable, times out, or has no free pooled connection raises
    :class:`DependencyUnavailable` so the API can answer 503.  Every other
    exception (including :class:`~kudos.errors.KudosError`) propagates
    unchanged after the rollback.
    """
    try:
        with get_session(engine) as session:
            yield session
    except (OperationalError, PoolTimeoutError) as exc:
        logger.exception("Ledger store unavailable; transaction rolled back")
        raise DependencyUnavailable(
            "The database is unavailable. Please try again."
        ) from exc
