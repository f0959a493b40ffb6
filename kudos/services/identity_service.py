"""
kudos.services.identity_service — Caller Identity & Users Mirror
=================================================================

The identity provider is external.  The core receives an explicit
:class:`Caller` on every operation and keeps a local ``users`` row per
known person so display names are available to the feed announcer and the
leaderboard without calling back out.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from kudos.constants import UNKNOWN_USER_NAME
from kudos.database.engine import ledger_session, read_session
from kudos.database.models import User
from kudos.errors import Unauthorized

if TYPE_CHECKING:
    from sqlalchemy import Engine

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class Caller:
    """Who is calling, as asserted by the identity provider."""

    user_id: str
    display_name: str
    avatar_url: str | None = None
    is_reviewer: bool = False


def require_reviewer(caller: Caller) -> None:
    """Raise :class:`Unauthorized` unless *caller* holds the reviewer flag."""
    if not caller.is_reviewer:
        logger.warning("Reviewer-only action refused for user %s", caller.user_id)
        raise Unauthorized("Only reviewers can do that.")


def get_or_create_user(
    session: Session,
    user_id: str,
    display_name: str | None = None,
) -> User:
    """Fetch or insert a User row, refreshing the display name if given.

    Two first requests from the same person can race on the insert.  The
    loser's SAVEPOINT is rolled back and it picks up the winner's row.
    """
    user = session.get(User, user_id)
    if user is None:
        user = User(id=user_id, display_name=display_name or UNKNOWN_USER_NAME)
        try:
            with session.begin_nested():   # SAVEPOINT
                session.add(user)
                session.flush()
            return user
        except IntegrityError:
            user = session.get(User, user_id)
            if user is None:
                raise
    if display_name:
        user.display_name = display_name
    return user


def sync_caller(session: Session, caller: Caller) -> User:
    """Mirror the caller's identity claims into ``users``."""
    user = get_or_create_user(session, caller.user_id, caller.display_name)
    user.avatar_url = caller.avatar_url
    user.is_reviewer = caller.is_reviewer
    return user


def sync_user(engine: Engine, caller: Caller) -> None:
    with ledger_session(engine) as session:
        sync_caller(session, caller)


def display_name_for(session: Session, user_id: str | None) -> str:
    if user_id is None:
        return UNKNOWN_USER_NAME
    user = session.get(User, user_id)
    return user.display_name if user else UNKNOWN_USER_NAME


# ---------------------------------------------------------------------------
# Identity boundary reads
# ---------------------------------------------------------------------------
def get_user_profile(engine: Engine, user_id: str) -> dict | None:
    """Return ``{id, display_name, avatar_url}`` or ``None`` if unknown."""
    with read_session(engine) as session:
        user = session.get(User, user_id)
        if user is None:
            return None
        return {
            "id": user.id,
            "display_name": user.display_name,
            "avatar_url": user.avatar_url,
        }


def is_reviewer(engine: Engine, user_id: str) -> bool:
    with read_session(engine) as session:
        user = session.get(User, user_id)
        return bool(user and user.is_reviewer)
