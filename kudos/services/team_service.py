"""
kudos.services.team_service — Scavenger-Hunt Teams & Rosters
=============================================================

A user belongs to at most one team per event.  The rule is enforced by a
unique constraint on ``team_members (event_id, user_id)``; the pre-check
here only exists to give a precise error before the insert.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, selectinload

from kudos.database.engine import ledger_session, read_session
from kudos.database.models import AuditAction, Event, Team, TeamMember
from kudos.errors import InvalidSubmission, NotFound, TeamMembershipConflict
from kudos.services.audit import audited_create, log_audit, row_to_dict
from kudos.services.identity_service import (
    Caller,
    get_or_create_user,
    require_reviewer,
)

if TYPE_CHECKING:
    from sqlalchemy import Engine

logger = logging.getLogger(__name__)


def is_team_member(session: Session, team_id: int, user_id: str) -> bool:
    return session.get(TeamMember, (team_id, user_id)) is not None


def get_team_for_user(session: Session, event_id: int, user_id: str) -> Team | None:
    """The user's team for *event_id*, or ``None``."""
    return session.scalar(
        select(Team)
        .join(TeamMember, TeamMember.team_id == Team.id)
        .where(TeamMember.event_id == event_id, TeamMember.user_id == user_id)
    )


# ---------------------------------------------------------------------------
# Reviewer mutations (audited)
# ---------------------------------------------------------------------------
def create_team(engine: Engine, caller: Caller, *, event_id: int, name: str) -> Team:
    require_reviewer(caller)
    name = (name or "").strip()
    if not name:
        raise InvalidSubmission("Team name is required.")
    with read_session(engine) as session:
        if session.get(Event, event_id) is None:
            raise NotFound(f"Event {event_id} not found.")
    try:
        team = audited_create(
            engine,
            Team(event_id=event_id, name=name),
            table_name="teams",
            actor_id=caller.user_id,
        )
    except IntegrityError:
        raise InvalidSubmission(
            f"A team named {name!r} already exists for this event."
        ) from None
    logger.info("Team %d %r created for event %d", team.id, name, event_id)
    return team


def add_team_member(
    engine: Engine,
    caller: Caller,
    *,
    team_id: int,
    user_id: str,
    display_name: str | None = None,
) -> TeamMember:
    """Put *user_id* on *team_id*.

    Raises :class:`TeamMembershipConflict` if the user is already on any
    team of the same event.
    """
    require_reviewer(caller)
    with ledger_session(engine) as session:
        team = session.get(Team, team_id)
        if team is None:
            raise NotFound(f"Team {team_id} not found.")
        existing = get_team_for_user(session, team.event_id, user_id)
        if existing is not None:
            logger.warning(
                "User %s already on team %d for event %d",
                user_id, existing.id, team.event_id,
            )
            raise TeamMembershipConflict(
                f"User is already on team {existing.name!r} for this event."
            )

        get_or_create_user(session, user_id, display_name)
        member = TeamMember(team_id=team_id, user_id=user_id, event_id=team.event_id)
        try:
            with session.begin_nested():
                session.add(member)
                session.flush()
        except IntegrityError:
            raise TeamMembershipConflict() from None
        session.refresh(member)

        log_audit(
            session,
            actor_id=caller.user_id,
            action=AuditAction.CREATE,
            target_table="team_members",
            target_id=f"{team_id}:{user_id}",
            before=None,
            after=row_to_dict(member),
        )
    return member


def remove_team_member(
    engine: Engine,
    caller: Caller,
    *,
    team_id: int,
    user_id: str,
) -> None:
    require_reviewer(caller)
    with ledger_session(engine) as session:
        member = session.get(TeamMember, (team_id, user_id))
        if member is None:
            raise NotFound("That user is not on this team.")
        log_audit(
            session,
            actor_id=caller.user_id,
            action=AuditAction.DELETE,
            target_table="team_members",
            target_id=f"{team_id}:{user_id}",
            before=row_to_dict(member),
            after=None,
        )
        session.delete(member)


# ---------------------------------------------------------------------------
# Reads
# ---------------------------------------------------------------------------
def get_team(engine: Engine, team_id: int) -> Team:
    with read_session(engine) as session:
        team = session.scalar(
            select(Team)
            .options(selectinload(Team.members))
            .where(Team.id == team_id)
        )
        if team is None:
            raise NotFound(f"Team {team_id} not found.")
        return team


def list_teams(engine: Engine, event_id: int | None = None) -> list[Team]:
    stmt = select(Team).options(selectinload(Team.members)).order_by(Team.id)
    if event_id is not None:
        stmt = stmt.where(Team.event_id == event_id)
    with read_session(engine) as session:
        return list(session.scalars(stmt).all())
