"""
kudos.services.catalog_service — Achievements, Events & Scavenger Tasks
========================================================================

Reviewer-only, audit-logged edits to the things participants can claim,
plus the public reads the submission forms use.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError

from kudos.database.engine import read_session
from kudos.database.models import Achievement, Event, ScavengerTask
from kudos.errors import InvalidSubmission, NotFound
from kudos.services.audit import audited_create, audited_update
from kudos.services.identity_service import Caller, require_reviewer

if TYPE_CHECKING:
    from sqlalchemy import Engine

logger = logging.getLogger(__name__)


def _check_title(title: str | None) -> str:
    title = (title or "").strip()
    if not title:
        raise InvalidSubmission("Title is required.")
    return title


def _check_points(points: int | None) -> None:
    if points is not None and (isinstance(points, bool) or points < 0):
        raise InvalidSubmission("Points must be zero or more.")


# ---------------------------------------------------------------------------
# Achievements
# ---------------------------------------------------------------------------
def create_achievement(
    engine: Engine,
    caller: Caller,
    *,
    title: str,
    points: int,
    description: str | None = None,
    images: list[str] | None = None,
) -> Achievement:
    require_reviewer(caller)
    _check_points(points)
    ach = audited_create(
        engine,
        Achievement(
            title=_check_title(title),
            description=description,
            points=points,
            images=list(images or []),
        ),
        table_name="achievements",
        actor_id=caller.user_id,
    )
    logger.info("Achievement %d %r created (%d pts)", ach.id, ach.title, ach.points)
    return ach


def update_achievement(
    engine: Engine,
    caller: Caller,
    achievement_id: int,
    *,
    title: str | None = None,
    description: str | None = None,
    points: int | None = None,
    images: list[str] | None = None,
    active: bool | None = None,
) -> Achievement:
    """Edit an achievement.  Already-awarded ledger rows keep their points."""
    require_reviewer(caller)
    _check_points(points)
    if title is not None:
        title = _check_title(title)
    return audited_update(
        engine,
        Achievement,
        achievement_id,
        table_name="achievements",
        actor_id=caller.user_id,
        title=title,
        description=description,
        points=points,
        images=images,
        active=active,
    )


def list_achievements(engine: Engine, *, include_inactive: bool = False) -> list[Achievement]:
    stmt = select(Achievement).order_by(Achievement.id)
    if not include_inactive:
        stmt = stmt.where(Achievement.active.is_(True))
    with read_session(engine) as session:
        return list(session.scalars(stmt).all())


def get_achievement(engine: Engine, achievement_id: int) -> Achievement:
    with read_session(engine) as session:
        ach = session.get(Achievement, achievement_id)
        if ach is None:
            raise NotFound(f"Achievement {achievement_id} not found.")
        return ach


# ---------------------------------------------------------------------------
# Events
# ---------------------------------------------------------------------------
def create_event(
    engine: Engine,
    caller: Caller,
    *,
    name: str,
    description: str | None = None,
    active: bool = False,
) -> Event:
    require_reviewer(caller)
    name = _check_title(name)
    try:
        return audited_create(
            engine,
            Event(name=name, description=description, active=active),
            table_name="events",
            actor_id=caller.user_id,
        )
    except IntegrityError:
        raise InvalidSubmission(f"An event named {name!r} already exists.") from None


def set_event_active(engine: Engine, caller: Caller, event_id: int, active: bool) -> Event:
    require_reviewer(caller)
    event = audited_update(
        engine,
        Event,
        event_id,
        table_name="events",
        actor_id=caller.user_id,
        active=bool(active),
    )
    logger.info("Event %d is now %s", event_id, "live" if active else "closed")
    return event


def list_events(engine: Engine) -> list[Event]:
    with read_session(engine) as session:
        return list(session.scalars(select(Event).order_by(Event.id)).all())


# ---------------------------------------------------------------------------
# Scavenger tasks
# ---------------------------------------------------------------------------
def create_task(
    engine: Engine,
    caller: Caller,
    *,
    event_id: int,
    title: str,
    points: int,
    description: str | None = None,
) -> ScavengerTask:
    require_reviewer(caller)
    _check_points(points)
    with read_session(engine) as session:
        if session.get(Event, event_id) is None:
            raise NotFound(f"Event {event_id} not found.")
    return audited_create(
        engine,
        ScavengerTask(
            event_id=event_id,
            title=_check_title(title),
            description=description,
            points=points,
        ),
        table_name="scavenger_tasks",
        actor_id=caller.user_id,
    )


def update_task(
    engine: Engine,
    caller: Caller,
    task_id: int,
    *,
    title: str | None = None,
    description: str | None = None,
    points: int | None = None,
) -> ScavengerTask:
    require_reviewer(caller)
    _check_points(points)
    if title is not None:
        title = _check_title(title)
    return audited_update(
        engine,
        ScavengerTask,
        task_id,
        table_name="scavenger_tasks",
        actor_id=caller.user_id,
        frozen_keys=("id", "event_id", "created_at"),
        title=title,
        description=description,
        points=points,
    )


def list_tasks(engine: Engine, event_id: int) -> list[ScavengerTask]:
    with read_session(engine) as session:
        return list(session.scalars(
            select(ScavengerTask)
            .where(ScavengerTask.event_id == event_id)
            .order_by(ScavengerTask.id)
        ).all())
