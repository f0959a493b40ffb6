"""
kudos.api.routes.catalog — Achievements, events and scavenger tasks
====================================================================

Reads are public; writes are reviewer-only and audit-logged.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, status
from pydantic import BaseModel, Field
from sqlalchemy import Engine

from kudos.api.deps import get_caller, get_engine
from kudos.api.serializers import achievement_dict, event_dict, task_dict
from kudos.services import catalog_service
from kudos.services.identity_service import Caller

router = APIRouter(tags=["catalog"])


# ---------------------------------------------------------------------------
# Pydantic schemas
# ---------------------------------------------------------------------------
class AchievementCreate(BaseModel):
    title: str
    points: int = Field(ge=0)
    description: str | None = None
    images: list[str] = Field(default_factory=list)


class AchievementUpdate(BaseModel):
    title: str | None = None
    description: str | None = None
    points: int | None = Field(default=None, ge=0)
    images: list[str] | None = None
    active: bool | None = None


class EventCreate(BaseModel):
    name: str
    description: str | None = None
    active: bool = False


class EventActive(BaseModel):
    active: bool


class TaskCreate(BaseModel):
    title: str
    points: int = Field(ge=0)
    description: str | None = None


class TaskUpdate(BaseModel):
    title: str | None = None
    description: str | None = None
    points: int | None = Field(default=None, ge=0)


# ---------------------------------------------------------------------------
# Achievements
# ---------------------------------------------------------------------------
@router.get("/achievements")
def list_achievements(engine: Engine = Depends(get_engine)):
    return {"achievements": [
        achievement_dict(a) for a in catalog_service.list_achievements(engine)
    ]}


@router.get("/achievements/{achievement_id}")
def get_achievement(achievement_id: int, engine: Engine = Depends(get_engine)):
    return achievement_dict(catalog_service.get_achievement(engine, achievement_id))


@router.post("/achievements", status_code=status.HTTP_201_CREATED)
def create_achievement(
    body: AchievementCreate,
    engine: Engine = Depends(get_engine),
    caller: Caller = Depends(get_caller),
):
    ach = catalog_service.create_achievement(engine, caller, **body.model_dump())
    return achievement_dict(ach)


@router.patch("/achievements/{achievement_id}")
def update_achievement(
    achievement_id: int,
    body: AchievementUpdate,
    engine: Engine = Depends(get_engine),
    caller: Caller = Depends(get_caller),
):
    ach = catalog_service.update_achievement(
        engine, caller, achievement_id, **body.model_dump(exclude_unset=True)
    )
    return achievement_dict(ach)


# ---------------------------------------------------------------------------
# Events
# ---------------------------------------------------------------------------
@router.get("/events")
def list_events(engine: Engine = Depends(get_engine)):
    return {"events": [event_dict(e) for e in catalog_service.list_events(engine)]}


@router.post("/events", status_code=status.HTTP_201_CREATED)
def create_event(
    body: EventCreate,
    engine: Engine = Depends(get_engine),
    caller: Caller = Depends(get_caller),
):
    return event_dict(catalog_service.create_event(engine, caller, **body.model_dump()))


@router.post("/events/{event_id}/active")
def set_event_active(
    event_id: int,
    body: EventActive,
    engine: Engine = Depends(get_engine),
    caller: Caller = Depends(get_caller),
):
    return event_dict(
        catalog_service.set_event_active(engine, caller, event_id, body.active)
    )


# ---------------------------------------------------------------------------
# Scavenger tasks
# ---------------------------------------------------------------------------
@router.get("/events/{event_id}/tasks")
def list_tasks(event_id: int, engine: Engine = Depends(get_engine)):
    return {"tasks": [task_dict(t) for t in catalog_service.list_tasks(engine, event_id)]}


@router.post("/events/{event_id}/tasks", status_code=status.HTTP_201_CREATED)
def create_task(
    event_id: int,
    body: TaskCreate,
    engine: Engine = Depends(get_engine),
    caller: Caller = Depends(get_caller),
):
    task = catalog_service.create_task(
        engine, caller, event_id=event_id, **body.model_dump()
    )
    return task_dict(task)


@router.patch("/tasks/{task_id}")
def update_task(
    task_id: int,
    body: TaskUpdate,
    engine: Engine = Depends(get_engine),
    caller: Caller = Depends(get_caller),
):
    task = catalog_service.update_task(
        engine, caller, task_id, **body.model_dump(exclude_unset=True)
    )
    return task_dict(task)
