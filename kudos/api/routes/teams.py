"""
kudos.api.routes.teams — Scavenger-hunt teams and rosters
==========================================================
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Query, status
from pydantic import BaseModel
from sqlalchemy import Engine

from kudos.api.deps import get_caller, get_engine
from kudos.api.serializers import team_dict
from kudos.services import team_service
from kudos.services.identity_service import Caller

router = APIRouter(prefix="/teams", tags=["teams"])


class TeamCreate(BaseModel):
    event_id: int
    name: str


class MemberAdd(BaseModel):
    user_id: str
    display_name: str | None = None


@router.get("")
def list_teams(
    event_id: int | None = Query(None),
    engine: Engine = Depends(get_engine),
):
    return {"teams": [team_dict(t) for t in team_service.list_teams(engine, event_id)]}


@router.get("/{team_id}")
def get_team(team_id: int, engine: Engine = Depends(get_engine)):
    return team_dict(team_service.get_team(engine, team_id))


@router.post("", status_code=status.HTTP_201_CREATED)
def create_team(
    body: TeamCreate,
    engine: Engine = Depends(get_engine),
    caller: Caller = Depends(get_caller),
):
    team = team_service.create_team(engine, caller, event_id=body.event_id, name=body.name)
    return {**team_dict(team, with_members=False), "members": []}


@router.post("/{team_id}/members", status_code=status.HTTP_201_CREATED)
def add_member(
    team_id: int,
    body: MemberAdd,
    engine: Engine = Depends(get_engine),
    caller: Caller = Depends(get_caller),
):
    team_service.add_team_member(
        engine, caller, team_id=team_id,
        user_id=body.user_id, display_name=body.display_name,
    )
    return team_dict(team_service.get_team(engine, team_id))


@router.delete("/{team_id}/members/{user_id}", status_code=status.HTTP_204_NO_CONTENT)
def remove_member(
    team_id: int,
    user_id: str,
    engine: Engine = Depends(get_engine),
    caller: Caller = Depends(get_caller),
):
    team_service.remove_team_member(engine, caller, team_id=team_id, user_id=user_id)
