"""
kudos.api.routes.scores — Leaderboards, totals and profiles
============================================================

Public, read-only.  Everything is computed by
:mod:`kudos.services.score_service` on each request.
"""

from __future__ import annotations

from dataclasses import asdict

from fastapi import APIRouter, Depends, Query
from sqlalchemy import Engine

from kudos.api.deps import get_engine
from kudos.api.serializers import iso
from kudos.services import score_service

router = APIRouter(tags=["scores"])


@router.get("/leaderboard")
def leaderboard(
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
    engine: Engine = Depends(get_engine),
):
    rows = score_service.leaderboard(engine, page, page_size)
    return {
        "page": page,
        "page_size": page_size,
        "users": [asdict(r) for r in rows],
    }


@router.get("/users/{user_id}/points")
def user_points(user_id: str, engine: Engine = Depends(get_engine)):
    return {
        "user_id": user_id,
        "total": score_service.total_points_for_user(engine, user_id),
    }


@router.get("/users/{user_id}/profile")
def user_profile(user_id: str, engine: Engine = Depends(get_engine)):
    """Total plus decided submissions and bonus grants, newest first."""
    profile = score_service.user_history(engine, user_id)
    profile["history"] = [
        {**asdict(item), "created_at": iso(item.created_at)}
        for item in profile["history"]
    ]
    return profile


@router.get("/teams/{team_id}/points")
def team_points(team_id: int, engine: Engine = Depends(get_engine)):
    return {
        "team_id": team_id,
        "total": score_service.total_points_for_team(engine, team_id),
    }


@router.get("/events/{event_id}/leaderboard")
def team_leaderboard(event_id: int, engine: Engine = Depends(get_engine)):
    rows = score_service.team_leaderboard(engine, event_id)
    return {"event_id": event_id, "teams": [asdict(r) for r in rows]}
