"""
kudos.api.routes.review — Reviewer queue, decisions and bonus grants
=====================================================================

Every endpoint here is reviewer-only; the service layer enforces it and
the app maps :class:`~kudos.errors.Unauthorized` to 403.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, status
from pydantic import BaseModel
from sqlalchemy import Engine

from kudos.api.deps import get_caller, get_config, get_engine
from kudos.api.serializers import outcome_dict, submission_dict, team_submission_dict
from kudos.config import KudosConfig
from kudos.services import review_service, submission_service
from kudos.services.identity_service import Caller

router = APIRouter(prefix="/review", tags=["review"])


# ---------------------------------------------------------------------------
# Pydantic schemas
# ---------------------------------------------------------------------------
class ApproveBody(BaseModel):
    comment: str | None = None
    point_override: int | None = None


class TeamApproveBody(BaseModel):
    comment: str | None = None
    points: int | None = None


class RejectBody(BaseModel):
    comment: str | None = None


class BonusBody(BaseModel):
    user_id: str
    points: int
    reason: str | None = None
    proof_url: str | None = None


# ---------------------------------------------------------------------------
# Queue
# ---------------------------------------------------------------------------
@router.get("/queue")
def review_queue(
    engine: Engine = Depends(get_engine),
    caller: Caller = Depends(get_caller),
):
    queue = submission_service.list_pending(engine, caller)
    return {
        "achievements": [submission_dict(s) for s in queue["achievements"]],
        "tasks": [team_submission_dict(s) for s in queue["tasks"]],
    }


# ---------------------------------------------------------------------------
# Achievement decisions
# ---------------------------------------------------------------------------
@router.post("/submissions/{submission_id}/approve")
def approve_submission(
    submission_id: int,
    body: ApproveBody,
    engine: Engine = Depends(get_engine),
    caller: Caller = Depends(get_caller),
    cfg: KudosConfig = Depends(get_config),
):
    outcome = review_service.approve(
        engine, submission_id, caller, body.comment, body.point_override, cfg=cfg
    )
    return outcome_dict(outcome)


@router.post("/submissions/{submission_id}/reject")
def reject_submission(
    submission_id: int,
    body: RejectBody,
    engine: Engine = Depends(get_engine),
    caller: Caller = Depends(get_caller),
    cfg: KudosConfig = Depends(get_config),
):
    """Reject a pending submission, or revoke an approved one."""
    outcome = review_service.reject(engine, submission_id, caller, body.comment, cfg=cfg)
    return outcome_dict(outcome)


@router.post("/submissions/{submission_id}/revoke")
def revoke_submission(
    submission_id: int,
    body: RejectBody,
    engine: Engine = Depends(get_engine),
    caller: Caller = Depends(get_caller),
    cfg: KudosConfig = Depends(get_config),
):
    outcome = review_service.revoke(engine, submission_id, caller, body.comment, cfg=cfg)
    return outcome_dict(outcome)


# ---------------------------------------------------------------------------
# Team decisions
# ---------------------------------------------------------------------------
@router.post("/team-submissions/{submission_id}/approve")
def approve_team_submission(
    submission_id: int,
    body: TeamApproveBody,
    engine: Engine = Depends(get_engine),
    caller: Caller = Depends(get_caller),
    cfg: KudosConfig = Depends(get_config),
):
    outcome = review_service.approve_team_submission(
        engine, submission_id, caller, body.comment, body.points, cfg=cfg
    )
    return outcome_dict(outcome)


@router.post("/team-submissions/{submission_id}/reject")
def reject_team_submission(
    submission_id: int,
    body: RejectBody,
    engine: Engine = Depends(get_engine),
    caller: Caller = Depends(get_caller),
    cfg: KudosConfig = Depends(get_config),
):
    outcome = review_service.reject_team_submission(
        engine, submission_id, caller, body.comment, cfg=cfg
    )
    return outcome_dict(outcome)


# ---------------------------------------------------------------------------
# Bonus points
# ---------------------------------------------------------------------------
@router.post("/bonus", status_code=status.HTTP_201_CREATED)
def grant_bonus(
    body: BonusBody,
    engine: Engine = Depends(get_engine),
    caller: Caller = Depends(get_caller),
    cfg: KudosConfig = Depends(get_config),
):
    outcome = review_service.grant_bonus(
        engine, caller, body.user_id, body.points, body.reason, body.proof_url, cfg=cfg
    )
    return outcome_dict(outcome)
