"""
kudos.api.routes.submissions — Achievement & task submissions, proof uploads
=============================================================================
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, Form, UploadFile, status
from pydantic import BaseModel, Field
from sqlalchemy import Engine

from kudos.api.deps import get_caller, get_config, get_engine
from kudos.api.serializers import submission_dict, team_submission_dict
from kudos.config import KudosConfig
from kudos.errors import Unauthorized
from kudos.services import submission_service
from kudos.services.identity_service import Caller
from kudos.services.upload_service import upload_proof

router = APIRouter(tags=["submissions"])
logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Pydantic schemas
# ---------------------------------------------------------------------------
class SubmissionCreate(BaseModel):
    achievement_id: int
    submission_text: str | None = None
    media_urls: list[str] = Field(default_factory=list)


class TeamSubmissionCreate(BaseModel):
    task_id: int
    submission_text: str | None = None
    media_urls: list[str] = Field(default_factory=list)


# ---------------------------------------------------------------------------
# Achievement submissions
# ---------------------------------------------------------------------------
@router.post("/submissions", status_code=status.HTTP_201_CREATED)
def create_submission(
    body: SubmissionCreate,
    engine: Engine = Depends(get_engine),
    caller: Caller = Depends(get_caller),
    cfg: KudosConfig = Depends(get_config),
):
    """Claim an achievement.  The new submission waits for review."""
    submission_id = submission_service.create_submission(
        engine,
        caller,
        body.achievement_id,
        body.submission_text,
        body.media_urls,
        cfg=cfg,
    )
    return {"id": submission_id, "status": "pending"}


@router.get("/submissions/mine")
def my_submissions(
    engine: Engine = Depends(get_engine),
    caller: Caller = Depends(get_caller),
):
    subs = submission_service.list_user_submissions(engine, caller.user_id)
    return {"submissions": [submission_dict(s) for s in subs]}


@router.get("/submissions/{submission_id}")
def get_submission(
    submission_id: int,
    engine: Engine = Depends(get_engine),
    caller: Caller = Depends(get_caller),
):
    sub = submission_service.get_submission(engine, submission_id)
    if sub.user_id != caller.user_id and not caller.is_reviewer:
        raise Unauthorized("You can only view your own submissions.")
    return submission_dict(sub)


# ---------------------------------------------------------------------------
# Team (scavenger-hunt) submissions
# ---------------------------------------------------------------------------
@router.post("/teams/{team_id}/submissions", status_code=status.HTTP_201_CREATED)
def create_team_submission(
    team_id: int,
    body: TeamSubmissionCreate,
    engine: Engine = Depends(get_engine),
    caller: Caller = Depends(get_caller),
    cfg: KudosConfig = Depends(get_config),
):
    submission_id = submission_service.create_team_submission(
        engine,
        caller,
        team_id,
        body.task_id,
        body.submission_text,
        body.media_urls,
        cfg=cfg,
    )
    return {"id": submission_id, "status": "pending"}


@router.get("/teams/{team_id}/submissions")
def team_submissions(
    team_id: int,
    engine: Engine = Depends(get_engine),
    caller: Caller = Depends(get_caller),
):
    """A team's per-task progress."""
    subs = submission_service.list_team_submissions(engine, team_id)
    return {"submissions": [team_submission_dict(s) for s in subs]}


# ---------------------------------------------------------------------------
# Proof uploads
# ---------------------------------------------------------------------------
@router.post("/uploads", status_code=status.HTTP_201_CREATED)
async def upload(
    file: UploadFile,
    folder: str = Form("submissions"),
    caller: Caller = Depends(get_caller),
    cfg: KudosConfig = Depends(get_config),
):
    """Store a proof image or video; returns the URL to attach to a submission."""
    content = await file.read()
    url = await upload_proof(
        content,
        f"{folder}/{caller.user_id}",
        file.content_type,
        filename=file.filename,
        cfg=cfg,
    )
    return {"url": url}
