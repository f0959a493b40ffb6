"""
kudos.api.routes.feed — Global and team activity feeds
=======================================================

Posts and comments are write-once: there are no edit or delete endpoints.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Query, status
from pydantic import BaseModel, Field
from sqlalchemy import Engine

from kudos.api.deps import get_caller, get_config, get_engine
from kudos.api.serializers import comment_dict, feed_post_dict
from kudos.config import KudosConfig
from kudos.errors import Unauthorized
from kudos.services import feed_service
from kudos.services.identity_service import Caller
from kudos.services.team_service import get_team

router = APIRouter(tags=["feed"])


class PostCreate(BaseModel):
    content: str = ""
    media_urls: list[str] = Field(default_factory=list)
    is_announcement: bool = False


class TeamPostCreate(BaseModel):
    content: str = ""
    media_urls: list[str] = Field(default_factory=list)


class CommentCreate(BaseModel):
    content: str = ""
    media_urls: list[str] = Field(default_factory=list)


def _with_counts(engine: Engine, posts) -> dict:
    counts = feed_service.comment_counts(engine, [p.id for p in posts])
    return {"posts": [feed_post_dict(p, counts.get(p.id, 0)) for p in posts]}


@router.get("/feed")
def global_feed(
    limit: int = Query(20, ge=1, le=100),
    before_id: int | None = Query(None),
    engine: Engine = Depends(get_engine),
):
    posts = feed_service.list_feed(engine, limit=limit, before_id=before_id)
    return _with_counts(engine, posts)


@router.post("/feed", status_code=status.HTTP_201_CREATED)
def create_post(
    body: PostCreate,
    engine: Engine = Depends(get_engine),
    caller: Caller = Depends(get_caller),
    cfg: KudosConfig = Depends(get_config),
):
    post = feed_service.create_post(
        engine,
        caller,
        body.content,
        body.media_urls,
        is_announcement=body.is_announcement,
        cfg=cfg,
    )
    return feed_post_dict(post)


@router.get("/teams/{team_id}/feed")
def team_feed(
    team_id: int,
    limit: int = Query(20, ge=1, le=100),
    before_id: int | None = Query(None),
    engine: Engine = Depends(get_engine),
    caller: Caller = Depends(get_caller),
):
    """A team's private feed: its members and reviewers only."""
    team = get_team(engine, team_id)
    if caller.user_id not in team.member_ids and not caller.is_reviewer:
        raise Unauthorized("Only team members can read this team's feed.")
    posts = feed_service.list_team_feed(
        engine, team_id, limit=limit, before_id=before_id
    )
    return _with_counts(engine, posts)


@router.post("/teams/{team_id}/feed", status_code=status.HTTP_201_CREATED)
def create_team_post(
    team_id: int,
    body: TeamPostCreate,
    engine: Engine = Depends(get_engine),
    caller: Caller = Depends(get_caller),
    cfg: KudosConfig = Depends(get_config),
):
    post = feed_service.create_team_post(
        engine, caller, team_id, body.content, body.media_urls, cfg=cfg
    )
    return feed_post_dict(post)


@router.get("/feed/{post_id}/comments")
def list_comments(
    post_id: int,
    engine: Engine = Depends(get_engine),
    caller: Caller = Depends(get_caller),
):
    comments = feed_service.list_comments(engine, caller, post_id)
    return {"comments": [comment_dict(c) for c in comments]}


@router.post("/feed/{post_id}/comments", status_code=status.HTTP_201_CREATED)
def add_comment(
    post_id: int,
    body: CommentCreate,
    engine: Engine = Depends(get_engine),
    caller: Caller = Depends(get_caller),
    cfg: KudosConfig = Depends(get_config),
):
    comment = feed_service.add_comment(
        engine, caller, post_id, body.content, body.media_urls, cfg=cfg
    )
    return comment_dict(comment)
