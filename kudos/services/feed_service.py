"""
kudos.services.feed_service — Activity Feed Writer & Reads
===========================================================

Feed posts and their comments are write-once.  This module can insert
them and list them; there is no edit or delete function.

A post scoped to a team is visible only to that team's members and to
reviewers, and so are its comments.

System posts produced by review decisions go through :func:`write_post`
with the decision's own session, so a rolled-back decision never leaves
an announcement behind.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from kudos.config import DEFAULT_CONFIG, KudosConfig
from kudos.constants import split_media
from kudos.database.engine import ledger_session, read_session
from kudos.database.models import Comment, FeedEventType, FeedPost, Team
from kudos.engine.lifecycle import clean_submission_input
from kudos.errors import InvalidSubmission, NotFound, Unauthorized
from kudos.services.feed_templates import FeedPostDraft
from kudos.services.identity_service import Caller, require_reviewer, sync_caller
from kudos.services.team_service import is_team_member

if TYPE_CHECKING:
    from sqlalchemy import Engine

logger = logging.getLogger(__name__)

DEFAULT_FEED_LIMIT = 20
MAX_FEED_LIMIT = 100


def write_post(session: Session, draft: FeedPostDraft) -> FeedPost:
    """Insert *draft* in the caller's transaction and return the new row."""
    post = FeedPost(
        user_id=draft.user_id,
        author_name=draft.author_name,
        content=draft.content,
        image_urls=list(draft.image_urls),
        video_urls=list(draft.video_urls),
        is_announcement=draft.is_announcement,
        event_type=str(draft.event_type),
        team_id=draft.team_id,
        submission_id=draft.submission_id,
    )
    session.add(post)
    session.flush()
    session.refresh(post)
    return post


def _manual_draft(
    caller: Caller,
    content: str,
    media_urls: list[str] | None,
    cfg: KudosConfig,
) -> FeedPostDraft:
    text, urls = clean_submission_input(content, media_urls, cfg)
    if text is None and not urls:
        raise InvalidSubmission("A post needs some text or media.")
    images, videos = split_media(urls)
    return FeedPostDraft(
        author_name=caller.display_name,
        content=text or "",
        event_type=FeedEventType.POST,
        user_id=caller.user_id,
        image_urls=images,
        video_urls=videos,
    )


# ---------------------------------------------------------------------------
# Manual posts
# ---------------------------------------------------------------------------
def create_post(
    engine: Engine,
    caller: Caller,
    content: str,
    media_urls: list[str] | None = None,
    *,
    is_announcement: bool = False,
    cfg: KudosConfig | None = None,
) -> FeedPost:
    """Post to the global feed.  Announcements are reviewer-only."""
    cfg = cfg or DEFAULT_CONFIG
    if is_announcement:
        require_reviewer(caller)
    draft = _manual_draft(caller, content, media_urls, cfg)
    if is_announcement:
        draft.is_announcement = True
        draft.event_type = FeedEventType.ANNOUNCEMENT

    with ledger_session(engine) as session:
        sync_caller(session, caller)
        post = write_post(session, draft)
    logger.info("Feed post %d created by %s", post.id, caller.user_id)
    return post


def create_team_post(
    engine: Engine,
    caller: Caller,
    team_id: int,
    content: str,
    media_urls: list[str] | None = None,
    *,
    cfg: KudosConfig | None = None,
) -> FeedPost:
    """Post to a team's feed.  Only members of that team may post."""
    cfg = cfg or DEFAULT_CONFIG
    draft = _manual_draft(caller, content, media_urls, cfg)
    draft.team_id = team_id

    with ledger_session(engine) as session:
        if session.get(Team, team_id) is None:
            raise NotFound(f"Team {team_id} not found.")
        if not is_team_member(session, team_id, caller.user_id):
            raise Unauthorized("Only team members can post to this team's feed.")
        sync_caller(session, caller)
        post = write_post(session, draft)
    return post


# ---------------------------------------------------------------------------
# Reads (newest first, keyset-paginated by id)
# ---------------------------------------------------------------------------
def _clamp_limit(limit: int) -> int:
    if limit < 1:
        raise InvalidSubmission("limit must be positive.")
    return min(limit, MAX_FEED_LIMIT)


def list_feed(
    engine: Engine,
    *,
    limit: int = DEFAULT_FEED_LIMIT,
    before_id: int | None = None,
) -> list[FeedPost]:
    """Global feed: every post not scoped to a team."""
    stmt = select(FeedPost).where(FeedPost.team_id.is_(None))
    if before_id is not None:
        stmt = stmt.where(FeedPost.id < before_id)
    stmt = stmt.order_by(FeedPost.id.desc()).limit(_clamp_limit(limit))
    with read_session(engine) as session:
        return list(session.scalars(stmt).all())


def list_team_feed(
    engine: Engine,
    team_id: int,
    *,
    limit: int = DEFAULT_FEED_LIMIT,
    before_id: int | None = None,
) -> list[FeedPost]:
    stmt = select(FeedPost).where(FeedPost.team_id == team_id)
    if before_id is not None:
        stmt = stmt.where(FeedPost.id < before_id)
    stmt = stmt.order_by(FeedPost.id.desc()).limit(_clamp_limit(limit))
    with read_session(engine) as session:
        return list(session.scalars(stmt).all())


def comment_counts(engine: Engine, post_ids: list[int]) -> dict[int, int]:
    """Number of comments per post id; posts without comments are omitted."""
    if not post_ids:
        return {}
    stmt = (
        select(Comment.post_id, func.count(Comment.id))
        .where(Comment.post_id.in_(post_ids))
        .group_by(Comment.post_id)
    )
    with read_session(engine) as session:
        return {post_id: count for post_id, count in session.execute(stmt)}


# ---------------------------------------------------------------------------
# Comments
# ---------------------------------------------------------------------------
def _visible_post(session: Session, caller: Caller, post_id: int) -> FeedPost:
    post = session.get(FeedPost, post_id)
    if post is None:
        raise NotFound(f"Post {post_id} not found.")
    if (
        post.team_id is not None
        and not caller.is_reviewer
        and not is_team_member(session, post.team_id, caller.user_id)
    ):
        raise Unauthorized("Only team members can see this team's posts.")
    return post


def add_comment(
    engine: Engine,
    caller: Caller,
    post_id: int,
    content: str,
    media_urls: list[str] | None = None,
    *,
    cfg: KudosConfig | None = None,
) -> Comment:
    """Reply to a post.  Same text and media limits as a post."""
    cfg = cfg or DEFAULT_CONFIG
    text, urls = clean_submission_input(content, media_urls, cfg)
    if text is None and not urls:
        raise InvalidSubmission("A comment needs some text or media.")
    images, videos = split_media(urls)

    with ledger_session(engine) as session:
        _visible_post(session, caller, post_id)
        sync_caller(session, caller)
        comment = Comment(
            post_id=post_id,
            user_id=caller.user_id,
            author_name=caller.display_name,
            content=text or "",
            image_urls=images,
            video_urls=videos,
        )
        session.add(comment)
        session.flush()
        session.refresh(comment)
    logger.info("Comment %d on post %d by %s", comment.id, post_id, caller.user_id)
    return comment


def list_comments(engine: Engine, caller: Caller, post_id: int) -> list[Comment]:
    """Comments on a post, oldest first."""
    with read_session(engine) as session:
        _visible_post(session, caller, post_id)
        return list(session.scalars(
            select(Comment).where(Comment.post_id == post_id).order_by(Comment.id)
        ).all())
