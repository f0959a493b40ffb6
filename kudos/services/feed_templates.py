"""
kudos.services.feed_templates — Feed post builders for review decisions
========================================================================

All announcement text lives here so the review processor only supplies
data and never formats strings.  Builders are pure: they return a
:class:`FeedPostDraft` which :mod:`kudos.services.feed_service` inserts in
the caller's transaction.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from kudos.config import DEFAULT_CONFIG, KudosConfig
from kudos.constants import (
    EMOJI_APPROVED,
    EMOJI_BONUS,
    EMOJI_JUDGE,
    EMOJI_NOTE,
    EMOJI_REVOKED,
    EMOJI_TASK_NO,
    EMOJI_TASK_OK,
    split_media,
)
from kudos.database.models import FeedEventType


@dataclass
class FeedPostDraft:
    """A feed post that has not been written yet."""

    author_name: str
    content: str
    event_type: str
    user_id: str | None = None
    image_urls: list[str] = field(default_factory=list)
    video_urls: list[str] = field(default_factory=list)
    is_announcement: bool = False
    team_id: int | None = None
    submission_id: int | None = None


def _with_media(draft: FeedPostDraft, media_urls: list[str] | None) -> FeedPostDraft:
    draft.image_urls, draft.video_urls = split_media(media_urls)
    return draft


def _append_quoted(lines: list[str], label: str, text: str | None) -> None:
    if text:
        lines.append(f'{EMOJI_NOTE} {label}: "{text}"')


def _append_comment(lines: list[str], comment: str | None) -> None:
    if comment:
        lines.append(f'{EMOJI_JUDGE} Judge\'s comment: "{comment}"')


# ---------------------------------------------------------------------------
# Achievements
# ---------------------------------------------------------------------------
def build_approval_post(
    *,
    user_id: str,
    display_name: str,
    title: str,
    points: int,
    submission_id: int,
    submission_text: str | None = None,
    comment: str | None = None,
    media_urls: list[str] | None = None,
    cfg: KudosConfig | None = None,
) -> FeedPostDraft:
    """Celebrate an approved achievement on the global feed."""
    cfg = cfg or DEFAULT_CONFIG
    lines = [
        f"{EMOJI_APPROVED} {display_name} just earned +{points} points "
        f'for completing "{title}"!'
    ]
    _append_quoted(lines, "Submission", submission_text)
    _append_comment(lines, comment)
    return _with_media(
        FeedPostDraft(
            author_name=cfg.system_author_name,
            content="\n\n".join(lines),
            event_type=FeedEventType.ACHIEVEMENT_APPROVED,
            user_id=user_id,
            submission_id=submission_id,
        ),
        media_urls,
    )


def build_revocation_post(
    *,
    user_id: str,
    display_name: str,
    title: str,
    submission_id: int,
    submission_text: str | None = None,
    comment: str | None = None,
    media_urls: list[str] | None = None,
    cfg: KudosConfig | None = None,
) -> FeedPostDraft:
    """Record a revoked achievement, carrying over the original proof."""
    cfg = cfg or DEFAULT_CONFIG
    lines = [
        f'{EMOJI_REVOKED} {display_name}\'s achievement "{title}" '
        "has been revoked."
    ]
    _append_quoted(lines, "Original submission", submission_text)
    _append_comment(lines, comment)
    return _with_media(
        FeedPostDraft(
            author_name=cfg.system_author_name,
            content="\n\n".join(lines),
            event_type=FeedEventType.ACHIEVEMENT_REVOKED,
            user_id=user_id,
            submission_id=submission_id,
        ),
        media_urls,
    )


def build_bonus_post(
    *,
    user_id: str,
    display_name: str,
    points: int,
    reason: str | None = None,
    proof_url: str | None = None,
    cfg: KudosConfig | None = None,
) -> FeedPostDraft:
    cfg = cfg or DEFAULT_CONFIG
    lines = [f"{EMOJI_BONUS} {display_name} just received +{points} bonus points!"]
    _append_quoted(lines, "Reason", reason)
    return _with_media(
        FeedPostDraft(
            author_name=cfg.system_author_name,
            content="\n\n".join(lines),
            event_type=FeedEventType.BONUS_POINTS,
            user_id=user_id,
        ),
        [proof_url] if proof_url else None,
    )


# ---------------------------------------------------------------------------
# Scavenger-hunt tasks (team feed only)
# ---------------------------------------------------------------------------
def build_team_decision_post(
    *,
    event_type: FeedEventType,
    team_id: int,
    team_name: str,
    task_title: str,
    submission_id: int,
    points: int = 0,
    comment: str | None = None,
    media_urls: list[str] | None = None,
    cfg: KudosConfig | None = None,
) -> FeedPostDraft:
    """Judge's message to one team about one of its task submissions.

    *event_type* is one of ``TASK_APPROVED``, ``TASK_REJECTED`` or
    ``TASK_REVOKED``.
    """
    cfg = cfg or DEFAULT_CONFIG
    if event_type == FeedEventType.TASK_APPROVED:
        headline = (
            f'{EMOJI_TASK_OK} "{task_title}" was approved for {team_name}! '
            f"+{points} points."
        )
    elif event_type == FeedEventType.TASK_REJECTED:
        headline = f'{EMOJI_TASK_NO} "{task_title}" was not accepted for {team_name}.'
    elif event_type == FeedEventType.TASK_REVOKED:
        headline = (
            f'{EMOJI_REVOKED} "{task_title}" has been revoked for {team_name}. '
            f"-{points} points."
        )
    else:
        raise ValueError(f"Not a team decision event type: {event_type!r}")

    lines = [headline]
    _append_comment(lines, comment)
    return _with_media(
        FeedPostDraft(
            author_name=cfg.judge_author_name,
            content="\n\n".join(lines),
            event_type=event_type,
            team_id=team_id,
            submission_id=submission_id,
        ),
        media_urls,
    )
