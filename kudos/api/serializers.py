"""
kudos.api.serializers — ORM rows → JSON-ready dicts
====================================================
"""

from __future__ import annotations

from dataclasses import asdict
from datetime import datetime

from kudos.database.models import (
    Achievement,
    Comment,
    Event,
    FeedPost,
    ScavengerTask,
    Submission,
    Team,
    TeamSubmission,
)


def iso(value: datetime | None) -> str | None:
    return value.isoformat() if value else None


def submission_dict(sub: Submission) -> dict:
    return {
        "id": sub.id,
        "user_id": sub.user_id,
        "achievement_id": sub.achievement_id,
        "achievement_title": sub.achievement.title if sub.achievement else None,
        "submission_text": sub.submission_text,
        "media_urls": sub.media_urls or [],
        "status": sub.display_status,
        "judge_comment": sub.judge_comment,
        "points_override": sub.points_override,
        "reviewed_by": sub.reviewed_by,
        "reviewed_at": iso(sub.reviewed_at),
        "created_at": iso(sub.created_at),
    }


def team_submission_dict(sub: TeamSubmission) -> dict:
    return {
        "id": sub.id,
        "team_id": sub.team_id,
        "task_id": sub.task_id,
        "task_title": sub.task.title if sub.task else None,
        "submitted_by": sub.submitted_by,
        "submission_text": sub.submission_text,
        "media_urls": sub.media_urls or [],
        "status": sub.display_status,
        "judge_comment": sub.judge_comment,
        "points_awarded": sub.points_awarded,
        "reviewed_at": iso(sub.reviewed_at),
        "created_at": iso(sub.created_at),
    }


def feed_post_dict(post: FeedPost, comment_count: int = 0) -> dict:
    return {
        "id": post.id,
        "user_id": post.user_id,
        "author_name": post.author_name,
        "content": post.content,
        "image_urls": post.image_urls or [],
        "video_urls": post.video_urls or [],
        "is_announcement": post.is_announcement,
        "event_type": post.event_type,
        "team_id": post.team_id,
        "comment_count": comment_count,
        "created_at": iso(post.created_at),
    }


def comment_dict(comment: Comment) -> dict:
    return {
        "id": comment.id,
        "post_id": comment.post_id,
        "user_id": comment.user_id,
        "author_name": comment.author_name,
        "content": comment.content,
        "image_urls": comment.image_urls or [],
        "video_urls": comment.video_urls or [],
        "created_at": iso(comment.created_at),
    }


def achievement_dict(ach: Achievement) -> dict:
    return {
        "id": ach.id,
        "title": ach.title,
        "description": ach.description,
        "points": ach.points,
        "images": ach.images or [],
        "active": ach.active,
    }


def event_dict(event: Event) -> dict:
    return {
        "id": event.id,
        "name": event.name,
        "description": event.description,
        "active": event.active,
    }


def task_dict(task: ScavengerTask) -> dict:
    return {
        "id": task.id,
        "event_id": task.event_id,
        "title": task.title,
        "description": task.description,
        "points": task.points,
    }


def team_dict(team: Team, *, with_members: bool = True) -> dict:
    data = {"id": team.id, "event_id": team.event_id, "name": team.name}
    if with_members:
        data["members"] = team.member_ids
    return data


def outcome_dict(outcome) -> dict:
    return asdict(outcome)
