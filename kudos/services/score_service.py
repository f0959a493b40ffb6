"""
kudos.services.score_service — Score Aggregator (read side)
============================================================

The one place totals are computed.  Leaderboards, profiles and team pages
all read through here, and every call recomputes from source rows:

    user total = Σ score_entries.points + Σ bonus_grants.points
    team total = Σ team_submissions.points_awarded  (status = approved)

Nothing is cached, so a read in the same request as a decision always
sees that decision.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import TYPE_CHECKING

from sqlalchemy import func, select, union_all
from sqlalchemy.orm import Session

from kudos.constants import UNKNOWN_USER_NAME
from kudos.database.engine import read_session
from kudos.database.models import (
    Achievement,
    BonusGrant,
    ScoreEntry,
    Submission,
    SubmissionStatus,
    Team,
    TeamSubmission,
    User,
)
from kudos.engine.scoring import page_bounds
from kudos.errors import NotFound

if TYPE_CHECKING:
    from sqlalchemy import Engine

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class LeaderboardRow:
    rank: int
    user_id: str
    display_name: str
    avatar_url: str | None
    total: int


@dataclass(frozen=True)
class TeamLeaderboardRow:
    rank: int
    team_id: int
    name: str
    total: int


@dataclass(frozen=True)
class HistoryItem:
    """One line of a user's profile history."""

    kind: str                    # "achievement" or "bonus"
    id: int
    title: str
    points: int
    status: str                  # approved / rejected / revoked
    comment: str | None
    created_at: datetime | None


# ---------------------------------------------------------------------------
# Per-user totals
# ---------------------------------------------------------------------------
def _user_total(session: Session, user_id: str) -> int:
    ledger = session.scalar(
        select(func.coalesce(func.sum(ScoreEntry.points), 0))
        .where(ScoreEntry.user_id == user_id)
    )
    bonus = session.scalar(
        select(func.coalesce(func.sum(BonusGrant.points), 0))
        .where(BonusGrant.user_id == user_id)
    )
    return int(ledger or 0) + int(bonus or 0)


def total_points_for_user(engine: Engine, user_id: str) -> int:
    """Ledger points plus bonus points; 0 for an unknown or empty user."""
    with read_session(engine) as session:
        return _user_total(session, user_id)


def _points_by_user():
    """Subquery of ``(user_id, total)`` over ledger rows and bonus grants."""
    rows = union_all(
        select(ScoreEntry.user_id.label("user_id"), ScoreEntry.points.label("points")),
        select(BonusGrant.user_id.label("user_id"), BonusGrant.points.label("points")),
    ).subquery("points_rows")
    return (
        select(rows.c.user_id, func.sum(rows.c.points).label("total"))
        .group_by(rows.c.user_id)
        .subquery("user_totals")
    )


def leaderboard(engine: Engine, page: int = 1, page_size: int = 20) -> list[LeaderboardRow]:
    """Every known user with their total, highest first.

    Ties are broken by user id ascending so pages never overlap or skip.
    """
    offset, limit = page_bounds(page, page_size)
    totals = _points_by_user()
    total_col = func.coalesce(totals.c.total, 0)
    stmt = (
        select(User.id, User.display_name, User.avatar_url, total_col.label("total"))
        .outerjoin(totals, totals.c.user_id == User.id)
        .order_by(total_col.desc(), User.id)
        .offset(offset)
        .limit(limit)
    )
    with read_session(engine) as session:
        rows = session.execute(stmt).all()
    return [
        LeaderboardRow(
            rank=offset + i,
            user_id=row.id,
            display_name=row.display_name or UNKNOWN_USER_NAME,
            avatar_url=row.avatar_url,
            total=int(row.total),
        )
        for i, row in enumerate(rows, start=1)
    ]


# ---------------------------------------------------------------------------
# Teams
# ---------------------------------------------------------------------------
def _approved_team_points():
    return func.coalesce(func.sum(TeamSubmission.points_awarded), 0)


def total_points_for_team(engine: Engine, team_id: int) -> int:
    """Σ points_awarded over the team's approved submissions."""
    with read_session(engine) as session:
        total = session.scalar(
            select(_approved_team_points()).where(
                TeamSubmission.team_id == team_id,
                TeamSubmission.status == SubmissionStatus.APPROVED.value,
            )
        )
    return int(total or 0)


def team_leaderboard(engine: Engine, event_id: int) -> list[TeamLeaderboardRow]:
    """All teams of an event, highest total first, ties by team id."""
    totals = (
        select(
            TeamSubmission.team_id.label("team_id"),
            func.sum(TeamSubmission.points_awarded).label("total"),
        )
        .where(TeamSubmission.status == SubmissionStatus.APPROVED.value)
        .group_by(TeamSubmission.team_id)
        .subquery("team_totals")
    )
    total_col = func.coalesce(totals.c.total, 0)
    stmt = (
        select(Team.id, Team.name, total_col.label("total"))
        .outerjoin(totals, totals.c.team_id == Team.id)
        .where(Team.event_id == event_id)
        .order_by(total_col.desc(), Team.id)
    )
    with read_session(engine) as session:
        rows = session.execute(stmt).all()
    return [
        TeamLeaderboardRow(rank=i, team_id=row.id, name=row.name, total=int(row.total))
        for i, row in enumerate(rows, start=1)
    ]


# ---------------------------------------------------------------------------
# Profile history
# ---------------------------------------------------------------------------
def user_history(engine: Engine, user_id: str) -> dict:
    """Profile view: total, decided submissions and bonus grants.

    Approved submissions show the points their ledger row holds; rejected
    and revoked ones show 0.  Pending submissions are not history yet.
    """
    with read_session(engine) as session:
        user = session.get(User, user_id)
        if user is None:
            raise NotFound(f"User {user_id} not found.")

        ledger_points = dict(session.execute(
            select(ScoreEntry.submission_id, ScoreEntry.points)
            .where(ScoreEntry.user_id == user_id)
        ).all())

        decided = session.execute(
            select(Submission, Achievement.title)
            .join(Achievement, Achievement.id == Submission.achievement_id)
            .where(
                Submission.user_id == user_id,
                Submission.status != SubmissionStatus.PENDING.value,
            )
        ).all()
        items = [
            HistoryItem(
                kind="achievement",
                id=sub.id,
                title=title,
                points=ledger_points.get(sub.id, 0),
                status=sub.display_status,
                comment=sub.judge_comment,
                created_at=sub.reviewed_at or sub.created_at,
            )
            for sub, title in decided
        ]

        grants = session.scalars(
            select(BonusGrant).where(BonusGrant.user_id == user_id)
        ).all()
        items.extend(
            HistoryItem(
                kind="bonus",
                id=g.id,
                title=g.reason or "Bonus points",
                points=g.points,
                status=SubmissionStatus.APPROVED.value,
                comment=None,
                created_at=g.granted_at,
            )
            for g in grants
        )

        total = _user_total(session, user_id)

    items.sort(key=_history_sort_key, reverse=True)
    return {
        "user_id": user.id,
        "display_name": user.display_name,
        "avatar_url": user.avatar_url,
        "total": total,
        "history": items,
    }


def _history_sort_key(item: HistoryItem) -> tuple:
    ts = item.created_at
    # SQLite hands back naive datetimes; compare on the wall-clock value.
    stamp = ts.replace(tzinfo=None).isoformat() if ts else ""
    return (stamp, item.kind == "bonus", item.id)
