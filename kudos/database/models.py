"""
kudos.database.models — SQLAlchemy 2.0 Data Models
===================================================

Tables:
- users             — Local mirror of identity-provider profiles
- achievements      — Global claimables with fixed point values
- events            — Scavenger-hunt events (live flag)
- scavenger_tasks   — Claimables scoped to one event
- teams             — Scavenger-hunt teams
- team_members      — Team rosters (one team per user per event)
- submissions       — A user's claim of an achievement
- team_submissions  — A team's claim of a scavenger task
- score_entries     — Immutable score ledger (one row per approved submission)
- bonus_grants      — Reviewer-issued point awards
- feed_posts        — Write-once activity feed (global or team-scoped)
- comments          — Write-once replies under a feed post
- audit_log         — Append-only audit trail of reviewer actions
"""

from __future__ import annotations

import enum
from datetime import datetime

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
    func,
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship


# ---------------------------------------------------------------------------
# Base
# ---------------------------------------------------------------------------
class Base(DeclarativeBase):
    """Shared base for all Kudos ORM models."""


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------
class SubmissionStatus(enum.StrEnum):
    """Stored status of a submission row."""
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


class ReviewAction(enum.StrEnum):
    """Reviewer decisions accepted by the transition table."""
    APPROVE = "approve"
    REJECT = "reject"
    REVOKE = "revoke"


class FeedEventType(enum.StrEnum):
    """Tags carried by feed posts."""
    POST = "post"
    ANNOUNCEMENT = "announcement"
    ACHIEVEMENT_APPROVED = "achievement_approved"
    ACHIEVEMENT_REVOKED = "achievement_revoked"
    BONUS_POINTS = "bonus_points"
    TASK_APPROVED = "task_approved"
    TASK_REJECTED = "task_rejected"
    TASK_REVOKED = "task_revoked"


class AuditAction(enum.StrEnum):
    """Categories of reviewer mutations recorded in audit_log."""
    CREATE = "CREATE"
    UPDATE = "UPDATE"
    DELETE = "DELETE"
    APPROVE = "APPROVE"
    REJECT = "REJECT"
    REVOKE = "REVOKE"
    BONUS_GRANT = "BONUS_GRANT"


# Statuses that block a new submission for the same claim
ACTIVE_STATUSES: tuple[str, ...] = (
    SubmissionStatus.PENDING.value,
    SubmissionStatus.APPROVED.value,
)


# ---------------------------------------------------------------------------
# Users — mirror of the identity provider
# ---------------------------------------------------------------------------
class User(Base):
    __tablename__ = "users"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    display_name: Mapped[str] = mapped_column(String(100), nullable=False)
    avatar_url: Mapped[str | None] = mapped_column(String(500), default=None)
    is_reviewer: Mapped[bool] = mapped_column(Boolean, default=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    def __repr__(self) -> str:
        return f"<User id={self.id!r} name={self.display_name!r}>"


# ---------------------------------------------------------------------------
# Achievement — global claimable
# ---------------------------------------------------------------------------
class Achievement(Base):
    __tablename__ = "achievements"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    title: Mapped[str] = mapped_column(String(200), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, default=None)
    points: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    images: Mapped[list | None] = mapped_column(JSONB, default=list)
    active: Mapped[bool] = mapped_column(Boolean, default=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )

    def __repr__(self) -> str:
        return f"<Achievement id={self.id} title={self.title!r} pts={self.points}>"


# ---------------------------------------------------------------------------
# Event — a scavenger hunt
# ---------------------------------------------------------------------------
class Event(Base):
    __tablename__ = "events"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(200), nullable=False, unique=True)
    description: Mapped[str | None] = mapped_column(Text, default=None)
    active: Mapped[bool] = mapped_column(Boolean, default=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )

    tasks: Mapped[list[ScavengerTask]] = relationship(back_populates="event")
    teams: Mapped[list[Team]] = relationship(back_populates="event")

    def __repr__(self) -> str:
        return f"<Event id={self.id} name={self.name!r} active={self.active}>"


# ---------------------------------------------------------------------------
# ScavengerTask — claimable scoped to one event
# ---------------------------------------------------------------------------
class ScavengerTask(Base):
    __tablename__ = "scavenger_tasks"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    event_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("events.id", ondelete="CASCADE"), nullable=False
    )
    title: Mapped[str] = mapped_column(String(200), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, default=None)
    points: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )

    event: Mapped[Event] = relationship(back_populates="tasks")

    __table_args__ = (
        Index("ix_scavenger_tasks_event", "event_id"),
    )

    def __repr__(self) -> str:
        return f"<ScavengerTask id={self.id} title={self.title!r} pts={self.points}>"


# ---------------------------------------------------------------------------
# Team / TeamMember — scavenger-hunt rosters
# ---------------------------------------------------------------------------
class Team(Base):
    __tablename__ = "teams"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    event_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("events.id", ondelete="CASCADE"), nullable=False
    )
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )

    event: Mapped[Event] = relationship(back_populates="teams")
    members: Mapped[list[TeamMember]] = relationship(
        back_populates="team", cascade="all, delete-orphan"
    )

    __table_args__ = (
        UniqueConstraint("event_id", "name", name="uq_teams_event_name"),
    )

    @property
    def member_ids(self) -> list[str]:
        return [m.user_id for m in self.members]

    def __repr__(self) -> str:
        return f"<Team id={self.id} name={self.name!r}>"


class TeamMember(Base):
    __tablename__ = "team_members"

    team_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("teams.id", ondelete="CASCADE"), primary_key=True
    )
    user_id: Mapped[str] = mapped_column(String(64), primary_key=True)
    # Denormalized so one-team-per-event can be a plain unique constraint
    event_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("events.id", ondelete="CASCADE"), nullable=False
    )
    joined_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )

    team: Mapped[Team] = relationship(back_populates="members")

    __table_args__ = (
        UniqueConstraint("event_id", "user_id", name="uq_team_members_event_user"),
    )

    def __repr__(self) -> str:
        return f"<TeamMember team={self.team_id} user={self.user_id!r}>"


# ---------------------------------------------------------------------------
# Submission — a user's claim of an achievement
# ---------------------------------------------------------------------------
class Submission(Base):
    __tablename__ = "submissions"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[str] = mapped_column(String(64), nullable=False)
    achievement_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("achievements.id", ondelete="CASCADE"), nullable=False
    )
    submission_text: Mapped[str | None] = mapped_column(Text, default=None)
    media_urls: Mapped[list | None] = mapped_column(JSONB, default=list)
    status: Mapped[str] = mapped_column(
        String(16), nullable=False, default=SubmissionStatus.PENDING.value
    )
    judge_comment: Mapped[str | None] = mapped_column(Text, default=None)
    points_override: Mapped[int | None] = mapped_column(Integer, default=None)
    reviewed_by: Mapped[str | None] = mapped_column(String(64), default=None)
    reviewed_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), default=None
    )
    revoked_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), default=None
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )

    achievement: Mapped[Achievement] = relationship()

    __table_args__ = (
        # At most one pending-or-approved submission per (user, achievement)
        Index(
            "ix_submissions_one_active",
            "user_id",
            "achievement_id",
            unique=True,
            postgresql_where=status.in_(ACTIVE_STATUSES),
            sqlite_where=status.in_(ACTIVE_STATUSES),
        ),
        Index("ix_submissions_status_created", "status", "created_at"),
        Index("ix_submissions_user", "user_id"),
    )

    @property
    def display_status(self) -> str:
        """``revoked`` for revoked approvals, otherwise the stored status."""
        if self.revoked_at is not None:
            return "revoked"
        return self.status

    def __repr__(self) -> str:
        return (
            f"<Submission id={self.id} user={self.user_id!r} "
            f"achievement={self.achievement_id} status={self.status}>"
        )


# ---------------------------------------------------------------------------
# TeamSubmission — a team's claim of a scavenger task
# ---------------------------------------------------------------------------
class TeamSubmission(Base):
    __tablename__ = "team_submissions"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    team_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("teams.id", ondelete="CASCADE"), nullable=False
    )
    task_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("scavenger_tasks.id", ondelete="CASCADE"), nullable=False
    )
    submitted_by: Mapped[str] = mapped_column(String(64), nullable=False)
    submission_text: Mapped[str | None] = mapped_column(Text, default=None)
    media_urls: Mapped[list | None] = mapped_column(JSONB, default=list)
    status: Mapped[str] = mapped_column(
        String(16), nullable=False, default=SubmissionStatus.PENDING.value
    )
    judge_comment: Mapped[str | None] = mapped_column(Text, default=None)
    points_awarded: Mapped[int | None] = mapped_column(Integer, default=None)
    reviewed_by: Mapped[str | None] = mapped_column(String(64), default=None)
    reviewed_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), default=None
    )
    revoked_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), default=None
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )

    team: Mapped[Team] = relationship()
    task: Mapped[ScavengerTask] = relationship()

    __table_args__ = (
        Index(
            "ix_team_submissions_one_active",
            "team_id",
            "task_id",
            unique=True,
            postgresql_where=status.in_(ACTIVE_STATUSES),
            sqlite_where=status.in_(ACTIVE_STATUSES),
        ),
        Index("ix_team_submissions_team_status", "team_id", "status"),
    )

    @property
    def display_status(self) -> str:
        if self.revoked_at is not None:
            return "revoked"
        return self.status

    def __repr__(self) -> str:
        return (
            f"<TeamSubmission id={self.id} team={self.team_id} "
            f"task={self.task_id} status={self.status}>"
        )


# ---------------------------------------------------------------------------
# ScoreEntry — immutable score ledger
# ---------------------------------------------------------------------------
class ScoreEntry(Base):
    """One ledger row per approved achievement submission.

    Rows are inserted on approval and deleted on revocation, never edited.
    A user's total is always the sum of their rows plus their bonus grants.
    """
    __tablename__ = "score_entries"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[str] = mapped_column(String(64), nullable=False)
    points: Mapped[int] = mapped_column(Integer, nullable=False)
    event_type: Mapped[str] = mapped_column(String(30), nullable=False)
    achievement_id: Mapped[int | None] = mapped_column(
        Integer, ForeignKey("achievements.id", ondelete="SET NULL"), nullable=True
    )
    submission_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("submissions.id", ondelete="CASCADE"),
        nullable=False, unique=True,
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )

    __table_args__ = (
        Index("ix_score_entries_user", "user_id"),
    )

    def __repr__(self) -> str:
        return f"<ScoreEntry id={self.id} user={self.user_id!r} pts={self.points}>"


# ---------------------------------------------------------------------------
# BonusGrant — reviewer-issued points
# ---------------------------------------------------------------------------
class BonusGrant(Base):
    __tablename__ = "bonus_grants"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[str] = mapped_column(String(64), nullable=False)
    points: Mapped[int] = mapped_column(Integer, nullable=False)
    reason: Mapped[str | None] = mapped_column(Text, default=None)
    proof_url: Mapped[str | None] = mapped_column(String(500), default=None)
    granted_by: Mapped[str] = mapped_column(String(64), nullable=False)
    granted_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )

    __table_args__ = (
        Index("ix_bonus_grants_user", "user_id"),
        CheckConstraint("points > 0", name="ck_bonus_grants_positive"),
    )

    def __repr__(self) -> str:
        return f"<BonusGrant id={self.id} user={self.user_id!r} pts={self.points}>"


# ---------------------------------------------------------------------------
# FeedPost — write-once activity feed
# ---------------------------------------------------------------------------
class FeedPost(Base):
    """Immutable feed entry.

    ``team_id`` set means the post belongs to that team's feed only; the
    global feed is every post with ``team_id IS NULL``.
    """
    __tablename__ = "feed_posts"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    author_name: Mapped[str] = mapped_column(String(100), nullable=False)
    content: Mapped[str] = mapped_column(Text, nullable=False)
    image_urls: Mapped[list | None] = mapped_column(JSONB, default=list)
    video_urls: Mapped[list | None] = mapped_column(JSONB, default=list)
    is_announcement: Mapped[bool] = mapped_column(Boolean, default=False)
    event_type: Mapped[str] = mapped_column(
        String(30), nullable=False, default=FeedEventType.POST.value
    )
    team_id: Mapped[int | None] = mapped_column(
        Integer, ForeignKey("teams.id", ondelete="CASCADE"), nullable=True
    )
    submission_id: Mapped[int | None] = mapped_column(Integer, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )

    __table_args__ = (
        Index("ix_feed_posts_team_id", "team_id", "id"),
    )

    def __repr__(self) -> str:
        return f"<FeedPost id={self.id} type={self.event_type!r} team={self.team_id}>"


# ---------------------------------------------------------------------------
# Comment — write-once reply under a feed post
# ---------------------------------------------------------------------------
class Comment(Base):
    __tablename__ = "comments"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    post_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("feed_posts.id", ondelete="CASCADE"), nullable=False
    )
    user_id: Mapped[str] = mapped_column(String(64), nullable=False)
    author_name: Mapped[str] = mapped_column(String(100), nullable=False)
    content: Mapped[str] = mapped_column(Text, nullable=False)
    image_urls: Mapped[list | None] = mapped_column(JSONB, default=list)
    video_urls: Mapped[list | None] = mapped_column(JSONB, default=list)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )

    __table_args__ = (
        Index("ix_comments_post_id", "post_id", "id"),
    )

    def __repr__(self) -> str:
        return f"<Comment id={self.id} post={self.post_id} user={self.user_id!r}>"


# ---------------------------------------------------------------------------
# AuditLog — append-only audit trail
# ---------------------------------------------------------------------------
class AuditLog(Base):
    __tablename__ = "audit_log"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    actor_id: Mapped[str] = mapped_column(String(64), nullable=False)
    action: Mapped[str] = mapped_column(String(30), nullable=False)
    target_table: Mapped[str] = mapped_column(String(50), nullable=False)
    target_id: Mapped[str | None] = mapped_column(String(100), nullable=True)
    before_snapshot: Mapped[dict | None] = mapped_column(JSONB, nullable=True)
    after_snapshot: Mapped[dict | None] = mapped_column(JSONB, nullable=True)
    reason: Mapped[str | None] = mapped_column(Text, nullable=True)
    timestamp: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )

    __table_args__ = (
        Index("ix_audit_log_actor_time", "actor_id", "timestamp"),
        Index("ix_audit_log_target", "target_table", "target_id", "timestamp"),
    )

    def __repr__(self) -> str:
        return f"<AuditLog id={self.id} actor={self.actor_id!r} action={self.action}>"
