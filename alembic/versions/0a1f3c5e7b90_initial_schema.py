"""Initial Kudos schema

Revision ID: 0a1f3c5e7b90
Revises:
Create Date: 2026-10-19 09:00:00.000000

"""
from collections.abc import Sequence

import sqlalchemy as sa
from sqlalchemy.dialects.postgresql import JSONB

from alembic import op

# revision identifiers, used by Alembic.
revision: str = "0a1f3c5e7b90"
down_revision: str | Sequence[str] | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None

_ACTIVE = sa.text("status IN ('pending', 'approved')")


def _created_at(name: str = "created_at") -> sa.Column:
    return sa.Column(
        name,
        sa.DateTime(timezone=True),
        nullable=False,
        server_default=sa.func.now(),
    )


def upgrade() -> None:
    """Create every Kudos table, including the one-active-claim indexes."""
    op.create_table(
        "users",
        sa.Column("id", sa.String(64), primary_key=True),
        sa.Column("display_name", sa.String(100), nullable=False),
        sa.Column("avatar_url", sa.String(500), nullable=True),
        sa.Column("is_reviewer", sa.Boolean(), nullable=False, server_default=sa.false()),
        _created_at(),
        _created_at("updated_at"),
    )

    op.create_table(
        "achievements",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("title", sa.String(200), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("points", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("images", JSONB(), nullable=True),
        sa.Column("active", sa.Boolean(), nullable=False, server_default=sa.true()),
        _created_at(),
    )

    op.create_table(
        "events",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("name", sa.String(200), nullable=False, unique=True),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("active", sa.Boolean(), nullable=False, server_default=sa.false()),
        _created_at(),
    )

    op.create_table(
        "scavenger_tasks",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column(
            "event_id", sa.Integer(),
            sa.ForeignKey("events.id", ondelete="CASCADE"), nullable=False,
        ),
        sa.Column("title", sa.String(200), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("points", sa.Integer(), nullable=False, server_default="0"),
        _created_at(),
    )
    op.create_index("ix_scavenger_tasks_event", "scavenger_tasks", ["event_id"])

    op.create_table(
        "teams",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column(
            "event_id", sa.Integer(),
            sa.ForeignKey("events.id", ondelete="CASCADE"), nullable=False,
        ),
        sa.Column("name", sa.String(100), nullable=False),
        _created_at(),
        sa.UniqueConstraint("event_id", "name", name="uq_teams_event_name"),
    )

    op.create_table(
        "team_members",
        sa.Column(
            "team_id", sa.Integer(),
            sa.ForeignKey("teams.id", ondelete="CASCADE"), primary_key=True,
        ),
        sa.Column("user_id", sa.String(64), primary_key=True),
        sa.Column(
            "event_id", sa.Integer(),
            sa.ForeignKey("events.id", ondelete="CASCADE"), nullable=False,
        ),
        _created_at("joined_at"),
        sa.UniqueConstraint("event_id", "user_id", name="uq_team_members_event_user"),
    )

    op.create_table(
        "submissions",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("user_id", sa.String(64), nullable=False),
        sa.Column(
            "achievement_id", sa.Integer(),
            sa.ForeignKey("achievements.id", ondelete="CASCADE"), nullable=False,
        ),
        sa.Column("submission_text", sa.Text(), nullable=True),
        sa.Column("media_urls", JSONB(), nullable=True),
        sa.Column("status", sa.String(16), nullable=False, server_default="pending"),
        sa.Column("judge_comment", sa.Text(), nullable=True),
        sa.Column("points_override", sa.Integer(), nullable=True),
        sa.Column("reviewed_by", sa.String(64), nullable=True),
        sa.Column("reviewed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("revoked_at", sa.DateTime(timezone=True), nullable=True),
        _created_at(),
    )
    op.create_index(
        "ix_submissions_one_active",
        "submissions",
        ["user_id", "achievement_id"],
        unique=True,
        postgresql_where=_ACTIVE,
    )
    op.create_index("ix_submissions_status_created", "submissions", ["status", "created_at"])
    op.create_index("ix_submissions_user", "submissions", ["user_id"])

    op.create_table(
        "team_submissions",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column(
            "team_id", sa.Integer(),
            sa.ForeignKey("teams.id", ondelete="CASCADE"), nullable=False,
        ),
        sa.Column(
            "task_id", sa.Integer(),
            sa.ForeignKey("scavenger_tasks.id", ondelete="CASCADE"), nullable=False,
        ),
        sa.Column("submitted_by", sa.String(64), nullable=False),
        sa.Column("submission_text", sa.Text(), nullable=True),
        sa.Column("media_urls", JSONB(), nullable=True),
        sa.Column("status", sa.String(16), nullable=False, server_default="pending"),
        sa.Column("judge_comment", sa.Text(), nullable=True),
        sa.Column("points_awarded", sa.Integer(), nullable=True),
        sa.Column("reviewed_by", sa.String(64), nullable=True),
        sa.Column("reviewed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("revoked_at", sa.DateTime(timezone=True), nullable=True),
        _created_at(),
    )
    op.create_index(
        "ix_team_submissions_one_active",
        "team_submissions",
        ["team_id", "task_id"],
        unique=True,
        postgresql_where=_ACTIVE,
    )
    op.create_index(
        "ix_team_submissions_team_status", "team_submissions", ["team_id", "status"]
    )

    op.create_table(
        "score_entries",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("user_id", sa.String(64), nullable=False),
        sa.Column("points", sa.Integer(), nullable=False),
        sa.Column("event_type", sa.String(30), nullable=False),
        sa.Column(
            "achievement_id", sa.Integer(),
            sa.ForeignKey("achievements.id", ondelete="SET NULL"), nullable=True,
        ),
        sa.Column(
            "submission_id", sa.Integer(),
            sa.ForeignKey("submissions.id", ondelete="CASCADE"),
            nullable=False, unique=True,
        ),
        _created_at(),
    )
    op.create_index("ix_score_entries_user", "score_entries", ["user_id"])

    op.create_table(
        "bonus_grants",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("user_id", sa.String(64), nullable=False),
        sa.Column("points", sa.Integer(), nullable=False),
        sa.Column("reason", sa.Text(), nullable=True),
        sa.Column("proof_url", sa.String(500), nullable=True),
        sa.Column("granted_by", sa.String(64), nullable=False),
        _created_at("granted_at"),
        sa.CheckConstraint("points > 0", name="ck_bonus_grants_positive"),
    )
    op.create_index("ix_bonus_grants_user", "bonus_grants", ["user_id"])

    op.create_table(
        "feed_posts",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("user_id", sa.String(64), nullable=True),
        sa.Column("author_name", sa.String(100), nullable=False),
        sa.Column("content", sa.Text(), nullable=False),
        sa.Column("image_urls", JSONB(), nullable=True),
        sa.Column("video_urls", JSONB(), nullable=True),
        sa.Column("is_announcement", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("event_type", sa.String(30), nullable=False, server_default="post"),
        sa.Column(
            "team_id", sa.Integer(),
            sa.ForeignKey("teams.id", ondelete="CASCADE"), nullable=True,
        ),
        sa.Column("submission_id", sa.Integer(), nullable=True),
        _created_at(),
    )
    op.create_index("ix_feed_posts_team_id", "feed_posts", ["team_id", "id"])

    op.create_table(
        "audit_log",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("actor_id", sa.String(64), nullable=False),
        sa.Column("action", sa.String(30), nullable=False),
        sa.Column("target_table", sa.String(50), nullable=False),
        sa.Column("target_id", sa.String(100), nullable=True),
        sa.Column("before_snapshot", JSONB(), nullable=True),
        sa.Column("after_snapshot", JSONB(), nullable=True),
        sa.Column("reason", sa.Text(), nullable=True),
        _created_at("timestamp"),
    )
    op.create_index("ix_audit_log_actor_time", "audit_log", ["actor_id", "timestamp"])
    op.create_index(
        "ix_audit_log_target", "audit_log", ["target_table", "target_id", "timestamp"]
    )


def downgrade() -> None:
    """Drop every Kudos table."""
    op.drop_index("ix_audit_log_target", table_name="audit_log")
    op.drop_index("ix_audit_log_actor_time", table_name="audit_log")
    op.drop_table("audit_log")

    op.drop_index("ix_feed_posts_team_id", table_name="feed_posts")
    op.drop_table("feed_posts")

    op.drop_index("ix_bonus_grants_user", table_name="bonus_grants")
    op.drop_table("bonus_grants")

    op.drop_index("ix_score_entries_user", table_name="score_entries")
    op.drop_table("score_entries")

    op.drop_index("ix_team_submissions_team_status", table_name="team_submissions")
    op.drop_index("ix_team_submissions_one_active", table_name="team_submissions")
    op.drop_table("team_submissions")

    op.drop_index("ix_submissions_user", table_name="submissions")
    op.drop_index("ix_submissions_status_created", table_name="submissions")
    op.drop_index("ix_submissions_one_active", table_name="submissions")
    op.drop_table("submissions")

    op.drop_table("team_members")
    op.drop_table("teams")
    op.drop_index("ix_scavenger_tasks_event", table_name="scavenger_tasks")
    op.drop_table("scavenger_tasks")
    op.drop_table("events")
    op.drop_table("achievements")
    op.drop_table("users")
