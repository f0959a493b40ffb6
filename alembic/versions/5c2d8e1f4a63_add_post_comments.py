"""Add comments on feed posts

Revision ID: 5c2d8e1f4a63
Revises: 0a1f3c5e7b90
Create Date: 2026-10-19 14:00:00.000000

"""
from collections.abc import Sequence

import sqlalchemy as sa
from sqlalchemy.dialects.postgresql import JSONB

from alembic import op

# revision identifiers, used by Alembic.
revision: str = "5c2d8e1f4a63"
down_revision: str | Sequence[str] | None = "0a1f3c5e7b90"
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    op.create_table(
        "comments",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column(
            "post_id", sa.Integer(),
            sa.ForeignKey("feed_posts.id", ondelete="CASCADE"), nullable=False,
        ),
        sa.Column("user_id", sa.String(64), nullable=False),
        sa.Column("author_name", sa.String(100), nullable=False),
        sa.Column("content", sa.Text(), nullable=False),
        sa.Column("image_urls", JSONB(), nullable=True),
        sa.Column("video_urls", JSONB(), nullable=True),
        sa.Column(
            "created_at", sa.DateTime(timezone=True),
            nullable=False, server_default=sa.func.now(),
        ),
    )
    op.create_index("ix_comments_post_id", "comments", ["post_id", "id"])


def downgrade() -> None:
    op.drop_index("ix_comments_post_id", table_name="comments")
    op.drop_table("comments")
