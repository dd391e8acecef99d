"""Create courses and course_videos tables

Revision ID: 0001_create_course_videos
Revises:
Create Date: 2026-10-19

"""

from __future__ import annotations

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql


# revision identifiers, used by Alembic.
revision = "0001_create_course_videos"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "courses",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True, nullable=False),
        sa.Column("title", sa.String(length=255), nullable=False),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.func.now(),
        ),
    )

    op.create_table(
        "course_videos",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True, nullable=False),
        sa.Column("course_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("lesson_id", sa.String(length=255), nullable=False),
        sa.Column("external_id", sa.String(length=255), nullable=False),
        sa.Column("title", sa.String(length=255), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("status", sa.String(length=32), nullable=False, server_default="queued"),
        sa.Column("processing_progress", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("error_message", sa.Text(), nullable=True),
        sa.Column("duration", sa.Integer(), nullable=True),
        sa.Column("thumbnail_url", sa.String(length=500), nullable=True),
        sa.Column("playback_hls_url", sa.String(length=500), nullable=True),
        sa.Column("playback_dash_url", sa.String(length=500), nullable=True),
        sa.Column("metadata", postgresql.JSONB(), nullable=True),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.func.now(),
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.func.now(),
        ),
        sa.ForeignKeyConstraint(["course_id"], ["courses.id"], ondelete="CASCADE"),
        sa.UniqueConstraint("course_id", "lesson_id", name="uq_course_videos_course_lesson"),
        sa.UniqueConstraint("external_id", name="uq_course_videos_external_id"),
        sa.CheckConstraint(
            "processing_progress >= 0 AND processing_progress <= 100",
            name="ck_course_videos_progress",
        ),
        sa.CheckConstraint(
            "status IN ('queued', 'in_progress', 'ready', 'error')",
            name="ck_course_videos_status",
        ),
    )
    op.create_index("ix_course_videos_course_id", "course_videos", ["course_id"], unique=False)
    op.create_index("ix_course_videos_status", "course_videos", ["status"], unique=False)
    op.create_index("ix_course_videos_created_at", "course_videos", ["created_at"], unique=False)
    op.create_index("ix_course_videos_updated_at", "course_videos", ["updated_at"], unique=False)


def downgrade() -> None:
    op.drop_index("ix_course_videos_updated_at", table_name="course_videos")
    op.drop_index("ix_course_videos_created_at", table_name="course_videos")
    op.drop_index("ix_course_videos_status", table_name="course_videos")
    op.drop_index("ix_course_videos_course_id", table_name="course_videos")
    op.drop_table("course_videos")
    op.drop_table("courses")
