from __future__ import annotations

from datetime import datetime
from typing import Any
from uuid import UUID, uuid4

from sqlalchemy import CheckConstraint, DateTime, ForeignKey, Integer, String, Text, UniqueConstraint, func
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.dialects.postgresql import UUID as PG_UUID
from sqlalchemy.orm import Mapped, mapped_column

from coursevideo.db.base import Base


class CourseVideo(Base):
    __tablename__ = "course_videos"
    __table_args__ = (
        UniqueConstraint("course_id", "lesson_id", name="uq_course_videos_course_lesson"),
        UniqueConstraint("external_id", name="uq_course_videos_external_id"),
        CheckConstraint(
            "processing_progress >= 0 AND processing_progress <= 100",
            name="ck_course_videos_progress",
        ),
        CheckConstraint(
            "status IN ('queued', 'in_progress', 'ready', 'error')",
            name="ck_course_videos_status",
        ),
    )

    id: Mapped[UUID] = mapped_column(PG_UUID(as_uuid=True), primary_key=True, default=uuid4)

    course_id: Mapped[UUID] = mapped_column(
        ForeignKey("courses.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    # Free-form curriculum identifier (e.g. "module-2-lesson-3"), unique per course.
    lesson_id: Mapped[str] = mapped_column(String(255), nullable=False)

    # Provider-side handle for the uploaded asset.
    external_id: Mapped[str] = mapped_column(String(255), nullable=False)

    title: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)

    status: Mapped[str] = mapped_column(String(32), nullable=False, default="queued", index=True)
    processing_progress: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    error_message: Mapped[str | None] = mapped_column(Text, nullable=True)

    # Populated once the provider reports the asset as playable.
    duration: Mapped[int | None] = mapped_column(Integer, nullable=True)
    thumbnail_url: Mapped[str | None] = mapped_column(String(500), nullable=True)
    playback_hls_url: Mapped[str | None] = mapped_column(String(500), nullable=True)
    playback_dash_url: Mapped[str | None] = mapped_column(String(500), nullable=True)

    # "metadata" is reserved on declarative classes.
    extra_metadata: Mapped[dict[str, Any] | None] = mapped_column("metadata", JSONB, nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
        index=True,
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
        onupdate=func.now(),
        index=True,
    )
