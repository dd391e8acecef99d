from __future__ import annotations

import logging
from collections.abc import AsyncIterator, Iterable
from contextlib import asynccontextmanager
from datetime import datetime
from enum import Enum
from typing import Any
from uuid import UUID

from sqlalchemy import delete, func, select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from coursevideo.core.errors import ConflictError, DatabaseError, NotFoundError, VideoErrorCode
from coursevideo.db.models.course import Course
from coursevideo.db.models.course_video import CourseVideo
from coursevideo.schemas.course_video import VideoRecord, VideoStatus

logger = logging.getLogger(__name__)

# Model attribute for each writable record field.
_COLUMN_FOR_FIELD = {
    "title": "title",
    "description": "description",
    "status": "status",
    "processing_progress": "processing_progress",
    "error_message": "error_message",
    "duration": "duration",
    "thumbnail_url": "thumbnail_url",
    "playback_hls_url": "playback_hls_url",
    "playback_dash_url": "playback_dash_url",
    "metadata": "extra_metadata",
}


def _to_record(row: CourseVideo) -> VideoRecord:
    return VideoRecord(
        id=row.id,
        course_id=row.course_id,
        lesson_id=row.lesson_id,
        external_id=row.external_id,
        title=row.title,
        description=row.description,
        status=VideoStatus(row.status),
        processing_progress=row.processing_progress,
        error_message=row.error_message,
        duration=row.duration,
        thumbnail_url=row.thumbnail_url,
        playback_hls_url=row.playback_hls_url,
        playback_dash_url=row.playback_dash_url,
        metadata=row.extra_metadata,
        created_at=row.created_at,
        updated_at=row.updated_at,
    )


def _column_values(fields: dict[str, Any]) -> dict[str, Any]:
    values: dict[str, Any] = {}
    for name, value in fields.items():
        column = _COLUMN_FOR_FIELD.get(name)
        if column is None:
            raise ValueError(f"Unknown video field: {name}")
        values[column] = value.value if isinstance(value, Enum) else value
    return values


def _conflict_from_integrity_error(e: IntegrityError, fields: dict[str, Any]) -> Exception:
    msg = str(e.orig) if e.orig is not None else str(e)
    if "uq_course_videos_external_id" in msg:
        return ConflictError(f"Video with external id {fields.get('external_id')} already exists")
    if "uq_course_videos_course_lesson" in msg:
        return ConflictError(
            f"Video already exists for course {fields.get('course_id')}, lesson {fields.get('lesson_id')}"
        )
    if "foreign key" in msg.lower():
        return NotFoundError(f"Course not found: {fields.get('course_id')}", code=VideoErrorCode.COURSE_NOT_FOUND)
    return DatabaseError("Failed to write video", details=msg)


class CourseVideoRepository:
    """
    SQLAlchemy access to ``course_videos``.

    Returns VideoRecord values, never ORM instances, so nothing outside
    this module can mutate a row behind the service's back.
    """

    def __init__(self, session_maker: async_sessionmaker[AsyncSession]) -> None:
        self._session_maker = session_maker

    @asynccontextmanager
    async def _session(self) -> AsyncIterator[AsyncSession]:
        async with self._session_maker() as session:
            try:
                yield session
            except SQLAlchemyError as e:
                await session.rollback()
                logger.error(f"Database error: {e}")
                raise DatabaseError("Database operation failed", details=str(e)) from e

    async def course_exists(self, course_id: UUID) -> bool:
        async with self._session() as db:
            res = await db.execute(select(Course.id).where(Course.id == course_id))
            return res.scalar_one_or_none() is not None

    async def get_course_title(self, course_id: UUID) -> str | None:
        async with self._session() as db:
            res = await db.execute(select(Course.title).where(Course.id == course_id))
            return res.scalar_one_or_none()

    async def insert(self, fields: dict[str, Any]) -> VideoRecord:
        async with self._session_maker() as db:
            row = CourseVideo(
                course_id=fields["course_id"],
                lesson_id=fields["lesson_id"],
                external_id=fields["external_id"],
                title=fields["title"],
                description=fields.get("description"),
                status=VideoStatus.QUEUED.value,
                processing_progress=0,
                extra_metadata=fields.get("metadata"),
            )
            db.add(row)
            try:
                await db.commit()
            except IntegrityError as e:
                await db.rollback()
                raise _conflict_from_integrity_error(e, fields) from e
            except SQLAlchemyError as e:
                await db.rollback()
                raise DatabaseError("Failed to create video", details=str(e)) from e
            await db.refresh(row)
            return _to_record(row)

    async def get(self, video_id: UUID) -> VideoRecord | None:
        async with self._session() as db:
            res = await db.execute(select(CourseVideo).where(CourseVideo.id == video_id))
            row = res.scalar_one_or_none()
            return _to_record(row) if row is not None else None

    async def get_by_lesson(self, course_id: UUID, lesson_id: str) -> VideoRecord | None:
        async with self._session() as db:
            res = await db.execute(
                select(CourseVideo).where(CourseVideo.course_id == course_id, CourseVideo.lesson_id == lesson_id)
            )
            row = res.scalar_one_or_none()
            return _to_record(row) if row is not None else None

    async def list_by_course(self, course_id: UUID) -> list[VideoRecord]:
        async with self._session() as db:
            res = await db.execute(
                select(CourseVideo).where(CourseVideo.course_id == course_id).order_by(CourseVideo.lesson_id)
            )
            return [_to_record(r) for r in res.scalars().all()]

    async def list_by_status(self, statuses: Iterable[VideoStatus], *, oldest_first: bool = True) -> list[VideoRecord]:
        order = CourseVideo.created_at.asc() if oldest_first else CourseVideo.created_at.desc()
        async with self._session() as db:
            res = await db.execute(
                select(CourseVideo)
                .where(CourseVideo.status.in_([s.value for s in statuses]))
                .order_by(order, CourseVideo.id)
            )
            return [_to_record(r) for r in res.scalars().all()]

    async def list_stale(self, statuses: Iterable[VideoStatus], *, updated_before: datetime) -> list[VideoRecord]:
        async with self._session() as db:
            res = await db.execute(
                select(CourseVideo)
                .where(
                    CourseVideo.status.in_([s.value for s in statuses]),
                    CourseVideo.updated_at < updated_before,
                )
                .order_by(CourseVideo.updated_at.asc(), CourseVideo.id)
            )
            return [_to_record(r) for r in res.scalars().all()]

    async def update(self, video_id: UUID, fields: dict[str, Any]) -> VideoRecord | None:
        values = _column_values(fields)
        values["updated_at"] = func.now()
        async with self._session() as db:
            res = await db.execute(
                update(CourseVideo)
                .where(CourseVideo.id == video_id)
                .values(**values)
                .returning(CourseVideo)
            )
            row = res.scalar_one_or_none()
            await db.commit()
            return _to_record(row) if row is not None else None

    async def delete(self, video_id: UUID) -> bool:
        async with self._session() as db:
            res = await db.execute(delete(CourseVideo).where(CourseVideo.id == video_id).returning(CourseVideo.id))
            deleted = res.scalar_one_or_none()
            await db.commit()
            return deleted is not None

    async def status_summary(self) -> list[tuple[VideoStatus, int, float | None]]:
        """(status, count, average minutes between created_at and updated_at)."""
        minutes = func.avg(func.extract("epoch", CourseVideo.updated_at - CourseVideo.created_at) / 60.0)
        async with self._session() as db:
            res = await db.execute(
                select(CourseVideo.status, func.count(CourseVideo.id), minutes).group_by(CourseVideo.status)
            )
            return [
                (VideoStatus(status), int(count), float(avg) if avg is not None else None)
                for status, count, avg in res.all()
            ]

    async def course_summary(self, course_id: UUID) -> list[tuple[VideoStatus, int, int]]:
        """(status, count, summed duration seconds) for one course."""
        async with self._session() as db:
            res = await db.execute(
                select(
                    CourseVideo.status,
                    func.count(CourseVideo.id),
                    func.coalesce(func.sum(CourseVideo.duration), 0),
                )
                .where(CourseVideo.course_id == course_id)
                .group_by(CourseVideo.status)
            )
            return [(VideoStatus(status), int(count), int(total)) for status, count, total in res.all()]
