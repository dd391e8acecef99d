"""
Course video records.

VideoService is the only writer of ``course_videos``. Every write path
invalidates the affected cache entries itself, after the row is
committed, so no caller can leave a stale projection behind. A crash
between the two leaves entries that expire with their TTL.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from datetime import datetime
from typing import Any
from uuid import UUID

from pydantic import ValidationError

from coursevideo.cache.video_cache import VideoCache, VideoCacheKeys, cached_read
from coursevideo.core.errors import ExternalServiceError, InvalidInputError, NotFoundError, VideoErrorCode
from coursevideo.schemas.course_video import (
    CourseVideoStats,
    VideoCreate,
    VideoPlaybackData,
    VideoRecord,
    VideoStatus,
    VideoUpdate,
)
from coursevideo.stream.types import StatusSource
from coursevideo.stream.urls import DEFAULT_DELIVERY_BASE_URL, generate_playback_url, generate_thumbnail_url
from coursevideo.videos.repository import CourseVideoRepository

logger = logging.getLogger(__name__)


class VideoService:
    def __init__(
        self,
        repository: CourseVideoRepository,
        cache: VideoCache,
        *,
        status_source: StatusSource | None = None,
        delivery_base_url: str = DEFAULT_DELIVERY_BASE_URL,
    ) -> None:
        self.repository = repository
        self.cache = cache
        self.status_source = status_source
        self.delivery_base_url = delivery_base_url

    # ------------------------------------------------------------------
    # Create
    # ------------------------------------------------------------------

    async def create(self, data: VideoCreate) -> VideoRecord:
        lesson_id = (data.lesson_id or "").strip()
        external_id = (data.external_id or "").strip()
        title = (data.title or "").strip()
        if not lesson_id or not external_id or not title:
            raise InvalidInputError("Missing required fields: course_id, lesson_id, external_id, title")

        if not await self.repository.course_exists(data.course_id):
            raise NotFoundError(f"Course not found: {data.course_id}", code=VideoErrorCode.COURSE_NOT_FOUND)

        video = await self.repository.insert(
            {
                "course_id": data.course_id,
                "lesson_id": lesson_id,
                "external_id": external_id,
                "title": title,
                "description": data.description,
                "metadata": data.metadata,
            }
        )

        await self.cache.put_video(video)
        # Drop the list rather than appending to it.
        await self.cache.invalidate_course(video.course_id)

        logger.info(f"Created video: {video.id} for course: {video.course_id}, lesson: {video.lesson_id}")
        return video

    # ------------------------------------------------------------------
    # Reads (cache-first)
    # ------------------------------------------------------------------

    @cached_read(key=VideoCacheKeys.video, ttl="video")
    async def get_by_id(self, video_id: UUID) -> VideoRecord | None:
        return await self.repository.get(video_id)

    @cached_read(key=VideoCacheKeys.lesson, ttl="video")
    async def get_by_lesson(self, course_id: UUID, lesson_id: str) -> VideoRecord | None:
        return await self.repository.get_by_lesson(course_id, lesson_id)

    @cached_read(key=VideoCacheKeys.course_videos, ttl="course_videos", many=True)
    async def _all_course_videos(self, course_id: UUID) -> list[VideoRecord]:
        return await self.repository.list_by_course(course_id)

    async def list_by_course(self, course_id: UUID, include_not_ready: bool = False) -> list[VideoRecord]:
        # The cached list is always unfiltered; filtering happens here.
        videos = await self._all_course_videos(course_id)
        if include_not_ready:
            return videos
        return [v for v in videos if v.status == VideoStatus.READY]

    async def require(self, video_id: UUID) -> VideoRecord:
        video = await self.get_by_id(video_id)
        if video is None:
            raise NotFoundError(f"Video not found: {video_id}")
        return video

    async def list_by_status(self, statuses: Iterable[VideoStatus], *, oldest_first: bool = True) -> list[VideoRecord]:
        return await self.repository.list_by_status(list(statuses), oldest_first=oldest_first)

    async def list_stale(self, statuses: Iterable[VideoStatus], *, updated_before: datetime) -> list[VideoRecord]:
        return await self.repository.list_stale(list(statuses), updated_before=updated_before)

    async def get_course_title(self, course_id: UUID) -> str | None:
        return await self.repository.get_course_title(course_id)

    # ------------------------------------------------------------------
    # Update / delete
    # ------------------------------------------------------------------

    async def update(self, video_id: UUID, fields: VideoUpdate | dict[str, Any]) -> VideoRecord:
        if isinstance(fields, dict):
            try:
                fields = VideoUpdate.model_validate(fields)
            except ValidationError as e:
                raise InvalidInputError("Invalid video update", details=e.errors()) from e

        changes = fields.changes()
        if not changes:
            raise InvalidInputError("No fields to update")

        video = await self.repository.update(video_id, changes)
        if video is None:
            raise NotFoundError(f"Video not found: {video_id}")

        await self.cache.invalidate_video(video.id, video.course_id, video.lesson_id)

        logger.info(f"Updated video: {video_id} ({', '.join(sorted(changes))})")
        return video

    async def delete(self, video_id: UUID, also_delete_remote: bool = True) -> bool:
        video = await self.require(video_id)

        # Remote first: a failure here must leave the local pointer intact.
        if also_delete_remote:
            if self.status_source is None:
                raise ExternalServiceError("Stream provider is not configured")
            try:
                await self.status_source.delete(video.external_id)
            except ExternalServiceError:
                logger.error(f"Failed to delete video from stream provider: {video.external_id}")
                raise

        if not await self.repository.delete(video.id):
            raise NotFoundError(f"Video not found: {video_id}")

        await self.cache.invalidate_video(video.id, video.course_id, video.lesson_id)

        logger.info(f"Deleted video: {video_id}")
        return True

    # ------------------------------------------------------------------
    # Derived views
    # ------------------------------------------------------------------

    async def get_playback_data(self, video_id: UUID) -> VideoPlaybackData:
        """
        Stored record plus a live provider check.

        Read-only: status drift is left for the reconciler. When the
        provider is unreachable the stored status is reported instead.
        """
        video = await self.require(video_id)

        remote_state: str | None = None
        remote_progress: int | None = None
        is_ready = video.status == VideoStatus.READY
        if self.status_source is not None:
            try:
                remote = await self.status_source.get_status(video.external_id)
                remote_state = remote.local_status.value
                remote_progress = remote.progress_percent
                is_ready = remote.local_status == VideoStatus.READY
            except ExternalServiceError as e:
                logger.warning(f"Failed to get provider status for video {video.external_id}: {e}")

        base = self.delivery_base_url
        return VideoPlaybackData(
            video=video,
            remote_state=remote_state or video.status.value,
            remote_progress=remote_progress if remote_progress is not None else video.processing_progress,
            is_ready=is_ready,
            hls_url=video.playback_hls_url or generate_playback_url(video.external_id, "hls", delivery_base_url=base),
            dash_url=video.playback_dash_url
            or generate_playback_url(video.external_id, "dash", delivery_base_url=base),
            thumbnail_url=video.thumbnail_url or generate_thumbnail_url(video.external_id, delivery_base_url=base),
        )

    async def course_stats(self, course_id: UUID) -> CourseVideoStats:
        stats = CourseVideoStats()
        for status, count, total_duration in await self.repository.course_summary(course_id):
            stats.total += count
            stats.total_duration += total_duration
            setattr(stats, status.value, count)
        return stats

    async def status_summary(self) -> list[tuple[VideoStatus, int, float | None]]:
        return await self.repository.status_summary()
