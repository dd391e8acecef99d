from __future__ import annotations

import functools
import logging
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any, Literal
from uuid import UUID

from coursevideo.cache.backends import CacheBackend
from coursevideo.core.settings import Settings
from coursevideo.schemas.course_video import VideoRecord

logger = logging.getLogger(__name__)

TtlKind = Literal["video", "course_videos"]


class VideoCacheKeys:
    VIDEO_PREFIX = "video:"
    COURSE_VIDEOS_PREFIX = "course_videos:"

    @classmethod
    def video(cls, video_id: UUID | str) -> str:
        return f"{cls.VIDEO_PREFIX}{video_id}"

    @classmethod
    def lesson(cls, course_id: UUID | str, lesson_id: str) -> str:
        return f"{cls.VIDEO_PREFIX}{course_id}:{lesson_id}"

    @classmethod
    def course_videos(cls, course_id: UUID | str) -> str:
        return f"{cls.COURSE_VIDEOS_PREFIX}{course_id}"


@dataclass(frozen=True)
class CacheTtls:
    video_seconds: int = 3600
    course_videos_seconds: int = 1800

    @classmethod
    def from_settings(cls, settings: Settings) -> "CacheTtls":
        return cls(
            video_seconds=int(settings.video_cache_ttl_seconds),
            course_videos_seconds=int(settings.course_videos_cache_ttl_seconds),
        )

    def for_kind(self, kind: TtlKind) -> int:
        return self.video_seconds if kind == "video" else self.course_videos_seconds


class VideoCache:
    """
    Cache-aside projection of course video records.

    Reads go through ``cached_read``; invalidation methods are called only
    from VideoService write paths.
    """

    def __init__(self, backend: CacheBackend, ttls: CacheTtls | None = None) -> None:
        self.backend = backend
        self.ttls = ttls or CacheTtls()

    async def get(self, key: str) -> Any | None:
        return await self.backend.get(key)

    async def put(self, key: str, value: Any, kind: TtlKind) -> None:
        await self.backend.set(key, value, self.ttls.for_kind(kind))

    async def put_video(self, video: VideoRecord) -> None:
        await self.put(VideoCacheKeys.video(video.id), video.model_dump(mode="json"), "video")

    async def invalidate_video(
        self,
        video_id: UUID,
        course_id: UUID | None = None,
        lesson_id: str | None = None,
    ) -> None:
        # Order matters for readers racing the invalidation: the per-video
        # entry goes first, the course list last.
        await self.backend.delete(VideoCacheKeys.video(video_id))
        if course_id is not None and lesson_id:
            await self.backend.delete(VideoCacheKeys.lesson(course_id, lesson_id))
        if course_id is not None:
            await self.backend.delete(VideoCacheKeys.course_videos(course_id))
        logger.info(f"Cache invalidated for video: {video_id}")

    async def invalidate_course(self, course_id: UUID) -> None:
        await self.backend.delete(VideoCacheKeys.course_videos(course_id))
        await self.backend.delete_prefix(f"{VideoCacheKeys.VIDEO_PREFIX}{course_id}:")
        logger.info(f"Cache invalidated for course: {course_id}")


def cached_read(*, key: Callable[..., str], ttl: TtlKind, many: bool = False):
    """
    Cache-first wrapper for VideoService read methods.

    ``key`` receives the method's arguments (without ``self``) and returns
    the cache key. Results are stored as JSON; ``None`` results are not
    cached so a later create is visible immediately.
    """

    def decorator(fn):
        @functools.wraps(fn)
        async def wrapper(self, *args, **kwargs):
            cache: VideoCache = self.cache
            cache_key = key(*args, **kwargs)

            cached = await cache.get(cache_key)
            if cached is not None:
                logger.debug(f"Cache hit: {cache_key}")
                if many:
                    return [VideoRecord.model_validate(item) for item in cached]
                return VideoRecord.model_validate(cached)

            result = await fn(self, *args, **kwargs)
            if result is None:
                return None
            if many:
                payload = [item.model_dump(mode="json") for item in result]
            else:
                payload = result.model_dump(mode="json")
            await cache.put(cache_key, payload, ttl)
            return result

        return wrapper

    return decorator
