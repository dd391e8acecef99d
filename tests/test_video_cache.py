from __future__ import annotations

from uuid import uuid4

import pytest

from coursevideo.cache.backends import MemoryCache, RedisCache, create_cache
from coursevideo.cache.video_cache import CacheTtls, VideoCache, VideoCacheKeys
from coursevideo.core.settings import Settings


class ManualClock:
    def __init__(self) -> None:
        self.t = 1000.0

    def __call__(self) -> float:
        return self.t


def test_cache_keys_match_the_documented_layout() -> None:
    course_id = uuid4()
    video_id = uuid4()

    assert VideoCacheKeys.video(video_id) == f"video:{video_id}"
    assert VideoCacheKeys.lesson(course_id, "m1-l2") == f"video:{course_id}:m1-l2"
    assert VideoCacheKeys.course_videos(course_id) == f"course_videos:{course_id}"


def test_ttls_default_and_from_settings() -> None:
    assert CacheTtls().for_kind("video") == 3600
    assert CacheTtls().for_kind("course_videos") == 1800

    ttls = CacheTtls.from_settings(Settings(VIDEO_CACHE_TTL_SECONDS=60, COURSE_VIDEOS_CACHE_TTL_SECONDS=30))
    assert (ttls.video_seconds, ttls.course_videos_seconds) == (60, 30)


@pytest.mark.asyncio
async def test_memory_cache_expires_entries() -> None:
    clock = ManualClock()
    cache = MemoryCache(clock=clock)

    await cache.set("k", {"a": 1}, ttl_seconds=10)
    assert await cache.get("k") == {"a": 1}

    clock.t += 10
    assert await cache.get("k") is None


@pytest.mark.asyncio
async def test_memory_cache_returns_copies() -> None:
    cache = MemoryCache()
    value = {"items": [1, 2]}
    await cache.set("k", value, ttl_seconds=60)

    value["items"].append(3)
    fetched = await cache.get("k")
    fetched["items"].append(4)

    assert await cache.get("k") == {"items": [1, 2]}


@pytest.mark.asyncio
async def test_memory_cache_evicts_when_full() -> None:
    clock = ManualClock()
    cache = MemoryCache(max_size=10, clock=clock)
    for i in range(10):
        await cache.set(f"k{i}", i, ttl_seconds=100 + i)

    await cache.set("new", "x", ttl_seconds=500)

    assert await cache.get("new") == "x"
    # The entry closest to expiry was dropped.
    assert await cache.get("k0") is None
    assert cache.get_stats()["entry_count"] <= 10


@pytest.mark.asyncio
async def test_invalidate_course_drops_list_and_lesson_entries_only() -> None:
    backend = MemoryCache()
    cache = VideoCache(backend)
    course_id = uuid4()
    other_course = uuid4()
    video_id = uuid4()

    await backend.set(VideoCacheKeys.course_videos(course_id), [], 60)
    await backend.set(VideoCacheKeys.lesson(course_id, "l1"), {"id": "x"}, 60)
    await backend.set(VideoCacheKeys.lesson(other_course, "l1"), {"id": "y"}, 60)
    await backend.set(VideoCacheKeys.video(video_id), {"id": "z"}, 60)

    await cache.invalidate_course(course_id)

    assert await backend.get(VideoCacheKeys.course_videos(course_id)) is None
    assert await backend.get(VideoCacheKeys.lesson(course_id, "l1")) is None
    assert await backend.get(VideoCacheKeys.lesson(other_course, "l1")) == {"id": "y"}
    assert await backend.get(VideoCacheKeys.video(video_id)) == {"id": "z"}


@pytest.mark.asyncio
async def test_invalidate_video_deletes_video_then_lesson_then_list() -> None:
    class RecordingBackend(MemoryCache):
        def __init__(self) -> None:
            super().__init__()
            self.deleted: list[str] = []

        async def delete(self, *keys: str) -> None:
            self.deleted.extend(keys)
            await super().delete(*keys)

    backend = RecordingBackend()
    cache = VideoCache(backend)
    course_id = uuid4()
    video_id = uuid4()

    await cache.invalidate_video(video_id, course_id, "l1")

    assert backend.deleted == [
        VideoCacheKeys.video(video_id),
        VideoCacheKeys.lesson(course_id, "l1"),
        VideoCacheKeys.course_videos(course_id),
    ]


class FlakyRedis:
    """Minimal async Redis double that fails every call."""

    async def get(self, key):
        raise ConnectionError("redis down")

    async def setex(self, key, ttl, value):
        raise ConnectionError("redis down")

    async def delete(self, *keys):
        raise ConnectionError("redis down")

    async def aclose(self):
        return None


@pytest.mark.asyncio
async def test_redis_failures_degrade_to_cache_miss() -> None:
    cache = RedisCache("redis://localhost:6379/0", client=FlakyRedis())

    await cache.set("k", {"a": 1}, ttl_seconds=60)
    assert await cache.get("k") is None
    await cache.delete("k")


def test_create_cache_picks_backend_by_url() -> None:
    assert isinstance(create_cache("memory://"), MemoryCache)
    assert isinstance(create_cache("redis://localhost:6379/0"), RedisCache)
