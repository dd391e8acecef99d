"""
Key/value cache backends with per-entry TTL.

- MemoryCache: in-process cache for single-process deployments and tests
- RedisCache: Redis-backed cache shared by multiple API/worker instances

Both store JSON-compatible values. Use create_cache() to pick one from a URL.
"""

from __future__ import annotations

import json
import logging
import random
import time
from collections.abc import Awaitable, Callable
from typing import Any, Protocol, TypeVar

import redis.asyncio as redis_asyncio

T = TypeVar("T")

logger = logging.getLogger(__name__)


class CacheBackend(Protocol):
    async def get(self, key: str) -> Any | None: ...

    async def set(self, key: str, value: Any, ttl_seconds: int) -> None: ...

    async def delete(self, *keys: str) -> None: ...

    async def delete_prefix(self, prefix: str) -> None: ...

    async def clear(self) -> None: ...

    async def aclose(self) -> None: ...


class MemoryCache:
    """
    In-memory TTL cache.

    Each worker process keeps its own copy, so invalidations are only
    visible inside the process that made them. Use Redis when several
    processes write videos.
    """

    CLEANUP_PROBABILITY = 0.01  # 1% chance of cleanup on each set operation

    def __init__(self, max_size: int = 1000, clock: Callable[[], float] = time.monotonic) -> None:
        self._entries: dict[str, tuple[float, str]] = {}
        self._max_size = max_size
        self._clock = clock

    async def get(self, key: str) -> Any | None:
        entry = self._entries.get(key)
        if entry is None:
            return None
        expires_at, payload = entry
        if self._clock() >= expires_at:
            del self._entries[key]
            return None
        return json.loads(payload)

    async def set(self, key: str, value: Any, ttl_seconds: int) -> None:
        if random.random() < self.CLEANUP_PROBABILITY:
            self.cleanup_expired()

        if key not in self._entries and len(self._entries) >= self._max_size:
            self.cleanup_expired()
            # Still full: drop the 10% closest to expiry.
            if len(self._entries) >= self._max_size:
                items = sorted(self._entries.items(), key=lambda kv: kv[1][0])
                for k, _ in items[: max(1, len(items) // 10)]:
                    del self._entries[k]

        # Serialize on write so callers never share mutable state with the cache.
        self._entries[key] = (self._clock() + ttl_seconds, json.dumps(value))

    async def delete(self, *keys: str) -> None:
        for key in keys:
            self._entries.pop(key, None)

    async def delete_prefix(self, prefix: str) -> None:
        for key in [k for k in self._entries if k.startswith(prefix)]:
            del self._entries[key]

    async def clear(self) -> None:
        self._entries.clear()

    async def aclose(self) -> None:
        return None

    def cleanup_expired(self) -> int:
        now = self._clock()
        expired = [k for k, (expires_at, _) in self._entries.items() if now >= expires_at]
        for k in expired:
            del self._entries[k]
        return len(expired)

    def get_stats(self) -> dict[str, Any]:
        return {"backend": "memory", "entry_count": len(self._entries), "max_size": self._max_size}


class RedisCache:
    """
    Redis-backed cache.

    Redis failures never propagate: reads degrade to a miss and writes or
    deletes are dropped with a warning, since the database stays the
    source of truth.
    """

    KEY_PREFIX = "coursevideo:"

    def __init__(self, redis_url: str, client: Any | None = None) -> None:
        self._redis_url = redis_url
        self._client = client or redis_asyncio.Redis.from_url(
            redis_url,
            socket_timeout=5.0,
            socket_connect_timeout=5.0,
            decode_responses=True,
        )

    def _full_key(self, key: str) -> str:
        return f"{self.KEY_PREFIX}{key}"

    async def _safe(self, operation: Callable[[], Awaitable[T]], name: str, fallback: T | None = None) -> T | None:
        try:
            return await operation()
        except Exception as e:
            logger.warning(f"Redis cache {name} failed: {e}")
            return fallback

    async def get(self, key: str) -> Any | None:
        async def op():
            data = await self._client.get(self._full_key(key))
            return None if data is None else json.loads(data)

        return await self._safe(op, "get")

    async def set(self, key: str, value: Any, ttl_seconds: int) -> None:
        async def op():
            await self._client.setex(self._full_key(key), int(ttl_seconds), json.dumps(value))

        await self._safe(op, "set")

    async def delete(self, *keys: str) -> None:
        if not keys:
            return

        async def op():
            await self._client.delete(*[self._full_key(k) for k in keys])

        await self._safe(op, "delete")

    async def delete_prefix(self, prefix: str) -> None:
        async def op():
            async for key in self._client.scan_iter(match=f"{self._full_key(prefix)}*", count=100):
                await self._client.delete(key)

        await self._safe(op, "delete_prefix")

    async def clear(self) -> None:
        await self.delete_prefix("")

    async def aclose(self) -> None:
        await self._safe(self._client.aclose, "close")


def create_cache(url: str = "memory://", *, max_size: int = 1000) -> MemoryCache | RedisCache:
    """Pick a backend by URL scheme: ``memory://`` or ``redis://``/``rediss://``."""
    if url.startswith("redis://") or url.startswith("rediss://"):
        logger.info(f"Using Redis video cache: {url.split('@')[-1]}")
        return RedisCache(url)
    return MemoryCache(max_size=max_size)
