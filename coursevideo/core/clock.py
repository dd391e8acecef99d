from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from datetime import datetime, timezone

# Injected wherever the engine waits (backoff, batch pacing) so tests can
# substitute a recorder instead of sleeping on the wall clock.
SleepFn = Callable[[float], Awaitable[None]]
NowFn = Callable[[], datetime]


async def real_sleep(seconds: float) -> None:
    if seconds > 0:
        await asyncio.sleep(seconds)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)
