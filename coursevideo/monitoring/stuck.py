from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import timedelta

from coursevideo.core.clock import NowFn, utcnow
from coursevideo.core.errors import InvalidInputError
from coursevideo.schemas.course_video import VideoRecord, VideoStatus
from coursevideo.videos.service import VideoService

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class MonitoringStats:
    total: int = 0
    queued: int = 0
    in_progress: int = 0
    ready: int = 0
    error: int = 0
    # Mean minutes from upload to ready, over ready videos only.
    average_processing_minutes: float = 0.0


class StuckJobDetector:
    """Read-only view over videos that stopped moving."""

    def __init__(self, service: VideoService, *, now: NowFn = utcnow) -> None:
        self.service = service
        self._now = now

    async def find_stuck(self, threshold_minutes: int = 60) -> list[VideoRecord]:
        """Live videos not updated for ``threshold_minutes``, least recently updated first."""
        if threshold_minutes <= 0:
            raise InvalidInputError("threshold_minutes must be > 0")

        cutoff = self._now() - timedelta(minutes=threshold_minutes)
        stuck = await self.service.list_stale(
            [VideoStatus.QUEUED, VideoStatus.IN_PROGRESS],
            updated_before=cutoff,
        )
        if stuck:
            logger.warning(f"Found {len(stuck)} videos stuck for more than {threshold_minutes} minutes")
        return stuck

    async def monitoring_stats(self) -> MonitoringStats:
        counts = {status: 0 for status in VideoStatus}
        ready_minutes = 0.0
        for status, count, avg_minutes in await self.service.status_summary():
            counts[status] += count
            if status == VideoStatus.READY and avg_minutes is not None:
                ready_minutes = avg_minutes

        return MonitoringStats(
            total=sum(counts.values()),
            queued=counts[VideoStatus.QUEUED],
            in_progress=counts[VideoStatus.IN_PROGRESS],
            ready=counts[VideoStatus.READY],
            error=counts[VideoStatus.ERROR],
            average_processing_minutes=round(ready_minutes, 2),
        )
