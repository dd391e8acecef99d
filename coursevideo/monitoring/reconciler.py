from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass
from datetime import datetime
from typing import Any
from uuid import UUID

from coursevideo.core.clock import NowFn, SleepFn, real_sleep, utcnow
from coursevideo.monitoring.remote import apply_remote_changes, fetch_remote_status
from coursevideo.schemas.course_video import LIVE_STATUSES, VideoRecord, VideoStatus, is_allowed_transition
from coursevideo.stream.types import RemoteVideoStatus, StatusSource
from coursevideo.videos.service import VideoService

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class VideoProcessingStatus:
    video_id: UUID
    external_id: str
    status: VideoStatus
    progress: int
    duration: int | None
    ready_to_stream: bool
    changed: bool
    last_checked: datetime
    error_code: str | None = None
    error_message: str | None = None


def diff_remote(video: VideoRecord, remote: RemoteVideoStatus) -> dict[str, Any]:
    """Column changes needed to bring ``video`` in line with ``remote``; empty when in sync."""
    observed = remote.local_status

    if not is_allowed_transition(video.status, observed):
        return {}

    changes: dict[str, Any] = {}
    if observed != video.status:
        changes["status"] = observed
        changes["processing_progress"] = remote.progress_percent
        if remote.meta and remote.meta != video.metadata:
            changes["metadata"] = remote.meta
    elif observed in LIVE_STATUSES and remote.progress_percent > video.processing_progress:
        changes["processing_progress"] = remote.progress_percent

    if observed == VideoStatus.READY:
        playback = {
            "playback_hls_url": remote.playback_hls,
            "playback_dash_url": remote.playback_dash,
            "thumbnail_url": remote.thumbnail_url,
            "duration": remote.duration_seconds,
        }
        for field_name, value in playback.items():
            if value is not None and getattr(video, field_name) != value:
                changes[field_name] = value
        if video.error_message is not None:
            changes["error_message"] = None
    elif observed == VideoStatus.ERROR:
        if video.error_message != remote.error_summary:
            changes["error_message"] = remote.error_summary
    elif video.error_message is not None and "status" in changes:
        changes["error_message"] = None

    return changes


class StatusReconciler:
    """
    Pulls provider state and writes it locally only when it differs.

    Writes go through VideoService, never the store, so cache
    invalidation happens on the same path as every other mutation.
    """

    def __init__(
        self,
        service: VideoService,
        source: StatusSource,
        *,
        item_delay_seconds: float = 0.1,
        call_timeout_seconds: float = 30.0,
        sleep: SleepFn = real_sleep,
        now: NowFn = utcnow,
    ) -> None:
        self.service = service
        self.source = source
        self.item_delay_seconds = item_delay_seconds
        self.call_timeout_seconds = call_timeout_seconds
        self._sleep = sleep
        self._now = now

    async def reconcile_one(self, video_id: UUID) -> VideoProcessingStatus:
        video = await self.service.require(video_id)
        remote = await fetch_remote_status(self.source, video.external_id, self.call_timeout_seconds)
        observed = remote.local_status

        if not is_allowed_transition(video.status, observed):
            logger.warning(
                f"Ignoring provider state {observed.value} for video {video_id}: "
                f"transition from {video.status.value} is not allowed"
            )

        changes = diff_remote(video, remote)
        if changes:
            await apply_remote_changes(self.service, video.id, changes)
            if "status" in changes:
                logger.info(f"Updated video {video_id} status: {video.status.value} → {observed.value}")

        error = observed == VideoStatus.ERROR
        return VideoProcessingStatus(
            video_id=video.id,
            external_id=video.external_id,
            status=observed,
            progress=remote.progress_percent,
            duration=remote.duration_seconds,
            ready_to_stream=remote.ready_to_stream,
            changed=bool(changes),
            last_checked=self._now(),
            error_code=remote.error_code if error else None,
            error_message=remote.error_text if error else None,
        )

    async def reconcile_many(self, video_ids: Iterable[UUID]) -> list[VideoProcessingStatus]:
        statuses: list[VideoProcessingStatus] = []
        for index, video_id in enumerate(video_ids):
            if index:
                await self._sleep(self.item_delay_seconds)
            try:
                statuses.append(await self.reconcile_one(video_id))
            except Exception as e:
                logger.warning(f"Failed to check status for video {video_id}: {e}")
        return statuses

    async def reconcile_batch(self) -> int:
        """Reconcile every queued/in-progress video, oldest first. Returns the number checked."""
        videos = await self.service.list_by_status(
            [VideoStatus.QUEUED, VideoStatus.IN_PROGRESS],
            oldest_first=True,
        )
        checked = len(await self.reconcile_many(v.id for v in videos))
        logger.info(f"Monitored {checked} of {len(videos)} processing videos")
        return checked
