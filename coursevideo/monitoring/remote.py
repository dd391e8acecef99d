from __future__ import annotations

import asyncio
from typing import Any
from uuid import UUID

from coursevideo.core.errors import ExternalServiceError, InvalidInputError
from coursevideo.schemas.course_video import VideoRecord
from coursevideo.stream.types import RemoteVideoStatus, StatusSource
from coursevideo.videos.service import VideoService


async def fetch_remote_status(source: StatusSource, external_id: str, timeout_seconds: float) -> RemoteVideoStatus:
    """Query the provider with a hard upper bound; a timeout is a provider failure."""
    try:
        return await asyncio.wait_for(source.get_status(external_id), timeout=timeout_seconds)
    except asyncio.TimeoutError as e:
        raise ExternalServiceError(f"Provider status check timed out after {timeout_seconds}s for {external_id}") from e


async def apply_remote_changes(service: VideoService, video_id: UUID, changes: dict[str, Any]) -> VideoRecord:
    """Write provider-derived fields; values the store cannot hold are the provider's fault."""
    try:
        return await service.update(video_id, changes)
    except InvalidInputError as e:
        raise ExternalServiceError(
            f"Stream provider sent unusable data for video {video_id}",
            details=e.details,
        ) from e
