from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Protocol, assert_never

from coursevideo.core.errors import ExternalServiceError
from coursevideo.schemas.course_video import VideoStatus


class RemoteState(str, Enum):
    """Processing states as reported by the stream provider."""

    PENDING_UPLOAD = "pendingupload"
    DOWNLOADING = "downloading"
    QUEUED = "queued"
    IN_PROGRESS = "inprogress"
    READY = "ready"
    ERROR = "error"


def map_remote_state(state: RemoteState) -> VideoStatus:
    if state is RemoteState.PENDING_UPLOAD or state is RemoteState.DOWNLOADING or state is RemoteState.QUEUED:
        return VideoStatus.QUEUED
    elif state is RemoteState.IN_PROGRESS:
        return VideoStatus.IN_PROGRESS
    elif state is RemoteState.READY:
        return VideoStatus.READY
    elif state is RemoteState.ERROR:
        return VideoStatus.ERROR
    else:
        assert_never(state)


def parse_remote_state(raw: str | None) -> RemoteState:
    value = (raw or "").strip().lower()
    try:
        return RemoteState(value)
    except ValueError:
        raise ExternalServiceError(f"Unknown provider state: {raw!r}") from None


@dataclass(frozen=True)
class RemoteVideoStatus:
    state: RemoteState
    progress_percent: int = 0
    duration_seconds: int | None = None
    playback_hls: str | None = None
    playback_dash: str | None = None
    thumbnail_url: str | None = None
    error_code: str | None = None
    error_text: str | None = None
    ready_to_stream: bool = False
    meta: dict[str, Any] = field(default_factory=dict)

    @property
    def has_playback(self) -> bool:
        return bool(self.playback_hls or self.playback_dash)

    @property
    def local_status(self) -> VideoStatus:
        status = map_remote_state(self.state)
        # A "ready" report without manifests is not playable yet; keep it
        # live so the next reconciliation pass re-checks it.
        if status == VideoStatus.READY and not self.has_playback:
            return VideoStatus.IN_PROGRESS
        return status

    @property
    def error_summary(self) -> str:
        code = self.error_code or "unknown"
        text = self.error_text or "no details"
        return f"{code}: {text}"


class StatusSource(Protocol):
    async def get_status(self, external_id: str) -> RemoteVideoStatus: ...

    async def delete(self, external_id: str) -> None: ...
