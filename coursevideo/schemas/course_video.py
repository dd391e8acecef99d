from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Any
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


class VideoStatus(str, Enum):
    QUEUED = "queued"
    IN_PROGRESS = "in_progress"
    READY = "ready"
    ERROR = "error"


# Statuses the provider is still working on.
LIVE_STATUSES: frozenset[VideoStatus] = frozenset({VideoStatus.QUEUED, VideoStatus.IN_PROGRESS})

_ALLOWED_TRANSITIONS: dict[VideoStatus, frozenset[VideoStatus]] = {
    VideoStatus.QUEUED: frozenset({VideoStatus.IN_PROGRESS, VideoStatus.READY, VideoStatus.ERROR}),
    VideoStatus.IN_PROGRESS: frozenset({VideoStatus.READY, VideoStatus.ERROR}),
    VideoStatus.ERROR: frozenset({VideoStatus.QUEUED, VideoStatus.IN_PROGRESS, VideoStatus.READY}),
    VideoStatus.READY: frozenset(),
}


def is_allowed_transition(old: VideoStatus, new: VideoStatus) -> bool:
    if old == new:
        return True
    return new in _ALLOWED_TRANSITIONS[old]


class VideoRecord(BaseModel):
    """Read model for one course video; also the cached JSON projection."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    course_id: UUID
    lesson_id: str
    external_id: str

    title: str
    description: str | None = None

    status: VideoStatus = VideoStatus.QUEUED
    processing_progress: int = 0
    error_message: str | None = None

    duration: int | None = None
    thumbnail_url: str | None = None
    playback_hls_url: str | None = None
    playback_dash_url: str | None = None

    metadata: dict[str, Any] | None = None

    created_at: datetime
    updated_at: datetime

    @property
    def is_ready(self) -> bool:
        return self.status == VideoStatus.READY


class VideoCreate(BaseModel):
    # Reject unknown fields so clients fail fast if they send legacy/typo keys.
    model_config = ConfigDict(extra="forbid")

    course_id: UUID
    lesson_id: str = Field(max_length=255)
    external_id: str = Field(max_length=255)
    title: str = Field(max_length=255)
    description: str | None = Field(default=None, max_length=5000)
    metadata: dict[str, Any] | None = None


# NOT NULL columns that a partial update may change but never clear.
_REQUIRED_COLUMNS = ("title", "status", "processing_progress")


class VideoUpdate(BaseModel):
    """
    Partial update. Only fields explicitly present are written; sending
    ``null`` for a nullable field clears that column. ``title``, ``status``
    and ``processing_progress`` cannot be cleared.
    """

    model_config = ConfigDict(extra="forbid")

    title: str | None = Field(default=None, max_length=255)
    description: str | None = None
    status: VideoStatus | None = None
    processing_progress: int | None = Field(default=None, ge=0, le=100)
    error_message: str | None = None
    duration: int | None = Field(default=None, ge=0)
    thumbnail_url: str | None = Field(default=None, max_length=500)
    playback_hls_url: str | None = Field(default=None, max_length=500)
    playback_dash_url: str | None = Field(default=None, max_length=500)
    metadata: dict[str, Any] | None = None

    @field_validator("title")
    @classmethod
    def _title_not_blank(cls, v: str | None) -> str | None:
        if v is not None and not v.strip():
            raise ValueError("title must not be blank")
        return v.strip() if v is not None else v

    @model_validator(mode="after")
    def _required_columns_not_cleared(self) -> "VideoUpdate":
        cleared = [
            name for name in _REQUIRED_COLUMNS if name in self.model_fields_set and getattr(self, name) is None
        ]
        if cleared:
            raise ValueError(f"{', '.join(cleared)} cannot be null")
        return self

    def changes(self) -> dict[str, Any]:
        return self.model_dump(exclude_unset=True)


class CourseVideoStats(BaseModel):
    total: int = 0
    ready: int = 0
    in_progress: int = 0
    queued: int = 0
    error: int = 0
    total_duration: int = 0


class VideoPlaybackData(BaseModel):
    video: VideoRecord
    remote_state: str | None
    remote_progress: int | None
    is_ready: bool
    hls_url: str
    dash_url: str
    thumbnail_url: str
