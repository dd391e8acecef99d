"""
Error taxonomy for the course video engine.

Single-item operations raise these to their caller; batch operations
catch them per item and keep going.
"""

from __future__ import annotations

from enum import Enum
from typing import Any


class VideoErrorCode(str, Enum):
    VIDEO_NOT_FOUND = "VIDEO_NOT_FOUND"
    COURSE_NOT_FOUND = "COURSE_NOT_FOUND"
    DUPLICATE_VIDEO = "DUPLICATE_VIDEO"
    EXTERNAL_SERVICE_ERROR = "EXTERNAL_SERVICE_ERROR"
    DATABASE_ERROR = "DATABASE_ERROR"
    INVALID_INPUT = "INVALID_INPUT"


class VideoError(Exception):
    code: VideoErrorCode = VideoErrorCode.DATABASE_ERROR

    def __init__(self, message: str, *, code: VideoErrorCode | None = None, details: Any = None) -> None:
        super().__init__(message)
        self.message = message
        if code is not None:
            self.code = code
        self.details = details

    def to_dict(self) -> dict[str, Any]:
        return {"code": self.code.value, "message": self.message}


class NotFoundError(VideoError):
    code = VideoErrorCode.VIDEO_NOT_FOUND


class ConflictError(VideoError):
    code = VideoErrorCode.DUPLICATE_VIDEO


class ExternalServiceError(VideoError):
    code = VideoErrorCode.EXTERNAL_SERVICE_ERROR


class DatabaseError(VideoError):
    code = VideoErrorCode.DATABASE_ERROR


class InvalidInputError(VideoError):
    code = VideoErrorCode.INVALID_INPUT
