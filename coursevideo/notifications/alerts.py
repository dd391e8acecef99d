"""
Operator notifications for video processing failures.

The retry orchestrator sends one TerminalFailureNotice when a video
exhausts its retries. Delivery is best-effort: notifiers may raise, and
the caller logs and moves on.
"""

from __future__ import annotations

import logging
from dataclasses import asdict, dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Protocol
from uuid import UUID

import httpx

from coursevideo.core.settings import Settings

logger = logging.getLogger(__name__)


class AlertType(str, Enum):
    VIDEO_RETRIES_EXHAUSTED = "video_retries_exhausted"


@dataclass(frozen=True)
class TerminalFailureNotice:
    video_id: UUID
    video_title: str
    course_title: str | None
    external_id: str
    error_code: str | None
    error_text: str | None
    uploaded_at: datetime
    admin_url: str

    def to_payload(self) -> dict[str, Any]:
        data = asdict(self)
        data["video_id"] = str(self.video_id)
        data["uploaded_at"] = self.uploaded_at.isoformat()
        return data


def admin_video_url(admin_base_url: str, video_id: UUID) -> str:
    return f"{admin_base_url.rstrip('/')}/admin/videos/{video_id}"


class Notifier(Protocol):
    async def send_terminal_failure(self, notice: TerminalFailureNotice) -> None: ...


class LoggingNotifier:
    """Fallback when no webhook is configured."""

    async def send_terminal_failure(self, notice: TerminalFailureNotice) -> None:
        logger.error(
            f"Video {notice.video_id} ({notice.video_title}) failed permanently: "
            f"{notice.error_code}: {notice.error_text} - {notice.admin_url}"
        )


class WebhookNotifier:
    def __init__(
        self,
        webhook_url: str,
        timeout_seconds: float = 10.0,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._webhook_url = webhook_url
        self._timeout = timeout_seconds
        self._transport = transport

    async def send_terminal_failure(self, notice: TerminalFailureNotice) -> None:
        payload = {
            "event": AlertType.VIDEO_RETRIES_EXHAUSTED.value,
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "details": notice.to_payload(),
        }
        async with httpx.AsyncClient(timeout=self._timeout, transport=self._transport) as client:
            response = await client.post(self._webhook_url, json=payload)
            response.raise_for_status()
        logger.info(f"Sent {AlertType.VIDEO_RETRIES_EXHAUSTED.value} alert for video {notice.video_id}")


def create_notifier(settings: Settings) -> Notifier:
    url = (settings.alert_webhook_url or "").strip()
    if url:
        return WebhookNotifier(url, timeout_seconds=float(settings.alert_webhook_timeout_seconds))
    return LoggingNotifier()
