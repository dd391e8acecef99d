"""
Recovery for videos the provider reported as failed.

A retry re-queries the provider with exponential backoff between
attempts. It does not re-upload anything: the provider may have
recovered the job on its own, or the error may have been transient on
our side. When attempts run out, operators get one notification.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from uuid import UUID

from coursevideo.core.clock import NowFn, SleepFn, real_sleep, utcnow
from coursevideo.core.errors import ExternalServiceError, InvalidInputError
from coursevideo.core.settings import Settings
from coursevideo.monitoring.remote import apply_remote_changes, fetch_remote_status
from coursevideo.notifications.alerts import Notifier, TerminalFailureNotice, admin_video_url
from coursevideo.schemas.course_video import LIVE_STATUSES, VideoRecord, VideoStatus
from coursevideo.stream.types import RemoteVideoStatus, StatusSource
from coursevideo.videos.service import VideoService

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RetryConfig:
    max_retries: int = 3
    initial_delay_seconds: float = 5.0
    max_delay_seconds: float = 300.0
    backoff_multiplier: float = 2.0

    def __post_init__(self) -> None:
        if self.max_retries < 0:
            raise InvalidInputError("max_retries must be >= 0")
        if self.initial_delay_seconds < 0 or self.max_delay_seconds < 0:
            raise InvalidInputError("retry delays must be >= 0")
        if self.backoff_multiplier < 1:
            raise InvalidInputError("backoff_multiplier must be >= 1")

    @classmethod
    def from_settings(cls, settings: Settings) -> "RetryConfig":
        return cls(
            max_retries=int(settings.video_retry_max_retries),
            initial_delay_seconds=float(settings.video_retry_initial_delay_seconds),
            max_delay_seconds=float(settings.video_retry_max_delay_seconds),
            backoff_multiplier=float(settings.video_retry_backoff_multiplier),
        )


def backoff_delay(attempt: int, config: RetryConfig) -> float:
    """Seconds to wait before ``attempt`` (1-based). The first attempt runs immediately."""
    if attempt <= 1:
        return 0.0
    delay = config.initial_delay_seconds * (config.backoff_multiplier ** (attempt - 2))
    return min(delay, config.max_delay_seconds)


@dataclass(frozen=True)
class RetryAttempt:
    video_id: UUID
    attempt_number: int
    attempted_at: datetime
    success: bool
    error: str | None = None


class RetryAttemptStore:
    """
    Process-local attempt history, keyed by video id.

    Not persisted: a restart forgets the history, which at worst grants a
    failed video a fresh set of retries.
    """

    def __init__(self) -> None:
        self._attempts: dict[UUID, list[RetryAttempt]] = {}
        self._notified: set[UUID] = set()

    def attempts(self, video_id: UUID) -> list[RetryAttempt]:
        return list(self._attempts.get(video_id, []))

    def record(self, attempt: RetryAttempt) -> None:
        self._attempts.setdefault(attempt.video_id, []).append(attempt)
        outcome = "success" if attempt.success else "failed"
        logger.info(f"Retry attempt {attempt.attempt_number} for video {attempt.video_id}: {outcome}")

    def clear(self, video_id: UUID) -> None:
        self._attempts.pop(video_id, None)
        self._notified.discard(video_id)

    def reset(self) -> None:
        self._attempts.clear()
        self._notified.clear()
        logger.info("All retry attempts cleared")

    def mark_notified(self, video_id: UUID) -> None:
        self._notified.add(video_id)

    def was_notified(self, video_id: UUID) -> bool:
        return video_id in self._notified


class RetryOrchestrator:
    def __init__(
        self,
        service: VideoService,
        source: StatusSource,
        notifier: Notifier,
        *,
        attempts: RetryAttemptStore | None = None,
        default_config: RetryConfig | None = None,
        item_delay_seconds: float = 1.0,
        call_timeout_seconds: float = 30.0,
        admin_base_url: str = "http://localhost:4321",
        sleep: SleepFn = real_sleep,
        now: NowFn = utcnow,
    ) -> None:
        self.service = service
        self.source = source
        self.notifier = notifier
        self.attempts = attempts if attempts is not None else RetryAttemptStore()
        self.default_config = default_config or RetryConfig()
        self.item_delay_seconds = item_delay_seconds
        self.call_timeout_seconds = call_timeout_seconds
        self.admin_base_url = admin_base_url
        self._sleep = sleep
        self._now = now

    def attempt_history(self, video_id: UUID) -> list[RetryAttempt]:
        return self.attempts.attempts(video_id)

    def reset_attempts(self, video_id: UUID | None = None) -> None:
        if video_id is None:
            self.attempts.reset()
        else:
            self.attempts.clear(video_id)

    def _record(self, video_id: UUID, attempt_number: int, success: bool, error: str | None = None) -> None:
        self.attempts.record(
            RetryAttempt(
                video_id=video_id,
                attempt_number=attempt_number,
                attempted_at=self._now(),
                success=success,
                error=error,
            )
        )

    async def retry_video(self, video_id: UUID, config: RetryConfig | None = None) -> bool:
        """
        Try to bring a failed video back to a live state.

        Returns True when the provider reports the job as ready or alive
        again, False when the video was not in ``error`` or retries ran out.
        Provider failures count as failed attempts; a missing record or a
        store failure propagates.
        """
        config = config or self.default_config
        video = await self.service.require(video_id)

        if video.status != VideoStatus.ERROR:
            logger.warning(f"Video {video_id} is not in error state (status: {video.status.value})")
            return False

        last_error: tuple[str | None, str | None] = (None, video.error_message)
        while True:
            attempt = len(self.attempts.attempts(video_id)) + 1

            if attempt > config.max_retries:
                self._record(video_id, attempt, False, "max retries exceeded")
                logger.warning(f"Max retries ({config.max_retries}) exceeded for video {video_id}")
                if not self.attempts.was_notified(video_id):
                    # Mark first so a failing notifier cannot cause a storm.
                    self.attempts.mark_notified(video_id)
                    logger.error(f"Video {video_id} failed after {config.max_retries} retry attempts")
                    await self._notify_exhausted(video, *last_error)
                return False

            delay = backoff_delay(attempt, config)
            if delay > 0:
                logger.info(f"Waiting {delay}s before retry attempt {attempt} for video {video_id}")
                await self._sleep(delay)

            logger.info(f"Retry attempt {attempt}/{config.max_retries} for video {video_id}")
            try:
                remote = await fetch_remote_status(self.source, video.external_id, self.call_timeout_seconds)
                recovered = await self._apply_recovery(video, remote)
            except ExternalServiceError as e:
                self._record(video_id, attempt, False, str(e))
                last_error = (None, str(e))
                continue

            if recovered:
                self._record(video_id, attempt, True)
                self.attempts.clear(video_id)
                return True

            self._record(video_id, attempt, False, remote.error_summary)
            last_error = (remote.error_code, remote.error_text)

    async def _apply_recovery(self, video: VideoRecord, remote: RemoteVideoStatus) -> bool:
        observed = remote.local_status

        if observed == VideoStatus.READY:
            await apply_remote_changes(
                self.service,
                video.id,
                {
                    "status": VideoStatus.READY,
                    "processing_progress": remote.progress_percent,
                    "duration": remote.duration_seconds,
                    "playback_hls_url": remote.playback_hls,
                    "playback_dash_url": remote.playback_dash,
                    "thumbnail_url": remote.thumbnail_url,
                    "error_message": None,
                },
            )
            logger.info(f"Video {video.id} successfully recovered")
            return True

        if observed in LIVE_STATUSES:
            await apply_remote_changes(
                self.service,
                video.id,
                {
                    "status": observed,
                    "processing_progress": remote.progress_percent,
                    "error_message": None,
                },
            )
            logger.info(f"Video {video.id} is now processing")
            return True

        return False

    async def _notify_exhausted(self, video: VideoRecord, error_code: str | None, error_text: str | None) -> None:
        try:
            course_title = await self.service.get_course_title(video.course_id)
            await self.notifier.send_terminal_failure(
                TerminalFailureNotice(
                    video_id=video.id,
                    video_title=video.title,
                    course_title=course_title,
                    external_id=video.external_id,
                    error_code=error_code,
                    error_text=error_text,
                    uploaded_at=video.created_at,
                    admin_url=admin_video_url(self.admin_base_url, video.id),
                )
            )
            logger.info(f"Sent final failure notification for video {video.id}")
        except Exception as e:
            logger.warning(f"Failed to send final failure notification for video {video.id}: {e}")

    async def retry_all(self, config: RetryConfig | None = None) -> int:
        """Retry every video in ``error``, one at a time. Returns how many recovered."""
        videos = await self.service.list_by_status([VideoStatus.ERROR], oldest_first=False)

        recovered = 0
        for index, video in enumerate(videos):
            if index:
                await self._sleep(self.item_delay_seconds)
            try:
                if await self.retry_video(video.id, config):
                    recovered += 1
            except Exception as e:
                logger.warning(f"Failed to retry video {video.id}: {e}")

        logger.info(f"Retried {recovered} out of {len(videos)} failed videos")
        return recovered
