from __future__ import annotations

import logging
from dataclasses import dataclass

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from coursevideo.cache.backends import CacheBackend, create_cache
from coursevideo.cache.video_cache import CacheTtls, VideoCache
from coursevideo.core.errors import ExternalServiceError
from coursevideo.core.settings import Settings
from coursevideo.db.session import get_session_maker
from coursevideo.monitoring.reconciler import StatusReconciler
from coursevideo.monitoring.retry import RetryConfig, RetryOrchestrator
from coursevideo.monitoring.stuck import StuckJobDetector
from coursevideo.notifications.alerts import Notifier, create_notifier
from coursevideo.stream.client import StreamClient
from coursevideo.stream.types import StatusSource
from coursevideo.videos.repository import CourseVideoRepository
from coursevideo.videos.service import VideoService

logger = logging.getLogger(__name__)


@dataclass
class VideoEngine:
    """Everything the admin API and the job script need, wired once."""

    service: VideoService
    reconciler: StatusReconciler
    retry: RetryOrchestrator
    stuck: StuckJobDetector
    cache_backend: CacheBackend
    source: StatusSource

    async def aclose(self) -> None:
        await self.cache_backend.aclose()
        aclose = getattr(self.source, "aclose", None)
        if aclose is not None:
            await aclose()


def _default_source(settings: Settings) -> StatusSource:
    try:
        return StreamClient.from_settings(settings)
    except ValueError as e:
        raise ExternalServiceError("Stream provider is not configured") from e


def build_engine(
    settings: Settings,
    *,
    session_maker: async_sessionmaker[AsyncSession] | None = None,
    cache_backend: CacheBackend | None = None,
    source: StatusSource | None = None,
    notifier: Notifier | None = None,
) -> VideoEngine:
    backend = cache_backend or create_cache(settings.cache_url, max_size=settings.cache_max_entries)
    source = source or _default_source(settings)
    # Outer bound on a whole status call; the HTTP client enforces its own, shorter one.
    call_timeout = float(settings.stream_request_timeout_seconds) + 5.0

    service = VideoService(
        CourseVideoRepository(session_maker or get_session_maker()),
        VideoCache(backend, CacheTtls.from_settings(settings)),
        status_source=source,
        delivery_base_url=settings.stream_delivery_base_url,
    )
    reconciler = StatusReconciler(
        service,
        source,
        item_delay_seconds=float(settings.reconcile_item_delay_seconds),
        call_timeout_seconds=call_timeout,
    )
    retry = RetryOrchestrator(
        service,
        source,
        notifier or create_notifier(settings),
        default_config=RetryConfig.from_settings(settings),
        item_delay_seconds=float(settings.retry_item_delay_seconds),
        call_timeout_seconds=call_timeout,
        admin_base_url=settings.admin_base_url,
    )

    logger.info(f"Video engine ready (cache: {type(backend).__name__})")
    return VideoEngine(
        service=service,
        reconciler=reconciler,
        retry=retry,
        stuck=StuckJobDetector(service),
        cache_backend=backend,
        source=source,
    )
