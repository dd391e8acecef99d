from __future__ import annotations

from dataclasses import asdict, replace
from typing import Any
from uuid import UUID

from fastapi import APIRouter, Depends, status
from pydantic import BaseModel, Field

from coursevideo.api.deps import get_video_engine, require_admin
from coursevideo.core.settings import Settings, get_settings
from coursevideo.engine import VideoEngine
from coursevideo.monitoring.retry import RetryConfig
from coursevideo.schemas.course_video import (
    CourseVideoStats,
    VideoCreate,
    VideoPlaybackData,
    VideoRecord,
    VideoUpdate,
)

router = APIRouter(prefix="/admin/videos", tags=["admin-videos"], dependencies=[Depends(require_admin)])


class RetryRequest(BaseModel):
    # Omit video_id to retry every failed video.
    video_id: UUID | None = None
    max_retries: int | None = Field(default=None, ge=0)
    initial_delay_seconds: float | None = Field(default=None, ge=0)
    max_delay_seconds: float | None = Field(default=None, ge=0)
    backoff_multiplier: float | None = Field(default=None, ge=1)

    def config(self, default: RetryConfig) -> RetryConfig:
        overrides = self.model_dump(exclude_none=True, exclude={"video_id"})
        return replace(default, **overrides) if overrides else default


class RetryResult(BaseModel):
    video_id: UUID | None = None
    success: bool | None = None
    recovered: int | None = None


class MonitorReport(BaseModel):
    stats: dict[str, Any]
    stuck: list[VideoRecord] | None = None


class MonitorRunResult(BaseModel):
    checked: int


@router.post("", response_model=VideoRecord, status_code=status.HTTP_201_CREATED)
async def create_video(payload: VideoCreate, engine: VideoEngine = Depends(get_video_engine)) -> VideoRecord:
    return await engine.service.create(payload)


@router.get("/monitor", response_model=MonitorReport)
async def monitor_report(
    include_stuck: bool = False,
    threshold_minutes: int | None = None,
    engine: VideoEngine = Depends(get_video_engine),
    settings: Settings = Depends(get_settings),
) -> MonitorReport:
    stats = await engine.stuck.monitoring_stats()
    stuck = None
    if include_stuck:
        if threshold_minutes is None:
            threshold_minutes = settings.stuck_threshold_minutes
        stuck = await engine.stuck.find_stuck(threshold_minutes)
    return MonitorReport(stats=asdict(stats), stuck=stuck)


@router.post("/monitor", response_model=MonitorRunResult)
async def run_monitor(engine: VideoEngine = Depends(get_video_engine)) -> MonitorRunResult:
    return MonitorRunResult(checked=await engine.reconciler.reconcile_batch())


@router.post("/retry", response_model=RetryResult)
async def retry_videos(payload: RetryRequest, engine: VideoEngine = Depends(get_video_engine)) -> RetryResult:
    config = payload.config(engine.retry.default_config)
    if payload.video_id is not None:
        ok = await engine.retry.retry_video(payload.video_id, config)
        return RetryResult(video_id=payload.video_id, success=ok)
    return RetryResult(recovered=await engine.retry.retry_all(config))


@router.get("/course/{course_id}", response_model=list[VideoRecord])
async def list_course_videos(
    course_id: UUID,
    include_not_ready: bool = False,
    engine: VideoEngine = Depends(get_video_engine),
) -> list[VideoRecord]:
    return await engine.service.list_by_course(course_id, include_not_ready=include_not_ready)


@router.get("/course/{course_id}/stats", response_model=CourseVideoStats)
async def course_video_stats(course_id: UUID, engine: VideoEngine = Depends(get_video_engine)) -> CourseVideoStats:
    return await engine.service.course_stats(course_id)


@router.get("/{video_id}", response_model=VideoRecord)
async def get_video(video_id: UUID, engine: VideoEngine = Depends(get_video_engine)) -> VideoRecord:
    return await engine.service.require(video_id)


@router.get("/{video_id}/playback", response_model=VideoPlaybackData)
async def get_playback(video_id: UUID, engine: VideoEngine = Depends(get_video_engine)) -> VideoPlaybackData:
    return await engine.service.get_playback_data(video_id)


@router.patch("/{video_id}", response_model=VideoRecord)
async def update_video(
    video_id: UUID,
    payload: VideoUpdate,
    engine: VideoEngine = Depends(get_video_engine),
) -> VideoRecord:
    return await engine.service.update(video_id, payload)


@router.delete("/{video_id}")
async def delete_video(
    video_id: UUID,
    delete_remote: bool = True,
    engine: VideoEngine = Depends(get_video_engine),
) -> dict[str, bool]:
    await engine.service.delete(video_id, also_delete_remote=delete_remote)
    return {"ok": True}


@router.post("/{video_id}/status")
async def reconcile_video(video_id: UUID, engine: VideoEngine = Depends(get_video_engine)) -> dict[str, Any]:
    result = await engine.reconciler.reconcile_one(video_id)
    return asdict(result)
