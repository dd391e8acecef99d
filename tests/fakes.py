"""In-memory stand-ins for the Postgres store, the stream provider and the notifier."""

from __future__ import annotations

from collections import defaultdict
from datetime import datetime, timedelta, timezone
from typing import Any
from uuid import UUID, uuid4

from coursevideo.cache.backends import MemoryCache
from coursevideo.cache.video_cache import VideoCache
from coursevideo.core.errors import ConflictError
from coursevideo.notifications.alerts import TerminalFailureNotice
from coursevideo.schemas.course_video import VideoRecord, VideoStatus
from coursevideo.stream.types import RemoteState, RemoteVideoStatus
from coursevideo.videos.service import VideoService

T0 = datetime(2026, 1, 1, 12, 0, tzinfo=timezone.utc)


class FakeClock:
    def __init__(self, start: datetime = T0) -> None:
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs: float) -> None:
        self.now = self.now + timedelta(**kwargs)


class RecordingSleep:
    def __init__(self) -> None:
        self.calls: list[float] = []

    async def __call__(self, seconds: float) -> None:
        self.calls.append(seconds)


class FakeRepository:
    def __init__(self, clock: FakeClock | None = None) -> None:
        self.clock = clock or FakeClock()
        self.courses: dict[UUID, str] = {}
        self.rows: dict[UUID, VideoRecord] = {}
        self.calls: dict[str, int] = defaultdict(int)

    def add_course(self, title: str = "Intro to Testing") -> UUID:
        course_id = uuid4()
        self.courses[course_id] = title
        return course_id

    def seed(self, course_id: UUID, **fields: Any) -> VideoRecord:
        """Insert a row directly, bypassing the service."""
        now = self.clock()
        values: dict[str, Any] = {
            "id": uuid4(),
            "course_id": course_id,
            "lesson_id": f"lesson-{len(self.rows) + 1}",
            "external_id": f"ext-{uuid4().hex[:12]}",
            "title": "Lesson video",
            "created_at": now,
            "updated_at": now,
        }
        values.update(fields)
        record = VideoRecord(**values)
        self.rows[record.id] = record
        return record

    async def course_exists(self, course_id: UUID) -> bool:
        return course_id in self.courses

    async def get_course_title(self, course_id: UUID) -> str | None:
        return self.courses.get(course_id)

    async def insert(self, fields: dict[str, Any]) -> VideoRecord:
        self.calls["insert"] += 1
        for row in self.rows.values():
            if row.external_id == fields["external_id"]:
                raise ConflictError(f"Video with external id {fields['external_id']} already exists")
            if row.course_id == fields["course_id"] and row.lesson_id == fields["lesson_id"]:
                raise ConflictError(
                    f"Video already exists for course {fields['course_id']}, lesson {fields['lesson_id']}"
                )
        return self.seed(
            fields["course_id"],
            lesson_id=fields["lesson_id"],
            external_id=fields["external_id"],
            title=fields["title"],
            description=fields.get("description"),
            metadata=fields.get("metadata"),
        )

    async def get(self, video_id: UUID) -> VideoRecord | None:
        self.calls["get"] += 1
        return self.rows.get(video_id)

    async def get_by_lesson(self, course_id: UUID, lesson_id: str) -> VideoRecord | None:
        self.calls["get_by_lesson"] += 1
        for row in self.rows.values():
            if row.course_id == course_id and row.lesson_id == lesson_id:
                return row
        return None

    async def list_by_course(self, course_id: UUID) -> list[VideoRecord]:
        self.calls["list_by_course"] += 1
        return sorted((r for r in self.rows.values() if r.course_id == course_id), key=lambda r: r.lesson_id)

    async def list_by_status(self, statuses, *, oldest_first: bool = True) -> list[VideoRecord]:
        wanted = set(statuses)
        rows = [r for r in self.rows.values() if r.status in wanted]
        return sorted(rows, key=lambda r: r.created_at, reverse=not oldest_first)

    async def list_stale(self, statuses, *, updated_before: datetime) -> list[VideoRecord]:
        wanted = set(statuses)
        rows = [r for r in self.rows.values() if r.status in wanted and r.updated_at < updated_before]
        return sorted(rows, key=lambda r: r.updated_at)

    async def update(self, video_id: UUID, fields: dict[str, Any]) -> VideoRecord | None:
        self.calls["update"] += 1
        row = self.rows.get(video_id)
        if row is None:
            return None
        updated = row.model_copy(update={**fields, "updated_at": self.clock()})
        self.rows[video_id] = updated
        return updated

    async def delete(self, video_id: UUID) -> bool:
        return self.rows.pop(video_id, None) is not None

    async def status_summary(self) -> list[tuple[VideoStatus, int, float | None]]:
        grouped: dict[VideoStatus, list[VideoRecord]] = defaultdict(list)
        for row in self.rows.values():
            grouped[row.status].append(row)
        summary = []
        for status, rows in grouped.items():
            minutes = [(r.updated_at - r.created_at).total_seconds() / 60.0 for r in rows]
            summary.append((status, len(rows), sum(minutes) / len(minutes)))
        return summary

    async def course_summary(self, course_id: UUID) -> list[tuple[VideoStatus, int, int]]:
        grouped: dict[VideoStatus, list[VideoRecord]] = defaultdict(list)
        for row in self.rows.values():
            if row.course_id == course_id:
                grouped[row.status].append(row)
        return [(s, len(rows), sum(r.duration or 0 for r in rows)) for s, rows in grouped.items()]


def remote(state: str | RemoteState, **fields: Any) -> RemoteVideoStatus:
    return RemoteVideoStatus(state=RemoteState(state), **fields)


def ready_remote(external_id: str = "abc", **fields: Any) -> RemoteVideoStatus:
    values: dict[str, Any] = {
        "progress_percent": 100,
        "duration_seconds": 312,
        "playback_hls": f"https://videodelivery.net/{external_id}/manifest/video.m3u8",
        "playback_dash": f"https://videodelivery.net/{external_id}/manifest/video.mpd",
        "thumbnail_url": f"https://videodelivery.net/{external_id}/thumbnails/thumbnail.jpg",
        "ready_to_stream": True,
    }
    values.update(fields)
    return RemoteVideoStatus(state=RemoteState.READY, **values)


class FakeStatusSource:
    """
    Scripted provider. Each external id has a queue of responses; the last
    one repeats. A response that is an exception instance is raised.
    """

    def __init__(self) -> None:
        self.responses: dict[str, list[RemoteVideoStatus | Exception]] = {}
        self.status_calls: list[str] = []
        self.deleted: list[str] = []
        self.delete_error: Exception | None = None

    def script(self, external_id: str, *responses: RemoteVideoStatus | Exception) -> None:
        self.responses[external_id] = list(responses)

    async def get_status(self, external_id: str) -> RemoteVideoStatus:
        self.status_calls.append(external_id)
        queue = self.responses[external_id]
        response = queue.pop(0) if len(queue) > 1 else queue[0]
        if isinstance(response, Exception):
            raise response
        return response

    async def delete(self, external_id: str) -> None:
        if self.delete_error is not None:
            raise self.delete_error
        self.deleted.append(external_id)


class FakeNotifier:
    def __init__(self, error: Exception | None = None) -> None:
        self.notices: list[TerminalFailureNotice] = []
        self.error = error

    async def send_terminal_failure(self, notice: TerminalFailureNotice) -> None:
        self.notices.append(notice)
        if self.error is not None:
            raise self.error


def make_service(
    repo: FakeRepository | None = None,
    source: FakeStatusSource | None = None,
) -> tuple[VideoService, FakeRepository, MemoryCache]:
    repo = repo or FakeRepository()
    backend = MemoryCache()
    service = VideoService(repo, VideoCache(backend), status_source=source)
    return service, repo, backend
