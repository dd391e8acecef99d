from __future__ import annotations

import pytest

from coursevideo.core.errors import InvalidInputError
from coursevideo.monitoring.stuck import StuckJobDetector
from coursevideo.schemas.course_video import VideoStatus
from tests.fakes import FakeClock, make_service


@pytest.mark.asyncio
async def test_finds_live_videos_past_threshold_least_recent_first() -> None:
    service, repo, _ = make_service()
    course_id = repo.add_course()

    very_old = repo.seed(course_id, status=VideoStatus.IN_PROGRESS)
    repo.clock.advance(minutes=30)
    old = repo.seed(course_id, status=VideoStatus.QUEUED)
    repo.seed(course_id, status=VideoStatus.ERROR)
    repo.clock.advance(minutes=80)
    repo.seed(course_id, status=VideoStatus.QUEUED)

    now = FakeClock(repo.clock.now)
    detector = StuckJobDetector(service, now=now)

    stuck = await detector.find_stuck(60)

    assert [v.id for v in stuck] == [very_old.id, old.id]


@pytest.mark.asyncio
async def test_nothing_stuck_returns_empty_list() -> None:
    service, repo, _ = make_service()
    repo.seed(repo.add_course(), status=VideoStatus.QUEUED)

    detector = StuckJobDetector(service, now=FakeClock(repo.clock.now))

    assert await detector.find_stuck(60) == []


@pytest.mark.asyncio
async def test_threshold_must_be_positive() -> None:
    service, _, _ = make_service()

    with pytest.raises(InvalidInputError):
        await StuckJobDetector(service).find_stuck(0)


@pytest.mark.asyncio
async def test_monitoring_stats() -> None:
    service, repo, _ = make_service()
    course_id = repo.add_course()
    for status in (VideoStatus.QUEUED, VideoStatus.ERROR, VideoStatus.IN_PROGRESS):
        repo.seed(course_id, status=status)

    first = repo.seed(course_id)
    second = repo.seed(course_id)
    repo.clock.advance(minutes=10)
    await repo.update(first.id, {"status": VideoStatus.READY})
    repo.clock.advance(minutes=10)
    await repo.update(second.id, {"status": VideoStatus.READY})

    stats = await StuckJobDetector(service).monitoring_stats()

    assert stats.total == 5
    assert (stats.queued, stats.in_progress, stats.ready, stats.error) == (1, 1, 2, 1)
    assert stats.average_processing_minutes == 15.0
