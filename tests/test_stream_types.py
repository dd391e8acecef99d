from __future__ import annotations

import pytest

from coursevideo.core.errors import ExternalServiceError
from coursevideo.schemas.course_video import VideoStatus, is_allowed_transition
from coursevideo.stream.types import RemoteState, RemoteVideoStatus, map_remote_state, parse_remote_state
from coursevideo.stream.urls import generate_playback_url, generate_thumbnail_url


@pytest.mark.parametrize(
    ("state", "expected"),
    [
        (RemoteState.PENDING_UPLOAD, VideoStatus.QUEUED),
        (RemoteState.DOWNLOADING, VideoStatus.QUEUED),
        (RemoteState.QUEUED, VideoStatus.QUEUED),
        (RemoteState.IN_PROGRESS, VideoStatus.IN_PROGRESS),
        (RemoteState.READY, VideoStatus.READY),
        (RemoteState.ERROR, VideoStatus.ERROR),
    ],
)
def test_every_provider_state_maps_to_a_local_status(state: RemoteState, expected: VideoStatus) -> None:
    assert map_remote_state(state) == expected


def test_parse_remote_state_is_case_insensitive_and_strict() -> None:
    assert parse_remote_state(" Ready ") is RemoteState.READY
    with pytest.raises(ExternalServiceError):
        parse_remote_state(None)
    with pytest.raises(ExternalServiceError):
        parse_remote_state("archived")


def test_ready_without_playback_urls_stays_in_progress() -> None:
    status = RemoteVideoStatus(state=RemoteState.READY, progress_percent=100)
    assert status.has_playback is False
    assert status.local_status == VideoStatus.IN_PROGRESS

    with_hls = RemoteVideoStatus(state=RemoteState.READY, playback_hls="https://x/manifest/video.m3u8")
    assert with_hls.local_status == VideoStatus.READY


def test_error_summary_has_placeholders() -> None:
    assert RemoteVideoStatus(state=RemoteState.ERROR).error_summary == "unknown: no details"
    status = RemoteVideoStatus(state=RemoteState.ERROR, error_code="ERR_DURATION", error_text="too long")
    assert status.error_summary == "ERR_DURATION: too long"


def test_ready_is_terminal() -> None:
    for target in (VideoStatus.QUEUED, VideoStatus.IN_PROGRESS, VideoStatus.ERROR):
        assert is_allowed_transition(VideoStatus.READY, target) is False
    assert is_allowed_transition(VideoStatus.READY, VideoStatus.READY) is True
    assert is_allowed_transition(VideoStatus.IN_PROGRESS, VideoStatus.QUEUED) is False
    assert is_allowed_transition(VideoStatus.ERROR, VideoStatus.QUEUED) is True


def test_playback_urls() -> None:
    assert generate_playback_url("abc") == "https://videodelivery.net/abc/manifest/video.m3u8"
    assert generate_playback_url("abc", "dash") == "https://videodelivery.net/abc/manifest/video.mpd"
    assert (
        generate_playback_url("abc", delivery_base_url="https://cdn.example.test/")
        == "https://cdn.example.test/abc/manifest/video.m3u8"
    )
    with pytest.raises(ValueError):
        generate_playback_url("  ")


def test_thumbnail_urls() -> None:
    base = "https://videodelivery.net/abc/thumbnails/thumbnail.jpg"
    assert generate_thumbnail_url("abc") == base
    assert generate_thumbnail_url("abc", 0.5) == f"{base}?time=50pct"
    assert generate_thumbnail_url("abc", 12.7) == f"{base}?time=12s"
    with pytest.raises(ValueError):
        generate_thumbnail_url("abc", -1)
