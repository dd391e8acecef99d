from __future__ import annotations

from typing import Literal

DEFAULT_DELIVERY_BASE_URL = "https://videodelivery.net"


def _base(delivery_base_url: str) -> str:
    return (delivery_base_url or DEFAULT_DELIVERY_BASE_URL).rstrip("/")


def generate_playback_url(
    external_id: str,
    fmt: Literal["hls", "dash"] = "hls",
    *,
    delivery_base_url: str = DEFAULT_DELIVERY_BASE_URL,
) -> str:
    """
    Build the direct manifest URL for a provider asset.

      {base}/{id}/manifest/video.m3u8   (HLS)
      {base}/{id}/manifest/video.mpd    (DASH)
    """
    vid = (external_id or "").strip()
    if not vid:
        raise ValueError("external_id is required")
    if fmt == "dash":
        return f"{_base(delivery_base_url)}/{vid}/manifest/video.mpd"
    return f"{_base(delivery_base_url)}/{vid}/manifest/video.m3u8"


def generate_thumbnail_url(
    external_id: str,
    time: float | None = None,
    *,
    delivery_base_url: str = DEFAULT_DELIVERY_BASE_URL,
) -> str:
    """
    Thumbnail URL, optionally at a point in the video.

    ``time`` below 1 is a fraction of the duration, otherwise seconds.
    """
    vid = (external_id or "").strip()
    if not vid:
        raise ValueError("external_id is required")
    base = f"{_base(delivery_base_url)}/{vid}/thumbnails/thumbnail.jpg"
    if time is None:
        return base
    if time < 0:
        raise ValueError("time must be >= 0")
    if time < 1:
        return f"{base}?time={round(time * 100)}pct"
    return f"{base}?time={int(time)}s"
