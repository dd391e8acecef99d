from __future__ import annotations

import logging
from typing import Any

import httpx

from coursevideo.core.errors import ExternalServiceError
from coursevideo.core.settings import Settings
from coursevideo.stream.types import RemoteVideoStatus, parse_remote_state

logger = logging.getLogger(__name__)


def _parse_progress(raw: Any) -> int:
    # The provider reports pctComplete as a string ("42.500000").
    try:
        value = float(raw)
    except (TypeError, ValueError):
        return 0
    return max(0, min(100, int(value)))


def _parse_duration(raw: Any) -> int | None:
    try:
        value = float(raw)
    except (TypeError, ValueError):
        return None
    # -1 means "not known yet".
    if value < 0:
        return None
    return int(round(value))


def parse_video_payload(result: dict[str, Any]) -> RemoteVideoStatus:
    status = result.get("status") or {}
    playback = result.get("playback") or {}
    meta = result.get("meta") or {}
    return RemoteVideoStatus(
        state=parse_remote_state(status.get("state")),
        progress_percent=_parse_progress(status.get("pctComplete")),
        duration_seconds=_parse_duration(result.get("duration")),
        playback_hls=(playback.get("hls") or None),
        playback_dash=(playback.get("dash") or None),
        thumbnail_url=(result.get("thumbnail") or None),
        error_code=(status.get("errorReasonCode") or None),
        error_text=(status.get("errorReasonText") or None),
        ready_to_stream=bool(result.get("readyToStream")),
        meta=dict(meta) if isinstance(meta, dict) else {},
    )


def _envelope_error(data: dict[str, Any]) -> str:
    errors = data.get("errors") or []
    first = errors[0] if errors else {}
    return f"Stream API error {first.get('code', 0)}: {first.get('message', 'Unknown error')}"


class StreamClient:
    """
    Client for a Cloudflare Stream compatible video API.

    Every request carries a bounded timeout; timeouts, transport failures,
    non-2xx responses and ``success: false`` envelopes all surface as
    ExternalServiceError so callers can treat them as one retryable class.
    """

    def __init__(
        self,
        *,
        base_url: str,
        account_id: str,
        api_token: str,
        timeout_seconds: float = 15.0,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        if not account_id or not api_token:
            raise ValueError("Stream account id and API token are required")
        self._base_url = base_url.rstrip("/")
        self._account_id = account_id
        self._api_token = api_token
        self._timeout = timeout_seconds
        self._client = client

    @classmethod
    def from_settings(cls, settings: Settings, *, client: httpx.AsyncClient | None = None) -> "StreamClient":
        return cls(
            base_url=settings.stream_api_base_url,
            account_id=(settings.stream_account_id or "").strip(),
            api_token=(settings.stream_api_token or "").strip(),
            timeout_seconds=float(settings.stream_request_timeout_seconds),
            client=client,
        )

    def _video_url(self, external_id: str) -> str:
        vid = (external_id or "").strip()
        if not vid:
            raise ValueError("external_id is required")
        return f"{self._base_url}/accounts/{self._account_id}/stream/{vid}"

    async def _request(self, method: str, url: str) -> dict[str, Any]:
        headers = {"Authorization": f"Bearer {self._api_token}"}
        try:
            if self._client is not None:
                res = await self._client.request(method, url, headers=headers, timeout=self._timeout)
            else:
                async with httpx.AsyncClient(timeout=self._timeout) as client:
                    res = await client.request(method, url, headers=headers)
        except httpx.TimeoutException as e:
            raise ExternalServiceError(f"Stream API timed out after {self._timeout}s", details=str(e)) from e
        except httpx.HTTPError as e:
            raise ExternalServiceError("Stream API request failed", details=str(e)) from e

        try:
            data = res.json()
        except ValueError:
            data = {}

        if res.status_code >= 400:
            message = _envelope_error(data) if data else f"Stream API returned HTTP {res.status_code}"
            raise ExternalServiceError(message, details={"status_code": res.status_code})
        # DELETE answers 200 with an empty body.
        if data and not data.get("success", False):
            raise ExternalServiceError(_envelope_error(data), details={"status_code": res.status_code})
        return data

    async def get_status(self, external_id: str) -> RemoteVideoStatus:
        data = await self._request("GET", self._video_url(external_id))
        result = data.get("result")
        if not isinstance(result, dict):
            raise ExternalServiceError(f"Stream API returned no result for {external_id}")
        return parse_video_payload(result)

    async def delete(self, external_id: str) -> None:
        await self._request("DELETE", self._video_url(external_id))
        logger.info(f"Deleted video from stream provider: {external_id}")

    async def aclose(self) -> None:
        if self._client is not None:
            await self._client.aclose()
