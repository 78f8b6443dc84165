"""TikTok metadata provider over a tikwm-compatible JSON API.

The endpoint takes the original share URL (``?url=...``) and answers with
``{"code": 0, "msg": "success", "data": {...}}``. When ``TIKTOK_API_KEY``
is set the RapidAPI headers are attached, so the same provider works with
RapidAPI-hosted mirrors of the API.
"""

from __future__ import annotations

import logging

import httpx

from .config import AuditConfig
from .models.video import VideoMetadata, VideoReference

logger = logging.getLogger(__name__)


class TikTokProvider:
    """Metadata provider for tiktok.com references."""

    platform = "tiktok"

    def __init__(self, config: AuditConfig, http_client: httpx.AsyncClient):
        self._config = config
        self._http = http_client

    def _headers(self) -> dict[str, str]:
        if not self._config.tiktok_api_key:
            return {}
        headers = {"X-RapidAPI-Key": self._config.tiktok_api_key}
        if self._config.tiktok_api_host:
            headers["X-RapidAPI-Host"] = self._config.tiktok_api_host
        return headers

    async def get_video_metadata(self, reference: VideoReference) -> VideoMetadata:
        """Fetch play count, caption, duration and media URLs.

        Raises:
            httpx.HTTPError: On transport failures and non-2xx responses.
            ValueError: If the API reports an error or the payload is malformed.
        """
        resp = await self._http.get(
            self._config.tiktok_api_url,
            params={"url": reference.url, "hd": 1},
            headers=self._headers(),
        )
        resp.raise_for_status()
        payload = resp.json()
        if not isinstance(payload, dict):
            raise ValueError("TikTok API returned a non-object payload")
        if payload.get("code", 0) != 0:
            raise ValueError(f"TikTok API error {payload.get('code')}: {payload.get('msg', '')}")

        data = payload.get("data")
        if not isinstance(data, dict):
            raise ValueError("TikTok API payload has no 'data' object")

        media = data.get("origin_cover") or data.get("cover") or data.get("play")
        if not media:
            raise ValueError(f"No frame source in TikTok payload for {reference.video_id}")

        logger.debug("TikTok metadata for %s: %s plays", reference.video_id, data.get("play_count"))
        return VideoMetadata(
            video_id=str(data.get("id") or reference.video_id),
            platform="tiktok",
            title=data.get("title", "") or "",
            description=data.get("title", "") or "",
            play_count=int(data.get("play_count") or 0),
            duration_seconds=int(data.get("duration") or 0),
            media_locator=media,
            audio_locator=data.get("music") or None,
        )
