"""YouTube Data API v3 metadata provider.

Thin async-compatible wrapper using google-api-python-client (sync)
wrapped in asyncio.to_thread(). Falls back to the Gemini key when no
YOUTUBE_API_KEY is configured.
"""

from __future__ import annotations

import asyncio
import logging
import re

from .config import AuditConfig
from .models.video import VideoMetadata, VideoReference

logger = logging.getLogger(__name__)

# Largest first; Shorts usually carry at least "high".
_THUMBNAIL_PREFERENCE = ("maxres", "standard", "high", "medium", "default")


def _parse_iso8601_duration(duration: str | None) -> int:
    """Parse ISO 8601 duration (PT4M13S) into total seconds."""
    match = re.match(r"PT(?:(\d+)H)?(?:(\d+)M)?(?:(\d+)S)?", duration or "")
    if not match:
        return 0
    hours = int(match.group(1) or 0)
    minutes = int(match.group(2) or 0)
    seconds = int(match.group(3) or 0)
    return hours * 3600 + minutes * 60 + seconds


def _best_thumbnail(thumbnails: dict) -> str:
    for key in _THUMBNAIL_PREFERENCE:
        url = (thumbnails.get(key) or {}).get("url")
        if url:
            return url
    return ""


class YouTubeProvider:
    """Metadata provider backed by ``videos().list``."""

    platform = "youtube"

    def __init__(self, config: AuditConfig):
        self._config = config
        self._service = None

    def _get_service(self):
        """Build the API service on first use."""
        if self._service is None:
            from googleapiclient.discovery import build

            api_key = self._config.youtube_api_key or self._config.gemini_api_key
            self._service = build(
                "youtube", "v3", developerKey=api_key, cache_discovery=False,
            )
        return self._service

    async def get_video_metadata(self, reference: VideoReference) -> VideoMetadata:
        """Fetch description, view count, duration and thumbnail for one video.

        Raises:
            ValueError: If the API returns no item or no usable thumbnail.
            googleapiclient.errors.HttpError: On non-2xx API responses.
        """

        def _fetch():
            svc = self._get_service()
            return svc.videos().list(
                part="snippet,contentDetails,statistics",
                id=reference.video_id,
            ).execute()

        resp = await asyncio.to_thread(_fetch)
        items = resp.get("items", [])
        if not items:
            raise ValueError(f"Video not found: {reference.video_id}")

        item = items[0]
        snippet = item.get("snippet", {})
        details = item.get("contentDetails", {})
        stats = item.get("statistics", {})

        thumbnail = _best_thumbnail(snippet.get("thumbnails", {}))
        if not thumbnail:
            raise ValueError(f"No thumbnail available for video {reference.video_id}")

        title = snippet.get("title", "")
        description = snippet.get("description", "")
        logger.debug("YouTube metadata for %s: %s", reference.video_id, title)
        return VideoMetadata(
            video_id=reference.video_id,
            platform="youtube",
            title=title,
            description="\n\n".join(part for part in (title, description) if part),
            play_count=int(stats.get("viewCount", 0)),
            duration_seconds=_parse_iso8601_duration(details.get("duration")),
            media_locator=thumbnail,
            audio_locator=f"https://www.youtube.com/watch?v={reference.video_id}",
        )
