"""Video URL parsing: YouTube and TikTok references."""

from __future__ import annotations

import re
from urllib.parse import ParseResult, parse_qs, urlparse

from .errors import InvalidReferenceError
from .models.video import VideoReference

_TIKTOK_VIDEO_PATH = re.compile(r"/(?:@[^/]+/)?(?:video|v|photo)/(\d+)")


def _host(parsed: ParseResult) -> str:
    return parsed.netloc.lower().split(":", 1)[0]


def _is_youtube_host(host: str) -> bool:
    """Check if host is a youtube.com domain (including subdomains like www.youtube.com)."""
    return host == "youtube.com" or host.endswith(".youtube.com")


def _is_youtu_be_host(host: str) -> bool:
    """Check if host is the youtu.be short-link domain."""
    return host in {"youtu.be", "www.youtu.be"}


def _is_tiktok_host(host: str) -> bool:
    return host == "tiktok.com" or host.endswith(".tiktok.com")


def _youtube_video_id(parsed: ParseResult) -> str | None:
    """Extract the ID from youtu.be/<id>, watch?v=<id>, or /shorts|embed|live/<id>."""
    host = _host(parsed)
    if _is_youtu_be_host(host):
        return parsed.path.strip("/").split("/", 1)[0] or None

    video_id = parse_qs(parsed.query).get("v", [None])[0]
    if video_id:
        return video_id

    parts = [p for p in parsed.path.split("/") if p]
    if len(parts) >= 2 and parts[0] in {"shorts", "embed", "live"}:
        return parts[1]
    return None


def _tiktok_video_id(parsed: ParseResult) -> str | None:
    """Extract the numeric ID from /@user/video/<id>, or the code of a vm./vt. short link."""
    match = _TIKTOK_VIDEO_PATH.search(parsed.path)
    if match:
        return match.group(1)
    host = _host(parsed)
    if host.split(".", 1)[0] in {"vm", "vt"}:
        return parsed.path.strip("/").split("/", 1)[0] or None
    return None


def parse_reference(url: str) -> VideoReference:
    """Parse a user-supplied URL into a :class:`VideoReference`.

    Strips backslash escapes, tolerates a missing scheme, and trims trailing
    query noise from the ID.

    Raises:
        InvalidReferenceError: If the URL is empty, not a supported platform,
            or carries no extractable video ID.
    """
    raw = (url or "").replace("\\", "").strip()
    if not raw:
        raise InvalidReferenceError("Video URL is empty")
    if "://" not in raw:
        raw = f"https://{raw}"

    parsed = urlparse(raw)
    host = _host(parsed)

    if _is_youtube_host(host) or _is_youtu_be_host(host):
        platform = "youtube"
        video_id = _youtube_video_id(parsed)
    elif _is_tiktok_host(host):
        platform = "tiktok"
        video_id = _tiktok_video_id(parsed)
    else:
        raise InvalidReferenceError(f"Unsupported video host in URL: {url}")

    video_id = (video_id or "").split("&")[0].split("?")[0].strip()
    if not video_id:
        raise InvalidReferenceError(f"Could not extract video ID from URL: {url}")

    if platform == "youtube":
        canonical = f"https://www.youtube.com/watch?v={video_id}"
    else:
        canonical = raw.split("#", 1)[0]
    return VideoReference(platform=platform, video_id=video_id, url=canonical)
