"""Size-capped in-memory downloads for frame and audio locators."""

from __future__ import annotations

import logging

import httpx

logger = logging.getLogger(__name__)


async def fetch_bytes(
    http: httpx.AsyncClient, url: str, *, max_bytes: int,
) -> tuple[bytes, str]:
    """Stream *url* into memory, refusing bodies larger than *max_bytes*.

    Args:
        http: Shared async client (timeouts are the caller's concern).
        url: Locator to download.
        max_bytes: Maximum response body size in bytes.

    Returns:
        ``(body, content_type)``; content type without parameters, may be "".

    Raises:
        httpx.HTTPError: On transport failures and non-2xx responses.
        ValueError: If the body is empty or exceeds *max_bytes*.
    """
    async with http.stream("GET", url) as resp:
        resp.raise_for_status()
        content_type = resp.headers.get("content-type", "").split(";", 1)[0].strip()
        chunks: list[bytes] = []
        accumulated = 0
        async for chunk in resp.aiter_bytes():
            accumulated += len(chunk)
            if accumulated > max_bytes:
                raise ValueError(f"Response exceeds size limit ({max_bytes} bytes)")
            chunks.append(chunk)

    if not accumulated:
        raise ValueError(f"Empty response body from {url}")
    logger.debug("Downloaded %s (%d bytes, %s)", url, accumulated, content_type or "unknown type")
    return b"".join(chunks), content_type
