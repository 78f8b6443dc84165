"""Metadata fetch stage: reference validation and provider dispatch."""

from __future__ import annotations

import asyncio
import logging
from typing import Protocol

from pydantic import ValidationError

from .config import AuditConfig
from .errors import InvalidReferenceError, MetadataUnavailableError
from .models.video import VideoMetadata, VideoReference
from .references import parse_reference

logger = logging.getLogger(__name__)


class MetadataProvider(Protocol):
    """Resolves one platform's references to normalized metadata."""

    platform: str

    async def get_video_metadata(self, reference: VideoReference) -> VideoMetadata: ...


class MetadataFetcher:
    """Validates references and fetches metadata from the matching provider.

    Every provider failure, timeout included, surfaces as
    :class:`MetadataUnavailableError`.
    """

    def __init__(self, providers: list[MetadataProvider], config: AuditConfig):
        self._providers = {p.platform: p for p in providers}
        self._config = config

    async def fetch(self, reference: VideoReference) -> VideoMetadata:
        if not reference.video_id:
            raise InvalidReferenceError(f"Reference has no video ID: {reference.url}")
        provider = self._providers.get(reference.platform)
        if provider is None:
            raise InvalidReferenceError(f"No metadata provider for platform '{reference.platform}'")

        try:
            return await asyncio.wait_for(
                provider.get_video_metadata(reference),
                timeout=self._config.metadata_timeout_seconds,
            )
        except asyncio.TimeoutError as exc:
            raise MetadataUnavailableError(
                f"Metadata request for {reference.video_id} timed out after "
                f"{self._config.metadata_timeout_seconds:.0f}s"
            ) from exc
        except (ValidationError, ValueError, TypeError, KeyError) as exc:
            raise MetadataUnavailableError(
                f"Malformed metadata for {reference.video_id}: {exc}"
            ) from exc
        except Exception as exc:
            raise MetadataUnavailableError(
                f"Metadata provider '{reference.platform}' failed for {reference.video_id}: {exc}"
            ) from exc

    async def fetch_url(self, url: str) -> VideoMetadata:
        """Parse *url* and fetch its metadata; parsing fails before any network call."""
        return await self.fetch(parse_reference(url))
