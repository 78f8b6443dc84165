"""Audio transcription stage via Gemini audio understanding.

YouTube watch URLs are handed to Gemini as file data; any other locator is
downloaded (size-capped) and sent inline with its content type.
"""

from __future__ import annotations

import asyncio
import logging

import httpx
from google.genai import types

from .client import GeminiClient
from .config import AuditConfig
from .download import fetch_bytes
from .errors import TranscriptionFailed
from .models.video import TranscriptResult
from .prompts.audit import TRANSCRIBE_PROMPT
from .references import _is_youtu_be_host, _is_youtube_host

logger = logging.getLogger(__name__)

STAGE = "transcription"

_DEFAULT_AUDIO_MIME = "audio/mpeg"


def _is_youtube_locator(locator: str) -> bool:
    host = httpx.URL(locator).host.lower()
    return _is_youtube_host(host) or _is_youtu_be_host(host)


class AudioTranscriber:
    """Turns an audio locator into transcript text."""

    def __init__(self, gemini: GeminiClient, http_client: httpx.AsyncClient, config: AuditConfig):
        self._gemini = gemini
        self._http = http_client
        self._config = config

    async def _media_part(self, locator: str) -> types.Part:
        if _is_youtube_locator(locator):
            return types.Part(file_data=types.FileData(file_uri=locator))
        data, content_type = await fetch_bytes(
            self._http, locator, max_bytes=self._config.max_audio_bytes,
        )
        mime = content_type if content_type.startswith(("audio/", "video/")) else _DEFAULT_AUDIO_MIME
        return types.Part.from_bytes(data=data, mime_type=mime)

    async def _transcribe(self, locator: str) -> str:
        part = await self._media_part(locator)
        contents = types.Content(role="user", parts=[part, types.Part(text=TRANSCRIBE_PROMPT)])
        return await self._gemini.generate(
            contents, model=self._config.transcription_model, temperature=0.0,
        )

    async def transcribe(self, audio_locator: str | None) -> TranscriptResult:
        """Transcribe the audio at *audio_locator*.

        An absent locator is not an error: the result is simply unavailable.

        Raises:
            TranscriptionFailed: Download, timeout or transcription-service failure.
        """
        if not audio_locator:
            return TranscriptResult(text="", available=False)
        try:
            text = await asyncio.wait_for(
                self._transcribe(audio_locator),
                timeout=self._config.transcription_timeout_seconds,
            )
        except asyncio.TimeoutError as exc:
            raise TranscriptionFailed(
                f"Transcription timed out after {self._config.transcription_timeout_seconds:.0f}s",
                stage=STAGE,
            ) from exc
        except Exception as exc:
            raise TranscriptionFailed(f"Transcription failed: {exc}", stage=STAGE) from exc
        return TranscriptResult(text=text.strip(), available=True)
