"""Gemini client wrapper with thinking-level support and structured output."""

from __future__ import annotations

import logging
from typing import Any

from google import genai
from google.genai import types

from .config import AuditConfig
from .retry import with_retry

logger = logging.getLogger(__name__)


class GeminiClient:
    """One ``genai.Client`` bound to an explicit :class:`AuditConfig`.

    Stateless per call, so a single instance is shared by concurrent runs.
    """

    def __init__(self, config: AuditConfig, client: genai.Client | None = None):
        self._config = config
        self._client = client

    @property
    def client(self) -> genai.Client:
        """Return the underlying SDK client, creating it on first use."""
        if self._client is None:
            key = self._config.gemini_api_key
            if not key:
                raise ValueError("No Gemini API key, set GEMINI_API_KEY")
            self._client = genai.Client(api_key=key)
            logger.info("Created Gemini client")
        return self._client

    async def generate(
        self,
        contents: Any,
        *,
        model: str | None = None,
        response_schema: dict | None = None,
        system_instruction: str | None = None,
        temperature: float | None = None,
    ) -> str:
        """Generate text via Gemini, retrying transient failures.

        Args:
            contents: Prompt contents (text or multimodal parts).
            model: Override model ID (defaults to the scoring model).
            response_schema: JSON schema dict to constrain output format.
            system_instruction: System-level instruction prepended to the prompt.
            temperature: Override temperature.

        Returns:
            The model's text response with thinking parts stripped.
        """
        cfg = self._config
        config = types.GenerateContentConfig(
            thinking_config=types.ThinkingConfig(thinking_level=cfg.thinking_level),
            temperature=temperature if temperature is not None else cfg.temperature,
        )
        if system_instruction:
            config.system_instruction = system_instruction
        if response_schema:
            config.response_mime_type = "application/json"
            config.response_json_schema = response_schema

        client = self.client
        response = await with_retry(
            lambda: client.aio.models.generate_content(
                model=model or cfg.scoring_model,
                contents=contents,
                config=config,
            ),
            cfg,
        )

        # Only user-visible text; thought parts are dropped. A blocked or
        # empty candidate has no content and yields "".
        content = response.candidates[0].content if response.candidates else None
        parts = (content.parts or []) if content is not None else []
        text_parts = [p.text for p in parts if p.text and not getattr(p, "thought", False)]
        return "\n".join(text_parts) if text_parts else (response.text or "")

    async def aclose(self) -> None:
        """Close the SDK client if it was created."""
        if self._client is None:
            return
        try:
            await self._client.aio.aclose()
        except Exception:
            logger.debug("Gemini async client close failed", exc_info=True)
        self._client = None
