"""Semantic scoring stage: checklist judgement and recommendations via Gemini."""

from __future__ import annotations

import asyncio
import logging

from pydantic import ValidationError

from .client import GeminiClient
from .config import AuditConfig
from .errors import ScoringMalformedResponseError, ScoringUnavailableError
from .models.audit import ScoringVerdict
from .prompts.audit import NO_TRANSCRIPT, SCORING_PROMPT, SCORING_SYSTEM, UNKNOWN_DURATION

logger = logging.getLogger(__name__)

STAGE = "scoring"

_MIN_LENGTH_SECONDS = 10
_MAX_LENGTH_SECONDS = 25


def build_scoring_prompt(description: str, transcript: str, duration_seconds: int | None) -> str:
    """Combine caption, transcript and known duration into one evaluation request."""
    return SCORING_PROMPT.format(
        description=description.strip() or "(no description)",
        transcript=transcript.strip() or NO_TRANSCRIPT,
        duration=f"{duration_seconds} seconds" if duration_seconds else UNKNOWN_DURATION,
    )


def parse_verdict(raw: str) -> ScoringVerdict:
    """Decode the model reply against the verdict schema.

    Tolerates a Markdown code fence around the JSON body.

    Raises:
        ScoringMalformedResponseError: If the reply is not a valid verdict.
    """
    text = (raw or "").strip()
    if text.startswith("```"):
        text = text.strip("`")
        if text.lower().startswith("json"):
            text = text[4:]
    try:
        verdict = ScoringVerdict.model_validate_json(text)
    except ValidationError as exc:
        raise ScoringMalformedResponseError(
            f"Scoring response does not match the checklist schema: {exc.error_count()} error(s)",
            stage=STAGE,
        ) from exc
    cleaned = [r.strip() for r in verdict.recommendations if r and r.strip()]
    return verdict.model_copy(update={"recommendations": cleaned})


class SemanticScorer:
    """Judges the five text-derived checklist keys for one video."""

    def __init__(self, gemini: GeminiClient, config: AuditConfig):
        self._gemini = gemini
        self._config = config

    async def score(
        self,
        description: str,
        transcript: str,
        *,
        duration_seconds: int | None = None,
    ) -> ScoringVerdict:
        """Evaluate description and transcript in a single model call.

        When *duration_seconds* is known (> 0) it decides ``length10to25Sec``
        and the model's own judgement of length is discarded.

        Raises:
            ScoringUnavailableError: The model could not be reached in time.
            ScoringMalformedResponseError: The reply was not a valid verdict.
        """
        prompt = build_scoring_prompt(description, transcript, duration_seconds)
        try:
            raw = await asyncio.wait_for(
                self._gemini.generate(
                    prompt,
                    model=self._config.scoring_model,
                    system_instruction=SCORING_SYSTEM,
                    response_schema=ScoringVerdict.model_json_schema(),
                ),
                timeout=self._config.scoring_timeout_seconds,
            )
        except asyncio.TimeoutError as exc:
            raise ScoringUnavailableError(
                f"Scoring model timed out after {self._config.scoring_timeout_seconds:.0f}s"
            ) from exc
        except Exception as exc:
            raise ScoringUnavailableError(f"Scoring model unreachable: {exc}") from exc

        verdict = parse_verdict(raw)
        if duration_seconds:
            fits = _MIN_LENGTH_SECONDS <= duration_seconds <= _MAX_LENGTH_SECONDS
            verdict = verdict.model_copy(update={"length_10_to_25_sec": fits})
        return verdict
