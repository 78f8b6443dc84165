"""Audit output models: checklist, scorer verdict, final result and run record.

``ScoringVerdict`` is the structured output schema sent to Gemini.
``AnalysisResult`` is the only shape returned to callers; it serialises with
camelCase keys (``engagementScore``, ``hookInFirst3Sec`` ...).
"""

from __future__ import annotations

import uuid
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field

from ..errors import AuditError


class Checklist(BaseModel):
    """The six best-practice criteria. Every key is always present."""

    model_config = ConfigDict(populate_by_name=True)

    hook_in_first_3_sec: bool = Field(default=False, alias="hookInFirst3Sec")
    clear_cta: bool = Field(default=False, alias="clearCTA")
    length_10_to_25_sec: bool = Field(default=False, alias="length10to25Sec")
    has_voice_over: bool = Field(default=False, alias="hasVoiceOver")
    has_subtitles: bool = Field(default=False, alias="hasSubtitles")
    has_real_person: bool = Field(default=False, alias="hasRealPerson")


class ScoringVerdict(BaseModel):
    """Structured output schema for the semantic scorer.

    Covers the five text-derived checklist keys. ``hasRealPerson`` is
    absent; it comes from frame inspection only.
    """

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    hook_in_first_3_sec: bool = Field(
        alias="hookInFirst3Sec",
        description="The opening three seconds contain a hook that stops the scroll",
    )
    clear_cta: bool = Field(
        alias="clearCTA",
        description="The video asks the viewer to do something specific (follow, click link, comment)",
    )
    length_10_to_25_sec: bool = Field(
        alias="length10to25Sec",
        description="The video runs between 10 and 25 seconds",
    )
    has_voice_over: bool = Field(
        alias="hasVoiceOver",
        description="Someone speaks over the footage",
    )
    has_subtitles: bool = Field(
        alias="hasSubtitles",
        description="On-screen captions or subtitles are present",
    )
    recommendations: list[str] = Field(
        default_factory=list,
        description="Concrete, actionable improvements ordered by impact",
    )

    @classmethod
    def degraded(cls) -> ScoringVerdict:
        """All-false verdict used when the model reply cannot be parsed."""
        return cls(
            hook_in_first_3_sec=False,
            clear_cta=False,
            length_10_to_25_sec=False,
            has_voice_over=False,
            has_subtitles=False,
            recommendations=[],
        )


class AnalysisResult(BaseModel):
    """Final audit result, the sole externally visible output."""

    model_config = ConfigDict(populate_by_name=True)

    engagement_score: int = Field(alias="engagementScore", ge=0, le=100)
    checklist: Checklist
    recommendations: list[str] = Field(default_factory=list)

    def to_response(self) -> dict:
        """Serialise with the public camelCase keys."""
        return self.model_dump(mode="json", by_alias=True)


class RunState(str, Enum):
    """Lifecycle of one audit run."""

    PENDING = "pending"
    FETCHING_METADATA = "fetching_metadata"
    EXTRACTING_SIGNALS = "extracting_signals"
    SCORING = "scoring"
    MERGING = "merging"
    DONE = "done"
    FAILED = "failed"


class StageSignal(BaseModel):
    """A recorded non-fatal stage failure."""

    stage: str
    kind: str
    detail: str = ""


class AuditRun(BaseModel):
    """Per-request record of state transitions, degradations and outcome."""

    model_config = ConfigDict(arbitrary_types_allowed=True)

    run_id: str = Field(default_factory=lambda: uuid.uuid4().hex[:12])
    url: str
    state: RunState = RunState.PENDING
    history: list[RunState] = Field(default_factory=lambda: [RunState.PENDING])
    signals: list[StageSignal] = Field(default_factory=list)
    result: AnalysisResult | None = None
    error: AuditError | None = None

    @property
    def failed(self) -> bool:
        return self.state is RunState.FAILED
