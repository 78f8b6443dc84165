"""Extraction-stage models: references, metadata, transcript and visual results.

These are produced by the pipeline's leaf stages (metadata fetch, frame
inspection, transcription) and consumed by the scorer and orchestrator.
They are never sent to Gemini as response schemas.
"""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

Platform = Literal["youtube", "tiktok"]


class VideoReference(BaseModel):
    """A parsed user URL with its platform-specific video ID."""

    model_config = ConfigDict(frozen=True)

    platform: Platform
    video_id: str = Field(min_length=1)
    url: str


class VideoMetadata(BaseModel):
    """Normalized metadata for one video, regardless of platform.

    ``duration_seconds`` is 0 when the provider does not report a duration.
    ``audio_locator`` is None when the video carries no addressable audio.
    """

    model_config = ConfigDict(frozen=True)

    video_id: str
    platform: Platform
    title: str = ""
    description: str = ""
    play_count: int = Field(default=0, ge=0)
    duration_seconds: int = Field(default=0, ge=0)
    media_locator: str
    audio_locator: str | None = None


class TranscriptResult(BaseModel):
    """Transcript text; ``available=False`` means no audio evidence at all."""

    text: str = ""
    available: bool = False


class VisualResult(BaseModel):
    """Outcome of face detection on one representative frame."""

    person_detected: bool = False
    confidence: float | None = Field(default=None, ge=0.0, le=1.0)
    face_count: int = Field(default=0, ge=0)
