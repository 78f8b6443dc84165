"""Shared test fixtures for video-audit-mcp."""

from __future__ import annotations

from typing import Any
from unittest.mock import AsyncMock, MagicMock

import pytest

from video_audit_mcp.config import AuditConfig
from video_audit_mcp.models.video import TranscriptResult, VideoMetadata, VisualResult
from video_audit_mcp.models.audit import ScoringVerdict


def unwrap_tool(tool: Any) -> Any:
    """Extract the raw coroutine from a FastMCP FunctionTool, if wrapped.

    FastMCP 2.x wraps @server.tool functions in FunctionTool (not callable).
    FastMCP 3.x preserves the original function. This helper works with both.
    """
    return getattr(tool, "fn", tool)


@pytest.fixture(autouse=True)
def _set_dummy_api_key(monkeypatch):
    """Ensure tests never hit real Gemini API."""
    monkeypatch.setenv("GEMINI_API_KEY", "test-key-not-real")


@pytest.fixture(autouse=True)
def _disable_tracing(monkeypatch):
    """Keep MLflow out of every test."""
    monkeypatch.setenv("AUDIT_TRACING_ENABLED", "false")
    monkeypatch.delenv("MLFLOW_TRACKING_URI", raising=False)


@pytest.fixture()
def clean_config():
    """Reset the config singleton between tests."""
    import video_audit_mcp.config as cfg_mod

    cfg_mod._config = None
    yield
    cfg_mod._config = None


@pytest.fixture()
def config() -> AuditConfig:
    """Fast config: tiny timeouts and a single retry attempt."""
    return AuditConfig(
        gemini_api_key="test-key-not-real",
        metadata_timeout_seconds=1.0,
        frame_timeout_seconds=1.0,
        transcription_timeout_seconds=1.0,
        scoring_timeout_seconds=1.0,
        retry_max_attempts=1,
        min_face_size=20,
    )


def make_metadata(**overrides) -> VideoMetadata:
    data = {
        "video_id": "7311111111111111111",
        "platform": "tiktok",
        "title": "Morning routine",
        "description": "3 habits that changed my mornings #routine",
        "play_count": 6000,
        "duration_seconds": 18,
        "media_locator": "https://cdn.example.com/cover.jpg",
        "audio_locator": "https://cdn.example.com/music.mp3",
    }
    data.update(overrides)
    return VideoMetadata(**data)


def make_verdict(**overrides) -> ScoringVerdict:
    data = {
        "hook_in_first_3_sec": True,
        "clear_cta": True,
        "length_10_to_25_sec": True,
        "has_voice_over": True,
        "has_subtitles": False,
        "recommendations": ["Add burned-in captions"],
    }
    data.update(overrides)
    return ScoringVerdict(**data)


@pytest.fixture()
def stages():
    """AsyncMock doubles for every pipeline collaborator, preloaded with a happy path."""
    fetcher = MagicMock()
    fetcher.fetch = AsyncMock(return_value=make_metadata())
    visual = MagicMock()
    visual.detect_person = AsyncMock(
        return_value=VisualResult(person_detected=True, confidence=1.0, face_count=1)
    )
    transcriber = MagicMock()
    transcriber.transcribe = AsyncMock(
        return_value=TranscriptResult(text="check link in bio now", available=True)
    )
    scorer = MagicMock()
    scorer.score = AsyncMock(return_value=make_verdict())
    return {
        "fetcher": fetcher,
        "visual": visual,
        "transcriber": transcriber,
        "scorer": scorer,
    }


@pytest.fixture()
def pipeline(stages, config):
    from video_audit_mcp.pipeline import AuditPipeline

    return AuditPipeline(config=config, **stages)
