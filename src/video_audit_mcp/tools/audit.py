"""Video audit tool: engagement score, best-practice checklist, recommendations."""

from __future__ import annotations

import logging

import httpx
from fastmcp import FastMCP
from mcp.types import ToolAnnotations

from ..client import GeminiClient
from ..config import get_config
from ..errors import make_tool_error
from ..pipeline import AuditPipeline, build_pipeline
from ..tracing import span_attributes, trace
from ..types import VideoUrl

logger = logging.getLogger(__name__)
audit_server = FastMCP("audit")


class AuditRuntime:
    """Process-wide pipeline with its shared HTTP and Gemini clients."""

    _pipeline: AuditPipeline | None = None
    _http: httpx.AsyncClient | None = None
    _gemini: GeminiClient | None = None

    @classmethod
    def get(cls) -> AuditPipeline:
        """Return (or build) the shared pipeline."""
        if cls._pipeline is None:
            cfg = get_config()
            longest = max(
                cfg.metadata_timeout_seconds,
                cfg.frame_timeout_seconds,
                cfg.transcription_timeout_seconds,
            )
            cls._http = httpx.AsyncClient(follow_redirects=True, timeout=longest)
            cls._gemini = GeminiClient(cfg)
            cls._pipeline = build_pipeline(cfg, http_client=cls._http, gemini=cls._gemini)
        return cls._pipeline

    @classmethod
    async def aclose(cls) -> None:
        """Close shared clients and drop the pipeline."""
        if cls._http is not None:
            await cls._http.aclose()
        if cls._gemini is not None:
            await cls._gemini.aclose()
        cls._pipeline = None
        cls._http = None
        cls._gemini = None


@audit_server.tool(
    annotations=ToolAnnotations(
        readOnlyHint=True,
        destructiveHint=False,
        idempotentHint=False,
        openWorldHint=True,
    )
)
@trace(name="video_audit", span_type="TOOL")
async def video_audit(url: VideoUrl) -> dict:
    """Audit a TikTok or YouTube Shorts video against short-form best practices.

    Fetches metadata, checks the cover frame for a real person, transcribes
    the audio and asks Gemini to judge hook, CTA, length, voice-over and
    subtitles. Visual and transcription failures degrade to ``false`` /
    empty transcript rather than failing the call.

    Args:
        url: Video URL.

    Returns:
        Dict with ``engagementScore`` (0-100), ``checklist`` (six booleans)
        and ``recommendations``, or a structured error via make_tool_error().
    """
    try:
        run = await AuditRuntime.get().execute(url)
    except Exception as exc:
        logger.exception("video_audit crashed for %s", url)
        return make_tool_error(exc)

    span_attributes(run_id=run.run_id, state=run.state.value, degraded=len(run.signals))
    if run.error is not None or run.result is None:
        return make_tool_error(run.error or RuntimeError("Audit produced no result"))
    return run.result.to_response()
