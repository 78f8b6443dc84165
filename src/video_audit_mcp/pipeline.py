"""Audit pipeline: orchestrates the extraction stages and merges their results.

Dependency graph: metadata -> (visual, audio in parallel) -> scoring -> merge.
Metadata and scoring-transport failures are fatal; visual, transcription and
malformed-scoring failures degrade to safe defaults and are recorded on the
run as :class:`StageSignal` entries.
"""

from __future__ import annotations

import asyncio
import logging

import httpx

from .client import GeminiClient
from .config import AuditConfig
from .errors import (
    AuditError,
    ScoringMalformedResponseError,
    StageDegraded,
)
from .metadata import MetadataFetcher
from .models.audit import (
    AnalysisResult,
    AuditRun,
    Checklist,
    RunState,
    ScoringVerdict,
    StageSignal,
)
from .models.video import TranscriptResult, VideoMetadata, VisualResult
from .references import parse_reference
from .scoring import SemanticScorer
from .tiktok import TikTokProvider
from .transcribe import AudioTranscriber
from .vision import FaceDetectorPool, HaarFaceDetector, VisualSignalExtractor
from .youtube import YouTubeProvider

logger = logging.getLogger(__name__)

# FAILED is only reachable from these states.
_FATAL_STATES = frozenset({RunState.FETCHING_METADATA, RunState.SCORING})


def engagement_score(play_count: int, bands: list[tuple[int, int]]) -> int:
    """Map a play count onto the configured threshold bands.

    ``bands`` is a list of ``(min_plays, score)`` pairs sorted by
    ``min_plays``. The score of the highest band whose threshold is reached
    wins, so the result is monotonic non-decreasing in *play_count*.
    """
    score = 0
    for min_plays, band_score in bands:
        if play_count >= min_plays:
            score = band_score
        else:
            break
    return max(0, min(100, score))


def merge_result(
    metadata: VideoMetadata,
    visual: VisualResult,
    verdict: ScoringVerdict,
    bands: list[tuple[int, int]],
) -> AnalysisResult:
    """Combine stage outputs; ``hasRealPerson`` always comes from *visual*."""
    checklist = Checklist(
        hook_in_first_3_sec=verdict.hook_in_first_3_sec,
        clear_cta=verdict.clear_cta,
        length_10_to_25_sec=verdict.length_10_to_25_sec,
        has_voice_over=verdict.has_voice_over,
        has_subtitles=verdict.has_subtitles,
        has_real_person=visual.person_detected,
    )
    return AnalysisResult(
        engagement_score=engagement_score(metadata.play_count, bands),
        checklist=checklist,
        recommendations=list(verdict.recommendations),
    )


class AuditPipeline:
    """Runs one audit per call; holds only stateless or pooled collaborators."""

    def __init__(
        self,
        *,
        fetcher: MetadataFetcher,
        visual: VisualSignalExtractor,
        transcriber: AudioTranscriber,
        scorer: SemanticScorer,
        config: AuditConfig,
    ):
        self._fetcher = fetcher
        self._visual = visual
        self._transcriber = transcriber
        self._scorer = scorer
        self._config = config

    # ── State bookkeeping ───────────────────────────────────────────────────

    @staticmethod
    def _advance(run: AuditRun, state: RunState) -> None:
        logger.debug("[%s] %s -> %s", run.run_id, run.state.value, state.value)
        run.state = state
        run.history.append(state)

    @staticmethod
    def _fail(run: AuditRun, error: AuditError) -> AuditRun:
        if run.state not in _FATAL_STATES:
            raise RuntimeError(f"Run cannot fail from state {run.state.value}") from error
        logger.warning(
            "[%s] audit failed during %s: %s (%s)",
            run.run_id, run.state.value, error, error.category.value,
        )
        run.error = error
        run.result = None
        run.state = RunState.FAILED
        run.history.append(RunState.FAILED)
        return run

    @staticmethod
    def _degrade(run: AuditRun, exc: StageDegraded) -> None:
        kind = "ScoringDegraded" if isinstance(exc, ScoringMalformedResponseError) else exc.kind
        signal = StageSignal(stage=exc.stage, kind=kind, detail=str(exc))
        run.signals.append(signal)
        logger.warning("[%s] %s degraded (%s): %s", run.run_id, exc.stage, signal.kind, exc)

    # ── Stages ──────────────────────────────────────────────────────────────

    async def _visual_stage(self, run: AuditRun, metadata: VideoMetadata) -> VisualResult:
        try:
            return await self._visual.detect_person(metadata.media_locator)
        except StageDegraded as exc:
            self._degrade(run, exc)
            return VisualResult(person_detected=False, confidence=None)

    async def _audio_stage(self, run: AuditRun, metadata: VideoMetadata) -> TranscriptResult:
        try:
            return await self._transcriber.transcribe(metadata.audio_locator)
        except StageDegraded as exc:
            self._degrade(run, exc)
            return TranscriptResult(text="", available=False)

    async def _scoring_stage(
        self, run: AuditRun, metadata: VideoMetadata, transcript: TranscriptResult,
    ) -> ScoringVerdict:
        try:
            return await self._scorer.score(
                metadata.description,
                transcript.text if transcript.available else "",
                duration_seconds=metadata.duration_seconds or None,
            )
        except ScoringMalformedResponseError as exc:
            self._degrade(run, exc)
            return ScoringVerdict.degraded()

    # ── Entry points ────────────────────────────────────────────────────────

    async def execute(self, url: str) -> AuditRun:
        """Run the full audit for *url* and return the run record.

        Fatal errors end the run in ``FAILED`` with ``result=None``; they are
        recorded, not raised. Cancellation propagates and cancels in-flight
        stages.
        """
        run = AuditRun(url=url)
        logger.info("[%s] audit started for %s", run.run_id, url)

        self._advance(run, RunState.FETCHING_METADATA)
        try:
            metadata = await self._fetcher.fetch(parse_reference(url))
        except AuditError as exc:
            return self._fail(run, exc)

        self._advance(run, RunState.EXTRACTING_SIGNALS)
        visual, transcript = await asyncio.gather(
            self._visual_stage(run, metadata),
            self._audio_stage(run, metadata),
        )

        self._advance(run, RunState.SCORING)
        try:
            verdict = await self._scoring_stage(run, metadata, transcript)
        except AuditError as exc:
            return self._fail(run, exc)

        self._advance(run, RunState.MERGING)
        run.result = merge_result(metadata, visual, verdict, self._config.score_bands)

        self._advance(run, RunState.DONE)
        logger.info(
            "[%s] audit done: score=%d person=%s transcript=%s degraded=%d",
            run.run_id,
            run.result.engagement_score,
            visual.person_detected,
            transcript.available,
            len(run.signals),
        )
        return run

    async def run(self, url: str) -> AnalysisResult:
        """Audit *url* and return its result.

        Raises:
            AuditError: The run failed fatally (invalid reference, metadata or
                scoring service unavailable).
        """
        run = await self.execute(url)
        if run.error is not None or run.result is None:
            raise run.error or AuditError(f"Audit of {url} produced no result")
        return run.result


def build_pipeline(
    config: AuditConfig,
    *,
    http_client: httpx.AsyncClient,
    gemini: GeminiClient,
) -> AuditPipeline:
    """Wire the production collaborators around shared HTTP and Gemini clients."""
    pool = FaceDetectorPool(
        lambda: HaarFaceDetector(min_face_size=config.min_face_size),
        size=config.detector_pool_size,
    )
    fetcher = MetadataFetcher(
        [YouTubeProvider(config), TikTokProvider(config, http_client)],
        config,
    )
    return AuditPipeline(
        fetcher=fetcher,
        visual=VisualSignalExtractor(pool, http_client, config),
        transcriber=AudioTranscriber(gemini, http_client, config),
        scorer=SemanticScorer(gemini, config),
        config=config,
    )
