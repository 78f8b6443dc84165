"""Tests for the audit pipeline: state machine, degrade policy, merge and scoring."""

from __future__ import annotations

import asyncio
from unittest.mock import MagicMock

import cv2
import httpx
import numpy as np
import pytest

from video_audit_mcp.errors import (
    InvalidReferenceError,
    MetadataUnavailableError,
    ScoringMalformedResponseError,
    ScoringUnavailableError,
    TranscriptionFailed,
    VisualExtractionFailed,
)
from video_audit_mcp.models.audit import RunState
from video_audit_mcp.models.video import TranscriptResult, VisualResult
from video_audit_mcp.pipeline import engagement_score
from video_audit_mcp.transcribe import AudioTranscriber
from video_audit_mcp.vision import FaceDetectorPool, VisualSignalExtractor

from tests.conftest import make_metadata, make_verdict

TIKTOK_URL = "https://www.tiktok.com/@creator/video/7311111111111111111"


def _serve_png(request: httpx.Request) -> httpx.Response:
    _, buf = cv2.imencode(".png", np.full((64, 64, 3), 127, dtype=np.uint8))
    return httpx.Response(200, content=buf.tobytes(), headers={"content-type": "image/png"})

CHECKLIST_KEYS = {
    "hookInFirst3Sec", "clearCTA", "length10to25Sec",
    "hasVoiceOver", "hasSubtitles", "hasRealPerson",
}

HAPPY_PATH = [
    RunState.PENDING,
    RunState.FETCHING_METADATA,
    RunState.EXTRACTING_SIGNALS,
    RunState.SCORING,
    RunState.MERGING,
    RunState.DONE,
]


class TestEngagementScore:
    BANDS = [(0, 60), (5000, 85)]

    def test_lower_band(self):
        assert engagement_score(10, self.BANDS) == 60

    def test_threshold_is_inclusive(self):
        assert engagement_score(5000, self.BANDS) == 85

    def test_higher_band(self):
        assert engagement_score(6000, self.BANDS) == 85

    def test_monotonic_in_play_count(self):
        bands = [(0, 10), (100, 40), (10_000, 70), (1_000_000, 100)]
        counts = [0, 1, 99, 100, 5_000, 10_000, 999_999, 1_000_000, 10**9]
        scores = [engagement_score(c, bands) for c in counts]
        assert scores == sorted(scores)
        assert all(0 <= s <= 100 for s in scores)


class TestHappyPath:
    async def test_full_result_shape(self, pipeline):
        result = await pipeline.run(TIKTOK_URL)
        payload = result.to_response()

        assert set(payload) == {"engagementScore", "checklist", "recommendations"}
        assert set(payload["checklist"]) == CHECKLIST_KEYS
        assert 0 <= payload["engagementScore"] <= 100

    async def test_link_in_bio_scenario(self, pipeline, stages):
        """6000 plays, face, CTA transcript: higher band and hasRealPerson."""
        result = await pipeline.run(TIKTOK_URL)

        assert result.engagement_score == 85
        assert result.checklist.has_real_person is True
        assert result.checklist.clear_cta is True
        stages["scorer"].score.assert_awaited_once_with(
            "3 habits that changed my mornings #routine",
            "check link in bio now",
            duration_seconds=18,
        )

    async def test_state_history(self, pipeline):
        run = await pipeline.execute(TIKTOK_URL)
        assert run.state is RunState.DONE
        assert run.history == HAPPY_PATH
        assert run.signals == []
        assert run.error is None


class TestOverride:
    @pytest.mark.parametrize("detected", [True, False])
    async def test_has_real_person_follows_visual_result(self, pipeline, stages, detected):
        stages["visual"].detect_person.return_value = VisualResult(person_detected=detected)
        result = await pipeline.run(TIKTOK_URL)
        assert result.checklist.has_real_person is detected

    async def test_scorer_fields_pass_through_untouched(self, pipeline, stages):
        stages["scorer"].score.return_value = make_verdict(
            hook_in_first_3_sec=False, has_subtitles=True, recommendations=["a", "b"],
        )
        result = await pipeline.run(TIKTOK_URL)
        assert result.checklist.hook_in_first_3_sec is False
        assert result.checklist.has_subtitles is True
        assert result.recommendations == ["a", "b"]


class TestDegrade:
    async def test_no_audio_no_face_low_plays(self, pipeline, stages, config):
        """No audio locator, no face, 10 plays: lower band, no voice-over, no person."""
        real = AudioTranscriber(MagicMock(), MagicMock(), config)
        stages["fetcher"].fetch.return_value = make_metadata(play_count=10, audio_locator=None)
        stages["visual"].detect_person.return_value = VisualResult(person_detected=False, confidence=0.0)
        stages["transcriber"].transcribe.side_effect = real.transcribe
        stages["scorer"].score.return_value = make_verdict(has_voice_over=False, clear_cta=False)

        run = await pipeline.execute(TIKTOK_URL)

        assert run.state is RunState.DONE
        assert run.result.engagement_score == 60
        assert run.result.checklist.has_voice_over is False
        assert run.result.checklist.has_real_person is False
        stages["transcriber"].transcribe.assert_awaited_once_with(None)
        assert stages["scorer"].score.await_args.args[1] == ""

    async def test_visual_failure_degrades(self, pipeline, stages):
        stages["visual"].detect_person.side_effect = VisualExtractionFailed("decode failed", stage="visual")

        run = await pipeline.execute(TIKTOK_URL)

        assert run.state is RunState.DONE
        assert run.result.checklist.has_real_person is False
        assert [s.kind for s in run.signals] == ["VisualExtractionFailed"]
        assert run.signals[0].stage == "visual"

    async def test_unexpected_detector_error_degrades(self, pipeline, stages, config):
        class BrokenDetector:
            def detect_faces(self, frame):
                raise RuntimeError("detector broke")

        http = httpx.AsyncClient(transport=httpx.MockTransport(_serve_png))
        pool = FaceDetectorPool(BrokenDetector, size=1)
        stages["visual"].detect_person.side_effect = (
            VisualSignalExtractor(pool, http, config).detect_person
        )

        async with http:
            run = await pipeline.execute(TIKTOK_URL)

        assert run.state is RunState.DONE
        assert run.result.checklist.has_real_person is False
        assert [s.kind for s in run.signals] == ["VisualExtractionFailed"]

    async def test_transcription_failure_degrades_to_empty_transcript(self, pipeline, stages):
        stages["transcriber"].transcribe.side_effect = TranscriptionFailed("503", stage="transcription")

        run = await pipeline.execute(TIKTOK_URL)

        assert run.state is RunState.DONE
        assert [s.kind for s in run.signals] == ["TranscriptionFailed"]
        assert stages["scorer"].score.await_args.args[1] == ""

    async def test_malformed_scoring_falls_back_to_all_false(self, pipeline, stages):
        stages["scorer"].score.side_effect = ScoringMalformedResponseError("bad json", stage="scoring")

        run = await pipeline.execute(TIKTOK_URL)

        assert run.state is RunState.DONE
        checklist = run.result.checklist
        assert not any([
            checklist.hook_in_first_3_sec,
            checklist.clear_cta,
            checklist.length_10_to_25_sec,
            checklist.has_voice_over,
            checklist.has_subtitles,
        ])
        assert checklist.has_real_person is True
        assert run.result.recommendations == []
        assert [s.kind for s in run.signals] == ["ScoringDegraded"]

    async def test_all_degradations_still_complete(self, pipeline, stages):
        stages["visual"].detect_person.side_effect = VisualExtractionFailed("x", stage="visual")
        stages["transcriber"].transcribe.side_effect = TranscriptionFailed("y", stage="transcription")
        stages["scorer"].score.side_effect = ScoringMalformedResponseError("z", stage="scoring")

        result = await pipeline.run(TIKTOK_URL)

        assert set(result.to_response()["checklist"]) == CHECKLIST_KEYS
        assert result.engagement_score == 85


class TestFatal:
    async def test_invalid_reference_fails_before_fetch(self, pipeline, stages):
        run = await pipeline.execute("https://example.com/not-a-video")

        assert run.state is RunState.FAILED
        assert run.history == [RunState.PENDING, RunState.FETCHING_METADATA, RunState.FAILED]
        assert isinstance(run.error, InvalidReferenceError)
        assert run.result is None
        stages["fetcher"].fetch.assert_not_awaited()

    async def test_metadata_failure_fails_run(self, pipeline, stages):
        stages["fetcher"].fetch.side_effect = MetadataUnavailableError("503 from provider")

        run = await pipeline.execute(TIKTOK_URL)

        assert run.state is RunState.FAILED
        assert run.result is None
        stages["visual"].detect_person.assert_not_awaited()
        stages["transcriber"].transcribe.assert_not_awaited()
        stages["scorer"].score.assert_not_awaited()

    async def test_metadata_failure_raises_from_run(self, pipeline, stages):
        stages["fetcher"].fetch.side_effect = MetadataUnavailableError("gone")
        with pytest.raises(MetadataUnavailableError):
            await pipeline.run(TIKTOK_URL)

    async def test_scoring_unavailable_fails_run(self, pipeline, stages):
        stages["scorer"].score.side_effect = ScoringUnavailableError("connection refused")

        run = await pipeline.execute(TIKTOK_URL)

        assert run.state is RunState.FAILED
        assert run.history[-2:] == [RunState.SCORING, RunState.FAILED]
        assert run.result is None


class TestConcurrency:
    async def test_visual_and_audio_overlap(self, pipeline, stages):
        """Each extractor waits for the other to start; serial execution would time out."""
        visual_started = asyncio.Event()
        audio_started = asyncio.Event()

        async def visual(_locator):
            visual_started.set()
            await asyncio.wait_for(audio_started.wait(), timeout=1)
            return VisualResult(person_detected=True)

        async def audio(_locator):
            audio_started.set()
            await asyncio.wait_for(visual_started.wait(), timeout=1)
            return TranscriptResult(text="hi", available=True)

        stages["visual"].detect_person.side_effect = visual
        stages["transcriber"].transcribe.side_effect = audio

        run = await pipeline.execute(TIKTOK_URL)
        assert run.state is RunState.DONE

    async def test_scoring_waits_for_both_extractors(self, pipeline, stages):
        order: list[str] = []

        async def visual(_locator):
            await asyncio.sleep(0.02)
            order.append("visual")
            return VisualResult(person_detected=True)

        async def audio(_locator):
            order.append("audio")
            return TranscriptResult(text="hi", available=True)

        async def score(*_args, **_kwargs):
            order.append("score")
            return make_verdict()

        stages["visual"].detect_person.side_effect = visual
        stages["transcriber"].transcribe.side_effect = audio
        stages["scorer"].score.side_effect = score

        await pipeline.run(TIKTOK_URL)
        assert order == ["audio", "visual", "score"]

    async def test_cancellation_returns_no_result(self, pipeline, stages):
        started = asyncio.Event()

        async def hang(_locator):
            started.set()
            await asyncio.sleep(10)

        stages["visual"].detect_person.side_effect = hang

        task = asyncio.create_task(pipeline.run(TIKTOK_URL))
        await started.wait()
        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task
        stages["scorer"].score.assert_not_awaited()
