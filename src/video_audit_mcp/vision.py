"""Visual signal stage: fetch one representative frame and detect faces.

Decoding and detection are CPU-bound OpenCV calls and run in worker
threads. ``CascadeClassifier`` instances are not shared between concurrent
detections: each call checks one out of a :class:`FaceDetectorPool`.
"""

from __future__ import annotations

import asyncio
import logging
import tempfile
from collections.abc import AsyncIterator, Callable
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import Protocol, TypeVar

import cv2
import httpx
import numpy as np

from .config import AuditConfig
from .download import fetch_bytes
from .errors import VisualExtractionFailed
from .models.video import VisualResult

logger = logging.getLogger(__name__)

STAGE = "visual"

T = TypeVar("T")


@dataclass(frozen=True)
class FaceRegion:
    """A detected face in pixel coordinates."""

    x: int
    y: int
    width: int
    height: int

    @property
    def area(self) -> int:
        return self.width * self.height


class FaceDetector(Protocol):
    def detect_faces(self, frame: np.ndarray) -> list[FaceRegion]: ...


class HaarFaceDetector:
    """OpenCV frontal-face Haar cascade. Regions come back largest first."""

    def __init__(self, min_face_size: int = 40):
        self.min_face_size = min_face_size
        self._cascade = cv2.CascadeClassifier(
            cv2.data.haarcascades + "haarcascade_frontalface_default.xml"
        )
        if self._cascade.empty():
            raise RuntimeError("OpenCV frontal-face cascade could not be loaded")

    def detect_faces(self, frame: np.ndarray) -> list[FaceRegion]:
        gray = cv2.cvtColor(frame, cv2.COLOR_BGR2GRAY) if frame.ndim == 3 else frame
        faces = self._cascade.detectMultiScale(
            gray,
            scaleFactor=1.1,
            minNeighbors=5,
            minSize=(self.min_face_size, self.min_face_size),
        )
        regions = [FaceRegion(int(x), int(y), int(w), int(h)) for x, y, w, h in faces]
        regions.sort(key=lambda r: r.area, reverse=True)
        return regions


class FaceDetectorPool:
    """Fixed set of detector instances with exclusive async checkout."""

    def __init__(self, factory: Callable[[], FaceDetector], size: int):
        self._factory = factory
        self._size = size
        self._created = 0
        self._idle: asyncio.Queue[FaceDetector] = asyncio.Queue()

    @asynccontextmanager
    async def checkout(self) -> AsyncIterator[FaceDetector]:
        """Yield a detector no other caller holds until the block exits."""
        if self._idle.empty() and self._created < self._size:
            detector = self._factory()
            self._created += 1
        else:
            detector = await self._idle.get()
        try:
            yield detector
        finally:
            self._idle.put_nowait(detector)

    async def run(self, func: Callable[[FaceDetector], T]) -> T:
        """Call *func* with a checked-out detector in a worker thread.

        The detector goes back to the pool only after the thread returns,
        also when the caller is cancelled mid-detection.
        """
        async with self.checkout() as detector:
            worker = asyncio.ensure_future(asyncio.to_thread(func, detector))
            try:
                return await asyncio.shield(worker)
            except asyncio.CancelledError:
                await asyncio.wait({worker})
                if not worker.cancelled() and worker.exception() is not None:
                    logger.debug(
                        "Detection failed after cancellation", exc_info=worker.exception(),
                    )
                raise


def _decode_video_frame(data: bytes, seek_ms: int) -> np.ndarray | None:
    """Read the first decodable frame of a video container, seeking if needed."""
    with tempfile.NamedTemporaryFile(suffix=".mp4") as tmp:
        tmp.write(data)
        tmp.flush()
        capture = cv2.VideoCapture(tmp.name)
        try:
            if not capture.isOpened():
                return None
            ok, frame = capture.read()
            if not ok or frame is None:
                capture.set(cv2.CAP_PROP_POS_MSEC, float(seek_ms))
                ok, frame = capture.read()
        finally:
            capture.release()
    return frame if ok else None


def decode_frame(data: bytes, *, seek_ms: int = 1000) -> np.ndarray:
    """Decode exactly one BGR frame from image or video bytes.

    Raises:
        ValueError: If no frame can be decoded.
    """
    if not data:
        raise ValueError("No frame bytes to decode")
    frame = cv2.imdecode(np.frombuffer(data, dtype=np.uint8), cv2.IMREAD_COLOR)
    if frame is None:
        frame = _decode_video_frame(data, seek_ms)
    if frame is None or frame.size == 0:
        raise ValueError("Frame bytes are neither a decodable image nor a readable video")
    return frame


class VisualSignalExtractor:
    """Detects whether a human face appears in the video's representative frame."""

    def __init__(
        self,
        pool: FaceDetectorPool,
        http_client: httpx.AsyncClient,
        config: AuditConfig,
    ):
        self._pool = pool
        self._http = http_client
        self._config = config

    async def _fetch(self, locator: str) -> bytes:
        data, _ = await asyncio.wait_for(
            fetch_bytes(self._http, locator, max_bytes=self._config.max_frame_bytes),
            timeout=self._config.frame_timeout_seconds,
        )
        return data

    def _detect(self, detector: FaceDetector, frame: np.ndarray) -> VisualResult:
        min_size = self._config.min_face_size
        regions = [
            r for r in detector.detect_faces(frame)
            if r.width >= min_size and r.height >= min_size
        ]
        if not regions:
            return VisualResult(person_detected=False, confidence=0.0, face_count=0)
        largest = max(regions, key=lambda r: r.area)
        share = max(largest.width, largest.height) / min(frame.shape[:2])
        return VisualResult(
            person_detected=True,
            confidence=min(max(share, 0.0), 1.0),
            face_count=len(regions),
        )

    async def detect_person(self, media_locator: str) -> VisualResult:
        """Fetch, decode and inspect one frame from *media_locator*.

        Raises:
            VisualExtractionFailed: Any fetch, decode or detection failure.
        """
        try:
            data = await self._fetch(media_locator)
        except asyncio.TimeoutError as exc:
            raise VisualExtractionFailed(
                f"Frame fetch timed out after {self._config.frame_timeout_seconds:.0f}s",
                stage=STAGE,
            ) from exc
        except Exception as exc:
            raise VisualExtractionFailed(f"Frame fetch failed: {exc}", stage=STAGE) from exc

        try:
            frame = await asyncio.to_thread(decode_frame, data, seek_ms=self._config.frame_seek_ms)
        except Exception as exc:
            raise VisualExtractionFailed(f"Frame decode failed: {exc}", stage=STAGE) from exc

        try:
            result = await self._pool.run(lambda detector: self._detect(detector, frame))
        except Exception as exc:
            raise VisualExtractionFailed(f"Face detection failed: {exc}", stage=STAGE) from exc
        logger.debug(
            "Visual result for %s: person=%s faces=%d",
            media_locator, result.person_detected, result.face_count,
        )
        return result
