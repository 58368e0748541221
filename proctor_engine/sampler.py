"""
Cooperative sampling scheduler.

Pulls frames at a bounded cadence, runs face detection on every sample and
object detection on a slower cadence, and feeds one shared timestamp per
iteration into the session. A separate task samples audio loudness on its
own fixed interval. Everything runs on one asyncio event loop; only the
model inference is pushed to the default thread pool.
"""

import asyncio
import logging
import threading
import time
from typing import Any, Callable, List, Optional

from .perception import FaceDescriptor, LabeledDetection, PerceptionAdapter
from .session import ProctoringSession, SampleResult

logger = logging.getLogger("proctor.sampler")

FrameSource = Callable[[], Optional[Any]]
SampleCallback = Callable[[SampleResult], None]


class Sampler:
    """
    Drives a ProctoringSession from a perception adapter.

    ``frame_source`` returns the most recent frame or None when nothing is
    available yet. ``on_sample`` is invoked after every completed iteration.
    """

    def __init__(
        self,
        session: ProctoringSession,
        adapter: PerceptionAdapter,
        frame_source: FrameSource,
        on_sample: Optional[SampleCallback] = None,
        monotonic: Callable[[], float] = time.monotonic,
        offload: bool = True,
    ):
        self.session = session
        self.adapter = adapter
        self.frame_source = frame_source
        self.on_sample = on_sample
        self.config = session.config
        self._monotonic = monotonic
        self._offload = offload

        self._stop_requested = asyncio.Event()
        self._tasks: List[asyncio.Task] = []
        self._last_sample_at: Optional[float] = None
        self._last_object_at: Optional[float] = None
        self.samples_taken = 0

    # ──────────────────────────────────────────────────────
    # Lifecycle
    # ──────────────────────────────────────────────────────

    @property
    def is_running(self) -> bool:
        return any(not t.done() for t in self._tasks)

    def start(self) -> None:
        if self.is_running:
            return
        self._stop_requested.clear()
        self._last_sample_at = None
        self._last_object_at = None
        self._tasks = [
            asyncio.create_task(self._sample_loop(), name="proctor-sampler"),
            asyncio.create_task(self._audio_loop(), name="proctor-audio"),
        ]
        logger.info("Sampler started (sample=%dms, objects=%dms, audio=%dms)",
                    self.config.SAMPLE_INTERVAL_MS, self.config.OBJECT_INTERVAL_MS,
                    self.config.AUDIO_INTERVAL_MS)

    async def stop(self) -> None:
        """Halt both loops before their next iteration and wait for them"""
        self._stop_requested.set()
        for task in self._tasks:
            task.cancel()
        for task in self._tasks:
            try:
                await task
            except asyncio.CancelledError:
                pass
        self._tasks = []
        logger.info("Sampler stopped after %d samples", self.samples_taken)

    # ──────────────────────────────────────────────────────
    # Loops
    # ──────────────────────────────────────────────────────

    async def _sample_loop(self) -> None:
        while not self._stop_requested.is_set():
            now = self._monotonic()
            interval_s = self.config.SAMPLE_INTERVAL_MS / 1000.0
            if self._last_sample_at is not None and now - self._last_sample_at < interval_s:
                await asyncio.sleep(self.config.IDLE_YIELD_S)
                continue
            self._last_sample_at = now

            if not self.adapter.is_ready:
                await asyncio.sleep(self.config.IDLE_YIELD_S)
                continue
            frame = self.frame_source()
            if frame is None:
                await asyncio.sleep(self.config.IDLE_YIELD_S)
                continue

            await self.run_iteration(frame, now)
            await asyncio.sleep(0)

    async def run_iteration(self, frame: Any, now: Optional[float] = None) -> Optional[SampleResult]:
        """One sample: faces always, objects only when their cadence elapsed"""
        now = self._monotonic() if now is None else now
        run_objects = (
            self._last_object_at is None
            or (now - self._last_object_at) * 1000.0 > self.config.OBJECT_INTERVAL_MS
        )
        if run_objects:
            self._last_object_at = now

        faces: List[FaceDescriptor] = await self._call(self.adapter.detect_faces, frame, "face detection")
        detections: Optional[List[LabeledDetection]] = None
        if run_objects:
            detections = await self._call(self.adapter.detect_objects, frame, "object detection")

        # Stop may have been requested while inference was in flight
        if self._stop_requested.is_set():
            return None

        result = self.session.process_sample(faces, detections)
        if result is None:
            return None
        self.samples_taken += 1
        if self.on_sample is not None:
            try:
                self.on_sample(result)
            except Exception as exc:
                logger.warning("Sample callback failed: %s", exc)
        return result

    async def _audio_loop(self) -> None:
        interval_s = self.config.AUDIO_INTERVAL_MS / 1000.0
        while not self._stop_requested.is_set():
            await asyncio.sleep(interval_s)
            if self._stop_requested.is_set():
                break
            try:
                level = self.adapter.sample_audio_level()
            except Exception as exc:
                logger.warning("Audio sampling failed: %s", exc)
                continue
            self.session.process_audio(level)

    async def _call(self, fn, frame, what: str) -> list:
        """Run an adapter call; failures and empty results mean 'nothing detected'"""
        try:
            if self._offload:
                loop = asyncio.get_running_loop()
                result = await loop.run_in_executor(None, fn, frame)
            else:
                result = fn(frame)
        except Exception as exc:
            logger.warning("%s failed: %s", what.capitalize(), exc)
            return []
        return list(result or [])


class LatestFrame:
    """
    Single-slot frame buffer; each frame is handed to the sampler at most once.
    Safe to fill from a capture thread.
    """

    def __init__(self):
        self._frame: Optional[Any] = None
        self._lock = threading.Lock()
        self.received = 0

    def put(self, frame: Any) -> None:
        with self._lock:
            self._frame = frame
            self.received += 1

    def __call__(self) -> Optional[Any]:
        with self._lock:
            frame, self._frame = self._frame, None
        return frame
