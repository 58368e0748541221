"""
Interview Proctor Perception Service
Wraps proctor_engine.vision.VisionPerception (MediaPipe faces + YOLO objects)
into a process-wide service. The models are loaded ONCE and shared by every
monitoring connection; each connection pairs them with its own audio feed.
"""

import logging
from typing import Optional

from app.core.config import settings
from proctor_engine.audio import LatestAudioLevel
from proctor_engine.perception import PerceptionAdapter, SessionPerception

logger = logging.getLogger("proctor.perception")


class PerceptionService:
    """
    Singleton holder for the vision models.

    - Loads MediaPipe and YOLO lazily so import-time errors don't crash the
      rest of the backend.
    - Hands out per-connection adapters that share the vision models but
      read audio from the connection's own LatestAudioLevel.
    """

    _instance: Optional["PerceptionService"] = None

    @classmethod
    def get_instance(cls) -> "PerceptionService":
        if cls._instance is None:
            cls._instance = cls()
        return cls._instance

    def __init__(self, adapter: Optional[PerceptionAdapter] = None):
        self._vision: Optional[PerceptionAdapter] = adapter
        if self._vision is None:
            self._initialise_models()

    # ──────────────────────────────────────────────────────
    # Initialisation
    # ──────────────────────────────────────────────────────

    def _initialise_models(self):
        try:
            from proctor_engine.vision import VisionPerception
            self._vision = VisionPerception(
                yolo_weights=settings.weights_path,
                object_confidence=settings.YOLO_CONFIDENCE,
                face_min_confidence=settings.FACE_MIN_CONFIDENCE,
                imgsz=settings.YOLO_IMGSZ,
            )
            logger.info("Perception models initialised (MediaPipe face detector + YOLO)")
        except Exception as e:
            logger.error(f"Failed to initialise perception models: {e}")
            self._vision = None

    @property
    def is_ready(self) -> bool:
        return self._vision is not None and self._vision.is_ready

    def session_adapter(self, audio: LatestAudioLevel) -> SessionPerception:
        """Adapter for one monitoring connection"""
        return SessionPerception(self._vision, audio)

    # ──────────────────────────────────────────────────────
    # Cleanup
    # ──────────────────────────────────────────────────────

    def cleanup(self):
        if self._vision is not None:
            try:
                self._vision.close()
            except Exception as e:
                logger.warning(f"Perception cleanup failed: {e}")
            self._vision = None
            logger.info("Perception models released")

    @classmethod
    def release_instance(cls):
        """Free the shared models, if they were ever loaded"""
        if cls._instance is not None:
            cls._instance.cleanup()
            cls._instance = None


# ── Singleton accessor ───────────────────────────────────

def get_perception_service() -> PerceptionService:
    return PerceptionService.get_instance()
