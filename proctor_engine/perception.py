"""
Perception capability contract consumed by the engine.

The engine never looks at pixels. A perception adapter turns a frame into
face descriptors and labeled detections, and reports an instantaneous audio
loudness sample. Anything satisfying this contract can drive a session.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence, Tuple

Point = Tuple[float, float]


@dataclass(frozen=True)
class FaceDescriptor:
    """
    One detected face.

    ``landmarks`` follows the BlazeFace keypoint order:
    right eye, left eye, nose tip, mouth, right ear, left ear.
    Coordinates are in the adapter's space (pixels for the bundled adapter).
    """
    landmarks: Sequence[Point] = field(default_factory=tuple)
    bbox: Optional[Tuple[float, float, float, float]] = None
    score: float = 1.0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "landmarks": [[round(x, 2), round(y, 2)] for x, y in self.landmarks],
            "bbox": list(self.bbox) if self.bbox else None,
            "score": round(self.score, 3),
        }


@dataclass(frozen=True)
class LabeledDetection:
    """An object detection; bbox is [x, y, width, height]"""
    label: str
    score: float
    bbox: Tuple[float, float, float, float] = (0.0, 0.0, 0.0, 0.0)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "label": self.label,
            "score": round(self.score, 3),
            "bbox": [round(v, 1) for v in self.bbox],
        }


class PerceptionAdapter:
    """
    Base class for perception providers.

    Subclasses override the three capability methods. ``is_ready`` lets a
    provider load models lazily; the sampler simply defers while it is False.
    """

    @property
    def is_ready(self) -> bool:
        return True

    def detect_faces(self, frame: Any) -> List[FaceDescriptor]:
        raise NotImplementedError

    def detect_objects(self, frame: Any) -> List[LabeledDetection]:
        raise NotImplementedError

    def sample_audio_level(self) -> Optional[float]:
        return None

    def close(self) -> None:
        """Release model resources"""


class SessionPerception(PerceptionAdapter):
    """Binds shared vision models to one session's own audio feed"""

    def __init__(self, vision: PerceptionAdapter, audio=None):
        self.vision = vision
        self.audio = audio

    @property
    def is_ready(self) -> bool:
        return self.vision.is_ready

    def detect_faces(self, frame: Any) -> List[FaceDescriptor]:
        return self.vision.detect_faces(frame)

    def detect_objects(self, frame: Any) -> List[LabeledDetection]:
        return self.vision.detect_objects(frame)

    def sample_audio_level(self) -> Optional[float]:
        return self.audio.sample() if self.audio is not None else None
