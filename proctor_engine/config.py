"""
Proctoring Engine Configuration
Centralized, immutable tunables for the detectors, scheduler and scorer.
"""

from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Mapping


# Raw detector label -> semantic event type
DEFAULT_LABEL_CATEGORIES: Mapping[str, str] = MappingProxyType({
    "cell phone": "PHONE_DETECTED",
    "cellphone": "PHONE_DETECTED",
    "mobile phone": "PHONE_DETECTED",
    "mobile": "PHONE_DETECTED",
    "phone": "PHONE_DETECTED",
    "book": "BOOK_DETECTED",
    "notebook": "BOOK_DETECTED",
    "paper": "BOOK_DETECTED",
    "laptop": "DEVICE_DETECTED",
    "tv": "DEVICE_DETECTED",
    "keyboard": "DEVICE_DETECTED",
    "mouse": "DEVICE_DETECTED",
    "remote": "DEVICE_DETECTED",
    "monitor": "DEVICE_DETECTED",
    "tablet": "DEVICE_DETECTED",
})

# Count field -> deduction per occurrence
DEFAULT_SCORE_WEIGHTS: Mapping[str, int] = MappingProxyType({
    "focus_lost": 5,
    "absence_events": 10,
    "multiple_faces": 10,  # never incremented today, kept in the formula
    "phone_detections": 15,
    "book_detections": 8,
    "device_detections": 10,
})


@dataclass(frozen=True)
class ProctorConfig:
    """Immutable configuration for detection thresholds, cadences and scoring"""

    # Scheduler cadence
    SAMPLE_INTERVAL_MS: int = 100
    OBJECT_INTERVAL_MS: int = 600
    AUDIO_INTERVAL_MS: int = 800
    IDLE_YIELD_S: float = 0.01

    # Presence
    NO_FACE_DEBOUNCE_MS: int = 2000

    # Gaze (normalized by inter-eye distance)
    AWAY_OFFSET_X: float = 0.35
    AWAY_OFFSET_Y: float = 0.6
    LOOKING_AWAY_DWELL_MS: int = 5000

    # Eye closure (absolute adapter units)
    CLOSED_EYE_NOSE_OFFSET: float = 25.0
    CLOSED_EYE_MAX_VERTICAL: float = 6.0
    DROWSY_DWELL_MS: int = 2000
    DROWSY_COOLDOWN_MS: int = 5000

    # Objects
    OBJECT_MIN_CONFIDENCE: float = 0.5
    OBJECT_COOLDOWN_MS: int = 3000
    LABEL_CATEGORIES: Mapping[str, str] = field(default_factory=lambda: DEFAULT_LABEL_CATEGORIES, hash=False)

    # Audio
    AUDIO_LEVEL_THRESHOLD: float = 25.0
    AUDIO_COOLDOWN_MS: int = 3000

    # Event log
    EVENT_LOG_CAPACITY: int = 200

    # Integrity score
    SCORE_WEIGHTS: Mapping[str, int] = field(default_factory=lambda: DEFAULT_SCORE_WEIGHTS, hash=False)
    SCORE_MAX: int = 100

    def __post_init__(self):
        # caller-supplied tables are copied into read-only views
        for name in ("LABEL_CATEGORIES", "SCORE_WEIGHTS"):
            value = getattr(self, name)
            if not isinstance(value, MappingProxyType):
                object.__setattr__(self, name, MappingProxyType(dict(value)))
