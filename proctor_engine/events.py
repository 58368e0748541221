"""
Proctoring event definitions shared by the detectors, the event log and the API.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict


class EventType(str, Enum):
    """Semantic event types emitted during an interview session"""
    LOOKING_AWAY = "LOOKING_AWAY"
    NO_FACE = "NO_FACE"
    MULTIPLE_FACES = "MULTIPLE_FACES"
    PHONE_DETECTED = "PHONE_DETECTED"
    BOOK_DETECTED = "BOOK_DETECTED"
    DEVICE_DETECTED = "DEVICE_DETECTED"
    DROWSINESS = "DROWSINESS"
    AUDIO_DETECTED = "AUDIO_DETECTED"
    INFO = "INFO"


class FocusStatus(str, Enum):
    FOCUSED = "focused"
    LOOKING_AWAY = "looking_away"
    NO_FACE = "no_face"


@dataclass(frozen=True)
class ProctorEvent:
    """A single emitted event. Immutable once created."""
    id: str
    type: EventType
    message: str
    at_ms: int

    def to_dict(self) -> Dict[str, Any]:
        """Wire shape used by the event sink and stored reports"""
        return {
            "id": self.id,
            "type": self.type.value,
            "message": self.message,
            "atMs": self.at_ms,
        }


# Human-readable messages for detector emissions
EVENT_MESSAGES: Dict[EventType, str] = {
    EventType.NO_FACE: "No face detected",
    EventType.LOOKING_AWAY: "User looking away for over 5 seconds",
    EventType.DROWSINESS: "Eyes appear closed or drowsy",
    EventType.PHONE_DETECTED: "Mobile phone detected",
    EventType.BOOK_DETECTED: "Books / notes detected",
    EventType.DEVICE_DETECTED: "Electronic device detected",
}
