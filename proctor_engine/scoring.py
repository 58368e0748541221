"""
Counts aggregation and integrity scoring.

Both functions are pure: counts are always recomputed from the event list and
the score is always recomputed from the counts, so the two can never drift.
"""

from dataclasses import asdict, dataclass
from typing import Any, Dict, Iterable, Mapping, Optional

from .config import DEFAULT_SCORE_WEIGHTS
from .events import EventType, ProctorEvent


@dataclass(frozen=True)
class Counts:
    focus_lost: int = 0
    absence_events: int = 0
    # Always zero under the current policy (MULTIPLE_FACES is never counted)
    multiple_faces: int = 0
    phone_detections: int = 0
    book_detections: int = 0
    device_detections: int = 0

    def to_dict(self) -> Dict[str, int]:
        return {
            "focusLost": self.focus_lost,
            "absenceEvents": self.absence_events,
            "multipleFaces": self.multiple_faces,
            "phoneDetections": self.phone_detections,
            "bookDetections": self.book_detections,
            "deviceDetections": self.device_detections,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Counts":
        return cls(
            focus_lost=int(data.get("focusLost", 0)),
            absence_events=int(data.get("absenceEvents", 0)),
            multiple_faces=int(data.get("multipleFaces", 0)),
            phone_detections=int(data.get("phoneDetections", 0)),
            book_detections=int(data.get("bookDetections", 0)),
            device_detections=int(data.get("deviceDetections", 0)),
        )


# Event type -> Counts field. MULTIPLE_FACES is deliberately absent.
COUNTED_TYPES: Dict[EventType, str] = {
    EventType.LOOKING_AWAY: "focus_lost",
    EventType.NO_FACE: "absence_events",
    EventType.PHONE_DETECTED: "phone_detections",
    EventType.BOOK_DETECTED: "book_detections",
    EventType.DEVICE_DETECTED: "device_detections",
}


def compute_counts(events: Iterable[ProctorEvent]) -> Counts:
    totals = {name: 0 for name in COUNTED_TYPES.values()}
    for ev in events:
        name = COUNTED_TYPES.get(ev.type)
        if name is not None:
            totals[name] += 1
    return Counts(**totals)


def compute_integrity_score(
    counts: Counts,
    weights: Optional[Mapping[str, int]] = None,
    max_score: int = 100,
) -> int:
    """max(0, max_score - weighted deductions), clamped to [0, max_score]"""
    weights = weights if weights is not None else DEFAULT_SCORE_WEIGHTS
    values = asdict(counts)
    deductions = sum(values[name] * weight for name, weight in weights.items())
    return max(0, min(max_score, max_score - deductions))
