"""
Proctoring Detectors
Per-sample state machines that turn perception results into debounced events.

Each detector owns its debounce state and is fed the same ``now_ms`` for a
given sampling iteration. Detectors never read each other's state; they
return the emissions for this sample and the session writes them to the log.
"""

import math
from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence, Tuple

from .config import ProctorConfig
from .events import EVENT_MESSAGES, EventType, FocusStatus
from .perception import FaceDescriptor, LabeledDetection, Point

Emission = Tuple[EventType, str]


# ============================================================================
# UTILITY CLASSES
# ============================================================================

class GeometryUtils:
    @staticmethod
    def midpoint(p1: Point, p2: Point) -> Point:
        return ((p1[0] + p2[0]) / 2.0, (p1[1] + p2[1]) / 2.0)

    @staticmethod
    def euclidean_distance_2d(p1: Point, p2: Point) -> float:
        return math.hypot(p1[0] - p2[0], p1[1] - p2[1])


def gaze_offsets(landmarks: Sequence[Point]) -> Optional[Tuple[float, float]]:
    """
    Normalized horizontal/vertical nose offset from the eye midpoint.
    Returns None when the geometry is unusable (missing points, eyes coincide).
    """
    if landmarks is None or len(landmarks) < 3:
        return None
    right_eye, left_eye, nose = landmarks[0], landmarks[1], landmarks[2]
    eye_dist = GeometryUtils.euclidean_distance_2d(right_eye, left_eye)
    if eye_dist == 0:
        return None
    mid_x, mid_y = GeometryUtils.midpoint(right_eye, left_eye)
    return abs(nose[0] - mid_x) / eye_dist, abs(nose[1] - mid_y) / eye_dist


def is_looking_away(landmarks: Sequence[Point], config: ProctorConfig) -> bool:
    offsets = gaze_offsets(landmarks)
    if offsets is None:
        return False
    offset_x, offset_y = offsets
    return offset_x > config.AWAY_OFFSET_X or offset_y > config.AWAY_OFFSET_Y


def eyes_closed(landmarks: Sequence[Point], config: ProctorConfig) -> Optional[bool]:
    """Closed-eye heuristic on raw vertical distances. None if not enough landmarks."""
    if landmarks is None or len(landmarks) < 3:
        return None
    right_eye, left_eye, nose = landmarks[0], landmarks[1], landmarks[2]
    eye_vert = abs(right_eye[1] - left_eye[1])
    eye_to_nose = abs((right_eye[1] + left_eye[1]) / 2.0 - nose[1])
    return eye_to_nose > config.CLOSED_EYE_NOSE_OFFSET and eye_vert < config.CLOSED_EYE_MAX_VERTICAL


def categorize_label(label: str, config: ProctorConfig) -> Optional[EventType]:
    """Static lookup of a raw detector label to its event category"""
    category = config.LABEL_CATEGORIES.get(label.lower())
    return EventType(category) if category else None


# ============================================================================
# FOCUS STATE MACHINE
# ============================================================================

class FocusStateMachine:
    """focused / looking_away / no_face, driven by the first face's landmarks"""

    def __init__(self, config: ProctorConfig):
        self.config = config
        self.reset()

    def reset(self):
        self.status = FocusStatus.NO_FACE
        self.faces_count = 0
        self._last_face_seen_at: Optional[int] = None
        self._looking_away_since: Optional[int] = None
        self._last_multiple_faces_at: Optional[int] = None

    @property
    def last_multiple_faces_at(self) -> Optional[int]:
        return self._last_multiple_faces_at

    def update(self, faces: Sequence[FaceDescriptor], now_ms: int) -> List[Emission]:
        emissions: List[Emission] = []
        self.faces_count = len(faces)

        if not faces:
            self.status = FocusStatus.NO_FACE
            if self._last_face_seen_at is None:
                self._last_face_seen_at = now_ms
            if now_ms - self._last_face_seen_at > self.config.NO_FACE_DEBOUNCE_MS:
                emissions.append((EventType.NO_FACE, EVENT_MESSAGES[EventType.NO_FACE]))
                self._last_face_seen_at = now_ms
            return emissions

        self._last_face_seen_at = now_ms
        if self.status == FocusStatus.NO_FACE:
            self.status = FocusStatus.FOCUSED

        # Ambiguous multi-face scenes are tracked but never alerted on
        if len(faces) > 1:
            self._last_multiple_faces_at = now_ms

        if is_looking_away(faces[0].landmarks, self.config):
            if self._looking_away_since is None:
                self._looking_away_since = now_ms
            elif now_ms - self._looking_away_since > self.config.LOOKING_AWAY_DWELL_MS:
                self.status = FocusStatus.LOOKING_AWAY
                emissions.append((EventType.LOOKING_AWAY, EVENT_MESSAGES[EventType.LOOKING_AWAY]))
                self._looking_away_since = now_ms
        else:
            self._looking_away_since = None
            self.status = FocusStatus.FOCUSED

        return emissions


# ============================================================================
# DROWSINESS DETECTOR
# ============================================================================

class DrowsinessDetector:
    def __init__(self, config: ProctorConfig):
        self.config = config
        self.reset()

    def reset(self):
        self._closed_eye_since: Optional[int] = None
        self._last_drowsy_at: Optional[int] = None
        self._last_seen: Optional[int] = None

    @property
    def eyes_closed_for_ms(self) -> int:
        if self._closed_eye_since is None or self._last_seen is None:
            return 0
        return self._last_seen - self._closed_eye_since

    def update(self, faces: Sequence[FaceDescriptor], now_ms: int) -> List[Emission]:
        self._last_seen = now_ms
        if not faces:
            return []
        closed = eyes_closed(faces[0].landmarks, self.config)
        if closed is None:
            return []

        if not closed:
            self._closed_eye_since = None
            return []

        if self._closed_eye_since is None:
            self._closed_eye_since = now_ms
        cooled_down = (
            self._last_drowsy_at is None
            or now_ms - self._last_drowsy_at > self.config.DROWSY_COOLDOWN_MS
        )
        if now_ms - self._closed_eye_since > self.config.DROWSY_DWELL_MS and cooled_down:
            # closure timer keeps running; the cooldown gates the next emission
            self._last_drowsy_at = now_ms
            return [(EventType.DROWSINESS, EVENT_MESSAGES[EventType.DROWSINESS])]
        return []


# ============================================================================
# OBJECT SUSPICION CLASSIFIER
# ============================================================================

@dataclass(frozen=True)
class ClassifiedItem:
    detection: LabeledDetection
    category: EventType


class ObjectSuspicionClassifier:
    """
    Filters detections to the suspicious label set and emits one event per
    label, cooled down per raw label string. Two synonyms of the same
    category cool down independently.
    """

    def __init__(self, config: ProctorConfig):
        self.config = config
        self.reset()

    def reset(self):
        self.items = []
        self._last_logged_at: Dict[str, int] = {}

    def classify(self, detections: Sequence[LabeledDetection]) -> List[ClassifiedItem]:
        items: List[ClassifiedItem] = []
        for det in detections:
            label = det.label.lower()
            if label not in self.config.LABEL_CATEGORIES:
                continue
            if det.score < self.config.OBJECT_MIN_CONFIDENCE:
                continue
            category = categorize_label(label, self.config)
            if category is None:
                continue
            items.append(ClassifiedItem(
                detection=LabeledDetection(label=label, score=det.score, bbox=det.bbox),
                category=category,
            ))
        return items

    def update(self, detections: Sequence[LabeledDetection], now_ms: int) -> List[Emission]:
        emissions: List[Emission] = []
        self.items = self.classify(detections)
        for item in self.items:
            label = item.detection.label
            last_at = self._last_logged_at.get(label)
            if last_at is not None and now_ms - last_at <= self.config.OBJECT_COOLDOWN_MS:
                continue
            emissions.append((item.category, EVENT_MESSAGES[item.category]))
            self._last_logged_at[label] = now_ms
        return emissions


# ============================================================================
# AUDIO ANOMALY DETECTOR
# ============================================================================

class AudioAnomalyDetector:
    def __init__(self, config: ProctorConfig):
        self.config = config
        self.reset()

    def reset(self):
        self.last_level: Optional[float] = None
        self._last_loud_at: Optional[int] = None

    def update(self, level: Optional[float], now_ms: int) -> List[Emission]:
        if level is None:
            return []
        self.last_level = level
        if level <= self.config.AUDIO_LEVEL_THRESHOLD:
            return []
        if self._last_loud_at is not None and now_ms - self._last_loud_at <= self.config.AUDIO_COOLDOWN_MS:
            return []
        self._last_loud_at = now_ms
        return [(EventType.AUDIO_DETECTED, f"Background audio detected (level: {int(math.floor(level + 0.5))})")]
