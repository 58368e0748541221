from conftest import AWAY, EYES_CLOSED, FOCUSED

from proctor_engine.config import ProctorConfig
from proctor_engine.detectors import (
    AudioAnomalyDetector,
    DrowsinessDetector,
    FocusStateMachine,
    ObjectSuspicionClassifier,
    categorize_label,
    eyes_closed,
    gaze_offsets,
    is_looking_away,
)
from proctor_engine.events import EventType, FocusStatus
from proctor_engine.perception import FaceDescriptor, LabeledDetection

CONFIG = ProctorConfig()


def _types(emissions):
    return [kind for kind, _ in emissions]


# ── Geometry ─────────────────────────────────────────────

def test_gaze_offsets_are_normalized_by_eye_distance():
    offset_x, offset_y = gaze_offsets(AWAY.landmarks)
    assert abs(offset_x - 25 / 60) < 1e-9
    assert abs(offset_y - 5 / 60) < 1e-9


def test_degenerate_geometry_is_not_looking_away():
    assert gaze_offsets([(10, 10), (10, 10), (50, 50)]) is None
    assert not is_looking_away([(10, 10), (10, 10), (50, 50)], CONFIG)
    assert not is_looking_away([(10, 10)], CONFIG)


def test_vertical_offset_alone_counts_as_away():
    # offset_y = 40 / 60 > 0.6
    assert is_looking_away([(100, 100), (160, 100), (130, 140)], CONFIG)


def test_eyes_closed_heuristic():
    assert eyes_closed(EYES_CLOSED.landmarks, CONFIG) is True
    assert eyes_closed(FOCUSED.landmarks, CONFIG) is False
    assert eyes_closed([(1, 1)], CONFIG) is None


def test_categorize_label_is_case_insensitive():
    assert categorize_label("Cell Phone", CONFIG) == EventType.PHONE_DETECTED
    assert categorize_label("notebook", CONFIG) == EventType.BOOK_DETECTED
    assert categorize_label("tv", CONFIG) == EventType.DEVICE_DETECTED
    assert categorize_label("person", CONFIG) is None


# ── Focus state machine ──────────────────────────────────

def test_no_face_fires_once_per_debounce_window():
    focus = FocusStateMachine(CONFIG)
    emitted = []
    for t in range(0, 6001, 100):
        emitted += [(t, kind) for kind in _types(focus.update([], t))]
    assert emitted == [(2100, EventType.NO_FACE), (4200, EventType.NO_FACE)]
    assert focus.status == FocusStatus.NO_FACE


def test_no_face_exactly_at_debounce_does_not_fire():
    focus = FocusStateMachine(CONFIG)
    assert focus.update([], 0) == []
    assert focus.update([], 2000) == []
    assert _types(focus.update([], 2001)) == [EventType.NO_FACE]


def test_face_resets_absence_timer():
    focus = FocusStateMachine(CONFIG)
    focus.update([], 0)
    focus.update([FOCUSED], 1500)
    assert focus.update([], 3000) == []
    assert _types(focus.update([], 3501)) == [EventType.NO_FACE]


def test_looking_away_requires_full_dwell_each_time():
    focus = FocusStateMachine(CONFIG)
    assert focus.update([AWAY], 0) == []
    assert focus.update([AWAY], 5000) == []
    assert focus.status == FocusStatus.FOCUSED
    assert _types(focus.update([AWAY], 5001)) == [EventType.LOOKING_AWAY]
    assert focus.status == FocusStatus.LOOKING_AWAY
    # timer restarted at 5001
    assert focus.update([AWAY], 10001) == []
    assert _types(focus.update([AWAY], 10002)) == [EventType.LOOKING_AWAY]


def test_looking_back_clears_away_status():
    focus = FocusStateMachine(CONFIG)
    focus.update([AWAY], 0)
    focus.update([AWAY], 5001)
    focus.update([FOCUSED], 5100)
    assert focus.status == FocusStatus.FOCUSED
    assert focus.update([AWAY], 5200) == []
    assert focus.update([AWAY], 10200) == []


def test_multiple_faces_are_tracked_but_silent():
    focus = FocusStateMachine(CONFIG)
    assert focus.update([FOCUSED, FOCUSED], 100) == []
    assert focus.faces_count == 2
    assert focus.last_multiple_faces_at == 100


def test_reset_returns_to_no_face():
    focus = FocusStateMachine(CONFIG)
    focus.update([AWAY], 0)
    focus.reset()
    assert focus.status == FocusStatus.NO_FACE
    assert focus.faces_count == 0
    assert focus.last_multiple_faces_at is None


# ── Drowsiness ───────────────────────────────────────────

def test_drowsiness_after_dwell_then_cooldown():
    drowsy = DrowsinessDetector(CONFIG)
    emitted = []
    for t in range(0, 10001, 100):
        emitted += [(t, kind) for kind in _types(drowsy.update([EYES_CLOSED], t))]
    assert emitted == [(2100, EventType.DROWSINESS), (7200, EventType.DROWSINESS)]
    assert drowsy.eyes_closed_for_ms == 10000


def test_open_eyes_reset_closure_timer():
    drowsy = DrowsinessDetector(CONFIG)
    drowsy.update([EYES_CLOSED], 0)
    drowsy.update([FOCUSED], 1500)
    assert drowsy.eyes_closed_for_ms == 0
    drowsy.update([EYES_CLOSED], 1600)
    assert drowsy.update([EYES_CLOSED], 3600) == []
    assert _types(drowsy.update([EYES_CLOSED], 3700)) == [EventType.DROWSINESS]


def test_drowsiness_ignores_missing_faces_and_landmarks():
    drowsy = DrowsinessDetector(CONFIG)
    assert drowsy.update([], 0) == []
    assert drowsy.update([FaceDescriptor(landmarks=((1.0, 1.0),))], 5000) == []


# ── Objects ──────────────────────────────────────────────

def _book(score=0.9):
    return LabeledDetection(label="book", score=score)


def test_book_cooldown():
    objects = ObjectSuspicionClassifier(CONFIG)
    assert _types(objects.update([_book()], 0)) == [EventType.BOOK_DETECTED]
    assert objects.update([_book()], 2000) == []
    assert _types(objects.update([_book()], 3500)) == [EventType.BOOK_DETECTED]


def test_low_confidence_and_unknown_labels_are_filtered():
    objects = ObjectSuspicionClassifier(CONFIG)
    detections = [
        LabeledDetection(label="cell phone", score=0.49),
        LabeledDetection(label="person", score=0.99),
        LabeledDetection(label="laptop", score=0.5),
    ]
    assert _types(objects.update(detections, 0)) == [EventType.DEVICE_DETECTED]
    assert [item.detection.label for item in objects.items] == ["laptop"]


def test_synonyms_cool_down_independently():
    objects = ObjectSuspicionClassifier(CONFIG)
    assert _types(objects.update([LabeledDetection("cell phone", 0.9)], 0)) == [EventType.PHONE_DETECTED]
    assert _types(objects.update([LabeledDetection("phone", 0.9)], 100)) == [EventType.PHONE_DETECTED]
    assert objects.update([LabeledDetection("cell phone", 0.9)], 200) == []


def test_labels_are_lower_cased():
    objects = ObjectSuspicionClassifier(CONFIG)
    assert _types(objects.update([LabeledDetection("Book", 0.9)], 0)) == [EventType.BOOK_DETECTED]
    assert objects.update([LabeledDetection("book", 0.9)], 1000) == []


# ── Audio ────────────────────────────────────────────────

def test_audio_threshold_and_cooldown():
    audio = AudioAnomalyDetector(CONFIG)
    assert audio.update(25, 0) == []
    loud = audio.update(40.5, 100)
    assert loud == [(EventType.AUDIO_DETECTED, "Background audio detected (level: 41)")]
    assert audio.update(90, 3100) == []
    assert _types(audio.update(90, 3101)) == [EventType.AUDIO_DETECTED]
    assert audio.last_level == 90


def test_audio_unavailable_is_silent():
    audio = AudioAnomalyDetector(CONFIG)
    assert audio.update(None, 0) == []
    assert audio.last_level is None
