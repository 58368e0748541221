import random

import pytest

from proctor_engine.events import EventType, ProctorEvent
from proctor_engine.scoring import Counts, compute_counts, compute_integrity_score


def _events(*kinds):
    return [ProctorEvent(id=f"{i}-{k.value}", type=k, message="", at_ms=i) for i, k in enumerate(kinds)]


def test_counts_per_type():
    counts = compute_counts(_events(
        EventType.LOOKING_AWAY, EventType.LOOKING_AWAY, EventType.NO_FACE,
        EventType.PHONE_DETECTED, EventType.BOOK_DETECTED, EventType.DEVICE_DETECTED,
        EventType.DROWSINESS, EventType.AUDIO_DETECTED, EventType.INFO,
    ))
    assert counts == Counts(focus_lost=2, absence_events=1, phone_detections=1,
                            book_detections=1, device_detections=1)


def test_multiple_faces_events_are_not_counted():
    counts = compute_counts(_events(EventType.MULTIPLE_FACES, EventType.MULTIPLE_FACES))
    assert counts.multiple_faces == 0
    assert compute_integrity_score(counts) == 100


def test_counts_ignore_order():
    events = _events(*([EventType.NO_FACE] * 3 + [EventType.PHONE_DETECTED] * 2 + [EventType.INFO] * 4))
    shuffled = list(events)
    random.Random(7).shuffle(shuffled)
    assert compute_counts(events) == compute_counts(shuffled) == compute_counts(events)


def test_weighted_deductions():
    counts = Counts(focus_lost=1, absence_events=1, phone_detections=1, book_detections=1, device_detections=1)
    assert compute_integrity_score(counts) == 100 - 5 - 10 - 15 - 8 - 10


def test_dead_multiple_faces_weight_still_applies():
    assert compute_integrity_score(Counts(multiple_faces=2)) == 80


def test_score_is_clamped():
    assert compute_integrity_score(Counts(phone_detections=50)) == 0
    assert compute_integrity_score(Counts()) == 100


def test_custom_weights():
    assert compute_integrity_score(Counts(focus_lost=3), weights={"focus_lost": 1}) == 97


def test_counts_wire_shape():
    counts = Counts(focus_lost=1, phone_detections=2)
    assert counts.to_dict() == {
        "focusLost": 1,
        "absenceEvents": 0,
        "multipleFaces": 0,
        "phoneDetections": 2,
        "bookDetections": 0,
        "deviceDetections": 0,
    }
    assert Counts.from_dict(counts.to_dict()) == counts


def test_config_tables_are_read_only():
    from proctor_engine.config import ProctorConfig

    config = ProctorConfig()
    with pytest.raises(TypeError):
        config.SCORE_WEIGHTS["phone_detections"] = 0
    with pytest.raises(TypeError):
        config.LABEL_CATEGORIES["pen"] = "BOOK_DETECTED"
    assert hash(config) == hash(ProctorConfig())

    weights = {"phone_detections": 20}
    custom = ProctorConfig(SCORE_WEIGHTS=weights)
    weights["phone_detections"] = 0
    assert custom.SCORE_WEIGHTS["phone_detections"] == 20
    assert compute_integrity_score(Counts(phone_detections=1), custom.SCORE_WEIGHTS) == 80
