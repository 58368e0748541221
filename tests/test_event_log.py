import pytest

from proctor_engine.event_log import EventLog
from proctor_engine.events import EventType, ProctorEvent


def _event(i, kind=EventType.INFO):
    return ProctorEvent(id=f"{i}-{kind.value}", type=kind, message=f"event {i}", at_ms=i)


def test_newest_first_ordering():
    log = EventLog()
    for i in range(3):
        log.add(_event(i))
    assert [e.at_ms for e in log.newest_first()] == [2, 1, 0]
    assert [e.at_ms for e in log.oldest_first()] == [0, 1, 2]
    assert [e.at_ms for e in log] == [2, 1, 0]


def test_capacity_drops_oldest():
    log = EventLog()
    for i in range(250):
        log.add(_event(i))
    assert len(log) == 200
    assert log.newest_first()[0].at_ms == 249
    assert log.oldest_first()[0].at_ms == 50
    assert "49-INFO" not in log
    assert "50-INFO" in log


def test_latest_by_type():
    log = EventLog(capacity=10)
    log.add(_event(1, EventType.NO_FACE))
    log.add(_event(2, EventType.PHONE_DETECTED))
    log.add(_event(3, EventType.NO_FACE))
    assert log.latest().at_ms == 3
    assert log.latest(EventType.PHONE_DETECTED).at_ms == 2
    assert log.latest(EventType.BOOK_DETECTED) is None


def test_clear():
    log = EventLog(capacity=5)
    log.add(_event(1))
    log.clear()
    assert len(log) == 0
    assert log.latest() is None


def test_capacity_must_be_positive():
    with pytest.raises(ValueError):
        EventLog(capacity=0)


def test_event_wire_shape():
    event = ProctorEvent(id="1700000000000-NO_FACE", type=EventType.NO_FACE,
                         message="No face detected", at_ms=2100)
    data = event.to_dict()
    assert data == {
        "id": "1700000000000-NO_FACE",
        "type": "NO_FACE",
        "message": "No face detected",
        "atMs": 2100,
    }
