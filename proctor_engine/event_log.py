"""
Bounded, newest-first event log.
"""

from collections import deque
from typing import Deque, Iterator, List, Optional

from .events import EventType, ProctorEvent


class EventLog:
    """
    Append-only ring buffer of emitted events, newest first.

    Every add prepends; once capacity is reached the oldest entry falls off
    the tail. Events are never mutated, only dropped by truncation or clear().
    """

    def __init__(self, capacity: int = 200):
        if capacity <= 0:
            raise ValueError("capacity must be positive")
        self.capacity = capacity
        self._events: Deque[ProctorEvent] = deque(maxlen=capacity)

    def add(self, event: ProctorEvent) -> ProctorEvent:
        self._events.appendleft(event)
        return event

    def clear(self) -> None:
        self._events.clear()

    def newest_first(self) -> List[ProctorEvent]:
        return list(self._events)

    def oldest_first(self) -> List[ProctorEvent]:
        return list(reversed(self._events))

    def latest(self, event_type: Optional[EventType] = None) -> Optional[ProctorEvent]:
        for ev in self._events:
            if event_type is None or ev.type == event_type:
                return ev
        return None

    def __len__(self) -> int:
        return len(self._events)

    def __iter__(self) -> Iterator[ProctorEvent]:
        return iter(self._events)

    def __contains__(self, event_id: object) -> bool:
        return any(ev.id == event_id for ev in self._events)
