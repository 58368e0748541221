"""
Proctoring Session
Owns the detectors, the event log and the session timing baseline, and turns
one sampling iteration's perception results into events.

Typical use (the sampler drives this in production)::

    session = ProctoringSession("Jane Doe")
    session.start()
    result = session.process_sample(faces, detections)
    session.process_audio(level)
    report = session.stop()
"""

import logging
import time
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Sequence

from .config import ProctorConfig
from .detectors import (
    AudioAnomalyDetector,
    ClassifiedItem,
    DrowsinessDetector,
    Emission,
    FocusStateMachine,
    ObjectSuspicionClassifier,
)
from .event_log import EventLog
from .events import EventType, FocusStatus, ProctorEvent
from .perception import FaceDescriptor, LabeledDetection
from .report import Report, ReportSynthesizer, synthesize_session_id
from .scoring import Counts, compute_counts, compute_integrity_score

logger = logging.getLogger("proctor.session")

EventListener = Callable[[ProctorEvent], None]


@dataclass
class SampleResult:
    """Outcome of one sampling iteration"""
    timestamp_ms: int
    focus_status: FocusStatus
    faces_count: int
    items: List[ClassifiedItem] = field(default_factory=list)
    events: List[ProctorEvent] = field(default_factory=list)
    objects_checked: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {
            "timestamp": self.timestamp_ms,
            "focusStatus": self.focus_status.value,
            "facesCount": self.faces_count,
            "objectsChecked": self.objects_checked,
            "items": [
                {**item.detection.to_dict(), "category": item.category.value}
                for item in self.items
            ],
            "events": [e.to_dict() for e in self.events],
        }


class ProctoringSession:
    """
    One bounded monitoring interval with isolated detector state.

    All mutation happens inside process_sample / process_audio / add_event,
    which must be called from a single execution context (the sampler's
    event loop). The event sink is offered each event best-effort and can
    never fail the emission path.
    """

    def __init__(
        self,
        candidate_name: str = "",
        config: Optional[ProctorConfig] = None,
        event_sink=None,
        clock: Callable[[], float] = time.time,
    ):
        self.candidate_name = candidate_name
        self.config = config or ProctorConfig()
        self.event_sink = event_sink
        self._clock = clock

        self.focus = FocusStateMachine(self.config)
        self.drowsiness = DrowsinessDetector(self.config)
        self.objects = ObjectSuspicionClassifier(self.config)
        self.audio = AudioAnomalyDetector(self.config)
        self.event_log = EventLog(self.config.EVENT_LOG_CAPACITY)
        self.synthesizer = ReportSynthesizer(self.config)

        self._listeners: List[EventListener] = []
        self._started_at_ms: Optional[int] = None
        self._stopped_at_ms: Optional[int] = None
        self._server_session_id: Optional[str] = None
        self._report_id: Optional[str] = None
        self._running = False
        self._id_ms: Optional[int] = None
        self._id_seq: Dict[str, int] = {}

    # ──────────────────────────────────────────────────────
    # Lifecycle
    # ──────────────────────────────────────────────────────

    def now_ms(self) -> int:
        return int(self._clock() * 1000)

    @property
    def is_running(self) -> bool:
        return self._running

    @property
    def started_at_ms(self) -> Optional[int]:
        return self._started_at_ms

    @property
    def session_id(self) -> Optional[str]:
        """Server-issued id, if the bootstrap collaborator supplied one"""
        return self._server_session_id

    def start(self, session_id: Optional[str] = None, now_ms: Optional[int] = None) -> int:
        """Reset all detector state and set the timing baseline. Returns startedAtMs."""
        self.focus.reset()
        self.drowsiness.reset()
        self.objects.reset()
        self.audio.reset()
        self.event_log.clear()
        self._id_ms = None
        self._id_seq = {}
        self._report_id = None
        self._stopped_at_ms = None
        self._server_session_id = session_id
        self._started_at_ms = self.now_ms() if now_ms is None else now_ms
        self._running = True
        logger.info(
            "Session started for %r (session_id=%s, started_at=%d)",
            self.candidate_name, session_id, self._started_at_ms,
        )
        return self._started_at_ms

    def attach_session_id(self, session_id: str) -> None:
        """Late-arriving server id from a non-blocking bootstrap"""
        if self._report_id is not None:
            logger.info("Ignoring session id %s: report identity already fixed as %s",
                        session_id, self._report_id)
            return
        self._server_session_id = session_id
        logger.debug("Attached server session id %s", session_id)

    def stop(self, now_ms: Optional[int] = None) -> Optional[Report]:
        """Freeze the end instant and return the final report"""
        if self._started_at_ms is None:
            return None
        if self._running:
            self._stopped_at_ms = self.now_ms() if now_ms is None else now_ms
            self._running = False
            logger.info("Session stopped (%d events logged)", len(self.event_log))
        return self.generate_report()

    def add_listener(self, listener: EventListener) -> None:
        self._listeners.append(listener)

    def remove_listener(self, listener: EventListener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    # ──────────────────────────────────────────────────────
    # Per-sample processing
    # ──────────────────────────────────────────────────────

    def process_sample(
        self,
        faces: Sequence[FaceDescriptor],
        detections: Optional[Sequence[LabeledDetection]] = None,
        now_ms: Optional[int] = None,
    ) -> Optional[SampleResult]:
        """
        Run one iteration. ``detections`` is None when object detection did
        not run this iteration (it has its own, slower cadence).
        """
        if not self._running:
            logger.debug("Sample dropped: session not running")
            return None
        now = self.now_ms() if now_ms is None else now_ms
        faces = list(faces or [])

        emissions: List[Emission] = []
        emissions += self.focus.update(faces, now)
        emissions += self.drowsiness.update(faces, now)
        if detections is not None:
            emissions += self.objects.update(detections, now)

        events = [self.add_event(kind, message, now) for kind, message in emissions]
        return SampleResult(
            timestamp_ms=now,
            focus_status=self.focus.status,
            faces_count=self.focus.faces_count,
            items=list(self.objects.items),
            events=events,
            objects_checked=detections is not None,
        )

    def process_audio(self, level: Optional[float], now_ms: Optional[int] = None) -> List[ProctorEvent]:
        if not self._running:
            return []
        now = self.now_ms() if now_ms is None else now_ms
        return [self.add_event(kind, message, now) for kind, message in self.audio.update(level, now)]

    def add_note(self, message: str, now_ms: Optional[int] = None) -> ProctorEvent:
        return self.add_event(EventType.INFO, message, now_ms)

    # ──────────────────────────────────────────────────────
    # Event log
    # ──────────────────────────────────────────────────────

    def add_event(self, event_type: EventType, message: str, now_ms: Optional[int] = None) -> ProctorEvent:
        now = self.now_ms() if now_ms is None else now_ms
        start = self._started_at_ms if self._started_at_ms is not None else now
        event = ProctorEvent(
            id=self._next_event_id(event_type, now),
            type=event_type,
            message=message,
            at_ms=max(0, now - start),
        )
        self.event_log.add(event)
        logger.info("Event %s at +%dms: %s", event.type.value, event.at_ms, message)

        self._mirror(event)
        for listener in list(self._listeners):
            try:
                listener(event)
            except Exception as exc:
                logger.warning("Event listener failed: %s", exc)
        return event

    def clear_events(self) -> None:
        self.event_log.clear()
        logger.info("Event log cleared")

    @property
    def events(self) -> List[ProctorEvent]:
        """Newest first"""
        return self.event_log.newest_first()

    def compute_counts(self) -> Counts:
        return compute_counts(self.event_log)

    @property
    def integrity_score(self) -> int:
        return compute_integrity_score(
            self.compute_counts(), self.config.SCORE_WEIGHTS, self.config.SCORE_MAX
        )

    # ──────────────────────────────────────────────────────
    # Reporting
    # ──────────────────────────────────────────────────────

    @property
    def report_id(self) -> Optional[str]:
        if self._started_at_ms is None:
            return None
        if self._report_id is None:
            self._report_id = self._server_session_id or synthesize_session_id(
                self._started_at_ms, self.candidate_name
            )
        return self._report_id

    def generate_report(self, now_ms: Optional[int] = None) -> Optional[Report]:
        """
        Snapshot report. While running, the end instant is the synthesis
        clock; after stop() it is pinned to the stop instant.
        """
        if self._started_at_ms is None:
            return None
        if self._stopped_at_ms is not None:
            ended = self._stopped_at_ms
        else:
            ended = self.now_ms() if now_ms is None else now_ms
        return self.synthesizer.build(
            report_id=self.report_id,
            candidate_name=self.candidate_name,
            started_at_ms=self._started_at_ms,
            ended_at_ms=ended,
            events_oldest_first=self.event_log.oldest_first(),
        )

    # ──────────────────────────────────────────────────────
    # Helpers
    # ──────────────────────────────────────────────────────

    def _next_event_id(self, event_type: EventType, now_ms: int) -> str:
        base = f"{now_ms}-{event_type.value}"
        if now_ms != self._id_ms:
            self._id_ms = now_ms
            self._id_seq = {}
        seq = self._id_seq.get(base, 0) + 1
        self._id_seq[base] = seq
        return base if seq == 1 else f"{base}-{seq}"

    def _mirror(self, event: ProctorEvent) -> None:
        if self.event_sink is None or not self._server_session_id:
            return
        try:
            self.event_sink.offer(self._server_session_id, event)
        except Exception as exc:
            logger.debug("Event sink rejected %s: %s", event.id, exc)
