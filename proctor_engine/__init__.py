"""
Interview Proctoring Engine
Turns per-sample face/object/audio perception into debounced events,
counts, an integrity score and a session report.

Usage (driving a session by hand, e.g. from recorded perception):
    from proctor_engine import ProctoringSession, FaceDescriptor

    session = ProctoringSession("Jane Doe")
    session.start()
    session.process_sample([FaceDescriptor(landmarks=[(100, 100), (160, 100), (130, 130)])])
    report = session.stop()
    print(report.to_dict())

Usage (live, with a camera and the MediaPipe/YOLO adapter):
    python -m proctor_engine --candidate "Jane Doe" --server http://localhost:8000
"""

from .config import ProctorConfig
from .events import EventType, FocusStatus, ProctorEvent
from .event_log import EventLog
from .perception import FaceDescriptor, LabeledDetection, PerceptionAdapter, SessionPerception
from .scoring import Counts, compute_counts, compute_integrity_score
from .report import Report, ReportSynthesizer
from .session import ProctoringSession, SampleResult
from .sampler import LatestFrame, Sampler

__all__ = [
    "ProctorConfig",
    "EventType",
    "FocusStatus",
    "ProctorEvent",
    "EventLog",
    "FaceDescriptor",
    "LabeledDetection",
    "PerceptionAdapter",
    "SessionPerception",
    "Counts",
    "compute_counts",
    "compute_integrity_score",
    "Report",
    "ReportSynthesizer",
    "ProctoringSession",
    "SampleResult",
    "LatestFrame",
    "Sampler",
]
