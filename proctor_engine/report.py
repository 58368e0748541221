"""
Report synthesis for a finished (or in-progress) interview session.
"""

import re
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Sequence

from .config import ProctorConfig
from .events import ProctorEvent
from .scoring import Counts, compute_counts, compute_integrity_score

_WHITESPACE = re.compile(r"\s+")


def normalize_candidate_name(name: Optional[str], default: str = "") -> str:
    """'Jane  Doe' -> 'jane_doe'"""
    return _WHITESPACE.sub("_", name or default).lower()


def synthesize_session_id(started_at_ms: int, candidate_name: str) -> str:
    return f"{started_at_ms}-{normalize_candidate_name(candidate_name)}"


def epoch_ms_to_iso(epoch_ms: int) -> str:
    """ISO-8601 UTC with millisecond precision and a trailing Z"""
    dt = datetime.fromtimestamp(epoch_ms / 1000.0, tz=timezone.utc)
    return dt.strftime("%Y-%m-%dT%H:%M:%S.") + f"{dt.microsecond // 1000:03d}Z"


@dataclass(frozen=True)
class Report:
    id: str
    candidate_name: str
    started_at: str
    ended_at: str
    duration_ms: int
    events: List[ProctorEvent] = field(default_factory=list)
    counts: Counts = field(default_factory=Counts)
    integrity_score: int = 100

    def to_dict(self) -> Dict[str, Any]:
        """JSON-serializable shape handed to the report sink"""
        return {
            "id": self.id,
            "candidateName": self.candidate_name,
            "startedAt": self.started_at,
            "endedAt": self.ended_at,
            "durationMs": self.duration_ms,
            "events": [e.to_dict() for e in self.events],
            "counts": self.counts.to_dict(),
            "integrityScore": self.integrity_score,
        }


class ReportSynthesizer:
    """
    Builds Report records. Pure given its inputs: the same events and timing
    always yield the same report.
    """

    def __init__(self, config: Optional[ProctorConfig] = None):
        self.config = config or ProctorConfig()

    def build(
        self,
        *,
        report_id: str,
        candidate_name: str,
        started_at_ms: int,
        ended_at_ms: int,
        events_oldest_first: Sequence[ProctorEvent],
    ) -> Report:
        events = list(events_oldest_first)
        counts = compute_counts(events)
        return Report(
            id=report_id,
            candidate_name=candidate_name,
            started_at=epoch_ms_to_iso(started_at_ms),
            ended_at=epoch_ms_to_iso(ended_at_ms),
            duration_ms=max(0, ended_at_ms - started_at_ms),
            events=events,
            counts=counts,
            integrity_score=compute_integrity_score(
                counts, self.config.SCORE_WEIGHTS, self.config.SCORE_MAX
            ),
        )
