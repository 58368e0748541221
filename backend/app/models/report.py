"""
Proctoring Report Model
One row per interview session: created as a placeholder when the session
starts, appended to as events are mirrored, overwritten by the final report.
"""

from sqlalchemy import Column, Integer, String, DateTime, JSON
from datetime import datetime
from app.core.database import Base


def empty_counts() -> dict:
    return {
        "focusLost": 0,
        "absenceEvents": 0,
        "multipleFaces": 0,
        "phoneDetections": 0,
        "bookDetections": 0,
        "deviceDetections": 0,
    }


class ProctorReportRecord(Base):
    __tablename__ = "proctor_reports"

    id = Column(String(255), primary_key=True, index=True)
    candidate_name = Column(String(255), default="")
    started_at = Column(String(40), nullable=False, index=True)  # ISO timestamp
    ended_at = Column(String(40), default="")
    duration_ms = Column(Integer, default=0)
    events = Column(JSON, default=list)
    counts = Column(JSON, default=empty_counts)
    integrity_score = Column(Integer, default=100)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "candidateName": self.candidate_name or "",
            "startedAt": self.started_at,
            "endedAt": self.ended_at or "",
            "durationMs": self.duration_ms or 0,
            "events": list(self.events or []),
            "counts": dict(self.counts or empty_counts()),
            "integrityScore": self.integrity_score if self.integrity_score is not None else 100,
        }
