"""
Interview Proctor Report Store
===============================
SQLAlchemy persistence for session placeholders, mirrored events and final
reports. Every function takes the caller's ORM session so routers can use the
request-scoped ``get_db`` dependency and background writers can open their own
``SessionLocal()``.
"""

import logging
import time
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from sqlalchemy.orm import Session as SASession

from app.models.report import ProctorReportRecord, empty_counts
from proctor_engine.events import EventType
from proctor_engine.report import normalize_candidate_name
from proctor_engine.scoring import Counts, compute_integrity_score

logger = logging.getLogger("proctor.store")


def _now_iso() -> str:
    now = datetime.now(timezone.utc)
    return now.strftime("%Y-%m-%dT%H:%M:%S.") + f"{now.microsecond // 1000:03d}Z"


# ─────────────────────────────────────────────────────────
# Session lifecycle
# ─────────────────────────────────────────────────────────

def create_session(
    db: SASession,
    candidate_name: Optional[str] = None,
    started_at: Optional[str] = None,
) -> str:
    """
    Create an empty report placeholder and return its id
    (``"<now ms>-<normalized name>"``, ``candidate`` when no name is given).
    """
    session_id = f"{int(time.time() * 1000)}-{normalize_candidate_name(candidate_name, 'candidate')}"
    record = db.get(ProctorReportRecord, session_id)
    if record is None:
        record = ProctorReportRecord(id=session_id)
        db.add(record)
    record.candidate_name = candidate_name or ""
    record.started_at = started_at or _now_iso()
    record.ended_at = ""
    record.duration_ms = 0
    record.events = []
    record.counts = empty_counts()
    record.integrity_score = 100
    try:
        db.commit()
    except Exception as exc:
        logger.error("Failed to create session %s: %s", session_id, exc)
        db.rollback()
        raise
    logger.info("Session %s created (candidate=%r)", session_id, candidate_name or "")
    return session_id


def append_event(db: SASession, session_id: str, event: Dict[str, Any]) -> bool:
    """Append one event to a session's log. False when the session is unknown."""
    record = db.get(ProctorReportRecord, session_id)
    if record is None:
        return False
    # JSON columns only detect reassignment, not in-place mutation
    record.events = list(record.events or []) + [event]
    try:
        db.commit()
    except Exception as exc:
        logger.error("Failed to append event to %s: %s", session_id, exc)
        db.rollback()
        raise
    logger.debug("Event %s appended to %s", event.get("id"), session_id)
    return True


# ─────────────────────────────────────────────────────────
# Reports
# ─────────────────────────────────────────────────────────

def save_report(db: SASession, report: Dict[str, Any]) -> str:
    """Insert or overwrite the report with ``report['id']``"""
    report_id = report["id"]
    record = db.get(ProctorReportRecord, report_id)
    if record is None:
        record = ProctorReportRecord(id=report_id)
        db.add(record)
    record.candidate_name = report.get("candidateName") or ""
    record.started_at = report.get("startedAt") or ""
    record.ended_at = report.get("endedAt") or ""
    record.duration_ms = int(report.get("durationMs") or 0)
    record.events = list(report.get("events") or [])
    record.counts = dict(report.get("counts") or empty_counts())
    # the score is always derived from the stored counts, never taken as sent
    record.integrity_score = compute_integrity_score(Counts.from_dict(record.counts))
    try:
        db.commit()
    except Exception as exc:
        logger.error("Failed to save report %s: %s", report_id, exc)
        db.rollback()
        raise
    logger.info("Report %s saved (score=%s, events=%d)",
                report_id, record.integrity_score, len(record.events))
    return report_id


def list_reports(db: SASession) -> List[Dict[str, Any]]:
    """Headline fields of every report, newest ``startedAt`` first"""
    rows = (
        db.query(ProctorReportRecord)
        .order_by(ProctorReportRecord.started_at.desc())
        .all()
    )
    return [
        {
            "id": r.id,
            "candidateName": r.candidate_name or "",
            "startedAt": r.started_at,
            "endedAt": r.ended_at or "",
            "integrityScore": r.integrity_score if r.integrity_score is not None else 100,
        }
        for r in rows
    ]


def get_report(db: SASession, report_id: str) -> Optional[Dict[str, Any]]:
    record = db.get(ProctorReportRecord, report_id)
    return record.to_dict() if record else None


def get_events(
    db: SASession,
    report_id: str,
    event_type: Optional[str] = None,
) -> Optional[List[Dict[str, Any]]]:
    report = get_report(db, report_id)
    if report is None:
        return None
    events = report["events"]
    if event_type:
        events = [e for e in events if e.get("type") == event_type]
    return events


def get_summary(db: SASession, report_id: str) -> Optional[Dict[str, Any]]:
    """Stored counts plus per-type tallies recomputed from the event log"""
    report = get_report(db, report_id)
    if report is None:
        return None
    events = report["events"]

    def tally(event_type: EventType) -> int:
        return sum(1 for e in events if e.get("type") == event_type.value)

    return {
        "id": report["id"],
        "candidateName": report["candidateName"],
        "startedAt": report["startedAt"],
        "endedAt": report["endedAt"],
        "durationMs": report["durationMs"],
        "counts": report["counts"],
        "focusEvents": tally(EventType.LOOKING_AWAY),
        "absenceEvents": tally(EventType.NO_FACE),
        "phoneDetections": tally(EventType.PHONE_DETECTED),
        "bookDetections": tally(EventType.BOOK_DETECTED),
        "deviceDetections": tally(EventType.DEVICE_DETECTED),
        "events": events,
    }
