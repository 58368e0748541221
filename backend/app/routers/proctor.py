"""
Proctor Router
REST endpoints for interview sessions, mirrored events and stored reports.
"""

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from app.core.database import get_db
from app.models.schemas import (
    EventSchema,
    EventsResponse,
    ListReportsResponse,
    OkResponse,
    ReportSchema,
    ReportSummary,
    SaveReportRequest,
    SaveReportResponse,
    SessionCreate,
    SessionCreated,
)
from app.services import report_store

router = APIRouter(prefix="/api/proctor", tags=["Proctor"])


# ══════════════════════════════════════════════════════════
# Sessions
# ══════════════════════════════════════════════════════════

@router.post("/session", response_model=SessionCreated)
def create_session(
    body: Optional[SessionCreate] = None,
    db: Session = Depends(get_db),
):
    """Create an empty report placeholder and return its id"""
    body = body or SessionCreate()
    try:
        session_id = report_store.create_session(db, body.candidate_name, body.started_at)
    except Exception as e:
        raise HTTPException(500, f"Failed to create session: {str(e)}")
    return {"id": session_id}


@router.post("/session/{session_id}/event", response_model=OkResponse)
def append_event(
    session_id: str,
    event: EventSchema,
    db: Session = Depends(get_db),
):
    """Append one event to a session's stored log"""
    if not session_id or not event.id:
        raise HTTPException(400, "Missing id or event")
    try:
        stored = report_store.append_event(
            db, session_id, event.model_dump(by_alias=True, mode="json")
        )
    except Exception as e:
        raise HTTPException(500, f"Failed to append event: {str(e)}")
    if not stored:
        raise HTTPException(404, "Report not found")
    return {"ok": True}


# ══════════════════════════════════════════════════════════
# Reports
# ══════════════════════════════════════════════════════════

@router.post("/report", response_model=SaveReportResponse)
def save_report(body: SaveReportRequest, db: Session = Depends(get_db)):
    """Insert or overwrite a final report"""
    report: Optional[ReportSchema] = body.report
    if report is None or not report.id:
        raise HTTPException(400, "Invalid report payload")
    try:
        report_id = report_store.save_report(db, report.model_dump(by_alias=True, mode="json"))
    except Exception as e:
        raise HTTPException(500, f"Failed to save report: {str(e)}")
    return {"ok": True, "id": report_id}


@router.get("/reports", response_model=ListReportsResponse)
def list_reports(db: Session = Depends(get_db)):
    return {"reports": report_store.list_reports(db)}


@router.get("/reports/{report_id}", response_model=ReportSchema)
def get_report(report_id: str, db: Session = Depends(get_db)):
    report = report_store.get_report(db, report_id)
    if report is None:
        raise HTTPException(404, "Report not found")
    return report


@router.get("/reports/{report_id}/events", response_model=EventsResponse)
def get_report_events(
    report_id: str,
    type: Optional[str] = Query(default=None),
    db: Session = Depends(get_db),
):
    """Events of a report, optionally only one type"""
    events = report_store.get_events(db, report_id, type)
    if events is None:
        raise HTTPException(404, "Report not found")
    return {"events": events}


@router.get("/reports/{report_id}/summary", response_model=ReportSummary)
def get_report_summary(report_id: str, db: Session = Depends(get_db)):
    """Stored counts plus per-type focus and item detection tallies"""
    summary = report_store.get_summary(db, report_id)
    if summary is None:
        raise HTTPException(404, "Report not found")
    return summary
