"""
Pydantic Schemas for API request/response validation
Field names are snake_case in Python and camelCase on the wire.
"""

from pydantic import BaseModel, Field
from pydantic.alias_generators import to_camel
from typing import Optional, List, Literal

from proctor_engine.events import EventType


class CamelModel(BaseModel):
    class Config:
        alias_generator = to_camel
        populate_by_name = True


# ── Event Schemas ────────────────────────────────────────
class EventSchema(CamelModel):
    id: str = ""
    type: EventType
    message: str = ""
    at_ms: int = Field(default=0, ge=0)


class CountsSchema(CamelModel):
    focus_lost: int = 0
    absence_events: int = 0
    multiple_faces: int = 0
    phone_detections: int = 0
    book_detections: int = 0
    device_detections: int = 0


# ── Report Schemas ───────────────────────────────────────
class ReportSchema(CamelModel):
    id: str = ""
    candidate_name: str = ""
    started_at: str
    ended_at: str = ""
    duration_ms: int = 0
    events: List[EventSchema] = []
    counts: CountsSchema = CountsSchema()
    integrity_score: int = Field(default=100, ge=0, le=100)


class SaveReportRequest(CamelModel):
    report: Optional[ReportSchema] = None


class SaveReportResponse(CamelModel):
    ok: Literal[True] = True
    id: str


class ReportListItem(CamelModel):
    id: str
    candidate_name: str
    started_at: str
    ended_at: str
    integrity_score: int


class ListReportsResponse(CamelModel):
    reports: List[ReportListItem]


class EventsResponse(CamelModel):
    events: List[EventSchema]


class ReportSummary(CamelModel):
    id: str
    candidate_name: str
    started_at: str
    ended_at: str
    duration_ms: int
    counts: CountsSchema
    focus_events: int
    absence_events: int
    phone_detections: int
    book_detections: int
    device_detections: int
    events: List[EventSchema]


# ── Session Schemas ──────────────────────────────────────
class SessionCreate(CamelModel):
    candidate_name: Optional[str] = None
    started_at: Optional[str] = None


class SessionCreated(CamelModel):
    id: str


class OkResponse(CamelModel):
    ok: bool = True
