"""Pydantic schemas for the attendance workflow, ledger and reports."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel


# ── Mark attendance ─────────────────────────────────────────────────
class MarkAttendanceRequest(BaseModel):
    # Validated by the workflow so a missing image gets the kiosk message
    image: str | None = None


class AttendanceRead(BaseModel):
    id: int
    employee_id: int
    date: str
    check_in_time: datetime
    status: str
    confidence_score: float | None
    source: str

    model_config = {"from_attributes": True}


class MarkAttendanceResponse(BaseModel):
    success: bool
    message: str
    employee_name: str | None = None
    attendance: AttendanceRead | None = None
    error: str | None = None
    degraded: bool = False
    details: str | None = None


# ── Ledger views ────────────────────────────────────────────────────
class HistoryItem(BaseModel):
    id: int
    employee_id: int
    employee_name: str
    employee_code: str
    department: str
    date: str
    check_in: str | None
    status: str
    confidence: float | None


class RecentItem(BaseModel):
    id: int
    employee_name: str
    check_in_time: datetime | None
    status: str
    confidence_score: float | None


class StatsResponse(BaseModel):
    success: bool = True
    total_employees: int
    present_today: int
    late_today: int
    absent_today: int


class AuditEntryRead(BaseModel):
    id: int
    employee_id: int | None
    action: str
    recognizer_response: dict | None
    confidence_score: float | None
    success: bool
    error_message: str | None
    created_at: datetime | None

    model_config = {"from_attributes": True}


# ── Health ──────────────────────────────────────────────────────────
class FaceServiceStatus(BaseModel):
    status: str  # healthy | unhealthy | offline
    note: str | None = None


class HealthResponse(BaseModel):
    success: bool = True
    db: bool
    recognizer: bool
