"""
Attendance endpoints — kiosk check-in, recognizer health check, ledger views.

- POST /mark-attendance, POST /check-face-service, GET /recent and
  GET /health are public (the kiosk has no login).
- History, stats and the audit log require an admin token.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone

from fastapi import APIRouter, Depends, Query
from sqlalchemy import func, select, text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from facecheck.api.v1.deps import get_current_admin, get_db
from facecheck.core.config import settings
from facecheck.models.admin import AdminAccount
from facecheck.models.attendance import AttendanceAuditEntry, AttendanceRecord
from facecheck.models.employee import Employee
from facecheck.schemas.attendance import (AuditEntryRead, FaceServiceStatus,
                                          HealthResponse, HistoryItem,
                                          MarkAttendanceRequest,
                                          MarkAttendanceResponse, RecentItem,
                                          StatsResponse)
from facecheck.schemas.common import Envelope
from facecheck.services import settings_store
from facecheck.services.attendance import mark_attendance as run_mark_attendance
from facecheck.services.attendance import parse_offset
from facecheck.services.recognizer import (RecognizerClient, RecognizerError,
                                           get_recognizer)

router = APIRouter(tags=["attendance"])
logger = logging.getLogger(__name__)


async def _local_today(db: AsyncSession) -> str:
    tz = parse_offset(await settings_store.get(db, settings_store.TIMEZONE_OFFSET))
    return datetime.now(timezone.utc).astimezone(tz).strftime("%Y-%m-%d")


# ── Kiosk ───────────────────────────────────────────────────────────
@router.post("/mark-attendance", response_model=MarkAttendanceResponse)
async def mark_attendance(
    body: MarkAttendanceRequest,
    db: AsyncSession = Depends(get_db),
    recognizer: RecognizerClient = Depends(get_recognizer),
) -> MarkAttendanceResponse:
    """Recognize the face in ``image`` and record today's check-in."""
    return await run_mark_attendance(db, recognizer, body.image)


@router.post("/check-face-service", response_model=Envelope[FaceServiceStatus])
async def check_face_service(
    recognizer: RecognizerClient = Depends(get_recognizer),
) -> Envelope[FaceServiceStatus]:
    try:
        healthy = await recognizer.health()
    except RecognizerError as exc:
        logger.error("Face service health check failed: %s", exc)
        if settings.KIOSK_DEGRADED_MODE:
            return Envelope(
                data=FaceServiceStatus(
                    status="healthy", note="Health check bypassed in kiosk degraded mode"
                )
            )
        return Envelope(success=False, message=exc.message, data=FaceServiceStatus(status="offline"))

    return Envelope(data=FaceServiceStatus(status="healthy" if healthy else "unhealthy"))


@router.get("/recent", response_model=Envelope[list[RecentItem]])
async def recent_attendance(
    limit: int = Query(default=10, ge=1, le=100),
    db: AsyncSession = Depends(get_db),
) -> Envelope[list[RecentItem]]:
    """Today's latest check-ins for the kiosk feed."""
    today = await _local_today(db)
    result = await db.execute(
        select(AttendanceRecord, Employee.full_name)
        .outerjoin(Employee, AttendanceRecord.employee_id == Employee.id)
        .where(AttendanceRecord.date == today)
        .order_by(AttendanceRecord.check_in_time.desc())
        .limit(limit)
    )
    return Envelope(
        data=[
            RecentItem(
                id=rec.id,
                employee_name=name or "Unknown",
                check_in_time=rec.check_in_time,
                status=rec.status,
                confidence_score=rec.confidence_score,
            )
            for rec, name in result.all()
        ]
    )


# ── Admin views ─────────────────────────────────────────────────────
@router.get("/history", response_model=Envelope[list[HistoryItem]])
async def attendance_history(
    start_date: str | None = Query(default=None, description="YYYY-MM-DD"),
    end_date: str | None = Query(default=None, description="YYYY-MM-DD"),
    employee_id: str | None = Query(default=None, description="Employee id or 'all'"),
    db: AsyncSession = Depends(get_db),
    _admin: AdminAccount = Depends(get_current_admin),
) -> Envelope[list[HistoryItem]]:
    """Attendance records, newest first. ``start_date`` alone selects one day."""
    stmt = select(AttendanceRecord, Employee).outerjoin(
        Employee, AttendanceRecord.employee_id == Employee.id
    )
    if start_date and end_date:
        stmt = stmt.where(AttendanceRecord.date >= start_date, AttendanceRecord.date <= end_date)
    elif start_date:
        stmt = stmt.where(AttendanceRecord.date == start_date)

    if employee_id and employee_id != "all":
        if not employee_id.isdigit():
            return Envelope(data=[])
        stmt = stmt.where(AttendanceRecord.employee_id == int(employee_id))

    stmt = stmt.order_by(AttendanceRecord.date.desc(), AttendanceRecord.check_in_time.desc())
    result = await db.execute(stmt)

    return Envelope(
        data=[
            HistoryItem(
                id=rec.id,
                employee_id=rec.employee_id,
                employee_name=emp.full_name if emp else "Unknown",
                employee_code=(emp.employee_code if emp else None) or "N/A",
                department=(emp.department if emp else None) or "N/A",
                date=rec.date,
                check_in=rec.check_in_time.isoformat() if rec.check_in_time else None,
                status=rec.status,
                confidence=rec.confidence_score,
            )
            for rec, emp in result.all()
        ]
    )


@router.get("/stats", response_model=StatsResponse)
async def dashboard_stats(
    db: AsyncSession = Depends(get_db),
    _admin: AdminAccount = Depends(get_current_admin),
) -> StatsResponse:
    """Today's headcount: present, late, absent out of all active employees."""
    today = await _local_today(db)

    total = (
        await db.execute(select(func.count(Employee.id)).where(Employee.status == "active"))
    ).scalar_one()

    rows = await db.execute(
        select(AttendanceRecord.status, func.count(AttendanceRecord.id))
        .where(AttendanceRecord.date == today)
        .group_by(AttendanceRecord.status)
    )
    counts = dict(rows.all())
    present = counts.get("present", 0)
    late = counts.get("late", 0)

    return StatsResponse(
        total_employees=total,
        present_today=present,
        late_today=late,
        absent_today=max(0, total - present - late),
    )


@router.get("/logs", response_model=Envelope[list[AuditEntryRead]])
async def audit_log(
    success: bool | None = None,
    limit: int = Query(default=50, ge=1, le=500),
    db: AsyncSession = Depends(get_db),
    _admin: AdminAccount = Depends(get_current_admin),
) -> Envelope[list[AuditEntryRead]]:
    """Newest recognition attempts first."""
    stmt = select(AttendanceAuditEntry).order_by(
        AttendanceAuditEntry.created_at.desc(), AttendanceAuditEntry.id.desc()
    )
    if success is not None:
        stmt = stmt.where(AttendanceAuditEntry.success == success)
    result = await db.execute(stmt.limit(limit))
    return Envelope(
        data=[AuditEntryRead.model_validate(e) for e in result.scalars().all()]
    )


# ── Health ──────────────────────────────────────────────────────────
@router.get("/health", response_model=HealthResponse)
async def health(
    db: AsyncSession = Depends(get_db),
    recognizer: RecognizerClient = Depends(get_recognizer),
) -> HealthResponse:
    """Check database and recognizer reachability."""
    result = HealthResponse(db=False, recognizer=False)
    try:
        await db.execute(text("SELECT 1"))
        result.db = True
    except (SQLAlchemyError, OSError) as exc:
        logger.warning("Health: database unreachable: %s", exc)

    try:
        result.recognizer = await recognizer.health()
    except RecognizerError as exc:
        logger.warning("Health: recognizer unreachable: %s", exc)

    result.success = result.db and result.recognizer
    return result
