"""
Attendance workflow — turn one camera frame into at most one check-in.

    image → recognizer → confidence threshold → employee → once-per-day
          → on-time / late → record + audit entry

Datastore failures after recognition follow ``KIOSK_DEGRADED_MODE``:
strict mode surfaces them as ``storage_unavailable`` errors, degraded mode
answers optimistically so the kiosk keeps greeting people. The
(employee_id, date) unique constraint is the final word on duplicates.
"""

from __future__ import annotations

import asyncio
import base64
import binascii
import logging
import re
from collections.abc import Awaitable
from datetime import datetime, timedelta, timezone, tzinfo
from typing import TypeVar

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from facecheck.core.config import settings
from facecheck.core.exceptions import AppError, ErrorKind
from facecheck.db.session import safe_rollback
from facecheck.models.attendance import AttendanceAuditEntry, AttendanceRecord
from facecheck.models.employee import Employee
from facecheck.schemas.attendance import AttendanceRead, MarkAttendanceResponse
from facecheck.services import settings_store
from facecheck.services.recognizer import RecognizerClient, RecognizerError

logger = logging.getLogger(__name__)

T = TypeVar("T")

STATUS_PRESENT = "present"
STATUS_LATE = "late"
SOURCE_FACE = "face_recognition"

_DATA_URL_RE = re.compile(r"^data:image/[\w.+-]+;base64,")
_WHITESPACE_RE = re.compile(r"\s+")
_STORAGE_ERRORS = (SQLAlchemyError, asyncio.TimeoutError, OSError)


# ── Pure helpers ────────────────────────────────────────────────────
def decode_image(payload: str | None) -> bytes:
    """Decode a base64 image, with or without a ``data:image/...`` prefix."""
    if not payload or not payload.strip():
        raise AppError(ErrorKind.INVALID_INPUT, "No image provided")
    data = _WHITESPACE_RE.sub("", _DATA_URL_RE.sub("", payload.strip()))
    try:
        decoded = base64.b64decode(data, validate=True)
    except (binascii.Error, ValueError):
        raise AppError(ErrorKind.INVALID_INPUT, "Image is not valid base64") from None
    if not decoded:
        raise AppError(ErrorKind.INVALID_INPUT, "No image provided")
    return decoded


def parse_offset(tz_offset: str) -> tzinfo:
    """``"+05:30"`` → fixed-offset tzinfo. Malformed values mean UTC."""
    try:
        sign = 1 if tz_offset[0] == "+" else -1
        hours, _, minutes = tz_offset[1:].partition(":")
        delta = timedelta(hours=int(hours), minutes=int(minutes or 0))
        return timezone(sign * delta)
    except (IndexError, ValueError):
        logger.warning("Invalid timezone offset %r; using UTC", tz_offset)
        return timezone.utc


def _parse_hhmm(value: str) -> tuple[int, int]:
    hour, _, minute = value.partition(":")
    h, m = int(hour), int(minute)
    if not (0 <= h < 24 and 0 <= m < 60):
        raise ValueError(value)
    return h, m


def late_cutoff(local_now: datetime, work_start: str, late_minutes: int) -> datetime:
    """Work start plus the grace period, on *local_now*'s calendar day."""
    try:
        hour, minute = _parse_hhmm(work_start)
    except ValueError:
        default = settings_store.DEFAULTS[settings_store.WORK_START_TIME]
        logger.warning("Invalid work start %r; using %s", work_start, default)
        hour, minute = _parse_hhmm(default)
    start = local_now.replace(hour=hour, minute=minute, second=0, microsecond=0)
    return start + timedelta(minutes=max(0, late_minutes))


def classify_check_in(local_now: datetime, work_start: str, late_minutes: int) -> str:
    """``late`` only when strictly after the cutoff; the cutoff itself is on time."""
    if local_now > late_cutoff(local_now, work_start, late_minutes):
        return STATUS_LATE
    return STATUS_PRESENT


# ── Datastore helpers ───────────────────────────────────────────────
async def _bounded(aw: Awaitable[T]) -> T:
    return await asyncio.wait_for(aw, timeout=settings.DB_QUERY_TIMEOUT_SECONDS)


async def record_audit(db: AsyncSession, **fields: object) -> None:
    """Append an audit entry. Failures are logged, never raised."""
    try:
        db.add(AttendanceAuditEntry(**fields))
        await db.commit()
    except _STORAGE_ERRORS as exc:
        await safe_rollback(db)
        logger.warning("Could not save audit entry (%s): %s", fields.get("action"), exc)


async def find_active_employee(db: AsyncSession, face_identity: str) -> Employee | None:
    result = await _bounded(
        db.execute(
            select(Employee).where(
                Employee.face_identity == face_identity,
                Employee.status == "active",
            )
        )
    )
    return result.scalars().first()


async def find_record(db: AsyncSession, employee_id: int, date_str: str) -> AttendanceRecord | None:
    result = await _bounded(
        db.execute(
            select(AttendanceRecord).where(
                AttendanceRecord.employee_id == employee_id,
                AttendanceRecord.date == date_str,
            )
        )
    )
    return result.scalar_one_or_none()


def _already_marked(name: str, record: AttendanceRead) -> MarkAttendanceResponse:
    return MarkAttendanceResponse(
        success=False,
        message="Attendance already marked for today",
        employee_name=name,
        attendance=record,
        error=ErrorKind.DUPLICATE.value,
    )


def _save_failed(name: str, degraded: bool, exc: Exception) -> MarkAttendanceResponse:
    """Strict mode raises; degraded mode answers with a flagged unsaved reply."""
    logger.error("Could not save attendance for %s: %s", name, exc)
    message = f"Welcome {name}, but could not save record to database."
    if not degraded:
        raise AppError(ErrorKind.STORAGE_UNAVAILABLE, message) from exc
    return MarkAttendanceResponse(
        success=False,
        message=message,
        employee_name=name,
        error=ErrorKind.STORAGE_UNAVAILABLE.value,
        degraded=True,
        details="Database Write Failed",
    )


# ── Workflow ────────────────────────────────────────────────────────
async def mark_attendance(
    db: AsyncSession,
    recognizer: RecognizerClient,
    image: str | None,
    *,
    degraded: bool | None = None,
    now: datetime | None = None,
) -> MarkAttendanceResponse:
    """Run one check-in attempt end to end.

    Raises :class:`AppError` for invalid input, recognizer failures and, in
    strict mode, datastore failures. Every other outcome, including "not
    recognized" and "already marked", is a ``MarkAttendanceResponse``.
    """
    if degraded is None:
        degraded = settings.KIOSK_DEGRADED_MODE
    now = now or datetime.now(timezone.utc)

    image_bytes = decode_image(image)

    try:
        recognition = await recognizer.recognize(image_bytes)
    except RecognizerError as exc:
        raise AppError(
            ErrorKind.UPSTREAM_UNAVAILABLE, "Face recognition service failed"
        ) from exc

    threshold = await settings_store.get_float(
        db, settings_store.CONFIDENCE_THRESHOLD, 0.5
    )
    if not recognition.name or recognition.confidence < threshold:
        await record_audit(
            db,
            action="recognition_failed",
            recognizer_response=recognition.raw,
            confidence_score=recognition.confidence,
            success=False,
            error_message="Face not recognized or low confidence",
        )
        logger.info(
            "Recognition rejected: name=%r confidence=%.3f threshold=%.3f",
            recognition.name,
            recognition.confidence,
            threshold,
        )
        return MarkAttendanceResponse(
            success=False,
            message=f"Face not recognized. Confidence: {recognition.confidence * 100:.0f}%",
            error=ErrorKind.NOT_RECOGNIZED.value,
        )

    label = recognition.name

    # ── Resolve employee ────────────────────────────────────────────
    try:
        employee = await find_active_employee(db, label)
    except _STORAGE_ERRORS as exc:
        await safe_rollback(db)
        if not degraded:
            raise AppError(
                ErrorKind.STORAGE_UNAVAILABLE, "Attendance database is unavailable"
            ) from exc
        logger.error("Employee lookup failed for %r, answering offline: %s", label, exc)
        return MarkAttendanceResponse(
            success=True,
            message=f"Welcome, {label}! (Offline Mode)",
            employee_name=f"{label} (DB Offline)",
            error=ErrorKind.STORAGE_UNAVAILABLE.value,
            degraded=True,
            details="Face recognized, but database is unreachable. Attendance not saved.",
        )

    if employee is None:
        return MarkAttendanceResponse(
            success=False,
            message="Employee not found or inactive",
            error=ErrorKind.NOT_FOUND.value,
        )

    # Rollbacks expire ORM instances, so keep plain values from here on
    employee_id, employee_name = employee.id, employee.full_name

    # ── Once per day ────────────────────────────────────────────────
    tz = parse_offset(await settings_store.get(db, settings_store.TIMEZONE_OFFSET))
    local_now = now.astimezone(tz)
    today = local_now.strftime("%Y-%m-%d")

    try:
        existing = await find_record(db, employee_id, today)
    except _STORAGE_ERRORS as exc:
        await safe_rollback(db)
        if not degraded:
            raise AppError(
                ErrorKind.STORAGE_UNAVAILABLE, "Attendance database is unavailable"
            ) from exc
        logger.warning("Could not check existing attendance for %s: %s", employee_name, exc)
        existing = None

    if existing is not None:
        return _already_marked(employee_name, AttendanceRead.model_validate(existing))

    # ── On time or late ─────────────────────────────────────────────
    work_start = await settings_store.get(db, settings_store.WORK_START_TIME)
    late_minutes = await settings_store.get_int(
        db, settings_store.LATE_THRESHOLD_MINUTES, 15
    )
    status = classify_check_in(local_now, work_start, late_minutes)

    # ── Persist ─────────────────────────────────────────────────────
    record = AttendanceRecord(
        employee_id=employee_id,
        date=today,
        check_in_time=now,
        status=status,
        confidence_score=recognition.confidence,
        source=SOURCE_FACE,
    )
    db.add(record)
    try:
        await db.commit()
    except IntegrityError as exc:
        # A concurrent check-in for the same employee won the race
        await safe_rollback(db)
        try:
            winner = await find_record(db, employee_id, today)
        except _STORAGE_ERRORS as reread_exc:
            await safe_rollback(db)
            return _save_failed(employee_name, degraded, reread_exc)
        if winner is not None:
            return _already_marked(employee_name, AttendanceRead.model_validate(winner))
        return _save_failed(employee_name, degraded, exc)
    except _STORAGE_ERRORS as exc:
        await safe_rollback(db)
        return _save_failed(employee_name, degraded, exc)

    created = AttendanceRead.model_validate(record)
    logger.info(
        "Check-in %s for %s (employee %d, confidence %.3f)",
        status,
        employee_name,
        employee_id,
        recognition.confidence,
    )

    await record_audit(
        db,
        employee_id=employee_id,
        action="check_in",
        recognizer_response=recognition.raw,
        confidence_score=recognition.confidence,
        success=True,
    )

    return MarkAttendanceResponse(
        success=True,
        message=f"Welcome, {employee_name}!",
        employee_name=employee_name,
        attendance=created,
    )
