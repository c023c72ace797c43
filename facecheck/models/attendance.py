"""
Attendance ledger — one check-in record per employee per day, plus the
append-only audit trail of every recognition attempt.
"""

from __future__ import annotations

from datetime import datetime, timezone

from sqlalchemy import (JSON, Boolean, Column, DateTime, Float, ForeignKey,
                        Integer, String, UniqueConstraint)
from sqlalchemy.orm import relationship

from facecheck.db.base import Base


class AttendanceRecord(Base):
    __tablename__ = "attendance"
    __table_args__ = (
        UniqueConstraint("employee_id", "date", name="uq_attendance_emp_date"),
    )

    id: int = Column(Integer, primary_key=True, index=True)  # type: ignore[assignment]
    employee_id: int = Column(  # type: ignore[assignment]
        Integer, ForeignKey("employees.id", ondelete="CASCADE"), nullable=False
    )
    date: str = Column(String(10), nullable=False, index=True)  # type: ignore[assignment]  # YYYY-MM-DD
    check_in_time: datetime = Column(  # type: ignore[assignment]
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
        index=True,
    )
    status: str = Column(String(20), nullable=False)  # type: ignore[assignment]  # present | late
    confidence_score: float | None = Column(Float, nullable=True)  # type: ignore[assignment]
    source: str = Column(  # type: ignore[assignment]
        String(50), nullable=False, default="face_recognition"
    )

    employee = relationship("Employee", back_populates="attendance_records")


class AttendanceAuditEntry(Base):
    __tablename__ = "attendance_audit"

    id: int = Column(Integer, primary_key=True, index=True)  # type: ignore[assignment]
    employee_id: int | None = Column(  # type: ignore[assignment]
        Integer, ForeignKey("employees.id", ondelete="SET NULL"), nullable=True
    )
    action: str = Column(String(30), nullable=False)  # type: ignore[assignment]
    # check_in | recognition_failed
    recognizer_response: dict | None = Column(JSON, nullable=True)  # type: ignore[assignment]
    confidence_score: float | None = Column(Float, nullable=True)  # type: ignore[assignment]
    success: bool = Column(Boolean, nullable=False)  # type: ignore[assignment]
    error_message: str | None = Column(String(500), nullable=True)  # type: ignore[assignment]
    created_at: datetime = Column(  # type: ignore[assignment]
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        index=True,
    )
