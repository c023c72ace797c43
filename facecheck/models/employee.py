"""
Employee model — the directory the attendance workflow resolves faces against.
"""

from __future__ import annotations

from datetime import datetime, timezone

from sqlalchemy import Column, DateTime, Integer, String
from sqlalchemy.orm import relationship

from facecheck.db.base import Base

EMPLOYEE_STATUSES = ("active", "inactive")


class Employee(Base):
    __tablename__ = "employees"

    id: int = Column(Integer, primary_key=True, index=True)  # type: ignore[assignment]
    full_name: str = Column(String(200), nullable=False)  # type: ignore[assignment]
    employee_code: str | None = Column(String(50), unique=True, nullable=True)  # type: ignore[assignment]
    email: str | None = Column(String(320), unique=True, nullable=True)  # type: ignore[assignment]
    phone: str | None = Column(String(30), nullable=True)  # type: ignore[assignment]
    department: str | None = Column(String(100), nullable=True)  # type: ignore[assignment]
    designation: str | None = Column(String(100), nullable=True)  # type: ignore[assignment]
    # Label the recognizer returns for this person; set on enrollment
    face_identity: str | None = Column(  # type: ignore[assignment]
        String(200), unique=True, nullable=True, index=True
    )
    face_image_url: str | None = Column(String(500), nullable=True)  # type: ignore[assignment]
    status: str = Column(  # type: ignore[assignment]
        String(20),
        nullable=False,
        default="active",
        server_default="active",
    )  # active | inactive
    created_at: datetime = Column(  # type: ignore[assignment]
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
    )

    attendance_records = relationship(
        "AttendanceRecord",
        back_populates="employee",
        cascade="all, delete-orphan",
    )
