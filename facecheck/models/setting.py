"""
Setting model — admin-configurable attendance rules as key/value rows.

Reads go through ``facecheck.services.settings_store`` which supplies the
in-code defaults for keys that were never written.
"""

from __future__ import annotations

from sqlalchemy import Column, Integer, String

from facecheck.db.base import Base


class Setting(Base):
    __tablename__ = "attendance_settings"

    id: int = Column(Integer, primary_key=True)  # type: ignore[assignment]
    key: str = Column(String(100), unique=True, nullable=False, index=True)  # type: ignore[assignment]
    value: str = Column(String(500), nullable=False)  # type: ignore[assignment]
