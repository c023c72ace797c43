"""Pydantic schemas for Employee CRUD and face enrollment."""

from __future__ import annotations

import re
from datetime import datetime

from pydantic import BaseModel, field_validator

from facecheck.models.employee import EMPLOYEE_STATUSES

_CODE_RE = re.compile(r"^[A-Za-z0-9._-]{1,50}$")


def _normalise_email(v: str | None) -> str | None:
    if v is None:
        return None
    v = v.strip().lower()
    if not v:
        return None
    if "@" not in v:
        raise ValueError("Invalid email address")
    return v


def _check_status(v: str | None) -> str | None:
    if v is not None and v not in EMPLOYEE_STATUSES:
        raise ValueError(f"Status must be one of: {', '.join(EMPLOYEE_STATUSES)}")
    return v


class EmployeeCreate(BaseModel):
    full_name: str
    employee_code: str | None = None
    email: str | None = None
    phone: str | None = None
    department: str | None = None
    designation: str | None = None
    status: str = "active"

    @field_validator("full_name")
    @classmethod
    def _name(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("Name must not be empty")
        if len(v) > 200:
            raise ValueError("Name must not exceed 200 characters")
        return v

    @field_validator("employee_code")
    @classmethod
    def _code(cls, v: str | None) -> str | None:
        if v is None:
            return None
        v = v.strip()
        if not v:
            return None
        if not _CODE_RE.match(v):
            raise ValueError("Employee code must be 1-50 alphanumeric chars")
        return v

    @field_validator("email")
    @classmethod
    def _email(cls, v: str | None) -> str | None:
        return _normalise_email(v)

    @field_validator("status")
    @classmethod
    def _status(cls, v: str) -> str:
        return _check_status(v)  # type: ignore[return-value]


class EmployeeUpdate(BaseModel):
    full_name: str | None = None
    email: str | None = None
    phone: str | None = None
    department: str | None = None
    designation: str | None = None
    status: str | None = None

    @field_validator("full_name")
    @classmethod
    def _name(cls, v: str | None) -> str | None:
        if v is not None:
            v = v.strip()
            if not v:
                raise ValueError("Name must not be empty")
        return v

    @field_validator("email")
    @classmethod
    def _email(cls, v: str | None) -> str | None:
        return _normalise_email(v)

    @field_validator("status")
    @classmethod
    def _status(cls, v: str | None) -> str | None:
        return _check_status(v)


class EmployeeRead(BaseModel):
    id: int
    full_name: str
    employee_code: str | None
    email: str | None
    phone: str | None
    department: str | None
    designation: str | None
    face_identity: str | None
    face_image_url: str | None
    status: str
    created_at: datetime | None

    model_config = {"from_attributes": True}


class EnrollRequest(BaseModel):
    image: str | None = None
