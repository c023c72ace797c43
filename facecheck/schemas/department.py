"""Pydantic schemas for Department CRUD."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, field_validator


class DepartmentCreate(BaseModel):
    name: str
    description: str | None = None

    @field_validator("name")
    @classmethod
    def _name(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("Department name is required")
        if len(v) > 100:
            raise ValueError("Department name must not exceed 100 characters")
        return v


class DepartmentRead(BaseModel):
    id: int
    name: str
    description: str | None
    created_at: datetime | None

    model_config = {"from_attributes": True}
