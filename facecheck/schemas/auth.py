"""Pydantic schemas for admin login."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, field_validator


class LoginRequest(BaseModel):
    email: str
    password: str

    @field_validator("email")
    @classmethod
    def _normalise_email(cls, v: str) -> str:
        return v.strip().lower()


class LoginUser(BaseModel):
    email: str


class LoginResponse(BaseModel):
    success: bool = True
    token: str
    token_type: str = "bearer"
    user: LoginUser


class AdminRead(BaseModel):
    id: int
    email: str
    created_at: datetime | None

    model_config = {"from_attributes": True}
