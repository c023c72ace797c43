"""
Settings endpoints — admin-configurable attendance rules.

GET returns every known key, stored values laid over the defaults.
PUT (or POST) takes a partial map of key → value; all values are validated
before anything is written.
"""

from __future__ import annotations

from fastapi import APIRouter, Body, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from facecheck.api.v1.deps import get_current_admin, get_db
from facecheck.core.exceptions import AppError, ErrorKind
from facecheck.models.admin import AdminAccount
from facecheck.schemas.common import Envelope
from facecheck.services import settings_store

router = APIRouter(tags=["settings"])


@router.get("/settings", response_model=Envelope[dict[str, str]])
async def get_settings(
    db: AsyncSession = Depends(get_db),
    _admin: AdminAccount = Depends(get_current_admin),
) -> Envelope[dict[str, str]]:
    return Envelope(data=await settings_store.get_all(db))


@router.api_route("/settings", methods=["PUT", "POST"], response_model=Envelope[dict[str, str]])
async def update_settings(
    body: dict[str, str | int | float] = Body(...),
    db: AsyncSession = Depends(get_db),
    _admin: AdminAccount = Depends(get_current_admin),
) -> Envelope[dict[str, str]]:
    """Update attendance rules (work start, grace period, confidence, timezone)."""
    try:
        updated = await settings_store.set_all(db, body)
    except ValueError as exc:
        raise AppError(ErrorKind.INVALID_INPUT, str(exc)) from None
    return Envelope(message="Settings updated successfully", data=updated)
