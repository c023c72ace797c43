"""
Auth endpoints — admin login & profile.

One role only: whoever holds a valid token is the admin. Tokens live for
24 hours and cannot be refreshed or revoked.
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, Request, Response
from slowapi import Limiter
from slowapi.util import get_remote_address
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from facecheck.api.v1.deps import get_current_admin, get_db
from facecheck.core.config import settings
from facecheck.core.exceptions import AppError, ErrorKind
from facecheck.core.security import create_access_token, verify_password
from facecheck.models.admin import AdminAccount
from facecheck.schemas.auth import AdminRead, LoginRequest, LoginResponse, LoginUser
from facecheck.schemas.common import Envelope

# Rate limiter — keyed by client IP
limiter = Limiter(key_func=get_remote_address)

router = APIRouter(prefix="/auth", tags=["auth"])
logger = logging.getLogger(__name__)


@router.post("/login", response_model=LoginResponse)
@limiter.limit(settings.LOGIN_RATE_LIMIT)
async def login(
    request: Request,
    response: Response,
    body: LoginRequest,
    db: AsyncSession = Depends(get_db),
) -> LoginResponse:
    """Exchange email + password for a signed 24h token (also set as HttpOnly cookie)."""
    result = await db.execute(select(AdminAccount).where(AdminAccount.email == body.email))
    admin = result.scalar_one_or_none()

    if admin is None or not verify_password(body.password, admin.password_hash):
        logger.info("Failed login for %s", body.email)
        raise AppError(ErrorKind.UNAUTHORIZED, "Invalid credentials")

    token = create_access_token(admin.id, email=admin.email)
    response.set_cookie(
        key="access_token",
        value=f"Bearer {token}",
        httponly=True,
        secure=settings.COOKIE_SECURE,
        samesite="lax",
        max_age=settings.ACCESS_TOKEN_EXPIRE_MINUTES * 60,
    )
    logger.info("Admin %s logged in", admin.email)
    return LoginResponse(token=token, user=LoginUser(email=admin.email))


@router.post("/logout", response_model=Envelope[None])
async def logout(response: Response) -> Envelope[None]:
    """Clear the auth cookie. The token itself stays valid until it expires."""
    response.delete_cookie("access_token")
    return Envelope(message="Logged out")


@router.get("/me", response_model=Envelope[AdminRead])
async def read_current_admin(
    admin: AdminAccount = Depends(get_current_admin),
) -> Envelope[AdminRead]:
    return Envelope(data=AdminRead.model_validate(admin))
