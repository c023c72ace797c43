"""
FastAPI dependencies — auth guard and database session.
"""

from __future__ import annotations

from typing import Optional

from fastapi import Cookie, Depends, HTTPException, status
from fastapi.security import OAuth2PasswordBearer
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from facecheck.core.config import settings
from facecheck.core.security import decode_access_token
from facecheck.db.session import get_db
from facecheck.models.admin import AdminAccount

__all__ = ["get_db", "get_current_admin"]

# auto_error=False so the cookie can stand in for a missing header
oauth2_scheme = OAuth2PasswordBearer(
    tokenUrl=f"{settings.API_V1_PREFIX}/auth/login", auto_error=False
)


async def get_current_admin(
    token: Optional[str] = Depends(oauth2_scheme),
    access_token: Optional[str] = Cookie(default=None),
    db: AsyncSession = Depends(get_db),
) -> AdminAccount:
    """Decode JWT from Header OR Cookie, look up the admin account."""
    final_token = token
    if not final_token and access_token:
        if access_token.startswith("Bearer "):
            final_token = access_token.split(" ", 1)[1]
        else:
            final_token = access_token

    credentials_exc = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )

    if not final_token:
        raise credentials_exc

    payload = decode_access_token(final_token)
    if payload is None:
        raise credentials_exc

    admin_id = payload.get("sub")
    if admin_id is None or not str(admin_id).isdigit():
        raise credentials_exc

    result = await db.execute(select(AdminAccount).where(AdminAccount.id == int(admin_id)))
    admin = result.scalar_one_or_none()
    if admin is None:
        raise credentials_exc
    return admin
