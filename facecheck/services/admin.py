"""
Admin provisioning.

There is no built-in credential: the first admin comes either from the
FIRST_ADMIN_EMAIL / FIRST_ADMIN_PASSWORD environment variables at startup
or from ``python -m facecheck.cli create-admin``.
"""

from __future__ import annotations

import logging

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from facecheck.core.security import get_password_hash
from facecheck.models.admin import AdminAccount

logger = logging.getLogger(__name__)

MIN_PASSWORD_LENGTH = 8


class AdminProvisioningError(ValueError):
    pass


async def count_admins(db: AsyncSession) -> int:
    return (await db.execute(select(func.count(AdminAccount.id)))).scalar_one()


async def create_admin(db: AsyncSession, email: str, password: str) -> AdminAccount:
    email = email.strip().lower()
    if "@" not in email:
        raise AdminProvisioningError("Invalid email address")
    if len(password) < MIN_PASSWORD_LENGTH:
        raise AdminProvisioningError(
            f"Password must be at least {MIN_PASSWORD_LENGTH} characters"
        )

    existing = await db.execute(select(AdminAccount.id).where(AdminAccount.email == email))
    if existing.scalar_one_or_none() is not None:
        raise AdminProvisioningError(f"Admin {email} already exists")

    admin = AdminAccount(email=email, password_hash=get_password_hash(password))
    db.add(admin)
    await db.commit()
    await db.refresh(admin)
    logger.info("Admin account created: %s", email)
    return admin


async def provision_first_admin(
    db: AsyncSession, email: str | None, password: str | None
) -> AdminAccount | None:
    """Create the first admin from configuration if none exists yet."""
    if await count_admins(db) > 0:
        return None
    if not email or not password:
        logger.warning(
            "No admin account exists. Set FIRST_ADMIN_EMAIL and FIRST_ADMIN_PASSWORD "
            "or run `python -m facecheck.cli create-admin EMAIL`."
        )
        return None
    return await create_admin(db, email, password)
