"""
Department CRUD endpoints (admin only).
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from facecheck.api.v1.deps import get_current_admin, get_db
from facecheck.core.exceptions import AppError, ErrorKind
from facecheck.models.admin import AdminAccount
from facecheck.models.department import Department
from facecheck.schemas.common import DeleteResponse, Envelope
from facecheck.schemas.department import DepartmentCreate, DepartmentRead

router = APIRouter(prefix="/departments", tags=["departments"])
logger = logging.getLogger(__name__)


@router.get("", response_model=Envelope[list[DepartmentRead]])
async def list_departments(
    db: AsyncSession = Depends(get_db),
    _admin: AdminAccount = Depends(get_current_admin),
) -> Envelope[list[DepartmentRead]]:
    result = await db.execute(select(Department).order_by(Department.name))
    return Envelope(data=[DepartmentRead.model_validate(d) for d in result.scalars().all()])


@router.post("", response_model=Envelope[DepartmentRead], status_code=201)
async def create_department(
    body: DepartmentCreate,
    db: AsyncSession = Depends(get_db),
    _admin: AdminAccount = Depends(get_current_admin),
) -> Envelope[DepartmentRead]:
    existing = await db.execute(select(Department.id).where(Department.name == body.name))
    if existing.scalar_one_or_none() is not None:
        raise AppError(ErrorKind.DUPLICATE, "Department already exists")

    department = Department(name=body.name, description=body.description)
    db.add(department)
    await db.commit()
    await db.refresh(department)
    logger.info("Created department %s", department.name)
    return Envelope(data=DepartmentRead.model_validate(department))


@router.delete("/{department_id}", response_model=DeleteResponse)
async def delete_department(
    department_id: int,
    db: AsyncSession = Depends(get_db),
    _admin: AdminAccount = Depends(get_current_admin),
) -> DeleteResponse:
    result = await db.execute(select(Department).where(Department.id == department_id))
    department = result.scalar_one_or_none()
    if department is None:
        raise AppError(ErrorKind.NOT_FOUND, "Department not found")

    await db.delete(department)
    await db.commit()
    logger.info("Deleted department %d (%s)", department_id, department.name)
    return DeleteResponse(success=True, message="Department deleted")
