"""
Employee CRUD + face enrollment endpoints (admin only).

Delete is a soft deactivation unless ``?hard=true`` is passed, which
removes the employee together with their attendance records.
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, Query
from sqlalchemy import or_, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from facecheck.api.v1.deps import get_current_admin, get_db
from facecheck.core.exceptions import AppError, ErrorKind
from facecheck.models.admin import AdminAccount
from facecheck.models.employee import EMPLOYEE_STATUSES, Employee
from facecheck.schemas.common import DeleteResponse, Envelope
from facecheck.schemas.employee import (EmployeeCreate, EmployeeRead,
                                        EmployeeUpdate, EnrollRequest)
from facecheck.services.attendance import decode_image
from facecheck.services.recognizer import (RecognizerClient, RecognizerError,
                                           get_recognizer)

router = APIRouter(prefix="/employees", tags=["employees"])
logger = logging.getLogger(__name__)


async def _get_employee_or_404(db: AsyncSession, employee_id: int) -> Employee:
    result = await db.execute(select(Employee).where(Employee.id == employee_id))
    emp = result.scalar_one_or_none()
    if emp is None:
        raise AppError(ErrorKind.NOT_FOUND, "Employee not found")
    return emp


@router.get("", response_model=Envelope[list[EmployeeRead]])
async def list_employees(
    status: str | None = Query(default=None, description="active | inactive"),
    search: str | None = None,
    skip: int = Query(default=0, ge=0),
    limit: int = Query(default=100, ge=1, le=500),
    db: AsyncSession = Depends(get_db),
    _admin: AdminAccount = Depends(get_current_admin),
) -> Envelope[list[EmployeeRead]]:
    query = select(Employee).order_by(Employee.full_name).offset(skip).limit(limit)
    if status is not None:
        if status not in EMPLOYEE_STATUSES:
            raise AppError(
                ErrorKind.INVALID_INPUT,
                f"Status must be one of: {', '.join(EMPLOYEE_STATUSES)}",
            )
        query = query.where(Employee.status == status)
    if search:
        # Escape SQL LIKE metacharacters to prevent wildcard injection
        safe_search = search.replace("%", r"\%").replace("_", r"\_")
        query = query.where(Employee.full_name.ilike(f"%{safe_search}%", escape="\\"))
    result = await db.execute(query)
    return Envelope(data=[EmployeeRead.model_validate(e) for e in result.scalars().all()])


@router.post("", response_model=Envelope[EmployeeRead], status_code=201)
async def create_employee(
    body: EmployeeCreate,
    db: AsyncSession = Depends(get_db),
    _admin: AdminAccount = Depends(get_current_admin),
) -> Envelope[EmployeeRead]:
    clauses = []
    if body.email:
        clauses.append(Employee.email == body.email)
    if body.employee_code:
        clauses.append(Employee.employee_code == body.employee_code)
    if clauses:
        existing = await db.execute(select(Employee.id).where(or_(*clauses)).limit(1))
        if existing.scalar_one_or_none() is not None:
            raise AppError(
                ErrorKind.DUPLICATE, "Employee with this Email or ID already exists"
            )

    employee = Employee(**body.model_dump())
    db.add(employee)
    await db.commit()
    await db.refresh(employee)
    logger.info("Created employee %s (id %d)", employee.full_name, employee.id)
    return Envelope(data=EmployeeRead.model_validate(employee))


@router.get("/{employee_id}", response_model=Envelope[EmployeeRead])
async def get_employee(
    employee_id: int,
    db: AsyncSession = Depends(get_db),
    _admin: AdminAccount = Depends(get_current_admin),
) -> Envelope[EmployeeRead]:
    emp = await _get_employee_or_404(db, employee_id)
    return Envelope(data=EmployeeRead.model_validate(emp))


@router.put("/{employee_id}", response_model=Envelope[EmployeeRead])
async def update_employee(
    employee_id: int,
    body: EmployeeUpdate,
    db: AsyncSession = Depends(get_db),
    _admin: AdminAccount = Depends(get_current_admin),
) -> Envelope[EmployeeRead]:
    emp = await _get_employee_or_404(db, employee_id)

    changes = body.model_dump(exclude_unset=True)
    if changes.get("email") and changes["email"] != emp.email:
        clash = await db.execute(
            select(Employee.id).where(
                Employee.email == changes["email"], Employee.id != employee_id
            )
        )
        if clash.scalar_one_or_none() is not None:
            raise AppError(ErrorKind.DUPLICATE, "Employee with this Email already exists")

    for field, value in changes.items():
        setattr(emp, field, value)

    await db.commit()
    await db.refresh(emp)
    logger.info("Updated employee %d: %s", employee_id, sorted(changes))
    return Envelope(data=EmployeeRead.model_validate(emp))


@router.delete("/{employee_id}", response_model=DeleteResponse)
async def delete_employee(
    employee_id: int,
    hard: bool = Query(default=False, description="Permanently delete with attendance history"),
    db: AsyncSession = Depends(get_db),
    _admin: AdminAccount = Depends(get_current_admin),
) -> DeleteResponse:
    emp = await _get_employee_or_404(db, employee_id)
    name = emp.full_name

    if hard:
        await db.delete(emp)
        await db.commit()
        logger.warning("Hard-deleted employee %d (%s)", employee_id, name)
        return DeleteResponse(success=True, message="Employee deleted")

    emp.status = "inactive"
    await db.commit()
    logger.info("Deactivated employee %d (%s)", employee_id, name)
    return DeleteResponse(success=True, message=f"Employee '{name}' deactivated")


# ── Face enrollment ─────────────────────────────────────────────────
@router.post("/{employee_id}/enroll", response_model=Envelope[EmployeeRead])
async def enroll_face(
    employee_id: int,
    body: EnrollRequest,
    db: AsyncSession = Depends(get_db),
    recognizer: RecognizerClient = Depends(get_recognizer),
    _admin: AdminAccount = Depends(get_current_admin),
) -> Envelope[EmployeeRead]:
    """Register the employee's face with the recognizer and store its label."""
    emp = await _get_employee_or_404(db, employee_id)
    image = decode_image(body.image)

    try:
        enrollment = await recognizer.enroll(emp.full_name, image)
    except RecognizerError as exc:
        raise AppError(ErrorKind.UPSTREAM_UNAVAILABLE, exc.message) from exc

    if not enrollment.success:
        raise AppError(ErrorKind.INVALID_INPUT, enrollment.message or "Enrollment failed")

    emp.face_identity = enrollment.name or emp.full_name
    try:
        await db.commit()
    except IntegrityError:
        await db.rollback()
        raise AppError(
            ErrorKind.DUPLICATE,
            "This face identity is already linked to another employee",
        ) from None
    await db.refresh(emp)

    logger.info("Enrolled face for employee %d as %r", employee_id, emp.face_identity)
    return Envelope(
        message="Face enrolled successfully",
        data=EmployeeRead.model_validate(emp),
    )
