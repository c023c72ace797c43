"""
V1 API router aggregator — wires all endpoint modules together.
"""

from fastapi import APIRouter

from facecheck.api.v1.endpoints import (attendance, auth, departments,
                                        employees, settings)

api_router = APIRouter()

# Auth (login, profile)
api_router.include_router(auth.router)

# Kiosk check-in, ledger views, health
api_router.include_router(attendance.router)

# Admin CRUD
api_router.include_router(employees.router)
api_router.include_router(departments.router)
api_router.include_router(settings.router)
