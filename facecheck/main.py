"""
FaceCheck — Application entry point.

This is the **only** file that assembles the app.  All business logic
lives in the `api/`, `services/`, `models/`, and `core/` packages.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from pathlib import Path

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.staticfiles import StaticFiles

from facecheck.api.v1.api import api_router
from facecheck.api.v1.endpoints.auth import limiter
from facecheck.core.config import settings
from facecheck.core.exceptions import register_exception_handlers
from facecheck.db.base import Base
from facecheck.db.session import async_session_factory, engine

# Ensure all models are imported so metadata.create_all can see them
from facecheck.models.admin import AdminAccount  # noqa: F401
from facecheck.models.attendance import AttendanceAuditEntry, AttendanceRecord  # noqa: F401
from facecheck.models.department import Department  # noqa: F401
from facecheck.models.employee import Employee  # noqa: F401
from facecheck.models.setting import Setting  # noqa: F401
from facecheck.services.admin import AdminProvisioningError, provision_first_admin

logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
    format="%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
)
logger = logging.getLogger(__name__)


# ── Lifespan ────────────────────────────────────────────────────────
@asynccontextmanager
async def lifespan(_app: FastAPI):
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.info("Database tables initialised")

    async with async_session_factory() as session:
        try:
            await provision_first_admin(
                session, settings.FIRST_ADMIN_EMAIL, settings.FIRST_ADMIN_PASSWORD
            )
        except AdminProvisioningError as exc:
            logger.error("Could not provision first admin: %s", exc)

    if settings.KIOSK_DEGRADED_MODE:
        logger.warning(
            "Kiosk degraded mode is ON: check-ins may be acknowledged without being saved"
        )
    logger.info("FaceCheck v%s started (recognizer: %s)", settings.VERSION, settings.RECOGNIZER_URL)
    yield
    await engine.dispose()
    logger.info("Shutdown complete")


# ── App factory ─────────────────────────────────────────────────────
def create_app() -> FastAPI:
    application = FastAPI(
        title=settings.PROJECT_NAME,
        description="Face-recognition employee attendance",
        version=settings.VERSION,
        openapi_url=f"{settings.API_V1_PREFIX}/openapi.json",
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan,
    )

    application.state.limiter = limiter

    # CORS
    application.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Global exception handlers (prevent stack-trace leakage)
    register_exception_handlers(application)

    application.include_router(api_router, prefix=settings.API_V1_PREFIX)

    # Serve frontend static files (must be last — catch-all mount)
    frontend_dir = Path(__file__).resolve().parent.parent / "frontend"
    if frontend_dir.is_dir():
        application.mount(
            "/",
            StaticFiles(directory=str(frontend_dir), html=True),
            name="frontend",
        )
        logger.info("Frontend mounted from %s", frontend_dir)

    return application


app = create_app()
