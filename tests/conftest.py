"""
Shared test fixtures for the FaceCheck test suite.

Each test gets a fresh in-memory SQLite database (aiosqlite + StaticPool)
and a stubbed face-recognition service behind ``httpx.MockTransport``.
"""

import os
import sys
from typing import AsyncGenerator

import httpx
import pytest

# Ensure project root is importable
ROOT_DIR = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
if ROOT_DIR not in sys.path:
    sys.path.insert(0, ROOT_DIR)

# Override environment BEFORE importing application modules
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"
os.environ["CORS_ORIGINS"] = '["*"]'
os.environ["SECRET_KEY"] = "test-secret-key-for-the-facecheck-suite"
os.environ["KIOSK_DEGRADED_MODE"] = "false"
os.environ.pop("FIRST_ADMIN_EMAIL", None)
os.environ.pop("FIRST_ADMIN_PASSWORD", None)

from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from facecheck.api.v1.deps import get_current_admin, get_db
from facecheck.api.v1.endpoints.auth import limiter
from facecheck.db.base import Base
from facecheck.main import app
from facecheck.models.admin import AdminAccount
from facecheck.services.recognizer import RecognizerClient, get_recognizer

# Login rate limiting would trip across tests sharing the test client IP
limiter.enabled = False


class RecognizerStub:
    """Programmable stand-in for the external recognizer."""

    def __init__(self) -> None:
        self.recognize_status = 200
        self.recognize_reply: object = {"name": None, "confidence": 0.0}
        self.enroll_status = 200
        self.enroll_reply: object = {"success": True}
        self.health_status = 200
        self.error: Exception | None = None
        self.requests: list[httpx.Request] = []

    def recognizes(self, name: str | None, confidence: float) -> None:
        self.recognize_reply = {"name": name, "confidence": confidence}

    def handler(self, request: httpx.Request) -> httpx.Response:
        request.read()
        self.requests.append(request)
        if self.error is not None:
            raise self.error
        path = request.url.path
        if path == "/health":
            return httpx.Response(self.health_status, json={"status": "ok"})
        if path == "/recognize":
            if isinstance(self.recognize_reply, bytes):
                # Raw body, for replies httpx will not encode (NaN, Infinity)
                return httpx.Response(
                    self.recognize_status,
                    content=self.recognize_reply,
                    headers={"content-type": "application/json"},
                )
            return httpx.Response(self.recognize_status, json=self.recognize_reply)
        if path == "/enroll":
            return httpx.Response(self.enroll_status, json=self.enroll_reply)
        return httpx.Response(404, json={"detail": "Not Found"})

    def client(self, payload_mode: str = "multipart") -> RecognizerClient:
        return RecognizerClient(
            "http://recognizer.test",
            payload_mode=payload_mode,
            transport=httpx.MockTransport(self.handler),
        )


@pytest.fixture(autouse=True)
async def session_factory() -> AsyncGenerator[async_sessionmaker, None]:
    """Fresh schema per test, wired into the app's get_db dependency."""
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    factory = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

    async def _override_get_db() -> AsyncGenerator[AsyncSession, None]:
        async with factory() as session:
            yield session

    app.dependency_overrides[get_db] = _override_get_db
    yield factory
    app.dependency_overrides.pop(get_db, None)
    await engine.dispose()


@pytest.fixture
async def db_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    """Return a raw database session for direct queries in tests."""
    async with session_factory() as session:
        yield session


@pytest.fixture(autouse=True)
def recognizer() -> RecognizerStub:
    stub = RecognizerStub()
    app.dependency_overrides[get_recognizer] = stub.client
    yield stub
    app.dependency_overrides.pop(get_recognizer, None)


@pytest.fixture
async def async_client() -> AsyncGenerator[AsyncClient, None]:
    """Return a httpx AsyncClient wired to the app."""
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client


# ── Auth Overrides ──────────────────────────────────────────────────
async def _override_get_current_admin() -> AdminAccount:
    return AdminAccount(id=1, email="admin@example.com", password_hash="x")


@pytest.fixture(autouse=True)
def admin_override():
    app.dependency_overrides[get_current_admin] = _override_get_current_admin
    yield
    app.dependency_overrides.pop(get_current_admin, None)


@pytest.fixture
def real_auth():
    """Disable the admin override so the real JWT guard runs."""
    app.dependency_overrides.pop(get_current_admin, None)
    yield
