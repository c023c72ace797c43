"""
Admin authentication: login, token guard, cookie fallback and
first-admin provisioning.
"""

from datetime import timedelta

import pytest
from httpx import AsyncClient

from facecheck import cli
from facecheck.core.security import (create_access_token, decode_access_token,
                                     get_password_hash, verify_password)
from facecheck.services.admin import (AdminProvisioningError, count_admins,
                                      create_admin, provision_first_admin)
from tests.helpers import API

PASSWORD = "correct-horse-battery"


@pytest.fixture
async def admin(db_session):
    return await create_admin(db_session, "Admin@Example.com", PASSWORD)


async def _login(client: AsyncClient, email="admin@example.com", password=PASSWORD):
    return await client.post(f"{API}/auth/login", json={"email": email, "password": password})


# ── Login ───────────────────────────────────────────────────────────
@pytest.mark.asyncio
async def test_login_returns_token_and_cookie(async_client: AsyncClient, admin):
    resp = await _login(async_client)
    assert resp.status_code == 200
    body = resp.json()
    assert body["success"] is True
    assert body["token_type"] == "bearer"
    assert body["user"] == {"email": "admin@example.com"}

    payload = decode_access_token(body["token"])
    assert payload["sub"] == str(admin.id)
    assert payload["email"] == "admin@example.com"

    cookie = resp.headers["set-cookie"]
    assert "access_token=" in cookie
    assert "HttpOnly" in cookie


@pytest.mark.asyncio
async def test_login_email_is_case_insensitive(async_client: AsyncClient, admin):
    resp = await _login(async_client, email="  ADMIN@example.COM ")
    assert resp.status_code == 200


@pytest.mark.asyncio
async def test_wrong_password_rejected(async_client: AsyncClient, admin):
    resp = await _login(async_client, password="wrong-password")
    assert resp.status_code == 401
    body = resp.json()
    assert body["success"] is False
    assert body["error"] == "unauthorized"
    assert body["message"] == "Invalid credentials"


@pytest.mark.asyncio
async def test_unknown_admin_rejected(async_client: AsyncClient):
    resp = await _login(async_client, email="nobody@example.com")
    assert resp.status_code == 401
    assert resp.json()["message"] == "Invalid credentials"


@pytest.mark.asyncio
async def test_no_default_credentials(async_client: AsyncClient, db_session):
    assert await count_admins(db_session) == 0
    resp = await _login(async_client, email="admin@company.com", password="admin123")
    assert resp.status_code == 401


# ── Guard ───────────────────────────────────────────────────────────
@pytest.mark.asyncio
async def test_me_with_bearer_token(async_client: AsyncClient, admin, real_auth):
    token = (await _login(async_client)).json()["token"]
    async_client.cookies.clear()

    resp = await async_client.get(
        f"{API}/auth/me", headers={"Authorization": f"Bearer {token}"}
    )
    assert resp.status_code == 200
    assert resp.json()["data"]["email"] == "admin@example.com"


@pytest.mark.asyncio
async def test_me_with_cookie_only(async_client: AsyncClient, admin, real_auth):
    token = create_access_token(admin.id, email=admin.email)
    resp = await async_client.get(
        f"{API}/auth/me", headers={"Cookie": f"access_token=Bearer {token}"}
    )
    assert resp.status_code == 200
    assert resp.json()["data"]["id"] == admin.id


@pytest.mark.asyncio
async def test_protected_routes_require_token(async_client: AsyncClient, real_auth):
    for path in ("/auth/me", "/employees", "/departments", "/history", "/stats", "/logs"):
        resp = await async_client.get(f"{API}{path}")
        assert resp.status_code == 401, path
        assert resp.json()["error"] == "unauthorized"


@pytest.mark.asyncio
async def test_kiosk_routes_are_public(async_client: AsyncClient, real_auth):
    assert (await async_client.get(f"{API}/recent")).status_code == 200
    assert (await async_client.get(f"{API}/health")).status_code == 200


@pytest.mark.asyncio
async def test_garbage_token_rejected(async_client: AsyncClient, real_auth):
    resp = await async_client.get(
        f"{API}/auth/me", headers={"Authorization": "Bearer not.a.jwt"}
    )
    assert resp.status_code == 401


@pytest.mark.asyncio
async def test_expired_token_rejected(async_client: AsyncClient, admin, real_auth):
    token = create_access_token(admin.id, expires_delta=timedelta(minutes=-1))
    resp = await async_client.get(
        f"{API}/auth/me", headers={"Authorization": f"Bearer {token}"}
    )
    assert resp.status_code == 401


@pytest.mark.asyncio
async def test_token_for_deleted_admin_rejected(async_client: AsyncClient, real_auth):
    token = create_access_token(4242)
    resp = await async_client.get(
        f"{API}/auth/me", headers={"Authorization": f"Bearer {token}"}
    )
    assert resp.status_code == 401


@pytest.mark.asyncio
async def test_logout_clears_cookie(async_client: AsyncClient):
    resp = await async_client.post(f"{API}/auth/logout")
    assert resp.status_code == 200
    assert resp.json()["success"] is True
    assert 'access_token=""' in resp.headers["set-cookie"]


# ── Passwords and provisioning ──────────────────────────────────────
def test_password_hash_round_trip():
    hashed = get_password_hash(PASSWORD)
    assert hashed != PASSWORD
    assert verify_password(PASSWORD, hashed)
    assert not verify_password("nope", hashed)
    assert not verify_password(PASSWORD, "not-a-bcrypt-hash")


@pytest.mark.asyncio
async def test_create_admin_rejects_short_password(db_session):
    with pytest.raises(AdminProvisioningError):
        await create_admin(db_session, "a@example.com", "short")


@pytest.mark.asyncio
async def test_create_admin_rejects_duplicate(db_session, admin):
    with pytest.raises(AdminProvisioningError):
        await create_admin(db_session, "admin@example.com", PASSWORD)


@pytest.mark.asyncio
async def test_provision_first_admin_from_config(db_session):
    created = await provision_first_admin(db_session, "boss@example.com", PASSWORD)
    assert created is not None
    assert created.email == "boss@example.com"

    # Only ever the first one
    again = await provision_first_admin(db_session, "other@example.com", PASSWORD)
    assert again is None
    assert await count_admins(db_session) == 1


@pytest.mark.asyncio
async def test_provision_without_config_creates_nobody(db_session):
    assert await provision_first_admin(db_session, None, None) is None
    assert await count_admins(db_session) == 0


def test_cli_create_admin_reads_password_from_stdin(monkeypatch, capsys):
    import io

    calls = []

    async def fake_create(email, password):
        calls.append((email, password))

    monkeypatch.setattr(cli, "_create_admin", fake_create)
    monkeypatch.setattr("sys.stdin", io.StringIO(PASSWORD + "\n"))

    assert cli.main(["create-admin", "ops@example.com", "--password-stdin"]) == 0
    assert calls == [("ops@example.com", PASSWORD)]
    assert "OK: admin ops@example.com created" in capsys.readouterr().out


def test_cli_create_admin_password_mismatch(monkeypatch, capsys):
    answers = iter(["first-password", "second-password"])
    monkeypatch.setattr(cli.getpass, "getpass", lambda _prompt: next(answers))

    assert cli.main(["create-admin", "ops@example.com"]) == 1
    assert "do not match" in capsys.readouterr().err


def test_cli_reports_provisioning_errors(monkeypatch, capsys):
    import io

    async def fake_create(_email, _password):
        raise AdminProvisioningError("Admin ops@example.com already exists")

    monkeypatch.setattr(cli, "_create_admin", fake_create)
    monkeypatch.setattr("sys.stdin", io.StringIO(PASSWORD + "\n"))

    assert cli.main(["create-admin", "ops@example.com", "--password-stdin"]) == 1
    assert "already exists" in capsys.readouterr().err
