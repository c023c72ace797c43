"""Tests for employee CRUD and face enrollment endpoints."""

import pytest
from httpx import AsyncClient
from sqlalchemy import select

from facecheck.models.attendance import AttendanceRecord
from tests.helpers import API, encode_image


async def _create(client: AsyncClient, **fields) -> dict:
    fields.setdefault("full_name", "Bob Jones")
    resp = await client.post(f"{API}/employees", json=fields)
    assert resp.status_code == 201, resp.text
    return resp.json()["data"]


@pytest.mark.asyncio
async def test_create_employee(async_client: AsyncClient):
    """POST /employees should create a new active employee."""
    resp = await async_client.post(f"{API}/employees", json={
        "full_name": "Bob Jones",
        "employee_code": "EMP-001",
        "email": "Bob@Example.com",
        "department": "Engineering",
        "designation": "Developer",
    })
    assert resp.status_code == 201
    body = resp.json()
    assert body["success"] is True
    data = body["data"]
    assert data["full_name"] == "Bob Jones"
    assert data["employee_code"] == "EMP-001"
    assert data["email"] == "bob@example.com"
    assert data["status"] == "active"
    assert data["face_identity"] is None
    assert data["id"] is not None


@pytest.mark.asyncio
async def test_create_duplicate_email_rejected(async_client: AsyncClient):
    """Two employees cannot share an email."""
    await _create(async_client, full_name="Emp1", email="dup@example.com")
    resp = await async_client.post(
        f"{API}/employees", json={"full_name": "Emp2", "email": "dup@example.com"}
    )
    assert resp.status_code == 409
    body = resp.json()
    assert body["error"] == "duplicate"
    assert body["message"] == "Employee with this Email or ID already exists"


@pytest.mark.asyncio
async def test_create_duplicate_code_rejected(async_client: AsyncClient):
    await _create(async_client, full_name="Emp1", employee_code="DUP-001")
    resp = await async_client.post(
        f"{API}/employees", json={"full_name": "Emp2", "employee_code": "DUP-001"}
    )
    assert resp.status_code == 409


@pytest.mark.asyncio
async def test_create_requires_name(async_client: AsyncClient):
    resp = await async_client.post(f"{API}/employees", json={"full_name": "  "})
    assert resp.status_code == 422
    assert resp.json()["error"] == "invalid_input"


@pytest.mark.asyncio
async def test_list_employees(async_client: AsyncClient):
    """GET /employees should return every employee, sorted by name."""
    await _create(async_client, full_name="Zed")
    await _create(async_client, full_name="Amy")
    resp = await async_client.get(f"{API}/employees")
    assert resp.status_code == 200
    names = [e["full_name"] for e in resp.json()["data"]]
    assert names == ["Amy", "Zed"]


@pytest.mark.asyncio
async def test_list_employees_filters(async_client: AsyncClient):
    await _create(async_client, full_name="Active Annie")
    gone = await _create(async_client, full_name="Former Fred")
    await async_client.delete(f"{API}/employees/{gone['id']}")

    active = (await async_client.get(f"{API}/employees?status=active")).json()["data"]
    assert [e["full_name"] for e in active] == ["Active Annie"]

    found = (await async_client.get(f"{API}/employees?search=fred")).json()["data"]
    assert [e["full_name"] for e in found] == ["Former Fred"]

    resp = await async_client.get(f"{API}/employees?status=retired")
    assert resp.status_code == 400


@pytest.mark.asyncio
async def test_list_employees_pagination(async_client: AsyncClient):
    """GET /employees with skip/limit should paginate."""
    for i in range(5):
        await _create(async_client, full_name=f"P{i}")
    resp = await async_client.get(f"{API}/employees?skip=2&limit=2")
    assert resp.status_code == 200
    assert [e["full_name"] for e in resp.json()["data"]] == ["P2", "P3"]


@pytest.mark.asyncio
async def test_get_employee_by_id(async_client: AsyncClient):
    eid = (await _create(async_client, full_name="Solo"))["id"]
    resp = await async_client.get(f"{API}/employees/{eid}")
    assert resp.status_code == 200
    assert resp.json()["data"]["full_name"] == "Solo"


@pytest.mark.asyncio
async def test_get_employee_not_found(async_client: AsyncClient):
    """Requesting a non-existent employee should return 404."""
    resp = await async_client.get(f"{API}/employees/9999")
    assert resp.status_code == 404
    assert resp.json()["error"] == "not_found"


@pytest.mark.asyncio
async def test_update_employee(async_client: AsyncClient):
    """PUT /employees/{id} should update employee details."""
    eid = (await _create(async_client, full_name="Old Name"))["id"]
    resp = await async_client.put(
        f"{API}/employees/{eid}", json={"full_name": "New Name", "department": "Sales"}
    )
    assert resp.status_code == 200
    data = resp.json()["data"]
    assert data["full_name"] == "New Name"
    assert data["department"] == "Sales"


@pytest.mark.asyncio
async def test_update_email_clash_rejected(async_client: AsyncClient):
    await _create(async_client, full_name="A", email="a@example.com")
    eid = (await _create(async_client, full_name="B", email="b@example.com"))["id"]
    resp = await async_client.put(f"{API}/employees/{eid}", json={"email": "a@example.com"})
    assert resp.status_code == 409


@pytest.mark.asyncio
async def test_soft_delete_deactivates(async_client: AsyncClient):
    """DELETE without ?hard keeps the row but marks it inactive."""
    eid = (await _create(async_client, full_name="Temp"))["id"]
    resp = await async_client.delete(f"{API}/employees/{eid}")
    assert resp.status_code == 200
    assert resp.json()["success"] is True

    data = (await async_client.get(f"{API}/employees/{eid}")).json()["data"]
    assert data["status"] == "inactive"


@pytest.mark.asyncio
async def test_hard_delete_removes_attendance(async_client: AsyncClient, db_session):
    eid = (await _create(async_client, full_name="Gone"))["id"]
    db_session.add(
        AttendanceRecord(employee_id=eid, date="2024-03-04", status="present", source="manual")
    )
    await db_session.commit()

    resp = await async_client.delete(f"{API}/employees/{eid}?hard=true")
    assert resp.status_code == 200
    assert (await async_client.get(f"{API}/employees/{eid}")).status_code == 404

    db_session.expunge_all()
    remaining = (await db_session.execute(select(AttendanceRecord))).scalars().all()
    assert remaining == []


# ── Enrollment ──────────────────────────────────────────────────────
@pytest.mark.asyncio
async def test_enroll_face(async_client: AsyncClient, recognizer):
    eid = (await _create(async_client, full_name="Carol King"))["id"]
    recognizer.enroll_reply = {"success": True, "name": "carol_king"}

    resp = await async_client.post(
        f"{API}/employees/{eid}/enroll", json={"image": encode_image(b"carol-face")}
    )

    assert resp.status_code == 200
    body = resp.json()
    assert body["message"] == "Face enrolled successfully"
    assert body["data"]["face_identity"] == "carol_king"

    sent = recognizer.requests[-1]
    assert sent.url.path == "/enroll"
    assert b"Carol King" in sent.content
    assert b"carol-face" in sent.content


@pytest.mark.asyncio
async def test_enroll_defaults_identity_to_full_name(async_client: AsyncClient, recognizer):
    eid = (await _create(async_client, full_name="Dan Brown"))["id"]
    recognizer.enroll_reply = {"success": True}

    resp = await async_client.post(
        f"{API}/employees/{eid}/enroll", json={"image": encode_image()}
    )
    assert resp.json()["data"]["face_identity"] == "Dan Brown"


@pytest.mark.asyncio
async def test_enroll_rejected_by_recognizer(async_client: AsyncClient, recognizer):
    eid = (await _create(async_client))["id"]
    recognizer.enroll_reply = {"success": False, "message": "No face detected"}

    resp = await async_client.post(
        f"{API}/employees/{eid}/enroll", json={"image": encode_image()}
    )
    assert resp.status_code == 400
    assert resp.json()["message"] == "No face detected"


@pytest.mark.asyncio
async def test_enroll_recognizer_down(async_client: AsyncClient, recognizer):
    eid = (await _create(async_client))["id"]
    recognizer.enroll_status = 503

    resp = await async_client.post(
        f"{API}/employees/{eid}/enroll", json={"image": encode_image()}
    )
    assert resp.status_code == 502
    assert resp.json()["error"] == "upstream_unavailable"


@pytest.mark.asyncio
async def test_enroll_unknown_employee(async_client: AsyncClient, recognizer):
    resp = await async_client.post(
        f"{API}/employees/9999/enroll", json={"image": encode_image()}
    )
    assert resp.status_code == 404
    assert recognizer.requests == []


@pytest.mark.asyncio
async def test_enroll_requires_image(async_client: AsyncClient, recognizer):
    eid = (await _create(async_client))["id"]
    resp = await async_client.post(f"{API}/employees/{eid}/enroll", json={})
    assert resp.status_code == 400
    assert recognizer.requests == []


@pytest.mark.asyncio
async def test_enroll_identity_already_taken(async_client: AsyncClient, recognizer):
    first = (await _create(async_client, full_name="Twin One"))["id"]
    second = (await _create(async_client, full_name="Twin Two"))["id"]
    recognizer.enroll_reply = {"success": True, "name": "twin"}

    await async_client.post(f"{API}/employees/{first}/enroll", json={"image": encode_image()})
    resp = await async_client.post(
        f"{API}/employees/{second}/enroll", json={"image": encode_image()}
    )
    assert resp.status_code == 409
    assert resp.json()["error"] == "duplicate"
