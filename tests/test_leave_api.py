"""Leave HTTP API tests — routing, auth, status codes and problem+json bodies.

Seed data is committed before requests are made: the app runs each request in
its own unit of work on the shared test connection.
"""

from __future__ import annotations

import uuid
from decimal import Decimal

from httpx import AsyncClient

from coreops.common.constants import RoleScope, UserRole
from coreops.leave.models import LeaveRequest
from tests.conftest import (
    TestSessionFactory,
    assign_role,
    auth_headers_for,
    configure_leave,
    create_access_token,
    seed_balance,
    seed_division,
    seed_employee,
    seed_leave_type,
)

BASE = "/api/v1/leave"


async def _seed(db):
    await configure_leave(db)
    division = await seed_division(db)
    employee = await seed_employee(db, division_id=division.id)
    manager = await seed_employee(db, division_id=division.id)
    hr = await seed_employee(db)
    await assign_role(
        db, employee.id, UserRole.employee, scope=RoleScope.DIVISION, division_id=division.id,
    )
    await assign_role(
        db, manager.id, UserRole.manager, scope=RoleScope.DIVISION, division_id=division.id,
    )
    await assign_role(db, hr.id, UserRole.hr_admin)
    leave_type = await seed_leave_type(db)
    await seed_balance(db, employee.id, leave_type.id, opening="10")
    await db.commit()
    return employee, manager, hr, leave_type


def _create_body(leave_type_id, **overrides):
    body = {
        "leave_type_id": str(leave_type_id),
        "start_date": "2026-03-02",
        "end_date": "2026-03-04",
        "unit": "FULL_DAY",
        "reason": "Family function",
    }
    body.update(overrides)
    return body


# ═════════════════════════════════════════════════════════════════════
# AUTH
# ═════════════════════════════════════════════════════════════════════


class TestAuth:

    async def test_health_is_public(self, client: AsyncClient):
        resp = await client.get("/api/v1/health")
        assert resp.status_code == 200
        assert resp.json()["status"] == "healthy"

    async def test_missing_token(self, client: AsyncClient):
        resp = await client.get(f"{BASE}/types")
        assert resp.status_code == 401

    async def test_expired_token(self, client: AsyncClient, db):
        employee, *_ = await _seed(db)
        token = create_access_token(employee.id, expired=True)
        resp = await client.get(
            f"{BASE}/types", headers={"Authorization": f"Bearer {token}"},
        )
        assert resp.status_code == 401

    async def test_unknown_employee(self, client: AsyncClient, db):
        await _seed(db)
        resp = await client.get(f"{BASE}/types", headers=auth_headers_for(uuid.uuid4()))
        assert resp.status_code == 401


# ═════════════════════════════════════════════════════════════════════
# REQUEST LIFECYCLE OVER HTTP
# ═════════════════════════════════════════════════════════════════════


class TestRequestEndpoints:

    async def test_create_approve_cancel(self, client: AsyncClient, db):
        employee, manager, _, leave_type = await _seed(db)

        resp = await client.post(
            f"{BASE}/requests",
            json=_create_body(leave_type.id),
            headers=auth_headers_for(employee.id),
        )
        assert resp.status_code == 201
        created = resp.json()
        assert created["status"] == "PENDING_L1"
        assert Decimal(created["units"]) == Decimal("3")
        assert created["employee_id"] == str(employee.id)

        resp = await client.post(
            f"{BASE}/requests/{created['id']}/approve",
            json={"version": created["version"]},
            headers=auth_headers_for(manager.id),
        )
        assert resp.status_code == 200
        approved = resp.json()
        assert approved["status"] == "APPROVED"

        resp = await client.get(f"{BASE}/balances", headers=auth_headers_for(employee.id))
        assert resp.status_code == 200
        assert Decimal(resp.json()[0]["available_balance"]) == Decimal("7")

        resp = await client.post(
            f"{BASE}/requests/{created['id']}/cancel",
            json={"reason": "Plans changed", "version": approved["version"]},
            headers=auth_headers_for(employee.id),
        )
        assert resp.status_code == 200
        assert resp.json()["status"] == "CANCELLED"

        resp = await client.get(f"{BASE}/balances", headers=auth_headers_for(employee.id))
        assert Decimal(resp.json()[0]["available_balance"]) == Decimal("10")

    async def test_overlap_is_retryable_conflict(self, client: AsyncClient, db):
        employee, _, _, leave_type = await _seed(db)
        headers = auth_headers_for(employee.id)
        first = await client.post(f"{BASE}/requests", json=_create_body(leave_type.id), headers=headers)
        assert first.status_code == 201

        resp = await client.post(
            f"{BASE}/requests",
            json=_create_body(leave_type.id, start_date="2026-03-03", end_date="2026-03-03"),
            headers=headers,
        )
        assert resp.status_code == 409
        assert resp.headers["content-type"].startswith("application/problem+json")
        body = resp.json()
        assert body["type"].endswith("/overlapping-leave")
        assert body["retryable"] is True
        assert body["instance"] == f"{BASE}/requests"

    async def test_stale_version_on_approve(self, client: AsyncClient, db):
        employee, manager, _, leave_type = await _seed(db)
        created = (await client.post(
            f"{BASE}/requests", json=_create_body(leave_type.id),
            headers=auth_headers_for(employee.id),
        )).json()

        resp = await client.post(
            f"{BASE}/requests/{created['id']}/approve",
            json={"version": 7},
            headers=auth_headers_for(manager.id),
        )
        assert resp.status_code == 409
        assert resp.json()["type"].endswith("/version-conflict")

        async with TestSessionFactory() as check:
            row = await check.get(LeaveRequest, uuid.UUID(created["id"]))
            assert row.version == 1

    async def test_half_day_without_part(self, client: AsyncClient, db):
        employee, _, _, leave_type = await _seed(db)
        resp = await client.post(
            f"{BASE}/requests",
            json=_create_body(
                leave_type.id, start_date="2026-03-02", end_date="2026-03-02", unit="HALF_DAY",
            ),
            headers=auth_headers_for(employee.id),
        )
        assert resp.status_code == 422
        assert "half_day_part" in resp.json()["errors"]

    async def test_reject_requires_reason(self, client: AsyncClient, db):
        employee, manager, _, leave_type = await _seed(db)
        created = (await client.post(
            f"{BASE}/requests", json=_create_body(leave_type.id),
            headers=auth_headers_for(employee.id),
        )).json()

        resp = await client.post(
            f"{BASE}/requests/{created['id']}/reject",
            json={},
            headers=auth_headers_for(manager.id),
        )
        assert resp.status_code == 422

        resp = await client.post(
            f"{BASE}/requests/{created['id']}/reject",
            json={"reason": "Release week"},
            headers=auth_headers_for(manager.id),
        )
        assert resp.status_code == 200
        assert resp.json()["status"] == "REJECTED"

    async def test_employee_cannot_approve(self, client: AsyncClient, db):
        employee, _, _, leave_type = await _seed(db)
        created = (await client.post(
            f"{BASE}/requests", json=_create_body(leave_type.id),
            headers=auth_headers_for(employee.id),
        )).json()

        resp = await client.post(
            f"{BASE}/requests/{created['id']}/approve",
            json={},
            headers=auth_headers_for(employee.id),
        )
        assert resp.status_code == 403
        assert resp.json()["title"] == "Forbidden"

    async def test_list_and_get(self, client: AsyncClient, db):
        employee, manager, _, leave_type = await _seed(db)
        created = (await client.post(
            f"{BASE}/requests", json=_create_body(leave_type.id),
            headers=auth_headers_for(employee.id),
        )).json()

        resp = await client.get(
            f"{BASE}/requests", params={"status": "PENDING_L1"},
            headers=auth_headers_for(manager.id),
        )
        assert resp.status_code == 200
        payload = resp.json()
        assert payload["meta"] == {
            "page": 1, "page_size": 50, "total": 1, "total_pages": 1,
            "has_next": False, "has_prev": False,
        }
        assert payload["data"][0]["id"] == created["id"]
        assert payload["data"][0]["status"] == "PENDING_L1"

        resp = await client.get(
            f"{BASE}/requests/{created['id']}", headers=auth_headers_for(manager.id),
        )
        assert resp.status_code == 200

    async def test_unknown_request_404(self, client: AsyncClient, db):
        _, manager, _, _ = await _seed(db)
        resp = await client.get(
            f"{BASE}/requests/{uuid.uuid4()}", headers=auth_headers_for(manager.id),
        )
        assert resp.status_code == 404
        assert resp.json()["type"].endswith("/not-found")


# ═════════════════════════════════════════════════════════════════════
# ADMIN ENDPOINTS
# ═════════════════════════════════════════════════════════════════════


class TestAdminEndpoints:

    async def test_leave_type_crud(self, client: AsyncClient, db):
        _, manager, hr, _ = await _seed(db)

        resp = await client.post(
            f"{BASE}/types",
            json={"code": "sl", "name": "Sick Leave", "supports_half_day": True},
            headers=auth_headers_for(hr.id),
        )
        assert resp.status_code == 201
        created = resp.json()
        assert created["code"] == "SL"

        resp = await client.patch(
            f"{BASE}/types/{created['id']}",
            json={"version": created["version"], "name": "Sick / Medical Leave"},
            headers=auth_headers_for(hr.id),
        )
        assert resp.status_code == 200
        assert resp.json()["version"] == 2

        resp = await client.post(
            f"{BASE}/types",
            json={"code": "SL", "name": "Duplicate"},
            headers=auth_headers_for(hr.id),
        )
        assert resp.status_code == 409
        assert "retryable" not in resp.json()

        resp = await client.post(
            f"{BASE}/types",
            json={"code": "ML", "name": "Maternity Leave"},
            headers=auth_headers_for(manager.id),
        )
        assert resp.status_code == 403

        resp = await client.get(f"{BASE}/types", headers=auth_headers_for(manager.id))
        assert [t["code"] for t in resp.json()] == ["PL", "SL"]

    async def test_grant_balance(self, client: AsyncClient, db):
        employee, _, hr, leave_type = await _seed(db)
        resp = await client.post(
            f"{BASE}/balances/grant",
            json={
                "employee_id": str(employee.id),
                "leave_type_id": str(leave_type.id),
                "year": 2026,
                "granted_balance": "2.5",
                "reason": "Comp-off",
            },
            headers=auth_headers_for(hr.id),
        )
        assert resp.status_code == 200
        body = resp.json()
        assert Decimal(body["available_balance"]) == Decimal("12.5")
        assert body["version"] == 2

    async def test_disabled_module(self, client: AsyncClient, db):
        employee, *_ = await _seed(db)
        await configure_leave(db, enabled=False)
        await db.commit()

        resp = await client.get(f"{BASE}/types", headers=auth_headers_for(employee.id))
        assert resp.status_code == 403
        assert resp.json()["detail"] == "Leave module is disabled"


# ═════════════════════════════════════════════════════════════════════
# ATTACHMENTS
# ═════════════════════════════════════════════════════════════════════


class TestAttachmentEndpoints:

    async def test_upload_list_download(self, client: AsyncClient, db):
        employee, manager, _, leave_type = await _seed(db)
        await configure_leave(db, attachments_enabled=True)
        await db.commit()
        created = (await client.post(
            f"{BASE}/requests", json=_create_body(leave_type.id),
            headers=auth_headers_for(employee.id),
        )).json()
        url = f"{BASE}/requests/{created['id']}/attachments"

        resp = await client.post(
            url,
            json={
                "file_name": "prescription.jpg",
                "mime_type": "image/jpeg",
                "size_bytes": 20480,
                "storage_key": "leave/2026/03/prescription.jpg",
            },
            headers=auth_headers_for(employee.id),
        )
        assert resp.status_code == 201
        attachment = resp.json()
        assert attachment["leave_request_id"] == created["id"]

        resp = await client.get(url, headers=auth_headers_for(manager.id))
        assert resp.status_code == 200
        assert [a["id"] for a in resp.json()] == [attachment["id"]]

        resp = await client.get(
            f"{url}/{attachment['id']}/download", headers=auth_headers_for(manager.id),
        )
        assert resp.status_code == 200
        assert resp.json()["storage_key"] == "leave/2026/03/prescription.jpg"

    async def test_blank_file_name_is_422(self, client: AsyncClient, db):
        employee, _, _, leave_type = await _seed(db)
        await configure_leave(db, attachments_enabled=True)
        await db.commit()
        created = (await client.post(
            f"{BASE}/requests", json=_create_body(leave_type.id),
            headers=auth_headers_for(employee.id),
        )).json()

        resp = await client.post(
            f"{BASE}/requests/{created['id']}/attachments",
            json={
                "file_name": "  ", "mime_type": "image/jpeg",
                "size_bytes": 1, "storage_key": "leave/x",
            },
            headers=auth_headers_for(employee.id),
        )
        assert resp.status_code == 422
        assert "file_name" in resp.json()["errors"]

    async def test_disabled_attachments_forbidden(self, client: AsyncClient, db):
        employee, _, _, leave_type = await _seed(db)
        created = (await client.post(
            f"{BASE}/requests", json=_create_body(leave_type.id),
            headers=auth_headers_for(employee.id),
        )).json()

        resp = await client.get(
            f"{BASE}/requests/{created['id']}/attachments",
            headers=auth_headers_for(employee.id),
        )
        assert resp.status_code == 403
        assert resp.json()["detail"] == "Attachments are disabled"
