"""HTTP tests for the guarded endpoints."""

from unittest.mock import AsyncMock

import pytest
from httpx import ASGITransport, AsyncClient

from dispo.config import Settings
from dispo.main import create_app
from dispo.services.email_provider import EmailDeliveryError
from tests.conftest import DISP1, _make_auth_header

SEEDED_ASSIGNEE = "disp@stadtwerke-augsburg.de"

NEW_SHIFT = {"date": "2025-01-16", "start": "06:00", "end": "14:00", "type": "Früh"}


@pytest.mark.asyncio
class TestHealth:
    async def test_health_is_public(self, anon_client):
        resp = await anon_client.get("/api/health")
        assert resp.status_code == 200
        data = resp.json()
        assert data["status"] == "healthy"
        assert data["notifications"]["digest_schedule"] == "18:30"

    async def test_request_id_echoed(self, anon_client):
        resp = await anon_client.get("/api/health", headers={"X-Request-ID": "abc-123"})
        assert resp.headers["X-Request-ID"] == "abc-123"


@pytest.mark.asyncio
class TestGuardResponses:
    async def test_anonymous_is_unauthorized(self, anon_client):
        resp = await anon_client.get("/api/shifts")
        assert resp.status_code == 401
        assert resp.json() == {"error": "Unauthorized", "message": "Authentication required"}

    async def test_malformed_token_is_unauthorized(self, app):
        transport = ASGITransport(app=app)
        async with AsyncClient(transport=transport, base_url="http://test") as client:
            resp = await client.get("/api/shifts", headers={"Authorization": "Bearer garbage"})
        assert resp.status_code == 401

    async def test_unknown_role_is_forbidden(self, app):
        transport = ASGITransport(app=app)
        async with AsyncClient(
            transport=transport, base_url="http://test", headers=_make_auth_header("intern"),
        ) as client:
            resp = await client.get("/api/shifts")
        assert resp.status_code == 403

    async def test_missing_permission(self, analyst_client):
        resp = await analyst_client.post("/api/shifts", json=NEW_SHIFT)
        assert resp.status_code == 403
        assert resp.json() == {
            "error": "Forbidden",
            "message": "Insufficient permissions. Required: canManageShifts",
        }

    async def test_role_guard(self, chief_client):
        resp = await chief_client.get("/api/audit")
        assert resp.status_code == 403
        assert resp.json() == {"error": "Forbidden", "message": "Access denied. Required roles: admin"}

    async def test_resource_guard(self, analyst_client):
        resp = await analyst_client.post("/api/shifts/1/apply")
        assert resp.status_code == 403
        assert resp.json() == {"error": "Forbidden", "message": "Access denied for apply on shifts"}

    async def test_management_roles(self, chief_client, disponent_client):
        assert (await chief_client.get("/api/management")).status_code == 200
        assert (await disponent_client.get("/api/management")).status_code == 403


@pytest.mark.asyncio
class TestShifts:
    async def test_list(self, analyst_client):
        resp = await analyst_client.get("/api/shifts")
        assert resp.status_code == 200
        data = resp.json()
        assert data["user"] == {"actor": "Unknown User", "role": "analyst"}
        assert len(data["shifts"]) == 2

    async def test_create_is_audited(self, chief_client, admin_client):
        resp = await chief_client.post("/api/shifts", json=NEW_SHIFT)
        assert resp.status_code == 200
        assert resp.json()["shift"]["id"] == 3

        audit = (await admin_client.get("/api/audit")).json()
        assert audit["total"] == 1
        assert audit["entries"][0]["action"] == "shift_created"
        assert audit["entries"][0]["role"] == "chief"
        assert audit["user"]["actor"] == "admin@stadtwerke-augsburg.de"

    async def test_not_found(self, chief_client):
        resp = await chief_client.get("/api/shifts/99")
        assert resp.status_code == 404

    async def test_apply(self, app):
        transport = ASGITransport(app=app)
        async with AsyncClient(
            transport=transport, base_url="http://test",
            headers=_make_auth_header("disponent", email=DISP1),
        ) as client:
            resp = await client.post("/api/shifts/1/apply")
        assert resp.status_code == 200
        assert resp.json()["shift"]["applicants"] == [DISP1]


@pytest.mark.asyncio
class TestAssignmentNotifications:
    async def test_assign_queues_notification(self, chief_client, storage, email_provider):
        resp = await chief_client.post("/api/shifts/1/assign", json={"user_email": DISP1})
        assert resp.status_code == 200
        assert resp.json()["shift"]["assigned_to"] == DISP1

        pending = await storage.get_pending_notifications()
        assert [(n.recipient, n.type.value) for n in pending] == [(DISP1, "assigned")]
        assert email_provider.get_sent_emails() == []

    async def test_reassign_sends_removal_to_previous(self, chief_client, storage, email_provider):
        resp = await chief_client.post("/api/shifts/2/assign", json={"user_email": DISP1})
        assert resp.status_code == 200

        sent = email_provider.get_sent_emails()
        assert [e.to for e in sent] == [SEEDED_ASSIGNEE]
        assert sent[0].subject == "Dienst-Zuweisung entfernt - 15.1.2025"
        pending = await storage.get_pending_notifications()
        assert [n.recipient for n in pending] == [DISP1]

    async def test_unassign_sends_removal(self, chief_client, email_provider):
        resp = await chief_client.delete("/api/shifts/2/assign")
        assert resp.status_code == 200
        assert resp.json()["shift"]["status"] == "open"

        sent = email_provider.get_sent_emails()
        assert len(sent) == 1
        assert sent[0].to == SEEDED_ASSIGNEE

    async def test_unassign_open_shift_conflicts(self, chief_client):
        resp = await chief_client.delete("/api/shifts/1/assign")
        assert resp.status_code == 409

    async def test_disponent_cannot_assign(self, disponent_client):
        resp = await disponent_client.post("/api/shifts/1/assign", json={"user_email": DISP1})
        assert resp.status_code == 403

    async def test_digest_run(self, chief_client, admin_client, email_provider):
        await chief_client.post("/api/shifts/1/assign", json={"user_email": DISP1})

        resp = await admin_client.post("/api/notifications/digest/run")
        assert resp.status_code == 200
        assert resp.json() == {
            "recipients": 1,
            "emails_sent": 1,
            "skipped_opt_out": 0,
            "failed": 0,
            "notifications_processed": 1,
        }
        assert email_provider.get_sent_emails()[0].subject.startswith("Dienst-Übersicht - ")

    async def test_digest_run_requires_admin(self, chief_client):
        resp = await chief_client.post("/api/notifications/digest/run")
        assert resp.status_code == 403


@pytest.mark.asyncio
class TestPreferences:
    async def test_own_preferences(self, app):
        transport = ASGITransport(app=app)
        async with AsyncClient(
            transport=transport, base_url="http://test",
            headers=_make_auth_header("disponent", email=DISP1),
        ) as client:
            resp = await client.put(
                f"/api/notifications/preferences/{DISP1}", json={"email_notifications": False},
            )
            assert resp.status_code == 200
            resp = await client.get(f"/api/notifications/preferences/{DISP1}")
        assert resp.json() == {"recipient": DISP1, "email_notifications": False}

    async def test_other_users_preferences_forbidden(self, disponent_client):
        resp = await disponent_client.get(f"/api/notifications/preferences/{DISP1}")
        assert resp.status_code == 403
        assert resp.json()["message"] == f"Access denied for preferences of {DISP1}"

    async def test_chief_manages_preferences(self, chief_client, storage):
        resp = await chief_client.put(
            f"/api/notifications/preferences/{DISP1}", json={"email_notifications": False},
        )
        assert resp.status_code == 200

        resp = await chief_client.post("/api/shifts/1/assign", json={"user_email": DISP1})
        assert resp.status_code == 200
        assert await storage.get_pending_notifications() == []


@pytest.mark.asyncio
class TestAuditExport:
    async def test_csv_export(self, chief_client, admin_client):
        await chief_client.post("/api/templates", json={"name": "Spätdienst", "start": "14:00", "end": "22:00"})

        resp = await admin_client.get("/api/audit/export")
        assert resp.status_code == 200
        assert resp.headers["content-type"].startswith("text/csv")
        lines = resp.text.strip().splitlines()
        assert lines[0].startswith("timestamp,action,entityType")
        assert "template_created" in lines[1]


@pytest.mark.asyncio
class TestSecurityHeaders:
    async def test_headers_on_api_responses(self, anon_client):
        resp = await anon_client.get("/api/health")
        assert resp.headers["X-Content-Type-Options"] == "nosniff"
        assert resp.headers["X-Frame-Options"] == "DENY"
        assert resp.headers["Cache-Control"] == "no-store"
        assert "Strict-Transport-Security" not in resp.headers

    async def test_headers_on_denials(self, anon_client):
        resp = await anon_client.get("/api/shifts")
        assert resp.status_code == 401
        assert resp.headers["X-Content-Type-Options"] == "nosniff"


@pytest.mark.asyncio
class TestAuditFilter:
    async def test_total_matches_filter(self, chief_client, admin_client):
        await chief_client.post("/api/shifts", json=NEW_SHIFT)
        await chief_client.post("/api/shifts/1/assign", json={"user_email": DISP1})

        data = (await admin_client.get("/api/audit", params={"action": "shift_created"})).json()
        assert data["total"] == 1
        assert [e["action"] for e in data["entries"]] == ["shift_created"]


OVERLAPPING_SHIFT = {"date": "2025-01-15", "start": "10:00", "end": "18:00", "type": "Mittel"}


@pytest.mark.asyncio
class TestAssignmentRules:
    async def test_double_booking_is_rejected(self, chief_client, storage):
        shift_id = (await chief_client.post("/api/shifts", json=OVERLAPPING_SHIFT)).json()["shift"]["id"]

        resp = await chief_client.post(f"/api/shifts/{shift_id}/assign", json={"user_email": SEEDED_ASSIGNEE})

        assert resp.status_code == 409
        body = resp.json()
        assert body["error"] == "Conflict"
        assert body["message"] == "Assignment blocked by rules: Prevent Double Booking"
        assert body["canAssign"] is False
        shift = (await chief_client.get(f"/api/shifts/{shift_id}")).json()["shift"]
        assert shift["assigned_to"] is None
        assert await storage.get_pending_notifications() == []

    async def test_override_allows_assignment(self, chief_client, admin_client):
        shift_id = (await chief_client.post("/api/shifts", json=OVERLAPPING_SHIFT)).json()["shift"]["id"]

        resp = await chief_client.post("/api/rules/overrides", json={
            "shift_id": shift_id, "rule_id": "PREVENT_DOUBLE_BOOKING", "reason": "Notfallvertretung",
        })
        assert resp.status_code == 201
        override_id = resp.json()["id"]

        resp = await chief_client.post(f"/api/shifts/{shift_id}/assign", json={"user_email": SEEDED_ASSIGNEE})
        assert resp.status_code == 200

        audit = (await admin_client.get("/api/audit", params={"action": "rule_override_applied"})).json()
        assert audit["total"] == 1

        resp = await chief_client.delete(f"/api/rules/overrides/{override_id}")
        assert resp.status_code == 204
        assert (await chief_client.get("/api/rules/overrides")).json() == {"overrides": []}

    async def test_short_rest_is_a_warning(self, chief_client):
        resp = await chief_client.post("/api/shifts/1/assign", json={"user_email": SEEDED_ASSIGNEE})
        assert resp.status_code == 200
        assert resp.json()["warnings"] == ["Minimum Rest Period"]

    async def test_override_for_unknown_rule(self, chief_client):
        resp = await chief_client.post("/api/rules/overrides", json={
            "shift_id": 1, "rule_id": "INVALID_RULE", "reason": "x",
        })
        assert resp.status_code == 404

    async def test_overrides_need_assign_permission(self, disponent_client):
        resp = await disponent_client.post("/api/rules/overrides", json={
            "shift_id": 1, "rule_id": "PREVENT_DOUBLE_BOOKING", "reason": "x",
        })
        assert resp.status_code == 403

    async def test_rules_listing(self, analyst_client):
        rules = (await analyst_client.get("/api/rules")).json()["rules"]
        assert [r["id"] for r in rules] == ["PREVENT_DOUBLE_BOOKING", "LOCATION_CONSISTENCY", "REST_PERIOD"]


@pytest.mark.asyncio
class TestNotificationFailures:
    async def test_failed_removal_mail_keeps_reassignment(self, storage):
        provider = AsyncMock()
        provider.send_email.side_effect = EmailDeliveryError("smtp down")
        app = create_app(Settings(_env_file=None, environment="test"), email_provider=provider, storage=storage)

        transport = ASGITransport(app=app)
        async with AsyncClient(
            transport=transport, base_url="http://test", headers=_make_auth_header("chief"),
        ) as client:
            resp = await client.post("/api/shifts/2/assign", json={"user_email": DISP1})

        assert resp.status_code == 200
        assert resp.json()["shift"]["assigned_to"] == DISP1
        assert resp.json()["warnings"] == [f"Notification to {SEEDED_ASSIGNEE} failed"]
        pending = await storage.get_pending_notifications()
        assert sorted((n.recipient, n.type.value) for n in pending) == [
            (DISP1, "assigned"), (SEEDED_ASSIGNEE, "removed"),
        ]

    async def test_failed_removal_mail_on_unassign(self, storage):
        provider = AsyncMock()
        provider.send_email.side_effect = EmailDeliveryError("smtp down")
        app = create_app(Settings(_env_file=None, environment="test"), email_provider=provider, storage=storage)

        transport = ASGITransport(app=app)
        async with AsyncClient(
            transport=transport, base_url="http://test", headers=_make_auth_header("chief"),
        ) as client:
            resp = await client.delete("/api/shifts/2/assign")

        assert resp.status_code == 200
        assert resp.json()["shift"]["status"] == "open"
