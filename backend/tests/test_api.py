import uuid

import httpx
import pytest

from app.database import get_db
from app.dependencies import create_access_token
from app.main import app
from app.services.audit_trail import audit_trail
from app.services.claim_ledger import claim_ledger
from app.services.search_orchestrator import search_orchestrator
from conftest import quote


@pytest.fixture
async def client(session_factory, storage, quote_client, monkeypatch):
    async def _get_db():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = _get_db
    monkeypatch.setattr(audit_trail, "_session_factory", session_factory)
    monkeypatch.setattr(claim_ledger, "storage", storage)
    monkeypatch.setattr(search_orchestrator, "client", quote_client)

    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as c:
        yield c
    app.dependency_overrides.clear()


def auth(access) -> dict:
    return {"Authorization": f"Bearer {create_access_token(str(access.user_id))}"}


async def _submit(client, world, amount="1200", files=None):
    return await client.post(
        "/api/claims",
        data={"assignment_id": str(world.assignment.id), "amount": amount, "currency": "USD"},
        files=files or [("files", ("hotel.pdf", b"%PDF-1.4 folio", "application/pdf"))],
        headers=auth(world.consultant_access),
    )


async def test_health(client):
    resp = await client.get("/api/health")
    assert resp.status_code == 200
    assert resp.json() == {"status": "ok", "service": "captrack"}


async def test_bad_token_is_unauthorized(client, world):
    resp = await client.get("/api/claims", headers={"Authorization": "Bearer not-a-token"})
    assert resp.status_code == 401


async def test_search_then_submit_is_clamped(client, world, quote_client):
    quote_client.quotes = [quote(980), quote(950), quote(1020)]

    search = await client.post(
        f"/api/assignments/{world.assignment.id}/searches",
        json={"kind": "flight"},
        headers=auth(world.admin),
    )
    assert search.status_code == 201, search.text
    assert search.json()["results_count"] == 3

    resp = await _submit(client, world)
    assert resp.status_code == 201, resp.text
    body = resp.json()
    assert body["claim"]["status"] == "pending"
    assert float(body["claim"]["approved_amount"]) == 950.0
    assert body["upload"] == {"uploaded_count": 1, "total_count": 1, "rejected_files": [], "failed_files": []}
    assert body["warnings"] == [
        "Amount exceeds max approved price of $950.00. You will be reimbursed up to $950.00."
    ]


async def test_submit_without_files_is_rejected(client, world):
    resp = await client.post(
        "/api/claims",
        data={"assignment_id": str(world.assignment.id), "amount": "100"},
        headers=auth(world.consultant_access),
    )
    assert resp.status_code == 422


async def test_consultant_cannot_approve(client, world):
    claim_id = (await _submit(client, world)).json()["claim"]["id"]

    resp = await client.post(f"/api/claims/{claim_id}/approve", json={}, headers=auth(world.consultant_access))

    assert resp.status_code == 403
    assert resp.json()["detail"]["code"] == "access_denied"


async def test_approve_twice_conflicts(client, world):
    claim_id = (await _submit(client, world, amount="400")).json()["claim"]["id"]

    first = await client.post(f"/api/claims/{claim_id}/approve", json={}, headers=auth(world.admin))
    second = await client.post(f"/api/claims/{claim_id}/approve", json={}, headers=auth(world.admin))

    assert first.status_code == 200
    assert first.json()["status"] == "approved"
    assert second.status_code == 409


async def test_other_consultant_cannot_read_claim(client, world):
    claim_id = (await _submit(client, world)).json()["claim"]["id"]

    resp = await client.get(f"/api/claims/{claim_id}", headers=auth(world.other_access))
    assert resp.status_code == 403

    missing = await client.get(f"/api/claims/{uuid.uuid4()}", headers=auth(world.admin))
    assert missing.status_code == 404


async def test_audit_csv_export(client, world):
    claim_id = (await _submit(client, world, amount="250")).json()["claim"]["id"]
    await client.post(
        f"/api/claims/{claim_id}/reject",
        json={"rejection_reason": "Missing itinerary"},
        headers=auth(world.admin),
    )

    resp = await client.get("/api/reports/audit.csv", headers=auth(world.admin))

    assert resp.status_code == 200
    assert resp.headers["content-type"].startswith("text/csv")
    lines = resp.text.strip().splitlines()
    assert lines[0].startswith("created_at,action,entity_type")
    assert any("reimbursement_rejected" in line for line in lines[1:])


async def test_decision_reaches_consultant_feed(client, world):
    claim_id = (await _submit(client, world, amount="320")).json()["claim"]["id"]
    await client.post(f"/api/claims/{claim_id}/approve", json={}, headers=auth(world.admin))

    resp = await client.get("/api/notifications", headers=auth(world.consultant_access))

    body = resp.json()
    assert body["unread_count"] == 1
    assert body["notifications"][0]["type"] == "reimbursement_approved"
    assert body["notifications"][0]["reference_id"] == claim_id


async def test_claim_timeline_and_pdf(client, world):
    claim_id = (await _submit(client, world, amount="640")).json()["claim"]["id"]
    await client.post(f"/api/claims/{claim_id}/review", headers=auth(world.admin))

    timeline = await client.get(f"/api/audit/reimbursement_request/{claim_id}", headers=auth(world.admin))
    assert [e["action"] for e in timeline.json()] == ["reimbursement_submitted", "reimbursement_under_review"]

    pdf = await client.get(f"/api/reports/claims/{claim_id}/pdf", headers=auth(world.admin))
    assert pdf.status_code == 200
    assert pdf.headers["content-type"] == "application/pdf"
    assert pdf.content.startswith(b"%PDF")

    denied = await client.get(f"/api/reports/claims/{claim_id}/pdf", headers=auth(world.consultant_access))
    assert denied.status_code == 403


async def test_mark_notifications_read(client, world):
    claim_id = (await _submit(client, world, amount="90")).json()["claim"]["id"]
    await client.post(f"/api/claims/{claim_id}/reject", json={"rejection_reason": "Duplicate"}, headers=auth(world.admin))
    feed = (await client.get("/api/notifications", headers=auth(world.consultant_access))).json()
    notification_id = feed["notifications"][0]["id"]

    marked = await client.put(f"/api/notifications/{notification_id}/read", headers=auth(world.consultant_access))
    assert marked.status_code == 200

    stranger = await client.put(f"/api/notifications/{notification_id}/read", headers=auth(world.other_access))
    assert stranger.status_code == 404

    feed = (await client.get("/api/notifications", headers=auth(world.consultant_access))).json()
    assert feed["unread_count"] == 0
