import uuid
from datetime import datetime, timedelta, timezone
from decimal import Decimal

from sqlalchemy import select

from app.models.audit import AuditEntry
from app.services.audit_trail import AuditTrail
from app.services.claim_ledger import ClaimLedger
from conftest import receipt


class BrokenSessionFactory:
    def __call__(self):
        raise ConnectionError("audit database unreachable")


async def test_record_serializes_rich_details(db, services):
    entity = uuid.uuid4()
    entry = await services.audit.record(
        "price_cap_set",
        entity_type="price_cap",
        entity_id=entity,
        details={"amount": Decimal("950.00"), "search_id": entity, "nested": {"at": datetime(2026, 1, 2)}},
    )

    assert entry is not None
    stored = (await db.execute(select(AuditEntry).where(AuditEntry.entity_id == entity))).scalar_one()
    assert stored.details == {
        "amount": "950.00",
        "search_id": str(entity),
        "nested": {"at": "2026-01-02T00:00:00"},
    }


async def test_record_failure_is_reported_not_raised(caplog):
    audit = AuditTrail(BrokenSessionFactory())

    with caplog.at_level("ERROR", logger="captrack.operator"):
        result = await audit.record("reimbursement_submitted", entity_type="reimbursement_request")

    assert result is None
    assert any("Audit append failed" in r.getMessage() for r in caplog.records)


async def test_audit_outage_does_not_block_submission(db, services, world, storage, caplog):
    ledger = ClaimLedger(storage=storage, caps=services.caps, audit=AuditTrail(BrokenSessionFactory()))

    with caplog.at_level("ERROR", logger="captrack.operator"):
        result = await ledger.submit(db, world.consultant_access, world.assignment.id, "120", [receipt()])

    assert result.claim.id is not None
    assert any("reimbursement_submitted" in r.getMessage() for r in caplog.records)


async def test_entries_for_entity_in_order(db, services):
    entity = uuid.uuid4()
    await services.audit.record("reimbursement_submitted", entity_type="reimbursement_request", entity_id=entity)
    await services.audit.record("reimbursement_approved", entity_type="reimbursement_request", entity_id=entity)
    await services.audit.record("reimbursement_submitted", entity_type="reimbursement_request", entity_id=uuid.uuid4())

    entries = await services.audit.entries_for(db, "reimbursement_request", entity)
    assert [e.action for e in entries] == ["reimbursement_submitted", "reimbursement_approved"]


async def test_list_entries_filters(db, services):
    await services.audit.record("assignment_created", entity_type="assignment")
    await services.audit.record("price_cap_set", entity_type="price_cap")
    await services.audit.record("price_cap_set", entity_type="price_cap")

    caps = await services.audit.list_entries(db, action="price_cap_set")
    assert len(caps) == 2
    assert len(await services.audit.list_entries(db, limit=1)) == 1

    future = datetime.now(timezone.utc) + timedelta(days=1)
    assert await services.audit.list_entries(db, since=future) == []


async def test_staged_entry_rolls_back_with_caller(db, services):
    entity = uuid.uuid4()
    services.audit.stage(db, "reimbursement_approved", entity_type="reimbursement_request", entity_id=entity)
    await db.rollback()

    assert await services.audit.entries_for(db, "reimbursement_request", entity) == []
