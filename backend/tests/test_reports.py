from decimal import Decimal

import pytest

from app.exceptions import AccessDeniedError
from app.services.report_service import ReportService
from conftest import receipt, set_cap


@pytest.fixture
def reports():
    return ReportService()


async def test_summary_counts_only_granted_amounts(db, services, world, reports):
    await set_cap(services, db, world, 950)
    clamped = await services.ledger.submit(db, world.consultant_access, world.assignment.id, "1200", [receipt()])
    rejected = await services.ledger.submit(db, world.consultant_access, world.assignment.id, "300", [receipt()])
    await services.ledger.submit(db, world.consultant_access, world.assignment.id, "80", [receipt()])

    await services.reviews.approve(db, world.admin, clamped.claim.id)
    await services.reviews.reject(db, world.admin, rejected.claim.id, "Personal travel")

    summary = await reports.reimbursement_summary(db, world.admin)

    assert summary["total_claims"] == 3
    assert summary["by_status"]["approved"] == {
        "count": 1, "submitted_usd": Decimal("1200.00"), "approved_usd": Decimal("950.00"),
    }
    assert summary["by_status"]["rejected"]["approved_usd"] == Decimal("0.00")
    assert summary["by_status"]["pending"]["count"] == 1
    assert summary["total_submitted_usd"] == Decimal("1580.00")
    assert summary["total_approved_usd"] == Decimal("950.00")
    assert summary["clamped_savings_usd"] == Decimal("250.00")


async def test_audit_rows_flatten_details(db, services, world, reports):
    await set_cap(services, db, world, 500)

    rows = await reports.audit_rows(db, world.admin)

    assert [r["action"] for r in rows] == ["price_cap_set"]
    assert rows[0]["assignment_id"] == str(world.assignment.id)
    assert "max_approved_price=500" in rows[0]["details"]


async def test_reports_are_admin_only(db, world, reports):
    with pytest.raises(AccessDeniedError):
        await reports.reimbursement_summary(db, world.consultant_access)
    with pytest.raises(AccessDeniedError):
        await reports.audit_rows(db, world.consultant_access)
