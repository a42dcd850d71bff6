"""Report service — reimbursement totals and flattened audit rows for export."""

import logging
from datetime import datetime
from decimal import Decimal

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.data.currency import convert_to_usd, to_money
from app.models.audit import AuditEntry
from app.models.claim import Claim, ClaimStatus
from app.services.access import AccessContext

logger = logging.getLogger(__name__)

PAYABLE = (ClaimStatus.APPROVED, ClaimStatus.PAID)

AUDIT_CSV_FIELDS = [
    "created_at", "action", "entity_type", "entity_id",
    "actor_id", "assignment_id", "consultant_id", "details",
]


class ReportService:
    async def reimbursement_summary(self, db: AsyncSession, access: AccessContext) -> dict:
        """Counts and USD-normalized totals per claim status."""
        access.require_admin()
        result = await db.execute(
            select(
                Claim.status,
                Claim.currency,
                func.count(Claim.id),
                func.sum(Claim.submitted_amount),
                func.sum(Claim.approved_amount),
            ).group_by(Claim.status, Claim.currency)
        )

        by_status: dict[str, dict] = {
            s.value: {"count": 0, "submitted_usd": Decimal("0"), "approved_usd": Decimal("0")}
            for s in ClaimStatus
        }
        savings = Decimal("0")
        for status, currency, count, submitted, approved in result.all():
            status = ClaimStatus(status)
            bucket = by_status[status.value]
            submitted_usd = convert_to_usd(Decimal(str(submitted or 0)), currency or "USD")
            bucket["count"] += count
            bucket["submitted_usd"] += submitted_usd
            # Rejected claims keep their clamped amount but are never paid
            if status in PAYABLE:
                approved_usd = convert_to_usd(Decimal(str(approved or 0)), currency or "USD")
                bucket["approved_usd"] += approved_usd
                savings += submitted_usd - approved_usd

        total_submitted = sum((b["submitted_usd"] for b in by_status.values()), Decimal("0"))
        total_approved = sum((b["approved_usd"] for b in by_status.values()), Decimal("0"))
        return {
            "by_status": {
                k: {**v, "submitted_usd": to_money(v["submitted_usd"]), "approved_usd": to_money(v["approved_usd"])}
                for k, v in by_status.items()
            },
            "total_claims": sum(b["count"] for b in by_status.values()),
            "total_submitted_usd": to_money(total_submitted),
            "total_approved_usd": to_money(total_approved),
            "clamped_savings_usd": to_money(savings),
        }

    async def audit_rows(
        self, db: AsyncSession, access: AccessContext, since: datetime | None = None
    ) -> list[dict]:
        access.require_admin()
        query = select(AuditEntry).order_by(AuditEntry.created_at.asc())
        if since is not None:
            query = query.where(AuditEntry.created_at >= since)
        result = await db.execute(query)

        rows = []
        for entry in result.scalars().all():
            details = entry.details or {}
            rows.append({
                "created_at": entry.created_at.isoformat() if entry.created_at else "",
                "action": entry.action,
                "entity_type": entry.entity_type or "",
                "entity_id": str(entry.entity_id) if entry.entity_id else "",
                "actor_id": str(entry.actor_id) if entry.actor_id else "",
                "assignment_id": str(entry.assignment_id) if entry.assignment_id else "",
                "consultant_id": str(entry.consultant_id) if entry.consultant_id else "",
                "details": "; ".join(f"{k}={v}" for k, v in details.items() if v is not None),
            })
        logger.info(f"Audit export: {len(rows)} rows")
        return rows


report_service = ReportService()
