"""Export service — PDF claim dossiers."""

import io
import logging
import uuid
from datetime import date

from reportlab.lib import colors
from reportlab.lib.pagesizes import letter
from reportlab.lib.styles import getSampleStyleSheet
from reportlab.lib.units import inch
from reportlab.platypus import Paragraph, SimpleDocTemplate, Spacer, Table, TableStyle
from sqlalchemy.ext.asyncio import AsyncSession

from app.data.currency import format_price
from app.models.price_cap import PriceCap
from app.models.project import Assignment, Consultant
from app.services.access import AccessContext
from app.services.audit_trail import audit_trail
from app.services.claim_ledger import claim_ledger

logger = logging.getLogger(__name__)

HEADER_STYLE = [
    ("BACKGROUND", (0, 0), (-1, 0), colors.grey),
    ("TEXTCOLOR", (0, 0), (-1, 0), colors.whitesmoke),
    ("GRID", (0, 0), (-1, -1), 0.5, colors.grey),
    ("VALIGN", (0, 0), (-1, -1), "TOP"),
]


class ExportService:
    """Generates a single-claim PDF: amounts, cap, receipts and audit timeline."""

    async def generate_claim_pdf(
        self, db: AsyncSession, access: AccessContext, claim_id: uuid.UUID
    ) -> bytes:
        access.require_admin()
        claim = await claim_ledger.get_claim(db, access, claim_id)
        assignment = await db.get(Assignment, claim.assignment_id)
        consultant = await db.get(Consultant, claim.consultant_id)
        cap = await db.get(PriceCap, claim.price_cap_id) if claim.price_cap_id else None
        timeline = await audit_trail.entries_for(db, "reimbursement_request", claim.id)

        buf = io.BytesIO()
        doc = SimpleDocTemplate(buf, pagesize=letter, topMargin=0.5 * inch)
        styles = getSampleStyleSheet()
        elements = []

        elements.append(Paragraph("CapTrack Reimbursement Claim", styles["Title"]))
        route = (
            f"{assignment.travel_from_location} -> {assignment.travel_to_location}"
            if assignment else "Unknown"
        )
        info = [
            f"<b>Claim:</b> {claim.id}",
            f"<b>Consultant:</b> {consultant.name if consultant else 'Unknown'}",
            f"<b>Route:</b> {route}",
            f"<b>Status:</b> {claim.status.value}",
            f"<b>Generated:</b> {date.today().isoformat()}",
        ]
        for line in info:
            elements.append(Paragraph(line, styles["Normal"]))
        elements.append(Spacer(1, 12))

        elements.append(Paragraph("<b>Amounts</b>", styles["Heading2"]))
        approved = (
            format_price(claim.approved_amount, claim.currency)
            if claim.approved_amount is not None else "N/A"
        )
        amounts = [
            ["Metric", "Amount"],
            ["Submitted", format_price(claim.submitted_amount, claim.currency)],
            ["Approved", approved],
            ["Price cap", format_price(cap.max_approved_price, cap.currency) if cap else "No cap set"],
        ]
        table = Table(amounts, colWidths=[3 * inch, 3 * inch])
        table.setStyle(TableStyle(HEADER_STYLE + [("ALIGN", (1, 1), (1, -1), "RIGHT")]))
        elements.append(table)
        elements.append(Spacer(1, 12))

        if claim.attachments:
            elements.append(Paragraph("<b>Receipts</b>", styles["Heading2"]))
            data = [["File", "Type", "Size (KB)"]]
            for a in claim.attachments:
                data.append([a.file_name, a.file_type or "", f"{(a.file_size or 0) / 1024:.1f}"])
            table = Table(data, colWidths=[3 * inch, 1.8 * inch, 1.2 * inch])
            table.setStyle(TableStyle(HEADER_STYLE))
            elements.append(table)
            elements.append(Spacer(1, 12))

        if timeline:
            elements.append(Paragraph("<b>Audit Trail</b>", styles["Heading2"]))
            data = [["Time", "Action", "Actor", "Details"]]
            for entry in timeline:
                details = ", ".join(f"{k}: {v}" for k, v in (entry.details or {}).items() if v is not None)
                data.append([
                    entry.created_at.isoformat()[:19] if entry.created_at else "",
                    entry.action,
                    str(entry.actor_id)[:8] if entry.actor_id else "",
                    details[:80],
                ])
            table = Table(data, colWidths=[1.5 * inch, 1.6 * inch, 0.9 * inch, 2.5 * inch])
            table.setStyle(TableStyle(HEADER_STYLE + [("FONTSIZE", (0, 0), (-1, -1), 7)]))
            elements.append(table)

        doc.build(elements)
        logger.info(f"Claim PDF generated for {claim.id}")
        return buf.getvalue()


export_service = ExportService()
