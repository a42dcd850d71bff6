"""Reports router — reimbursement summary, CSV and PDF exports."""

import csv
import io
import uuid
from datetime import datetime

from fastapi import APIRouter, Depends, HTTPException, Query
from fastapi.responses import Response, StreamingResponse
from sqlalchemy.ext.asyncio import AsyncSession

from app.database import get_db
from app.dependencies import get_current_access, http_error
from app.exceptions import CapTrackError
from app.services.access import AccessContext
from app.services.export_service import export_service
from app.services.report_service import AUDIT_CSV_FIELDS, report_service

router = APIRouter()


@router.get("/reimbursements")
async def reimbursement_summary(
    db: AsyncSession = Depends(get_db),
    access: AccessContext = Depends(get_current_access),
):
    """Counts and USD totals per claim status."""
    try:
        return await report_service.reimbursement_summary(db, access)
    except CapTrackError as e:
        raise http_error(e)


@router.get("/audit.csv")
async def export_audit_csv(
    since: datetime | None = Query(None),
    db: AsyncSession = Depends(get_db),
    access: AccessContext = Depends(get_current_access),
):
    """Export the audit trail as CSV."""
    try:
        rows = await report_service.audit_rows(db, access, since=since)
    except CapTrackError as e:
        raise http_error(e)
    if not rows:
        raise HTTPException(status_code=404, detail="No data to export")

    output = io.StringIO()
    writer = csv.DictWriter(output, fieldnames=AUDIT_CSV_FIELDS)
    writer.writeheader()
    writer.writerows(rows)
    output.seek(0)

    return StreamingResponse(
        iter([output.getvalue()]),
        media_type="text/csv",
        headers={"Content-Disposition": "attachment; filename=captrack_audit.csv"},
    )


@router.get("/claims/{claim_id}/pdf")
async def claim_pdf(
    claim_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
    access: AccessContext = Depends(get_current_access),
):
    """Download a claim dossier (amounts, receipts, audit timeline) as PDF."""
    try:
        pdf_bytes = await export_service.generate_claim_pdf(db, access, claim_id)
    except CapTrackError as e:
        raise http_error(e)

    return Response(
        content=pdf_bytes,
        media_type="application/pdf",
        headers={"Content-Disposition": f"attachment; filename=claim_{claim_id}.pdf"},
    )
