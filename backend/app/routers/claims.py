"""Claims router — reimbursement submission, listing and receipts."""

import uuid

from fastapi import APIRouter, Depends, File, Form, Query, UploadFile
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import settings
from app.database import get_db
from app.dependencies import get_current_access, http_error
from app.exceptions import CapTrackError
from app.models.claim import ClaimStatus
from app.schemas.claim import (
    AttachmentResponse,
    ClaimResponse,
    RejectedFile,
    SubmissionResponse,
    UploadSummary,
)
from app.services.access import AccessContext
from app.services.claim_ledger import ReceiptFile, UploadReport, claim_ledger

router = APIRouter()


async def _read_files(files: list[UploadFile] | None) -> list[ReceiptFile]:
    """Read at most one byte past the size limit; the ledger reports anything longer."""
    receipts = []
    for f in files or []:
        data = await f.read(settings.max_attachment_bytes + 1)
        receipts.append(ReceiptFile(
            name=f.filename or "receipt",
            data=data,
            content_type=f.content_type,
            declared_size=f.size,
        ))
    return receipts


def _upload_summary(report: UploadReport) -> UploadSummary:
    return UploadSummary(
        uploaded_count=report.uploaded_count,
        total_count=report.total_count,
        rejected_files=[
            RejectedFile(file_name=e.file_name, size=e.size, max_bytes=e.max_bytes, message=e.message)
            for e in report.rejected_files
        ],
        failed_files=report.failed_files,
    )


@router.post("", status_code=201, response_model=SubmissionResponse)
async def submit_claim(
    assignment_id: uuid.UUID = Form(...),
    amount: str = Form(...),
    currency: str | None = Form(None),
    notes: str | None = Form(None),
    files: list[UploadFile] | None = File(None),
    db: AsyncSession = Depends(get_db),
    access: AccessContext = Depends(get_current_access),
):
    """Submit a reimbursement claim with its receipts (multipart)."""
    receipts = await _read_files(files)
    try:
        result = await claim_ledger.submit(
            db, access, assignment_id, amount, receipts, currency=currency, notes=notes
        )
    except CapTrackError as e:
        raise http_error(e)
    return SubmissionResponse(
        claim=ClaimResponse.model_validate(result.claim),
        upload=_upload_summary(result.upload),
        warnings=result.warnings,
    )


@router.get("", response_model=list[ClaimResponse])
async def list_claims(
    consultant_id: uuid.UUID | None = Query(None),
    status: ClaimStatus | None = Query(None),
    db: AsyncSession = Depends(get_db),
    access: AccessContext = Depends(get_current_access),
):
    """Newest first. Consultants only ever see their own claims."""
    try:
        claims = await claim_ledger.list_for(db, access, consultant_id=consultant_id, status=status)
    except CapTrackError as e:
        raise http_error(e)
    return [ClaimResponse.model_validate(c) for c in claims]


@router.get("/{claim_id}", response_model=ClaimResponse)
async def get_claim(
    claim_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
    access: AccessContext = Depends(get_current_access),
):
    try:
        claim = await claim_ledger.get_claim(db, access, claim_id)
    except CapTrackError as e:
        raise http_error(e)
    return ClaimResponse.model_validate(claim)


@router.get("/{claim_id}/attachments", response_model=list[AttachmentResponse])
async def list_attachments(
    claim_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
    access: AccessContext = Depends(get_current_access),
):
    try:
        attachments = await claim_ledger.attachments_for(db, access, claim_id)
    except CapTrackError as e:
        raise http_error(e)
    return [AttachmentResponse.model_validate(a) for a in attachments]


@router.post("/{claim_id}/attachments", status_code=201, response_model=UploadSummary)
async def add_attachments(
    claim_id: uuid.UUID,
    files: list[UploadFile] | None = File(None),
    db: AsyncSession = Depends(get_db),
    access: AccessContext = Depends(get_current_access),
):
    """Add receipts while the claim is still pending."""
    receipts = await _read_files(files)
    try:
        report = await claim_ledger.add_attachments(db, access, claim_id, receipts)
    except CapTrackError as e:
        raise http_error(e)
    return _upload_summary(report)


attachments_router = APIRouter()


@attachments_router.delete("/{attachment_id}", status_code=204)
async def delete_attachment(
    attachment_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
    access: AccessContext = Depends(get_current_access),
):
    try:
        await claim_ledger.delete_attachment(db, access, attachment_id)
    except CapTrackError as e:
        raise http_error(e)
