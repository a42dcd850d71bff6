"""Reviews router — admin decisions on reimbursement claims."""

import uuid

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.database import get_db
from app.dependencies import get_current_access, http_error
from app.exceptions import CapTrackError
from app.schemas.claim import ApproveRequest, ClaimResponse, RejectRequest
from app.services.access import AccessContext
from app.services.review_service import review_state_machine

router = APIRouter()


@router.post("/{claim_id}/review", response_model=ClaimResponse)
async def start_review(
    claim_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
    access: AccessContext = Depends(get_current_access),
):
    try:
        claim = await review_state_machine.start_review(db, access, claim_id)
    except CapTrackError as e:
        raise http_error(e)
    return ClaimResponse.model_validate(claim)


@router.post("/{claim_id}/approve", response_model=ClaimResponse)
async def approve_claim(
    claim_id: uuid.UUID,
    req: ApproveRequest,
    db: AsyncSession = Depends(get_db),
    access: AccessContext = Depends(get_current_access),
):
    """Approve at the clamped amount unless a different one is given."""
    try:
        claim = await review_state_machine.approve(
            db,
            access,
            claim_id,
            approved_amount=req.approved_amount,
            notes=req.notes,
            allow_above_cap=req.allow_above_cap,
        )
    except CapTrackError as e:
        raise http_error(e)
    return ClaimResponse.model_validate(claim)


@router.post("/{claim_id}/reject", response_model=ClaimResponse)
async def reject_claim(
    claim_id: uuid.UUID,
    req: RejectRequest,
    db: AsyncSession = Depends(get_db),
    access: AccessContext = Depends(get_current_access),
):
    try:
        claim = await review_state_machine.reject(
            db, access, claim_id, rejection_reason=req.rejection_reason, notes=req.notes
        )
    except CapTrackError as e:
        raise http_error(e)
    return ClaimResponse.model_validate(claim)


@router.post("/{claim_id}/pay", response_model=ClaimResponse)
async def mark_paid(
    claim_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
    access: AccessContext = Depends(get_current_access),
):
    try:
        claim = await review_state_machine.mark_paid(db, access, claim_id)
    except CapTrackError as e:
        raise http_error(e)
    return ClaimResponse.model_validate(claim)
