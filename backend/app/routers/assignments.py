"""Assignments router — lifecycle, quote searches and price caps."""

import uuid

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from app.database import get_db
from app.dependencies import get_current_access, http_error
from app.exceptions import CapTrackError
from app.models.quote import QuoteKind
from app.schemas.assignment import AssignmentResponse, CreateAssignmentRequest
from app.schemas.price_cap import PriceCapResponse
from app.schemas.quote import QuoteResponse, SearchRequest, SearchResponse
from app.services.access import AccessContext
from app.services.assignment_service import assignment_service
from app.services.price_cap_engine import price_cap_engine
from app.services.quote_store import quote_store
from app.services.search_orchestrator import search_orchestrator

router = APIRouter()


@router.post("", status_code=201, response_model=AssignmentResponse)
async def create_assignment(
    req: CreateAssignmentRequest,
    db: AsyncSession = Depends(get_db),
    access: AccessContext = Depends(get_current_access),
):
    try:
        assignment = await assignment_service.create(db, access, **req.model_dump())
    except CapTrackError as e:
        raise http_error(e)
    return AssignmentResponse.model_validate(assignment)


@router.get("", response_model=list[AssignmentResponse])
async def list_assignments(
    db: AsyncSession = Depends(get_db),
    access: AccessContext = Depends(get_current_access),
):
    """Admins see every assignment; consultants see their own."""
    try:
        assignments = await assignment_service.list_for(db, access)
    except CapTrackError as e:
        raise http_error(e)
    return [AssignmentResponse.model_validate(a) for a in assignments]


@router.get("/{assignment_id}", response_model=AssignmentResponse)
async def get_assignment(
    assignment_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
    access: AccessContext = Depends(get_current_access),
):
    try:
        assignment = await assignment_service.get(db, access, assignment_id)
    except CapTrackError as e:
        raise http_error(e)
    return AssignmentResponse.model_validate(assignment)


@router.post("/{assignment_id}/confirm", response_model=AssignmentResponse)
async def confirm_assignment(
    assignment_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
    access: AccessContext = Depends(get_current_access),
):
    try:
        assignment = await assignment_service.confirm(db, access, assignment_id)
    except CapTrackError as e:
        raise http_error(e)
    return AssignmentResponse.model_validate(assignment)


@router.post("/{assignment_id}/complete", response_model=AssignmentResponse)
async def complete_assignment(
    assignment_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
    access: AccessContext = Depends(get_current_access),
):
    try:
        assignment = await assignment_service.complete(db, access, assignment_id)
    except CapTrackError as e:
        raise http_error(e)
    return AssignmentResponse.model_validate(assignment)


@router.post("/{assignment_id}/cancel", response_model=AssignmentResponse)
async def cancel_assignment(
    assignment_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
    access: AccessContext = Depends(get_current_access),
):
    try:
        assignment = await assignment_service.cancel(db, access, assignment_id)
    except CapTrackError as e:
        raise http_error(e)
    return AssignmentResponse.model_validate(assignment)


@router.post("/{assignment_id}/searches", status_code=201, response_model=SearchResponse)
async def run_search(
    assignment_id: uuid.UUID,
    req: SearchRequest,
    db: AsyncSession = Depends(get_db),
    access: AccessContext = Depends(get_current_access),
):
    """Run a provider search; the cheapest result becomes the new price cap."""
    try:
        outcome = await search_orchestrator.run_search(
            db, access, assignment_id, kind=req.kind, params=req.params
        )
    except CapTrackError as e:
        raise http_error(e)
    return SearchResponse.model_validate(outcome)


@router.get("/{assignment_id}/quotes", response_model=list[QuoteResponse])
async def latest_quotes(
    assignment_id: uuid.UUID,
    kind: QuoteKind = Query(QuoteKind.FLIGHT),
    limit: int | None = Query(None, ge=1, le=50),
    db: AsyncSession = Depends(get_db),
    access: AccessContext = Depends(get_current_access),
):
    """Cheapest options from the most recent search."""
    try:
        await assignment_service.get(db, access, assignment_id)
    except CapTrackError as e:
        raise http_error(e)
    quotes = await quote_store.latest_quotes(db, assignment_id, limit=limit, kind=kind)
    return [QuoteResponse.model_validate(q) for q in quotes]


@router.get("/{assignment_id}/price-cap", response_model=PriceCapResponse | None)
async def active_price_cap(
    assignment_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
    access: AccessContext = Depends(get_current_access),
):
    try:
        await assignment_service.get(db, access, assignment_id)
    except CapTrackError as e:
        raise http_error(e)
    cap = await price_cap_engine.active_cap_for(db, assignment_id)
    return PriceCapResponse.model_validate(cap) if cap else None


@router.get("/{assignment_id}/price-caps", response_model=list[PriceCapResponse])
async def price_cap_history(
    assignment_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
    access: AccessContext = Depends(get_current_access),
):
    try:
        await assignment_service.get(db, access, assignment_id)
    except CapTrackError as e:
        raise http_error(e)
    caps = await price_cap_engine.cap_history(db, assignment_id)
    return [PriceCapResponse.model_validate(c) for c in caps]
