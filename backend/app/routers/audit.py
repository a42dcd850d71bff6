"""Audit router — read access to the audit trail (admin only)."""

import uuid
from datetime import datetime

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from app.database import get_db
from app.dependencies import require_admin
from app.schemas.audit import AuditEntryResponse
from app.services.access import AccessContext
from app.services.audit_trail import audit_trail

router = APIRouter()


@router.get("", response_model=list[AuditEntryResponse])
async def list_audit_entries(
    action: str | None = Query(None),
    since: datetime | None = Query(None),
    limit: int = Query(100, ge=1, le=1000),
    db: AsyncSession = Depends(get_db),
    access: AccessContext = Depends(require_admin),
):
    """Most recent entries first."""
    entries = await audit_trail.list_entries(db, action=action, since=since, limit=limit)
    return [AuditEntryResponse.model_validate(e) for e in entries]


@router.get("/{entity_type}/{entity_id}", response_model=list[AuditEntryResponse])
async def entity_timeline(
    entity_type: str,
    entity_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
    access: AccessContext = Depends(require_admin),
):
    """Chronological history of one entity."""
    entries = await audit_trail.entries_for(db, entity_type, entity_id)
    return [AuditEntryResponse.model_validate(e) for e in entries]
