"""Notifications router — reimbursement decision feed for the signed-in user."""

import uuid

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.ext.asyncio import AsyncSession

from app.database import get_db
from app.dependencies import get_current_access
from app.schemas.notification import NotificationFeed, NotificationResponse
from app.services.access import AccessContext
from app.services.notification_service import notification_service

router = APIRouter()


@router.get("", response_model=NotificationFeed)
async def list_notifications(
    is_read: bool | None = Query(None),
    reference_type: str | None = Query(None),
    limit: int = Query(20, ge=1, le=100),
    db: AsyncSession = Depends(get_db),
    access: AccessContext = Depends(get_current_access),
):
    notifications, unread = await notification_service.feed(
        db, access.user_id, is_read=is_read, reference_type=reference_type, limit=limit
    )
    return NotificationFeed(
        notifications=[NotificationResponse.model_validate(n) for n in notifications],
        unread_count=unread,
    )


@router.put("/read-all")
async def mark_all_read(
    db: AsyncSession = Depends(get_db),
    access: AccessContext = Depends(get_current_access),
):
    marked = await notification_service.mark_read(db, access.user_id)
    return {"ok": True, "marked": marked}


@router.put("/{notification_id}/read")
async def mark_read(
    notification_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
    access: AccessContext = Depends(get_current_access),
):
    if not await notification_service.mark_read(db, access.user_id, notification_id):
        raise HTTPException(status_code=404, detail="Notification not found")
    return {"ok": True}
