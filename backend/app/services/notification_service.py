"""Notification service — creates in-app notifications."""

import logging
import uuid

from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.data.currency import format_price
from app.models.claim import Claim
from app.models.notification import Notification

logger = logging.getLogger(__name__)


class NotificationService:
    """Creates in-app notifications for reimbursement workflow events."""

    async def send_decision(
        self, db: AsyncSession, recipient_id: uuid.UUID, claim: Claim, decision: str
    ) -> Notification:
        amount = format_price(claim.approved_amount or claim.submitted_amount, claim.currency)
        titles = {
            "under_review": "Reimbursement Under Review",
            "approved": "Reimbursement Approved",
            "rejected": "Reimbursement Rejected",
            "paid": "Reimbursement Paid",
        }
        bodies = {
            "under_review": "Your reimbursement request is being reviewed.",
            "approved": f"Your reimbursement request was approved for {amount}.",
            "rejected": f"Your reimbursement request was rejected: {claim.rejection_reason}",
            "paid": f"Your reimbursement of {amount} has been paid.",
        }
        return await self._create(
            db,
            user_id=recipient_id,
            type=f"reimbursement_{decision}",
            title=titles.get(decision, "Reimbursement Update"),
            body=bodies.get(decision, "Your reimbursement request has been updated."),
            reference_type="reimbursement_request",
            reference_id=claim.id,
        )

    async def _create(
        self, db: AsyncSession, user_id: uuid.UUID, type: str,
        title: str, body: str, reference_type: str | None = None,
        reference_id: uuid.UUID | None = None,
    ) -> Notification:
        notification = Notification(
            user_id=user_id,
            type=type,
            title=title,
            body=body,
            reference_type=reference_type,
            reference_id=reference_id,
        )
        db.add(notification)
        return notification

    async def feed(
        self,
        db: AsyncSession,
        user_id: uuid.UUID,
        is_read: bool | None = None,
        reference_type: str | None = None,
        limit: int = 20,
    ) -> tuple[list[Notification], int]:
        """Newest first, plus the total unread count for the badge."""
        query = select(Notification).where(Notification.user_id == user_id)
        if is_read is not None:
            query = query.where(Notification.is_read == is_read)
        if reference_type:
            query = query.where(Notification.reference_type == reference_type)
        result = await db.execute(query.order_by(Notification.created_at.desc()).limit(limit))

        unread = await db.scalar(
            select(func.count(Notification.id)).where(
                Notification.user_id == user_id, Notification.is_read.is_(False)
            )
        )
        return list(result.scalars().all()), unread or 0

    async def mark_read(
        self, db: AsyncSession, user_id: uuid.UUID, notification_id: uuid.UUID | None = None
    ) -> int:
        """Mark one notification, or all unread ones when no id is given."""
        stmt = update(Notification).where(Notification.user_id == user_id)
        if notification_id is not None:
            stmt = stmt.where(Notification.id == notification_id)
        else:
            stmt = stmt.where(Notification.is_read.is_(False))
        result = await db.execute(
            stmt.values(is_read=True).execution_options(synchronize_session=False)
        )
        await db.commit()
        return result.rowcount


notification_service = NotificationService()
