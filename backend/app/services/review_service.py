"""Review state machine — admin decisions on reimbursement claims.

    pending ──> under_review ──> approved ──> paid
       │             │
       └─────────────┴────────> rejected

Every transition is a compare-and-set UPDATE guarded on the current status,
so two reviewers racing on the same claim produce exactly one winner. The
audit entry and the consultant notification ride in the same transaction as
the status change.
"""

import logging
import uuid
from decimal import Decimal
from typing import Any

from sqlalchemy import select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from app.data.currency import convert
from app.database import utcnow
from app.exceptions import (
    AmountAboveCapError,
    InvalidAmountError,
    InvalidStateError,
    MissingReasonError,
    NotFoundError,
    TransitionNotCommittedError,
)
from app.models.claim import Claim, ClaimStatus
from app.models.project import Consultant
from app.services.access import AccessContext
from app.services.audit_trail import AuditTrail, audit_trail, operator_log
from app.services.claim_ledger import parse_amount
from app.services.notification_service import NotificationService, notification_service
from app.services.price_cap_engine import PriceCapEngine, price_cap_engine

logger = logging.getLogger(__name__)

REVIEWABLE = (ClaimStatus.PENDING, ClaimStatus.UNDER_REVIEW)


class ReviewStateMachine:
    def __init__(
        self,
        caps: PriceCapEngine | None = None,
        audit: AuditTrail | None = None,
        notifications: NotificationService | None = None,
    ):
        self.caps = caps or price_cap_engine
        self.audit = audit or audit_trail
        self.notifications = notifications or notification_service

    async def start_review(
        self, db: AsyncSession, access: AccessContext, claim_id: uuid.UUID
    ) -> Claim:
        access.require_admin()
        return await self._transition(
            db,
            access,
            claim_id,
            allowed=(ClaimStatus.PENDING,),
            target=ClaimStatus.UNDER_REVIEW,
            action="start review of",
            values={"reviewed_by": access.user_id},
        )

    async def approve(
        self,
        db: AsyncSession,
        access: AccessContext,
        claim_id: uuid.UUID,
        approved_amount: Decimal | float | str | None = None,
        notes: str | None = None,
        allow_above_cap: bool = False,
    ) -> Claim:
        """Approve a pending or under-review claim.

        ``approved_amount`` defaults to the amount clamped at submission. It
        must stay within the submitted amount. The clamp at submission is the
        authority on the ceiling: reviewer discretion above the active cap is
        exercised only through ``allow_above_cap``, and the override is
        recorded in the audit details.
        """
        access.require_admin()
        claim = await self._load(db, claim_id)
        if claim.status not in REVIEWABLE:
            raise InvalidStateError("claim", claim.id, claim.status.value, "approve")

        if approved_amount is None:
            amount = claim.approved_amount if claim.approved_amount is not None else claim.submitted_amount
        else:
            amount = parse_amount(approved_amount)
        if amount > claim.submitted_amount:
            raise InvalidAmountError(
                amount,
                f"Approved amount {amount} exceeds the submitted amount {claim.submitted_amount}",
            )

        details: dict[str, Any] = {"approved_amount": amount, "currency": claim.currency}
        cap = await self.caps.active_cap_for(db, claim.assignment_id)
        if cap is not None:
            ceiling = convert(cap.max_approved_price, cap.currency, claim.currency)
            details["price_cap"] = ceiling
            if amount > ceiling:
                if not allow_above_cap:
                    raise AmountAboveCapError(amount, ceiling, claim.currency)
                details["above_cap_override"] = True
                logger.warning(
                    f"Claim {claim.id} approved above cap: {amount} > {ceiling} {claim.currency}"
                )

        values: dict[str, Any] = {"approved_amount": amount, "reviewed_by": access.user_id}
        if notes is not None:
            values["notes"] = notes
        return await self._transition(
            db,
            access,
            claim_id,
            allowed=REVIEWABLE,
            target=ClaimStatus.APPROVED,
            action="approve",
            values=values,
            details=details,
        )

    async def reject(
        self,
        db: AsyncSession,
        access: AccessContext,
        claim_id: uuid.UUID,
        rejection_reason: str,
        notes: str | None = None,
    ) -> Claim:
        access.require_admin()
        reason = (rejection_reason or "").strip()
        if not reason:
            raise MissingReasonError()

        values: dict[str, Any] = {"rejection_reason": reason, "reviewed_by": access.user_id}
        if notes is not None:
            values["notes"] = notes
        return await self._transition(
            db,
            access,
            claim_id,
            allowed=REVIEWABLE,
            target=ClaimStatus.REJECTED,
            action="reject",
            values=values,
            details={"rejection_reason": reason},
        )

    async def mark_paid(
        self, db: AsyncSession, access: AccessContext, claim_id: uuid.UUID
    ) -> Claim:
        access.require_admin()
        return await self._transition(
            db,
            access,
            claim_id,
            allowed=(ClaimStatus.APPROVED,),
            target=ClaimStatus.PAID,
            action="mark paid",
            values={"paid_at": utcnow()},
        )

    # ─── Internals ───

    async def _load(self, db: AsyncSession, claim_id: uuid.UUID) -> Claim:
        result = await db.execute(
            select(Claim)
            .where(Claim.id == claim_id)
            .options(selectinload(Claim.attachments))
            .execution_options(populate_existing=True)
        )
        claim = result.scalar_one_or_none()
        if claim is None:
            raise NotFoundError("Claim", claim_id)
        return claim

    async def _transition(
        self,
        db: AsyncSession,
        access: AccessContext,
        claim_id: uuid.UUID,
        allowed: tuple[ClaimStatus, ...],
        target: ClaimStatus,
        action: str,
        values: dict[str, Any],
        details: dict[str, Any] | None = None,
    ) -> Claim:
        now = utcnow()
        if target in (ClaimStatus.APPROVED, ClaimStatus.REJECTED):
            values = {**values, "review_date": now}

        result = await db.execute(
            update(Claim)
            .where(Claim.id == claim_id, Claim.status.in_(allowed))
            .values(status=target, updated_at=now, **values)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            await db.rollback()
            current = await db.get(Claim, claim_id, populate_existing=True)
            if current is None:
                raise NotFoundError("Claim", claim_id)
            raise InvalidStateError("claim", claim_id, current.status.value, action)

        try:
            claim = await self._load(db, claim_id)
            self.audit.stage(
                db,
                f"reimbursement_{target.value}",
                entity_type="reimbursement_request",
                entity_id=claim.id,
                actor_id=access.user_id,
                assignment_id=claim.assignment_id,
                consultant_id=claim.consultant_id,
                details={
                    "from_status": [s.value for s in allowed],
                    "to_status": target.value,
                    **(details or {}),
                },
            )
            consultant = await db.get(Consultant, claim.consultant_id)
            if consultant is not None:
                await self.notifications.send_decision(db, consultant.user_id, claim, target.value)
            await db.commit()
        except SQLAlchemyError as e:
            await db.rollback()
            operator_log.error(
                f"Claim {claim_id} transition to {target.value} by {access.user_id} "
                f"was not committed: {e!r}"
            )
            raise TransitionNotCommittedError(
                f"Claim {claim_id} could not be moved to '{target.value}'; no change was saved"
            ) from e

        logger.info(f"Claim {claim_id} moved to {target.value} by {access.user_id}")
        return claim


review_state_machine = ReviewStateMachine()
