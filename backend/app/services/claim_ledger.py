"""Claim ledger — accepts reimbursement submissions, clamps them and stores receipts."""

import asyncio
import logging
import uuid
from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation
from pathlib import PurePath

from sqlalchemy import select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from app.config import settings
from app.data.currency import convert, format_price, normalize_currency, to_money
from app.database import utcnow
from app.exceptions import (
    AccessDeniedError,
    AttachmentLockedError,
    FileTooLargeError,
    InvalidAmountError,
    InvalidStateError,
    NoAttachmentsError,
    NotFoundError,
    StorageUnavailableError,
)
from app.models.claim import Attachment, Claim, ClaimStatus
from app.models.price_cap import PriceCap
from app.models.project import Assignment, AssignmentStatus
from app.services.access import AccessContext
from app.services.audit_trail import AuditTrail, audit_trail
from app.services.price_cap_engine import PriceCapEngine, price_cap_engine
from app.services.storage_client import FileStorage, file_storage

logger = logging.getLogger(__name__)


@dataclass
class ReceiptFile:
    """One file offered with a submission."""

    name: str
    data: bytes
    content_type: str | None = None
    declared_size: int | None = None

    @property
    def size(self) -> int:
        # Oversized uploads are read only up to the limit, so trust the declared length
        return max(len(self.data), self.declared_size or 0)


@dataclass
class UploadReport:
    uploaded_count: int
    total_count: int
    rejected_files: list[FileTooLargeError] = field(default_factory=list)
    failed_files: list[str] = field(default_factory=list)

    @property
    def partial(self) -> bool:
        return self.uploaded_count < self.total_count


@dataclass
class SubmissionResult:
    claim: Claim
    cap: PriceCap | None
    upload: UploadReport
    warnings: list[str] = field(default_factory=list)

    @property
    def uploaded_count(self) -> int:
        return self.upload.uploaded_count

    @property
    def total_count(self) -> int:
        return self.upload.total_count


def parse_amount(value: Decimal | float | int | str) -> Decimal:
    try:
        amount = to_money(value)
    except (InvalidOperation, ValueError, TypeError):
        raise InvalidAmountError(None, f"Invalid reimbursement amount: {value!r}")
    if not amount.is_finite() or amount <= 0:
        raise InvalidAmountError(amount)
    return amount


class ClaimLedger:
    """Submission, listing and attachment management for reimbursement claims."""

    def __init__(
        self,
        storage: FileStorage | None = None,
        caps: PriceCapEngine | None = None,
        audit: AuditTrail | None = None,
    ):
        self.storage = storage or file_storage
        self.caps = caps or price_cap_engine
        self.audit = audit or audit_trail

    # ─── Submission ───

    async def submit(
        self,
        db: AsyncSession,
        access: AccessContext,
        assignment_id: uuid.UUID,
        submitted_amount: Decimal | float | str,
        files: list[ReceiptFile],
        currency: str | None = None,
        notes: str | None = None,
    ) -> SubmissionResult:
        amount = parse_amount(submitted_amount)
        currency = normalize_currency(currency or settings.default_currency)
        if not files:
            raise NoAttachmentsError()

        assignment = await db.get(Assignment, assignment_id)
        if assignment is None:
            raise NotFoundError("Assignment", assignment_id)
        access.ensure_can_act_for(assignment.consultant_id)
        if assignment.status == AssignmentStatus.CANCELLED:
            raise InvalidStateError("assignment", assignment.id, assignment.status.value, "submit a claim for")

        valid, rejected = self._check_sizes(files)
        if not valid:
            raise rejected[0]

        cap = await self.caps.active_cap_for(db, assignment_id)
        approved_amount, warnings = self._clamp(amount, currency, cap)

        claim = Claim(
            assignment_id=assignment_id,
            consultant_id=assignment.consultant_id,
            submitted_amount=amount,
            approved_amount=approved_amount,
            currency=currency,
            status=ClaimStatus.PENDING,
            price_cap_id=cap.id if cap else None,
            notes=notes,
            attachments=[],
        )
        db.add(claim)
        await db.flush()

        stored, failed = await self._upload(claim.id, valid)
        if not stored:
            await db.rollback()
            raise StorageUnavailableError(
                f"None of the {len(valid)} receipts could be stored; submission cancelled"
            )

        for receipt, url in stored:
            claim.attachments.append(self._attachment(receipt, url))

        await self._commit_or_discard(db, [url for _, url in stored])

        report = UploadReport(
            uploaded_count=len(stored),
            total_count=len(files),
            rejected_files=rejected,
            failed_files=failed,
        )
        if report.partial:
            warnings.append(f"{report.uploaded_count}/{report.total_count} files uploaded.")

        logger.info(
            f"Claim {claim.id} submitted for assignment {assignment_id}: "
            f"{amount} {currency} (approved {approved_amount}), "
            f"{report.uploaded_count}/{report.total_count} files"
        )
        await self.audit.record(
            "reimbursement_submitted",
            entity_type="reimbursement_request",
            entity_id=claim.id,
            actor_id=access.user_id,
            assignment_id=assignment_id,
            consultant_id=claim.consultant_id,
            details={
                "submitted_amount": amount,
                "approved_amount": approved_amount,
                "currency": currency,
                "price_cap_id": cap.id if cap else None,
                "files_uploaded": report.uploaded_count,
                "files_total": report.total_count,
            },
        )
        return SubmissionResult(claim=claim, cap=cap, upload=report, warnings=warnings)

    def _clamp(
        self, amount: Decimal, currency: str, cap: PriceCap | None
    ) -> tuple[Decimal, list[str]]:
        if cap is None:
            return amount, []
        ceiling = convert(cap.max_approved_price, cap.currency, currency)
        if amount <= ceiling:
            return amount, []
        shown = format_price(ceiling, currency)
        return ceiling, [
            f"Amount exceeds max approved price of {shown}. You will be reimbursed up to {shown}."
        ]

    # ─── Queries ───

    async def list_for(
        self,
        db: AsyncSession,
        access: AccessContext,
        consultant_id: uuid.UUID | None = None,
        status: ClaimStatus | None = None,
    ) -> list[Claim]:
        """Newest submission first. Consultants are always scoped to their own claims."""
        if not access.is_admin:
            own_id = access.require_consultant()
            if consultant_id is not None and consultant_id != own_id:
                raise AccessDeniedError("Consultants can only list their own claims")
            consultant_id = own_id

        query = (
            select(Claim)
            .options(selectinload(Claim.attachments))
            .order_by(Claim.submission_date.desc())
        )
        if consultant_id is not None:
            query = query.where(Claim.consultant_id == consultant_id)
        if status is not None:
            query = query.where(Claim.status == status)

        result = await db.execute(query)
        return list(result.scalars().all())

    async def get_claim(
        self, db: AsyncSession, access: AccessContext, claim_id: uuid.UUID
    ) -> Claim:
        result = await db.execute(
            select(Claim)
            .where(Claim.id == claim_id)
            .options(selectinload(Claim.attachments))
            .execution_options(populate_existing=True)
        )
        claim = result.scalar_one_or_none()
        if claim is None:
            raise NotFoundError("Claim", claim_id)
        access.ensure_can_act_for(claim.consultant_id)
        return claim

    async def attachments_for(
        self, db: AsyncSession, access: AccessContext, claim_id: uuid.UUID
    ) -> list[Attachment]:
        claim = await self.get_claim(db, access, claim_id)
        return list(claim.attachments)

    # ─── Attachments ───

    async def add_attachments(
        self,
        db: AsyncSession,
        access: AccessContext,
        claim_id: uuid.UUID,
        files: list[ReceiptFile],
    ) -> UploadReport:
        """Owner-only, and only while the claim is still pending."""
        claim = await self.get_claim(db, access, claim_id)
        # Plain values: a rollback below expires the ORM instance
        assignment_id, consultant_id = claim.assignment_id, claim.consultant_id
        if access.consultant_id != consultant_id:
            raise AccessDeniedError("Only the submitting consultant can add attachments")
        if claim.status != ClaimStatus.PENDING:
            raise AttachmentLockedError(claim_id, claim.status.value)
        if not files:
            raise NoAttachmentsError()

        valid, rejected = self._check_sizes(files)
        if not valid:
            raise rejected[0]

        stored, failed = await self._upload(claim_id, valid)
        if not stored:
            raise StorageUnavailableError(f"None of the {len(valid)} files could be stored")

        # Re-check status at the storage layer: a reviewer may have picked the claim up meanwhile
        locked = await db.execute(
            update(Claim)
            .where(Claim.id == claim_id, Claim.status == ClaimStatus.PENDING)
            .values(updated_at=utcnow())
            .execution_options(synchronize_session=False)
        )
        if locked.rowcount != 1:
            await db.rollback()
            await self._discard([url for _, url in stored])
            current = await db.get(Claim, claim_id, populate_existing=True)
            raise AttachmentLockedError(claim_id, current.status.value if current else "deleted")

        for receipt, url in stored:
            db.add(self._attachment(receipt, url, claim_id=claim_id))
        await self._commit_or_discard(db, [url for _, url in stored])

        report = UploadReport(
            uploaded_count=len(stored),
            total_count=len(files),
            rejected_files=rejected,
            failed_files=failed,
        )
        await self.audit.record(
            "reimbursement_attachments_added",
            entity_type="reimbursement_request",
            entity_id=claim_id,
            actor_id=access.user_id,
            assignment_id=assignment_id,
            consultant_id=consultant_id,
            details={"files_uploaded": report.uploaded_count, "files_total": report.total_count},
        )
        return report

    async def delete_attachment(
        self, db: AsyncSession, access: AccessContext, attachment_id: uuid.UUID
    ) -> None:
        access.require_admin()
        attachment = await db.get(Attachment, attachment_id)
        if attachment is None:
            raise NotFoundError("Attachment", attachment_id)

        claim_id, file_url, file_name = attachment.claim_id, attachment.file_url, attachment.file_name
        await db.delete(attachment)
        await db.commit()

        try:
            await self.storage.delete(file_url)
        except (StorageUnavailableError, ValueError) as e:
            logger.warning(f"Attachment {attachment_id} removed but stored file was not deleted: {e}")

        await self.audit.record(
            "reimbursement_attachment_deleted",
            entity_type="reimbursement_attachment",
            entity_id=attachment_id,
            actor_id=access.user_id,
            details={"reimbursement_id": claim_id, "file_name": file_name},
        )

    # ─── Helpers ───

    @staticmethod
    def _check_sizes(files: list[ReceiptFile]) -> tuple[list[ReceiptFile], list[FileTooLargeError]]:
        valid: list[ReceiptFile] = []
        rejected: list[FileTooLargeError] = []
        for f in files:
            if f.size > settings.max_attachment_bytes:
                rejected.append(FileTooLargeError(f.name, f.size, settings.max_attachment_bytes))
            else:
                valid.append(f)
        return valid, rejected

    async def _upload(
        self, claim_id: uuid.UUID, files: list[ReceiptFile]
    ) -> tuple[list[tuple[ReceiptFile, str]], list[str]]:
        """Store files concurrently; each succeeds or fails on its own."""
        semaphore = asyncio.Semaphore(max(settings.upload_concurrency, 1))

        async def _store_one(receipt: ReceiptFile) -> tuple[ReceiptFile, str | None]:
            path = f"{claim_id}/{uuid.uuid4().hex}{PurePath(receipt.name).suffix.lower()}"
            async with semaphore:
                try:
                    url = await asyncio.wait_for(
                        self.storage.store(receipt.data, path, receipt.content_type),
                        timeout=settings.storage_timeout_seconds,
                    )
                except asyncio.TimeoutError:
                    logger.warning(f"Upload of {receipt.name} for claim {claim_id} timed out")
                    return receipt, None
                except StorageUnavailableError as e:
                    logger.warning(f"Upload of {receipt.name} for claim {claim_id} failed: {e}")
                    return receipt, None
            return receipt, url

        results = await asyncio.gather(*(_store_one(f) for f in files))
        stored = [(r, url) for r, url in results if url is not None]
        failed = [r.name for r, url in results if url is None]
        return stored, failed

    @staticmethod
    def _attachment(receipt: ReceiptFile, url: str, claim_id: uuid.UUID | None = None) -> Attachment:
        return Attachment(
            claim_id=claim_id,
            file_name=receipt.name,
            file_url=url,
            file_type=receipt.content_type,
            file_size=receipt.size,
        )

    async def _commit_or_discard(self, db: AsyncSession, urls: list[str]) -> None:
        try:
            await db.commit()
        except SQLAlchemyError:
            await db.rollback()
            await self._discard(urls)
            raise

    async def _discard(self, urls: list[str]) -> None:
        for url in urls:
            try:
                await self.storage.delete(url)
            except (StorageUnavailableError, ValueError) as e:
                logger.warning(f"Could not remove orphaned upload {url}: {e}")


claim_ledger = ClaimLedger()
