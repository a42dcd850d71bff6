import uuid
from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, Field

from app.models.claim import ClaimStatus


class AttachmentResponse(BaseModel):
    id: uuid.UUID
    file_name: str
    file_url: str
    file_type: str | None
    file_size: int | None
    uploaded_at: datetime

    model_config = {"from_attributes": True}


class ClaimResponse(BaseModel):
    id: uuid.UUID
    assignment_id: uuid.UUID
    consultant_id: uuid.UUID
    submitted_amount: Decimal
    approved_amount: Decimal | None
    currency: str
    status: ClaimStatus
    price_cap_id: uuid.UUID | None
    submission_date: datetime
    review_date: datetime | None
    reviewed_by: uuid.UUID | None
    rejection_reason: str | None
    notes: str | None
    paid_at: datetime | None
    attachments: list[AttachmentResponse] = []

    model_config = {"from_attributes": True}


class RejectedFile(BaseModel):
    file_name: str
    size: int
    max_bytes: int
    message: str


class UploadSummary(BaseModel):
    uploaded_count: int
    total_count: int
    rejected_files: list[RejectedFile] = []
    failed_files: list[str] = []


class SubmissionResponse(BaseModel):
    claim: ClaimResponse
    upload: UploadSummary
    warnings: list[str] = []


class ApproveRequest(BaseModel):
    approved_amount: Decimal | None = Field(None, gt=0)
    notes: str | None = None
    allow_above_cap: bool = False


class RejectRequest(BaseModel):
    rejection_reason: str
    notes: str | None = None
