"""Typed errors for the reimbursement core.

Every error carries a stable ``code`` so routers can map it to an HTTP status
without matching on message text:

    CapTrackError
    +-- ValidationError (also a ValueError)
    |   +-- InvalidAmountError
    |   +-- UnsupportedCurrencyError
    |   +-- NoAttachmentsError
    |   +-- FileTooLargeError
    |   +-- MissingReasonError
    |   +-- AmountAboveCapError
    |   +-- NoQuotesError
    +-- StateConflictError
    |   +-- InvalidStateError
    |   +-- AttachmentLockedError
    +-- NotFoundError
    +-- AccessDeniedError
    +-- UpstreamError
    |   +-- StorageUnavailableError
    |   +-- QuoteSearchUnavailableError
    +-- TransitionNotCommittedError
    +-- AuditFailure (logged, never raised to callers of AuditTrail.record)
"""

import uuid
from decimal import Decimal


class CapTrackError(Exception):
    code: str = "captrack_error"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


# ─── Validation ───


class ValidationError(CapTrackError, ValueError):
    code = "validation_error"


class InvalidAmountError(ValidationError):
    code = "invalid_amount"

    def __init__(self, amount: Decimal | None, message: str | None = None):
        self.amount = amount
        super().__init__(message or f"Amount must be greater than zero (got {amount})")


class UnsupportedCurrencyError(ValidationError):
    code = "unsupported_currency"

    def __init__(self, currency: object):
        self.currency = currency
        super().__init__(f"Unsupported currency {currency!r}; expected a known ISO 4217 code")


class NoAttachmentsError(ValidationError):
    code = "no_attachments"

    def __init__(self):
        super().__init__("Please upload at least one receipt or supporting document")


class FileTooLargeError(ValidationError):
    code = "file_too_large"

    def __init__(self, file_name: str, size: int, max_bytes: int):
        self.file_name = file_name
        self.size = size
        self.max_bytes = max_bytes
        max_mb = max_bytes // (1024 * 1024)
        super().__init__(f"File {file_name} is too large. Maximum size is {max_mb}MB.")


class MissingReasonError(ValidationError):
    code = "missing_rejection_reason"

    def __init__(self):
        super().__init__("A rejection reason is required")


class AmountAboveCapError(ValidationError):
    code = "amount_above_cap"

    def __init__(self, amount: Decimal, cap: Decimal, currency: str):
        self.amount = amount
        self.cap = cap
        self.currency = currency
        super().__init__(
            f"Approved amount {amount} exceeds the price cap of {cap} {currency}; "
            "set allow_above_cap to override"
        )


class NoQuotesError(ValidationError):
    code = "no_quotes"

    def __init__(self, search_id: uuid.UUID):
        self.search_id = search_id
        super().__init__(f"Search {search_id} returned no quotes; price cap unchanged")


# ─── State ───


class StateConflictError(CapTrackError):
    code = "state_conflict"


class InvalidStateError(StateConflictError):
    code = "invalid_state"

    def __init__(self, entity: str, entity_id: uuid.UUID, current: str | None, action: str):
        self.entity = entity
        self.entity_id = entity_id
        self.current = current
        self.action = action
        super().__init__(f"Cannot {action} {entity} {entity_id} in status '{current}'")


class AttachmentLockedError(StateConflictError):
    code = "attachment_locked"

    def __init__(self, claim_id: uuid.UUID, status: str):
        self.claim_id = claim_id
        self.status = status
        super().__init__(f"Attachments can only be added while claim is pending (status '{status}')")


# ─── Lookup / permission ───


class NotFoundError(CapTrackError):
    code = "not_found"

    def __init__(self, entity: str, entity_id: uuid.UUID | str):
        self.entity = entity
        self.entity_id = entity_id
        super().__init__(f"{entity} {entity_id} not found")


class AccessDeniedError(CapTrackError):
    code = "access_denied"


# ─── Upstream providers ───


class UpstreamError(CapTrackError):
    code = "upstream_error"


class StorageUnavailableError(UpstreamError):
    code = "storage_unavailable"


class QuoteSearchUnavailableError(UpstreamError):
    code = "quote_search_unavailable"


# ─── Commit / audit ───


class TransitionNotCommittedError(CapTrackError):
    code = "transition_not_committed"


class AuditFailure(CapTrackError):
    code = "audit_failure"
