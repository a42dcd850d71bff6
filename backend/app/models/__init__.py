from app.models.project import Assignment, AssignmentStatus, Consultant, Project, UserRole
from app.models.quote import Quote, QuoteKind, QuoteSearch
from app.models.price_cap import PriceCap
from app.models.claim import TERMINAL_STATUSES, Attachment, Claim, ClaimStatus
from app.models.audit import AuditEntry
from app.models.notification import Notification

__all__ = [
    "Assignment",
    "AssignmentStatus",
    "Attachment",
    "AuditEntry",
    "Claim",
    "ClaimStatus",
    "Consultant",
    "Notification",
    "PriceCap",
    "Project",
    "Quote",
    "QuoteKind",
    "QuoteSearch",
    "TERMINAL_STATUSES",
    "UserRole",
]
