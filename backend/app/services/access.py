"""Access context — the single authorization capability passed into every core call."""

import uuid
from dataclasses import dataclass, field

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.exceptions import AccessDeniedError
from app.models.project import Consultant, UserRole

ROLE_ADMIN = "admin"
ROLE_CONSULTANT = "consultant"


@dataclass(frozen=True)
class AccessContext:
    user_id: uuid.UUID
    roles: frozenset[str] = field(default_factory=frozenset)
    consultant_id: uuid.UUID | None = None

    @property
    def is_admin(self) -> bool:
        return ROLE_ADMIN in self.roles

    def require_admin(self) -> None:
        if not self.is_admin:
            raise AccessDeniedError("Admin access required")

    def require_consultant(self) -> uuid.UUID:
        if self.consultant_id is None:
            raise AccessDeniedError("No consultant profile linked to this account")
        return self.consultant_id

    def can_act_for(self, consultant_id: uuid.UUID) -> bool:
        """Admins act for anyone; consultants only for themselves."""
        return self.is_admin or (self.consultant_id is not None and self.consultant_id == consultant_id)

    def ensure_can_act_for(self, consultant_id: uuid.UUID) -> None:
        if not self.can_act_for(consultant_id):
            raise AccessDeniedError("Access denied")


async def resolve_access(db: AsyncSession, user_id: uuid.UUID) -> AccessContext:
    """Build the access context for an authenticated identity-provider subject."""
    roles_result = await db.execute(select(UserRole.role).where(UserRole.user_id == user_id))
    roles = frozenset(roles_result.scalars().all())

    consultant_result = await db.execute(
        select(Consultant.id).where(Consultant.user_id == user_id)
    )
    consultant_id = consultant_result.scalar_one_or_none()
    if consultant_id is not None:
        roles = roles | {ROLE_CONSULTANT}

    return AccessContext(user_id=user_id, roles=roles, consultant_id=consultant_id)
