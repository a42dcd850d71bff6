"""Audit trail — append-only record of every mutating action."""

import logging
import uuid
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Any

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.database import async_session_factory
from app.models.audit import AuditEntry

logger = logging.getLogger(__name__)

# Operator side channel: audit failures land here, never in front of end users.
operator_log = logging.getLogger("captrack.operator")


def _jsonable(value: Any) -> Any:
    if isinstance(value, Decimal):
        return str(value)
    if isinstance(value, uuid.UUID):
        return str(value)
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, dict):
        return {k: _jsonable(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_jsonable(v) for v in value]
    return value


class AuditTrail:
    """Two ways in: ``stage`` joins the caller's transaction, ``record`` never fails the caller."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession] | None = None):
        self._session_factory = session_factory or async_session_factory

    @staticmethod
    def build(
        action: str,
        entity_type: str | None = None,
        entity_id: uuid.UUID | None = None,
        actor_id: uuid.UUID | None = None,
        assignment_id: uuid.UUID | None = None,
        consultant_id: uuid.UUID | None = None,
        details: dict | None = None,
    ) -> AuditEntry:
        return AuditEntry(
            id=uuid.uuid4(),
            action=action,
            entity_type=entity_type,
            entity_id=entity_id,
            actor_id=actor_id,
            assignment_id=assignment_id,
            consultant_id=consultant_id,
            details=_jsonable(details or {}),
        )

    def stage(self, db: AsyncSession, action: str, **fields: Any) -> AuditEntry:
        """Add an entry to ``db``; it commits or rolls back with the caller's change."""
        entry = self.build(action, **fields)
        db.add(entry)
        return entry

    async def record(self, action: str, **fields: Any) -> AuditEntry | None:
        """Append an entry in its own transaction. Failures are reported, not raised."""
        entry = self.build(action, **fields)
        try:
            async with self._session_factory() as session:
                session.add(entry)
                await session.commit()
        except Exception as e:
            report_audit_failure(entry, e)
            return None
        return entry

    async def entries_for(
        self, db: AsyncSession, entity_type: str, entity_id: uuid.UUID
    ) -> list[AuditEntry]:
        result = await db.execute(
            select(AuditEntry)
            .where(AuditEntry.entity_type == entity_type, AuditEntry.entity_id == entity_id)
            .order_by(AuditEntry.created_at)
        )
        return list(result.scalars().all())

    async def list_entries(
        self,
        db: AsyncSession,
        action: str | None = None,
        since: datetime | None = None,
        limit: int = 100,
    ) -> list[AuditEntry]:
        query = select(AuditEntry).order_by(AuditEntry.created_at.desc()).limit(limit)
        if action:
            query = query.where(AuditEntry.action == action)
        if since:
            query = query.where(AuditEntry.created_at >= since)
        result = await db.execute(query)
        return list(result.scalars().all())


def report_audit_failure(entry: AuditEntry, error: Exception) -> None:
    operator_log.error(
        f"Audit append failed for action={entry.action} "
        f"entity={entry.entity_type}:{entry.entity_id}: {error!r}",
        extra={"audit_details": entry.details},
    )


audit_trail = AuditTrail()
