"""Assignment lifecycle — consultant travel assignments on client projects."""

import logging
import uuid
from datetime import date

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.exceptions import InvalidStateError, NotFoundError, ValidationError
from app.models.project import Assignment, AssignmentStatus, Consultant, Project
from app.services.access import AccessContext
from app.services.audit_trail import AuditTrail, audit_trail

logger = logging.getLogger(__name__)

TRANSITIONS: dict[AssignmentStatus, set[AssignmentStatus]] = {
    AssignmentStatus.PENDING: {AssignmentStatus.CONFIRMED, AssignmentStatus.CANCELLED},
    AssignmentStatus.CONFIRMED: {AssignmentStatus.COMPLETED, AssignmentStatus.CANCELLED},
    AssignmentStatus.COMPLETED: set(),
    AssignmentStatus.CANCELLED: set(),
}


class AssignmentService:
    def __init__(self, audit: AuditTrail | None = None):
        self.audit = audit or audit_trail

    async def create(
        self,
        db: AsyncSession,
        access: AccessContext,
        project_id: uuid.UUID,
        consultant_id: uuid.UUID,
        travel_from_location: str,
        travel_to_location: str,
        departure_date: date,
        return_date: date | None = None,
        notes: str | None = None,
    ) -> Assignment:
        access.require_admin()
        if await db.get(Project, project_id) is None:
            raise NotFoundError("Project", project_id)
        if await db.get(Consultant, consultant_id) is None:
            raise NotFoundError("Consultant", consultant_id)
        if return_date is not None and return_date < departure_date:
            raise ValidationError("Return date cannot be before departure date")

        assignment = Assignment(
            project_id=project_id,
            consultant_id=consultant_id,
            travel_from_location=travel_from_location.strip(),
            travel_to_location=travel_to_location.strip(),
            departure_date=departure_date,
            return_date=return_date,
            status=AssignmentStatus.PENDING,
            notes=notes,
        )
        db.add(assignment)
        await db.commit()

        logger.info(f"Assignment {assignment.id} created for consultant {consultant_id}")
        await self.audit.record(
            "assignment_created",
            entity_type="assignment",
            entity_id=assignment.id,
            actor_id=access.user_id,
            assignment_id=assignment.id,
            consultant_id=consultant_id,
            details={
                "project_id": project_id,
                "from": assignment.travel_from_location,
                "to": assignment.travel_to_location,
                "departure_date": departure_date,
                "return_date": return_date,
            },
        )
        return assignment

    async def get(self, db: AsyncSession, access: AccessContext, assignment_id: uuid.UUID) -> Assignment:
        assignment = await db.get(Assignment, assignment_id)
        if assignment is None:
            raise NotFoundError("Assignment", assignment_id)
        access.ensure_can_act_for(assignment.consultant_id)
        return assignment

    async def list_for(self, db: AsyncSession, access: AccessContext) -> list[Assignment]:
        query = select(Assignment).order_by(Assignment.departure_date.desc())
        if not access.is_admin:
            query = query.where(Assignment.consultant_id == access.require_consultant())
        result = await db.execute(query)
        return list(result.scalars().all())

    async def confirm(self, db: AsyncSession, access: AccessContext, assignment_id: uuid.UUID) -> Assignment:
        return await self._move(db, access, assignment_id, AssignmentStatus.CONFIRMED, "confirm")

    async def complete(self, db: AsyncSession, access: AccessContext, assignment_id: uuid.UUID) -> Assignment:
        return await self._move(db, access, assignment_id, AssignmentStatus.COMPLETED, "complete")

    async def cancel(self, db: AsyncSession, access: AccessContext, assignment_id: uuid.UUID) -> Assignment:
        return await self._move(db, access, assignment_id, AssignmentStatus.CANCELLED, "cancel")

    async def _move(
        self,
        db: AsyncSession,
        access: AccessContext,
        assignment_id: uuid.UUID,
        target: AssignmentStatus,
        action: str,
    ) -> Assignment:
        access.require_admin()
        assignment = await db.get(Assignment, assignment_id)
        if assignment is None:
            raise NotFoundError("Assignment", assignment_id)

        previous = assignment.status
        if target not in TRANSITIONS[previous]:
            raise InvalidStateError("assignment", assignment_id, previous.value, action)

        assignment.status = target
        await db.commit()

        logger.info(f"Assignment {assignment_id}: {previous.value} -> {target.value}")
        await self.audit.record(
            f"assignment_{target.value}",
            entity_type="assignment",
            entity_id=assignment_id,
            actor_id=access.user_id,
            assignment_id=assignment_id,
            consultant_id=assignment.consultant_id,
            details={"from_status": previous, "to_status": target},
        )
        return assignment


assignment_service = AssignmentService()
