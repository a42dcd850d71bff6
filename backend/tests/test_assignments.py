from datetime import date

import pytest
from sqlalchemy import select

from app.exceptions import AccessDeniedError, InvalidStateError, NotFoundError, ValidationError
from app.models.audit import AuditEntry
from app.models.project import AssignmentStatus


async def test_create_assignment_is_pending_and_audited(db, services, world, session_factory):
    assignment = await services.assignments.create(
        db,
        world.admin,
        project_id=world.project.id,
        consultant_id=world.other.id,
        travel_from_location="JFK",
        travel_to_location="LHR",
        departure_date=date(2026, 12, 1),
        return_date=date(2026, 12, 9),
    )
    assert assignment.status == AssignmentStatus.PENDING

    async with session_factory() as s:
        entry = (await s.execute(
            select(AuditEntry).where(AuditEntry.action == "assignment_created")
        )).scalar_one()
    assert entry.entity_id == assignment.id
    assert entry.details["to"] == "LHR"


async def test_create_requires_admin_and_known_parties(db, services, world):
    kwargs = dict(
        project_id=world.project.id,
        consultant_id=world.consultant.id,
        travel_from_location="YYZ",
        travel_to_location="SFO",
        departure_date=date(2026, 12, 1),
    )
    with pytest.raises(AccessDeniedError):
        await services.assignments.create(db, world.consultant_access, **kwargs)
    with pytest.raises(NotFoundError):
        await services.assignments.create(db, world.admin, **{**kwargs, "project_id": world.consultant.id})
    with pytest.raises(ValidationError):
        await services.assignments.create(db, world.admin, **{**kwargs, "return_date": date(2026, 11, 1)})


async def test_lifecycle_transitions(db, services, world):
    confirmed = await services.assignments.confirm(db, world.admin, world.assignment.id)
    assert confirmed.status == AssignmentStatus.CONFIRMED
    completed = await services.assignments.complete(db, world.admin, world.assignment.id)
    assert completed.status == AssignmentStatus.COMPLETED

    with pytest.raises(InvalidStateError):
        await services.assignments.cancel(db, world.admin, world.assignment.id)


async def test_cannot_complete_a_pending_assignment(db, services, world):
    with pytest.raises(InvalidStateError):
        await services.assignments.complete(db, world.admin, world.assignment.id)


async def test_consultants_see_only_their_assignments(db, services, world):
    assert [a.id for a in await services.assignments.list_for(db, world.consultant_access)] == [world.assignment.id]
    assert await services.assignments.list_for(db, world.other_access) == []
    with pytest.raises(AccessDeniedError):
        await services.assignments.get(db, world.other_access, world.assignment.id)
