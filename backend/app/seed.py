"""Seed script for the CapTrack development database."""

import asyncio
import uuid
from datetime import date, timedelta

from sqlalchemy import select

from app.database import async_session_factory
from app.dependencies import create_access_token
from app.models.project import Assignment, AssignmentStatus, Consultant, Project, UserRole
from app.services.access import ROLE_ADMIN

# ── Identities (subjects issued by the identity provider) ─────────────────────

ADMIN_USER_ID = uuid.UUID("00000000-0000-4000-8000-000000000001")

CONSULTANTS = [
    {
        "user_id": uuid.UUID("00000000-0000-4000-8000-000000000101"),
        "name": "Priya Raman",
        "email": "priya@captrack.dev",
        "home_location": "Toronto",
        "base_airport": "YYZ",
    },
    {
        "user_id": uuid.UUID("00000000-0000-4000-8000-000000000102"),
        "name": "Marcus Webb",
        "email": "marcus@captrack.dev",
        "home_location": "New York",
        "base_airport": "JFK",
    },
]

# ── Projects ───────────────────────────────────────────────────────────────────

PROJECTS = [
    {"client_name": "Northwind Logistics", "start_offset": 14, "weeks": 8},
    {"client_name": "Contoso Health", "start_offset": 30, "weeks": 12},
]

ROUTES = [("YYZ", "ORD"), ("JFK", "LHR")]


async def seed():
    async with async_session_factory() as db:
        # Check if already seeded
        result = await db.execute(select(UserRole).limit(1))
        if result.scalar_one_or_none():
            print("Database already seeded. Skipping.")
            return

        # ── Roles ──
        db.add(UserRole(user_id=ADMIN_USER_ID, role=ROLE_ADMIN))

        # ── Consultants ──
        consultants = [Consultant(**c) for c in CONSULTANTS]
        db.add_all(consultants)
        print(f"Created {len(consultants)} consultants")

        # ── Projects + one pending assignment each ──
        today = date.today()
        for row, consultant, (origin, destination) in zip(PROJECTS, consultants, ROUTES):
            start = today + timedelta(days=row["start_offset"])
            project = Project(
                client_name=row["client_name"],
                start_date=start,
                end_date=start + timedelta(weeks=row["weeks"]),
            )
            db.add(project)
            await db.flush()
            db.add(Assignment(
                project_id=project.id,
                consultant_id=consultant.id,
                travel_from_location=origin,
                travel_to_location=destination,
                departure_date=start - timedelta(days=1),
                return_date=start + timedelta(days=4),
                status=AssignmentStatus.PENDING,
            ))
        print(f"Created {len(PROJECTS)} projects with assignments")

        await db.commit()

        print("Dev tokens:")
        print(f"  admin:  {create_access_token(str(ADMIN_USER_ID))}")
        for c in CONSULTANTS:
            print(f"  {c['email']}:  {create_access_token(str(c['user_id']))}")
        print("Seed complete.")


if __name__ == "__main__":
    asyncio.run(seed())
