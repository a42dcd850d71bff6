import asyncio
import os
import uuid
from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from types import SimpleNamespace

os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")

import pytest
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

import app.models  # noqa: F401
from app.database import Base
from app.exceptions import StorageUnavailableError
from app.models.project import Assignment, Consultant, Project, UserRole
from app.services.access import ROLE_ADMIN, ROLE_CONSULTANT, AccessContext
from app.services.assignment_service import AssignmentService
from app.services.audit_trail import AuditTrail
from app.services.claim_ledger import ClaimLedger, ReceiptFile
from app.services.notification_service import NotificationService
from app.services.price_cap_engine import PriceCapEngine
from app.services.quote_store import QuoteData, QuoteStore
from app.services.review_service import ReviewStateMachine
from app.services.search_orchestrator import SearchOrchestrator


class FakeStorage:
    """In-memory receipt storage; payloads listed in ``fail_payloads`` are refused."""

    def __init__(self):
        self.objects: dict[str, bytes] = {}
        self.deleted: list[str] = []
        self.fail_payloads: set[bytes] = set()
        self.delay = 0.0
        self.in_flight = 0
        self.max_in_flight = 0
        self.on_store = None

    async def store(self, data: bytes, path: str, content_type: str | None = None) -> str:
        if self.on_store is not None:
            hook, self.on_store = self.on_store, None
            await hook()
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            if self.delay:
                await asyncio.sleep(self.delay)
        finally:
            self.in_flight -= 1
        if data in self.fail_payloads:
            raise StorageUnavailableError(f"refused {path}")
        url = f"memory://receipts/{path}"
        self.objects[url] = data
        return url

    async def delete(self, url: str) -> None:
        self.objects.pop(url, None)
        self.deleted.append(url)


class FakeQuoteClient:
    provider_name = "fake"

    def __init__(self):
        self.quotes: list[QuoteData] = []
        self.error: Exception | None = None
        self.delay = 0.0
        self.calls: list[tuple] = []

    async def search(self, kind, params):
        self.calls.append((kind, params))
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error:
            raise self.error
        return list(self.quotes)


def quote(price, currency="USD", provider="Air Canada") -> QuoteData:
    return QuoteData(price=Decimal(str(price)), currency=currency, provider=provider)


def receipt(name="receipt.pdf", data=b"%PDF-1.4 receipt", content_type="application/pdf") -> ReceiptFile:
    return ReceiptFile(name=name, data=data, content_type=content_type)


@pytest.fixture
async def engine(tmp_path):
    # File-backed so separate sessions (audit trail, concurrent reviewers) share data
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'captrack.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
async def db(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture
def storage():
    return FakeStorage()


@pytest.fixture
def quote_client():
    return FakeQuoteClient()


@dataclass
class Services:
    audit: AuditTrail
    store: QuoteStore
    caps: PriceCapEngine
    ledger: ClaimLedger
    reviews: ReviewStateMachine
    search: SearchOrchestrator
    assignments: AssignmentService


@pytest.fixture
def services(session_factory, storage, quote_client):
    audit = AuditTrail(session_factory)
    store = QuoteStore()
    caps = PriceCapEngine(store=store, audit=audit)
    return Services(
        audit=audit,
        store=store,
        caps=caps,
        ledger=ClaimLedger(storage=storage, caps=caps, audit=audit),
        reviews=ReviewStateMachine(caps=caps, audit=audit, notifications=NotificationService()),
        search=SearchOrchestrator(client=quote_client, store=store, caps=caps, audit=audit),
        assignments=AssignmentService(audit=audit),
    )


@pytest.fixture
async def world(db):
    """One admin, two consultants, one project and a pending assignment for the first consultant."""
    admin_user = uuid.uuid4()
    db.add(UserRole(user_id=admin_user, role=ROLE_ADMIN))

    consultant = Consultant(user_id=uuid.uuid4(), name="Priya Raman", email="priya@example.com", base_airport="YYZ")
    other = Consultant(user_id=uuid.uuid4(), name="Marcus Webb", email="marcus@example.com", base_airport="JFK")
    project = Project(client_name="Northwind", start_date=date(2026, 11, 2), end_date=date(2026, 12, 18))
    db.add_all([consultant, other, project])
    await db.flush()

    assignment = Assignment(
        project_id=project.id,
        consultant_id=consultant.id,
        travel_from_location="YYZ",
        travel_to_location="ORD",
        departure_date=date(2026, 11, 1),
        return_date=date(2026, 11, 6),
    )
    db.add(assignment)
    await db.commit()

    return SimpleNamespace(
        admin=AccessContext(user_id=admin_user, roles=frozenset({ROLE_ADMIN})),
        consultant_access=AccessContext(
            user_id=consultant.user_id, roles=frozenset({ROLE_CONSULTANT}), consultant_id=consultant.id
        ),
        other_access=AccessContext(
            user_id=other.user_id, roles=frozenset({ROLE_CONSULTANT}), consultant_id=other.id
        ),
        consultant=consultant,
        other=other,
        project=project,
        assignment=assignment,
    )


async def set_cap(services: Services, db, world, *prices, currency="USD"):
    """Record a search with the given prices and derive the cap from it."""
    search_id = await services.store.record_search(db, world.assignment.id, {"origin": "YYZ"})
    await services.store.record_quotes(db, search_id, [quote(p, currency) for p in prices])
    await db.commit()
    return await services.caps.set_cap_from_search(db, world.assignment.id, search_id, set_by=world.admin.user_id)
