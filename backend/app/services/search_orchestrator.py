"""Search orchestrator — runs a provider search for an assignment and derives its price cap."""

import asyncio
import logging
import time
import uuid
from dataclasses import dataclass, field

from sqlalchemy.ext.asyncio import AsyncSession

from app.config import settings
from app.exceptions import InvalidStateError, NotFoundError, QuoteSearchUnavailableError
from app.models.price_cap import PriceCap
from app.models.project import Assignment, AssignmentStatus, Consultant
from app.models.quote import Quote, QuoteKind
from app.services.access import AccessContext
from app.services.audit_trail import AuditTrail, audit_trail
from app.services.price_cap_engine import PriceCapEngine, price_cap_engine
from app.services.quote_search_client import QuoteSearchClient, quote_search_client
from app.services.quote_store import QuoteStore, quote_store

logger = logging.getLogger(__name__)


@dataclass
class SearchOutcome:
    search_id: uuid.UUID
    kind: QuoteKind
    results_count: int
    top_quotes: list[Quote] = field(default_factory=list)
    cap: PriceCap | None = None
    elapsed_ms: int = 0

    @property
    def no_options(self) -> bool:
        return self.results_count == 0


class SearchOrchestrator:
    """Coordinates provider search, quote persistence and cap derivation."""

    def __init__(
        self,
        client: QuoteSearchClient | None = None,
        store: QuoteStore | None = None,
        caps: PriceCapEngine | None = None,
        audit: AuditTrail | None = None,
    ):
        self.client = client or quote_search_client
        self.store = store or quote_store
        self.caps = caps or price_cap_engine
        self.audit = audit or audit_trail

    async def run_search(
        self,
        db: AsyncSession,
        access: AccessContext,
        assignment_id: uuid.UUID,
        kind: QuoteKind = QuoteKind.FLIGHT,
        params: dict | None = None,
    ) -> SearchOutcome:
        """
        Execute one search for an assignment.

        Provider failure persists nothing. A search that finds no options is
        still recorded, and the previous cap stays in force.
        """
        access.require_admin()
        start_time = time.monotonic()

        assignment = await db.get(Assignment, assignment_id)
        if assignment is None:
            raise NotFoundError("Assignment", assignment_id)
        if assignment.status == AssignmentStatus.CANCELLED:
            raise InvalidStateError("assignment", assignment_id, assignment.status.value, "search for")

        params = {**await self._default_params(db, assignment, kind), **(params or {})}

        try:
            results = await asyncio.wait_for(
                self.client.search(kind, params),
                timeout=settings.quote_search_timeout_seconds,
            )
        except asyncio.TimeoutError as e:
            logger.error(f"{kind.value} search for assignment {assignment_id} timed out")
            raise QuoteSearchUnavailableError(
                f"Quote search timed out after {settings.quote_search_timeout_seconds}s"
            ) from e

        search_id = await self.store.record_search(
            db,
            assignment_id,
            params,
            kind=kind,
            provider=self.client.provider_name,
            executed_by=access.user_id,
        )
        count = await self.store.record_quotes(db, search_id, results)
        await db.commit()

        cap = None
        if count:
            cap = await self.caps.set_cap_from_search(db, assignment_id, search_id, set_by=access.user_id)
        else:
            logger.info(f"No options found for assignment {assignment_id}; price cap unchanged")

        top = await self.store.quotes_for_search(db, search_id, limit=settings.quote_display_limit)
        elapsed_ms = int((time.monotonic() - start_time) * 1000)
        logger.info(
            f"{kind.value} search {search_id} for assignment {assignment_id}: "
            f"{count} quotes in {elapsed_ms}ms"
        )
        await self.audit.record(
            "quote_search_executed",
            entity_type="quote_search",
            entity_id=search_id,
            actor_id=access.user_id,
            assignment_id=assignment_id,
            consultant_id=assignment.consultant_id,
            details={"kind": kind, "results_count": count, "provider": self.client.provider_name},
        )
        return SearchOutcome(
            search_id=search_id,
            kind=kind,
            results_count=count,
            top_quotes=top,
            cap=cap,
            elapsed_ms=elapsed_ms,
        )

    @staticmethod
    async def _default_params(db: AsyncSession, assignment: Assignment, kind: QuoteKind) -> dict:
        if kind == QuoteKind.FLIGHT:
            consultant = await db.get(Consultant, assignment.consultant_id)
            origin = (consultant.base_airport if consultant and consultant.base_airport
                      else assignment.travel_from_location)
            params = {
                "origin": origin,
                "destination": assignment.travel_to_location,
                "departure_date": assignment.departure_date.isoformat(),
                "cabin_class": "economy",
            }
            if assignment.return_date:
                params["return_date"] = assignment.return_date.isoformat()
            return params
        if kind == QuoteKind.HOTEL:
            params = {"location": assignment.travel_to_location,
                      "check_in": assignment.departure_date.isoformat()}
            if assignment.return_date:
                params["check_out"] = assignment.return_date.isoformat()
            return params
        params = {"location": assignment.travel_to_location,
                  "pickup_date": assignment.departure_date.isoformat()}
        if assignment.return_date:
            params["dropoff_date"] = assignment.return_date.isoformat()
        return params


search_orchestrator = SearchOrchestrator()
