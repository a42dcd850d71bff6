"""Quote store — persists the priced results of each search execution."""

import logging
import uuid
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import settings
from app.data.currency import normalize_currency, to_money
from app.exceptions import InvalidAmountError
from app.models.quote import Quote, QuoteKind, QuoteSearch

logger = logging.getLogger(__name__)


@dataclass
class QuoteData:
    """One normalized option as returned by a search provider."""

    price: Decimal
    provider: str
    currency: str = "USD"
    description: str | None = None
    cabin_class: str | None = None
    departs_at: datetime | None = None
    arrives_at: datetime | None = None
    return_departs_at: datetime | None = None
    return_arrives_at: datetime | None = None
    layovers: int = 0
    refundable: bool = False
    baggage_included: bool = False
    insurance_included: bool = False
    booking_reference: str | None = None
    booking_url: str | None = None
    payload: dict = field(default_factory=dict)


class QuoteStore:
    """Search snapshots are immutable; ranking is computed on read, never on write order."""

    async def record_search(
        self,
        db: AsyncSession,
        assignment_id: uuid.UUID,
        params: dict,
        kind: QuoteKind = QuoteKind.FLIGHT,
        provider: str | None = None,
        executed_by: uuid.UUID | None = None,
    ) -> uuid.UUID:
        search = QuoteSearch(
            assignment_id=assignment_id,
            kind=kind,
            provider=provider,
            search_params=params,
            executed_by=executed_by,
        )
        db.add(search)
        await db.flush()
        return search.id

    async def record_quotes(
        self, db: AsyncSession, search_id: uuid.UUID, quotes: list[QuoteData]
    ) -> int:
        """Store the full result set. An empty list is a valid "no options found" outcome."""
        currencies = []
        for q in quotes:
            if to_money(q.price) <= 0:
                raise InvalidAmountError(q.price, f"Quote price must be positive (got {q.price} from {q.provider})")
            currencies.append(normalize_currency(q.currency))

        search = await db.get(QuoteSearch, search_id)
        if search is not None:
            search.results_count = len(quotes)

        for q, currency in zip(quotes, currencies):
            db.add(Quote(
                search_id=search_id,
                price=to_money(q.price),
                currency=currency,
                provider=q.provider,
                description=q.description,
                cabin_class=q.cabin_class,
                departs_at=q.departs_at,
                arrives_at=q.arrives_at,
                return_departs_at=q.return_departs_at,
                return_arrives_at=q.return_arrives_at,
                layovers=q.layovers,
                refundable=q.refundable,
                baggage_included=q.baggage_included,
                insurance_included=q.insurance_included,
                booking_reference=q.booking_reference,
                booking_url=q.booking_url,
                payload=q.payload,
            ))
        await db.flush()

        if not quotes:
            logger.info(f"Search {search_id} recorded with no options")
        return len(quotes)

    async def quotes_for_search(
        self, db: AsyncSession, search_id: uuid.UUID, limit: int | None = None
    ) -> list[Quote]:
        query = (
            select(Quote)
            .where(Quote.search_id == search_id)
            .order_by(Quote.price.asc(), Quote.created_at.asc())
        )
        if limit is not None:
            query = query.limit(limit)
        result = await db.execute(query)
        return list(result.scalars().all())

    async def latest_search(
        self, db: AsyncSession, assignment_id: uuid.UUID, kind: QuoteKind = QuoteKind.FLIGHT
    ) -> QuoteSearch | None:
        result = await db.execute(
            select(QuoteSearch)
            .where(QuoteSearch.assignment_id == assignment_id, QuoteSearch.kind == kind)
            .order_by(QuoteSearch.executed_at.desc())
            .limit(1)
        )
        return result.scalar_one_or_none()

    async def latest_quotes(
        self,
        db: AsyncSession,
        assignment_id: uuid.UUID,
        limit: int | None = None,
        kind: QuoteKind = QuoteKind.FLIGHT,
    ) -> list[Quote]:
        """Cheapest quotes of the most recent search; empty if no search has run."""
        if limit is None:
            limit = settings.quote_display_limit
        search = await self.latest_search(db, assignment_id, kind)
        if search is None:
            return []
        return await self.quotes_for_search(db, search.id, limit=limit)


quote_store = QuoteStore()
