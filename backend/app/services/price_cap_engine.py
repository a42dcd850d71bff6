"""Price cap engine — derives an assignment's reimbursement ceiling from search results."""

import logging
import uuid

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.data.currency import rate_to_usd
from app.exceptions import NoQuotesError, NotFoundError
from app.models.price_cap import PriceCap
from app.models.quote import Quote, QuoteSearch
from app.services.audit_trail import AuditTrail, audit_trail
from app.services.quote_store import QuoteStore, quote_store

logger = logging.getLogger(__name__)


def _cheapest(quotes: list[Quote]) -> Quote:
    currencies = {q.currency for q in quotes}
    if len(currencies) == 1:
        return min(quotes, key=lambda q: q.price)
    # Mixed currencies: compare on the USD value, keep the winner's own price/currency
    return min(quotes, key=lambda q: q.price * rate_to_usd(q.currency))


class PriceCapEngine:
    """Caps are appended, never updated; the newest ``set_at`` governs."""

    def __init__(self, store: QuoteStore | None = None, audit: AuditTrail | None = None):
        self.store = store or quote_store
        self.audit = audit or audit_trail

    async def set_cap_from_search(
        self,
        db: AsyncSession,
        assignment_id: uuid.UUID,
        search_id: uuid.UUID,
        set_by: uuid.UUID | None = None,
    ) -> PriceCap:
        search = await db.get(QuoteSearch, search_id)
        if search is None or search.assignment_id != assignment_id:
            raise NotFoundError("Quote search", search_id)

        quotes = await self.store.quotes_for_search(db, search_id)
        if not quotes:
            raise NoQuotesError(search_id)

        cheapest = _cheapest(quotes)
        previous = await self.active_cap_for(db, assignment_id)

        cap = PriceCap(
            assignment_id=assignment_id,
            max_approved_price=cheapest.price,
            currency=cheapest.currency,
            search_id=search_id,
            quote_id=cheapest.id,
            set_by=set_by,
        )
        db.add(cap)
        await db.commit()

        logger.info(
            f"Price cap for assignment {assignment_id} set to "
            f"{cap.max_approved_price} {cap.currency} from search {search_id}"
        )
        await self.audit.record(
            "price_cap_set",
            entity_type="price_cap",
            entity_id=cap.id,
            actor_id=set_by,
            assignment_id=assignment_id,
            details={
                "max_approved_price": cap.max_approved_price,
                "currency": cap.currency,
                "search_id": search_id,
                "quote_id": cheapest.id,
                "quotes_considered": len(quotes),
                "previous_cap": previous.max_approved_price if previous else None,
                "previous_cap_id": previous.id if previous else None,
            },
        )
        return cap

    async def active_cap_for(self, db: AsyncSession, assignment_id: uuid.UUID) -> PriceCap | None:
        result = await db.execute(
            select(PriceCap)
            .where(PriceCap.assignment_id == assignment_id)
            .order_by(PriceCap.set_at.desc())
            .limit(1)
        )
        return result.scalar_one_or_none()

    async def cap_history(self, db: AsyncSession, assignment_id: uuid.UUID) -> list[PriceCap]:
        result = await db.execute(
            select(PriceCap)
            .where(PriceCap.assignment_id == assignment_id)
            .order_by(PriceCap.set_at.desc())
        )
        return list(result.scalars().all())


price_cap_engine = PriceCapEngine()
