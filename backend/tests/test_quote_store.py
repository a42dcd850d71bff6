from decimal import Decimal

import pytest
from sqlalchemy import func, select

from app.exceptions import InvalidAmountError, UnsupportedCurrencyError
from app.models.quote import Quote, QuoteKind, QuoteSearch
from conftest import quote


async def test_latest_quotes_empty_before_any_search(db, services, world):
    assert await services.store.latest_quotes(db, world.assignment.id) == []


async def test_latest_quotes_ranked_by_price_and_truncated(db, services, world):
    search_id = await services.store.record_search(db, world.assignment.id, {"origin": "YYZ"})
    await services.store.record_quotes(
        db, search_id, [quote(1200), quote(950), quote(1100), quote(990), quote(1500)]
    )
    await db.commit()

    top = await services.store.latest_quotes(db, world.assignment.id)
    assert [q.price for q in top] == [Decimal("950.00"), Decimal("990.00"), Decimal("1100.00")]

    everything = await services.store.quotes_for_search(db, search_id)
    assert len(everything) == 5


async def test_latest_quotes_follow_the_newest_search(db, services, world):
    first = await services.store.record_search(db, world.assignment.id, {"try": 1})
    await services.store.record_quotes(db, first, [quote(400)])
    await db.commit()
    second = await services.store.record_search(db, world.assignment.id, {"try": 2})
    await services.store.record_quotes(db, second, [quote(700), quote(650)])
    await db.commit()

    top = await services.store.latest_quotes(db, world.assignment.id, limit=10)
    assert {q.search_id for q in top} == {second}
    assert [q.price for q in top] == [Decimal("650.00"), Decimal("700.00")]


async def test_latest_quotes_are_scoped_by_kind(db, services, world):
    flights = await services.store.record_search(db, world.assignment.id, {}, kind=QuoteKind.FLIGHT)
    await services.store.record_quotes(db, flights, [quote(500)])
    hotels = await services.store.record_search(db, world.assignment.id, {}, kind=QuoteKind.HOTEL)
    await services.store.record_quotes(db, hotels, [quote(180, provider="Hilton")])
    await db.commit()

    hotel_quotes = await services.store.latest_quotes(db, world.assignment.id, kind=QuoteKind.HOTEL)
    assert [q.provider for q in hotel_quotes] == ["Hilton"]


async def test_duplicate_quotes_are_kept(db, services, world):
    search_id = await services.store.record_search(db, world.assignment.id, {})
    stored = await services.store.record_quotes(db, search_id, [quote(300), quote(300)])
    await db.commit()

    assert stored == 2
    search = await db.get(QuoteSearch, search_id)
    assert search.results_count == 2


async def test_empty_result_set_is_recorded(db, services, world):
    search_id = await services.store.record_search(db, world.assignment.id, {})
    assert await services.store.record_quotes(db, search_id, []) == 0
    await db.commit()

    search = await db.get(QuoteSearch, search_id)
    assert search.results_count == 0
    assert await services.store.latest_quotes(db, world.assignment.id) == []


async def test_non_positive_price_rejected_before_anything_is_stored(db, services, world):
    search_id = await services.store.record_search(db, world.assignment.id, {})
    with pytest.raises(InvalidAmountError):
        await services.store.record_quotes(db, search_id, [quote(300), quote(0)])

    count = await db.scalar(select(func.count(Quote.id)).where(Quote.search_id == search_id))
    assert count == 0


async def test_unknown_quote_currency_rejected_before_anything_is_stored(db, services, world):
    search_id = await services.store.record_search(db, world.assignment.id, {"origin": "YYZ"})

    with pytest.raises(UnsupportedCurrencyError):
        await services.store.record_quotes(db, search_id, [quote(400, "usd"), quote(300, "ZZZ")])
    await db.commit()

    count = await db.scalar(select(func.count(Quote.id)).where(Quote.search_id == search_id))
    assert count == 0


async def test_quote_currency_is_normalized(db, services, world):
    search_id = await services.store.record_search(db, world.assignment.id, {"origin": "YYZ"})
    await services.store.record_quotes(db, search_id, [quote(400, " cad")])
    await db.commit()

    [stored] = await services.store.quotes_for_search(db, search_id)
    assert stored.currency == "CAD"
