from decimal import Decimal

import pytest
from sqlalchemy import func, select

from app.config import settings
from app.exceptions import AccessDeniedError, QuoteSearchUnavailableError
from app.models.quote import QuoteKind, QuoteSearch
from conftest import quote


async def _search_count(session_factory) -> int:
    async with session_factory() as s:
        return await s.scalar(select(func.count(QuoteSearch.id)))


async def test_search_records_quotes_and_sets_cap(db, services, world, quote_client):
    quote_client.quotes = [quote(1200), quote(950), quote(1100), quote(1010)]

    outcome = await services.search.run_search(db, world.admin, world.assignment.id)

    assert outcome.results_count == 4
    assert not outcome.no_options
    assert [q.price for q in outcome.top_quotes] == [Decimal("950.00"), Decimal("1010.00"), Decimal("1100.00")]
    assert outcome.cap.max_approved_price == Decimal("950.00")
    assert outcome.cap.search_id == outcome.search_id


async def test_default_flight_params_come_from_assignment(db, services, world, quote_client):
    quote_client.quotes = [quote(500)]
    await services.search.run_search(db, world.admin, world.assignment.id, params={"cabin_class": "business"})

    kind, params = quote_client.calls[0]
    assert kind == QuoteKind.FLIGHT
    assert params["origin"] == "YYZ"
    assert params["destination"] == "ORD"
    assert params["departure_date"] == "2026-11-01"
    assert params["return_date"] == "2026-11-06"
    assert params["cabin_class"] == "business"


async def test_no_options_keeps_previous_cap(db, services, world, quote_client):
    quote_client.quotes = [quote(800)]
    first = await services.search.run_search(db, world.admin, world.assignment.id)

    quote_client.quotes = []
    outcome = await services.search.run_search(db, world.admin, world.assignment.id)

    assert outcome.no_options
    assert outcome.cap is None
    active = await services.caps.active_cap_for(db, world.assignment.id)
    assert active.id == first.cap.id


async def test_provider_failure_persists_nothing(db, services, world, quote_client, session_factory):
    quote_client.error = QuoteSearchUnavailableError("provider down")

    with pytest.raises(QuoteSearchUnavailableError):
        await services.search.run_search(db, world.admin, world.assignment.id)
    assert await _search_count(session_factory) == 0


async def test_provider_timeout_is_unavailable(db, services, world, quote_client, session_factory, monkeypatch):
    monkeypatch.setattr(settings, "quote_search_timeout_seconds", 0.01)
    quote_client.delay = 1
    quote_client.quotes = [quote(100)]

    with pytest.raises(QuoteSearchUnavailableError):
        await services.search.run_search(db, world.admin, world.assignment.id)
    assert await _search_count(session_factory) == 0


async def test_search_requires_admin(db, services, world):
    with pytest.raises(AccessDeniedError):
        await services.search.run_search(db, world.consultant_access, world.assignment.id)
