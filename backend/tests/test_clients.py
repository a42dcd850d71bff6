import json

import httpx
import pytest

from app.exceptions import QuoteSearchUnavailableError, StorageUnavailableError
from app.models.quote import QuoteKind
from app.services.quote_search_client import QuoteSearchClient
from app.services.storage_client import HttpFileStorage, LocalFileStorage


def _search_client(handler) -> QuoteSearchClient:
    return QuoteSearchClient(
        base_url="https://quotes.test", api_key="k", timeout=5, transport=httpx.MockTransport(handler)
    )


async def test_quote_client_normalizes_offers():
    def handler(request: httpx.Request) -> httpx.Response:
        assert request.url.path == "/search/flight"
        assert request.headers["Authorization"] == "Bearer k"
        assert json.loads(request.content)["origin"] == "YYZ"
        return httpx.Response(200, json={"quotes": [
            {"price": "950.40", "currency": "cad", "carrier": "Air Canada", "layovers": 1,
             "departs_at": "2026-11-01T08:15:00Z"},
            {"price": -3, "provider": "Broken"},
            {"currency": "USD", "provider": "No price"},
            {"price": "120", "currency": "DOGE", "provider": "Unknown currency"},
        ]})

    quotes = await _search_client(handler).search(QuoteKind.FLIGHT, {"origin": "YYZ"})

    assert len(quotes) == 1
    assert str(quotes[0].price) == "950.40"
    assert quotes[0].currency == "CAD"
    assert quotes[0].provider == "Air Canada"
    assert quotes[0].layovers == 1
    assert quotes[0].departs_at.hour == 8


async def test_quote_client_maps_server_errors():
    client = _search_client(lambda request: httpx.Response(503))
    with pytest.raises(QuoteSearchUnavailableError):
        await client.search(QuoteKind.HOTEL, {})


async def test_quote_client_maps_transport_errors():
    def handler(request):
        raise httpx.ConnectError("refused", request=request)

    with pytest.raises(QuoteSearchUnavailableError):
        await _search_client(handler).search(QuoteKind.CAR, {})


async def test_mock_quotes_are_deterministic():
    client = QuoteSearchClient(base_url="")
    params = {"origin": "YYZ", "destination": "ORD", "departure_date": "2026-11-01"}

    first = await client.search(QuoteKind.FLIGHT, params)
    second = await client.search(QuoteKind.FLIGHT, params)

    assert client.provider_name == "mock"
    assert [q.price for q in first] == [q.price for q in second]
    assert all(q.price > 0 and q.currency == "CAD" for q in first)


async def test_http_storage_upload_returns_public_url():
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["path"] = request.url.path
        seen["type"] = request.headers["Content-Type"]
        return httpx.Response(200, json={"Key": "ok"})

    storage = HttpFileStorage("https://files.test/", "receipts", transport=httpx.MockTransport(handler))
    url = await storage.store(b"pdf", "claim-1/abc.pdf", "application/pdf")

    assert seen == {"path": "/object/receipts/claim-1/abc.pdf", "type": "application/pdf"}
    assert url == "https://files.test/object/public/receipts/claim-1/abc.pdf"


async def test_http_storage_errors_are_unavailable():
    storage = HttpFileStorage(
        "https://files.test", "receipts", transport=httpx.MockTransport(lambda r: httpx.Response(500))
    )
    with pytest.raises(StorageUnavailableError):
        await storage.store(b"pdf", "claim-1/abc.pdf")


async def test_http_storage_refuses_foreign_urls():
    storage = HttpFileStorage("https://files.test", "receipts")
    with pytest.raises(ValueError):
        await storage.delete("https://elsewhere.test/object/public/receipts/x.pdf")


async def test_local_storage_deletes_paths_with_spaces(tmp_path):
    storage = LocalFileStorage(tmp_path / "receipt uploads")

    url = await storage.store(b"pdf", "claim 1/hotel folio.pdf")
    stored = tmp_path / "receipt uploads" / "claim 1" / "hotel folio.pdf"
    assert "%20" in url
    assert stored.read_bytes() == b"pdf"

    await storage.delete(url)
    assert not stored.exists()
