"""Quote search client — adapter for the external fare/rate search provider."""

import asyncio
import hashlib
import json
import logging
import random
from datetime import date, datetime, time, timedelta, timezone
from decimal import Decimal
from typing import Any

import httpx

from app.config import settings
from app.data.currency import get_currency_for_airport, normalize_currency, to_money
from app.exceptions import QuoteSearchUnavailableError
from app.models.quote import QuoteKind
from app.services.quote_store import QuoteData

logger = logging.getLogger(__name__)

AIRLINE_NAMES = {
    "AC": "Air Canada", "WS": "WestJet", "AA": "American Airlines",
    "DL": "Delta Air Lines", "UA": "United Airlines", "B6": "JetBlue Airways",
    "BA": "British Airways", "LH": "Lufthansa", "AF": "Air France", "KL": "KLM",
}
HOTEL_CHAINS = ["Marriott", "Hilton", "Hyatt", "IHG", "Accor", "Best Western"]
CAR_VENDORS = ["Hertz", "Avis", "Enterprise", "Budget", "National"]

BASE_PRICES = {QuoteKind.FLIGHT: 420, QuoteKind.HOTEL: 160, QuoteKind.CAR: 55}


def _parse_datetime(value: Any) -> datetime | None:
    if not value:
        return None
    try:
        return datetime.fromisoformat(str(value).replace("Z", "+00:00"))
    except ValueError:
        logger.warning(f"Ignoring unparseable timestamp from provider: {value!r}")
        return None


class QuoteSearchClient:
    """POSTs search parameters to ``{base_url}/search/{kind}`` and normalizes the offers."""

    def __init__(
        self,
        base_url: str | None = None,
        api_key: str | None = None,
        timeout: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.base_url = (base_url if base_url is not None else settings.quote_search_base_url).rstrip("/")
        self.api_key = api_key if api_key is not None else settings.quote_search_api_key
        self.timeout = timeout or settings.quote_search_timeout_seconds
        self._transport = transport
        self._client: httpx.AsyncClient | None = None
        self._use_mock = not self.base_url

    @property
    def provider_name(self) -> str:
        return "mock" if self._use_mock else "quote_search"

    async def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            headers = {"Authorization": f"Bearer {self.api_key}"} if self.api_key else {}
            self._client = httpx.AsyncClient(
                base_url=self.base_url,
                timeout=self.timeout,
                headers=headers,
                transport=self._transport,
            )
        return self._client

    async def search(self, kind: QuoteKind, params: dict) -> list[QuoteData]:
        if self._use_mock:
            return self._generate_mock_quotes(kind, params)

        client = await self._get_client()
        for attempt in range(3):
            try:
                resp = await client.post(f"/search/{kind.value}", json=params)
                resp.raise_for_status()
                break
            except httpx.HTTPStatusError as e:
                if e.response.status_code == 429 and attempt < 2:
                    await asyncio.sleep(2 ** attempt)
                    continue
                raise QuoteSearchUnavailableError(
                    f"Quote provider returned {e.response.status_code} for {kind.value} search"
                ) from e
            except httpx.TimeoutException as e:
                raise QuoteSearchUnavailableError(f"Quote provider timed out for {kind.value} search") from e
            except httpx.RequestError as e:
                raise QuoteSearchUnavailableError(f"Quote provider unreachable: {e}") from e

        try:
            offers = resp.json().get("quotes", [])
        except ValueError as e:
            raise QuoteSearchUnavailableError("Quote provider returned malformed JSON") from e

        quotes = []
        for offer in offers:
            try:
                quotes.append(self._parse_offer(offer))
            except (KeyError, ValueError, ArithmeticError) as e:
                logger.warning(f"Skipping malformed {kind.value} offer: {e}")
        logger.info(f"Quote provider returned {len(quotes)} {kind.value} quotes")
        return quotes

    @staticmethod
    def _parse_offer(offer: dict) -> QuoteData:
        price = to_money(offer["price"])
        if price <= 0:
            raise ValueError(f"non-positive price {price}")
        return QuoteData(
            price=price,
            currency=normalize_currency(offer.get("currency", "USD")),
            provider=offer.get("provider") or offer.get("carrier") or "unknown",
            description=offer.get("description"),
            cabin_class=offer.get("cabin_class"),
            departs_at=_parse_datetime(offer.get("departs_at")),
            arrives_at=_parse_datetime(offer.get("arrives_at")),
            return_departs_at=_parse_datetime(offer.get("return_departs_at")),
            return_arrives_at=_parse_datetime(offer.get("return_arrives_at")),
            layovers=int(offer.get("layovers", 0)),
            refundable=bool(offer.get("refundable", False)),
            baggage_included=bool(offer.get("baggage_included", False)),
            insurance_included=bool(offer.get("insurance_included", False)),
            booking_reference=offer.get("booking_reference"),
            booking_url=offer.get("booking_url"),
            payload=offer,
        )

    # --- Mock data generation for development ---

    def _generate_mock_quotes(self, kind: QuoteKind, params: dict) -> list[QuoteData]:
        """Deterministic quotes: the same kind and params always yield the same set."""
        seed_str = f"{kind.value}{json.dumps(params, sort_keys=True, default=str)}"
        seed = int(hashlib.md5(seed_str.encode()).hexdigest()[:8], 16)
        rng = random.Random(seed)

        origin = str(params.get("origin", "")).upper()
        currency = get_currency_for_airport(origin) if origin else settings.default_currency
        start = self._start_date(params)
        base = BASE_PRICES[kind]

        quotes = []
        for _ in range(rng.randint(4, 9)):
            price = to_money(Decimal(str(round(base * rng.uniform(0.8, 1.8), 2))))
            if kind == QuoteKind.FLIGHT:
                quotes.append(self._mock_flight(rng, price, currency, origin, params, start))
            elif kind == QuoteKind.HOTEL:
                chain = rng.choice(HOTEL_CHAINS)
                quotes.append(QuoteData(
                    price=price,
                    currency=currency,
                    provider=chain,
                    description=f"{chain} {params.get('location', '')}".strip(),
                    refundable=rng.random() < 0.6,
                    payload={"mock": True},
                ))
            else:
                vendor = rng.choice(CAR_VENDORS)
                quotes.append(QuoteData(
                    price=price,
                    currency=currency,
                    provider=vendor,
                    description=f"{vendor} {rng.choice(['compact', 'midsize', 'full-size'])}",
                    insurance_included=rng.random() < 0.4,
                    payload={"mock": True},
                ))
        return quotes

    @staticmethod
    def _mock_flight(
        rng: random.Random, price: Decimal, currency: str, origin: str, params: dict, start: date
    ) -> QuoteData:
        airline = rng.choice(list(AIRLINE_NAMES))
        departs = datetime.combine(start, time(rng.randint(6, 21), rng.choice([0, 15, 30, 45])), timezone.utc)
        stops = rng.choices([0, 1, 2], weights=[60, 30, 10])[0]
        arrives = departs + timedelta(minutes=180 + stops * rng.randint(45, 90))
        destination = str(params.get("destination", "")).upper()
        return QuoteData(
            price=price,
            currency=currency,
            provider=AIRLINE_NAMES[airline],
            description=f"{airline}{rng.randint(100, 9999)} {origin}-{destination}",
            cabin_class=params.get("cabin_class", "economy"),
            departs_at=departs,
            arrives_at=arrives,
            layovers=stops,
            refundable=rng.random() < 0.3,
            baggage_included=rng.random() < 0.5,
            payload={"mock": True, "airline_code": airline},
        )

    @staticmethod
    def _start_date(params: dict) -> date:
        for key in ("departure_date", "check_in", "pickup_date"):
            if params.get(key):
                try:
                    return date.fromisoformat(str(params[key]))
                except ValueError:
                    break
        return date.today()

    async def close(self):
        if self._client:
            await self._client.aclose()
            self._client = None


quote_search_client = QuoteSearchClient()
