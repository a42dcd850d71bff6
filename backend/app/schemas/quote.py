import uuid
from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel

from app.models.quote import QuoteKind
from app.schemas.price_cap import PriceCapResponse


class SearchRequest(BaseModel):
    kind: QuoteKind = QuoteKind.FLIGHT
    params: dict = {}


class QuoteResponse(BaseModel):
    id: uuid.UUID
    search_id: uuid.UUID
    price: Decimal
    currency: str
    provider: str
    description: str | None
    cabin_class: str | None
    departs_at: datetime | None
    arrives_at: datetime | None
    return_departs_at: datetime | None
    return_arrives_at: datetime | None
    layovers: int
    refundable: bool
    baggage_included: bool
    insurance_included: bool
    booking_reference: str | None
    booking_url: str | None

    model_config = {"from_attributes": True}


class SearchResponse(BaseModel):
    search_id: uuid.UUID
    kind: QuoteKind
    results_count: int
    no_options: bool
    top_quotes: list[QuoteResponse]
    cap: PriceCapResponse | None
    elapsed_ms: int

    model_config = {"from_attributes": True}
