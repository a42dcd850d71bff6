import uuid
from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel


class PriceCapResponse(BaseModel):
    id: uuid.UUID
    assignment_id: uuid.UUID
    max_approved_price: Decimal
    currency: str
    search_id: uuid.UUID | None
    quote_id: uuid.UUID | None
    set_by: uuid.UUID | None
    set_at: datetime

    model_config = {"from_attributes": True}
