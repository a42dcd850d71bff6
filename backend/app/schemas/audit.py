import uuid
from datetime import datetime

from pydantic import BaseModel


class AuditEntryResponse(BaseModel):
    id: uuid.UUID
    action: str
    entity_type: str | None
    entity_id: uuid.UUID | None
    actor_id: uuid.UUID | None
    assignment_id: uuid.UUID | None
    consultant_id: uuid.UUID | None
    details: dict
    created_at: datetime

    model_config = {"from_attributes": True}
