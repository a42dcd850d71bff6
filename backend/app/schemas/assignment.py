import uuid
from datetime import date, datetime

from pydantic import BaseModel, Field

from app.models.project import AssignmentStatus


class CreateAssignmentRequest(BaseModel):
    project_id: uuid.UUID
    consultant_id: uuid.UUID
    travel_from_location: str = Field(min_length=1, max_length=100)
    travel_to_location: str = Field(min_length=1, max_length=100)
    departure_date: date
    return_date: date | None = None
    notes: str | None = None


class AssignmentResponse(BaseModel):
    id: uuid.UUID
    project_id: uuid.UUID
    consultant_id: uuid.UUID
    travel_from_location: str
    travel_to_location: str
    departure_date: date
    return_date: date | None
    status: AssignmentStatus
    notes: str | None
    created_at: datetime

    model_config = {"from_attributes": True}
