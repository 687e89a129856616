from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, Field

from app.db.models import ReadingRequestStatus, ReadingType, RequestUrgency


class ReadingRequestCreate(BaseModel):
    reader_id: int
    reading_type: ReadingType
    message: str | None = Field(default=None, max_length=500)
    urgency: RequestUrgency = RequestUrgency.MEDIUM


class ReadingRequestResponse(BaseModel):
    id: int
    client_id: int
    reader_id: int
    reading_type: ReadingType
    session_type: str
    price: Decimal
    status: ReadingRequestStatus
    urgency: RequestUrgency
    message: str | None
    created_at: datetime
    expires_at: datetime
    responded_at: datetime | None

    model_config = {"from_attributes": True}
