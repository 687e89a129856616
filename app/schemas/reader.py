from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, Field


class ReaderProfileRequest(BaseModel):
    display_name: str = Field(min_length=2, max_length=120)
    chat_rate: Decimal = Field(default=Decimal("0.00"), ge=0, max_digits=5, decimal_places=2)
    phone_rate: Decimal = Field(default=Decimal("0.00"), ge=0, max_digits=5, decimal_places=2)
    video_rate: Decimal = Field(default=Decimal("0.00"), ge=0, max_digits=5, decimal_places=2)


class ReaderProfileResponse(BaseModel):
    user_id: int
    display_name: str
    chat_rate: Decimal
    phone_rate: Decimal
    video_rate: Decimal
    created_at: datetime

    model_config = {"from_attributes": True}
