from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, Field, model_validator

from app.db.models import ReadingType
from app.services.pricing_service import discount_percent


class PackageCreateRequest(BaseModel):
    name: str = Field(min_length=2, max_length=120)
    description: str | None = Field(default=None, max_length=500)
    duration: int = Field(ge=5, le=480)
    price: Decimal = Field(gt=0, max_digits=10, decimal_places=2)
    original_price: Decimal | None = Field(default=None, gt=0, max_digits=10, decimal_places=2)
    reading_type: ReadingType
    features: list[str] = Field(default_factory=list)
    is_popular: bool = False
    is_available: bool = True

    @model_validator(mode="after")
    def validate_original_price(self) -> "PackageCreateRequest":
        if self.original_price is not None and self.original_price < self.price:
            raise ValueError("original_price must not be lower than price")
        return self


class PackageResponse(BaseModel):
    id: int
    reader_id: int
    name: str
    description: str | None
    duration: int
    price: Decimal
    original_price: Decimal | None
    discount_percent: int | None = None
    reading_type: ReadingType
    features: list[str]
    is_popular: bool
    is_available: bool
    created_at: datetime

    model_config = {"from_attributes": True}

    @model_validator(mode="after")
    def fill_discount_percent(self) -> "PackageResponse":
        if self.original_price is not None and self.discount_percent is None:
            self.discount_percent = discount_percent(self.original_price, self.price)
        return self
