from datetime import date, datetime
from decimal import Decimal
from enum import Enum

from pydantic import BaseModel, Field, field_validator, model_validator

from app.core.clock import ensure_utc
from app.db.models import ReadingType, ScheduledReadingStatus
from app.services.time_windows import HHMM_PATTERN, is_valid_zone


class RecurrenceFrequency(str, Enum):
    WEEKLY = "weekly"
    BIWEEKLY = "biweekly"
    MONTHLY = "monthly"


class RecurringPattern(BaseModel):
    frequency: RecurrenceFrequency
    end_date: date | None = None
    max_occurrences: int | None = Field(default=None, ge=1, le=365)
    day_of_week: int | None = Field(default=None, ge=0, le=6, description="0 = Sunday")
    day_of_month: int | None = Field(default=None, ge=1, le=31)


class SlotQueryRequest(BaseModel):
    reader_id: int
    reading_type: ReadingType
    start_date: date
    end_date: date
    duration: int | None = Field(default=None, ge=5, le=480)
    package_id: int | None = None


class TimeSlotResponse(BaseModel):
    slot_id: str
    reader_id: int
    date: date
    start_time: str
    end_time: str
    duration: int
    reading_types: list[ReadingType]
    price: Decimal
    is_available: bool
    time_zone: str
    start_at: datetime
    end_at: datetime
    package_id: int | None
    label: str


class TimeSlotInput(BaseModel):
    date: date
    start_time: str = Field(pattern=HHMM_PATTERN.pattern)
    time_zone: str = "UTC"

    @field_validator("time_zone")
    @classmethod
    def validate_time_zone(cls, value: str) -> str:
        if not is_valid_zone(value):
            raise ValueError(f"Unknown time zone {value!r}")
        return value


class BookingCreateRequest(BaseModel):
    reader_id: int
    client_id: int | None = None
    time_slot: TimeSlotInput
    package_id: int | None = None
    reading_type: ReadingType
    duration: int = Field(ge=5, le=480)
    price: Decimal | None = Field(default=None, ge=0, max_digits=10, decimal_places=2)
    special_requests: str | None = Field(default=None, max_length=2000)
    notes: str | None = Field(default=None, max_length=2000)
    recurring_pattern: RecurringPattern | None = None


class RescheduleRequest(BaseModel):
    reading_id: int
    new_time_slot: TimeSlotInput
    reason: str | None = Field(default=None, max_length=500)


class CancelRequest(BaseModel):
    reading_id: int
    reason: str = Field(min_length=1, max_length=500)


class CompleteRequest(BaseModel):
    total_minutes: int = Field(ge=0, le=1440)
    total_cost: Decimal = Field(ge=0, max_digits=10, decimal_places=2)


class ScheduledReadingResponse(BaseModel):
    id: int
    client_id: int
    reader_id: int
    package_id: int | None
    reading_type: ReadingType
    scheduled_at: datetime
    duration: int
    price: Decimal
    status: ScheduledReadingStatus
    time_zone: str
    notes: str | None
    special_requests: str | None
    recurring_pattern: RecurringPattern | None
    series_parent_id: int | None
    rescheduled_from_id: int | None
    cancellation_reason: str | None
    reschedule_reason: str | None
    payment_intent_id: str | None
    started_at: datetime | None
    ended_at: datetime | None
    total_minutes: int | None
    total_cost: Decimal | None
    cancelled_at: datetime | None
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}

    @model_validator(mode="after")
    def normalize_scheduled_at(self) -> "ScheduledReadingResponse":
        self.scheduled_at = ensure_utc(self.scheduled_at)
        return self


class FailedOccurrenceResponse(BaseModel):
    date: date
    code: str
    reason: str


class RecurrenceSummaryResponse(BaseModel):
    template_id: int
    created_ids: list[int]
    failed: list[FailedOccurrenceResponse]
    total_price: Decimal


class BookingResponse(ScheduledReadingResponse):
    recurrence: RecurrenceSummaryResponse | None = None
