from datetime import datetime

from pydantic import BaseModel, Field, field_validator, model_validator

from app.db.models import ReadingType
from app.services.time_windows import HHMM_PATTERN, is_valid_zone, to_minutes


class AvailabilityEntryInput(BaseModel):
    day_of_week: int = Field(ge=0, le=6, description="0 = Sunday")
    start_time: str = Field(pattern=HHMM_PATTERN.pattern)
    end_time: str = Field(pattern=HHMM_PATTERN.pattern)
    time_zone: str = "UTC"
    is_available: bool = True
    reading_types: list[ReadingType] = Field(min_length=1)
    max_concurrent_sessions: int | None = Field(default=None, ge=1)
    break_duration: int | None = Field(default=None, ge=0, le=240)

    @field_validator("time_zone")
    @classmethod
    def validate_time_zone(cls, value: str) -> str:
        if not is_valid_zone(value):
            raise ValueError(f"Unknown time zone {value!r}")
        return value

    @model_validator(mode="after")
    def validate_window(self) -> "AvailabilityEntryInput":
        if to_minutes(self.end_time) <= to_minutes(self.start_time):
            raise ValueError("end_time must be later than start_time")
        return self


class SetAvailabilityRequest(BaseModel):
    availability: list[AvailabilityEntryInput]


class AvailabilityResponse(BaseModel):
    id: int
    reader_id: int
    day_of_week: int
    start_time: str
    end_time: str
    time_zone: str
    is_available: bool
    reading_types: list[ReadingType]
    max_concurrent_sessions: int | None
    break_duration: int | None
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}
