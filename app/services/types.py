"""Value objects shared by the scheduling services."""

from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal

from app.db.models import ScheduledReading


@dataclass(frozen=True)
class TimeSlot:
    """A concrete bookable interval. Derived per query, never persisted."""

    reader_id: int
    date: date
    start_time: str
    end_time: str
    duration: int
    reading_types: tuple[str, ...]
    price: Decimal
    time_zone: str
    start_at: datetime
    end_at: datetime
    is_available: bool = True
    package_id: int | None = None

    @property
    def slot_id(self) -> str:
        return f"{self.reader_id}:{self.date.isoformat()}T{self.start_time}"


@dataclass
class FailedOccurrence:
    date: date
    reason: str
    code: str


@dataclass
class RecurrenceOutcome:
    """Result of expanding one recurring booking; scoped to a single call."""

    template_id: int
    created: list[ScheduledReading] = field(default_factory=list)
    failed: list[FailedOccurrence] = field(default_factory=list)
    total_price: Decimal = Decimal("0.00")
