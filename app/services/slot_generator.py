"""Bookable slot generation from a reader's weekly availability template.

``generate_time_slots`` is the pure part: availability rows in, an ordered
lazy sequence of :class:`TimeSlot` out. ``get_available_time_slots`` wires it
to the database and filters the candidates through the conflict checker.
"""

import logging
from collections import defaultdict
from collections.abc import Iterable, Iterator
from datetime import date, datetime, timedelta
from decimal import Decimal

from sqlalchemy import select
from sqlalchemy.orm import Session

from app.core.clock import utcnow
from app.core.config import settings
from app.core.exceptions import InvalidRangeError
from app.db.models import NON_TERMINAL_STATUSES, ReaderAvailability, ReaderProfile, ReadingType, ScheduledReading
from app.services.availability_service import get_package_for_booking
from app.services.conflict_checker import is_available
from app.services.pricing_service import resolve_price
from app.services.time_windows import (
    format_hhmm,
    local_hhmm,
    localize,
    sunday_weekday,
    to_minutes,
    wall_clock_exists,
)
from app.services.types import TimeSlot

logger = logging.getLogger(__name__)


def validate_slot_query(start_date: date, end_date: date, duration: int) -> None:
    if end_date < start_date:
        raise InvalidRangeError(
            "end_date must not be before start_date",
            detail={"start_date": start_date.isoformat(), "end_date": end_date.isoformat()},
        )
    days = (end_date - start_date).days + 1
    if days > settings.max_slot_query_days:
        raise InvalidRangeError(f"Date range spans {days} days, at most {settings.max_slot_query_days} allowed")
    if duration <= 0:
        raise InvalidRangeError("Slot duration must be positive")


def _window_starts(entry: ReaderAvailability, duration: int) -> Iterator[int]:
    window_end = to_minutes(entry.end_time)
    step = duration + (entry.break_duration or 0)
    cursor = to_minutes(entry.start_time)
    while cursor + duration <= window_end:
        yield cursor
        cursor += step


def _slots_for_day(
    day: date,
    entries: list[ReaderAvailability],
    reader_id: int,
    duration: int,
    price: Decimal,
    package_id: int | None,
) -> list[TimeSlot]:
    slots: dict[int, TimeSlot] = {}
    for entry in entries:
        window_end_at = localize(day, entry.end_time, entry.time_zone)
        for start_minute in _window_starts(entry, duration):
            if start_minute in slots:
                continue
            start_time = format_hhmm(start_minute)
            # skipped by a DST jump; localizing would alias a later slot
            if not wall_clock_exists(day, start_time, entry.time_zone):
                continue
            start_at = localize(day, start_time, entry.time_zone)
            end_at = start_at + timedelta(minutes=duration)
            if end_at > window_end_at:
                continue
            slots[start_minute] = TimeSlot(
                reader_id=reader_id,
                date=day,
                start_time=start_time,
                end_time=local_hhmm(end_at, entry.time_zone),
                duration=duration,
                reading_types=tuple(entry.reading_types),
                price=price,
                time_zone=entry.time_zone,
                start_at=start_at,
                end_at=end_at,
                package_id=package_id,
            )
    return [slots[minute] for minute in sorted(slots)]


def generate_time_slots(
    availability: Iterable[ReaderAvailability],
    reader_id: int,
    reading_type: ReadingType,
    start_date: date,
    end_date: date,
    duration: int,
    price: Decimal,
    package_id: int | None = None,
) -> Iterator[TimeSlot]:
    """Yield candidate slots ordered by (date, start_time).

    Each window is cut into ``duration`` slices separated by the entry's break;
    a tail shorter than ``duration`` is dropped. Raises InvalidRangeError
    eagerly, before the first slot is requested.
    """
    validate_slot_query(start_date, end_date, duration)

    by_day: dict[int, list[ReaderAvailability]] = defaultdict(list)
    for entry in availability:
        if entry.is_available and reading_type.value in entry.reading_types:
            by_day[entry.day_of_week].append(entry)

    def iterate() -> Iterator[TimeSlot]:
        day = start_date
        while day <= end_date:
            entries = by_day.get(sunday_weekday(day))
            if entries:
                yield from _slots_for_day(day, entries, reader_id, duration, price, package_id)
            day += timedelta(days=1)

    return iterate()


def load_active_bookings(
    db: Session,
    reader_id: int,
    window_start: datetime,
    window_end: datetime,
) -> list[ScheduledReading]:
    # readings are capped at 8 hours, so a day of slack catches anything running into the window
    return list(
        db.scalars(
            select(ScheduledReading).where(
                ScheduledReading.reader_id == reader_id,
                ScheduledReading.status.in_(NON_TERMINAL_STATUSES),
                ScheduledReading.scheduled_at >= window_start - timedelta(days=1),
                ScheduledReading.scheduled_at < window_end,
            )
        ).all()
    )


def get_available_time_slots(
    db: Session,
    reader_id: int,
    reading_type: ReadingType,
    start_date: date,
    end_date: date,
    duration: int | None = None,
    package_id: int | None = None,
    now: datetime | None = None,
) -> list[TimeSlot]:
    reading_type = ReadingType(reading_type)
    validate_slot_query(start_date, end_date, duration or settings.default_slot_duration_minutes)

    profile = db.get(ReaderProfile, reader_id)
    if profile is None:
        return []

    package = None
    if package_id is not None:
        package = get_package_for_booking(db, reader_id, package_id, reading_type)
        duration = package.duration
    duration = duration or settings.default_slot_duration_minutes
    price = resolve_price(profile, reading_type, duration, package)

    availability = db.scalars(select(ReaderAvailability).where(ReaderAvailability.reader_id == reader_id)).all()
    candidates = list(
        generate_time_slots(
            availability,
            reader_id=reader_id,
            reading_type=reading_type,
            start_date=start_date,
            end_date=end_date,
            duration=duration,
            price=price,
            package_id=package.id if package else None,
        )
    )
    if not candidates:
        return []

    bookings = load_active_bookings(
        db,
        reader_id,
        min(slot.start_at for slot in candidates),
        max(slot.end_at for slot in candidates),
    )
    current_time = now or utcnow()
    available = [slot for slot in candidates if slot.start_at > current_time and is_available(slot, bookings)]
    logger.info(
        "slots_generated reader_id=%s type=%s candidates=%s available=%s",
        reader_id,
        reading_type.value,
        len(candidates),
        len(available),
    )
    return available


def get_next_available_slot(
    db: Session,
    reader_id: int,
    reading_type: ReadingType,
    start_date: date,
    end_date: date,
    duration: int | None = None,
    package_id: int | None = None,
    now: datetime | None = None,
) -> TimeSlot | None:
    slots = get_available_time_slots(
        db,
        reader_id=reader_id,
        reading_type=reading_type,
        start_date=start_date,
        end_date=end_date,
        duration=duration,
        package_id=package_id,
        now=now,
    )
    return slots[0] if slots else None


def format_time_slot(slot: TimeSlot) -> str:
    return f"{slot.date.strftime('%A, %B')} {slot.date.day}, {slot.date.year} at {slot.start_time}"
