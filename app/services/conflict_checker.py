"""Overlap checks between candidate slots and existing commitments.

Everything here is pure: callers pass in the bookings they loaded and get a
verdict back, nothing is cached between calls.
"""

from collections.abc import Iterable
from datetime import datetime, timedelta
from typing import Protocol

from app.db.models import NON_TERMINAL_STATUSES, ReaderAvailability, ScheduledReading
from app.services.time_windows import local_window


class SlotLike(Protocol):
    reader_id: int
    start_at: datetime
    end_at: datetime


def intervals_overlap(a_start: datetime, a_end: datetime, b_start: datetime, b_end: datetime) -> bool:
    """Half-open interval overlap; touching endpoints do not overlap."""
    return a_start < b_end and b_start < a_end


def find_conflicts(
    candidate: SlotLike,
    existing_bookings: Iterable[ScheduledReading],
    exclude_reading_id: int | None = None,
) -> list[ScheduledReading]:
    conflicts = []
    for booking in existing_bookings:
        if booking.reader_id != candidate.reader_id:
            continue
        if booking.status not in NON_TERMINAL_STATUSES:
            continue
        if exclude_reading_id is not None and booking.id == exclude_reading_id:
            continue
        if intervals_overlap(candidate.start_at, candidate.end_at, booking.start_at, booking.end_at):
            conflicts.append(booking)
    return conflicts


def is_available(
    candidate: SlotLike,
    existing_bookings: Iterable[ScheduledReading],
    exclude_reading_id: int | None = None,
) -> bool:
    return not find_conflicts(candidate, existing_bookings, exclude_reading_id=exclude_reading_id)


def fits_availability(
    reading_type: str,
    start_at: datetime,
    duration: int,
    availability: Iterable[ReaderAvailability],
) -> bool:
    """True if [start_at, start_at + duration) lies inside an open window offering the type."""
    end_at = start_at + timedelta(minutes=duration)
    for entry in availability:
        if not entry.is_available or reading_type not in entry.reading_types:
            continue
        window = local_window(entry, start_at)
        if window is None:
            continue
        window_start, window_end = window
        if window_start <= start_at and end_at <= window_end:
            return True
    return False
