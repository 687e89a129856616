import random
from datetime import UTC, datetime, timedelta

from app.db.models import ReaderAvailability, ScheduledReading
from app.services.conflict_checker import find_conflicts, fits_availability, intervals_overlap, is_available
from app.services.types import TimeSlot

START = datetime(2030, 1, 7, 10, 0, tzinfo=UTC)


def _reading(reading_id: int, start: datetime, duration: int = 60, status: str = "pending", reader_id: int = 1):
    return ScheduledReading(
        id=reading_id,
        client_id=2,
        reader_id=reader_id,
        reading_type="chat",
        scheduled_at=start,
        duration=duration,
        status=status,
    )


def _slot(start: datetime, duration: int = 60, reader_id: int = 1) -> TimeSlot:
    return TimeSlot(
        reader_id=reader_id,
        date=start.date(),
        start_time=start.strftime("%H:%M"),
        end_time=(start + timedelta(minutes=duration)).strftime("%H:%M"),
        duration=duration,
        reading_types=("chat",),
        price=0,
        time_zone="UTC",
        start_at=start,
        end_at=start + timedelta(minutes=duration),
    )


def test_touching_intervals_do_not_overlap():
    end = START + timedelta(hours=1)
    assert intervals_overlap(START, end, end, end + timedelta(hours=1)) is False
    assert intervals_overlap(START, end, START + timedelta(minutes=59), end + timedelta(hours=1)) is True


def test_only_active_bookings_of_same_reader_conflict():
    bookings = [
        _reading(1, START, status="cancelled"),
        _reading(2, START, status="rescheduled"),
        _reading(3, START, status="completed"),
        _reading(4, START, reader_id=99),
    ]
    assert is_available(_slot(START), bookings) is True

    active = _reading(5, START + timedelta(minutes=30), status="confirmed")
    assert find_conflicts(_slot(START), bookings + [active]) == [active]


def test_excluded_reading_is_ignored():
    booking = _reading(7, START)
    assert is_available(_slot(START), [booking]) is False
    assert is_available(_slot(START), [booking], exclude_reading_id=7) is True


def test_fits_availability_checks_window_and_type():
    window = ReaderAvailability(
        reader_id=1,
        day_of_week=1,
        start_time="09:00",
        end_time="12:00",
        time_zone="UTC",
        is_available=True,
        reading_types=["chat"],
    )
    assert fits_availability("chat", START, 60, [window]) is True
    assert fits_availability("chat", START + timedelta(hours=1, minutes=30), 60, [window]) is False
    assert fits_availability("video", START, 60, [window]) is False
    assert fits_availability("chat", START + timedelta(days=1), 60, [window]) is False


def test_random_booking_sets_flag_exactly_the_true_overlaps():
    rng = random.Random(20240101)
    for _ in range(200):
        bookings = [
            _reading(n, START + timedelta(minutes=15 * rng.randint(0, 16)), duration=15 * rng.randint(1, 4))
            for n in range(rng.randint(0, 6))
        ]
        candidate = _slot(START + timedelta(minutes=15 * rng.randint(0, 16)), duration=15 * rng.randint(1, 4))

        expected = [
            booking
            for booking in bookings
            if candidate.start_at < booking.end_at and booking.start_at < candidate.end_at
        ]
        assert find_conflicts(candidate, bookings) == expected
        touching = [b for b in bookings if b.end_at == candidate.start_at or b.start_at == candidate.end_at]
        assert not any(booking in find_conflicts(candidate, bookings) for booking in touching)
