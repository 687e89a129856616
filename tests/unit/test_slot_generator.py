from datetime import UTC, date, datetime, time, timedelta
from decimal import Decimal

import pytest

from app.core.exceptions import InvalidRangeError
from app.db.models import ReaderAvailability, ReadingType, ScheduledReading
from app.schemas.package import PackageCreateRequest
from app.schemas.scheduling import TimeSlotInput
from app.services.availability_service import create_reading_package
from app.services.booking_service import book_reading
from app.services.payment_service import NoopPaymentAuthorizer
from app.services.slot_generator import (
    format_time_slot,
    generate_time_slots,
    get_available_time_slots,
    get_next_available_slot,
)

MONDAY = date(2030, 1, 7)


def _window(day_of_week=1, start="09:00", end="12:00", types=("chat",), zone="UTC", break_duration=None):
    return ReaderAvailability(
        reader_id=1,
        day_of_week=day_of_week,
        start_time=start,
        end_time=end,
        time_zone=zone,
        is_available=True,
        reading_types=list(types),
        break_duration=break_duration,
    )


def _generate(availability, start=MONDAY, end=MONDAY, duration=60, reading_type=ReadingType.CHAT):
    return list(
        generate_time_slots(
            availability,
            reader_id=1,
            reading_type=reading_type,
            start_date=start,
            end_date=end,
            duration=duration,
            price=Decimal("90.00"),
        )
    )


def test_monday_morning_window_yields_three_hour_slots():
    slots = _generate([_window()])

    assert [slot.start_time for slot in slots] == ["09:00", "10:00", "11:00"]
    assert [slot.end_time for slot in slots] == ["10:00", "11:00", "12:00"]
    assert all(slot.price == Decimal("90.00") for slot in slots)
    assert slots[0].slot_id == "1:2030-01-07T09:00"


def test_break_duration_spaces_slots_and_short_tail_is_dropped():
    slots = _generate([_window(end="12:00", break_duration=15)])
    assert [slot.start_time for slot in slots] == ["09:00", "10:15"]

    assert [slot.start_time for slot in _generate([_window(end="10:30")])] == ["09:00"]


def test_window_without_requested_type_is_skipped():
    assert _generate([_window(types=("chat",))], reading_type=ReadingType.VIDEO) == []


def test_slots_are_ordered_and_deduplicated_across_days():
    availability = [
        _window(day_of_week=2, start="13:00", end="14:00"),
        _window(day_of_week=1, start="10:00", end="12:00"),
        _window(day_of_week=1, start="09:00", end="11:00"),
    ]
    slots = _generate(availability, end=MONDAY + timedelta(days=1))

    assert [(slot.date, slot.start_time) for slot in slots] == [
        (MONDAY, "09:00"),
        (MONDAY, "10:00"),
        (MONDAY, "11:00"),
        (MONDAY + timedelta(days=1), "13:00"),
    ]
    assert _generate(availability, end=MONDAY + timedelta(days=1)) == slots


def test_wall_clock_times_are_in_the_window_zone():
    slots = _generate([_window(zone="America/New_York")])
    assert slots[0].start_at == datetime(2030, 1, 7, 14, 0, tzinfo=UTC)
    assert slots[0].time_zone == "America/New_York"


def test_spring_forward_gap_produces_no_aliased_slots():
    dst_sunday = date(2030, 3, 10)
    window = _window(day_of_week=0, start="01:00", end="04:00", zone="America/New_York")

    slots = _generate([window], start=dst_sunday, end=dst_sunday, duration=30)

    assert [slot.start_time for slot in slots] == ["01:00", "01:30", "03:00", "03:30"]
    assert [slot.end_time for slot in slots] == ["01:30", "03:00", "03:30", "04:00"]
    starts = [slot.start_at for slot in slots]
    assert len(set(starts)) == len(starts)
    for earlier, later in zip(slots, slots[1:]):
        assert earlier.end_at <= later.start_at
    assert slots[-1].end_at == datetime(2030, 3, 10, 8, 0, tzinfo=UTC)


def test_invalid_ranges_raise_before_iteration():
    with pytest.raises(InvalidRangeError):
        generate_time_slots([], 1, ReadingType.CHAT, MONDAY, MONDAY - timedelta(days=1), 30, Decimal("0"))
    with pytest.raises(InvalidRangeError):
        generate_time_slots([], 1, ReadingType.CHAT, MONDAY, MONDAY + timedelta(days=40), 30, Decimal("0"))


def test_format_time_slot_label():
    slot = _generate([_window()])[0]
    assert format_time_slot(slot) == "Monday, January 7, 2030 at 09:00"


def test_booked_and_past_slots_are_filtered(db_session, make_reader, make_user, upcoming_monday):
    reader = make_reader(chat_rate="1.50")
    client = make_user()
    db_session.add(
        ScheduledReading(
            client_id=client.id,
            reader_id=reader.user_id,
            reading_type="chat",
            scheduled_at=datetime.combine(upcoming_monday, time(10, 0), tzinfo=UTC),
            duration=60,
            price=Decimal("90.00"),
            status="confirmed",
        )
    )
    db_session.commit()

    slots = get_available_time_slots(db_session, reader.user_id, ReadingType.CHAT, upcoming_monday, upcoming_monday, 60)
    assert [slot.start_time for slot in slots] == ["09:00", "11:00"]
    assert slots[0].price == Decimal("90.00")

    later = datetime.combine(upcoming_monday, time(10, 30), tzinfo=UTC)
    remaining = get_available_time_slots(
        db_session, reader.user_id, ReadingType.CHAT, upcoming_monday, upcoming_monday, 60, now=later
    )
    assert [slot.start_time for slot in remaining] == ["11:00"]


def test_unknown_reader_has_no_slots(db_session, upcoming_monday):
    assert get_available_time_slots(db_session, 404, ReadingType.CHAT, upcoming_monday, upcoming_monday) == []


def test_package_overrides_duration_and_price(db_session, make_reader, upcoming_monday):
    reader = make_reader()
    package = create_reading_package(
        db_session,
        reader.user_id,
        PackageCreateRequest(name="Full hour", duration=90, price=Decimal("80.00"), reading_type=ReadingType.CHAT),
    )

    slot = get_next_available_slot(
        db_session,
        reader.user_id,
        ReadingType.CHAT,
        upcoming_monday,
        upcoming_monday + timedelta(days=6),
        package_id=package.id,
    )
    assert slot is not None
    assert (slot.date, slot.start_time, slot.end_time) == (upcoming_monday, "09:00", "10:30")
    assert slot.price == Decimal("80.00")
    assert slot.package_id == package.id


def test_monday_half_hour_scenario_excludes_booked_slot(db_session, make_reader, make_user, upcoming_monday):
    reader = make_reader(
        chat_rate="1.00",
        availability=[{"day_of_week": 1, "start_time": "09:00", "end_time": "12:00", "reading_types": ["chat"]}],
    )
    week_end = upcoming_monday + timedelta(days=6)

    first = get_available_time_slots(db_session, reader.user_id, ReadingType.CHAT, upcoming_monday, week_end, 30)
    again = get_available_time_slots(db_session, reader.user_id, ReadingType.CHAT, upcoming_monday, week_end, 30)
    assert [slot.start_time for slot in first] == ["09:00", "09:30", "10:00", "10:30", "11:00", "11:30"]
    assert first == again

    book_reading(
        db_session,
        reader_id=reader.user_id,
        client_id=make_user().id,
        slot=TimeSlotInput(date=upcoming_monday, start_time="10:00"),
        reading_type=ReadingType.CHAT,
        duration=30,
        authorizer=NoopPaymentAuthorizer(),
    )

    after = get_available_time_slots(db_session, reader.user_id, ReadingType.CHAT, upcoming_monday, week_end, 30)
    assert [slot.start_time for slot in after] == ["09:00", "09:30", "10:30", "11:00", "11:30"]
