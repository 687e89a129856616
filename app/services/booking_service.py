import logging
from datetime import datetime, timedelta
from decimal import Decimal

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.core.clock import utcnow
from app.core.exceptions import (
    InvalidPriceError,
    InvalidTransitionError,
    NotCancellableError,
    NotFoundError,
    NotReschedulableError,
    SlotUnavailableError,
)
from app.core.metrics import record_event
from app.db.models import (
    ReaderAvailability,
    ReaderProfile,
    ReadingType,
    ScheduledReading,
    ScheduledReadingStatus,
    User,
    UserRole,
)
from app.schemas.scheduling import TimeSlotInput
from app.services.availability_service import get_package_for_booking, get_reader_profile, get_reader_time_zone
from app.services.conflict_checker import find_conflicts, fits_availability
from app.services.payment_service import PaymentAuthorizer, authorize_or_raise
from app.services.pricing_service import from_cents, resolve_price, to_cents
from app.services.slot_generator import load_active_bookings
from app.services.time_windows import local_date, local_hhmm, localize, wall_clock_exists
from app.services.types import TimeSlot

logger = logging.getLogger(__name__)

SLOT_ALREADY_BOOKED_DETAIL = "Slot already booked"
CALENDAR_CHANGED_DETAIL = "Reader's calendar changed while booking. Re-check availability and retry."

Status = ScheduledReadingStatus

ALLOWED_TRANSITIONS: dict[str, frozenset[str]] = {
    Status.PENDING.value: frozenset({Status.CONFIRMED.value, Status.CANCELLED.value, Status.RESCHEDULED.value}),
    Status.CONFIRMED.value: frozenset({Status.IN_PROGRESS.value, Status.CANCELLED.value, Status.RESCHEDULED.value}),
    Status.IN_PROGRESS.value: frozenset({Status.COMPLETED.value}),
    Status.COMPLETED.value: frozenset(),
    Status.CANCELLED.value: frozenset(),
    Status.RESCHEDULED.value: frozenset(),
}


def can_transition(current: str, target: str) -> bool:
    return target in ALLOWED_TRANSITIONS.get(current, frozenset())


def _ensure_transition(
    reading: ScheduledReading,
    target: Status,
    error_cls: type[InvalidTransitionError] = InvalidTransitionError,
) -> None:
    if not can_transition(reading.status, target.value):
        raise error_cls(
            f"Reading {reading.id} cannot move from {reading.status} to {target.value}",
            detail={"reading_id": reading.id, "status": reading.status, "requested": target.value},
        )


def _transition(
    reading: ScheduledReading,
    target: Status,
    error_cls: type[InvalidTransitionError] = InvalidTransitionError,
) -> None:
    _ensure_transition(reading, target, error_cls)
    reading.status = target.value


def get_scheduled_reading(db: Session, reading_id: int) -> ScheduledReading:
    reading = db.get(ScheduledReading, reading_id)
    if reading is None:
        raise NotFoundError(f"Scheduled reading {reading_id} not found")
    return reading


def get_scheduled_readings(
    db: Session,
    user_id: int,
    user_type: UserRole,
    statuses: list[Status] | None = None,
    limit: int | None = None,
    offset: int = 0,
) -> list[ScheduledReading]:
    query = select(ScheduledReading)
    if UserRole(user_type) == UserRole.READER:
        query = query.where(ScheduledReading.reader_id == user_id)
    else:
        query = query.where(ScheduledReading.client_id == user_id)
    if statuses:
        query = query.where(ScheduledReading.status.in_([Status(status).value for status in statuses]))
    query = query.order_by(ScheduledReading.scheduled_at, ScheduledReading.id).offset(offset)
    if limit is not None:
        query = query.limit(limit)
    return list(db.scalars(query).all())


def _requested_slot(
    db: Session,
    reader_id: int,
    slot: TimeSlotInput,
    reading_type: ReadingType,
    duration: int,
    price: Decimal,
    package_id: int | None,
) -> TimeSlot:
    """Resolve a requested slot to UTC and re-express it in the reader's zone.

    Clients may quote the slot in their own zone; the booking always stores the
    reader's zone so recurring occurrences keep the reader's wall-clock time.
    """
    if not wall_clock_exists(slot.date, slot.start_time, slot.time_zone):
        raise SlotUnavailableError(
            f"{slot.start_time} does not exist on {slot.date.isoformat()} in {slot.time_zone}",
            detail={"date": slot.date.isoformat(), "start_time": slot.start_time, "time_zone": slot.time_zone},
        )
    zone = get_reader_time_zone(db, reader_id) or slot.time_zone
    start_at = localize(slot.date, slot.start_time, slot.time_zone)
    end_at = start_at + timedelta(minutes=duration)
    return TimeSlot(
        reader_id=reader_id,
        date=local_date(start_at, zone),
        start_time=local_hhmm(start_at, zone),
        end_time=local_hhmm(end_at, zone),
        duration=duration,
        reading_types=(reading_type.value,),
        price=price,
        time_zone=zone,
        start_at=start_at,
        end_at=end_at,
        package_id=package_id,
    )


def _current_booking_version(db: Session, reader_id: int) -> int:
    return db.scalar(select(ReaderProfile.booking_version).where(ReaderProfile.user_id == reader_id))


def _ensure_slot_bookable(
    db: Session,
    candidate: TimeSlot,
    reading_type: ReadingType,
    now: datetime,
    exclude_reading_id: int | None = None,
) -> None:
    if candidate.start_at <= now:
        raise SlotUnavailableError("Slot has already started", detail={"slot_id": candidate.slot_id})

    availability = db.scalars(
        select(ReaderAvailability).where(ReaderAvailability.reader_id == candidate.reader_id)
    ).all()
    if not fits_availability(reading_type.value, candidate.start_at, candidate.duration, availability):
        raise SlotUnavailableError(
            "Slot is outside the reader's availability",
            detail={"slot_id": candidate.slot_id},
        )

    bookings = load_active_bookings(db, candidate.reader_id, candidate.start_at, candidate.end_at)
    conflicts = find_conflicts(candidate, bookings, exclude_reading_id=exclude_reading_id)
    if conflicts:
        raise SlotUnavailableError(
            SLOT_ALREADY_BOOKED_DETAIL,
            detail={"slot_id": candidate.slot_id, "conflicting_reading_ids": [c.id for c in conflicts]},
        )


def _claim_reader_calendar(db: Session, reader_id: int, seen_version: int) -> None:
    """Compare-and-swap on the reader's booking version.

    Whoever validated against an older version loses and must re-check.
    """
    updated = db.execute(
        update(ReaderProfile)
        .where(ReaderProfile.user_id == reader_id, ReaderProfile.booking_version == seen_version)
        .values(booking_version=ReaderProfile.booking_version + 1)
        .execution_options(synchronize_session=False)
    )
    if updated.rowcount != 1:
        db.rollback()
        record_event("booking_conflict")
        logger.info("booking_cas_lost reader_id=%s seen_version=%s", reader_id, seen_version)
        raise SlotUnavailableError(CALENDAR_CHANGED_DETAIL)


def _commit_claimed(db: Session, *readings: ScheduledReading) -> None:
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        record_event("booking_conflict")
        raise SlotUnavailableError(SLOT_ALREADY_BOOKED_DETAIL) from None
    for reading in readings:
        db.refresh(reading)


def book_reading(
    db: Session,
    *,
    reader_id: int,
    client_id: int,
    slot: TimeSlotInput,
    reading_type: ReadingType,
    duration: int,
    authorizer: PaymentAuthorizer,
    package_id: int | None = None,
    price: Decimal | None = None,
    special_requests: str | None = None,
    notes: str | None = None,
    recurring_pattern: dict | None = None,
    series_parent_id: int | None = None,
    now: datetime | None = None,
) -> ScheduledReading:
    """Create a ``pending`` reading for ``slot``.

    The slot is re-validated here because generated slots are not held. A
    quoted ``price`` must match the current price; a package's price and
    duration override the per-minute computation.
    """
    reading_type = ReadingType(reading_type)
    profile = get_reader_profile(db, reader_id)
    if db.get(User, client_id) is None:
        raise NotFoundError(f"Client {client_id} not found")

    package = None
    if package_id is not None:
        package = get_package_for_booking(db, reader_id, package_id, reading_type)
        duration = package.duration
    current_price = resolve_price(profile, reading_type, duration, package)
    if price is not None and to_cents(price) != to_cents(current_price):
        raise InvalidPriceError(
            f"Quoted price {from_cents(to_cents(price))} does not match current price {current_price}",
            detail={"quoted": str(price), "current": str(current_price)},
        )

    candidate = _requested_slot(db, reader_id, slot, reading_type, duration, current_price, package_id)
    seen_version = _current_booking_version(db, reader_id)
    _ensure_slot_bookable(db, candidate, reading_type, now or utcnow())

    payment_intent_id = authorize_or_raise(authorizer, current_price, reference=f"reading:{candidate.slot_id}")

    try:
        _claim_reader_calendar(db, reader_id, seen_version)
        reading = ScheduledReading(
            client_id=client_id,
            reader_id=reader_id,
            package_id=package_id,
            reading_type=reading_type.value,
            scheduled_at=candidate.start_at,
            duration=duration,
            price=current_price,
            status=Status.PENDING.value,
            time_zone=candidate.time_zone,
            notes=notes,
            special_requests=special_requests,
            recurring_pattern=recurring_pattern,
            series_parent_id=series_parent_id,
            payment_intent_id=payment_intent_id,
        )
        db.add(reading)
        _commit_claimed(db, reading)
    except SlotUnavailableError:
        if payment_intent_id:
            # the authorization is held but no reading references it
            logger.warning(
                "payment_authorization_orphaned payment_intent_id=%s reader_id=%s slot_id=%s",
                payment_intent_id,
                reader_id,
                candidate.slot_id,
            )
        raise

    record_event("booking_created")
    logger.info(
        "reading_booked reading_id=%s reader_id=%s client_id=%s start=%s",
        reading.id,
        reader_id,
        client_id,
        candidate.start_at.isoformat(),
    )
    return reading


def reschedule_reading(
    db: Session,
    reading_id: int,
    new_slot: TimeSlotInput,
    reason: str | None = None,
    now: datetime | None = None,
) -> ScheduledReading:
    """Close ``reading_id`` as ``rescheduled`` and open a new ``pending`` reading.

    The new reading keeps reader, client, type, price and payment reference.
    """
    reading = get_scheduled_reading(db, reading_id)
    seen_status = reading.status
    _ensure_transition(reading, Status.RESCHEDULED, NotReschedulableError)

    reading_type = ReadingType(reading.reading_type)
    candidate = _requested_slot(
        db, reading.reader_id, new_slot, reading_type, reading.duration, reading.price, reading.package_id
    )
    seen_version = _current_booking_version(db, reading.reader_id)
    _ensure_slot_bookable(db, candidate, reading_type, now or utcnow(), exclude_reading_id=reading.id)

    _claim_reader_calendar(db, reading.reader_id, seen_version)
    moved = db.execute(
        update(ScheduledReading)
        .where(ScheduledReading.id == reading.id, ScheduledReading.status == seen_status)
        .values(status=Status.RESCHEDULED.value, reschedule_reason=reason)
        .execution_options(synchronize_session=False)
    )
    if moved.rowcount != 1:
        db.rollback()
        raise NotReschedulableError(f"Reading {reading_id} changed status while being rescheduled")
    db.refresh(reading)
    replacement = ScheduledReading(
        client_id=reading.client_id,
        reader_id=reading.reader_id,
        package_id=reading.package_id,
        reading_type=reading.reading_type,
        scheduled_at=candidate.start_at,
        duration=reading.duration,
        price=reading.price,
        status=Status.PENDING.value,
        time_zone=candidate.time_zone,
        notes=reading.notes,
        special_requests=reading.special_requests,
        series_parent_id=reading.series_parent_id,
        rescheduled_from_id=reading.id,
        payment_intent_id=reading.payment_intent_id,
    )
    db.add(replacement)
    _commit_claimed(db, reading, replacement)

    record_event("booking_rescheduled")
    logger.info("reading_rescheduled reading_id=%s replacement_id=%s", reading.id, replacement.id)
    return replacement


def cancel_reading(db: Session, reading_id: int, reason: str, now: datetime | None = None) -> ScheduledReading:
    reading = get_scheduled_reading(db, reading_id)
    _transition(reading, Status.CANCELLED, NotCancellableError)
    reading.cancellation_reason = reason
    reading.cancelled_at = now or utcnow()
    db.commit()
    db.refresh(reading)

    record_event("booking_cancelled")
    logger.info("reading_cancelled reading_id=%s", reading.id)
    return reading


def confirm_reading(db: Session, reading_id: int) -> ScheduledReading:
    reading = get_scheduled_reading(db, reading_id)
    _transition(reading, Status.CONFIRMED)
    db.commit()
    db.refresh(reading)
    return reading


def start_reading(db: Session, reading_id: int, now: datetime | None = None) -> ScheduledReading:
    reading = get_scheduled_reading(db, reading_id)
    _transition(reading, Status.IN_PROGRESS)
    reading.started_at = now or utcnow()
    db.commit()
    db.refresh(reading)
    return reading


def complete_reading(
    db: Session,
    reading_id: int,
    total_minutes: int,
    total_cost: Decimal,
    now: datetime | None = None,
) -> ScheduledReading:
    reading = get_scheduled_reading(db, reading_id)
    _transition(reading, Status.COMPLETED)
    reading.ended_at = now or utcnow()
    reading.total_minutes = total_minutes
    reading.total_cost = from_cents(to_cents(total_cost))
    db.commit()
    db.refresh(reading)

    record_event("booking_completed")
    logger.info("reading_completed reading_id=%s minutes=%s", reading.id, total_minutes)
    return reading
