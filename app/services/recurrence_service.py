"""Recurring booking expansion.

A recurring reading is an ordinary booking (the template) carrying a
pattern. Every later occurrence is booked through the lifecycle manager at
the template's wall-clock time in the reader's zone; an occurrence that
cannot be booked is recorded and skipped, the rest of the series still goes
ahead.
"""

import calendar
import logging
from collections.abc import Iterator
from datetime import date, datetime, timedelta

from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.exceptions import InvalidRecurrenceError, PaymentDeclinedError, SlotUnavailableError
from app.core.metrics import record_event
from app.db.models import ReadingType, ScheduledReading
from app.schemas.scheduling import RecurrenceFrequency, RecurringPattern, TimeSlotInput
from app.services.availability_service import get_reader_time_zone
from app.services.booking_service import book_reading
from app.services.payment_service import PaymentAuthorizer
from app.services.pricing_service import sum_amounts
from app.services.time_windows import local_date, local_hhmm, localize, sunday_weekday
from app.services.types import FailedOccurrence, RecurrenceOutcome

logger = logging.getLogger(__name__)

FREQUENCY_STEP_DAYS = {
    RecurrenceFrequency.WEEKLY: 7,
    RecurrenceFrequency.BIWEEKLY: 14,
}


def _clamped_month_day(year: int, month: int, day: int) -> date:
    return date(year, month, min(day, calendar.monthrange(year, month)[1]))


def _add_months(anchor: date, months: int, day: int) -> date:
    month_index = anchor.month - 1 + months
    return _clamped_month_day(anchor.year + month_index // 12, month_index % 12 + 1, day)


def series_anchor(db: Session, reader_id: int, slot: TimeSlotInput) -> date:
    """Date of the first occurrence as the reader sees it."""
    zone = get_reader_time_zone(db, reader_id) or slot.time_zone
    return local_date(localize(slot.date, slot.start_time, slot.time_zone), zone)


def validate_recurring_pattern(anchor: date, pattern: RecurringPattern) -> None:
    if pattern.end_date is not None and pattern.end_date < anchor:
        raise InvalidRecurrenceError("Recurrence end_date is before the first occurrence")

    if pattern.frequency == RecurrenceFrequency.MONTHLY:
        if pattern.day_of_week is not None:
            raise InvalidRecurrenceError("day_of_week only applies to weekly and biweekly patterns")
        if pattern.day_of_month is not None:
            expected = _clamped_month_day(anchor.year, anchor.month, pattern.day_of_month)
            if expected != anchor:
                raise InvalidRecurrenceError(
                    f"First occurrence {anchor.isoformat()} does not fall on day {pattern.day_of_month}"
                )
        return

    if pattern.day_of_month is not None:
        raise InvalidRecurrenceError("day_of_month only applies to monthly patterns")
    if pattern.day_of_week is not None and pattern.day_of_week != sunday_weekday(anchor):
        raise InvalidRecurrenceError(
            f"First occurrence {anchor.isoformat()} does not fall on day_of_week {pattern.day_of_week}"
        )


def expand_occurrence_dates(
    anchor: date,
    pattern: RecurringPattern,
    horizon: int | None = None,
) -> Iterator[date]:
    """Yield occurrence dates, starting with ``anchor`` itself.

    Stops at ``max_occurrences`` or after ``end_date`` (inclusive), whichever
    comes first. With neither bound the series is capped at ``horizon``
    occurrences (52 by default) so it always ends.
    """
    validate_recurring_pattern(anchor, pattern)
    limit = pattern.max_occurrences
    if limit is None and pattern.end_date is None:
        limit = horizon or settings.recurrence_horizon
    day_of_month = pattern.day_of_month or anchor.day

    def iterate() -> Iterator[date]:
        index = 0
        while limit is None or index < limit:
            if pattern.frequency == RecurrenceFrequency.MONTHLY:
                occurrence = _add_months(anchor, index, day_of_month)
            else:
                occurrence = anchor + timedelta(days=FREQUENCY_STEP_DAYS[pattern.frequency] * index)
            if pattern.end_date is not None and occurrence > pattern.end_date:
                return
            yield occurrence
            index += 1

    return iterate()


def expand_recurring_reading(
    db: Session,
    template: ScheduledReading,
    pattern: RecurringPattern,
    authorizer: PaymentAuthorizer,
    now: datetime | None = None,
) -> RecurrenceOutcome:
    zone = get_reader_time_zone(db, template.reader_id) or template.time_zone
    anchor = local_date(template.start_at, zone)
    start_time = local_hhmm(template.start_at, zone)
    outcome = RecurrenceOutcome(template_id=template.id)
    prices = [template.price]

    for occurrence_date in expand_occurrence_dates(anchor, pattern):
        if occurrence_date == anchor:
            continue
        try:
            reading = book_reading(
                db,
                reader_id=template.reader_id,
                client_id=template.client_id,
                slot=TimeSlotInput(date=occurrence_date, start_time=start_time, time_zone=zone),
                reading_type=ReadingType(template.reading_type),
                duration=template.duration,
                authorizer=authorizer,
                package_id=template.package_id,
                special_requests=template.special_requests,
                notes=template.notes,
                series_parent_id=template.id,
                now=now,
            )
        except (SlotUnavailableError, PaymentDeclinedError) as exc:
            record_event("recurrence_occurrence_failed")
            logger.warning(
                "recurrence_occurrence_skipped template_id=%s date=%s code=%s",
                template.id,
                occurrence_date.isoformat(),
                exc.code,
            )
            outcome.failed.append(FailedOccurrence(date=occurrence_date, reason=exc.message, code=exc.code))
            continue
        outcome.created.append(reading)
        prices.append(reading.price)

    outcome.total_price = sum_amounts(prices)
    logger.info(
        "recurrence_expanded template_id=%s created=%s failed=%s",
        template.id,
        len(outcome.created),
        len(outcome.failed),
    )
    return outcome
