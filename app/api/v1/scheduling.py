from fastapi import APIRouter, Depends, HTTPException, Query, status
from fastapi.responses import Response
from sqlalchemy.orm import Session

from app.api.deps import ensure_self_or_admin, get_authorizer, get_current_user, require_roles
from app.api.pagination import LimitParam, OffsetParam
from app.db.models import ScheduledReading, ScheduledReadingStatus, User, UserRole
from app.db.session import get_db
from app.schemas.scheduling import (
    BookingCreateRequest,
    BookingResponse,
    CancelRequest,
    CompleteRequest,
    FailedOccurrenceResponse,
    RecurrenceSummaryResponse,
    RescheduleRequest,
    ScheduledReadingResponse,
    SlotQueryRequest,
    TimeSlotResponse,
)
from app.services.booking_service import (
    book_reading,
    cancel_reading,
    complete_reading,
    confirm_reading,
    get_scheduled_reading,
    get_scheduled_readings,
    reschedule_reading,
    start_reading,
)
from app.services.payment_service import PaymentAuthorizer
from app.services.recurrence_service import (
    expand_recurring_reading,
    series_anchor,
    validate_recurring_pattern,
)
from app.services.slot_generator import format_time_slot, get_available_time_slots, get_next_available_slot
from app.services.types import TimeSlot

router = APIRouter(prefix="/scheduling", tags=["scheduling"])


def _slot_response(slot: TimeSlot) -> TimeSlotResponse:
    return TimeSlotResponse(
        slot_id=slot.slot_id,
        reader_id=slot.reader_id,
        date=slot.date,
        start_time=slot.start_time,
        end_time=slot.end_time,
        duration=slot.duration,
        reading_types=list(slot.reading_types),
        price=slot.price,
        is_available=slot.is_available,
        time_zone=slot.time_zone,
        start_at=slot.start_at,
        end_at=slot.end_at,
        package_id=slot.package_id,
        label=format_time_slot(slot),
    )


def _parse_statuses(raw: str | None) -> list[ScheduledReadingStatus] | None:
    if not raw:
        return None
    try:
        return [ScheduledReadingStatus(value.strip()) for value in raw.split(",") if value.strip()]
    except ValueError:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail=f"Unknown status in {raw!r}",
        )


def _load_participant_reading(db: Session, reading_id: int, current_user: User) -> ScheduledReading:
    reading = get_scheduled_reading(db, reading_id)
    ensure_self_or_admin(current_user, reading.client_id, reading.reader_id)
    return reading


def _load_reader_reading(db: Session, reading_id: int, current_user: User) -> ScheduledReading:
    reading = get_scheduled_reading(db, reading_id)
    ensure_self_or_admin(current_user, reading.reader_id)
    return reading


@router.post("/availability", response_model=list[TimeSlotResponse], status_code=status.HTTP_200_OK)
def query_available_slots(
    payload: SlotQueryRequest,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> list[TimeSlotResponse]:
    slots = get_available_time_slots(
        db,
        reader_id=payload.reader_id,
        reading_type=payload.reading_type,
        start_date=payload.start_date,
        end_date=payload.end_date,
        duration=payload.duration,
        package_id=payload.package_id,
    )
    return [_slot_response(slot) for slot in slots]


@router.post("/next-slot", response_model=TimeSlotResponse | None, status_code=status.HTTP_200_OK)
def query_next_available_slot(
    payload: SlotQueryRequest,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> TimeSlotResponse | None:
    slot = get_next_available_slot(
        db,
        reader_id=payload.reader_id,
        reading_type=payload.reading_type,
        start_date=payload.start_date,
        end_date=payload.end_date,
        duration=payload.duration,
        package_id=payload.package_id,
    )
    return _slot_response(slot) if slot else None


@router.post("/book", response_model=BookingResponse, status_code=status.HTTP_201_CREATED)
def book_scheduled_reading(
    payload: BookingCreateRequest,
    current_user: User = Depends(require_roles(UserRole.CLIENT, UserRole.ADMIN)),
    db: Session = Depends(get_db),
    authorizer: PaymentAuthorizer = Depends(get_authorizer),
) -> BookingResponse:
    client_id = payload.client_id or current_user.id
    ensure_self_or_admin(current_user, client_id)

    pattern = payload.recurring_pattern
    if pattern is not None:
        validate_recurring_pattern(series_anchor(db, payload.reader_id, payload.time_slot), pattern)

    reading = book_reading(
        db,
        reader_id=payload.reader_id,
        client_id=client_id,
        slot=payload.time_slot,
        reading_type=payload.reading_type,
        duration=payload.duration,
        authorizer=authorizer,
        package_id=payload.package_id,
        price=payload.price,
        special_requests=payload.special_requests,
        notes=payload.notes,
        recurring_pattern=pattern.model_dump(mode="json") if pattern else None,
    )
    response = BookingResponse.model_validate(reading)
    if pattern is None:
        return response

    outcome = expand_recurring_reading(db, reading, pattern, authorizer)
    response.recurrence = RecurrenceSummaryResponse(
        template_id=outcome.template_id,
        created_ids=[created.id for created in outcome.created],
        failed=[
            FailedOccurrenceResponse(date=failed.date, code=failed.code, reason=failed.reason)
            for failed in outcome.failed
        ],
        total_price=outcome.total_price,
    )
    return response


@router.get("/readings", response_model=list[ScheduledReadingResponse], status_code=status.HTTP_200_OK)
def list_scheduled_readings(
    user_id: int,
    user_type: UserRole = UserRole.CLIENT,
    status_filter: str | None = Query(default=None, alias="status"),
    limit: LimitParam = 50,
    offset: OffsetParam = 0,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> list[ScheduledReadingResponse]:
    ensure_self_or_admin(current_user, user_id)
    readings = get_scheduled_readings(
        db,
        user_id=user_id,
        user_type=user_type,
        statuses=_parse_statuses(status_filter),
        limit=limit,
        offset=offset,
    )
    return [ScheduledReadingResponse.model_validate(reading) for reading in readings]


@router.get("/readings/{reading_id}", response_model=ScheduledReadingResponse, status_code=status.HTTP_200_OK)
def get_reading(
    reading_id: int,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> ScheduledReadingResponse:
    reading = _load_participant_reading(db, reading_id, current_user)
    return ScheduledReadingResponse.model_validate(reading)


@router.post("/reschedule", response_model=ScheduledReadingResponse, status_code=status.HTTP_200_OK)
def reschedule_scheduled_reading(
    payload: RescheduleRequest,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> ScheduledReadingResponse:
    _load_participant_reading(db, payload.reading_id, current_user)
    replacement = reschedule_reading(db, payload.reading_id, payload.new_time_slot, reason=payload.reason)
    return ScheduledReadingResponse.model_validate(replacement)


@router.post("/cancel", status_code=status.HTTP_204_NO_CONTENT)
def cancel_scheduled_reading(
    payload: CancelRequest,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> Response:
    _load_participant_reading(db, payload.reading_id, current_user)
    cancel_reading(db, payload.reading_id, payload.reason)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post("/readings/{reading_id}/confirm", response_model=ScheduledReadingResponse)
def confirm_scheduled_reading(
    reading_id: int,
    current_user: User = Depends(require_roles(UserRole.READER, UserRole.ADMIN)),
    db: Session = Depends(get_db),
) -> ScheduledReadingResponse:
    _load_reader_reading(db, reading_id, current_user)
    return ScheduledReadingResponse.model_validate(confirm_reading(db, reading_id))


@router.post("/readings/{reading_id}/start", response_model=ScheduledReadingResponse)
def start_scheduled_reading(
    reading_id: int,
    current_user: User = Depends(require_roles(UserRole.READER, UserRole.ADMIN)),
    db: Session = Depends(get_db),
) -> ScheduledReadingResponse:
    _load_reader_reading(db, reading_id, current_user)
    return ScheduledReadingResponse.model_validate(start_reading(db, reading_id))


@router.post("/readings/{reading_id}/complete", response_model=ScheduledReadingResponse)
def complete_scheduled_reading(
    reading_id: int,
    payload: CompleteRequest,
    current_user: User = Depends(require_roles(UserRole.READER, UserRole.ADMIN)),
    db: Session = Depends(get_db),
) -> ScheduledReadingResponse:
    _load_reader_reading(db, reading_id, current_user)
    reading = complete_reading(db, reading_id, total_minutes=payload.total_minutes, total_cost=payload.total_cost)
    return ScheduledReadingResponse.model_validate(reading)
