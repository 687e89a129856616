import logging
from datetime import datetime, timedelta

from sqlalchemy import select, update
from sqlalchemy.orm import Session

from app.core.clock import ensure_utc, utcnow
from app.core.config import settings
from app.core.exceptions import InvalidTransitionError, NotFoundError, SlotUnavailableError
from app.core.metrics import record_event
from app.db.models import ReadingRequest, ReadingRequestStatus, ReadingType, User, UserRole
from app.schemas.reading_request import ReadingRequestCreate
from app.services.availability_service import get_reader_profile
from app.services.pricing_service import from_cents, to_cents

logger = logging.getLogger(__name__)

READER_NOT_OFFERING_DETAIL = "Reader does not offer this reading type"


def is_expired(request: ReadingRequest, now: datetime) -> bool:
    return request.status == ReadingRequestStatus.PENDING.value and ensure_utc(request.expires_at) <= now


def refresh_expiry(db: Session, request: ReadingRequest, now: datetime | None = None) -> ReadingRequest:
    """Persist ``expired`` for a pending request whose deadline has passed."""
    if is_expired(request, now or utcnow()):
        request.status = ReadingRequestStatus.EXPIRED.value
        db.commit()
        db.refresh(request)
        record_event("reading_request_expired")
        logger.info("reading_request_expired request_id=%s", request.id)
    return request


def send_reading_request(
    db: Session,
    client_id: int,
    payload: ReadingRequestCreate,
    now: datetime | None = None,
) -> ReadingRequest:
    profile = get_reader_profile(db, payload.reader_id)
    if db.get(User, client_id) is None:
        raise NotFoundError(f"Client {client_id} not found")

    rate = profile.rate_for(ReadingType(payload.reading_type))
    if to_cents(rate) <= 0:
        raise SlotUnavailableError(READER_NOT_OFFERING_DETAIL, detail={"reading_type": payload.reading_type.value})

    created_at = now or utcnow()
    request = ReadingRequest(
        client_id=client_id,
        reader_id=payload.reader_id,
        reading_type=payload.reading_type.value,
        session_type="instant",
        price=from_cents(to_cents(rate)),
        status=ReadingRequestStatus.PENDING.value,
        urgency=payload.urgency.value,
        message=payload.message,
        created_at=created_at,
        expires_at=created_at + timedelta(minutes=settings.reading_request_ttl_minutes),
    )
    db.add(request)
    db.commit()
    db.refresh(request)

    record_event("reading_request_sent")
    logger.info("reading_request_sent request_id=%s reader_id=%s", request.id, request.reader_id)
    return request


def get_reading_request(db: Session, request_id: int, now: datetime | None = None) -> ReadingRequest:
    request = db.get(ReadingRequest, request_id)
    if request is None:
        raise NotFoundError(f"Reading request {request_id} not found")
    return refresh_expiry(db, request, now)


def list_reading_requests(
    db: Session,
    user_id: int,
    user_type: UserRole,
    statuses: list[ReadingRequestStatus] | None = None,
    limit: int | None = None,
    offset: int = 0,
    now: datetime | None = None,
) -> list[ReadingRequest]:
    current_time = now or utcnow()
    query = select(ReadingRequest)
    if UserRole(user_type) == UserRole.READER:
        query = query.where(ReadingRequest.reader_id == user_id)
    else:
        query = query.where(ReadingRequest.client_id == user_id)

    requests = list(db.scalars(query.order_by(ReadingRequest.created_at.desc(), ReadingRequest.id.desc())).all())
    for request in requests:
        refresh_expiry(db, request, current_time)
    if statuses:
        wanted = {ReadingRequestStatus(status).value for status in statuses}
        requests = [request for request in requests if request.status in wanted]
    end = None if limit is None else offset + limit
    return requests[offset:end]


def _respond(
    db: Session,
    request_id: int,
    target: ReadingRequestStatus,
    now: datetime | None = None,
) -> ReadingRequest:
    current_time = now or utcnow()
    request = get_reading_request(db, request_id, current_time)
    if request.status != ReadingRequestStatus.PENDING.value:
        raise InvalidTransitionError(
            f"Reading request {request.id} is {request.status} and can no longer be {target.value}",
            detail={"request_id": request.id, "status": request.status, "requested": target.value},
        )

    # conditional write so a concurrent response or expiry sweep cannot be overwritten
    updated = db.execute(
        update(ReadingRequest)
        .where(ReadingRequest.id == request.id, ReadingRequest.status == ReadingRequestStatus.PENDING.value)
        .values(status=target.value, responded_at=current_time)
        .execution_options(synchronize_session=False)
    )
    if updated.rowcount != 1:
        db.rollback()
        raise InvalidTransitionError(f"Reading request {request.id} was already answered")
    db.commit()
    db.refresh(request)

    record_event(f"reading_request_{target.value}")
    logger.info("reading_request_answered request_id=%s status=%s", request.id, target.value)
    return request


def accept_reading_request(db: Session, request_id: int, now: datetime | None = None) -> ReadingRequest:
    return _respond(db, request_id, ReadingRequestStatus.ACCEPTED, now)


def reject_reading_request(db: Session, request_id: int, now: datetime | None = None) -> ReadingRequest:
    return _respond(db, request_id, ReadingRequestStatus.REJECTED, now)


def expire_stale_requests(db: Session, now: datetime | None = None) -> int:
    """Bulk-persist expiry for every pending request past its deadline."""
    current_time = now or utcnow()
    result = db.execute(
        update(ReadingRequest)
        .where(
            ReadingRequest.status == ReadingRequestStatus.PENDING.value,
            ReadingRequest.expires_at <= current_time,
        )
        .values(status=ReadingRequestStatus.EXPIRED.value)
        .execution_options(synchronize_session=False)
    )
    db.commit()
    if result.rowcount:
        logger.info("reading_requests_expired count=%s", result.rowcount)
    return result.rowcount
