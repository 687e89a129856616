from fastapi import APIRouter, Depends, HTTPException, Query, Response, status
from sqlalchemy.orm import Session

from app.api.deps import ensure_self_or_admin, get_current_user, require_roles
from app.api.pagination import LimitParam, OffsetParam
from app.core.config import settings
from app.core.rate_limiter import rate_limiter
from app.db.models import ReadingRequestStatus, User, UserRole
from app.db.session import get_db
from app.schemas.reading_request import ReadingRequestCreate, ReadingRequestResponse
from app.services.reading_request_service import (
    accept_reading_request,
    get_reading_request,
    list_reading_requests,
    reject_reading_request,
    send_reading_request,
)

router = APIRouter(prefix="/readings", tags=["reading-requests"])


def _rate_limit_or_raise(client_id: int, response: Response) -> None:
    allowed, retry_after = rate_limiter.allow(
        key=f"reading_request:{client_id}",
        limit=settings.reading_request_max_attempts,
        window_seconds=settings.reading_request_rate_limit_window_seconds,
    )
    if not allowed:
        response.headers["Retry-After"] = str(retry_after)
        raise HTTPException(
            status_code=status.HTTP_429_TOO_MANY_REQUESTS,
            detail="Too many reading requests. Please try again later.",
            headers={"Retry-After": str(retry_after)},
        )


@router.post("/request", response_model=ReadingRequestResponse, status_code=status.HTTP_201_CREATED)
def create_reading_request(
    payload: ReadingRequestCreate,
    response: Response,
    current_user: User = Depends(require_roles(UserRole.CLIENT, UserRole.ADMIN)),
    db: Session = Depends(get_db),
) -> ReadingRequestResponse:
    _rate_limit_or_raise(current_user.id, response)
    request = send_reading_request(db, client_id=current_user.id, payload=payload)
    return ReadingRequestResponse.model_validate(request)


@router.get("/requests/me", response_model=list[ReadingRequestResponse], status_code=status.HTTP_200_OK)
def list_my_reading_requests(
    status_filter: ReadingRequestStatus | None = Query(default=None, alias="status"),
    limit: LimitParam = 20,
    offset: OffsetParam = 0,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> list[ReadingRequestResponse]:
    user_type = UserRole.READER if current_user.role == UserRole.READER.value else UserRole.CLIENT
    requests = list_reading_requests(
        db,
        user_id=current_user.id,
        user_type=user_type,
        statuses=[status_filter] if status_filter else None,
        limit=limit,
        offset=offset,
    )
    return [ReadingRequestResponse.model_validate(request) for request in requests]


@router.get("/requests/{request_id}", response_model=ReadingRequestResponse, status_code=status.HTTP_200_OK)
def get_reading_request_details(
    request_id: int,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> ReadingRequestResponse:
    request = get_reading_request(db, request_id)
    ensure_self_or_admin(current_user, request.client_id, request.reader_id)
    return ReadingRequestResponse.model_validate(request)


@router.post("/requests/{request_id}/accept", response_model=ReadingRequestResponse, status_code=status.HTTP_200_OK)
def accept_request(
    request_id: int,
    current_user: User = Depends(require_roles(UserRole.READER, UserRole.ADMIN)),
    db: Session = Depends(get_db),
) -> ReadingRequestResponse:
    ensure_self_or_admin(current_user, get_reading_request(db, request_id).reader_id)
    return ReadingRequestResponse.model_validate(accept_reading_request(db, request_id))


@router.post("/requests/{request_id}/reject", response_model=ReadingRequestResponse, status_code=status.HTTP_200_OK)
def reject_request(
    request_id: int,
    current_user: User = Depends(require_roles(UserRole.READER, UserRole.ADMIN)),
    db: Session = Depends(get_db),
) -> ReadingRequestResponse:
    ensure_self_or_admin(current_user, get_reading_request(db, request_id).reader_id)
    return ReadingRequestResponse.model_validate(reject_reading_request(db, request_id))
