from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from app.api.deps import ensure_self_or_admin, get_current_user, require_roles
from app.api.pagination import LimitParam, OffsetParam
from app.db.models import User, UserRole
from app.db.session import get_db
from app.schemas.availability import AvailabilityResponse, SetAvailabilityRequest
from app.schemas.package import PackageCreateRequest, PackageResponse
from app.schemas.reader import ReaderProfileRequest, ReaderProfileResponse
from app.services.availability_service import (
    create_reading_package,
    get_reader_availability,
    get_reader_profile,
    get_reading_packages,
    set_reader_availability,
    upsert_reader_profile,
)

router = APIRouter(prefix="/readers", tags=["readers"])


@router.put("/me/profile", response_model=ReaderProfileResponse, status_code=status.HTTP_200_OK)
def save_my_reader_profile(
    payload: ReaderProfileRequest,
    current_user: User = Depends(require_roles(UserRole.READER)),
    db: Session = Depends(get_db),
) -> ReaderProfileResponse:
    profile = upsert_reader_profile(db, current_user, payload)
    return ReaderProfileResponse.model_validate(profile)


@router.get("/{reader_id}/profile", response_model=ReaderProfileResponse, status_code=status.HTTP_200_OK)
def get_reader_profile_details(
    reader_id: int,
    db: Session = Depends(get_db),
) -> ReaderProfileResponse:
    return ReaderProfileResponse.model_validate(get_reader_profile(db, reader_id))


@router.post("/{reader_id}/availability", response_model=list[AvailabilityResponse], status_code=status.HTTP_200_OK)
def replace_reader_availability(
    reader_id: int,
    payload: SetAvailabilityRequest,
    current_user: User = Depends(require_roles(UserRole.READER, UserRole.ADMIN)),
    db: Session = Depends(get_db),
) -> list[AvailabilityResponse]:
    ensure_self_or_admin(current_user, reader_id)
    rows = set_reader_availability(db, reader_id, payload.availability)
    return [AvailabilityResponse.model_validate(row) for row in rows]


@router.get("/{reader_id}/availability", response_model=list[AvailabilityResponse], status_code=status.HTTP_200_OK)
def list_reader_availability(
    reader_id: int,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> list[AvailabilityResponse]:
    get_reader_profile(db, reader_id)
    return [AvailabilityResponse.model_validate(row) for row in get_reader_availability(db, reader_id)]


@router.post("/me/packages", response_model=PackageResponse, status_code=status.HTTP_201_CREATED)
def create_package_for_me(
    payload: PackageCreateRequest,
    current_user: User = Depends(require_roles(UserRole.READER)),
    db: Session = Depends(get_db),
) -> PackageResponse:
    package = create_reading_package(db, current_user.id, payload)
    return PackageResponse.model_validate(package)


@router.get("/{reader_id}/packages", response_model=list[PackageResponse], status_code=status.HTTP_200_OK)
def list_reader_packages(
    reader_id: int,
    limit: LimitParam = 20,
    offset: OffsetParam = 0,
    db: Session = Depends(get_db),
) -> list[PackageResponse]:
    get_reader_profile(db, reader_id)
    packages = get_reading_packages(db, reader_id)[offset : offset + limit]
    return [PackageResponse.model_validate(package) for package in packages]
