import logging
from collections import defaultdict

from sqlalchemy import delete, select
from sqlalchemy.orm import Session

from app.core.exceptions import InvalidAvailabilityError, NotFoundError
from app.db.models import ReaderAvailability, ReaderProfile, ReadingPackage, ReadingType, User
from app.schemas.availability import AvailabilityEntryInput
from app.schemas.package import PackageCreateRequest
from app.schemas.reader import ReaderProfileRequest
from app.services.time_windows import to_minutes

logger = logging.getLogger(__name__)


def get_reader_profile(db: Session, reader_id: int) -> ReaderProfile:
    profile = db.get(ReaderProfile, reader_id)
    if profile is None:
        raise NotFoundError(f"Reader {reader_id} not found")
    return profile


def _ensure_consistent(entries: list[AvailabilityEntryInput]) -> None:
    zones = {entry.time_zone for entry in entries}
    if len(zones) > 1:
        raise InvalidAvailabilityError(
            "All availability entries of a reader must use the same time zone",
            detail={"time_zones": sorted(zones)},
        )

    by_day: dict[int, list[tuple[int, int]]] = defaultdict(list)
    for entry in entries:
        by_day[entry.day_of_week].append((to_minutes(entry.start_time), to_minutes(entry.end_time)))

    for day_of_week, windows in by_day.items():
        windows.sort()
        for (_, previous_end), (next_start, _) in zip(windows, windows[1:]):
            if next_start < previous_end:
                raise InvalidAvailabilityError(
                    f"Availability windows overlap on day {day_of_week}",
                    detail={"day_of_week": day_of_week},
                )


def set_reader_availability(
    db: Session,
    reader_id: int,
    entries: list[AvailabilityEntryInput],
) -> list[ReaderAvailability]:
    """Replace the reader's weekly template with ``entries``."""
    get_reader_profile(db, reader_id)
    _ensure_consistent(entries)

    db.execute(delete(ReaderAvailability).where(ReaderAvailability.reader_id == reader_id))
    rows = [
        ReaderAvailability(
            reader_id=reader_id,
            day_of_week=entry.day_of_week,
            start_time=entry.start_time,
            end_time=entry.end_time,
            time_zone=entry.time_zone,
            is_available=entry.is_available,
            reading_types=[reading_type.value for reading_type in entry.reading_types],
            max_concurrent_sessions=entry.max_concurrent_sessions,
            break_duration=entry.break_duration,
        )
        for entry in entries
    ]
    db.add_all(rows)
    db.commit()
    logger.info("availability_replaced reader_id=%s entries=%s", reader_id, len(rows))
    return get_reader_availability(db, reader_id)


def get_reader_availability(db: Session, reader_id: int) -> list[ReaderAvailability]:
    return list(
        db.scalars(
            select(ReaderAvailability)
            .where(ReaderAvailability.reader_id == reader_id)
            .order_by(ReaderAvailability.day_of_week, ReaderAvailability.start_time)
        ).all()
    )


def create_reading_package(db: Session, reader_id: int, payload: PackageCreateRequest) -> ReadingPackage:
    get_reader_profile(db, reader_id)
    package = ReadingPackage(
        reader_id=reader_id,
        name=payload.name,
        description=payload.description,
        duration=payload.duration,
        price=payload.price,
        original_price=payload.original_price,
        reading_type=payload.reading_type.value,
        features=list(payload.features),
        is_popular=payload.is_popular,
        is_available=payload.is_available,
    )
    db.add(package)
    db.commit()
    db.refresh(package)
    return package


def get_reading_packages(db: Session, reader_id: int, only_available: bool = True) -> list[ReadingPackage]:
    query = select(ReadingPackage).where(ReadingPackage.reader_id == reader_id)
    if only_available:
        query = query.where(ReadingPackage.is_available.is_(True))
    return list(db.scalars(query.order_by(ReadingPackage.id)).all())


def get_package_for_booking(
    db: Session,
    reader_id: int,
    package_id: int,
    reading_type: ReadingType,
) -> ReadingPackage:
    package = db.get(ReadingPackage, package_id)
    if (
        package is None
        or package.reader_id != reader_id
        or not package.is_available
        or package.reading_type != reading_type.value
    ):
        raise NotFoundError(f"Package {package_id} is not offered by reader {reader_id} for {reading_type.value}")
    return package


def upsert_reader_profile(db: Session, user: User, payload: ReaderProfileRequest) -> ReaderProfile:
    profile = db.get(ReaderProfile, user.id)
    if profile is None:
        profile = ReaderProfile(user_id=user.id, display_name=payload.display_name)
        db.add(profile)
    profile.display_name = payload.display_name
    profile.chat_rate = payload.chat_rate
    profile.phone_rate = payload.phone_rate
    profile.video_rate = payload.video_rate
    db.commit()
    db.refresh(profile)
    logger.info("reader_profile_saved reader_id=%s", user.id)
    return profile


def get_reader_time_zone(db: Session, reader_id: int) -> str | None:
    """The zone every availability entry of the reader shares, if any are set."""
    return db.scalar(select(ReaderAvailability.time_zone).where(ReaderAvailability.reader_id == reader_id).limit(1))
