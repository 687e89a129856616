from concurrent.futures import ThreadPoolExecutor
from decimal import Decimal

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from app.core.exceptions import SlotUnavailableError
from app.db.base import Base
from app.db.models import ReaderProfile, ReadingType, ScheduledReading, User, UserRole
from app.schemas.availability import AvailabilityEntryInput
from app.schemas.scheduling import TimeSlotInput
from app.services.availability_service import set_reader_availability
from app.services.booking_service import book_reading
from app.services.payment_service import NoopPaymentAuthorizer


@pytest.mark.concurrent
def test_two_parallel_bookings_of_one_slot_only_one_succeeds(tmp_path, upcoming_monday):
    db_file = tmp_path / "race.db"
    engine = create_engine(f"sqlite+pysqlite:///{db_file}", connect_args={"check_same_thread": False})
    SessionLocal = sessionmaker(bind=engine, autocommit=False, autoflush=False)
    Base.metadata.create_all(bind=engine)

    seed_session = SessionLocal()
    reader_user = User(email="race-reader@example.com", role=UserRole.READER.value)
    clients = [User(email=f"race-client-{n}@example.com", role=UserRole.CLIENT.value) for n in range(2)]
    seed_session.add_all([reader_user, *clients])
    seed_session.flush()
    seed_session.add(ReaderProfile(user_id=reader_user.id, display_name="Race Reader", chat_rate=Decimal("1.00")))
    seed_session.commit()
    set_reader_availability(
        seed_session,
        reader_user.id,
        [AvailabilityEntryInput(day_of_week=1, start_time="09:00", end_time="12:00", reading_types=["chat"])],
    )
    reader_id = reader_user.id
    client_ids = [client.id for client in clients]
    seed_session.close()

    def attempt(client_id: int) -> str:
        session = SessionLocal()
        try:
            book_reading(
                session,
                reader_id=reader_id,
                client_id=client_id,
                slot=TimeSlotInput(date=upcoming_monday, start_time="09:00"),
                reading_type=ReadingType.CHAT,
                duration=60,
                authorizer=NoopPaymentAuthorizer(),
            )
            return "created"
        except SlotUnavailableError:
            return "conflict"
        finally:
            session.close()

    with ThreadPoolExecutor(max_workers=2) as pool:
        results = list(pool.map(attempt, client_ids))

    assert sorted(results) == ["conflict", "created"]

    check = SessionLocal()
    total_readings = check.query(ScheduledReading).count()
    profile = check.get(ReaderProfile, reader_id)
    check.close()

    assert total_readings == 1
    assert profile.booking_version == 1
    engine.dispose()
