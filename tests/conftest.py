import itertools
import os
import sys
from datetime import date, timedelta
from decimal import Decimal
from pathlib import Path

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

os.environ.setdefault("RATE_LIMIT_BACKEND", "memory")
sys.path.append(str(Path(__file__).resolve().parents[1]))

from app.api.deps import get_authorizer
from app.core.rate_limiter import rate_limiter
from app.core.security import create_access_token
from app.db.base import Base
from app.db.models import ReaderProfile, User, UserRole
from app.db.session import get_db
from app.main import app
from app.schemas.availability import AvailabilityEntryInput
from app.services.availability_service import set_reader_availability
from app.services.payment_service import NoopPaymentAuthorizer

TEST_DATABASE_URL = "sqlite+pysqlite:///:memory:"
engine = create_engine(
    TEST_DATABASE_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

WEEKDAY_WINDOWS = [
    {"day_of_week": day, "start_time": "09:00", "end_time": "12:00", "reading_types": ["chat", "phone"]}
    for day in range(1, 6)
]


@pytest.fixture(autouse=True)
def reset_database() -> None:
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    rate_limiter.reset()


@pytest.fixture()
def db_session():
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()


@pytest.fixture()
def upcoming_monday() -> date:
    today = date.today()
    return today + timedelta(days=(7 - today.weekday()) % 7 + 7)


@pytest.fixture()
def make_user(db_session):
    counter = itertools.count(1)

    def factory(role: UserRole = UserRole.CLIENT, email: str | None = None) -> User:
        user = User(email=email or f"{role.value}-{next(counter)}@example.com", role=role.value)
        db_session.add(user)
        db_session.commit()
        db_session.refresh(user)
        return user

    return factory


@pytest.fixture()
def make_reader(db_session, make_user):
    def factory(
        chat_rate: str = "1.50",
        phone_rate: str = "2.00",
        video_rate: str = "0.00",
        availability: list[dict] | None = None,
    ) -> ReaderProfile:
        user = make_user(UserRole.READER)
        profile = ReaderProfile(
            user_id=user.id,
            display_name=f"Reader {user.id}",
            chat_rate=Decimal(chat_rate),
            phone_rate=Decimal(phone_rate),
            video_rate=Decimal(video_rate),
        )
        db_session.add(profile)
        db_session.commit()
        entries = WEEKDAY_WINDOWS if availability is None else availability
        if entries:
            set_reader_availability(db_session, user.id, [AvailabilityEntryInput(**entry) for entry in entries])
        db_session.refresh(profile)
        return profile

    return factory


@pytest.fixture()
def auth_headers():
    def factory(user: User) -> dict[str, str]:
        return {"Authorization": f"Bearer {create_access_token(user.id, user.role)}"}

    return factory


@pytest.fixture()
def client() -> TestClient:
    def override_get_db():
        db = TestingSessionLocal()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_authorizer] = NoopPaymentAuthorizer
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()
