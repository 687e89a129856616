from datetime import timedelta
from decimal import Decimal

import pytest

from app.core.clock import utcnow
from app.core.exceptions import InvalidTransitionError, NotFoundError, SlotUnavailableError
from app.db.models import ReadingRequest, ReadingType
from app.schemas.reading_request import ReadingRequestCreate
from app.services.reading_request_service import (
    accept_reading_request,
    expire_stale_requests,
    get_reading_request,
    list_reading_requests,
    reject_reading_request,
    send_reading_request,
)


def _send(db, reader, client, reading_type=ReadingType.PHONE, now=None) -> ReadingRequest:
    payload = ReadingRequestCreate(reader_id=reader.user_id, reading_type=reading_type, message="Is it a good week?")
    return send_reading_request(db, client.id, payload, now=now)


def test_request_is_priced_at_reader_rate_and_expires_in_five_minutes(db_session, make_reader, make_user):
    reader = make_reader(phone_rate="3.25")
    client = make_user()
    now = utcnow()

    request = _send(db_session, reader, client, now=now)

    assert request.status == "pending"
    assert request.price == Decimal("3.25")
    assert request.session_type == "instant"
    assert request.urgency == "medium"
    assert request.expires_at.replace(tzinfo=None) == (now + timedelta(minutes=5)).replace(tzinfo=None)


def test_reader_must_offer_the_reading_type(db_session, make_reader, make_user):
    reader = make_reader(video_rate="0.00")
    with pytest.raises(SlotUnavailableError):
        _send(db_session, reader, make_user(), reading_type=ReadingType.VIDEO)
    with pytest.raises(NotFoundError):
        send_reading_request(
            db_session,
            make_user().id,
            ReadingRequestCreate(reader_id=777, reading_type=ReadingType.CHAT),
        )


def test_request_expires_lazily_on_read(db_session, make_reader, make_user):
    reader = make_reader()
    request = _send(db_session, reader, make_user())

    later = utcnow() + timedelta(minutes=6)
    assert get_reading_request(db_session, request.id, now=later).status == "expired"

    with pytest.raises(InvalidTransitionError):
        accept_reading_request(db_session, request.id, now=later)


def test_accept_then_reject_is_refused(db_session, make_reader, make_user):
    reader = make_reader()
    request = _send(db_session, reader, make_user())

    accepted = accept_reading_request(db_session, request.id)
    assert accepted.status == "accepted"
    assert accepted.responded_at is not None

    with pytest.raises(InvalidTransitionError):
        reject_reading_request(db_session, request.id)


def test_listing_is_scoped_by_role(db_session, make_reader, make_user):
    reader = make_reader()
    client = make_user()
    first = _send(db_session, reader, client)
    second = _send(db_session, reader, client, reading_type=ReadingType.CHAT)
    reject_reading_request(db_session, first.id)

    assert [r.id for r in list_reading_requests(db_session, client.id, "client")] == [second.id, first.id]
    assert [r.id for r in list_reading_requests(db_session, reader.user_id, "reader", ["pending"])] == [second.id]
    assert list_reading_requests(db_session, client.id, "client", limit=1, offset=1)[0].id == first.id


def test_expire_stale_requests_sweeps_only_overdue(db_session, make_reader, make_user):
    reader = make_reader()
    client = make_user()
    old = _send(db_session, reader, client, now=utcnow() - timedelta(minutes=10))
    fresh = _send(db_session, reader, client)

    assert expire_stale_requests(db_session) == 1
    db_session.expire_all()
    assert db_session.get(ReadingRequest, old.id).status == "expired"
    assert db_session.get(ReadingRequest, fresh.id).status == "pending"
