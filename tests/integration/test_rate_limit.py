import redis

from app.core.config import settings
from app.core.rate_limiter import FallbackRateLimiter, InMemoryRateLimiter, RateLimiter, rate_limiter


def test_reading_request_rate_limit_returns_429(client, make_reader, make_user, auth_headers):
    reader = make_reader()
    headers = auth_headers(make_user())
    original_limit = settings.reading_request_max_attempts
    original_window = settings.reading_request_rate_limit_window_seconds
    settings.reading_request_max_attempts = 2
    settings.reading_request_rate_limit_window_seconds = 60
    rate_limiter.reset()
    try:
        payload = {"reader_id": reader.user_id, "reading_type": "chat"}
        first = client.post("/readings/request", headers=headers, json=payload)
        second = client.post("/readings/request", headers=headers, json=payload)
        third = client.post("/readings/request", headers=headers, json=payload)

        assert first.status_code == 201
        assert second.status_code == 201
        assert third.status_code == 429
        assert third.json()["error"]["code"] == "http_429"
        assert third.headers.get("Retry-After")
    finally:
        settings.reading_request_max_attempts = original_limit
        settings.reading_request_rate_limit_window_seconds = original_window
        rate_limiter.reset()


def test_rate_limit_is_per_client(client, make_reader, make_user, auth_headers):
    reader = make_reader()
    original_limit = settings.reading_request_max_attempts
    settings.reading_request_max_attempts = 1
    rate_limiter.reset()
    try:
        payload = {"reader_id": reader.user_id, "reading_type": "chat"}
        assert client.post("/readings/request", headers=auth_headers(make_user()), json=payload).status_code == 201
        assert client.post("/readings/request", headers=auth_headers(make_user()), json=payload).status_code == 201
    finally:
        settings.reading_request_max_attempts = original_limit
        rate_limiter.reset()


class _UnreachableRedis(RateLimiter):
    def allow(self, key: str, limit: int, window_seconds: int) -> tuple[bool, int]:
        raise redis.ConnectionError("connection refused")

    def reset(self) -> None:
        raise redis.ConnectionError("connection refused")


def test_redis_outage_degrades_to_memory_limiter():
    limiter = FallbackRateLimiter(primary=_UnreachableRedis(), fallback=InMemoryRateLimiter())

    assert limiter.allow("reading_request:1", limit=1, window_seconds=60) == (True, 0)
    allowed, retry_after = limiter.allow("reading_request:1", limit=1, window_seconds=60)
    assert allowed is False
    assert retry_after >= 1
    limiter.reset()
    assert limiter.allow("reading_request:1", limit=1, window_seconds=60) == (True, 0)
