from decimal import Decimal

import httpx
import pytest

from app.core.exceptions import NetworkError, PaymentDeclinedError
from app.services.payment_service import (
    HttpPaymentAuthorizer,
    NoopPaymentAuthorizer,
    authorize_or_raise,
    get_payment_authorizer,
)

GATEWAY_URL = "https://payments.example.com/authorize"


def _authorizer(handler) -> HttpPaymentAuthorizer:
    return HttpPaymentAuthorizer(
        url=GATEWAY_URL,
        timeout=1.0,
        api_key="sk_test",
        transport=httpx.MockTransport(handler),
    )


def test_approved_authorization_returns_intent_id():
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["auth"] = request.headers.get("Authorization")
        seen["body"] = request.content
        return httpx.Response(200, json={"approved": True, "payment_intent_id": "pi_123"})

    intent_id = authorize_or_raise(_authorizer(handler), Decimal("45.00"), "reading:1:2030-01-07T09:00")

    assert intent_id == "pi_123"
    assert seen["auth"] == "Bearer sk_test"
    assert b'"amount":"45.00"' in seen["body"].replace(b" ", b"")


def test_declined_authorization_raises():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(402, json={"reason": "insufficient_funds"})

    with pytest.raises(PaymentDeclinedError) as exc_info:
        authorize_or_raise(_authorizer(handler), Decimal("10.00"), "ref")
    assert exc_info.value.message == "insufficient_funds"


def test_gateway_failures_are_network_errors():
    def server_error(request: httpx.Request) -> httpx.Response:
        return httpx.Response(502)

    def timeout(request: httpx.Request) -> httpx.Response:
        raise httpx.ReadTimeout("timed out", request=request)

    def unreachable(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("refused", request=request)

    for handler in (server_error, timeout, unreachable):
        with pytest.raises(NetworkError):
            authorize_or_raise(_authorizer(handler), Decimal("10.00"), "ref")


def test_timeout_reports_unknown_outcome():
    def timeout(request: httpx.Request) -> httpx.Response:
        raise httpx.ReadTimeout("timed out", request=request)

    with pytest.raises(NetworkError, match="outcome unknown"):
        _authorizer(timeout).authorize(Decimal("10.00"), "ref")


def test_zero_amount_never_reaches_gateway():
    def handler(request: httpx.Request) -> httpx.Response:
        raise AssertionError("gateway should not be called")

    assert authorize_or_raise(_authorizer(handler), Decimal("0.00"), "ref") is None


def test_without_gateway_url_everything_is_approved():
    authorizer = get_payment_authorizer()
    assert isinstance(authorizer, NoopPaymentAuthorizer)
    assert authorizer.authorize(Decimal("1.00"), "ref").approved is True
