"""Payment authorization client.

Bookings with a non-zero price are authorized against the payment gateway
before they are written. Authorization is a write on the gateway side, so a
timeout is reported as an unknown outcome and never retried here.
"""

import logging
from dataclasses import dataclass
from decimal import Decimal
from typing import Protocol

import httpx

from app.core.config import settings
from app.core.exceptions import NetworkError, PaymentDeclinedError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AuthorizationResult:
    approved: bool
    payment_intent_id: str | None = None
    reason: str | None = None


class PaymentAuthorizer(Protocol):
    def authorize(self, amount: Decimal, reference: str) -> AuthorizationResult: ...


class HttpPaymentAuthorizer:
    def __init__(
        self,
        url: str,
        timeout: float,
        api_key: str | None = None,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        self.url = url
        self.timeout = timeout
        self.api_key = api_key
        self.transport = transport

    def authorize(self, amount: Decimal, reference: str) -> AuthorizationResult:
        headers = {"Content-Type": "application/json"}
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"

        try:
            with httpx.Client(timeout=self.timeout, transport=self.transport) as client:
                response = client.post(
                    self.url,
                    headers=headers,
                    json={"amount": str(amount), "currency": "usd", "reference": reference},
                )
        except httpx.TimeoutException as exc:
            logger.error("payment_authorize_timeout reference=%s", reference)
            raise NetworkError(
                "Payment authorization timed out; outcome unknown, re-check the booking before retrying",
            ) from exc
        except httpx.TransportError as exc:
            logger.error("payment_authorize_transport_error reference=%s error=%s", reference, exc)
            raise NetworkError("Payment gateway is unreachable") from exc

        if response.status_code in (402, 403, 422):
            body = _safe_json(response)
            return AuthorizationResult(approved=False, reason=body.get("reason") or body.get("message"))
        if response.is_error:
            logger.error("payment_authorize_failed reference=%s status=%s", reference, response.status_code)
            raise NetworkError(f"Payment gateway responded with {response.status_code}")

        body = _safe_json(response)
        return AuthorizationResult(
            approved=bool(body.get("approved", True)),
            payment_intent_id=body.get("payment_intent_id") or body.get("id"),
            reason=body.get("reason"),
        )


class NoopPaymentAuthorizer:
    """Approves everything; used when no gateway is configured."""

    def authorize(self, amount: Decimal, reference: str) -> AuthorizationResult:
        return AuthorizationResult(approved=True)


def _safe_json(response: httpx.Response) -> dict:
    try:
        body = response.json()
    except ValueError:
        return {}
    return body if isinstance(body, dict) else {}


def get_payment_authorizer() -> PaymentAuthorizer:
    if not settings.payment_authorize_url:
        return NoopPaymentAuthorizer()
    return HttpPaymentAuthorizer(
        url=settings.payment_authorize_url,
        timeout=settings.payment_timeout_seconds,
        api_key=settings.payment_api_key,
    )


def authorize_or_raise(authorizer: PaymentAuthorizer, amount: Decimal, reference: str) -> str | None:
    """Authorize ``amount`` and return the payment intent id; free bookings skip the gateway."""
    if amount <= 0:
        return None
    result = authorizer.authorize(amount, reference)
    if not result.approved:
        raise PaymentDeclinedError(result.reason or "Payment authorization was declined")
    return result.payment_intent_id
