"""Package pricing, per-slot price and discount maths.

Amounts cross this module's boundary as ``Decimal`` with two places but are
always combined as integer cents so running totals never drift.
"""

from collections.abc import Iterable
from decimal import ROUND_HALF_UP, Decimal

from app.core.exceptions import InvalidPriceError
from app.db.models import ReaderProfile, ReadingPackage, ReadingType

CENT = Decimal("0.01")


def to_cents(amount: Decimal | int | str) -> int:
    value = Decimal(str(amount)).quantize(CENT, rounding=ROUND_HALF_UP)
    return int(value * 100)


def from_cents(cents: int) -> Decimal:
    return (Decimal(cents) / 100).quantize(CENT)


def discount_percent(original: Decimal | int | str, discounted: Decimal | int | str) -> int:
    original_cents = to_cents(original)
    if original_cents <= 0:
        raise InvalidPriceError("Original price must be greater than zero")

    ratio = Decimal((original_cents - to_cents(discounted)) * 100) / Decimal(original_cents)
    return int(ratio.quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def slot_price(rate_per_minute: Decimal, duration: int) -> Decimal:
    if duration <= 0:
        raise InvalidPriceError("Duration must be positive")
    rate_cents = to_cents(rate_per_minute)
    if rate_cents < 0:
        raise InvalidPriceError("Rate cannot be negative")
    return from_cents(rate_cents * duration)


def resolve_price(
    profile: ReaderProfile,
    reading_type: ReadingType,
    duration: int,
    package: ReadingPackage | None = None,
) -> Decimal:
    if package is not None:
        return from_cents(to_cents(package.price))
    return slot_price(profile.rate_for(reading_type), duration)


def sum_amounts(amounts: Iterable[Decimal]) -> Decimal:
    return from_cents(sum(to_cents(amount) for amount in amounts))
