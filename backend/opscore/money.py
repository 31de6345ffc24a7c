from __future__ import annotations

from decimal import Decimal, ROUND_HALF_UP

CENT = Decimal("0.01")
HUNDRED = Decimal("100")


def round_currency(value: Decimal) -> Decimal:
    """Round to currency precision (2 places, half away from zero)."""
    return Decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)


def to_cents(value: Decimal) -> int:
    """Currency amount -> integer cents, rounding to currency precision first."""
    return int(round_currency(value) * HUNDRED)


def from_cents(cents: int | None) -> Decimal:
    if cents is None:
        return Decimal("0.00")
    return (Decimal(cents) / HUNDRED).quantize(CENT)


def rate_to_bps(rate_percent: Decimal) -> int:
    """Percentage (e.g. 7.5) -> basis points (750)."""
    return int((Decimal(rate_percent) * HUNDRED).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def plain_decimal(value: Decimal) -> Decimal:
    """Drop trailing zeros without switching to exponent form (10.000 -> 10, 7.50 -> 7.5)."""
    value = Decimal(value)
    if value == value.to_integral_value():
        return value.quantize(Decimal("1"))
    return value.normalize()


def bps_to_rate(bps: int | None) -> Decimal:
    if not bps:
        return Decimal("0")
    return plain_decimal(Decimal(bps) / HUNDRED)


def format_amount(cents: int | None) -> str:
    """JSON representation of a stored amount, e.g. 22000 -> "220.00"."""
    return str(from_cents(cents))


def format_price(value: Decimal | None) -> str:
    """
    JSON representation of a stored unit price or discount.

    At least two decimals, more only when the input carried them
    (100 -> "100.00", 0.333 -> "0.333").
    """
    if value is None:
        return "0.00"
    value = Decimal(value)
    if value == value.quantize(CENT):
        return str(value.quantize(CENT))
    return str(value.normalize())
