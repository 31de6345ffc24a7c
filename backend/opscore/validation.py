from __future__ import annotations

from datetime import date
from decimal import Decimal, InvalidOperation
from typing import Any, Iterable

from opscore.time_utils import parse_iso_date


# Largest monetary amount accepted from clients: 9,999,999.99
MAX_AMOUNT = Decimal("9999999.99")


class ValidationError(ValueError):
    """400-level input problem."""


def require_object(payload: Any) -> dict:
    if payload is None:
        payload = {}
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")
    return payload


def parse_int(value: Any, field: str) -> int:
    """
    Strict integer coercion for ids and counters.

    Rejects booleans, floats, decimals and scientific notation.
    """
    if isinstance(value, int) and not isinstance(value, bool):
        return value
    if isinstance(value, str):
        stripped = value.strip()
        if not stripped:
            raise ValidationError(f"{field} must be an integer")
        if "e" in stripped.lower():
            raise ValidationError(f"{field} must be a plain integer (scientific notation not allowed)")
        if "." in stripped:
            raise ValidationError(f"{field} must be an integer (no decimals)")
        try:
            return int(stripped)
        except ValueError:
            raise ValidationError(f"{field} must be an integer")
    if isinstance(value, float):
        raise ValidationError(f"{field} must be an integer, not a decimal")
    raise ValidationError(f"{field} must be an integer")


def parse_decimal(
    value: Any,
    field: str,
    *,
    min_value: Decimal | None = None,
    max_value: Decimal | None = None,
    max_places: int | None = None,
) -> Decimal:
    """
    Coerce a JSON number or numeric string into a Decimal.

    Floats go through str() so 0.1 stays 0.1 rather than its binary expansion.
    max_places rejects values with more significant decimals than the column
    stores (7.50 passes at 2 places, 7.125 does not).
    """
    if isinstance(value, bool) or value is None:
        raise ValidationError(f"{field} must be a number")
    if isinstance(value, Decimal):
        result = value
    elif isinstance(value, (int, float)):
        result = Decimal(str(value))
    elif isinstance(value, str):
        try:
            result = Decimal(value.strip())
        except InvalidOperation:
            raise ValidationError(f"{field} must be a number")
    else:
        raise ValidationError(f"{field} must be a number")

    if not result.is_finite():
        raise ValidationError(f"{field} must be a finite number")
    if min_value is not None and result < min_value:
        raise ValidationError(f"{field} must be >= {min_value}")
    if max_value is not None and result > max_value:
        raise ValidationError(f"{field} must be <= {max_value}")
    if max_places is not None and result != result.quantize(Decimal(1).scaleb(-max_places)):
        raise ValidationError(f"{field} must have at most {max_places} decimal places")
    return result


def parse_choice(value: Any, field: str, choices: Iterable[str]) -> str:
    allowed = tuple(choices)
    if not isinstance(value, str) or value not in allowed:
        raise ValidationError(f"Invalid {field} '{value}'. Must be one of: {', '.join(allowed)}")
    return value


def parse_text(value: Any, field: str, *, max_length: int, required: bool = False) -> str | None:
    if value is None:
        if required:
            raise ValidationError(f"{field} is required")
        return None
    if not isinstance(value, str):
        raise ValidationError(f"{field} must be a string")
    text = value.strip()
    if not text:
        if required:
            raise ValidationError(f"{field} cannot be blank")
        return None
    if len(text) > max_length:
        raise ValidationError(f"{field} exceeds max length {max_length}")
    return text


def parse_date(value: Any, field: str) -> date | None:
    if value is None:
        return None
    if not isinstance(value, str):
        raise ValidationError(f"{field} must be a YYYY-MM-DD string")
    try:
        return parse_iso_date(value)
    except ValueError:
        raise ValidationError(f"{field} must be a YYYY-MM-DD date")


def parse_pagination(args, *, default_limit: int, max_limit: int) -> tuple[int, int]:
    """
    Read limit/offset from query args; out-of-range values are clamped, garbage is ignored.
    """
    try:
        limit = int(args.get("limit", default_limit))
    except (TypeError, ValueError):
        limit = default_limit
    try:
        offset = int(args.get("offset", 0))
    except (TypeError, ValueError):
        offset = 0
    limit = max(1, min(limit, max_limit))
    offset = max(0, offset)
    return limit, offset
