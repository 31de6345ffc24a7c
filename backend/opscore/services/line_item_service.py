# Overview: Service-layer line-item arithmetic; parses line inputs and computes line totals.

"""
Line-Item Calculator

    subtotal       = quantity * unit_price
    after_discount = subtotal - discount
    tax            = after_discount * (tax_rate / 100)
    line_total     = round2(after_discount + tax)

Rounding happens once, at the end. A discount larger than the subtotal yields a
negative line; whether that is accepted is the caller's policy
(see NEGATIVE_LINE_POLICY), not this module's.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal

from opscore.money import round_currency
from opscore.validation import (
    MAX_AMOUNT,
    ValidationError,
    parse_choice,
    parse_decimal,
    parse_text,
    require_object,
)


ITEM_TYPES = ("product", "service", "fee", "discount", "tax", "custom")

POLICY_REJECT = "reject"
POLICY_ALLOW_CREDIT = "allow_credit"
NEGATIVE_LINE_POLICIES = (POLICY_REJECT, POLICY_ALLOW_CREDIT)

MAX_QUANTITY = Decimal("999999999.999")

# Decimal places kept for each input; matches the invoice_items columns
QUANTITY_PLACES = 3
PRICE_PLACES = 4
RATE_PLACES = 2

# Largest quantity * unit_price on one line
MAX_LINE_SUBTOTAL = Decimal("99999999999.99")


@dataclass(frozen=True)
class LineItemInput:
    description: str
    quantity: Decimal
    unit_price: Decimal
    discount: Decimal = Decimal("0")
    tax_rate: Decimal = Decimal("0")
    item_type: str = "custom"
    item_id: str | None = None

    @property
    def subtotal(self) -> Decimal:
        return self.quantity * self.unit_price

    @property
    def after_discount(self) -> Decimal:
        return self.subtotal - self.discount

    @property
    def tax(self) -> Decimal:
        """Unrounded line tax on the discounted amount."""
        return self.after_discount * (self.tax_rate / Decimal("100"))

    @classmethod
    def from_dict(cls, payload, *, index: int = 0) -> "LineItemInput":
        """
        Parse one line of a create-invoice request.

        Defaults: quantity 1, discount 0, tax_rate 0, item_type "custom".
        Values keep their input precision; rounding to currency happens only
        in the computed totals.
        """
        prefix = f"items[{index}]"
        payload = require_object(payload)

        description = parse_text(payload.get("description"), f"{prefix}.description", max_length=255, required=True)

        raw_qty = payload.get("quantity")
        quantity = Decimal("1") if raw_qty is None else parse_decimal(
            raw_qty, f"{prefix}.quantity", min_value=Decimal("0"), max_value=MAX_QUANTITY,
            max_places=QUANTITY_PLACES,
        )

        if payload.get("unit_price") is None:
            raise ValidationError(f"{prefix}.unit_price is required")
        unit_price = parse_decimal(
            payload["unit_price"], f"{prefix}.unit_price", min_value=Decimal("0"), max_value=MAX_AMOUNT,
            max_places=PRICE_PLACES,
        )

        raw_discount = payload.get("discount")
        discount = Decimal("0") if raw_discount is None else parse_decimal(
            raw_discount, f"{prefix}.discount", min_value=Decimal("0"), max_value=MAX_AMOUNT,
            max_places=PRICE_PLACES,
        )

        raw_rate = payload.get("tax_rate")
        tax_rate = Decimal("0") if raw_rate is None else parse_decimal(
            raw_rate, f"{prefix}.tax_rate", min_value=Decimal("0"), max_value=Decimal("100"),
            max_places=RATE_PLACES,
        )

        if quantity * unit_price > MAX_LINE_SUBTOTAL:
            raise ValidationError(f"{prefix}: quantity * unit_price must be <= {MAX_LINE_SUBTOTAL}")

        raw_type = payload.get("item_type")
        item_type = "custom" if raw_type is None else parse_choice(raw_type, f"{prefix}.item_type", ITEM_TYPES)

        item_id = parse_text(payload.get("item_id"), f"{prefix}.item_id", max_length=64)

        return cls(
            description=description,
            quantity=quantity,
            unit_price=unit_price,
            discount=discount,
            tax_rate=tax_rate,
            item_type=item_type,
            item_id=item_id,
        )


def calculate_line_total(item: LineItemInput) -> Decimal:
    """Line total rounded to currency precision."""
    return round_currency(item.after_discount + item.tax)


def is_negative_line(item: LineItemInput) -> bool:
    return item.after_discount < 0


def validate_policy(policy: str) -> str:
    if policy not in NEGATIVE_LINE_POLICIES:
        raise ValueError(
            f"Invalid negative line policy '{policy}'. Must be one of: {', '.join(NEGATIVE_LINE_POLICIES)}"
        )
    return policy
