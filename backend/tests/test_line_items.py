# Overview: Pytest coverage for line-item parsing and arithmetic.

from decimal import Decimal

import pytest

from opscore.money import bps_to_rate, format_amount, format_price, plain_decimal, rate_to_bps, to_cents
from opscore.services.line_item_service import (
    LineItemInput,
    calculate_line_total,
    is_negative_line,
    validate_policy,
)
from opscore.validation import ValidationError, parse_decimal


def item(**kwargs) -> LineItemInput:
    fields = {"description": "Line", "quantity": Decimal("1"), "unit_price": Decimal("0")}
    fields.update(kwargs)
    return LineItemInput(**fields)


class TestLineTotal:
    def test_quantity_times_price_plus_tax(self):
        line = item(quantity=Decimal("2"), unit_price=Decimal("100"), tax_rate=Decimal("10"))
        assert calculate_line_total(line) == Decimal("220.00")

    def test_discount_applied_before_tax(self):
        line = item(quantity=Decimal("1"), unit_price=Decimal("100"), discount=Decimal("20"), tax_rate=Decimal("10"))
        assert line.after_discount == Decimal("80")
        assert calculate_line_total(line) == Decimal("88.00")

    def test_rounding_happens_once_at_the_end(self):
        # 3 x 0.333 = 0.999; tax 7.5% = 0.0749250; total 1.0739250 -> 1.07
        line = item(quantity=Decimal("3"), unit_price=Decimal("0.333"), tax_rate=Decimal("7.5"))
        assert calculate_line_total(line) == Decimal("1.07")

    def test_half_up_rounding(self):
        line = item(quantity=Decimal("1"), unit_price=Decimal("0.125"))
        assert calculate_line_total(line) == Decimal("0.13")

    def test_fractional_quantity(self):
        line = item(quantity=Decimal("1.5"), unit_price=Decimal("12.00"))
        assert calculate_line_total(line) == Decimal("18.00")

    def test_negative_line_is_computed_not_rejected(self):
        line = item(quantity=Decimal("1"), unit_price=Decimal("10"), discount=Decimal("15"), tax_rate=Decimal("10"))
        assert is_negative_line(line)
        assert line.tax == Decimal("-0.5")
        assert calculate_line_total(line) == Decimal("-5.50")


class TestFromDict:
    def test_defaults(self):
        line = LineItemInput.from_dict({"description": "Service call", "unit_price": "45.5"})
        assert line.quantity == Decimal("1")
        assert line.unit_price == Decimal("45.50")
        assert line.discount == Decimal("0.00")
        assert line.tax_rate == Decimal("0.00")
        assert line.item_type == "custom"
        assert line.item_id is None

    def test_float_input_keeps_decimal_meaning(self):
        line = LineItemInput.from_dict({"description": "x", "unit_price": 0.1, "quantity": 3})
        assert line.subtotal == Decimal("0.30")

    def test_sub_cent_price_keeps_input_precision(self):
        line = LineItemInput.from_dict({"description": "x", "quantity": 3, "unit_price": "0.333", "tax_rate": 7.5})
        assert line.unit_price == Decimal("0.333")
        assert line.subtotal == Decimal("0.999")
        assert calculate_line_total(line) == Decimal("1.07")

    def test_trailing_zeros_within_places_accepted(self):
        line = LineItemInput.from_dict({"description": "x", "unit_price": "1.2500", "tax_rate": "7.50"})
        assert line.unit_price == Decimal("1.25")
        assert line.tax_rate == Decimal("7.5")

    def test_line_subtotal_capped(self):
        with pytest.raises(ValidationError, match=r"items\[0\]: quantity \* unit_price"):
            LineItemInput.from_dict({"description": "x", "quantity": 999999999, "unit_price": 9999999})

    def test_description_required(self):
        with pytest.raises(ValidationError, match=r"items\[2\]\.description"):
            LineItemInput.from_dict({"unit_price": 1}, index=2)

    def test_unit_price_required(self):
        with pytest.raises(ValidationError, match="unit_price is required"):
            LineItemInput.from_dict({"description": "x"})

    @pytest.mark.parametrize("field,value", [
        ("quantity", -1),
        ("unit_price", -0.01),
        ("discount", -5),
        ("tax_rate", 100.5),
        ("tax_rate", -1),
        ("unit_price", "abc"),
        ("unit_price", True),
        ("unit_price", "NaN"),
        ("quantity", "1.0005"),
        ("unit_price", "0.00001"),
        ("discount", "0.12345"),
        ("tax_rate", "7.125"),
    ])
    def test_out_of_range_rejected(self, field, value):
        payload = {"description": "x", "unit_price": 10}
        payload[field] = value
        with pytest.raises(ValidationError):
            LineItemInput.from_dict(payload)

    def test_item_type_must_be_known(self):
        with pytest.raises(ValidationError, match="item_type"):
            LineItemInput.from_dict({"description": "x", "unit_price": 1, "item_type": "gift"})

    def test_payload_must_be_object(self):
        with pytest.raises(ValidationError):
            LineItemInput.from_dict(["x", 1])


class TestPolicy:
    def test_known_policies(self):
        assert validate_policy("reject") == "reject"
        assert validate_policy("allow_credit") == "allow_credit"

    def test_unknown_policy(self):
        with pytest.raises(ValueError):
            validate_policy("ignore")


class TestMoneyHelpers:
    def test_cents_round_trip_formatting(self):
        assert to_cents(Decimal("220")) == 22000
        assert to_cents(Decimal("0.005")) == 1
        assert format_amount(22000) == "220.00"
        assert format_amount(None) == "0.00"

    def test_rates(self):
        assert rate_to_bps(Decimal("7.5")) == 750
        assert bps_to_rate(750) == Decimal("7.5")
        assert str(bps_to_rate(1000)) == "10"
        assert bps_to_rate(0) == Decimal("0")

    def test_price_formatting(self):
        assert format_price(Decimal("100.0000")) == "100.00"
        assert format_price(Decimal("0.3330")) == "0.333"
        assert format_price(None) == "0.00"

    def test_parse_decimal_max_places(self):
        assert parse_decimal("7.50", "rate", max_places=2) == Decimal("7.5")
        with pytest.raises(ValidationError, match="at most 2 decimal places"):
            parse_decimal("7.125", "rate", max_places=2)

    def test_plain_decimal_avoids_exponent(self):
        assert str(plain_decimal(Decimal("10.000"))) == "10"
        assert str(plain_decimal(Decimal("2.500"))) == "2.5"
