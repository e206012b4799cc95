"""
Unit tests for decimal and quantity parsing.
"""

from decimal import Decimal

import pytest
from stockledger.core.numbers import (
    format_amount,
    normalize_decimal_text,
    parse_decimal,
    parse_non_negative_int,
    parse_positive_int,
    to_cents,
)


class TestNormalizeDecimalText:
    @pytest.mark.parametrize(
        ("raw", "expected"),
        [
            ("12,5", "12.5"),
            ("1,234.50", "1234.50"),
            ("1.234,50", "1234.50"),
            ("1.234.567,8", "1234567.8"),
            (" 40.00 ", "40.00"),
            ("1 000", "1000"),
        ],
    )
    def test_normalization(self, raw: str, expected: str) -> None:
        assert normalize_decimal_text(raw) == expected


class TestParseDecimal:
    def test_server_string(self) -> None:
        assert parse_decimal("1250.50") == Decimal("1250.50")

    def test_decimal_comma(self) -> None:
        assert parse_decimal("15,75") == Decimal("15.75")

    def test_last_separator_is_the_decimal_one(self) -> None:
        assert parse_decimal("1.234,50") == Decimal("1234.50")
        assert parse_decimal("1,234.50") == Decimal("1234.50")

    def test_float_goes_through_str(self) -> None:
        assert parse_decimal(0.1) == Decimal("0.1")

    @pytest.mark.parametrize("value", [None, "", "   ", "abc", True, "NaN", "Infinity", [1]])
    def test_unparseable_returns_none(self, value: object) -> None:
        assert parse_decimal(value) is None


class TestParseInts:
    @pytest.mark.parametrize(("value", "expected"), [(5, 5), ("5", 5), ("7.0", 7), (Decimal("3"), 3)])
    def test_positive_accepted(self, value: object, expected: int) -> None:
        assert parse_positive_int(value) == expected

    @pytest.mark.parametrize("value", [0, -1, "2.5", "x", None, True, ""])
    def test_positive_rejected(self, value: object) -> None:
        assert parse_positive_int(value) is None

    def test_non_negative_accepts_zero(self) -> None:
        assert parse_non_negative_int("0") == 0
        assert parse_non_negative_int(-3) is None


class TestFormatAmount:
    def test_two_decimals(self) -> None:
        assert format_amount(Decimal("40")) == "40.00"
        assert format_amount(Decimal("15.5")) == "15.50"

    def test_half_up(self) -> None:
        assert format_amount(Decimal("0.005")) == "0.01"

    def test_to_cents(self) -> None:
        assert to_cents(Decimal("0.004")) == Decimal("0.00")
        assert to_cents(Decimal("7.745")) == Decimal("7.75")
