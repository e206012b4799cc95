"""
Parsing of quantities and money amounts.

The backend sends every decimal as a string (``"1250.50"``) and users type
amounts with either a decimal comma or a thousands separator. Arithmetic is
always done on ``Decimal`` values produced here.
"""

from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Any

CENTS = Decimal("0.01")


def normalize_decimal_text(raw: str) -> str:
    """
    Normalize a locale-formatted decimal string.

    When both separators appear, the last one is the decimal separator.

    ``"1,234.50"`` -> ``"1234.50"``
    ``"1.234,50"`` -> ``"1234.50"``
    ``"12,5"`` -> ``"12.5"`` (decimal comma)
    """
    text = raw.strip().replace(" ", "")
    if "," in text and "." in text:
        if text.rfind(",") > text.rfind("."):
            return text.replace(".", "").replace(",", ".")
        return text.replace(",", "")
    return text.replace(",", ".")


def parse_decimal(value: Any) -> Decimal | None:
    """
    Parse a server or user supplied decimal.

    Returns None for empty, non-numeric or non-finite input instead of raising,
    so callers can turn it into a field error.
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, Decimal):
        result = value
    elif isinstance(value, int):
        result = Decimal(value)
    elif isinstance(value, float):
        result = Decimal(str(value))
    elif isinstance(value, str):
        text = normalize_decimal_text(value)
        if not text:
            return None
        try:
            result = Decimal(text)
        except InvalidOperation:
            return None
    else:
        return None

    if not result.is_finite():
        return None
    return result


def parse_positive_int(value: Any) -> int | None:
    """
    Parse a strictly positive whole quantity.

    Integer-valued strings (``"5"``) and integral decimals are accepted;
    fractions, zero, negatives and booleans are not.
    """
    number = parse_non_negative_int(value)
    if number is None or number == 0:
        return None
    return number


def parse_non_negative_int(value: Any) -> int | None:
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value if value >= 0 else None
    number = parse_decimal(value)
    if number is None or number != number.to_integral_value() or number < 0:
        return None
    return int(number)


def to_cents(amount: Decimal) -> Decimal:
    """Round a money amount to the cents the backend stores."""
    return amount.quantize(CENTS, rounding=ROUND_HALF_UP)


def format_amount(amount: Decimal) -> str:
    """Serialize a money amount the way the backend expects it (two decimals, dot)."""
    return str(to_cents(amount))
