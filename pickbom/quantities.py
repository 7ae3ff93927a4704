"""Numeric parsing for BOM cells written by hand in mixed locales."""

import math
import re
from typing import Any, Optional

_NON_NUMERIC = re.compile(r"[^\d.,\-+]")
_DECIMAL_COMMA = re.compile(r"^[+-]?\d*,\d{1,3}$")
_LEADING_DIGITS = re.compile(r"^(\d+)(?:\.0*)?$")


def parse_quantity(value: Any, default: Optional[float]) -> Optional[float]:
    """Parse a quantity cell, tolerating European formatting.

    Args:
        value: Raw cell value (string, int, float or None)
        default: Returned when the cell is empty or unparsable

    Returns:
        The parsed number as a float

    Examples:
        parse_quantity("3", 1) -> 3.0
        parse_quantity("114,32", 1) -> 114.32
        parse_quantity("1.234,5", 1) -> 1234.5
        parse_quantity("1,234.5", 1) -> 1234.5
        parse_quantity("ea", 0) -> 0
    """
    if value is None:
        return default
    if isinstance(value, bool):
        return default
    if isinstance(value, (int, float)):
        if isinstance(value, float) and math.isnan(value):
            return default
        return float(value)

    cleaned = _NON_NUMERIC.sub("", str(value).strip())
    if not cleaned:
        return default

    if "." in cleaned and "," in cleaned:
        # Whichever separator comes last is the decimal point
        if cleaned.rfind(",") > cleaned.rfind("."):
            cleaned = cleaned.replace(".", "").replace(",", ".")
        else:
            cleaned = cleaned.replace(",", "")
    elif "," in cleaned:
        if _DECIMAL_COMMA.match(cleaned):
            cleaned = cleaned.replace(",", ".")
        else:
            cleaned = cleaned.replace(",", "")

    try:
        number = float(cleaned)
    except ValueError:
        return default

    if math.isnan(number) or math.isinf(number):
        return default
    return number


def parse_level(value: Any) -> Optional[int]:
    """Parse a hierarchy depth cell.

    Returns the non-negative integer depth, or None when the cell is not a
    depth (blank, text, negative).
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value if value >= 0 else None
    if isinstance(value, float):
        if math.isnan(value) or value < 0 or not value.is_integer():
            return None
        return int(value)

    match = _LEADING_DIGITS.match(str(value).strip())
    if not match:
        return None
    return int(match.group(1))


def round_pick_quantity(effective_qty: float) -> int:
    """Round an effective quantity up to a whole pick, never below one."""
    return max(1, int(math.ceil(effective_qty)))


def format_quantity(value: float) -> str:
    """Render a quantity without a trailing ``.0`` for whole numbers."""
    if float(value).is_integer():
        return str(int(value))
    return f"{value:g}"
