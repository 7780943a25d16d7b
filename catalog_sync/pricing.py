"""Price parsing for German-formatted shop prices ("1.939,50 €")."""

import math
import re
from typing import Optional, Tuple, Union

__all__ = [
    "parse_price",
    "discount_percent",
    "normalize_prices",
]

_STRIP_RE = re.compile(r"[€$£¥₽\s ]")
# Leading number only: "1.939,50" -> ok, "ab 1.939" -> no match
_NUMBER_RE = re.compile(r"^-?\d[\d.]*(?:,\d*)?")

PriceInput = Union[str, int, float, None]


def parse_price(raw: PriceInput) -> Optional[float]:
    """Parse a locale-formatted price into a float.

    A comma is the decimal separator and dots before it are thousands
    separators; without a comma every dot is a thousands separator.

    Examples:
        "1.939,50 €" -> 1939.5
        "1.939 €"    -> 1939.0
        "garbage"    -> None
    """
    if raw is None or isinstance(raw, bool):
        return None
    if isinstance(raw, (int, float)):
        return None if math.isnan(raw) else float(raw)
    if not isinstance(raw, str):
        return None

    cleaned = _STRIP_RE.sub("", raw)
    match = _NUMBER_RE.match(cleaned)
    if not match:
        return None

    number = match.group(0)
    if "," in number:
        whole, decimals = number.split(",", 1)
        number = f"{whole.replace('.', '')}.{decimals or '0'}"
    else:
        number = number.replace(".", "")

    try:
        return float(number)
    except ValueError:
        return None


def discount_percent(original: Optional[float], current: Optional[float]) -> int:
    """Whole-number discount of ``current`` against ``original``.

    Returns 0 unless ``original > current > 0``. Rounds half up.
    """
    if original is None or current is None:
        return 0
    if not (original > current > 0):
        return 0
    return int(math.floor((1 - current / original) * 100 + 0.5))


def normalize_prices(
    current_raw: PriceInput, original_raw: PriceInput
) -> Tuple[Optional[float], Optional[float], int]:
    """Parse both raw prices and derive the discount.

    Returns:
        (current_base_price, original_base_price, discount_percent)
    """
    current = parse_price(current_raw)
    original = parse_price(original_raw)
    return current, original, discount_percent(original, current)
