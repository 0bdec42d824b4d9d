"""Percentage and rounding helpers shared by every engine component."""

import math
from decimal import Decimal, ROUND_HALF_UP
from typing import Iterable, Optional, Tuple

from academic_engine import config
from academic_engine.errors import InvalidInput


def _quantize(value: Decimal, places: Optional[int]) -> float:
    if places is None:
        places = config.PERCENTAGE_DECIMALS
    quantum = Decimal(1).scaleb(-places)
    return float(value.quantize(quantum, rounding=ROUND_HALF_UP))


def round_percentage(value: Optional[float], places: Optional[int] = None) -> Optional[float]:
    """
    Round a percentage half away from zero.

    Args:
        value: Percentage to round, or None
        places: Decimal places (defaults to PERCENTAGE_DECIMALS)

    Returns:
        Rounded float, or None when value is None
    """
    if value is None:
        return None
    return _quantize(Decimal(str(value)), places)


def exact_percentage(part: float, whole: float) -> Optional[Decimal]:
    """Unrounded ``part / whole * 100`` as a Decimal; None when whole is zero."""
    if whole == 0:
        return None
    return Decimal(str(part)) * 100 / Decimal(str(whole))


def percentage_of(part: float, whole: float, places: Optional[int] = None) -> Optional[float]:
    """
    Compute ``part / whole * 100`` with the engine rounding policy.

    The division is done in Decimal so exact halves such as 23/80 (28.75)
    round up. A zero denominator yields None instead of raising.
    """
    value = exact_percentage(part, whole)
    if value is None:
        return None
    return _quantize(value, places)


def mean_percentage(pairs: Iterable[Tuple[float, float]], places: Optional[int] = None) -> Optional[float]:
    """
    Average of ``part / whole * 100`` over (part, whole) pairs, rounded once.

    Pairs with a zero whole are skipped. Returns None when nothing is left.
    """
    values = [v for v in (exact_percentage(part, whole) for part, whole in pairs) if v is not None]
    if not values:
        return None
    return _quantize(sum(values) / len(values), places)


def check_number(value, field: str, allow_negative: bool = False) -> float:
    """Return value as a float or raise InvalidInput."""
    if isinstance(value, bool):
        raise InvalidInput(f"{field} must be a number, got {value!r}", field, value)
    try:
        number = float(value)
    except (TypeError, ValueError):
        raise InvalidInput(f"{field} must be a number, got {value!r}", field, value)
    if math.isnan(number) or math.isinf(number):
        raise InvalidInput(f"{field} must be finite, got {value!r}", field, value)
    if number < 0 and not allow_negative:
        raise InvalidInput(f"{field} must not be negative, got {value!r}", field, value)
    return number
