"""Numeric helpers shared by the analytics engines."""

import math


def clamp(value: float, lower: float, upper: float) -> float:
    """Clamp ``value`` into ``[lower, upper]``; NaN maps to ``lower``."""
    if math.isnan(value):
        return lower
    return min(max(value, lower), upper)


def safe_divide(numerator: float, denominator: float) -> float:
    """Divide, returning +inf when the denominator is zero."""
    if denominator == 0:
        return math.inf
    return numerator / denominator


def round_half_up(value: float) -> float:
    """Round to the nearest integer, halves away from negative infinity.

    Non-finite values pass through unchanged.
    """
    if not math.isfinite(value):
        return value
    return float(math.floor(value + 0.5))


def round_to(value: float, digits: int = 2) -> float:
    factor = 10 ** digits
    return round_half_up(value * factor) / factor
