"""
Decimal Utilities
rcj_scoring/scoring/utils.py

Precision-safe decimal math for scoring calculations.
"""

from decimal import Decimal, ROUND_HALF_UP
from typing import Iterable, Union

Number = Union[Decimal, int, float, str]

ZERO = Decimal("0")

# Stored section values are DECIMAL(10,5)
VALUE_QUANTUM = Decimal("0.00001")


def as_decimal(value: Number) -> Decimal:
    """Convert a stored or caller-supplied number to Decimal without rounding."""
    if isinstance(value, Decimal):
        return value
    if isinstance(value, float):
        return Decimal(str(value))
    return Decimal(value)


def to_storage(value: Number) -> Decimal:
    """Quantize a section value to the stored scale."""
    return as_decimal(value).quantize(VALUE_QUANTUM, rounding=ROUND_HALF_UP)


def to_display(value: Decimal, places: int = 2) -> float:
    """Round once, at the reporting boundary, and hand back a float."""
    quantum = Decimal(10) ** -places
    return float(value.quantize(quantum, rounding=ROUND_HALF_UP))


def mean(values: Iterable[Decimal]) -> Decimal:
    """
    Arithmetic mean of Decimals.

    Returns Decimal("0") for an empty input.
    """
    items = list(values)
    if not items:
        return ZERO
    return sum(items, ZERO) / Decimal(len(items))
