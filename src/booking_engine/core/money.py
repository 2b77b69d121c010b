"""Integer minor-unit money helpers.

Amounts travel through the engine as ``int`` minor units (cents, paise).
Averages and percentages are carried as :class:`~decimal.Decimal` and rounded
half-up once, when a quote component is produced.
"""
from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal
from typing import Iterable, Union

Number = Union[int, str, Decimal]


def to_decimal(value: Number | float) -> Decimal:
    if isinstance(value, Decimal):
        return value
    if isinstance(value, float):
        # str() keeps the shortest repr so 0.1 stays 0.1 instead of its binary expansion.
        return Decimal(str(value))
    return Decimal(value)


def round_minor(value: Decimal) -> int:
    """Quantise a fractional minor-unit amount to an int, half-up."""
    return int(value.quantize(Decimal(1), rounding=ROUND_HALF_UP))


def to_minor(amount: Number | float, exponent: int = 2) -> int:
    """Convert a major-unit amount (``35.00``) to minor units (``3500``)."""
    return round_minor(to_decimal(amount).scaleb(exponent))


def from_minor(minor: int, exponent: int = 2) -> Decimal:
    return Decimal(minor).scaleb(-exponent)


def mean(values: Iterable[int | Decimal]) -> Decimal:
    items = [to_decimal(value) for value in values]
    if not items:
        return Decimal(0)
    return sum(items, Decimal(0)) / len(items)


def apply_rate(amount: int | Decimal, rate: Number | float) -> int:
    """Return ``amount * rate`` rounded to minor units."""
    return round_minor(to_decimal(amount) * to_decimal(rate))


def format_amount(minor: int, currency: str, exponent: int = 2) -> str:
    major = from_minor(minor, exponent)
    return f"{currency} {major:,.{exponent}f}"


__all__ = [
    "apply_rate",
    "format_amount",
    "from_minor",
    "mean",
    "round_minor",
    "to_decimal",
    "to_minor",
]
