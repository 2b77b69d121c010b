from __future__ import annotations

from decimal import Decimal

from booking_engine.core.money import apply_rate, format_amount, from_minor, mean, round_minor, to_minor


def test_to_minor_avoids_binary_float_drift():
    assert to_minor(0.1 + 0.2) == 30
    assert to_minor(35.005) == 3501
    assert to_minor("3500", exponent=0) == 3500


def test_round_minor_is_half_up():
    assert round_minor(Decimal("2.5")) == 3
    assert round_minor(Decimal("3.5")) == 4
    assert round_minor(Decimal("-0.4")) == 0


def test_mean_and_apply_rate():
    assert mean([]) == Decimal(0)
    assert mean([3500, 3500, 3800]) == Decimal("3600")
    assert apply_rate(7000, Decimal("0.18")) == 1260
    assert apply_rate(6300, "0.18") == 1134


def test_format_amount_at_display_boundary():
    assert from_minor(826000) == Decimal("8260.00")
    assert format_amount(826000, "INR") == "INR 8,260.00"
    assert format_amount(500, "JPY", exponent=0) == "JPY 500"
