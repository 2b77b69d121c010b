from __future__ import annotations

from datetime import date, timedelta
from decimal import Decimal

import pytest

from booking_engine.inventory.models import NightlyRate, Occupancy
from booking_engine.pricing.calculator import ChargeCalculator, extra_guests
from booking_engine.promos.evaluator import PromoEvaluator
from booking_engine.promos.models import PromoCode, PromoContext

CHECK_IN = date(2026, 12, 20)


def _rates(*amounts: int) -> tuple[NightlyRate, ...]:
    return tuple(NightlyRate(CHECK_IN + timedelta(days=offset), amount) for offset, amount in enumerate(amounts))


def _promo_result(promo: PromoCode, subtotal: int):
    context = PromoContext(subtotal=subtotal, nights=2, room_type="DLX", evaluated_on=CHECK_IN)
    return PromoEvaluator().evaluate(promo, context)


def test_two_nights_without_promo():
    quote = ChargeCalculator(Decimal("0.18")).compute(_rates(3500, 3500), Occupancy(adults=2), 2)

    assert quote.base_amount == 7000
    assert quote.extra_adult_charges == 0
    assert quote.extra_child_charges == 0
    assert quote.discount_amount == 0
    assert quote.tax_amount == 1260
    assert quote.total_amount == 8260
    assert quote.promo_applied is None


def test_percentage_promo_is_deducted_before_tax():
    calculator = ChargeCalculator(Decimal("0.18"))
    promo = PromoCode(code="SAVE10", type="percentage", value=Decimal(10))

    quote = calculator.compute(_rates(3500, 3500), Occupancy(), 2, _promo_result(promo, 7000))

    assert quote.discount_amount == 700
    assert quote.tax_amount == 1134
    assert quote.total_amount == 7434
    assert quote.promo_applied.code == "SAVE10"
    assert quote.promo_applied.amount == 700


def test_capped_percentage_promo():
    promo = PromoCode(code="SAVE10", type="percentage", value=Decimal(10), max_amount=500)

    quote = ChargeCalculator().compute(_rates(3500, 3500), Occupancy(), 2, _promo_result(promo, 7000))

    assert quote.discount_amount == 500
    assert quote.tax_amount == 1170
    assert quote.total_amount == 7670


def test_rejected_promo_result_is_ignored():
    promo = PromoCode(code="OLD", type="percentage", value=Decimal(10), is_active=False)

    quote = ChargeCalculator().compute(_rates(3500, 3500), Occupancy(), 2, _promo_result(promo, 7000))

    assert quote.discount_amount == 0
    assert quote.promo_applied is None


def test_extra_guests_are_charged_per_night_and_room():
    calculator = ChargeCalculator(Decimal(0))

    quote = calculator.compute(
        _rates(3500, 3500),
        Occupancy(adults=3, children=3, rooms=2),
        2,
        extra_adult_rate=Decimal(800),
        extra_child_rate=Decimal(400),
    )

    assert quote.base_amount == 14000
    assert quote.extra_adult_charges == 1 * 800 * 2 * 2
    assert quote.extra_child_charges == 1 * 400 * 2 * 2
    assert quote.total_amount == 14000 + 3200 + 1600


def test_children_are_counted_against_max_occupancy_on_their_own():
    assert extra_guests(Occupancy(adults=1, children=2), 2) == (0, 0)
    assert extra_guests(Occupancy(adults=2, children=2), 3) == (0, 0)
    assert extra_guests(Occupancy(adults=4, children=1), 3) == (1, 0)
    assert extra_guests(Occupancy(adults=1, children=4), 3) == (0, 1)


def test_children_within_max_occupancy_add_no_charge():
    quote = ChargeCalculator(Decimal(0)).compute(
        _rates(3500, 3500), Occupancy(adults=1, children=2), 2, extra_child_rate=Decimal(1000)
    )

    assert quote.extra_child_charges == 0
    assert quote.total_amount == 7000


def test_fractional_average_extra_rate_is_rounded_once():
    quote = ChargeCalculator(Decimal(0)).compute(
        _rates(1000, 1000, 1000),
        Occupancy(adults=3),
        2,
        extra_adult_rate=Decimal(1000) / Decimal(3),
    )

    assert quote.extra_adult_charges == 1000


def test_compute_is_deterministic():
    calculator = ChargeCalculator(Decimal("0.18"))
    promo = PromoCode(code="SAVE10", type="percentage", value=Decimal(10))
    args = (_rates(3500, 3800), Occupancy(adults=3, children=1), 2, _promo_result(promo, 7300))

    first = calculator.compute(*args, extra_adult_rate=Decimal(800))
    second = calculator.compute(*args, extra_adult_rate=Decimal(800))

    assert first == second
    assert first.to_dict() == second.to_dict()


def test_tax_rate_override_and_quote_shape():
    quote = ChargeCalculator(Decimal("0.18"), currency="INR").compute(
        _rates(3500, 3500), Occupancy(), 2, tax_rate=Decimal("0.05")
    )

    payload = quote.to_dict()
    assert quote.tax_amount == 350
    assert payload["taxRate"] == "0.05"
    assert payload["currency"] == "INR"
    assert payload["nights"] == 2
    assert payload["nightlyRates"][0] == {"date": "2026-12-20", "rate": 3500}
    assert set(payload) >= {
        "baseAmount",
        "extraAdultCharges",
        "extraChildCharges",
        "discountAmount",
        "taxAmount",
        "totalAmount",
        "promoApplied",
    }


def test_empty_stay_cannot_be_priced():
    with pytest.raises(ValueError):
        ChargeCalculator().compute((), Occupancy(), 2)
