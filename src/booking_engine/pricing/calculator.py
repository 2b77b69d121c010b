"""Full-stay charge computation."""
from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import Optional, Sequence

from booking_engine.core.money import apply_rate, round_minor, to_decimal
from booking_engine.inventory.models import NightlyRate, Occupancy
from booking_engine.promos.models import PromoResult

from .models import PricingQuote, PromoApplied

DEFAULT_TAX_RATE = Decimal("0.18")


@dataclass(frozen=True, slots=True)
class GrossCharges:
    base_amount: int
    extra_adults: int
    extra_children: int
    extra_adult_charges: int
    extra_child_charges: int

    @property
    def subtotal(self) -> int:
        return self.base_amount + self.extra_adult_charges + self.extra_child_charges


def extra_guests(occupancy: Occupancy, max_occupancy: int) -> tuple[int, int]:
    """Adults and children above ``max_occupancy``, each counted on its own."""
    extra_adults = max(0, occupancy.adults - max_occupancy)
    extra_children = max(0, occupancy.children - max_occupancy)
    return extra_adults, extra_children


class ChargeCalculator:
    """Deterministic pricing: identical inputs always give an identical quote."""

    def __init__(self, tax_rate: Decimal | str | float = DEFAULT_TAX_RATE, currency: str = "INR") -> None:
        self.tax_rate = to_decimal(tax_rate)
        self.currency = currency

    def gross_charges(
        self,
        nightly_rates: Sequence[NightlyRate],
        occupancy: Occupancy,
        max_occupancy: int,
        *,
        extra_adult_rate: Decimal | int = 0,
        extra_child_rate: Decimal | int = 0,
    ) -> GrossCharges:
        nights = len(nightly_rates)
        rooms = occupancy.rooms
        extra_adults, extra_children = extra_guests(occupancy, max_occupancy)
        return GrossCharges(
            base_amount=self.room_charge(nightly_rates, occupancy),
            extra_adults=extra_adults,
            extra_children=extra_children,
            extra_adult_charges=round_minor(to_decimal(extra_adult_rate) * extra_adults * nights * rooms),
            extra_child_charges=round_minor(to_decimal(extra_child_rate) * extra_children * nights * rooms),
        )

    @staticmethod
    def room_charge(nightly_rates: Sequence[NightlyRate], occupancy: Occupancy) -> int:
        """Room charge a promo is evaluated against, before extra-guest charges."""
        return sum(night.rate for night in nightly_rates) * occupancy.rooms

    def compute(
        self,
        nightly_rates: Sequence[NightlyRate],
        occupancy: Occupancy,
        max_occupancy: int,
        promo_result: Optional[PromoResult] = None,
        tax_rate: Decimal | str | float | None = None,
        *,
        extra_adult_rate: Decimal | int = 0,
        extra_child_rate: Decimal | int = 0,
        currency: Optional[str] = None,
    ) -> PricingQuote:
        if not nightly_rates:
            raise ValueError("cannot price a stay without nightly rates")
        rate = self.tax_rate if tax_rate is None else to_decimal(tax_rate)
        gross = self.gross_charges(
            nightly_rates,
            occupancy,
            max_occupancy,
            extra_adult_rate=extra_adult_rate,
            extra_child_rate=extra_child_rate,
        )

        promo_applied = None
        discount = 0
        if promo_result is not None and promo_result.applicable:
            discount = promo_result.discount_amount
            promo = promo_result.promo
            promo_applied = PromoApplied(code=promo.code, type=promo.type, value=promo.value, amount=discount)

        subtotal_after_discount = max(0, gross.subtotal - discount)
        tax_amount = apply_rate(subtotal_after_discount, rate)
        return PricingQuote(
            currency=currency or self.currency,
            nights=len(nightly_rates),
            rooms=occupancy.rooms,
            tax_rate=rate,
            base_amount=gross.base_amount,
            extra_adult_charges=gross.extra_adult_charges,
            extra_child_charges=gross.extra_child_charges,
            discount_amount=discount,
            tax_amount=tax_amount,
            total_amount=subtotal_after_discount + tax_amount,
            nightly_rates=tuple(nightly_rates),
            promo_applied=promo_applied,
        )
