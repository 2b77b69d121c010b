"""Quote value types."""
from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import Optional, Tuple

from booking_engine.inventory.models import NightlyRate


@dataclass(frozen=True, slots=True)
class PromoApplied:
    code: str
    type: str
    value: Decimal
    amount: int

    def to_dict(self) -> dict[str, object]:
        return {"code": self.code, "type": self.type, "value": str(self.value), "amount": self.amount}


@dataclass(frozen=True, slots=True)
class PricingQuote:
    """Itemised price for one stay, occupancy and promo selection.

    Always rebuilt from scratch; a quote is never patched in place.
    """

    currency: str
    nights: int
    rooms: int
    tax_rate: Decimal
    base_amount: int
    extra_adult_charges: int
    extra_child_charges: int
    discount_amount: int
    tax_amount: int
    total_amount: int
    nightly_rates: Tuple[NightlyRate, ...]
    promo_applied: Optional[PromoApplied] = None

    @property
    def subtotal_after_discount(self) -> int:
        return self.total_amount - self.tax_amount

    def to_dict(self) -> dict[str, object]:
        return {
            "currency": self.currency,
            "nights": self.nights,
            "rooms": self.rooms,
            "taxRate": str(self.tax_rate),
            "baseAmount": self.base_amount,
            "extraAdultCharges": self.extra_adult_charges,
            "extraChildCharges": self.extra_child_charges,
            "discountAmount": self.discount_amount,
            "taxAmount": self.tax_amount,
            "totalAmount": self.total_amount,
            "nightlyRates": [night.to_dict() for night in self.nightly_rates],
            "promoApplied": self.promo_applied.to_dict() if self.promo_applied else None,
        }
