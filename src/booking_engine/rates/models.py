"""Rate plan dataclasses."""
from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from typing import Optional, Tuple


@dataclass(frozen=True, slots=True)
class BaseRate:
    """A plan's nightly price for one room key, in minor units."""

    room_type: str
    rate: int
    converted_rate: Optional[int] = None

    def to_dict(self) -> dict[str, object]:
        return {"roomType": self.room_type, "rate": self.rate, "convertedRate": self.converted_rate}


@dataclass(frozen=True, slots=True)
class StayRestrictions:
    min_nights: int = 1
    max_nights: Optional[int] = None

    def allows(self, nights: int) -> bool:
        if nights < self.min_nights:
            return False
        return self.max_nights is None or nights <= self.max_nights


@dataclass(frozen=True, slots=True)
class CancellationPolicy:
    type: str = "flexible"
    hours_before_check_in: int = 24
    penalty_percentage: int = 0


@dataclass(frozen=True, slots=True)
class ValidityWindow:
    start_date: date
    end_date: date

    def contains(self, on_date: date) -> bool:
        return self.start_date <= on_date <= self.end_date


@dataclass(frozen=True, slots=True)
class RatePlan:
    """A priced policy that can override a product's nightly rate."""

    id: str
    name: str
    base_rates: Tuple[BaseRate, ...]
    base_currency: str
    converted_currency: Optional[str] = None
    type: str = "BAR"
    meal_plan: Optional[str] = None
    cancellation_policy: Optional[CancellationPolicy] = None
    stay_restrictions: StayRestrictions = StayRestrictions()
    validity: Optional[ValidityWindow] = None
    is_active: bool = True
    priority: int = 0

    def base_rate_for(self, room_type: str) -> Optional[BaseRate]:
        for base_rate in self.base_rates:
            if base_rate.room_type == room_type:
                return base_rate
        return None

    def is_valid_on(self, on_date: date) -> bool:
        return self.validity is None or self.validity.contains(on_date)

    def to_dict(self) -> dict[str, object]:
        policy = self.cancellation_policy
        return {
            "id": self.id,
            "name": self.name,
            "type": self.type,
            "baseCurrency": self.base_currency,
            "convertedCurrency": self.converted_currency,
            "baseRates": [base_rate.to_dict() for base_rate in self.base_rates],
            "mealPlan": self.meal_plan,
            "cancellationPolicy": (
                {
                    "type": policy.type,
                    "hoursBeforeCheckIn": policy.hours_before_check_in,
                    "penaltyPercentage": policy.penalty_percentage,
                }
                if policy
                else None
            ),
            "stayRestrictions": {
                "minNights": self.stay_restrictions.min_nights,
                "maxNights": self.stay_restrictions.max_nights,
            },
            "validity": (
                {
                    "startDate": self.validity.start_date.isoformat(),
                    "endDate": self.validity.end_date.isoformat(),
                }
                if self.validity
                else None
            ),
            "isActive": self.is_active,
            "priority": self.priority,
        }
