"""Promo code dataclasses and evaluation results."""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from enum import Enum
from typing import Optional, Tuple

from booking_engine.core.errors import InvalidPromoError

PERCENTAGE = "percentage"
FIXED_AMOUNT = "fixed_amount"
FREE_NIGHT = "free_night"
UPGRADE = "upgrade"
SUPPORTED_TYPES = (PERCENTAGE, FIXED_AMOUNT)


class PromoRejection(str, Enum):
    """Reason codes, one per validation step, in evaluation order."""

    NOT_FOUND = "not_found"
    INACTIVE = "inactive"
    OUTSIDE_VALIDITY = "outside_validity"
    USAGE_LIMIT_REACHED = "usage_limit_reached"
    BELOW_MIN_BOOKING_VALUE = "below_min_booking_value"
    NIGHTS_OUT_OF_RANGE = "nights_out_of_range"
    ROOM_TYPE_NOT_APPLICABLE = "room_type_not_applicable"
    FIRST_TIME_GUESTS_ONLY = "first_time_guests_only"
    GUEST_USAGE_LIMIT_REACHED = "guest_usage_limit_reached"


def normalize_code(code: str) -> str:
    return code.strip().upper()


@dataclass(frozen=True, slots=True)
class PromoConditions:
    min_booking_value: int = 0
    min_nights: int = 1
    max_nights: Optional[int] = None
    applicable_room_types: Tuple[str, ...] = ()
    first_time_guests_only: bool = False
    max_usage_per_guest: Optional[int] = None
    combinable_with_other_offers: bool = False

    def to_dict(self) -> dict[str, object]:
        return {
            "minBookingValue": self.min_booking_value,
            "minNights": self.min_nights,
            "maxNights": self.max_nights,
            "applicableRoomTypes": list(self.applicable_room_types),
            "firstTimeGuestsOnly": self.first_time_guests_only,
            "maxUsagePerGuest": self.max_usage_per_guest,
            "combinableWithOtherOffers": self.combinable_with_other_offers,
        }


@dataclass(frozen=True, slots=True)
class PromoUsage:
    total_usage_limit: Optional[int] = None
    current_usage: int = 0

    @property
    def exhausted(self) -> bool:
        # Unset or zero limit means unlimited.
        if not self.total_usage_limit:
            return False
        return self.current_usage >= self.total_usage_limit


@dataclass(frozen=True, slots=True)
class PromoCode:
    """A discount code as held by the promo registry. Read-only to the engine."""

    code: str
    type: str
    value: Decimal
    name: str = ""
    description: str = ""
    max_amount: Optional[int] = None
    conditions: PromoConditions = PromoConditions()
    valid_from: Optional[date] = None
    valid_until: Optional[date] = None
    usage: PromoUsage = PromoUsage()
    is_active: bool = True

    def __post_init__(self) -> None:
        object.__setattr__(self, "code", normalize_code(self.code))
        if not isinstance(self.value, Decimal):
            object.__setattr__(self, "value", Decimal(str(self.value)))

    @property
    def cap(self) -> Optional[int]:
        """Discount ceiling, ``None`` when uncapped (a zero cap counts as unset)."""
        return self.max_amount or None

    def is_valid_on(self, on_date: date) -> bool:
        if self.valid_from is not None and on_date < self.valid_from:
            return False
        if self.valid_until is not None and on_date > self.valid_until:
            return False
        return True

    def to_dict(self) -> dict[str, object]:
        return {
            "code": self.code,
            "name": self.name,
            "description": self.description,
            "type": self.type,
            "value": str(self.value),
            "maxAmount": self.max_amount,
            "conditions": self.conditions.to_dict(),
            "validity": {
                "startDate": self.valid_from.isoformat() if self.valid_from else None,
                "endDate": self.valid_until.isoformat() if self.valid_until else None,
            },
            "usage": {
                "totalUsageLimit": self.usage.total_usage_limit,
                "currentUsage": self.usage.current_usage,
            },
            "isActive": self.is_active,
        }


@dataclass(frozen=True, slots=True)
class PromoContext:
    """Booking facts a promo is validated against."""

    subtotal: int
    nights: int
    room_type: Optional[str]
    evaluated_on: date
    is_first_time_guest: bool = False
    guest_redemptions: int = 0


@dataclass(frozen=True, slots=True)
class PromoResult:
    promo: PromoCode
    applicable: bool
    discount_amount: int = 0
    reason: Optional[PromoRejection] = None
    details: dict[str, object] = field(default_factory=dict)

    @classmethod
    def rejected(cls, promo: PromoCode, reason: PromoRejection, **details: object) -> "PromoResult":
        return cls(promo=promo, applicable=False, reason=reason, details=dict(details))

    def raise_for_rejection(self) -> None:
        if self.applicable:
            return
        message = rejection_message(self)
        error = InvalidPromoError(self.promo.code, self.reason.value, message)
        error.details.update(self.details)
        raise error

    def to_dict(self) -> dict[str, object]:
        return {
            "code": self.promo.code,
            "applicable": self.applicable,
            "discountAmount": self.discount_amount,
            "reason": self.reason.value if self.reason else None,
        }


_MESSAGES = {
    PromoRejection.NOT_FOUND: "Promo code {code} does not exist",
    PromoRejection.INACTIVE: "Promo code {code} is no longer active",
    PromoRejection.OUTSIDE_VALIDITY: "Promo code {code} is not valid on this date",
    PromoRejection.USAGE_LIMIT_REACHED: "Promo code {code} has reached its usage limit",
    PromoRejection.BELOW_MIN_BOOKING_VALUE: "Booking value is below the minimum for promo code {code}",
    PromoRejection.NIGHTS_OUT_OF_RANGE: "Stay length is outside the range allowed by promo code {code}",
    PromoRejection.ROOM_TYPE_NOT_APPLICABLE: "Promo code {code} does not apply to the selected room",
    PromoRejection.FIRST_TIME_GUESTS_ONLY: "Promo code {code} is for first-time guests only",
    PromoRejection.GUEST_USAGE_LIMIT_REACHED: "You have already used promo code {code} the maximum number of times",
}


def rejection_message(result: PromoResult) -> str:
    if result.reason is None:
        raise ValueError(f"Promo result for {result.promo.code} carries no rejection reason")
    return _MESSAGES[result.reason].format(code=result.promo.code)


def not_found(code: str) -> InvalidPromoError:
    normalized = normalize_code(code)
    return InvalidPromoError(
        normalized,
        PromoRejection.NOT_FOUND.value,
        _MESSAGES[PromoRejection.NOT_FOUND].format(code=normalized),
    )


__all__ = [
    "FIXED_AMOUNT",
    "FREE_NIGHT",
    "PERCENTAGE",
    "PromoCode",
    "PromoConditions",
    "PromoContext",
    "PromoRejection",
    "PromoResult",
    "PromoUsage",
    "SUPPORTED_TYPES",
    "UPGRADE",
    "normalize_code",
    "not_found",
]
