"""Dataclasses for room products, nightly inventory and availability verdicts."""
from __future__ import annotations

from dataclasses import dataclass
from datetime import date, timedelta
from decimal import Decimal
from enum import Enum
from typing import List, Optional, Tuple

from booking_engine.core.errors import InvalidRangeError

DEFAULT_RATE_KEY = "double"


@dataclass(frozen=True, slots=True)
class RoomProduct:
    """A sellable room category. Reference data, never mutated by the engine."""

    id: str
    code: str
    name: str
    max_occupancy: int
    base_rate: int
    amenities: Tuple[str, ...] = ()
    bed_type: Optional[str] = None

    @property
    def rate_key(self) -> str:
        """Key used to look the product up in a rate plan's base rates."""
        return self.bed_type or self.code or DEFAULT_RATE_KEY

    def to_dict(self) -> dict[str, object]:
        return {
            "id": self.id,
            "code": self.code,
            "name": self.name,
            "maxOccupancy": self.max_occupancy,
            "baseRate": self.base_rate,
            "amenities": list(self.amenities),
            "bedType": self.bed_type,
        }


@dataclass(frozen=True, slots=True)
class InventoryRecord:
    """Inventory and restrictions for one product on one calendar night."""

    date: date
    total_units: int
    sold_units: int
    blocked_units: int
    selling_rate: int
    extra_adult_rate: int = 0
    extra_child_rate: int = 0
    stop_sell: bool = False
    closed_to_arrival: bool = False
    closed_to_departure: bool = False
    min_stay: int = 1
    max_stay: Optional[int] = None
    currency: Optional[str] = None

    @property
    def available_units(self) -> int:
        return self.total_units - self.sold_units - self.blocked_units

    def to_dict(self) -> dict[str, object]:
        return {
            "date": self.date.isoformat(),
            "totalUnits": self.total_units,
            "soldUnits": self.sold_units,
            "blockedUnits": self.blocked_units,
            "availableUnits": self.available_units,
            "sellingRate": self.selling_rate,
            "extraAdultRate": self.extra_adult_rate,
            "extraChildRate": self.extra_child_rate,
            "stopSell": self.stop_sell,
            "closedToArrival": self.closed_to_arrival,
            "closedToDeparture": self.closed_to_departure,
            "minStay": self.min_stay,
            "maxStay": self.max_stay,
            "currency": self.currency,
        }


@dataclass(frozen=True, slots=True)
class NightlyRate:
    date: date
    rate: int

    def to_dict(self) -> dict[str, object]:
        return {"date": self.date.isoformat(), "rate": self.rate}


class UnavailableReason(str, Enum):
    """Why a product cannot be sold for a stay; each needs a different guest remedy."""

    NO_INVENTORY = "no_inventory"
    STOP_SELL = "stop_sell"
    CLOSED_TO_ARRIVAL = "closed_to_arrival"
    CLOSED_TO_DEPARTURE = "closed_to_departure"
    SOLD_OUT = "sold_out"
    STAY_RESTRICTION = "stay_restriction"


@dataclass(frozen=True, slots=True)
class AvailabilityResult:
    """Whole-stay availability verdict for one product."""

    product: RoomProduct
    check_in: date
    check_out: date
    available_units: int
    average_rate: int
    nightly_rates: Tuple[NightlyRate, ...] = ()
    has_stop_sell: bool = False
    closed_to_arrival: bool = False
    closed_to_departure: bool = False
    avg_extra_adult_rate: Decimal = Decimal(0)
    avg_extra_child_rate: Decimal = Decimal(0)
    min_stay: int = 1
    max_stay: Optional[int] = None
    fetch_failed: bool = False

    @property
    def nights(self) -> int:
        return (self.check_out - self.check_in).days

    @property
    def has_closure_restriction(self) -> bool:
        return self.closed_to_arrival or self.closed_to_departure

    @property
    def stay_restriction_violated(self) -> bool:
        if self.fetch_failed:
            return False
        if self.nights < self.min_stay:
            return True
        return self.max_stay is not None and self.nights > self.max_stay

    @property
    def unavailable_reason(self) -> Optional[UnavailableReason]:
        if self.fetch_failed:
            return UnavailableReason.NO_INVENTORY
        if self.has_stop_sell:
            return UnavailableReason.STOP_SELL
        if self.closed_to_arrival:
            return UnavailableReason.CLOSED_TO_ARRIVAL
        if self.closed_to_departure:
            return UnavailableReason.CLOSED_TO_DEPARTURE
        if self.available_units <= 0:
            return UnavailableReason.SOLD_OUT
        if self.stay_restriction_violated:
            return UnavailableReason.STAY_RESTRICTION
        return None

    def is_bookable(self, rooms: int = 1) -> bool:
        return self.available_units >= rooms and not self.stay_restriction_violated

    def to_dict(self) -> dict[str, object]:
        reason = self.unavailable_reason
        return {
            "product": self.product.to_dict(),
            "checkIn": self.check_in.isoformat(),
            "checkOut": self.check_out.isoformat(),
            "nights": self.nights,
            "availableUnits": self.available_units,
            "averageRate": self.average_rate,
            "nightlyRates": [night.to_dict() for night in self.nightly_rates],
            "hasStopSell": self.has_stop_sell,
            "hasClosureRestriction": self.has_closure_restriction,
            "closedToArrival": self.closed_to_arrival,
            "closedToDeparture": self.closed_to_departure,
            "minStay": self.min_stay,
            "maxStay": self.max_stay,
            "stayRestrictionViolated": self.stay_restriction_violated,
            "fetchFailed": self.fetch_failed,
            "unavailableReason": reason.value if reason else None,
        }


@dataclass(frozen=True, slots=True)
class Occupancy:
    """Guests and rooms requested for a stay."""

    adults: int = 1
    children: int = 0
    rooms: int = 1

    def __post_init__(self) -> None:
        if self.adults < 1:
            raise ValueError("adults must be at least 1")
        if self.children < 0:
            raise ValueError("children cannot be negative")
        if self.rooms < 1:
            raise ValueError("rooms must be at least 1")

    def to_dict(self) -> dict[str, object]:
        return {"adults": self.adults, "children": self.children, "rooms": self.rooms}


@dataclass(frozen=True, slots=True)
class StayWindow:
    """Check-in/check-out pair; the check-out night is never part of the stay."""

    check_in: date
    check_out: date

    def __post_init__(self) -> None:
        if self.nights < 1:
            raise InvalidRangeError(
                f"Check-out {self.check_out.isoformat()} must be after check-in {self.check_in.isoformat()}",
                details={"checkIn": self.check_in.isoformat(), "checkOut": self.check_out.isoformat()},
            )

    @property
    def nights(self) -> int:
        return (self.check_out - self.check_in).days

    def dates(self) -> List[date]:
        return [self.check_in + timedelta(days=offset) for offset in range(self.nights)]

    def to_dict(self) -> dict[str, object]:
        return {
            "checkIn": self.check_in.isoformat(),
            "checkOut": self.check_out.isoformat(),
            "nights": self.nights,
        }


__all__ = [
    "AvailabilityResult",
    "InventoryRecord",
    "NightlyRate",
    "Occupancy",
    "RoomProduct",
    "StayWindow",
    "UnavailableReason",
]
