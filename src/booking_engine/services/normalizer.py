"""Utilities to transform raw camelCase API payloads into engine dataclasses.

Amounts arrive in major units (``3500.0`` rupees) and are converted to
integer minor units here, so nothing past this module sees a float price.
"""
from __future__ import annotations

from datetime import date
from decimal import Decimal
from typing import Any, Dict, Iterable, List, Optional

from booking_engine.core.money import to_decimal, to_minor
from booking_engine.inventory.models import InventoryRecord, RoomProduct
from booking_engine.promos.models import (
    FIXED_AMOUNT,
    PromoCode,
    PromoConditions,
    PromoUsage,
)
from booking_engine.rates.models import (
    BaseRate,
    CancellationPolicy,
    RatePlan,
    StayRestrictions,
    ValidityWindow,
)


def _parse_date(value: Any) -> Optional[date]:
    if value is None or value == "":
        return None
    if isinstance(value, date):
        return value
    # Accept full ISO timestamps ("2025-03-01T00:00:00.000Z") by keeping the date part.
    return date.fromisoformat(str(value)[:10])


def _minor(value: Any, exponent: int) -> int:
    if value is None or value == "":
        return 0
    return to_minor(value, exponent)


def _optional_minor(value: Any, exponent: int) -> Optional[int]:
    if value is None or value == "":
        return None
    return to_minor(value, exponent)


def _optional_int(value: Any) -> Optional[int]:
    if value is None or value == "":
        return None
    return int(value)


def _first(payload: Dict[str, Any], *keys: str, default: Any = None) -> Any:
    for key in keys:
        value = payload.get(key)
        if value is not None:
            return value
    return default


def _object_id(value: Any) -> Optional[str]:
    # Populated references arrive as objects, bare ones as id strings.
    if isinstance(value, dict):
        return value.get("_id") or value.get("id")
    return value


def build_room_product(payload: Dict[str, Any], *, exponent: int = 2) -> RoomProduct:
    amenities = payload.get("amenities") or []
    return RoomProduct(
        id=str(_first(payload, "id", "_id")),
        code=payload.get("code") or "",
        name=payload.get("name") or payload.get("code") or "",
        max_occupancy=int(_first(payload, "maxOccupancy", "max_occupancy", default=2)),
        base_rate=_minor(_first(payload, "baseRate", "basePrice", "base_rate"), exponent),
        amenities=tuple(str(item) for item in amenities),
        bed_type=_first(payload, "bedType", "bed_type"),
    )


def build_room_products(payloads: Iterable[Dict[str, Any]], *, exponent: int = 2) -> List[RoomProduct]:
    return [build_room_product(payload, exponent=exponent) for payload in payloads]


def build_inventory_record(payload: Dict[str, Any], *, exponent: int = 2) -> InventoryRecord:
    restrictions: Dict[str, Any] = payload.get("restrictions") or {}
    record_date = _parse_date(payload.get("date"))
    if record_date is None:
        raise ValueError("inventory record without a date")
    return InventoryRecord(
        date=record_date,
        total_units=int(_first(payload, "totalUnits", "totalRooms", default=0)),
        sold_units=int(_first(payload, "soldUnits", "soldRooms", default=0)),
        blocked_units=int(_first(payload, "blockedUnits", "blockedRooms", default=0)),
        selling_rate=_minor(_first(payload, "sellingRate", "baseRate"), exponent),
        extra_adult_rate=_minor(payload.get("extraAdultRate"), exponent),
        extra_child_rate=_minor(payload.get("extraChildRate"), exponent),
        stop_sell=bool(_first(payload, "stopSell", "stopSellFlag", default=restrictions.get("stopSellFlag", False))),
        closed_to_arrival=bool(
            _first(payload, "closedToArrival", default=restrictions.get("closedToArrival", False))
        ),
        closed_to_departure=bool(
            _first(payload, "closedToDeparture", default=restrictions.get("closedToDeparture", False))
        ),
        min_stay=int(_first(payload, "minStay", "minimumStay", default=restrictions.get("minimumStay", 1)) or 1),
        max_stay=_optional_int(_first(payload, "maxStay", "maximumStay", default=restrictions.get("maximumStay"))),
        currency=payload.get("currency"),
    )


def build_inventory_records(payloads: Iterable[Dict[str, Any]], *, exponent: int = 2) -> List[InventoryRecord]:
    records = [build_inventory_record(payload, exponent=exponent) for payload in payloads]
    records.sort(key=lambda record: record.date)
    return records


def build_rate_plan(payload: Dict[str, Any], *, exponent: int = 2) -> RatePlan:
    base_rates = tuple(
        BaseRate(
            room_type=entry.get("roomType") or "",
            rate=_minor(entry.get("rate"), exponent),
            converted_rate=_optional_minor(entry.get("convertedRate"), exponent),
        )
        for entry in payload.get("baseRates") or []
    )
    restrictions: Dict[str, Any] = payload.get("stayRestrictions") or {}
    policy: Optional[Dict[str, Any]] = payload.get("cancellationPolicy")
    validity: Optional[Dict[str, Any]] = payload.get("validity")

    validity_window = None
    if validity:
        start = _parse_date(validity.get("startDate"))
        end = _parse_date(validity.get("endDate"))
        if start is not None and end is not None:
            validity_window = ValidityWindow(start_date=start, end_date=end)

    return RatePlan(
        id=str(_first(payload, "planId", "id", "_id")),
        name=payload.get("name") or "",
        base_rates=base_rates,
        base_currency=(payload.get("baseCurrency") or "").upper(),
        converted_currency=(payload.get("convertedCurrency") or "").upper() or None,
        type=payload.get("type") or "BAR",
        meal_plan=payload.get("mealPlan"),
        cancellation_policy=(
            CancellationPolicy(
                type=policy.get("type") or "flexible",
                hours_before_check_in=int(policy.get("hoursBeforeCheckIn") or 0),
                penalty_percentage=int(policy.get("penaltyPercentage") or 0),
            )
            if policy
            else None
        ),
        stay_restrictions=StayRestrictions(
            min_nights=int(restrictions.get("minNights") or 1),
            max_nights=_optional_int(restrictions.get("maxNights")) or None,
        ),
        validity=validity_window,
        is_active=bool(payload.get("isActive", True)),
        priority=int(payload.get("priority") or 0),
    )


def build_rate_plans(payloads: Iterable[Dict[str, Any]], *, exponent: int = 2) -> List[RatePlan]:
    return [build_rate_plan(payload, exponent=exponent) for payload in payloads]


def build_promo_code(payload: Dict[str, Any], *, exponent: int = 2) -> PromoCode:
    discount: Dict[str, Any] = payload.get("discount") or {}
    conditions: Dict[str, Any] = payload.get("conditions") or {}
    validity: Dict[str, Any] = payload.get("validity") or {}
    usage: Dict[str, Any] = payload.get("usage") or {}

    promo_type = payload.get("type") or ""
    raw_value = _first(discount, "value", default=payload.get("value", 0))
    # Percentages stay as given; fixed amounts are money and move to minor units.
    value: Decimal = (
        Decimal(_minor(raw_value, exponent)) if promo_type == FIXED_AMOUNT else to_decimal(raw_value or 0)
    )
    max_amount = _optional_minor(_first(discount, "maxAmount", default=payload.get("maxAmount")), exponent)

    return PromoCode(
        code=payload.get("code") or "",
        type=promo_type,
        value=value,
        name=payload.get("name") or "",
        description=payload.get("description") or "",
        max_amount=max_amount or None,
        conditions=PromoConditions(
            min_booking_value=_minor(conditions.get("minBookingValue"), exponent),
            min_nights=int(conditions.get("minNights") or 1),
            max_nights=_optional_int(conditions.get("maxNights")) or None,
            applicable_room_types=tuple(conditions.get("applicableRoomTypes") or ()),
            first_time_guests_only=bool(
                _first(conditions, "firstTimeGuestsOnly", "firstTimeGuests", default=False)
            ),
            max_usage_per_guest=_optional_int(conditions.get("maxUsagePerGuest")) or None,
            combinable_with_other_offers=bool(conditions.get("combinableWithOtherOffers", False)),
        ),
        valid_from=_parse_date(validity.get("startDate")),
        valid_until=_parse_date(validity.get("endDate")),
        usage=PromoUsage(
            total_usage_limit=_optional_int(_first(usage, "totalUsageLimit", "limit")) or None,
            current_usage=int(usage.get("currentUsage") or 0),
        ),
        is_active=bool(payload.get("isActive", True)),
    )


def unwrap_data(payload: Any) -> Any:
    """Strip the ``{"data": ...}`` envelope the API wraps responses in."""
    if isinstance(payload, dict) and "data" in payload:
        return payload["data"]
    return payload


__all__ = [
    "build_inventory_record",
    "build_inventory_records",
    "build_promo_code",
    "build_rate_plan",
    "build_rate_plans",
    "build_room_product",
    "build_room_products",
    "unwrap_data",
]
