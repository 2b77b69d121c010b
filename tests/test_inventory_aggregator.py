from __future__ import annotations

import asyncio
from dataclasses import replace
from datetime import date, timedelta
from decimal import Decimal

import pytest

from booking_engine.core.errors import ExternalFetchError, InvalidRangeError
from booking_engine.inventory import (
    InventoryAggregator,
    InventoryRecord,
    RoomProduct,
    StayWindow,
    UnavailableReason,
    summarize,
)

CHECK_IN = date(2026, 12, 20)
DELUXE = RoomProduct(id="rt-deluxe", code="DLX", name="Deluxe Room", max_occupancy=2, base_rate=350000)
SUITE = RoomProduct(id="rt-suite", code="STE", name="Suite", max_occupancy=3, base_rate=720000)


def _nights(count: int, **overrides) -> list[InventoryRecord]:
    base = dict(total_units=10, sold_units=2, blocked_units=1, selling_rate=350000)
    base.update(overrides)
    return [InventoryRecord(date=CHECK_IN + timedelta(days=offset), **base) for offset in range(count)]


class _StubInventory:
    def __init__(self, records: dict[str, list[InventoryRecord]], failing: set[str] | None = None) -> None:
        self.records = records
        self.failing = failing or set()
        self.calls: list[tuple[str, date, date]] = []

    async def get_inventory(self, product_id: str, start_date: date, end_date: date) -> list[InventoryRecord]:
        self.calls.append((product_id, start_date, end_date))
        await asyncio.sleep(0)
        if product_id in self.failing:
            raise ConnectionError("inventory service down")
        return [record for record in self.records[product_id] if start_date <= record.date < end_date]


def test_nights_equal_calendar_day_difference():
    for nights in (1, 2, 7, 31):
        window = StayWindow(CHECK_IN, CHECK_IN + timedelta(days=nights))
        result = summarize(DELUXE, window, _nights(nights))
        assert result.nights == nights
        assert len(result.nightly_rates) == nights


def test_available_units_is_minimum_across_nights():
    records = _nights(3)
    records[1] = replace(records[1], sold_units=8)
    window = StayWindow(CHECK_IN, CHECK_IN + timedelta(days=3))

    result = summarize(DELUXE, window, records)

    assert result.available_units == 1
    assert result.is_bookable(1)
    assert not result.is_bookable(2)
    assert result.unavailable_reason is None


def test_available_units_never_increase_as_sold_units_grow():
    window = StayWindow(CHECK_IN, CHECK_IN + timedelta(days=3))
    previous = None
    for sold in range(0, 12):
        records = _nights(3)
        records[2] = replace(records[2], sold_units=sold)
        units = summarize(DELUXE, window, records).available_units
        if previous is not None:
            assert units <= previous
        assert units >= 0
        previous = units


def test_stop_sell_on_any_night_forces_zero_units():
    records = _nights(3, sold_units=3, blocked_units=2)
    records[1] = replace(records[1], stop_sell=True)
    window = StayWindow(CHECK_IN, CHECK_IN + timedelta(days=3))
    assert records[1].available_units == 5

    first = summarize(DELUXE, window, records)
    second = summarize(DELUXE, window, records)

    assert first.available_units == 0
    assert first.has_stop_sell
    assert first.unavailable_reason is UnavailableReason.STOP_SELL
    assert first == second


@pytest.mark.parametrize(
    "flag, reason",
    [
        ("closed_to_arrival", UnavailableReason.CLOSED_TO_ARRIVAL),
        ("closed_to_departure", UnavailableReason.CLOSED_TO_DEPARTURE),
    ],
)
def test_closure_restrictions_veto_the_stay(flag, reason):
    records = _nights(2)
    records[0] = replace(records[0], **{flag: True})
    result = summarize(DELUXE, StayWindow(CHECK_IN, CHECK_IN + timedelta(days=2)), records)

    assert result.available_units == 0
    assert result.has_closure_restriction
    assert result.unavailable_reason is reason


def test_average_rate_extra_rates_and_stay_limits():
    records = _nights(3, extra_adult_rate=80000, extra_child_rate=40000)
    records[2] = replace(records[2], selling_rate=380000, extra_adult_rate=110000, min_stay=2, max_stay=5)
    records[0] = replace(records[0], max_stay=7)
    result = summarize(DELUXE, StayWindow(CHECK_IN, CHECK_IN + timedelta(days=3)), records)

    assert result.average_rate == 360000
    assert [night.rate for night in result.nightly_rates] == [350000, 350000, 380000]
    assert result.avg_extra_adult_rate == Decimal(90000)
    assert result.avg_extra_child_rate == Decimal(40000)
    assert result.min_stay == 2
    assert result.max_stay == 5
    assert not result.stay_restriction_violated


def test_min_stay_violation_blocks_booking():
    records = _nights(1, min_stay=3)
    result = summarize(DELUXE, StayWindow(CHECK_IN, CHECK_IN + timedelta(days=1)), records)

    assert result.available_units == 7
    assert result.stay_restriction_violated
    assert not result.is_bookable(1)
    assert result.unavailable_reason is UnavailableReason.STAY_RESTRICTION
    assert result.to_dict()["unavailableReason"] == "stay_restriction"


@pytest.mark.asyncio
async def test_check_in_equal_check_out_fails_before_any_fetch():
    provider = _StubInventory({"rt-deluxe": _nights(2)})
    aggregator = InventoryAggregator(provider)

    with pytest.raises(InvalidRangeError) as excinfo:
        await aggregator.aggregate(DELUXE, CHECK_IN, CHECK_IN)

    assert excinfo.value.reason == "invalid_range"
    assert provider.calls == []


@pytest.mark.asyncio
async def test_three_night_search_with_stop_sell_reports_zero_units():
    records = _nights(3, total_units=8, sold_units=2, blocked_units=1)
    records[1] = replace(records[1], stop_sell=True)
    aggregator = InventoryAggregator(_StubInventory({"rt-deluxe": records}))

    result = await aggregator.aggregate(DELUXE, CHECK_IN, CHECK_IN + timedelta(days=3))

    assert result.available_units == 0
    assert result.unavailable_reason is UnavailableReason.STOP_SELL


@pytest.mark.asyncio
async def test_failed_product_degrades_without_failing_the_search():
    provider = _StubInventory({"rt-deluxe": _nights(2), "rt-suite": _nights(2)}, failing={"rt-suite"})
    aggregator = InventoryAggregator(provider, max_concurrency=1)

    results = await aggregator.aggregate_many([SUITE, DELUXE], CHECK_IN, CHECK_IN + timedelta(days=2))

    assert [result.product.id for result in results] == ["rt-suite", "rt-deluxe"]
    suite, deluxe = results
    assert suite.fetch_failed
    assert suite.available_units == 0
    assert suite.average_rate == SUITE.base_rate
    assert suite.unavailable_reason is UnavailableReason.NO_INVENTORY
    assert deluxe.available_units == 7


@pytest.mark.asyncio
async def test_missing_night_is_treated_as_fetch_failure():
    records = _nights(3)
    del records[1]
    aggregator = InventoryAggregator(_StubInventory({"rt-deluxe": records}))

    with pytest.raises(ExternalFetchError):
        await aggregator.fetch(DELUXE, StayWindow(CHECK_IN, CHECK_IN + timedelta(days=3)))

    result = await aggregator.aggregate(DELUXE, CHECK_IN, CHECK_IN + timedelta(days=3))
    assert result.fetch_failed


@pytest.mark.asyncio
async def test_fan_out_respects_concurrency_bound():
    in_flight = 0
    peak = 0

    class _Tracking(_StubInventory):
        async def get_inventory(self, product_id, start_date, end_date):
            nonlocal in_flight, peak
            in_flight += 1
            peak = max(peak, in_flight)
            await asyncio.sleep(0.01)
            in_flight -= 1
            return await super().get_inventory(product_id, start_date, end_date)

    products = [replace(DELUXE, id=f"rt-{index}", code=f"R{index}") for index in range(6)]
    provider = _Tracking({product.id: _nights(1) for product in products})
    aggregator = InventoryAggregator(provider, max_concurrency=2)

    results = await aggregator.aggregate_many(products, CHECK_IN, CHECK_IN + timedelta(days=1))

    assert len(results) == 6
    assert peak == 2
