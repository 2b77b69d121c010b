"""Reduce per-night inventory into a whole-stay availability verdict."""
from __future__ import annotations

import asyncio
import logging
from datetime import date
from typing import List, Sequence

from booking_engine.core.errors import ExternalFetchError
from booking_engine.core.money import mean, round_minor
from booking_engine.services.providers import InventoryProvider

from .models import AvailabilityResult, InventoryRecord, NightlyRate, RoomProduct, StayWindow

logger = logging.getLogger(__name__)

DEFAULT_MAX_CONCURRENCY = 8


def summarize(
    product: RoomProduct,
    window: StayWindow,
    records: Sequence[InventoryRecord],
) -> AvailabilityResult:
    """Pure reduction of one record per stay night into an :class:`AvailabilityResult`.

    A stop-sell or closure on any night vetoes the stay regardless of unit counts.
    """
    ordered = order_records(window, records)

    min_available = min(record.available_units for record in ordered)
    has_stop_sell = any(record.stop_sell for record in ordered)
    closed_to_arrival = any(record.closed_to_arrival for record in ordered)
    closed_to_departure = any(record.closed_to_departure for record in ordered)

    available_units = max(0, min_available)
    if has_stop_sell or closed_to_arrival or closed_to_departure:
        available_units = 0

    max_stays = [record.max_stay for record in ordered if record.max_stay]

    return AvailabilityResult(
        product=product,
        check_in=window.check_in,
        check_out=window.check_out,
        available_units=available_units,
        average_rate=round_minor(mean(record.selling_rate for record in ordered)),
        nightly_rates=tuple(NightlyRate(date=record.date, rate=record.selling_rate) for record in ordered),
        has_stop_sell=has_stop_sell,
        closed_to_arrival=closed_to_arrival,
        closed_to_departure=closed_to_departure,
        avg_extra_adult_rate=mean(record.extra_adult_rate for record in ordered),
        avg_extra_child_rate=mean(record.extra_child_rate for record in ordered),
        min_stay=max(record.min_stay for record in ordered),
        max_stay=min(max_stays) if max_stays else None,
    )


def order_records(window: StayWindow, records: Sequence[InventoryRecord]) -> List[InventoryRecord]:
    """Match records to stay nights, raising when any night is missing or extra."""
    expected = window.dates()
    by_date = {record.date: record for record in records}
    if len(records) != len(expected) or set(by_date) != set(expected):
        missing = [night.isoformat() for night in expected if night not in by_date]
        raise ExternalFetchError(
            "inventory",
            f"expected {len(expected)} nightly records, got {len(records)} (missing: {', '.join(missing) or 'none'})",
        )
    return [by_date[night] for night in expected]


def unavailable(product: RoomProduct, window: StayWindow) -> AvailabilityResult:
    """Verdict used when a product's inventory could not be fetched."""
    return AvailabilityResult(
        product=product,
        check_in=window.check_in,
        check_out=window.check_out,
        available_units=0,
        average_rate=product.base_rate,
        fetch_failed=True,
    )


class InventoryAggregator:
    """Fetches nightly inventory and reduces it per product."""

    def __init__(self, provider: InventoryProvider, *, max_concurrency: int = DEFAULT_MAX_CONCURRENCY) -> None:
        self.provider = provider
        self._semaphore = asyncio.Semaphore(max_concurrency)

    async def fetch(self, product: RoomProduct, window: StayWindow) -> List[InventoryRecord]:
        """Fetch and order the stay's records; failures surface as :class:`ExternalFetchError`."""
        async with self._semaphore:
            try:
                records = await self.provider.get_inventory(product.id, window.check_in, window.check_out)
            except ExternalFetchError:
                raise
            except Exception as exc:
                raise ExternalFetchError("inventory", f"lookup for {product.id} failed: {exc}") from exc
        return order_records(window, list(records))

    async def aggregate(self, product: RoomProduct, check_in: date, check_out: date) -> AvailabilityResult:
        """Availability for one product; a fetch failure degrades it to unavailable.

        Raises :class:`~booking_engine.core.errors.InvalidRangeError` before any I/O
        when the stay has no nights.
        """
        window = StayWindow(check_in, check_out)
        try:
            records = await self.fetch(product, window)
        except ExternalFetchError as exc:
            logger.warning("Marking %s unavailable for %s → %s: %s", product.code, check_in, check_out, exc)
            return unavailable(product, window)
        return summarize(product, window, records)

    async def aggregate_many(
        self,
        products: Sequence[RoomProduct],
        check_in: date,
        check_out: date,
    ) -> List[AvailabilityResult]:
        """Fan out one lookup per product and wait for all of them, preserving catalog order."""
        window = StayWindow(check_in, check_out)
        logger.info(
            "Checking availability for %s products (%s → %s, %s nights)",
            len(products),
            check_in,
            check_out,
            window.nights,
        )
        results = await asyncio.gather(
            *(self.aggregate(product, check_in, check_out) for product in products)
        )
        sellable = sum(1 for result in results if result.available_units > 0)
        logger.info("Availability complete: %s of %s products sellable", sellable, len(results))
        return list(results)
