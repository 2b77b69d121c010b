"""Collaborator contracts the engine consumes.

Implementations live outside the engine; :mod:`booking_engine.services.api_client`
and :mod:`booking_engine.services.fixtures` provide the HTTP-backed and in-memory ones.
"""
from __future__ import annotations

from datetime import date
from typing import TYPE_CHECKING, Optional, Protocol, Sequence

if TYPE_CHECKING:  # pragma: no cover
    from booking_engine.inventory.models import InventoryRecord
    from booking_engine.promos.models import PromoCode
    from booking_engine.rates.models import RatePlan


class InventoryProvider(Protocol):
    async def get_inventory(
        self, product_id: str, start_date: date, end_date: date
    ) -> Sequence["InventoryRecord"]:
        """Return one record per night in ``[start_date, end_date)``.

        Implementations raise :class:`~booking_engine.core.errors.ExternalFetchError`
        when the records cannot be fetched.
        """
        ...


class RatePlanProvider(Protocol):
    async def get_rate_plans(
        self, product_id: str, on_date: date, currency: str
    ) -> Sequence["RatePlan"]:
        ...


class PromoRegistry(Protocol):
    async def lookup(self, code: str) -> Optional["PromoCode"]:
        ...

    async def record_redemption(self, code: str, guest_id: str) -> None:
        """Called by the booking system after confirmation, never by the engine."""
        ...


class CurrencyConverter(Protocol):
    def convert(self, amount: int, from_currency: str, to_currency: str) -> int:
        ...
