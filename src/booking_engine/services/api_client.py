"""Async client for the hotel booking REST API."""
from __future__ import annotations

import logging
from datetime import date, timedelta
from typing import Any, Dict, List, Optional

import httpx

from booking_engine.config.settings import Settings
from booking_engine.core.errors import ExternalFetchError
from booking_engine.inventory.models import InventoryRecord, RoomProduct
from booking_engine.promos.models import PromoCode, normalize_code
from booking_engine.rates.models import RatePlan

from .normalizer import (
    build_inventory_records,
    build_promo_code,
    build_rate_plans,
    build_room_products,
    unwrap_data,
)

logger = logging.getLogger(__name__)


class BookingApiClient:
    """Thin wrapper around the room type, inventory, rate and promo endpoints.

    Implements the inventory, rate plan and promo registry provider
    contracts. Every transport or HTTP failure surfaces as
    :class:`ExternalFetchError`.
    """

    def __init__(
        self,
        *,
        base_url: str,
        hotel_id: str,
        timeout: float = 10.0,
        headers: Optional[Dict[str, str]] = None,
        currency_exponent: int = 2,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        default_headers = {
            "Accept": "application/json",
            "User-Agent": "booking-engine/0.1.0",
        }
        if headers:
            default_headers.update(headers)
        self._client = httpx.AsyncClient(
            base_url=base_url.rstrip("/"),
            timeout=timeout,
            headers=default_headers,
            transport=transport,
        )
        self.hotel_id = hotel_id
        self.exponent = currency_exponent

    @classmethod
    def from_settings(
        cls, settings: Settings, *, transport: Optional[httpx.AsyncBaseTransport] = None
    ) -> "BookingApiClient":
        if not settings.hotel_id:
            raise ValueError("BOOKING_ENGINE_HOTEL_ID is required for the HTTP providers")
        return cls(
            base_url=settings.api_base_url,
            hotel_id=settings.hotel_id,
            timeout=settings.api_timeout_s,
            headers=settings.api_headers(),
            currency_exponent=settings.currency_exponent,
            transport=transport,
        )

    async def aclose(self) -> None:
        await self._client.aclose()

    async def __aenter__(self) -> "BookingApiClient":
        return self

    async def __aexit__(self, exc_type, exc, exc_tb) -> None:
        await self.aclose()

    async def _request(self, source: str, method: str, path: str, **kwargs: Any) -> httpx.Response:
        logger.debug("%s %s params=%s", method, path, kwargs.get("params"))
        try:
            response = await self._client.request(method, path, **kwargs)
        except httpx.HTTPError as exc:
            raise ExternalFetchError(source, f"{method} {path} failed: {exc}") from exc
        return response

    @staticmethod
    def _raise_for_status(source: str, response: httpx.Response) -> None:
        try:
            response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            message = response.reason_phrase
            try:
                message = response.json().get("message") or message
            except (ValueError, AttributeError):
                pass
            raise ExternalFetchError(
                source, f"HTTP {response.status_code}: {message}", status=response.status_code
            ) from exc

    async def get_room_products(self) -> List[RoomProduct]:
        """The hotel's room catalog."""
        response = await self._request("room_types", "GET", "/room-types", params={"hotelId": self.hotel_id})
        self._raise_for_status("room_types", response)
        try:
            return build_room_products(unwrap_data(response.json()) or [], exponent=self.exponent)
        except (ValueError, TypeError, KeyError) as exc:
            raise ExternalFetchError("room_types", f"malformed room type payload: {exc}") from exc

    async def get_inventory(self, product_id: str, start_date: date, end_date: date) -> List[InventoryRecord]:
        # The API range is inclusive, the engine's excludes the check-out night.
        params = {
            "hotelId": self.hotel_id,
            "roomTypeId": product_id,
            "startDate": start_date.isoformat(),
            "endDate": (end_date - timedelta(days=1)).isoformat(),
        }
        response = await self._request("inventory", "GET", "/inventory-management", params=params)
        self._raise_for_status("inventory", response)
        try:
            return build_inventory_records(unwrap_data(response.json()) or [], exponent=self.exponent)
        except (ValueError, TypeError, KeyError) as exc:
            raise ExternalFetchError("inventory", f"malformed inventory payload: {exc}") from exc

    async def get_rate_plans(self, product_id: str, on_date: date, currency: str) -> List[RatePlan]:
        params = {
            "currency": currency,
            "date": on_date.isoformat(),
            "roomType": product_id,
        }
        path = f"/currencies/{self.hotel_id}/available-rates"
        response = await self._request("rate_plans", "GET", path, params=params)
        self._raise_for_status("rate_plans", response)
        try:
            return build_rate_plans(unwrap_data(response.json()) or [], exponent=self.exponent)
        except (ValueError, TypeError, KeyError) as exc:
            raise ExternalFetchError("rate_plans", f"malformed rate plan payload: {exc}") from exc

    async def lookup(self, code: str) -> Optional[PromoCode]:
        normalized = normalize_code(code)
        response = await self._request(
            "promo_registry", "GET", f"/promo-codes/{normalized}", params={"hotelId": self.hotel_id}
        )
        if response.status_code == httpx.codes.NOT_FOUND:
            return None
        self._raise_for_status("promo_registry", response)
        try:
            return build_promo_code(unwrap_data(response.json()), exponent=self.exponent)
        except (ValueError, TypeError, KeyError) as exc:
            raise ExternalFetchError("promo_registry", f"malformed promo payload: {exc}") from exc

    async def record_redemption(self, code: str, guest_id: str) -> None:
        normalized = normalize_code(code)
        response = await self._request(
            "promo_registry",
            "POST",
            f"/promo-codes/{normalized}/redemptions",
            json={"hotelId": self.hotel_id, "guestId": guest_id},
        )
        self._raise_for_status("promo_registry", response)
        logger.info("Recorded redemption of %s for guest %s", normalized, guest_id)
