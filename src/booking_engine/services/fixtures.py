"""In-memory providers and the JSON fixture catalog used for offline runs."""
from __future__ import annotations

import json
import logging
from dataclasses import replace
from datetime import date
from decimal import Decimal
from pathlib import Path
from typing import Dict, Iterable, List, Mapping, Optional, Sequence

from booking_engine.core.errors import ExternalFetchError
from booking_engine.core.money import apply_rate, to_decimal
from booking_engine.inventory.models import InventoryRecord, RoomProduct
from booking_engine.promos.models import PromoCode, normalize_code
from booking_engine.rates.models import RatePlan

from .normalizer import build_inventory_records, build_promo_code, build_rate_plans, build_room_products

logger = logging.getLogger(__name__)


class InMemoryInventoryProvider:
    """Serves nightly records from a ``product_id -> records`` mapping."""

    def __init__(self, records: Mapping[str, Iterable[InventoryRecord]]) -> None:
        self._records: Dict[str, Dict[date, InventoryRecord]] = {
            product_id: {record.date: record for record in entries} for product_id, entries in records.items()
        }

    async def get_inventory(self, product_id: str, start_date: date, end_date: date) -> List[InventoryRecord]:
        by_date = self._records.get(product_id)
        if by_date is None:
            raise ExternalFetchError("inventory", f"no inventory loaded for {product_id}")
        return [record for night, record in sorted(by_date.items()) if start_date <= night < end_date]


class InMemoryRatePlanProvider:
    """Plans listed per product id; ``default`` plans are offered to every product."""

    def __init__(
        self,
        plans: Mapping[str, Sequence[RatePlan]] | None = None,
        *,
        default: Sequence[RatePlan] = (),
    ) -> None:
        self._plans = {product_id: list(entries) for product_id, entries in (plans or {}).items()}
        self._default = list(default)

    async def get_rate_plans(self, product_id: str, on_date: date, currency: str) -> List[RatePlan]:
        return self._plans.get(product_id, []) + self._default


class InMemoryPromoRegistry:
    """Promo registry backed by a dict; codes match case-insensitively."""

    def __init__(self, promos: Iterable[PromoCode] = ()) -> None:
        self._promos: Dict[str, PromoCode] = {promo.code: promo for promo in promos}
        self.redemptions: Dict[str, List[str]] = {}

    async def lookup(self, code: str) -> Optional[PromoCode]:
        return self._promos.get(normalize_code(code))

    async def record_redemption(self, code: str, guest_id: str) -> None:
        normalized = normalize_code(code)
        promo = self._promos.get(normalized)
        if promo is None:
            raise KeyError(normalized)
        usage = replace(promo.usage, current_usage=promo.usage.current_usage + 1)
        self._promos[normalized] = replace(promo, usage=usage)
        self.redemptions.setdefault(normalized, []).append(guest_id)

    def redemptions_for(self, code: str, guest_id: str) -> int:
        return self.redemptions.get(normalize_code(code), []).count(guest_id)


class FixedRateConverter:
    """Converts minor-unit amounts with a fixed ``{from: {to: rate}}`` table."""

    def __init__(self, rates: Mapping[str, Mapping[str, Decimal | float | str]]) -> None:
        self._rates = {
            source.upper(): {target.upper(): to_decimal(rate) for target, rate in targets.items()}
            for source, targets in rates.items()
        }

    def rate(self, from_currency: str, to_currency: str) -> Decimal:
        source, target = from_currency.upper(), to_currency.upper()
        if source == target:
            return Decimal(1)
        direct = self._rates.get(source, {}).get(target)
        if direct is not None:
            return direct
        inverse = self._rates.get(target, {}).get(source)
        if inverse:
            return Decimal(1) / inverse
        raise ExternalFetchError("currency_converter", f"no rate from {source} to {target}")

    def convert(self, amount: int, from_currency: str, to_currency: str) -> int:
        return apply_rate(amount, self.rate(from_currency, to_currency))


class FixtureCatalog:
    """Room products, inventory, rate plans and promos loaded from one JSON file."""

    def __init__(
        self,
        products: Sequence[RoomProduct],
        inventory: Mapping[str, Sequence[InventoryRecord]],
        rate_plans: Mapping[str, Sequence[RatePlan]],
        promos: Sequence[PromoCode],
        *,
        default_rate_plans: Sequence[RatePlan] = (),
        exchange_rates: Optional[Mapping[str, Mapping[str, str]]] = None,
        source: Optional[Path] = None,
    ) -> None:
        self.products = list(products)
        self.inventory = dict(inventory)
        self.rate_plans = dict(rate_plans)
        self.default_rate_plans = list(default_rate_plans)
        self.promos = list(promos)
        self.exchange_rates = dict(exchange_rates or {})
        self._source = source

    @property
    def source(self) -> Optional[Path]:
        return self._source

    def get(self, key: str) -> RoomProduct:
        """Look a product up by id or code."""
        for product in self.products:
            if key in (product.id, product.code):
                return product
        known = ", ".join(product.code for product in self.products)
        raise KeyError(f"Room '{key}' not found in catalog {self._source}. Known codes: {known}")

    def inventory_provider(self) -> InMemoryInventoryProvider:
        return InMemoryInventoryProvider(self.inventory)

    def rate_plan_provider(self) -> InMemoryRatePlanProvider:
        return InMemoryRatePlanProvider(self.rate_plans, default=self.default_rate_plans)

    def promo_registry(self) -> InMemoryPromoRegistry:
        return InMemoryPromoRegistry(self.promos)

    def converter(self) -> Optional[FixedRateConverter]:
        return FixedRateConverter(self.exchange_rates) if self.exchange_rates else None

    @classmethod
    def load(cls, path: Path, *, exponent: int = 2) -> "FixtureCatalog":
        if not path.exists():
            raise FileNotFoundError(f"Fixture catalog not found at {path}")
        data = json.loads(path.read_text())
        plans = data.get("ratePlans") or {}
        catalog = cls(
            products=build_room_products(data.get("rooms", []), exponent=exponent),
            inventory={
                product_id: build_inventory_records(entries, exponent=exponent)
                for product_id, entries in (data.get("inventory") or {}).items()
            },
            rate_plans={
                product_id: build_rate_plans(entries, exponent=exponent)
                for product_id, entries in (plans.get("byRoom") or {}).items()
            },
            default_rate_plans=build_rate_plans(plans.get("default") or [], exponent=exponent),
            promos=[build_promo_code(entry, exponent=exponent) for entry in data.get("promoCodes", [])],
            exchange_rates=data.get("exchangeRates"),
            source=path,
        )
        logger.info(
            "Loaded %s rooms, %s promo codes from %s",
            len(catalog.products),
            len(catalog.promos),
            path,
        )
        return catalog
