"""Provider contracts and the HTTP and in-memory implementations."""

from .api_client import BookingApiClient
from .fixtures import (
    FixedRateConverter,
    FixtureCatalog,
    InMemoryInventoryProvider,
    InMemoryPromoRegistry,
    InMemoryRatePlanProvider,
)
from .providers import CurrencyConverter, InventoryProvider, PromoRegistry, RatePlanProvider

__all__ = [
    "BookingApiClient",
    "CurrencyConverter",
    "FixedRateConverter",
    "FixtureCatalog",
    "InMemoryInventoryProvider",
    "InMemoryPromoRegistry",
    "InMemoryRatePlanProvider",
    "InventoryProvider",
    "PromoRegistry",
    "RatePlanProvider",
]
