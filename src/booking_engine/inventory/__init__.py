"""Room products, nightly inventory and whole-stay availability."""

from .aggregator import InventoryAggregator, summarize
from .models import (
    AvailabilityResult,
    InventoryRecord,
    NightlyRate,
    Occupancy,
    RoomProduct,
    StayWindow,
    UnavailableReason,
)

__all__ = [
    "AvailabilityResult",
    "InventoryAggregator",
    "InventoryRecord",
    "NightlyRate",
    "Occupancy",
    "RoomProduct",
    "StayWindow",
    "UnavailableReason",
    "summarize",
]
