from __future__ import annotations

import json
from datetime import date
from pathlib import Path

import pytest

from booking_engine.core.errors import ExternalFetchError
from booking_engine.services.fixtures import FixedRateConverter, FixtureCatalog

SAMPLE = Path(__file__).resolve().parents[1] / "config" / "fixtures" / "sample_hotel.json"


def test_sample_catalog_loads_every_section():
    catalog = FixtureCatalog.load(SAMPLE)

    assert [product.code for product in catalog.products] == ["DLX", "STE", "FAM"]
    assert catalog.get("STE").id == "rt-suite"
    assert catalog.get("rt-family").max_occupancy == 4
    assert len(catalog.inventory["rt-deluxe"]) == 3
    assert [plan.id for plan in catalog.default_rate_plans] == ["BAR-2026", "CORP-USD"]
    assert {promo.code for promo in catalog.promos} >= {"WELCOME10", "SAVE500", "FREENIGHT"}
    assert catalog.converter().convert(4500, "USD", "INR") == 374625


def test_missing_catalog_raises(tmp_path):
    with pytest.raises(FileNotFoundError):
        FixtureCatalog.load(tmp_path / "absent.json")


def test_unknown_room_lists_known_codes():
    with pytest.raises(KeyError) as excinfo:
        FixtureCatalog.load(SAMPLE).get("PENTHOUSE")

    assert "DLX" in str(excinfo.value)


@pytest.mark.asyncio
async def test_in_memory_providers_serve_half_open_ranges(tmp_path):
    path = tmp_path / "hotel.json"
    path.write_text(
        json.dumps(
            {
                "rooms": [{"id": "r1", "code": "STD", "name": "Standard", "maxOccupancy": 2, "baseRate": 10}],
                "inventory": {
                    "r1": [
                        {"date": f"2026-03-0{day}", "totalRooms": 2, "soldRooms": 0, "blockedRooms": 0, "sellingRate": 10}
                        for day in range(1, 5)
                    ]
                },
                "ratePlans": {"byRoom": {"r1": [{"planId": "P1", "baseCurrency": "INR", "baseRates": []}]}},
                "promoCodes": [{"code": "hello", "type": "percentage", "discount": {"value": 5}}],
            }
        )
    )
    catalog = FixtureCatalog.load(path)

    records = await catalog.inventory_provider().get_inventory("r1", date(2026, 3, 2), date(2026, 3, 4))
    plans = await catalog.rate_plan_provider().get_rate_plans("r1", date(2026, 3, 2), "INR")
    registry = catalog.promo_registry()
    promo = await registry.lookup("Hello")

    assert [record.date.day for record in records] == [2, 3]
    assert [plan.id for plan in plans] == ["P1"]
    assert promo.code == "HELLO"
    assert catalog.converter() is None

    await registry.record_redemption("hello", "guest-1")
    assert (await registry.lookup("HELLO")).usage.current_usage == 1
    assert registry.redemptions_for("HELLO", "guest-1") == 1

    with pytest.raises(ExternalFetchError):
        await catalog.inventory_provider().get_inventory("missing", date(2026, 3, 1), date(2026, 3, 2))


def test_fixed_rate_converter_uses_inverse_rates():
    converter = FixedRateConverter({"USD": {"INR": "80"}})

    assert converter.convert(100, "USD", "INR") == 8000
    assert converter.convert(8000, "INR", "USD") == 100
    assert converter.convert(123, "INR", "INR") == 123
    with pytest.raises(ExternalFetchError):
        converter.convert(100, "EUR", "INR")
