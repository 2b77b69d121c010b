from __future__ import annotations

import json
from datetime import date
from decimal import Decimal

from booking_engine.inventory.models import NightlyRate, Occupancy
from booking_engine.pricing.calculator import ChargeCalculator
from booking_engine.storage.json_writer import JsonStore


def test_quote_snapshot_keeps_camel_case_names(tmp_path):
    quote = ChargeCalculator(Decimal("0.18")).compute(
        (NightlyRate(date(2026, 12, 20), 3500), NightlyRate(date(2026, 12, 21), 3500)), Occupancy(), 2
    )

    path = JsonStore(tmp_path / "quotes").write([quote.to_dict()], filename="quote.json", subdir="2026-12-20")

    payload = json.loads(path.read_text())
    assert path.parent.name == "2026-12-20"
    assert payload["generatedAt"].endswith("Z")
    assert payload["items"][0]["totalAmount"] == 8260
    assert payload["items"][0]["nightlyRates"][1] == {"date": "2026-12-21", "rate": 3500}
