"""TOML quote profiles for manual runs of the engine."""
from __future__ import annotations

import re
import tomllib
from datetime import date, timedelta
from decimal import Decimal
from pathlib import Path
from typing import TYPE_CHECKING, Optional

from pydantic import BaseModel, Field, field_validator

from booking_engine.inventory.models import Occupancy, StayWindow

if TYPE_CHECKING:  # pragma: no cover
    from booking_engine.config.settings import Settings
    from booking_engine.session.session import GuestDetails

_RELATIVE_CHECK_IN = re.compile(r"^(?P<count>\d+)\s*(?P<unit>[dDwWmM])$")


def _blank_to_none(value: object) -> object:
    if isinstance(value, str) and not value.strip():
        return None
    return value


class SearchSection(BaseModel):
    """Stay and occupancy decoded from the profile."""

    check_in: str = Field(default="today", description="ISO 8601 date, 'today', or an offset such as '+14d'")
    nights: int = Field(default=1, ge=1)
    adults: int = Field(default=2, ge=1)
    children: int = Field(default=0, ge=0)
    rooms: int = Field(default=1, ge=1)
    room_code: Optional[str] = Field(default=None, description="Room to select; cheapest bookable when unset")
    promo_code: Optional[str] = None
    first_time_guest: bool = False
    currency: Optional[str] = None

    @field_validator("room_code", "promo_code", "currency", mode="before")
    @classmethod
    def _strip_blank(cls, value: object) -> object:
        return _blank_to_none(value)


class GuestSection(BaseModel):
    first_name: str = ""
    last_name: str = ""
    email: str = ""
    phone: str = ""
    special_requests: str = ""


class PricingSection(BaseModel):
    tax_rate: Optional[Decimal] = Field(default=None, ge=0, le=1)


class QuoteProfile(BaseModel):
    """Top-level profile decoded from TOML."""

    profile: str = Field(default="default", description="Human label used for logging")
    notes: Optional[str] = None
    search: SearchSection = Field(default_factory=SearchSection)
    guest: Optional[GuestSection] = None
    pricing: PricingSection = Field(default_factory=PricingSection)
    fixtures_path: Optional[str] = None
    log_level: Optional[str] = None

    @classmethod
    def load(cls, path: Path) -> "QuoteProfile":
        """Load a profile from a TOML file."""
        data = tomllib.loads(path.read_text())
        return cls.model_validate(data)

    # Public API -----------------------------------------------------------------

    def apply_to(self, settings: "Settings", *, base_dir: Optional[Path] = None) -> None:
        """Apply overrides to an existing Settings instance."""
        if self.search.currency:
            settings.currency = self.search.currency.strip().upper()
        if self.pricing.tax_rate is not None:
            settings.tax_rate = self.pricing.tax_rate
        if self.fixtures_path:
            settings.fixtures_path = _resolve_path(self.fixtures_path, base_dir)
        if self.log_level:
            settings.log_level = self.log_level

    def stay_window(self, today: Optional[date] = None) -> StayWindow:
        check_in = _parse_check_in(self.search.check_in, today)
        return StayWindow(check_in, check_in + timedelta(days=self.search.nights))

    def occupancy(self) -> Occupancy:
        search = self.search
        return Occupancy(adults=search.adults, children=search.children, rooms=search.rooms)

    def guest_details(self) -> Optional["GuestDetails"]:
        if self.guest is None:
            return None
        from booking_engine.session.session import GuestDetails

        return GuestDetails(**self.guest.model_dump())


def _resolve_path(raw: str, base_dir: Optional[Path]) -> Path:
    path = Path(raw).expanduser()
    if not path.is_absolute() and base_dir:
        return (base_dir / path).resolve()
    return path


def _parse_check_in(value: str, today: Optional[date] = None) -> date:
    today = today or date.today()
    text = value.strip()
    lowered = text.lower()
    if lowered == "today":
        return today
    if lowered.startswith("today+"):
        text = f"+{text.split('+', 1)[1]}"
        lowered = text.lower()
    if lowered.startswith("+"):
        match = _RELATIVE_CHECK_IN.match(lowered[1:])
        if not match:
            raise ValueError(
                f"Unsupported check_in relative format '{value}'. Use forms like '+14d', '+2w', '+1m'."
            )
        count = int(match.group("count"))
        unit = match.group("unit").lower()
        if unit == "d":
            delta = timedelta(days=count)
        elif unit == "w":
            delta = timedelta(weeks=count)
        else:
            # Months are 30-day blocks.
            delta = timedelta(days=30 * count)
        return today + delta
    try:
        return date.fromisoformat(text)
    except ValueError as exc:
        raise ValueError(
            f"Invalid check_in date '{value}'. Provide ISO format (YYYY-MM-DD) or a relative offset."
        ) from exc


__all__ = ["QuoteProfile"]
