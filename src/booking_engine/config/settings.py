"""Runtime configuration for the booking engine.

Relies on pydantic-settings so that environment variables (prefixed with
``BOOKING_ENGINE_``) can override defaults.
"""
from __future__ import annotations

from decimal import Decimal
from pathlib import Path
from typing import Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Captures runtime configuration for the engine and its provider adapters."""

    tax_rate: Decimal = Field(
        default=Decimal("0.18"),
        description="Tax applied to the discounted subtotal (0.18 = 18%)",
    )
    currency: str = Field(default="INR", description="Currency quotes are produced in")
    currency_exponent: int = Field(
        default=2, ge=0, le=4, description="Number of minor-unit digits for display"
    )

    log_level: str = Field(default="INFO")
    log_dir: Optional[Path] = Field(
        default=None, description="Directory for booking_engine.log; stream-only when unset"
    )

    api_base_url: str = Field(
        default="http://localhost:5000/api/v1",
        description="Base URL of the inventory/rates/promo HTTP API",
    )
    hotel_id: Optional[str] = Field(default=None, description="Hotel identifier sent with API calls")
    api_token: Optional[str] = Field(default=None, description="Bearer token for the HTTP API")
    api_timeout_s: float = Field(default=10.0, gt=0)

    max_concurrent_lookups: int = Field(
        default=8, description="Upper bound on concurrent per-product inventory lookups"
    )
    booking_reference_prefix: str = Field(default="ENH")
    fixtures_path: Optional[Path] = Field(
        default=None, description="JSON fixture catalog used instead of the HTTP API"
    )

    model_config = SettingsConfigDict(
        env_prefix="BOOKING_ENGINE_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    @field_validator("tax_rate")
    def _validate_tax_rate(cls, value: Decimal) -> Decimal:
        if value < 0 or value > 1:
            raise ValueError("tax_rate must be between 0 and 1")
        return value

    @field_validator("currency")
    def _normalise_currency(cls, value: str) -> str:
        code = value.strip().upper()
        if len(code) != 3 or not code.isalpha():
            raise ValueError("currency must be a three-letter ISO code")
        return code

    @field_validator("max_concurrent_lookups")
    def _validate_concurrency(cls, value: int) -> int:
        if value <= 0:
            raise ValueError("max_concurrent_lookups must be positive")
        return value

    @field_validator("log_dir", "fixtures_path", mode="before")
    def _expand_optional_path(cls, value: str | Path | None) -> Optional[Path]:
        if value in (None, ""):
            return None
        return Path(value).expanduser()

    def api_headers(self) -> dict[str, str]:
        headers = {"Accept": "application/json"}
        if self.api_token:
            headers["Authorization"] = f"Bearer {self.api_token}"
        return headers

    def ensure_directories(self) -> None:
        """Create directories that must exist at runtime."""
        if self.log_dir is not None:
            self.log_dir.mkdir(parents=True, exist_ok=True)
