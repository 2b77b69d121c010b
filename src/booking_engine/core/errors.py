"""Error taxonomy for the availability and pricing engine."""
from __future__ import annotations

from typing import Any, Iterable, Optional


class BookingEngineError(RuntimeError):
    """Base error carrying a machine-readable reason and structured details."""

    reason: str = "booking_engine_error"

    def __init__(
        self,
        message: str,
        *,
        reason: Optional[str] = None,
        details: Optional[dict[str, Any]] = None,
    ) -> None:
        super().__init__(message)
        if reason is not None:
            self.reason = reason
        self.details = details or {}

    def to_dict(self) -> dict[str, object]:
        return {
            "error": type(self).__name__,
            "reason": self.reason,
            "message": str(self),
            "details": dict(self.details),
        }


class InvalidRangeError(BookingEngineError):
    """Raised when a stay window does not cover at least one night."""

    reason = "invalid_range"


class InsufficientAvailabilityError(BookingEngineError):
    """Raised when no product (or the chosen one) can hold the requested rooms."""

    reason = "sold_out"


class InvalidPromoError(BookingEngineError):
    """Raised when a promo code fails a validation condition."""

    reason = "invalid_promo"

    def __init__(self, code: str, reason: str, message: Optional[str] = None) -> None:
        super().__init__(
            message or f"Promo code {code} rejected: {reason}",
            reason=reason,
            details={"code": code},
        )
        self.code = code


class UnsupportedPromoTypeError(BookingEngineError):
    """Raised for discount types the engine cannot price."""

    reason = "unsupported_promo_type"

    def __init__(self, code: str, promo_type: str) -> None:
        super().__init__(
            f"Promo code {code} uses unsupported discount type '{promo_type}'",
            details={"code": code, "type": promo_type},
        )
        self.code = code
        self.promo_type = promo_type


class MissingGuestFieldError(BookingEngineError):
    """Raised when required guest contact fields are empty or malformed."""

    reason = "missing_guest_fields"

    def __init__(self, fields: Iterable[str]) -> None:
        self.fields = tuple(fields)
        super().__init__(
            f"Missing or invalid guest fields: {', '.join(self.fields)}",
            details={"fields": list(self.fields)},
        )


class ExternalFetchError(BookingEngineError):
    """Wraps a failure reported by an external provider."""

    reason = "external_fetch_failed"

    def __init__(self, source: str, message: str, *, status: Optional[int] = None) -> None:
        details: dict[str, Any] = {"source": source}
        if status is not None:
            details["status"] = status
        super().__init__(f"{source}: {message}", details=details)
        self.source = source
        self.status = status


class InvalidTransitionError(BookingEngineError):
    """Raised when a session transition is not allowed from its current state."""

    reason = "invalid_transition"


class ConfirmationFailedError(BookingEngineError):
    """Raised when the external confirmation call does not succeed."""

    reason = "confirmation_failed"


__all__ = [
    "BookingEngineError",
    "ConfirmationFailedError",
    "ExternalFetchError",
    "InsufficientAvailabilityError",
    "InvalidPromoError",
    "InvalidRangeError",
    "InvalidTransitionError",
    "MissingGuestFieldError",
    "UnsupportedPromoTypeError",
]
