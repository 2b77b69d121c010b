"""Booking session value, states and the async controller driving them."""

from .controller import BookingController, generate_reference
from .session import BookingSession, GuestDetails
from .state import BookingState

__all__ = [
    "BookingController",
    "BookingSession",
    "BookingState",
    "GuestDetails",
    "generate_reference",
]
