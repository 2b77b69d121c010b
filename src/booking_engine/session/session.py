"""Immutable booking session value and its guarded transitions."""
from __future__ import annotations

import logging
import re
from dataclasses import dataclass, replace
from typing import List, Optional, Sequence, Tuple

from booking_engine.core.errors import (
    BookingEngineError,
    InsufficientAvailabilityError,
    InvalidTransitionError,
    MissingGuestFieldError,
)
from booking_engine.inventory.models import (
    AvailabilityResult,
    Occupancy,
    RoomProduct,
    StayWindow,
    UnavailableReason,
)
from booking_engine.pricing.models import PricingQuote
from booking_engine.promos.models import PromoCode, PromoResult
from booking_engine.rates.models import RatePlan

from .state import PRICED_STATES, BookingState

logger = logging.getLogger(__name__)

EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")

# Order in which a failed search picks its headline reason.
REASON_PRIORITY = (
    UnavailableReason.SOLD_OUT,
    UnavailableReason.CLOSED_TO_ARRIVAL,
    UnavailableReason.CLOSED_TO_DEPARTURE,
    UnavailableReason.STOP_SELL,
    UnavailableReason.STAY_RESTRICTION,
    UnavailableReason.NO_INVENTORY,
)


@dataclass(frozen=True, slots=True)
class GuestDetails:
    first_name: str = ""
    last_name: str = ""
    email: str = ""
    phone: str = ""
    special_requests: str = ""
    guest_id: Optional[str] = None

    def missing_fields(self) -> List[str]:
        missing = [
            name
            for name in ("first_name", "last_name", "email", "phone")
            if not getattr(self, name).strip()
        ]
        if "email" not in missing and not EMAIL_PATTERN.match(self.email.strip()):
            missing.append("email")
        return missing

    def to_dict(self) -> dict[str, object]:
        return {
            "firstName": self.first_name,
            "lastName": self.last_name,
            "email": self.email,
            "phone": self.phone,
            "specialRequests": self.special_requests,
            "guestId": self.guest_id,
        }


def insufficient_availability(
    results: Sequence[AvailabilityResult], rooms: int
) -> InsufficientAvailabilityError:
    """Build the error for a search where nothing can hold ``rooms`` rooms."""
    reasons = {
        result.product.id: (result.unavailable_reason or UnavailableReason.SOLD_OUT).value
        for result in results
    }
    present = set(reasons.values())
    headline = next(
        (reason for reason in REASON_PRIORITY if reason.value in present),
        UnavailableReason.NO_INVENTORY,
    )
    return InsufficientAvailabilityError(
        f"No room can hold {rooms} room(s) for the requested stay ({headline.value})",
        reason=headline.value,
        details={"rooms": rooms, "products": reasons},
    )


@dataclass(frozen=True, slots=True)
class BookingSession:
    """One guest's path from search to confirmation.

    Transitions never mutate; they return a new session or raise. A raised
    transition leaves the caller holding the unchanged previous value.
    """

    state: BookingState = BookingState.SEARCHING
    search_seq: int = 0
    window: Optional[StayWindow] = None
    occupancy: Occupancy = Occupancy()
    results: Tuple[AvailabilityResult, ...] = ()
    selected: Optional[RoomProduct] = None
    rate_plan: Optional[RatePlan] = None
    quote: Optional[PricingQuote] = None
    promo: Optional[PromoCode] = None
    promo_rejection: Optional[PromoResult] = None
    guest: Optional[GuestDetails] = None
    is_first_time_guest: bool = False
    guest_redemptions: int = 0
    booking_reference: Optional[str] = None

    # -- search ---------------------------------------------------------

    @classmethod
    def new(cls, window: StayWindow, occupancy: Optional[Occupancy] = None) -> "BookingSession":
        return cls(search_seq=1, window=window, occupancy=occupancy or Occupancy())

    def restart(self, window: StayWindow, occupancy: Optional[Occupancy] = None) -> "BookingSession":
        """Fresh session for a new search; only the sequence number carries over."""
        return BookingSession(
            search_seq=self.search_seq + 1,
            window=window,
            occupancy=occupancy or self.occupancy,
        )

    def with_results(self, results: Sequence[AvailabilityResult], seq: int) -> "BookingSession":
        if seq != self.search_seq or self.state is not BookingState.SEARCHING:
            logger.debug("Discarding results for search %s (current %s)", seq, self.search_seq)
            return self
        return replace(self, results=tuple(results))

    def bookable_results(self) -> List[AvailabilityResult]:
        return [result for result in self.results if result.is_bookable(self.occupancy.rooms)]

    def result_for(self, product_id: str) -> Optional[AvailabilityResult]:
        for result in self.results:
            if result.product.id == product_id:
                return result
        return None

    # -- guards ---------------------------------------------------------

    def guard_violation(self) -> Optional[BookingEngineError]:
        """The error blocking the exit from the current state, if any."""
        state = self.state
        if state is BookingState.SEARCHING:
            if self.window is None:
                return InvalidTransitionError("No stay dates have been searched")
            if not self.bookable_results():
                return insufficient_availability(self.results, self.occupancy.rooms)
            return None
        if state is BookingState.ROOMS_LISTED:
            return InvalidTransitionError("Select a room to continue")
        if state is BookingState.ROOM_SELECTED:
            if self.quote is None:
                return InvalidTransitionError("The selected room has not been priced yet")
            return None
        if state is BookingState.GUEST_INFO:
            missing = (self.guest or GuestDetails()).missing_fields()
            return MissingGuestFieldError(missing) if missing else None
        if state is BookingState.CONFIRMING:
            return InvalidTransitionError("Awaiting external confirmation")
        return InvalidTransitionError("Booking is already confirmed")

    def advance(self) -> "BookingSession":
        """Move to the next state, raising when the exit guard does not hold."""
        violation = self.guard_violation()
        if violation is not None:
            raise violation
        nxt = {
            BookingState.SEARCHING: BookingState.ROOMS_LISTED,
            BookingState.ROOM_SELECTED: BookingState.GUEST_INFO,
            BookingState.GUEST_INFO: BookingState.CONFIRMING,
        }[self.state]
        logger.info("Session %s: %s → %s", self.search_seq, self.state.value, nxt.value)
        return replace(self, state=nxt)

    def list_rooms(self) -> "BookingSession":
        self._require(BookingState.SEARCHING)
        return self.advance()

    def proceed_to_guest_info(self) -> "BookingSession":
        self._require(BookingState.ROOM_SELECTED)
        return self.advance()

    def proceed_to_confirmation(self, guest: Optional[GuestDetails] = None) -> "BookingSession":
        self._require(BookingState.GUEST_INFO)
        session = self.with_guest(guest) if guest is not None else self
        return session.advance()

    # -- selection and pricing -------------------------------------------

    def select_room(self, product_id: str) -> "BookingSession":
        self._require(BookingState.ROOMS_LISTED, BookingState.ROOM_SELECTED)
        result = self.result_for(product_id)
        rooms = self.occupancy.rooms
        if result is None:
            raise InsufficientAvailabilityError(
                f"Room {product_id} was not part of this search",
                reason=UnavailableReason.NO_INVENTORY.value,
                details={"productId": product_id, "rooms": rooms},
            )
        if not result.is_bookable(rooms):
            reason = result.unavailable_reason or UnavailableReason.SOLD_OUT
            raise InsufficientAvailabilityError(
                f"{result.product.name} cannot hold {rooms} room(s): {reason.value}",
                reason=reason.value,
                details={"productId": product_id, "rooms": rooms, "availableUnits": result.available_units},
            )
        logger.info("Session %s: selected %s", self.search_seq, result.product.code)
        return replace(
            self,
            state=BookingState.ROOM_SELECTED,
            selected=result.product,
            rate_plan=None,
            quote=None,
            promo_rejection=None,
        )

    def priced(
        self,
        quote: PricingQuote,
        *,
        rate_plan: Optional[RatePlan] = None,
        promo: Optional[PromoCode] = None,
        promo_rejection: Optional[PromoResult] = None,
        occupancy: Optional[Occupancy] = None,
    ) -> "BookingSession":
        """Attach a freshly computed quote together with the inputs it was built from."""
        self._require(*PRICED_STATES)
        return replace(
            self,
            quote=quote,
            rate_plan=rate_plan,
            promo=promo,
            promo_rejection=promo_rejection,
            occupancy=occupancy or self.occupancy,
        )

    def with_guest_history(self, *, is_first_time_guest: bool, guest_redemptions: int) -> "BookingSession":
        return replace(self, is_first_time_guest=is_first_time_guest, guest_redemptions=guest_redemptions)

    def with_guest(self, guest: GuestDetails) -> "BookingSession":
        self._require(BookingState.GUEST_INFO)
        return replace(self, guest=guest)

    # -- confirmation and navigation ---------------------------------------

    def confirm(self, reference: str) -> "BookingSession":
        self._require(BookingState.CONFIRMING)
        logger.info("Session %s: confirmed as %s", self.search_seq, reference)
        return replace(self, state=BookingState.CONFIRMED, booking_reference=reference)

    def back_to(self, target: BookingState) -> "BookingSession":
        if self.state.is_terminal:
            raise InvalidTransitionError("A confirmed booking cannot be reopened")
        if not target.precedes(self.state):
            raise InvalidTransitionError(
                f"Cannot go back from {self.state.value} to {target.value}",
                details={"from": self.state.value, "to": target.value},
            )
        logger.info("Session %s: back %s → %s", self.search_seq, self.state.value, target.value)
        if target is BookingState.SEARCHING:
            if self.window is None:
                raise InvalidTransitionError("No stay dates have been searched")
            return self.restart(self.window, self.occupancy)
        if target is BookingState.ROOMS_LISTED:
            return replace(
                self,
                state=target,
                selected=None,
                rate_plan=None,
                quote=None,
                promo=None,
                promo_rejection=None,
            )
        return replace(self, state=target)

    def _require(self, *states: BookingState) -> None:
        if self.state not in states:
            raise InvalidTransitionError(
                f"Not allowed in state {self.state.value}",
                details={"state": self.state.value, "allowed": [state.value for state in states]},
            )

    def to_dict(self) -> dict[str, object]:
        return {
            "state": self.state.value,
            "searchSeq": self.search_seq,
            "stay": self.window.to_dict() if self.window else None,
            "occupancy": self.occupancy.to_dict(),
            "results": [result.to_dict() for result in self.results],
            "selectedProduct": self.selected.to_dict() if self.selected else None,
            "ratePlan": self.rate_plan.id if self.rate_plan else None,
            "quote": self.quote.to_dict() if self.quote else None,
            "promoCode": self.promo.code if self.promo else None,
            "promoRejection": self.promo_rejection.to_dict() if self.promo_rejection else None,
            "guest": self.guest.to_dict() if self.guest else None,
            "bookingReference": self.booking_reference,
        }
