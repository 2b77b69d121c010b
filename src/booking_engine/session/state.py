from __future__ import annotations

from enum import Enum


class BookingState(str, Enum):
    SEARCHING = "SEARCHING"
    ROOMS_LISTED = "ROOMS_LISTED"
    ROOM_SELECTED = "ROOM_SELECTED"
    GUEST_INFO = "GUEST_INFO"
    CONFIRMING = "CONFIRMING"
    CONFIRMED = "CONFIRMED"

    @property
    def rank(self) -> int:
        return _ORDER.index(self)

    @property
    def is_terminal(self) -> bool:
        return self is BookingState.CONFIRMED

    def precedes(self, other: "BookingState") -> bool:
        return self.rank < other.rank


_ORDER = tuple(BookingState)

# States in which a priced selection exists or is being built.
PRICED_STATES = frozenset({BookingState.ROOM_SELECTED, BookingState.GUEST_INFO})
