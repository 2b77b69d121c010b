from __future__ import annotations

from datetime import date, timedelta
from decimal import Decimal

import pytest

from booking_engine.core.errors import (
    InsufficientAvailabilityError,
    InvalidRangeError,
    InvalidTransitionError,
    MissingGuestFieldError,
)
from booking_engine.inventory.models import AvailabilityResult, NightlyRate, Occupancy, RoomProduct, StayWindow
from booking_engine.pricing.calculator import ChargeCalculator
from booking_engine.session import BookingSession, BookingState, GuestDetails

CHECK_IN = date(2026, 12, 20)
WINDOW = StayWindow(CHECK_IN, CHECK_IN + timedelta(days=2))
DELUXE = RoomProduct(id="rt-deluxe", code="DLX", name="Deluxe Room", max_occupancy=2, base_rate=3500)
SUITE = RoomProduct(id="rt-suite", code="STE", name="Suite", max_occupancy=3, base_rate=7200)
GUEST = GuestDetails(first_name="Asha", last_name="Rao", email="asha@example.com", phone="+91 98450 00000")


def _result(product: RoomProduct, units: int, **overrides) -> AvailabilityResult:
    fields = dict(
        product=product,
        check_in=WINDOW.check_in,
        check_out=WINDOW.check_out,
        available_units=units,
        average_rate=product.base_rate,
        nightly_rates=tuple(NightlyRate(night, product.base_rate) for night in WINDOW.dates()),
    )
    fields.update(overrides)
    return AvailabilityResult(**fields)


def _quote(product: RoomProduct = DELUXE):
    return ChargeCalculator(Decimal("0.18")).compute(
        tuple(NightlyRate(night, product.base_rate) for night in WINDOW.dates()), Occupancy(), product.max_occupancy
    )


def _listed(*results: AvailabilityResult, occupancy: Occupancy | None = None) -> BookingSession:
    session = BookingSession.new(WINDOW, occupancy)
    session = session.with_results(results or (_result(DELUXE, 3), _result(SUITE, 0)), session.search_seq)
    return session.list_rooms()


def _at_guest_info() -> BookingSession:
    session = _listed().select_room("rt-deluxe")
    return session.priced(_quote()).proceed_to_guest_info()


def test_same_day_stay_is_an_invalid_range():
    with pytest.raises(InvalidRangeError):
        StayWindow(CHECK_IN, CHECK_IN)
    with pytest.raises(InvalidRangeError):
        StayWindow(CHECK_IN, CHECK_IN - timedelta(days=1))


def test_search_lists_rooms_when_something_is_bookable():
    session = _listed()

    assert session.state is BookingState.ROOMS_LISTED
    assert [result.product.id for result in session.bookable_results()] == ["rt-deluxe"]


def test_search_with_nothing_bookable_stays_in_searching():
    session = BookingSession.new(WINDOW, Occupancy(rooms=2))
    session = session.with_results(
        [
            _result(DELUXE, 1),
            _result(SUITE, 0, closed_to_arrival=True),
        ],
        session.search_seq,
    )

    with pytest.raises(InsufficientAvailabilityError) as excinfo:
        session.advance()

    assert session.state is BookingState.SEARCHING
    assert excinfo.value.reason == "sold_out"
    assert excinfo.value.details["products"] == {"rt-deluxe": "sold_out", "rt-suite": "closed_to_arrival"}


def test_unavailable_search_names_closure_rather_than_sold_out():
    session = BookingSession.new(WINDOW)
    session = session.with_results([_result(DELUXE, 0, closed_to_departure=True)], session.search_seq)

    with pytest.raises(InsufficientAvailabilityError) as excinfo:
        session.list_rooms()

    assert excinfo.value.reason == "closed_to_departure"


def test_stale_results_are_ignored():
    session = BookingSession.new(WINDOW)
    newer = session.restart(WINDOW)

    assert newer.with_results([_result(DELUXE, 3)], seq=session.search_seq) is newer
    assert newer.with_results([_result(DELUXE, 3)], seq=newer.search_seq).results


def test_selecting_a_sold_out_room_keeps_rooms_listed():
    session = _listed()

    with pytest.raises(InsufficientAvailabilityError) as excinfo:
        session.select_room("rt-suite")

    assert excinfo.value.reason == "sold_out"
    assert session.state is BookingState.ROOMS_LISTED
    assert session.selected is None


def test_selecting_more_rooms_than_available_fails():
    session = _listed(_result(DELUXE, 1), occupancy=Occupancy(rooms=1))
    session = session.restart(WINDOW, Occupancy(rooms=2))
    session = session.with_results([_result(DELUXE, 1), _result(SUITE, 2)], session.search_seq).list_rooms()

    with pytest.raises(InsufficientAvailabilityError):
        session.select_room("rt-deluxe")
    assert session.select_room("rt-suite").selected == SUITE


def test_guest_info_requires_a_quote():
    session = _listed().select_room("rt-deluxe")

    with pytest.raises(InvalidTransitionError):
        session.proceed_to_guest_info()

    assert session.priced(_quote()).proceed_to_guest_info().state is BookingState.GUEST_INFO


def test_confirmation_requires_complete_guest_details():
    session = _at_guest_info()
    incomplete = GuestDetails(first_name="Asha", last_name="", email="not-an-email", phone="")

    with pytest.raises(MissingGuestFieldError) as excinfo:
        session.proceed_to_confirmation(incomplete)

    assert set(excinfo.value.fields) == {"last_name", "email", "phone"}
    assert session.state is BookingState.GUEST_INFO
    assert session.proceed_to_confirmation(GUEST).state is BookingState.CONFIRMING


def test_confirmed_is_terminal():
    session = _at_guest_info().proceed_to_confirmation(GUEST).confirm("ENH-1-ABCDEF")

    assert session.state is BookingState.CONFIRMED
    assert session.booking_reference == "ENH-1-ABCDEF"
    with pytest.raises(InvalidTransitionError):
        session.back_to(BookingState.ROOMS_LISTED)
    with pytest.raises(InvalidTransitionError):
        session.advance()


def test_advance_never_skips_an_unmet_guard():
    sessions = [
        BookingSession.new(WINDOW),
        _listed(),
        _listed().select_room("rt-deluxe"),
        _listed().select_room("rt-deluxe").priced(_quote()),
        _at_guest_info(),
        _at_guest_info().proceed_to_confirmation(GUEST),
    ]
    for session in sessions:
        violation = session.guard_violation()
        try:
            advanced = session.advance()
        except Exception as exc:
            assert violation is not None
            assert type(exc) is type(violation)
            continue
        assert violation is None
        assert advanced.state.rank == session.state.rank + 1


def test_back_to_rooms_clears_selection_and_quote():
    session = _at_guest_info()

    back = session.back_to(BookingState.ROOMS_LISTED)

    assert back.state is BookingState.ROOMS_LISTED
    assert back.selected is None
    assert back.quote is None
    assert back.promo is None
    assert back.results == session.results


def test_back_to_searching_resets_to_a_fresh_session():
    session = _at_guest_info()

    back = session.back_to(BookingState.SEARCHING)

    assert back.state is BookingState.SEARCHING
    assert back.search_seq == session.search_seq + 1
    assert back.results == ()
    assert back.selected is None and back.quote is None and back.promo is None
    assert back.window == WINDOW


def test_cannot_go_forward_with_back_to():
    with pytest.raises(InvalidTransitionError):
        _listed().back_to(BookingState.GUEST_INFO)


def test_session_serialises_with_camel_case_names():
    payload = _at_guest_info().to_dict()

    assert payload["state"] == "GUEST_INFO"
    assert payload["selectedProduct"]["maxOccupancy"] == 2
    assert payload["quote"]["totalAmount"] == 8260
