"""
Booking reconciliation tests
Seat claims, releases and the booking lifecycle against an in-memory layout
"""
from __future__ import annotations

import sys
from pathlib import Path

import pytest

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from backend.booking_reconciliation import (
    complete_booking, confirm_booking, hold_seats, release_seats, reserve_seats, transition_booking
)
from backend.errors import (
    InvalidTransitionError, SeatOwnershipError, SeatUnavailableError, UnknownSeatError
)
from backend.seat_layout_engine import clone_for_schedule, seat_index
from database import BookingStatus, Gender, Passenger, SeatStatus
from tests.conftest import build_template


@pytest.fixture
def layout():
    return clone_for_schedule(build_template(rows=3, price=1500.0))


def _passengers(*genders):
    return [Passenger(name=f"Passenger {i}", gender=g) for i, g in enumerate(genders)]


def _snapshot(layout):
    return [(s.seat_number, s.status, s.occupant_gender, s.booking_ref) for s in layout.seats]


class TestReserveSeats:
    """Test atomic seat claims"""

    def test_reserve_marks_seats_booked(self, layout):
        booking = reserve_seats(layout, ["1A", "1B"], _passengers(Gender.MALE, Gender.FEMALE),
                                user_id="user_1", schedule_id="schedule_1")

        seats = seat_index(layout)
        assert booking.status == BookingStatus.PENDING
        assert booking.seat_numbers == ["1A", "1B"]
        assert booking.total_amount == 3000.0
        assert booking.currency == 'PKR'
        assert booking.schedule_id == "schedule_1"
        assert seats["1A"].status == SeatStatus.BOOKED
        assert seats["1A"].occupant_gender == Gender.MALE
        assert seats["1B"].occupant_gender == Gender.FEMALE
        assert seats["1A"].booking_ref == booking.id
        assert [p.seat_number for p in booking.passengers] == ["1A", "1B"]

    def test_reserving_booked_seat_changes_nothing(self, layout):
        """A taken seat yields SeatUnavailable(["1A"]) and leaves every seat as it was"""
        reserve_seats(layout, ["1A"], _passengers(Gender.MALE))
        before = _snapshot(layout)

        with pytest.raises(SeatUnavailableError) as exc_info:
            reserve_seats(layout, ["1A"], _passengers(Gender.FEMALE))

        assert exc_info.value.seat_numbers == ["1A"]
        assert _snapshot(layout) == before

    def test_partial_conflict_is_all_or_nothing(self, layout):
        reserve_seats(layout, ["2B"], _passengers(Gender.MALE))
        hold_seats(layout, ["3C"], SeatStatus.BLOCKED)
        before = _snapshot(layout)

        with pytest.raises(SeatUnavailableError) as exc_info:
            reserve_seats(layout, ["2A", "2B", "3C"],
                          _passengers(Gender.MALE, Gender.MALE, Gender.FEMALE))

        assert exc_info.value.seat_numbers == ["2B", "3C"]
        assert _snapshot(layout) == before
        assert seat_index(layout)["2A"].status == SeatStatus.AVAILABLE

    def test_unknown_seat(self, layout):
        before = _snapshot(layout)
        with pytest.raises(UnknownSeatError):
            reserve_seats(layout, ["1A", "9Z"], _passengers(Gender.MALE, Gender.MALE))
        assert _snapshot(layout) == before

    def test_aisle_label_is_not_a_seat(self, layout):
        with pytest.raises(UnknownSeatError):
            reserve_seats(layout, [""], _passengers(Gender.MALE))

    def test_seat_numbers_are_case_sensitive(self, layout):
        with pytest.raises(UnknownSeatError):
            reserve_seats(layout, ["1a"], _passengers(Gender.MALE))

    @pytest.mark.parametrize("seats,passengers", [
        ([], []),
        (["1A", "1A"], [Passenger("a", Gender.MALE), Passenger("b", Gender.MALE)]),
        (["1A", "1B"], [Passenger("a", Gender.MALE)]),
        (["1A"], [Passenger("a", None)]),
    ])
    def test_malformed_requests(self, layout, seats, passengers):
        with pytest.raises(ValueError):
            reserve_seats(layout, seats, passengers)
        assert all(s.status == SeatStatus.AVAILABLE for s in layout.seats)


class TestReleaseSeats:
    """Test freeing seats"""

    def test_round_trip_restores_layout(self, layout):
        before = _snapshot(layout)
        booking = reserve_seats(layout, ["1A", "3C"], _passengers(Gender.MALE, Gender.FEMALE))

        release_seats(layout, booking)

        assert booking.status == BookingStatus.CANCELLED
        assert _snapshot(layout) == before

    def test_release_is_idempotent(self, layout):
        booking = reserve_seats(layout, ["1A"], _passengers(Gender.MALE))
        release_seats(layout, booking)
        after_first = _snapshot(layout)

        release_seats(layout, booking)

        assert _snapshot(layout) == after_first
        assert booking.status == BookingStatus.CANCELLED

    def test_release_does_not_touch_seat_rebooked_by_someone_else(self, layout):
        first = reserve_seats(layout, ["1A"], _passengers(Gender.MALE))
        stale = reserve_seats(layout, ["1B"], _passengers(Gender.MALE))
        release_seats(layout, first)
        second = reserve_seats(layout, ["1A"], _passengers(Gender.FEMALE))

        stale.seat_numbers.append("1A")
        before = _snapshot(layout)
        with pytest.raises(SeatOwnershipError) as exc_info:
            release_seats(layout, stale)

        assert exc_info.value.seat_numbers == ["1A"]
        assert _snapshot(layout) == before
        assert seat_index(layout)["1A"].booking_ref == second.id

    def test_completed_booking_cannot_be_released(self, layout):
        booking = reserve_seats(layout, ["1A"], _passengers(Gender.MALE))
        confirm_booking(booking)
        complete_booking(booking)

        with pytest.raises(InvalidTransitionError):
            release_seats(layout, booking)
        assert seat_index(layout)["1A"].status == SeatStatus.BOOKED


class TestLifecycle:
    """Test booking status transitions"""

    def test_pending_confirmed_completed(self, layout):
        booking = reserve_seats(layout, ["1A"], _passengers(Gender.MALE))
        confirm_booking(booking)
        assert booking.status == BookingStatus.CONFIRMED
        complete_booking(booking)
        assert booking.status == BookingStatus.COMPLETED

    def test_confirm_requires_pending(self, layout):
        booking = reserve_seats(layout, ["1A"], _passengers(Gender.MALE))
        confirm_booking(booking)
        with pytest.raises(InvalidTransitionError):
            confirm_booking(booking)

    def test_cannot_complete_pending(self, layout):
        booking = reserve_seats(layout, ["1A"], _passengers(Gender.MALE))
        with pytest.raises(InvalidTransitionError):
            complete_booking(booking)

    def test_cancelled_is_terminal(self, layout):
        booking = reserve_seats(layout, ["1A"], _passengers(Gender.MALE))
        release_seats(layout, booking)
        for target in (BookingStatus.PENDING, BookingStatus.CONFIRMED, BookingStatus.COMPLETED):
            with pytest.raises(InvalidTransitionError):
                transition_booking(booking, target)


class TestHoldSeats:
    """Test administrative seat holds"""

    def test_block_and_reopen(self, layout):
        hold_seats(layout, ["1A", "1B"], SeatStatus.BLOCKED)
        assert seat_index(layout)["1A"].status == SeatStatus.BLOCKED

        with pytest.raises(SeatUnavailableError):
            reserve_seats(layout, ["1A"], _passengers(Gender.MALE))

        hold_seats(layout, ["1A"], SeatStatus.AVAILABLE)
        booking = reserve_seats(layout, ["1A"], _passengers(Gender.MALE))
        assert booking.seat_numbers == ["1A"]

    def test_cannot_hold_booked_seat(self, layout):
        reserve_seats(layout, ["2A"], _passengers(Gender.MALE))
        before = _snapshot(layout)

        with pytest.raises(SeatUnavailableError):
            hold_seats(layout, ["2B", "2A"], SeatStatus.RESERVED)
        assert _snapshot(layout) == before

    def test_cannot_set_booked_administratively(self, layout):
        with pytest.raises(ValueError):
            hold_seats(layout, ["1A"], SeatStatus.BOOKED)
