"""
Concurrency tests for simultaneous booking scenarios
Tests that no seat ever ends up with two owners
"""
from __future__ import annotations

import sys
from pathlib import Path

import pytest
from concurrent.futures import ThreadPoolExecutor, as_completed

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from backend.booking_reconciliation import release_seats, reserve_seats
from backend.errors import SeatUnavailableError
from backend.seat_layout_engine import clone_for_schedule, seat_index
from database import BookingStatus, Gender, Passenger, SeatStatus
from tests.conftest import build_template


def _passenger(i):
    return Passenger(name=f"User{i}", gender=Gender.MALE if i % 2 else Gender.FEMALE)


class TestConcurrentReservation:
    """Test the seat claim on a shared layout"""

    def test_concurrent_same_seat_reservation(self):
        """Twenty threads racing for 1A leave exactly one owner"""
        layout = clone_for_schedule(build_template(rows=2))

        def claim(i):
            try:
                return ('success', reserve_seats(layout, ["1A"], [_passenger(i)]))
            except SeatUnavailableError as e:
                return ('failed', e)

        with ThreadPoolExecutor(max_workers=20) as executor:
            results = [f.result() for f in as_completed(executor.submit(claim, i) for i in range(20))]

        successes = [r for status, r in results if status == 'success']
        failures = [r for status, r in results if status == 'failed']
        assert len(successes) == 1
        assert len(failures) == 19
        assert all(e.seat_numbers == ["1A"] for e in failures)
        assert seat_index(layout)["1A"].booking_ref == successes[0].id

    def test_overlapping_multi_seat_requests(self):
        """Requests sharing a seat can never both win"""
        layout = clone_for_schedule(build_template(rows=4))
        requests = [["1A", "1B"], ["1B", "1C"], ["1C", "2A"], ["2A", "1A"]] * 5

        def claim(index, seats):
            try:
                return reserve_seats(layout, seats, [_passenger(index), _passenger(index + 1)])
            except SeatUnavailableError:
                return None

        with ThreadPoolExecutor(max_workers=10) as executor:
            futures = [executor.submit(claim, i, seats) for i, seats in enumerate(requests)]
            bookings = [f.result() for f in futures if f.result() is not None]

        claimed = [n for b in bookings for n in b.seat_numbers]
        assert len(claimed) == len(set(claimed))

        seats = seat_index(layout)
        for booking in bookings:
            for number in booking.seat_numbers:
                assert seats[number].booking_ref == booking.id
        booked = [s for s in layout.seats if s.status == SeatStatus.BOOKED]
        assert len(booked) == len(claimed)

    def test_concurrent_reserve_and_release(self):
        """Seats released by one thread are cleanly re-claimed by others"""
        layout = clone_for_schedule(build_template(rows=2))
        originals = [reserve_seats(layout, [s.seat_number], [_passenger(i)])
                     for i, s in enumerate(layout.seats)]

        def release(booking):
            release_seats(layout, booking)
            return booking

        with ThreadPoolExecutor(max_workers=6) as executor:
            list(executor.map(release, originals))

        assert all(b.status == BookingStatus.CANCELLED for b in originals)
        assert all(s.status == SeatStatus.AVAILABLE for s in layout.seats)

        def claim(i):
            try:
                return reserve_seats(layout, ["2C"], [_passenger(i)])
            except SeatUnavailableError:
                return None

        with ThreadPoolExecutor(max_workers=8) as executor:
            winners = [b for b in executor.map(claim, range(8)) if b is not None]
        assert len(winners) == 1


class TestConcurrentBookingService:
    """Test optimistic writes through the booking service"""

    def test_concurrent_same_seat_booking(self, booking_service, schedule_service, test_schedule):
        """Test multiple users trying to book the same seat simultaneously"""
        def book(i):
            try:
                return ('success', booking_service.create_booking(
                    test_schedule.id, ["1A"], [_passenger(i)], user_id=f"user_{i}"
                ))
            except SeatUnavailableError as e:
                return ('failed', str(e))

        with ThreadPoolExecutor(max_workers=12) as executor:
            futures = [executor.submit(book, i) for i in range(12)]
            results = [f.result() for f in as_completed(futures)]

        successful = [r for status, r in results if status == 'success']
        assert len(successful) == 1

        schedule = schedule_service.get_schedule(test_schedule.id)
        seat = seat_index(schedule.seat_layout)["1A"]
        assert seat.booking_ref == successful[0].id
        assert len(booking_service.list_bookings(schedule_id=test_schedule.id)) == 1

    def test_concurrent_distinct_seats_all_succeed(self, booking_service, schedule_service, test_schedule):
        """Different seats on the same schedule all commit despite write conflicts"""
        seat_numbers = ["1A", "1B", "1C", "2A", "2B", "2C"]

        def book(i):
            return booking_service.create_booking(test_schedule.id, [seat_numbers[i]], [_passenger(i)])

        with ThreadPoolExecutor(max_workers=len(seat_numbers)) as executor:
            bookings = list(executor.map(book, range(len(seat_numbers))))

        schedule = schedule_service.get_schedule(test_schedule.id)
        seats = seat_index(schedule.seat_layout)
        for booking in bookings:
            assert seats[booking.seat_numbers[0]].booking_ref == booking.id
        assert schedule.available_seats == schedule.total_seats - len(seat_numbers)

    def test_concurrent_cancel_is_idempotent(self, booking_service, schedule_service, test_schedule):
        booking = booking_service.create_booking(
            test_schedule.id, ["3A", "3B"], [_passenger(0), _passenger(1)]
        )

        with ThreadPoolExecutor(max_workers=5) as executor:
            results = list(executor.map(lambda _: booking_service.cancel_booking(booking.id), range(5)))

        assert all(r.status == BookingStatus.CANCELLED for r in results)
        schedule = schedule_service.get_schedule(test_schedule.id)
        seats = seat_index(schedule.seat_layout)
        assert seats["3A"].status == SeatStatus.AVAILABLE
        assert seats["3B"].status == SeatStatus.AVAILABLE
