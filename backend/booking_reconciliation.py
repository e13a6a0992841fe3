"""
Booking reconciliation
The only code that changes seat status after a schedule is created. Every
check-then-commit runs under the layout's lock so two reservations can never
claim the same seat, and a failed reservation leaves every seat untouched.
"""
from datetime import datetime
from typing import Iterable, List, Optional, Sequence
import uuid

from database import (
    Booking, BookingStatus, Passenger, ScheduleSeatLayout, SeatStatus
)
from .errors import (
    InvalidTransitionError, SeatOwnershipError, SeatUnavailableError, UnknownSeatError
)
from .seat_layout_engine import is_bookable, seat_index

ALLOWED_TRANSITIONS = {
    BookingStatus.PENDING: {BookingStatus.CONFIRMED, BookingStatus.CANCELLED},
    BookingStatus.CONFIRMED: {BookingStatus.CANCELLED, BookingStatus.COMPLETED},
    BookingStatus.CANCELLED: set(),
    BookingStatus.COMPLETED: set(),
}

ADMIN_SEAT_STATUSES = (SeatStatus.AVAILABLE, SeatStatus.RESERVED, SeatStatus.BLOCKED)


def generate_booking_id() -> str:
    return f"bkg_{uuid.uuid4().hex}"


def transition_booking(booking: Booking, target: BookingStatus) -> Booking:
    """
    Move a booking to ``target`` if the lifecycle allows it

    Raises:
        InvalidTransitionError: If the transition is not permitted
    """
    if target not in ALLOWED_TRANSITIONS[booking.status]:
        raise InvalidTransitionError(booking.id, booking.status, target)
    booking.status = target
    booking.updated_at = datetime.now()
    return booking


def reserve_seats(layout: ScheduleSeatLayout, seat_numbers: Sequence[str],
                  passengers: Sequence[Passenger], booking_id: Optional[str] = None,
                  user_id: Optional[str] = None, schedule_id: Optional[str] = None) -> Booking:
    """
    Atomically claim seats for a new booking

    Args:
        layout: Schedule seat layout to book against
        seat_numbers: Requested seat numbers (case-sensitive)
        passengers: One passenger per seat, in the same order
        booking_id: ID for the new booking (generated when omitted)
        user_id: Booking owner (optional)
        schedule_id: Schedule the layout belongs to (optional)

    Returns:
        PENDING booking holding every requested seat

    Raises:
        ValueError: If the request itself is malformed
        UnknownSeatError: If a seat number does not exist on the layout
        SeatUnavailableError: If any seat is not bookable; lists every conflict
    """
    seat_numbers = list(seat_numbers)
    passengers = list(passengers)

    if not seat_numbers:
        raise ValueError("At least one seat must be requested")
    if len(set(seat_numbers)) != len(seat_numbers):
        raise ValueError("Seat numbers must not repeat within a booking")
    if len(passengers) != len(seat_numbers):
        raise ValueError(
            f"Expected one passenger per seat ({len(seat_numbers)}), got {len(passengers)}"
        )
    for passenger in passengers:
        if passenger.gender is None:
            raise ValueError(f"Passenger {passenger.name!r} has no gender")

    booking_id = booking_id or generate_booking_id()

    with layout.lock:
        seats = seat_index(layout)

        for seat_number in seat_numbers:
            if seat_number not in seats:
                raise UnknownSeatError(seat_number)

        conflicts = [number for number in seat_numbers if not is_bookable(seats[number])]
        if conflicts:
            raise SeatUnavailableError(conflicts)

        for seat_number, passenger in zip(seat_numbers, passengers):
            seat = seats[seat_number]
            seat.status = SeatStatus.BOOKED
            seat.occupant_gender = passenger.gender
            seat.booking_ref = booking_id

        claimed = [seats[number] for number in seat_numbers]

    now = datetime.now()
    return Booking(
        id=booking_id,
        schedule_id=schedule_id,
        seat_numbers=seat_numbers,
        passengers=[
            Passenger(name=passenger.name, gender=passenger.gender, seat_number=seat_number)
            for seat_number, passenger in zip(seat_numbers, passengers)
        ],
        status=BookingStatus.PENDING,
        total_amount=round(sum(seat.base_price for seat in claimed), 2),
        currency=claimed[0].currency,
        user_id=user_id,
        booking_date=now,
        updated_at=now
    )


def release_seats(layout: ScheduleSeatLayout, booking: Booking) -> None:
    """
    Free a booking's seats and mark it CANCELLED

    Releasing an already cancelled booking is a no-op. Seats that were
    already freed are skipped; a seat now held by another booking aborts the
    release without changing anything.

    Raises:
        InvalidTransitionError: If the booking is COMPLETED
        SeatOwnershipError: If a seat is held by a different booking
    """
    if booking.status == BookingStatus.CANCELLED:
        return
    if BookingStatus.CANCELLED not in ALLOWED_TRANSITIONS[booking.status]:
        raise InvalidTransitionError(booking.id, booking.status, BookingStatus.CANCELLED)

    with layout.lock:
        seats = seat_index(layout)

        foreign = [
            number for number in booking.seat_numbers
            if number in seats
            and seats[number].booking_ref is not None
            and seats[number].booking_ref != booking.id
        ]
        if foreign:
            raise SeatOwnershipError(booking.id, foreign)

        for number in booking.seat_numbers:
            seat = seats.get(number)
            if seat is None or seat.booking_ref != booking.id:
                continue
            seat.status = SeatStatus.AVAILABLE
            seat.occupant_gender = None
            seat.booking_ref = None

        transition_booking(booking, BookingStatus.CANCELLED)


def release_all_seats(layout: ScheduleSeatLayout) -> List[str]:
    """
    Free every booked seat on a layout, whatever booking holds it

    Returns:
        IDs of the bookings that held seats, in seat order
    """
    booking_ids: List[str] = []
    with layout.lock:
        for seat in layout.seats:
            if seat.booking_ref is None:
                continue
            if seat.booking_ref not in booking_ids:
                booking_ids.append(seat.booking_ref)
            seat.status = SeatStatus.AVAILABLE
            seat.occupant_gender = None
            seat.booking_ref = None
    return booking_ids


def confirm_booking(booking: Booking) -> Booking:
    """PENDING -> CONFIRMED; seats are already BOOKED from the reservation"""
    if booking.status != BookingStatus.PENDING:
        raise InvalidTransitionError(booking.id, booking.status, BookingStatus.CONFIRMED)
    return transition_booking(booking, BookingStatus.CONFIRMED)


def complete_booking(booking: Booking) -> Booking:
    """CONFIRMED -> COMPLETED once the journey has happened"""
    return transition_booking(booking, BookingStatus.COMPLETED)


def hold_seats(layout: ScheduleSeatLayout, seat_numbers: Iterable[str], status: SeatStatus) -> List[str]:
    """
    Administratively set seats to RESERVED, BLOCKED or back to AVAILABLE

    Booked seats cannot be held; the change is all or nothing.

    Returns:
        The seat numbers that were updated

    Raises:
        ValueError: If ``status`` is BOOKED
        UnknownSeatError: If a seat number does not exist
        SeatUnavailableError: If any seat is currently booked
    """
    if status not in ADMIN_SEAT_STATUSES:
        raise ValueError(f"Seats cannot be set to {status.value} administratively")

    seat_numbers = list(dict.fromkeys(seat_numbers))

    with layout.lock:
        seats = seat_index(layout)

        for seat_number in seat_numbers:
            if seat_number not in seats:
                raise UnknownSeatError(seat_number)

        booked = [number for number in seat_numbers if seats[number].status == SeatStatus.BOOKED]
        if booked:
            raise SeatUnavailableError(booked)

        for seat_number in seat_numbers:
            seats[seat_number].status = status

    return seat_numbers
