"""
Booking service with concurrent seat reservation handling
Seat claims are committed with optimistic writes on the schedule document and
retried on conflict, so a lost race surfaces as SeatUnavailableError
"""
from dataclasses import replace
from typing import Iterable, List, Optional, Sequence

from loguru import logger

from database import (
    Booking, BookingStatus, BusSchedule, Passenger, ScheduleStatus,
    booking_to_doc, doc_to_booking, BOOKINGS
)
from . import booking_reconciliation
from .booking_reconciliation import release_seats, reserve_seats
from .config import Settings
from .schedule_service import ScheduleService, run_with_retries

CLOSED_SCHEDULE_STATUSES = (ScheduleStatus.CANCELLED, ScheduleStatus.COMPLETED, ScheduleStatus.ONGOING)


class BookingService:
    """Service for booking operations with transaction safety"""

    def __init__(self, store, settings: Optional[Settings] = None):
        self.store = store
        self.settings = settings or Settings()
        self.schedules = ScheduleService(store, self.settings)

    def _retry(self, operation, description):
        return run_with_retries(
            operation,
            self.settings.booking_max_retries,
            self.settings.booking_retry_delay,
            description
        )

    def _load_versioned(self, booking_id: str):
        doc, version = self.store.get_versioned(BOOKINGS, booking_id)
        if doc is None:
            raise ValueError(f"Booking with ID {booking_id} not found")
        return doc_to_booking(doc), version

    @staticmethod
    def _price_booking(schedule: BusSchedule, booking: Booking) -> None:
        """Seats without their own price are charged the schedule fare"""
        seats = {seat.seat_number: seat for seat in schedule.seat_layout.seats}
        total = 0.0
        currencies = set()
        for seat_number in booking.seat_numbers:
            seat = seats[seat_number]
            if seat.base_price > 0:
                total += seat.base_price
                currencies.add(seat.currency)
            else:
                total += schedule.fare
                currencies.add(schedule.currency)
        if len(currencies) > 1:
            raise ValueError(
                f"Seats {', '.join(booking.seat_numbers)} are priced in different currencies: "
                f"{', '.join(sorted(currencies))}"
            )
        booking.total_amount = round(total, 2)
        booking.currency = currencies.pop()

    def create_booking(self, schedule_id: str, seat_numbers: Sequence[str],
                       passengers: Sequence[Passenger], user_id: Optional[str] = None) -> Booking:
        """
        Reserve seats on a schedule and record a PENDING booking

        Args:
            schedule_id: Schedule ID
            seat_numbers: Seat numbers to claim
            passengers: One passenger per seat, in the same order
            user_id: Booking owner (optional)

        Returns:
            Created booking

        Raises:
            UnknownSeatError: If a seat does not exist on the schedule
            SeatUnavailableError: If any seat is taken (lists all of them)
            ValueError: If the schedule is missing or closed for sale
        """
        booking_id = booking_reconciliation.generate_booking_id()

        def attempt():
            schedule, version = self.schedules.load_versioned(schedule_id)
            if schedule.status in CLOSED_SCHEDULE_STATUSES:
                raise ValueError(
                    f"Schedule {schedule_id} is not available for booking (status: {schedule.status.value})"
                )

            booking = reserve_seats(
                schedule.seat_layout, seat_numbers, passengers,
                booking_id=booking_id, user_id=user_id, schedule_id=schedule_id
            )
            self._price_booking(schedule, booking)
            self.schedules.save(schedule, version)
            return booking

        booking = self._retry(attempt, f"book seats on schedule {schedule_id}")

        try:
            self.store.put(BOOKINGS, booking.id, booking_to_doc(booking), expected_version=0)
        except Exception:
            logger.error(f"[BOOKING] Failed to record {booking.id}; releasing seats {booking.seat_numbers}")
            self._release_on_schedule(booking)
            raise

        # cancel_schedule may have swept the seats before the booking document existed
        schedule = self.schedules.get_schedule(schedule_id)
        if schedule is None or schedule.status == ScheduleStatus.CANCELLED:
            self.schedules.cancel_booking_record(booking.id)
            logger.warning(f"[BOOKING] {booking.id} rolled back; schedule {schedule_id} closed while booking")
            raise ValueError(f"Schedule {schedule_id} was cancelled while booking; booking {booking.id} cancelled")

        logger.info(
            f"[BOOKING] {booking.id} reserved {', '.join(booking.seat_numbers)} on {schedule_id} "
            f"({booking.total_amount} {booking.currency})"
        )
        return booking

    def _release_on_schedule(self, booking: Booking) -> None:
        """Free a booking's seats on its schedule and mark the booking CANCELLED"""
        def attempt():
            # A failed save must not leave ``booking`` marked CANCELLED for the next attempt
            candidate = replace(booking)
            try:
                schedule, version = self.schedules.load_versioned(booking.schedule_id)
            except ValueError:
                # Schedule already deleted; nothing left to free
                booking_reconciliation.transition_booking(candidate, BookingStatus.CANCELLED)
                return candidate
            release_seats(schedule.seat_layout, candidate)
            self.schedules.save(schedule, version)
            return candidate

        released = self._retry(attempt, f"release seats for booking {booking.id}")
        booking.status = released.status
        booking.updated_at = released.updated_at

    def get_booking(self, booking_id: str) -> Optional[Booking]:
        return doc_to_booking(self.store.get_by_id(BOOKINGS, booking_id))

    def list_bookings(self, schedule_id: Optional[str] = None, user_id: Optional[str] = None,
                      status: Optional[BookingStatus] = None, limit: int = 100,
                      offset: int = 0) -> List[Booking]:
        """
        List bookings with filters

        Args:
            schedule_id: Filter by schedule ID (optional)
            user_id: Filter by user ID (optional)
            status: Filter by status (optional)
            limit: Maximum number of bookings to return
            offset: Number of bookings to skip

        Returns:
            List of bookings, newest first
        """
        filters = {}
        if schedule_id:
            filters['scheduleId'] = schedule_id
        if user_id:
            filters['userId'] = user_id
        if status:
            filters['status'] = status.value

        bookings = [doc_to_booking(doc) for doc in self.store.query(BOOKINGS, **filters)]
        bookings.sort(key=lambda b: b.booking_date, reverse=True)
        return bookings[offset:offset + limit]

    def confirm_booking(self, booking_id: str) -> Booking:
        """
        Confirm a pending booking after payment

        Raises:
            InvalidTransitionError: If the booking is no longer PENDING
            ValueError: If the booking's schedule has been cancelled
        """
        def attempt():
            booking, version = self._load_versioned(booking_id)
            schedule = self.schedules.get_schedule(booking.schedule_id)
            if schedule is not None and schedule.status == ScheduleStatus.CANCELLED:
                raise ValueError(f"Schedule {booking.schedule_id} is cancelled")
            booking_reconciliation.confirm_booking(booking)
            self.store.put(BOOKINGS, booking.id, booking_to_doc(booking), expected_version=version)
            return booking

        booking = self._retry(attempt, f"confirm booking {booking_id}")
        logger.info(f"[BOOKING] {booking_id} confirmed")
        return booking

    def complete_booking(self, booking_id: str) -> Booking:
        """Mark a confirmed booking as travelled"""
        def attempt():
            booking, version = self._load_versioned(booking_id)
            booking_reconciliation.complete_booking(booking)
            self.store.put(BOOKINGS, booking.id, booking_to_doc(booking), expected_version=version)
            return booking

        return self._retry(attempt, f"complete booking {booking_id}")

    def cancel_booking(self, booking_id: str,
                       only_if: Optional[Iterable[BookingStatus]] = None) -> Booking:
        """
        Cancel a booking and free its seats

        The booking document is cancelled first with a versioned write, so a
        confirm racing this call either lands before it or fails. Cancelling
        an already cancelled booking returns it unchanged.

        Args:
            booking_id: Booking ID
            only_if: Statuses the booking must still be in; otherwise it is
                returned untouched

        Raises:
            InvalidTransitionError: If the booking is COMPLETED
        """
        self._load_versioned(booking_id)

        before = self.schedules.cancel_booking_record(booking_id, only_if)
        if before is None:
            return self.get_booking(booking_id)

        self._release_on_schedule(before)
        logger.info(f"[BOOKING] {booking_id} cancelled; released {', '.join(before.seat_numbers)}")
        return self.get_booking(booking_id)
