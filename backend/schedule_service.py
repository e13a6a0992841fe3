"""
Schedule service
Creates schedules by cloning a bus's seat template and applies seat-status
changes to the stored layout with optimistic, retried writes
"""
from dataclasses import replace
from datetime import date, datetime
from typing import Callable, Iterable, List, Optional, Tuple, TypeVar
import time
import uuid

from loguru import logger

from database import (
    Booking, BookingStatus, BusSchedule, ScheduleStatus, SeatStatus, ConcurrentModificationError,
    booking_to_doc, doc_to_booking, doc_to_bus, doc_to_route, doc_to_schedule, schedule_to_doc,
    BOOKINGS, BUSES, ROUTES, SCHEDULES
)
from .booking_reconciliation import hold_seats, release_all_seats, transition_booking
from .config import Settings
from .seat_layout_engine import available_seat_count, clone_for_schedule, render_seat_map

T = TypeVar('T')

ACTIVE_BOOKING_STATUSES = (BookingStatus.PENDING, BookingStatus.CONFIRMED)


def run_with_retries(operation: Callable[[], T], max_retries: int, retry_delay: float,
                     description: str) -> T:
    """
    Run ``operation`` until it stops losing optimistic-write races

    Each attempt must reload its documents; exponential backoff between
    attempts.

    Raises:
        ValueError: If every attempt hit a concurrent modification
    """
    for attempt in range(max_retries):
        try:
            return operation()
        except ConcurrentModificationError as e:
            if attempt < max_retries - 1:
                logger.debug(f"[RETRY] {description}: {e} (attempt {attempt + 1}/{max_retries})")
                time.sleep(retry_delay * (2 ** attempt))
                continue
            logger.warning(f"[RETRY] {description} gave up after {max_retries} attempts")
            raise ValueError(f"Unable to {description} due to high concurrency. Please try again.")


class ScheduleService:
    """Service for bus schedules and their live seat layouts"""

    def __init__(self, store, settings: Optional[Settings] = None):
        self.store = store
        self.settings = settings or Settings()

    def _retry(self, operation, description):
        return run_with_retries(
            operation,
            self.settings.booking_max_retries,
            self.settings.booking_retry_delay,
            description
        )

    def load_versioned(self, schedule_id: str) -> Tuple[BusSchedule, int]:
        """Load a schedule with its store version for a later conditional save"""
        doc, version = self.store.get_versioned(SCHEDULES, schedule_id)
        if doc is None:
            raise ValueError(f"Schedule with ID {schedule_id} not found")
        return doc_to_schedule(doc), version

    def save(self, schedule: BusSchedule, expected_version: int) -> int:
        return self.store.put(SCHEDULES, schedule.id, schedule_to_doc(schedule),
                              expected_version=expected_version)

    def create_schedule(self, route_id: str, bus_id: str, departure_time: datetime,
                        arrival_time: datetime, fare: float, currency: Optional[str] = None,
                        amenities: Optional[List[str]] = None) -> BusSchedule:
        """
        Create a schedule with its own copy of the bus's seat layout

        Args:
            route_id: Route served
            bus_id: Bus operating the departure
            departure_time: Departure timestamp
            arrival_time: Arrival timestamp
            fare: Per-seat fare used when a seat carries no price of its own
            currency: Fare currency (defaults to the configured currency)
            amenities: Schedule-specific amenities

        Returns:
            Created schedule with every seat AVAILABLE
        """
        route = doc_to_route(self.store.get_by_id(ROUTES, route_id))
        if route is None:
            raise ValueError(f"Route with ID {route_id} not found")

        bus = doc_to_bus(self.store.get_by_id(BUSES, bus_id))
        if bus is None:
            raise ValueError(f"Bus with ID {bus_id} not found")
        if bus.seat_layout is None:
            raise ValueError(f"Bus {bus_id} has no seat layout")

        if arrival_time <= departure_time:
            raise ValueError("Arrival time must be after departure time")
        if fare < 0:
            raise ValueError("Fare cannot be negative")

        schedule = BusSchedule(
            id=f"schedule_{uuid.uuid4().hex[:12]}",
            route_id=route.id,
            bus_id=bus.id,
            company_id=bus.company_id,
            departure_time=departure_time,
            arrival_time=arrival_time,
            fare=fare,
            currency=currency or self.settings.default_currency,
            status=ScheduleStatus.ON_TIME,
            amenities=list(amenities or bus.amenities),
            seat_layout=clone_for_schedule(bus.seat_layout)
        )
        self.store.put(SCHEDULES, schedule.id, schedule_to_doc(schedule), expected_version=0)
        logger.info(
            f"[SCHEDULE] Created {schedule.id} on {route.origin}->{route.destination} "
            f"with {schedule.total_seats} seats"
        )
        return schedule

    def get_schedule(self, schedule_id: str) -> Optional[BusSchedule]:
        return doc_to_schedule(self.store.get_by_id(SCHEDULES, schedule_id))

    def list_schedules(self, route_id: Optional[str] = None, company_id: Optional[str] = None,
                       bus_id: Optional[str] = None, on_date: Optional[date] = None,
                       status: Optional[ScheduleStatus] = None) -> List[BusSchedule]:
        """List schedules matching every given filter, ordered by departure"""
        filters = {}
        if route_id:
            filters['routeId'] = route_id
        if company_id:
            filters['companyId'] = company_id
        if bus_id:
            filters['busId'] = bus_id
        if on_date:
            filters['departureDate'] = on_date.isoformat()
        if status:
            filters['status'] = status.value

        schedules = [doc_to_schedule(doc) for doc in self.store.query(SCHEDULES, **filters)]
        return sorted(schedules, key=lambda s: s.departure_time or datetime.min)

    def get_seat_map(self, schedule_id: str) -> str:
        schedule, _ = self.load_versioned(schedule_id)
        return render_seat_map(schedule.seat_layout)

    def available_seats(self, schedule_id: str) -> int:
        schedule, _ = self.load_versioned(schedule_id)
        return available_seat_count(schedule.seat_layout)

    def update_status(self, schedule_id: str, status: ScheduleStatus) -> BusSchedule:
        """Change the operational status; cancellation goes through cancel_schedule"""
        if status == ScheduleStatus.CANCELLED:
            raise ValueError("Use cancel_schedule to cancel a schedule")

        def attempt():
            schedule, version = self.load_versioned(schedule_id)
            if schedule.status == ScheduleStatus.CANCELLED:
                raise ValueError(f"Schedule {schedule_id} is cancelled")
            schedule.status = status
            self.save(schedule, version)
            return schedule

        return self._retry(attempt, f"update schedule {schedule_id}")

    def hold_seats(self, schedule_id: str, seat_numbers: Iterable[str], status: SeatStatus) -> BusSchedule:
        """Administratively reserve, block or reopen seats before sale"""
        seat_numbers = list(seat_numbers)

        def attempt():
            schedule, version = self.load_versioned(schedule_id)
            hold_seats(schedule.seat_layout, seat_numbers, status)
            self.save(schedule, version)
            return schedule

        schedule = self._retry(attempt, f"update seats on schedule {schedule_id}")
        logger.info(f"[SCHEDULE] Set {', '.join(seat_numbers)} to {status.value} on {schedule_id}")
        return schedule

    def cancel_booking_record(self, booking_id: str,
                              only_if: Optional[Iterable[BookingStatus]] = None) -> Optional[Booking]:
        """
        Move a booking document to CANCELLED with a versioned write

        Seats are not touched; callers free them on the layout.

        Args:
            booking_id: Booking ID
            only_if: Statuses the booking must still be in (any live status when omitted)

        Returns:
            The booking as it was before the change, or None when it is missing,
            already cancelled or no longer in one of ``only_if``

        Raises:
            InvalidTransitionError: If the booking is COMPLETED and ``only_if`` allows it
        """
        allowed = tuple(only_if) if only_if is not None else None

        def attempt():
            doc, version = self.store.get_versioned(BOOKINGS, booking_id)
            if doc is None:
                return None
            booking = doc_to_booking(doc)
            if booking.status == BookingStatus.CANCELLED:
                return None
            if allowed is not None and booking.status not in allowed:
                return None
            before = replace(booking)
            transition_booking(booking, BookingStatus.CANCELLED)
            self.store.put(BOOKINGS, booking.id, booking_to_doc(booking), expected_version=version)
            return before

        return self._retry(attempt, f"cancel booking {booking_id}")

    def cancel_schedule(self, schedule_id: str) -> int:
        """
        Cancel a schedule and every pending or confirmed booking on it

        Seats are freed from the layout itself, so a booking whose document
        is not written yet loses its seats too; ``BookingService.create_booking``
        rolls such a booking back when it sees the cancelled schedule.

        Returns:
            Number of bookings cancelled
        """
        def attempt():
            schedule, version = self.load_versioned(schedule_id)
            if schedule.status == ScheduleStatus.COMPLETED:
                raise ValueError(f"Schedule {schedule_id} has already completed")
            holders = release_all_seats(schedule.seat_layout)
            schedule.status = ScheduleStatus.CANCELLED
            self.save(schedule, version)
            return holders

        booking_ids = self._retry(attempt, f"cancel schedule {schedule_id}")
        for doc in self.store.query(BOOKINGS, scheduleId=schedule_id):
            if doc['id'] not in booking_ids:
                booking_ids.append(doc['id'])

        cancelled = 0
        for booking_id in booking_ids:
            if self.cancel_booking_record(booking_id, only_if=ACTIVE_BOOKING_STATUSES) is not None:
                cancelled += 1

        logger.info(f"[SCHEDULE] Cancelled {schedule_id} and {cancelled} bookings")
        return cancelled

    def delete_schedule(self, schedule_id: str) -> bool:
        """Delete a schedule and its layout; refused while bookings are active"""
        for doc in self.store.query(BOOKINGS, scheduleId=schedule_id):
            if doc_to_booking(doc).status in ACTIVE_BOOKING_STATUSES:
                raise ValueError(f"Cannot delete schedule {schedule_id} with active bookings")
        return self.store.delete_by_id(SCHEDULES, schedule_id)
