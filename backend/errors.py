"""
Error taxonomy for seat layouts and booking reconciliation
All errors derive from ValueError so callers that already handle service
failures keep working; subclasses carry the offending seats for the admin UI
"""
from typing import Iterable, List, Optional


class LayoutError(ValueError):
    """Structural problem in a seat layout template"""


class ShapeMismatchError(LayoutError):
    """Grid extents do not match the declared rows x columns"""

    def __init__(self, message: str, row: Optional[int] = None):
        self.row = row
        super().__init__(message)


class DuplicateSeatError(LayoutError):
    """A seat number occurs more than once in the grid or in the seat list"""

    def __init__(self, seat_number: str):
        self.seat_number = seat_number
        super().__init__(f"Seat {seat_number} appears more than once")


class OrphanSeatError(LayoutError):
    """A seat entry has no matching grid cell, or sits at the wrong position"""

    def __init__(self, seat_number: str, detail: str = "has no matching grid cell"):
        self.seat_number = seat_number
        super().__init__(f"Seat {seat_number} {detail}")


class UnlabeledSeatError(LayoutError):
    """A grid cell carries a seat label that has no seat entry"""

    def __init__(self, seat_number: str, row: int, column: int):
        self.seat_number = seat_number
        self.row = row
        self.column = column
        super().__init__(f"Grid cell ({row}, {column}) labelled {seat_number} has no seat entry")


class MixedCurrencyError(LayoutError):
    """Seats in one layout are priced in different currencies"""

    def __init__(self, currencies: Iterable[str]):
        self.currencies: List[str] = sorted(currencies)
        super().__init__(f"Layout mixes seat currencies: {', '.join(self.currencies)}")


class BookingError(ValueError):
    """Seat reservation or booking lifecycle failure"""


class UnknownSeatError(BookingError):
    """Requested seat number does not exist in the schedule's layout"""

    def __init__(self, seat_number: str):
        self.seat_number = seat_number
        super().__init__(f"Seat {seat_number} does not exist on this schedule")


class SeatUnavailableError(BookingError):
    """One or more requested seats are not available; carries every conflict"""

    def __init__(self, seat_numbers: Iterable[str]):
        self.seat_numbers: List[str] = list(seat_numbers)
        super().__init__(f"Seats not available: {', '.join(self.seat_numbers)}")


class SeatOwnershipError(BookingError):
    """A seat being released is held by a different booking"""

    def __init__(self, booking_id: str, seat_numbers: Iterable[str]):
        self.booking_id = booking_id
        self.seat_numbers: List[str] = list(seat_numbers)
        super().__init__(
            f"Booking {booking_id} does not hold seats: {', '.join(self.seat_numbers)}"
        )


class InvalidTransitionError(BookingError):
    """Booking status change not permitted by the lifecycle"""

    def __init__(self, booking_id: str, current, target):
        self.booking_id = booking_id
        self.current = current
        self.target = target
        super().__init__(
            f"Booking {booking_id} cannot move from {current.value} to {target.value}"
        )
