"""
Database models for the Bus Ticketing Reservation System
Plain Python classes and enums stored as JSON documents (no ORM)
"""
from dataclasses import dataclass, field
from datetime import datetime
from typing import List, Optional
import enum
import threading


class SeatCategory(enum.Enum):
    """Seat category enumeration (informational only)"""
    WINDOW = "WINDOW"
    AISLE = "AISLE"
    MIDDLE = "MIDDLE"
    BERTH = "BERTH"


class SeatStatus(enum.Enum):
    """Live status of a seat on a schedule"""
    AVAILABLE = "AVAILABLE"
    BOOKED = "BOOKED"
    RESERVED = "RESERVED"
    BLOCKED = "BLOCKED"


class Gender(enum.Enum):
    """Passenger gender shown on the seat map"""
    MALE = "MALE"
    FEMALE = "FEMALE"


class BookingStatus(enum.Enum):
    """Booking status enumeration"""
    PENDING = "PENDING"
    CONFIRMED = "CONFIRMED"
    CANCELLED = "CANCELLED"
    COMPLETED = "COMPLETED"


class ScheduleStatus(enum.Enum):
    """Operational status of a bus schedule"""
    ON_TIME = "ON_TIME"
    DELAYED = "DELAYED"
    ONGOING = "ONGOING"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"


class PaymentStatus(enum.Enum):
    """Payment status enumeration"""
    PENDING = "PENDING"
    SUCCESS = "SUCCESS"
    FAILED = "FAILED"
    REFUNDED = "REFUNDED"


class PaymentMethod(enum.Enum):
    """Checkout payment channels"""
    CARD = "CARD"
    MOBILE_WALLET = "MOBILE_WALLET"


@dataclass
class Seat:
    """Template seat descriptor, no booking state"""
    seat_number: Optional[str] = None
    row: Optional[int] = None
    column: Optional[int] = None
    category: Optional[SeatCategory] = None
    base_price: float = 0.0
    currency: str = "PKR"
    is_accessible: bool = False
    id: Optional[str] = None

    def __repr__(self):
        return f"<Seat(number='{self.seat_number}', row={self.row}, column={self.column})>"


@dataclass
class ScheduledSeat(Seat):
    """Seat on a schedule's layout, carrying live booking state"""
    status: SeatStatus = SeatStatus.AVAILABLE
    occupant_gender: Optional[Gender] = None
    booking_ref: Optional[str] = None

    def __repr__(self):
        return (f"<ScheduledSeat(number='{self.seat_number}', status={self.status.value}, "
                f"booking_ref={self.booking_ref})>")


@dataclass
class SeatLayoutTemplate:
    """Reusable seat grid owned by a bus"""
    layout_id: Optional[str] = None
    name: Optional[str] = None
    rows: int = 0
    columns: int = 0
    grid: List[List[str]] = field(default_factory=list)
    seats: List[Seat] = field(default_factory=list)

    def __repr__(self):
        return f"<SeatLayoutTemplate(id='{self.layout_id}', name='{self.name}', {self.rows}x{self.columns})>"


@dataclass
class ScheduleSeatLayout:
    """Per-schedule copy of a template with live seat statuses"""
    layout_id: Optional[str] = None
    source_layout_id: Optional[str] = None
    name: Optional[str] = None
    rows: int = 0
    columns: int = 0
    grid: List[List[str]] = field(default_factory=list)
    seats: List[ScheduledSeat] = field(default_factory=list)

    # Guards check-and-commit of seat status changes on this instance
    lock: threading.RLock = field(default_factory=threading.RLock, init=False, repr=False, compare=False)

    def __repr__(self):
        return f"<ScheduleSeatLayout(id='{self.layout_id}', source='{self.source_layout_id}', seats={len(self.seats)})>"


@dataclass
class Passenger:
    """Traveller occupying one seat of a booking"""
    name: Optional[str] = None
    gender: Optional[Gender] = None
    seat_number: Optional[str] = None


@dataclass
class Booking:
    """Booking holding a set of seats on one schedule"""
    id: Optional[str] = None
    schedule_id: Optional[str] = None
    seat_numbers: List[str] = field(default_factory=list)
    passengers: List[Passenger] = field(default_factory=list)
    status: Optional[BookingStatus] = None
    total_amount: float = 0.0
    currency: str = "PKR"
    user_id: Optional[str] = None
    booking_date: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    def __repr__(self):
        return (f"<Booking(id='{self.id}', schedule='{self.schedule_id}', seats={self.seat_numbers}, "
                f"status={self.status.value if self.status else None})>")


@dataclass
class BusCompany:
    """Bus operator"""
    id: Optional[str] = None
    name: Optional[str] = None
    headquarters: Optional[str] = None
    contact_email: Optional[str] = None
    contact_phone: Optional[str] = None
    bus_types: List[str] = field(default_factory=list)

    def __repr__(self):
        return f"<BusCompany(id='{self.id}', name='{self.name}')>"


@dataclass
class Route:
    """Origin/destination pair served by one or more companies"""
    id: Optional[str] = None
    origin: Optional[str] = None
    destination: Optional[str] = None
    distance_km: Optional[float] = None
    estimated_duration: Optional[str] = None
    company_ids: List[str] = field(default_factory=list)

    def __repr__(self):
        return f"<Route(id='{self.id}', route='{self.origin}->{self.destination}')>"


@dataclass
class Bus:
    """Bus model owning its seat layout template"""
    id: Optional[str] = None
    name: Optional[str] = None
    registration_number: Optional[str] = None
    company_id: Optional[str] = None
    bus_type: Optional[str] = None
    amenities: List[str] = field(default_factory=list)
    seat_layout: Optional[SeatLayoutTemplate] = None

    def __repr__(self):
        return f"<Bus(id='{self.id}', registration='{self.registration_number}')>"


@dataclass
class BusSchedule:
    """A departure of a bus on a route, owning its cloned seat layout"""
    id: Optional[str] = None
    route_id: Optional[str] = None
    bus_id: Optional[str] = None
    company_id: Optional[str] = None
    departure_time: Optional[datetime] = None
    arrival_time: Optional[datetime] = None
    fare: float = 0.0
    currency: str = "PKR"
    status: ScheduleStatus = ScheduleStatus.ON_TIME
    amenities: List[str] = field(default_factory=list)
    seat_layout: Optional[ScheduleSeatLayout] = None

    @property
    def available_seats(self) -> int:
        """Number of seats currently open for sale"""
        if not self.seat_layout:
            return 0
        return sum(1 for seat in self.seat_layout.seats if seat.status == SeatStatus.AVAILABLE)

    @property
    def total_seats(self) -> int:
        return len(self.seat_layout.seats) if self.seat_layout else 0

    def __repr__(self):
        return f"<BusSchedule(id='{self.id}', route='{self.route_id}', departure={self.departure_time})>"


@dataclass
class Payment:
    """Payment model for checkout transaction records"""
    id: Optional[str] = None
    booking_id: Optional[str] = None
    transaction_id: Optional[str] = None
    amount: float = 0.0
    currency: str = "PKR"
    payment_method: Optional[PaymentMethod] = None
    status: Optional[PaymentStatus] = None
    payment_date: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    def __repr__(self):
        return (f"<Payment(id='{self.id}', transaction_id='{self.transaction_id}', amount={self.amount}, "
                f"status={self.status.value if self.status else None})>")


def _to_iso(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None


def _from_iso(value) -> Optional[datetime]:
    if not value:
        return None
    if isinstance(value, datetime):
        return value
    return datetime.fromisoformat(value)


def seat_to_doc(seat: Seat) -> dict:
    """Convert a Seat or ScheduledSeat to a document"""
    doc = {
        'id': seat.id,
        'seatNumber': seat.seat_number,
        'row': seat.row,
        'column': seat.column,
        'category': seat.category.value if seat.category else None,
        'basePrice': seat.base_price,
        'currency': seat.currency,
        'isAccessible': seat.is_accessible,
    }
    if isinstance(seat, ScheduledSeat):
        doc['status'] = seat.status.value
        doc['occupantGender'] = seat.occupant_gender.value if seat.occupant_gender else None
        doc['bookingRef'] = seat.booking_ref
    return doc


def doc_to_seat(doc) -> Seat:
    """Convert a document to a template Seat"""
    if not doc:
        return None
    return Seat(
        id=doc.get('id'),
        seat_number=doc['seatNumber'],
        row=doc['row'],
        column=doc['column'],
        category=SeatCategory(doc['category']) if doc.get('category') else None,
        base_price=float(doc.get('basePrice') or 0.0),
        currency=doc.get('currency') or 'PKR',
        is_accessible=bool(doc.get('isAccessible', False))
    )


def doc_to_scheduled_seat(doc) -> ScheduledSeat:
    """Convert a document to a ScheduledSeat, enforcing the occupant invariant"""
    if not doc:
        return None
    status = SeatStatus(doc.get('status') or SeatStatus.AVAILABLE.value)
    gender = Gender(doc['occupantGender']) if doc.get('occupantGender') else None
    booking_ref = doc.get('bookingRef')

    if status == SeatStatus.BOOKED and (gender is None or booking_ref is None):
        raise ValueError(f"Booked seat {doc['seatNumber']} is missing occupant gender or booking reference")
    if status != SeatStatus.BOOKED and (gender is not None or booking_ref is not None):
        raise ValueError(f"Seat {doc['seatNumber']} has occupant data but status {status.value}")

    return ScheduledSeat(
        id=doc.get('id'),
        seat_number=doc['seatNumber'],
        row=doc['row'],
        column=doc['column'],
        category=SeatCategory(doc['category']) if doc.get('category') else None,
        base_price=float(doc.get('basePrice') or 0.0),
        currency=doc.get('currency') or 'PKR',
        is_accessible=bool(doc.get('isAccessible', False)),
        status=status,
        occupant_gender=gender,
        booking_ref=booking_ref
    )


def template_to_doc(template: SeatLayoutTemplate) -> dict:
    """Convert a SeatLayoutTemplate to a document"""
    return {
        'layoutId': template.layout_id,
        'name': template.name,
        'rows': template.rows,
        'columns': template.columns,
        'grid': [list(row) for row in template.grid],
        'seats': [seat_to_doc(seat) for seat in template.seats],
    }


def doc_to_template(doc) -> SeatLayoutTemplate:
    """Convert a canonical document to a SeatLayoutTemplate"""
    if not doc:
        return None
    return SeatLayoutTemplate(
        layout_id=doc.get('layoutId'),
        name=doc.get('name'),
        rows=int(doc['rows']),
        columns=int(doc['columns']),
        grid=[list(row) for row in doc['grid']],
        seats=[doc_to_seat(seat) for seat in doc.get('seats', [])]
    )


def schedule_layout_to_doc(layout: ScheduleSeatLayout) -> dict:
    """Convert a ScheduleSeatLayout to a document"""
    return {
        'layoutId': layout.layout_id,
        'sourceLayoutId': layout.source_layout_id,
        'name': layout.name,
        'rows': layout.rows,
        'columns': layout.columns,
        'grid': [list(row) for row in layout.grid],
        'seats': [seat_to_doc(seat) for seat in layout.seats],
    }


def doc_to_schedule_layout(doc) -> ScheduleSeatLayout:
    """Convert a document to a ScheduleSeatLayout"""
    if not doc:
        return None
    return ScheduleSeatLayout(
        layout_id=doc.get('layoutId'),
        source_layout_id=doc.get('sourceLayoutId'),
        name=doc.get('name'),
        rows=int(doc['rows']),
        columns=int(doc['columns']),
        grid=[list(row) for row in doc['grid']],
        seats=[doc_to_scheduled_seat(seat) for seat in doc.get('seats', [])]
    )


def booking_to_doc(booking: Booking) -> dict:
    """Convert a Booking to a document"""
    return {
        'id': booking.id,
        'scheduleId': booking.schedule_id,
        'seatNumbers': list(booking.seat_numbers),
        'passengers': [
            {
                'name': p.name,
                'gender': p.gender.value if p.gender else None,
                'seatNumber': p.seat_number,
            }
            for p in booking.passengers
        ],
        'status': booking.status.value if booking.status else None,
        'totalAmount': booking.total_amount,
        'currency': booking.currency,
        'userId': booking.user_id,
        'bookingDate': _to_iso(booking.booking_date),
        'updatedAt': _to_iso(booking.updated_at),
    }


def doc_to_booking(doc) -> Booking:
    """Convert a document to a Booking"""
    if not doc:
        return None
    return Booking(
        id=doc['id'],
        schedule_id=doc['scheduleId'],
        seat_numbers=list(doc.get('seatNumbers', [])),
        passengers=[
            Passenger(
                name=p.get('name'),
                gender=Gender(p['gender']) if p.get('gender') else None,
                seat_number=p.get('seatNumber')
            )
            for p in doc.get('passengers', [])
        ],
        status=BookingStatus(doc['status']) if doc.get('status') else None,
        total_amount=float(doc.get('totalAmount') or 0.0),
        currency=doc.get('currency') or 'PKR',
        user_id=doc.get('userId'),
        booking_date=_from_iso(doc.get('bookingDate')),
        updated_at=_from_iso(doc.get('updatedAt'))
    )


def company_to_doc(company: BusCompany) -> dict:
    return {
        'id': company.id,
        'name': company.name,
        'headquarters': company.headquarters,
        'contactEmail': company.contact_email,
        'contactPhone': company.contact_phone,
        'busTypes': list(company.bus_types),
    }


def doc_to_company(doc) -> BusCompany:
    if not doc:
        return None
    return BusCompany(
        id=doc['id'],
        name=doc['name'],
        headquarters=doc.get('headquarters'),
        contact_email=doc.get('contactEmail'),
        contact_phone=doc.get('contactPhone'),
        bus_types=list(doc.get('busTypes', []))
    )


def route_to_doc(route: Route) -> dict:
    return {
        'id': route.id,
        'origin': route.origin,
        'destination': route.destination,
        'distanceKm': route.distance_km,
        'estimatedDuration': route.estimated_duration,
        'companyIds': list(route.company_ids),
    }


def doc_to_route(doc) -> Route:
    if not doc:
        return None
    return Route(
        id=doc['id'],
        origin=doc['origin'],
        destination=doc['destination'],
        distance_km=doc.get('distanceKm'),
        estimated_duration=doc.get('estimatedDuration'),
        company_ids=list(doc.get('companyIds', []))
    )


def bus_to_doc(bus: Bus) -> dict:
    """Convert a Bus and its owned template to a document"""
    return {
        'id': bus.id,
        'name': bus.name,
        'registrationNumber': bus.registration_number,
        'companyId': bus.company_id,
        'busType': bus.bus_type,
        'amenities': list(bus.amenities),
        'seatLayout': template_to_doc(bus.seat_layout) if bus.seat_layout else None,
    }


def doc_to_bus(doc) -> Bus:
    """Convert a document to a Bus"""
    if not doc:
        return None
    return Bus(
        id=doc['id'],
        name=doc.get('name'),
        registration_number=doc.get('registrationNumber'),
        company_id=doc.get('companyId'),
        bus_type=doc.get('busType'),
        amenities=list(doc.get('amenities', [])),
        seat_layout=doc_to_template(doc['seatLayout']) if doc.get('seatLayout') else None
    )


def schedule_to_doc(schedule: BusSchedule) -> dict:
    """Convert a BusSchedule and its owned layout to a document"""
    return {
        'id': schedule.id,
        'routeId': schedule.route_id,
        'busId': schedule.bus_id,
        'companyId': schedule.company_id,
        'departureTime': _to_iso(schedule.departure_time),
        'arrivalTime': _to_iso(schedule.arrival_time),
        'departureDate': schedule.departure_time.date().isoformat() if schedule.departure_time else None,
        'fare': schedule.fare,
        'currency': schedule.currency,
        'status': schedule.status.value,
        'amenities': list(schedule.amenities),
        'availableSeats': schedule.available_seats,
        'seatLayout': schedule_layout_to_doc(schedule.seat_layout) if schedule.seat_layout else None,
    }


def doc_to_schedule(doc) -> BusSchedule:
    """Convert a document to a BusSchedule (availableSeats is recomputed, not trusted)"""
    if not doc:
        return None
    return BusSchedule(
        id=doc['id'],
        route_id=doc.get('routeId'),
        bus_id=doc.get('busId'),
        company_id=doc.get('companyId'),
        departure_time=_from_iso(doc.get('departureTime')),
        arrival_time=_from_iso(doc.get('arrivalTime')),
        fare=float(doc.get('fare') or 0.0),
        currency=doc.get('currency') or 'PKR',
        status=ScheduleStatus(doc.get('status') or ScheduleStatus.ON_TIME.value),
        amenities=list(doc.get('amenities', [])),
        seat_layout=doc_to_schedule_layout(doc['seatLayout']) if doc.get('seatLayout') else None
    )


def payment_to_doc(payment: Payment) -> dict:
    return {
        'id': payment.id,
        'bookingId': payment.booking_id,
        'transactionId': payment.transaction_id,
        'amount': payment.amount,
        'currency': payment.currency,
        'paymentMethod': payment.payment_method.value if payment.payment_method else None,
        'status': payment.status.value if payment.status else None,
        'paymentDate': _to_iso(payment.payment_date),
        'updatedAt': _to_iso(payment.updated_at),
    }


def doc_to_payment(doc) -> Payment:
    if not doc:
        return None
    return Payment(
        id=doc['id'],
        booking_id=doc['bookingId'],
        transaction_id=doc.get('transactionId'),
        amount=float(doc.get('amount') or 0.0),
        currency=doc.get('currency') or 'PKR',
        payment_method=PaymentMethod(doc['paymentMethod']) if doc.get('paymentMethod') else None,
        status=PaymentStatus(doc['status']) if doc.get('status') else None,
        payment_date=_from_iso(doc.get('paymentDate')),
        updated_at=_from_iso(doc.get('updatedAt'))
    )
