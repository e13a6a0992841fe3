"""Database package initialization"""
from .models import (
    Seat, ScheduledSeat, SeatLayoutTemplate, ScheduleSeatLayout, Passenger, Booking,
    BusCompany, Route, Bus, BusSchedule, Payment,
    SeatCategory, SeatStatus, Gender, BookingStatus, ScheduleStatus, PaymentStatus, PaymentMethod,
    seat_to_doc, doc_to_seat, doc_to_scheduled_seat, template_to_doc, doc_to_template,
    schedule_layout_to_doc, doc_to_schedule_layout, booking_to_doc, doc_to_booking,
    company_to_doc, doc_to_company, route_to_doc, doc_to_route, bus_to_doc, doc_to_bus,
    schedule_to_doc, doc_to_schedule, payment_to_doc, doc_to_payment
)
from .database import DatabaseManager
from .document_store import (
    DocumentStore, MemoryDocumentStore, PostgresDocumentStore, ConcurrentModificationError,
    COMPANIES, ROUTES, BUSES, SCHEDULES, BOOKINGS, PAYMENTS
)

__all__ = [
    'Seat', 'ScheduledSeat', 'SeatLayoutTemplate', 'ScheduleSeatLayout', 'Passenger', 'Booking',
    'BusCompany', 'Route', 'Bus', 'BusSchedule', 'Payment',
    'SeatCategory', 'SeatStatus', 'Gender', 'BookingStatus', 'ScheduleStatus', 'PaymentStatus',
    'PaymentMethod',
    'seat_to_doc', 'doc_to_seat', 'doc_to_scheduled_seat', 'template_to_doc', 'doc_to_template',
    'schedule_layout_to_doc', 'doc_to_schedule_layout', 'booking_to_doc', 'doc_to_booking',
    'company_to_doc', 'doc_to_company', 'route_to_doc', 'doc_to_route', 'bus_to_doc', 'doc_to_bus',
    'schedule_to_doc', 'doc_to_schedule', 'payment_to_doc', 'doc_to_payment',
    'DatabaseManager',
    'DocumentStore', 'MemoryDocumentStore', 'PostgresDocumentStore', 'ConcurrentModificationError',
    'COMPANIES', 'ROUTES', 'BUSES', 'SCHEDULES', 'BOOKINGS', 'PAYMENTS'
]
