"""Pytest configuration and fixtures."""
import os
import sys
from datetime import datetime, timedelta

import pytest

# Add parent directory to path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from database import (
    DatabaseManager, MemoryDocumentStore, PostgresDocumentStore,
    Seat, SeatCategory, SeatLayoutTemplate
)
from backend.config import Settings
from backend.fleet_service import FleetService
from backend.schedule_service import ScheduleService
from backend.booking_service import BookingService
from backend.payment_service import PaymentService, MockCardGateway, MockWalletGateway
from database import PaymentMethod


def build_template(rows: int = 10, price: float = 0.0, layout_id: str = 'layout_test_10x4') -> SeatLayoutTemplate:
    """
    Build a rows x 4 template where every row reads ``[nA, nB, "", nC]``

    Column 2 is the aisle; seats carry ``price`` as their base price.
    """
    grid = []
    seats = []
    for row in range(rows):
        labels = [f"{row + 1}A", f"{row + 1}B", f"{row + 1}C"]
        grid.append([labels[0], labels[1], "", labels[2]])
        for label, column, category in zip(labels, (0, 1, 3),
                                           (SeatCategory.WINDOW, SeatCategory.AISLE, SeatCategory.WINDOW)):
            seats.append(Seat(seat_number=label, row=row, column=column,
                              category=category, base_price=price))
    return SeatLayoutTemplate(layout_id=layout_id, name='Test 2+1', rows=rows, columns=4,
                              grid=grid, seats=seats)


def pytest_addoption(parser):
    """Register custom CLI options for the test suite."""
    parser.addoption(
        "--postgres",
        action="store_true",
        default=False,
        help="Run tests against a PostgreSQL document store (TEST_DATABASE_URL)",
    )


def pytest_configure(config):
    """Declare custom markers to avoid pytest warnings."""
    config.addinivalue_line(
        "markers",
        "postgres: marks tests that need PostgreSQL and only run when --postgres is supplied",
    )


def pytest_collection_modifyitems(config, items):
    """Skip PostgreSQL tests unless the dedicated flag is present."""
    if config.getoption("--postgres"):
        return

    skip_marker = pytest.mark.skip(
        reason="PostgreSQL tests only run when --postgres flag is provided",
    )
    for item in items:
        if "postgres" in item.keywords:
            item.add_marker(skip_marker)


@pytest.fixture(scope='function')
def settings():
    """Settings with fast retries and gateways that never fail on their own"""
    return Settings(
        booking_max_retries=10,
        booking_retry_delay=0.001,
        card_failure_rate=0.0,
        wallet_failure_rate=0.0,
    )


@pytest.fixture(scope='function')
def store():
    """Fresh in-memory document store."""
    return MemoryDocumentStore()


@pytest.fixture(scope='function')
def db_manager():
    """Create a test database manager with PostgreSQL test database."""
    # Use environment variable or default to local test database
    test_db_url = os.getenv('TEST_DATABASE_URL', 'postgresql://localhost/bus_ticketing_test')
    db = DatabaseManager(database_url=test_db_url)
    db.drop_tables()  # Clean slate for each test
    db.create_tables()
    yield db
    db.drop_tables()  # Cleanup after test
    db.close_all_connections()


@pytest.fixture(scope='function')
def pg_store(db_manager):
    return PostgresDocumentStore(db_manager)


@pytest.fixture(scope='function')
def fleet_service(store):
    return FleetService(store)


@pytest.fixture(scope='function')
def schedule_service(store, settings):
    return ScheduleService(store, settings)


@pytest.fixture(scope='function')
def booking_service(store, settings):
    return BookingService(store, settings)


@pytest.fixture(scope='function')
def card_gateway():
    return MockCardGateway(failure_rate=0.0)


@pytest.fixture(scope='function')
def wallet_gateway():
    return MockWalletGateway(failure_rate=0.0)


@pytest.fixture(scope='function')
def payment_service(store, booking_service, card_gateway, wallet_gateway, settings):
    return PaymentService(
        store,
        booking_service=booking_service,
        gateways={
            PaymentMethod.CARD: card_gateway,
            PaymentMethod.MOBILE_WALLET: wallet_gateway,
        },
        settings=settings
    )


@pytest.fixture(scope='function')
def test_company(fleet_service):
    """Create a test bus company"""
    return fleet_service.create_company(
        name='Daewoo Express',
        headquarters='Lahore',
        contact_email='info@daewoo.test',
        contact_phone='03001234567',
        bus_types=['Business', 'Standard']
    )


@pytest.fixture(scope='function')
def test_route(fleet_service, test_company):
    """Create a test route"""
    return fleet_service.create_route(
        origin='Lahore',
        destination='Islamabad',
        distance_km=380,
        estimated_duration='4h 30m',
        company_ids=[test_company.id]
    )


@pytest.fixture(scope='function')
def test_bus(fleet_service, test_company):
    """Create a test bus with a 10x4 layout of unpriced seats"""
    return fleet_service.create_bus(
        name='Daewoo Premium Bus',
        registration_number='LHR-1234',
        company_id=test_company.id,
        seat_layout=build_template(),
        bus_type='Business',
        amenities=['WiFi', 'Air Conditioning']
    )


@pytest.fixture(scope='function')
def test_schedule(schedule_service, test_route, test_bus):
    """Create a test schedule a week out with a 2500 PKR fare"""
    departure = datetime.now().replace(microsecond=0) + timedelta(days=7)
    return schedule_service.create_schedule(
        route_id=test_route.id,
        bus_id=test_bus.id,
        departure_time=departure,
        arrival_time=departure + timedelta(hours=4, minutes=30),
        fare=2500.0
    )
