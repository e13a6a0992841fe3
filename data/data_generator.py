"""
Test data generator for populating the store with valid entries
Builds companies, intercity routes, buses with sample seat layouts,
schedules and paid bookings
"""
from datetime import datetime, timedelta
import random
from faker import Faker
from typing import Optional
import sys
import os

# Add parent directory to path for imports
sys.path.append(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from database import Gender, Passenger, PaymentMethod
from backend.config import Settings
from backend.fleet_service import FleetService
from backend.schedule_service import ScheduleService
from backend.booking_service import BookingService
from backend.payment_service import PaymentService, MockCardGateway, MockWalletGateway
from backend.seat_layout_engine import is_bookable
from data.sample_layouts import SAMPLE_LAYOUTS


class DataGenerator:
    """Generate realistic test data for the bus ticketing system"""

    def __init__(self, store, settings: Optional[Settings] = None, seed: Optional[int] = None):
        """
        Initialize data generator

        Args:
            store: Document store to populate
            settings: Service settings
            seed: Random seed for reproducibility
        """
        if seed is not None:
            random.seed(seed)
            Faker.seed(seed)

        self.faker = Faker()
        self.store = store
        self.settings = settings or Settings()

        self.fleet = FleetService(store, default_currency=self.settings.default_currency)
        self.schedules = ScheduleService(store, self.settings)
        self.bookings = BookingService(store, self.settings)

        # (origin, destination, distance km, duration)
        self.city_pairs = [
            ('Lahore', 'Islamabad', 380, '4h 30m'),
            ('Karachi', 'Lahore', 1200, '16h 20m'),
            ('Islamabad', 'Peshawar', 185, '2h 30m'),
            ('Lahore', 'Multan', 340, '4h 15m'),
            ('Karachi', 'Hyderabad', 165, '2h 45m'),
            ('Islamabad', 'Murree', 60, '1h 45m'),
            ('Faisalabad', 'Lahore', 185, '2h 40m'),
        ]

        self.bus_types = {
            'business': 'Business',
            'sleeper': 'Sleeper',
            'standard': 'Standard',
        }

        self.amenities = ['WiFi', 'USB Charging', 'Air Conditioning', 'Refreshments', 'Reclining Seats']

    def _mobile_number(self) -> str:
        return self.faker.numerify(text='03#########')

    def generate_companies(self, count: int = 5):
        """
        Generate bus companies

        Args:
            count: Number of companies to generate

        Returns:
            List of created companies
        """
        companies = []

        print(f"Generating {count} bus companies...")

        for _ in range(count):
            try:
                company = self.fleet.create_company(
                    name=f"{self.faker.unique.last_name()} Express",
                    headquarters=random.choice(self.city_pairs)[0],
                    contact_email=self.faker.company_email(),
                    contact_phone=self._mobile_number(),
                    bus_types=random.sample(list(self.bus_types.values()), k=2)
                )
                companies.append(company)
            except ValueError as e:
                print(f"  Error creating company: {e}")

        print(f"Generated {len(companies)} companies")
        return companies

    def generate_routes(self, company_ids: list):
        """Generate one route per known city pair, each served by a few companies"""
        routes = []

        print(f"Generating {len(self.city_pairs)} routes...")

        for origin, destination, distance, duration in self.city_pairs:
            try:
                route = self.fleet.create_route(
                    origin=origin,
                    destination=destination,
                    distance_km=distance,
                    estimated_duration=duration,
                    company_ids=random.sample(company_ids, k=min(3, len(company_ids)))
                )
                routes.append(route)
            except ValueError as e:
                print(f"  Error creating route: {e}")

        print(f"Generated {len(routes)} routes")
        return routes

    def generate_buses(self, company_ids: list, count: int = 10):
        """
        Generate buses with one of the sample seat layouts

        Args:
            company_ids: Companies to assign buses to
            count: Number of buses to generate

        Returns:
            List of created buses
        """
        buses = []

        print(f"Generating {count} buses...")

        for i in range(count):
            kind = random.choice(list(SAMPLE_LAYOUTS))
            try:
                bus = self.fleet.create_bus(
                    name=f"{self.bus_types[kind]} Coach {i + 1}",
                    registration_number=self.faker.unique.bothify(text='???-####').upper(),
                    company_id=random.choice(company_ids),
                    seat_layout=SAMPLE_LAYOUTS[kind](),
                    bus_type=self.bus_types[kind],
                    amenities=random.sample(self.amenities, k=3)
                )
                buses.append(bus)
            except ValueError as e:
                print(f"  Error creating bus: {e}")

        print(f"Generated {len(buses)} buses")
        return buses

    def generate_schedules(self, route_ids: list, bus_ids: list, count: int = 20, days_ahead: int = 30):
        """
        Generate schedules

        Args:
            route_ids: Routes to schedule
            bus_ids: Buses to operate the schedules
            count: Number of schedules to generate
            days_ahead: Number of days ahead to schedule departures

        Returns:
            List of created schedules
        """
        schedules = []

        print(f"Generating {count} schedules...")

        for i in range(count):
            try:
                days_offset = random.randint(0, days_ahead)
                hour = random.randint(5, 23)
                minute = random.choice([0, 15, 30, 45])
                departure = (datetime.now() + timedelta(days=days_offset)).replace(
                    hour=hour, minute=minute, second=0, microsecond=0
                )
                arrival = departure + timedelta(hours=random.randint(2, 16))

                schedule = self.schedules.create_schedule(
                    route_id=random.choice(route_ids),
                    bus_id=random.choice(bus_ids),
                    departure_time=departure,
                    arrival_time=arrival,
                    fare=float(random.choice(range(1500, 6001, 250)))
                )
                schedules.append(schedule)

                if (i + 1) % 10 == 0:
                    print(f"  Created {i + 1}/{count} schedules")

            except ValueError as e:
                print(f"  Error creating schedule: {e}")

        print(f"Generated {len(schedules)} schedules")
        return schedules

    def generate_bookings_and_payments(
        self,
        schedule_ids: list,
        count: int = 100,
        payment_failure_rate: float = 0.1,
        payment_processing_delay: float = 0.0,
        max_attempt_multiplier: float = 3.0,
    ):
        """
        Generate bookings with payments

        Args:
            schedule_ids: Schedules to book on
            count: Number of bookings to generate
            payment_failure_rate: Rate of payment failures (0.0 - 1.0)
            payment_processing_delay: Artificial gateway delay per payment (seconds)
            max_attempt_multiplier: Retry multiplier to ensure requested volume

        Returns:
            Tuple of (booking_ids, payment_ids) lists
        """
        booking_ids = []
        payment_ids = []
        payment_service = PaymentService(
            self.store,
            booking_service=self.bookings,
            gateways={
                PaymentMethod.CARD: MockCardGateway(payment_failure_rate, payment_processing_delay),
                PaymentMethod.MOBILE_WALLET: MockWalletGateway(payment_failure_rate, payment_processing_delay),
            },
            settings=self.settings
        )

        print(f"Generating {count} bookings and payments...")

        attempts = 0
        max_attempts = max(count, int(count * max(1.0, max_attempt_multiplier)))

        while len(booking_ids) < count and attempts < max_attempts:
            attempts += 1
            try:
                schedule = self.schedules.get_schedule(random.choice(schedule_ids))
                open_seats = [
                    seat.seat_number for seat in schedule.seat_layout.seats if is_bookable(seat)
                ]
                if not open_seats:
                    continue

                seat_numbers = random.sample(open_seats, k=min(len(open_seats), random.randint(1, 3)))
                passengers = []
                for _ in seat_numbers:
                    gender = random.choice([Gender.MALE, Gender.FEMALE])
                    name = self.faker.name_male() if gender == Gender.MALE else self.faker.name_female()
                    passengers.append(Passenger(name=name, gender=gender))

                booking = self.bookings.create_booking(
                    schedule_id=schedule.id,
                    seat_numbers=seat_numbers,
                    passengers=passengers,
                    user_id=f"user_{self.faker.uuid4()[:8]}"
                )
                booking_ids.append(booking.id)

                method = random.choice([PaymentMethod.CARD, PaymentMethod.MOBILE_WALLET])
                payer = {'name': passengers[0].name}
                if method == PaymentMethod.MOBILE_WALLET:
                    payer['mobileNumber'] = self._mobile_number()
                else:
                    payer['email'] = self.faker.email()

                # Payment failed - this is expected sometimes
                try:
                    payment, _ = payment_service.process_booking_payment(booking.id, method, payer)
                    payment_ids.append(payment.id)
                except ValueError:
                    pass

                if len(booking_ids) % 50 == 0:
                    print(f"  Created {len(booking_ids)}/{count} bookings")

            except ValueError as e:
                # Lost seat races are expected; anything else is worth showing
                if 'not available' not in str(e):
                    print(f"  Error creating booking: {e}")

        if len(booking_ids) < count:
            print(
                f"Warning: requested {count} bookings but only created {len(booking_ids)}"
                f" after {attempts} attempts. Consider adding more schedules."
            )

        print(f"Generated {len(booking_ids)} bookings and {len(payment_ids)} payments")
        return booking_ids, payment_ids

    def generate_sample_dataset(self, companies: int = 5, buses: int = 10,
                                schedules: int = 20, bookings: int = 100):
        """
        Generate a complete sample dataset

        Returns:
            Dictionary with all generated data
        """
        print("=" * 60)
        print("GENERATING SAMPLE DATASET")
        print("=" * 60)

        company_list = self.generate_companies(count=companies)
        company_ids = [c.id for c in company_list]

        route_list = self.generate_routes(company_ids)
        bus_list = self.generate_buses(company_ids, count=buses)

        schedule_list = self.generate_schedules(
            route_ids=[r.id for r in route_list],
            bus_ids=[b.id for b in bus_list],
            count=schedules
        )

        booking_ids, payment_ids = self.generate_bookings_and_payments(
            schedule_ids=[s.id for s in schedule_list],
            count=bookings,
            payment_failure_rate=self.settings.card_failure_rate,
        )

        print("=" * 60)
        print("DATASET GENERATION COMPLETE")
        print("=" * 60)
        print(f"Companies: {len(company_list)}")
        print(f"Routes: {len(route_list)}")
        print(f"Buses: {len(bus_list)}")
        print(f"Schedules: {len(schedule_list)}")
        print(f"Bookings: {len(booking_ids)}")
        print(f"Payments: {len(payment_ids)}")
        print("=" * 60)

        return {
            'companies': company_list,
            'routes': route_list,
            'buses': bus_list,
            'schedules': schedule_list,
            'booking_ids': booking_ids,
            'payment_ids': payment_ids
        }
