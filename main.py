"""
Main entry point for the Bus Ticketing Reservation System
Provides commands to initialise the store, seed sample data and print seat maps
"""
import argparse
import sys

from backend.config import Settings, create_store
from backend.logger_config import configure_logging
from backend.schedule_service import ScheduleService


def init_db(settings: Settings, args) -> int:
    """Create the document tables"""
    if settings.store_backend != 'postgres':
        print(f"Nothing to initialize for the {settings.store_backend} store; set STORE_BACKEND=postgres")
        return 1

    print("Initializing database...")
    create_store(settings)
    print(f"Database ready! (postgres at {settings.database_url or 'default URL'})")
    return 0


def seed(settings: Settings, args) -> int:
    """Generate sample companies, routes, buses, schedules and bookings"""
    from data.data_generator import DataGenerator

    store = create_store(settings)
    generator = DataGenerator(store, settings=settings, seed=args.seed)
    generator.generate_sample_dataset(
        companies=args.companies,
        buses=args.buses,
        schedules=args.schedules,
        bookings=args.bookings
    )
    return 0


def seat_map(settings: Settings, args) -> int:
    """Print the live seat map of one schedule"""
    store = create_store(settings)
    service = ScheduleService(store, settings)
    try:
        schedule = service.get_schedule(args.schedule_id)
        if schedule is None:
            print(f"Schedule {args.schedule_id} not found")
            return 1
        print(f"{schedule.seat_layout.name} - {schedule.available_seats}/{schedule.total_seats} seats open")
        print(service.get_seat_map(args.schedule_id))
    except ValueError as e:
        print(f"Error: {e}")
        return 1
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description='Bus ticketing reservation system')
    subparsers = parser.add_subparsers(dest='command', required=True)

    init_parser = subparsers.add_parser('init-db', help='Create the document tables')
    init_parser.set_defaults(handler=init_db)

    seed_parser = subparsers.add_parser('seed', help='Generate sample data')
    seed_parser.add_argument('--companies', type=int, default=5, help='Number of bus companies')
    seed_parser.add_argument('--buses', type=int, default=10, help='Number of buses')
    seed_parser.add_argument('--schedules', type=int, default=20, help='Number of schedules')
    seed_parser.add_argument('--bookings', type=int, default=100, help='Number of bookings')
    seed_parser.add_argument('--seed', type=int, help='Random seed for reproducibility')
    seed_parser.set_defaults(handler=seed)

    map_parser = subparsers.add_parser('seat-map', help='Print the seat map of a schedule')
    map_parser.add_argument('schedule_id', help='Schedule ID')
    map_parser.set_defaults(handler=seat_map)

    return parser


def main(argv=None) -> int:
    """Main entry point"""
    args = build_parser().parse_args(argv)
    settings = Settings.from_env()
    configure_logging(settings)
    return args.handler(settings, args)


if __name__ == '__main__':
    sys.exit(main())
