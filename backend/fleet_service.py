"""
Fleet management service
Handles CRUD operations for bus companies, routes and buses (with their
seat layout templates)
"""
from typing import List, Optional, Union
import uuid

from loguru import logger

from database import (
    Bus, BusCompany, Route, SeatLayoutTemplate,
    bus_to_doc, company_to_doc, doc_to_bus, doc_to_company, doc_to_route, route_to_doc,
    BUSES, COMPANIES, ROUTES, SCHEDULES
)
from .layout_formats import parse_template
from .seat_layout_engine import validate_template


def _new_id(prefix: str) -> str:
    return f"{prefix}_{uuid.uuid4().hex[:12]}"


class FleetService:
    """Service for companies, routes and buses"""

    def __init__(self, store, default_currency: str = 'PKR'):
        self.store = store
        self.default_currency = default_currency

    def create_company(self, name: str, headquarters: Optional[str] = None,
                       contact_email: Optional[str] = None, contact_phone: Optional[str] = None,
                       bus_types: Optional[List[str]] = None) -> BusCompany:
        """Create a new bus company"""
        if not name or not name.strip():
            raise ValueError("Company name is required")

        company = BusCompany(
            id=_new_id('company'),
            name=name.strip(),
            headquarters=headquarters,
            contact_email=contact_email,
            contact_phone=contact_phone,
            bus_types=list(bus_types or [])
        )
        self.store.put(COMPANIES, company.id, company_to_doc(company), expected_version=0)
        return company

    def get_company(self, company_id: str) -> Optional[BusCompany]:
        return doc_to_company(self.store.get_by_id(COMPANIES, company_id))

    def list_companies(self) -> List[BusCompany]:
        return [doc_to_company(doc) for doc in self.store.query(COMPANIES)]

    def delete_company(self, company_id: str) -> bool:
        """Delete a company that no longer operates any bus"""
        if self.store.query(BUSES, companyId=company_id):
            raise ValueError(f"Cannot delete company {company_id} while it still has buses")
        return self.store.delete_by_id(COMPANIES, company_id)

    def create_route(self, origin: str, destination: str, distance_km: Optional[float] = None,
                     estimated_duration: Optional[str] = None,
                     company_ids: Optional[List[str]] = None) -> Route:
        """
        Create a new route

        Args:
            origin: Departure city
            destination: Arrival city
            distance_km: Road distance
            estimated_duration: Human-readable travel time, e.g. "4h 30m"
            company_ids: Companies operating the route
        """
        if not origin or not destination:
            raise ValueError("Route origin and destination are required")
        if origin.strip().lower() == destination.strip().lower():
            raise ValueError("Route origin and destination must differ")
        if distance_km is not None and distance_km <= 0:
            raise ValueError("Route distance must be positive")

        for company_id in company_ids or []:
            if self.get_company(company_id) is None:
                raise ValueError(f"Company with ID {company_id} not found")

        route = Route(
            id=_new_id('route'),
            origin=origin.strip(),
            destination=destination.strip(),
            distance_km=distance_km,
            estimated_duration=estimated_duration,
            company_ids=list(company_ids or [])
        )
        self.store.put(ROUTES, route.id, route_to_doc(route), expected_version=0)
        return route

    def get_route(self, route_id: str) -> Optional[Route]:
        return doc_to_route(self.store.get_by_id(ROUTES, route_id))

    def list_routes(self, origin: Optional[str] = None, destination: Optional[str] = None) -> List[Route]:
        """List routes, optionally filtered by partial, case-insensitive city names"""
        routes = [doc_to_route(doc) for doc in self.store.query(ROUTES)]
        if origin:
            routes = [r for r in routes if origin.lower() in r.origin.lower()]
        if destination:
            routes = [r for r in routes if destination.lower() in r.destination.lower()]
        return routes

    def _parse_layout(self, seat_layout: Union[dict, SeatLayoutTemplate]) -> SeatLayoutTemplate:
        if isinstance(seat_layout, SeatLayoutTemplate):
            template = seat_layout
        else:
            template = parse_template(seat_layout, default_currency=self.default_currency)
        if not template.layout_id:
            template.layout_id = _new_id('layout')
        validate_template(template)
        return template

    def create_bus(self, name: str, registration_number: str, company_id: str,
                   seat_layout: Union[dict, SeatLayoutTemplate], bus_type: Optional[str] = None,
                   amenities: Optional[List[str]] = None) -> Bus:
        """
        Create a bus with its seat layout template

        Args:
            name: Display name
            registration_number: Unique plate/registration
            company_id: Operating company
            seat_layout: Template object or raw layout document in any supported shape
            bus_type: e.g. "Business", "Sleeper"
            amenities: Onboard amenities

        Raises:
            LayoutError: If the seat layout is malformed
            ValueError: If the company does not exist or the registration is taken
        """
        if self.get_company(company_id) is None:
            raise ValueError(f"Company with ID {company_id} not found")
        if not registration_number:
            raise ValueError("Registration number is required")
        if self.store.query(BUSES, registrationNumber=registration_number):
            raise ValueError(f"Bus with registration {registration_number} already exists")

        template = self._parse_layout(seat_layout)

        bus = Bus(
            id=_new_id('bus'),
            name=name,
            registration_number=registration_number,
            company_id=company_id,
            bus_type=bus_type,
            amenities=list(amenities or []),
            seat_layout=template
        )
        self.store.put(BUSES, bus.id, bus_to_doc(bus), expected_version=0)
        logger.info(f"[FLEET] Created bus {bus.id} ({registration_number}) with {len(template.seats)} seats")
        return bus

    def get_bus(self, bus_id: str) -> Optional[Bus]:
        return doc_to_bus(self.store.get_by_id(BUSES, bus_id))

    def list_buses(self, company_id: Optional[str] = None) -> List[Bus]:
        if company_id:
            docs = self.store.query(BUSES, companyId=company_id)
        else:
            docs = self.store.query(BUSES)
        return [doc_to_bus(doc) for doc in docs]

    def update_bus_layout(self, bus_id: str, seat_layout: Union[dict, SeatLayoutTemplate]) -> Bus:
        """
        Replace a bus's seat layout template

        Schedules already created keep their own copy of the old layout.
        """
        doc, version = self.store.get_versioned(BUSES, bus_id)
        if doc is None:
            raise ValueError(f"Bus with ID {bus_id} not found")

        bus = doc_to_bus(doc)
        bus.seat_layout = self._parse_layout(seat_layout)
        self.store.put(BUSES, bus.id, bus_to_doc(bus), expected_version=version)
        return bus

    def delete_bus(self, bus_id: str) -> bool:
        """Delete a bus and its template; refused while schedules still use the bus"""
        if self.store.query(SCHEDULES, busId=bus_id):
            raise ValueError(f"Cannot delete bus {bus_id} with existing schedules")
        return self.store.delete_by_id(BUSES, bus_id)
