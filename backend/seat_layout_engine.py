"""
Seat layout engine
Validates seat grid templates, clones them into per-schedule layouts and
projects layouts into rows for display
"""
from typing import Dict, List, Optional, Tuple, Union
import uuid

from database import (
    Seat, ScheduledSeat, SeatLayoutTemplate, ScheduleSeatLayout, SeatStatus, Gender
)
from .errors import (
    LayoutError, ShapeMismatchError, DuplicateSeatError, OrphanSeatError, UnlabeledSeatError,
    MixedCurrencyError
)

# Walkway cells are left empty or carry a bare "A"
AISLE_MARKERS = ('', 'A')

AnyLayout = Union[SeatLayoutTemplate, ScheduleSeatLayout]

_STATUS_GLYPHS = {
    SeatStatus.AVAILABLE: '.',
    SeatStatus.RESERVED: 'R',
    SeatStatus.BLOCKED: 'X',
}

_GENDER_GLYPHS = {
    Gender.MALE: 'M',
    Gender.FEMALE: 'F',
}


def is_aisle_marker(label: Optional[str]) -> bool:
    """Return True if a grid cell label denotes a walkway rather than a seat"""
    return label is None or label.upper() in AISLE_MARKERS


def seat_index(layout: AnyLayout) -> Dict[str, Seat]:
    """Map seat numbers to seats (last one wins on duplicates)"""
    return {seat.seat_number: seat for seat in layout.seats}


def collect_layout_errors(template: AnyLayout) -> List[LayoutError]:
    """
    Check a layout's grid against its seat list and report every problem

    Args:
        template: Seat layout template (schedule layouts are accepted too)

    Returns:
        List of LayoutError instances, empty when the layout is valid
    """
    errors: List[LayoutError] = []

    if template.rows <= 0 or template.columns <= 0:
        errors.append(ShapeMismatchError(
            f"Layout must have positive extents, got {template.rows}x{template.columns}"
        ))

    if len(template.grid) != template.rows:
        errors.append(ShapeMismatchError(
            f"Grid has {len(template.grid)} rows but layout declares {template.rows}"
        ))

    # Walk the grid, remembering where each seat label sits
    positions: Dict[str, Tuple[int, int]] = {}
    duplicates = set()
    for row_index, row in enumerate(template.grid):
        if len(row) != template.columns:
            errors.append(ShapeMismatchError(
                f"Row {row_index} has {len(row)} cells but layout declares {template.columns} columns",
                row=row_index
            ))
        for column_index, label in enumerate(row):
            if is_aisle_marker(label):
                continue
            if label in positions:
                if label not in duplicates:
                    duplicates.add(label)
                    errors.append(DuplicateSeatError(label))
                continue
            positions[label] = (row_index, column_index)

    seats_by_number: Dict[str, Seat] = {}
    for seat in template.seats:
        if is_aisle_marker(seat.seat_number):
            errors.append(UnlabeledSeatError(repr(seat.seat_number), seat.row, seat.column))
            continue
        if seat.seat_number in seats_by_number:
            if seat.seat_number not in duplicates:
                duplicates.add(seat.seat_number)
                errors.append(DuplicateSeatError(seat.seat_number))
            continue
        seats_by_number[seat.seat_number] = seat

    for label, (row_index, column_index) in positions.items():
        if label not in seats_by_number:
            errors.append(UnlabeledSeatError(label, row_index, column_index))

    for seat_number, seat in seats_by_number.items():
        position = positions.get(seat_number)
        if position is None:
            errors.append(OrphanSeatError(seat_number))
        elif (seat.row, seat.column) != position:
            errors.append(OrphanSeatError(
                seat_number,
                f"is declared at ({seat.row}, {seat.column}) but its grid cell is {position}"
            ))

    # One layout, one currency; unpriced seats fall back to the schedule fare
    currencies = {seat.currency for seat in template.seats if seat.base_price > 0}
    if len(currencies) > 1:
        errors.append(MixedCurrencyError(currencies))

    return errors


def validate_template(template: AnyLayout) -> None:
    """
    Validate grid integrity of a seat layout

    Raises:
        LayoutError: The first problem found (ShapeMismatchError, DuplicateSeatError,
            OrphanSeatError, UnlabeledSeatError or MixedCurrencyError)
    """
    errors = collect_layout_errors(template)
    if errors:
        raise errors[0]


def clone_for_schedule(template: SeatLayoutTemplate) -> ScheduleSeatLayout:
    """
    Deep-copy a bus template into an independent schedule layout

    Every seat starts AVAILABLE with no occupant. Seat numbers are kept
    verbatim; the layout and each scheduled seat get fresh ids.

    Raises:
        LayoutError: If the template is malformed
    """
    validate_template(template)

    return ScheduleSeatLayout(
        layout_id=f"layout_{uuid.uuid4().hex}",
        source_layout_id=template.layout_id,
        name=template.name,
        rows=template.rows,
        columns=template.columns,
        grid=[list(row) for row in template.grid],
        seats=[
            ScheduledSeat(
                id=f"seat_{uuid.uuid4().hex}",
                seat_number=seat.seat_number,
                row=seat.row,
                column=seat.column,
                category=seat.category,
                base_price=seat.base_price,
                currency=seat.currency,
                is_accessible=seat.is_accessible,
                status=SeatStatus.AVAILABLE,
                occupant_gender=None,
                booking_ref=None
            )
            for seat in template.seats
        ]
    )


def render_row(layout: AnyLayout, row_index: int) -> List[Tuple[str, Optional[Seat]]]:
    """
    Project one grid row into ``(label, seat)`` pairs for display

    Aisle cells yield ``(label, None)``. Does not mutate the layout.

    Raises:
        IndexError: If ``row_index`` is outside the grid
    """
    if row_index < 0 or row_index >= len(layout.grid):
        raise IndexError(f"Row {row_index} is outside a grid of {len(layout.grid)} rows")

    seats = seat_index(layout)
    return [
        (label, None if is_aisle_marker(label) else seats.get(label))
        for label in layout.grid[row_index]
    ]


def render_seat_map(layout: AnyLayout) -> str:
    """Render the whole layout as text: '.' open, M/F booked, R reserved, X blocked"""
    width = max(
        (len(label) for row in layout.grid for label in row if not is_aisle_marker(label)),
        default=1
    ) + 1

    lines = []
    for row_index in range(len(layout.grid)):
        cells = []
        for label, seat in render_row(layout, row_index):
            if seat is None:
                cells.append(' ' * width)
                continue
            status = getattr(seat, 'status', None)
            if status == SeatStatus.BOOKED:
                glyph = _GENDER_GLYPHS.get(seat.occupant_gender, '?')
            else:
                glyph = _STATUS_GLYPHS.get(status, '')
            cells.append(f"{label}{glyph}".ljust(width))
        lines.append(' '.join(cells).rstrip())
    return '\n'.join(lines)


def is_bookable(seat: Seat) -> bool:
    """True iff the seat is AVAILABLE and is a real seat, not an aisle placeholder"""
    return getattr(seat, 'status', None) == SeatStatus.AVAILABLE and not is_aisle_marker(seat.seat_number)


def available_seat_count(layout: ScheduleSeatLayout) -> int:
    return sum(1 for seat in layout.seats if is_bookable(seat))
