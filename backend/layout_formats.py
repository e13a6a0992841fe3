"""
Normalisation of incoming seat layout documents

Layouts arrive in several shapes: the grid as a list of rows or as a
``{"row0": [...], "row1": [...]}`` map, the seat category under ``type`` or
``category``, prices under ``price`` or ``basePrice`` and accessibility as
``isHandicapped`` or ``isAccessible``. Everything is parsed into a single
SeatLayoutTemplate here; nothing downstream sees the raw variants.
"""
import re
from typing import Dict, List, Optional, Tuple

from database import Seat, SeatCategory, SeatLayoutTemplate
from .seat_layout_engine import is_aisle_marker

_ROW_KEY = re.compile(r'^row[_\s-]?(\d+)$', re.IGNORECASE)

_CATEGORY_ALIASES = {
    'WINDOW': SeatCategory.WINDOW,
    'AISLE': SeatCategory.AISLE,
    'MIDDLE': SeatCategory.MIDDLE,
    'BERTH': SeatCategory.BERTH,
    'LOWER_BERTH': SeatCategory.BERTH,
    'UPPER_BERTH': SeatCategory.BERTH,
    'SLEEPER': SeatCategory.BERTH,
}


def parse_grid(raw_grid) -> List[List[str]]:
    """
    Parse a grid given as a list of rows or a row-keyed map

    ``None`` cells become the empty aisle marker. Row-keyed maps are ordered
    by the number in the key, so ``row10`` sorts after ``row9``.
    """
    if raw_grid is None:
        return []

    if isinstance(raw_grid, dict):
        keyed: List[Tuple[int, list]] = []
        for key, cells in raw_grid.items():
            match = _ROW_KEY.match(str(key))
            if not match:
                raise ValueError(f"Unrecognised grid row key: {key!r}")
            keyed.append((int(match.group(1)), cells))
        keyed.sort(key=lambda item: item[0])

        expected = list(range(len(keyed)))
        if [index for index, _ in keyed] != expected:
            raise ValueError("Grid row keys must be contiguous starting at row0")
        rows = [cells for _, cells in keyed]
    elif isinstance(raw_grid, (list, tuple)):
        rows = list(raw_grid)
    else:
        raise ValueError(f"Unsupported grid type: {type(raw_grid).__name__}")

    return [['' if cell is None else str(cell) for cell in row] for row in rows]


def parse_category(value: Optional[str]) -> Optional[SeatCategory]:
    """Map a category/type string (any case) to SeatCategory"""
    if value is None or value == '':
        return None
    category = _CATEGORY_ALIASES.get(str(value).strip().upper())
    if category is None:
        raise ValueError(f"Unknown seat category: {value!r}")
    return category


def _grid_positions(grid: List[List[str]]) -> Dict[str, Tuple[int, int]]:
    positions = {}
    for row_index, row in enumerate(grid):
        for column_index, label in enumerate(row):
            if not is_aisle_marker(label):
                positions.setdefault(label, (row_index, column_index))
    return positions


def parse_seat(raw: dict, positions: Dict[str, Tuple[int, int]], default_currency: str = 'PKR') -> Seat:
    """Parse one seat entry, deriving row/column from the grid when absent"""
    seat_number = raw.get('seatNumber')
    if seat_number is None:
        raise ValueError(f"Seat entry without seatNumber: {raw!r}")
    seat_number = str(seat_number)

    row = raw.get('row')
    column = raw.get('column')
    if row is None or column is None:
        derived = positions.get(seat_number)
        if derived is not None:
            row = derived[0] if row is None else row
            column = derived[1] if column is None else column

    price = raw.get('basePrice', raw.get('price'))
    accessible = raw.get('isAccessible', raw.get('isHandicapped', False))

    return Seat(
        id=raw.get('id'),
        seat_number=seat_number,
        row=int(row) if row is not None else None,
        column=int(column) if column is not None else None,
        category=parse_category(raw.get('category', raw.get('type'))),
        base_price=float(price) if price is not None else 0.0,
        currency=raw.get('currency') or default_currency,
        is_accessible=bool(accessible)
    )


def parse_template(raw: dict, default_currency: str = 'PKR') -> SeatLayoutTemplate:
    """
    Parse a raw layout document into a SeatLayoutTemplate

    The result is not validated; run ``validate_template`` on it.

    Args:
        raw: Layout document in any supported shape
        default_currency: Currency for seats that do not name one

    Raises:
        ValueError: If the document cannot be interpreted at all
    """
    if not isinstance(raw, dict):
        raise ValueError("Seat layout must be a mapping")

    grid = parse_grid(raw.get('grid', raw.get('layout')))
    positions = _grid_positions(grid)

    rows = raw.get('rows')
    columns = raw.get('columns')
    if rows is None or columns is None:
        raise ValueError("Seat layout must declare rows and columns")

    return SeatLayoutTemplate(
        layout_id=raw.get('layoutId') or raw.get('id'),
        name=raw.get('name'),
        rows=int(rows),
        columns=int(columns),
        grid=grid,
        seats=[parse_seat(seat, positions, default_currency) for seat in raw.get('seats', [])]
    )
