"""
Seat layout engine tests
Template validation, cloning into schedule layouts and row projection
"""
from __future__ import annotations

import sys
from pathlib import Path

import pytest

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from backend.errors import (
    DuplicateSeatError, LayoutError, MixedCurrencyError, OrphanSeatError, ShapeMismatchError,
    UnlabeledSeatError
)
from backend.seat_layout_engine import (
    available_seat_count, clone_for_schedule, collect_layout_errors, is_aisle_marker,
    is_bookable, render_row, render_seat_map, validate_template
)
from database import Gender, Seat, ScheduledSeat, SeatStatus
from tests.conftest import build_template


class TestValidation:
    """Test grid/seat integrity checks"""

    def test_ten_by_four_template_is_valid(self):
        """Row 0 reads 1A, 1B, aisle, 1C and validates"""
        template = build_template()
        assert template.grid[0] == ["1A", "1B", "", "1C"]
        validate_template(template)
        assert collect_layout_errors(template) == []

    def test_seat_without_grid_cell_is_orphan(self):
        """Adding 1D with no grid cell is rejected"""
        template = build_template()
        template.seats.append(Seat(seat_number="1D", row=0, column=2))

        with pytest.raises(OrphanSeatError) as exc_info:
            validate_template(template)
        assert exc_info.value.seat_number == "1D"

    def test_seat_at_wrong_position_is_orphan(self):
        template = build_template()
        template.seats[0].column = 2

        with pytest.raises(OrphanSeatError, match="declared at"):
            validate_template(template)

    def test_grid_label_without_seat_is_unlabeled(self):
        template = build_template()
        template.seats = [s for s in template.seats if s.seat_number != "1B"]

        with pytest.raises(UnlabeledSeatError) as exc_info:
            validate_template(template)
        assert (exc_info.value.row, exc_info.value.column) == (0, 1)

    def test_seat_entry_with_aisle_label_is_unlabeled(self):
        template = build_template(rows=1)
        template.seats.append(Seat(seat_number="", row=0, column=2))

        with pytest.raises(UnlabeledSeatError):
            validate_template(template)

    def test_row_count_mismatch(self):
        template = build_template(rows=3)
        template.rows = 4

        with pytest.raises(ShapeMismatchError):
            validate_template(template)

    def test_short_row_reports_row_index(self):
        template = build_template(rows=3)
        template.grid[1] = ["2A", "2B", ""]
        template.seats = [s for s in template.seats if s.seat_number != "2C"]

        errors = collect_layout_errors(template)
        shape_errors = [e for e in errors if isinstance(e, ShapeMismatchError)]
        assert len(shape_errors) == 1
        assert shape_errors[0].row == 1

    def test_duplicate_label_in_grid(self):
        template = build_template(rows=2)
        template.grid[1][0] = "1A"

        errors = collect_layout_errors(template)
        assert any(isinstance(e, DuplicateSeatError) and e.seat_number == "1A" for e in errors)

    def test_duplicate_seat_entry(self):
        template = build_template(rows=2)
        template.seats.append(Seat(seat_number="2A", row=1, column=0))

        errors = collect_layout_errors(template)
        duplicates = [e for e in errors if isinstance(e, DuplicateSeatError)]
        assert [e.seat_number for e in duplicates] == ["2A"]

    def test_collect_reports_every_problem(self):
        template = build_template(rows=2)
        template.seats.append(Seat(seat_number="9Z", row=0, column=0))
        template.seats = [s for s in template.seats if s.seat_number != "2C"]

        kinds = {type(e) for e in collect_layout_errors(template)}
        assert kinds == {OrphanSeatError, UnlabeledSeatError}

    def test_mixed_seat_currencies_rejected(self):
        template = build_template(rows=2, price=1500.0)
        template.seats[0].currency = 'USD'

        errors = collect_layout_errors(template)
        assert [type(e) for e in errors] == [MixedCurrencyError]
        assert errors[0].currencies == ['PKR', 'USD']
        with pytest.raises(MixedCurrencyError):
            clone_for_schedule(template)

    def test_unpriced_seats_do_not_count_towards_currency(self):
        template = build_template(rows=2, price=1500.0)
        template.seats[0].base_price = 0.0
        template.seats[0].currency = 'USD'

        assert collect_layout_errors(template) == []

    def test_layout_errors_are_value_errors(self):
        assert issubclass(LayoutError, ValueError)

    def test_aisle_markers(self):
        assert is_aisle_marker("")
        assert is_aisle_marker(None)
        assert is_aisle_marker("A")
        assert is_aisle_marker("a")
        assert not is_aisle_marker("1A")


class TestCloneForSchedule:
    """Test cloning templates into schedule layouts"""

    def test_clone_starts_everything_available(self):
        template = build_template()
        layout = clone_for_schedule(template)

        assert len(layout.seats) == len(template.seats)
        assert all(seat.status == SeatStatus.AVAILABLE for seat in layout.seats)
        assert all(seat.occupant_gender is None and seat.booking_ref is None for seat in layout.seats)
        assert layout.source_layout_id == template.layout_id

    def test_clone_keeps_seat_numbers_with_fresh_ids(self):
        template = build_template(rows=2)
        layout = clone_for_schedule(template)

        assert [s.seat_number for s in layout.seats] == [s.seat_number for s in template.seats]
        assert layout.layout_id != template.layout_id
        assert len({s.id for s in layout.seats}) == len(layout.seats)

    def test_two_clones_differ_only_in_ids(self):
        template = build_template(rows=3, price=1800.0)
        template.seats[1].is_accessible = True
        first = clone_for_schedule(template)
        second = clone_for_schedule(template)

        def describe(layout):
            return [
                (s.seat_number, s.row, s.column, s.category, s.base_price, s.currency, s.is_accessible)
                for s in layout.seats
            ]

        assert describe(first) == describe(second) == describe(template)
        assert first.grid == second.grid == template.grid
        assert (first.name, first.rows, first.columns) == (second.name, second.rows, second.columns)

        assert first.layout_id != second.layout_id
        assert not {s.id for s in first.seats} & {s.id for s in second.seats}

    def test_clone_is_independent_of_template(self):
        """Mutating one clone touches neither the template nor a sibling clone"""
        template = build_template(rows=2)
        first = clone_for_schedule(template)
        second = clone_for_schedule(template)

        first.grid[0][0] = "XX"
        first.seats[0].status = SeatStatus.BLOCKED

        assert template.grid[0][0] == "1A"
        assert second.grid[0][0] == "1A"
        assert second.seats[0].status == SeatStatus.AVAILABLE
        assert not isinstance(template.seats[0], ScheduledSeat)

    def test_clone_rejects_invalid_template(self):
        template = build_template(rows=1)
        template.seats.append(Seat(seat_number="1D", row=0, column=2))

        with pytest.raises(OrphanSeatError):
            clone_for_schedule(template)


class TestRendering:
    """Test row projection for seat maps"""

    def test_render_row_pairs_labels_with_seats(self):
        layout = clone_for_schedule(build_template())
        row = render_row(layout, 0)

        assert [label for label, _ in row] == ["1A", "1B", "", "1C"]
        assert row[2][1] is None
        assert row[0][1].seat_number == "1A"
        assert row[3][1].column == 3

    def test_render_row_out_of_range(self):
        layout = clone_for_schedule(build_template(rows=2))
        with pytest.raises(IndexError):
            render_row(layout, 2)
        with pytest.raises(IndexError):
            render_row(layout, -1)

    def test_seat_map_glyphs(self):
        layout = clone_for_schedule(build_template(rows=1))
        seats = {s.seat_number: s for s in layout.seats}
        seats["1A"].status = SeatStatus.BOOKED
        seats["1A"].occupant_gender = Gender.FEMALE
        seats["1A"].booking_ref = "bkg_1"
        seats["1C"].status = SeatStatus.BLOCKED

        assert render_seat_map(layout) == "1AF 1B.     1CX"

    def test_is_bookable(self):
        layout = clone_for_schedule(build_template(rows=1))
        seat = layout.seats[0]
        assert is_bookable(seat)

        seat.status = SeatStatus.RESERVED
        assert not is_bookable(seat)

        assert not is_bookable(ScheduledSeat(seat_number="A"))
        assert not is_bookable(Seat(seat_number="1A"))

    def test_available_seat_count(self):
        layout = clone_for_schedule(build_template(rows=2))
        layout.seats[0].status = SeatStatus.BLOCKED
        assert available_seat_count(layout) == 5
