from calendar import monthrange
from datetime import date, timedelta
from types import SimpleNamespace

import pytest

from scheduler.calendar_grid import (
    GRID_CELLS,
    build_month_grid,
    grid_bounds,
    group_events_by_date,
    month_bounds,
)


@pytest.mark.parametrize("year,month", [(y, m) for y in (2024, 2025, 2026) for m in range(1, 13)])
def test_grid_is_total(year, month):
    cells = build_month_grid(year, month)
    assert len(cells) == GRID_CELLS == 42
    assert cells[0].date.weekday() == 6  # Sunday

    for a, b in zip(cells, cells[1:]):
        assert b.date - a.date == timedelta(days=1)

    for c in cells:
        assert [c.is_previous_month, c.is_current_month, c.is_next_month].count(True) == 1

    assert sum(c.is_current_month for c in cells) == monthrange(year, month)[1]
    assert [c.date for c in cells if c.is_current_month][0] == date(year, month, 1)


def test_grid_march_2025_leads_with_february():
    cells = build_month_grid(2025, 3)
    assert cells[0].date == date(2025, 2, 23)
    assert cells[0].is_previous_month
    assert cells[6].date == date(2025, 3, 1)
    assert cells[-1].date == date(2025, 4, 5)
    assert cells[-1].is_next_month


def test_grid_month_starting_on_sunday_has_no_leading_days():
    cells = build_month_grid(2026, 2)
    assert cells[0].date == date(2026, 2, 1)
    assert not any(c.is_previous_month for c in cells)
    assert sum(c.is_next_month for c in cells) == 14


def test_months_outside_range_roll_over():
    assert build_month_grid(2025, 13) == build_month_grid(2026, 1)
    assert build_month_grid(2025, 0) == build_month_grid(2024, 12)
    assert month_bounds(2025, 14) == (date(2026, 2, 1), date(2026, 2, 28))


def test_grid_bounds_match_cells():
    start, end = grid_bounds(2025, 3)
    cells = build_month_grid(2025, 3)
    assert (start, end) == (cells[0].date, cells[-1].date)


def test_cell_serialization():
    data = build_month_grid(2025, 3)[0].model_dump(by_alias=True, mode="json")
    assert data == {
        "date": "2025-02-23",
        "isCurrentMonth": False,
        "isPreviousMonth": True,
        "isNextMonth": False,
    }


def test_group_events_by_date():
    evs = [
        SimpleNamespace(title="a", start_date=date(2025, 3, 2)),
        SimpleNamespace(title="b", start_date=date(2025, 3, 1)),
        SimpleNamespace(title="c", start_date=date(2025, 3, 2)),
    ]
    grouped = group_events_by_date(evs)
    assert list(grouped) == ["2025-03-02", "2025-03-01"]
    assert [e.title for e in grouped["2025-03-02"]] == ["a", "c"]


@pytest.mark.parametrize("year,month", [(1, 1), (9999, 12), (10000, 1), (0, 6), (9999, 13)])
def test_grid_outside_supported_years_raises_value_error(year, month):
    with pytest.raises(ValueError):
        build_month_grid(year, month)
    with pytest.raises(ValueError):
        grid_bounds(year, month)


def test_grid_at_edges_of_supported_years():
    assert build_month_grid(1, 2)[0].date == date(1, 1, 28)
    assert build_month_grid(9999, 11)[-1].date <= date(9999, 12, 31)
