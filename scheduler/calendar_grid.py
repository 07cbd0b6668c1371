# scheduler/calendar_grid.py
"""
Month view helpers.

The grid is always 6 full weeks (42 cells) starting on Sunday: trailing days
of the previous month, every day of the target month, then leading days of
the next month.
"""
from __future__ import annotations
from calendar import monthrange
from collections import OrderedDict
from datetime import date, timedelta
from typing import Dict, Iterable, List, Tuple

from schemas import CalendarCell

GRID_CELLS = 42


def _normalize_month(year: int, month: int) -> Tuple[int, int]:
    """Roll months outside 1..12 into neighbouring years (13 -> Jan next year)."""
    year += (month - 1) // 12
    month = (month - 1) % 12 + 1
    return year, month


def month_bounds(year: int, month: int) -> Tuple[date, date]:
    """First and last day of the month. ValueError for years outside 1..9999."""
    year, month = _normalize_month(year, month)
    return date(year, month, 1), date(year, month, monthrange(year, month)[1])


def grid_bounds(year: int, month: int) -> Tuple[date, date]:
    """
    First and last day shown in the 42-cell grid.
    ValueError when the grid leaves the years 1..9999 (January of year 1,
    December of 9999, or any month past either end).
    """
    first, _ = month_bounds(year, month)
    # weekday(): Monday=0 .. Sunday=6; the grid starts on Sunday
    lead = (first.weekday() + 1) % 7
    try:
        start = first - timedelta(days=lead)
        return start, start + timedelta(days=GRID_CELLS - 1)
    except OverflowError:
        raise ValueError(f"month grid for {first.year}-{first.month:02d} is outside the supported date range")


def build_month_grid(year: int, month: int) -> List[CalendarCell]:
    year, month = _normalize_month(year, month)
    first, last = month_bounds(year, month)
    start, _ = grid_bounds(year, month)

    cells: List[CalendarCell] = []
    for offset in range(GRID_CELLS):
        d = start + timedelta(days=offset)
        cells.append(CalendarCell(
            date=d,
            is_current_month=first <= d <= last,
            is_previous_month=d < first,
            is_next_month=d > last,
        ))
    return cells


def group_events_by_date(events: Iterable) -> Dict[str, List]:
    """{'YYYY-MM-DD': [events starting that day]} in first-seen date order."""
    grouped: Dict[str, List] = OrderedDict()
    for ev in events:
        key = ev.start_date.isoformat()
        grouped.setdefault(key, []).append(ev)
    return grouped
