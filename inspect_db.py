# inspect_db.py
from __future__ import annotations

import argparse
from datetime import date as _date, datetime as _dt
from typing import Optional, Tuple

from config import configure_logging
from crud import create_child, get_events_in_range, get_events_for_owner, list_children
from database import db_session, setup_database
from handlers.children import resolve_child_for_owner
from scheduler.calendar_grid import build_month_grid, grid_bounds, group_events_by_date


def parse_date(s: Optional[str]) -> Optional[_date]:
    if not s:
        return None
    # Accept YYYY-MM-DD, MM/DD, MM-DD
    for fmt in ("%Y-%m-%d", "%m/%d", "%m-%d"):
        try:
            dt = _dt.strptime(s, fmt)
            # If year missing, assume current year
            year = dt.year if fmt == "%Y-%m-%d" else _date.today().year
            return _date(year, dt.month, dt.day)
        except ValueError:
            continue
    raise argparse.ArgumentTypeError(f"Invalid date: {s}")


def parse_month(s: str) -> Tuple[int, int]:
    try:
        dt = _dt.strptime(s, "%Y-%m")
    except ValueError:
        raise argparse.ArgumentTypeError(f"Invalid month (want YYYY-MM): {s}")
    return dt.year, dt.month


def _when(e) -> str:
    if e.is_all_day or not e.start_time:
        return "all day"
    start = e.start_time.strftime("%H:%M")
    return f"{start}-{e.end_time.strftime('%H:%M')}" if e.end_time else start


def print_events(rows) -> None:
    print(f"{'ID':>4}  {'DATE':<10}  {'WHEN':<11}  {'CATEGORY':<16}  {'CHILD':>5}  TITLE")
    print("-" * 78)
    for e in rows:
        child = e.child_id if e.child_id is not None else "-"
        print(f"{e.id:>4}  {e.start_date.isoformat():<10}  {_when(e):<11}  {e.category:<16}  {child:>5}  {e.title}")
    print("-" * 78)
    print(f"{len(rows)} row(s).")


def print_grid(year: int, month: int, events) -> None:
    by_day = group_events_by_date(events)
    cells = build_month_grid(year, month)
    print(f"{year}-{month:02d}")
    print("  ".join(f"{d:>5}" for d in ("Sun", "Mon", "Tue", "Wed", "Thu", "Fri", "Sat")))
    for week in range(0, len(cells), 7):
        row = []
        for cell in cells[week:week + 7]:
            n = len(by_day.get(cell.date.isoformat(), []))
            day = f"{cell.date.day:>2}" if cell.is_current_month else f"({cell.date.day})"[-4:]
            row.append(f"{day:>3}{'*' * min(n, 2):<2}")
        print("  ".join(row))
    print("* = events that day")


def main():
    parser = argparse.ArgumentParser(
        description="Print a user's calendar events from the database, or a month grid."
    )
    parser.add_argument("--user", type=int, required=True, help="Owner (parent) user id")
    parser.add_argument("--from", dest="start", type=parse_date, help="Start date (YYYY-MM-DD or MM/DD)")
    parser.add_argument("--to", dest="end", type=parse_date, help="End date (YYYY-MM-DD or MM/DD)")
    parser.add_argument("--child", type=int, help="Only events for this child id")
    parser.add_argument("--child-name", help="Only events for this child (matched by name)")
    parser.add_argument("--grid", type=parse_month, metavar="YYYY-MM", help="Show a 6-week month grid")
    parser.add_argument("--children", action="store_true", help="List the user's children")
    parser.add_argument("--add-child", metavar="NAME", help="Create a child for the user")
    parser.add_argument("--limit", type=int, default=200, help="Max rows (default 200)")
    args = parser.parse_args()

    configure_logging("WARNING")
    setup_database()
    with db_session() as db:
        if args.child_name:
            match = resolve_child_for_owner(db, args.user, args.child_name)
            if not match.matched:
                print(f"No child named {args.child_name!r} for user {args.user}.")
                return
            args.child = match.child_id

        if args.add_child:
            child = create_child(db, args.user, args.add_child)
            print(f"Created child {child.id}: {child.name}")
            return

        if args.children:
            for c in list_children(db, args.user):
                print(f"{c.id:>4}  {c.name}")
            return

        if args.grid:
            year, month = args.grid
            try:
                start, end = grid_bounds(year, month)
            except ValueError as e:
                print(e)
                return
            print_grid(year, month, get_events_in_range(db, args.user, start, end, child_id=args.child))
            return

        if args.start or args.end:
            start = args.start or _date.min
            end = args.end or _date.max
            rows = get_events_in_range(db, args.user, start, end, child_id=args.child)
        else:
            rows = get_events_for_owner(db, args.user, child_id=args.child)
        rows = rows[: args.limit]

        if not rows:
            rng = ""
            if args.start or args.end:
                rng = f" in range [{args.start or '-inf'} .. {args.end or '+inf'}]"
            print(f"No events found{rng}.")
            return

        print_events(rows)


if __name__ == "__main__":
    main()
