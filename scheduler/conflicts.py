# scheduler/conflicts.py
"""
Interval-overlap conflict detection.

Events are anything with .start_date/.end_date/.start_time/.end_time/
.is_all_day attributes (ORM rows or PersistedEvent models). Intervals are
half-open, so an event ending at 10:00 never conflicts with one starting
at 10:00.
"""
from __future__ import annotations
from datetime import date as _date, time as _time, datetime as _dt, timedelta
from typing import Iterable, List, Optional, Tuple

from schemas import CandidateInterval, DEFAULT_EVENT_WINDOW


def _as_dt(d: _date, t: Optional[_time]) -> _dt:
    return _dt.combine(d, t or _time(0, 0))


def event_interval(event) -> CandidateInterval:
    """
    Resolve stored date/time fields into [start, end):
      - an end time ends on end_date (or start_date) at that time
      - an all-day event with an end date runs through midnight after end_date
      - anything else gets the default one-hour window
    """
    all_day = bool(getattr(event, "is_all_day", False))
    start = _as_dt(event.start_date, None if all_day else event.start_time)
    end_date = getattr(event, "end_date", None)
    end_time = getattr(event, "end_time", None)

    end: Optional[_dt] = None
    if end_time is not None and not all_day:
        end = _as_dt(end_date or event.start_date, end_time)
    elif all_day and end_date is not None:
        end = _as_dt(end_date + timedelta(days=1), None)

    if end is None or end <= start:
        end = start + DEFAULT_EVENT_WINDOW
    return CandidateInterval(start=start, end=end)


def intervals_overlap(a: CandidateInterval, b: CandidateInterval) -> bool:
    """True if [a.start, a.end) overlaps [b.start, b.end)."""
    return a.start < b.effective_end and b.start < a.effective_end


def find_conflicts(
    candidate: CandidateInterval,
    events: Iterable,
    exclude_id: Optional[int] = None,
) -> List:
    """Every event whose interval overlaps `candidate`, in input order."""
    out = []
    for ev in events:
        if exclude_id is not None and getattr(ev, "id", None) == exclude_id:
            continue
        if intervals_overlap(candidate, event_interval(ev)):
            out.append(ev)
    return out


def find_conflict_pairs(events: Iterable) -> List[Tuple]:
    """
    Find all pairs of events whose intervals overlap.
    Returns a list of tuples: [(event1, event2), ...] ordered by start.
    """
    spans = sorted(((event_interval(e), e) for e in events), key=lambda p: p[0].start)
    pairs = []
    for i in range(len(spans)):
        a_iv, a = spans[i]
        for j in range(i + 1, len(spans)):
            b_iv, b = spans[j]
            # sorted by start: nothing later can overlap once b starts after a ends
            if b_iv.start >= a_iv.effective_end:
                break
            pairs.append((a, b))
    return pairs
