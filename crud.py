# crud.py

from datetime import date as _date, timedelta
from calendar import monthrange
from typing import Any, Dict, List, Optional
from sqlalchemy.orm import Session
from sqlalchemy import and_, or_, func

from models import Child, Event
from schemas import CandidateInterval, Category, EventCandidate
from scheduler.conflicts import find_conflicts


# ------------------------
# Children (owner-scoped)
# ------------------------

def list_children(db: Session, owner_id: int) -> List[Child]:
    """All children of one user, oldest record first."""
    return (
        db.query(Child)
        .filter(Child.parent_id == owner_id)
        .order_by(Child.id)
        .all()
    )


def get_child(db: Session, owner_id: int, child_id: int) -> Optional[Child]:
    """Fetch a child only if it belongs to owner_id."""
    return (
        db.query(Child)
        .filter(Child.id == child_id, Child.parent_id == owner_id)
        .first()
    )


def create_child(db: Session, owner_id: int, name: str) -> Child:
    child = Child(name=name.strip(), parent_id=owner_id)
    db.add(child)
    db.commit()
    db.refresh(child)
    return child


# ------------------------
# Event reads
# ------------------------

def get_event_by_id(db: Session, owner_id: int, event_id: int) -> Optional[Event]:
    return (
        db.query(Event)
        .filter(Event.id == event_id, Event.parent_id == owner_id)
        .first()
    )


def get_events_for_owner(db: Session, owner_id: int, child_id: Optional[int] = None) -> List[Event]:
    q = db.query(Event).filter(Event.parent_id == owner_id)
    if child_id is not None:
        q = q.filter(Event.child_id == child_id)
    return q.order_by(Event.start_date, Event.start_time, Event.title).all()


def get_events_in_range(
    db: Session,
    owner_id: int,
    start_date: _date,
    end_date: _date,
    child_id: Optional[int] = None,
) -> List[Event]:
    """
    Events touching [start_date, end_date] (inclusive): those starting inside the
    range, and multi-day events that started earlier but have not ended yet.
    """
    q = (
        db.query(Event)
        .filter(
            Event.parent_id == owner_id,
            Event.start_date <= end_date,
            or_(
                Event.end_date >= start_date,
                and_(Event.end_date.is_(None), Event.start_date >= start_date),
            ),
        )
    )
    if child_id is not None:
        q = q.filter(Event.child_id == child_id)
    return q.order_by(Event.start_date, Event.start_time, Event.title).all()


def get_monthly_events(
    db: Session,
    owner_id: int,
    year: int,
    month: int,
    child_id: Optional[int] = None,
) -> List[Event]:
    """Events that start in the given month."""
    first = _date(year, month, 1)
    last = _date(year, month, monthrange(year, month)[1])
    q = (
        db.query(Event)
        .filter(Event.parent_id == owner_id, Event.start_date.between(first, last))
    )
    if child_id is not None:
        q = q.filter(Event.child_id == child_id)
    return q.order_by(Event.start_date, Event.start_time, Event.title).all()


def get_upcoming_events(
    db: Session,
    owner_id: int,
    child_id: Optional[int] = None,
    days: int = 7,
    limit: int = 10,
    today: Optional[_date] = None,
) -> List[Event]:
    """Events starting within the next `days` days (today included), soonest first."""
    today = today or _date.today()
    q = (
        db.query(Event)
        .filter(
            Event.parent_id == owner_id,
            Event.start_date.between(today, today + timedelta(days=days)),
        )
    )
    if child_id is not None:
        q = q.filter(Event.child_id == child_id)
    return q.order_by(Event.start_date, Event.title).limit(limit).all()


def find_event(
    db: Session,
    owner_id: int,
    *,
    title: str,
    start_date: _date,
    child_id: Optional[int] = None,
) -> Optional[Event]:
    """
    First event matching (owner, title, start_date), narrowed to child_id when one
    is given. Used by the duplicate check before creating extracted events.
    """
    q = db.query(Event).filter(
        Event.parent_id == owner_id,
        Event.title == title,
        Event.start_date == start_date,
    )
    if child_id is not None:
        q = q.filter(Event.child_id == child_id)
    return q.first()


def get_conflicting_events(
    db: Session,
    owner_id: int,
    interval: CandidateInterval,
    exclude_event_id: Optional[int] = None,
) -> List[Event]:
    """
    Owner's events overlapping `interval`. SQL narrows to events whose dates
    can touch the window (one day of slack for all-day spans), the interval
    test itself runs in scheduler.conflicts.
    """
    window_start = interval.start.date() - timedelta(days=1)
    window_end = interval.effective_end.date()
    q = db.query(Event).filter(
        Event.parent_id == owner_id,
        Event.start_date <= window_end,
        or_(
            Event.end_date >= window_start,
            and_(Event.end_date.is_(None), Event.start_date >= window_start),
        ),
    )
    if exclude_event_id is not None:
        q = q.filter(Event.id != exclude_event_id)
    candidates = q.order_by(Event.start_date, Event.start_time).all()
    return find_conflicts(interval, candidates)


def get_event_statistics(
    db: Session,
    owner_id: int,
    child_id: Optional[int] = None,
    today: Optional[_date] = None,
) -> Dict[str, Any]:
    """Counts for the dashboard: total, this month, next 7 days, overdue, per category."""
    today = today or _date.today()
    base = db.query(Event).filter(Event.parent_id == owner_id)
    if child_id is not None:
        base = base.filter(Event.child_id == child_id)

    month_start = today.replace(day=1)
    month_end = today.replace(day=monthrange(today.year, today.month)[1])
    overdue_types = [Category.ASSIGNMENT_DUE.value, Category.EXAM.value, Category.APPOINTMENT.value]

    by_category = (
        base.with_entities(Event.category, func.count(Event.id))
        .group_by(Event.category)
        .all()
    )
    return {
        "totalEvents": base.count(),
        "thisMonthEvents": base.filter(Event.start_date.between(month_start, month_end)).count(),
        "upcomingEvents": base.filter(Event.start_date.between(today, today + timedelta(days=7))).count(),
        "overdueEvents": base.filter(Event.start_date < today, Event.category.in_(overdue_types)).count(),
        "eventsByType": {cat: int(n) for cat, n in by_category},
    }


# ------------------------
# Event writes
# ------------------------

def create_event(
    db: Session,
    owner_id: int,
    candidate: EventCandidate,
    child_id: Optional[int] = None,
) -> Event:
    """Create and persist a single event from a validated candidate."""
    event = Event(
        parent_id=owner_id,
        title=candidate.title,
        description=candidate.description,
        start_date=candidate.start_date,
        end_date=candidate.end_date,
        start_time=candidate.start_time,
        end_time=candidate.end_time,
        is_all_day=candidate.is_all_day,
        category=candidate.category.value,
        priority=candidate.priority.value,
        color=candidate.color,
        has_reminder=candidate.has_reminder,
        reminder_minutes=candidate.reminder_minutes if candidate.has_reminder else None,
        child_id=child_id,
    )
    db.add(event)
    db.commit()
    db.refresh(event)
    return event


_UPDATABLE = {
    "title", "description", "start_date", "end_date", "start_time", "end_time", "is_all_day",
    "category", "priority", "color", "child_id", "has_reminder", "reminder_minutes",
}


def update_event(db: Session, owner_id: int, event_id: int, **fields) -> Optional[Event]:
    """
    Update selected columns of an owner's event. Unknown keys are ignored.
    Returns the updated Event or None if not found.
    """
    event = get_event_by_id(db, owner_id, event_id)
    if not event:
        return None
    for key, value in fields.items():
        if key not in _UPDATABLE:
            continue
        if key in ("category", "priority") and hasattr(value, "value"):
            value = value.value
        setattr(event, key, value)
    if not event.has_reminder:
        event.reminder_minutes = None
    if event.end_date is not None and event.end_date < event.start_date:
        db.rollback()
        raise ValueError("end_date must not be before start_date")
    db.commit()
    db.refresh(event)
    return event


def delete_event(db: Session, owner_id: int, event_id: int) -> bool:
    """Delete a single event. Returns True if deleted, False if not found."""
    event = get_event_by_id(db, owner_id, event_id)
    if not event:
        return False
    db.delete(event)
    db.commit()
    return True
