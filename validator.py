# validator.py
"""
Schema enforcement for whatever the classifier produced.

Model replies are loose JSON: keys go missing, enums come back misspelled,
reminders appear without being asked for. `validate_classification` turns
such a blob into a ClassificationResult of well-formed EventCandidates,
filling safe defaults. Events that cannot be repaired (no title, no usable
start date) are left out and described in `errors`.

Missing endDate policy: the end date defaults to the start date.
"""
from __future__ import annotations

import logging
import re
from datetime import date as _date, datetime as _dt
from typing import Any, Dict, List, Optional

from pydantic import ValidationError

from extractor import extract_dates, normalize_time
from schemas import Category, ClassificationResult, EventCandidate, Priority

logger = logging.getLogger(__name__)

# Event type color mapping
EVENT_TYPE_COLORS: Dict[Category, str] = {
    Category.SCHOOL_EVENT: "#3B82F6",      # Blue
    Category.ASSIGNMENT_DUE: "#EF4444",    # Red
    Category.EXAM: "#DC2626",              # Dark Red
    Category.PARENT_MEETING: "#8B5CF6",    # Purple
    Category.EXTRACURRICULAR: "#10B981",   # Green
    Category.APPOINTMENT: "#F59E0B",       # Orange
    Category.BIRTHDAY: "#EC4899",          # Pink
    Category.HOLIDAY: "#14B8A6",           # Teal
    Category.REMINDER: "#6B7280",          # Gray
    Category.OTHER: "#6366F1",             # Indigo
}

DEFAULT_DESCRIPTIONS = {
    "email": "Event created from email analysis",
    "photo": "Event created from photo analysis",
}

DEFAULT_ANALYSIS = "Analysis completed"


def get_event_type_color(category: Any) -> str:
    return EVENT_TYPE_COLORS.get(coerce_category(category), EVENT_TYPE_COLORS[Category.OTHER])


def coerce_category(value: Any) -> Category:
    if isinstance(value, Category):
        return value
    key = re.sub(r"[\s\-]+", "_", str(value or "").strip()).upper()
    try:
        return Category(key)
    except ValueError:
        return Category.OTHER


def coerce_priority(value: Any) -> Priority:
    if isinstance(value, Priority):
        return value
    try:
        return Priority(str(value or "").strip().upper())
    except ValueError:
        return Priority.MEDIUM


def coerce_bool(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip().lower() in ("true", "yes", "1", "y")
    return bool(value)


def _coerce_int(value: Any) -> Optional[int]:
    if value is None or isinstance(value, bool):
        return None
    try:
        n = int(float(value))
    except (TypeError, ValueError):
        return None
    return n if n >= 0 else None


def coerce_date(value: Any, today: Optional[_date] = None) -> Optional[_date]:
    """ISO first (a trailing time part is ignored), then the extractor's formats."""
    if isinstance(value, _dt):
        return value.date()
    if isinstance(value, _date):
        return value
    if not value or not isinstance(value, str):
        return None
    s = value.strip()
    try:
        return _date.fromisoformat(s[:10])
    except ValueError:
        pass
    found = extract_dates(s, today)
    return found[0].value if found else None


def _first(raw: Dict[str, Any], *keys: str) -> Any:
    for k in keys:
        if raw.get(k) not in (None, ""):
            return raw[k]
    return None


def normalize_event(
    raw: Dict[str, Any],
    *,
    source: str = "email",
    today: Optional[_date] = None,
) -> EventCandidate:
    """
    Repair one raw event dict into an EventCandidate.
    Raises ValueError if the event has no title or no usable start date.
    """
    if not isinstance(raw, dict):
        raise ValueError("event is not an object")

    title = _first(raw, "title", "name", "summary")
    title = str(title).strip() if title is not None else ""
    if not title:
        raise ValueError("event has no title")

    start_date = coerce_date(_first(raw, "startDate", "start_date", "date"), today)
    if start_date is None:
        raise ValueError(f"event '{title}' has no valid startDate")

    end_date = coerce_date(_first(raw, "endDate", "end_date"), today) or start_date
    if end_date < start_date:
        logger.info("endDate before startDate for %r; clamping to startDate", title)
        end_date = start_date

    start_time = normalize_time(_first(raw, "startTime", "start_time", "time"))
    end_time = normalize_time(_first(raw, "endTime", "end_time"))
    is_all_day = coerce_bool(raw.get("isAllDay", raw.get("is_all_day"))) or start_time is None
    if is_all_day:
        start_time = end_time = None
    elif end_time is not None and end_date == start_date and end_time <= start_time:
        end_time = None

    category = coerce_category(_first(raw, "category", "type"))
    has_reminder = coerce_bool(raw.get("hasReminder", raw.get("has_reminder")))
    reminder = _coerce_int(_first(raw, "reminderMinutes", "reminder_minutes")) if has_reminder else None

    description = _first(raw, "description")
    hint = _first(raw, "childName", "childNameHint", "child_name")

    return EventCandidate(
        title=title,
        description=str(description).strip() if description else DEFAULT_DESCRIPTIONS.get(
            source, DEFAULT_DESCRIPTIONS["email"]),
        start_date=start_date,
        end_date=end_date,
        start_time=start_time,
        end_time=end_time,
        is_all_day=is_all_day,
        category=category,
        priority=coerce_priority(raw.get("priority")),
        has_reminder=has_reminder,
        reminder_minutes=reminder,
        child_name_hint=str(hint).strip() if hint else None,
        color=get_event_type_color(category),
    )


def _analysis_text(value: Any) -> str:
    if isinstance(value, str) and value.strip():
        return value.strip()
    if isinstance(value, dict):
        summary = value.get("summary") or value.get("error")
        if summary:
            return str(summary)
    return DEFAULT_ANALYSIS


def validate_classification(
    raw: Any,
    *,
    source: str = "email",
    today: Optional[_date] = None,
) -> ClassificationResult:
    """Enforce the {hasEvents, events, analysis} contract on a decoded reply."""
    if not isinstance(raw, dict):
        return ClassificationResult(
            has_events=False,
            events=[],
            analysis="Classifier reply was not a JSON object",
        )

    raw_events = raw.get("events")
    if not isinstance(raw_events, list):
        raw_events = []

    events: List[EventCandidate] = []
    errors: List[str] = []
    for i, item in enumerate(raw_events):
        try:
            events.append(normalize_event(item, source=source, today=today))
        except (ValueError, ValidationError) as e:
            label = item.get("title") if isinstance(item, dict) else None
            logger.warning("Rejected classifier event #%d (%s): %s", i, label, e)
            errors.append(f"Invalid event {label or '#' + str(i)}: {e}")

    return ClassificationResult(
        has_events=coerce_bool(raw.get("hasEvents", False)),
        events=events,
        analysis=_analysis_text(raw.get("analysis")),
        errors=errors,
    )

