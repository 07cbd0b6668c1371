# app.py  - Family calendar assistant API

import logging
from datetime import date as _date, datetime as _dt, timedelta
from typing import Any, Dict, Optional

from flask import Flask, request, jsonify
from flask_cors import CORS
from pydantic import ValidationError

from config import configure_logging
from database import SessionLocal, setup_database
from crud import (
    create_child,
    delete_event,
    get_conflicting_events,
    get_event_statistics,
    get_event_by_id,
    get_events_in_range,
    get_monthly_events,
    get_upcoming_events,
    list_children,
    update_event,
)
from assistant import analyze_content, analyze_photo, verify_child
from errors import AssistantError
from llm_handler import get_classifier
from schemas import CandidateInterval
from scheduler.calendar_grid import build_month_grid, grid_bounds, group_events_by_date
from scheduler.conflicts import find_conflict_pairs
from extractor import normalize_time
from validator import (
    EVENT_TYPE_COLORS,
    coerce_bool,
    coerce_category,
    coerce_date,
    coerce_priority,
    get_event_type_color,
)

logger = logging.getLogger(__name__)

app = Flask(__name__)
CORS(app)


# ---------- helpers ----------
def _ok(data: Any = None, msg: str = "OK", status: int = 200):
    return jsonify({"success": True, "msg": msg, "data": data}), status


def _fail(msg: str, status: int = 400, data: Any = None):
    return jsonify({"success": False, "msg": msg, "data": data}), status


def _owner_id() -> Optional[int]:
    """Acting user from the X-User-Id header (set by the auth proxy in front of us)."""
    raw = (request.headers.get("X-User-Id") or "").strip()
    try:
        return int(raw)
    except ValueError:
        return None


def _classifier():
    # tests and embedders can pin a classifier here
    return app.config.get("CLASSIFIER") or get_classifier()


def _to_date(obj) -> Optional[_date]:
    if not obj:
        return None
    try:
        return _date.fromisoformat(str(obj)[:10])
    except ValueError:
        return None


def _int_arg(name: str) -> Optional[int]:
    return request.args.get(name, type=int)


# ---------- error handlers ----------
@app.errorhandler(AssistantError)
def handle_assistant_error(err: AssistantError):
    logger.info("Request rejected (%s): %s", err.status_code, err)
    return _fail(str(err), err.status_code)


@app.errorhandler(400)
def handle_400(err):
    # Flask raises BadRequest on invalid JSON; keep response shape consistent
    return _fail(f"Bad Request: {getattr(err, 'description', err)}", 400)


@app.before_request
def _require_user():
    if request.method == "OPTIONS" or request.endpoint in (None, "health", "root"):
        return None
    if _owner_id() is None:
        return _fail("Authentication required (X-User-Id header)", 401)
    return None


# ---------- routes ----------
@app.get("/health")
def health():
    return jsonify({"ok": True, "service": "family-calendar", "time": _dt.now().isoformat()})


@app.get("/")
def root():
    return jsonify({"status": "running"})


@app.post("/assistant/analyze-email")
def analyze_email():
    data: Dict[str, Any] = request.get_json(silent=True) or {}
    content = data.get("emailContent")
    if content is not None and not isinstance(content, str):
        return _fail("emailContent must be a string", 400)
    owner = _owner_id()
    db = SessionLocal()
    try:
        result = analyze_content(
            db,
            owner,
            content or "",
            classifier=_classifier(),
            child_id=data.get("childId"),
        )
    finally:
        db.close()

    if not result.has_events:
        msg = "No events found in email content"
    else:
        msg = f"Successfully created {result.events_created} events from email"
    return _ok(result.model_dump(by_alias=True, mode="json"), msg)


@app.post("/assistant/analyze-photo")
def analyze_photo_route():
    upload = request.files.get("photo")
    image = upload.read() if upload else b""
    mime = upload.mimetype if upload and (upload.mimetype or "").startswith("image/") else None
    owner = _owner_id()
    db = SessionLocal()
    try:
        result = analyze_photo(
            db,
            owner,
            image,
            mime,
            filename=upload.filename if upload else None,
            classifier=_classifier(),
            child_id=request.form.get("childId"),
        )
    finally:
        db.close()

    if not result.has_events:
        msg = "No events found in photo"
    else:
        msg = f"Successfully created {result.events_created} events from photo"
    return _ok(result.model_dump(by_alias=True, mode="json"), msg)


@app.get("/calendar/grid")
def calendar_grid():
    today = _date.today()
    year = _int_arg("year") or today.year
    month = _int_arg("month") or today.month
    try:
        cells = build_month_grid(year, month)
        start, end = grid_bounds(year, month)
    except ValueError as e:
        return _fail(str(e), 400)

    db = SessionLocal()
    try:
        events = get_events_in_range(db, _owner_id(), start, end, child_id=_int_arg("childId"))
        by_date = {
            day: [e.to_dict() for e in evs]
            for day, evs in group_events_by_date(events).items()
        }
    finally:
        db.close()

    # cells carry the normalized month (month=13 -> January of next year)
    anchor = cells[len(cells) // 2].date
    return _ok({
        "year": anchor.year,
        "month": anchor.month,
        "cells": [c.model_dump(by_alias=True, mode="json") for c in cells],
        "eventsByDate": by_date,
    })


@app.post("/calendar/conflicts")
def calendar_conflicts():
    data: Dict[str, Any] = request.get_json(silent=True) or {}
    try:
        interval = CandidateInterval.model_validate({"start": data.get("start"), "end": data.get("end")})
    except ValidationError as e:
        logger.info("Invalid conflict interval: %s", e)
        return _fail("Invalid interval: start/end must be ISO datetimes", 400)

    exclude = data.get("excludeEventId")
    db = SessionLocal()
    try:
        conflicts = get_conflicting_events(
            db,
            _owner_id(),
            interval,
            exclude_event_id=int(exclude) if exclude not in (None, "") else None,
        )
        payload = [e.to_dict() for e in conflicts]
    finally:
        db.close()
    return _ok(payload, f"{len(payload)} conflicting events")


@app.get("/calendar/conflicts")
def calendar_conflict_pairs():
    """Overlapping pairs among the user's events in [from, to] (default: next 7 days)."""
    start = _to_date(request.args.get("from")) or _date.today()
    end = _to_date(request.args.get("to")) or start + timedelta(days=7)
    if end < start:
        return _fail("'to' must not be before 'from'", 400)

    db = SessionLocal()
    try:
        events = get_events_in_range(db, _owner_id(), start, end, child_id=_int_arg("childId"))
        pairs = [[a.to_dict(), b.to_dict()] for a, b in find_conflict_pairs(events)]
    finally:
        db.close()
    return _ok(pairs, f"{len(pairs)} conflicting pairs")


@app.get("/calendar/colors")
def calendar_colors():
    return _ok({cat.value: color for cat, color in EVENT_TYPE_COLORS.items()})


@app.get("/calendar/upcoming")
def calendar_upcoming():
    days = _int_arg("days")
    days = 7 if days is None else days
    limit = _int_arg("limit") or 10
    if days < 0:
        return _fail("days must not be negative", 400)
    owner = _owner_id()
    db = SessionLocal()
    try:
        child = verify_child(db, owner, request.args.get("childId"))
        events = [e.to_dict() for e in get_upcoming_events(db, owner, child_id=child, days=days, limit=limit)]
    finally:
        db.close()
    return _ok({"events": events, "days": days, "filteredChild": child}, f"{len(events)} upcoming events")


@app.get("/calendar/date-range")
def calendar_date_range():
    start = _to_date(request.args.get("startDate"))
    end = _to_date(request.args.get("endDate"))
    if start is None or end is None:
        return _fail("Start date and end date are required (YYYY-MM-DD)", 400)
    if end < start:
        return _fail("endDate must not be before startDate", 400)
    owner = _owner_id()
    db = SessionLocal()
    try:
        child = verify_child(db, owner, request.args.get("childId"))
        events = [e.to_dict() for e in get_events_in_range(db, owner, start, end, child_id=child)]
    finally:
        db.close()
    return _ok({
        "events": events,
        "dateRange": {"startDate": start.isoformat(), "endDate": end.isoformat()},
        "filteredChild": child,
    }, f"{len(events)} events")


@app.get("/calendar/stats")
def calendar_stats():
    db = SessionLocal()
    try:
        stats = get_event_statistics(db, _owner_id(), child_id=_int_arg("childId"))
    finally:
        db.close()
    return _ok(stats)


# camelCase request keys -> Event columns
_EVENT_FIELDS = {
    "title": ("title", lambda v: str(v).strip() or None),
    "description": ("description", lambda v: str(v)),
    "startDate": ("start_date", coerce_date),
    "endDate": ("end_date", coerce_date),
    "startTime": ("start_time", normalize_time),
    "endTime": ("end_time", normalize_time),
    "isAllDay": ("is_all_day", coerce_bool),
    "priority": ("priority", coerce_priority),
    "hasReminder": ("has_reminder", coerce_bool),
    "reminderMinutes": ("reminder_minutes", lambda v: int(v) if v is not None else None),
}


def _event_updates(data: Dict[str, Any]) -> Dict[str, Any]:
    fields: Dict[str, Any] = {}
    for key, (column, convert) in _EVENT_FIELDS.items():
        if key in data:
            fields[column] = convert(data[key])
    if fields.get("title", "") is None or ("start_date" in fields and fields["start_date"] is None):
        raise ValueError("title and startDate cannot be empty")
    category = data.get("category", data.get("type"))
    if category is not None:
        fields["category"] = coerce_category(category)
        fields["color"] = get_event_type_color(fields["category"])
    return fields


@app.get("/calendar/events")
def calendar_events():
    today = _date.today()
    year = _int_arg("year") or today.year
    month = _int_arg("month") or today.month
    if not 1 <= month <= 12:
        return _fail("month must be 1..12", 400)
    db = SessionLocal()
    try:
        events = [e.to_dict() for e in get_monthly_events(db, _owner_id(), year, month, child_id=_int_arg("childId"))]
    finally:
        db.close()
    return _ok(events, f"{len(events)} events")


@app.get("/calendar/events/<int:event_id>")
def calendar_get_event(event_id: int):
    db = SessionLocal()
    try:
        event = get_event_by_id(db, _owner_id(), event_id)
        payload = event.to_dict() if event is not None else None
    finally:
        db.close()
    if payload is None:
        return _fail("Event not found", 404)
    return _ok(payload)


@app.put("/calendar/events/<int:event_id>")
def calendar_update_event(event_id: int):
    data: Dict[str, Any] = request.get_json(silent=True) or {}
    owner = _owner_id()
    db = SessionLocal()
    try:
        try:
            fields = _event_updates(data)
        except (TypeError, ValueError) as e:
            return _fail(f"Invalid event update: {e}", 400)
        if "childId" in data:
            fields["child_id"] = verify_child(db, owner, data.get("childId"))
        try:
            event = update_event(db, owner, event_id, **fields)
        except ValueError as e:
            return _fail(str(e), 400)
        if event is None:
            return _fail("Event not found", 404)
        payload = event.to_dict()
    finally:
        db.close()
    return _ok(payload, "Event updated")


@app.delete("/calendar/events/<int:event_id>")
def calendar_delete_event(event_id: int):
    db = SessionLocal()
    try:
        deleted = delete_event(db, _owner_id(), event_id)
    finally:
        db.close()
    if not deleted:
        return _fail("Event not found", 404)
    return _ok({"id": event_id}, "Event deleted")


@app.get("/children")
def children_list():
    db = SessionLocal()
    try:
        payload = [c.to_dict() for c in list_children(db, _owner_id())]
    finally:
        db.close()
    return _ok(payload)


@app.post("/children")
def children_create():
    data: Dict[str, Any] = request.get_json(silent=True) or {}
    name = str(data.get("name") or "").strip()
    if not name:
        return _fail("Child name is required", 400)
    db = SessionLocal()
    try:
        payload = create_child(db, _owner_id(), name).to_dict()
    finally:
        db.close()
    return _ok(payload, "Child created", 201)


if __name__ == "__main__":
    configure_logging()
    setup_database()
    app.run(debug=True)
