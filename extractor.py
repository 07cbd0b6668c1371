# extractor.py
"""
Rule-based entity extraction for family-logistics text.

Pulls dates, times, a category, a priority and a title out of plain text
with regex and keyword tables. It works standalone (the offline classifier
in llm_handler is built on it) and as a cross-check for model output.

Dates are always built from their calendar fields into ``datetime.date``
objects, so "March 16, 2025" is 2025-03-16 whatever the host timezone is.
"""
from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import date as _date, time as _time, timedelta
from typing import Any, Callable, Dict, Iterable, List, Optional, Sequence, Tuple

from normalizer import clean_lines, clean_text
from schemas import Category, Priority

FALLBACK_TITLE = "Event from Email"
MAX_TITLE_LEN = 100

# ------------------------ keyword tables ------------------------
# Scanned in declared order; the first category with any keyword present wins.
# 'conference' and 'consultation' appear under two categories; table order decides.
EVENT_KEYWORDS: Dict[Category, Tuple[str, ...]] = {
    Category.SCHOOL_EVENT: ("school", "class", "lecture", "presentation", "field trip",
                            "assembly", "conference", "workshop"),
    Category.ASSIGNMENT_DUE: ("assignment", "homework", "project due", "deadline", "submit",
                              "turn in", "due date"),
    Category.EXAM: ("exam", "test", "quiz", "midterm", "final", "assessment", "evaluation"),
    Category.PARENT_MEETING: ("parent meeting", "conference", "teacher meeting",
                              "parent-teacher", "consultation"),
    Category.EXTRACURRICULAR: ("practice", "rehearsal", "club", "sport", "team", "activity",
                               "competition", "game"),
    Category.APPOINTMENT: ("appointment", "doctor", "dentist", "checkup", "medical", "therapy",
                           "consultation"),
    Category.BIRTHDAY: ("birthday", "party", "celebration", "anniversary"),
    Category.HOLIDAY: ("holiday", "vacation", "break", "day off"),
    Category.REMINDER: ("remind", "remember", "don't forget", "note"),
    Category.OTHER: ("event", "meeting", "gathering", "session"),
}

PRIORITY_KEYWORDS: Dict[Priority, Tuple[str, ...]] = {
    Priority.URGENT: ("urgent", "asap", "immediately", "critical", "emergency"),
    Priority.HIGH: ("important", "high priority", "crucial", "must", "required"),
    Priority.MEDIUM: ("moderate", "normal", "regular"),
    Priority.LOW: ("low priority", "optional", "when possible", "if time permits"),
}

# ------------------------ month / weekday names ------------------------
MONTHS: Dict[str, int] = {
    "january": 1, "february": 2, "march": 3, "april": 4, "may": 5, "june": 6,
    "july": 7, "august": 8, "september": 9, "october": 10, "november": 11, "december": 12,
    "jan": 1, "feb": 2, "mar": 3, "apr": 4, "jun": 6, "jul": 7, "aug": 8,
    "sep": 9, "sept": 9, "oct": 10, "nov": 11, "dec": 12,
}

# Python weekday(): Monday=0 .. Sunday=6
WEEKDAYS: Dict[str, int] = {
    "monday": 0, "tuesday": 1, "wednesday": 2, "thursday": 3,
    "friday": 4, "saturday": 5, "sunday": 6,
}

_LONG = "January|February|March|April|May|June|July|August|September|October|November|December"
_ABBR = "Jan|Feb|Mar|Apr|May|Jun|Jul|Aug|Sept|Sep|Oct|Nov|Dec"
_ORD = r"(?:st|nd|rd|th)?"
_YEAR = r"(\d{4}|\d{2})"


@dataclass(frozen=True)
class DateMatch:
    original: str
    value: _date
    index: int

    @property
    def normalized(self) -> str:
        return self.value.isoformat()


@dataclass(frozen=True)
class TimeMatch:
    original: str
    value: _time
    index: int

    @property
    def normalized(self) -> str:
        return self.value.strftime("%H:%M")


# ------------------------ date helpers ------------------------
def _full_year(y: int) -> int:
    return y + 2000 if y < 100 else y


def _safe_date(year: int, month: int, day: int) -> Optional[_date]:
    try:
        return _date(_full_year(year), month, day)
    except ValueError:
        return None


def _month_num(name: str) -> Optional[int]:
    return MONTHS.get(name.strip(".").lower())


def _next_weekday(today: _date, weekday: int, *, strictly_after: bool) -> _date:
    offset = (weekday - today.weekday()) % 7
    if offset == 0 and strictly_after:
        offset = 7
    return today + timedelta(days=offset)


def _mdy(m: re.Match, today: _date) -> Optional[_date]:
    return _safe_date(int(m.group(3)), int(m.group(1)), int(m.group(2)))


def _ymd(m: re.Match, today: _date) -> Optional[_date]:
    return _safe_date(int(m.group(1)), int(m.group(2)), int(m.group(3)))


def _month_day_year(m: re.Match, today: _date) -> Optional[_date]:
    month = _month_num(m.group(1))
    return _safe_date(int(m.group(3)), month, int(m.group(2))) if month else None


def _day_month_year(m: re.Match, today: _date) -> Optional[_date]:
    month = _month_num(m.group(2))
    return _safe_date(int(m.group(3)), month, int(m.group(1))) if month else None


def _month_day(m: re.Match, today: _date) -> Optional[_date]:
    month = _month_num(m.group(1))
    return _safe_date(today.year, month, int(m.group(2))) if month else None


def _relative_day(m: re.Match, today: _date) -> Optional[_date]:
    word = m.group(1).lower()
    return today + timedelta(days=1) if word == "tomorrow" else today


def _weekday(m: re.Match, today: _date) -> Optional[_date]:
    qualifier = (m.group(1) or "").lower()
    weekday = WEEKDAYS[m.group(2).lower()]
    return _next_weekday(today, weekday, strictly_after=(qualifier == "next"))


DatePattern = Tuple["re.Pattern[str]", Callable[[re.Match, _date], Optional[_date]]]

# Explicit calendar dates first, then the looser forms.
DATE_PATTERNS: List[DatePattern] = [
    (re.compile(rf"\b(\d{{1,2}})[/\-](\d{{1,2}})[/\-]{_YEAR}\b"), _mdy),
    (re.compile(r"\b(\d{4})[/\-](\d{1,2})[/\-](\d{1,2})\b"), _ymd),
    (re.compile(rf"\b({_LONG})\s+(\d{{1,2}}){_ORD},?\s+{_YEAR}\b", re.I), _month_day_year),
    (re.compile(rf"\b({_ABBR})\.?\s+(\d{{1,2}}){_ORD},?\s+{_YEAR}\b", re.I), _month_day_year),
    (re.compile(rf"\b(\d{{1,2}}){_ORD}\s+({_LONG}),?\s+{_YEAR}\b", re.I), _day_month_year),
    (re.compile(rf"\b(\d{{1,2}}){_ORD}\s+({_ABBR})\.?,?\s+{_YEAR}\b", re.I), _day_month_year),
    # no year given: assume the current one. A bare "3/4" is left alone (fractions).
    (re.compile(rf"\b({_LONG}|{_ABBR})\.?\s+(\d{{1,2}}){_ORD}\b", re.I), _month_day),
    (re.compile(r"\b(today|tonight|tomorrow)\b", re.I), _relative_day),
    (re.compile(r"\b(?:(next|this|on)\s+)?(monday|tuesday|wednesday|thursday|friday|saturday|sunday)\b",
                re.I), _weekday),
]


def _overlaps(span: Tuple[int, int], taken: Iterable[Tuple[int, int]]) -> bool:
    return any(span[0] < e and s < span[1] for s, e in taken)


def extract_dates(text: str, today: Optional[_date] = None) -> List[DateMatch]:
    """
    Every date mentioned in `text`, in pattern order.
    Matches that fail calendar validation (e.g. 02/30/2025) are dropped, as are
    matches overlapping an already accepted one.
    """
    if not text:
        return []
    today = today or _date.today()
    found: List[DateMatch] = []
    taken: List[Tuple[int, int]] = []
    for pattern, build in DATE_PATTERNS:
        for m in pattern.finditer(text):
            if _overlaps(m.span(), taken):
                continue
            value = build(m, today)
            if value is None:
                continue
            taken.append(m.span())
            found.append(DateMatch(original=m.group(0), value=value, index=m.start()))
    return found


# ------------------------ time helpers ------------------------
_MERIDIEM = r"([ap])\.?\s?m\.?(?![a-z])"

TIME_PATTERNS: List["re.Pattern[str]"] = [
    re.compile(rf"(?<![\d:])(\d{{1,2}}):(\d{{2}})\s*{_MERIDIEM}", re.I),
    re.compile(rf"(?<![\d:])(\d{{1,2}}):(\d{{2}}):(\d{{2}})\s*{_MERIDIEM}", re.I),
    re.compile(r"(?<![\d:])(\d{1,2}):(\d{2})(?![\d:])"),  # 24-hour
    re.compile(rf"\bat\s+(\d{{1,2}}):(\d{{2}})\s*{_MERIDIEM}", re.I),
    re.compile(rf"\bat\s+(\d{{1,2}})\s*{_MERIDIEM}", re.I),
    re.compile(rf"(?<![\d:])(\d{{1,2}})\s*{_MERIDIEM}", re.I),
]

# "3:00-4:30 PM", "3 to 5 pm": one meridiem after the range covers both ends
TIME_RANGE = re.compile(
    rf"(?<![\d:])(\d{{1,2}}(?::\d{{2}})?)\s*(?:-|\u2013|\bto\b)\s*(\d{{1,2}}(?::\d{{2}})?\s*{_MERIDIEM})",
    re.I,
)


def normalize_time(raw: Any) -> Optional[_time]:
    """
    '14:30', '14:30:00', '5 pm', 'at 5:00 PM', '5:00:00 p.m.' -> datetime.time
    Returns None for anything that is not a valid clock reading.
    """
    if isinstance(raw, _time):
        return raw.replace(second=0, microsecond=0)
    if not raw:
        return None
    t = re.sub(r"^at\s+", "", str(raw).strip(), flags=re.I).lower()
    t = t.replace(".", "")

    m = re.match(r"^(\d{1,2}):(\d{2})(?::(\d{2}))?$", t)
    if m:
        hh, mm = int(m.group(1)), int(m.group(2))
        if 0 <= hh <= 23 and 0 <= mm <= 59:
            return _time(hh, mm)
        return None

    m = re.match(r"^(\d{1,2})(?::(\d{2}))?(?::(\d{2}))?\s*([ap])\s?m$", t)
    if m:
        hh = int(m.group(1))
        mm = int(m.group(2) or 0)
        if not (1 <= hh <= 12 and 0 <= mm <= 59):
            return None
        mer = m.group(4)
        if mer == "p" and hh != 12:
            hh += 12
        if mer == "a" and hh == 12:
            hh = 0
        return _time(hh, mm)
    return None


def _range_times(m: re.Match) -> Optional[Tuple[_time, _time]]:
    end = normalize_time(m.group(2))
    start = normalize_time(f"{m.group(1)} {m.group(3)}m")
    if start is None or end is None:
        return None
    if start > end:
        # "11-1 pm": the start is on the other side of noon
        other = "a" if m.group(3).lower() == "p" else "p"
        start = normalize_time(f"{m.group(1)} {other}m") or start
    return start, end


def extract_times(text: str) -> List[TimeMatch]:
    """Every clock time in `text`, in pattern order, normalised to 24h."""
    if not text:
        return []
    found: List[TimeMatch] = []
    taken: List[Tuple[int, int]] = []
    for m in TIME_RANGE.finditer(text):
        pair = _range_times(m)
        if pair is None:
            continue
        taken.append(m.span())
        found.append(TimeMatch(original=m.group(1), value=pair[0], index=m.start(1)))
        found.append(TimeMatch(original=m.group(2), value=pair[1], index=m.start(2)))
    for pattern in TIME_PATTERNS:
        for m in pattern.finditer(text):
            if _overlaps(m.span(), taken):
                continue
            value = normalize_time(m.group(0))
            if value is None:
                continue
            taken.append(m.span())
            found.append(TimeMatch(original=m.group(0), value=value, index=m.start()))
    return found


# ------------------------ classification ------------------------
def detect_category(text: str) -> Category:
    lower = (text or "").lower()
    for category, keywords in EVENT_KEYWORDS.items():
        if any(k in lower for k in keywords):
            return category
    return Category.OTHER


def detect_priority(text: str) -> Priority:
    lower = (text or "").lower()
    for priority, keywords in PRIORITY_KEYWORDS.items():
        if any(k in lower for k in keywords):
            return priority
    return Priority.MEDIUM


# ------------------------ titles ------------------------
_ASSIGNMENT_TITLES = (
    ("math", "Math Homework Due"),
    ("science", "Science Assignment Due"),
    ("english", "English Assignment Due"),
    ("history", "History Assignment Due"),
)
_EXAM_TITLES = (
    ("math", "Math Exam"),
    ("science", "Science Test"),
    ("english", "English Test"),
    ("final", "Final Exam"),
    ("midterm", "Midterm Exam"),
)
_TITLE_PATTERNS = (
    re.compile(r"\b(?:subject|title|event):\s*([^\n]+)", re.I),
    re.compile(r"\b(?:re|regarding):\s*([^\n]+)", re.I),
    re.compile(r"^([^\n]+?)\s+on\s+\d", re.I | re.M),
)


def _strip_trailing_punct(s: str) -> str:
    return re.sub(r"[.,;:!?]+$", "", s or "").strip()


def _clip_title(s: str) -> str:
    s = _strip_trailing_punct(s.strip())
    if len(s) < MAX_TITLE_LEN:
        return s
    cut = s[:MAX_TITLE_LEN].rsplit(" ", 1)[0]
    return _strip_trailing_punct(cut)


def extract_title(text: str) -> str:
    lower = (text or "").lower()

    if "homework" in lower or "assignment" in lower:
        for subject, title in _ASSIGNMENT_TITLES:
            if subject in lower:
                return title
        return "Assignment Due"

    if "exam" in lower or "test" in lower:
        for keyword, title in _EXAM_TITLES:
            if keyword in lower:
                return title
        return "Exam"

    if "parent" in lower and "meeting" in lower:
        return "Parent-Teacher Meeting"
    if "conference" in lower:
        return "Parent-Teacher Conference"

    for pattern in _TITLE_PATTERNS:
        m = pattern.search(text or "")
        if m and m.group(1).strip():
            title = _clip_title(m.group(1))
            if title:
                return title

    for line in (text or "").split("\n"):
        line = line.strip()
        if line and len(line) < MAX_TITLE_LEN:
            return line

    return FALLBACK_TITLE


# ------------------------ children ------------------------
def extract_child_hint(text: str, known_names: Sequence[str] = ()) -> Optional[str]:
    """First known child name that appears as a whole word in `text`."""
    if not text:
        return None
    hits = []
    for name in known_names:
        if not name or not name.strip():
            continue
        m = re.search(rf"\b{re.escape(name.strip())}\b", text, flags=re.I)
        if m:
            hits.append((m.start(), name.strip()))
    return min(hits)[1] if hits else None


# ------------------------ assembly ------------------------
def extract_event(
    text: str,
    today: Optional[_date] = None,
    known_names: Sequence[str] = (),
) -> Optional[Dict[str, Any]]:
    """
    Build one raw event (same JSON shape the model is asked for) from `text`.
    Returns None when no date can be found.
    """
    today = today or _date.today()
    dates = sorted(extract_dates(text, today), key=lambda d: d.index)
    if not dates:
        return None
    first = dates[0]
    end_date = next((d.value for d in dates[1:] if d.value > first.value), None)

    times = sorted(extract_times(text), key=lambda t: t.index)
    start_t = times[0].value if times else None
    end_t = next((t.value for t in times[1:] if start_t and t.value > start_t), None)

    category = detect_category(text)
    priority = detect_priority(text)
    has_reminder = priority in (Priority.URGENT, Priority.HIGH)

    return {
        "title": extract_title(text),
        "description": clean_text(text)[:500],
        "startDate": first.normalized,
        "endDate": end_date.isoformat() if end_date else None,
        "startTime": start_t.strftime("%H:%M") if start_t else None,
        "endTime": end_t.strftime("%H:%M") if end_t else None,
        "isAllDay": start_t is None,
        "type": category.value,
        "priority": priority.value,
        "hasReminder": has_reminder,
        "reminderMinutes": 60 if has_reminder else None,
        "childName": extract_child_hint(text, known_names),
    }


def extract_events(
    text: str,
    today: Optional[_date] = None,
    known_names: Sequence[str] = (),
) -> List[Dict[str, Any]]:
    """
    Raw events for a whole message. A flyer-style list (two or more lines that
    each carry a date) yields one event per line; anything else is read as a
    single event.
    """
    today = today or _date.today()
    body = clean_lines(text)
    lines = [ln for ln in body.split("\n") if extract_dates(ln, today)]

    events: List[Dict[str, Any]] = []
    if len(lines) >= 2:
        events = [e for e in (extract_event(ln, today, known_names) for ln in lines) if e]
    if not events:
        single = extract_event(body, today, known_names)
        events = [single] if single else []

    unique: List[Dict[str, Any]] = []
    seen = set()
    for e in events:
        key = (e["title"], e["startDate"])
        if key in seen:
            continue
        seen.add(key)
        unique.append(e)
    return unique
