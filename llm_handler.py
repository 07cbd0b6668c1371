# llm_handler.py
import base64
import json
import logging
import re
from datetime import date as _date
from typing import Any, Dict, List, Optional, Sequence, Union

import requests

import config
from extractor import extract_events
from normalizer import clean_text
from schemas import ClassificationResult, RawContent
from validator import validate_classification

logger = logging.getLogger(__name__)

EVENT_FIELDS = (
    "For each event found, provide:\n"
    "- title: Clear, concise event title\n"
    "- description: Brief description of the event\n"
    "- startDate: Date in YYYY-MM-DD format\n"
    "- endDate: End date in YYYY-MM-DD format; if no end date is mentioned, use the start date\n"
    "- startTime: Time in HH:MM format (24-hour) or null if all-day\n"
    "- endTime: End time in HH:MM format (24-hour) or null\n"
    "- isAllDay: true/false\n"
    "- type: One of [SCHOOL_EVENT, ASSIGNMENT_DUE, EXAM, PARENT_MEETING, EXTRACURRICULAR, "
    "APPOINTMENT, BIRTHDAY, HOLIDAY, REMINDER, OTHER]\n"
    "- priority: One of [URGENT, HIGH, MEDIUM, LOW]\n"
    "- hasReminder: true/false based on importance\n"
    "- reminderMinutes: Number (15, 30, 60, 120) or null\n"
    "- childName: The name of the child this event belongs to if it is mentioned, otherwise null\n"
)

RESPONSE_SHAPE = (
    "Return ONLY valid JSON in this exact format:\n"
    "{\n"
    '  "hasEvents": boolean,\n'
    '  "events": [\n'
    "    {\n"
    '      "title": "string",\n'
    '      "description": "string",\n'
    '      "startDate": "YYYY-MM-DD",\n'
    '      "endDate": "YYYY-MM-DD or null",\n'
    '      "startTime": "HH:MM or null",\n'
    '      "endTime": "HH:MM or null",\n'
    '      "isAllDay": boolean,\n'
    '      "type": "EVENT_TYPE",\n'
    '      "priority": "PRIORITY_LEVEL",\n'
    '      "hasReminder": boolean,\n'
    '      "reminderMinutes": number_or_null,\n'
    '      "childName": "string or null"\n'
    "    }\n"
    "  ],\n"
    '  "analysis": "Brief summary of what was found"\n'
    "}\n"
    "If no events are found, return hasEvents: false with an empty events array. "
    "Never include markdown or extra text, only JSON."
)

EMAIL_INSTRUCTIONS = (
    "Analyze the following email content and extract event details for a family calendar app. "
    "If any events, meetings, assignments, deadlines, or important dates are mentioned, "
    "extract them in the exact JSON format below.\n"
    "Important:\n"
    "- When dates are mentioned as relative terms (like \"next Wednesday\"), convert them to "
    "the exact date (YYYY-MM-DD format).\n"
    "- If the event does not specify a date explicitly, skip it.\n"
    + EVENT_FIELDS + RESPONSE_SHAPE
)

PHOTO_INSTRUCTIONS = (
    "Analyze this image and extract any event details, calendar information, schedules, "
    "assignments, or important dates mentioned. Look for calendars, planners, schedule "
    "screenshots, assignment due dates, meeting invitations, event flyers, school schedules "
    "and any text containing dates, times, or event information.\n"
    + EVENT_FIELDS + RESPONSE_SHAPE
)


# ------------------------ utilities ------------------------
def extract_json_object(text: Optional[str]) -> Optional[Dict[str, Any]]:
    """
    Parse the first JSON object embedded in free-form model output.
    Braces inside string literals are skipped so they don't break matching.
    """
    if not text:
        return None
    try:
        whole = json.loads(text)
        if isinstance(whole, dict):
            return whole
    except json.JSONDecodeError:
        pass

    for start in (m.start() for m in re.finditer(r"\{", text)):
        depth = 0
        in_string = False
        escape = False
        for idx in range(start, len(text)):
            ch = text[idx]
            if in_string:
                if escape:
                    escape = False
                elif ch == "\\":
                    escape = True
                elif ch == '"':
                    in_string = False
                continue
            if ch == '"':
                in_string = True
            elif ch == "{":
                depth += 1
            elif ch == "}":
                depth -= 1
                if depth == 0:
                    try:
                        obj = json.loads(text[start:idx + 1])
                    except json.JSONDecodeError:
                        break
                    if isinstance(obj, dict):
                        return obj
                    break
    return None


def _no_events(analysis: str) -> ClassificationResult:
    return ClassificationResult(has_events=False, events=[], analysis=analysis)


def _context_lines(today: _date, known_children: Sequence[str]) -> str:
    lines = [f"Today's date is {today.isoformat()}."]
    names = [n for n in known_children if n]
    if names:
        lines.append("Known children: " + ", ".join(names) + ".")
    return "\n".join(lines)


def _as_text(content: Union[RawContent, str, None]) -> str:
    if isinstance(content, RawContent):
        return content.text or ""
    return content or ""


# ------------------------ classifiers ------------------------
class EventClassifier:
    """Turns raw content into validated event candidates. Never raises for bad replies."""

    name = "base"

    def classify(
        self,
        content: Union[RawContent, str],
        *,
        today: Optional[_date] = None,
        known_children: Sequence[str] = (),
    ) -> ClassificationResult:
        raise NotImplementedError

    def classify_photo(
        self,
        image: bytes,
        mime_type: str = "image/jpeg",
        *,
        today: Optional[_date] = None,
        known_children: Sequence[str] = (),
    ) -> ClassificationResult:
        raise NotImplementedError


class GroqClassifier(EventClassifier):
    """Groq chat-completions (OpenAI-compatible) over plain HTTP."""

    name = "groq"

    def __init__(
        self,
        api_key: Optional[str] = None,
        *,
        api_url: Optional[str] = None,
        model: Optional[str] = None,
        vision_model: Optional[str] = None,
        timeout: Optional[float] = None,
    ):
        self.api_key = api_key if api_key is not None else config.GROQ_API_KEY
        self.api_url = api_url or config.GROQ_API_URL
        self.model = model or config.GROQ_MODEL
        self.vision_model = vision_model or config.GROQ_VISION_MODEL
        self.timeout = timeout or config.GROQ_TIMEOUT

    def _post(self, messages: List[Dict[str, Any]], model: str) -> str:
        headers = {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
        }
        payload = {"model": model, "messages": messages, "temperature": 0.0}
        resp = requests.post(self.api_url, headers=headers, json=payload, timeout=self.timeout)
        resp.raise_for_status()
        result = resp.json()
        return (result["choices"][0]["message"]["content"] or "").strip()

    def _run(self, messages, model: str, *, source: str, today: _date) -> ClassificationResult:
        try:
            text = self._post(messages, model)
        except Exception as e:
            logger.warning("Groq %s analysis failed: %s", source, e)
            return _no_events(f"Failed to analyze {source} content with AI: {e}")

        logger.debug("Groq reply received (%d chars)", len(text))
        parsed = extract_json_object(text)
        if parsed is None:
            logger.warning("Failed to parse Groq %s reply as JSON: %.200s", source, text)
            return _no_events("Failed to parse AI response")

        result = validate_classification(parsed, source=source, today=today)
        logger.info(
            "Groq %s analysis completed: hasEvents=%s events=%d rejected=%d",
            source, result.has_events, len(result.events), len(result.errors),
        )
        return result

    def classify(self, content, *, today=None, known_children=()):
        today = today or _date.today()
        text = clean_text(_as_text(content))
        messages = [
            {"role": "system", "content": EMAIL_INSTRUCTIONS},
            {"role": "system", "content": _context_lines(today, known_children)},
            {"role": "user", "content": f"Email content:\n{text}"},
        ]
        return self._run(messages, self.model, source="email", today=today)

    def classify_photo(self, image, mime_type="image/jpeg", *, today=None, known_children=()):
        today = today or _date.today()
        encoded = base64.b64encode(image).decode("ascii")
        messages = [
            {
                "role": "user",
                "content": [
                    {"type": "text", "text": PHOTO_INSTRUCTIONS + "\n" + _context_lines(today, known_children)},
                    {"type": "image_url", "image_url": {"url": f"data:{mime_type};base64,{encoded}"}},
                ],
            },
        ]
        return self._run(messages, self.vision_model, source="photo", today=today)


class RuleBasedClassifier(EventClassifier):
    """Deterministic keyword/regex classifier; used offline and as a test double."""

    name = "rules"

    def __init__(self, today: Optional[_date] = None):
        self.today = today

    def classify(self, content, *, today=None, known_children=()):
        today = today or self.today or _date.today()
        events = extract_events(_as_text(content), today, known_children)
        raw = {
            "hasEvents": bool(events),
            "events": events,
            "analysis": f"Keyword extraction found {len(events)} event(s)",
        }
        return validate_classification(raw, source="email", today=today)

    def classify_photo(self, image, mime_type="image/jpeg", *, today=None, known_children=()):
        return _no_events("Photo analysis needs a language model; set GROQ_API_KEY")


def get_classifier() -> EventClassifier:
    """Groq when a key is configured, otherwise the rule-based classifier."""
    if config.GROQ_API_KEY:
        return GroqClassifier()
    logger.info("GROQ_API_KEY not set - using rule-based classifier.")
    return RuleBasedClassifier()
