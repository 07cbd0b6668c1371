import json

import pytest
import requests

import config
import llm_handler
from conftest import TODAY
from llm_handler import (
    GroqClassifier,
    RuleBasedClassifier,
    extract_json_object,
    get_classifier,
)
from schemas import Category, RawContent


class FakeResponse:
    def __init__(self, content, status=200):
        self._content = content
        self.status_code = status

    def raise_for_status(self):
        if self.status_code >= 400:
            raise requests.HTTPError(f"{self.status_code} error")

    def json(self):
        return {"choices": [{"message": {"content": self._content}}]}


@pytest.fixture
def captured(monkeypatch):
    """Replace requests.post; the test sets captured['reply'] before calling."""
    box = {"reply": "", "status": 200, "calls": []}

    def fake_post(url, headers=None, json=None, timeout=None):
        box["calls"].append({"url": url, "headers": headers, "json": json, "timeout": timeout})
        return FakeResponse(box["reply"], box["status"])

    monkeypatch.setattr(llm_handler.requests, "post", fake_post)
    return box


REPLY = {
    "hasEvents": True,
    "events": [{
        "title": "Science Fair",
        "startDate": "2025-03-20",
        "startTime": "18:00",
        "type": "SCHOOL_EVENT",
        "priority": "HIGH",
        "hasReminder": True,
        "reminderMinutes": 60,
        "childName": "Alice",
    }],
    "analysis": "One school event",
}


# ------------------------ JSON extraction ------------------------
def test_extract_json_object_plain():
    assert extract_json_object('{"a": 1}') == {"a": 1}


def test_extract_json_object_wrapped_in_prose():
    text = 'Sure! ```json\n{"hasEvents": false, "events": [], "analysis": "braces {inside} strings"}\n```'
    assert extract_json_object(text)["analysis"] == "braces {inside} strings"


def test_extract_json_object_none():
    assert extract_json_object("no json here") is None
    assert extract_json_object("") is None
    assert extract_json_object('["a list"]') is None


# ------------------------ Groq classifier ------------------------
def test_groq_classify_success(captured):
    captured["reply"] = "Here you go:\n" + json.dumps(REPLY)
    clf = GroqClassifier(api_key="k", model="m-text", timeout=3)
    result = clf.classify(RawContent(text="<p>Science fair</p> on 3/20"), today=TODAY, known_children=["Alice"])

    assert result.has_events is True
    ev = result.events[0]
    assert ev.category is Category.SCHOOL_EVENT
    assert ev.child_name_hint == "Alice"
    assert ev.reminder_minutes == 60

    call = captured["calls"][0]
    assert call["json"]["model"] == "m-text"
    assert call["json"]["temperature"] == 0.0
    assert call["timeout"] == 3
    assert call["headers"]["Authorization"] == "Bearer k"
    user_msg = call["json"]["messages"][-1]["content"]
    assert "<p>" not in user_msg
    assert any("Known children: Alice" in m["content"] for m in call["json"]["messages"])


def test_groq_transport_error_returns_no_events(monkeypatch):
    def boom(*a, **kw):
        raise requests.ConnectionError("network down")

    monkeypatch.setattr(llm_handler.requests, "post", boom)
    result = GroqClassifier(api_key="k").classify("hello", today=TODAY)
    assert result.has_events is False
    assert result.events == []
    assert result.analysis.startswith("Failed to analyze email content with AI")


def test_groq_http_error_returns_no_events(captured):
    captured["status"] = 429
    result = GroqClassifier(api_key="k").classify("hello", today=TODAY)
    assert result.has_events is False


def test_groq_unparseable_reply(captured):
    captured["reply"] = "I could not find anything."
    result = GroqClassifier(api_key="k").classify("hello", today=TODAY)
    assert result.has_events is False
    assert result.analysis == "Failed to parse AI response"


def test_groq_photo_sends_data_url(captured):
    captured["reply"] = json.dumps(REPLY)
    clf = GroqClassifier(api_key="k", vision_model="m-vision")
    result = clf.classify_photo(b"\x89PNG", "image/png", today=TODAY)

    call = captured["calls"][0]
    assert call["json"]["model"] == "m-vision"
    parts = call["json"]["messages"][0]["content"]
    assert parts[1]["image_url"]["url"].startswith("data:image/png;base64,")
    assert result.events[0].description == "Event created from photo analysis"


# ------------------------ rule-based classifier ------------------------
def test_rule_based_classify():
    result = RuleBasedClassifier(today=TODAY).classify("Math homework due tomorrow at 5:00 PM")
    assert result.has_events is True
    ev = result.events[0]
    assert ev.title == "Math Homework Due"
    assert ev.category is Category.ASSIGNMENT_DUE
    assert ev.start_date.isoformat() == "2025-03-16"
    assert ev.start_time.strftime("%H:%M") == "17:00"


def test_rule_based_photo_has_no_events():
    result = RuleBasedClassifier(today=TODAY).classify_photo(b"img")
    assert result.has_events is False
    assert "GROQ_API_KEY" in result.analysis


def test_get_classifier_follows_api_key(monkeypatch):
    monkeypatch.setattr(config, "GROQ_API_KEY", "")
    assert isinstance(get_classifier(), RuleBasedClassifier)
    monkeypatch.setattr(config, "GROQ_API_KEY", "secret")
    assert isinstance(get_classifier(), GroqClassifier)
