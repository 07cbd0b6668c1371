"""
Pytest fixtures for the family calendar assistant.

Provides:
- An in-memory SQLite engine/session per test
- A seeded owner with two children (Alice, Bob)
- A Flask test client wired to the test session and a rule-based classifier
- A stub classifier that replays a canned reply
"""

import os

# keep tests off the real DB file and away from the network
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["GROQ_API_KEY"] = ""

from datetime import date
from typing import Any, Dict, List

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from crud import create_child
from llm_handler import EventClassifier, RuleBasedClassifier
from models import init_db
from validator import validate_classification

TODAY = date(2025, 3, 15)  # a Saturday
OWNER = 7
OTHER_OWNER = 99


class StubClassifier(EventClassifier):
    """Replays `reply` through the validator and records every call."""

    name = "stub"

    def __init__(self, reply: Dict[str, Any]):
        self.reply = reply
        self.calls: List[Dict[str, Any]] = []

    def classify(self, content, *, today=None, known_children=()):
        self.calls.append({"kind": "text", "content": content, "known_children": list(known_children)})
        return validate_classification(self.reply, source="email", today=today or TODAY)

    def classify_photo(self, image, mime_type="image/jpeg", *, today=None, known_children=()):
        self.calls.append({"kind": "photo", "mime_type": mime_type, "known_children": list(known_children)})
        return validate_classification(self.reply, source="photo", today=today or TODAY)


# =============================================================================
# DATABASE FIXTURES
# =============================================================================

@pytest.fixture
def engine():
    eng = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    init_db(bind=eng)
    yield eng
    eng.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(bind=engine, autoflush=False, autocommit=False)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def children(db):
    """Alice (id 1) and Bob (id 2) for OWNER."""
    return create_child(db, OWNER, "Alice"), create_child(db, OWNER, "Bob")


@pytest.fixture
def rules():
    return RuleBasedClassifier(today=TODAY)


@pytest.fixture
def stub_classifier():
    def make(reply):
        return StubClassifier(reply)
    return make


# =============================================================================
# FLASK FIXTURES
# =============================================================================

@pytest.fixture
def client(monkeypatch, session_factory, children):
    import app as app_module

    monkeypatch.setattr(app_module, "SessionLocal", session_factory)
    app_module.app.config["TESTING"] = True
    app_module.app.config["CLASSIFIER"] = RuleBasedClassifier(today=TODAY)
    try:
        yield app_module.app.test_client()
    finally:
        app_module.app.config.pop("CLASSIFIER", None)


@pytest.fixture
def auth():
    return {"X-User-Id": str(OWNER)}
