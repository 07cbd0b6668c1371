# models.py
from __future__ import annotations

from typing import List, Set

from sqlalchemy import (
    create_engine,
    Column,
    Integer,
    Date,
    Time,
    String,
    Text,
    Boolean,
    DateTime,
    func,
    ForeignKey,
)
from sqlalchemy.engine import Engine
from sqlalchemy.orm import declarative_base, sessionmaker, relationship

from config import DATABASE_URL


def _connect_args(url: str) -> dict:
    return {"check_same_thread": False} if url.startswith("sqlite") else {}


engine = create_engine(DATABASE_URL, connect_args=_connect_args(DATABASE_URL))
SessionLocal = sessionmaker(bind=engine, autoflush=False, autocommit=False)

Base = declarative_base()


class Child(Base):
    __tablename__ = "children"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(100), nullable=False, index=True)
    parent_id = Column(Integer, nullable=False, index=True)

    created_at = Column(DateTime, nullable=True, server_default=func.now())

    events = relationship("Event", back_populates="child")

    def __repr__(self) -> str:  # pragma: no cover
        return f"<Child(id={self.id!r}, name={self.name!r}, parent_id={self.parent_id!r})>"

    def to_dict(self) -> dict:
        return {"id": self.id, "name": self.name, "parent_id": self.parent_id}


class Event(Base):
    __tablename__ = "events"

    # --- Core fields ---
    id = Column(Integer, primary_key=True, index=True)
    parent_id = Column(Integer, nullable=False, index=True)
    title = Column(String(200), nullable=False, index=True)
    description = Column(Text, nullable=True)

    start_date = Column(Date, nullable=False, index=True)
    end_date = Column(Date, nullable=True, index=True)
    start_time = Column(Time, nullable=True)
    end_time = Column(Time, nullable=True)
    is_all_day = Column(Boolean, nullable=False, default=False)

    # --- Classification ---
    category = Column(String(30), nullable=False, default="OTHER", index=True)
    priority = Column(String(10), nullable=False, default="MEDIUM")
    color = Column(String(20), nullable=True)

    has_reminder = Column(Boolean, nullable=False, default=False)
    reminder_minutes = Column(Integer, nullable=True)   # minutes before start

    child_id = Column(Integer, ForeignKey("children.id"), nullable=True, index=True)

    created_at = Column(DateTime, nullable=True, server_default=func.now())
    updated_at = Column(DateTime, nullable=True, onupdate=func.now())

    child = relationship("Child", back_populates="events")

    def __repr__(self) -> str:  # pragma: no cover
        return (
            f"<Event(id={self.id!r}, parent_id={self.parent_id!r}, "
            f"title={self.title!r}, start_date={self.start_date!r}, "
            f"start_time={self.start_time!r}, child_id={self.child_id!r})>"
        )

    def to_dict(self) -> dict:
        """Serialize to a plain dict using the camelCase keys the UI reads."""
        return {
            "id": self.id,
            "parentId": self.parent_id,
            "title": self.title,
            "description": self.description,
            "startDate": self.start_date.isoformat() if self.start_date else None,
            "endDate": self.end_date.isoformat() if self.end_date else None,
            "startTime": self.start_time.strftime("%H:%M") if self.start_time else None,
            "endTime": self.end_time.strftime("%H:%M") if self.end_time else None,
            "isAllDay": bool(self.is_all_day),
            "category": self.category,
            "priority": self.priority,
            "color": self.color,
            "hasReminder": bool(self.has_reminder),
            "reminderMinutes": self.reminder_minutes,
            "childId": self.child_id,
            "createdAt": self.created_at.isoformat() if self.created_at else None,
            "updatedAt": self.updated_at.isoformat() if self.updated_at else None,
        }


# ----------------------------
# Utilities
# ----------------------------
def init_db(bind: Engine | None = None) -> None:
    """
    Creates tables if they don't exist.
    This does not add new columns to existing tables (SQLite limitation),
    so use ensure_schema() below for additive schema upgrades.
    """
    Base.metadata.create_all(bind=bind or engine)


def _existing_columns(engine_: Engine, table_name: str) -> Set[str]:
    with engine_.connect() as conn:
        rows = conn.exec_driver_sql(f"PRAGMA table_info({table_name});").fetchall()
        # PRAGMA table_info columns: (cid, name, type, notnull, dflt_value, pk)
        return {r[1] for r in rows}


def ensure_schema(bind: Engine | None = None) -> None:
    """
    Adds any optional columns to an existing 'events' table if missing.
    SQLite only; re-runnable (no-ops if already applied).
    """
    eng = bind or engine
    Base.metadata.create_all(bind=eng)
    if eng.dialect.name != "sqlite":
        return

    cols = _existing_columns(eng, "events")
    to_add: List[str] = []

    desired = {
        "color": "VARCHAR(20)",
        "has_reminder": "BOOLEAN NOT NULL DEFAULT 0",
        "reminder_minutes": "INTEGER",
        "child_id": "INTEGER REFERENCES children(id)",
        "created_at": "DATETIME",
        "updated_at": "DATETIME",
    }

    for name, ddl in desired.items():
        if name not in cols:
            to_add.append(f"ALTER TABLE events ADD COLUMN {name} {ddl};")

    if not to_add:
        return

    with eng.begin() as conn:
        for stmt in to_add:
            conn.exec_driver_sql(stmt)
