# schemas.py

from datetime import date, time, datetime, timedelta
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, Field, field_serializer, field_validator, model_validator


DEFAULT_EVENT_WINDOW = timedelta(hours=1)


class Category(str, Enum):
    """Event categories; declaration order is the keyword-scan order."""

    SCHOOL_EVENT = "SCHOOL_EVENT"
    ASSIGNMENT_DUE = "ASSIGNMENT_DUE"
    EXAM = "EXAM"
    PARENT_MEETING = "PARENT_MEETING"
    EXTRACURRICULAR = "EXTRACURRICULAR"
    APPOINTMENT = "APPOINTMENT"
    BIRTHDAY = "BIRTHDAY"
    HOLIDAY = "HOLIDAY"
    REMINDER = "REMINDER"
    OTHER = "OTHER"


class Priority(str, Enum):
    URGENT = "URGENT"
    HIGH = "HIGH"
    MEDIUM = "MEDIUM"
    LOW = "LOW"


# -----------------------------
# Inbound content
# -----------------------------
class RawContent(BaseModel):
    text: str = ""
    mime_hint: Optional[str] = None


class PhotoContent(BaseModel):
    image: bytes = b""
    mime_type: str = "image/jpeg"


# -----------------------------
# Event candidate (shared fields)
# -----------------------------
class EventCandidate(BaseModel):
    title: str
    description: str = "Event created from email analysis"
    start_date: date = Field(serialization_alias="startDate")
    end_date: Optional[date] = Field(default=None, serialization_alias="endDate")
    start_time: Optional[time] = Field(default=None, serialization_alias="startTime")
    end_time: Optional[time] = Field(default=None, serialization_alias="endTime")
    is_all_day: bool = Field(default=False, serialization_alias="isAllDay")
    category: Category = Category.OTHER
    priority: Priority = Priority.MEDIUM
    has_reminder: bool = Field(default=False, serialization_alias="hasReminder")
    reminder_minutes: Optional[int] = Field(default=None, serialization_alias="reminderMinutes")
    child_name_hint: Optional[str] = Field(default=None, serialization_alias="childNameHint")
    color: Optional[str] = None

    # Pydantic v2 config
    model_config = {
        "from_attributes": True,  # ORM mode
        "populate_by_name": True,
    }

    @model_validator(mode="after")
    def _enforce_invariants(self):
        if not self.has_reminder:
            self.reminder_minutes = None
        if self.end_date is not None and self.end_date < self.start_date:
            raise ValueError("endDate must not be before startDate")
        return self

    @field_serializer("start_time", "end_time")
    def _hhmm(self, value: Optional[time]):
        return value.strftime("%H:%M") if value else None


class ClassificationResult(BaseModel):
    has_events: bool = Field(default=False, serialization_alias="hasEvents")
    events: List[EventCandidate] = Field(default_factory=list)
    analysis: str = ""
    errors: List[str] = Field(default_factory=list)


# Response model for stored events
class PersistedEvent(EventCandidate):
    id: int
    parent_id: int = Field(serialization_alias="parentId")
    child_id: Optional[int] = Field(default=None, serialization_alias="childId")
    created_at: Optional[datetime] = Field(default=None, serialization_alias="createdAt")
    updated_at: Optional[datetime] = Field(default=None, serialization_alias="updatedAt")


class AnalysisResult(BaseModel):
    has_events: bool = Field(default=False, serialization_alias="hasEvents")
    events_created: int = Field(default=0, serialization_alias="eventsCreated")
    events: List[PersistedEvent] = Field(default_factory=list)
    skipped: int = 0
    analysis: str = ""
    errors: List[str] = Field(default_factory=list)


# -----------------------------
# Calendar views
# -----------------------------
class CalendarCell(BaseModel):
    date: date
    is_current_month: bool = Field(default=False, serialization_alias="isCurrentMonth")
    is_previous_month: bool = Field(default=False, serialization_alias="isPreviousMonth")
    is_next_month: bool = Field(default=False, serialization_alias="isNextMonth")

    model_config = {"frozen": True}


class CandidateInterval(BaseModel):
    """Half-open [start, end); a missing end means a one-hour window."""

    start: datetime
    end: Optional[datetime] = None

    @field_validator("start", "end")
    @classmethod
    def _wall_clock(cls, v: Optional[datetime]):
        # stored events are local wall-clock times; compare naive to naive
        return v.replace(tzinfo=None) if v is not None else v

    @property
    def effective_end(self) -> datetime:
        if self.end is None or self.end <= self.start:
            return self.start + DEFAULT_EVENT_WINDOW
        return self.end
