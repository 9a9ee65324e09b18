"""Patient timeline: consultations, lab reviews, follow-ups."""
from datetime import datetime
from enum import Enum

from sqlmodel import Field, SQLModel

from medlens.core.clock import utcnow


class TimelineType(str, Enum):
    consultation = "consultation"
    lab_review = "lab_review"
    follow_up = "follow_up"
    registration = "registration"
    case_closed = "case_closed"
    other = "other"


class TimelineEntry(SQLModel, table=True):
    __tablename__ = "timeline_entries"
    id: int | None = Field(default=None, primary_key=True)
    patient_id: int = Field(foreign_key="patient.id", index=True)
    title: str = Field(max_length=100)
    description: str = Field(max_length=500)
    entry_type: TimelineType = Field(default=TimelineType.other, index=True)
    entry_date: datetime = Field(default_factory=utcnow, index=True)
    duration: str | None = None
    consulted_by_id: int | None = Field(default=None, foreign_key="user.id", index=True)
    consultation_summary: str | None = Field(default=None, max_length=2000)
    documents_count: int = 0
    is_active: bool = Field(default=True, index=True)
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)
