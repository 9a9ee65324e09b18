from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field

from medlens.models import TimelineType


class TimelineCreate(BaseModel):
    title: str = Field(min_length=1, max_length=100)
    description: str = Field(min_length=1, max_length=500)
    entry_type: TimelineType = TimelineType.other
    entry_date: datetime | None = None
    duration: str | None = None
    consultation_summary: str | None = Field(default=None, max_length=2000)
    documents_count: int = Field(default=0, ge=0)


class TimelineUpdate(BaseModel):
    title: str | None = Field(default=None, min_length=1, max_length=100)
    description: str | None = Field(default=None, min_length=1, max_length=500)
    entry_type: TimelineType | None = None
    entry_date: datetime | None = None
    duration: str | None = None
    consultation_summary: str | None = Field(default=None, max_length=2000)
    documents_count: int | None = Field(default=None, ge=0)


class TimelineResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    patient_id: int
    title: str
    description: str
    entry_type: TimelineType
    entry_date: datetime
    duration: str | None = None
    consulted_by_id: int | None = None
    consultation_summary: str | None = None
    documents_count: int
    created_at: datetime
