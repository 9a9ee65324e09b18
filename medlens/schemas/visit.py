from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field


class VisitCreate(BaseModel):
    visit_date: datetime
    initial_diagnosis: str = ""
    updates: str = ""
    summary: str = ""
    medications_given: list[str] = Field(default_factory=list)


class VisitUpdate(BaseModel):
    visit_date: datetime | None = None
    initial_diagnosis: str | None = None
    updates: str | None = None
    summary: str | None = None
    medications_given: list[str] | None = None


class VisitResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    patient_id: int
    visit_date: datetime
    initial_diagnosis: str
    updates: str
    summary: str
    medications_given: list[str]
    recorded_by_id: int | None = None
    created_at: datetime
    updated_at: datetime
