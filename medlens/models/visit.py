"""Doctor visits recorded against a patient."""
from datetime import datetime

from sqlalchemy import JSON, Column
from sqlmodel import Field, SQLModel

from medlens.core.clock import utcnow


class PatientVisit(SQLModel, table=True):
    __tablename__ = "patient_visits"
    id: int | None = Field(default=None, primary_key=True)
    patient_id: int = Field(foreign_key="patient.id", index=True)
    visit_date: datetime = Field(index=True)
    initial_diagnosis: str = ""
    updates: str = ""
    summary: str = ""
    medications_given: list[str] = Field(default_factory=list, sa_column=Column(JSON, nullable=False))
    recorded_by_id: int | None = Field(default=None, foreign_key="user.id", index=True)
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)
