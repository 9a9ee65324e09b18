"""AI analysis jobs: pending -> processing -> completed | failed."""
from datetime import datetime
from enum import Enum

from sqlalchemy import JSON, Column
from sqlmodel import Field, SQLModel

from medlens.core.clock import utcnow


class AnalysisStatus(str, Enum):
    pending = "pending"
    processing = "processing"
    completed = "completed"
    failed = "failed"


class AIAnalysis(SQLModel, table=True):
    __tablename__ = "ai_analyses"
    id: int | None = Field(default=None, primary_key=True)
    analysis_id: str = Field(unique=True, index=True)
    patient_id: int = Field(foreign_key="patient.id", index=True)
    document_id: int = Field(index=True)  # source UploadRecord.id
    file_name: str
    analysis_type: str = "comprehensive_analysis"
    status: AnalysisStatus = Field(default=AnalysisStatus.pending, index=True)
    confidence: float | None = Field(default=None, ge=0, le=1)
    summary: str | None = None
    key_findings: list[str] = Field(default_factory=list, sa_column=Column(JSON, nullable=False))
    recommendations: list[str] = Field(default_factory=list, sa_column=Column(JSON, nullable=False))
    model_name: str | None = None
    processing_time_ms: int | None = None
    error_message: str | None = None
    pdf_report_id: int | None = None  # UploadRecord.id of the generated report
    processed_by_id: int | None = Field(default=None, foreign_key="user.id", index=True)
    created_at: datetime = Field(default_factory=utcnow, index=True)
    started_at: datetime | None = None
    completed_at: datetime | None = None
    updated_at: datetime = Field(default_factory=utcnow)
