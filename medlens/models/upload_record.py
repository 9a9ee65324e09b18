"""Uploaded documents: pending -> completed | failed."""
from datetime import datetime
from enum import Enum

from sqlmodel import Field, SQLModel

from medlens.core.clock import utcnow


class UploadStatus(str, Enum):
    pending = "pending"
    completed = "completed"
    failed = "failed"


class DocumentType(str, Enum):
    user_uploaded = "user-uploaded"
    ai_analysis_report = "ai-analysis-report"


class UploadRecord(SQLModel, table=True):
    __tablename__ = "upload_records"
    id: int | None = Field(default=None, primary_key=True)
    patient_id: int = Field(foreign_key="patient.id", index=True)
    file_key: str = Field(unique=True, index=True)  # storage object key
    original_name: str
    uploaded_by_id: int = Field(foreign_key="user.id", index=True)
    status: UploadStatus = Field(default=UploadStatus.pending, index=True)
    document_type: DocumentType = Field(default=DocumentType.user_uploaded)
    file_size: int | None = None
    content_type: str | None = None
    upload_session_id: str | None = None
    error_message: str | None = None
    created_at: datetime = Field(default_factory=utcnow, index=True)
    completed_at: datetime | None = None
