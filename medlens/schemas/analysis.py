from datetime import datetime

from pydantic import BaseModel, ConfigDict

from medlens.models import AnalysisStatus


class AnalysisResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    analysis_id: str
    patient_id: int
    document_id: int
    file_name: str
    analysis_type: str
    status: AnalysisStatus
    confidence: float | None = None
    summary: str | None = None
    key_findings: list[str] = []
    recommendations: list[str] = []
    model_name: str | None = None
    processing_time_ms: int | None = None
    error_message: str | None = None
    pdf_report_id: int | None = None
    processed_by_id: int | None = None
    created_at: datetime
    started_at: datetime | None = None
    completed_at: datetime | None = None
