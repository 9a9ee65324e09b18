"""
AI analysis of uploaded documents.

AnalysisLifecycle drives one AIAnalysis record from processing to exactly one
terminal state. The PDF report is a side effect attempted only after the
completed state is committed; its failure never changes that state. A retry is
a new record: terminal records are never rewritten.
"""
import logging
import time
import uuid
from datetime import timedelta
from pathlib import PurePosixPath

from sqlalchemy import func
from sqlmodel import Session, select

from medlens.core.clock import utcnow
from medlens.core.config import settings
from medlens.core.errors import ConflictError, InferenceError, NotFoundError, StorageError
from medlens.models import (
    AIAnalysis,
    AnalysisStatus,
    DocumentType,
    Patient,
    UploadRecord,
    UploadStatus,
    User,
)
from medlens.services.extraction import FindingsExtractor, KeywordFindingsExtractor
from medlens.services.inference import InferenceClient, build_prompt
from medlens.services.lifecycle import ensure_analysis_transition
from medlens.services.patients import get_accessible_patient
from medlens.services.report_pdf import ReportRenderer
from medlens.services.storage import REPORTS, ObjectStorage, build_object_key
from medlens.services.text_extract import extract_excerpt

logger = logging.getLogger(__name__)

# fixed score: the provider returns free text without a confidence
DEFAULT_CONFIDENCE = 0.85
ANALYSIS_TYPE = "comprehensive_analysis"


def new_analysis_id() -> str:
    return f"AN-{uuid.uuid4().hex}"


class AnalysisLifecycle:
    def __init__(
        self,
        inference: InferenceClient,
        storage: ObjectStorage,
        renderer: ReportRenderer,
        extractor: FindingsExtractor | None = None,
    ):
        self.inference = inference
        self.storage = storage
        self.renderer = renderer
        self.extractor = extractor or KeywordFindingsExtractor()

    def start_analysis(self, db: Session, upload: UploadRecord, requester: User) -> AIAnalysis:
        patient = get_accessible_patient(db, upload.patient_id, requester)
        if DocumentType(upload.document_type) != DocumentType.user_uploaded:
            raise ConflictError("Only uploaded documents can be analyzed")
        if UploadStatus(upload.status) != UploadStatus.completed:
            raise ConflictError("Document upload is not completed")

        ensure_analysis_transition(AnalysisStatus.pending, AnalysisStatus.processing)
        now = utcnow()
        analysis = AIAnalysis(
            analysis_id=new_analysis_id(),
            patient_id=patient.id,
            document_id=upload.id,
            file_name=upload.original_name,
            analysis_type=ANALYSIS_TYPE,
            status=AnalysisStatus.processing,
            model_name=self.inference.model,
            processed_by_id=requester.id,
            created_at=now,
            started_at=now,
            updated_at=now,
        )
        db.add(analysis)
        db.commit()
        db.refresh(analysis)
        logger.info("Analysis %s started for upload id=%s", analysis.analysis_id, upload.id)

        t0 = time.perf_counter()
        try:
            reply, findings, recommendations = self._run(upload)
        except StorageError as e:
            logger.warning("Analysis %s: storage read failed: %s", analysis.analysis_id, e.message)
            return self._fail(db, analysis, e.message, t0)
        except InferenceError as e:
            logger.warning(
                "Analysis %s: inference failed (transient=%s): %s", analysis.analysis_id, e.transient, e.message
            )
            return self._fail(db, analysis, e.message, t0)
        except Exception as e:
            # the record is already committed as processing and must still reach a terminal state
            db.rollback()
            logger.exception("Analysis %s: unexpected failure", analysis.analysis_id)
            return self._fail(db, analysis, f"Analysis failed: {type(e).__name__}", t0)

        self._complete(db, analysis, reply, findings, recommendations, t0)
        self._attach_report(db, analysis, patient, requester)
        db.refresh(analysis)
        return analysis

    def _run(self, upload: UploadRecord) -> tuple[str, list[str], list[str]]:
        data = self.storage.get_object_bytes(upload.file_key)
        ext = PurePosixPath(upload.original_name or upload.file_key).suffix.lower()
        excerpt = extract_excerpt(data, upload.content_type, ext)
        prompt = build_prompt(upload.original_name, len(data), ext, excerpt)
        reply = self.inference.generate(prompt)
        findings, recommendations = self.extractor.extract(reply)
        return reply, findings, recommendations

    def _complete(self, db, analysis, reply, findings, recommendations, t0) -> None:
        ensure_analysis_transition(analysis.status, AnalysisStatus.completed)
        now = utcnow()
        analysis.status = AnalysisStatus.completed
        analysis.confidence = DEFAULT_CONFIDENCE
        analysis.summary = reply
        analysis.key_findings = findings
        analysis.recommendations = recommendations
        analysis.processing_time_ms = int((time.perf_counter() - t0) * 1000)
        analysis.completed_at = now
        analysis.updated_at = now
        db.add(analysis)
        db.commit()
        db.refresh(analysis)
        logger.info("Analysis %s completed in %s ms", analysis.analysis_id, analysis.processing_time_ms)

    def _fail(self, db, analysis, message, t0=None) -> AIAnalysis:
        ensure_analysis_transition(analysis.status, AnalysisStatus.failed)
        now = utcnow()
        analysis.status = AnalysisStatus.failed
        analysis.error_message = message
        if t0 is not None:
            analysis.processing_time_ms = int((time.perf_counter() - t0) * 1000)
        analysis.completed_at = now
        analysis.updated_at = now
        db.add(analysis)
        db.commit()
        db.refresh(analysis)
        return analysis

    def _attach_report(self, db: Session, analysis: AIAnalysis, patient: Patient, requester: User) -> None:
        """Best effort: the analysis is already committed as completed."""
        try:
            pdf = self.renderer.render(analysis, patient, requester)
            key = build_object_key(patient.id, REPORTS, f"{analysis.analysis_id}.pdf")
            self.storage.put_object(key, pdf, "application/pdf")
            now = utcnow()
            record = UploadRecord(
                patient_id=patient.id,
                file_key=key,
                original_name=f"AI_Analysis_{analysis.analysis_id}.pdf",
                uploaded_by_id=requester.id,
                status=UploadStatus.completed,
                document_type=DocumentType.ai_analysis_report,
                file_size=len(pdf),
                content_type="application/pdf",
                created_at=now,
                completed_at=now,
            )
            db.add(record)
            db.flush()
            analysis.pdf_report_id = record.id
            analysis.updated_at = now
            db.add(analysis)
            db.commit()
            logger.info("Analysis %s: PDF report stored as upload id=%s", analysis.analysis_id, record.id)
        except Exception as e:
            db.rollback()
            logger.exception("Analysis %s: PDF report generation failed: %s", analysis.analysis_id, e)

    def get_analysis(self, db: Session, analysis_id: str, requester: User) -> AIAnalysis:
        return get_analysis(db, analysis_id, requester)

    def report_download_url(self, db: Session, analysis_id: str, requester: User) -> tuple[UploadRecord, str]:
        analysis = get_analysis(db, analysis_id, requester)
        record = db.get(UploadRecord, analysis.pdf_report_id) if analysis.pdf_report_id else None
        if record is None:
            raise NotFoundError("No PDF report available for this analysis")
        return record, self.storage.presigned_get_url(record.file_key, settings.download_url_expiry_seconds)


def get_analysis(db: Session, analysis_id: str, requester: User) -> AIAnalysis:
    analysis = db.exec(select(AIAnalysis).where(AIAnalysis.analysis_id == analysis_id)).first()
    if not analysis:
        raise NotFoundError("Analysis not found")
    get_accessible_patient(db, analysis.patient_id, requester)
    return analysis


def list_patient_analyses(db: Session, patient_id: int, requester: User) -> list[AIAnalysis]:
    get_accessible_patient(db, patient_id, requester)
    stmt = (
        select(AIAnalysis)
        .where(AIAnalysis.patient_id == patient_id)
        .order_by(AIAnalysis.created_at.desc(), AIAnalysis.id.desc())
    )
    return list(db.exec(stmt).all())


def list_analyses(
    db: Session,
    status: AnalysisStatus | None = None,
    page: int = 1,
    limit: int = 20,
) -> tuple[list[AIAnalysis], int]:
    stmt = select(AIAnalysis)
    if status is not None:
        stmt = stmt.where(AIAnalysis.status == status)
    total = db.exec(select(func.count()).select_from(stmt.subquery())).one()
    rows = db.exec(stmt.order_by(AIAnalysis.created_at.desc(), AIAnalysis.id.desc()).offset((page - 1) * limit).limit(limit)).all()
    return list(rows), int(total)


def sweep_stale(db: Session, older_than: timedelta | None = None) -> int:
    """Processing records left behind by a crashed worker are failed so they stop looking in flight."""
    older_than = older_than or timedelta(minutes=settings.analysis_stale_minutes)
    cutoff = utcnow() - older_than
    stale = db.exec(
        select(AIAnalysis).where(AIAnalysis.status == AnalysisStatus.processing, AIAnalysis.started_at < cutoff)
    ).all()
    now = utcnow()
    for analysis in stale:
        ensure_analysis_transition(analysis.status, AnalysisStatus.failed)
        analysis.status = AnalysisStatus.failed
        analysis.error_message = "Analysis timed out"
        analysis.completed_at = now
        analysis.updated_at = now
        db.add(analysis)
    if stale:
        db.commit()
        logger.warning("Swept %d stale processing analyses", len(stale))
    return len(stale)
