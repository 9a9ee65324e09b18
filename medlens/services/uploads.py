"""
Document uploads: presigned PUT slots, confirmation, server-side uploads and downloads.

UploadRecord status only moves pending -> completed | failed (see lifecycle.py);
completed and failed records are never rewritten.
"""
import logging
import uuid
from datetime import timedelta
from pathlib import PurePosixPath

from sqlmodel import Session, select

from medlens.core.clock import utcnow
from medlens.core.config import settings
from medlens.core.errors import (
    ConflictError,
    ForbiddenError,
    InvalidFileType,
    NotFoundError,
    ServiceError,
    StorageError,
    ValidationError,
)
from medlens.models import DOCTOR_ROLES, AIAnalysis, DocumentType, Role, UploadRecord, UploadStatus, User
from medlens.schemas import FileDescriptor, UploadSlot
from medlens.services.lifecycle import ensure_upload_transition
from medlens.services.patients import get_accessible_patient
from medlens.services.storage import DOCUMENTS, ObjectStorage, build_object_key

logger = logging.getLogger(__name__)

ALLOWED_CONTENT_TYPES = frozenset({
    "application/pdf",
    "image/jpeg",
    "image/jpg",
    "image/png",
    "application/msword",
    "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
    "text/plain",
})

# direct uploads: browsers send application/octet-stream for some files
EXTENSION_CONTENT_TYPES = {
    ".pdf": "application/pdf",
    ".jpg": "image/jpeg",
    ".jpeg": "image/jpeg",
    ".png": "image/png",
    ".doc": "application/msword",
    ".docx": "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
    ".txt": "text/plain",
}


def validate_file(file_name: str, content_type: str | None, size: int | None) -> str:
    """Returns the content type to store; raises InvalidFileType or ValidationError."""
    ctype = (content_type or "").split(";")[0].strip().lower()
    if ctype not in ALLOWED_CONTENT_TYPES:
        ctype = EXTENSION_CONTENT_TYPES.get(PurePosixPath(file_name or "").suffix.lower(), "")
        if not ctype or (content_type and content_type not in ("application/octet-stream", "")):
            raise InvalidFileType()
    if size is not None and size > settings.upload_max_bytes:
        raise ValidationError(f"File size exceeds {settings.upload_max_mb}MB limit")
    if size is not None and size <= 0:
        raise ValidationError("File is empty")
    return ctype


def get_upload_or_404(db: Session, upload_id: int) -> UploadRecord:
    record = db.get(UploadRecord, upload_id)
    if not record:
        raise NotFoundError("Upload record not found")
    return record


def _require_uploader_role(user: User) -> None:
    if Role(user.role) not in DOCTOR_ROLES:
        raise ForbiddenError("Only doctors can upload documents")


def _require_owner(record: UploadRecord, requester: User) -> None:
    if record.uploaded_by_id != requester.id:
        raise ForbiddenError("Access denied to this upload")


def issue_upload_slot(
    db: Session,
    storage: ObjectStorage,
    patient_id: int,
    descriptor: FileDescriptor,
    uploader: User,
    session_id: str | None = None,
) -> UploadSlot:
    ctype = validate_file(descriptor.file_name, descriptor.file_type, descriptor.file_size)
    _require_uploader_role(uploader)
    patient = get_accessible_patient(db, patient_id, uploader)
    key = build_object_key(patient.id, DOCUMENTS, descriptor.file_name)
    url = storage.presigned_put_url(key, settings.upload_url_expiry_seconds)
    record = UploadRecord(
        patient_id=patient.id,
        file_key=key,
        original_name=descriptor.file_name,
        uploaded_by_id=uploader.id,
        status=UploadStatus.pending,
        file_size=descriptor.file_size,
        content_type=ctype,
        upload_session_id=session_id,
    )
    db.add(record)
    db.commit()
    db.refresh(record)
    return UploadSlot(
        file_name=descriptor.file_name,
        presigned_url=url,
        upload_id=record.id,
        key=key,
        expires_in=settings.upload_url_expiry_seconds,
    )


def issue_upload_slots(
    db: Session,
    storage: ObjectStorage,
    patient_id: int,
    files: list[FileDescriptor],
    uploader: User,
) -> tuple[list[UploadSlot], list[dict]]:
    """One slot per file; a rejected file is reported without failing the batch."""
    _require_uploader_role(uploader)
    get_accessible_patient(db, patient_id, uploader)
    session_id = uuid.uuid4().hex
    slots: list[UploadSlot] = []
    errors: list[dict] = []
    for descriptor in files:
        try:
            slots.append(issue_upload_slot(db, storage, patient_id, descriptor, uploader, session_id))
        except ServiceError as e:
            db.rollback()
            errors.append({"file_name": descriptor.file_name, "error": e.message})
    return slots, errors


def confirm_upload(db: Session, upload_id: int, requester: User, key: str | None = None) -> UploadRecord:
    record = get_upload_or_404(db, upload_id)
    _require_owner(record, requester)
    if key is not None and key != record.file_key:
        raise ValidationError("Upload key does not match the record")
    if UploadStatus(record.status) == UploadStatus.completed:
        return record
    ensure_upload_transition(record.status, UploadStatus.completed)
    record.status = UploadStatus.completed
    record.completed_at = utcnow()
    db.add(record)
    db.commit()
    db.refresh(record)
    logger.info("Upload id=%s confirmed", record.id)
    return record


def fail_upload(db: Session, upload_id: int, requester: User, reason: str | None = None) -> UploadRecord:
    record = get_upload_or_404(db, upload_id)
    _require_owner(record, requester)
    if UploadStatus(record.status) == UploadStatus.failed:
        return record
    ensure_upload_transition(record.status, UploadStatus.failed)
    record.status = UploadStatus.failed
    record.error_message = (reason or "Upload failed").strip()[:500]
    db.add(record)
    db.commit()
    db.refresh(record)
    logger.info("Upload id=%s marked failed: %s", record.id, record.error_message)
    return record


def direct_upload(
    db: Session,
    storage: ObjectStorage,
    patient_id: int,
    file_name: str,
    content_type: str | None,
    data: bytes,
    uploader: User,
) -> UploadRecord:
    ctype = validate_file(file_name, content_type, len(data))
    _require_uploader_role(uploader)
    patient = get_accessible_patient(db, patient_id, uploader)
    key = build_object_key(patient.id, DOCUMENTS, file_name)
    storage.put_object(key, data, ctype)
    now = utcnow()
    record = UploadRecord(
        patient_id=patient.id,
        file_key=key,
        original_name=file_name,
        uploaded_by_id=uploader.id,
        status=UploadStatus.completed,
        file_size=len(data),
        content_type=ctype,
        created_at=now,
        completed_at=now,
    )
    db.add(record)
    db.commit()
    db.refresh(record)
    logger.info("Direct upload id=%s patient id=%s (%s bytes)", record.id, patient.id, len(data))
    return record


def get_upload_status(db: Session, upload_id: int, requester: User) -> UploadRecord:
    record = get_upload_or_404(db, upload_id)
    _require_owner(record, requester)
    return record


def list_patient_uploads(
    db: Session,
    patient_id: int,
    requester: User,
    document_type: DocumentType | None = None,
) -> list[UploadRecord]:
    get_accessible_patient(db, patient_id, requester)
    stmt = select(UploadRecord).where(UploadRecord.patient_id == patient_id)
    if document_type is not None:
        stmt = stmt.where(UploadRecord.document_type == document_type)
    return list(db.exec(stmt.order_by(UploadRecord.created_at.desc(), UploadRecord.id.desc())).all())


def download_url(db: Session, storage: ObjectStorage, upload_id: int, requester: User) -> tuple[UploadRecord, str]:
    record = get_upload_or_404(db, upload_id)
    get_accessible_patient(db, record.patient_id, requester)
    if UploadStatus(record.status) != UploadStatus.completed:
        raise ConflictError("Upload is not completed")
    return record, storage.presigned_get_url(record.file_key, settings.download_url_expiry_seconds)


def delete_upload(db: Session, storage: ObjectStorage, upload_id: int, requester: User) -> None:
    record = get_upload_or_404(db, upload_id)
    _require_owner(record, requester)
    key = record.file_key
    for analysis in db.exec(select(AIAnalysis).where(AIAnalysis.pdf_report_id == record.id)).all():
        analysis.pdf_report_id = None
        db.add(analysis)
    db.delete(record)
    db.flush()
    db.commit()
    # object removal runs after the commit; a failed removal can only orphan the object
    try:
        storage.remove_object(key)
    except StorageError as e:
        logger.warning("Upload id=%s deleted but object %s was not removed: %s", upload_id, key, e.message)
    logger.info("Upload id=%s deleted by user id=%s", upload_id, requester.id)


def expire_stale_uploads(db: Session, older_than: timedelta | None = None) -> int:
    """Pending records whose upload URL has expired can never complete: demote them to failed."""
    older_than = older_than or timedelta(seconds=settings.upload_url_expiry_seconds)
    cutoff = utcnow() - older_than
    stale = db.exec(
        select(UploadRecord).where(UploadRecord.status == UploadStatus.pending, UploadRecord.created_at < cutoff)
    ).all()
    for record in stale:
        ensure_upload_transition(record.status, UploadStatus.failed)
        record.status = UploadStatus.failed
        record.error_message = "Upload URL expired before the upload was confirmed"
        db.add(record)
    if stale:
        db.commit()
        logger.info("Expired %d stale pending uploads", len(stale))
    return len(stale)
