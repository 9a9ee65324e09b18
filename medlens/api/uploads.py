from fastapi import APIRouter, Depends, File, Form, Request, UploadFile, status
from sqlmodel import Session

from medlens.api.deps import get_current_user, get_storage, require_doctor
from medlens.api.responses import ok
from medlens.core.config import settings
from medlens.core.database import get_db
from medlens.core.errors import ValidationError
from medlens.models import DocumentType, User
from medlens.schemas import ConfirmUploadRequest, FailUploadRequest, UploadRecordResponse, UploadUrlsRequest
from medlens.services import uploads as upload_service
from medlens.services.audit import audit
from medlens.services.storage import ObjectStorage

router = APIRouter(prefix="/upload", tags=["upload"])


def _record_out(record) -> dict:
    return UploadRecordResponse.model_validate(record).model_dump(mode="json")


@router.post("/generate-upload-urls")
def generate_upload_urls(
    body: UploadUrlsRequest,
    user: User = Depends(require_doctor),
    db: Session = Depends(get_db),
    storage: ObjectStorage = Depends(get_storage),
):
    slots, errors = upload_service.issue_upload_slots(db, storage, body.patient_id, body.files, user)
    if not slots:
        raise ValidationError(errors[0]["error"] if len(errors) == 1 else "No valid files to upload")
    return ok(
        {"upload_urls": [s.model_dump() for s in slots], "errors": errors},
        message=f"Generated {len(slots)} upload URL(s)",
    )


@router.post("/confirm-upload")
def confirm_upload(
    body: ConfirmUploadRequest,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    record = upload_service.confirm_upload(db, body.upload_id, user, key=body.key)
    return ok(_record_out(record), message="Upload confirmed successfully")


@router.post("/direct", status_code=status.HTTP_201_CREATED)
def direct_upload(
    patient_id: int = Form(...),
    file: UploadFile = File(...),
    user: User = Depends(require_doctor),
    db: Session = Depends(get_db),
    storage: ObjectStorage = Depends(get_storage),
):
    # read one byte past the limit so oversized files fail validation without buffering them whole
    data = file.file.read(settings.upload_max_bytes + 1)
    record = upload_service.direct_upload(
        db, storage, patient_id, file.filename or "document", file.content_type, data, user
    )
    return ok(_record_out(record), message="File uploaded successfully")


@router.get("/upload-status/{upload_id}")
def upload_status(upload_id: int, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    return ok(_record_out(upload_service.get_upload_status(db, upload_id, user)))


@router.get("/patient/{patient_id}/files")
def patient_files(
    patient_id: int,
    document_type: DocumentType | None = None,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    records = upload_service.list_patient_uploads(db, patient_id, user, document_type=document_type)
    return ok([_record_out(r) for r in records], count=len(records))


@router.post("/{upload_id}/fail")
def fail_upload(
    upload_id: int,
    body: FailUploadRequest,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    record = upload_service.fail_upload(db, upload_id, user, reason=body.reason)
    return ok(_record_out(record), message="Upload marked as failed")


@router.get("/{upload_id}/download")
def download(
    upload_id: int,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    storage: ObjectStorage = Depends(get_storage),
):
    record, url = upload_service.download_url(db, storage, upload_id, user)
    return ok(
        {
            "download_url": url,
            "file_name": record.original_name,
            "content_type": record.content_type,
            "expires_in": settings.download_url_expiry_seconds,
        }
    )


@router.delete("/{upload_id}")
def delete_upload(
    request: Request,
    upload_id: int,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    storage: ObjectStorage = Depends(get_storage),
):
    upload_service.delete_upload(db, storage, upload_id, user)
    audit(db, "delete_upload", user.id, request, resource_type="upload", resource_id=upload_id)
    return ok(message="File deleted successfully")
