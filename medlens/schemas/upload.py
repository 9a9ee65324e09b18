from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field

from medlens.models import DocumentType, UploadStatus


class FileDescriptor(BaseModel):
    file_name: str = Field(min_length=1)
    file_type: str
    file_size: int | None = Field(default=None, ge=0)


class UploadUrlsRequest(BaseModel):
    patient_id: int
    files: list[FileDescriptor] = Field(min_length=1)


class ConfirmUploadRequest(BaseModel):
    upload_id: int
    key: str | None = None


class FailUploadRequest(BaseModel):
    reason: str | None = Field(default=None, max_length=500)


class UploadSlot(BaseModel):
    file_name: str
    presigned_url: str
    upload_id: int
    key: str
    expires_in: int


class UploadRecordResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    patient_id: int
    file_key: str
    original_name: str
    uploaded_by_id: int
    status: UploadStatus
    document_type: DocumentType
    file_size: int | None = None
    content_type: str | None = None
    error_message: str | None = None
    created_at: datetime
    completed_at: datetime | None = None
