from .analysis import AnalysisResponse
from .auth import (
    AssignDoctorRequest,
    Hierarchy,
    ProfileUpdate,
    Token,
    UserCreate,
    UserLogin,
    UserResponse,
    UserSummary,
    UserUpdate,
)
from .patient import (
    AssignPatientDoctorRequest,
    DiagnosisUpdate,
    PatientCreate,
    PatientResponse,
    PatientUpdate,
)
from .timeline import TimelineCreate, TimelineResponse, TimelineUpdate
from .upload import (
    ConfirmUploadRequest,
    FailUploadRequest,
    FileDescriptor,
    UploadRecordResponse,
    UploadSlot,
    UploadUrlsRequest,
)
from .visit import VisitCreate, VisitResponse, VisitUpdate

__all__ = [
    "AnalysisResponse",
    "AssignDoctorRequest",
    "Hierarchy",
    "ProfileUpdate",
    "Token",
    "UserCreate",
    "UserLogin",
    "UserResponse",
    "UserSummary",
    "UserUpdate",
    "AssignPatientDoctorRequest",
    "DiagnosisUpdate",
    "PatientCreate",
    "PatientResponse",
    "PatientUpdate",
    "TimelineCreate",
    "TimelineResponse",
    "TimelineUpdate",
    "ConfirmUploadRequest",
    "FailUploadRequest",
    "FileDescriptor",
    "UploadRecordResponse",
    "UploadSlot",
    "UploadUrlsRequest",
    "VisitCreate",
    "VisitResponse",
    "VisitUpdate",
]
