from .analysis import AIAnalysis, AnalysisStatus
from .audit import AuditLog
from .error_log import ErrorLog
from .patient import Gender, Patient, PatientStatus
from .timeline import TimelineEntry, TimelineType
from .upload_record import DocumentType, UploadRecord, UploadStatus
from .visit import PatientVisit
from .user import ASSIGNABLE_DOCTOR_ROLES, DOCTOR_ROLES, Role, User

__all__ = [
    "AIAnalysis",
    "AnalysisStatus",
    "AuditLog",
    "ErrorLog",
    "Gender",
    "Patient",
    "PatientStatus",
    "TimelineEntry",
    "TimelineType",
    "DocumentType",
    "UploadRecord",
    "UploadStatus",
    "PatientVisit",
    "ASSIGNABLE_DOCTOR_ROLES",
    "DOCTOR_ROLES",
    "Role",
    "User",
]
