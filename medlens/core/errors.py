"""
Service error taxonomy.

Every error is an HTTPException so routers and services can raise them directly
and the global handler renders them in the standard failure envelope.
"""
from fastapi import HTTPException, status


class ServiceError(HTTPException):
    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_message: str = "Internal server error"

    def __init__(self, message: str | None = None, headers: dict | None = None):
        self.message = message or self.default_message
        super().__init__(status_code=type(self).status_code, detail=self.message, headers=headers)


class ValidationError(ServiceError):
    status_code = status.HTTP_400_BAD_REQUEST
    default_message = "Validation error"


class InvalidFileType(ValidationError):
    default_message = "Invalid file type. Only PDF, images, Word documents, and text files are allowed."


class AuthenticationError(ServiceError):
    status_code = status.HTTP_401_UNAUTHORIZED
    default_message = "Authentication required"

    def __init__(self, message: str | None = None):
        super().__init__(message, headers={"WWW-Authenticate": "Bearer"})


class ForbiddenError(ServiceError):
    status_code = status.HTTP_403_FORBIDDEN
    default_message = "Insufficient permissions"


class NotFoundError(ServiceError):
    status_code = status.HTTP_404_NOT_FOUND
    default_message = "Not found"


class PatientNotFound(NotFoundError):
    default_message = "Patient not found"


class ConflictError(ServiceError):
    status_code = status.HTTP_409_CONFLICT
    default_message = "Conflict"


class ExternalServiceError(ServiceError):
    status_code = status.HTTP_502_BAD_GATEWAY
    default_message = "External service error"


class StorageError(ExternalServiceError):
    default_message = "Object storage error"


class StorageReadError(StorageError):
    default_message = "Document could not be read from storage"


class InferenceError(ExternalServiceError):
    default_message = "Inference provider error"

    def __init__(self, message: str | None = None, transient: bool = False):
        super().__init__(message)
        # transient: timeouts, connection errors, rate limits, 5xx
        self.transient = transient
