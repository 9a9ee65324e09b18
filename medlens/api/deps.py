from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlmodel import Session

from medlens.core.database import get_db
from medlens.core.errors import AuthenticationError, ForbiddenError
from medlens.core.security import decode_access_token
from medlens.models import DOCTOR_ROLES, Role, User
from medlens.services.analysis import AnalysisLifecycle
from medlens.services.inference import InferenceClient
from medlens.services.report_pdf import ReportRenderer
from medlens.services.storage import ObjectStorage

security = HTTPBearer(auto_error=False)


def get_current_user_id(
    credentials: HTTPAuthorizationCredentials | None = Depends(security),
) -> int:
    if not credentials:
        raise AuthenticationError("Access token required")
    payload = decode_access_token(credentials.credentials)
    if not payload or "sub" not in payload:
        raise AuthenticationError("Invalid or expired token")
    try:
        return int(payload["sub"])
    except (TypeError, ValueError):
        raise AuthenticationError("Invalid or expired token")


def get_current_user(
    request: Request,
    user_id: int = Depends(get_current_user_id),
    db: Session = Depends(get_db),
) -> User:
    user = db.get(User, user_id)
    if not user or not user.is_active:
        raise AuthenticationError("Invalid or inactive user")
    # read by the unhandled-exception handler for ErrorLog
    request.state.user_id = user.id
    return user


def require_roles(*roles: Role):
    """Dependency factory: 403 unless the current user has one of roles."""
    allowed = frozenset(roles)

    def _check(user: User = Depends(get_current_user)) -> User:
        if Role(user.role) not in allowed:
            raise ForbiddenError("Insufficient permissions")
        return user

    return _check


require_admin = require_roles(Role.admin)
require_doctor = require_roles(*DOCTOR_ROLES)


# Collaborators are built once in main.lifespan and kept on app.state.
def get_storage(request: Request) -> ObjectStorage:
    return request.app.state.storage


def get_inference_client(request: Request) -> InferenceClient:
    return request.app.state.inference


def get_report_renderer(request: Request) -> ReportRenderer:
    return request.app.state.renderer


def get_analysis_lifecycle(
    inference: InferenceClient = Depends(get_inference_client),
    storage: ObjectStorage = Depends(get_storage),
    renderer: ReportRenderer = Depends(get_report_renderer),
) -> AnalysisLifecycle:
    return AnalysisLifecycle(inference=inference, storage=storage, renderer=renderer)
