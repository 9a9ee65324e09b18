import logging

from fastapi import Request
from sqlmodel import Session

from medlens.core.rate_limit import get_client_ip
from medlens.models import AuditLog

logger = logging.getLogger(__name__)


def audit(
    db: Session,
    event: str,
    user_id: int | None,
    request: Request | None = None,
    resource_type: str | None = None,
    resource_id: int | str | None = None,
) -> None:
    """Best effort: a failed audit write never fails the request."""
    try:
        db.add(
            AuditLog(
                event=event,
                user_id=user_id,
                resource_type=resource_type,
                resource_id=str(resource_id) if resource_id is not None else None,
                ip=get_client_ip(request) if request is not None else None,
            )
        )
        db.commit()
    except Exception as e:
        db.rollback()
        logger.warning("AuditLog write failed (%s): %s", event, e)
