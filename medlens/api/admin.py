"""Admin API: analysis overview, audit/error logs and the maintenance sweep. Admin role only."""
from fastapi import APIRouter, Depends, Query
from sqlmodel import Session, select

from medlens.api.analysis import analysis_out
from medlens.api.deps import require_admin
from medlens.api.responses import ok, pagination
from medlens.core.database import get_db
from medlens.models import AnalysisStatus, AuditLog, ErrorLog, User
from medlens.services import analysis as analysis_service
from medlens.services import uploads as upload_service

router = APIRouter(prefix="/admin", tags=["admin"], dependencies=[Depends(require_admin)])


@router.get("/analyses")
def admin_analyses(
    db: Session = Depends(get_db),
    status: AnalysisStatus | None = None,
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=200),
):
    rows, total = analysis_service.list_analyses(db, status=status, page=page, limit=limit)
    return ok([analysis_out(a) for a in rows], pagination=pagination(page, limit, total))


@router.get("/logs")
def admin_logs(
    db: Session = Depends(get_db),
    limit: int = Query(200, le=500),
    event: str | None = Query(None, description="Filter: login, failed_login, register_user, start_analysis, ..."),
):
    """Latest audit log entries; user email is joined in when user_id is set."""
    stmt = select(AuditLog).order_by(AuditLog.id.desc()).limit(limit)
    if event:
        stmt = stmt.where(AuditLog.event == event)
    logs = list(db.exec(stmt).all())
    user_ids = {log.user_id for log in logs if log.user_id}
    users_map = {}
    if user_ids:
        for u in db.exec(select(User).where(User.id.in_(user_ids))).all():
            users_map[u.id] = u.email
    return ok(
        [
            {
                "id": log.id,
                "event": log.event,
                "user_id": log.user_id,
                "user_email": users_map.get(log.user_id) if log.user_id else None,
                "resource_type": log.resource_type,
                "resource_id": log.resource_id,
                "ip": log.ip,
                "created_at": log.created_at.isoformat() if log.created_at else None,
            }
            for log in logs
        ]
    )


@router.get("/errors")
def admin_errors(db: Session = Depends(get_db), limit: int = Query(100, le=500)):
    rows = db.exec(select(ErrorLog).order_by(ErrorLog.id.desc()).limit(limit)).all()
    return ok(
        [
            {
                "id": e.id,
                "user_id": e.user_id,
                "endpoint": e.endpoint,
                "method": e.method,
                "error_message": e.error_message,
                "created_at": e.created_at.isoformat() if e.created_at else None,
            }
            for e in rows
        ]
    )


@router.post("/maintenance/sweep")
def maintenance_sweep(db: Session = Depends(get_db)):
    uploads = upload_service.expire_stale_uploads(db)
    analyses = analysis_service.sweep_stale(db)
    return ok({"expired_uploads": uploads, "failed_analyses": analyses}, message="Maintenance sweep completed")
