from fastapi import APIRouter, Depends, Request, status
from fastapi.responses import JSONResponse
from sqlmodel import Session

from medlens.api.deps import get_analysis_lifecycle, get_current_user, require_doctor
from medlens.api.responses import ok
from medlens.core.config import settings
from medlens.core.database import get_db
from medlens.core.rate_limit import limiter
from medlens.models import AIAnalysis, AnalysisStatus, User
from medlens.schemas import AnalysisResponse
from medlens.services import analysis as analysis_service
from medlens.services.analysis import AnalysisLifecycle
from medlens.services.audit import audit
from medlens.services.uploads import get_upload_or_404

router = APIRouter(prefix="/analysis", tags=["analysis"])


def analysis_out(analysis: AIAnalysis) -> dict:
    return AnalysisResponse.model_validate(analysis).model_dump(mode="json")


@router.post("/documents/{upload_id}", status_code=status.HTTP_201_CREATED)
@limiter.limit(f"{settings.rate_limit_per_minute}/minute")
def start_analysis(
    request: Request,
    upload_id: int,
    user: User = Depends(require_doctor),
    db: Session = Depends(get_db),
    lifecycle: AnalysisLifecycle = Depends(get_analysis_lifecycle),
):
    upload = get_upload_or_404(db, upload_id)
    analysis = lifecycle.start_analysis(db, upload, user)
    audit(db, "start_analysis", user.id, request, resource_type="analysis", resource_id=analysis.analysis_id)
    data = analysis_out(analysis)
    if AnalysisStatus(data["status"]) == AnalysisStatus.failed:
        return JSONResponse(
            status_code=status.HTTP_502_BAD_GATEWAY,
            content={
                "success": False,
                "message": data["error_message"] or "Analysis failed",
                "status_code": status.HTTP_502_BAD_GATEWAY,
                "request_id": getattr(request.state, "request_id", None),
                "data": data,
            },
        )
    return ok(data, message="Analysis completed successfully")


@router.get("/patient/{patient_id}")
def patient_analyses(patient_id: int, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    rows = analysis_service.list_patient_analyses(db, patient_id, user)
    return ok([analysis_out(a) for a in rows], count=len(rows))


@router.get("/{analysis_id}")
def get_analysis(analysis_id: str, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    return ok(analysis_out(analysis_service.get_analysis(db, analysis_id, user)))


@router.get("/{analysis_id}/report")
def report(
    analysis_id: str,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    lifecycle: AnalysisLifecycle = Depends(get_analysis_lifecycle),
):
    record, url = lifecycle.report_download_url(db, analysis_id, user)
    return ok(
        {
            "download_url": url,
            "file_name": record.original_name,
            "report_id": record.id,
            "expires_in": settings.download_url_expiry_seconds,
        }
    )
