from fastapi import APIRouter, Depends, status
from sqlmodel import Session

from medlens.api.deps import require_doctor
from medlens.api.responses import ok
from medlens.core.database import get_db
from medlens.models import User
from medlens.schemas import VisitCreate, VisitResponse, VisitUpdate
from medlens.services import visits as visit_service

router = APIRouter(prefix="/visits", tags=["visits"])


def _visit_out(visit) -> dict:
    return VisitResponse.model_validate(visit).model_dump(mode="json")


@router.get("/patient/{patient_id}")
def list_visits(patient_id: int, user: User = Depends(require_doctor), db: Session = Depends(get_db)):
    visits = visit_service.list_visits(db, patient_id, user)
    return ok([_visit_out(v) for v in visits], count=len(visits))


@router.post("/patient/{patient_id}", status_code=status.HTTP_201_CREATED)
def add_visit(
    patient_id: int,
    body: VisitCreate,
    user: User = Depends(require_doctor),
    db: Session = Depends(get_db),
):
    visit = visit_service.add_visit(db, patient_id, body, user)
    return ok(_visit_out(visit), message="Visit added successfully")


@router.put("/{patient_id}/{visit_id}")
def update_visit(
    patient_id: int,
    visit_id: int,
    body: VisitUpdate,
    user: User = Depends(require_doctor),
    db: Session = Depends(get_db),
):
    visit = visit_service.update_visit(db, patient_id, visit_id, body, user)
    return ok(_visit_out(visit), message="Visit updated successfully")
