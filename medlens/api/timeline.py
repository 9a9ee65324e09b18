from fastapi import APIRouter, Depends, status
from sqlmodel import Session

from medlens.api.deps import get_current_user, require_doctor
from medlens.api.responses import ok
from medlens.core.database import get_db
from medlens.models import User
from medlens.schemas import TimelineCreate, TimelineResponse, TimelineUpdate
from medlens.services import timeline as timeline_service

router = APIRouter(prefix="/timeline", tags=["timeline"])


def _entry_out(entry) -> dict:
    return TimelineResponse.model_validate(entry).model_dump(mode="json")


@router.get("/patient/{patient_id}")
def list_entries(patient_id: int, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    entries = timeline_service.list_entries(db, patient_id, user)
    return ok([_entry_out(e) for e in entries], count=len(entries))


@router.post("/patient/{patient_id}", status_code=status.HTTP_201_CREATED)
def add_entry(
    patient_id: int,
    body: TimelineCreate,
    user: User = Depends(require_doctor),
    db: Session = Depends(get_db),
):
    entry = timeline_service.add_entry(db, patient_id, body, user)
    return ok(_entry_out(entry), message="Timeline entry created successfully")


@router.put("/{entry_id}")
def update_entry(
    entry_id: int,
    body: TimelineUpdate,
    user: User = Depends(require_doctor),
    db: Session = Depends(get_db),
):
    entry = timeline_service.update_entry(db, entry_id, body, user)
    return ok(_entry_out(entry), message="Timeline entry updated successfully")


@router.delete("/{entry_id}")
def delete_entry(entry_id: int, user: User = Depends(require_doctor), db: Session = Depends(get_db)):
    timeline_service.delete_entry(db, entry_id, user)
    return ok(message="Timeline entry deleted successfully")
