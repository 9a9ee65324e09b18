"""Visit notes kept by the treating doctors, newest first."""
import logging

from sqlmodel import Session, select

from medlens.core.clock import as_utc, utcnow
from medlens.core.errors import NotFoundError
from medlens.models import PatientVisit, User
from medlens.schemas import VisitCreate, VisitUpdate
from medlens.services.patients import get_accessible_patient

logger = logging.getLogger(__name__)


def list_visits(db: Session, patient_id: int, requester: User) -> list[PatientVisit]:
    get_accessible_patient(db, patient_id, requester)
    stmt = (
        select(PatientVisit)
        .where(PatientVisit.patient_id == patient_id)
        .order_by(PatientVisit.visit_date.desc(), PatientVisit.id.desc())
    )
    return list(db.exec(stmt).all())


def add_visit(db: Session, patient_id: int, data: VisitCreate, doctor: User) -> PatientVisit:
    patient = get_accessible_patient(db, patient_id, doctor)
    fields = data.model_dump()
    fields["visit_date"] = as_utc(fields["visit_date"])
    visit = PatientVisit(**fields, patient_id=patient.id, recorded_by_id=doctor.id)
    db.add(visit)
    db.commit()
    db.refresh(visit)
    logger.info("Visit id=%s added to patient id=%s by user id=%s", visit.id, patient.id, doctor.id)
    return visit


def update_visit(db: Session, patient_id: int, visit_id: int, data: VisitUpdate, doctor: User) -> PatientVisit:
    get_accessible_patient(db, patient_id, doctor)
    visit = db.get(PatientVisit, visit_id)
    if not visit or visit.patient_id != patient_id:
        raise NotFoundError("Visit not found")
    # null leaves a field as recorded
    for key, value in data.model_dump(exclude_unset=True).items():
        if value is not None:
            setattr(visit, key, as_utc(value) if key == "visit_date" else value)
    visit.updated_at = utcnow()
    db.add(visit)
    db.commit()
    db.refresh(visit)
    return visit
