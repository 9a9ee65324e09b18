from fastapi import APIRouter, Depends, Query, Request, status
from sqlmodel import Session

from medlens.api.deps import get_current_user, require_admin, require_roles
from medlens.api.responses import ok, pagination
from medlens.core.database import get_db
from medlens.models import PatientStatus, Role, User
from medlens.schemas import AssignPatientDoctorRequest, DiagnosisUpdate, PatientCreate, PatientResponse, PatientUpdate
from medlens.services import patients as patient_service
from medlens.services.audit import audit

router = APIRouter(prefix="/patients", tags=["patients"])


def _patient_out(patient) -> dict:
    return PatientResponse.model_validate(patient).model_dump(mode="json")


@router.get("")
@router.get("/", include_in_schema=False)
def list_patients(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    search: str | None = None,
    status_filter: PatientStatus | None = Query(None, alias="status"),
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    rows, total = patient_service.list_patients(db, user, page=page, limit=limit, search=search, status=status_filter)
    return ok([_patient_out(p) for p in rows], pagination=pagination(page, limit, total))


@router.post("", status_code=status.HTTP_201_CREATED)
@router.post("/", status_code=status.HTTP_201_CREATED, include_in_schema=False)
def create_patient(
    request: Request,
    body: PatientCreate,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    patient = patient_service.create_patient(db, body, user)
    audit(db, "create_patient", user.id, request, resource_type="patient", resource_id=patient.id)
    return ok(_patient_out(patient), message="Patient created successfully")


@router.get("/stats/overview")
def stats_overview(
    user: User = Depends(require_roles(Role.admin, Role.senior_doctor)),
    db: Session = Depends(get_db),
):
    return ok(patient_service.patient_stats(db))


@router.get("/{patient_id}")
def get_patient(patient_id: int, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    return ok(_patient_out(patient_service.get_accessible_patient(db, patient_id, user)))


@router.put("/{patient_id}")
def update_patient(
    patient_id: int,
    body: PatientUpdate,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    patient = patient_service.update_patient(db, patient_id, body, user)
    return ok(_patient_out(patient), message="Patient updated successfully")


@router.put("/{patient_id}/assign-doctor")
def assign_doctor(
    request: Request,
    patient_id: int,
    body: AssignPatientDoctorRequest,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    patient = patient_service.assign_doctor(db, patient_id, body.doctor_id, user)
    audit(db, "assign_patient_doctor", user.id, request, resource_type="patient", resource_id=patient.id)
    return ok(_patient_out(patient), message="Doctor assigned successfully")


@router.put("/{patient_id}/diagnosis")
def update_diagnosis(
    request: Request,
    patient_id: int,
    body: DiagnosisUpdate,
    user: User = Depends(require_roles(Role.front_desk_coordinator, Role.admin)),
    db: Session = Depends(get_db),
):
    patient = patient_service.update_diagnosis(db, patient_id, body, user)
    audit(db, "update_patient_diagnosis", user.id, request, resource_type="patient", resource_id=patient.id)
    return ok(_patient_out(patient), message="Patient diagnosis updated successfully")


@router.delete("/{patient_id}")
def deactivate_patient(
    request: Request,
    patient_id: int,
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    patient = patient_service.deactivate_patient(db, patient_id, admin)
    audit(db, "deactivate_patient", admin.id, request, resource_type="patient", resource_id=patient.id)
    return ok(_patient_out(patient), message="Patient deactivated successfully")
