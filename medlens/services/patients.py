"""
Patient records and their ownership (creator, assigned doctor).

Every read and write goes through the access policy after the existence check,
so callers get 404 before 403.
"""
import logging
import secrets
import string
import time

from sqlalchemy import func, or_
from sqlmodel import Session, select

from medlens.core.clock import utcnow
from medlens.core.errors import ConflictError, ForbiddenError, PatientNotFound, ValidationError
from medlens.models import (
    ASSIGNABLE_DOCTOR_ROLES,
    Patient,
    PatientStatus,
    Role,
    TimelineEntry,
    TimelineType,
    User,
)
from medlens.schemas import DiagnosisUpdate, PatientCreate, PatientUpdate
from medlens.services.access import policy

logger = logging.getLogger(__name__)

# fields a front desk coordinator may change after intake
COORDINATOR_FIELDS = frozenset({
    "phone",
    "email",
    "address_street",
    "address_city",
    "address_state",
    "address_zip_code",
    "address_country",
    "emergency_contact_name",
    "emergency_contact_relationship",
    "emergency_contact_phone",
    "initial_diagnosis",
    "symptoms",
    "observations",
    "notes",
})

_CODE_ALPHABET = string.ascii_uppercase + string.digits


def generate_patient_code() -> str:
    suffix = "".join(secrets.choice(_CODE_ALPHABET) for _ in range(5))
    return f"PAT{int(time.time() * 1000)}{suffix}"


def get_accessible_patient(db: Session, patient_id: int, requester: User) -> Patient:
    patient = db.get(Patient, patient_id)
    if not patient:
        raise PatientNotFound()
    if not policy.can_access_patient(requester, patient):
        raise ForbiddenError("Access denied to this patient")
    return patient


def _assignable_doctor(db: Session, doctor_id: int) -> User:
    doctor = db.get(User, doctor_id)
    if not doctor or not doctor.is_active or Role(doctor.role) not in ASSIGNABLE_DOCTOR_ROLES:
        raise ValidationError("Invalid doctor assignment")
    return doctor


def _attach_to_doctor(doctor: User, patient_id: int) -> None:
    ids = list(doctor.assigned_patients or [])
    if patient_id not in ids:
        ids.append(patient_id)
    doctor.assigned_patients = ids
    doctor.updated_at = utcnow()


def _detach_from_doctor(doctor: User, patient_id: int) -> None:
    doctor.assigned_patients = [p for p in (doctor.assigned_patients or []) if p != patient_id]
    doctor.updated_at = utcnow()


def create_patient(db: Session, data: PatientCreate, creator: User) -> Patient:
    fields = data.model_dump(exclude_unset=True)
    code = (fields.pop("patient_code", None) or generate_patient_code()).upper()
    if db.exec(select(Patient).where(Patient.patient_code == code)).first():
        raise ValidationError("Patient with this code already exists")
    doctor_id = fields.pop("assigned_doctor_id", None)
    doctor = _assignable_doctor(db, doctor_id) if doctor_id is not None else None
    if fields.get("email"):
        fields["email"] = str(fields["email"]).lower()

    patient = Patient(
        **fields,
        patient_code=code,
        created_by_id=creator.id,
        updated_by_id=creator.id,
        assigned_doctor_id=doctor.id if doctor else None,
    )
    db.add(patient)
    db.flush()
    if doctor is not None:
        _attach_to_doctor(doctor, patient.id)
        db.add(doctor)
    db.add(
        TimelineEntry(
            patient_id=patient.id,
            title="Patient registered",
            description=f"Patient {patient.full_name} registered ({patient.patient_code})",
            entry_type=TimelineType.registration,
            consulted_by_id=creator.id,
        )
    )
    db.commit()
    db.refresh(patient)
    logger.info("Created patient id=%s code=%s by user id=%s", patient.id, patient.patient_code, creator.id)
    return patient


def list_patients(
    db: Session,
    requester: User,
    page: int = 1,
    limit: int = 10,
    search: str | None = None,
    status: PatientStatus | None = None,
) -> tuple[list[Patient], int]:
    scope = policy.patient_scope(requester)
    if scope.deny_all:
        return [], 0
    stmt = select(Patient)
    if scope.field is not None:
        stmt = stmt.where(getattr(Patient, scope.field) == scope.value)
    if status is not None:
        stmt = stmt.where(Patient.status == status)
    if search and search.strip():
        like = f"%{search.strip()}%"
        stmt = stmt.where(
            or_(
                Patient.first_name.ilike(like),
                Patient.last_name.ilike(like),
                Patient.patient_code.ilike(like),
                Patient.mrn.ilike(like),
                Patient.email.ilike(like),
                Patient.phone.ilike(like),
            )
        )
    total = db.exec(select(func.count()).select_from(stmt.subquery())).one()
    rows = db.exec(stmt.order_by(Patient.created_at.desc(), Patient.id.desc()).offset((page - 1) * limit).limit(limit)).all()
    return list(rows), int(total)


def update_patient(db: Session, patient_id: int, data: PatientUpdate, requester: User) -> Patient:
    patient = get_accessible_patient(db, patient_id, requester)
    fields = data.model_dump(exclude_unset=True)
    if Role(requester.role) == Role.front_desk_coordinator:
        blocked = sorted(set(fields) - COORDINATOR_FIELDS)
        if blocked:
            raise ForbiddenError(f"Front desk coordinators cannot update: {', '.join(blocked)}")
    if fields.get("email"):
        fields["email"] = str(fields["email"]).lower()
    for key, value in fields.items():
        setattr(patient, key, value)
    if "status" in fields:
        patient.is_active = patient.status == PatientStatus.active
    patient.updated_by_id = requester.id
    patient.updated_at = utcnow()
    db.add(patient)
    db.commit()
    db.refresh(patient)
    return patient


def _move_to_doctor(db: Session, patient: Patient, doctor: User) -> None:
    if patient.assigned_doctor_id is not None and patient.assigned_doctor_id != doctor.id:
        previous = db.get(User, patient.assigned_doctor_id)
        if previous:
            _detach_from_doctor(previous, patient.id)
            db.add(previous)
    patient.assigned_doctor_id = doctor.id
    _attach_to_doctor(doctor, patient.id)
    db.add(doctor)


def assign_doctor(db: Session, patient_id: int, doctor_id: int, requester: User) -> Patient:
    patient = get_accessible_patient(db, patient_id, requester)
    role = Role(requester.role)
    if role not in (Role.admin, Role.senior_doctor, Role.front_desk_coordinator):
        raise ForbiddenError("Insufficient permissions")
    doctor = _assignable_doctor(db, doctor_id)
    if patient.assigned_doctor_id == doctor.id:
        raise ConflictError("Patient is already assigned to this doctor")

    _move_to_doctor(db, patient, doctor)
    patient.updated_by_id = requester.id
    patient.updated_at = utcnow()
    db.add(patient)
    db.commit()
    db.refresh(patient)
    logger.info("Assigned patient id=%s to doctor id=%s", patient.id, doctor.id)
    return patient


def update_diagnosis(db: Session, patient_id: int, data: DiagnosisUpdate, requester: User) -> Patient:
    """
    Intake diagnosis notes from the front desk.

    Empty values keep what is already recorded. A senior doctor given here
    takes over the patient and the case becomes active again.
    """
    patient = get_accessible_patient(db, patient_id, requester)
    senior = None
    if data.assigned_senior_doctor_id is not None:
        senior = db.get(User, data.assigned_senior_doctor_id)
        if not senior or not senior.is_active or Role(senior.role) != Role.senior_doctor:
            raise ValidationError("Invalid senior doctor ID")

    for key in ("initial_diagnosis", "symptoms", "observations"):
        value = getattr(data, key)
        if value:
            setattr(patient, key, value)
    if senior is not None:
        _move_to_doctor(db, patient, senior)
        patient.status = PatientStatus.active
        patient.is_active = True
    patient.updated_by_id = requester.id
    patient.updated_at = utcnow()
    db.add(patient)
    db.commit()
    db.refresh(patient)
    logger.info("Diagnosis notes for patient id=%s updated by user id=%s", patient.id, requester.id)
    return patient


def deactivate_patient(db: Session, patient_id: int, requester: User) -> Patient:
    patient = db.get(Patient, patient_id)
    if not patient:
        raise PatientNotFound()
    patient.status = PatientStatus.inactive
    patient.is_active = False
    patient.updated_by_id = requester.id
    patient.updated_at = utcnow()
    db.add(patient)
    db.commit()
    db.refresh(patient)
    return patient


def patient_stats(db: Session) -> dict:
    total = db.exec(select(func.count()).select_from(Patient)).one()
    by_status = {s.value: 0 for s in PatientStatus}
    for status, count in db.exec(select(Patient.status, func.count()).group_by(Patient.status)).all():
        by_status[PatientStatus(status).value] = count
    by_gender: dict[str, int] = {}
    for gender, count in db.exec(select(Patient.gender, func.count()).group_by(Patient.gender)).all():
        by_gender[gender.value if hasattr(gender, "value") else str(gender)] = count
    unassigned = db.exec(
        select(func.count()).select_from(Patient).where(Patient.assigned_doctor_id.is_(None))
    ).one()
    return {
        "total_patients": int(total),
        "active_patients": by_status[PatientStatus.active.value],
        "inactive_patients": by_status[PatientStatus.inactive.value],
        "discharged_patients": by_status[PatientStatus.discharged.value],
        "unassigned_patients": int(unassigned),
        "by_gender": by_gender,
    }
