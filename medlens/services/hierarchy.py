"""
Users and the senior/consulting doctor hierarchy.

The hierarchy is stored on both ends (consulting.assigned_senior_doctor_id and
senior.assigned_consulting_doctors); every write here keeps the two in step.
"""
import logging

from sqlmodel import Session, select

from medlens.core.clock import utcnow
from medlens.core.errors import ConflictError, ForbiddenError, NotFoundError, ValidationError
from medlens.core.security import hash_password
from medlens.models import AIAnalysis, Patient, Role, TimelineEntry, UploadRecord, User
from medlens.schemas import Hierarchy, UserCreate, UserSummary, UserUpdate
from medlens.services.access import policy

logger = logging.getLogger(__name__)


def get_user_or_404(db: Session, user_id: int) -> User:
    user = db.get(User, user_id)
    if not user:
        raise NotFoundError("User not found")
    return user


def _add_child(senior: User, consulting_id: int) -> None:
    children = list(senior.assigned_consulting_doctors or [])
    if consulting_id not in children:
        children.append(consulting_id)
    senior.assigned_consulting_doctors = children
    senior.updated_at = utcnow()


def _remove_child(senior: User, consulting_id: int) -> None:
    senior.assigned_consulting_doctors = [c for c in (senior.assigned_consulting_doctors or []) if c != consulting_id]
    senior.updated_at = utcnow()


def _link(db: Session, consulting: User, senior: User) -> None:
    previous_id = consulting.assigned_senior_doctor_id
    if previous_id is not None and previous_id != senior.id:
        previous = db.get(User, previous_id)
        if previous:
            _remove_child(previous, consulting.id)
            db.add(previous)
    consulting.assigned_senior_doctor_id = senior.id
    consulting.updated_at = utcnow()
    _add_child(senior, consulting.id)
    db.add(consulting)
    db.add(senior)


def _detach(db: Session, user: User) -> None:
    """Drops every hierarchy edge touching user (both directions)."""
    if user.assigned_senior_doctor_id is not None:
        senior = db.get(User, user.assigned_senior_doctor_id)
        if senior:
            _remove_child(senior, user.id)
            db.add(senior)
        user.assigned_senior_doctor_id = None
    for child_id in user.assigned_consulting_doctors or []:
        child = db.get(User, child_id)
        if child and child.assigned_senior_doctor_id == user.id:
            child.assigned_senior_doctor_id = None
            child.updated_at = utcnow()
            db.add(child)
    user.assigned_consulting_doctors = []
    db.add(user)


def _require_senior(db: Session, senior_id: int) -> User:
    senior = db.get(User, senior_id)
    if not senior or Role(senior.role) != Role.senior_doctor:
        raise ValidationError("Invalid senior doctor assignment")
    return senior


def register_user(db: Session, data: UserCreate) -> User:
    if db.exec(select(User).where(User.email == data.email)).first():
        raise ValidationError("User with this email already exists")
    senior = None
    if data.assigned_senior_doctor is not None:
        if Role(data.role) != Role.consulting_doctor:
            raise ValidationError("Only consulting doctors can be assigned to a senior doctor")
        senior = _require_senior(db, data.assigned_senior_doctor)
    user = User(
        email=data.email,
        hashed_password=hash_password(data.password),
        first_name=data.first_name.strip(),
        last_name=data.last_name.strip(),
        role=data.role,
        specialization=data.specialization,
        license_number=data.license_number,
        hospital=data.hospital,
        department=data.department,
        phone=data.phone,
    )
    db.add(user)
    db.flush()
    if senior is not None:
        _link(db, user, senior)
    db.commit()
    db.refresh(user)
    logger.info("Registered user id=%s role=%s", user.id, Role(user.role).value)
    return user


def assign_consulting_to_senior(db: Session, consulting_id: int, senior_id: int) -> tuple[User, User]:
    consulting = db.get(User, consulting_id)
    senior = db.get(User, senior_id)
    if not consulting or not senior:
        raise NotFoundError("User not found")
    if Role(consulting.role) != Role.consulting_doctor:
        raise ValidationError("First user must be a consulting doctor")
    if Role(senior.role) != Role.senior_doctor:
        raise ValidationError("Second user must be a senior doctor")
    _link(db, consulting, senior)
    db.commit()
    db.refresh(consulting)
    db.refresh(senior)
    return consulting, senior


def update_user(db: Session, target: User, data: UserUpdate, requester: User) -> User:
    fields = data.model_dump(exclude_unset=True)
    admin_only = {"role", "is_active", "assigned_senior_doctor"} & fields.keys()
    if admin_only and Role(requester.role) != Role.admin:
        raise ForbiddenError("Insufficient permissions")

    new_role = fields.pop("role", None)
    senior_id = fields.pop("assigned_senior_doctor", None)
    for key, value in fields.items():
        setattr(target, key, value)

    if new_role is not None and Role(new_role) != Role(target.role):
        # role drives every permission check: cached hierarchy links are re-derived
        _detach(db, target)
        target.role = new_role
    if senior_id is not None:
        if Role(target.role) != Role.consulting_doctor:
            raise ValidationError("Only consulting doctors can be assigned to a senior doctor")
        _link(db, target, _require_senior(db, senior_id))

    target.updated_at = utcnow()
    db.add(target)
    db.commit()
    db.refresh(target)
    return target


def delete_user(db: Session, target_id: int, requester: User) -> None:
    target = get_user_or_404(db, target_id)
    if target.id == requester.id:
        raise ValidationError("Cannot delete your own account")
    if db.exec(select(UploadRecord).where(UploadRecord.uploaded_by_id == target.id)).first():
        raise ConflictError("User has uploaded documents; deactivate the account instead")
    _detach(db, target)
    for patient in db.exec(select(Patient).where(Patient.assigned_doctor_id == target.id)).all():
        patient.assigned_doctor_id = None
        db.add(patient)
    for patient in db.exec(select(Patient).where(Patient.created_by_id == target.id)).all():
        patient.created_by_id = None
        db.add(patient)
    for patient in db.exec(select(Patient).where(Patient.updated_by_id == target.id)).all():
        patient.updated_by_id = None
        db.add(patient)
    for entry in db.exec(select(TimelineEntry).where(TimelineEntry.consulted_by_id == target.id)).all():
        entry.consulted_by_id = None
        db.add(entry)
    for analysis in db.exec(select(AIAnalysis).where(AIAnalysis.processed_by_id == target.id)).all():
        analysis.processed_by_id = None
        db.add(analysis)
    db.flush()
    db.delete(target)
    db.commit()
    logger.info("Deleted user id=%s by admin id=%s", target_id, requester.id)


def list_visible_users(db: Session, requester: User) -> list[User]:
    ids = policy.visible_user_ids(requester)
    stmt = select(User).order_by(User.id)
    if ids is not None:
        if not ids:
            return []
        stmt = stmt.where(User.id.in_(ids))
    return list(db.exec(stmt).all())


def list_senior_doctors(db: Session) -> list[User]:
    stmt = (
        select(User)
        .where(User.role == Role.senior_doctor, User.is_active == True)  # noqa: E712
        .order_by(User.last_name, User.first_name, User.id)
    )
    return list(db.exec(stmt).all())


def get_hierarchy(db: Session, user: User) -> Hierarchy:
    senior = db.get(User, user.assigned_senior_doctor_id) if user.assigned_senior_doctor_id else None
    children: list[User] = []
    if user.assigned_consulting_doctors:
        children = list(db.exec(select(User).where(User.id.in_(user.assigned_consulting_doctors))).all())
    return Hierarchy(
        user=UserSummary.model_validate(user),
        senior_doctor=UserSummary.model_validate(senior) if senior else None,
        consulting_doctors=[UserSummary.model_validate(c) for c in children],
    )
