import logging

from sqlmodel import Session, select

from medlens.core.clock import as_utc, utcnow
from medlens.core.errors import ForbiddenError, NotFoundError
from medlens.models import Role, TimelineEntry, User
from medlens.schemas import TimelineCreate, TimelineUpdate
from medlens.services.patients import get_accessible_patient

logger = logging.getLogger(__name__)


def list_entries(db: Session, patient_id: int, requester: User) -> list[TimelineEntry]:
    get_accessible_patient(db, patient_id, requester)
    stmt = (
        select(TimelineEntry)
        .where(TimelineEntry.patient_id == patient_id, TimelineEntry.is_active == True)  # noqa: E712
        .order_by(TimelineEntry.entry_date.desc(), TimelineEntry.id.desc())
    )
    return list(db.exec(stmt).all())


def add_entry(db: Session, patient_id: int, data: TimelineCreate, author: User) -> TimelineEntry:
    patient = get_accessible_patient(db, patient_id, author)
    fields = data.model_dump(exclude_unset=True)
    if fields.get("entry_date") is None:
        fields.pop("entry_date", None)
    else:
        fields["entry_date"] = as_utc(fields["entry_date"])
    entry = TimelineEntry(**fields, patient_id=patient.id, consulted_by_id=author.id)
    db.add(entry)
    db.commit()
    db.refresh(entry)
    return entry


def _editable_entry(db: Session, entry_id: int, requester: User) -> TimelineEntry:
    entry = db.get(TimelineEntry, entry_id)
    if not entry or not entry.is_active:
        raise NotFoundError("Timeline entry not found")
    get_accessible_patient(db, entry.patient_id, requester)
    if Role(requester.role) != Role.admin and entry.consulted_by_id != requester.id:
        raise ForbiddenError("Only the author can change this entry")
    return entry


def update_entry(db: Session, entry_id: int, data: TimelineUpdate, requester: User) -> TimelineEntry:
    entry = _editable_entry(db, entry_id, requester)
    for key, value in data.model_dump(exclude_unset=True).items():
        if value is not None:
            setattr(entry, key, as_utc(value) if key == "entry_date" else value)
    entry.updated_at = utcnow()
    db.add(entry)
    db.commit()
    db.refresh(entry)
    return entry


def delete_entry(db: Session, entry_id: int, requester: User) -> None:
    entry = _editable_entry(db, entry_id, requester)
    entry.is_active = False
    entry.updated_at = utcnow()
    db.add(entry)
    db.commit()
    logger.info("Timeline entry id=%s removed by user id=%s", entry_id, requester.id)
