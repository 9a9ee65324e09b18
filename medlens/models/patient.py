from datetime import date, datetime
from enum import Enum

from sqlmodel import Field, SQLModel

from medlens.core.clock import utcnow


class PatientStatus(str, Enum):
    active = "active"
    inactive = "inactive"
    discharged = "discharged"


class Gender(str, Enum):
    male = "male"
    female = "female"
    other = "other"


class Patient(SQLModel, table=True):
    id: int | None = Field(default=None, primary_key=True)
    patient_code: str = Field(unique=True, index=True)  # e.g. PAT1718000000000K3F9A
    mrn: str | None = Field(default=None, index=True)
    first_name: str = Field(index=True)
    last_name: str = Field(index=True)
    date_of_birth: date
    gender: Gender
    phone: str | None = None
    email: str | None = None
    address_street: str | None = None
    address_city: str | None = None
    address_state: str | None = None
    address_zip_code: str | None = None
    address_country: str | None = "USA"
    emergency_contact_name: str | None = None
    emergency_contact_relationship: str | None = None
    emergency_contact_phone: str | None = None
    initial_diagnosis: str | None = None
    symptoms: str | None = None
    observations: str | None = None
    notes: str | None = Field(default=None, max_length=1000)
    status: PatientStatus = Field(default=PatientStatus.active, index=True)
    is_active: bool = Field(default=True, index=True)
    # at most one owning doctor at a time
    assigned_doctor_id: int | None = Field(default=None, foreign_key="user.id", index=True)
    created_by_id: int | None = Field(default=None, foreign_key="user.id", index=True)
    updated_by_id: int | None = Field(default=None, foreign_key="user.id")
    created_at: datetime = Field(default_factory=utcnow, index=True)
    updated_at: datetime = Field(default_factory=utcnow)

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}"

    @property
    def age(self) -> int | None:
        if not self.date_of_birth:
            return None
        today = date.today()
        dob = self.date_of_birth
        return today.year - dob.year - ((today.month, today.day) < (dob.month, dob.day))
