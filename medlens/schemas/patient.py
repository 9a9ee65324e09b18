from datetime import date, datetime

from pydantic import BaseModel, ConfigDict, EmailStr, Field

from medlens.models import Gender, PatientStatus


class PatientBase(BaseModel):
    mrn: str | None = None
    phone: str | None = None
    email: EmailStr | None = None
    address_street: str | None = None
    address_city: str | None = None
    address_state: str | None = None
    address_zip_code: str | None = None
    address_country: str | None = None
    emergency_contact_name: str | None = None
    emergency_contact_relationship: str | None = None
    emergency_contact_phone: str | None = None
    initial_diagnosis: str | None = None
    symptoms: str | None = None
    observations: str | None = None
    notes: str | None = Field(default=None, max_length=1000)


class PatientCreate(PatientBase):
    patient_code: str | None = None
    first_name: str = Field(min_length=1, max_length=50)
    last_name: str = Field(min_length=1, max_length=50)
    date_of_birth: date
    gender: Gender
    assigned_doctor_id: int | None = None


class PatientUpdate(PatientBase):
    first_name: str | None = Field(default=None, min_length=1, max_length=50)
    last_name: str | None = Field(default=None, min_length=1, max_length=50)
    date_of_birth: date | None = None
    gender: Gender | None = None
    status: PatientStatus | None = None


class AssignPatientDoctorRequest(BaseModel):
    doctor_id: int


class DiagnosisUpdate(BaseModel):
    initial_diagnosis: str | None = None
    symptoms: str | None = None
    observations: str | None = None
    assigned_senior_doctor_id: int | None = None


class PatientResponse(PatientBase):
    model_config = ConfigDict(from_attributes=True)

    id: int
    patient_code: str
    first_name: str
    last_name: str
    full_name: str
    age: int | None = None
    date_of_birth: date
    gender: Gender
    # stored values are not re-validated on the way out
    email: str | None = None
    status: PatientStatus
    is_active: bool
    assigned_doctor_id: int | None = None
    created_by_id: int | None = None
    updated_by_id: int | None = None
    created_at: datetime
    updated_at: datetime
