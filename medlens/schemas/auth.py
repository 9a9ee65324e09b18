from datetime import datetime

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator

from medlens.models import Role


class UserLogin(BaseModel):
    email: EmailStr
    password: str = Field(min_length=6)

    @field_validator("email")
    @classmethod
    def normalize_email(cls, v: str) -> str:
        return v.strip().lower()


class UserCreate(BaseModel):
    email: EmailStr
    password: str = Field(min_length=6)
    first_name: str = Field(min_length=2, max_length=50)
    last_name: str = Field(min_length=2, max_length=50)
    role: Role
    specialization: str | None = Field(default=None, max_length=100)
    license_number: str | None = None
    hospital: str | None = Field(default=None, max_length=100)
    department: str | None = Field(default=None, max_length=100)
    phone: str | None = None
    assigned_senior_doctor: int | None = None

    @field_validator("email")
    @classmethod
    def normalize_email(cls, v: str) -> str:
        return v.strip().lower()


class ProfileUpdate(BaseModel):
    """Fields a user may change on their own profile."""

    first_name: str | None = Field(default=None, min_length=2, max_length=50)
    last_name: str | None = Field(default=None, min_length=2, max_length=50)
    specialization: str | None = Field(default=None, max_length=100)
    license_number: str | None = None
    hospital: str | None = Field(default=None, max_length=100)
    department: str | None = Field(default=None, max_length=100)
    phone: str | None = None


class UserUpdate(ProfileUpdate):
    is_active: bool | None = None
    role: Role | None = None
    assigned_senior_doctor: int | None = None


class AssignDoctorRequest(BaseModel):
    consulting_doctor_id: int
    senior_doctor_id: int


class UserSummary(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    first_name: str
    last_name: str
    email: str
    role: Role


class UserResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    email: str
    first_name: str
    last_name: str
    full_name: str
    role: Role
    specialization: str | None = None
    license_number: str | None = None
    hospital: str | None = None
    department: str | None = None
    phone: str | None = None
    is_active: bool
    assigned_senior_doctor_id: int | None = None
    assigned_consulting_doctors: list[int] = []
    assigned_patients: list[int] = []
    last_login_at: datetime | None = None
    created_at: datetime | None = None


class Hierarchy(BaseModel):
    user: UserSummary
    senior_doctor: UserSummary | None = None
    consulting_doctors: list[UserSummary] = []


class Token(BaseModel):
    access_token: str
    token_type: str = "bearer"
