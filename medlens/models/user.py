from datetime import datetime
from enum import Enum

from sqlalchemy import JSON, Column
from sqlmodel import Field, SQLModel

from medlens.core.clock import utcnow


class Role(str, Enum):
    admin = "admin"
    senior_doctor = "senior_doctor"
    consulting_doctor = "consulting_doctor"
    front_desk_coordinator = "front_desk_coordinator"


DOCTOR_ROLES = (Role.admin, Role.senior_doctor, Role.consulting_doctor)
# roles a patient may be assigned to
ASSIGNABLE_DOCTOR_ROLES = (Role.senior_doctor, Role.consulting_doctor)


class User(SQLModel, table=True):
    id: int | None = Field(default=None, primary_key=True)
    email: str = Field(unique=True, index=True)
    hashed_password: str
    first_name: str
    last_name: str
    role: Role = Field(default=Role.consulting_doctor, index=True)
    specialization: str | None = None
    license_number: str | None = Field(default=None, index=True)
    hospital: str | None = None
    department: str | None = None
    phone: str | None = None
    is_active: bool = Field(default=True, index=True)
    last_login_at: datetime | None = None
    # consulting doctors only: their senior doctor
    assigned_senior_doctor_id: int | None = Field(default=None, foreign_key="user.id", index=True)
    # senior doctors only; treated as a set, always reassign a new list
    assigned_consulting_doctors: list[int] = Field(default_factory=list, sa_column=Column(JSON, nullable=False))
    assigned_patients: list[int] = Field(default_factory=list, sa_column=Column(JSON, nullable=False))
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}"
