from datetime import datetime

from sqlmodel import Field, SQLModel

from medlens.core.clock import utcnow


class AuditLog(SQLModel, table=True):
    id: int | None = Field(default=None, primary_key=True)
    event: str = Field(index=True)  # login, register_user, create_patient, start_analysis, ...
    user_id: int | None = Field(default=None, index=True)
    resource_type: str | None = None
    resource_id: str | None = None
    ip: str | None = None
    created_at: datetime = Field(default_factory=utcnow)
