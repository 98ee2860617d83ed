# app/schemas/user.py
from datetime import datetime
from uuid import UUID

from app.models.user import RoleName
from app.schemas.common import CamelModel


class UserSummary(CamelModel):
    id: UUID
    name: str
    email: str


class UserResponse(UserSummary):
    role: RoleName
    patient_id: str | None = None
    created_at: datetime
    updated_at: datetime
