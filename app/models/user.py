# app/models/user.py
import uuid
from datetime import datetime, timezone
from enum import Enum as PyEnum

from sqlalchemy import DateTime, Enum, String, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from app.models.base import Base


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class RoleName(str, PyEnum):
    PATIENT = "patient"
    ADMIN = "admin"


class User(Base):
    """
    Represents an account.
    - patient: owns submissions, must carry a clinical patient_id
    - admin:   reviews every submission, patient_id is NULL
    """

    __tablename__ = "users"

    # Primary Key
    id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )

    # Authentication
    email: Mapped[str] = mapped_column(String(255), nullable=False, unique=True)
    hashed_password: Mapped[str] = mapped_column(String(255), nullable=False)

    # Personal Information
    name: Mapped[str] = mapped_column(String(50), nullable=False)
    role: Mapped[RoleName] = mapped_column(
        Enum(
            RoleName,
            name="user_role_enum",
            values_callable=lambda enum: [member.value for member in enum],
        ),
        nullable=False,
        default=RoleName.PATIENT,
        index=True,
    )
    patient_id: Mapped[str | None] = mapped_column(
        String(100),
        nullable=True,
        unique=True,
        doc="Clinical patient identifier. Required for patients, NULL for admins.",
    )

    # Timestamps
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utcnow,
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utcnow,
        onupdate=utcnow,
    )
