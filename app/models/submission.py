# app/models/submission.py
import uuid
from datetime import datetime
from enum import Enum as PyEnum
from typing import Any

from sqlalchemy import JSON, DateTime, Enum, ForeignKey, Integer, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.models.base import Base
from app.models.user import User, utcnow


class SubmissionStatus(str, PyEnum):
    UPLOADED = "uploaded"
    ANNOTATED = "annotated"
    REPORTED = "reported"


class Submission(Base):
    """
    One patient image and its review lifecycle.

    Stored paths are blob-store filenames; public URLs are derived on read.
    """

    __tablename__ = "submissions"

    # Primary Key
    id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )

    # Foreign Keys
    owner_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("users.id"),
        nullable=False,
        index=True,
    )

    # Patient details snapshot taken at upload time
    patient_name: Mapped[str] = mapped_column(String(100), nullable=False)
    patient_code: Mapped[str] = mapped_column(
        String(100),
        nullable=False,
        index=True,
        doc="Free-text clinical identifier typed by the patient, distinct from owner_id",
    )
    patient_email: Mapped[str] = mapped_column(String(255), nullable=False)
    patient_note: Mapped[str | None] = mapped_column(String(500), nullable=True)

    # Blobs
    original_image_path: Mapped[str] = mapped_column(String(500), nullable=False)
    annotated_image_path: Mapped[str | None] = mapped_column(
        String(500),
        nullable=True,
        doc="Reserved for a flattened annotation raster; nothing populates it yet",
    )
    report_path: Mapped[str | None] = mapped_column(String(500), nullable=True)

    # Review
    annotation_data: Mapped[dict[str, Any] | None] = mapped_column(JSON, nullable=True)
    review_text: Mapped[str | None] = mapped_column(Text, nullable=True)

    status: Mapped[SubmissionStatus] = mapped_column(
        Enum(
            SubmissionStatus,
            name="submission_status_enum",
            values_callable=lambda enum: [member.value for member in enum],
        ),
        nullable=False,
        default=SubmissionStatus.UPLOADED,
        index=True,
    )

    # Optimistic concurrency counter, bumped by the ORM on every UPDATE
    version: Mapped[int] = mapped_column(Integer, nullable=False)

    # Timestamps
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utcnow,
        index=True,
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utcnow,
        onupdate=utcnow,
    )

    owner: Mapped["User"] = relationship("User")

    __mapper_args__ = {"version_id_col": version}
