# app/schemas/submission.py
from datetime import datetime
from typing import Any, Literal
from uuid import UUID

from pydantic import (
    BaseModel,
    EmailStr,
    Field,
    ValidationError as PydanticValidationError,
    field_validator,
)

from app.models.submission import SubmissionStatus
from app.schemas.common import CamelModel
from app.schemas.user import UserSummary

NOTE_MAX_LENGTH = 500
REVIEW_TEXT_MAX_LENGTH = 2000


class PatientDetails(CamelModel):
    """Snapshot of the patient details typed in at upload time."""

    name: str
    patient_id: str
    email: EmailStr
    note: str | None = None

    @field_validator("name")
    @classmethod
    def validate_name(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("Patient name is required")
        if len(v) > 100:
            raise ValueError("Patient name must be less than 100 characters")
        return v

    @field_validator("patient_id")
    @classmethod
    def validate_patient_id(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("Patient ID is required")
        return v

    @field_validator("email", mode="before")
    @classmethod
    def lower_email(cls, v):
        return v.strip().lower() if isinstance(v, str) else v

    @field_validator("note")
    @classmethod
    def validate_note(cls, v: str | None) -> str | None:
        if v is None:
            return None
        v = v.strip()
        if len(v) > NOTE_MAX_LENGTH:
            raise ValueError("Note must be less than 500 characters")
        return v or None


class Annotation(CamelModel):
    id: str | None = None
    type: Literal["rectangle", "circle", "arrow", "freehand"]
    data: dict[str, Any]
    timestamp: datetime
    color: str | None = None
    stroke_width: float | None = None


class AnnotationPayload(CamelModel):
    annotations: list[Annotation]
    canvas_width: float = Field(gt=0)
    canvas_height: float = Field(gt=0)


class SubmissionUpdate(CamelModel):
    """
    Partial admin update. Only fields present in the request body are applied.
    """

    annotation_data: dict[str, Any] | None = None
    review_text: str | None = None
    status: SubmissionStatus | None = None
    version: int | None = None

    @field_validator("annotation_data")
    @classmethod
    def validate_annotation_data(cls, v: dict[str, Any] | None) -> dict[str, Any] | None:
        # Structured shape lists are checked; other canvas exports pass through.
        if v is None or "annotations" not in v:
            return v
        try:
            AnnotationPayload.model_validate(v)
        except PydanticValidationError as exc:
            first = exc.errors()[0]
            location = ".".join(str(part) for part in first["loc"])
            raise ValueError(f"Invalid annotation data at {location}: {first['msg']}") from None
        return v

    @field_validator("review_text")
    @classmethod
    def validate_review_text(cls, v: str | None) -> str | None:
        if v is None:
            return None
        v = v.strip()
        if len(v) > REVIEW_TEXT_MAX_LENGTH:
            raise ValueError("Review text must be less than 2000 characters")
        return v


class ReportRequest(CamelModel):
    findings: str = ""
    recommendations: str = ""


class SubmissionResponse(CamelModel):
    id: UUID
    owner_id: UUID
    owner: UserSummary | None = None
    patient_details: PatientDetails
    original_image_path: str
    annotated_image_path: str | None = None
    annotation_data: dict[str, Any] | None = None
    review_text: str | None = None
    report_path: str | None = None
    status: SubmissionStatus
    version: int
    created_at: datetime
    updated_at: datetime

    original_image_url: str
    annotated_image_url: str | None = None
    report_url: str | None = None


class ReportResponse(CamelModel):
    report_path: str
    report_url: str
    file_name: str


class ReportPayload(BaseModel):
    """Structured input handed to the report renderer."""

    submission_id: str
    patient_details: PatientDetails
    original_image_path: str
    annotated_image_path: str | None = None
    annotation_data: dict[str, Any] | None = None
    review_text: str | None = None
    findings: str
    recommendations: str
    doctor_name: str
    report_date: datetime
