# app/services/submission_service.py
"""
Submission lifecycle: uploaded -> annotated -> reported.

Every operation checks the actor against :func:`can_access`, re-reads the
submission from the database, applies the transition and returns a view with
blob filenames resolved to URLs.
"""

import logging
import math
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from uuid import UUID

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from app.core.config import Settings
from app.core.errors import (
    ConflictError,
    NotFoundError,
    StorageError,
    ValidationError,
)
from app.models.submission import Submission, SubmissionStatus
from app.models.user import User
from app.schemas.common import Pagination
from app.schemas.submission import (
    PatientDetails,
    ReportPayload,
    ReportResponse,
    SubmissionResponse,
    SubmissionUpdate,
)
from app.schemas.user import UserSummary
from app.services.access_control import Actor, SubmissionOperation, ensure_access
from app.services.submission_repository import (
    get_submission_by_id,
    list_submissions_for_owner,
    list_submissions_page,
)
from app.utils.file_storage import LocalBlobStore
from app.utils.report_pdf import PdfReportRenderer

logger = logging.getLogger(__name__)

MAX_PAGE_SIZE = 50

EXTENSIONS_BY_TYPE = {
    "image/jpeg": ".jpg",
    "image/jpg": ".jpg",
    "image/png": ".png",
}


@dataclass
class UploadedImage:
    data: bytes
    content_type: str | None
    filename: str | None = None


def clamp_pagination(page: int, limit: int) -> tuple[int, int]:
    return max(1, page), min(MAX_PAGE_SIZE, max(1, limit))


def doctor_display_name(user: User) -> str:
    name = (user.name or "").strip()
    if name:
        return name
    return "Dr. " + user.email.split("@")[0]


class SubmissionService:
    def __init__(
        self,
        db: Session,
        *,
        blob_store: LocalBlobStore,
        renderer: PdfReportRenderer,
        settings: Settings,
    ):
        self.db = db
        self.blob_store = blob_store
        self.renderer = renderer
        self.settings = settings

    # ------------------------------------------------------------------ views

    def to_response(self, submission: Submission, include_owner: bool = False) -> SubmissionResponse:
        store = self.blob_store
        owner = None
        if include_owner and submission.owner is not None:
            owner = UserSummary.model_validate(submission.owner)

        return SubmissionResponse(
            id=submission.id,
            owner_id=submission.owner_id,
            owner=owner,
            patient_details=PatientDetails(
                name=submission.patient_name,
                patient_id=submission.patient_code,
                email=submission.patient_email,
                note=submission.patient_note,
            ),
            original_image_path=submission.original_image_path,
            annotated_image_path=submission.annotated_image_path,
            annotation_data=submission.annotation_data,
            review_text=submission.review_text,
            report_path=submission.report_path,
            status=submission.status,
            version=submission.version,
            created_at=submission.created_at,
            updated_at=submission.updated_at,
            original_image_url=store.resolve_url(submission.original_image_path, "image"),
            annotated_image_url=(
                store.resolve_url(submission.annotated_image_path, "image")
                if submission.annotated_image_path
                else None
            ),
            report_url=(
                store.resolve_url(submission.report_path, "report")
                if submission.report_path
                else None
            ),
        )

    # ------------------------------------------------------------- operations

    def create_submission(
        self,
        actor: Actor,
        *,
        image: UploadedImage | None,
        patient_details: PatientDetails,
    ) -> SubmissionResponse:
        ensure_access(actor, None, SubmissionOperation.CREATE)
        suffix = self._validate_image(image)

        owner = self.db.get(User, actor.id)
        if owner is None:
            raise NotFoundError("User not found")

        filename = self.blob_store.store(image.data, suffix, "image")
        submission = Submission(
            owner_id=owner.id,
            patient_name=patient_details.name,
            patient_code=patient_details.patient_id,
            patient_email=str(patient_details.email),
            patient_note=patient_details.note,
            original_image_path=filename,
            status=SubmissionStatus.UPLOADED,
        )
        try:
            self.db.add(submission)
            self.db.commit()
            self.db.refresh(submission)
        except SQLAlchemyError:
            self.db.rollback()
            self._discard_blob(filename, "image")
            raise

        logger.info("Submission %s created by patient %s", submission.id, actor.id)
        return self.to_response(submission)

    def list_own_submissions(self, actor: Actor) -> list[SubmissionResponse]:
        ensure_access(actor, None, SubmissionOperation.LIST_OWN)
        submissions = list_submissions_for_owner(self.db, owner_id=actor.id)
        return [self.to_response(s) for s in submissions]

    def list_all_submissions(
        self,
        actor: Actor,
        *,
        status: SubmissionStatus | None = None,
        page: int = 1,
        page_size: int = 10,
    ) -> tuple[list[SubmissionResponse], Pagination]:
        ensure_access(actor, None, SubmissionOperation.LIST_ALL)
        page, page_size = clamp_pagination(page, page_size)

        submissions, total = list_submissions_page(
            self.db,
            status=status,
            offset=(page - 1) * page_size,
            limit=page_size,
        )
        pagination = Pagination(
            page=page,
            limit=page_size,
            total=total,
            pages=math.ceil(total / page_size),
        )
        return [self.to_response(s, include_owner=True) for s in submissions], pagination

    def get_submission(self, actor: Actor, submission_id: UUID) -> SubmissionResponse:
        submission = self._load(submission_id)
        ensure_access(actor, submission, SubmissionOperation.READ)
        return self.to_response(submission, include_owner=actor.is_admin)

    def update_submission(
        self,
        actor: Actor,
        submission_id: UUID,
        changes: SubmissionUpdate,
    ) -> SubmissionResponse:
        ensure_access(actor, None, SubmissionOperation.UPDATE)
        submission = self._load(submission_id)

        if changes.version is not None and changes.version != submission.version:
            raise ConflictError("Submission was modified by another request")

        fields = changes.model_fields_set - {"version"}
        if "status" in fields and changes.status is None:
            fields.discard("status")
        if self.settings.enforce_status_guards:
            self._check_status_guards(submission, changes, fields)

        for field in fields:
            setattr(submission, field, getattr(changes, field))

        self._commit("update")
        self.db.refresh(submission)
        logger.info(
            "Submission %s updated by admin %s (status=%s)",
            submission.id,
            actor.id,
            submission.status.value,
        )
        return self.to_response(submission, include_owner=True)

    def delete_submission(self, actor: Actor, submission_id: UUID) -> None:
        ensure_access(actor, None, SubmissionOperation.DELETE)
        submission = self._load(submission_id)

        blobs = [(submission.original_image_path, "image")]
        if submission.annotated_image_path:
            blobs.append((submission.annotated_image_path, "image"))
        if submission.report_path:
            blobs.append((submission.report_path, "report"))

        self.db.delete(submission)
        self._commit("delete")
        logger.info("Submission %s deleted by admin %s", submission_id, actor.id)

        for filename, kind in blobs:
            self._discard_blob(filename, kind)

    def generate_report(
        self,
        actor: Actor,
        submission_id: UUID,
        *,
        findings: str,
        recommendations: str,
    ) -> ReportResponse:
        ensure_access(actor, None, SubmissionOperation.GENERATE_REPORT)
        submission = self._load(submission_id)

        findings = (findings or "").strip()
        recommendations = (recommendations or "").strip()
        if not findings or not recommendations:
            raise ValidationError(
                "Findings and recommendations are required",
                errors=[
                    {"field": name, "message": f"{name.capitalize()} is required"}
                    for name, value in (("findings", findings), ("recommendations", recommendations))
                    if not value
                ],
            )

        reviewer = self.db.get(User, actor.id)
        if reviewer is None:
            raise NotFoundError("User not found")

        payload = ReportPayload(
            submission_id=str(submission.id),
            patient_details=PatientDetails(
                name=submission.patient_name,
                patient_id=submission.patient_code,
                email=submission.patient_email,
                note=submission.patient_note,
            ),
            original_image_path=submission.original_image_path,
            annotated_image_path=submission.annotated_image_path,
            annotation_data=submission.annotation_data,
            review_text=submission.review_text,
            findings=findings,
            recommendations=recommendations,
            doctor_name=doctor_display_name(reviewer),
            report_date=datetime.now(timezone.utc),
        )

        # Nothing is written to the submission unless rendering succeeds.
        report_filename = self.renderer.render(payload)

        previous_report = submission.report_path
        submission.report_path = report_filename
        submission.status = SubmissionStatus.REPORTED
        try:
            self._commit("report")
        except Exception:
            self._discard_blob(report_filename, "report")
            raise

        logger.info("Report %s generated for submission %s by admin %s", report_filename, submission.id, actor.id)
        if previous_report and previous_report != report_filename:
            self._discard_blob(previous_report, "report")

        return ReportResponse(
            report_path=report_filename,
            report_url=self.blob_store.resolve_url(report_filename, "report"),
            file_name=report_filename,
        )

    # ---------------------------------------------------------------- helpers

    def _load(self, submission_id: UUID) -> Submission:
        submission = get_submission_by_id(self.db, submission_id)
        if submission is None:
            raise NotFoundError("Submission not found")
        return submission

    def _commit(self, action: str) -> None:
        try:
            self.db.commit()
        except StaleDataError as exc:
            self.db.rollback()
            logger.warning("Concurrent %s rejected", action)
            raise ConflictError("Submission was modified by another request") from exc
        except SQLAlchemyError:
            self.db.rollback()
            raise

    def _validate_image(self, image: UploadedImage | None) -> str:
        if image is None or not image.data:
            raise ValidationError(
                "Image file is required",
                errors=[{"field": "image", "message": "Image file is required"}],
            )

        content_type = (image.content_type or "").lower()
        if content_type not in self.settings.allowed_image_type_list:
            raise ValidationError("Invalid file type. Only JPEG, PNG, and JPG files are allowed.")

        if len(image.data) > self.settings.max_upload_size:
            limit_mb = self.settings.max_upload_size // (1024 * 1024)
            raise ValidationError(f"File size too large. Maximum size is {limit_mb}MB.")

        suffix = Path(image.filename or "").suffix.lower()
        if suffix not in (".jpg", ".jpeg", ".png"):
            suffix = EXTENSIONS_BY_TYPE.get(content_type, "")
        return suffix

    def _check_status_guards(
        self,
        submission: Submission,
        changes: SubmissionUpdate,
        fields: set[str],
    ) -> None:
        if "status" not in fields:
            return

        if changes.status == SubmissionStatus.REPORTED:
            raise ValidationError("Status 'reported' is set by report generation only")

        if changes.status == SubmissionStatus.ANNOTATED:
            annotation = changes.annotation_data if "annotation_data" in fields else submission.annotation_data
            review = changes.review_text if "review_text" in fields else submission.review_text
            if not annotation and not review:
                raise ValidationError("Annotation data or review text is required to mark a submission annotated")

    def _discard_blob(self, filename: str, kind: str) -> None:
        try:
            self.blob_store.delete(filename, kind)
        except StorageError:
            logger.warning("Could not delete %s blob %s", kind, filename, exc_info=True)
