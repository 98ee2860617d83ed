# app/api/v1/endpoints/submissions.py
import json
from uuid import UUID

from fastapi import APIRouter, Depends, File, Query, Request, UploadFile, status
from pydantic import ValidationError as PydanticValidationError
from starlette.datastructures import UploadFile as StarletteUploadFile

from app.core.errors import ValidationError, field_errors
from app.dependencies.authz import get_current_actor
from app.dependencies.services import get_submission_service
from app.models.submission import SubmissionStatus
from app.schemas.common import ApiResponse, ListResponse, PaginatedResponse
from app.schemas.submission import (
    PatientDetails,
    ReportRequest,
    ReportResponse,
    SubmissionResponse,
    SubmissionUpdate,
)
from app.services.access_control import Actor, SubmissionOperation, ensure_access
from app.services.submission_service import SubmissionService, UploadedImage

router = APIRouter()

PATIENT_DETAIL_FIELDS = ("name", "patientId", "email", "note")


def _patient_details_from_form(form) -> PatientDetails:
    """
    Accept patient details as a JSON ``patientDetails`` field,
    as ``patientDetails[name]`` style fields, or as flat fields.
    """
    raw = form.get("patientDetails")
    if isinstance(raw, str) and raw.strip():
        try:
            data = json.loads(raw)
        except json.JSONDecodeError:
            raise ValidationError("patientDetails must be valid JSON") from None
        if not isinstance(data, dict):
            raise ValidationError("patientDetails must be an object")
    else:
        data = {}
        for field in PATIENT_DETAIL_FIELDS:
            value = form.get(f"patientDetails[{field}]", form.get(field))
            if isinstance(value, str):
                data[field] = value

    try:
        return PatientDetails.model_validate(data)
    except PydanticValidationError as exc:
        raise ValidationError(
            "Validation error",
            errors=[
                {**item, "field": f"patientDetails.{item['field']}"}
                for item in field_errors(exc.errors())
            ],
        ) from None


@router.post(
    "",
    response_model=ApiResponse[SubmissionResponse],
    status_code=status.HTTP_201_CREATED,
)
async def create_submission(
    request: Request,
    image: UploadFile | None = File(None),
    actor: Actor = Depends(get_current_actor),
    service: SubmissionService = Depends(get_submission_service),
) -> ApiResponse[SubmissionResponse]:
    """
    Upload a new image with patient details (patients only).
    """
    ensure_access(actor, None, SubmissionOperation.CREATE)
    form = await request.form()
    patient_details = _patient_details_from_form(form)

    uploaded = None
    if isinstance(image, StarletteUploadFile):
        uploaded = UploadedImage(
            data=await image.read(),
            content_type=image.content_type,
            filename=image.filename,
        )

    submission = service.create_submission(
        actor,
        image=uploaded,
        patient_details=patient_details,
    )
    return ApiResponse(message="Submission created successfully", data=submission)


@router.get("/my", response_model=ListResponse[list[SubmissionResponse]])
def list_my_submissions(
    actor: Actor = Depends(get_current_actor),
    service: SubmissionService = Depends(get_submission_service),
) -> ListResponse[list[SubmissionResponse]]:
    submissions = service.list_own_submissions(actor)
    return ListResponse(data=submissions, count=len(submissions))


@router.get("", response_model=PaginatedResponse[list[SubmissionResponse]])
def list_submissions(
    status_filter: SubmissionStatus | None = Query(None, alias="status"),
    page: int = Query(1),
    limit: int = Query(10),
    actor: Actor = Depends(get_current_actor),
    service: SubmissionService = Depends(get_submission_service),
) -> PaginatedResponse[list[SubmissionResponse]]:
    """
    All submissions, newest first (admins only). ``page`` and ``limit``
    are clamped to >= 1 and [1, 50].
    """
    submissions, pagination = service.list_all_submissions(
        actor,
        status=status_filter,
        page=page,
        page_size=limit,
    )
    return PaginatedResponse(data=submissions, pagination=pagination)


@router.get("/{submission_id}", response_model=ApiResponse[SubmissionResponse])
def get_submission(
    submission_id: UUID,
    actor: Actor = Depends(get_current_actor),
    service: SubmissionService = Depends(get_submission_service),
) -> ApiResponse[SubmissionResponse]:
    return ApiResponse(data=service.get_submission(actor, submission_id))


@router.put("/{submission_id}", response_model=ApiResponse[SubmissionResponse])
def update_submission(
    submission_id: UUID,
    payload: SubmissionUpdate,
    actor: Actor = Depends(get_current_actor),
    service: SubmissionService = Depends(get_submission_service),
) -> ApiResponse[SubmissionResponse]:
    """
    Partial update of annotation data, review text and status (admins only).
    """
    submission = service.update_submission(actor, submission_id, payload)
    return ApiResponse(message="Submission updated successfully", data=submission)


@router.delete("/{submission_id}", response_model=ApiResponse[None])
def delete_submission(
    submission_id: UUID,
    actor: Actor = Depends(get_current_actor),
    service: SubmissionService = Depends(get_submission_service),
) -> ApiResponse[None]:
    service.delete_submission(actor, submission_id)
    return ApiResponse(message="Submission deleted successfully")


@router.post(
    "/{submission_id}/generate-report",
    response_model=ApiResponse[ReportResponse],
)
def generate_report(
    submission_id: UUID,
    payload: ReportRequest,
    actor: Actor = Depends(get_current_actor),
    service: SubmissionService = Depends(get_submission_service),
) -> ApiResponse[ReportResponse]:
    report = service.generate_report(
        actor,
        submission_id,
        findings=payload.findings,
        recommendations=payload.recommendations,
    )
    return ApiResponse(message="Report generated successfully", data=report)
