from __future__ import annotations

import uuid

import pytest

from app.core.config import get_settings
from app.core.errors import (
    AuthorizationError,
    ConflictError,
    NotFoundError,
    RenderError,
    ValidationError,
)
from app.models.submission import SubmissionStatus
from app.models.user import RoleName
from app.schemas.submission import PatientDetails, SubmissionUpdate
from app.services.access_control import Actor
from app.services.submission_service import SubmissionService, UploadedImage

from conftest import make_user, png_bytes


class FakeRenderer:
    def __init__(self, blob_store, fail: bool = False):
        self.blob_store = blob_store
        self.fail = fail
        self.payloads = []

    def render(self, payload):
        self.payloads.append(payload)
        if self.fail:
            raise RenderError("renderer exploded")
        return self.blob_store.store(b"%PDF-1.4 fake", ".pdf", "report")


def build_service(db, blob_store, renderer=None, **overrides) -> SubmissionService:
    settings = get_settings().model_copy(update=overrides)
    return SubmissionService(
        db,
        blob_store=blob_store,
        renderer=renderer or FakeRenderer(blob_store),
        settings=settings,
    )


def details(**overrides) -> PatientDetails:
    data = {"name": "Jane Doe", "patient_id": "P001", "email": "jane@x.com"}
    data.update(overrides)
    return PatientDetails(**data)


def upload(service, patient, **detail_overrides):
    return service.create_submission(
        Actor.from_user(patient),
        image=UploadedImage(png_bytes(), "image/png", "scan.png"),
        patient_details=details(**detail_overrides),
    )


@pytest.fixture
def patient(db):
    return make_user(db, role=RoleName.PATIENT, patient_id="P001")


@pytest.fixture
def admin(db):
    return make_user(db, role=RoleName.ADMIN, name="Dr. House")


@pytest.fixture
def service(db, blob_store):
    return build_service(db, blob_store)


def test_create_submission_starts_uploaded(service, patient, blob_store) -> None:
    created = upload(service, patient, note="  sensitive molar  ")

    assert created.status == SubmissionStatus.UPLOADED
    assert created.owner_id == patient.id
    assert created.patient_details.note == "sensitive molar"
    assert created.report_url is None
    assert created.annotated_image_url is None
    assert created.original_image_url.endswith(f"/uploads/images/{created.original_image_path}")
    assert blob_store.exists(created.original_image_path, "image")


def test_admin_cannot_create_submission(service, admin) -> None:
    with pytest.raises(AuthorizationError):
        upload(service, admin)


@pytest.mark.parametrize(
    "image",
    [
        None,
        UploadedImage(b"", "image/png", "empty.png"),
        UploadedImage(b"GIF89a", "image/gif", "anim.gif"),
    ],
)
def test_create_rejects_bad_images(service, patient, image) -> None:
    with pytest.raises(ValidationError):
        service.create_submission(
            Actor.from_user(patient),
            image=image,
            patient_details=details(),
        )


def test_create_rejects_oversized_image(db, blob_store, patient) -> None:
    service = build_service(db, blob_store, max_upload_size=10)
    with pytest.raises(ValidationError, match="File size too large"):
        upload(service, patient)


def test_create_fails_when_actor_record_is_gone(service) -> None:
    ghost = Actor(id=uuid.uuid4(), role=RoleName.PATIENT, email="ghost@example.com")
    with pytest.raises(NotFoundError):
        service.create_submission(
            ghost,
            image=UploadedImage(png_bytes(), "image/png", "scan.png"),
            patient_details=details(),
        )


def test_other_patient_cannot_read_submission(db, service, patient) -> None:
    created = upload(service, patient)
    stranger = make_user(db, role=RoleName.PATIENT, patient_id="P999")

    with pytest.raises(AuthorizationError):
        service.get_submission(Actor.from_user(stranger), created.id)


def test_owner_and_admin_can_read(service, patient, admin) -> None:
    created = upload(service, patient)

    assert service.get_submission(Actor.from_user(patient), created.id).id == created.id
    as_admin = service.get_submission(Actor.from_user(admin), created.id)
    assert as_admin.owner is not None
    assert as_admin.owner.id == patient.id


def test_get_unknown_submission_is_not_found(service, admin) -> None:
    with pytest.raises(NotFoundError):
        service.get_submission(Actor.from_user(admin), uuid.uuid4())


def test_resolved_urls_are_stable_between_reads(service, patient) -> None:
    created = upload(service, patient)
    actor = Actor.from_user(patient)

    first = service.get_submission(actor, created.id)
    second = service.get_submission(actor, created.id)

    assert first.original_image_url == second.original_image_url
    assert first.report_url == second.report_url


def test_update_is_partial(service, patient, admin) -> None:
    created = upload(service, patient)
    actor = Actor.from_user(admin)

    service.update_submission(actor, created.id, SubmissionUpdate(review_text="looks fine"))
    updated = service.update_submission(
        actor,
        created.id,
        SubmissionUpdate(status=SubmissionStatus.ANNOTATED),
    )

    assert updated.review_text == "looks fine"
    assert updated.status == SubmissionStatus.ANNOTATED
    assert updated.version == created.version + 2


def test_update_allows_annotated_without_payload_by_default(service, patient, admin) -> None:
    created = upload(service, patient)

    updated = service.update_submission(
        Actor.from_user(admin),
        created.id,
        SubmissionUpdate(status=SubmissionStatus.ANNOTATED),
    )

    assert updated.status == SubmissionStatus.ANNOTATED
    assert updated.annotation_data is None


def test_status_guards_when_enforced(db, blob_store, patient, admin) -> None:
    service = build_service(db, blob_store, enforce_status_guards=True)
    created = upload(service, patient)
    actor = Actor.from_user(admin)

    with pytest.raises(ValidationError):
        service.update_submission(actor, created.id, SubmissionUpdate(status=SubmissionStatus.ANNOTATED))
    with pytest.raises(ValidationError):
        service.update_submission(
            actor,
            created.id,
            SubmissionUpdate(review_text="ok", status=SubmissionStatus.REPORTED),
        )

    updated = service.update_submission(
        actor,
        created.id,
        SubmissionUpdate(review_text="ok", status=SubmissionStatus.ANNOTATED),
    )
    assert updated.status == SubmissionStatus.ANNOTATED


def test_update_rejects_stale_version(service, patient, admin) -> None:
    created = upload(service, patient)
    actor = Actor.from_user(admin)

    service.update_submission(actor, created.id, SubmissionUpdate(review_text="first", version=created.version))
    with pytest.raises(ConflictError):
        service.update_submission(actor, created.id, SubmissionUpdate(review_text="second", version=created.version))

    assert service.get_submission(actor, created.id).review_text == "first"


def test_patient_cannot_update_or_delete(service, patient) -> None:
    created = upload(service, patient)
    actor = Actor.from_user(patient)

    with pytest.raises(AuthorizationError):
        service.update_submission(actor, created.id, SubmissionUpdate(review_text="mine"))
    with pytest.raises(AuthorizationError):
        service.delete_submission(actor, created.id)
    with pytest.raises(AuthorizationError):
        service.generate_report(actor, created.id, findings="a", recommendations="b")


@pytest.mark.parametrize("status", list(SubmissionStatus))
def test_report_requires_findings_in_every_state(service, patient, admin, status) -> None:
    created = upload(service, patient)
    actor = Actor.from_user(admin)
    service.update_submission(actor, created.id, SubmissionUpdate(status=status))

    with pytest.raises(ValidationError):
        service.generate_report(actor, created.id, findings="", recommendations="x")
    with pytest.raises(ValidationError):
        service.generate_report(actor, created.id, findings="x", recommendations="   ")


def test_generate_report_sets_path_and_status(service, patient, admin, blob_store) -> None:
    created = upload(service, patient)
    actor = Actor.from_user(admin)
    service.update_submission(
        actor,
        created.id,
        SubmissionUpdate(review_text="looks fine", status=SubmissionStatus.ANNOTATED),
    )

    report = service.generate_report(
        actor,
        created.id,
        findings="no caries",
        recommendations="6-month recall",
    )

    refreshed = service.get_submission(actor, created.id)
    assert refreshed.status == SubmissionStatus.REPORTED
    assert refreshed.report_path == report.report_path
    assert refreshed.report_url == report.report_url
    assert blob_store.exists(report.report_path, "report")

    payload = service.renderer.payloads[0]
    assert payload.doctor_name == "Dr. House"
    assert payload.findings == "no caries"
    assert payload.review_text == "looks fine"


def test_render_failure_leaves_submission_untouched(db, blob_store, patient, admin) -> None:
    service = build_service(db, blob_store, renderer=FakeRenderer(blob_store, fail=True))
    created = upload(service, patient)
    actor = Actor.from_user(admin)
    service.update_submission(actor, created.id, SubmissionUpdate(status=SubmissionStatus.ANNOTATED))

    with pytest.raises(RenderError):
        service.generate_report(actor, created.id, findings="a", recommendations="b")

    refreshed = service.get_submission(actor, created.id)
    assert refreshed.status == SubmissionStatus.ANNOTATED
    assert refreshed.report_path is None


def test_regenerating_report_discards_previous_pdf(service, patient, admin, blob_store) -> None:
    created = upload(service, patient)
    actor = Actor.from_user(admin)

    first = service.generate_report(actor, created.id, findings="a", recommendations="b")
    second = service.generate_report(actor, created.id, findings="c", recommendations="d")

    assert first.report_path != second.report_path
    assert not blob_store.exists(first.report_path, "report")
    assert blob_store.exists(second.report_path, "report")


def test_doctor_name_falls_back_to_email(db, service, patient) -> None:
    nameless = make_user(db, role=RoleName.ADMIN, name="", email="smith@clinic.org")
    created = upload(service, patient)

    service.generate_report(Actor.from_user(nameless), created.id, findings="a", recommendations="b")

    assert service.renderer.payloads[-1].doctor_name == "Dr. smith"


def test_list_all_clamps_pagination(service, patient, admin) -> None:
    for _ in range(3):
        upload(service, patient)

    submissions, pagination = service.list_all_submissions(
        Actor.from_user(admin),
        page=0,
        page_size=1000,
    )

    assert pagination.page == 1
    assert pagination.limit == 50
    assert pagination.total == 3
    assert pagination.pages == 1
    assert len(submissions) == 3


def test_list_all_pages_newest_first_with_status_filter(service, patient, admin) -> None:
    created = [upload(service, patient) for _ in range(5)]
    actor = Actor.from_user(admin)
    service.update_submission(actor, created[0].id, SubmissionUpdate(status=SubmissionStatus.ANNOTATED))

    page_one, pagination = service.list_all_submissions(actor, page=1, page_size=2)
    assert [s.id for s in page_one] == [created[4].id, created[3].id]
    assert pagination.pages == 3

    annotated, pagination = service.list_all_submissions(actor, status=SubmissionStatus.ANNOTATED)
    assert [s.id for s in annotated] == [created[0].id]
    assert pagination.total == 1


def test_list_all_requires_admin(service, patient) -> None:
    with pytest.raises(AuthorizationError):
        service.list_all_submissions(Actor.from_user(patient))


def test_list_own_only_returns_own(db, service, patient, admin) -> None:
    other = make_user(db, role=RoleName.PATIENT, patient_id="P002")
    mine = upload(service, patient)
    upload(service, other, patient_id="P002")

    own = service.list_own_submissions(Actor.from_user(patient))
    assert [s.id for s in own] == [mine.id]

    with pytest.raises(AuthorizationError):
        service.list_own_submissions(Actor.from_user(admin))


def test_delete_removes_row_and_blobs(service, patient, admin, blob_store) -> None:
    created = upload(service, patient)
    actor = Actor.from_user(admin)
    report = service.generate_report(actor, created.id, findings="a", recommendations="b")

    service.delete_submission(actor, created.id)

    with pytest.raises(NotFoundError):
        service.get_submission(actor, created.id)
    assert not blob_store.exists(created.original_image_path, "image")
    assert not blob_store.exists(report.report_path, "report")

    with pytest.raises(NotFoundError):
        service.delete_submission(actor, created.id)
