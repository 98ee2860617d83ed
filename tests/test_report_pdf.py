from datetime import datetime, timezone

import pytest

from app.core.errors import RenderError
from app.schemas.submission import PatientDetails, ReportPayload
from app.utils.file_storage import LocalBlobStore
from app.utils.report_pdf import PdfReportRenderer, summarize_annotations

from conftest import png_bytes


@pytest.fixture
def store(tmp_path) -> LocalBlobStore:
    return LocalBlobStore(tmp_path, base_url="http://testserver")


def make_payload(store: LocalBlobStore, **overrides) -> ReportPayload:
    data = {
        "submission_id": "abc123",
        "patient_details": PatientDetails(
            name="Jane <Doe>",
            patient_id="P001",
            email="jane@x.com",
            note="Pain & swelling",
        ),
        "original_image_path": store.store(png_bytes(), ".png", "image"),
        "annotation_data": {
            "annotations": [{"type": "rectangle"}, {"type": "arrow"}, {"type": "rectangle"}],
        },
        "review_text": "Minor plaque",
        "findings": "No caries detected",
        "recommendations": "Routine cleaning\nFloss daily",
        "doctor_name": "Dr. House",
        "report_date": datetime(2024, 1, 15, tzinfo=timezone.utc),
    }
    data.update(overrides)
    return ReportPayload(**data)


def test_summarize_annotations() -> None:
    assert summarize_annotations(None) == []
    assert summarize_annotations({"annotations": [{"type": "Circle"}, {"type": "arrow"}, {"type": "circle"}]}) == [
        ("arrow", 1),
        ("circle", 2),
    ]
    assert summarize_annotations({"objects": [{"type": "rect"}, "junk"]}) == [("rect", 1)]


@pytest.mark.parametrize(
    "annotation_data",
    [
        {"version": "5.3.0", "objects": None},
        {"objects": 5},
        {"objects": "rect"},
        {"annotations": {"type": "arrow"}},
        {"version": "5.3.0"},
    ],
)
def test_summarize_ignores_malformed_shape_lists(annotation_data) -> None:
    assert summarize_annotations(annotation_data) == []


def test_render_with_malformed_canvas_export(store) -> None:
    renderer = PdfReportRenderer(store)

    filename = renderer.render(make_payload(store, annotation_data={"version": "5.3.0", "objects": None}))

    assert store.read(filename, "report").startswith(b"%PDF")


def test_render_writes_pdf(store) -> None:
    renderer = PdfReportRenderer(store)

    filename = renderer.render(make_payload(store))

    assert filename.startswith("report_abc123_")
    assert filename.endswith(".pdf")
    assert store.read(filename, "report").startswith(b"%PDF")


def test_render_tolerates_missing_and_broken_images(store) -> None:
    renderer = PdfReportRenderer(store)
    broken = store.store(b"not an image", ".png", "image")

    filename = renderer.render(
        make_payload(
            store,
            original_image_path=broken,
            annotated_image_path="image_missing.png",
            annotation_data=None,
            review_text=None,
        )
    )

    assert store.exists(filename, "report")


def test_render_failure_leaves_no_file(store, monkeypatch) -> None:
    renderer = PdfReportRenderer(store)

    def explode(payload):
        raise RuntimeError("layout failed")

    monkeypatch.setattr(renderer, "_elements", explode)

    with pytest.raises(RenderError):
        renderer.render(make_payload(store))

    assert list((store.root / "reports").iterdir()) == []
