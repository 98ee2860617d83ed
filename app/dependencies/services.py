# app/dependencies/services.py
from functools import lru_cache

from fastapi import Depends
from sqlalchemy.orm import Session

from app.core.config import get_settings
from app.core.database import get_db
from app.services.submission_service import SubmissionService
from app.utils.file_storage import LocalBlobStore, get_blob_store
from app.utils.report_pdf import PdfReportRenderer


@lru_cache()
def get_report_renderer() -> PdfReportRenderer:
    return PdfReportRenderer(get_blob_store())


def get_submission_service(
    db: Session = Depends(get_db),
    blob_store: LocalBlobStore = Depends(get_blob_store),
    renderer: PdfReportRenderer = Depends(get_report_renderer),
) -> SubmissionService:
    return SubmissionService(
        db,
        blob_store=blob_store,
        renderer=renderer,
        settings=get_settings(),
    )
