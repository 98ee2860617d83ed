# app/services/submission_repository.py
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.orm import Session, joinedload

from app.models.submission import Submission, SubmissionStatus


def get_submission_by_id(db: Session, submission_id: UUID) -> Submission | None:
    return db.get(Submission, submission_id, populate_existing=True)


def list_submissions_for_owner(db: Session, *, owner_id: UUID) -> list[Submission]:
    return list(
        db.scalars(
            select(Submission)
            .where(Submission.owner_id == owner_id)
            .order_by(Submission.created_at.desc(), Submission.id.desc())
        )
    )


def list_submissions_page(
    db: Session,
    *,
    status: SubmissionStatus | None,
    offset: int,
    limit: int,
) -> tuple[list[Submission], int]:
    """
    One page of submissions (newest first) plus the total matching count.
    """
    query = select(Submission).options(joinedload(Submission.owner))
    count_query = select(func.count()).select_from(Submission)
    if status is not None:
        query = query.where(Submission.status == status)
        count_query = count_query.where(Submission.status == status)

    total = db.scalar(count_query) or 0
    # Offsets past the end can exceed what the driver accepts
    if offset >= total:
        return [], total

    rows = db.scalars(
        query.order_by(Submission.created_at.desc(), Submission.id.desc())
        .offset(offset)
        .limit(limit)
    ).all()
    return list(rows), total


def count_submissions_for_owner(db: Session, *, owner_id: UUID) -> int:
    return db.scalar(
        select(func.count()).select_from(Submission).where(Submission.owner_id == owner_id)
    ) or 0
