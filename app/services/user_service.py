# app/services/user_service.py
import logging
import math
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from app.core.errors import ConflictError, NotFoundError, ValidationError
from app.models.user import RoleName, User
from app.schemas.common import Pagination
from app.services.submission_repository import count_submissions_for_owner

logger = logging.getLogger(__name__)


def get_user_by_id(db: Session, user_id: UUID) -> User | None:
    return db.get(User, user_id)


def get_user_by_email(db: Session, email: str) -> User | None:
    return db.scalar(select(User).where(User.email == email.strip().lower()))


def get_user_by_patient_id(db: Session, patient_id: str | None) -> User | None:
    if not patient_id:
        return None
    return db.scalar(
        select(User).where(User.patient_id == patient_id, User.role == RoleName.PATIENT)
    )


def list_users(
    db: Session,
    *,
    role: RoleName | None,
    page: int,
    limit: int,
) -> tuple[list[User], Pagination]:
    """
    Users newest first. ``page``/``limit`` are expected to be clamped already.
    """
    query = select(User)
    count_query = select(func.count()).select_from(User)
    if role is not None:
        query = query.where(User.role == role)
        count_query = count_query.where(User.role == role)

    total = db.scalar(count_query) or 0
    offset = (page - 1) * limit
    users = []
    if offset < total:
        users = db.scalars(
            query.order_by(User.created_at.desc(), User.id.desc())
            .offset(offset)
            .limit(limit)
        ).all()
    return list(users), Pagination(
        page=page,
        limit=limit,
        total=total,
        pages=math.ceil(total / limit),
    )


def delete_user(db: Session, *, user_id: UUID, performed_by: User) -> None:
    if user_id == performed_by.id:
        raise ValidationError("You cannot delete your own account")

    user = get_user_by_id(db, user_id)
    if not user:
        raise NotFoundError("User not found")

    if count_submissions_for_owner(db, owner_id=user.id):
        raise ConflictError("User still owns submissions")

    db.delete(user)
    db.commit()
    logger.info("User %s deleted by admin %s", user_id, performed_by.id)
