# app/api/v1/endpoints/users.py
from uuid import UUID

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from app.core.database import get_db
from app.dependencies.authz import require_roles
from app.models.user import RoleName, User
from app.schemas.common import ApiResponse, PaginatedResponse
from app.schemas.user import UserResponse
from app.services.submission_service import clamp_pagination
from app.services.user_service import delete_user, list_users

router = APIRouter()


@router.get("", response_model=PaginatedResponse[list[UserResponse]])
def list_all_users(
    role: RoleName | None = Query(None),
    page: int = Query(1),
    limit: int = Query(10),
    db: Session = Depends(get_db),
    current_user: User = Depends(require_roles([RoleName.ADMIN])),
) -> PaginatedResponse[list[UserResponse]]:
    """
    List accounts, newest first, optionally filtered by role.
    """
    page, limit = clamp_pagination(page, limit)
    users, pagination = list_users(db, role=role, page=page, limit=limit)
    return PaginatedResponse(
        data=[UserResponse.model_validate(u) for u in users],
        pagination=pagination,
    )


@router.delete("/{user_id}", response_model=ApiResponse[None])
def remove_user(
    user_id: UUID,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_roles([RoleName.ADMIN])),
) -> ApiResponse[None]:
    delete_user(db, user_id=user_id, performed_by=current_user)
    return ApiResponse(message="User deleted successfully")
