# app/services/auth_service.py
import logging
from uuid import UUID

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.core.errors import AuthenticationError, ConflictError, NotFoundError, ValidationError
from app.core.security import (
    create_access_token,
    create_refresh_token,
    decode_refresh_token,
    get_password_hash,
    verify_password,
)
from app.models.user import RoleName, User
from app.schemas.auth import AuthResponse, LoginRequest, ProfileUpdate, RegisterRequest
from app.schemas.user import UserResponse
from app.services.user_service import (
    get_user_by_email,
    get_user_by_id,
    get_user_by_patient_id,
)

logger = logging.getLogger(__name__)


def issue_access_token_for_user(user: User) -> str:
    return create_access_token(
        subject=str(user.id),
        email=user.email,
        role=user.role.value,
        patient_id=user.patient_id,
    )


def build_auth_response(user: User) -> AuthResponse:
    return AuthResponse(
        user=UserResponse.model_validate(user),
        token=issue_access_token_for_user(user),
        refresh_token=create_refresh_token(str(user.id)),
    )


def register_user(db: Session, data: RegisterRequest) -> User:
    """
    Create a new account. Email is unique; patient IDs are unique among patients.
    """
    if get_user_by_email(db, data.email):
        raise ConflictError("User with this email already exists")

    if data.role == RoleName.PATIENT and get_user_by_patient_id(db, data.patient_id):
        raise ConflictError("Patient ID already exists")

    user = User(
        name=data.name,
        email=str(data.email),
        hashed_password=get_password_hash(data.password),
        role=data.role,
        patient_id=data.patient_id if data.role == RoleName.PATIENT else None,
    )
    try:
        db.add(user)
        db.commit()
        db.refresh(user)
    except IntegrityError as exc:
        # Lost a race with a concurrent registration
        db.rollback()
        raise ConflictError("User with this email or patient ID already exists") from exc

    logger.info("Registered %s user %s", user.role.value, user.id)
    return user


def authenticate_user(db: Session, login_data: LoginRequest) -> User:
    """
    Authenticate a user given email and password.
    """
    user = get_user_by_email(db, login_data.email)
    if not user:
        raise AuthenticationError("Invalid email or password")

    if not verify_password(login_data.password, user.hashed_password):
        raise AuthenticationError("Invalid email or password")

    return user


def refresh_access_token(db: Session, refresh_token: str) -> str:
    try:
        payload = decode_refresh_token(refresh_token)
        user_id = UUID(payload["sub"])
    except (ValueError, KeyError):
        raise AuthenticationError("Invalid refresh token") from None

    user = get_user_by_id(db, user_id)
    if not user:
        raise AuthenticationError("Invalid refresh token")
    return issue_access_token_for_user(user)


def update_profile(db: Session, user: User, changes: ProfileUpdate) -> User:
    if changes.patient_id and changes.patient_id != user.patient_id:
        if user.role != RoleName.PATIENT:
            raise ValidationError("Only patients have a patient ID")
        existing = get_user_by_patient_id(db, changes.patient_id)
        if existing and existing.id != user.id:
            raise ConflictError("Patient ID already exists")
        user.patient_id = changes.patient_id

    if changes.name:
        user.name = changes.name

    try:
        db.commit()
        db.refresh(user)
    except IntegrityError as exc:
        db.rollback()
        raise ConflictError("Patient ID already exists") from exc
    return user


def change_password(
    db: Session,
    *,
    user_id: UUID,
    current_password: str,
    new_password: str,
) -> None:
    """
    Verify the current password and store the hash of the new one.
    Strength rules are enforced by the request schema.
    """
    user = get_user_by_id(db, user_id)
    if not user:
        raise NotFoundError("User not found")

    if not verify_password(current_password, user.hashed_password):
        raise ValidationError("Current password is incorrect")

    user.hashed_password = get_password_hash(new_password)
    db.commit()
    logger.info("Password changed for user %s", user.id)
