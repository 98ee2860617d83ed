# app/api/v1/endpoints/auth.py
from uuid import UUID

from fastapi import APIRouter, Depends, Request, Response, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.orm import Session

from app.core.config import get_settings
from app.core.database import get_db
from app.core.errors import AuthenticationError
from app.core.security import decode_token
from app.models.user import User
from app.schemas.auth import (
    ActorClaims,
    AuthResponse,
    ChangePasswordRequest,
    LoginRequest,
    ProfileUpdate,
    RefreshRequest,
    RegisterRequest,
    TokenResponse,
)
from app.schemas.common import ApiResponse
from app.schemas.user import UserResponse
from app.services.auth_service import (
    authenticate_user,
    build_auth_response,
    change_password,
    refresh_access_token,
    register_user,
    update_profile,
)

router = APIRouter()

settings = get_settings()

bearer_scheme = HTTPBearer(auto_error=False)


def _set_auth_cookie(response: Response, token: str) -> None:
    response.set_cookie(
        key=settings.auth_cookie_name,
        value=token,
        httponly=True,
        secure=settings.is_production,
        samesite="strict",
        max_age=settings.access_token_expire_minutes * 60,
    )


def get_current_user(
    request: Request,
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
    db: Session = Depends(get_db),
) -> User:
    """
    Dependency to retrieve the current user from a bearer token,
    falling back to the auth cookie.
    """
    token = credentials.credentials if credentials else request.cookies.get(settings.auth_cookie_name)
    if not token:
        raise AuthenticationError("Access denied. No token provided.")

    try:
        payload = decode_token(token)
    except ValueError as exc:
        raise AuthenticationError(str(exc)) from None

    try:
        user_id = UUID(str(payload.get("sub")))
    except ValueError:
        raise AuthenticationError("Invalid token payload") from None

    user = db.get(User, user_id)
    if not user:
        raise AuthenticationError("Token is no longer valid. User not found.")

    return user


@router.get("/health")
async def auth_health_check() -> dict:
    """
    Simple health check for the auth module.
    """
    return {"status": "auth-ok"}


@router.post(
    "/register",
    response_model=ApiResponse[AuthResponse],
    status_code=status.HTTP_201_CREATED,
)
def register(
    payload: RegisterRequest,
    response: Response,
    db: Session = Depends(get_db),
) -> ApiResponse[AuthResponse]:
    user = register_user(db, payload)
    auth = build_auth_response(user)
    _set_auth_cookie(response, auth.token)
    return ApiResponse(message="User registered successfully", data=auth)


@router.post("/login", response_model=ApiResponse[AuthResponse])
def login(
    payload: LoginRequest,
    response: Response,
    db: Session = Depends(get_db),
) -> ApiResponse[AuthResponse]:
    user = authenticate_user(db, payload)
    auth = build_auth_response(user)
    _set_auth_cookie(response, auth.token)
    return ApiResponse(message="Login successful", data=auth)


@router.post("/logout", response_model=ApiResponse[None])
def logout(response: Response) -> ApiResponse[None]:
    response.delete_cookie(settings.auth_cookie_name)
    return ApiResponse(message="Logout successful")


@router.post("/refresh", response_model=ApiResponse[TokenResponse])
def refresh(
    payload: RefreshRequest,
    response: Response,
    db: Session = Depends(get_db),
) -> ApiResponse[TokenResponse]:
    token = refresh_access_token(db, payload.refresh_token)
    _set_auth_cookie(response, token)
    return ApiResponse(message="Token refreshed", data=TokenResponse(token=token))


@router.get("/profile", response_model=ApiResponse[dict[str, UserResponse]])
def read_profile(
    current_user: User = Depends(get_current_user),
) -> ApiResponse[dict[str, UserResponse]]:
    """
    Return the current authenticated user.
    """
    return ApiResponse(
        message="Profile retrieved successfully",
        data={"user": UserResponse.model_validate(current_user)},
    )


@router.put("/profile", response_model=ApiResponse[dict[str, UserResponse]])
def edit_profile(
    payload: ProfileUpdate,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> ApiResponse[dict[str, UserResponse]]:
    user = update_profile(db, current_user, payload)
    return ApiResponse(
        message="Profile updated successfully",
        data={"user": UserResponse.model_validate(user)},
    )


@router.post("/change-password", response_model=ApiResponse[None])
def change_own_password(
    payload: ChangePasswordRequest,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> ApiResponse[None]:
    change_password(
        db,
        user_id=current_user.id,
        current_password=payload.current_password,
        new_password=payload.new_password,
    )
    return ApiResponse(message="Password changed successfully")


@router.get("/verify", response_model=ApiResponse[dict[str, ActorClaims]])
def verify(
    current_user: User = Depends(get_current_user),
) -> ApiResponse[dict[str, ActorClaims]]:
    claims = ActorClaims(
        user_id=str(current_user.id),
        email=current_user.email,
        role=current_user.role,
        patient_id=current_user.patient_id,
    )
    return ApiResponse(message="Token is valid", data={"user": claims})
