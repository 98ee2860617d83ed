# app/schemas/auth.py
import re

from pydantic import EmailStr, field_validator, model_validator

from app.models.user import RoleName
from app.schemas.common import CamelModel
from app.schemas.user import UserResponse


def validate_password_rules(password: str) -> str:
    """
    Requirements:
    - At least 8 characters
    - At least one uppercase letter
    - At least one lowercase letter
    - At least one digit
    """
    if len(password) < 8:
        raise ValueError("Password must be at least 8 characters")
    if not re.search(r"[a-z]", password) or not re.search(r"[A-Z]", password) or not re.search(r"\d", password):
        raise ValueError(
            "Password must contain at least one lowercase letter, one uppercase letter, and one number"
        )
    return password


def normalize_email(v: str) -> str:
    return v.strip().lower()


class RegisterRequest(CamelModel):
    name: str
    email: EmailStr
    password: str
    role: RoleName = RoleName.PATIENT
    patient_id: str | None = None

    @field_validator("name")
    @classmethod
    def validate_name(cls, v: str) -> str:
        v = v.strip()
        if len(v) < 2:
            raise ValueError("Name must be at least 2 characters")
        if len(v) > 50:
            raise ValueError("Name must be less than 50 characters")
        return v

    @field_validator("email", mode="before")
    @classmethod
    def lower_email(cls, v):
        return normalize_email(v) if isinstance(v, str) else v

    @field_validator("password")
    @classmethod
    def validate_password(cls, v: str) -> str:
        return validate_password_rules(v)

    @field_validator("patient_id")
    @classmethod
    def strip_patient_id(cls, v: str | None) -> str | None:
        if v is None:
            return None
        v = v.strip()
        return v or None

    @model_validator(mode="after")
    def check_patient_id(self):
        if self.role == RoleName.PATIENT and not self.patient_id:
            raise ValueError("Patient ID is required for patients")
        if self.role == RoleName.ADMIN:
            self.patient_id = None
        return self


class LoginRequest(CamelModel):
    email: EmailStr
    password: str

    @field_validator("email", mode="before")
    @classmethod
    def lower_email(cls, v):
        return normalize_email(v) if isinstance(v, str) else v

    @field_validator("password")
    @classmethod
    def require_password(cls, v: str) -> str:
        if not v:
            raise ValueError("Password is required")
        return v


class AuthResponse(CamelModel):
    user: UserResponse
    token: str
    refresh_token: str


class RefreshRequest(CamelModel):
    refresh_token: str


class TokenResponse(CamelModel):
    token: str


class ChangePasswordRequest(CamelModel):
    current_password: str
    new_password: str

    @field_validator("current_password")
    @classmethod
    def require_current(cls, v: str) -> str:
        if not v:
            raise ValueError("Current password is required")
        return v

    @field_validator("new_password")
    @classmethod
    def validate_new_password(cls, v: str) -> str:
        return validate_password_rules(v)


class ProfileUpdate(CamelModel):
    name: str | None = None
    patient_id: str | None = None

    @field_validator("name")
    @classmethod
    def validate_name(cls, v: str | None) -> str | None:
        if v is None:
            return None
        v = v.strip()
        if v and not 2 <= len(v) <= 50:
            raise ValueError("Name must be 2-50 characters")
        return v or None

    @field_validator("patient_id")
    @classmethod
    def strip_patient_id(cls, v: str | None) -> str | None:
        if v is None:
            return None
        return v.strip() or None


class ActorClaims(CamelModel):
    user_id: str
    email: str
    role: RoleName
    patient_id: str | None = None
