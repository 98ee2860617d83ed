from datetime import datetime, timedelta, timezone
from typing import Any

from jose import ExpiredSignatureError, JWTError, jwt
from passlib.context import CryptContext

from app.core.config import get_settings

settings = get_settings()

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")

ALGORITHM = "HS256"


def verify_password(plain_password: str, hashed_password: str) -> bool:
    return pwd_context.verify(plain_password, hashed_password)


def get_password_hash(password: str) -> str:
    return pwd_context.hash(password)


def _encode(claims: dict[str, Any], audience: str, expires_delta: timedelta) -> str:
    expire = datetime.now(timezone.utc) + expires_delta
    to_encode = {
        **claims,
        "iss": settings.jwt_issuer,
        "aud": audience,
        "exp": expire,
    }
    return jwt.encode(to_encode, settings.secret_key, algorithm=ALGORITHM)


def create_access_token(
    subject: str,
    email: str,
    role: str,
    patient_id: str | None = None,
    expires_delta_minutes: int | None = None,
) -> str:
    """
    Create a JWT access token carrying the user id, email, role and
    clinical patient id.
    """
    if expires_delta_minutes is None:
        expires_delta_minutes = settings.access_token_expire_minutes

    claims: dict[str, Any] = {
        "sub": str(subject),
        "email": email,
        "role": role,
        "patient_id": patient_id,
    }
    return _encode(
        claims,
        settings.jwt_audience,
        timedelta(minutes=expires_delta_minutes),
    )


def create_refresh_token(subject: str) -> str:
    return _encode(
        {"sub": str(subject)},
        settings.jwt_refresh_audience,
        timedelta(days=settings.refresh_token_expire_days),
    )


def _decode(token: str, audience: str) -> dict[str, Any]:
    try:
        return jwt.decode(
            token,
            settings.secret_key,
            algorithms=[ALGORITHM],
            audience=audience,
            issuer=settings.jwt_issuer,
        )
    except ExpiredSignatureError:
        raise ValueError("Token has expired") from None
    except JWTError as exc:
        raise ValueError("Invalid token") from exc


def decode_token(token: str) -> dict[str, Any]:
    """
    Decode and validate an access token.
    Raises ValueError with descriptive message if token is invalid or expired.
    """
    return _decode(token, settings.jwt_audience)


def decode_refresh_token(token: str) -> dict[str, Any]:
    try:
        return _decode(token, settings.jwt_refresh_audience)
    except ValueError:
        raise ValueError("Invalid refresh token") from None
