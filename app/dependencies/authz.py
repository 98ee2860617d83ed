# app/dependencies/authz.py
from typing import Iterable

from fastapi import Depends

from app.api.v1.endpoints.auth import get_current_user
from app.core.errors import AuthorizationError
from app.models.user import RoleName, User
from app.services.access_control import Actor


def get_current_actor(current_user: User = Depends(get_current_user)) -> Actor:
    return Actor.from_user(current_user)


def require_roles(required_roles: Iterable[RoleName]):
    """
    Dependency factory for role-based access.

    Usage:

    @router.get("/users")
    def admin_only(user = Depends(require_roles([RoleName.ADMIN]))):
        ...

    Returns the current_user if they have one of the required roles.
    """

    required = {r.value if isinstance(r, RoleName) else str(r) for r in required_roles}

    def dependency(current_user: User = Depends(get_current_user)) -> User:
        if current_user.role.value not in required:
            raise AuthorizationError(
                f"Access denied. Required role: {' or '.join(sorted(required))}"
            )
        return current_user

    return dependency
