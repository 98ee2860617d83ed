# app/services/access_control.py
from dataclasses import dataclass
from enum import Enum as PyEnum
from uuid import UUID

from app.core.errors import AuthorizationError
from app.models.submission import Submission
from app.models.user import RoleName, User


class SubmissionOperation(str, PyEnum):
    CREATE = "create"
    READ = "read"
    UPDATE = "update"
    DELETE = "delete"
    GENERATE_REPORT = "generate_report"
    LIST_ALL = "list_all"
    LIST_OWN = "list_own"


ADMIN_ONLY_OPERATIONS = {
    SubmissionOperation.UPDATE,
    SubmissionOperation.DELETE,
    SubmissionOperation.GENERATE_REPORT,
    SubmissionOperation.LIST_ALL,
}


@dataclass(frozen=True)
class Actor:
    """Authenticated identity attempting an operation."""

    id: UUID
    role: RoleName
    email: str
    patient_id: str | None = None

    @classmethod
    def from_user(cls, user: User) -> "Actor":
        return cls(id=user.id, role=user.role, email=user.email, patient_id=user.patient_id)

    @property
    def is_admin(self) -> bool:
        return self.role == RoleName.ADMIN

    @property
    def is_patient(self) -> bool:
        return self.role == RoleName.PATIENT


def can_access(
    actor: Actor,
    submission: Submission | None,
    operation: SubmissionOperation,
) -> bool:
    """
    Role/ownership predicate evaluated before every mutation or data return.

    - create, list_own: patients only (list_own is scoped by query).
    - read: admins, or the patient who owns the submission.
    - update, delete, generate_report, list_all: admins only.
    """
    if operation in (SubmissionOperation.CREATE, SubmissionOperation.LIST_OWN):
        return actor.is_patient

    if operation == SubmissionOperation.READ:
        if actor.is_admin:
            return True
        return submission is not None and submission.owner_id == actor.id

    if operation in ADMIN_ONLY_OPERATIONS:
        return actor.is_admin

    return False


def ensure_access(
    actor: Actor,
    submission: Submission | None,
    operation: SubmissionOperation,
) -> None:
    if can_access(actor, submission, operation):
        return

    if operation in (SubmissionOperation.CREATE, SubmissionOperation.LIST_OWN):
        raise AuthorizationError("Only patients can perform this action")
    if operation in ADMIN_ONLY_OPERATIONS:
        raise AuthorizationError("Admin access required")
    raise AuthorizationError("Access denied")
