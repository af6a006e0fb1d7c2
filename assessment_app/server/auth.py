"""Bearer-token authentication and role checks for the API server."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from threading import Lock

from assessment_app.config.settings import TokenGrant
from assessment_app.core.errors import AuthenticationError, PermissionDeniedError
from assessment_app.core.models import Assessment, Attempt, Role

_BEARER_PREFIX = "bearer "


@dataclass(frozen=True, slots=True)
class Principal:
    """The authenticated caller of a request."""

    user_id: int
    role: Role

    @property
    def is_admin(self) -> bool:
        return self.role is Role.ADMIN

    @property
    def sees_published_only(self) -> bool:
        return self.role in (Role.STUDENT, Role.PARENT)


class TokenRegistry:
    """Maps opaque bearer tokens to principals."""

    def __init__(self, grants: Mapping[str, TokenGrant] | None = None) -> None:
        self._lock = Lock()
        self._principals: dict[str, Principal] = {}
        for token, grant in (grants or {}).items():
            self.register(token, grant.user_id, grant.role)

    def register(self, token: str, user_id: int, role: Role) -> None:
        with self._lock:
            self._principals[token] = Principal(user_id=user_id, role=Role(role))

    def resolve(self, authorization: str | None) -> Principal:
        """Return the principal for an ``Authorization`` header value."""
        if not authorization or not authorization.lower().startswith(_BEARER_PREFIX):
            raise AuthenticationError("Unauthenticated.")
        token = authorization[len(_BEARER_PREFIX):].strip()
        with self._lock:
            principal = self._principals.get(token)
        if principal is None:
            raise AuthenticationError("Unauthenticated.")
        return principal


def require_author(principal: Principal) -> None:
    if principal.role not in (Role.TEACHER, Role.ADMIN):
        raise PermissionDeniedError("Only teachers and admins can manage assessments.")


def require_owner(principal: Principal, assessment: Assessment) -> None:
    """Authoring access: the owning teacher or any admin."""
    require_author(principal)
    if principal.is_admin:
        return
    if assessment.teacher_id != principal.user_id:
        raise PermissionDeniedError("You can only manage your own assessments.")


def require_student(principal: Principal) -> None:
    if principal.role is not Role.STUDENT:
        raise PermissionDeniedError("Only students can take assessments.")


def can_view_attempt(principal: Principal, attempt: Attempt, assessment: Assessment | None) -> bool:
    if principal.is_admin:
        return True
    if principal.role is Role.STUDENT:
        return attempt.student_id == principal.user_id
    if principal.role is Role.TEACHER:
        return assessment is not None and assessment.teacher_id == principal.user_id
    return False
