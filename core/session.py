# core/session.py

"""
Per-request authorization state.

A SessionContext is built for one principal, moves through

    uninitialized → loading → ready
                            ↘ error → loading (retry)
    ready → loading (refresh)

and answers role / permission questions. The checks are total: they never
raise and return False until the context is ready (fail closed).
"""

from typing import Iterable, Optional, Sequence, Union

from core.logging_config import get_logger
from core.roles import normalize_role, role_satisfies, highest_role
from models.enums import SessionState

log = get_logger("session")

_TRANSITIONS = {
    SessionState.uninitialized: {SessionState.loading},
    SessionState.loading: {SessionState.ready, SessionState.error},
    SessionState.ready: {SessionState.loading},
    SessionState.error: {SessionState.loading},
}

RoleRequirement = Union[str, Sequence[str], None]


class InvalidSessionTransition(RuntimeError):
    pass


class SessionContext:
    def __init__(self, user=None):
        self.user = user
        self.state = SessionState.uninitialized
        self.roles: list = []
        self.error: Optional[str] = None
        self._matrix: dict = {}

    def __repr__(self):
        user_id = getattr(self.user, "id", None)
        return f"<SessionContext user={user_id} state={self.state.value} roles={self.roles}>"

    # ---------------------------------------------------------
    # Lifecycle
    # ---------------------------------------------------------
    def _transition(self, target: SessionState):
        if target not in _TRANSITIONS[self.state]:
            raise InvalidSessionTransition(f"{self.state.value} → {target.value}")
        self.state = target

    def begin_loading(self):
        self._transition(SessionState.loading)
        self.error = None

    def mark_ready(self, roles: Iterable[str], permission_rows: Iterable[dict] = ()):
        self._transition(SessionState.ready)
        self.roles = [r for r in roles if isinstance(r, str)]
        self._matrix = {}
        for row in permission_rows:
            key = (row.get("role"), row.get("feature"))
            # an explicit deny for the same cell wins over a duplicate allow
            self._matrix[key] = self._matrix.get(key, True) and row.get("allowed") is True

    def mark_error(self, message: str):
        self._transition(SessionState.error)
        self.error = message
        self.roles = []
        self._matrix = {}

    @property
    def is_ready(self) -> bool:
        return self.state == SessionState.ready

    @property
    def is_authenticated(self) -> bool:
        return self.user is not None and getattr(self.user, "id", None) is not None

    @property
    def highest_role(self) -> Optional[str]:
        return highest_role(self.roles) if self.is_ready else None

    # ---------------------------------------------------------
    # Checks (total functions)
    # ---------------------------------------------------------
    def has_role(self, required_role: RoleRequirement) -> bool:
        if not (self.is_ready and self.is_authenticated):
            return False
        if isinstance(required_role, str):
            return role_satisfies(self.roles, required_role)
        if isinstance(required_role, (list, tuple, set, frozenset)):
            return any(role_satisfies(self.roles, r) for r in required_role)
        return False

    def has_permission(self, feature: str) -> bool:
        if not (self.is_ready and self.is_authenticated):
            return False
        if not isinstance(feature, str):
            return False
        # a missing (role, feature) row is a denial
        return any(
            self._matrix.get((normalize_role(role), feature)) is True
            for role in self.roles
        )

    def can_access(self, required_role: RoleRequirement = None,
                   required_permission: Optional[str] = None) -> bool:
        """Neither requirement → visible; both → either one suffices."""
        if not required_role and not required_permission:
            return True
        if required_permission and self.has_permission(required_permission):
            return True
        if required_role and self.has_role(required_role):
            return True
        return False

    def allowed_features(self) -> list:
        if not self.is_ready:
            return []
        held = {normalize_role(r) for r in self.roles}
        return sorted({f for (role, f), ok in self._matrix.items() if ok and role in held})

    def snapshot(self) -> dict:
        return {
            "state": self.state.value,
            "user_id": getattr(self.user, "id", None),
            "roles": list(self.roles),
            "highest_role": self.highest_role,
            "permissions": self.allowed_features(),
            "error": self.error,
        }
