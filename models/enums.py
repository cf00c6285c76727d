from enum import Enum


class BaseStrEnum(str, Enum):
    """
    Base enum that serializes cleanly to a string
    and provides a .list() method for UI dropdowns.
    """

    def __str__(self):
        return str(self.value)

    @classmethod
    def list(cls):
        return [item.value for item in cls]


# -----------------------------------------------------
# APPLICATION ROLE (declaration order == privilege order)
# -----------------------------------------------------
class AppRole(BaseStrEnum):
    friend = "friend"
    family = "family"
    manager = "manager"
    owner = "owner"


# -----------------------------------------------------
# TENANT MEMBERSHIP
# -----------------------------------------------------
class MembershipRole(BaseStrEnum):
    owner = "owner"
    admin = "admin"
    manager = "manager"
    member = "member"


class MembershipStatus(BaseStrEnum):
    active = "active"
    invited = "invited"
    suspended = "suspended"


# -----------------------------------------------------
# TASKS
# -----------------------------------------------------
class TaskStatus(BaseStrEnum):
    todo = "todo"
    in_progress = "in_progress"
    completed = "completed"


class TaskPriority(BaseStrEnum):
    low = "low"
    medium = "medium"
    high = "high"


# -----------------------------------------------------
# RESERVATIONS (calendar)
# -----------------------------------------------------
class ReservationStatus(BaseStrEnum):
    """pending → approved | denied; pending/approved → cancelled"""

    pending = "pending"
    approved = "approved"
    denied = "denied"
    cancelled = "cancelled"


# -----------------------------------------------------
# SESSION LIFECYCLE
# -----------------------------------------------------
class SessionState(BaseStrEnum):
    uninitialized = "uninitialized"
    loading = "loading"
    ready = "ready"
    error = "error"


# -----------------------------------------------------
# CLEANING
# -----------------------------------------------------
class CleaningVisitStatus(BaseStrEnum):
    in_progress = "in_progress"
    completed = "completed"


class IssueSeverity(BaseStrEnum):
    low = "Low"
    medium = "Medium"
    high = "High"
