# -------------------------
# Enums
# -------------------------
from .enums import (
    AppRole,
    MembershipRole,
    MembershipStatus,
    ReservationStatus,
    SessionState,
    TaskPriority,
    TaskStatus,
)

# -------------------------
# User Models (Supabase Auth + profiles)
# -------------------------
from .user import (
    AdminCreateUser,
    AdminUpdateUser,
    DeletionResult,
    ProfileUpdate,
    ProvisioningResult,
    RoleGrant,
)

# -------------------------
# Auth Models
# -------------------------
from .auth import LoginRequest, TokenResponse

# -------------------------
# Signup / Tenant Models
# -------------------------
from .signup import SignupComplete, SignupRequest
from .tenant import TenantCreate, TenantMemberInvite, TenantMemberUpdate
from .property import PropertyCreate, PropertyUpdate

__all__ = [
    # enums
    "AppRole",
    "MembershipRole",
    "MembershipStatus",
    "ReservationStatus",
    "SessionState",
    "TaskPriority",
    "TaskStatus",

    # users
    "AdminCreateUser",
    "AdminUpdateUser",
    "DeletionResult",
    "ProfileUpdate",
    "ProvisioningResult",
    "RoleGrant",

    # auth
    "LoginRequest",
    "TokenResponse",

    # signup / tenants
    "SignupComplete",
    "SignupRequest",
    "TenantCreate",
    "TenantMemberInvite",
    "TenantMemberUpdate",
    "PropertyCreate",
    "PropertyUpdate",
]
