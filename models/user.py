# models/user.py

from typing import Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field

from models.enums import AppRole


# ===============================================================
# ADMIN → CREATE / UPDATE PRINCIPALS
# ===============================================================

class AdminCreateUser(BaseModel):
    """
    Payload used by admins when creating a new principal.

    No password: the invitation email lets the user choose one.
    """

    email: EmailStr
    full_name: str = Field(..., min_length=1)
    role: AppRole = AppRole.friend

    phone_number: Optional[str] = None
    address: Optional[str] = None
    show_in_contacts: bool = False


class AdminUpdateUser(BaseModel):
    """Partial update; only the fields sent are touched."""

    email: Optional[EmailStr] = None
    full_name: Optional[str] = None
    role: Optional[AppRole] = None
    phone_number: Optional[str] = None
    address: Optional[str] = None
    show_in_contacts: Optional[bool] = None


class ProfileUpdate(BaseModel):
    """Self-service profile edit (PATCH /auth/me). Role is not editable here."""

    full_name: Optional[str] = None
    phone_number: Optional[str] = None
    address: Optional[str] = None
    show_in_contacts: Optional[bool] = None


class RoleGrant(BaseModel):
    role: AppRole


# ===============================================================
# PROVISIONING RESULTS
# ===============================================================

class ProvisioningResult(BaseModel):
    """
    Three independent facts: the user exists, the role row exists,
    the invitation went out.
    """

    model_config = ConfigDict(populate_by_name=True)

    success: bool
    user_id: str = Field(..., alias="userId")
    invite_sent: bool = Field(..., alias="inviteSent")
    role_assigned: bool = Field(..., alias="roleAssigned")

    # non-fatal step → {"message", "code"}
    warnings: dict = {}


class DeletionResult(BaseModel):
    success: bool
    user_id: str
    warnings: dict = {}
