# models/tenant.py

from typing import Optional

from pydantic import BaseModel, EmailStr, Field

from models.enums import MembershipRole, MembershipStatus


class TenantCreate(BaseModel):
    name: str = Field(..., min_length=1)


class TenantMemberInvite(BaseModel):
    """
    Existing principals are linked directly; unknown emails get an
    invitation and an 'invited' membership.
    """
    email: EmailStr
    role: MembershipRole = MembershipRole.member
    full_name: Optional[str] = None


class TenantMemberUpdate(BaseModel):
    role: Optional[MembershipRole] = None
    status: Optional[MembershipStatus] = None
