from typing import Literal, Optional

from pydantic import BaseModel, EmailStr, Field


# -----------------------------------------------------
# LOGIN REQUEST (Supabase email/password)
# -----------------------------------------------------
class LoginRequest(BaseModel):
    email: EmailStr
    password: str = Field(..., min_length=1)


# -----------------------------------------------------
# TOKEN RESPONSE (Supabase session JWT)
# -----------------------------------------------------
class TokenResponse(BaseModel):
    access_token: str
    refresh_token: str
    expires_in: int
    token_type: str = "bearer"
    user_id: Optional[str] = None


class LogoutRequest(BaseModel):
    # local: this session; global: every session; others: all but this one
    scope: Literal["local", "global", "others"] = "local"


# -----------------------------------------------------
# CREDENTIAL CHANGES
# -----------------------------------------------------
class PasswordUpdate(BaseModel):
    password: str = Field(..., min_length=8)


class EmailUpdate(BaseModel):
    email: EmailStr


class PasswordResetRequest(BaseModel):
    email: EmailStr


class VerifyOtpRequest(BaseModel):
    """Email link callback: ?token_hash=...&type=..."""

    token_hash: str = Field(..., min_length=1)
    type: Literal["signup", "invite", "magiclink", "recovery", "email_change", "email"]
