from pydantic import BaseModel, EmailStr, Field

from models.property import PropertyBase


# --------------------------------------------------------------------
# PUBLIC SIGNUP: account + first property in one form
# --------------------------------------------------------------------
class SignupRequest(BaseModel):
    email: EmailStr
    password: str = Field(..., min_length=8)
    first_name: str = Field(..., min_length=1)
    last_name: str = ""

    property: PropertyBase


# --------------------------------------------------------------------
# AFTER EMAIL CONFIRMATION: the account exists, finish tenant + property
# --------------------------------------------------------------------
class SignupComplete(BaseModel):
    property: PropertyBase
