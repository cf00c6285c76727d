# models/contact.py

from typing import Optional

from pydantic import BaseModel, EmailStr, Field


class ContactBase(BaseModel):
    name: str = Field(..., min_length=1)
    role: Optional[str] = None          # "Plumber", "Neighbor", ...
    phone: Optional[str] = None
    email: Optional[EmailStr] = None
    address: Optional[str] = None
    description: Optional[str] = None
    website: Optional[str] = None
    priority: int = 0                   # higher sorts first
    property_id: Optional[str] = None


class ContactCreate(ContactBase):
    pass


class ContactUpdate(BaseModel):
    name: Optional[str] = None
    role: Optional[str] = None
    phone: Optional[str] = None
    email: Optional[EmailStr] = None
    address: Optional[str] = None
    description: Optional[str] = None
    website: Optional[str] = None
    priority: Optional[int] = None
