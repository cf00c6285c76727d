# models/property.py

from typing import Optional

from pydantic import BaseModel, Field


# -------------------------------------------------
# Shared fields
# -------------------------------------------------
class PropertyBase(BaseModel):
    name: str = Field(..., min_length=1)
    address: Optional[str] = None
    description: Optional[str] = None

    latitude: Optional[float] = Field(None, ge=-90, le=90)
    longitude: Optional[float] = Field(None, ge=-180, le=180)
    photo_url: Optional[str] = None


# -------------------------------------------------
# Create
# -------------------------------------------------
class PropertyCreate(PropertyBase):
    """
    tenant_id may be omitted when the caller belongs to exactly one tenant.
    """
    tenant_id: Optional[str] = None


# -------------------------------------------------
# Update (PATCH)
# -------------------------------------------------
class PropertyUpdate(BaseModel):
    name: Optional[str] = None
    address: Optional[str] = None
    description: Optional[str] = None
    latitude: Optional[float] = Field(None, ge=-90, le=90)
    longitude: Optional[float] = Field(None, ge=-180, le=180)
    photo_url: Optional[str] = None
