# models/manual.py

from typing import List, Optional

from pydantic import BaseModel, Field


# -------------------------------------------------
# Sections
# -------------------------------------------------
class ManualSectionCreate(BaseModel):
    title: str = Field(..., min_length=1)
    description: Optional[str] = None
    icon: Optional[str] = None
    property_id: Optional[str] = None
    order_index: Optional[int] = None


class ManualSectionUpdate(BaseModel):
    title: Optional[str] = None
    description: Optional[str] = None
    icon: Optional[str] = None
    order_index: Optional[int] = None


# -------------------------------------------------
# Items
# -------------------------------------------------
class ManualItemCreate(BaseModel):
    title: str = Field(..., min_length=1)
    content: Optional[str] = None
    media_urls: List[str] = []
    important: bool = False
    order_index: Optional[int] = None


class ManualItemUpdate(BaseModel):
    title: Optional[str] = None
    content: Optional[str] = None
    media_urls: Optional[List[str]] = None
    important: Optional[bool] = None
    order_index: Optional[int] = None
