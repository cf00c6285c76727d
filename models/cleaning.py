# models/cleaning.py

from datetime import date
from typing import List, Optional

from pydantic import BaseModel, Field

from models.enums import IssueSeverity


# -------------------------------------------------
# Rooms
# -------------------------------------------------
class RoomCreate(BaseModel):
    property_id: str
    name: str = Field(..., min_length=1)

    # derived from the name when left out
    slug: Optional[str] = None
    icon: Optional[str] = None


class RoomUpdate(BaseModel):
    name: Optional[str] = None
    icon: Optional[str] = None


# -------------------------------------------------
# Task catalogue (what gets cleaned in each room)
# -------------------------------------------------
class CleaningTaskCreate(BaseModel):
    property_id: str
    room: str = Field(..., min_length=1)
    name: str = Field(..., min_length=1)
    description: Optional[str] = None
    photo_url: Optional[str] = None
    display_order: Optional[int] = None


class CleaningTaskUpdate(BaseModel):
    room: Optional[str] = None
    name: Optional[str] = None
    description: Optional[str] = None
    photo_url: Optional[str] = None
    display_order: Optional[int] = None


# -------------------------------------------------
# Visits
# -------------------------------------------------
class VisitCreate(BaseModel):
    """Either a reservation (its property and start date) or a property."""

    reservation_id: Optional[str] = None
    property_id: Optional[str] = None
    visit_date: Optional[date] = None


class VisitTaskComplete(BaseModel):
    is_completed: bool = True
    photo_url: Optional[str] = None


# -------------------------------------------------
# Issues
# -------------------------------------------------
class IssueCreate(BaseModel):
    property_id: str
    description: str = Field(..., min_length=1)
    severity: IssueSeverity = IssueSeverity.medium
    location: Optional[str] = None
    photo_urls: List[str] = []
    notes: Optional[str] = None


class IssueResolve(BaseModel):
    notes: Optional[str] = None
