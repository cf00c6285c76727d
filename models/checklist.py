# models/checklist.py

from typing import List, Optional

from pydantic import BaseModel, Field


# -------------------------------------------------
# Items
# -------------------------------------------------
class ChecklistItemCreate(BaseModel):
    title: str = Field(..., min_length=1)
    description: Optional[str] = None
    category: Optional[str] = None
    order_index: Optional[int] = None
    is_completed: bool = False


class ChecklistItemUpdate(BaseModel):
    title: Optional[str] = None
    description: Optional[str] = None
    category: Optional[str] = None
    order_index: Optional[int] = None
    is_completed: Optional[bool] = None


# -------------------------------------------------
# Checklists
# -------------------------------------------------
class ChecklistCreate(BaseModel):
    title: str = Field(..., min_length=1)
    description: Optional[str] = None
    property_id: Optional[str] = None

    # inserted right after the checklist row, in order
    items: List[ChecklistItemCreate] = []


class ChecklistUpdate(BaseModel):
    title: Optional[str] = None
    description: Optional[str] = None
