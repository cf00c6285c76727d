# models/inventory.py

from typing import Optional

from pydantic import BaseModel, Field


class InventoryItemCreate(BaseModel):
    name: str = Field(..., min_length=1)
    quantity: int = Field(0, ge=0)
    category: Optional[str] = None
    description: Optional[str] = None
    location: Optional[str] = None

    # quantity <= threshold → "low stock"
    threshold: Optional[int] = Field(None, ge=0)
    property_id: Optional[str] = None


class InventoryItemUpdate(BaseModel):
    name: Optional[str] = None
    quantity: Optional[int] = Field(None, ge=0)
    category: Optional[str] = None
    description: Optional[str] = None
    location: Optional[str] = None
    threshold: Optional[int] = Field(None, ge=0)
