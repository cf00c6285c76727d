# models/permission.py

from typing import List

from pydantic import BaseModel, field_validator

from core.permissions import FEATURES
from models.enums import AppRole


class PermissionCell(BaseModel):
    role: AppRole
    feature: str
    allowed: bool

    @field_validator("feature")
    @classmethod
    def known_feature(cls, v):
        if v not in FEATURES:
            raise ValueError(f"Unknown feature '{v}'")
        return v


class PermissionMatrixUpdate(BaseModel):
    cells: List[PermissionCell]
