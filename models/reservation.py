# models/reservation.py

from datetime import date
from typing import Literal, Optional

from pydantic import BaseModel, Field, model_validator


class ReservationBase(BaseModel):
    title: str = Field(..., min_length=1)
    start_date: date
    end_date: date
    notes: Optional[str] = None
    property_id: Optional[str] = None

    @model_validator(mode="after")
    def check_dates(self):
        if self.end_date < self.start_date:
            raise ValueError("end_date must be on or after start_date")
        return self


class ReservationCreate(ReservationBase):
    """New requests always start as 'pending'."""
    pass


class ReservationUpdate(BaseModel):
    title: Optional[str] = None
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    notes: Optional[str] = None


class ReservationDecision(BaseModel):
    status: Literal["approved", "denied"]
