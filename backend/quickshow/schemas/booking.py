"""
Pydantic schemas for booking-related request/response validation.

Field aliases keep the camelCase wire format the web client already sends.
"""

from datetime import datetime
from decimal import Decimal
from typing import Optional
from pydantic import BaseModel, Field


class ReservationCreate(BaseModel):
    show_id: int = Field(..., alias="showId")
    selected_seats: list[str] = Field(..., alias="selectedSeats")

    model_config = {"populate_by_name": True}


class ReservationResponse(BaseModel):
    success: bool
    url: Optional[str] = None
    message: Optional[str] = None


class OccupiedSeatsResponse(BaseModel):
    success: bool
    occupied_seats: list[str] = Field(default_factory=list, serialization_alias="occupiedSeats")


class BookingResponse(BaseModel):
    id: int
    user_id: str
    show_id: int
    booked_seats: list[str]
    amount: Decimal
    is_paid: bool
    payment_link: Optional[str]
    created_at: datetime

    model_config = {"from_attributes": True}
