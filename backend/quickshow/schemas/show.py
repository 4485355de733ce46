"""
Pydantic schemas for show scheduling.
"""

from datetime import datetime, timezone
from decimal import Decimal
from pydantic import BaseModel, Field, field_validator


class ShowCreate(BaseModel):
    movie_id: str = Field(..., min_length=1, max_length=64)
    movie_title: str = Field(..., min_length=1, max_length=255)
    show_datetime: datetime
    show_price: Decimal = Field(..., ge=0, max_digits=10, decimal_places=2)
    seat_rows: str = Field("ABCDEFGHIJ", min_length=1, max_length=26, pattern=r"^[A-Z]+$")
    seats_per_row: int = Field(9, gt=0, le=100)

    @field_validator("show_datetime")
    @classmethod
    def assume_utc(cls, value: datetime) -> datetime:
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value


class ShowResponse(BaseModel):
    id: int
    movie_id: str
    show_datetime: datetime
    show_price: Decimal
    seat_rows: str
    seats_per_row: int

    model_config = {"from_attributes": True}
