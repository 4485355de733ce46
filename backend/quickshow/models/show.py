"""
Show model carrying the seat inventory.

Key design decisions:
- `occupied_seats` maps seat id -> holder (user id); a missing key means the seat is free
- `version` column enables optimistic locking: every claim or release is a
  conditional UPDATE on (id, version), so concurrent writers cannot both win
- Seat layout is rows of letters times a fixed seat count, e.g. "A1".."J9"
"""

import re

from sqlalchemy import Column, Integer, Numeric, String, DateTime, ForeignKey, JSON, Index, CheckConstraint
from sqlalchemy.orm import relationship

from quickshow.db.base import Base, TimestampMixin

SEAT_PATTERN = re.compile(r"^([A-Z])([1-9][0-9]*)$")


class Show(Base, TimestampMixin):
    __tablename__ = "shows"

    id = Column(Integer, primary_key=True, index=True)
    movie_id = Column(String(64), ForeignKey("movies.id"), nullable=False, index=True)
    show_datetime = Column(DateTime(timezone=True), nullable=False)
    show_price = Column(Numeric(10, 2), nullable=False)
    seat_rows = Column(String(26), nullable=False, default="ABCDEFGHIJ")
    seats_per_row = Column(Integer, nullable=False, default=9)
    occupied_seats = Column(JSON, nullable=False, default=dict)

    # Optimistic locking version counter
    version = Column(Integer, nullable=False, default=1)

    movie = relationship("Movie", back_populates="shows", lazy="joined")
    bookings = relationship("Booking", back_populates="show", lazy="raise", passive_deletes=True)

    __table_args__ = (
        CheckConstraint("show_price >= 0", name="check_show_price_non_negative"),
        CheckConstraint("seats_per_row > 0", name="check_seats_per_row_positive"),
        # Reminder scans are range queries on start time
        Index("ix_shows_show_datetime", "show_datetime"),
    )

    def has_seat(self, seat: str) -> bool:
        match = SEAT_PATTERN.match(seat)
        if not match:
            return False
        row, number = match.group(1), int(match.group(2))
        return row in self.seat_rows and number <= self.seats_per_row

    def __repr__(self) -> str:
        return f"<Show(id={self.id}, movie={self.movie_id}, occupied={len(self.occupied_seats or {})})>"
