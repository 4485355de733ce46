"""
Booking model: one checkout attempt for a set of seats.

Key design decisions:
- Rows are created unpaid and either flipped to paid or deleted; there is no
  cancelled state, so a deleted row is the only "released" marker
- The unpaid -> paid flip and the release delete are both conditional on
  `is_paid = false`, so the two can race without losing either outcome
"""

from sqlalchemy import Column, Integer, String, Numeric, Boolean, ForeignKey, JSON, CheckConstraint
from sqlalchemy.orm import relationship

from quickshow.db.base import Base, TimestampMixin


class Booking(Base, TimestampMixin):
    __tablename__ = "bookings"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(String(64), ForeignKey("users.id"), nullable=False, index=True)
    show_id = Column(Integer, ForeignKey("shows.id"), nullable=False, index=True)
    booked_seats = Column(JSON, nullable=False, default=list)
    amount = Column(Numeric(10, 2), nullable=False)
    is_paid = Column(Boolean, nullable=False, default=False)
    payment_link = Column(String(2048), nullable=True)
    checkout_session_id = Column(String(255), nullable=True)

    user = relationship("User", back_populates="bookings", lazy="raise")
    show = relationship("Show", back_populates="bookings", lazy="raise")

    __table_args__ = (
        CheckConstraint("amount >= 0", name="check_booking_amount_non_negative"),
    )

    def __repr__(self) -> str:
        return f"<Booking(id={self.id}, user={self.user_id}, show={self.show_id}, paid={self.is_paid})>"
