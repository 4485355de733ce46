"""
User profile mirrored from the identity provider.
"""

from sqlalchemy import Column, String
from sqlalchemy.orm import relationship

from quickshow.db.base import Base, TimestampMixin


class User(Base, TimestampMixin):
    __tablename__ = "users"

    # Identity-provider subject, e.g. "user_2x9..."
    id = Column(String(64), primary_key=True)
    name = Column(String(255), nullable=False, default="")
    email = Column(String(255), nullable=False, index=True)
    image = Column(String(1024), nullable=True)

    bookings = relationship("Booking", back_populates="user", lazy="raise", passive_deletes=True)

    def __repr__(self) -> str:
        return f"<User(id={self.id}, email={self.email})>"
