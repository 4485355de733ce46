from sqlalchemy import Column, String
from sqlalchemy.orm import relationship

from quickshow.db.base import Base, TimestampMixin


class Movie(Base, TimestampMixin):
    __tablename__ = "movies"

    id = Column(String(64), primary_key=True)
    title = Column(String(255), nullable=False)

    shows = relationship("Show", back_populates="movie", lazy="raise", passive_deletes=True)

    def __repr__(self) -> str:
        return f"<Movie(id={self.id}, title={self.title})>"
