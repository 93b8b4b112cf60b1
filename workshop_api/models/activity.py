"""Activity model definitions."""

from sqlalchemy import Column, DateTime, ForeignKey, Integer, String, Text
from sqlalchemy.orm import relationship

from workshop_api.database import Base


class Activity(Base):
    """A scheduled item inside a workshop."""
    __tablename__ = "activities"

    id = Column(Integer, primary_key=True, index=True)
    title = Column(String, nullable=False)
    description = Column(Text, nullable=True)
    workshop_id = Column(Integer, ForeignKey("workshops.id", ondelete="CASCADE"), nullable=False, index=True)
    date_time = Column(DateTime(timezone=True), nullable=False)

    workshop = relationship("Workshop", back_populates="activities")
