"""Enrollment model definitions."""

from sqlalchemy import Column, DateTime, ForeignKey, Integer, func
from sqlalchemy.orm import relationship

from workshop_api.database import Base


class Enrollment(Base):
    """Links a learner to a workshop. The same pair may appear more than once."""
    __tablename__ = "enrollments"

    id = Column(Integer, primary_key=True, index=True)
    learner_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    workshop_id = Column(Integer, ForeignKey("workshops.id", ondelete="CASCADE"), nullable=False, index=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    learner = relationship("User", back_populates="enrollments")
    workshop = relationship("Workshop", back_populates="enrollments")
