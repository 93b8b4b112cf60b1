"""Workshop model definitions."""

from sqlalchemy import Column, DateTime, ForeignKey, Integer, String, Text, func
from sqlalchemy.orm import relationship

from workshop_api.database import Base


class Workshop(Base):
    """A session run by a single mentor."""
    __tablename__ = "workshops"

    id = Column(Integer, primary_key=True, index=True)
    title = Column(String, nullable=False)
    description = Column(Text, nullable=True)
    mentor_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    location = Column(String, nullable=True)
    date_time = Column(DateTime(timezone=True), nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    mentor = relationship("User", back_populates="workshops")
    activities = relationship(
        "Activity",
        back_populates="workshop",
        cascade="all, delete-orphan",
        passive_deletes=True,
        order_by="Activity.date_time",
    )
    enrollments = relationship(
        "Enrollment",
        back_populates="workshop",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )
    learners = relationship("User", secondary="enrollments", viewonly=True)
