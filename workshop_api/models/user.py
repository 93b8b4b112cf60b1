"""User model definitions."""

from sqlalchemy import Boolean, CheckConstraint, Column, DateTime, Integer, String, func
from sqlalchemy.orm import relationship

from workshop_api.database import Base

ROLE_MENTOR = "mentor"
ROLE_LEARNER = "learner"
USER_ROLES = (ROLE_MENTOR, ROLE_LEARNER)


class User(Base):
    """Represents a mentor or a learner."""
    __tablename__ = "users"
    __table_args__ = (
        CheckConstraint("role IN ('mentor', 'learner')", name="ck_users_role"),
    )

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String, nullable=False)
    email = Column(String, unique=True, index=True, nullable=False)
    hashed_password = Column(String, nullable=False)
    role = Column(String, nullable=False)  # mentor/learner, fixed at signup
    notification_preferences = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    workshops = relationship(
        "Workshop",
        back_populates="mentor",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )
    enrollments = relationship(
        "Enrollment",
        back_populates="learner",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )
    calendar_credential = relationship(
        "CalendarCredential",
        back_populates="user",
        uselist=False,
        cascade="all, delete-orphan",
        passive_deletes=True,
    )
