"""Typed CRUD over users, workshops, activities and enrollments.

Point lookups (``get_*``) return ``None`` when the row does not exist; the
``require_*`` variants raise ``NotFound`` instead. Every write checks the rows it
references inside the same session and commits atomically: a violated reference
or unique constraint rolls the session back and surfaces as ``ValidationFailure``.
"""

import logging
from datetime import datetime
from typing import Any, TypeVar

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session, joinedload

from workshop_api.auth.passwords import hash_password
from workshop_api.core.errors import NotFound, StoreUnavailable, ValidationFailure
from workshop_api.models.activity import Activity
from workshop_api.models.enrollment import Enrollment
from workshop_api.models.user import ROLE_MENTOR, USER_ROLES, User
from workshop_api.models.workshop import Workshop

logger = logging.getLogger(__name__)

ModelT = TypeVar("ModelT")

USER_UPDATABLE_FIELDS = {"name", "email", "password", "notification_preferences"}
WORKSHOP_UPDATABLE_FIELDS = {"title", "description", "mentor_id", "location", "date_time"}
WORKSHOP_REQUIRED_FIELDS = {"title", "mentor_id", "date_time"}
ACTIVITY_UPDATABLE_FIELDS = {"title", "description", "workshop_id", "date_time"}
ACTIVITY_REQUIRED_FIELDS = {"title", "workshop_id", "date_time"}


def commit_changes(db: Session, instance: ModelT | None = None) -> ModelT | None:
    try:
        db.commit()
    except IntegrityError as exc:
        db.rollback()
        logger.info("Write rejected by a database constraint: %s", exc.orig)
        raise ValidationFailure("The write violates a data constraint.") from exc
    except SQLAlchemyError as exc:
        db.rollback()
        logger.exception("Database write failed")
        raise StoreUnavailable("Database unavailable. Verify DATABASE_URL and credentials.") from exc

    if instance is not None:
        db.refresh(instance)
    return instance


def _reject_unknown_fields(changes: dict[str, Any], allowed: set[str]) -> None:
    unknown = set(changes) - allowed
    if unknown:
        raise ValidationFailure(f"Fields cannot be updated: {', '.join(sorted(unknown))}.")


def _reject_nulls(changes: dict[str, Any], required: set[str]) -> None:
    nulled = sorted(name for name in required if name in changes and changes[name] is None)
    if nulled:
        raise ValidationFailure(f"Fields cannot be null: {', '.join(nulled)}.")


# Users

def get_user(db: Session, user_id: int) -> User | None:
    return db.get(User, user_id)


def require_user(db: Session, user_id: int) -> User:
    user = get_user(db, user_id)
    if user is None:
        raise NotFound("User not found.")
    return user


def get_user_by_email(db: Session, email: str) -> User | None:
    return db.scalars(select(User).where(User.email == email.strip().lower())).first()


def list_users(db: Session, role: str | None = None) -> list[User]:
    query = select(User).order_by(User.id)
    if role is not None:
        query = query.where(User.role == role)
    return list(db.scalars(query))


def create_user(
    db: Session,
    *,
    name: str,
    email: str,
    password: str,
    role: str,
    notification_preferences: bool = True,
) -> User:
    if role not in USER_ROLES:
        raise ValidationFailure(f"Role must be one of: {', '.join(USER_ROLES)}.")

    email = email.strip().lower()
    if get_user_by_email(db, email) is not None:
        raise ValidationFailure("Email is already registered.")

    user = User(
        name=name,
        email=email,
        hashed_password=hash_password(password),
        role=role,
        notification_preferences=notification_preferences,
    )
    db.add(user)
    return commit_changes(db, user)


def update_user(db: Session, user: User, changes: dict[str, Any]) -> User:
    """Apply profile changes. ``role`` is not updatable."""
    _reject_unknown_fields(changes, USER_UPDATABLE_FIELDS)
    _reject_nulls(changes, USER_UPDATABLE_FIELDS)

    email = changes.get("email")
    if email is not None:
        email = email.strip().lower()
        existing = get_user_by_email(db, email)
        if existing is not None and existing.id != user.id:
            raise ValidationFailure("Email is already registered.")
        user.email = email

    if "name" in changes:
        user.name = changes["name"]
    if "password" in changes:
        user.hashed_password = hash_password(changes["password"])
    if "notification_preferences" in changes:
        user.notification_preferences = changes["notification_preferences"]

    return commit_changes(db, user)


def delete_user(db: Session, user: User) -> None:
    db.delete(user)
    commit_changes(db)


# Workshops

def get_workshop(db: Session, workshop_id: int) -> Workshop | None:
    return db.get(Workshop, workshop_id)


def require_workshop(db: Session, workshop_id: int) -> Workshop:
    workshop = get_workshop(db, workshop_id)
    if workshop is None:
        raise NotFound("Workshop not found.")
    return workshop


def list_workshops(db: Session, mentor_id: int | None = None) -> list[Workshop]:
    query = select(Workshop).order_by(Workshop.date_time.asc(), Workshop.id.asc())
    if mentor_id is not None:
        query = query.where(Workshop.mentor_id == mentor_id)
    return list(db.scalars(query))


def _require_existing_mentor(db: Session, mentor_id: int) -> None:
    user = get_user(db, mentor_id)
    if user is None:
        raise ValidationFailure(f"Mentor {mentor_id} does not exist.")
    if user.role != ROLE_MENTOR:
        raise ValidationFailure(f"User {mentor_id} is not a mentor.")


def create_workshop(
    db: Session,
    *,
    title: str,
    mentor_id: int,
    date_time: datetime,
    description: str | None = None,
    location: str | None = None,
) -> Workshop:
    _require_existing_mentor(db, mentor_id)

    workshop = Workshop(
        title=title,
        description=description,
        mentor_id=mentor_id,
        location=location,
        date_time=date_time,
    )
    db.add(workshop)
    return commit_changes(db, workshop)


def update_workshop(db: Session, workshop: Workshop, changes: dict[str, Any]) -> Workshop:
    _reject_unknown_fields(changes, WORKSHOP_UPDATABLE_FIELDS)
    _reject_nulls(changes, WORKSHOP_REQUIRED_FIELDS)

    if "mentor_id" in changes and changes["mentor_id"] != workshop.mentor_id:
        _require_existing_mentor(db, changes["mentor_id"])

    for field_name, value in changes.items():
        setattr(workshop, field_name, value)
    return commit_changes(db, workshop)


def delete_workshop(db: Session, workshop: Workshop) -> None:
    """Delete a workshop together with its activities and enrollments."""
    db.delete(workshop)
    commit_changes(db)


# Activities

def get_activity(db: Session, activity_id: int) -> Activity | None:
    return db.get(Activity, activity_id)


def get_activity_with_workshop(db: Session, activity_id: int) -> Activity | None:
    return db.scalars(
        select(Activity)
        .options(joinedload(Activity.workshop))
        .where(Activity.id == activity_id)
    ).first()


def require_activity(db: Session, activity_id: int) -> Activity:
    activity = get_activity_with_workshop(db, activity_id)
    if activity is None:
        raise NotFound("Activity not found.")
    return activity


def list_activities(db: Session, workshop_id: int | None = None) -> list[Activity]:
    query = select(Activity).order_by(Activity.date_time.asc(), Activity.id.asc())
    if workshop_id is not None:
        query = query.where(Activity.workshop_id == workshop_id)
    return list(db.scalars(query))


def _require_existing_workshop(db: Session, workshop_id: int) -> None:
    if get_workshop(db, workshop_id) is None:
        raise ValidationFailure(f"Workshop {workshop_id} does not exist.")


def create_activity(
    db: Session,
    *,
    title: str,
    workshop_id: int,
    date_time: datetime,
    description: str | None = None,
) -> Activity:
    _require_existing_workshop(db, workshop_id)

    activity = Activity(
        title=title,
        description=description,
        workshop_id=workshop_id,
        date_time=date_time,
    )
    db.add(activity)
    return commit_changes(db, activity)


def update_activity(db: Session, activity: Activity, changes: dict[str, Any]) -> Activity:
    _reject_unknown_fields(changes, ACTIVITY_UPDATABLE_FIELDS)
    _reject_nulls(changes, ACTIVITY_REQUIRED_FIELDS)

    if "workshop_id" in changes and changes["workshop_id"] != activity.workshop_id:
        _require_existing_workshop(db, changes["workshop_id"])

    for field_name, value in changes.items():
        setattr(activity, field_name, value)
    return commit_changes(db, activity)


def delete_activity(db: Session, activity: Activity) -> None:
    db.delete(activity)
    commit_changes(db)


# Enrollments

def get_enrollment(db: Session, enrollment_id: int) -> Enrollment | None:
    return db.get(Enrollment, enrollment_id)


def require_enrollment(db: Session, enrollment_id: int) -> Enrollment:
    enrollment = get_enrollment(db, enrollment_id)
    if enrollment is None:
        raise NotFound("Enrollment not found.")
    return enrollment


def list_enrollments(
    db: Session,
    learner_id: int | None = None,
    workshop_id: int | None = None,
) -> list[Enrollment]:
    query = select(Enrollment).order_by(Enrollment.id)
    if learner_id is not None:
        query = query.where(Enrollment.learner_id == learner_id)
    if workshop_id is not None:
        query = query.where(Enrollment.workshop_id == workshop_id)
    return list(db.scalars(query))


def create_enrollment(db: Session, *, learner_id: int, workshop_id: int) -> Enrollment:
    """Enroll a learner. Repeating an existing (learner, workshop) pair is allowed."""
    if get_user(db, learner_id) is None:
        raise ValidationFailure(f"Learner {learner_id} does not exist.")
    _require_existing_workshop(db, workshop_id)

    enrollment = Enrollment(learner_id=learner_id, workshop_id=workshop_id)
    db.add(enrollment)
    return commit_changes(db, enrollment)


def delete_enrollment(db: Session, enrollment: Enrollment) -> None:
    db.delete(enrollment)
    commit_changes(db)


def list_enrolled_learners(db: Session, workshop_id: int) -> list[User]:
    return list(
        db.scalars(
            select(User)
            .join(Enrollment, Enrollment.learner_id == User.id)
            .where(Enrollment.workshop_id == workshop_id)
            .distinct()
            .order_by(User.id)
        )
    )


def list_learner_workshops(db: Session, learner_id: int) -> list[Workshop]:
    return list(
        db.scalars(
            select(Workshop)
            .join(Enrollment, Enrollment.workshop_id == Workshop.id)
            .where(Enrollment.learner_id == learner_id)
            .distinct()
            .order_by(Workshop.date_time.asc(), Workshop.id.asc())
        )
    )
