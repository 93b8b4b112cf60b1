"""Request and response bodies. Field names are camelCase on the wire."""

from datetime import datetime
from typing import Any, Literal

from pydantic import BaseModel, field_serializer, field_validator
from pydantic.alias_generators import to_camel

from workshop_api.core.timeutils import as_utc, format_utc

MIN_PASSWORD_LENGTH = 8


def _normalize_email(value: str) -> str:
    normalized = value.strip().lower()
    if not normalized or "@" not in normalized:
        raise ValueError("A valid email is required.")
    return normalized


def _require_text(value: str) -> str:
    normalized = value.strip()
    if not normalized:
        raise ValueError("Must not be blank.")
    return normalized


def _optional_text(value: str | None) -> str | None:
    if value is None:
        return None
    normalized = value.strip()
    return normalized or None


class CamelModel(BaseModel):
    class Config:
        alias_generator = to_camel
        populate_by_name = True
        from_attributes = True


class RequestModel(CamelModel):
    class Config:
        extra = "forbid"


# Users and auth

class SignupRequest(RequestModel):
    name: str
    email: str
    password: str
    role: Literal["mentor", "learner"]
    notification_preferences: bool = True

    @field_validator("name")
    @classmethod
    def validate_name(cls, value: str) -> str:
        return _require_text(value)

    @field_validator("email")
    @classmethod
    def validate_email(cls, value: str) -> str:
        return _normalize_email(value)

    @field_validator("password")
    @classmethod
    def validate_password(cls, value: str) -> str:
        if len(value) < MIN_PASSWORD_LENGTH:
            raise ValueError(f"Password must be at least {MIN_PASSWORD_LENGTH} characters.")
        return value


class LoginRequest(RequestModel):
    email: str
    password: str

    @field_validator("email")
    @classmethod
    def validate_email(cls, value: str) -> str:
        return _normalize_email(value)


class UserUpdateRequest(RequestModel):
    """Role is deliberately absent: it cannot change after signup."""

    name: str | None = None
    email: str | None = None
    password: str | None = None
    notification_preferences: bool | None = None

    @field_validator("name")
    @classmethod
    def validate_name(cls, value: str | None) -> str | None:
        return None if value is None else _require_text(value)

    @field_validator("email")
    @classmethod
    def validate_email(cls, value: str | None) -> str | None:
        return None if value is None else _normalize_email(value)

    @field_validator("password")
    @classmethod
    def validate_password(cls, value: str | None) -> str | None:
        if value is not None and len(value) < MIN_PASSWORD_LENGTH:
            raise ValueError(f"Password must be at least {MIN_PASSWORD_LENGTH} characters.")
        return value


class UserResponse(CamelModel):
    id: int
    name: str
    email: str
    role: str
    notification_preferences: bool


class TokenResponse(CamelModel):
    access_token: str
    token_type: str = "bearer"
    user: UserResponse


class PrincipalResponse(CamelModel):
    user_id: int
    role: str


# Workshops

class WorkshopCreateRequest(RequestModel):
    title: str
    description: str | None = None
    mentor_id: int | None = None
    location: str | None = None
    date_time: datetime

    @field_validator("title")
    @classmethod
    def validate_title(cls, value: str) -> str:
        return _require_text(value)

    @field_validator("description", "location")
    @classmethod
    def validate_optional_text(cls, value: str | None) -> str | None:
        return _optional_text(value)

    @field_validator("date_time")
    @classmethod
    def validate_date_time(cls, value: datetime) -> datetime:
        return as_utc(value)


class WorkshopUpdateRequest(RequestModel):
    title: str | None = None
    description: str | None = None
    mentor_id: int | None = None
    location: str | None = None
    date_time: datetime | None = None

    @field_validator("title")
    @classmethod
    def validate_title(cls, value: str | None) -> str | None:
        return None if value is None else _require_text(value)

    @field_validator("description", "location")
    @classmethod
    def validate_optional_text(cls, value: str | None) -> str | None:
        return _optional_text(value)

    @field_validator("date_time")
    @classmethod
    def validate_date_time(cls, value: datetime | None) -> datetime | None:
        return None if value is None else as_utc(value)


class WorkshopResponse(CamelModel):
    id: int
    title: str
    description: str | None = None
    mentor_id: int
    location: str | None = None
    date_time: datetime

    @field_serializer("date_time")
    def serialize_date_time(self, value: datetime) -> str:
        return format_utc(value)


# Activities

class ActivityCreateRequest(RequestModel):
    title: str
    description: str | None = None
    workshop_id: int
    date_time: datetime

    @field_validator("title")
    @classmethod
    def validate_title(cls, value: str) -> str:
        return _require_text(value)

    @field_validator("description")
    @classmethod
    def validate_description(cls, value: str | None) -> str | None:
        return _optional_text(value)

    @field_validator("date_time")
    @classmethod
    def validate_date_time(cls, value: datetime) -> datetime:
        return as_utc(value)


class ActivityUpdateRequest(RequestModel):
    title: str | None = None
    description: str | None = None
    workshop_id: int | None = None
    date_time: datetime | None = None

    @field_validator("title")
    @classmethod
    def validate_title(cls, value: str | None) -> str | None:
        return None if value is None else _require_text(value)

    @field_validator("description")
    @classmethod
    def validate_description(cls, value: str | None) -> str | None:
        return _optional_text(value)

    @field_validator("date_time")
    @classmethod
    def validate_date_time(cls, value: datetime | None) -> datetime | None:
        return None if value is None else as_utc(value)


class ActivityResponse(CamelModel):
    id: int
    title: str
    description: str | None = None
    workshop_id: int
    date_time: datetime

    @field_serializer("date_time")
    def serialize_date_time(self, value: datetime) -> str:
        return format_utc(value)


class ActivityDetailResponse(ActivityResponse):
    workshop: WorkshopResponse


# Enrollments

class EnrollmentCreateRequest(RequestModel):
    workshop_id: int
    learner_id: int | None = None


class EnrollmentResponse(CamelModel):
    id: int
    learner_id: int
    workshop_id: int


# Calendar and geocoding

class AuthUrlResponse(CamelModel):
    url: str


class MessageResponse(CamelModel):
    message: str


class CalendarEventResponse(CamelModel):
    message: str
    event: dict[str, Any]


class LocationResponse(CamelModel):
    location: list[dict[str, Any]]
