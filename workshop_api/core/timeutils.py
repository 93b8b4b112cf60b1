from datetime import datetime, timezone

UTC_FORMAT = "%Y-%m-%dT%H:%M:%SZ"


def as_utc(value: datetime) -> datetime:
    # Naive values come back from SQLite; everything is stored as UTC.
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def format_utc(value: datetime) -> str:
    return as_utc(value).strftime(UTC_FORMAT)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)
