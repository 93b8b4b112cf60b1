from datetime import datetime, timedelta, timezone

import jwt

from workshop_api.core import config

OAUTH_STATE_PURPOSE = "calendar_oauth_state"


def _encode(payload: dict, expire_minutes: int) -> str:
    now = datetime.now(timezone.utc)
    payload = {**payload, "exp": now + timedelta(minutes=expire_minutes), "iat": now}
    return jwt.encode(payload, config.JWT_SECRET_KEY, algorithm=config.JWT_ALGORITHM)


def create_access_token(user_id: int, role: str, expires_minutes: int | None = None) -> str:
    expire_minutes = expires_minutes or config.JWT_EXPIRES_MINUTES
    return _encode({"sub": str(user_id), "role": role}, expire_minutes)


def decode_access_token(token: str) -> dict:
    return jwt.decode(token, config.JWT_SECRET_KEY, algorithms=[config.JWT_ALGORITHM])


def create_oauth_state(user_id: int) -> str:
    """Sign the user id into the OAuth ``state`` parameter so the callback can find its owner."""
    return _encode(
        {"sub": str(user_id), "purpose": OAUTH_STATE_PURPOSE},
        config.OAUTH_STATE_EXPIRES_MINUTES,
    )


def decode_oauth_state(state: str) -> int:
    payload = jwt.decode(state, config.JWT_SECRET_KEY, algorithms=[config.JWT_ALGORITHM])
    if payload.get("purpose") != OAUTH_STATE_PURPOSE:
        raise jwt.InvalidTokenError("Not an OAuth state token")
    return int(payload["sub"])
