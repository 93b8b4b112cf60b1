"""Google Calendar integration.

OAuth tokens are stored per user in ``calendar_credentials`` and handed to each
call explicitly. A row with ``user_id`` NULL is the shared account, used by
callers who never connected their own calendar.
"""

import logging
from datetime import datetime, timedelta
from urllib.parse import urlencode

import httpx
from fastapi.concurrency import run_in_threadpool
from sqlalchemy import select
from sqlalchemy.orm import Session

from workshop_api.auth.dependencies import Principal
from workshop_api.core import config
from workshop_api.core.errors import CalendarNotConnected, UpstreamFailure, ValidationFailure
from workshop_api.core.timeutils import as_utc, format_utc, utc_now
from workshop_api.models.activity import Activity
from workshop_api.models.calendar_credential import CalendarCredential
from workshop_api.models.workshop import Workshop
from workshop_api.services import entity_store
from workshop_api.services.entity_store import commit_changes

logger = logging.getLogger(__name__)

GOOGLE_AUTHORIZE_URL = "https://accounts.google.com/o/oauth2/v2/auth"
GOOGLE_TOKEN_URL = "https://oauth2.googleapis.com/token"
GOOGLE_EVENTS_URL = "https://www.googleapis.com/calendar/v3/calendars/{calendar_id}/events"

EVENT_TIME_ZONE = "UTC"
WORKSHOP_EVENT_DURATION = timedelta(hours=2)
ACTIVITY_EVENT_DURATION = timedelta(hours=1)
TOKEN_EXPIRY_LEEWAY = timedelta(seconds=60)


def _require_google_credentials() -> None:
    if not config.GOOGLE_CLIENT_ID or not config.GOOGLE_CLIENT_SECRET:
        raise UpstreamFailure(
            "Google OAuth credentials are not configured. Set GOOGLE_CLIENT_ID/GOOGLE_CLIENT_SECRET."
        )


def build_authorization_url(state: str | None = None) -> str:
    _require_google_credentials()
    params = {
        "client_id": config.GOOGLE_CLIENT_ID,
        "redirect_uri": config.GOOGLE_REDIRECT_URI,
        "response_type": "code",
        "scope": " ".join(config.GOOGLE_CALENDAR_SCOPES),
        "access_type": "offline",
    }
    if state:
        params["state"] = state
    return f"{GOOGLE_AUTHORIZE_URL}?{urlencode(params)}"


def _error_detail(response: httpx.Response) -> str:
    try:
        payload = response.json()
    except ValueError:
        return response.text or response.reason_phrase
    if not isinstance(payload, dict):
        return str(payload)
    error = payload.get("error")
    if isinstance(error, dict):
        return error.get("message") or str(error)
    return payload.get("error_description") or error or str(payload)


async def _request_tokens(client: httpx.AsyncClient, data: dict) -> dict:
    _require_google_credentials()
    form = {
        "client_id": config.GOOGLE_CLIENT_ID,
        "client_secret": config.GOOGLE_CLIENT_SECRET,
        **data,
    }
    try:
        response = await client.post(GOOGLE_TOKEN_URL, data=form, headers={"Accept": "application/json"})
    except httpx.HTTPError as exc:
        logger.warning("Google token endpoint unreachable: %s", exc)
        raise UpstreamFailure(f"Google OAuth request failed: {exc}") from exc

    if response.is_error:
        detail = _error_detail(response)
        logger.warning("Google token endpoint returned %s: %s", response.status_code, detail)
        raise UpstreamFailure(f"Google OAuth request failed: {detail}")

    tokens = response.json()
    if not tokens.get("access_token"):
        raise UpstreamFailure("Google did not return an access token.")
    return tokens


async def exchange_code(client: httpx.AsyncClient, code: str | None) -> dict:
    if not code:
        raise ValidationFailure("Missing authorization code.")
    return await _request_tokens(
        client,
        {
            "code": code,
            "redirect_uri": config.GOOGLE_REDIRECT_URI,
            "grant_type": "authorization_code",
        },
    )


async def refresh_access_token(client: httpx.AsyncClient, refresh_token: str) -> dict:
    return await _request_tokens(
        client,
        {"refresh_token": refresh_token, "grant_type": "refresh_token"},
    )


def _find_credential_row(db: Session, user_id: int | None) -> CalendarCredential | None:
    query = select(CalendarCredential)
    if user_id is None:
        query = query.where(CalendarCredential.user_id.is_(None))
    else:
        query = query.where(CalendarCredential.user_id == user_id)
    return db.scalars(query).first()


def get_credential(db: Session, user_id: int) -> CalendarCredential | None:
    """The caller's own credential, falling back to the shared one."""
    return _find_credential_row(db, user_id) or _find_credential_row(db, None)


def store_credential(db: Session, user_id: int | None, tokens: dict) -> CalendarCredential:
    credential = _find_credential_row(db, user_id)
    if credential is None:
        credential = CalendarCredential(user_id=user_id)
        db.add(credential)

    credential.access_token = tokens["access_token"]
    # Google only sends a refresh token on the first consent; keep the old one.
    if tokens.get("refresh_token"):
        credential.refresh_token = tokens["refresh_token"]
    credential.token_type = tokens.get("token_type") or "Bearer"
    credential.scope = tokens.get("scope") or credential.scope
    expires_in = tokens.get("expires_in")
    credential.expires_at = utc_now() + timedelta(seconds=int(expires_in)) if expires_in else None
    credential.updated_at = utc_now()

    return commit_changes(db, credential)


def is_expired(credential: CalendarCredential, now: datetime | None = None) -> bool:
    if credential.expires_at is None:
        return False
    now = now or utc_now()
    return as_utc(credential.expires_at) - TOKEN_EXPIRY_LEEWAY <= now


async def ensure_fresh_credential(
    db: Session,
    client: httpx.AsyncClient,
    credential: CalendarCredential,
) -> CalendarCredential:
    if not is_expired(credential) or not credential.refresh_token:
        return credential
    logger.info("Refreshing Google Calendar token for credential %s", credential.id)
    tokens = await refresh_access_token(client, credential.refresh_token)
    return await run_in_threadpool(store_credential, db, credential.user_id, tokens)


def build_event(
    *,
    summary: str,
    location: str | None,
    description: str | None,
    start: datetime,
    duration: timedelta,
) -> dict:
    start = as_utc(start)
    return {
        "summary": summary,
        "location": location,
        "description": description,
        "start": {"dateTime": format_utc(start), "timeZone": EVENT_TIME_ZONE},
        "end": {"dateTime": format_utc(start + duration), "timeZone": EVENT_TIME_ZONE},
    }


def build_workshop_event(workshop: Workshop) -> dict:
    return build_event(
        summary=workshop.title,
        location=workshop.location,
        description=workshop.description,
        start=workshop.date_time,
        duration=WORKSHOP_EVENT_DURATION,
    )


def build_activity_event(activity: Activity) -> dict:
    # Activities have no location of their own; they happen where the workshop does.
    return build_event(
        summary=activity.title,
        location=activity.workshop.location,
        description=activity.description,
        start=activity.date_time,
        duration=ACTIVITY_EVENT_DURATION,
    )


async def insert_event(client: httpx.AsyncClient, credential: CalendarCredential, event: dict) -> dict:
    """Create ``event`` in the configured calendar. Not retried: inserts are not idempotent."""
    url = GOOGLE_EVENTS_URL.format(calendar_id=config.GOOGLE_CALENDAR_ID)
    try:
        response = await client.post(
            url,
            json=event,
            headers={"Authorization": f"Bearer {credential.access_token}"},
        )
    except httpx.HTTPError as exc:
        logger.warning("Google Calendar unreachable: %s", exc)
        raise UpstreamFailure(f"Google Calendar request failed: {exc}") from exc

    if response.is_error:
        detail = _error_detail(response)
        logger.warning("Google Calendar returned %s: %s", response.status_code, detail)
        raise UpstreamFailure(f"Google Calendar request failed: {detail}")
    return response.json()


async def _submit(db: Session, client: httpx.AsyncClient, principal: Principal, event: dict) -> dict:
    credential = await run_in_threadpool(get_credential, db, principal.user_id)
    if credential is None:
        raise CalendarNotConnected("Google Calendar is not connected. Visit /auth/google first.")
    credential = await ensure_fresh_credential(db, client, credential)
    return await insert_event(client, credential, event)


async def add_workshop_to_calendar(
    db: Session,
    client: httpx.AsyncClient,
    workshop_id: int,
    principal: Principal,
) -> dict:
    workshop = await run_in_threadpool(entity_store.require_workshop, db, workshop_id)
    return await _submit(db, client, principal, build_workshop_event(workshop))


async def add_activity_to_calendar(
    db: Session,
    client: httpx.AsyncClient,
    activity_id: int,
    principal: Principal,
) -> dict:
    activity = await run_in_threadpool(entity_store.require_activity, db, activity_id)
    return await _submit(db, client, principal, build_activity_event(activity))
