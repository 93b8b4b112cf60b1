import logging

import httpx
import jwt
from fastapi import APIRouter, Depends, Query, status
from fastapi.concurrency import run_in_threadpool
from sqlalchemy.orm import Session

from workshop_api.auth import jwt_handler
from workshop_api.auth.dependencies import Principal, get_current_principal, get_optional_principal
from workshop_api.core.errors import Forbidden, InvalidCredential
from workshop_api.database import get_db
from workshop_api.schemas import AuthUrlResponse, CalendarEventResponse, MessageResponse
from workshop_api.services import calendar_bridge, entity_store
from workshop_api.services.http_client import get_http_client

router = APIRouter(tags=['calendar'])

logger = logging.getLogger(__name__)


@router.get('/auth/google', response_model=AuthUrlResponse)
def google_auth_url(principal: Principal | None = Depends(get_optional_principal)):
    """Consent URL. With a bearer token the resulting tokens belong to that user."""
    state = jwt_handler.create_oauth_state(principal.user_id) if principal else None
    return AuthUrlResponse(url=calendar_bridge.build_authorization_url(state=state))


@router.get('/oauth2callback', response_model=MessageResponse)
async def oauth2_callback(
    code: str | None = Query(default=None),
    state: str | None = Query(default=None),
    error: str | None = Query(default=None),
    db: Session = Depends(get_db),
    client: httpx.AsyncClient = Depends(get_http_client),
):
    if error:
        raise Forbidden(f'Google authorization was not granted: {error}')

    user_id = None
    if state:
        try:
            user_id = jwt_handler.decode_oauth_state(state)
        except (jwt.InvalidTokenError, KeyError, ValueError) as exc:
            raise InvalidCredential('Invalid OAuth state.') from exc
        await run_in_threadpool(entity_store.require_user, db, user_id)

    tokens = await calendar_bridge.exchange_code(client, code)
    await run_in_threadpool(calendar_bridge.store_credential, db, user_id, tokens)
    logger.info('Stored Google Calendar credential for %s', f'user {user_id}' if user_id else 'the shared account')
    return MessageResponse(message='Google Calendar connected successfully!')


@router.post(
    '/workshops/{workshop_id}/add-to-calendar',
    response_model=CalendarEventResponse,
    status_code=status.HTTP_201_CREATED,
)
async def add_workshop_to_calendar(
    workshop_id: int,
    principal: Principal = Depends(get_current_principal),
    db: Session = Depends(get_db),
    client: httpx.AsyncClient = Depends(get_http_client),
):
    event = await calendar_bridge.add_workshop_to_calendar(db, client, workshop_id, principal)
    return CalendarEventResponse(message='Workshop added to Google Calendar', event=event)


@router.post(
    '/activities/{activity_id}/add-to-calendar',
    response_model=CalendarEventResponse,
    status_code=status.HTTP_201_CREATED,
)
async def add_activity_to_calendar(
    activity_id: int,
    principal: Principal = Depends(get_current_principal),
    db: Session = Depends(get_db),
    client: httpx.AsyncClient = Depends(get_http_client),
):
    event = await calendar_bridge.add_activity_to_calendar(db, client, activity_id, principal)
    return CalendarEventResponse(message='Activity added to Google Calendar', event=event)
