import httpx
from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from workshop_api.auth.dependencies import Principal, get_current_principal, require_role
from workshop_api.core.errors import Forbidden
from workshop_api.database import get_db
from workshop_api.models.user import ROLE_MENTOR
from workshop_api.models.workshop import Workshop
from workshop_api.schemas import (
    ActivityResponse,
    LocationResponse,
    UserResponse,
    WorkshopCreateRequest,
    WorkshopResponse,
    WorkshopUpdateRequest,
)
from workshop_api.services import entity_store, geocode_bridge
from workshop_api.services.http_client import get_http_client

router = APIRouter(tags=['workshops'])


def require_owned_workshop(db: Session, workshop_id: int, principal: Principal) -> Workshop:
    workshop = entity_store.require_workshop(db, workshop_id)
    if workshop.mentor_id != principal.user_id:
        raise Forbidden('Only the mentor who runs this workshop can change it.')
    return workshop


@router.get('', response_model=list[WorkshopResponse])
def list_workshops(
    mentor_id: int | None = Query(default=None, alias='mentorId'),
    principal: Principal = Depends(get_current_principal),
    db: Session = Depends(get_db),
):
    return entity_store.list_workshops(db, mentor_id=mentor_id)


@router.post('', response_model=WorkshopResponse, status_code=status.HTTP_201_CREATED)
def create_workshop(
    data: WorkshopCreateRequest,
    principal: Principal = Depends(require_role(ROLE_MENTOR)),
    db: Session = Depends(get_db),
):
    mentor_id = data.mentor_id if data.mentor_id is not None else principal.user_id
    # Unknown ids fall through to the store, which reports them as invalid.
    if mentor_id != principal.user_id and entity_store.get_user(db, mentor_id) is not None:
        raise Forbidden('Mentors can only create workshops they run themselves.')
    return entity_store.create_workshop(
        db,
        title=data.title,
        description=data.description,
        mentor_id=mentor_id,
        location=data.location,
        date_time=data.date_time,
    )


@router.get('/{workshop_id}', response_model=WorkshopResponse)
def get_workshop(
    workshop_id: int,
    principal: Principal = Depends(get_current_principal),
    db: Session = Depends(get_db),
):
    return entity_store.require_workshop(db, workshop_id)


@router.patch('/{workshop_id}', response_model=WorkshopResponse)
def update_workshop(
    workshop_id: int,
    data: WorkshopUpdateRequest,
    principal: Principal = Depends(require_role(ROLE_MENTOR)),
    db: Session = Depends(get_db),
):
    workshop = require_owned_workshop(db, workshop_id, principal)
    return entity_store.update_workshop(db, workshop, data.model_dump(exclude_unset=True))


@router.delete('/{workshop_id}', status_code=status.HTTP_204_NO_CONTENT)
def delete_workshop(
    workshop_id: int,
    principal: Principal = Depends(require_role(ROLE_MENTOR)),
    db: Session = Depends(get_db),
):
    workshop = require_owned_workshop(db, workshop_id, principal)
    entity_store.delete_workshop(db, workshop)


@router.get('/{workshop_id}/activities', response_model=list[ActivityResponse])
def list_workshop_activities(
    workshop_id: int,
    principal: Principal = Depends(get_current_principal),
    db: Session = Depends(get_db),
):
    entity_store.require_workshop(db, workshop_id)
    return entity_store.list_activities(db, workshop_id=workshop_id)


@router.get('/{workshop_id}/learners', response_model=list[UserResponse])
def list_workshop_learners(
    workshop_id: int,
    principal: Principal = Depends(get_current_principal),
    db: Session = Depends(get_db),
):
    entity_store.require_workshop(db, workshop_id)
    return entity_store.list_enrolled_learners(db, workshop_id)


@router.get('/{workshop_id}/location', response_model=LocationResponse)
async def get_workshop_location(
    workshop_id: int,
    principal: Principal = Depends(get_current_principal),
    db: Session = Depends(get_db),
    client: httpx.AsyncClient = Depends(get_http_client),
):
    results = await geocode_bridge.geocode_workshop_location(db, client, workshop_id)
    return LocationResponse(location=results)
