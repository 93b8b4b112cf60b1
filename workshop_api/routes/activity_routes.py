from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from workshop_api.auth.dependencies import Principal, get_current_principal, require_role
from workshop_api.core.errors import Forbidden, ValidationFailure
from workshop_api.database import get_db
from workshop_api.models.user import ROLE_MENTOR
from workshop_api.schemas import (
    ActivityCreateRequest,
    ActivityDetailResponse,
    ActivityResponse,
    ActivityUpdateRequest,
)
from workshop_api.services import entity_store

router = APIRouter(tags=['activities'])


def ensure_workshop_owner(db: Session, workshop_id: int, principal: Principal) -> None:
    workshop = entity_store.get_workshop(db, workshop_id)
    if workshop is None:
        raise ValidationFailure(f'Workshop {workshop_id} does not exist.')
    if workshop.mentor_id != principal.user_id:
        raise Forbidden('Only the mentor who runs this workshop can change its activities.')


@router.get('', response_model=list[ActivityResponse])
def list_activities(
    workshop_id: int | None = Query(default=None, alias='workshopId'),
    principal: Principal = Depends(get_current_principal),
    db: Session = Depends(get_db),
):
    return entity_store.list_activities(db, workshop_id=workshop_id)


@router.post('', response_model=ActivityResponse, status_code=status.HTTP_201_CREATED)
def create_activity(
    data: ActivityCreateRequest,
    principal: Principal = Depends(require_role(ROLE_MENTOR)),
    db: Session = Depends(get_db),
):
    ensure_workshop_owner(db, data.workshop_id, principal)
    return entity_store.create_activity(
        db,
        title=data.title,
        description=data.description,
        workshop_id=data.workshop_id,
        date_time=data.date_time,
    )


@router.get('/{activity_id}', response_model=ActivityDetailResponse)
def get_activity(
    activity_id: int,
    principal: Principal = Depends(get_current_principal),
    db: Session = Depends(get_db),
):
    return entity_store.require_activity(db, activity_id)


@router.patch('/{activity_id}', response_model=ActivityResponse)
def update_activity(
    activity_id: int,
    data: ActivityUpdateRequest,
    principal: Principal = Depends(require_role(ROLE_MENTOR)),
    db: Session = Depends(get_db),
):
    activity = entity_store.require_activity(db, activity_id)
    ensure_workshop_owner(db, activity.workshop_id, principal)
    changes = data.model_dump(exclude_unset=True)
    if changes.get('workshop_id') is not None:
        ensure_workshop_owner(db, changes['workshop_id'], principal)
    return entity_store.update_activity(db, activity, changes)


@router.delete('/{activity_id}', status_code=status.HTTP_204_NO_CONTENT)
def delete_activity(
    activity_id: int,
    principal: Principal = Depends(require_role(ROLE_MENTOR)),
    db: Session = Depends(get_db),
):
    activity = entity_store.require_activity(db, activity_id)
    ensure_workshop_owner(db, activity.workshop_id, principal)
    entity_store.delete_activity(db, activity)
