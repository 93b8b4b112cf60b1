from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from workshop_api.auth.dependencies import Principal, get_current_principal
from workshop_api.core.errors import Forbidden, ValidationFailure
from workshop_api.database import get_db
from workshop_api.models.user import ROLE_MENTOR, USER_ROLES
from workshop_api.schemas import UserResponse, UserUpdateRequest, WorkshopResponse
from workshop_api.services import entity_store

router = APIRouter(tags=['users'])


def ensure_self(principal: Principal, user_id: int, action: str) -> None:
    if principal.user_id != user_id:
        raise Forbidden(f'Users can only {action} their own account.')


@router.get('', response_model=list[UserResponse])
def list_users(
    role: str | None = Query(default=None),
    principal: Principal = Depends(get_current_principal),
    db: Session = Depends(get_db),
):
    if role is not None and role not in USER_ROLES:
        raise ValidationFailure(f"Role must be one of: {', '.join(USER_ROLES)}.")
    return entity_store.list_users(db, role=role)


@router.get('/{user_id}', response_model=UserResponse)
def get_user(
    user_id: int,
    principal: Principal = Depends(get_current_principal),
    db: Session = Depends(get_db),
):
    return entity_store.require_user(db, user_id)


@router.get('/{user_id}/workshops', response_model=list[WorkshopResponse])
def list_user_workshops(
    user_id: int,
    principal: Principal = Depends(get_current_principal),
    db: Session = Depends(get_db),
):
    """Workshops a mentor runs, or the workshops a learner is enrolled in."""
    user = entity_store.require_user(db, user_id)
    if user.role == ROLE_MENTOR:
        return entity_store.list_workshops(db, mentor_id=user.id)
    return entity_store.list_learner_workshops(db, learner_id=user.id)


@router.patch('/{user_id}', response_model=UserResponse)
def update_user(
    user_id: int,
    data: UserUpdateRequest,
    principal: Principal = Depends(get_current_principal),
    db: Session = Depends(get_db),
):
    ensure_self(principal, user_id, 'update')
    user = entity_store.require_user(db, user_id)
    return entity_store.update_user(db, user, data.model_dump(exclude_unset=True))


@router.delete('/{user_id}', status_code=status.HTTP_204_NO_CONTENT)
def delete_user(
    user_id: int,
    principal: Principal = Depends(get_current_principal),
    db: Session = Depends(get_db),
):
    ensure_self(principal, user_id, 'delete')
    user = entity_store.require_user(db, user_id)
    entity_store.delete_user(db, user)
