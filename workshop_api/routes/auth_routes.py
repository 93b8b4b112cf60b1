import logging

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from workshop_api.auth import jwt_handler
from workshop_api.auth.dependencies import Principal, get_current_principal
from workshop_api.auth.passwords import verify_password
from workshop_api.core.errors import Unauthenticated
from workshop_api.database import get_db
from workshop_api.models.user import User
from workshop_api.schemas import LoginRequest, PrincipalResponse, SignupRequest, TokenResponse, UserResponse
from workshop_api.services import entity_store

router = APIRouter(tags=['auth'])

logger = logging.getLogger(__name__)


def issue_token(user: User) -> TokenResponse:
    return TokenResponse(
        access_token=jwt_handler.create_access_token(user_id=user.id, role=user.role),
        user=UserResponse.model_validate(user),
    )


@router.post('/signup', response_model=TokenResponse, status_code=status.HTTP_201_CREATED)
def signup(data: SignupRequest, db: Session = Depends(get_db)):
    user = entity_store.create_user(
        db,
        name=data.name,
        email=data.email,
        password=data.password,
        role=data.role,
        notification_preferences=data.notification_preferences,
    )
    logger.info('Created %s account %s', user.role, user.id)
    return issue_token(user)


@router.post('/login', response_model=TokenResponse)
def login(data: LoginRequest, db: Session = Depends(get_db)):
    user = entity_store.get_user_by_email(db, data.email)
    if user is None or not verify_password(data.password, user.hashed_password):
        raise Unauthenticated('Invalid email or password.')
    return issue_token(user)


@router.get('/me', response_model=PrincipalResponse)
def me(principal: Principal = Depends(get_current_principal)):
    return PrincipalResponse(user_id=principal.user_id, role=principal.role)
