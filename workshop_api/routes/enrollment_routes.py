from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from workshop_api.auth.dependencies import Principal, get_current_principal, require_role
from workshop_api.core.errors import Forbidden
from workshop_api.database import get_db
from workshop_api.models.user import ROLE_LEARNER
from workshop_api.schemas import EnrollmentCreateRequest, EnrollmentResponse
from workshop_api.services import entity_store

router = APIRouter(tags=['enrollments'])


@router.get('', response_model=list[EnrollmentResponse])
def list_enrollments(
    learner_id: int | None = Query(default=None, alias='learnerId'),
    workshop_id: int | None = Query(default=None, alias='workshopId'),
    principal: Principal = Depends(get_current_principal),
    db: Session = Depends(get_db),
):
    return entity_store.list_enrollments(db, learner_id=learner_id, workshop_id=workshop_id)


@router.post('', response_model=EnrollmentResponse, status_code=status.HTTP_201_CREATED)
def create_enrollment(
    data: EnrollmentCreateRequest,
    principal: Principal = Depends(require_role(ROLE_LEARNER)),
    db: Session = Depends(get_db),
):
    learner_id = data.learner_id if data.learner_id is not None else principal.user_id
    if learner_id != principal.user_id:
        raise Forbidden('Learners can only enroll themselves.')
    return entity_store.create_enrollment(db, learner_id=learner_id, workshop_id=data.workshop_id)


@router.get('/{enrollment_id}', response_model=EnrollmentResponse)
def get_enrollment(
    enrollment_id: int,
    principal: Principal = Depends(get_current_principal),
    db: Session = Depends(get_db),
):
    return entity_store.require_enrollment(db, enrollment_id)


@router.delete('/{enrollment_id}', status_code=status.HTTP_204_NO_CONTENT)
def delete_enrollment(
    enrollment_id: int,
    principal: Principal = Depends(get_current_principal),
    db: Session = Depends(get_db),
):
    enrollment = entity_store.require_enrollment(db, enrollment_id)
    if principal.user_id not in (enrollment.learner_id, enrollment.workshop.mentor_id):
        raise Forbidden('Only the learner or the workshop mentor can remove an enrollment.')
    entity_store.delete_enrollment(db, enrollment)
