"""Placements router - adoptions and foster assignments."""

from uuid import UUID

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from shelter.core.deps import (
    get_current_session,
    get_db,
    require_csrf_header,
    require_permission,
)
from shelter.db.enums import FosterStatus
from shelter.schemas.application import AdoptionRead, FosterAssignmentRead, FosterEnd
from shelter.schemas.auth import UserSession
from shelter.services import placement_service
from shelter.utils.pagination import PaginationParams, get_pagination

router = APIRouter(dependencies=[Depends(require_permission("placements"))])


@router.get("/adoptions", response_model=list[AdoptionRead])
def list_adoptions(
    pagination: PaginationParams = Depends(get_pagination),
    session: UserSession = Depends(get_current_session),
    db: Session = Depends(get_db),
):
    adoptions, _ = placement_service.list_adoptions(db, session.org_id, pagination)
    return adoptions


@router.get("/adoptions/{adoption_id}", response_model=AdoptionRead)
def get_adoption(
    adoption_id: UUID,
    session: UserSession = Depends(get_current_session),
    db: Session = Depends(get_db),
):
    return placement_service.get_adoption(db, session.org_id, adoption_id)


@router.get("/fosters", response_model=list[FosterAssignmentRead])
def list_foster_assignments(
    status: FosterStatus | None = None,
    animal_id: UUID | None = None,
    pagination: PaginationParams = Depends(get_pagination),
    session: UserSession = Depends(get_current_session),
    db: Session = Depends(get_db),
):
    assignments, _ = placement_service.list_foster_assignments(
        db, session.org_id, status=status, animal_id=animal_id, pagination=pagination
    )
    return assignments


@router.get("/fosters/{assignment_id}", response_model=FosterAssignmentRead)
def get_foster_assignment(
    assignment_id: UUID,
    session: UserSession = Depends(get_current_session),
    db: Session = Depends(get_db),
):
    return placement_service.get_foster_assignment(db, session.org_id, assignment_id)


@router.post(
    "/fosters/{assignment_id}/end",
    response_model=FosterAssignmentRead,
    dependencies=[Depends(require_csrf_header)],
)
def end_foster(
    assignment_id: UUID,
    data: FosterEnd,
    session: UserSession = Depends(require_permission("placements", "foster")),
    db: Session = Depends(get_db),
):
    """Close an active assignment; the animal returns to available or hold."""
    assignment = placement_service.get_foster_assignment(db, session.org_id, assignment_id)
    return placement_service.end_foster(
        db,
        assignment,
        session.user_id,
        result=data.result,
        end_date=data.end_date,
        return_status=data.return_status,
        expected_version=data.expected_version,
    )
