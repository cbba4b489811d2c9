"""Animals router - intake, profile edits and lifecycle status changes."""

from uuid import UUID

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from shelter.core.deps import get_current_session, get_db, require_csrf_header, require_permission
from shelter.db.enums import AnimalStatus, Species
from shelter.schemas.animal import (
    AnimalIntakeCreate,
    AnimalListItem,
    AnimalListResponse,
    AnimalRead,
    AnimalStatusChange,
    AnimalUpdate,
)
from shelter.schemas.audit import AuditLogRead
from shelter.schemas.auth import UserSession
from shelter.services import animal_service, audit_service
from shelter.utils.pagination import PaginatedResponse, PaginationParams, get_pagination

router = APIRouter(dependencies=[Depends(require_permission("animals"))])


@router.get("", response_model=AnimalListResponse)
def list_animals(
    status: AnimalStatus | None = None,
    species: Species | None = None,
    q: str | None = Query(None, max_length=100, description="Search by name"),
    pagination: PaginationParams = Depends(get_pagination),
    session: UserSession = Depends(get_current_session),
    db: Session = Depends(get_db),
):
    """List animals, newest intake first."""
    animals, total = animal_service.list_animals(
        db,
        session.org_id,
        status=status,
        species=species,
        q=q,
        pagination=pagination,
    )
    items = [AnimalListItem.model_validate(a) for a in animals]
    return PaginatedResponse.create(items, total, pagination).as_dict()


@router.post(
    "",
    response_model=AnimalRead,
    status_code=201,
    dependencies=[Depends(require_csrf_header)],
)
def intake_animal(
    data: AnimalIntakeCreate,
    session: UserSession = Depends(require_permission("animals", "intake")),
    db: Session = Depends(get_db),
):
    """Take an animal into care (creates the Animal and its Intake)."""
    return animal_service.intake_animal(db, session.org_id, session.user_id, data)


@router.get("/{animal_id}", response_model=AnimalRead)
def get_animal(
    animal_id: UUID,
    session: UserSession = Depends(get_current_session),
    db: Session = Depends(get_db),
):
    return animal_service.get_animal(db, session.org_id, animal_id)


@router.patch(
    "/{animal_id}",
    response_model=AnimalRead,
    dependencies=[Depends(require_csrf_header)],
)
def update_animal(
    animal_id: UUID,
    data: AnimalUpdate,
    session: UserSession = Depends(require_permission("animals", "edit")),
    db: Session = Depends(get_db),
):
    animal = animal_service.get_animal(db, session.org_id, animal_id)
    return animal_service.update_animal(db, animal, session.user_id, data)


@router.post(
    "/{animal_id}/status",
    response_model=AnimalRead,
    dependencies=[Depends(require_csrf_header)],
)
def change_status(
    animal_id: UUID,
    data: AnimalStatusChange,
    session: UserSession = Depends(require_permission("animals", "change_status")),
    db: Session = Depends(get_db),
):
    """
    Move an animal along one lifecycle edge.

    Terminal statuses record an Outcome. ``adopted`` is only reachable
    through adoption finalization.
    """
    animal = animal_service.get_animal(db, session.org_id, animal_id)
    return animal_service.change_status(
        db,
        animal,
        data.status,
        session.user_id,
        reason=data.reason,
        outcome_date=data.outcome_date,
        foster_result=data.foster_result,
        expected_version=data.expected_version,
    )


@router.get("/{animal_id}/history", response_model=list[AuditLogRead])
def animal_history(
    animal_id: UUID,
    session: UserSession = Depends(get_current_session),
    db: Session = Depends(get_db),
):
    """Audit trail for one animal, oldest first."""
    animal = animal_service.get_animal(db, session.org_id, animal_id)
    return audit_service.entity_history(db, session.org_id, "animal", animal.id)
