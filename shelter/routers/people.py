"""People router - adopters, fosters, volunteers and donors."""

from uuid import UUID

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from shelter.core.deps import (
    get_current_session,
    get_db,
    require_csrf_header,
    require_permission,
)
from shelter.db.enums import PersonType
from shelter.schemas.auth import UserSession
from shelter.schemas.person import PersonCreate, PersonFlagsUpdate, PersonListResponse, PersonRead
from shelter.services import person_service
from shelter.utils.pagination import PaginatedResponse, PaginationParams, get_pagination

router = APIRouter(dependencies=[Depends(require_permission("people"))])


@router.get("", response_model=PersonListResponse)
def list_people(
    type: PersonType | None = None,
    q: str | None = Query(None, max_length=100, description="Search name or email"),
    pagination: PaginationParams = Depends(get_pagination),
    session: UserSession = Depends(get_current_session),
    db: Session = Depends(get_db),
):
    people, total = person_service.list_people(
        db, session.org_id, type=type, q=q, pagination=pagination
    )
    items = [PersonRead.model_validate(p) for p in people]
    return PaginatedResponse.create(items, total, pagination).as_dict()


@router.post(
    "",
    response_model=PersonRead,
    status_code=201,
    dependencies=[Depends(require_csrf_header)],
)
def create_person(
    data: PersonCreate,
    session: UserSession = Depends(require_permission("people", "create")),
    db: Session = Depends(get_db),
):
    return person_service.create_person(
        db,
        session.org_id,
        session.user_id,
        data.name,
        type=data.type,
        email=data.email,
        phone=data.phone,
        flags=data.flags,
    )


@router.get("/{person_id}", response_model=PersonRead)
def get_person(
    person_id: UUID,
    session: UserSession = Depends(get_current_session),
    db: Session = Depends(get_db),
):
    return person_service.get_person(db, session.org_id, person_id)


@router.patch(
    "/{person_id}/flags",
    response_model=PersonRead,
    dependencies=[Depends(require_csrf_header)],
)
def update_flags(
    person_id: UUID,
    data: PersonFlagsUpdate,
    session: UserSession = Depends(require_permission("people", "edit_flags")),
    db: Session = Depends(get_db),
):
    """Merge flags (e.g. do_not_adopt); a null value removes the flag."""
    person = person_service.get_person(db, session.org_id, person_id)
    return person_service.update_person_flags(db, person, session.user_id, data.flags)
