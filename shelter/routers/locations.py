"""Locations router - sites and kennels."""

from uuid import UUID

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from shelter.core.deps import (
    get_current_session,
    get_db,
    require_csrf_header,
    require_permission,
)
from shelter.schemas.auth import UserSession
from shelter.schemas.location import KennelCreate, KennelRead, LocationCreate, LocationRead
from shelter.services import location_service

router = APIRouter(dependencies=[Depends(require_permission("locations"))])


@router.get("", response_model=list[LocationRead])
def list_locations(
    session: UserSession = Depends(get_current_session),
    db: Session = Depends(get_db),
):
    return location_service.list_locations(db, session.org_id)


@router.post(
    "",
    response_model=LocationRead,
    status_code=201,
    dependencies=[Depends(require_csrf_header)],
)
def create_location(
    data: LocationCreate,
    session: UserSession = Depends(require_permission("locations", "manage")),
    db: Session = Depends(get_db),
):
    return location_service.create_location(
        db, session.org_id, session.user_id, data.name, data.type
    )


@router.get("/kennels", response_model=list[KennelRead])
def list_kennels(
    location_id: UUID | None = None,
    session: UserSession = Depends(get_current_session),
    db: Session = Depends(get_db),
):
    return location_service.list_kennels(db, session.org_id, location_id)


@router.post(
    "/kennels",
    response_model=KennelRead,
    status_code=201,
    dependencies=[Depends(require_csrf_header)],
)
def create_kennel(
    data: KennelCreate,
    session: UserSession = Depends(require_permission("locations", "manage")),
    db: Session = Depends(get_db),
):
    return location_service.create_kennel(
        db,
        session.org_id,
        session.user_id,
        data.code,
        location_id=data.location_id,
        size=data.size,
        species=data.species,
    )
