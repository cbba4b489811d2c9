"""Location and kennel service - tenant-scoped housing."""

import logging
from uuid import UUID

from sqlalchemy.orm import Session

from shelter.core.errors import InvalidAttributes
from shelter.db.enums import AuditEventType, LocationType, Species
from shelter.db.models import Kennel, Location
from shelter.db.transaction import atomic
from shelter.services import audit_service
from shelter.services.tenant_scope import get_in_org


logger = logging.getLogger(__name__)


def get_location(db: Session, org_id: UUID, location_id: UUID) -> Location:
    return get_in_org(db, Location, org_id, location_id, "location")


def get_kennel(db: Session, org_id: UUID, kennel_id: UUID) -> Kennel:
    return get_in_org(db, Kennel, org_id, kennel_id, "kennel")


def create_location(
    db: Session,
    org_id: UUID,
    actor_id: UUID | None,
    name: str,
    type: LocationType = LocationType.SHELTER,
) -> Location:
    """
    Create a location.

    Raises:
        InvalidAttributes: Name already used in this organization
    """
    location = Location(organization_id=org_id, name=name.strip(), type=LocationType(type).value)
    with atomic(db, on_integrity_error=InvalidAttributes(f"Location '{name}' already exists")):
        db.add(location)
        db.flush()
        audit_service.log_event(
            db,
            org_id=org_id,
            event_type=AuditEventType.LOCATION_CREATED,
            actor_user_id=actor_id,
            target_type="location",
            target_id=location.id,
            details={"after": {"name": location.name, "type": location.type}},
        )
    logger.info("Location created org=%s location=%s", org_id, location.id)
    return location


def create_kennel(
    db: Session,
    org_id: UUID,
    actor_id: UUID | None,
    code: str,
    *,
    location_id: UUID | None = None,
    size: str | None = None,
    species: Species | None = None,
) -> Kennel:
    """
    Create a kennel, optionally inside a location of the same organization.

    Raises:
        UnknownEntity: location_id not in this organization
        InvalidAttributes: Code already used in this organization
    """
    if location_id is not None:
        get_location(db, org_id, location_id)

    kennel = Kennel(
        organization_id=org_id,
        location_id=location_id,
        code=code.strip(),
        size=size,
        species=Species(species).value if species else None,
    )
    with atomic(db, on_integrity_error=InvalidAttributes(f"Kennel '{code}' already exists")):
        db.add(kennel)
        db.flush()
        audit_service.log_event(
            db,
            org_id=org_id,
            event_type=AuditEventType.KENNEL_CREATED,
            actor_user_id=actor_id,
            target_type="kennel",
            target_id=kennel.id,
            details={"after": {"code": kennel.code, "location_id": location_id}},
        )
    logger.info("Kennel created org=%s kennel=%s", org_id, kennel.id)
    return kennel


def list_locations(db: Session, org_id: UUID) -> list[Location]:
    return (
        db.query(Location)
        .filter(Location.organization_id == org_id)
        .order_by(Location.name.asc())
        .all()
    )


def list_kennels(db: Session, org_id: UUID, location_id: UUID | None = None) -> list[Kennel]:
    query = db.query(Kennel).filter(Kennel.organization_id == org_id)
    if location_id is not None:
        query = query.filter(Kennel.location_id == location_id)
    return query.order_by(Kennel.code.asc()).all()


def validate_housing(
    db: Session,
    org_id: UUID,
    location_id: UUID | None,
    kennel_id: UUID | None,
) -> None:
    """
    Check that a location/kennel pair belongs to the organization.

    Raises:
        UnknownEntity: Either id is not in this organization
        InvalidAttributes: Kennel sits in a different location
    """
    location = get_location(db, org_id, location_id) if location_id else None
    if kennel_id:
        kennel = get_kennel(db, org_id, kennel_id)
        if location and kennel.location_id and kennel.location_id != location.id:
            raise InvalidAttributes("Kennel is not in the given location")
