"""Tenant-scoped lookups shared by the workflow services.

Every fetch filters by organization_id, so an id that belongs to another
organization is indistinguishable from an id that does not exist.
"""

from typing import TypeVar
from uuid import UUID

from sqlalchemy.orm import Session

from shelter.core.errors import UnknownEntity

ModelT = TypeVar("ModelT")


def get_in_org(
    db: Session,
    model: type[ModelT],
    org_id: UUID,
    entity_id: UUID | None,
    entity_type: str,
    *,
    for_update: bool = False,
) -> ModelT:
    """
    Fetch one row of ``model`` inside the organization.

    With for_update the row is locked (SELECT ... FOR UPDATE where the
    backend supports it) and re-read from the database.

    Raises:
        UnknownEntity: No such row in this organization
    """
    if entity_id is None:
        raise UnknownEntity(entity_type)
    query = db.query(model).filter(model.id == entity_id, model.organization_id == org_id)
    if for_update:
        query = query.with_for_update().populate_existing()
    entity = query.first()
    if entity is None:
        raise UnknownEntity(entity_type, entity_id)
    return entity


def lock(db: Session, entity: ModelT, entity_type: str) -> ModelT:
    """Re-select an already loaded entity FOR UPDATE within its organization."""
    return get_in_org(
        db,
        type(entity),
        entity.organization_id,
        entity.id,
        entity_type,
        for_update=True,
    )
