"""Person service - external contacts (adopters, fosters, volunteers, donors)."""

import logging
from typing import Any
from uuid import UUID

from sqlalchemy import or_
from sqlalchemy.orm import Session

from shelter.db.enums import AuditEventType, PersonType
from shelter.db.models import Person
from shelter.db.transaction import atomic
from shelter.schemas.attributes import validate_person_flags
from shelter.services import audit_service
from shelter.services.tenant_scope import get_in_org
from shelter.utils.pagination import PaginationParams, paginate_query


logger = logging.getLogger(__name__)


def get_person(db: Session, org_id: UUID, person_id: UUID) -> Person:
    return get_in_org(db, Person, org_id, person_id, "person")


def create_person(
    db: Session,
    org_id: UUID,
    actor_id: UUID | None,
    name: str,
    *,
    type: PersonType = PersonType.ADOPTER,
    email: str | None = None,
    phone: str | None = None,
    flags: dict[str, Any] | None = None,
) -> Person:
    """
    Create a contact.

    Raises:
        InvalidAttributes: flags failed validation
    """
    person = Person(
        organization_id=org_id,
        name=name.strip(),
        type=PersonType(type).value,
        email=email.strip().lower() if email else None,
        phone=phone.strip() if phone else None,
        flags=validate_person_flags(flags),
    )
    with atomic(db):
        db.add(person)
        db.flush()
        # Contact details stay out of the audit trail; ids and type only
        audit_service.log_event(
            db,
            org_id=org_id,
            event_type=AuditEventType.PERSON_CREATED,
            actor_user_id=actor_id,
            target_type="person",
            target_id=person.id,
            details={"after": {"type": person.type, "flags": person.flags}},
        )
    logger.info("Person created org=%s person=%s type=%s", org_id, person.id, person.type)
    return person


def update_person_flags(
    db: Session,
    person: Person,
    actor_id: UUID | None,
    flags: dict[str, Any],
) -> Person:
    """
    Merge flags into the person's map; a flag set to None is removed.

    Raises:
        InvalidAttributes: flags failed validation
    """
    removed = {key for key, value in flags.items() if value is None}
    validated = validate_person_flags(flags)

    with atomic(db):
        person = get_in_org(
            db, Person, person.organization_id, person.id, "person", for_update=True
        )
        before = dict(person.flags or {})
        merged = {key: value for key, value in before.items() if key not in removed}
        merged.update(validated)
        person.flags = merged
        audit_service.log_event(
            db,
            org_id=person.organization_id,
            event_type=AuditEventType.PERSON_FLAGS_UPDATED,
            actor_user_id=actor_id,
            target_type="person",
            target_id=person.id,
            details=audit_service.change_details({"flags": before}, {"flags": merged}),
        )
    return person


def list_people(
    db: Session,
    org_id: UUID,
    *,
    type: PersonType | None = None,
    q: str | None = None,
    pagination: PaginationParams | None = None,
) -> tuple[list[Person], int]:
    query = db.query(Person).filter(Person.organization_id == org_id)
    if type:
        query = query.filter(Person.type == PersonType(type).value)
    if q:
        pattern = f"%{q.strip()}%"
        query = query.filter(or_(Person.name.ilike(pattern), Person.email.ilike(pattern)))
    query = query.order_by(Person.name.asc())
    return paginate_query(query, pagination)
