"""Animal lifecycle service - intake, status transitions and outcomes.

Status only moves along ANIMAL_TRANSITIONS. Entering a terminal status
records exactly one Outcome in the same transaction; entering ``fostered``
needs an active FosterAssignment; leaving it closes that assignment.
"""

import logging
from datetime import date
from typing import Any
from uuid import UUID

from sqlalchemy.orm import Session

from shelter.core.errors import AlreadyTerminal, InvalidTransition, check_version
from shelter.core.structured_logging import build_log_context, format_log_context
from shelter.core.transitions import can_transition_animal
from shelter.db.enums import (
    OUTCOME_FOR_STATUS,
    AnimalStatus,
    AuditEventType,
    FosterStatus,
    Species,
)
from shelter.db.models import Animal, FosterAssignment, Intake, Outcome
from shelter.db.transaction import atomic
from shelter.schemas.animal import AnimalIntakeCreate, AnimalUpdate
from shelter.schemas.attributes import validate_animal_attributes, validate_intake_source
from shelter.services import audit_service, location_service, org_service
from shelter.services.tenant_scope import get_in_org, lock
from shelter.utils.pagination import PaginationParams, paginate_query


logger = logging.getLogger(__name__)

ANIMAL_AUDIT_FIELDS = (
    "name",
    "species",
    "breed",
    "sex",
    "color",
    "microchip",
    "status",
    "location_id",
    "kennel_id",
    "attributes",
)


def get_animal(db: Session, org_id: UUID, animal_id: UUID) -> Animal:
    """Raises UnknownEntity when the animal is not in this organization."""
    return get_in_org(db, Animal, org_id, animal_id, "animal")


def list_animals(
    db: Session,
    org_id: UUID,
    *,
    status: AnimalStatus | None = None,
    species: Species | None = None,
    q: str | None = None,
    pagination: PaginationParams | None = None,
) -> tuple[list[Animal], int]:
    query = db.query(Animal).filter(Animal.organization_id == org_id)
    if status:
        query = query.filter(Animal.status == AnimalStatus(status).value)
    if species:
        query = query.filter(Animal.species == Species(species).value)
    if q:
        query = query.filter(Animal.name.ilike(f"%{q.strip()}%"))
    query = query.order_by(Animal.intake_date.desc(), Animal.created_at.desc())
    return paginate_query(query, pagination)


def get_active_foster(db: Session, animal: Animal) -> FosterAssignment | None:
    return (
        db.query(FosterAssignment)
        .filter(
            FosterAssignment.organization_id == animal.organization_id,
            FosterAssignment.animal_id == animal.id,
            FosterAssignment.status == FosterStatus.ACTIVE.value,
        )
        .first()
    )


# =============================================================================
# Intake
# =============================================================================


def intake_animal(
    db: Session,
    org_id: UUID,
    actor_id: UUID | None,
    data: AnimalIntakeCreate,
) -> Animal:
    """
    Create an Animal with its immutable Intake.

    Initial status is ``hold`` when the intake flags a medical hold,
    otherwise ``available``.

    Raises:
        UnknownEntity: location/kennel not in this organization
        InvalidAttributes: attributes or source map failed validation
    """
    org = org_service.get_org(db, org_id)
    location_service.validate_housing(db, org_id, data.location_id, data.kennel_id)
    attributes = validate_animal_attributes(data.attributes)
    source = validate_intake_source(data.source)
    intake_date = data.intake_date or org_service.org_today(org)
    status = AnimalStatus.HOLD if data.medical_hold else AnimalStatus.AVAILABLE

    with atomic(db):
        animal = Animal(
            organization_id=org_id,
            name=data.name.strip(),
            species=data.species.value,
            breed=data.breed,
            sex=data.sex,
            color=data.color,
            microchip=data.microchip,
            location_id=data.location_id,
            kennel_id=data.kennel_id,
            attributes=attributes,
            status=status.value,
            intake_date=intake_date,
        )
        db.add(animal)
        db.flush()

        intake = Intake(
            organization_id=org_id,
            animal_id=animal.id,
            type=data.intake_type.value,
            source=source,
            notes=data.intake_notes,
            medical_hold=data.medical_hold,
            intake_date=intake_date,
            created_by_user_id=actor_id,
        )
        db.add(intake)
        db.flush()

        audit_service.log_event(
            db,
            org_id=org_id,
            event_type=AuditEventType.ANIMAL_INTAKE,
            actor_user_id=actor_id,
            target_type="animal",
            target_id=animal.id,
            details={
                "after": audit_service.snapshot(animal, ANIMAL_AUDIT_FIELDS),
                "intake": {"type": intake.type, "medical_hold": intake.medical_hold},
            },
        )

    logger.info(
        "Animal intake status=%s %s",
        status.value,
        format_log_context(
            build_log_context(
                user_id=str(actor_id) if actor_id else None,
                org_id=str(org_id),
                entity_type="animal",
                entity_id=str(animal.id),
            )
        ),
    )
    return animal


# =============================================================================
# Updates
# =============================================================================


def update_animal(
    db: Session,
    animal: Animal,
    actor_id: UUID | None,
    data: AnimalUpdate,
) -> Animal:
    """
    Update non-status fields. ``attributes`` replaces the whole map.

    Raises:
        ConcurrentModification: expected_version mismatch
        UnknownEntity: location/kennel not in this organization
    """
    org_id = animal.organization_id
    changes = data.model_dump(exclude_unset=True, exclude={"expected_version"})
    if "attributes" in changes:
        changes["attributes"] = validate_animal_attributes(changes["attributes"])

    with atomic(db):
        animal = lock(db, animal, "animal")
        check_version(animal.version, data.expected_version)

        location_id = changes.get("location_id", animal.location_id)
        kennel_id = changes.get("kennel_id", animal.kennel_id)
        location_service.validate_housing(db, org_id, location_id, kennel_id)

        before = audit_service.snapshot(animal, ANIMAL_AUDIT_FIELDS)
        for field, value in changes.items():
            setattr(animal, field, value)
        after = audit_service.snapshot(animal, ANIMAL_AUDIT_FIELDS)

        if before != after:
            db.flush()
            audit_service.log_event(
                db,
                org_id=org_id,
                event_type=AuditEventType.ANIMAL_UPDATED,
                actor_user_id=actor_id,
                target_type="animal",
                target_id=animal.id,
                details=audit_service.change_details(before, after),
            )

    return animal


# =============================================================================
# Status transitions
# =============================================================================


def transition_animal(
    db: Session,
    animal: Animal,
    new_status: AnimalStatus,
    actor_id: UUID | None,
    *,
    reason: str | None = None,
    outcome_date: date | None = None,
    outcome_details: dict[str, Any] | None = None,
    foster_result: FosterStatus = FosterStatus.COMPLETED,
    end_date: date | None = None,
) -> Outcome | None:
    """
    Apply one lifecycle edge inside the caller's transaction (no commit).

    Used by change_status and by adoption/foster finalization so every path
    enforces the same edges and side effects.

    Returns:
        The Outcome created when entering a terminal status, else None.
    """
    current = AnimalStatus(animal.status)
    target = AnimalStatus(new_status)
    org_id = animal.organization_id

    if current.is_terminal:
        raise AlreadyTerminal(f"Animal is {current.value}; status can no longer change")
    if not can_transition_animal(current, target):
        raise InvalidTransition("animal", current.value, target.value)

    today = None
    if target.is_terminal or current == AnimalStatus.FOSTERED:
        today = org_service.org_today(org_service.get_org(db, org_id))

    if target == AnimalStatus.FOSTERED and get_active_foster(db, animal) is None:
        raise InvalidTransition(
            "animal",
            current.value,
            target.value,
            message="Animal has no active foster assignment",
        )

    if current == AnimalStatus.FOSTERED:
        if foster_result not in (FosterStatus.COMPLETED, FosterStatus.FAILED):
            raise InvalidTransition("foster_assignment", message="Foster result must be completed or failed")
        assignment = get_active_foster(db, animal)
        if assignment is not None:
            close_assignment(
                db,
                assignment,
                actor_id,
                FosterStatus(foster_result),
                end_date or today,
            )

    before = audit_service.snapshot(animal, ("status",))
    animal.status = target.value
    db.flush()

    outcome = None
    if target.is_terminal:
        outcome = Outcome(
            organization_id=org_id,
            animal_id=animal.id,
            type=OUTCOME_FOR_STATUS[target].value,
            outcome_date=outcome_date or today,
            details=audit_service.json_safe({"reason": reason, **(outcome_details or {})}),
            recorded_by_user_id=actor_id,
        )
        db.add(outcome)
        db.flush()
        audit_service.log_event(
            db,
            org_id=org_id,
            event_type=AuditEventType.OUTCOME_RECORDED,
            actor_user_id=actor_id,
            target_type="outcome",
            target_id=outcome.id,
            details={
                "animal_id": animal.id,
                "after": audit_service.snapshot(outcome, ("type", "outcome_date")),
            },
        )

    audit_service.log_event(
        db,
        org_id=org_id,
        event_type=AuditEventType.ANIMAL_STATUS_CHANGED,
        actor_user_id=actor_id,
        target_type="animal",
        target_id=animal.id,
        details={
            "before": before,
            "after": {"status": target.value},
            "reason": reason,
        },
    )
    logger.info(
        "Animal status %s->%s animal=%s org=%s",
        current.value,
        target.value,
        animal.id,
        org_id,
    )
    return outcome


def close_assignment(
    db: Session,
    assignment: FosterAssignment,
    actor_id: UUID | None,
    result: FosterStatus,
    end_date: date,
) -> FosterAssignment:
    """Mark an active foster assignment completed/failed (no commit)."""
    before = audit_service.snapshot(assignment, ("status", "end_date"))
    assignment.status = FosterStatus(result).value
    assignment.end_date = end_date
    db.flush()
    audit_service.log_event(
        db,
        org_id=assignment.organization_id,
        event_type=AuditEventType.FOSTER_ENDED,
        actor_user_id=actor_id,
        target_type="foster_assignment",
        target_id=assignment.id,
        details={
            "animal_id": assignment.animal_id,
            "before": before,
            "after": audit_service.snapshot(assignment, ("status", "end_date")),
        },
    )
    return assignment


def change_status(
    db: Session,
    animal: Animal,
    new_status: AnimalStatus,
    actor_id: UUID | None,
    *,
    reason: str | None = None,
    outcome_date: date | None = None,
    foster_result: FosterStatus = FosterStatus.COMPLETED,
    expected_version: int | None = None,
) -> Animal:
    """
    Move an animal along one lifecycle edge (atomic).

    ``adopted`` is reachable only through adoption finalization, so every
    adopted animal has an Adoption record.

    Raises:
        AlreadyTerminal: animal is in a terminal status
        InvalidTransition: edge not allowed, direct adoption, or entering
            ``fostered`` without an active assignment
        ConcurrentModification: expected_version mismatch or stale write
    """
    target = AnimalStatus(new_status)
    if target == AnimalStatus.ADOPTED and not AnimalStatus(animal.status).is_terminal:
        raise InvalidTransition(
            "animal",
            animal.status,
            target.value,
            message="Adoption must be finalized through an approved application",
        )

    with atomic(db, on_integrity_error=AlreadyTerminal("Animal already has an outcome")):
        animal = lock(db, animal, "animal")
        check_version(animal.version, expected_version)
        transition_animal(
            db,
            animal,
            target,
            actor_id,
            reason=reason,
            outcome_date=outcome_date,
            foster_result=foster_result,
        )

    return animal
