"""Placement service - adoption finalization and foster placement.

Both operations turn an approved application into a placement in one
transaction: the placement row, the animal's status edge (plus Outcome for
adoptions) and one audit entry per mutated entity commit together.
"""

import logging
from datetime import date
from uuid import UUID

from sqlalchemy.orm import Session

from shelter.core.errors import (
    AlreadyTerminal,
    AnimalAlreadyFostered,
    ApplicationNotApproved,
    InvalidAttributes,
    InvalidTransition,
    check_version,
)
from shelter.db.enums import (
    AnimalStatus,
    ApplicationKind,
    ApplicationStatus,
    AuditEventType,
    FosterStatus,
)
from shelter.db.models import Adoption, Animal, Application, FosterAssignment
from shelter.db.transaction import atomic
from shelter.services import animal_service, audit_service, org_service
from shelter.services.tenant_scope import get_in_org, lock
from shelter.utils.pagination import PaginationParams, paginate_query


logger = logging.getLogger(__name__)

FOSTER_RETURN_STATUSES = (AnimalStatus.AVAILABLE, AnimalStatus.HOLD)


def _require_approved(application: Application, kind: ApplicationKind) -> None:
    if application.kind != kind.value or application.status != ApplicationStatus.APPROVED.value:
        raise ApplicationNotApproved(
            f"Application must be an approved {kind.value} application"
            f" (is {application.status} {application.kind})"
        )


def get_adoption(db: Session, org_id: UUID, adoption_id: UUID) -> Adoption:
    return get_in_org(db, Adoption, org_id, adoption_id, "adoption")


def get_foster_assignment(db: Session, org_id: UUID, assignment_id: UUID) -> FosterAssignment:
    return get_in_org(db, FosterAssignment, org_id, assignment_id, "foster_assignment")


def list_adoptions(
    db: Session,
    org_id: UUID,
    pagination: PaginationParams | None = None,
) -> tuple[list[Adoption], int]:
    query = (
        db.query(Adoption)
        .filter(Adoption.organization_id == org_id)
        .order_by(Adoption.adoption_date.desc())
    )
    return paginate_query(query, pagination)


def list_foster_assignments(
    db: Session,
    org_id: UUID,
    *,
    status: FosterStatus | None = None,
    animal_id: UUID | None = None,
    pagination: PaginationParams | None = None,
) -> tuple[list[FosterAssignment], int]:
    query = db.query(FosterAssignment).filter(FosterAssignment.organization_id == org_id)
    if status:
        query = query.filter(FosterAssignment.status == FosterStatus(status).value)
    if animal_id:
        query = query.filter(FosterAssignment.animal_id == animal_id)
    query = query.order_by(FosterAssignment.start_date.desc())
    return paginate_query(query, pagination)


def finalize_adoption(
    db: Session,
    application: Application,
    actor_id: UUID | None,
    fee_cents: int,
    donation_cents: int = 0,
    *,
    adoption_date: date | None = None,
    contract_url: str | None = None,
    payment_reference: str | None = None,
    notes: str | None = None,
) -> Adoption:
    """
    Finalize an approved adoption application.

    Creates the Adoption, closes an active foster (completed), moves the
    animal to ``adopted`` and records Outcome(type=adoption), atomically.

    Raises:
        ApplicationNotApproved: not an approved adoption application, or
            already finalized
        AlreadyTerminal: the animal already has an outcome
        InvalidAttributes: negative fee or donation
    """
    if fee_cents < 0 or donation_cents < 0:
        raise InvalidAttributes("Fee and donation must be zero or more cents")

    with atomic(db, on_integrity_error=ApplicationNotApproved("Application has already been finalized")):
        application = lock(db, application, "application")
        _require_approved(application, ApplicationKind.ADOPTION)

        already = db.query(Adoption.id).filter(Adoption.application_id == application.id).first()
        if already:
            raise ApplicationNotApproved("Application has already been finalized")

        org_id = application.organization_id
        animal = get_in_org(db, Animal, org_id, application.animal_id, "animal", for_update=True)
        if animal.is_terminal:
            raise AlreadyTerminal(f"Animal is {animal.status}; it cannot be adopted")

        adoption_date = adoption_date or org_service.org_today(org_service.get_org(db, org_id))
        adoption = Adoption(
            organization_id=org_id,
            animal_id=animal.id,
            adopter_id=application.person_id,
            application_id=application.id,
            adoption_date=adoption_date,
            fee_cents=fee_cents,
            donation_cents=donation_cents,
            contract_url=contract_url,
            payment_reference=payment_reference,
            notes=notes,
            finalized_by_user_id=actor_id,
        )
        db.add(adoption)
        db.flush()

        audit_service.log_event(
            db,
            org_id=org_id,
            event_type=AuditEventType.ADOPTION_FINALIZED,
            actor_user_id=actor_id,
            target_type="adoption",
            target_id=adoption.id,
            details={
                "application_id": application.id,
                "animal_id": animal.id,
                "after": audit_service.snapshot(
                    adoption, ("adopter_id", "adoption_date", "fee_cents", "donation_cents")
                ),
            },
        )

        animal_service.transition_animal(
            db,
            animal,
            AnimalStatus.ADOPTED,
            actor_id,
            outcome_date=adoption_date,
            outcome_details={"adoption_id": adoption.id, "application_id": application.id},
            foster_result=FosterStatus.COMPLETED,
            end_date=adoption_date,
        )

    logger.info("Adoption finalized org=%s adoption=%s animal=%s", org_id, adoption.id, animal.id)
    return adoption


def place_foster(
    db: Session,
    application: Application,
    actor_id: UUID | None,
    start_date: date | None = None,
    notes: str | None = None,
) -> FosterAssignment:
    """
    Open an active foster assignment from an approved foster application.

    Raises:
        ApplicationNotApproved: not an approved foster application, or
            already placed
        AnimalAlreadyFostered: the animal already has an active assignment
        AlreadyTerminal: the animal already has an outcome
    """
    with atomic(db, on_integrity_error=AnimalAlreadyFostered()):
        application = lock(db, application, "application")
        _require_approved(application, ApplicationKind.FOSTER)

        already = (
            db.query(FosterAssignment.id)
            .filter(FosterAssignment.application_id == application.id)
            .first()
        )
        if already:
            raise ApplicationNotApproved("Application has already been placed")

        org_id = application.organization_id
        animal = get_in_org(db, Animal, org_id, application.animal_id, "animal", for_update=True)
        if animal.is_terminal:
            raise AlreadyTerminal(f"Animal is {animal.status}; it cannot be fostered")
        if animal_service.get_active_foster(db, animal) is not None:
            raise AnimalAlreadyFostered()

        assignment = FosterAssignment(
            organization_id=org_id,
            animal_id=animal.id,
            person_id=application.person_id,
            application_id=application.id,
            status=FosterStatus.ACTIVE.value,
            start_date=start_date or org_service.org_today(org_service.get_org(db, org_id)),
            notes=notes,
        )
        db.add(assignment)
        db.flush()

        audit_service.log_event(
            db,
            org_id=org_id,
            event_type=AuditEventType.FOSTER_STARTED,
            actor_user_id=actor_id,
            target_type="foster_assignment",
            target_id=assignment.id,
            details={
                "application_id": application.id,
                "animal_id": animal.id,
                "after": audit_service.snapshot(assignment, ("person_id", "status", "start_date")),
            },
        )

        animal_service.transition_animal(db, animal, AnimalStatus.FOSTERED, actor_id)

    logger.info("Foster placed org=%s assignment=%s animal=%s", org_id, assignment.id, animal.id)
    return assignment


def end_foster(
    db: Session,
    assignment: FosterAssignment,
    actor_id: UUID | None,
    result: FosterStatus = FosterStatus.COMPLETED,
    end_date: date | None = None,
    return_status: AnimalStatus = AnimalStatus.AVAILABLE,
    expected_version: int | None = None,
) -> FosterAssignment:
    """
    Close an active foster assignment and bring the animal back into care.

    Raises:
        InvalidTransition: assignment not active, or return_status is not
            available/hold, or result is not completed/failed
    """
    return_status = AnimalStatus(return_status)
    if return_status not in FOSTER_RETURN_STATUSES:
        raise InvalidTransition(
            "animal", AnimalStatus.FOSTERED.value, return_status.value,
            message="A returning foster animal goes back to available or hold",
        )

    with atomic(db):
        assignment = lock(db, assignment, "foster_assignment")
        check_version(assignment.version, expected_version)
        if assignment.status != FosterStatus.ACTIVE.value:
            raise InvalidTransition(
                "foster_assignment",
                assignment.status,
                FosterStatus(result).value,
                message="Foster assignment is not active",
            )

        animal = get_in_org(
            db, Animal, assignment.organization_id, assignment.animal_id, "animal", for_update=True
        )
        animal_service.transition_animal(
            db,
            animal,
            return_status,
            actor_id,
            foster_result=FosterStatus(result),
            end_date=end_date,
        )

    return assignment
