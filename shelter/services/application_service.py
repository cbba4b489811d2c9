"""Application pipeline service - adoption/foster application review.

Stages: received -> review -> approved | denied, with withdrawn reachable
from received and review. Decided applications never move again; there is
no reopen. Approval never touches the Animal: finalization is a separate
step in placement_service, so "approved" and "completed" stay distinct.
"""

import logging
from datetime import datetime, timezone
from typing import Any
from uuid import UUID

from sqlalchemy.orm import Session

from shelter.core.errors import AlreadyTerminal, InvalidTransition, check_version
from shelter.core.transitions import can_transition_application
from shelter.db.enums import ApplicationKind, ApplicationStatus, AuditEventType
from shelter.db.models import Animal, Application, Person
from shelter.db.transaction import atomic
from shelter.schemas.attributes import validate_application_form
from shelter.services import audit_service
from shelter.services.tenant_scope import get_in_org, lock
from shelter.utils.pagination import PaginationParams, paginate_query


logger = logging.getLogger(__name__)

APPLICATION_AUDIT_FIELDS = ("status", "decided_at", "decided_by_user_id")


def get_application(db: Session, org_id: UUID, application_id: UUID) -> Application:
    return get_in_org(db, Application, org_id, application_id, "application")


def list_applications(
    db: Session,
    org_id: UUID,
    *,
    status: ApplicationStatus | None = None,
    kind: ApplicationKind | None = None,
    animal_id: UUID | None = None,
    person_id: UUID | None = None,
    pagination: PaginationParams | None = None,
) -> tuple[list[Application], int]:
    query = db.query(Application).filter(Application.organization_id == org_id)
    if status:
        query = query.filter(Application.status == ApplicationStatus(status).value)
    if kind:
        query = query.filter(Application.kind == ApplicationKind(kind).value)
    if animal_id:
        query = query.filter(Application.animal_id == animal_id)
    if person_id:
        query = query.filter(Application.person_id == person_id)
    query = query.order_by(Application.submitted_at.desc())
    return paginate_query(query, pagination)


def submit(
    db: Session,
    org_id: UUID,
    actor_id: UUID | None,
    animal_id: UUID,
    person_id: UUID,
    kind: ApplicationKind,
    form: dict[str, Any] | None = None,
    notes: str | None = None,
) -> Application:
    """
    Submit an application in ``received``.

    Raises:
        UnknownEntity: animal or person not in this organization
        AlreadyTerminal: animal already has an outcome
        InvalidAttributes: form failed validation
    """
    animal = get_in_org(db, Animal, org_id, animal_id, "animal")
    get_in_org(db, Person, org_id, person_id, "person")
    if animal.is_terminal:
        raise AlreadyTerminal(f"Animal is {animal.status}; it cannot receive applications")

    application = Application(
        organization_id=org_id,
        animal_id=animal_id,
        person_id=person_id,
        kind=ApplicationKind(kind).value,
        status=ApplicationStatus.RECEIVED.value,
        form=validate_application_form(form),
        notes=notes,
    )
    with atomic(db):
        db.add(application)
        db.flush()
        audit_service.log_event(
            db,
            org_id=org_id,
            event_type=AuditEventType.APPLICATION_SUBMITTED,
            actor_user_id=actor_id,
            target_type="application",
            target_id=application.id,
            details={
                "animal_id": animal_id,
                "person_id": person_id,
                "after": {"kind": application.kind, "status": application.status},
            },
        )

    logger.info("Application submitted org=%s application=%s kind=%s", org_id, application.id, application.kind)
    return application


def _append_note(existing: str | None, note: str | None) -> str | None:
    if not note:
        return existing
    return f"{existing}\n{note}" if existing else note


def _transition(
    db: Session,
    application: Application,
    target: ApplicationStatus,
    actor_id: UUID | None,
    *,
    notes: str | None = None,
    expected_version: int | None = None,
) -> Application:
    with atomic(db):
        application = lock(db, application, "application")
        check_version(application.version, expected_version)

        current = ApplicationStatus(application.status)
        if not can_transition_application(current, target):
            raise InvalidTransition("application", current.value, target.value)

        if target == ApplicationStatus.APPROVED:
            _check_approvable(db, application)

        before = audit_service.snapshot(application, APPLICATION_AUDIT_FIELDS)
        application.status = target.value
        application.notes = _append_note(application.notes, notes)
        if target.is_decided:
            application.decided_at = datetime.now(timezone.utc)
            application.decided_by_user_id = actor_id
        db.flush()

        audit_service.log_event(
            db,
            org_id=application.organization_id,
            event_type=AuditEventType.APPLICATION_STATUS_CHANGED,
            actor_user_id=actor_id,
            target_type="application",
            target_id=application.id,
            details={
                "before": before,
                "after": audit_service.snapshot(application, APPLICATION_AUDIT_FIELDS),
                "notes": notes,
            },
        )

    logger.info(
        "Application %s->%s application=%s org=%s",
        current.value,
        target.value,
        application.id,
        application.organization_id,
    )
    return application


def _check_approvable(db: Session, application: Application) -> None:
    person = get_in_org(db, Person, application.organization_id, application.person_id, "person")
    if person.do_not_adopt:
        raise InvalidTransition(
            "application",
            application.status,
            ApplicationStatus.APPROVED.value,
            message="Applicant is flagged do-not-adopt",
        )
    animal = get_in_org(db, Animal, application.organization_id, application.animal_id, "animal")
    if animal.is_terminal:
        raise AlreadyTerminal(f"Animal is {animal.status}; the application cannot be approved")


def move_to_review(
    db: Session,
    application: Application,
    actor_id: UUID | None,
    *,
    notes: str | None = None,
    expected_version: int | None = None,
) -> Application:
    return _transition(
        db, application, ApplicationStatus.REVIEW, actor_id,
        notes=notes, expected_version=expected_version,
    )


def approve(
    db: Session,
    application: Application,
    actor_id: UUID | None,
    *,
    notes: str | None = None,
    expected_version: int | None = None,
) -> Application:
    """
    Approve an application under review.

    Raises:
        InvalidTransition: not in review, or applicant flagged do_not_adopt
        AlreadyTerminal: the animal already has an outcome
    """
    return _transition(
        db, application, ApplicationStatus.APPROVED, actor_id,
        notes=notes, expected_version=expected_version,
    )


def deny(
    db: Session,
    application: Application,
    actor_id: UUID | None,
    *,
    notes: str | None = None,
    expected_version: int | None = None,
) -> Application:
    return _transition(
        db, application, ApplicationStatus.DENIED, actor_id,
        notes=notes, expected_version=expected_version,
    )


def withdraw(
    db: Session,
    application: Application,
    actor_id: UUID | None,
    *,
    notes: str | None = None,
    expected_version: int | None = None,
) -> Application:
    return _transition(
        db, application, ApplicationStatus.WITHDRAWN, actor_id,
        notes=notes, expected_version=expected_version,
    )
