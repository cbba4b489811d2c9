"""Applications router - adoption/foster pipeline and placement finalization."""

from uuid import UUID

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from shelter.core.deps import (
    get_current_session,
    get_db,
    require_csrf_header,
    require_permission,
)
from shelter.db.enums import ApplicationKind, ApplicationStatus
from shelter.schemas.application import (
    AdoptionFinalize,
    AdoptionRead,
    ApplicationCreate,
    ApplicationDecision,
    ApplicationListResponse,
    ApplicationRead,
    FosterAssignmentRead,
    FosterPlace,
)
from shelter.schemas.auth import UserSession
from shelter.services import application_service, placement_service
from shelter.utils.pagination import PaginatedResponse, PaginationParams, get_pagination

router = APIRouter(dependencies=[Depends(require_permission("applications"))])


@router.get("", response_model=ApplicationListResponse)
def list_applications(
    status: ApplicationStatus | None = None,
    kind: ApplicationKind | None = None,
    animal_id: UUID | None = None,
    person_id: UUID | None = None,
    pagination: PaginationParams = Depends(get_pagination),
    session: UserSession = Depends(get_current_session),
    db: Session = Depends(get_db),
):
    applications, total = application_service.list_applications(
        db,
        session.org_id,
        status=status,
        kind=kind,
        animal_id=animal_id,
        person_id=person_id,
        pagination=pagination,
    )
    items = [ApplicationRead.model_validate(a) for a in applications]
    return PaginatedResponse.create(items, total, pagination).as_dict()


@router.post(
    "",
    response_model=ApplicationRead,
    status_code=201,
    dependencies=[Depends(require_csrf_header)],
)
def submit_application(
    data: ApplicationCreate,
    session: UserSession = Depends(require_permission("applications", "submit")),
    db: Session = Depends(get_db),
):
    return application_service.submit(
        db,
        session.org_id,
        session.user_id,
        data.animal_id,
        data.person_id,
        data.kind,
        form=data.form,
        notes=data.notes,
    )


@router.get("/{application_id}", response_model=ApplicationRead)
def get_application(
    application_id: UUID,
    session: UserSession = Depends(get_current_session),
    db: Session = Depends(get_db),
):
    return application_service.get_application(db, session.org_id, application_id)


# Pipeline transitions share one shape: body = notes + expected_version
_DECISIONS = {
    "review": application_service.move_to_review,
    "approve": application_service.approve,
    "deny": application_service.deny,
    "withdraw": application_service.withdraw,
}


def _decide(action: str, application_id: UUID, data: ApplicationDecision, session: UserSession, db: Session):
    application = application_service.get_application(db, session.org_id, application_id)
    return _DECISIONS[action](
        db,
        application,
        session.user_id,
        notes=data.notes,
        expected_version=data.expected_version,
    )


@router.post(
    "/{application_id}/review",
    response_model=ApplicationRead,
    dependencies=[Depends(require_csrf_header)],
)
def move_to_review(
    application_id: UUID,
    data: ApplicationDecision,
    session: UserSession = Depends(require_permission("applications", "decide")),
    db: Session = Depends(get_db),
):
    return _decide("review", application_id, data, session, db)


@router.post(
    "/{application_id}/approve",
    response_model=ApplicationRead,
    dependencies=[Depends(require_csrf_header)],
)
def approve_application(
    application_id: UUID,
    data: ApplicationDecision,
    session: UserSession = Depends(require_permission("applications", "decide")),
    db: Session = Depends(get_db),
):
    """Approve an application under review. Does not change the animal."""
    return _decide("approve", application_id, data, session, db)


@router.post(
    "/{application_id}/deny",
    response_model=ApplicationRead,
    dependencies=[Depends(require_csrf_header)],
)
def deny_application(
    application_id: UUID,
    data: ApplicationDecision,
    session: UserSession = Depends(require_permission("applications", "decide")),
    db: Session = Depends(get_db),
):
    return _decide("deny", application_id, data, session, db)


@router.post(
    "/{application_id}/withdraw",
    response_model=ApplicationRead,
    dependencies=[Depends(require_csrf_header)],
)
def withdraw_application(
    application_id: UUID,
    data: ApplicationDecision,
    session: UserSession = Depends(require_permission("applications", "submit")),
    db: Session = Depends(get_db),
):
    return _decide("withdraw", application_id, data, session, db)


# ============================================================================
# Finalization
# ============================================================================


@router.post(
    "/{application_id}/finalize-adoption",
    response_model=AdoptionRead,
    status_code=201,
    dependencies=[Depends(require_csrf_header)],
)
def finalize_adoption(
    application_id: UUID,
    data: AdoptionFinalize,
    session: UserSession = Depends(require_permission("placements", "finalize")),
    db: Session = Depends(get_db),
):
    """Create the Adoption, mark the animal adopted and record its Outcome."""
    application = application_service.get_application(db, session.org_id, application_id)
    return placement_service.finalize_adoption(
        db,
        application,
        session.user_id,
        data.fee_cents,
        data.donation_cents,
        adoption_date=data.adoption_date,
        contract_url=data.contract_url,
        payment_reference=data.payment_reference,
        notes=data.notes,
    )


@router.post(
    "/{application_id}/place-foster",
    response_model=FosterAssignmentRead,
    status_code=201,
    dependencies=[Depends(require_csrf_header)],
)
def place_foster(
    application_id: UUID,
    data: FosterPlace,
    session: UserSession = Depends(require_permission("placements", "foster")),
    db: Session = Depends(get_db),
):
    """Open a foster assignment and move the animal to fostered."""
    application = application_service.get_application(db, session.org_id, application_id)
    return placement_service.place_foster(
        db, application, session.user_id, start_date=data.start_date, notes=data.notes
    )
