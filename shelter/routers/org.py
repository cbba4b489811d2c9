"""Organization router - settings, members and the current session."""

from uuid import UUID

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from shelter.core.deps import (
    get_current_session,
    get_db,
    require_csrf_header,
    require_permission,
)
from shelter.db.models import Membership
from shelter.schemas.auth import MeResponse, UserSession
from shelter.schemas.org import MemberAdd, MemberRead, MemberRoleUpdate, OrgRead, OrgSettingsUpdate
from shelter.services import membership_service, org_service

router = APIRouter()


def to_member_read(membership: Membership) -> MemberRead:
    return MemberRead(
        user_id=membership.user_id,
        email=membership.user.email,
        display_name=membership.user.display_name,
        role=membership.role,
        is_active=membership.is_active,
        created_at=membership.created_at,
    )


@router.get("/me", response_model=MeResponse)
def get_me(
    session: UserSession = Depends(get_current_session),
    db: Session = Depends(get_db),
):
    """Current user, organization and role (role from Membership)."""
    org = org_service.get_org(db, session.org_id)
    return MeResponse(
        user_id=session.user_id,
        email=session.email,
        display_name=session.display_name,
        org_id=org.id,
        org_name=org.name,
        org_slug=org.slug,
        org_timezone=org.timezone,
        role=session.role,
    )


@router.get("/org", response_model=OrgRead)
def get_organization(
    session: UserSession = Depends(require_permission("org_settings")),
    db: Session = Depends(get_db),
):
    return org_service.get_org(db, session.org_id)


@router.patch(
    "/org",
    response_model=OrgRead,
    dependencies=[Depends(require_csrf_header)],
)
def update_organization(
    data: OrgSettingsUpdate,
    session: UserSession = Depends(require_permission("org_settings", "manage")),
    db: Session = Depends(get_db),
):
    """Update name, timezone or settings (e.g. medical_recurrence overrides)."""
    return org_service.update_org_settings(
        db,
        session.org_id,
        session.user_id,
        name=data.name,
        timezone_name=data.timezone,
        settings=data.settings,
    )


@router.get("/org/members", response_model=list[MemberRead])
def list_members(
    include_inactive: bool = False,
    session: UserSession = Depends(require_permission("team")),
    db: Session = Depends(get_db),
):
    members = membership_service.list_members(db, session.org_id, include_inactive=include_inactive)
    return [to_member_read(m) for m in members]


@router.post(
    "/org/members",
    response_model=MemberRead,
    status_code=201,
    dependencies=[Depends(require_csrf_header)],
)
def add_member(
    data: MemberAdd,
    session: UserSession = Depends(require_permission("team", "manage")),
    db: Session = Depends(get_db),
):
    membership = membership_service.add_member(
        db, session.org_id, session.user_id, data.user_id, data.role
    )
    return to_member_read(membership)


@router.patch(
    "/org/members/{user_id}",
    response_model=MemberRead,
    dependencies=[Depends(require_csrf_header)],
)
def change_member_role(
    user_id: UUID,
    data: MemberRoleUpdate,
    session: UserSession = Depends(require_permission("team", "manage")),
    db: Session = Depends(get_db),
):
    membership = membership_service.change_role(
        db, session.org_id, session.user_id, user_id, data.role
    )
    return to_member_read(membership)


@router.delete(
    "/org/members/{user_id}",
    response_model=MemberRead,
    dependencies=[Depends(require_csrf_header)],
)
def deactivate_member(
    user_id: UUID,
    session: UserSession = Depends(require_permission("team", "manage")),
    db: Session = Depends(get_db),
):
    """Deactivate a membership; the last active admin cannot be removed."""
    membership = membership_service.deactivate_member(db, session.org_id, session.user_id, user_id)
    return to_member_read(membership)
