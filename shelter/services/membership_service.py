"""Membership service - users, memberships and role checks.

Authorization is a pure lookup against the Membership row: the session
token only names the user and the organization, never the role.
"""

import logging
from uuid import UUID

from sqlalchemy import func
from sqlalchemy.orm import Session

from shelter.core.errors import InvalidTransition, NotAMember, PermissionDenied, UnknownEntity
from shelter.db.enums import AuditEventType, Role
from shelter.db.models import Membership, User
from shelter.db.transaction import atomic
from shelter.services import audit_service


logger = logging.getLogger(__name__)


# =============================================================================
# Users
# =============================================================================


def get_user(db: Session, user_id: UUID) -> User | None:
    return db.query(User).filter(User.id == user_id).first()


def get_user_by_email(db: Session, email: str) -> User | None:
    return db.query(User).filter(User.email == email.strip().lower()).first()


def create_user(
    db: Session,
    email: str,
    display_name: str,
    credential_hash: str | None = None,
) -> User:
    """
    Create a global user identity.

    Raises:
        IntegrityError: If the email is already registered
    """
    user = User(
        email=email.strip().lower(),
        display_name=display_name.strip(),
        credential_hash=credential_hash,
    )
    with atomic(db):
        db.add(user)
    db.refresh(user)
    return user


# =============================================================================
# Lookups & authorization
# =============================================================================


def get_membership_for_org(db: Session, org_id: UUID, user_id: UUID) -> Membership | None:
    """Get the active membership scoped to an organization."""
    return (
        db.query(Membership)
        .filter(
            Membership.organization_id == org_id,
            Membership.user_id == user_id,
            Membership.is_active.is_(True),
        )
        .first()
    )


def _resolve_role(membership: Membership) -> Role:
    if not Role.has_value(membership.role):
        # Unknown stored role grants nothing
        return Role.READONLY
    return Role(membership.role)


def authorize(db: Session, user_id: UUID, org_id: UUID, required_role: Role) -> bool:
    """
    Check whether the user's role in the organization meets required_role.

    Raises:
        NotAMember: The user has no active membership in the organization
    """
    membership = get_membership_for_org(db, org_id, user_id)
    if membership is None:
        raise NotAMember()
    return _resolve_role(membership).rank >= Role(required_role).rank


def require_role(db: Session, user_id: UUID, org_id: UUID, required_role: Role) -> Membership:
    """
    Like authorize, but returns the membership or raises.

    Raises:
        NotAMember: No active membership
        PermissionDenied: Role below required_role
    """
    membership = get_membership_for_org(db, org_id, user_id)
    if membership is None:
        raise NotAMember()
    role = _resolve_role(membership)
    if role.rank < Role(required_role).rank:
        logger.warning(
            "Permission denied user=%s org=%s role=%s required=%s",
            user_id,
            org_id,
            role.value,
            Role(required_role).value,
        )
        raise PermissionDenied(f"Role '{role.value}' not permitted for this action")
    return membership


def list_members(db: Session, org_id: UUID, include_inactive: bool = False) -> list[Membership]:
    query = db.query(Membership).filter(Membership.organization_id == org_id)
    if not include_inactive:
        query = query.filter(Membership.is_active.is_(True))
    return query.order_by(Membership.created_at.asc()).all()


def _active_admin_count(db: Session, org_id: UUID) -> int:
    return (
        db.query(func.count(Membership.id))
        .filter(
            Membership.organization_id == org_id,
            Membership.role == Role.ADMIN.value,
            Membership.is_active.is_(True),
        )
        .scalar()
        or 0
    )


def _get_member_or_404(db: Session, org_id: UUID, user_id: UUID) -> Membership:
    membership = get_membership_for_org(db, org_id, user_id)
    if membership is None:
        raise UnknownEntity("membership", user_id)
    return membership


# =============================================================================
# Admin operations (audited)
# =============================================================================


def add_member(
    db: Session,
    org_id: UUID,
    actor_id: UUID | None,
    user_id: UUID,
    role: Role = Role.STAFF,
) -> Membership:
    """
    Grant a user access to the organization.

    actor_id None is reserved for organization bootstrap (first admin).
    A previously deactivated membership is reactivated with the new role.
    """
    if actor_id is not None:
        require_role(db, actor_id, org_id, Role.ADMIN)
    if get_user(db, user_id) is None:
        raise UnknownEntity("user", user_id)

    role = Role(role)
    with atomic(db):
        membership = (
            db.query(Membership)
            .filter(Membership.organization_id == org_id, Membership.user_id == user_id)
            .first()
        )
        if membership is None:
            membership = Membership(organization_id=org_id, user_id=user_id, role=role.value)
            db.add(membership)
        elif membership.is_active:
            raise InvalidTransition("membership", message="User is already a member")
        else:
            membership.role = role.value
            membership.is_active = True
        db.flush()
        audit_service.log_event(
            db,
            org_id=org_id,
            event_type=AuditEventType.MEMBER_ADDED,
            actor_user_id=actor_id,
            target_type="membership",
            target_id=membership.id,
            details={"user_id": user_id, "after": {"role": role.value}},
        )

    logger.info("Member added org=%s user=%s role=%s", org_id, user_id, role.value)
    return membership


def change_role(
    db: Session,
    org_id: UUID,
    actor_id: UUID,
    user_id: UUID,
    new_role: Role,
) -> Membership:
    """
    Change a member's role.

    Raises:
        InvalidTransition: Demoting the last active admin
    """
    require_role(db, actor_id, org_id, Role.ADMIN)
    new_role = Role(new_role)

    with atomic(db):
        membership = _get_member_or_404(db, org_id, user_id)
        old_role = membership.role
        if old_role == new_role.value:
            return membership
        if old_role == Role.ADMIN.value and _active_admin_count(db, org_id) <= 1:
            raise InvalidTransition(
                "membership", message="Cannot demote the last active admin"
            )
        membership.role = new_role.value
        audit_service.log_event(
            db,
            org_id=org_id,
            event_type=AuditEventType.MEMBER_ROLE_CHANGED,
            actor_user_id=actor_id,
            target_type="membership",
            target_id=membership.id,
            details={
                "user_id": user_id,
                "before": {"role": old_role},
                "after": {"role": new_role.value},
            },
        )

    logger.info("Member role changed org=%s user=%s %s->%s", org_id, user_id, old_role, new_role.value)
    return membership


def deactivate_member(
    db: Session,
    org_id: UUID,
    actor_id: UUID,
    user_id: UUID,
) -> Membership:
    """
    Revoke a member's access (the row is kept for history).

    Raises:
        InvalidTransition: Deactivating the last active admin
    """
    require_role(db, actor_id, org_id, Role.ADMIN)

    with atomic(db):
        membership = _get_member_or_404(db, org_id, user_id)
        if membership.role == Role.ADMIN.value and _active_admin_count(db, org_id) <= 1:
            raise InvalidTransition(
                "membership", message="Cannot deactivate the last active admin"
            )
        membership.is_active = False
        audit_service.log_event(
            db,
            org_id=org_id,
            event_type=AuditEventType.MEMBER_DEACTIVATED,
            actor_user_id=actor_id,
            target_type="membership",
            target_id=membership.id,
            details={"user_id": user_id, "before": {"is_active": True}, "after": {"is_active": False}},
        )

    logger.info("Member deactivated org=%s user=%s", org_id, user_id)
    return membership

