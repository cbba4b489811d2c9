"""Tests for memberships, role checks and organization settings."""

import pytest

from shelter.core.errors import InvalidAttributes, InvalidTransition, NotAMember, PermissionDenied
from shelter.db.enums import AuditEventType, Role
from shelter.db.models import Animal, AuditLog, Membership
from shelter.services import audit_service, membership_service, org_service


def _events(db, org_id, event_type: AuditEventType) -> list[AuditLog]:
    return (
        db.query(AuditLog)
        .filter(AuditLog.organization_id == org_id, AuditLog.event_type == event_type.value)
        .all()
    )


# =============================================================================
# authorize / require_role
# =============================================================================

def test_authorize_compares_role_rank(db, test_org, admin_user, staff_user, readonly_user):
    assert membership_service.authorize(db, admin_user.id, test_org.id, Role.STAFF) is True
    assert membership_service.authorize(db, staff_user.id, test_org.id, Role.STAFF) is True
    assert membership_service.authorize(db, staff_user.id, test_org.id, Role.ADMIN) is False
    assert membership_service.authorize(db, readonly_user.id, test_org.id, Role.READONLY) is True
    assert membership_service.authorize(db, readonly_user.id, test_org.id, Role.VOLUNTEER) is False


def test_volunteer_and_foster_share_rank(db, test_org, member_factory):
    volunteer = member_factory(Role.VOLUNTEER)
    foster = member_factory(Role.FOSTER)

    assert membership_service.authorize(db, volunteer.id, test_org.id, Role.FOSTER) is True
    assert membership_service.authorize(db, foster.id, test_org.id, Role.VOLUNTEER) is True


def test_authorize_without_membership_raises(db, test_org, user_factory):
    outsider = user_factory("outsider")
    with pytest.raises(NotAMember):
        membership_service.authorize(db, outsider.id, test_org.id, Role.READONLY)


def test_membership_in_one_org_grants_nothing_in_another(db, test_org, other_org, admin_user):
    with pytest.raises(NotAMember):
        membership_service.authorize(db, admin_user.id, other_org.id, Role.READONLY)


def test_unknown_stored_role_is_treated_as_readonly(db, test_org, staff_user):
    membership = membership_service.get_membership_for_org(db, test_org.id, staff_user.id)
    membership.role = "superuser"
    db.commit()

    assert membership_service.authorize(db, staff_user.id, test_org.id, Role.READONLY) is True
    assert membership_service.authorize(db, staff_user.id, test_org.id, Role.VOLUNTEER) is False


def test_require_role_raises_permission_denied(db, test_org, volunteer_user):
    with pytest.raises(PermissionDenied):
        membership_service.require_role(db, volunteer_user.id, test_org.id, Role.STAFF)


# =============================================================================
# Admin operations
# =============================================================================

def test_create_organization_bootstraps_first_admin(db, test_org, admin_user):
    membership = membership_service.get_membership_for_org(db, test_org.id, admin_user.id)

    assert membership.role == Role.ADMIN.value
    assert len(_events(db, test_org.id, AuditEventType.ORG_CREATED)) == 1
    assert len(_events(db, test_org.id, AuditEventType.MEMBER_ADDED)) == 1


def test_only_admin_can_add_members(db, test_org, staff_user, user_factory):
    newcomer = user_factory("newcomer")
    with pytest.raises(PermissionDenied):
        membership_service.add_member(db, test_org.id, staff_user.id, newcomer.id, Role.VOLUNTEER)


def test_add_existing_member_is_rejected(db, test_org, admin_user, staff_user):
    with pytest.raises(InvalidTransition):
        membership_service.add_member(db, test_org.id, admin_user.id, staff_user.id, Role.STAFF)


def test_change_role_is_audited(db, test_org, admin_user, staff_user):
    membership_service.change_role(db, test_org.id, admin_user.id, staff_user.id, Role.VOLUNTEER)

    membership = membership_service.get_membership_for_org(db, test_org.id, staff_user.id)
    assert membership.role == Role.VOLUNTEER.value

    (event,) = _events(db, test_org.id, AuditEventType.MEMBER_ROLE_CHANGED)
    assert event.actor_user_id == admin_user.id
    assert event.details["before"] == {"role": "staff"}
    assert event.details["after"] == {"role": "volunteer"}


def test_last_admin_cannot_be_demoted(db, test_org, admin_user):
    with pytest.raises(InvalidTransition):
        membership_service.change_role(db, test_org.id, admin_user.id, admin_user.id, Role.STAFF)

    membership = membership_service.get_membership_for_org(db, test_org.id, admin_user.id)
    assert membership.role == Role.ADMIN.value


def test_admin_can_step_down_when_another_admin_exists(db, test_org, admin_user, member_factory):
    member_factory(Role.ADMIN)

    membership_service.change_role(db, test_org.id, admin_user.id, admin_user.id, Role.STAFF)

    assert membership_service.authorize(db, admin_user.id, test_org.id, Role.ADMIN) is False


def test_last_admin_cannot_be_deactivated(db, test_org, admin_user):
    with pytest.raises(InvalidTransition):
        membership_service.deactivate_member(db, test_org.id, admin_user.id, admin_user.id)


def test_deactivated_member_loses_access_and_can_be_readded(db, test_org, admin_user, staff_user):
    membership_service.deactivate_member(db, test_org.id, admin_user.id, staff_user.id)

    with pytest.raises(NotAMember):
        membership_service.authorize(db, staff_user.id, test_org.id, Role.READONLY)

    membership_service.add_member(db, test_org.id, admin_user.id, staff_user.id, Role.VOLUNTEER)
    rows = db.query(Membership).filter(Membership.user_id == staff_user.id).all()
    assert len(rows) == 1
    assert rows[0].is_active is True
    assert rows[0].role == Role.VOLUNTEER.value


# =============================================================================
# Organization settings
# =============================================================================

def test_update_org_settings_merges_and_audits(db, test_org, admin_user):
    org_service.update_org_settings(
        db,
        test_org.id,
        admin_user.id,
        timezone_name="America/Chicago",
        settings={"medical_recurrence": {"vaccine": {"months": 6}}, "intake_open": True},
    )
    org_service.update_org_settings(db, test_org.id, admin_user.id, settings={"intake_open": None})

    org = org_service.get_org(db, test_org.id)
    assert org.timezone == "America/Chicago"
    assert org.settings == {"medical_recurrence": {"vaccine": {"months": 6, "days": 0}}}
    assert len(_events(db, test_org.id, AuditEventType.ORG_SETTINGS_UPDATED)) == 2


def test_update_org_settings_rejects_bad_timezone(db, test_org, admin_user):
    with pytest.raises(InvalidAttributes):
        org_service.update_org_settings(db, test_org.id, admin_user.id, timezone_name="Mars/Olympus")


def test_update_org_settings_rejects_bad_recurrence(db, test_org, admin_user):
    with pytest.raises(InvalidAttributes):
        org_service.update_org_settings(
            db, test_org.id, admin_user.id, settings={"medical_recurrence": {"vaccine": {"months": 0}}}
        )


def test_update_org_settings_requires_admin(db, test_org, staff_user):
    with pytest.raises(PermissionDenied):
        org_service.update_org_settings(db, test_org.id, staff_user.id, name="Renamed")


def test_delete_organization_cascades_to_tenant_rows(db, test_org, other_org, admin_user, make_animal):
    make_animal()
    org_id, other_org_id, admin_id = test_org.id, other_org.id, admin_user.id

    org_service.delete_organization(db, org_id, admin_id)

    assert org_service.get_org_by_id(db, org_id) is None
    assert db.query(Animal).filter(Animal.organization_id == org_id).count() == 0
    assert db.query(Membership).filter(Membership.organization_id == org_id).count() == 0
    assert audit_service.count_events(db, org_id) == 0
    assert audit_service.verify_chain(db, other_org_id).valid is True
