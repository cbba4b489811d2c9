"""Organization service - tenant lifecycle and settings."""

import logging
from datetime import date, datetime, timezone
from typing import Any
from uuid import UUID
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from pydantic import ValidationError
from sqlalchemy.orm import Session

from shelter.core.errors import InvalidAttributes, UnknownEntity
from shelter.db.enums import AuditEventType, Role
from shelter.db.models import Organization
from shelter.db.transaction import atomic
from shelter.schemas.medical import RECURRENCE_OVERRIDES_ADAPTER
from shelter.services import audit_service, membership_service


logger = logging.getLogger(__name__)


def get_org_by_id(db: Session, org_id: UUID) -> Organization | None:
    """Get organization by ID."""
    return db.query(Organization).filter(Organization.id == org_id).first()


def get_org_by_slug(db: Session, slug: str) -> Organization | None:
    """Get organization by slug."""
    return db.query(Organization).filter(Organization.slug == slug.lower()).first()


def get_org(db: Session, org_id: UUID) -> Organization:
    org = get_org_by_id(db, org_id)
    if org is None:
        raise UnknownEntity("organization", org_id)
    return org


def _validate_timezone(name: str) -> str:
    try:
        ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError) as exc:
        raise InvalidAttributes(f"Unknown timezone '{name}'") from exc
    return name


def _validate_settings(values: dict[str, Any]) -> dict[str, Any]:
    if not isinstance(values, dict):
        raise InvalidAttributes("Settings must be a key/value object")
    if "medical_recurrence" in values and values["medical_recurrence"] is not None:
        try:
            overrides = RECURRENCE_OVERRIDES_ADAPTER.validate_python(values["medical_recurrence"])
        except ValidationError as exc:
            raise InvalidAttributes("Invalid medical_recurrence setting") from exc
        values = dict(values)
        values["medical_recurrence"] = {
            key.value: (rule.model_dump() if rule else None)
            for key, rule in overrides.items()
        }
    return audit_service.json_safe(values)


def create_organization(
    db: Session,
    name: str,
    slug: str,
    *,
    timezone_name: str | None = None,
    settings: dict[str, Any] | None = None,
    admin_user_id: UUID | None = None,
) -> Organization:
    """
    Create a new organization, optionally with its first admin.

    Raises:
        IntegrityError: If slug already exists
        InvalidAttributes: Unknown timezone or malformed settings
    """
    org = Organization(name=name.strip(), slug=slug.strip().lower())
    if timezone_name:
        org.timezone = _validate_timezone(timezone_name)
    org.settings = _validate_settings(settings or {})

    with atomic(db):
        db.add(org)
        db.flush()
        audit_service.log_event(
            db,
            org_id=org.id,
            event_type=AuditEventType.ORG_CREATED,
            actor_user_id=admin_user_id,
            target_type="organization",
            target_id=org.id,
            details={"after": {"name": org.name, "slug": org.slug, "timezone": org.timezone}},
        )

    if admin_user_id is not None:
        membership_service.add_member(db, org.id, None, admin_user_id, Role.ADMIN)

    logger.info("Organization created org=%s", org.id)
    db.refresh(org)
    return org


def get_org_settings(db: Session, org_id: UUID) -> dict[str, Any]:
    org = get_org(db, org_id)
    return {"name": org.name, "timezone": org.timezone, "settings": dict(org.settings or {})}


def update_org_settings(
    db: Session,
    org_id: UUID,
    actor_id: UUID,
    *,
    name: str | None = None,
    timezone_name: str | None = None,
    settings: dict[str, Any] | None = None,
) -> Organization:
    """
    Update organization name, timezone and/or settings (admin only).

    ``settings`` is merged key by key; a key set to None is removed.
    """
    membership_service.require_role(db, actor_id, org_id, Role.ADMIN)

    with atomic(db):
        org = get_org(db, org_id)
        before = {"name": org.name, "timezone": org.timezone, "settings": dict(org.settings or {})}

        if name is not None:
            org.name = name.strip()
        if timezone_name is not None:
            org.timezone = _validate_timezone(timezone_name)
        if settings is not None:
            merged = dict(org.settings or {})
            for key, value in settings.items():
                if value is None:
                    merged.pop(key, None)
                else:
                    merged[key] = value
            org.settings = _validate_settings(merged)

        after = {"name": org.name, "timezone": org.timezone, "settings": dict(org.settings)}
        audit_service.log_event(
            db,
            org_id=org.id,
            event_type=AuditEventType.ORG_SETTINGS_UPDATED,
            actor_user_id=actor_id,
            target_type="organization",
            target_id=org.id,
            details=audit_service.change_details(before, after),
        )

    logger.info("Organization settings updated org=%s", org_id)
    db.refresh(org)
    return org


def delete_organization(db: Session, org_id: UUID, actor_id: UUID) -> None:
    """
    Delete an organization and every tenant row (ON DELETE CASCADE).

    The organization's audit log goes with it, so the deletion is only logged.
    """
    membership_service.require_role(db, actor_id, org_id, Role.ADMIN)
    with atomic(db):
        org = get_org(db, org_id)
        db.delete(org)
    db.expunge_all()
    logger.warning("Organization deleted org=%s by user=%s", org_id, actor_id)


def org_today(org: Organization, now: datetime | None = None) -> date:
    """Today's date in the organization's timezone."""
    now = now or datetime.now(timezone.utc)
    try:
        tz = ZoneInfo(org.timezone or "UTC")
    except (ZoneInfoNotFoundError, ValueError):
        tz = ZoneInfo("UTC")
    return now.astimezone(tz).date()
