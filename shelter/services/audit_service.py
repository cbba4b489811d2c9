"""Audit logging service - append-only action log with a tamper-evident hash chain.

Every mutating workflow operation calls ``log_event`` inside its own
transaction, once per mutated entity, so the log is committed together with
the mutation or not at all.

Security guidelines:
- Details carry ids and field snapshots, never credentials
- Entries are never updated or deleted (ORM guards on AuditLog)
- Each entry hashes its predecessor, per organization
"""

import hashlib
import json
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Iterable
from uuid import UUID

from sqlalchemy import func
from sqlalchemy.orm import Session

from shelter.core.structured_logging import get_request_id
from shelter.db.base import utcnow
from shelter.db.enums import AuditEventType
from shelter.db.models import AuditLog, Organization
from shelter.utils.pagination import PaginationParams, paginate_query


GENESIS_HASH = "0" * 64  # prev_hash of an organization's first entry


def canonical_json(obj: dict | None) -> str:
    """
    Serialize object to canonical JSON for consistent hashing.

    Uses sorted keys, compact separators, and str() for non-JSON types.
    This MUST be used consistently everywhere hashes are computed.
    """
    return json.dumps(obj or {}, sort_keys=True, separators=(",", ":"), default=str)


def json_safe(obj: dict | None) -> dict:
    """Round-trip through canonical JSON so stored details hash identically on re-read."""
    return json.loads(canonical_json(obj))


def _hash_timestamp(value: datetime) -> str:
    # SQLite hands back naive UTC; PostgreSQL hands back aware UTC.
    if value.tzinfo is not None:
        value = value.astimezone(timezone.utc).replace(tzinfo=None)
    return value.isoformat()


def compute_audit_hash(
    prev_hash: str,
    entry_id: str,
    org_id: str,
    sequence: int,
    event_type: str,
    created_at: str,
    details_json: str,
    actor_user_id: str = "",
    target_type: str = "",
    target_id: str = "",
    request_id: str = "",
) -> str:
    """
    Compute hash for audit log entry.

    Hash = SHA256(all immutable fields joined with |)
    """
    data = "|".join(
        [
            prev_hash,
            entry_id,
            org_id,
            str(sequence),
            event_type,
            created_at,
            details_json,
            actor_user_id,
            target_type,
            target_id,
            request_id,
        ]
    )
    return hashlib.sha256(data.encode()).hexdigest()


def _hash_entry(entry: AuditLog) -> str:
    return compute_audit_hash(
        prev_hash=entry.prev_hash or GENESIS_HASH,
        entry_id=str(entry.id),
        org_id=str(entry.organization_id),
        sequence=entry.sequence,
        event_type=entry.event_type,
        created_at=_hash_timestamp(entry.created_at),
        details_json=canonical_json(entry.details),
        actor_user_id=str(entry.actor_user_id) if entry.actor_user_id else "",
        target_type=entry.target_type or "",
        target_id=str(entry.target_id) if entry.target_id else "",
        request_id=entry.request_id or "",
    )


def lock_chain(db: Session, org_id: UUID) -> None:
    """Serialize appends to one organization's chain (row lock on the org)."""
    db.query(Organization.id).filter(Organization.id == org_id).with_for_update().first()


def get_chain_head(db: Session, org_id: UUID) -> tuple[int, str]:
    """Return (sequence, entry_hash) of the organization's latest entry."""
    last = (
        db.query(AuditLog.sequence, AuditLog.entry_hash)
        .filter(AuditLog.organization_id == org_id)
        .order_by(AuditLog.sequence.desc())
        .first()
    )
    if not last:
        return 0, GENESIS_HASH
    return last.sequence, last.entry_hash or GENESIS_HASH


def log_event(
    db: Session,
    org_id: UUID,
    event_type: AuditEventType,
    actor_user_id: UUID | None = None,
    target_type: str | None = None,
    target_id: UUID | None = None,
    details: dict[str, Any] | None = None,
    request_id: str | None = None,
) -> AuditLog:
    """
    Append an audit entry to the organization's hash chain.

    The entry is flushed but not committed; the caller's transaction owns it.

    Args:
        db: Database session
        org_id: Organization context
        event_type: Type of event (from AuditEventType)
        actor_user_id: User who performed the action (None for system)
        target_type: Type of entity affected ('animal', 'medical_task', ...)
        target_id: ID of the affected entity
        details: {"before": {...}, "after": {...}} plus any extra context
        request_id: Correlation id; defaults to the current request's id

    Returns:
        The created audit log entry with computed hash chain
    """
    lock_chain(db, org_id)
    sequence, prev_hash = get_chain_head(db, org_id)

    entry = AuditLog(
        id=uuid.uuid4(),
        organization_id=org_id,
        actor_user_id=actor_user_id,
        event_type=AuditEventType(event_type).value,
        target_type=target_type,
        target_id=target_id,
        details=json_safe(details),
        request_id=request_id or get_request_id(),
        sequence=sequence + 1,
        prev_hash=prev_hash,
        created_at=utcnow(),
    )
    # Hash before insert: the row is never updated afterwards.
    entry.entry_hash = _hash_entry(entry)
    db.add(entry)
    db.flush()
    return entry


def snapshot(entity: Any, fields: Iterable[str]) -> dict[str, Any]:
    """JSON-safe dict of the named attributes, for before/after details."""
    return json_safe({field: getattr(entity, field) for field in fields})


def change_details(before: dict[str, Any], after: dict[str, Any], **extra: Any) -> dict[str, Any]:
    """Build the standard details payload, keeping only fields that changed."""
    changed = sorted(key for key in after if before.get(key) != after.get(key))
    details = {
        "before": {key: before.get(key) for key in changed},
        "after": {key: after.get(key) for key in changed},
    }
    details.update(extra)
    return details


# =============================================================================
# Read side
# =============================================================================


def list_events(
    db: Session,
    org_id: UUID,
    *,
    event_type: str | None = None,
    actor_user_id: UUID | None = None,
    target_type: str | None = None,
    target_id: UUID | None = None,
    start: datetime | None = None,
    end: datetime | None = None,
    pagination: PaginationParams | None = None,
) -> tuple[list[AuditLog], int]:
    """List audit entries for an organization, newest first."""
    query = db.query(AuditLog).filter(AuditLog.organization_id == org_id)

    if event_type:
        query = query.filter(AuditLog.event_type == event_type)
    if actor_user_id:
        query = query.filter(AuditLog.actor_user_id == actor_user_id)
    if target_type:
        query = query.filter(AuditLog.target_type == target_type)
    if target_id:
        query = query.filter(AuditLog.target_id == target_id)
    if start:
        query = query.filter(AuditLog.created_at >= start)
    if end:
        query = query.filter(AuditLog.created_at <= end)

    query = query.order_by(AuditLog.sequence.desc())
    return paginate_query(query, pagination)


def entity_history(
    db: Session,
    org_id: UUID,
    target_type: str,
    target_id: UUID,
) -> list[AuditLog]:
    """Every entry for one entity, oldest first, so prior state can be replayed."""
    return (
        db.query(AuditLog)
        .filter(
            AuditLog.organization_id == org_id,
            AuditLog.target_type == target_type,
            AuditLog.target_id == target_id,
        )
        .order_by(AuditLog.sequence.asc())
        .all()
    )


def count_events(db: Session, org_id: UUID) -> int:
    return (
        db.query(func.count(AuditLog.id))
        .filter(AuditLog.organization_id == org_id)
        .scalar()
        or 0
    )


@dataclass
class ChainVerification:
    valid: bool
    checked: int
    broken_entry_id: UUID | None = None
    reason: str | None = None


def verify_chain(db: Session, org_id: UUID) -> ChainVerification:
    """
    Recompute the organization's hash chain.

    Detects edited fields (entry hash mismatch), removed or reordered
    entries (prev_hash / sequence mismatch).
    """
    entries = (
        db.query(AuditLog)
        .filter(AuditLog.organization_id == org_id)
        .order_by(AuditLog.sequence.asc())
        .all()
    )

    expected_prev = GENESIS_HASH
    for index, entry in enumerate(entries, start=1):
        if entry.sequence != index:
            return ChainVerification(False, index - 1, entry.id, "sequence gap")
        if entry.prev_hash != expected_prev:
            return ChainVerification(False, index - 1, entry.id, "prev_hash mismatch")
        if entry.entry_hash != _hash_entry(entry):
            return ChainVerification(False, index - 1, entry.id, "entry_hash mismatch")
        expected_prev = entry.entry_hash

    return ChainVerification(True, len(entries))
