"""SQLAlchemy ORM models."""

from __future__ import annotations

import uuid
from datetime import datetime

from sqlalchemy import ForeignKey, Index, Integer, String, UniqueConstraint, Uuid, func
from sqlalchemy.orm import Mapped, mapped_column

from shelter.db.base import Base, ImmutableRowError, JSONType, utcnow, write_once


class AuditLog(Base):
    """
    Append-only audit log.

    Every mutating operation adds one entry per mutated entity inside the
    same transaction as the mutation.

    Security:
    - Details carry ids and before/after field snapshots only
    - Hash chain (per organization) makes tampering detectable
    - ORM updates and deletes are rejected
    """

    __tablename__ = "audit_logs"
    __table_args__ = (
        UniqueConstraint("organization_id", "sequence", name="uq_audit_org_sequence"),
        Index("idx_audit_org_created", "organization_id", "created_at"),
        Index("idx_audit_org_event_created", "organization_id", "event_type", "created_at"),
        Index("idx_audit_org_target", "organization_id", "target_type", "target_id"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    organization_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("organizations.id", ondelete="CASCADE"),
        nullable=False,
    )
    actor_user_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid,
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True,  # System events have no actor
    )

    event_type: Mapped[str] = mapped_column(String(50), nullable=False)  # AuditEventType

    # Target entity: 'animal', 'medical_task', 'application', ...
    target_type: Mapped[str | None] = mapped_column(String(50), nullable=True)
    target_id: Mapped[uuid.UUID | None] = mapped_column(Uuid, nullable=True)

    # {"before": {...}, "after": {...}, ...}
    details: Mapped[dict | None] = mapped_column(JSONType, nullable=True)

    # Request correlation (groups the entries of one transition)
    request_id: Mapped[str | None] = mapped_column(String(64), nullable=True)

    # Per-organization position in the chain (1-based)
    sequence: Mapped[int] = mapped_column(Integer, nullable=False)

    # Tamper-evident hash chain
    prev_hash: Mapped[str | None] = mapped_column(String(64), nullable=True)  # SHA256 hex
    entry_hash: Mapped[str | None] = mapped_column(String(64), nullable=True)  # SHA256 hex

    created_at: Mapped[datetime] = mapped_column(
        default=utcnow, server_default=func.now(), nullable=False
    )


class AuditLogImmutableError(ImmutableRowError):
    """Raised when code tries to rewrite or remove an audit entry."""


write_once(AuditLog, AuditLogImmutableError)
