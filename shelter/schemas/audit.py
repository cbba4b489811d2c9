"""Pydantic schemas for the audit trail."""

from datetime import datetime
from typing import Any
from uuid import UUID

from pydantic import BaseModel


class AuditLogRead(BaseModel):
    """Audit log entry for API response."""
    id: UUID
    sequence: int
    event_type: str
    actor_user_id: UUID | None
    actor_name: str | None = None
    target_type: str | None
    target_id: UUID | None
    details: dict[str, Any] | None
    request_id: str | None
    entry_hash: str
    created_at: datetime

    model_config = {"from_attributes": True}


class AuditLogListResponse(BaseModel):
    """Paginated audit log response."""
    items: list[AuditLogRead]
    total: int
    page: int
    per_page: int
    pages: int


class ChainVerificationRead(BaseModel):
    valid: bool
    checked: int
    broken_entry_id: UUID | None = None
    reason: str | None = None
