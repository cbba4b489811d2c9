"""Audit router - API endpoints for viewing audit logs."""

from dataclasses import asdict
from datetime import datetime
from uuid import UUID

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from shelter.core.deps import get_db, require_permission
from shelter.db.enums import AuditEventType
from shelter.db.models import User
from shelter.schemas.audit import AuditLogListResponse, AuditLogRead, ChainVerificationRead
from shelter.schemas.auth import UserSession
from shelter.services import audit_service
from shelter.utils.pagination import PaginatedResponse, PaginationParams, get_pagination

router = APIRouter(prefix="/audit", tags=["Audit"])


@router.get("", response_model=AuditLogListResponse)
def list_audit_logs(
    event_type: AuditEventType | None = Query(None, description="Filter by event type"),
    actor_user_id: UUID | None = Query(None, description="Filter by actor"),
    target_type: str | None = Query(None, description="Filter by entity type"),
    target_id: UUID | None = Query(None, description="Filter by entity id"),
    start_date: datetime | None = Query(None, description="Filter events after this date"),
    end_date: datetime | None = Query(None, description="Filter events before this date"),
    pagination: PaginationParams = Depends(get_pagination),
    session: UserSession = Depends(require_permission("audit")),
    db: Session = Depends(get_db),
):
    """
    List audit log entries for the organization (newest first).

    Requires: Admin role
    Filters: event_type, actor_user_id, target, date range
    """
    logs, total = audit_service.list_events(
        db,
        session.org_id,
        event_type=event_type.value if event_type else None,
        actor_user_id=actor_user_id,
        target_type=target_type,
        target_id=target_id,
        start=start_date,
        end=end_date,
        pagination=pagination,
    )

    # Resolve actor names
    actor_ids = {log.actor_user_id for log in logs if log.actor_user_id}
    actor_names = {}
    if actor_ids:
        actors = db.query(User).filter(User.id.in_(actor_ids)).all()
        actor_names = {actor.id: actor.display_name for actor in actors}

    items = []
    for log in logs:
        item = AuditLogRead.model_validate(log)
        item.actor_name = actor_names.get(log.actor_user_id) if log.actor_user_id else None
        items.append(item)

    return PaginatedResponse.create(items, total, pagination).as_dict()


@router.get("/event-types")
def list_event_types(
    session: UserSession = Depends(require_permission("audit")),
) -> list[str]:
    """List available audit event types for filtering."""
    return [e.value for e in AuditEventType]


@router.get("/verify", response_model=ChainVerificationRead)
def verify_audit_chain(
    session: UserSession = Depends(require_permission("audit")),
    db: Session = Depends(get_db),
):
    """Recompute the organization's hash chain and report the first break."""
    return asdict(audit_service.verify_chain(db, session.org_id))
