"""Reports router - dashboard metrics, trends and CSV exports."""

from datetime import date, datetime, timezone
from typing import Any, Literal

from fastapi import APIRouter, Depends, Query, Request
from fastapi.responses import StreamingResponse
from sqlalchemy.orm import Session

from shelter.core.config import settings
from shelter.core.deps import get_current_session, get_db, require_permission
from shelter.core.rate_limit import limiter
from shelter.schemas.auth import UserSession
from shelter.services import export_service, metrics_service

router = APIRouter(prefix="/reports", tags=["Reports"], dependencies=[Depends(require_permission("reports"))])


@router.get("/dashboard")
def get_dashboard(
    as_of: date | None = Query(None, description="Reference date (default: today, org timezone)"),
    session: UserSession = Depends(get_current_session),
    db: Session = Depends(get_db),
) -> dict[str, Any]:
    """Animals in care, status counts, overdue/due-today care, fosters, open applications."""
    return metrics_service.dashboard_stats(db, session.org_id, as_of)


@router.get("/species")
def get_species_distribution(
    session: UserSession = Depends(get_current_session),
    db: Session = Depends(get_db),
) -> dict[str, int]:
    return metrics_service.species_distribution(db, session.org_id)


@router.get("/intake-trend")
def get_intake_trend(
    months: int = Query(12, ge=1, le=36),
    session: UserSession = Depends(get_current_session),
    db: Session = Depends(get_db),
) -> list[dict[str, Any]]:
    return metrics_service.monthly_intake_trend(db, session.org_id, months)


@router.get("/activity-trend")
def get_activity_trend(
    months: int = Query(6, ge=1, le=24),
    session: UserSession = Depends(get_current_session),
    db: Session = Depends(get_db),
) -> list[dict[str, Any]]:
    return metrics_service.activity_trend(db, session.org_id, months)


@router.get("/pipeline")
def get_pipeline_counts(
    session: UserSession = Depends(get_current_session),
    db: Session = Depends(get_db),
) -> dict[str, int]:
    return metrics_service.pipeline_stage_counts(db, session.org_id)


@router.get("/outcomes")
def get_outcome_metrics(
    session: UserSession = Depends(get_current_session),
    db: Session = Depends(get_db),
) -> dict[str, Any]:
    """Live release rate, average length of stay, adoptions this month."""
    return metrics_service.outcome_metrics(db, session.org_id)


@router.get("/exports/{entity}", response_class=StreamingResponse)
@limiter.limit(settings.RATE_LIMIT_EXPORT)
def export_csv(
    request: Request,
    entity: Literal["animals", "people", "adoptions", "medical"],
    session: UserSession = Depends(require_permission("reports", "export")),
    db: Session = Depends(get_db),
) -> StreamingResponse:
    """Export one entity type as CSV (tenant scoped)."""
    export_service.log_export(db, session.org_id, session.user_id, entity)
    db.commit()

    # Read every row before the request session is closed
    lines = list(export_service.stream_csv(db, session.org_id, entity))

    filename = f"{entity}_export_{datetime.now(timezone.utc).strftime('%Y%m%d_%H%M%S')}.csv"
    headers = {"Content-Disposition": f'attachment; filename="{filename}"'}
    return StreamingResponse(
        iter(lines),
        media_type="text/csv",
        headers=headers,
    )
