"""Metrics service for the dashboard and reports screens.

Pure read-side aggregations over current entity state (plus the audit log
for activity trends). Nothing here is stored; every number is recomputed
on demand so it can never go stale.
"""

from collections import Counter
from datetime import date, datetime
from typing import Any
from uuid import UUID

from sqlalchemy import exists, func, or_
from sqlalchemy.orm import Session

from shelter.db.enums import (
    DECIDED_APPLICATION_STATUSES,
    LIVE_OUTCOMES,
    TERMINAL_ANIMAL_STATUSES,
    AnimalStatus,
    ApplicationStatus,
    FosterStatus,
    TaskClassification,
)
from shelter.db.models import (
    Adoption,
    Animal,
    Application,
    AuditLog,
    FosterAssignment,
    Intake,
    Outcome,
)
from shelter.services import medical_service, org_service
from shelter.services.medical_service import add_months


IN_CARE_STATUSES = [s.value for s in AnimalStatus if s not in TERMINAL_ANIMAL_STATUSES]
OPEN_APPLICATION_STATUSES = [
    s.value for s in ApplicationStatus if s not in DECIDED_APPLICATION_STATUSES
]
LIVE_OUTCOME_VALUES = frozenset(o.value for o in LIVE_OUTCOMES)


def _month_key(value: date | datetime) -> str:
    return f"{value.year:04d}-{value.month:02d}"


def _month_window(today: date, months: int) -> list[str]:
    """Keys for the last ``months`` calendar months, oldest first, ending at today's month."""
    first = today.replace(day=1)
    return [_month_key(add_months(first, -offset)) for offset in range(months - 1, -1, -1)]


# ============================================================================
# Dashboard
# ============================================================================


def animal_status_counts(db: Session, org_id: UUID) -> dict[str, int]:
    """Count of animals per status; every status is present, zero when empty."""
    rows = (
        db.query(Animal.status, func.count(Animal.id))
        .filter(Animal.organization_id == org_id)
        .group_by(Animal.status)
        .all()
    )
    counts = {status.value: 0 for status in AnimalStatus}
    counts.update({status: count for status, count in rows})
    return counts


def dashboard_stats(db: Session, org_id: UUID, as_of: date | datetime | None = None) -> dict[str, Any]:
    """Headline numbers for the dashboard."""
    if as_of is None:
        as_of = org_service.org_today(org_service.get_org(db, org_id))

    by_status = animal_status_counts(db, org_id)
    active_fosters = (
        db.query(func.count(FosterAssignment.id))
        .filter(
            FosterAssignment.organization_id == org_id,
            FosterAssignment.status == FosterStatus.ACTIVE.value,
        )
        .scalar()
    )
    open_applications = (
        db.query(func.count(Application.id))
        .filter(
            Application.organization_id == org_id,
            Application.status.in_(OPEN_APPLICATION_STATUSES),
        )
        .scalar()
    )

    return {
        "animals_in_care": sum(by_status[status] for status in IN_CARE_STATUSES),
        "animals_by_status": by_status,
        "overdue_tasks": medical_service.count_by_classification(
            db, org_id, TaskClassification.OVERDUE, as_of
        ),
        "due_today_tasks": medical_service.count_by_classification(
            db, org_id, TaskClassification.DUE_TODAY, as_of
        ),
        "active_fosters": active_fosters or 0,
        "open_applications": open_applications or 0,
    }


def species_distribution(db: Session, org_id: UUID) -> dict[str, int]:
    """Animals currently in care, by species."""
    rows = (
        db.query(Animal.species, func.count(Animal.id))
        .filter(Animal.organization_id == org_id, Animal.status.in_(IN_CARE_STATUSES))
        .group_by(Animal.species)
        .order_by(Animal.species)
        .all()
    )
    return {species: count for species, count in rows}


# ============================================================================
# Trends
# ============================================================================


def monthly_intake_trend(
    db: Session,
    org_id: UUID,
    months: int = 12,
    today: date | None = None,
) -> list[dict[str, Any]]:
    """Intakes and outcomes per calendar month, oldest month first."""
    today = today or org_service.org_today(org_service.get_org(db, org_id))
    keys = _month_window(today, months)
    start = date.fromisoformat(f"{keys[0]}-01")

    intake_dates = (
        db.query(Intake.intake_date)
        .filter(Intake.organization_id == org_id, Intake.intake_date >= start)
        .all()
    )
    outcome_dates = (
        db.query(Outcome.outcome_date)
        .filter(Outcome.organization_id == org_id, Outcome.outcome_date >= start)
        .all()
    )
    intakes = Counter(_month_key(row[0]) for row in intake_dates)
    outcomes = Counter(_month_key(row[0]) for row in outcome_dates)

    return [
        {"month": key, "intakes": intakes.get(key, 0), "outcomes": outcomes.get(key, 0)}
        for key in keys
    ]


def activity_trend(
    db: Session,
    org_id: UUID,
    months: int = 6,
    today: date | None = None,
) -> list[dict[str, Any]]:
    """Audit events per calendar month, broken down by event type."""
    today = today or org_service.org_today(org_service.get_org(db, org_id))
    keys = _month_window(today, months)
    start = datetime.fromisoformat(f"{keys[0]}-01T00:00:00")

    rows = (
        db.query(AuditLog.created_at, AuditLog.event_type)
        .filter(AuditLog.organization_id == org_id, AuditLog.created_at >= start)
        .all()
    )
    buckets: dict[str, Counter] = {key: Counter() for key in keys}
    for created_at, event_type in rows:
        bucket = buckets.get(_month_key(created_at))
        if bucket is not None:
            bucket[event_type] += 1

    return [
        {"month": key, "total": sum(counts.values()), "by_event_type": dict(counts)}
        for key, counts in buckets.items()
    ]


# ============================================================================
# Pipeline & Outcomes
# ============================================================================


def pipeline_stage_counts(db: Session, org_id: UUID) -> dict[str, int]:
    """
    Application counts per pipeline stage.

    ``approved`` counts approved applications that are not yet finalized;
    ``completed`` counts finalized ones (an Adoption or FosterAssignment
    references them).
    """
    rows = (
        db.query(Application.status, func.count(Application.id))
        .filter(Application.organization_id == org_id)
        .group_by(Application.status)
        .all()
    )
    by_status = {status: count for status, count in rows}

    finalized = or_(
        exists().where(Adoption.application_id == Application.id),
        exists().where(FosterAssignment.application_id == Application.id),
    )
    completed = (
        db.query(func.count(Application.id))
        .filter(
            Application.organization_id == org_id,
            Application.status == ApplicationStatus.APPROVED.value,
            finalized,
        )
        .scalar()
    ) or 0

    return {
        "received": by_status.get(ApplicationStatus.RECEIVED.value, 0),
        "review": by_status.get(ApplicationStatus.REVIEW.value, 0),
        "approved": by_status.get(ApplicationStatus.APPROVED.value, 0) - completed,
        "completed": completed,
        "denied": by_status.get(ApplicationStatus.DENIED.value, 0),
        "withdrawn": by_status.get(ApplicationStatus.WITHDRAWN.value, 0),
    }


def outcome_metrics(db: Session, org_id: UUID, today: date | None = None) -> dict[str, Any]:
    """Live release rate, average length of stay and adoptions this month."""
    today = today or org_service.org_today(org_service.get_org(db, org_id))

    rows = (
        db.query(Outcome.type, Outcome.outcome_date, Animal.intake_date)
        .join(Animal, Animal.id == Outcome.animal_id)
        .filter(Outcome.organization_id == org_id)
        .all()
    )
    live = sum(1 for outcome_type, _, _ in rows if outcome_type in LIVE_OUTCOME_VALUES)
    live_release_rate = round(live / len(rows) * 100, 1) if rows else 0.0

    stays = [(outcome_date - intake_date).days for _, outcome_date, intake_date in rows]
    average_length_of_stay = round(sum(stays) / len(stays), 1) if stays else None

    month_start = today.replace(day=1)
    adoptions_this_month = (
        db.query(func.count(Adoption.id))
        .filter(
            Adoption.organization_id == org_id,
            Adoption.adoption_date >= month_start,
            Adoption.adoption_date <= today,
        )
        .scalar()
    ) or 0

    return {
        "total_outcomes": len(rows),
        "live_outcomes": live,
        "live_release_rate": live_release_rate,
        "average_length_of_stay_days": average_length_of_stay,
        "adoptions_this_month": adoptions_this_month,
    }
