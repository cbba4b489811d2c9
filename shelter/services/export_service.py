"""CSV exports for the reports screen (tenant scoped)."""

from __future__ import annotations

import csv
import io
import json
from collections.abc import Callable
from datetime import date, datetime
from typing import Any, Iterable, Iterator, Sequence
from uuid import UUID

from sqlalchemy.orm import Session

from shelter.core.errors import InvalidAttributes
from shelter.db.enums import AuditEventType
from shelter.db.models import Adoption, Animal, MedicalTask, Person
from shelter.services import audit_service


CSV_DANGEROUS_PREFIXES = ("=", "+", "-", "@")


def _csv_safe(value: str) -> str:
    if value and value.startswith(CSV_DANGEROUS_PREFIXES):
        return f"'{value}"
    return value


def _serialize_csv_value(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, (dict, list)):
        return json.dumps(value, sort_keys=True, default=str)
    return str(value)


def _write_csv_row(values: Sequence[Any]) -> str:
    output = io.StringIO()
    writer = csv.writer(output)
    writer.writerow([_csv_safe(_serialize_csv_value(value)) for value in values])
    return output.getvalue()


def _write_csv(headers: Sequence[str], rows: Iterable[Sequence[Any]]) -> str:
    output = io.StringIO()
    writer = csv.writer(output)
    writer.writerow(headers)
    for row in rows:
        writer.writerow([_csv_safe(_serialize_csv_value(value)) for value in row])
    return output.getvalue()


# ============================================================================
# Per-entity column definitions
# ============================================================================

ANIMAL_COLUMNS = [
    "id",
    "name",
    "species",
    "breed",
    "sex",
    "color",
    "microchip",
    "status",
    "intake_date",
    "location_id",
    "kennel_id",
    "attributes",
    "created_at",
    "updated_at",
]

PERSON_COLUMNS = ["id", "name", "type", "email", "phone", "flags", "created_at"]

ADOPTION_COLUMNS = [
    "id",
    "animal_id",
    "adopter_id",
    "application_id",
    "adoption_date",
    "fee_cents",
    "donation_cents",
    "payment_reference",
    "contract_url",
    "created_at",
]

MEDICAL_COLUMNS = [
    "id",
    "animal_id",
    "type",
    "title",
    "status",
    "due_date",
    "assigned_to_user_id",
    "completed_on",
    "completed_by_user_id",
    "follow_up_of_id",
    "created_at",
]


def _animal_query(db: Session, org_id: UUID):
    return (
        db.query(Animal)
        .filter(Animal.organization_id == org_id)
        .order_by(Animal.intake_date.asc(), Animal.created_at.asc())
    )


def _person_query(db: Session, org_id: UUID):
    return db.query(Person).filter(Person.organization_id == org_id).order_by(Person.name.asc())


def _adoption_query(db: Session, org_id: UUID):
    return (
        db.query(Adoption)
        .filter(Adoption.organization_id == org_id)
        .order_by(Adoption.adoption_date.asc())
    )


def _medical_query(db: Session, org_id: UUID):
    return (
        db.query(MedicalTask)
        .filter(MedicalTask.organization_id == org_id)
        .order_by(MedicalTask.due_date.asc(), MedicalTask.created_at.asc())
    )


EXPORTS: dict[str, tuple[list[str], Callable[[Session, UUID], Any]]] = {
    "animals": (ANIMAL_COLUMNS, _animal_query),
    "people": (PERSON_COLUMNS, _person_query),
    "adoptions": (ADOPTION_COLUMNS, _adoption_query),
    "medical": (MEDICAL_COLUMNS, _medical_query),
}


def _resolve(entity: str) -> tuple[list[str], Callable[[Session, UUID], Any]]:
    try:
        return EXPORTS[entity]
    except KeyError:
        raise InvalidAttributes(
            f"Unknown export '{entity}'; expected one of {', '.join(sorted(EXPORTS))}"
        ) from None


def stream_csv(db: Session, org_id: UUID, entity: str) -> Iterator[str]:
    """Yield the export one CSV line at a time (header first)."""
    columns, build_query = _resolve(entity)
    yield _write_csv_row(columns)
    for row in build_query(db, org_id).yield_per(500):
        yield _write_csv_row([getattr(row, column) for column in columns])


def export_csv(db: Session, org_id: UUID, entity: str) -> str:
    """
    Full CSV document for one entity type.

    Raises:
        InvalidAttributes: entity is not one of animals, people, adoptions, medical
    """
    columns, build_query = _resolve(entity)
    rows = ([getattr(row, column) for column in columns] for row in build_query(db, org_id))
    return _write_csv(columns, rows)


def log_export(db: Session, org_id: UUID, actor_id: UUID | None, entity: str) -> None:
    """Record who exported what; committed by the caller."""
    _resolve(entity)
    audit_service.log_event(
        db,
        org_id=org_id,
        event_type=AuditEventType.DATA_EXPORTED,
        actor_user_id=actor_id,
        target_type="export",
        target_id=None,
        details={"export": f"{entity}_csv"},
    )
