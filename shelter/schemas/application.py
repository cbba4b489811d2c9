"""Pydantic schemas for the application pipeline and placements."""

from datetime import date, datetime
from typing import Any
from uuid import UUID

from pydantic import BaseModel, Field

from shelter.db.enums import AnimalStatus, ApplicationKind, ApplicationStatus, FosterStatus


class ApplicationCreate(BaseModel):
    """Request to submit an adoption/foster application."""
    animal_id: UUID
    person_id: UUID
    kind: ApplicationKind
    form: dict[str, Any] = Field(default_factory=dict)
    notes: str | None = Field(None, max_length=4000)


class ApplicationDecision(BaseModel):
    """Body for review / approve / deny / withdraw."""
    notes: str | None = Field(None, max_length=4000)
    expected_version: int | None = None


class ApplicationRead(BaseModel):
    id: UUID
    animal_id: UUID
    person_id: UUID
    kind: ApplicationKind
    status: ApplicationStatus
    form: dict[str, Any]
    notes: str | None
    submitted_at: datetime
    decided_at: datetime | None
    decided_by_user_id: UUID | None
    version: int

    model_config = {"from_attributes": True}


class ApplicationListResponse(BaseModel):
    items: list[ApplicationRead]
    total: int
    page: int
    per_page: int
    pages: int


# =============================================================================
# Placements
# =============================================================================


class AdoptionFinalize(BaseModel):
    """Finalize an approved adoption application. Amounts are whole cents."""
    fee_cents: int = Field(..., ge=0)
    donation_cents: int = Field(0, ge=0)
    adoption_date: date | None = None
    contract_url: str | None = Field(None, max_length=500)
    payment_reference: str | None = Field(None, max_length=255)
    notes: str | None = Field(None, max_length=4000)


class AdoptionRead(BaseModel):
    id: UUID
    animal_id: UUID
    adopter_id: UUID
    application_id: UUID | None
    adoption_date: date
    fee_cents: int
    donation_cents: int
    contract_url: str | None
    payment_reference: str | None
    notes: str | None
    created_at: datetime

    model_config = {"from_attributes": True}


class FosterPlace(BaseModel):
    start_date: date | None = None
    notes: str | None = Field(None, max_length=4000)


class FosterEnd(BaseModel):
    result: FosterStatus = FosterStatus.COMPLETED
    end_date: date | None = None
    return_status: AnimalStatus = AnimalStatus.AVAILABLE
    expected_version: int | None = None


class FosterAssignmentRead(BaseModel):
    id: UUID
    animal_id: UUID
    person_id: UUID
    application_id: UUID | None
    status: FosterStatus
    start_date: date
    end_date: date | None
    notes: str | None
    version: int

    model_config = {"from_attributes": True}
