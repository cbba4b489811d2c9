"""Pydantic schemas for animals, intakes and outcomes."""

from datetime import date, datetime
from typing import Any
from uuid import UUID

from pydantic import BaseModel, Field

from shelter.db.enums import AnimalStatus, FosterStatus, IntakeType, OutcomeType, Species


class AnimalIntakeCreate(BaseModel):
    """Request to take an animal into care (creates Animal + Intake)."""
    name: str = Field(..., min_length=1, max_length=255)
    species: Species
    breed: str | None = Field(None, max_length=255)
    sex: str | None = Field(None, max_length=20)
    color: str | None = Field(None, max_length=100)
    microchip: str | None = Field(None, max_length=50)
    location_id: UUID | None = None
    kennel_id: UUID | None = None
    attributes: dict[str, Any] = Field(default_factory=dict)

    intake_type: IntakeType = IntakeType.STRAY
    intake_date: date | None = None  # Defaults to today (org timezone)
    source: dict[str, Any] = Field(default_factory=dict)
    intake_notes: str | None = Field(None, max_length=4000)
    medical_hold: bool = False


class AnimalUpdate(BaseModel):
    """Partial update of non-status fields."""
    name: str | None = Field(None, min_length=1, max_length=255)
    breed: str | None = Field(None, max_length=255)
    sex: str | None = Field(None, max_length=20)
    color: str | None = Field(None, max_length=100)
    microchip: str | None = Field(None, max_length=50)
    location_id: UUID | None = None
    kennel_id: UUID | None = None
    attributes: dict[str, Any] | None = None
    expected_version: int | None = None


class AnimalStatusChange(BaseModel):
    status: AnimalStatus
    reason: str | None = Field(None, max_length=2000)
    outcome_date: date | None = None
    foster_result: FosterStatus = FosterStatus.COMPLETED
    expected_version: int | None = None


class IntakeRead(BaseModel):
    id: UUID
    type: IntakeType
    source: dict[str, Any]
    notes: str | None
    medical_hold: bool
    intake_date: date

    model_config = {"from_attributes": True}


class OutcomeRead(BaseModel):
    id: UUID
    animal_id: UUID
    type: OutcomeType
    outcome_date: date
    details: dict[str, Any]

    model_config = {"from_attributes": True}


class AnimalRead(BaseModel):
    """Full animal response."""
    id: UUID
    name: str
    species: Species
    breed: str | None
    sex: str | None
    color: str | None
    microchip: str | None
    status: AnimalStatus
    intake_date: date
    location_id: UUID | None
    kennel_id: UUID | None
    attributes: dict[str, Any]
    version: int
    created_at: datetime
    updated_at: datetime

    intake: IntakeRead | None = None
    outcome: OutcomeRead | None = None

    model_config = {"from_attributes": True}


class AnimalListItem(BaseModel):
    """Compact animal for list views."""
    id: UUID
    name: str
    species: Species
    breed: str | None
    status: AnimalStatus
    intake_date: date
    kennel_id: UUID | None

    model_config = {"from_attributes": True}


class AnimalListResponse(BaseModel):
    items: list[AnimalListItem]
    total: int
    page: int
    per_page: int
    pages: int
