"""Pydantic schemas for people (external contacts)."""

from datetime import datetime
from typing import Any
from uuid import UUID

from pydantic import BaseModel, Field

from shelter.db.enums import PersonType


class PersonCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    type: PersonType = PersonType.ADOPTER
    email: str | None = Field(None, max_length=255)
    phone: str | None = Field(None, max_length=50)
    flags: dict[str, Any] = Field(default_factory=dict)


class PersonFlagsUpdate(BaseModel):
    """Flags to merge; a null value removes the flag."""
    flags: dict[str, Any]


class PersonRead(BaseModel):
    id: UUID
    name: str
    type: PersonType
    email: str | None
    phone: str | None
    flags: dict[str, Any]
    created_at: datetime

    model_config = {"from_attributes": True}


class PersonListResponse(BaseModel):
    items: list[PersonRead]
    total: int
    page: int
    per_page: int
    pages: int
