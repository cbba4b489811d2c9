"""Pydantic schemas for locations and kennels."""

from uuid import UUID

from pydantic import BaseModel, Field

from shelter.db.enums import LocationType, Species


class LocationCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    type: LocationType = LocationType.SHELTER


class LocationRead(BaseModel):
    id: UUID
    name: str
    type: LocationType

    model_config = {"from_attributes": True}


class KennelCreate(BaseModel):
    code: str = Field(..., min_length=1, max_length=50)
    location_id: UUID | None = None
    size: str | None = Field(None, max_length=20)
    species: Species | None = None


class KennelRead(BaseModel):
    id: UUID
    code: str
    location_id: UUID | None
    size: str | None
    species: Species | None

    model_config = {"from_attributes": True}
