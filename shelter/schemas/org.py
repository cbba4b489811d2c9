"""Pydantic schemas for organization settings and membership."""

from datetime import datetime
from typing import Any
from uuid import UUID

from pydantic import BaseModel, Field

from shelter.db.enums import Role


class OrgRead(BaseModel):
    id: UUID
    name: str
    slug: str
    timezone: str
    settings: dict[str, Any]

    model_config = {"from_attributes": True}


class OrgSettingsUpdate(BaseModel):
    """Partial update; keys inside ``settings`` set to null are removed."""
    name: str | None = Field(None, min_length=1, max_length=255)
    timezone: str | None = Field(None, max_length=50)
    settings: dict[str, Any] | None = None


class MemberRead(BaseModel):
    user_id: UUID
    email: str
    display_name: str
    role: Role
    is_active: bool
    created_at: datetime


class MemberAdd(BaseModel):
    user_id: UUID
    role: Role = Role.STAFF


class MemberRoleUpdate(BaseModel):
    role: Role
