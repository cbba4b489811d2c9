"""Pydantic schemas for notes and photos."""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, Field

from shelter.db.enums import NoteVisibility, SubjectType


class NoteCreate(BaseModel):
    """Request to add a note."""

    body: str = Field(..., min_length=2, max_length=4000)
    visibility: NoteVisibility = NoteVisibility.STAFF_ONLY
    tags: list[str] = Field(default_factory=list, max_length=20)


class NoteRead(BaseModel):
    """Note response."""

    id: UUID
    subject_type: SubjectType
    subject_id: UUID
    author_id: UUID | None
    visibility: NoteVisibility
    body: str
    tags: list[str]
    created_at: datetime

    model_config = {"from_attributes": True}


class PhotoCreate(BaseModel):
    url: str = Field(..., min_length=1, max_length=1000)
    caption: str | None = Field(None, max_length=500)


class PhotoRead(BaseModel):
    id: UUID
    subject_type: SubjectType
    subject_id: UUID
    url: str
    caption: str | None
    uploaded_by_user_id: UUID | None
    created_at: datetime

    model_config = {"from_attributes": True}
