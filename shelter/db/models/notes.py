"""SQLAlchemy ORM models."""

from __future__ import annotations

import uuid
from datetime import datetime

from sqlalchemy import ForeignKey, Index, String, Text, Uuid, func
from sqlalchemy.orm import Mapped, mapped_column

from shelter.db.base import Base, JSONType, utcnow
from shelter.db.enums import NoteVisibility


class Note(Base):
    """
    Polymorphic note on any workflow entity.

    Uses subject_type + subject_id instead of separate FK columns; the
    subject is resolved within the tenant when the note is added.
    """

    __tablename__ = "notes"
    __table_args__ = (
        Index("idx_notes_subject", "organization_id", "subject_type", "subject_id", "created_at"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    organization_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("organizations.id", ondelete="CASCADE"), nullable=False
    )

    # Polymorphic reference
    subject_type: Mapped[str] = mapped_column(String(30), nullable=False)  # SubjectType
    subject_id: Mapped[uuid.UUID] = mapped_column(Uuid, nullable=False)

    author_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="SET NULL"), nullable=True
    )
    visibility: Mapped[str] = mapped_column(
        String(20), default=NoteVisibility.STAFF_ONLY.value, nullable=False
    )
    body: Mapped[str] = mapped_column(Text, nullable=False)
    tags: Mapped[list] = mapped_column(JSONType, default=list, nullable=False)

    created_at: Mapped[datetime] = mapped_column(
        default=utcnow, server_default=func.now(), nullable=False
    )


class Photo(Base):
    """Photo reference (storage is external; only the URL is kept)."""

    __tablename__ = "photos"
    __table_args__ = (
        Index("idx_photos_subject", "organization_id", "subject_type", "subject_id"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    organization_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("organizations.id", ondelete="CASCADE"), nullable=False
    )
    subject_type: Mapped[str] = mapped_column(String(30), nullable=False)
    subject_id: Mapped[uuid.UUID] = mapped_column(Uuid, nullable=False)
    url: Mapped[str] = mapped_column(String(1000), nullable=False)
    caption: Mapped[str | None] = mapped_column(String(500), nullable=True)
    uploaded_by_user_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="SET NULL"), nullable=True
    )
    created_at: Mapped[datetime] = mapped_column(
        default=utcnow, server_default=func.now(), nullable=False
    )
