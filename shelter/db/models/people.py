"""SQLAlchemy ORM models."""

from __future__ import annotations

from typing import TYPE_CHECKING

import uuid
from datetime import date, datetime

from sqlalchemy import (
    CheckConstraint,
    Date,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    Uuid,
    func,
    text,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from shelter.db.base import Base, JSONType, utcnow
from shelter.db.enums import ApplicationStatus, FosterStatus, PersonType

if TYPE_CHECKING:
    from shelter.db.models import Animal


class Person(Base):
    """
    External contact: adopter, foster, volunteer, donor or staff.

    Flags is a typed key/value map (do_not_adopt, ...).
    """

    __tablename__ = "people"
    __table_args__ = (
        Index("idx_people_org_type", "organization_id", "type"),
        Index("idx_people_org_email", "organization_id", "email"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    organization_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("organizations.id", ondelete="CASCADE"), nullable=False
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    email: Mapped[str | None] = mapped_column(String(255), nullable=True)
    phone: Mapped[str | None] = mapped_column(String(50), nullable=True)
    type: Mapped[str] = mapped_column(
        String(20), default=PersonType.ADOPTER.value, nullable=False
    )
    flags: Mapped[dict] = mapped_column(JSONType, default=dict, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        default=utcnow, server_default=func.now(), nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        default=utcnow, server_default=func.now(), onupdate=utcnow, nullable=False
    )

    @property
    def do_not_adopt(self) -> bool:
        return bool((self.flags or {}).get("do_not_adopt"))


class Application(Base):
    """
    Adoption or foster application for one animal by one person.

    Decided statuses (approved, denied, withdrawn) never revert.
    """

    __tablename__ = "applications"
    __table_args__ = (
        Index("idx_applications_org_status", "organization_id", "status"),
        Index("idx_applications_animal", "animal_id"),
        Index("idx_applications_person", "person_id"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    organization_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("organizations.id", ondelete="CASCADE"), nullable=False
    )
    animal_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("animals.id", ondelete="CASCADE"), nullable=False
    )
    person_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("people.id", ondelete="CASCADE"), nullable=False
    )
    kind: Mapped[str] = mapped_column(String(20), nullable=False)  # ApplicationKind
    status: Mapped[str] = mapped_column(
        String(20), default=ApplicationStatus.RECEIVED.value, nullable=False
    )
    form: Mapped[dict] = mapped_column(JSONType, default=dict, nullable=False)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    submitted_at: Mapped[datetime] = mapped_column(default=utcnow, nullable=False)
    decided_at: Mapped[datetime | None] = mapped_column(nullable=True)
    decided_by_user_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="SET NULL"), nullable=True
    )

    version: Mapped[int] = mapped_column(Integer, default=1, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        default=utcnow, server_default=func.now(), nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        default=utcnow, server_default=func.now(), onupdate=utcnow, nullable=False
    )

    __mapper_args__ = {"version_id_col": version}

    animal: Mapped["Animal"] = relationship()
    person: Mapped["Person"] = relationship()


class FosterAssignment(Base):
    """
    Placement of an animal with a foster person.

    At most one ACTIVE assignment per animal (partial unique index).
    """

    __tablename__ = "foster_assignments"
    __table_args__ = (
        Index(
            "uq_foster_active_animal",
            "animal_id",
            unique=True,
            postgresql_where=text("status = 'active'"),
            sqlite_where=text("status = 'active'"),
        ),
        Index("idx_foster_org_status", "organization_id", "status"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    organization_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("organizations.id", ondelete="CASCADE"), nullable=False
    )
    animal_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("animals.id", ondelete="CASCADE"), nullable=False
    )
    person_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("people.id", ondelete="CASCADE"), nullable=False
    )
    application_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid, ForeignKey("applications.id", ondelete="SET NULL"), nullable=True
    )
    status: Mapped[str] = mapped_column(
        String(20), default=FosterStatus.ACTIVE.value, nullable=False
    )
    start_date: Mapped[date] = mapped_column(Date, nullable=False)
    end_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    version: Mapped[int] = mapped_column(Integer, default=1, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        default=utcnow, server_default=func.now(), nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        default=utcnow, server_default=func.now(), onupdate=utcnow, nullable=False
    )

    __mapper_args__ = {"version_id_col": version}

    animal: Mapped["Animal"] = relationship()
    person: Mapped["Person"] = relationship()


class Adoption(Base):
    """Finalized adoption. One per animal, one per application."""

    __tablename__ = "adoptions"
    __table_args__ = (
        CheckConstraint("fee_cents >= 0", name="ck_adoption_fee_nonneg"),
        CheckConstraint("donation_cents >= 0", name="ck_adoption_donation_nonneg"),
        Index("idx_adoptions_org_date", "organization_id", "adoption_date"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    organization_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("organizations.id", ondelete="CASCADE"), nullable=False
    )
    animal_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("animals.id", ondelete="CASCADE"), unique=True, nullable=False
    )
    adopter_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("people.id", ondelete="CASCADE"), nullable=False
    )
    application_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid, ForeignKey("applications.id", ondelete="SET NULL"), unique=True, nullable=True
    )
    adoption_date: Mapped[date] = mapped_column(Date, nullable=False)
    fee_cents: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    donation_cents: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    contract_url: Mapped[str | None] = mapped_column(String(500), nullable=True)
    payment_reference: Mapped[str | None] = mapped_column(String(255), nullable=True)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    finalized_by_user_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="SET NULL"), nullable=True
    )
    created_at: Mapped[datetime] = mapped_column(
        default=utcnow, server_default=func.now(), nullable=False
    )

    animal: Mapped["Animal"] = relationship()
    adopter: Mapped["Person"] = relationship()
