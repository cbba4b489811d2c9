"""SQLAlchemy ORM models."""

from __future__ import annotations

import uuid
from datetime import date, datetime

from sqlalchemy import (
    Boolean,
    Date,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
    Uuid,
    func,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from shelter.db.base import Base, JSONType, utcnow, write_once
from shelter.db.enums import AnimalStatus, LocationType


# =============================================================================
# Housing
# =============================================================================


class Location(Base):
    """Physical site (shelter building, clinic, storage) owned by a tenant."""

    __tablename__ = "locations"
    __table_args__ = (
        UniqueConstraint("organization_id", "name", name="uq_location_org_name"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    organization_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("organizations.id", ondelete="CASCADE"), nullable=False
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    type: Mapped[str] = mapped_column(
        String(20), default=LocationType.SHELTER.value, nullable=False
    )
    created_at: Mapped[datetime] = mapped_column(
        default=utcnow, server_default=func.now(), nullable=False
    )

    kennels: Mapped[list["Kennel"]] = relationship(back_populates="location")


class Kennel(Base):
    __tablename__ = "kennels"
    __table_args__ = (
        UniqueConstraint("organization_id", "code", name="uq_kennel_org_code"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    organization_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("organizations.id", ondelete="CASCADE"), nullable=False
    )
    location_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid, ForeignKey("locations.id", ondelete="SET NULL"), nullable=True
    )
    code: Mapped[str] = mapped_column(String(50), nullable=False)
    size: Mapped[str | None] = mapped_column(String(20), nullable=True)
    species: Mapped[str | None] = mapped_column(String(20), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        default=utcnow, server_default=func.now(), nullable=False
    )

    location: Mapped["Location | None"] = relationship(back_populates="kennels")


# =============================================================================
# Animals
# =============================================================================


class Animal(Base):
    """
    An animal in the shelter's care (or formerly in care).

    Status follows the lifecycle state machine; terminal statuses always
    have exactly one Outcome. Animals are never hard-deleted.
    """

    __tablename__ = "animals"
    __table_args__ = (
        Index("idx_animals_org_status", "organization_id", "status"),
        Index("idx_animals_org_species", "organization_id", "species"),
        Index("idx_animals_org_intake", "organization_id", "intake_date"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    organization_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("organizations.id", ondelete="CASCADE"), nullable=False
    )

    name: Mapped[str] = mapped_column(String(255), nullable=False)
    species: Mapped[str] = mapped_column(String(20), nullable=False)  # Species
    breed: Mapped[str | None] = mapped_column(String(255), nullable=True)
    sex: Mapped[str | None] = mapped_column(String(20), nullable=True)
    color: Mapped[str | None] = mapped_column(String(100), nullable=True)
    microchip: Mapped[str | None] = mapped_column(String(50), nullable=True)

    status: Mapped[str] = mapped_column(
        String(30), default=AnimalStatus.AVAILABLE.value, nullable=False
    )
    intake_date: Mapped[date] = mapped_column(Date, nullable=False)

    location_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid, ForeignKey("locations.id", ondelete="SET NULL"), nullable=True
    )
    kennel_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid, ForeignKey("kennels.id", ondelete="SET NULL"), nullable=True
    )

    # Typed key/value map (temperament, weight_lbs, ...)
    attributes: Mapped[dict] = mapped_column(JSONType, default=dict, nullable=False)

    version: Mapped[int] = mapped_column(Integer, default=1, nullable=False)

    created_at: Mapped[datetime] = mapped_column(
        default=utcnow, server_default=func.now(), nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        default=utcnow, server_default=func.now(), onupdate=utcnow, nullable=False
    )

    __mapper_args__ = {"version_id_col": version}

    intake: Mapped["Intake | None"] = relationship(back_populates="animal", uselist=False)
    outcome: Mapped["Outcome | None"] = relationship(back_populates="animal", uselist=False)
    location: Mapped["Location | None"] = relationship()
    kennel: Mapped["Kennel | None"] = relationship()

    @property
    def is_terminal(self) -> bool:
        return AnimalStatus(self.status).is_terminal


class Intake(Base):
    """How an animal arrived. Created with the animal and never modified."""

    __tablename__ = "intakes"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    organization_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("organizations.id", ondelete="CASCADE"), nullable=False
    )
    animal_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("animals.id", ondelete="CASCADE"), unique=True, nullable=False
    )
    type: Mapped[str] = mapped_column(String(30), nullable=False)  # IntakeType
    source: Mapped[dict] = mapped_column(JSONType, default=dict, nullable=False)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    medical_hold: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    intake_date: Mapped[date] = mapped_column(Date, nullable=False)
    created_by_user_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="SET NULL"), nullable=True
    )
    created_at: Mapped[datetime] = mapped_column(
        default=utcnow, server_default=func.now(), nullable=False
    )

    animal: Mapped["Animal"] = relationship(back_populates="intake")


class Outcome(Base):
    """
    Terminal disposition of an animal.

    The unique animal_id guarantees at most one outcome per animal.
    """

    __tablename__ = "outcomes"
    __table_args__ = (
        Index("idx_outcomes_org_date", "organization_id", "outcome_date"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    organization_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("organizations.id", ondelete="CASCADE"), nullable=False
    )
    animal_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("animals.id", ondelete="CASCADE"), unique=True, nullable=False
    )
    type: Mapped[str] = mapped_column(String(30), nullable=False)  # OutcomeType
    outcome_date: Mapped[date] = mapped_column(Date, nullable=False)
    details: Mapped[dict] = mapped_column(JSONType, default=dict, nullable=False)
    recorded_by_user_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="SET NULL"), nullable=True
    )
    created_at: Mapped[datetime] = mapped_column(
        default=utcnow, server_default=func.now(), nullable=False
    )

    animal: Mapped["Animal"] = relationship(back_populates="outcome")


write_once(Intake)
