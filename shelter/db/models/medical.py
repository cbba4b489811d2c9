"""SQLAlchemy ORM models."""

from __future__ import annotations

from typing import TYPE_CHECKING

import uuid
from datetime import date, datetime

from sqlalchemy import Date, ForeignKey, Index, Integer, String, Text, Uuid, func, text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from shelter.db.base import Base, utcnow, write_once
from shelter.db.enums import MedicalTaskStatus, MedicalTaskType

if TYPE_CHECKING:
    from shelter.db.models import Animal, User


class MedicalTask(Base):
    """
    Scheduled medical care for one animal.

    COMPLETED and CANCELLED are terminal. Overdue/due-today is never
    stored; it is derived from due_date at read time.
    """

    __tablename__ = "medical_tasks"
    __table_args__ = (
        Index("idx_medical_tasks_org_status", "organization_id", "status"),
        Index("idx_medical_tasks_animal", "animal_id", "due_date"),
        Index(
            "idx_medical_tasks_open_due",
            "organization_id",
            "due_date",
            postgresql_where=text("status NOT IN ('completed', 'cancelled')"),
        ),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    organization_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("organizations.id", ondelete="CASCADE"), nullable=False
    )
    animal_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("animals.id", ondelete="CASCADE"), nullable=False
    )

    type: Mapped[str] = mapped_column(
        String(20), default=MedicalTaskType.OTHER.value, nullable=False
    )
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    due_date: Mapped[date] = mapped_column(Date, nullable=False)

    assigned_to_user_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="SET NULL"), nullable=True
    )
    created_by_user_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="SET NULL"), nullable=True
    )

    status: Mapped[str] = mapped_column(
        String(20), default=MedicalTaskStatus.SCHEDULED.value, nullable=False
    )
    completed_at: Mapped[datetime | None] = mapped_column(nullable=True)
    completed_on: Mapped[date | None] = mapped_column(Date, nullable=True)
    completed_by_user_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="SET NULL"), nullable=True
    )

    # Recurrence chain
    follow_up_of_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid, ForeignKey("medical_tasks.id", ondelete="SET NULL"), nullable=True
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
    assigned_to: Mapped["User | None"] = relationship(foreign_keys=[assigned_to_user_id])
    completed_by: Mapped["User | None"] = relationship(foreign_keys=[completed_by_user_id])

    @property
    def is_terminal(self) -> bool:
        return MedicalTaskStatus(self.status).is_terminal


class MedicalRecord(Base):
    """
    Immutable record of care actually given.

    Created when a task completes (snapshot of the task) or by direct
    treatment entry.
    """

    __tablename__ = "medical_records"
    __table_args__ = (
        Index("idx_medical_records_animal", "animal_id", "date_given"),
        Index("idx_medical_records_org", "organization_id", "date_given"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    organization_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("organizations.id", ondelete="CASCADE"), nullable=False
    )
    animal_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("animals.id", ondelete="CASCADE"), nullable=False
    )
    task_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid, ForeignKey("medical_tasks.id", ondelete="SET NULL"), nullable=True
    )

    type: Mapped[str] = mapped_column(String(20), nullable=False)  # MedicalTaskType
    title: Mapped[str | None] = mapped_column(String(255), nullable=True)
    product: Mapped[str | None] = mapped_column(String(255), nullable=True)
    dose: Mapped[str | None] = mapped_column(String(100), nullable=True)
    route: Mapped[str | None] = mapped_column(String(50), nullable=True)
    date_given: Mapped[date] = mapped_column(Date, nullable=False)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    recorded_by_user_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="SET NULL"), nullable=True
    )
    created_at: Mapped[datetime] = mapped_column(
        default=utcnow, server_default=func.now(), nullable=False
    )


write_once(MedicalRecord)
