"""Enum definitions for application constants."""

from shelter.db.enums.animals import (
    LIVE_OUTCOMES,
    OUTCOME_FOR_STATUS,
    TERMINAL_ANIMAL_STATUSES,
    AnimalStatus,
    IntakeType,
    LocationType,
    OutcomeType,
    Species,
)
from shelter.db.enums.applications import (
    DECIDED_APPLICATION_STATUSES,
    ApplicationKind,
    ApplicationStatus,
    FosterStatus,
    PersonType,
)
from shelter.db.enums.audit import AuditEventType
from shelter.db.enums.auth import ROLE_RANK, Role
from shelter.db.enums.medical import (
    TERMINAL_TASK_STATUSES,
    MedicalTaskStatus,
    MedicalTaskType,
    TaskClassification,
)
from shelter.db.enums.notes import NoteVisibility, SubjectType

__all__ = [
    "AnimalStatus",
    "ApplicationKind",
    "ApplicationStatus",
    "AuditEventType",
    "DECIDED_APPLICATION_STATUSES",
    "FosterStatus",
    "IntakeType",
    "LIVE_OUTCOMES",
    "LocationType",
    "MedicalTaskStatus",
    "MedicalTaskType",
    "NoteVisibility",
    "OUTCOME_FOR_STATUS",
    "OutcomeType",
    "PersonType",
    "ROLE_RANK",
    "Role",
    "Species",
    "SubjectType",
    "TERMINAL_ANIMAL_STATUSES",
    "TERMINAL_TASK_STATUSES",
    "TaskClassification",
]
