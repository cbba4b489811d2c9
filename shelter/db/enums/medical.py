"""Medical compliance enums."""

from enum import Enum


class MedicalTaskType(str, Enum):
    """Types of scheduled medical care."""

    VACCINE = "vaccine"
    TREATMENT = "treatment"
    EXAM = "exam"
    SURGERY = "surgery"
    CHECKUP = "checkup"
    OTHER = "other"


class MedicalTaskStatus(str, Enum):
    """
    Medical task status.

    COMPLETED and CANCELLED are terminal; a task in either state is
    never transitioned again.
    """

    SCHEDULED = "scheduled"
    IN_PROGRESS = "in_progress"
    PENDING_REVIEW = "pending_review"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    ON_HOLD = "on_hold"

    @property
    def is_terminal(self) -> bool:
        return self in TERMINAL_TASK_STATUSES


TERMINAL_TASK_STATUSES = frozenset({MedicalTaskStatus.COMPLETED, MedicalTaskStatus.CANCELLED})


class TaskClassification(str, Enum):
    """Read-time classification of a task against a reference date."""

    OVERDUE = "overdue"
    DUE_TODAY = "due_today"
    UPCOMING = "upcoming"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
