"""Pydantic schemas for medical tasks and records."""

from datetime import date, datetime
from uuid import UUID

from pydantic import BaseModel, Field, TypeAdapter, model_validator

from shelter.db.enums import MedicalTaskStatus, MedicalTaskType, TaskClassification


class RecurrenceRule(BaseModel):
    """Follow-up interval for one task type (months and/or days)."""
    months: int = Field(0, ge=0, le=120)
    days: int = Field(0, ge=0, le=3650)

    @model_validator(mode="after")
    def _non_zero(self) -> "RecurrenceRule":
        if self.months == 0 and self.days == 0:
            raise ValueError("Recurrence interval must be positive")
        return self


# Organization override: {"vaccine": {"months": 12}, "exam": null, ...}
RECURRENCE_OVERRIDES_ADAPTER = TypeAdapter(dict[MedicalTaskType, RecurrenceRule | None])


class RecordDetails(BaseModel):
    """What was actually given, captured on completion or direct entry."""
    product: str | None = Field(None, max_length=255)
    dose: str | None = Field(None, max_length=100)
    route: str | None = Field(None, max_length=50)
    notes: str | None = Field(None, max_length=4000)


class MedicalTaskCreate(BaseModel):
    """Request to schedule a medical task."""
    animal_id: UUID
    type: MedicalTaskType
    due_date: date
    title: str | None = Field(None, min_length=1, max_length=255)
    notes: str | None = Field(None, max_length=4000)
    assigned_to_user_id: UUID | None = None


class MedicalTaskComplete(RecordDetails):
    completed_on: date | None = None
    schedule_follow_up: bool = True
    expected_version: int | None = None


class MedicalTaskStatusChange(BaseModel):
    status: MedicalTaskStatus
    expected_version: int | None = None


class MedicalTaskReassign(BaseModel):
    assigned_to_user_id: UUID | None
    expected_version: int | None = None


class MedicalTaskReschedule(BaseModel):
    due_date: date
    expected_version: int | None = None


class BatchCompleteRequest(BaseModel):
    task_ids: list[UUID] = Field(..., min_length=1, max_length=500)
    completed_on: date | None = None


class BatchFailure(BaseModel):
    task_id: UUID
    reason: str


class BatchCompleteResponse(BaseModel):
    updated: int
    completed_ids: list[UUID]
    failures: list[BatchFailure]


class MedicalTaskRead(BaseModel):
    """Full task response; classification is computed at read time."""
    id: UUID
    animal_id: UUID
    type: MedicalTaskType
    title: str
    notes: str | None
    due_date: date
    status: MedicalTaskStatus
    classification: TaskClassification | None = None
    assigned_to_user_id: UUID | None
    completed_at: datetime | None
    completed_on: date | None
    completed_by_user_id: UUID | None
    follow_up_of_id: UUID | None
    version: int
    created_at: datetime

    model_config = {"from_attributes": True}


class MedicalTaskListResponse(BaseModel):
    """Paginated task list."""
    items: list[MedicalTaskRead]
    total: int
    page: int
    per_page: int
    pages: int


class MedicalRecordCreate(RecordDetails):
    """Direct treatment entry (no scheduled task)."""
    animal_id: UUID
    type: MedicalTaskType
    date_given: date
    title: str | None = Field(None, max_length=255)


class MedicalRecordRead(BaseModel):
    id: UUID
    animal_id: UUID
    task_id: UUID | None
    type: MedicalTaskType
    title: str | None
    product: str | None
    dose: str | None
    route: str | None
    date_given: date
    notes: str | None
    recorded_by_user_id: UUID | None
    created_at: datetime

    model_config = {"from_attributes": True}


class CompletionRead(BaseModel):
    task: MedicalTaskRead
    record: MedicalRecordRead
    follow_up: MedicalTaskRead | None = None


class ComplianceReportRead(BaseModel):
    start: date
    end: date
    as_of: date
    total_due: int
    completed: int
    missed: int
    pending: int
    cancelled: int
    compliance_rate: float
