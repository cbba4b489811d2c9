"""Medical compliance service - scheduled care, completion, recurrence, compliance.

Nothing here runs on a timer: overdue / due-today are classifications
computed from (status, due_date) against the caller's reference date, never
stored. Completing a task writes an immutable MedicalRecord and, when the
task type recurs, schedules the follow-up task.
"""

import calendar
import logging
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta, timezone
from typing import Any
from uuid import UUID

from pydantic import ValidationError
from sqlalchemy import func
from sqlalchemy.orm import Session

from shelter.core.errors import (
    AlreadyTerminal,
    InvalidTransition,
    ShelterError,
    UnknownEntity,
    check_version,
)
from shelter.core.transitions import can_transition_task
from shelter.db.enums import (
    TERMINAL_TASK_STATUSES,
    AuditEventType,
    MedicalTaskStatus,
    MedicalTaskType,
    TaskClassification,
)
from shelter.db.models import Animal, MedicalRecord, MedicalTask, Organization
from shelter.db.transaction import atomic
from shelter.schemas.medical import RECURRENCE_OVERRIDES_ADAPTER, RecordDetails, RecurrenceRule
from shelter.services import audit_service, membership_service, org_service
from shelter.services.tenant_scope import get_in_org, lock
from shelter.utils.pagination import PaginationParams, paginate_query


logger = logging.getLogger(__name__)

# Standard follow-up intervals; organizations override per type via
# settings["medical_recurrence"].
DEFAULT_RECURRENCE: dict[MedicalTaskType, RecurrenceRule | None] = {
    MedicalTaskType.VACCINE: RecurrenceRule(months=12),
    MedicalTaskType.CHECKUP: RecurrenceRule(months=6),
    MedicalTaskType.EXAM: RecurrenceRule(months=3),
    MedicalTaskType.TREATMENT: RecurrenceRule(days=7),
    MedicalTaskType.SURGERY: RecurrenceRule(days=30),
    MedicalTaskType.OTHER: RecurrenceRule(days=30),
}

TASK_AUDIT_FIELDS = ("status", "due_date", "assigned_to_user_id")
_OPEN_STATUSES = [s.value for s in MedicalTaskStatus if s not in TERMINAL_TASK_STATUSES]


@dataclass
class CompletionResult:
    task: MedicalTask
    record: MedicalRecord
    follow_up: MedicalTask | None = None


@dataclass
class BatchCompleteResult:
    completed_ids: list[UUID] = field(default_factory=list)
    failures: list[dict[str, Any]] = field(default_factory=list)

    @property
    def updated(self) -> int:
        return len(self.completed_ids)


@dataclass
class ComplianceReport:
    start: date
    end: date
    as_of: date
    total_due: int
    completed: int
    missed: int
    pending: int
    cancelled: int

    @property
    def compliance_rate(self) -> float:
        """Completed / (completed + missed) as a percentage; 100.0 with nothing due."""
        denominator = self.completed + self.missed
        if denominator == 0:
            return 100.0
        return round(self.completed / denominator * 100, 1)


# =============================================================================
# Recurrence policy
# =============================================================================


def recurrence_policy(org: Organization | None) -> dict[MedicalTaskType, RecurrenceRule | None]:
    """Default intervals merged with the organization's overrides."""
    policy = dict(DEFAULT_RECURRENCE)
    overrides = (org.settings or {}).get("medical_recurrence") if org else None
    if overrides:
        try:
            policy.update(RECURRENCE_OVERRIDES_ADAPTER.validate_python(overrides))
        except ValidationError:
            logger.warning("Ignoring malformed medical_recurrence settings org=%s", org.id)
    return policy


def add_months(value: date, months: int) -> date:
    """Calendar month arithmetic, clamped to the last day of the target month."""
    month_index = value.month - 1 + months
    year = value.year + month_index // 12
    month = month_index % 12 + 1
    day = min(value.day, calendar.monthrange(year, month)[1])
    return date(year, month, day)


def next_due_date(completed_on: date, rule: RecurrenceRule) -> date:
    return add_months(completed_on, rule.months) + timedelta(days=rule.days)


# =============================================================================
# Classification
# =============================================================================


def _as_date(as_of: date | datetime) -> date:
    if isinstance(as_of, datetime):
        return as_of.date()
    return as_of


def classify(task: MedicalTask, as_of: date | datetime) -> TaskClassification:
    """
    Classify a task against a reference date. Pure: reads, never writes.

    Date-only comparison: a task due today is never overdue, whatever
    the time of day.
    """
    status = MedicalTaskStatus(task.status)
    if status == MedicalTaskStatus.COMPLETED:
        return TaskClassification.COMPLETED
    if status == MedicalTaskStatus.CANCELLED:
        return TaskClassification.CANCELLED

    today = _as_date(as_of)
    if task.due_date < today:
        return TaskClassification.OVERDUE
    if task.due_date == today:
        return TaskClassification.DUE_TODAY
    return TaskClassification.UPCOMING


def _classification_filter(query, classification: TaskClassification, as_of: date):
    classification = TaskClassification(classification)
    if classification == TaskClassification.COMPLETED:
        return query.filter(MedicalTask.status == MedicalTaskStatus.COMPLETED.value)
    if classification == TaskClassification.CANCELLED:
        return query.filter(MedicalTask.status == MedicalTaskStatus.CANCELLED.value)

    query = query.filter(MedicalTask.status.in_(_OPEN_STATUSES))
    if classification == TaskClassification.OVERDUE:
        return query.filter(MedicalTask.due_date < as_of)
    if classification == TaskClassification.DUE_TODAY:
        return query.filter(MedicalTask.due_date == as_of)
    return query.filter(MedicalTask.due_date > as_of)


# =============================================================================
# Lookups
# =============================================================================


def get_task(db: Session, org_id: UUID, task_id: UUID) -> MedicalTask:
    """Get task by ID (org-scoped). Raises UnknownEntity."""
    return get_in_org(db, MedicalTask, org_id, task_id, "medical_task")


def list_tasks(
    db: Session,
    org_id: UUID,
    *,
    animal_id: UUID | None = None,
    status: MedicalTaskStatus | None = None,
    task_type: MedicalTaskType | None = None,
    assigned_to_user_id: UUID | None = None,
    classification: TaskClassification | None = None,
    as_of: date | datetime | None = None,
    due_before: date | None = None,
    due_after: date | None = None,
    pagination: PaginationParams | None = None,
) -> tuple[list[MedicalTask], int]:
    """
    List tasks with filters and pagination.

    ``classification`` is evaluated at query time against ``as_of``
    (default: today in UTC).

    Returns:
        (tasks, total_count)
    """
    query = db.query(MedicalTask).filter(MedicalTask.organization_id == org_id)

    if animal_id:
        query = query.filter(MedicalTask.animal_id == animal_id)
    if status:
        query = query.filter(MedicalTask.status == MedicalTaskStatus(status).value)
    if task_type:
        query = query.filter(MedicalTask.type == MedicalTaskType(task_type).value)
    if assigned_to_user_id:
        query = query.filter(MedicalTask.assigned_to_user_id == assigned_to_user_id)
    if classification:
        reference = _as_date(as_of) if as_of else datetime.now(timezone.utc).date()
        query = _classification_filter(query, classification, reference)
    if due_before:
        query = query.filter(MedicalTask.due_date <= due_before)
    if due_after:
        query = query.filter(MedicalTask.due_date >= due_after)

    query = query.order_by(MedicalTask.due_date.asc(), MedicalTask.created_at.asc())
    return paginate_query(query, pagination)


def count_by_classification(
    db: Session,
    org_id: UUID,
    classification: TaskClassification,
    as_of: date | datetime,
) -> int:
    query = db.query(func.count(MedicalTask.id)).filter(MedicalTask.organization_id == org_id)
    return _classification_filter(query, classification, _as_date(as_of)).scalar() or 0


def list_records(
    db: Session,
    org_id: UUID,
    *,
    animal_id: UUID | None = None,
    pagination: PaginationParams | None = None,
) -> tuple[list[MedicalRecord], int]:
    query = db.query(MedicalRecord).filter(MedicalRecord.organization_id == org_id)
    if animal_id:
        query = query.filter(MedicalRecord.animal_id == animal_id)
    query = query.order_by(MedicalRecord.date_given.desc(), MedicalRecord.created_at.desc())
    return paginate_query(query, pagination)


# =============================================================================
# Scheduling
# =============================================================================


def _validate_assignee(db: Session, org_id: UUID, user_id: UUID | None) -> None:
    if user_id is None:
        return
    if membership_service.get_membership_for_org(db, org_id, user_id) is None:
        raise UnknownEntity("user", user_id)


def _default_title(task_type: MedicalTaskType) -> str:
    return MedicalTaskType(task_type).value.replace("_", " ").capitalize()


def create_task(
    db: Session,
    org_id: UUID,
    actor_id: UUID | None,
    animal_id: UUID,
    type: MedicalTaskType,
    due_date: date,
    assigned_to: UUID | None = None,
    title: str | None = None,
    notes: str | None = None,
) -> MedicalTask:
    """
    Schedule a task in ``scheduled``.

    Raises:
        UnknownEntity: animal or assignee not in this organization
        AlreadyTerminal: animal already has an outcome
    """
    animal = get_in_org(db, Animal, org_id, animal_id, "animal")
    if animal.is_terminal:
        raise AlreadyTerminal(f"Animal is {animal.status}; no new care can be scheduled")
    _validate_assignee(db, org_id, assigned_to)

    task_type = MedicalTaskType(type)
    task = MedicalTask(
        organization_id=org_id,
        animal_id=animal_id,
        type=task_type.value,
        title=(title or _default_title(task_type)).strip(),
        notes=notes,
        due_date=due_date,
        assigned_to_user_id=assigned_to,
        created_by_user_id=actor_id,
        status=MedicalTaskStatus.SCHEDULED.value,
    )
    with atomic(db):
        db.add(task)
        db.flush()
        _log_task_created(db, task, actor_id)

    logger.info("Medical task created org=%s task=%s type=%s", org_id, task.id, task.type)
    return task


def _log_task_created(db: Session, task: MedicalTask, actor_id: UUID | None) -> None:
    audit_service.log_event(
        db,
        org_id=task.organization_id,
        event_type=AuditEventType.MEDICAL_TASK_CREATED,
        actor_user_id=actor_id,
        target_type="medical_task",
        target_id=task.id,
        details={
            "animal_id": task.animal_id,
            "follow_up_of_id": task.follow_up_of_id,
            "after": audit_service.snapshot(task, ("type", *TASK_AUDIT_FIELDS)),
        },
    )


# =============================================================================
# Completion
# =============================================================================


def complete_task(
    db: Session,
    task: MedicalTask,
    completed_by: UUID | None,
    *,
    completed_on: date | None = None,
    schedule_follow_up: bool = True,
    record: RecordDetails | dict[str, Any] | None = None,
    expected_version: int | None = None,
) -> CompletionResult:
    """
    Complete a task, snapshot it as a MedicalRecord and schedule its follow-up.

    ``completed_on`` defaults to today in the organization's timezone. The
    follow-up is due ``completed_on + interval(type)``; no follow-up is made
    when the type has no interval or the animal has left care.

    Raises:
        AlreadyTerminal: task already completed or cancelled (nothing changes)
        ConcurrentModification: expected_version mismatch or stale write
    """
    details = RecordDetails.model_validate(record or {})

    with atomic(db):
        task = lock(db, task, "medical_task")
        check_version(task.version, expected_version)
        if task.is_terminal:
            raise AlreadyTerminal(f"Medical task is already {task.status}")

        org = org_service.get_org(db, task.organization_id)
        completed_on = completed_on or org_service.org_today(org)
        before = audit_service.snapshot(task, TASK_AUDIT_FIELDS)

        task.status = MedicalTaskStatus.COMPLETED.value
        task.completed_at = datetime.now(timezone.utc)
        task.completed_on = completed_on
        task.completed_by_user_id = completed_by
        db.flush()

        audit_service.log_event(
            db,
            org_id=task.organization_id,
            event_type=AuditEventType.MEDICAL_TASK_COMPLETED,
            actor_user_id=completed_by,
            target_type="medical_task",
            target_id=task.id,
            details={
                "before": before,
                "after": audit_service.snapshot(task, (*TASK_AUDIT_FIELDS, "completed_on")),
            },
        )

        medical_record = _add_record(
            db,
            org_id=task.organization_id,
            animal_id=task.animal_id,
            task_id=task.id,
            task_type=MedicalTaskType(task.type),
            title=task.title,
            date_given=completed_on,
            details=details,
            actor_id=completed_by,
        )

        follow_up = None
        if schedule_follow_up:
            follow_up = _schedule_follow_up(db, org, task, completed_on, completed_by)

    logger.info(
        "Medical task completed org=%s task=%s follow_up=%s",
        task.organization_id,
        task.id,
        follow_up.id if follow_up else None,
    )
    return CompletionResult(task=task, record=medical_record, follow_up=follow_up)


def _schedule_follow_up(
    db: Session,
    org: Organization,
    task: MedicalTask,
    completed_on: date,
    actor_id: UUID | None,
) -> MedicalTask | None:
    rule = recurrence_policy(org).get(MedicalTaskType(task.type))
    if rule is None:
        return None
    animal = get_in_org(db, Animal, task.organization_id, task.animal_id, "animal")
    if animal.is_terminal:
        return None

    follow_up = MedicalTask(
        organization_id=task.organization_id,
        animal_id=task.animal_id,
        type=task.type,
        title=task.title,
        due_date=next_due_date(completed_on, rule),
        assigned_to_user_id=task.assigned_to_user_id,
        created_by_user_id=actor_id,
        status=MedicalTaskStatus.SCHEDULED.value,
        follow_up_of_id=task.id,
    )
    db.add(follow_up)
    db.flush()
    _log_task_created(db, follow_up, actor_id)
    return follow_up


def _add_record(
    db: Session,
    *,
    org_id: UUID,
    animal_id: UUID,
    task_id: UUID | None,
    task_type: MedicalTaskType,
    title: str | None,
    date_given: date,
    details: RecordDetails,
    actor_id: UUID | None,
) -> MedicalRecord:
    medical_record = MedicalRecord(
        organization_id=org_id,
        animal_id=animal_id,
        task_id=task_id,
        type=task_type.value,
        title=title,
        product=details.product,
        dose=details.dose,
        route=details.route,
        notes=details.notes,
        date_given=date_given,
        recorded_by_user_id=actor_id,
    )
    db.add(medical_record)
    db.flush()
    audit_service.log_event(
        db,
        org_id=org_id,
        event_type=AuditEventType.MEDICAL_RECORD_CREATED,
        actor_user_id=actor_id,
        target_type="medical_record",
        target_id=medical_record.id,
        details={
            "animal_id": animal_id,
            "task_id": task_id,
            "after": audit_service.snapshot(medical_record, ("type", "date_given", "product")),
        },
    )
    return medical_record


def record_treatment(
    db: Session,
    org_id: UUID,
    actor_id: UUID | None,
    animal_id: UUID,
    type: MedicalTaskType,
    date_given: date,
    *,
    title: str | None = None,
    record: RecordDetails | dict[str, Any] | None = None,
) -> MedicalRecord:
    """Direct staff entry of care given outside any scheduled task."""
    get_in_org(db, Animal, org_id, animal_id, "animal")
    details = RecordDetails.model_validate(record or {})
    with atomic(db):
        medical_record = _add_record(
            db,
            org_id=org_id,
            animal_id=animal_id,
            task_id=None,
            task_type=MedicalTaskType(type),
            title=title,
            date_given=date_given,
            details=details,
            actor_id=actor_id,
        )
    return medical_record


def batch_complete(
    db: Session,
    org_id: UUID,
    task_ids: list[UUID],
    completed_by: UUID | None,
    completed_on: date | None = None,
) -> BatchCompleteResult:
    """
    Complete several tasks, each in its own transaction.

    Not atomic: a failing task is reported in ``failures`` with its error
    code and never rolls back tasks completed before it. Duplicate ids are
    processed once.
    """
    result = BatchCompleteResult()
    for task_id in dict.fromkeys(task_ids):
        try:
            task = get_task(db, org_id, task_id)
            complete_task(db, task, completed_by, completed_on=completed_on)
        except ShelterError as exc:
            result.failures.append({"task_id": task_id, "reason": exc.code})
            continue
        result.completed_ids.append(task_id)

    logger.info(
        "Batch complete org=%s updated=%s failed=%s",
        org_id,
        result.updated,
        len(result.failures),
    )
    return result


# =============================================================================
# Status, assignment and schedule changes
# =============================================================================


def _update_task(
    db: Session,
    task: MedicalTask,
    actor_id: UUID | None,
    event_type: AuditEventType,
    expected_version: int | None,
    apply,
) -> MedicalTask:
    with atomic(db):
        task = lock(db, task, "medical_task")
        check_version(task.version, expected_version)
        if task.is_terminal:
            raise AlreadyTerminal(f"Medical task is already {task.status}")

        before = audit_service.snapshot(task, TASK_AUDIT_FIELDS)
        apply(task)
        after = audit_service.snapshot(task, TASK_AUDIT_FIELDS)
        db.flush()
        audit_service.log_event(
            db,
            org_id=task.organization_id,
            event_type=event_type,
            actor_user_id=actor_id,
            target_type="medical_task",
            target_id=task.id,
            details=audit_service.change_details(before, after),
        )
    return task


def change_task_status(
    db: Session,
    task: MedicalTask,
    new_status: MedicalTaskStatus,
    actor_id: UUID | None,
    expected_version: int | None = None,
) -> MedicalTask:
    """
    Move a task along a non-completion edge (e.g. scheduled -> in_progress).

    Raises:
        AlreadyTerminal: task is completed or cancelled
        InvalidTransition: edge not allowed; completion goes through complete_task
    """
    target = MedicalTaskStatus(new_status)

    def apply(locked: MedicalTask) -> None:
        current = MedicalTaskStatus(locked.status)
        if target == MedicalTaskStatus.COMPLETED:
            raise InvalidTransition(
                "medical_task",
                current.value,
                target.value,
                message="Complete the task to record the care given",
            )
        if not can_transition_task(current, target):
            raise InvalidTransition("medical_task", current.value, target.value)
        locked.status = target.value

    return _update_task(
        db, task, actor_id, AuditEventType.MEDICAL_TASK_STATUS_CHANGED, expected_version, apply
    )


def reassign_task(
    db: Session,
    task: MedicalTask,
    actor_id: UUID | None,
    assigned_to: UUID | None,
    expected_version: int | None = None,
) -> MedicalTask:
    """Raises UnknownEntity when the assignee is not a member of the organization."""
    _validate_assignee(db, task.organization_id, assigned_to)

    def apply(locked: MedicalTask) -> None:
        locked.assigned_to_user_id = assigned_to

    return _update_task(
        db, task, actor_id, AuditEventType.MEDICAL_TASK_UPDATED, expected_version, apply
    )


def reschedule_task(
    db: Session,
    task: MedicalTask,
    actor_id: UUID | None,
    due_date: date,
    expected_version: int | None = None,
) -> MedicalTask:
    def apply(locked: MedicalTask) -> None:
        locked.due_date = due_date

    return _update_task(
        db, task, actor_id, AuditEventType.MEDICAL_TASK_UPDATED, expected_version, apply
    )


# =============================================================================
# Compliance
# =============================================================================


def compliance_report(
    db: Session,
    org_id: UUID,
    start: date,
    end: date,
    as_of: date | datetime,
) -> ComplianceReport:
    """
    Compliance over tasks due in [start, end], computed at query time.

    missed = neither completed nor cancelled, and due before as_of.
    """
    reference = _as_date(as_of)
    rows = (
        db.query(MedicalTask.status, MedicalTask.due_date)
        .filter(
            MedicalTask.organization_id == org_id,
            MedicalTask.due_date >= start,
            MedicalTask.due_date <= end,
        )
        .all()
    )

    completed = missed = pending = cancelled = 0
    for status, due_date in rows:
        if status == MedicalTaskStatus.COMPLETED.value:
            completed += 1
        elif status == MedicalTaskStatus.CANCELLED.value:
            cancelled += 1
        elif due_date < reference:
            missed += 1
        else:
            pending += 1

    return ComplianceReport(
        start=start,
        end=end,
        as_of=reference,
        total_due=len(rows),
        completed=completed,
        missed=missed,
        pending=pending,
        cancelled=cancelled,
    )
