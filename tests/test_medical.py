"""Tests for medical scheduling, completion, recurrence and compliance."""

from datetime import date, datetime
from uuid import uuid4

import pytest

from shelter.core.errors import AlreadyTerminal, InvalidTransition, UnknownEntity
from shelter.db.enums import (
    AnimalStatus,
    AuditEventType,
    MedicalTaskStatus,
    MedicalTaskType,
    TaskClassification,
)
from shelter.db.base import ImmutableRowError
from shelter.db.models import AuditLog, MedicalRecord, MedicalTask
from shelter.schemas.medical import RecurrenceRule
from shelter.services import animal_service, medical_service, org_service


def _task(db, org, actor, animal, task_type=MedicalTaskType.VACCINE, due=date(2024, 1, 10), **kwargs):
    return medical_service.create_task(db, org.id, actor.id, animal.id, task_type, due, **kwargs)


# =============================================================================
# Recurrence arithmetic
# =============================================================================

@pytest.mark.parametrize(
    "start,months,expected",
    [
        (date(2024, 1, 10), 12, date(2025, 1, 10)),
        (date(2024, 1, 31), 1, date(2024, 2, 29)),
        (date(2023, 1, 31), 1, date(2023, 2, 28)),
        (date(2024, 12, 15), 1, date(2025, 1, 15)),
        (date(2024, 3, 31), -1, date(2024, 2, 29)),
        (date(2024, 5, 31), 6, date(2024, 11, 30)),
    ],
)
def test_add_months_clamps_to_month_end(start, months, expected):
    assert medical_service.add_months(start, months) == expected


def test_next_due_date_combines_months_and_days():
    rule = RecurrenceRule(months=1, days=3)
    assert medical_service.next_due_date(date(2024, 1, 31), rule) == date(2024, 3, 3)


def test_recurrence_policy_merges_org_overrides(db, test_org, admin_user):
    org = org_service.update_org_settings(
        db,
        test_org.id,
        admin_user.id,
        settings={"medical_recurrence": {"vaccine": {"months": 6}, "exam": None}},
    )

    policy = medical_service.recurrence_policy(org)

    assert policy[MedicalTaskType.VACCINE] == RecurrenceRule(months=6)
    assert policy[MedicalTaskType.EXAM] is None
    assert policy[MedicalTaskType.TREATMENT] == RecurrenceRule(days=7)


# =============================================================================
# Classification
# =============================================================================

def test_classify_against_reference_date():
    task = MedicalTask(status=MedicalTaskStatus.SCHEDULED.value, due_date=date(2024, 3, 1))

    assert medical_service.classify(task, date(2024, 2, 28)) == TaskClassification.UPCOMING
    assert medical_service.classify(task, date(2024, 3, 1)) == TaskClassification.DUE_TODAY
    assert medical_service.classify(task, datetime(2024, 3, 1, 23, 59)) == TaskClassification.DUE_TODAY
    assert medical_service.classify(task, date(2024, 3, 2)) == TaskClassification.OVERDUE
    # Reading never writes
    assert task.status == MedicalTaskStatus.SCHEDULED.value


@pytest.mark.parametrize(
    "status,expected",
    [
        (MedicalTaskStatus.COMPLETED, TaskClassification.COMPLETED),
        (MedicalTaskStatus.CANCELLED, TaskClassification.CANCELLED),
        (MedicalTaskStatus.ON_HOLD, TaskClassification.OVERDUE),
        (MedicalTaskStatus.IN_PROGRESS, TaskClassification.OVERDUE),
    ],
)
def test_classify_by_status(status, expected):
    task = MedicalTask(status=status.value, due_date=date(2020, 1, 1))
    assert medical_service.classify(task, date(2024, 1, 1)) == expected


def test_list_tasks_by_classification(db, test_org, staff_user, make_animal):
    animal = make_animal()
    overdue = _task(db, test_org, staff_user, animal, due=date(2024, 3, 1))
    today = _task(db, test_org, staff_user, animal, due=date(2024, 3, 5))
    _task(db, test_org, staff_user, animal, due=date(2024, 4, 1))

    as_of = date(2024, 3, 5)
    tasks, total = medical_service.list_tasks(
        db, test_org.id, classification=TaskClassification.OVERDUE, as_of=as_of
    )
    assert total == 1
    assert tasks[0].id == overdue.id

    tasks, _ = medical_service.list_tasks(
        db, test_org.id, classification=TaskClassification.DUE_TODAY, as_of=as_of
    )
    assert [t.id for t in tasks] == [today.id]

    assert medical_service.count_by_classification(
        db, test_org.id, TaskClassification.UPCOMING, as_of
    ) == 1


# =============================================================================
# Scheduling
# =============================================================================

def test_create_task_defaults(db, test_org, staff_user, make_animal):
    animal = make_animal()
    task = _task(db, test_org, staff_user, animal, assigned_to=staff_user.id)

    assert task.status == MedicalTaskStatus.SCHEDULED.value
    assert task.title == "Vaccine"
    assert task.version == 1
    assert task.assigned_to_user_id == staff_user.id


def test_create_task_rejects_non_member_assignee(db, test_org, staff_user, make_animal, user_factory):
    animal = make_animal()
    outsider = user_factory("outsider")
    with pytest.raises(UnknownEntity):
        _task(db, test_org, staff_user, animal, assigned_to=outsider.id)


def test_create_task_for_animal_with_outcome_fails(db, test_org, staff_user, make_animal):
    animal = make_animal()
    animal_service.change_status(db, animal, AnimalStatus.TRANSFERRED, staff_user.id)
    with pytest.raises(AlreadyTerminal):
        _task(db, test_org, staff_user, animal)


# =============================================================================
# Completion
# =============================================================================

def test_complete_vaccine_schedules_yearly_follow_up(db, test_org, staff_user, make_animal):
    animal = make_animal()
    task = _task(db, test_org, staff_user, animal, title="Rabies")

    result = medical_service.complete_task(
        db,
        task,
        staff_user.id,
        completed_on=date(2024, 1, 10),
        record={"product": "Imrab 3", "dose": "1 mL", "route": "SC"},
    )

    assert result.task.status == MedicalTaskStatus.COMPLETED.value
    assert result.task.completed_on == date(2024, 1, 10)
    assert result.task.completed_by_user_id == staff_user.id
    assert result.task.version == 2

    assert result.record.task_id == task.id
    assert result.record.date_given == date(2024, 1, 10)
    assert result.record.product == "Imrab 3"
    assert result.record.title == "Rabies"

    follow_up = result.follow_up
    assert follow_up is not None
    assert follow_up.due_date == date(2025, 1, 10)
    assert follow_up.follow_up_of_id == task.id
    assert follow_up.status == MedicalTaskStatus.SCHEDULED.value
    assert follow_up.title == "Rabies"

    event_types = {
        e.event_type for e in db.query(AuditLog).filter(AuditLog.target_id.in_([task.id, follow_up.id]))
    }
    assert AuditEventType.MEDICAL_TASK_COMPLETED.value in event_types
    assert AuditEventType.MEDICAL_TASK_CREATED.value in event_types


def test_completing_twice_fails_without_side_effects(db, test_org, staff_user, make_animal):
    animal = make_animal()
    task = _task(db, test_org, staff_user, animal)
    medical_service.complete_task(db, task, staff_user.id, completed_on=date(2024, 1, 10))

    with pytest.raises(AlreadyTerminal):
        medical_service.complete_task(db, task, staff_user.id, completed_on=date(2024, 2, 1))

    assert db.query(MedicalRecord).filter(MedicalRecord.task_id == task.id).count() == 1
    assert db.query(MedicalTask).filter(MedicalTask.follow_up_of_id == task.id).count() == 1
    assert task.completed_on == date(2024, 1, 10)


def test_completion_respects_org_override(db, test_org, admin_user, staff_user, make_animal):
    org_service.update_org_settings(
        db,
        test_org.id,
        admin_user.id,
        settings={"medical_recurrence": {"vaccine": {"months": 6}, "checkup": None}},
    )
    animal = make_animal()
    vaccine = _task(db, test_org, staff_user, animal)
    checkup = _task(db, test_org, staff_user, animal, task_type=MedicalTaskType.CHECKUP)

    vaccine_result = medical_service.complete_task(db, vaccine, staff_user.id, completed_on=date(2024, 1, 10))
    checkup_result = medical_service.complete_task(db, checkup, staff_user.id, completed_on=date(2024, 1, 10))

    assert vaccine_result.follow_up.due_date == date(2024, 7, 10)
    assert checkup_result.follow_up is None


def test_completion_without_follow_up(db, test_org, staff_user, make_animal):
    animal = make_animal()
    task = _task(db, test_org, staff_user, animal, task_type=MedicalTaskType.TREATMENT)

    result = medical_service.complete_task(
        db, task, staff_user.id, completed_on=date(2024, 1, 10), schedule_follow_up=False
    )
    assert result.follow_up is None


def test_no_follow_up_once_animal_left_care(db, test_org, staff_user, make_animal):
    animal = make_animal()
    task = _task(db, test_org, staff_user, animal)
    animal_service.change_status(db, animal, AnimalStatus.TRANSFERRED, staff_user.id)

    result = medical_service.complete_task(db, task, staff_user.id, completed_on=date(2024, 1, 12))

    assert result.task.status == MedicalTaskStatus.COMPLETED.value
    assert result.follow_up is None


def test_completed_on_defaults_to_org_today(db, test_org, staff_user, make_animal):
    animal = make_animal()
    task = _task(db, test_org, staff_user, animal)

    result = medical_service.complete_task(db, task, staff_user.id)

    assert result.task.completed_on == org_service.org_today(test_org)


def test_record_treatment_without_task(db, test_org, staff_user, make_animal):
    animal = make_animal()
    record = medical_service.record_treatment(
        db,
        test_org.id,
        staff_user.id,
        animal.id,
        MedicalTaskType.TREATMENT,
        date(2024, 2, 2),
        title="Dewormer",
        record={"product": "Pyrantel"},
    )

    assert record.task_id is None
    records, total = medical_service.list_records(db, test_org.id, animal_id=animal.id)
    assert total == 1
    assert records[0].product == "Pyrantel"


def test_medical_records_are_write_once(db, test_org, staff_user, make_animal):
    animal = make_animal()
    record = medical_service.record_treatment(
        db, test_org.id, staff_user.id, animal.id, MedicalTaskType.VACCINE, date(2024, 2, 2)
    )

    record.product = "Something else"
    with pytest.raises(ImmutableRowError):
        db.flush()
    db.rollback()

    db.delete(record)
    with pytest.raises(ImmutableRowError):
        db.flush()
    db.rollback()

    assert db.query(MedicalRecord).filter(MedicalRecord.id == record.id).one().product is None


# =============================================================================
# Batch completion
# =============================================================================

def test_batch_complete_reports_partial_failures(db, test_org, staff_user, make_animal):
    animal = make_animal()
    first = _task(db, test_org, staff_user, animal, task_type=MedicalTaskType.EXAM)
    second = _task(db, test_org, staff_user, animal, task_type=MedicalTaskType.EXAM)
    done = _task(db, test_org, staff_user, animal, task_type=MedicalTaskType.EXAM)
    medical_service.complete_task(db, done, staff_user.id, completed_on=date(2024, 1, 10))
    missing_id = uuid4()

    result = medical_service.batch_complete(
        db,
        test_org.id,
        [first.id, done.id, missing_id, second.id, first.id],
        staff_user.id,
        completed_on=date(2024, 1, 11),
    )

    assert result.updated == 2
    assert result.completed_ids == [first.id, second.id]
    assert result.failures == [
        {"task_id": done.id, "reason": "already_terminal"},
        {"task_id": missing_id, "reason": "unknown_entity"},
    ]
    assert medical_service.get_task(db, test_org.id, second.id).status == "completed"


def test_batch_complete_ignores_other_org_tasks(db, test_org, other_org, staff_user, make_animal):
    animal = make_animal()
    task = _task(db, test_org, staff_user, animal)

    result = medical_service.batch_complete(db, other_org.id, [task.id], None)

    assert result.updated == 0
    assert result.failures[0]["reason"] == "unknown_entity"
    assert medical_service.get_task(db, test_org.id, task.id).status == "scheduled"


# =============================================================================
# Status, assignment and schedule changes
# =============================================================================

def test_change_task_status_follows_edges(db, test_org, staff_user, make_animal):
    animal = make_animal()
    task = _task(db, test_org, staff_user, animal)

    medical_service.change_task_status(db, task, MedicalTaskStatus.IN_PROGRESS, staff_user.id)
    assert task.status == MedicalTaskStatus.IN_PROGRESS.value

    with pytest.raises(InvalidTransition):
        medical_service.change_task_status(db, task, MedicalTaskStatus.SCHEDULED, staff_user.id)
    with pytest.raises(InvalidTransition):
        medical_service.change_task_status(db, task, MedicalTaskStatus.COMPLETED, staff_user.id)

    medical_service.change_task_status(db, task, MedicalTaskStatus.CANCELLED, staff_user.id)
    with pytest.raises(AlreadyTerminal):
        medical_service.change_task_status(db, task, MedicalTaskStatus.ON_HOLD, staff_user.id)
    with pytest.raises(AlreadyTerminal):
        medical_service.complete_task(db, task, staff_user.id)


def test_reassign_and_reschedule_are_audited(db, test_org, staff_user, volunteer_user, make_animal):
    animal = make_animal()
    task = _task(db, test_org, staff_user, animal)

    medical_service.reassign_task(db, task, staff_user.id, volunteer_user.id)
    medical_service.reschedule_task(db, task, staff_user.id, date(2024, 2, 1))

    assert task.assigned_to_user_id == volunteer_user.id
    assert task.due_date == date(2024, 2, 1)
    updates = (
        db.query(AuditLog)
        .filter(
            AuditLog.target_id == task.id,
            AuditLog.event_type == AuditEventType.MEDICAL_TASK_UPDATED.value,
        )
        .order_by(AuditLog.sequence.asc())
        .all()
    )
    assert [list(u.details["after"]) for u in updates] == [["assigned_to_user_id"], ["due_date"]]


# =============================================================================
# Compliance
# =============================================================================

def test_compliance_report(db, test_org, staff_user, make_animal):
    animal = make_animal()
    done = _task(db, test_org, staff_user, animal, task_type=MedicalTaskType.EXAM, due=date(2024, 1, 5))
    _task(db, test_org, staff_user, animal, task_type=MedicalTaskType.EXAM, due=date(2024, 1, 6))
    _task(db, test_org, staff_user, animal, task_type=MedicalTaskType.EXAM, due=date(2024, 1, 25))
    cancelled = _task(db, test_org, staff_user, animal, task_type=MedicalTaskType.EXAM, due=date(2024, 1, 10))
    _task(db, test_org, staff_user, animal, task_type=MedicalTaskType.EXAM, due=date(2024, 2, 5))

    medical_service.complete_task(
        db, done, staff_user.id, completed_on=date(2024, 1, 5), schedule_follow_up=False
    )
    medical_service.change_task_status(db, cancelled, MedicalTaskStatus.CANCELLED, staff_user.id)

    report = medical_service.compliance_report(
        db, test_org.id, date(2024, 1, 1), date(2024, 1, 31), as_of=date(2024, 1, 20)
    )

    assert report.total_due == 4
    assert report.completed == 1
    assert report.missed == 1
    assert report.pending == 1
    assert report.cancelled == 1
    assert report.compliance_rate == 50.0


def test_compliance_with_nothing_due_is_full(db, test_org):
    report = medical_service.compliance_report(
        db, test_org.id, date(2024, 1, 1), date(2024, 1, 31), as_of=date(2024, 2, 1)
    )
    assert report.total_due == 0
    assert report.compliance_rate == 100.0
