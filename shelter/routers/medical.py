"""Medical router - scheduled care, completion, records and compliance."""

from datetime import date
from uuid import UUID

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from shelter.core.deps import (
    get_current_session,
    get_db,
    require_csrf_header,
    require_permission,
)
from shelter.db.enums import MedicalTaskStatus, MedicalTaskType, TaskClassification
from shelter.db.models import MedicalTask
from shelter.schemas.auth import UserSession
from shelter.schemas.medical import (
    BatchCompleteRequest,
    BatchCompleteResponse,
    CompletionRead,
    ComplianceReportRead,
    MedicalRecordCreate,
    MedicalRecordRead,
    MedicalTaskComplete,
    MedicalTaskCreate,
    MedicalTaskListResponse,
    MedicalTaskRead,
    MedicalTaskReassign,
    MedicalTaskReschedule,
    MedicalTaskStatusChange,
)
from shelter.services import medical_service, org_service
from shelter.utils.pagination import PaginatedResponse, PaginationParams, get_pagination

router = APIRouter(dependencies=[Depends(require_permission("medical"))])


def _org_today(db: Session, session: UserSession) -> date:
    return org_service.org_today(org_service.get_org(db, session.org_id))


def to_task_read(task: MedicalTask, as_of: date) -> MedicalTaskRead:
    read = MedicalTaskRead.model_validate(task)
    read.classification = medical_service.classify(task, as_of)
    return read


@router.get("/tasks", response_model=MedicalTaskListResponse)
def list_tasks(
    animal_id: UUID | None = None,
    status: MedicalTaskStatus | None = None,
    task_type: MedicalTaskType | None = Query(None, alias="type"),
    assigned_to_user_id: UUID | None = None,
    classification: TaskClassification | None = None,
    as_of: date | None = Query(None, description="Reference date (default: today, org timezone)"),
    due_before: date | None = None,
    due_after: date | None = None,
    my_tasks: bool = False,
    pagination: PaginationParams = Depends(get_pagination),
    session: UserSession = Depends(get_current_session),
    db: Session = Depends(get_db),
):
    """
    List medical tasks.

    - classification: overdue / due_today / upcoming / completed / cancelled,
      evaluated against ``as_of`` at query time
    - my_tasks=true: only tasks assigned to the current user
    """
    as_of = as_of or _org_today(db, session)
    tasks, total = medical_service.list_tasks(
        db,
        session.org_id,
        animal_id=animal_id,
        status=status,
        task_type=task_type,
        assigned_to_user_id=session.user_id if my_tasks else assigned_to_user_id,
        classification=classification,
        as_of=as_of,
        due_before=due_before,
        due_after=due_after,
        pagination=pagination,
    )
    items = [to_task_read(task, as_of) for task in tasks]
    return PaginatedResponse.create(items, total, pagination).as_dict()


@router.post(
    "/tasks",
    response_model=MedicalTaskRead,
    status_code=201,
    dependencies=[Depends(require_csrf_header)],
)
def create_task(
    data: MedicalTaskCreate,
    session: UserSession = Depends(require_permission("medical", "create")),
    db: Session = Depends(get_db),
):
    """Schedule a medical task for an animal."""
    task = medical_service.create_task(
        db,
        session.org_id,
        session.user_id,
        data.animal_id,
        data.type,
        data.due_date,
        assigned_to=data.assigned_to_user_id,
        title=data.title,
        notes=data.notes,
    )
    return to_task_read(task, _org_today(db, session))


@router.post(
    "/tasks/batch-complete",
    response_model=BatchCompleteResponse,
    dependencies=[Depends(require_csrf_header)],
)
def batch_complete(
    data: BatchCompleteRequest,
    session: UserSession = Depends(require_permission("medical", "complete")),
    db: Session = Depends(get_db),
):
    """
    Complete several tasks. Not atomic: each task commits on its own and
    failures are reported per task.
    """
    result = medical_service.batch_complete(
        db,
        session.org_id,
        data.task_ids,
        session.user_id,
        completed_on=data.completed_on,
    )
    return BatchCompleteResponse(
        updated=result.updated,
        completed_ids=result.completed_ids,
        failures=result.failures,
    )


@router.get("/tasks/{task_id}", response_model=MedicalTaskRead)
def get_task(
    task_id: UUID,
    session: UserSession = Depends(get_current_session),
    db: Session = Depends(get_db),
):
    task = medical_service.get_task(db, session.org_id, task_id)
    return to_task_read(task, _org_today(db, session))


@router.post(
    "/tasks/{task_id}/complete",
    response_model=CompletionRead,
    dependencies=[Depends(require_csrf_header)],
)
def complete_task(
    task_id: UUID,
    data: MedicalTaskComplete,
    session: UserSession = Depends(require_permission("medical", "complete")),
    db: Session = Depends(get_db),
):
    """Complete a task; records what was given and schedules the follow-up."""
    task = medical_service.get_task(db, session.org_id, task_id)
    result = medical_service.complete_task(
        db,
        task,
        session.user_id,
        completed_on=data.completed_on,
        schedule_follow_up=data.schedule_follow_up,
        record=data.model_dump(include={"product", "dose", "route", "notes"}),
        expected_version=data.expected_version,
    )
    today = _org_today(db, session)
    return CompletionRead(
        task=to_task_read(result.task, today),
        record=MedicalRecordRead.model_validate(result.record),
        follow_up=to_task_read(result.follow_up, today) if result.follow_up else None,
    )


@router.post(
    "/tasks/{task_id}/status",
    response_model=MedicalTaskRead,
    dependencies=[Depends(require_csrf_header)],
)
def change_task_status(
    task_id: UUID,
    data: MedicalTaskStatusChange,
    session: UserSession = Depends(require_permission("medical", "edit")),
    db: Session = Depends(get_db),
):
    task = medical_service.get_task(db, session.org_id, task_id)
    task = medical_service.change_task_status(
        db, task, data.status, session.user_id, expected_version=data.expected_version
    )
    return to_task_read(task, _org_today(db, session))


@router.post(
    "/tasks/{task_id}/assign",
    response_model=MedicalTaskRead,
    dependencies=[Depends(require_csrf_header)],
)
def reassign_task(
    task_id: UUID,
    data: MedicalTaskReassign,
    session: UserSession = Depends(require_permission("medical", "edit")),
    db: Session = Depends(get_db),
):
    task = medical_service.get_task(db, session.org_id, task_id)
    task = medical_service.reassign_task(
        db,
        task,
        session.user_id,
        data.assigned_to_user_id,
        expected_version=data.expected_version,
    )
    return to_task_read(task, _org_today(db, session))


@router.post(
    "/tasks/{task_id}/reschedule",
    response_model=MedicalTaskRead,
    dependencies=[Depends(require_csrf_header)],
)
def reschedule_task(
    task_id: UUID,
    data: MedicalTaskReschedule,
    session: UserSession = Depends(require_permission("medical", "edit")),
    db: Session = Depends(get_db),
):
    task = medical_service.get_task(db, session.org_id, task_id)
    task = medical_service.reschedule_task(
        db, task, session.user_id, data.due_date, expected_version=data.expected_version
    )
    return to_task_read(task, _org_today(db, session))


@router.get("/records", response_model=list[MedicalRecordRead])
def list_records(
    animal_id: UUID | None = None,
    pagination: PaginationParams = Depends(get_pagination),
    session: UserSession = Depends(get_current_session),
    db: Session = Depends(get_db),
):
    records, _ = medical_service.list_records(
        db, session.org_id, animal_id=animal_id, pagination=pagination
    )
    return records


@router.post(
    "/records",
    response_model=MedicalRecordRead,
    status_code=201,
    dependencies=[Depends(require_csrf_header)],
)
def record_treatment(
    data: MedicalRecordCreate,
    session: UserSession = Depends(require_permission("medical", "record")),
    db: Session = Depends(get_db),
):
    """Record care given outside any scheduled task."""
    return medical_service.record_treatment(
        db,
        session.org_id,
        session.user_id,
        data.animal_id,
        data.type,
        data.date_given,
        title=data.title,
        record=data.model_dump(include={"product", "dose", "route", "notes"}),
    )


@router.get("/compliance", response_model=ComplianceReportRead)
def compliance_report(
    start: date,
    end: date,
    as_of: date | None = None,
    session: UserSession = Depends(get_current_session),
    db: Session = Depends(get_db),
):
    """Completed vs missed over tasks due in [start, end]."""
    report = medical_service.compliance_report(
        db, session.org_id, start, end, as_of or _org_today(db, session)
    )
    return ComplianceReportRead(
        start=report.start,
        end=report.end,
        as_of=report.as_of,
        total_due=report.total_due,
        completed=report.completed,
        missed=report.missed,
        pending=report.pending,
        cancelled=report.cancelled,
        compliance_rate=report.compliance_rate,
    )
