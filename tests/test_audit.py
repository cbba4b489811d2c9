"""Tests for the append-only audit log and its hash chain."""

from datetime import date

import pytest
from sqlalchemy import delete, update
from sqlalchemy.exc import IntegrityError

from shelter.core.errors import ConcurrentModification
from shelter.core.structured_logging import request_id_var
from shelter.db.enums import AnimalStatus, ApplicationKind, AuditEventType
from shelter.db.models import Adoption, AuditLog, FosterAssignment, MedicalTask
from shelter.db.models.audit import AuditLogImmutableError
from shelter.db.transaction import is_audit_sequence_conflict
from shelter.services import (
    animal_service,
    application_service,
    audit_service,
    medical_service,
    placement_service,
)


def _run_workflow(db, staff_user, make_animal, approved_application) -> None:
    animal = make_animal(name="Pepper")
    task = medical_service.create_task(
        db, animal.organization_id, staff_user.id, animal.id, "vaccine", date(2024, 1, 10)
    )
    medical_service.complete_task(db, task, staff_user.id, completed_on=date(2024, 1, 10))
    animal_service.change_status(db, animal, AnimalStatus.HOLD, staff_user.id)
    application = approved_application(ApplicationKind.ADOPTION)
    placement_service.finalize_adoption(db, application, staff_user.id, fee_cents=12500)


def _entries(db, org_id) -> list[AuditLog]:
    return (
        db.query(AuditLog)
        .filter(AuditLog.organization_id == org_id)
        .order_by(AuditLog.sequence.asc())
        .all()
    )


# =============================================================================
# Hash chain
# =============================================================================

def test_chain_is_valid_after_workflow(db, test_org, staff_user, make_animal, approved_application):
    _run_workflow(db, staff_user, make_animal, approved_application)

    result = audit_service.verify_chain(db, test_org.id)

    assert result.valid is True
    assert result.checked == audit_service.count_events(db, test_org.id)
    assert result.broken_entry_id is None


def test_sequences_are_per_organization(db, test_org, other_org, make_animal):
    make_animal()
    make_animal(name="Mittens")

    ours = _entries(db, test_org.id)
    theirs = _entries(db, other_org.id)

    assert [e.sequence for e in ours] == list(range(1, len(ours) + 1))
    assert [e.sequence for e in theirs] == [1, 2]
    assert ours[0].prev_hash == audit_service.GENESIS_HASH
    assert theirs[0].prev_hash == audit_service.GENESIS_HASH
    for previous, entry in zip(ours, ours[1:]):
        assert entry.prev_hash == previous.entry_hash


def test_edited_entry_breaks_the_chain(db, test_org, staff_user, make_animal, approved_application):
    _run_workflow(db, staff_user, make_animal, approved_application)
    target = _entries(db, test_org.id)[3]

    db.execute(
        update(AuditLog.__table__)
        .where(AuditLog.__table__.c.id == target.id)
        .values(details={"after": {"status": "adopted"}})
    )
    db.commit()
    db.expire_all()

    result = audit_service.verify_chain(db, test_org.id)

    assert result.valid is False
    assert result.broken_entry_id == target.id
    assert result.reason == "entry_hash mismatch"
    assert result.checked == 3


def test_removed_entry_breaks_the_chain(db, test_org, staff_user, make_animal, approved_application):
    _run_workflow(db, staff_user, make_animal, approved_application)
    entries = _entries(db, test_org.id)
    removed, following = entries[4], entries[5]

    db.execute(delete(AuditLog.__table__).where(AuditLog.__table__.c.id == removed.id))
    db.commit()
    db.expire_all()

    result = audit_service.verify_chain(db, test_org.id)

    assert result.valid is False
    assert result.broken_entry_id == following.id
    assert result.reason == "sequence gap"


def test_orm_cannot_update_or_delete_entries(db, test_org):
    entry = _entries(db, test_org.id)[0]

    entry.details = {"rewritten": True}
    with pytest.raises(AuditLogImmutableError):
        db.commit()
    db.rollback()

    db.delete(entry)
    with pytest.raises(AuditLogImmutableError):
        db.commit()
    db.rollback()

    assert audit_service.verify_chain(db, test_org.id).valid is True


def test_compute_audit_hash_is_deterministic():
    kwargs = dict(
        prev_hash=audit_service.GENESIS_HASH,
        entry_id="entry-1",
        org_id="org-1",
        sequence=1,
        event_type="animal_intake",
        created_at="2024-01-10T12:00:00",
        details_json=audit_service.canonical_json({"b": 1, "a": 2}),
    )

    first = audit_service.compute_audit_hash(**kwargs)

    assert first == audit_service.compute_audit_hash(**kwargs)
    assert len(first) == 64
    assert first != audit_service.compute_audit_hash(**{**kwargs, "sequence": 2})
    assert audit_service.canonical_json({"b": 1, "a": 2}) == '{"a":2,"b":1}'


# =============================================================================
# Read side
# =============================================================================

def test_list_events_newest_first_and_history_oldest_first(db, test_org, staff_user, make_animal):
    animal = make_animal()
    animal_service.change_status(db, animal, AnimalStatus.HOLD, staff_user.id)
    animal_service.change_status(db, animal, AnimalStatus.AVAILABLE, staff_user.id)

    events, total = audit_service.list_events(db, test_org.id, target_type="animal")
    assert total == 3
    assert [e.sequence for e in events] == sorted((e.sequence for e in events), reverse=True)

    history = audit_service.entity_history(db, test_org.id, "animal", animal.id)
    assert [e.event_type for e in history] == [
        AuditEventType.ANIMAL_INTAKE.value,
        AuditEventType.ANIMAL_STATUS_CHANGED.value,
        AuditEventType.ANIMAL_STATUS_CHANGED.value,
    ]
    assert [e.details["after"]["status"] for e in history[1:]] == ["hold", "available"]


def test_list_events_filters_by_event_type(db, test_org, make_animal):
    make_animal()

    events, total = audit_service.list_events(
        db, test_org.id, event_type=AuditEventType.ANIMAL_INTAKE.value
    )

    assert total == 1
    assert events[0].event_type == "animal_intake"


def test_request_id_is_recorded(db, test_org, make_animal):
    token = request_id_var.set("req-abc123")
    try:
        animal = make_animal()
    finally:
        request_id_var.reset(token)

    (entry,) = audit_service.entity_history(db, test_org.id, "animal", animal.id)
    assert entry.request_id == "req-abc123"


# =============================================================================
# Racing appends
# =============================================================================

@pytest.fixture
def stale_chain_head(monkeypatch):
    """Make log_event read the head a racing transaction would have seen."""

    def _apply():
        monkeypatch.setattr(
            audit_service, "get_chain_head", lambda db, org_id: (0, audit_service.GENESIS_HASH)
        )

    return _apply


def test_lost_append_race_on_status_change_is_retryable(db, staff_user, make_animal, stale_chain_head):
    animal = make_animal()
    stale_chain_head()

    with pytest.raises(ConcurrentModification) as exc_info:
        animal_service.change_status(db, animal, AnimalStatus.HOLD, staff_user.id)

    assert exc_info.value.retryable is True
    db.refresh(animal)
    assert animal.status == AnimalStatus.AVAILABLE.value


def test_lost_append_race_on_create_task(db, test_org, staff_user, make_animal, stale_chain_head):
    animal = make_animal()
    stale_chain_head()

    with pytest.raises(ConcurrentModification):
        medical_service.create_task(db, test_org.id, staff_user.id, animal.id, "exam", date(2024, 2, 1))

    assert db.query(MedicalTask).filter(MedicalTask.animal_id == animal.id).count() == 0


def test_lost_append_race_on_submit(db, test_org, staff_user, make_animal, make_person, stale_chain_head):
    animal = make_animal()
    person = make_person()
    stale_chain_head()

    with pytest.raises(ConcurrentModification):
        application_service.submit(
            db, test_org.id, staff_user.id, animal.id, person.id, ApplicationKind.ADOPTION
        )


def test_lost_append_race_on_finalize_adoption(db, staff_user, approved_application, stale_chain_head):
    application = approved_application(ApplicationKind.ADOPTION)
    stale_chain_head()

    with pytest.raises(ConcurrentModification):
        placement_service.finalize_adoption(db, application, staff_user.id, fee_cents=100)

    assert db.query(Adoption).count() == 0


def test_lost_append_race_on_place_foster(db, staff_user, approved_application, stale_chain_head):
    application = approved_application(ApplicationKind.FOSTER)
    stale_chain_head()

    with pytest.raises(ConcurrentModification):
        placement_service.place_foster(db, application, staff_user.id)

    assert db.query(FosterAssignment).count() == 0


def test_audit_sequence_conflict_detection():
    sqlite_error = IntegrityError(
        "INSERT", {}, Exception("UNIQUE constraint failed: audit_logs.organization_id, audit_logs.sequence")
    )
    postgres_error = IntegrityError(
        "INSERT", {}, Exception('duplicate key value violates unique constraint "uq_audit_org_sequence"')
    )
    other_error = IntegrityError(
        "INSERT", {}, Exception('duplicate key value violates unique constraint "uq_foster_active_animal"')
    )

    assert is_audit_sequence_conflict(sqlite_error)
    assert is_audit_sequence_conflict(postgres_error)
    assert not is_audit_sequence_conflict(other_error)
