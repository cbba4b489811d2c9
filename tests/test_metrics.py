"""Tests for dashboard and report aggregations."""

from datetime import date, datetime, timezone

import pytest
from sqlalchemy import event

from shelter.db.enums import AnimalStatus, ApplicationKind, Species
from shelter.services import (
    animal_service,
    application_service,
    audit_service,
    medical_service,
    metrics_service,
    placement_service,
)


@pytest.fixture
def populated(db, test_org, staff_user, make_animal):
    """Two animals with outcomes and one still in care."""
    rex = make_animal(name="Rex", species=Species.DOG, intake_date=date(2024, 1, 10))
    tom = make_animal(name="Tom", species=Species.CAT, intake_date=date(2024, 1, 20))
    make_animal(name="Juno", species=Species.DOG, intake_date=date(2024, 2, 5), medical_hold=True)

    animal_service.change_status(
        db, rex, AnimalStatus.TRANSFERRED, staff_user.id, outcome_date=date(2024, 1, 30)
    )
    animal_service.change_status(
        db, tom, AnimalStatus.EUTHANIZED, staff_user.id, outcome_date=date(2024, 2, 9)
    )
    return test_org


def test_dashboard_stats(db, populated, staff_user):
    juno = next(
        a for a in animal_service.list_animals(db, populated.id)[0] if a.name == "Juno"
    )
    medical_service.create_task(db, populated.id, staff_user.id, juno.id, "exam", date(2024, 2, 1))
    medical_service.create_task(db, populated.id, staff_user.id, juno.id, "exam", date(2024, 2, 15))

    stats = metrics_service.dashboard_stats(db, populated.id, as_of=date(2024, 2, 15))

    assert stats["animals_in_care"] == 1
    assert stats["animals_by_status"]["hold"] == 1
    assert stats["animals_by_status"]["transferred"] == 1
    assert stats["animals_by_status"]["adopted"] == 0
    assert stats["overdue_tasks"] == 1
    assert stats["due_today_tasks"] == 1
    assert stats["active_fosters"] == 0
    assert stats["open_applications"] == 0


def test_species_distribution_counts_animals_in_care(db, populated):
    assert metrics_service.species_distribution(db, populated.id) == {"dog": 1}


def test_monthly_intake_trend(db, populated):
    trend = metrics_service.monthly_intake_trend(db, populated.id, months=3, today=date(2024, 2, 15))

    assert trend == [
        {"month": "2023-12", "intakes": 0, "outcomes": 0},
        {"month": "2024-01", "intakes": 2, "outcomes": 1},
        {"month": "2024-02", "intakes": 1, "outcomes": 1},
    ]


def test_outcome_metrics(db, populated):
    metrics = metrics_service.outcome_metrics(db, populated.id, today=date(2024, 2, 15))

    assert metrics["total_outcomes"] == 2
    assert metrics["live_outcomes"] == 1
    assert metrics["live_release_rate"] == 50.0
    assert metrics["average_length_of_stay_days"] == 20.0
    assert metrics["adoptions_this_month"] == 0


def test_outcome_metrics_for_empty_org(db, test_org):
    metrics = metrics_service.outcome_metrics(db, test_org.id, today=date(2024, 2, 15))

    assert metrics["total_outcomes"] == 0
    assert metrics["live_release_rate"] == 0.0
    assert metrics["average_length_of_stay_days"] is None


def test_pipeline_stage_counts(db, test_org, staff_user, make_animal, make_person, approved_application):
    finalized = approved_application(ApplicationKind.ADOPTION)
    placement_service.finalize_adoption(db, finalized, staff_user.id, fee_cents=5000)
    approved_application(ApplicationKind.FOSTER)

    animal = make_animal(name="Scout")
    person = make_person()
    application_service.submit(db, test_org.id, staff_user.id, animal.id, person.id, ApplicationKind.ADOPTION)
    denied = application_service.submit(
        db, test_org.id, staff_user.id, animal.id, person.id, ApplicationKind.ADOPTION
    )
    application_service.move_to_review(db, denied, staff_user.id)
    application_service.deny(db, denied, staff_user.id)

    counts = metrics_service.pipeline_stage_counts(db, test_org.id)

    assert counts == {
        "received": 1,
        "review": 0,
        "approved": 1,
        "completed": 1,
        "denied": 1,
        "withdrawn": 0,
    }



def test_pipeline_counts_finalized_fosters_in_one_query(db, engine, test_org, staff_user, approved_application):
    for _ in range(3):
        application = approved_application(ApplicationKind.FOSTER)
        assignment = placement_service.place_foster(db, application, staff_user.id)
    placement_service.end_foster(db, assignment, staff_user.id)
    approved_application(ApplicationKind.ADOPTION)

    statements = []

    def _record(conn, cursor, statement, parameters, context, executemany):
        statements.append(statement)

    event.listen(engine, "before_cursor_execute", _record)
    try:
        counts = metrics_service.pipeline_stage_counts(db, test_org.id)
    finally:
        event.remove(engine, "before_cursor_execute", _record)

    assert counts["completed"] == 3
    assert counts["approved"] == 1
    assert "EXISTS" in statements[-1]
    assert not any(" IN (" in statement for statement in statements)

def test_activity_trend_buckets_audit_events(db, test_org, make_animal):
    make_animal()
    today = datetime.now(timezone.utc).date()

    trend = metrics_service.activity_trend(db, test_org.id, months=2, today=today)

    assert len(trend) == 2
    current = trend[-1]
    assert current["total"] == audit_service.count_events(db, test_org.id)
    assert current["by_event_type"]["animal_intake"] == 1
