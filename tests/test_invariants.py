"""Randomized workflow runs checked against the lifecycle invariants."""

import random
from datetime import date, timedelta

import pytest

from shelter.core.errors import ShelterError
from shelter.db.enums import (
    TERMINAL_ANIMAL_STATUSES,
    AnimalStatus,
    ApplicationKind,
    FosterStatus,
    MedicalTaskStatus,
    MedicalTaskType,
    PersonType,
)
from shelter.db.models import Adoption, Animal, FosterAssignment, MedicalTask, Outcome
from shelter.services import (
    animal_service,
    application_service,
    audit_service,
    medical_service,
    placement_service,
)

TERMINAL_VALUES = {s.value for s in TERMINAL_ANIMAL_STATUSES}


def _random_step(rng, db, org_id, actor_id, animals, people) -> None:
    animal = rng.choice(animals)
    person = rng.choice(people)
    action = rng.randrange(7)

    if action == 0:
        animal_service.change_status(db, animal, rng.choice(list(AnimalStatus)), actor_id)
    elif action in (1, 2):
        kind = ApplicationKind.FOSTER if action == 1 else ApplicationKind.ADOPTION
        application = application_service.submit(db, org_id, actor_id, animal.id, person.id, kind)
        application_service.move_to_review(db, application, actor_id)
        application_service.approve(db, application, actor_id)
        if kind == ApplicationKind.FOSTER:
            placement_service.place_foster(db, application, actor_id)
        else:
            placement_service.finalize_adoption(db, application, actor_id, fee_cents=rng.randrange(0, 20000))
    elif action == 3:
        assignment = animal_service.get_active_foster(db, animal)
        if assignment is not None:
            placement_service.end_foster(
                db,
                assignment,
                actor_id,
                result=rng.choice([FosterStatus.COMPLETED, FosterStatus.FAILED]),
                return_status=rng.choice([AnimalStatus.AVAILABLE, AnimalStatus.HOLD]),
            )
    elif action == 4:
        due = date(2024, 1, 1) + timedelta(days=rng.randrange(60))
        medical_service.create_task(db, org_id, actor_id, animal.id, rng.choice(list(MedicalTaskType)), due)
    else:
        tasks = db.query(MedicalTask).filter(MedicalTask.animal_id == animal.id).all()
        if tasks:
            medical_service.complete_task(
                db, rng.choice(tasks), actor_id, completed_on=date(2024, 3, 1)
            )


def _assert_lifecycle_invariants(db, org_id) -> None:
    db.expire_all()
    for animal in db.query(Animal).filter(Animal.organization_id == org_id):
        outcomes = db.query(Outcome).filter(Outcome.animal_id == animal.id).count()
        active_fosters = (
            db.query(FosterAssignment)
            .filter(
                FosterAssignment.animal_id == animal.id,
                FosterAssignment.status == FosterStatus.ACTIVE.value,
            )
            .count()
        )
        adoptions = db.query(Adoption).filter(Adoption.animal_id == animal.id).count()

        assert outcomes == (1 if animal.status in TERMINAL_VALUES else 0)
        assert active_fosters <= 1
        assert (active_fosters == 1) == (animal.status == AnimalStatus.FOSTERED.value)
        assert adoptions == (1 if animal.status == AnimalStatus.ADOPTED.value else 0)


@pytest.mark.parametrize("seed", range(8))
def test_random_workflows_preserve_invariants(db, test_org, staff_user, make_animal, make_person, seed):
    rng = random.Random(seed)
    animals = [make_animal(name=f"Animal {i}") for i in range(4)]
    people = [
        make_person(name=f"Person {i}", type=rng.choice([PersonType.ADOPTER, PersonType.FOSTER]))
        for i in range(3)
    ]

    for _ in range(40):
        try:
            _random_step(rng, db, test_org.id, staff_user.id, animals, people)
        except ShelterError:
            # Rejected steps must leave no partial state behind
            pass
        _assert_lifecycle_invariants(db, test_org.id)

    for task in db.query(MedicalTask).filter(MedicalTask.organization_id == test_org.id):
        if task.status == MedicalTaskStatus.COMPLETED.value:
            assert task.completed_on is not None

    assert audit_service.verify_chain(db, test_org.id).valid is True
