"""Allowed status edges for the workflow state machines.

Terminal / decided states map to an empty set. Medical completion is not
listed here: a task may complete from any non-terminal status.
"""

from shelter.db.enums import (
    AnimalStatus as A,
    ApplicationStatus as S,
    MedicalTaskStatus as M,
)

_ANIMAL_TERMINAL_FROM_CARE = {A.TRANSFERRED, A.RETURNED_TO_OWNER, A.EUTHANIZED, A.ADOPTED}

ANIMAL_TRANSITIONS: dict[A, frozenset[A]] = {
    A.AVAILABLE: frozenset({A.HOLD, A.FOSTERED, *_ANIMAL_TERMINAL_FROM_CARE}),
    A.HOLD: frozenset({A.AVAILABLE, A.FOSTERED, *_ANIMAL_TERMINAL_FROM_CARE}),
    A.FOSTERED: frozenset({A.AVAILABLE, A.HOLD, A.ADOPTED}),
    A.ADOPTED: frozenset(),
    A.TRANSFERRED: frozenset(),
    A.RETURNED_TO_OWNER: frozenset(),
    A.EUTHANIZED: frozenset(),
}

APPLICATION_TRANSITIONS: dict[S, frozenset[S]] = {
    S.RECEIVED: frozenset({S.REVIEW, S.WITHDRAWN}),
    S.REVIEW: frozenset({S.APPROVED, S.DENIED, S.WITHDRAWN}),
    S.APPROVED: frozenset(),
    S.DENIED: frozenset(),
    S.WITHDRAWN: frozenset(),
}

MEDICAL_TASK_TRANSITIONS: dict[M, frozenset[M]] = {
    M.SCHEDULED: frozenset({M.IN_PROGRESS, M.ON_HOLD, M.PENDING_REVIEW, M.CANCELLED}),
    M.IN_PROGRESS: frozenset({M.PENDING_REVIEW, M.ON_HOLD, M.CANCELLED}),
    M.PENDING_REVIEW: frozenset({M.IN_PROGRESS, M.CANCELLED}),
    M.ON_HOLD: frozenset({M.SCHEDULED, M.IN_PROGRESS, M.CANCELLED}),
    M.COMPLETED: frozenset(),
    M.CANCELLED: frozenset(),
}


def can_transition_animal(current: A, target: A) -> bool:
    return A(target) in ANIMAL_TRANSITIONS[A(current)]


def can_transition_application(current: S, target: S) -> bool:
    return S(target) in APPLICATION_TRANSITIONS[S(current)]


def can_transition_task(current: M, target: M) -> bool:
    return M(target) in MEDICAL_TASK_TRANSITIONS[M(current)]
