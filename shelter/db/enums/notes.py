"""Polymorphic annotation enums."""

from enum import Enum


class SubjectType(str, Enum):
    """Entities a Note or Photo may be attached to."""

    ANIMAL = "animal"
    PERSON = "person"
    APPLICATION = "application"
    MEDICAL_TASK = "medical_task"
    ADOPTION = "adoption"
    FOSTER_ASSIGNMENT = "foster_assignment"


class NoteVisibility(str, Enum):
    STAFF_ONLY = "staff_only"
    PORTAL_VISIBLE = "portal_visible"
