"""Audit enums."""

from enum import Enum


class AuditEventType(str, Enum):
    """
    Append-only audit events.

    Groups:
    - ORG_* / MEMBER_*: Tenant and identity changes
    - ANIMAL_*: Intake and lifecycle
    - MEDICAL_*: Scheduled care and records
    - APPLICATION_*: Pipeline transitions
    - FOSTER_* / ADOPTION_*: Finalization
    """

    # Tenant & identity
    ORG_CREATED = "org_created"
    ORG_SETTINGS_UPDATED = "org_settings_updated"
    MEMBER_ADDED = "member_added"
    MEMBER_ROLE_CHANGED = "member_role_changed"
    MEMBER_DEACTIVATED = "member_deactivated"

    # Animals
    ANIMAL_INTAKE = "animal_intake"
    ANIMAL_UPDATED = "animal_updated"
    ANIMAL_STATUS_CHANGED = "animal_status_changed"
    OUTCOME_RECORDED = "outcome_recorded"

    # Medical
    MEDICAL_TASK_CREATED = "medical_task_created"
    MEDICAL_TASK_UPDATED = "medical_task_updated"
    MEDICAL_TASK_STATUS_CHANGED = "medical_task_status_changed"
    MEDICAL_TASK_COMPLETED = "medical_task_completed"
    MEDICAL_RECORD_CREATED = "medical_record_created"

    # Pipeline
    APPLICATION_SUBMITTED = "application_submitted"
    APPLICATION_STATUS_CHANGED = "application_status_changed"

    # Finalization
    FOSTER_STARTED = "foster_started"
    FOSTER_ENDED = "foster_ended"
    ADOPTION_FINALIZED = "adoption_finalized"

    # People & annotations
    PERSON_CREATED = "person_created"
    PERSON_FLAGS_UPDATED = "person_flags_updated"
    NOTE_ADDED = "note_added"
    PHOTO_ADDED = "photo_added"

    # Reports
    DATA_EXPORTED = "data_exported"

    # Housing
    LOCATION_CREATED = "location_created"
    KENNEL_CREATED = "kennel_created"
