"""Note and photo service - polymorphic annotations on workflow entities.

Notes and photos use subject_type + subject_id instead of separate FK
columns. The subject is resolved inside the caller's organization before
anything is written, which restores the referential check a polymorphic
column cannot express.
"""

import logging
from uuid import UUID

import nh3
from sqlalchemy.orm import Session

from shelter.db.enums import AuditEventType, NoteVisibility, SubjectType
from shelter.db.models import (
    Adoption,
    Animal,
    Application,
    FosterAssignment,
    MedicalTask,
    Note,
    Person,
    Photo,
)
from shelter.db.transaction import atomic
from shelter.services import audit_service
from shelter.services.tenant_scope import get_in_org


logger = logging.getLogger(__name__)

# Allowed HTML tags for rich text notes
ALLOWED_TAGS = {"p", "br", "strong", "em", "ul", "ol", "li", "a", "blockquote", "code"}
ALLOWED_ATTRIBUTES = {"a": {"href", "target"}}

SUBJECT_MODELS = {
    SubjectType.ANIMAL: Animal,
    SubjectType.PERSON: Person,
    SubjectType.APPLICATION: Application,
    SubjectType.MEDICAL_TASK: MedicalTask,
    SubjectType.ADOPTION: Adoption,
    SubjectType.FOSTER_ASSIGNMENT: FosterAssignment,
}


def sanitize_html(html: str) -> str:
    """Sanitize HTML to prevent XSS, allowing only safe rich text tags."""
    return nh3.clean(html, tags=ALLOWED_TAGS, attributes=ALLOWED_ATTRIBUTES)


def resolve_subject(db: Session, org_id: UUID, subject_type: SubjectType, subject_id: UUID):
    """
    Load the annotated entity within the organization.

    Raises:
        UnknownEntity: subject not found in this organization
    """
    subject_type = SubjectType(subject_type)
    return get_in_org(db, SUBJECT_MODELS[subject_type], org_id, subject_id, subject_type.value)


def _normalize_tags(tags: list[str] | None) -> list[str]:
    seen: list[str] = []
    for tag in tags or []:
        tag = tag.strip().lower()
        if tag and tag not in seen:
            seen.append(tag)
    return seen


def add_note(
    db: Session,
    org_id: UUID,
    author_id: UUID | None,
    subject_type: SubjectType,
    subject_id: UUID,
    body: str,
    visibility: NoteVisibility = NoteVisibility.STAFF_ONLY,
    tags: list[str] | None = None,
) -> Note:
    """Create a note on any workflow entity of the organization."""
    subject_type = SubjectType(subject_type)
    resolve_subject(db, org_id, subject_type, subject_id)

    note = Note(
        organization_id=org_id,
        subject_type=subject_type.value,
        subject_id=subject_id,
        author_id=author_id,
        visibility=NoteVisibility(visibility).value,
        body=sanitize_html(body),
        tags=_normalize_tags(tags),
    )
    with atomic(db):
        db.add(note)
        db.flush()
        audit_service.log_event(
            db,
            org_id=org_id,
            event_type=AuditEventType.NOTE_ADDED,
            actor_user_id=author_id,
            target_type="note",
            target_id=note.id,
            details={
                "subject_type": subject_type.value,
                "subject_id": subject_id,
                "visibility": note.visibility,
            },
        )
    return note


def list_notes(
    db: Session,
    org_id: UUID,
    subject_type: SubjectType,
    subject_id: UUID,
    portal_only: bool = False,
) -> list[Note]:
    """List notes for a subject, newest first; portal_only hides staff-only notes."""
    subject_type = SubjectType(subject_type)
    resolve_subject(db, org_id, subject_type, subject_id)

    query = db.query(Note).filter(
        Note.organization_id == org_id,
        Note.subject_type == subject_type.value,
        Note.subject_id == subject_id,
    )
    if portal_only:
        query = query.filter(Note.visibility == NoteVisibility.PORTAL_VISIBLE.value)
    return query.order_by(Note.created_at.desc()).all()


def add_photo(
    db: Session,
    org_id: UUID,
    actor_id: UUID | None,
    subject_type: SubjectType,
    subject_id: UUID,
    url: str,
    caption: str | None = None,
) -> Photo:
    """Attach an already-uploaded photo (by URL) to a workflow entity."""
    subject_type = SubjectType(subject_type)
    resolve_subject(db, org_id, subject_type, subject_id)

    photo = Photo(
        organization_id=org_id,
        subject_type=subject_type.value,
        subject_id=subject_id,
        url=url.strip(),
        caption=caption,
        uploaded_by_user_id=actor_id,
    )
    with atomic(db):
        db.add(photo)
        db.flush()
        audit_service.log_event(
            db,
            org_id=org_id,
            event_type=AuditEventType.PHOTO_ADDED,
            actor_user_id=actor_id,
            target_type="photo",
            target_id=photo.id,
            details={"subject_type": subject_type.value, "subject_id": subject_id},
        )
    return photo


def list_photos(
    db: Session,
    org_id: UUID,
    subject_type: SubjectType,
    subject_id: UUID,
) -> list[Photo]:
    subject_type = SubjectType(subject_type)
    resolve_subject(db, org_id, subject_type, subject_id)
    return (
        db.query(Photo)
        .filter(
            Photo.organization_id == org_id,
            Photo.subject_type == subject_type.value,
            Photo.subject_id == subject_id,
        )
        .order_by(Photo.created_at.asc())
        .all()
    )
