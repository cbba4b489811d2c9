"""Notes router - notes and photos on any workflow entity.

Paths are /{subject_type}/{subject_id}/notes and .../photos, where
subject_type is one of the SubjectType values.
"""

from uuid import UUID

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from shelter.core.deps import (
    get_current_session,
    get_db,
    require_csrf_header,
    require_permission,
)
from shelter.db.enums import SubjectType
from shelter.schemas.auth import UserSession
from shelter.schemas.note import NoteCreate, NoteRead, PhotoCreate, PhotoRead
from shelter.services import note_service

router = APIRouter(dependencies=[Depends(require_permission("notes"))])


@router.get("/{subject_type}/{subject_id}/notes", response_model=list[NoteRead])
def list_notes(
    subject_type: SubjectType,
    subject_id: UUID,
    portal_only: bool = False,
    session: UserSession = Depends(get_current_session),
    db: Session = Depends(get_db),
):
    """List notes for a subject, newest first."""
    return note_service.list_notes(
        db, session.org_id, subject_type, subject_id, portal_only=portal_only
    )


@router.post(
    "/{subject_type}/{subject_id}/notes",
    response_model=NoteRead,
    status_code=201,
    dependencies=[Depends(require_csrf_header)],
)
def create_note(
    subject_type: SubjectType,
    subject_id: UUID,
    data: NoteCreate,
    session: UserSession = Depends(require_permission("notes", "create")),
    db: Session = Depends(get_db),
):
    """Add a note (body is sanitized; a few rich-text tags survive)."""
    return note_service.add_note(
        db,
        session.org_id,
        session.user_id,
        subject_type,
        subject_id,
        data.body,
        visibility=data.visibility,
        tags=data.tags,
    )


@router.get("/{subject_type}/{subject_id}/photos", response_model=list[PhotoRead])
def list_photos(
    subject_type: SubjectType,
    subject_id: UUID,
    session: UserSession = Depends(get_current_session),
    db: Session = Depends(get_db),
):
    return note_service.list_photos(db, session.org_id, subject_type, subject_id)


@router.post(
    "/{subject_type}/{subject_id}/photos",
    response_model=PhotoRead,
    status_code=201,
    dependencies=[Depends(require_csrf_header)],
)
def add_photo(
    subject_type: SubjectType,
    subject_id: UUID,
    data: PhotoCreate,
    session: UserSession = Depends(require_permission("notes", "create")),
    db: Session = Depends(get_db),
):
    return note_service.add_photo(
        db,
        session.org_id,
        session.user_id,
        subject_type,
        subject_id,
        data.url,
        caption=data.caption,
    )
