"""Atomic unit-of-work helper for state-machine transitions."""

from collections.abc import Iterator
from contextlib import contextmanager

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from shelter.core.errors import ConcurrentModification

# Postgres reports the constraint name; SQLite reports the columns.
_AUDIT_SEQUENCE_MARKERS = (
    "uq_audit_org_sequence",
    "audit_logs.organization_id, audit_logs.sequence",
)


def is_audit_sequence_conflict(exc: IntegrityError) -> bool:
    """True when two writers appended the same audit chain position."""
    message = str(exc.orig) if exc.orig is not None else str(exc)
    return any(marker in message for marker in _AUDIT_SEQUENCE_MARKERS)


@contextmanager
def atomic(
    db: Session,
    *,
    on_integrity_error: Exception | None = None,
) -> Iterator[Session]:
    """
    Commit everything done inside the block, or nothing.

    Status change, dependent records and audit entries are flushed in one
    transaction. Any exception rolls the session back before propagating.
    A lost race on the audit chain head surfaces as ConcurrentModification.

    Args:
        on_integrity_error: Domain error to raise instead of a raw
            IntegrityError (e.g. a partial unique index guarding an invariant).
    """
    try:
        yield db
        db.commit()
    except StaleDataError as exc:
        db.rollback()
        raise ConcurrentModification() from exc
    except IntegrityError as exc:
        db.rollback()
        if is_audit_sequence_conflict(exc):
            raise ConcurrentModification() from exc
        if on_integrity_error is not None:
            raise on_integrity_error from exc
        raise
    except Exception:
        db.rollback()
        raise
