from datetime import datetime, timezone

from sqlalchemy import JSON, DateTime, event
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import DeclarativeBase

# JSONB on PostgreSQL, plain JSON elsewhere (tests run on SQLite)
JSONType = JSON().with_variant(JSONB(), "postgresql")


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Base(DeclarativeBase):
    """Base class for all SQLAlchemy models."""
    type_annotation_map = {
        datetime: DateTime(timezone=True),
    }


class ImmutableRowError(RuntimeError):
    """Raised when code tries to rewrite or remove a write-once row."""


def write_once(model: type, error: type[ImmutableRowError] = ImmutableRowError) -> type:
    """Reject ORM updates and deletes of ``model`` rows after insert."""

    def _reject(mapper, connection, target) -> None:
        raise error(f"{model.__name__} {target.id} cannot be modified once created")

    event.listen(model, "before_update", _reject)
    event.listen(model, "before_delete", _reject)
    return model
