"""SQLAlchemy ORM models. Importing this package registers every table on Base.metadata."""

from shelter.db.models.animals import Animal, Intake, Kennel, Location, Outcome
from shelter.db.models.audit import AuditLog, AuditLogImmutableError
from shelter.db.models.auth import Membership, Organization, User
from shelter.db.models.medical import MedicalRecord, MedicalTask
from shelter.db.models.notes import Note, Photo
from shelter.db.models.people import Adoption, Application, FosterAssignment, Person

__all__ = [
    "Adoption",
    "Animal",
    "Application",
    "AuditLog",
    "AuditLogImmutableError",
    "FosterAssignment",
    "Intake",
    "Kennel",
    "Location",
    "MedicalRecord",
    "MedicalTask",
    "Membership",
    "Note",
    "Organization",
    "Outcome",
    "Person",
    "Photo",
    "User",
]
