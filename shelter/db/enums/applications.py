"""Application pipeline, placement and people enums."""

from enum import Enum


class PersonType(str, Enum):
    ADOPTER = "adopter"
    FOSTER = "foster"
    VOLUNTEER = "volunteer"
    DONOR = "donor"
    STAFF = "staff"


class ApplicationKind(str, Enum):
    ADOPTION = "adoption"
    FOSTER = "foster"


class ApplicationStatus(str, Enum):
    """Pipeline stages. APPROVED, DENIED and WITHDRAWN are decided states."""

    RECEIVED = "received"
    REVIEW = "review"
    APPROVED = "approved"
    DENIED = "denied"
    WITHDRAWN = "withdrawn"

    @property
    def is_decided(self) -> bool:
        return self in DECIDED_APPLICATION_STATUSES


DECIDED_APPLICATION_STATUSES = frozenset(
    {ApplicationStatus.APPROVED, ApplicationStatus.DENIED, ApplicationStatus.WITHDRAWN}
)


class FosterStatus(str, Enum):
    ACTIVE = "active"
    COMPLETED = "completed"
    FAILED = "failed"
