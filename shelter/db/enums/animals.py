"""Animal lifecycle enums."""

from enum import Enum


class Species(str, Enum):
    DOG = "dog"
    CAT = "cat"
    OTHER = "other"


class AnimalStatus(str, Enum):
    """Animal lifecycle states. Terminal states are immutable once set."""

    AVAILABLE = "available"
    HOLD = "hold"
    FOSTERED = "fostered"
    ADOPTED = "adopted"
    TRANSFERRED = "transferred"
    RETURNED_TO_OWNER = "returned_to_owner"
    EUTHANIZED = "euthanized"

    @property
    def is_terminal(self) -> bool:
        return self in TERMINAL_ANIMAL_STATUSES


TERMINAL_ANIMAL_STATUSES = frozenset(
    {
        AnimalStatus.ADOPTED,
        AnimalStatus.TRANSFERRED,
        AnimalStatus.RETURNED_TO_OWNER,
        AnimalStatus.EUTHANIZED,
    }
)


class IntakeType(str, Enum):
    STRAY = "stray"
    OWNER_SURRENDER = "owner_surrender"
    TRANSFER_IN = "transfer_in"
    CONFISCATION = "confiscation"
    BORN_IN_CARE = "born_in_care"


class OutcomeType(str, Enum):
    ADOPTION = "adoption"
    TRANSFER_OUT = "transfer_out"
    RETURN_TO_OWNER = "return_to_owner"
    EUTHANASIA = "euthanasia"


# Outcomes counted toward the live release rate
LIVE_OUTCOMES = frozenset(
    {OutcomeType.ADOPTION, OutcomeType.TRANSFER_OUT, OutcomeType.RETURN_TO_OWNER}
)

OUTCOME_FOR_STATUS: dict[AnimalStatus, OutcomeType] = {
    AnimalStatus.ADOPTED: OutcomeType.ADOPTION,
    AnimalStatus.TRANSFERRED: OutcomeType.TRANSFER_OUT,
    AnimalStatus.RETURNED_TO_OWNER: OutcomeType.RETURN_TO_OWNER,
    AnimalStatus.EUTHANIZED: OutcomeType.EUTHANASIA,
}


class LocationType(str, Enum):
    SHELTER = "shelter"
    CLINIC = "clinic"
    STORAGE = "storage"
