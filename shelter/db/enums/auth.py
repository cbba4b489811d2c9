"""Auth-related enums."""

from enum import Enum


class Role(str, Enum):
    """
    Membership roles, lowest to highest privilege.

    - READONLY: View dashboards and records
    - VOLUNTEER / FOSTER: Day-to-day care, notes and photos
    - STAFF: Intake, medical, pipeline decisions, finalization
    - ADMIN: Organization settings and membership management
    """

    READONLY = "readonly"
    VOLUNTEER = "volunteer"
    FOSTER = "foster"
    STAFF = "staff"
    ADMIN = "admin"

    @classmethod
    def has_value(cls, value: str) -> bool:
        """Check if value is a valid role."""
        return value in cls._value2member_map_

    @property
    def rank(self) -> int:
        return ROLE_RANK[self]


# Volunteer and foster share a rank; neither outranks the other.
ROLE_RANK: dict[Role, int] = {
    Role.READONLY: 0,
    Role.VOLUNTEER: 1,
    Role.FOSTER: 1,
    Role.STAFF: 2,
    Role.ADMIN: 3,
}
