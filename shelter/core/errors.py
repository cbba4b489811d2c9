"""Domain error hierarchy shared by services and the HTTP layer.

Each error carries a stable ``code`` (the structured result the caller sees)
and the HTTP status the API maps it to. Only ConcurrentModification is
retryable; everything else is permanent for the given input.
"""

from uuid import UUID


class ShelterError(Exception):
    """Base exception for shelter workflow errors."""

    code = "shelter_error"
    status_code = 400
    retryable = False

    def __init__(self, message: str | None = None):
        self.message = message or self.__class__.__doc__ or self.code
        super().__init__(self.message)

    def to_dict(self) -> dict[str, str]:
        return {"error": self.code, "detail": self.message}


class NotAMember(ShelterError):
    """User has no membership in this organization."""

    code = "not_a_member"
    status_code = 403


class PermissionDenied(ShelterError):
    """Role not permitted for this action."""

    code = "permission_denied"
    status_code = 403


class UnknownEntity(ShelterError):
    """Referenced entity not found."""

    code = "unknown_entity"
    status_code = 404

    def __init__(self, entity_type: str, entity_id: UUID | str | None = None):
        self.entity_type = entity_type
        self.entity_id = entity_id
        label = entity_type.replace("_", " ").capitalize()
        super().__init__(f"{label} not found")


class InvalidTransition(ShelterError):
    """Requested state change is not allowed."""

    code = "invalid_transition"
    status_code = 409

    def __init__(
        self,
        entity_type: str,
        from_status: str | None = None,
        to_status: str | None = None,
        message: str | None = None,
    ):
        self.entity_type = entity_type
        self.from_status = from_status
        self.to_status = to_status
        if message is None:
            message = f"Cannot move {entity_type} from '{from_status}' to '{to_status}'"
        super().__init__(message)


class AlreadyTerminal(ShelterError):
    """Record is in a terminal state and cannot be changed."""

    code = "already_terminal"
    status_code = 409


class AnimalAlreadyFostered(ShelterError):
    """Animal already has an active foster assignment."""

    code = "animal_already_fostered"
    status_code = 409


class ApplicationNotApproved(ShelterError):
    """Application is not an approved application of the required kind."""

    code = "application_not_approved"
    status_code = 409


class ConcurrentModification(ShelterError):
    """Record was modified by another request; re-read and retry."""

    code = "concurrent_modification"
    status_code = 409
    retryable = True

    def __init__(self, expected: int | None = None, actual: int | None = None):
        self.expected = expected
        self.actual = actual
        if expected is not None and actual is not None:
            message = f"Version conflict: expected {expected}, got {actual}"
        else:
            message = "Record was modified concurrently"
        super().__init__(message)


class InvalidAttributes(ShelterError):
    """Typed attribute map failed validation."""

    code = "invalid_attributes"
    status_code = 422


def check_version(current_version: int, expected_version: int | None) -> None:
    """
    Check if expected version matches current.

    Raises:
        ConcurrentModification if mismatch
    """
    if expected_version is not None and current_version != expected_version:
        raise ConcurrentModification(expected_version, current_version)
