"""Centralized RBAC policies for API resources.

Each resource has a default minimum role (used for reads) plus per-action
overrides. Role comparison uses Role.rank, so volunteer and foster are
interchangeable wherever either is the minimum.
"""

from dataclasses import dataclass

from shelter.db.enums import Role


@dataclass(frozen=True)
class ResourcePolicy:
    """Default minimum role + per-action overrides for a resource."""

    default: Role
    actions: dict[str, Role]

    def required_role(self, action: str | None = None) -> Role:
        if action is None:
            return self.default
        return self.actions.get(action, self.default)


POLICIES: dict[str, ResourcePolicy] = {
    "animals": ResourcePolicy(
        default=Role.READONLY,
        actions={
            "intake": Role.STAFF,
            "edit": Role.STAFF,
            "change_status": Role.STAFF,
        },
    ),
    "medical": ResourcePolicy(
        default=Role.READONLY,
        actions={
            "create": Role.STAFF,
            "edit": Role.STAFF,
            "complete": Role.VOLUNTEER,
            "record": Role.STAFF,
        },
    ),
    "applications": ResourcePolicy(
        default=Role.READONLY,
        actions={
            "submit": Role.VOLUNTEER,
            "decide": Role.STAFF,
        },
    ),
    "placements": ResourcePolicy(
        default=Role.READONLY,
        actions={
            "finalize": Role.STAFF,
            "foster": Role.STAFF,
        },
    ),
    "people": ResourcePolicy(
        default=Role.READONLY,
        actions={
            "create": Role.VOLUNTEER,
            "edit_flags": Role.STAFF,
        },
    ),
    "notes": ResourcePolicy(
        default=Role.READONLY,
        actions={"create": Role.VOLUNTEER},
    ),
    "locations": ResourcePolicy(
        default=Role.READONLY,
        actions={"manage": Role.ADMIN},
    ),
    "reports": ResourcePolicy(
        default=Role.READONLY,
        actions={"export": Role.STAFF},
    ),
    "audit": ResourcePolicy(default=Role.ADMIN, actions={}),
    "org_settings": ResourcePolicy(
        default=Role.READONLY,
        actions={"manage": Role.ADMIN},
    ),
    "team": ResourcePolicy(
        default=Role.STAFF,
        actions={"manage": Role.ADMIN},
    ),
}


def get_policy(resource: str) -> ResourcePolicy:
    """Fetch a resource policy or raise KeyError."""
    return POLICIES[resource]
