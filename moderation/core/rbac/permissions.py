"""Permission model for the moderation queue.

Permission string format: "resource:action"
Examples:
  - submissions:list
  - submissions:approve
  - stats:read
"""

from enum import Enum
from typing import FrozenSet, NamedTuple


class Resource(str, Enum):
    """Resources that can be protected by permissions."""

    SUBMISSIONS = "submissions"   # Moderation queue entries
    STATS = "stats"               # Dashboard counters


class Action(str, Enum):
    """Actions that can be performed on resources."""

    READ = "read"
    LIST = "list"
    APPROVE = "approve"
    REJECT = "reject"


class Permission(NamedTuple):
    """A permission is a combination of resource and action."""
    resource: Resource
    action: Action

    def __str__(self) -> str:
        return f"{self.resource.value}:{self.action.value}"

    @classmethod
    def from_string(cls, perm_str: str) -> "Permission":
        """Parse a permission string like 'submissions:list'."""
        parts = perm_str.split(":")
        if len(parts) != 2:
            raise ValueError(f"Invalid permission format: {perm_str}")
        return cls(Resource(parts[0]), Action(parts[1]))


PERMISSION_MATRIX: dict[Resource, FrozenSet[Action]] = {
    Resource.SUBMISSIONS: frozenset([
        Action.READ, Action.LIST, Action.APPROVE, Action.REJECT,
    ]),
    Resource.STATS: frozenset([
        Action.READ,
    ]),
}


def _generate_permission_definitions() -> dict[str, Permission]:
    """Generate all valid permission combinations from the matrix."""
    permissions = {}
    for resource, actions in PERMISSION_MATRIX.items():
        for action in actions:
            perm = Permission(resource, action)
            permissions[str(perm)] = perm
    return permissions


# All valid permissions as a dictionary: "resource:action" -> Permission
PERMISSION_DEFINITIONS = _generate_permission_definitions()

# Wildcards accepted in role definitions besides exact permissions
WILDCARDS = frozenset(["*:*"] + [f"{r.value}:*" for r in Resource])

SUBMISSIONS_LIST = str(Permission(Resource.SUBMISSIONS, Action.LIST))
SUBMISSIONS_READ = str(Permission(Resource.SUBMISSIONS, Action.READ))
SUBMISSIONS_APPROVE = str(Permission(Resource.SUBMISSIONS, Action.APPROVE))
SUBMISSIONS_REJECT = str(Permission(Resource.SUBMISSIONS, Action.REJECT))
STATS_READ = str(Permission(Resource.STATS, Action.READ))


def is_valid_permission(perm_str: str) -> bool:
    """Check if a permission string is valid (wildcards included)."""
    return perm_str in PERMISSION_DEFINITIONS or perm_str in WILDCARDS


def get_all_permissions() -> list[str]:
    """Get all valid permission strings."""
    return list(PERMISSION_DEFINITIONS.keys())
