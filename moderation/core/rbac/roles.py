"""Role definitions for the moderation queue.

Two roles exist out of the box:
1. Admin - every moderation permission (the role name is configurable)
2. User - ordinary account, no moderation permissions

A YAML roles file can add roles or override the defaults::

    roles:
      moderator:
        - submissions:list
        - submissions:approve
        - submissions:reject
"""

from typing import Any, Dict, List, Optional

from moderation.core.config import Settings, load_config

from .checker import PermissionChecker
from .permissions import is_valid_permission

ADMIN_PERMISSIONS = [
    "*:*"  # Global wildcard - all permissions
]

USER_PERMISSIONS: List[str] = []


def get_default_roles(admin_role: str = "admin") -> Dict[str, List[str]]:
    """Get the built-in role to permissions mapping."""
    return {
        admin_role: list(ADMIN_PERMISSIONS),
        "user": list(USER_PERMISSIONS),
    }


def parse_roles(config_dict: Dict[str, Any]) -> Dict[str, List[str]]:
    """Parse the ``roles`` section of a roles file.

    Raises:
        ValueError: If a role is malformed or names an unknown permission
    """
    roles_section = config_dict.get("roles") or {}
    if not isinstance(roles_section, dict):
        raise ValueError("'roles' must be a mapping of role name to permission list")

    roles = {}
    for name, permissions in roles_section.items():
        permissions = permissions or []
        if not isinstance(permissions, list):
            raise ValueError(f"Permissions for role {name} must be a list")
        invalid = [p for p in permissions if not is_valid_permission(p)]
        if invalid:
            raise ValueError(f"Unknown permissions for role {name}: {', '.join(invalid)}")
        roles[str(name)] = [str(p) for p in permissions]
    return roles


class RolePolicy:
    """Resolves a caller role to the permissions it holds."""

    def __init__(self, roles: Dict[str, List[str]]):
        self.roles = {name: list(perms) for name, perms in roles.items()}

    @classmethod
    def from_settings(cls, settings: Settings) -> "RolePolicy":
        """Build the policy from defaults plus the optional roles file."""
        roles = get_default_roles(settings.admin_role)
        if settings.roles_file:
            roles.update(parse_roles(load_config(settings.roles_file)))
        return cls(roles)

    def permissions_for(self, role: Optional[str]) -> List[str]:
        """Unknown or missing roles hold no permissions."""
        if not role:
            return []
        return self.roles.get(role, [])

    def checker(self, role: Optional[str]) -> PermissionChecker:
        return PermissionChecker(self.permissions_for(role))
