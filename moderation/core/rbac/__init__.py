"""RBAC (Role-Based Access Control) for the moderation queue.

Maps caller roles to permissions and checks them.
"""

from .permissions import Permission, Resource, Action, PERMISSION_DEFINITIONS
from .checker import PermissionChecker
from .roles import RolePolicy, get_default_roles

__all__ = [
    "Permission",
    "Resource",
    "Action",
    "PERMISSION_DEFINITIONS",
    "PermissionChecker",
    "RolePolicy",
    "get_default_roles",
]
