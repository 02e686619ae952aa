"""Permission checking utilities for the moderation queue."""

from typing import List, Union

from .permissions import Permission


class PermissionChecker:
    """Checks if a role's permission list grants specific permissions."""

    def __init__(self, permissions: List[str]):
        """
        Initialize with a role's permissions list.

        Args:
            permissions: Permission strings granted to the role
        """
        self.permissions = set(permissions)

    def has_permission(self, permission: Union[str, Permission]) -> bool:
        """Check if the role has a specific permission."""
        perm_str = str(permission) if isinstance(permission, Permission) else permission

        if perm_str in self.permissions:
            return True

        # Global admin wildcard
        if "*:*" in self.permissions:
            return True

        # resource:* grants all actions on resource
        if ":" in perm_str:
            resource = perm_str.split(":")[0]
            if f"{resource}:*" in self.permissions:
                return True

        return False

    def has_any_permission(self, permissions: List[Union[str, Permission]]) -> bool:
        """Check if the role has any of the given permissions."""
        return any(self.has_permission(p) for p in permissions)

    def has_all_permissions(self, permissions: List[Union[str, Permission]]) -> bool:
        """Check if the role has all of the given permissions."""
        return all(self.has_permission(p) for p in permissions)
