"""Permission checking utilities."""

from typing import Iterable, List, Union

from .permissions import Permission, Resource, Action


class PermissionChecker:
    """Checks if an actor holds specific permissions."""

    def __init__(self, user_permissions: Iterable[str]):
        """
        Initialize with the actor's permissions list.

        Args:
            user_permissions: Permission strings granted through the actor's role
        """
        self.permissions = set(user_permissions)

    def has_permission(self, permission: Union[str, Permission]) -> bool:
        """Check if the actor has a specific permission."""
        perm_str = str(permission) if isinstance(permission, Permission) else permission

        if perm_str in self.permissions:
            return True

        if ":" in perm_str:
            resource = perm_str.split(":")[0]
            if f"{resource}:*" in self.permissions:
                return True
            # Global admin wildcard
            if "*:*" in self.permissions:
                return True

        return False

    def has_any_permission(self, permissions: List[Union[str, Permission]]) -> bool:
        return any(self.has_permission(p) for p in permissions)

    def has_all_permissions(self, permissions: List[Union[str, Permission]]) -> bool:
        return all(self.has_permission(p) for p in permissions)

    def can_access_resource(self, resource: Resource, action: Action) -> bool:
        """Check if the actor can perform action on resource."""
        return self.has_permission(Permission(resource, action))
