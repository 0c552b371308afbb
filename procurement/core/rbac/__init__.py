"""RBAC (Role-Based Access Control) for the approval workflow.

Defines the permission model, default roles, delegations and the tier
authorizers consulted by the coordinator.
"""

from .permissions import Permission, Resource, Action, PERMISSION_DEFINITIONS, permission_for_tier
from .checker import PermissionChecker
from .roles import DEFAULT_ROLES, get_default_role_permissions
from .delegation import Delegation, DelegationRegistry, DelegationStatus
from .authorizer import (
    TierAuthorizer,
    RoleTierAuthorizer,
    DelegatingTierAuthorizer,
    AllowAllAuthorizer,
)

__all__ = [
    "Permission",
    "Resource",
    "Action",
    "PERMISSION_DEFINITIONS",
    "permission_for_tier",
    "PermissionChecker",
    "DEFAULT_ROLES",
    "get_default_role_permissions",
    "Delegation",
    "DelegationRegistry",
    "DelegationStatus",
    "TierAuthorizer",
    "RoleTierAuthorizer",
    "DelegatingTierAuthorizer",
    "AllowAllAuthorizer",
]
