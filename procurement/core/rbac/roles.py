"""Default role definitions.

1. Admin - Full access
2. Owner - Tier 3 (and Tier 2) approval authority
3. Plant Manager - Tier 2 approval authority
4. Buyer - Creates purchase orders and service requisitions
5. Viewer - Read-only access
"""

from typing import Dict, List

from .permissions import Resource, Action, Permission


def _build_permissions(*perms: tuple) -> List[str]:
    """Build permission strings from (Resource, Action) tuples."""
    return [str(Permission(r, a)) for r, a in perms]


ADMIN_PERMISSIONS = [
    "*:*"
]

_READ_ALL = (
    (Resource.PURCHASE_ORDERS, Action.READ),
    (Resource.PURCHASE_ORDERS, Action.LIST),
    (Resource.SERVICE_REQUISITIONS, Action.READ),
    (Resource.SERVICE_REQUISITIONS, Action.LIST),
    (Resource.APPROVALS, Action.READ),
    (Resource.APPROVALS, Action.LIST),
)

OWNER_PERMISSIONS = _build_permissions(
    *_READ_ALL,
    (Resource.APPROVALS, Action.TIER2),
    (Resource.APPROVALS, Action.TIER3),
    (Resource.APPROVALS, Action.CLOSE),
    (Resource.DELEGATIONS, Action.MANAGE),
)

PLANT_MANAGER_PERMISSIONS = _build_permissions(
    *_READ_ALL,
    (Resource.APPROVALS, Action.TIER2),
    (Resource.APPROVALS, Action.CLOSE),
    (Resource.DELEGATIONS, Action.MANAGE),
)

BUYER_PERMISSIONS = _build_permissions(
    *_READ_ALL,
    (Resource.PURCHASE_ORDERS, Action.CREATE),
    (Resource.SERVICE_REQUISITIONS, Action.CREATE),
    (Resource.APPROVALS, Action.CLOSE),
)

VIEWER_PERMISSIONS = _build_permissions(*_READ_ALL)


DEFAULT_ROLES: Dict[str, Dict] = {
    "admin": {
        "name": "Admin",
        "description": "Full access to the approval workflow",
        "permissions": ADMIN_PERMISSIONS,
    },
    "owner": {
        "name": "Owner",
        "description": "Tier 3 approver (also decides at Tier 2)",
        "permissions": OWNER_PERMISSIONS,
    },
    "plant_manager": {
        "name": "Plant Manager",
        "description": "Tier 2 approver",
        "permissions": PLANT_MANAGER_PERMISSIONS,
    },
    "buyer": {
        "name": "Buyer",
        "description": "Raises purchase orders and service requisitions",
        "permissions": BUYER_PERMISSIONS,
    },
    "viewer": {
        "name": "Viewer",
        "description": "Read-only access",
        "permissions": VIEWER_PERMISSIONS,
    },
}


def get_default_role_permissions(role_key: str) -> List[str]:
    """Get the permission list for a default role.

    Raises:
        KeyError: If the role is not a default role
    """
    return list(DEFAULT_ROLES[role_key]["permissions"])
