"""Permission model for procurement approvals.

Permission string format: "resource:action"
Examples:
  - approvals:tier2
  - approvals:tier3
  - purchase_orders:create
  - delegations:manage
"""

from enum import Enum
from typing import FrozenSet, NamedTuple

from ..policy.thresholds import Tier


class Resource(str, Enum):
    """Resources that can be protected by permissions."""

    PURCHASE_ORDERS = "purchase_orders"
    SERVICE_REQUISITIONS = "service_requisitions"
    APPROVALS = "approvals"         # Tiered approval decisions
    DELEGATIONS = "delegations"     # Temporary hand-over of approval authority


class Action(str, Enum):
    """Actions that can be performed on resources."""

    CREATE = "create"
    READ = "read"
    LIST = "list"
    TIER2 = "tier2"       # Decide at Tier 2 (Plant Manager)
    TIER3 = "tier3"       # Decide at Tier 3 (Owner / Executive)
    CLOSE = "close"       # Close out an approved record
    MANAGE = "manage"


class Permission(NamedTuple):
    """A permission is a combination of resource and action."""
    resource: Resource
    action: Action

    def __str__(self) -> str:
        return f"{self.resource.value}:{self.action.value}"

    @classmethod
    def from_string(cls, perm_str: str) -> "Permission":
        """Parse a permission string like 'approvals:tier2'."""
        parts = perm_str.split(":")
        if len(parts) != 2:
            raise ValueError(f"Invalid permission format: {perm_str}")
        return cls(Resource(parts[0]), Action(parts[1]))


PERMISSION_MATRIX: dict[Resource, FrozenSet[Action]] = {
    Resource.PURCHASE_ORDERS: frozenset([Action.CREATE, Action.READ, Action.LIST]),
    Resource.SERVICE_REQUISITIONS: frozenset([Action.CREATE, Action.READ, Action.LIST]),
    Resource.APPROVALS: frozenset([
        Action.READ, Action.LIST, Action.TIER2, Action.TIER3, Action.CLOSE,
    ]),
    Resource.DELEGATIONS: frozenset([Action.READ, Action.LIST, Action.MANAGE]),
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

TIER_PERMISSIONS: dict[Tier, str] = {
    Tier.TIER_2: str(Permission(Resource.APPROVALS, Action.TIER2)),
    Tier.TIER_3: str(Permission(Resource.APPROVALS, Action.TIER3)),
}


def is_valid_permission(perm_str: str) -> bool:
    """Check if a permission string is valid."""
    return perm_str in PERMISSION_DEFINITIONS


def is_grantable(perm_str: str) -> bool:
    """Valid permission, or a ``resource:*`` / ``*:*`` wildcard."""
    if perm_str == "*:*":
        return True
    resource, _, action = perm_str.partition(":")
    if action == "*":
        return resource in {r.value for r in Resource}
    return is_valid_permission(perm_str)


def permission_for_tier(tier: Tier) -> str:
    """Permission string required to decide at ``tier``."""
    return TIER_PERMISSIONS[tier]
