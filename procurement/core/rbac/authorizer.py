"""Tier authorization collaborators.

The coordinator asks a :class:`TierAuthorizer` whether an actor may decide at
a tier. It never authenticates anyone: actor ids arrive already verified.
"""

from datetime import datetime, timezone
from typing import Callable, Iterable, Mapping, Optional, Protocol, Union

from ..policy.thresholds import Tier
from .checker import PermissionChecker
from .delegation import DelegationRegistry
from .permissions import permission_for_tier

PermissionLookup = Callable[[str], Iterable[str]]


class TierAuthorizer(Protocol):
    def is_authorized(self, actor_id: str, tier: Tier, record) -> bool:
        ...

    def has_permission(self, actor_id: str, permission: str, record) -> bool:
        ...


class RoleTierAuthorizer:
    """Grants a tier when the actor's permissions include ``approvals:<tier>``."""

    def __init__(self, permissions: Union[Mapping[str, Iterable[str]], PermissionLookup]):
        """
        Args:
            permissions: Mapping of actor id to permission strings, or a
                callable returning the permissions for an actor id
        """
        if callable(permissions):
            self._lookup = permissions
        else:
            mapping = permissions
            self._lookup = lambda actor_id: mapping.get(actor_id, ())

    def permissions_for(self, actor_id: str) -> list[str]:
        return list(self._lookup(actor_id) or ())

    def is_authorized(self, actor_id: str, tier: Tier, record) -> bool:
        checker = PermissionChecker(self.permissions_for(actor_id))
        return checker.has_permission(permission_for_tier(tier))

    def has_permission(self, actor_id: str, permission: str, record) -> bool:
        return PermissionChecker(self.permissions_for(actor_id)).has_permission(permission)


class DelegatingTierAuthorizer:
    """Extends another authorizer with active delegations.

    A delegate may decide at a tier when an active delegation comes from an
    actor who holds that tier directly and the record is within the
    delegation's amount and tier limits. Delegated authority is not
    transitive.
    """

    def __init__(
        self,
        base: TierAuthorizer,
        registry: DelegationRegistry,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self.base = base
        self.registry = registry
        self._clock = clock or (lambda: datetime.now(timezone.utc))

    def is_authorized(self, actor_id: str, tier: Tier, record) -> bool:
        if self.base.is_authorized(actor_id, tier, record):
            return True

        for delegation in self.registry.active_for(actor_id, self._clock()):
            if not delegation.covers(tier, record.routing_amount):
                continue
            if self.base.is_authorized(delegation.from_actor, tier, record):
                return True

        return False

    def has_permission(self, actor_id: str, permission: str, record) -> bool:
        # Delegations hand over tier decisions only
        return self.base.has_permission(actor_id, permission, record)


class AllowAllAuthorizer:
    """Authorizes every actor for every tier and permission."""

    def is_authorized(self, actor_id: str, tier: Tier, record) -> bool:
        return True

    def has_permission(self, actor_id: str, permission: str, record) -> bool:
        return True
