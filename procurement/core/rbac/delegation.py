"""Temporary delegation of approval authority.

An approver going on leave hands their tier authority to a delegate for a
date range, optionally capped by amount and tier level. A delegation's status
is derived from the clock, never stored.
"""

import threading
import uuid
from dataclasses import dataclass, replace
from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Callable, Dict, List, Optional

from ..errors import NotFoundError, ValidationError
from ..money import MoneyLike, to_money
from ..policy.thresholds import Tier


class DelegationStatus(str, Enum):
    """Lifecycle of a delegation, computed from its dates."""

    SCHEDULED = "scheduled"
    ACTIVE = "active"
    EXPIRED = "expired"
    REVOKED = "revoked"


@dataclass(frozen=True)
class Delegation:
    """Authority handed from one approver to another."""

    id: str
    from_actor: str
    to_actor: str
    start: datetime
    end: datetime
    max_amount: Optional[Decimal] = None
    max_tier_level: Optional[int] = None
    reason: Optional[str] = None
    revoked_at: Optional[datetime] = None
    revoked_by: Optional[str] = None

    def status_at(self, at: datetime) -> DelegationStatus:
        if self.revoked_at is not None:
            return DelegationStatus.REVOKED
        if at < self.start:
            return DelegationStatus.SCHEDULED
        if at > self.end:
            return DelegationStatus.EXPIRED
        return DelegationStatus.ACTIVE

    def covers(self, tier: Tier, amount: Decimal) -> bool:
        """Check the delegation's limits for a decision at ``tier`` on ``amount``."""
        if self.max_tier_level is not None and tier.level > self.max_tier_level:
            return False
        if self.max_amount is not None and amount > self.max_amount:
            return False
        return True


class DelegationRegistry:
    """In-process registry of delegations."""

    def __init__(self, clock: Optional[Callable[[], datetime]] = None):
        """
        Args:
            clock: Source of revocation stamps and of "now" for lookups (UTC)
        """
        self._delegations: Dict[str, Delegation] = {}
        self._lock = threading.Lock()
        self._clock = clock or (lambda: datetime.now(timezone.utc))

    def create(
        self,
        from_actor: str,
        to_actor: str,
        start: datetime,
        end: datetime,
        *,
        max_amount: Optional[MoneyLike] = None,
        max_tier_level: Optional[int] = None,
        reason: Optional[str] = None,
    ) -> Delegation:
        """
        Register a new delegation.

        Raises:
            ValidationError: If the range is empty, the delegate is the
                delegator, or the limits are malformed
        """
        if from_actor == to_actor:
            raise ValidationError("An approver cannot delegate to themselves", field="to_actor")
        if end <= start:
            raise ValidationError("Delegation end must be after its start", field="end")
        if max_tier_level is not None and max_tier_level not in (2, 3):
            raise ValidationError(f"Invalid max tier level: {max_tier_level}", field="max_tier_level")

        delegation = Delegation(
            id=uuid.uuid4().hex,
            from_actor=from_actor,
            to_actor=to_actor,
            start=start,
            end=end,
            max_amount=to_money(max_amount, "max_amount") if max_amount is not None else None,
            max_tier_level=max_tier_level,
            reason=reason,
        )
        with self._lock:
            self._delegations[delegation.id] = delegation
        return delegation

    def revoke(self, delegation_id: str, actor_id: str) -> Delegation:
        with self._lock:
            delegation = self._delegations.get(delegation_id)
            if delegation is None:
                raise NotFoundError(delegation_id)
            revoked = replace(
                delegation,
                revoked_at=self._clock(),
                revoked_by=actor_id,
            )
            self._delegations[delegation_id] = revoked
        return revoked

    def get(self, delegation_id: str) -> Delegation:
        delegation = self._delegations.get(delegation_id)
        if delegation is None:
            raise NotFoundError(delegation_id)
        return delegation

    def active_for(self, to_actor: str, at: Optional[datetime] = None) -> List[Delegation]:
        """Delegations currently granting authority to ``to_actor``."""
        at = at or self._clock()
        return [
            d for d in list(self._delegations.values())
            if d.to_actor == to_actor and d.status_at(at) == DelegationStatus.ACTIVE
        ]

    def all(self) -> List[Delegation]:
        return list(self._delegations.values())
