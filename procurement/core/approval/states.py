"""Approval workflow states and transitions.

State Machine Diagram:

    ┌──────────┐
    │  DRAFT   │ ← Initial state (record created, not yet submitted)
    └────┬─────┘
         │ submit
         ├──────────────────────────────┐
         │ (tiers required)             │ (no tiers required)
    ┌────▼──────────┐                   │
    │ PENDING_TIER2 │──────┐            │
    └────┬──────────┘      │            │
         │ approve         │ reject     │
         │ (Tier 3 req.)   │            │
    ┌────▼──────────┐      │            │
    │ PENDING_TIER3 │──────┤            │
    └────┬──────────┘      │            │
         │ approve    ┌────▼─────┐      │
         │            │ REJECTED │      │
         │            └──────────┘      │
    ┌────▼─────┐                        │
    │ APPROVED │◄───────────────────────┘
    └────┬─────┘   (also PENDING_TIER2 → APPROVED when only Tier 2 is required)
         │ close
    ┌────▼─────┐
    │  CLOSED  │
    └──────────┘
"""

from enum import Enum
from typing import Dict, FrozenSet, List, NamedTuple, Optional, Set, Tuple

from ..policy.thresholds import Tier


class Status(str, Enum):
    """States in the purchase approval workflow."""

    DRAFT = "draft"                      # Created, not yet submitted
    PENDING_TIER2 = "pending_tier2"      # Awaiting Plant Manager
    PENDING_TIER3 = "pending_tier3"      # Awaiting Owner / Executive
    APPROVED = "approved"                # All required tiers approved (or none required)
    REJECTED = "rejected"                # Rejected at a pending tier
    CLOSED = "closed"                    # Approved and closed out


class Event(str, Enum):
    """Actions that trigger state transitions."""

    SUBMIT = "submit"      # DRAFT → PENDING_TIER2 / APPROVED
    APPROVE = "approve"    # PENDING_TIER2 → PENDING_TIER3 / APPROVED, PENDING_TIER3 → APPROVED
    REJECT = "reject"      # PENDING_* → REJECTED
    CLOSE = "close"        # APPROVED → CLOSED


class TransitionRule(NamedTuple):
    """Defines a valid state transition.

    ``to_states`` lists every target the guard may select; the machine picks
    one based on the record's required tiers.
    """
    from_state: Status
    event: Event
    to_states: Tuple[Status, ...]
    requires_permission: Optional[str] = None
    requires_reason: bool = False


# Define all valid transitions
TRANSITION_RULES: List[TransitionRule] = [
    TransitionRule(Status.DRAFT, Event.SUBMIT, (Status.PENDING_TIER2, Status.APPROVED)),

    TransitionRule(Status.PENDING_TIER2, Event.APPROVE, (Status.PENDING_TIER3, Status.APPROVED),
                   "approvals:tier2"),
    TransitionRule(Status.PENDING_TIER3, Event.APPROVE, (Status.APPROVED,),
                   "approvals:tier3"),

    TransitionRule(Status.PENDING_TIER2, Event.REJECT, (Status.REJECTED,),
                   "approvals:tier2", requires_reason=True),
    TransitionRule(Status.PENDING_TIER3, Event.REJECT, (Status.REJECTED,),
                   "approvals:tier3", requires_reason=True),

    TransitionRule(Status.APPROVED, Event.CLOSE, (Status.CLOSED,),
                   "approvals:close"),
]

# Build lookup tables for efficient access
VALID_EVENTS: Dict[Status, Set[Event]] = {}
TRANSITION_TARGETS: Dict[Tuple[Status, Event], TransitionRule] = {}

for rule in TRANSITION_RULES:
    VALID_EVENTS.setdefault(rule.from_state, set()).add(rule.event)
    TRANSITION_TARGETS[(rule.from_state, rule.event)] = rule


# Terminal states: no monetary or tier mutation allowed
TERMINAL_STATES: FrozenSet[Status] = frozenset({
    Status.APPROVED,
    Status.REJECTED,
    Status.CLOSED,
})

# States awaiting a tier decision
PENDING_STATES: FrozenSet[Status] = frozenset({
    Status.PENDING_TIER2,
    Status.PENDING_TIER3,
})

# States that count as approved
APPROVED_STATES: FrozenSet[Status] = frozenset({
    Status.APPROVED,
    Status.CLOSED,
})


def can_transition(from_state: Status, event: Event) -> bool:
    """Check if an event is valid from the given state."""
    return event in VALID_EVENTS.get(from_state, set())


def get_transition_rule(from_state: Status, event: Event) -> Optional[TransitionRule]:
    """Get the transition rule for a state/event combination."""
    return TRANSITION_TARGETS.get((from_state, event))


# Pending state awaiting each tier, and the reverse lookup
PENDING_STATE_FOR_TIER: Dict[Tier, Status] = {
    Tier.TIER_2: Status.PENDING_TIER2,
    Tier.TIER_3: Status.PENDING_TIER3,
}

TIER_FOR_PENDING_STATE: Dict[Status, Tier] = {
    state: tier for tier, state in PENDING_STATE_FOR_TIER.items()
}
