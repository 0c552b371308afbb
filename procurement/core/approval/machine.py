"""Approval state machine implementation.

Handles state transitions with guard validation, tier authorization and an
audit trail. The machine works on immutable records: each transition swaps
in a new :class:`ApprovableRecord` and never touches the store.
"""

import uuid
from dataclasses import replace
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional, Tuple

from ...common.logger import get_logger
from ..errors import InvalidTransitionError, PermissionDeniedError, ValidationError
from ..policy.thresholds import Tier, next_tier
from ..rbac.authorizer import TierAuthorizer
from .records import ApprovableRecord, TransitionRecord
from .states import (
    Status,
    Event,
    PENDING_STATE_FOR_TIER,
    TIER_FOR_PENDING_STATE,
    TERMINAL_STATES,
    can_transition,
    get_transition_rule,
)

logger = get_logger("approval_machine")


def initial_status(required_tiers: Tuple[Tier, ...]) -> Status:
    """Status a record enters when submitted with ``required_tiers``."""
    if not required_tiers:
        return Status.APPROVED
    return PENDING_STATE_FOR_TIER[required_tiers[0]]


class ApprovalStateMachine:
    """
    State machine for the purchase approval workflow.

    Manages transitions between approval states with:
    - Validation of valid transitions for the current state
    - Tier authorization through an external authorizer
    - Audit trail of all state changes
    - Callback hooks for side effects
    """

    def __init__(
        self,
        record: ApprovableRecord,
        *,
        authorizer: Optional[TierAuthorizer] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        """
        Initialize the state machine.

        Args:
            record: Record whose lifecycle is governed
            authorizer: Decides whether an actor may act at a tier or close a
                record. Without one, every guarded transition is denied.
            clock: Source of transition timestamps (UTC)
        """
        self._record = record
        self.authorizer = authorizer
        self._clock = clock or (lambda: datetime.now(timezone.utc))
        self._transition_history: List[TransitionRecord] = []
        self._callbacks: Dict[Event, List[Callable[[TransitionRecord], None]]] = {}

    @property
    def record(self) -> ApprovableRecord:
        return self._record

    @property
    def state(self) -> Status:
        """Current state of the record."""
        return self._record.status

    @property
    def is_terminal(self) -> bool:
        return self._record.status in TERMINAL_STATES

    def can_perform(self, event: Event, actor_id: Optional[str] = None) -> bool:
        """Check if an event can be performed from the current state by ``actor_id``."""
        if not can_transition(self.state, event):
            return False

        rule = get_transition_rule(self.state, event)
        if rule and rule.requires_permission:
            return self._is_authorized(rule.requires_permission, actor_id)

        return True

    def get_available_events(self, actor_id: Optional[str] = None) -> List[Event]:
        """Get list of events available from the current state."""
        return [event for event in Event if self.can_perform(event, actor_id)]

    def transition(
        self,
        event: Event,
        *,
        actor_id: Optional[str] = None,
        reason: Optional[str] = None,
        comment: Optional[str] = None,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> Status:
        """
        Perform a state transition.

        Args:
            event: The event to apply
            actor_id: Authenticated id of the acting user
            reason: Rejection reason (required for REJECT)
            comment: Optional free-text comment recorded in the history
            metadata: Additional metadata to record

        Returns:
            The new state after transition

        Raises:
            InvalidTransitionError: If the event is invalid for the current state
            PermissionDeniedError: If the actor is not authorized for the awaited tier
            ValidationError: If a required reason or justification is missing
        """
        from_state = self.state

        if not can_transition(from_state, event):
            raise InvalidTransitionError(
                f"Cannot {event.value} from state {from_state.value}",
                event.value,
                from_state.value,
            )

        rule = get_transition_rule(from_state, event)
        if not rule:
            raise InvalidTransitionError(
                f"No rule found for {event.value} from state {from_state.value}",
                event.value,
                from_state.value,
            )

        if rule.requires_reason and not (reason and reason.strip()):
            raise ValidationError(
                f"{event.value} requires a non-empty reason",
                field="reason",
            )

        if rule.requires_permission and not self._is_authorized(rule.requires_permission, actor_id):
            raise PermissionDeniedError(
                actor_id or "anonymous",
                rule.requires_permission,
                event.value,
                from_state.value,
            )

        now = self._clock()
        tier = TIER_FOR_PENDING_STATE.get(from_state)
        updated = self._apply(event, tier, actor_id, reason, now)

        if updated.status not in rule.to_states:
            raise InvalidTransitionError(
                f"{event.value} from {from_state.value} cannot reach {updated.status.value}",
                event.value,
                from_state.value,
            )

        transition_record = TransitionRecord(
            id=uuid.uuid4().hex,
            from_state=from_state,
            to_state=updated.status,
            event=event.value,
            actor_id=actor_id,
            timestamp=now,
            tier=tier,
            comment=reason.strip() if event == Event.REJECT else comment,
            metadata=metadata or {},
        )
        self._transition_history.append(transition_record)

        self._record = replace(
            updated,
            history=self._record.history + (transition_record,),
            updated_at=now,
        )

        self._execute_callbacks(event, transition_record)

        return self.state

    def register_callback(
        self,
        event: Event,
        callback: Callable[[TransitionRecord], None],
    ) -> None:
        """Register a callback to be executed after a transition."""
        self._callbacks.setdefault(event, []).append(callback)

    def get_history(self) -> List[TransitionRecord]:
        """Transitions performed through this machine instance."""
        return self._transition_history.copy()

    def _is_authorized(self, permission: str, actor_id: Optional[str]) -> bool:
        if actor_id is None or self.authorizer is None:
            return False
        # Decisions at a pending tier go through tier authority and delegation
        tier = TIER_FOR_PENDING_STATE.get(self.state)
        if tier is not None:
            return self.authorizer.is_authorized(actor_id, tier, self._record)
        return self.authorizer.has_permission(actor_id, permission, self._record)

    def _apply(
        self,
        event: Event,
        tier: Optional[Tier],
        actor_id: Optional[str],
        reason: Optional[str],
        now: datetime,
    ) -> ApprovableRecord:
        record = self._record

        if event == Event.SUBMIT:
            if record.justification_required and not (
                record.variance_justification and record.variance_justification.strip()
            ):
                raise ValidationError(
                    f"Variance of {record.variance_percent}% requires a justification",
                    field="variance_justification",
                )
            target = initial_status(record.required_tiers)
            return replace(
                record,
                status=target,
                current_approval_tier=TIER_FOR_PENDING_STATE.get(target),
                submitted_by=actor_id,
                submitted_at=now,
                auto_approved_at=now if target == Status.APPROVED else None,
            )

        if event == Event.APPROVE:
            if tier not in record.required_tiers:
                raise InvalidTransitionError(
                    f"{tier.value if tier else 'No tier'} is not required for record {record.id}",
                    event.value,
                    record.status.value,
                )
            stamps: Dict[str, Any]
            if tier == Tier.TIER_2:
                stamps = {"tier2_approved_by": actor_id, "tier2_approved_at": now}
            else:
                stamps = {"tier3_approved_by": actor_id, "tier3_approved_at": now}

            following = next_tier(record.required_tiers, tier)
            if following is not None:
                return replace(
                    record,
                    status=PENDING_STATE_FOR_TIER[following],
                    current_approval_tier=following,
                    **stamps,
                )
            return replace(record, status=Status.APPROVED, current_approval_tier=None, **stamps)

        if event == Event.REJECT:
            return replace(
                record,
                status=Status.REJECTED,
                current_approval_tier=None,
                rejected_by=actor_id,
                rejected_at=now,
                rejection_reason=reason.strip(),
            )

        if event == Event.CLOSE:
            return replace(record, status=Status.CLOSED, closed_by=actor_id, closed_at=now)

        raise InvalidTransitionError(
            f"Unhandled event {event.value}",
            event.value,
            record.status.value,
        )

    def _execute_callbacks(self, event: Event, record: TransitionRecord) -> None:
        """Execute registered callbacks for an event."""
        for callback in self._callbacks.get(event, []):
            try:
                callback(record)
            except Exception:
                logger.exception(f"Callback error for {event.value} on record {self._record.id}")


def apply_event(
    record: ApprovableRecord,
    event: Event,
    *,
    actor_id: Optional[str] = None,
    authorizer: Optional[TierAuthorizer] = None,
    reason: Optional[str] = None,
    comment: Optional[str] = None,
    clock: Optional[Callable[[], datetime]] = None,
) -> ApprovableRecord:
    """Apply a single event to ``record`` and return the resulting record.

    The input record is left untouched; on failure nothing is returned and
    the caller keeps the record it had.
    """
    machine = ApprovalStateMachine(record, authorizer=authorizer, clock=clock)
    machine.transition(event, actor_id=actor_id, reason=reason, comment=comment)
    return machine.record
