"""Error types raised by the approval workflow.

Every failure in the core is represented by one of these exceptions. None of
them is fatal; callers decide how to present them.
"""

from typing import Optional


class ApprovalError(Exception):
    """Base class for all approval workflow errors."""


class ValidationError(ApprovalError):
    """Raised for malformed input (negative amount, empty reason, missing justification)."""

    def __init__(self, message: str, field: Optional[str] = None):
        super().__init__(message)
        self.field = field


class NotFoundError(ApprovalError):
    """Raised when a referenced record does not exist."""

    def __init__(self, record_id: str):
        super().__init__(f"Approvable record {record_id} not found")
        self.record_id = record_id


class InvalidTransitionError(ApprovalError):
    """Raised when an event is not valid for the record's current state."""

    def __init__(self, message: str, event: str, state: str):
        super().__init__(message)
        self.event = event
        self.state = state


class AlreadyProcessedError(InvalidTransitionError):
    """Raised when acting on a record that is no longer awaiting a decision."""

    def __init__(self, record_id: str, event: str, state: str):
        super().__init__(
            f"Record {record_id} has already been processed (status {state}); cannot {event}",
            event,
            state,
        )
        self.record_id = record_id


class PermissionDeniedError(InvalidTransitionError):
    """Raised when the acting user is not authorized for the awaited tier."""

    def __init__(self, actor_id: str, required_permission: str, event: str, state: str):
        super().__init__(
            f"Permission denied: {actor_id} requires {required_permission} to {event} from {state}",
            event,
            state,
        )
        self.actor_id = actor_id
        self.required_permission = required_permission


class ConflictError(ApprovalError):
    """Raised when a conditional write loses an optimistic-concurrency race."""

    def __init__(
        self,
        record_id: str,
        expected_status: Optional[str],
        actual_status: Optional[str],
    ):
        super().__init__(
            f"Record {record_id} changed concurrently: expected status "
            f"{expected_status}, found {actual_status}"
        )
        self.record_id = record_id
        self.expected_status = expected_status
        self.actual_status = actual_status
