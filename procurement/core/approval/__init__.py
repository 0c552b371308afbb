"""Approval workflow for purchase orders and service requisitions."""

from .states import Status, Event, TERMINAL_STATES, PENDING_STATES, APPROVED_STATES
from .records import ApprovableRecord, LineItem, RecordKind, TransitionRecord
from .machine import ApprovalStateMachine, apply_event, initial_status
from .coordinator import (
    ApprovalCoordinator,
    ApprovableStore,
    LineItemInput,
    PurchaseOrderInput,
    ServiceRequisitionInput,
)

__all__ = [
    "Status",
    "Event",
    "TERMINAL_STATES",
    "PENDING_STATES",
    "APPROVED_STATES",
    "ApprovableRecord",
    "LineItem",
    "RecordKind",
    "TransitionRecord",
    "ApprovalStateMachine",
    "apply_event",
    "initial_status",
    "ApprovalCoordinator",
    "ApprovableStore",
    "LineItemInput",
    "PurchaseOrderInput",
    "ServiceRequisitionInput",
]
