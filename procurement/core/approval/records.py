"""Approvable record value types.

Records are immutable values. Every change (a transition, a store write)
produces a new record via :func:`dataclasses.replace`.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, Optional, Tuple

from ..money import DEFAULT_PLACES, money_sum
from ..policy.thresholds import Tier
from .states import Status, PENDING_STATES, TERMINAL_STATES


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class RecordKind(str, Enum):
    """Kinds of record subject to the tiered workflow."""

    PURCHASE_ORDER = "purchase_order"
    SERVICE_REQUISITION = "service_requisition"

    @property
    def number_prefix(self) -> str:
        return "PO" if self is RecordKind.PURCHASE_ORDER else "SR"


@dataclass(frozen=True)
class LineItem:
    """A purchase order line. Deleted lines are kept for audit only."""

    description: str
    quantity: Decimal
    unit_price: Decimal
    is_deleted: bool = False

    @property
    def line_total(self) -> Decimal:
        """Exact ``quantity * unit_price``; rounding happens once, on the subtotal."""
        return self.quantity * self.unit_price

    def to_dict(self) -> Dict[str, Any]:
        return {
            "description": self.description,
            "quantity": str(self.quantity),
            "unit_price": str(self.unit_price),
            "line_total": str(self.line_total),
            "is_deleted": self.is_deleted,
        }


def active_lines(line_items: Tuple[LineItem, ...]) -> Tuple[LineItem, ...]:
    """Lines that count toward totals and display."""
    return tuple(item for item in line_items if not item.is_deleted)


def reconcile_subtotal(line_items: Tuple[LineItem, ...], places: int = DEFAULT_PLACES) -> Decimal:
    """Sum of ``quantity * unit_price`` over non-deleted lines."""
    return money_sum((item.line_total for item in active_lines(line_items)), places)


@dataclass(frozen=True)
class TransitionRecord:
    """One entry of a record's audit trail."""

    id: str
    from_state: Status
    to_state: Status
    event: str
    actor_id: Optional[str]
    timestamp: datetime
    tier: Optional[Tier] = None
    comment: Optional[str] = None
    metadata: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "from_state": self.from_state.value,
            "to_state": self.to_state.value,
            "event": self.event,
            "actor_id": self.actor_id,
            "tier": self.tier.value if self.tier else None,
            "comment": self.comment,
            "metadata": self.metadata,
            "timestamp": self.timestamp.isoformat(),
        }


@dataclass(frozen=True)
class ApprovableRecord:
    """A purchase order or service requisition under tiered approval."""

    id: str
    number: str
    kind: RecordKind
    status: Status
    required_tiers: Tuple[Tier, ...]
    current_approval_tier: Optional[Tier] = None

    # Purchase order money
    subtotal: Decimal = Decimal("0.00")
    tax: Decimal = Decimal("0.00")
    shipping: Decimal = Decimal("0.00")
    total: Decimal = Decimal("0.00")
    line_items: Tuple[LineItem, ...] = ()

    # Service requisition money
    invoice_amount: Optional[Decimal] = None
    original_estimate: Optional[Decimal] = None
    variance: Optional[Decimal] = None
    variance_percent: Optional[Decimal] = None
    variance_justification: Optional[str] = None
    justification_required: bool = False

    # Context
    title: Optional[str] = None
    vendor_name: Optional[str] = None
    department: Optional[str] = None
    notes: Optional[str] = None
    supersedes_id: Optional[str] = None
    created_by: Optional[str] = None

    # Workflow stamps
    submitted_by: Optional[str] = None
    submitted_at: Optional[datetime] = None
    auto_approved_at: Optional[datetime] = None
    tier2_approved_by: Optional[str] = None
    tier2_approved_at: Optional[datetime] = None
    tier3_approved_by: Optional[str] = None
    tier3_approved_at: Optional[datetime] = None
    rejected_by: Optional[str] = None
    rejected_at: Optional[datetime] = None
    rejection_reason: Optional[str] = None
    closed_by: Optional[str] = None
    closed_at: Optional[datetime] = None

    history: Tuple[TransitionRecord, ...] = ()
    version: int = 0
    created_at: datetime = field(default_factory=utcnow)
    updated_at: datetime = field(default_factory=utcnow)

    @property
    def routing_amount(self) -> Decimal:
        """The amount that decides which tiers must approve."""
        if self.kind is RecordKind.SERVICE_REQUISITION:
            return self.invoice_amount or Decimal("0")
        return self.total

    @property
    def is_pending(self) -> bool:
        return self.status in PENDING_STATES

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATES

    @property
    def visible_line_items(self) -> Tuple[LineItem, ...]:
        return active_lines(self.line_items)

    def to_dict(self) -> Dict[str, Any]:
        """Serializable projection of the record."""

        def money(value: Optional[Decimal]) -> Optional[str]:
            return str(value) if value is not None else None

        def stamp(value: Optional[datetime]) -> Optional[str]:
            return value.isoformat() if value else None

        return {
            "id": self.id,
            "number": self.number,
            "kind": self.kind.value,
            "status": self.status.value,
            "required_tiers": [t.value for t in self.required_tiers],
            "current_approval_tier": self.current_approval_tier.value if self.current_approval_tier else None,
            "subtotal": money(self.subtotal),
            "tax": money(self.tax),
            "shipping": money(self.shipping),
            "total": money(self.total),
            "line_items": [item.to_dict() for item in self.visible_line_items],
            "invoice_amount": money(self.invoice_amount),
            "original_estimate": money(self.original_estimate),
            "variance": money(self.variance),
            "variance_percent": money(self.variance_percent),
            "variance_justification": self.variance_justification,
            "justification_required": self.justification_required,
            "title": self.title,
            "vendor_name": self.vendor_name,
            "department": self.department,
            "notes": self.notes,
            "supersedes_id": self.supersedes_id,
            "created_by": self.created_by,
            "submitted_by": self.submitted_by,
            "submitted_at": stamp(self.submitted_at),
            "auto_approved_at": stamp(self.auto_approved_at),
            "tier2_approved_by": self.tier2_approved_by,
            "tier2_approved_at": stamp(self.tier2_approved_at),
            "tier3_approved_by": self.tier3_approved_by,
            "tier3_approved_at": stamp(self.tier3_approved_at),
            "rejected_by": self.rejected_by,
            "rejected_at": stamp(self.rejected_at),
            "rejection_reason": self.rejection_reason,
            "closed_by": self.closed_by,
            "closed_at": stamp(self.closed_at),
            "version": self.version,
            "created_at": stamp(self.created_at),
            "updated_at": stamp(self.updated_at),
        }
