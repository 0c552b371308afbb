"""Approval coordinator for purchase orders and service requisitions.

Provides the high-level API over the approval state machine: it validates
input, derives totals, variance and required tiers, drives transitions and
commits every result through the store's conditional write.
"""

import uuid
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Callable, Dict, Iterable, List, Optional, Protocol, Sequence

from ...common.logger import get_logger
from ..errors import (
    AlreadyProcessedError,
    ApprovalError,
    ConflictError,
    NotFoundError,
    ValidationError,
)
from ..money import (
    DEFAULT_PLACES,
    QUANTITY_PLACES,
    MoneyLike,
    check_places,
    optional_money,
    quantize,
    require_scale,
    to_decimal,
    to_money,
)
from ..policy.thresholds import Tier, ThresholdPolicy
from ..policy.variance import calculate_variance
from ..rbac.authorizer import TierAuthorizer
from .machine import apply_event
from .records import ApprovableRecord, LineItem, RecordKind, TransitionRecord, reconcile_subtotal
from .states import Event, Status, PENDING_STATE_FOR_TIER, PENDING_STATES

logger = get_logger("coordinator")


class ApprovableStore(Protocol):
    """Persistence contract used by the coordinator."""

    def load_approvable(self, record_id: str) -> ApprovableRecord:
        ...

    def save_approvable(
        self,
        record: ApprovableRecord,
        expected_prior_status: Optional[Status],
    ) -> ApprovableRecord:
        ...

    def query_approvables(self, statuses: Iterable[Status]) -> List[ApprovableRecord]:
        ...


@dataclass
class LineItemInput:
    description: str
    quantity: MoneyLike
    unit_price: MoneyLike
    is_deleted: bool = False


@dataclass
class PurchaseOrderInput:
    """Fields supplied when raising a purchase order."""

    line_items: Sequence[LineItemInput] = field(default_factory=list)
    tax: Optional[MoneyLike] = None
    shipping: Optional[MoneyLike] = None
    number: Optional[str] = None
    title: Optional[str] = None
    vendor_name: Optional[str] = None
    department: Optional[str] = None
    notes: Optional[str] = None
    supersedes_id: Optional[str] = None


@dataclass
class ServiceRequisitionInput:
    """Fields supplied when raising a service requisition.

    ``original_estimate`` may be omitted, in which case no variance is
    computed and no justification is needed.
    """

    invoice_amount: MoneyLike
    original_estimate: Optional[MoneyLike] = None
    justification: Optional[str] = None
    number: Optional[str] = None
    title: Optional[str] = None
    vendor_name: Optional[str] = None
    department: Optional[str] = None
    notes: Optional[str] = None
    supersedes_id: Optional[str] = None


class ApprovalCoordinator:
    """
    High-level service for the tiered approval workflow.

    Handles:
    - Creating purchase orders and service requisitions
    - Submitting, approving, rejecting and closing records
    - Querying pending work and approval chains
    - Batch decisions

    The coordinator holds no locks. Concurrent decisions on one record are
    settled by the store: the loser of a race gets :class:`ConflictError`.
    """

    def __init__(
        self,
        store: ApprovableStore,
        policy: ThresholdPolicy,
        authorizer: TierAuthorizer,
        *,
        places: int = DEFAULT_PLACES,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        """
        Initialize the coordinator.

        Args:
            store: Persistence collaborator with conditional writes
            policy: Threshold policy deciding required tiers
            authorizer: Decides whether an actor may act at a tier
            places: Decimal places kept for money, at most ``MAX_PLACES``
            clock: Source of timestamps (UTC)
        """
        self.store = store
        self.policy = policy
        self.authorizer = authorizer
        self.places = check_places(places)
        self._clock = clock or (lambda: datetime.now(timezone.utc))

    def get(self, record_id: str) -> ApprovableRecord:
        """Load a record by id. Raises NotFoundError if absent."""
        return self.store.load_approvable(record_id)

    def create_approvable(
        self,
        data: Any,
        *,
        actor_id: str,
        submit: bool = True,
    ) -> ApprovableRecord:
        """
        Create a purchase order or service requisition.

        Args:
            data: PurchaseOrderInput or ServiceRequisitionInput
            actor_id: Authenticated id of the creator
            submit: Submit immediately; otherwise the record stays in draft

        Returns:
            The persisted record, approved outright when no tier is required

        Raises:
            ValidationError: On bad money, a dangling ``supersedes_id`` or a
                missing justification when submitting
            ConflictError: If a record with the same id already exists
        """
        if isinstance(data, PurchaseOrderInput):
            record = self._build_purchase_order(data, actor_id)
        elif isinstance(data, ServiceRequisitionInput):
            record = self._build_service_requisition(data, actor_id)
        else:
            raise ValidationError(
                f"Unsupported approvable input: {type(data).__name__}",
                field="kind",
            )

        if submit:
            record = apply_event(
                record,
                Event.SUBMIT,
                actor_id=actor_id,
                authorizer=self.authorizer,
                clock=self._clock,
            )

        saved = self._commit(record, expected_prior_status=None)
        logger.info(
            f"Created {saved.kind.value} {saved.number} ({saved.id}) amount={saved.routing_amount} "
            f"tiers={[t.value for t in saved.required_tiers]} status={saved.status.value}"
        )
        return saved

    def submit(
        self,
        record_id: str,
        actor_id: str,
        *,
        justification: Optional[str] = None,
    ) -> ApprovableRecord:
        """Submit a draft, optionally attaching a variance justification."""
        record = self.store.load_approvable(record_id)
        if record.status != Status.DRAFT:
            raise AlreadyProcessedError(record.id, Event.SUBMIT.value, record.status.value)

        if justification is not None:
            record = replace(record, variance_justification=justification.strip() or None)

        return self._transition(record, Event.SUBMIT, actor_id)

    def approve(
        self,
        record_id: str,
        actor_id: str,
        *,
        comment: Optional[str] = None,
    ) -> ApprovableRecord:
        """
        Record an approval at the tier the record is waiting on.

        Raises:
            NotFoundError: If the record does not exist
            AlreadyProcessedError: If the record is not pending a decision
            PermissionDeniedError: If the actor cannot decide at the tier
            ConflictError: If another decision committed first
        """
        record = self.store.load_approvable(record_id)
        if not record.is_pending:
            raise AlreadyProcessedError(record.id, Event.APPROVE.value, record.status.value)

        return self._transition(record, Event.APPROVE, actor_id, comment=comment)

    def reject(self, record_id: str, actor_id: str, reason: str) -> ApprovableRecord:
        """
        Reject a pending record.

        Raises:
            ValidationError: If the reason is empty or whitespace
            NotFoundError: If the record does not exist
            AlreadyProcessedError: If the record is not pending a decision
            PermissionDeniedError: If the actor cannot decide at the tier
            ConflictError: If another decision committed first
        """
        if not reason or not reason.strip():
            raise ValidationError("A rejection reason is required", field="reason")

        record = self.store.load_approvable(record_id)
        if not record.is_pending:
            raise AlreadyProcessedError(record.id, Event.REJECT.value, record.status.value)

        return self._transition(record, Event.REJECT, actor_id, reason=reason)

    def close(self, record_id: str, actor_id: str) -> ApprovableRecord:
        """
        Close an approved record.

        Raises:
            AlreadyProcessedError: If the record is already closed
            InvalidTransitionError: If the record is not approved
            PermissionDeniedError: If the actor lacks ``approvals:close``
        """
        record = self.store.load_approvable(record_id)
        if record.status == Status.CLOSED:
            raise AlreadyProcessedError(record.id, Event.CLOSE.value, record.status.value)

        return self._transition(record, Event.CLOSE, actor_id)

    def list_pending(self, tier: Optional[Tier] = None) -> List[ApprovableRecord]:
        """Records awaiting a decision, oldest first, optionally for one tier."""
        if tier is None:
            statuses = sorted(PENDING_STATES, key=lambda s: s.value)
        else:
            statuses = [PENDING_STATE_FOR_TIER[Tier(tier)]]
        return self.store.query_approvables(statuses)

    def list_records(self, statuses: Optional[Iterable[Status]] = None) -> List[ApprovableRecord]:
        """Records in any of ``statuses`` (all statuses by default), oldest first."""
        return self.store.query_approvables(list(statuses) if statuses else list(Status))

    def pending_counts(self) -> Dict[str, int]:
        """Number of records waiting at each tier."""
        counts = {tier.value: 0 for tier in PENDING_STATE_FOR_TIER}
        for record in self.list_pending():
            if record.current_approval_tier is not None:
                counts[record.current_approval_tier.value] += 1
        counts["total"] = sum(counts.values())
        return counts

    def history(self, record_id: str) -> List[TransitionRecord]:
        """Audit trail of a record, oldest first."""
        return list(self.store.load_approvable(record_id).history)

    def approval_chain(self, record: ApprovableRecord) -> List[Dict[str, Any]]:
        """
        Describe each required tier of ``record`` as a step.

        Steps are ``waiting`` until the record reaches them, ``pending``
        while awaiting a decision, then ``approved`` or ``rejected``.
        """
        rejected_tier = None
        for entry in record.history:
            if entry.event == Event.REJECT.value:
                rejected_tier = entry.tier

        steps = []
        for tier in record.required_tiers:
            if tier == Tier.TIER_2:
                actor, decided_at = record.tier2_approved_by, record.tier2_approved_at
            else:
                actor, decided_at = record.tier3_approved_by, record.tier3_approved_at

            if decided_at is not None:
                status = "approved"
            elif record.status == Status.REJECTED and rejected_tier == tier:
                status = "rejected"
                actor, decided_at = record.rejected_by, record.rejected_at
            elif record.is_pending and record.current_approval_tier == tier:
                status = "pending"
            else:
                status = "waiting"

            steps.append({
                "tier": tier.value,
                "level": tier.level,
                "label": tier.label,
                "threshold": str(self.policy.threshold_for(tier)),
                "status": status,
                "actor_id": actor,
                "decided_at": decided_at.isoformat() if decided_at else None,
            })

        return steps

    def batch_approve(
        self,
        record_ids: List[str],
        actor_id: str,
        *,
        comment: Optional[str] = None,
    ) -> Dict[str, Any]:
        """
        Approve multiple records, one decision each.

        Returns:
            Summary of results
        """
        results: Dict[str, Any] = {"approved": [], "failed": []}

        for record_id in record_ids:
            try:
                self.approve(record_id, actor_id, comment=comment)
                results["approved"].append(record_id)
            except ApprovalError as e:
                results["failed"].append({"id": record_id, "error": str(e)})

        return results

    def batch_reject(
        self,
        record_ids: List[str],
        actor_id: str,
        reason: str,
    ) -> Dict[str, Any]:
        """Reject multiple records with one reason."""
        if not reason or not reason.strip():
            raise ValidationError("A rejection reason is required", field="reason")

        results: Dict[str, Any] = {"rejected": [], "failed": []}

        for record_id in record_ids:
            try:
                self.reject(record_id, actor_id, reason)
                results["rejected"].append(record_id)
            except ApprovalError as e:
                results["failed"].append({"id": record_id, "error": str(e)})

        return results

    def _transition(
        self,
        record: ApprovableRecord,
        event: Event,
        actor_id: str,
        *,
        reason: Optional[str] = None,
        comment: Optional[str] = None,
    ) -> ApprovableRecord:
        updated = apply_event(
            record,
            event,
            actor_id=actor_id,
            authorizer=self.authorizer,
            reason=reason,
            comment=comment,
            clock=self._clock,
        )
        saved = self._commit(updated, expected_prior_status=record.status)
        logger.info(
            f"{saved.number} ({saved.id}): {event.value} by {actor_id}, "
            f"{record.status.value} -> {saved.status.value}"
        )
        return saved

    def _commit(
        self,
        record: ApprovableRecord,
        expected_prior_status: Optional[Status],
    ) -> ApprovableRecord:
        try:
            return self.store.save_approvable(record, expected_prior_status)
        except ConflictError as e:
            logger.warning(
                f"Conflict saving {record.id}: expected {e.expected_status}, found {e.actual_status}"
            )
            raise

    def _check_supersedes(self, supersedes_id: Optional[str]) -> None:
        if supersedes_id is None:
            return
        try:
            original = self.store.load_approvable(supersedes_id)
        except NotFoundError:
            raise ValidationError(
                f"Superseded record {supersedes_id} does not exist",
                field="supersedes_id",
            ) from None
        if not original.is_terminal:
            raise ValidationError(
                f"Superseded record {supersedes_id} is still {original.status.value}",
                field="supersedes_id",
            )

    def _new_identity(self, kind: RecordKind, number: Optional[str]) -> Dict[str, Any]:
        now = self._clock()
        return {
            "id": uuid.uuid4().hex,
            "number": number or f"{kind.number_prefix}-{uuid.uuid4().hex[:8].upper()}",
            "kind": kind,
            "status": Status.DRAFT,
            "created_at": now,
            "updated_at": now,
        }

    def _build_line_item(self, index: int, item: LineItemInput) -> LineItem:
        prefix = f"line_items[{index}]"
        if not item.description or not item.description.strip():
            raise ValidationError(f"{prefix}.description is required", field=f"{prefix}.description")

        quantity = to_decimal(item.quantity, f"{prefix}.quantity")
        if quantity < 0:
            raise ValidationError(
                f"{prefix}.quantity must be non-negative, got {quantity}",
                field=f"{prefix}.quantity",
            )
        require_scale(quantity, QUANTITY_PLACES, f"{prefix}.quantity")

        return LineItem(
            description=item.description.strip(),
            quantity=quantity,
            unit_price=to_money(item.unit_price, f"{prefix}.unit_price", self.places),
            is_deleted=item.is_deleted,
        )

    def _build_purchase_order(self, data: PurchaseOrderInput, actor_id: str) -> ApprovableRecord:
        line_items = tuple(
            self._build_line_item(index, item) for index, item in enumerate(data.line_items)
        )
        tax = optional_money(data.tax, "tax", self.places)
        shipping = optional_money(data.shipping, "shipping", self.places)
        subtotal = reconcile_subtotal(line_items, self.places)
        total = quantize(subtotal + tax + shipping, self.places)

        self._check_supersedes(data.supersedes_id)

        return ApprovableRecord(
            **self._new_identity(RecordKind.PURCHASE_ORDER, data.number),
            required_tiers=self.policy.required_tiers(total),
            subtotal=subtotal,
            tax=tax,
            shipping=shipping,
            total=total,
            line_items=line_items,
            title=data.title,
            vendor_name=data.vendor_name,
            department=data.department,
            notes=data.notes,
            supersedes_id=data.supersedes_id,
            created_by=actor_id,
        )

    def _build_service_requisition(
        self,
        data: ServiceRequisitionInput,
        actor_id: str,
    ) -> ApprovableRecord:
        invoice_amount = to_money(data.invoice_amount, "invoice_amount", self.places)

        estimate: Optional[Decimal] = None
        variance = None
        if data.original_estimate is not None:
            estimate = to_money(data.original_estimate, "original_estimate", self.places)
            variance = calculate_variance(estimate, invoice_amount, self.places)

        self._check_supersedes(data.supersedes_id)

        justification = data.justification.strip() if data.justification else None

        return ApprovableRecord(
            **self._new_identity(RecordKind.SERVICE_REQUISITION, data.number),
            required_tiers=self.policy.required_tiers(invoice_amount),
            invoice_amount=invoice_amount,
            original_estimate=estimate,
            variance=variance.delta if variance else None,
            variance_percent=variance.percent if variance else None,
            variance_justification=justification or None,
            justification_required=variance.requires_justification if variance else False,
            title=data.title,
            vendor_name=data.vendor_name,
            department=data.department,
            notes=data.notes,
            supersedes_id=data.supersedes_id,
            created_by=actor_id,
        )
