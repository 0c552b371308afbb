"""Tests for the approval coordinator."""

from decimal import Decimal

import pytest

from procurement.core.approval import (
    ApprovalCoordinator,
    LineItemInput,
    PurchaseOrderInput,
    RecordKind,
    Status,
)
from procurement.core.errors import (
    AlreadyProcessedError,
    InvalidTransitionError,
    NotFoundError,
    PermissionDeniedError,
    ValidationError,
)
from procurement.core.policy.thresholds import Tier
from tests.factories import service_requisition


class TestCreate:
    """Test creation and routing of new records."""

    def test_small_order_auto_approved(self, make_po):
        record = make_po("500.00")

        assert record.status == Status.APPROVED
        assert record.required_tiers == ()
        assert record.auto_approved_at is not None
        assert record.current_approval_tier is None
        assert record.version == 1
        assert record.kind == RecordKind.PURCHASE_ORDER
        assert record.number.startswith("PO-")

    def test_mid_order_waits_for_tier2(self, make_po):
        record = make_po("2500.00")

        assert record.status == Status.PENDING_TIER2
        assert record.required_tiers == (Tier.TIER_2,)
        assert record.current_approval_tier == Tier.TIER_2
        assert record.submitted_by == "buyer"

    @pytest.mark.parametrize("amount,tiers", [
        ("999.99", ()),
        ("1000.00", (Tier.TIER_2,)),
        ("5000.00", (Tier.TIER_2, Tier.TIER_3)),
    ])
    def test_threshold_boundaries(self, make_po, amount, tiers):
        assert make_po(amount).required_tiers == tiers

    def test_line_item_reconciliation(self, coordinator):
        data = PurchaseOrderInput(
            line_items=[
                LineItemInput("Bearings", quantity=2, unit_price="100.00"),
                LineItemInput("Seals", quantity=3, unit_price="33.33"),
                LineItemInput("Cancelled pump", quantity=1, unit_price="999.00", is_deleted=True),
            ],
            tax="10.50",
            shipping=5,
            vendor_name="Acme Industrial",
        )

        record = coordinator.create_approvable(data, actor_id="buyer")

        assert record.subtotal == Decimal("299.99")
        assert record.total == Decimal("315.49")
        assert record.total == record.subtotal + record.tax + record.shipping
        assert len(record.line_items) == 3
        assert [item.description for item in record.visible_line_items] == ["Bearings", "Seals"]
        assert record.status == Status.APPROVED

    def test_deleted_lines_do_not_route(self, coordinator):
        data = PurchaseOrderInput(line_items=[
            LineItemInput("Valve", quantity=1, unit_price="900.00"),
            LineItemInput("Compressor", quantity=1, unit_price="9000.00", is_deleted=True),
        ])
        assert coordinator.create_approvable(data, actor_id="buyer").required_tiers == ()

    def test_negative_money_rejected(self, coordinator, store):
        with pytest.raises(ValidationError) as exc_info:
            coordinator.create_approvable(PurchaseOrderInput(tax="-1"), actor_id="buyer")
        assert exc_info.value.field == "tax"
        assert store.query_approvables(list(Status)) == []

    def test_negative_quantity_rejected(self, coordinator):
        data = PurchaseOrderInput(line_items=[LineItemInput("Bolt", quantity=-1, unit_price="1.00")])
        with pytest.raises(ValidationError):
            coordinator.create_approvable(data, actor_id="buyer")

    def test_quantity_precision_limited(self, coordinator, store):
        data = PurchaseOrderInput(line_items=[LineItemInput("Cable", quantity="0.33333", unit_price="300")])

        with pytest.raises(ValidationError) as exc_info:
            coordinator.create_approvable(data, actor_id="buyer")

        assert exc_info.value.field == "line_items[0].quantity"
        assert store.query_approvables(list(Status)) == []

    def test_fractional_line_totals_not_rounded_per_line(self, coordinator):
        data = PurchaseOrderInput(line_items=[
            LineItemInput("Cable", quantity="0.3333", unit_price="300"),
            LineItemInput("Cable", quantity="0.3333", unit_price="300"),
        ])

        record = coordinator.create_approvable(data, actor_id="buyer")

        assert record.line_items[0].line_total == Decimal("99.99")
        assert record.subtotal == Decimal("199.98")

    def test_unknown_input_type(self, coordinator):
        with pytest.raises(ValidationError):
            coordinator.create_approvable({"total": 10}, actor_id="buyer")

    def test_draft_not_submitted(self, make_po):
        record = make_po("2500.00", submit=False)
        assert record.status == Status.DRAFT
        assert record.submitted_at is None
        assert record.history == ()

    def test_explicit_number(self, make_po):
        assert make_po("10.00", number="PO-0001").number == "PO-0001"


class TestServiceRequisitions:
    """Test variance handling for service requisitions."""

    def test_variance_requires_justification(self, coordinator, store):
        with pytest.raises(ValidationError) as exc_info:
            coordinator.create_approvable(service_requisition("1150", "1000"), actor_id="buyer")

        assert exc_info.value.field == "variance_justification"
        assert store.query_approvables(list(Status)) == []

    def test_whitespace_justification_is_missing(self, coordinator):
        with pytest.raises(ValidationError):
            coordinator.create_approvable(
                service_requisition("1150", "1000", justification="   "),
                actor_id="buyer",
            )

    def test_justified_variance(self, coordinator):
        record = coordinator.create_approvable(
            service_requisition("1150", "1000", justification="Emergency call-out"),
            actor_id="buyer",
        )

        assert record.kind == RecordKind.SERVICE_REQUISITION
        assert record.number.startswith("SR-")
        assert record.variance == Decimal("150.00")
        assert record.variance_percent == Decimal("15.00")
        assert record.variance_justification == "Emergency call-out"
        assert record.status == Status.PENDING_TIER2

    def test_small_variance(self, coordinator):
        record = coordinator.create_approvable(service_requisition("1050", "1000"), actor_id="buyer")
        assert record.justification_required is False
        assert record.status == Status.PENDING_TIER2

    def test_routes_on_invoice_amount(self, coordinator):
        record = coordinator.create_approvable(service_requisition("800"), actor_id="buyer")
        assert record.variance is None
        assert record.status == Status.APPROVED

    def test_draft_then_submit_with_justification(self, coordinator):
        draft = coordinator.create_approvable(
            service_requisition("1150", "1000"),
            actor_id="buyer",
            submit=False,
        )
        assert draft.status == Status.DRAFT

        with pytest.raises(ValidationError):
            coordinator.submit(draft.id, "buyer")

        submitted = coordinator.submit(draft.id, "buyer", justification="Scope grew")
        assert submitted.status == Status.PENDING_TIER2
        assert submitted.variance_justification == "Scope grew"

    def test_submit_twice(self, coordinator):
        record = coordinator.create_approvable(service_requisition("100"), actor_id="buyer")
        with pytest.raises(AlreadyProcessedError):
            coordinator.submit(record.id, "buyer")


class TestApprove:
    """Test tier approval paths."""

    def test_single_tier(self, coordinator, make_po):
        record = make_po("2500.00")

        approved = coordinator.approve(record.id, "pm")

        assert approved.status == Status.APPROVED
        assert approved.tier2_approved_by == "pm"
        assert approved.version == record.version + 1

    def test_two_tiers(self, coordinator, make_po):
        record = make_po("7500.00")

        after_tier2 = coordinator.approve(record.id, "pm")
        assert after_tier2.status == Status.PENDING_TIER3
        assert after_tier2.current_approval_tier == Tier.TIER_3

        with pytest.raises(PermissionDeniedError):
            coordinator.approve(record.id, "pm")

        approved = coordinator.approve(record.id, "owner")
        assert approved.status == Status.APPROVED
        assert approved.tier2_approved_by == "pm"
        assert approved.tier3_approved_by == "owner"

    def test_second_approve_already_processed(self, coordinator, make_po):
        record = make_po("2500.00")
        approved = coordinator.approve(record.id, "pm")

        with pytest.raises(AlreadyProcessedError) as exc_info:
            coordinator.approve(record.id, "pm")

        assert exc_info.value.state == "approved"
        assert coordinator.get(record.id) == approved

    def test_approve_draft_already_processed(self, coordinator, make_po):
        record = make_po("2500.00", submit=False)
        with pytest.raises(AlreadyProcessedError):
            coordinator.approve(record.id, "pm")

    def test_not_found(self, coordinator):
        with pytest.raises(NotFoundError):
            coordinator.approve("missing", "pm")

    def test_unauthorized_leaves_state(self, coordinator, make_po):
        record = make_po("2500.00")

        with pytest.raises(PermissionDeniedError):
            coordinator.approve(record.id, "viewer")

        assert coordinator.get(record.id) == record

    def test_admin_wildcard(self, coordinator, make_po):
        record = make_po("7500.00")
        coordinator.approve(record.id, "admin")
        assert coordinator.approve(record.id, "admin").status == Status.APPROVED


class TestReject:

    def test_reject(self, coordinator, make_po):
        record = make_po("2500.00")

        rejected = coordinator.reject(record.id, "pm", "Wrong vendor")

        assert rejected.status == Status.REJECTED
        assert rejected.rejection_reason == "Wrong vendor"
        assert rejected.rejected_by == "pm"
        assert rejected.current_approval_tier is None

    @pytest.mark.parametrize("reason", ["", "   ", None])
    def test_empty_reason(self, coordinator, make_po, reason):
        record = make_po("2500.00")

        with pytest.raises(ValidationError):
            coordinator.reject(record.id, "pm", reason)

        assert coordinator.get(record.id).status == Status.PENDING_TIER2

    def test_empty_reason_checked_before_lookup(self, coordinator):
        with pytest.raises(ValidationError):
            coordinator.reject("missing", "pm", " ")

    def test_reject_at_tier3_needs_tier3(self, coordinator, make_po):
        record = make_po("7500.00")
        coordinator.approve(record.id, "pm")

        with pytest.raises(PermissionDeniedError):
            coordinator.reject(record.id, "pm", "No")

        assert coordinator.reject(record.id, "owner", "No").status == Status.REJECTED

    def test_reject_after_approval(self, coordinator, make_po):
        record = make_po("500.00")
        with pytest.raises(AlreadyProcessedError):
            coordinator.reject(record.id, "pm", "Too late")


class TestClose:

    def test_close_approved(self, coordinator, make_po):
        record = make_po("500.00")

        closed = coordinator.close(record.id, "buyer")

        assert closed.status == Status.CLOSED
        assert closed.closed_by == "buyer"

    def test_close_twice(self, coordinator, make_po):
        record = make_po("500.00")
        coordinator.close(record.id, "buyer")
        with pytest.raises(AlreadyProcessedError):
            coordinator.close(record.id, "buyer")

    def test_close_pending_invalid(self, coordinator, make_po):
        record = make_po("2500.00")
        with pytest.raises(InvalidTransitionError) as exc_info:
            coordinator.close(record.id, "buyer")
        assert not isinstance(exc_info.value, AlreadyProcessedError)

    @pytest.mark.parametrize("actor_id", ["viewer", "nobody-at-all"])
    def test_close_requires_permission(self, coordinator, make_po, actor_id):
        record = make_po("500.00")

        with pytest.raises(PermissionDeniedError) as exc_info:
            coordinator.close(record.id, actor_id)

        assert exc_info.value.required_permission == "approvals:close"
        unchanged = coordinator.get(record.id)
        assert unchanged.status == Status.APPROVED
        assert unchanged.closed_by is None
        assert unchanged.version == record.version

    @pytest.mark.parametrize("actor_id", ["pm", "owner", "admin"])
    def test_close_by_role_holders(self, coordinator, make_po, actor_id):
        record = make_po("500.00")
        assert coordinator.close(record.id, actor_id).closed_by == actor_id


class TestSupersedes:

    def test_unknown_original(self, make_po):
        with pytest.raises(ValidationError) as exc_info:
            make_po("100.00", supersedes_id="missing")
        assert exc_info.value.field == "supersedes_id"

    def test_original_still_pending(self, make_po):
        original = make_po("2500.00")
        with pytest.raises(ValidationError):
            make_po("2400.00", supersedes_id=original.id)

    def test_corrects_rejected_record(self, coordinator, make_po):
        original = make_po("2500.00")
        coordinator.reject(original.id, "pm", "Quote expired")

        correction = make_po("2400.00", supersedes_id=original.id)

        assert correction.supersedes_id == original.id
        assert correction.status == Status.PENDING_TIER2


class TestQueries:

    def test_list_pending_and_counts(self, coordinator, make_po):
        first = make_po("2500.00")
        second = make_po("7500.00")
        make_po("500.00")

        assert [r.id for r in coordinator.list_pending()] == [first.id, second.id]
        assert coordinator.pending_counts() == {"tier2": 2, "tier3": 0, "total": 2}

        coordinator.approve(second.id, "pm")

        assert [r.id for r in coordinator.list_pending(Tier.TIER_3)] == [second.id]
        assert [r.id for r in coordinator.list_pending(Tier.TIER_2)] == [first.id]
        assert coordinator.pending_counts() == {"tier2": 1, "tier3": 1, "total": 2}

    def test_list_records(self, coordinator, make_po):
        small = make_po("10.00")
        make_po("2500.00")

        assert [r.id for r in coordinator.list_records([Status.APPROVED])] == [small.id]
        assert len(coordinator.list_records()) == 2

    def test_history(self, coordinator, make_po):
        record = make_po("2500.00")
        coordinator.approve(record.id, "pm", comment="Looks fine")

        history = coordinator.history(record.id)

        assert [h.event for h in history] == ["submit", "approve"]
        assert history[1].actor_id == "pm"
        assert history[1].comment == "Looks fine"

    def test_history_not_found(self, coordinator):
        with pytest.raises(NotFoundError):
            coordinator.history("missing")


class TestApprovalChain:

    def test_pending_chain(self, coordinator, make_po):
        record = make_po("7500.00")

        chain = coordinator.approval_chain(record)

        assert [step["status"] for step in chain] == ["pending", "waiting"]
        assert chain[0]["label"] == "Plant Manager"
        assert chain[1]["threshold"] == "5000.00"

    def test_partially_approved_then_rejected(self, coordinator, make_po):
        record = make_po("7500.00")
        coordinator.approve(record.id, "pm")
        rejected = coordinator.reject(record.id, "owner", "Not this quarter")

        chain = coordinator.approval_chain(rejected)

        assert [step["status"] for step in chain] == ["approved", "rejected"]
        assert chain[0]["actor_id"] == "pm"
        assert chain[1]["actor_id"] == "owner"

    def test_no_tiers_no_steps(self, coordinator, make_po):
        assert coordinator.approval_chain(make_po("10.00")) == []

    def test_draft_chain_waiting(self, coordinator, make_po):
        chain = coordinator.approval_chain(make_po("2500.00", submit=False))
        assert [step["status"] for step in chain] == ["waiting"]


class TestBatch:

    def test_batch_approve(self, coordinator, make_po):
        first = make_po("2500.00")
        second = make_po("3000.00")

        result = coordinator.batch_approve([first.id, "missing", second.id], "pm")

        assert result["approved"] == [first.id, second.id]
        assert [f["id"] for f in result["failed"]] == ["missing"]
        assert "not found" in result["failed"][0]["error"]

    def test_batch_reject(self, coordinator, make_po):
        first = make_po("2500.00")
        done = make_po("10.00")

        result = coordinator.batch_reject([first.id, done.id], "pm", "Budget freeze")

        assert result["rejected"] == [first.id]
        assert result["failed"][0]["id"] == done.id
        assert coordinator.get(first.id).rejection_reason == "Budget freeze"

    def test_batch_reject_requires_reason(self, coordinator):
        with pytest.raises(ValidationError):
            coordinator.batch_reject(["a"], "pm", "")


class TestCustomPolicy:

    def test_places_and_thresholds(self, store, authorizer):
        from procurement.core.policy.thresholds import ThresholdPolicy

        coordinator = ApprovalCoordinator(
            store,
            ThresholdPolicy.from_values("200", "300"),
            authorizer,
            places=3,
        )
        record = coordinator.create_approvable(
            PurchaseOrderInput(
                line_items=[
                    LineItemInput("Paint", quantity="1.5", unit_price="200"),
                    LineItemInput("Rivet", quantity=1, unit_price="0.004"),
                    LineItemInput("Washer", quantity=1, unit_price="0.004"),
                ],
                shipping="0.0015",
            ),
            actor_id="buyer",
        )

        assert record.subtotal == Decimal("300.008")
        assert record.shipping == Decimal("0.002")
        assert record.total == Decimal("300.010")
        assert record.required_tiers == (Tier.TIER_2, Tier.TIER_3)

    def test_subtotal_rounds_once(self, store, authorizer, policy):
        coordinator = ApprovalCoordinator(store, policy, authorizer, places=3)
        record = coordinator.create_approvable(
            PurchaseOrderInput(line_items=[
                LineItemInput("Shim", quantity=1, unit_price="0.004"),
                LineItemInput("Shim", quantity=1, unit_price="0.004"),
            ]),
            actor_id="buyer",
        )

        exact = sum(item.quantity * item.unit_price for item in record.visible_line_items)
        assert record.subtotal == exact == Decimal("0.008")

    def test_unsupported_places(self, store, authorizer, policy):
        with pytest.raises(ValueError):
            ApprovalCoordinator(store, policy, authorizer, places=7)
