"""Tests for optimistic concurrency between racing decisions."""

import threading

import pytest

from procurement.core.approval import ApprovalCoordinator, Status
from procurement.core.errors import ConflictError
from procurement.db.memory import InMemoryApprovableStore
from tests.factories import purchase_order


class RendezvousStore(InMemoryApprovableStore):
    """Holds every reader until ``parties`` have loaded the same record."""

    def __init__(self, parties):
        super().__init__()
        self.barrier = threading.Barrier(parties)
        self.armed = False

    def load_approvable(self, record_id):
        record = super().load_approvable(record_id)
        if self.armed:
            self.barrier.wait(timeout=5)
        return record


class TestConcurrentApprovals:

    def test_exactly_one_wins(self, policy, authorizer, clock):
        store = RendezvousStore(parties=2)
        coordinator = ApprovalCoordinator(store, policy, authorizer, clock=clock)
        record = coordinator.create_approvable(purchase_order("2500.00"), actor_id="buyer")
        store.armed = True

        results = {}

        def decide(actor_id):
            try:
                results[actor_id] = coordinator.approve(record.id, actor_id)
            except ConflictError as e:
                results[actor_id] = e

        threads = [threading.Thread(target=decide, args=(actor,)) for actor in ("pm", "pm2")]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join(timeout=10)

        store.armed = False
        winners = [actor for actor, r in results.items() if not isinstance(r, ConflictError)]
        losers = [actor for actor, r in results.items() if isinstance(r, ConflictError)]

        assert len(winners) == 1
        assert len(losers) == 1

        stored = store.load_approvable(record.id)
        assert stored.status == Status.APPROVED
        assert stored.tier2_approved_by == winners[0]
        assert [h.event for h in stored.history] == ["submit", "approve"]

        conflict = results[losers[0]]
        assert conflict.expected_status == "pending_tier2"
        assert conflict.actual_status == "approved"


class TestInMemoryStore:

    def test_stale_version_conflicts(self, store, coordinator, make_po):
        record = make_po("2500.00", submit=False)
        store.save_approvable(record, Status.DRAFT)

        with pytest.raises(ConflictError):
            store.save_approvable(record, Status.DRAFT)

    def test_duplicate_insert_conflicts(self, store, make_po):
        record = make_po("10.00")
        with pytest.raises(ConflictError):
            store.save_approvable(record, None)

    def test_version_increments(self, store, make_po):
        record = make_po("2500.00", submit=False)
        assert record.version == 1
        assert store.save_approvable(record, Status.DRAFT).version == 2
