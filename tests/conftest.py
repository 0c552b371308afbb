"""Pytest configuration and shared fixtures."""

from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest

from procurement.core.approval import ApprovalCoordinator
from procurement.core.policy.thresholds import ThresholdPolicy
from procurement.core.rbac.authorizer import RoleTierAuthorizer
from procurement.core.rbac.roles import (
    BUYER_PERMISSIONS,
    OWNER_PERMISSIONS,
    PLANT_MANAGER_PERMISSIONS,
    VIEWER_PERMISSIONS,
)
from procurement.db.memory import InMemoryApprovableStore
from tests.factories import purchase_order


class TickingClock:
    """Deterministic UTC clock that advances one second per reading."""

    def __init__(self, start=None):
        self.now = start or datetime(2026, 10, 1, 9, 0, tzinfo=timezone.utc)

    def __call__(self):
        current = self.now
        self.now = self.now + timedelta(seconds=1)
        return current


@pytest.fixture
def clock():
    return TickingClock()


@pytest.fixture
def policy():
    return ThresholdPolicy.from_values("1000.00", "5000.00")


@pytest.fixture
def actor_permissions():
    """Actor id -> permissions, one actor per default role."""
    return {
        "buyer": BUYER_PERMISSIONS,
        "pm": PLANT_MANAGER_PERMISSIONS,
        "pm2": PLANT_MANAGER_PERMISSIONS,
        "owner": OWNER_PERMISSIONS,
        "viewer": VIEWER_PERMISSIONS,
        "admin": ["*:*"],
    }


@pytest.fixture
def authorizer(actor_permissions):
    return RoleTierAuthorizer(actor_permissions)


@pytest.fixture
def store():
    return InMemoryApprovableStore()


@pytest.fixture
def coordinator(store, policy, authorizer, clock):
    return ApprovalCoordinator(store, policy, authorizer, clock=clock)


@pytest.fixture
def make_po(coordinator):
    """Create a purchase order for ``amount`` through the coordinator."""
    def _make(amount, actor_id="buyer", submit=True, **kwargs):
        return coordinator.create_approvable(
            purchase_order(Decimal(str(amount)), **kwargs),
            actor_id=actor_id,
            submit=submit,
        )
    return _make


@pytest.fixture
def sql_session_factory():
    """Session factory bound to a fresh in-memory SQLite database."""
    from procurement.db.session import create_db_engine, create_session_factory, init_db

    engine = create_db_engine("sqlite://")
    init_db(engine)
    yield create_session_factory(engine)
    engine.dispose()
