"""Tests for coordinator wiring from settings and the policy file."""

from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest
import yaml

from procurement.bootstrap import (
    build_actor_permissions,
    build_coordinator,
    build_threshold_policy,
    load_policy_config,
)
from procurement.common.config import ApprovalPolicyConfig, parse_config
from procurement.core.approval import Status
from procurement.core.config import Settings
from procurement.core.errors import PermissionDeniedError
from procurement.db.memory import InMemoryApprovableStore
from tests.factories import purchase_order

NOW = datetime(2026, 10, 10, 12, 0, tzinfo=timezone.utc)


pytestmark = pytest.mark.integration


@pytest.fixture
def settings(tmp_path):
    return Settings(_env_file=None, database_url=f"sqlite:///{tmp_path / 'test.db'}")


@pytest.fixture
def policy_config():
    return parse_config({
        "actors": {"alice": "plant_manager", "bob": "owner", "dan": "buyer"},
        "delegations": [{
            "from": "alice",
            "to": "carol",
            "start": (NOW - timedelta(days=1)).isoformat(),
            "end": (NOW + timedelta(days=1)).isoformat(),
            "max_amount": 3000,
        }],
    })


class TestThresholds:

    def test_settings_thresholds(self, settings):
        policy = build_threshold_policy(settings, ApprovalPolicyConfig())
        assert policy.tier2_threshold == Decimal("1000.00")

    def test_policy_file_overrides(self, settings):
        config = parse_config({"thresholds": {"tier3": 8000}})
        policy = build_threshold_policy(settings, config)

        assert policy.tier2_threshold == Decimal("1000.00")
        assert policy.tier3_threshold == Decimal("8000.00")


class TestActorPermissions:

    def test_default_roles(self, policy_config):
        permissions = build_actor_permissions(policy_config)
        assert "approvals:tier3" in permissions["bob"]
        assert "approvals:tier2" not in permissions["dan"]

    def test_custom_role_overrides_default(self):
        config = parse_config({
            "roles": {"buyer": ["approvals:tier2"]},
            "actors": {"dan": "buyer"},
        })
        assert build_actor_permissions(config)["dan"] == ["approvals:tier2"]

    def test_unknown_role(self):
        with pytest.raises(KeyError):
            build_actor_permissions(parse_config({"actors": {"eve": "wizard"}}))

    def test_wildcard_role(self):
        config = parse_config({
            "roles": {"controller": ["approvals:*"]},
            "actors": {"fay": "controller"},
        })
        assert build_actor_permissions(config)["fay"] == ["approvals:*"]

    def test_unknown_permission(self):
        config = parse_config({"roles": {"site_lead": ["approvals:tier9"]}})
        with pytest.raises(ValueError, match="approvals:tier9"):
            build_actor_permissions(config)


class TestBuildCoordinator:

    def test_role_and_delegation_authority(self, settings, policy_config):
        coordinator = build_coordinator(
            settings,
            policy_config,
            store=InMemoryApprovableStore(),
            clock=lambda: NOW,
        )

        small = coordinator.create_approvable(purchase_order("2500.00"), actor_id="dan")
        large = coordinator.create_approvable(purchase_order("4000.00"), actor_id="dan")

        with pytest.raises(PermissionDeniedError):
            coordinator.approve(small.id, "dan")

        assert coordinator.approve(small.id, "carol").status == Status.APPROVED

        with pytest.raises(PermissionDeniedError):
            coordinator.approve(large.id, "carol")
        assert coordinator.approve(large.id, "alice").status == Status.APPROVED

    def test_default_sql_store(self, settings, policy_config):
        coordinator = build_coordinator(settings, policy_config)

        record = coordinator.create_approvable(purchase_order("10.00"), actor_id="dan")

        assert coordinator.get(record.id).status == Status.APPROVED

    def test_policy_file_from_settings(self, tmp_path):
        path = tmp_path / "policy.yaml"
        path.write_text(yaml.safe_dump({"actors": {"alice": "owner"}}))
        settings = Settings(_env_file=None, policy_file=str(path))

        assert load_policy_config(settings).actors == {"alice": "owner"}
