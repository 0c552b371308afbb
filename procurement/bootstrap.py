"""Wiring of the approval coordinator from settings and the policy file."""

from datetime import datetime
from typing import Callable, Dict, List, Optional

from procurement.common.config import ApprovalPolicyConfig, load_typed_config
from procurement.common.logger import ROOT_LOGGER_NAME, get_logger, setup_logger
from procurement.core.approval.coordinator import ApprovableStore, ApprovalCoordinator
from procurement.core.config import Settings, get_settings
from procurement.core.policy.thresholds import ThresholdPolicy
from procurement.core.rbac.authorizer import DelegatingTierAuthorizer, RoleTierAuthorizer
from procurement.core.rbac.delegation import DelegationRegistry
from procurement.core.rbac.permissions import is_grantable
from procurement.core.rbac.roles import DEFAULT_ROLES

logger = get_logger("bootstrap")


def load_policy_config(settings: Settings) -> ApprovalPolicyConfig:
    """Load the YAML policy file named in settings, or an empty policy."""
    if not settings.policy_file:
        return ApprovalPolicyConfig()
    return load_typed_config(settings.policy_file)


def configure_logging(settings: Settings, policy_config: Optional[ApprovalPolicyConfig] = None):
    """Configure the root ``procurement`` logger once for the process."""
    overrides = policy_config.logging if policy_config else None
    return setup_logger(
        ROOT_LOGGER_NAME,
        log_dir=(overrides.dir if overrides and overrides.dir else settings.log_dir),
        level=(overrides.level if overrides and overrides.level else settings.log_level),
        file_logging=settings.log_to_file,
    )


def build_threshold_policy(settings: Settings, policy_config: ApprovalPolicyConfig) -> ThresholdPolicy:
    """Policy file thresholds win over settings when present."""
    thresholds = policy_config.thresholds
    return ThresholdPolicy.from_values(
        thresholds.tier2 if thresholds.tier2 is not None else settings.tier2_threshold,
        thresholds.tier3 if thresholds.tier3 is not None else settings.tier3_threshold,
    )


def build_actor_permissions(policy_config: ApprovalPolicyConfig) -> Dict[str, List[str]]:
    """
    Resolve each configured actor to the permissions of their role.

    Roles declared in the policy file replace the default role of the same
    name.

    Raises:
        KeyError: If an actor is assigned an unknown role
        ValueError: If a configured role grants an unknown permission
    """
    roles = {key: list(role["permissions"]) for key, role in DEFAULT_ROLES.items()}
    for role_key, granted in policy_config.roles.items():
        unknown = [perm for perm in granted if not is_grantable(perm)]
        if unknown:
            raise ValueError(f"Role {role_key} grants unknown permissions: {', '.join(unknown)}")
        roles[role_key] = list(granted)

    permissions = {}
    for actor_id, role_key in policy_config.actors.items():
        if role_key not in roles:
            raise KeyError(f"Actor {actor_id} has unknown role: {role_key}")
        permissions[actor_id] = roles[role_key]
    return permissions


def build_delegation_registry(
    policy_config: ApprovalPolicyConfig,
    clock: Optional[Callable[[], datetime]] = None,
) -> DelegationRegistry:
    registry = DelegationRegistry(clock=clock)
    for entry in policy_config.delegations:
        registry.create(
            entry.from_actor,
            entry.to_actor,
            entry.start,
            entry.end,
            max_amount=entry.max_amount,
            max_tier_level=entry.max_tier_level,
            reason=entry.reason,
        )
    return registry


def build_sql_store(settings: Settings) -> ApprovableStore:
    from procurement.db.session import create_db_engine, create_session_factory, init_db
    from procurement.db.store import SqlApprovableStore

    engine = create_db_engine(settings.database_url, echo=settings.debug)
    init_db(engine)
    return SqlApprovableStore(create_session_factory(engine), places=settings.money_places)


def build_coordinator(
    settings: Optional[Settings] = None,
    policy_config: Optional[ApprovalPolicyConfig] = None,
    store: Optional[ApprovableStore] = None,
    clock: Optional[Callable[[], datetime]] = None,
) -> ApprovalCoordinator:
    """
    Assemble a coordinator with role- and delegation-aware authorization.

    Args:
        settings: Application settings (defaults to the cached settings)
        policy_config: Parsed policy file (defaults to ``settings.policy_file``)
        store: Persistence collaborator (defaults to the SQL store)
        clock: Source of timestamps, shared by delegations and transitions

    Returns:
        Configured ApprovalCoordinator
    """
    settings = settings or get_settings()
    if policy_config is None:
        policy_config = load_policy_config(settings)

    policy = build_threshold_policy(settings, policy_config)
    registry = build_delegation_registry(policy_config, clock)
    authorizer = DelegatingTierAuthorizer(
        RoleTierAuthorizer(build_actor_permissions(policy_config)),
        registry,
        clock=clock,
    )

    if store is None:
        store = build_sql_store(settings)

    logger.info(
        f"Approval thresholds: tier2={policy.tier2_threshold} tier3={policy.tier3_threshold}; "
        f"{len(policy_config.actors)} actors, {len(registry.all())} delegations"
    )

    return ApprovalCoordinator(
        store,
        policy,
        authorizer,
        places=settings.money_places,
        clock=clock,
    )
