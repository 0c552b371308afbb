"""Approval policy file handling.

Loads the YAML policy file that describes tier thresholds, role grants,
actor-to-role assignments and standing delegations, e.g.::

    thresholds:
      tier2: 1000
      tier3: 5000
    roles:
      plant_manager: [approvals:tier2, approvals:close]
    actors:
      alice: plant_manager
      bob: owner
    delegations:
      - from: alice
        to: carol
        start: 2026-10-01T00:00:00Z
        end: 2026-10-15T00:00:00Z
        max_amount: 2500
        max_tier_level: 2
    logging:
      level: INFO
      dir: ./logs
"""

import os
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml


@dataclass
class ThresholdConfig:
    """Monetary boundaries for each approval tier.

    A missing value falls back to the application settings.
    """

    tier2: Optional[str] = None
    tier3: Optional[str] = None


@dataclass
class DelegationConfig:
    """A standing delegation declared in the policy file."""

    from_actor: str
    to_actor: str
    start: datetime
    end: datetime
    max_amount: Optional[str] = None
    max_tier_level: Optional[int] = None
    reason: Optional[str] = None


@dataclass
class LoggingConfig:
    level: Optional[str] = None
    dir: Optional[str] = None


@dataclass
class ApprovalPolicyConfig:
    """Top-level approval policy configuration."""

    thresholds: ThresholdConfig = field(default_factory=ThresholdConfig)
    roles: Dict[str, List[str]] = field(default_factory=dict)
    actors: Dict[str, str] = field(default_factory=dict)
    delegations: List[DelegationConfig] = field(default_factory=list)
    logging: LoggingConfig = field(default_factory=LoggingConfig)


def _parse_timestamp(value: Any, field_name: str) -> datetime:
    """Parse a YAML timestamp (datetime or ISO string) as an aware UTC datetime."""
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, str):
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    else:
        raise ValueError(f"Invalid timestamp for {field_name}: {value!r}")

    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def parse_threshold_config(thresholds_dict: Dict[str, Any]) -> ThresholdConfig:
    """Parse the thresholds section.

    Values are kept as strings so they reach Decimal without float rounding.
    """
    tier2 = thresholds_dict.get("tier2")
    tier3 = thresholds_dict.get("tier3")
    return ThresholdConfig(
        tier2=str(tier2) if tier2 is not None else None,
        tier3=str(tier3) if tier3 is not None else None,
    )


def parse_delegation_config(delegation_dict: Dict[str, Any]) -> DelegationConfig:
    """Parse a single delegation entry.

    Raises:
        KeyError: If ``from``, ``to``, ``start`` or ``end`` is missing
    """
    max_amount = delegation_dict.get("max_amount")
    return DelegationConfig(
        from_actor=str(delegation_dict["from"]),
        to_actor=str(delegation_dict["to"]),
        start=_parse_timestamp(delegation_dict["start"], "start"),
        end=_parse_timestamp(delegation_dict["end"], "end"),
        max_amount=str(max_amount) if max_amount is not None else None,
        max_tier_level=delegation_dict.get("max_tier_level"),
        reason=delegation_dict.get("reason"),
    )


def parse_config(config_dict: Dict[str, Any]) -> ApprovalPolicyConfig:
    """Parse the full configuration dictionary.

    Args:
        config_dict: Full configuration dictionary

    Returns:
        ApprovalPolicyConfig instance
    """
    thresholds = ThresholdConfig()
    if "thresholds" in config_dict:
        thresholds = parse_threshold_config(config_dict["thresholds"] or {})

    roles = {
        str(name): [str(p) for p in (perms or [])]
        for name, perms in (config_dict.get("roles") or {}).items()
    }
    actors = {str(actor): str(role) for actor, role in (config_dict.get("actors") or {}).items()}
    delegations = [parse_delegation_config(d) for d in (config_dict.get("delegations") or [])]

    logging_dict = config_dict.get("logging") or {}
    logging_config = LoggingConfig(
        level=logging_dict.get("level"),
        dir=logging_dict.get("dir"),
    )

    return ApprovalPolicyConfig(
        thresholds=thresholds,
        roles=roles,
        actors=actors,
        delegations=delegations,
        logging=logging_config,
    )


def load_config(config_path: str) -> Dict[str, Any]:
    """Load configuration from YAML file.

    Args:
        config_path: Path to configuration file

    Returns:
        Configuration dictionary

    Raises:
        FileNotFoundError: If config file doesn't exist
        yaml.YAMLError: If config file is invalid YAML
        TypeError: If the document root is not a mapping
    """
    config_file = Path(config_path)

    if not config_file.exists():
        raise FileNotFoundError(f"Configuration file not found: {config_path}")

    with config_file.open("r") as f:
        config = yaml.safe_load(f)

    if config is None:
        config = {}

    if not isinstance(config, dict):
        raise TypeError(
            f"Configuration root must be a mapping, got {type(config).__name__}"
        )

    return _expand_env_vars(config)


def _expand_env_vars(obj: Any) -> Any:
    """Recursively expand environment variables in configuration."""
    if isinstance(obj, dict):
        return {key: _expand_env_vars(value) for key, value in obj.items()}
    elif isinstance(obj, list):
        return [_expand_env_vars(item) for item in obj]
    elif isinstance(obj, str):
        return os.path.expandvars(obj)
    else:
        return obj


def load_typed_config(config_path: str) -> ApprovalPolicyConfig:
    """Load and parse configuration into typed dataclasses."""
    return parse_config(load_config(config_path))
