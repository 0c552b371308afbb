"""Approval routing policy: tier thresholds and variance analysis."""

from .thresholds import Tier, ThresholdPolicy, TIER_LABELS, TIER_ORDER, tier_from_level
from .variance import Variance, calculate_variance, JUSTIFICATION_THRESHOLD_PERCENT

__all__ = [
    "Tier",
    "ThresholdPolicy",
    "TIER_LABELS",
    "TIER_ORDER",
    "tier_from_level",
    "Variance",
    "calculate_variance",
    "JUSTIFICATION_THRESHOLD_PERCENT",
]
