"""Estimate-versus-actual variance analysis for service requisitions."""

from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Dict

from ..money import DEFAULT_PLACES, quantize

# Variances strictly above this magnitude need a written justification
JUSTIFICATION_THRESHOLD_PERCENT = Decimal("10")

HUNDRED = Decimal("100")


@dataclass(frozen=True)
class Variance:
    """Signed difference between an estimate and an actual amount."""

    delta: Decimal
    percent: Decimal
    requires_justification: bool

    @property
    def direction(self) -> str:
        if self.delta > 0:
            return "over_budget"
        if self.delta < 0:
            return "under_budget"
        return "on_budget"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "delta": str(self.delta),
            "percent": str(self.percent),
            "requires_justification": self.requires_justification,
            "direction": self.direction,
        }


def variance_percent(estimate: Decimal, actual: Decimal) -> Decimal:
    """Unrounded percentage variance.

    A zero estimate has no meaningful ratio: it counts as 100% when
    anything was spent and 0% otherwise.
    """
    if estimate > 0:
        return (actual - estimate) / estimate * HUNDRED
    if actual > 0:
        return HUNDRED
    return Decimal("0")


def calculate_variance(
    estimate: Decimal,
    actual: Decimal,
    places: int = DEFAULT_PLACES,
) -> Variance:
    """
    Compute the variance between an original estimate and the actual amount.

    Args:
        estimate: Original estimate (validated, non-negative)
        actual: Actual / invoice amount (validated, non-negative)
        places: Decimal places for the reported delta and percent

    Returns:
        Variance with signed delta (positive = over budget), percent, and
        whether a justification must accompany the submission
    """
    delta = actual - estimate
    percent = variance_percent(estimate, actual)
    return Variance(
        delta=quantize(delta, places),
        percent=quantize(percent, places),
        requires_justification=abs(percent) > JUSTIFICATION_THRESHOLD_PERCENT,
    )
