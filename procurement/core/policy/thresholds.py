"""Approval tier threshold policy.

Maps a monetary amount to the ordered tiers that must approve it:

    amount <  tier2_threshold                    -> ()
    tier2_threshold <= amount < tier3_threshold  -> (TIER_2,)
    amount >= tier3_threshold                    -> (TIER_2, TIER_3)

Boundaries are inclusive of the higher tier.
"""

from dataclasses import dataclass
from decimal import Decimal
from enum import Enum
from typing import Dict, Optional, Tuple

from ..errors import ValidationError
from ..money import MoneyLike, to_money


class Tier(str, Enum):
    """Approval authority levels."""

    TIER_2 = "tier2"    # Plant Manager
    TIER_3 = "tier3"    # Owner / Executive

    @property
    def level(self) -> int:
        return TIER_LEVELS[self]

    @property
    def label(self) -> str:
        return TIER_LABELS[self]


TIER_LEVELS: Dict[Tier, int] = {
    Tier.TIER_2: 2,
    Tier.TIER_3: 3,
}

TIER_LABELS: Dict[Tier, str] = {
    Tier.TIER_2: "Plant Manager",
    Tier.TIER_3: "Owner / Executive",
}

# Tiers in the order they must approve
TIER_ORDER: Tuple[Tier, ...] = (Tier.TIER_2, Tier.TIER_3)


def tier_from_level(level: int) -> Tier:
    """Look up a tier by its numeric level (2 or 3)."""
    for tier, tier_level in TIER_LEVELS.items():
        if tier_level == level:
            return tier
    raise ValueError(f"Unknown approval tier level: {level}")


@dataclass(frozen=True)
class ThresholdPolicy:
    """Threshold configuration and the tier routing derived from it."""

    tier2_threshold: Decimal
    tier3_threshold: Decimal

    def __post_init__(self):
        tier2 = to_money(self.tier2_threshold, "tier2_threshold")
        tier3 = to_money(self.tier3_threshold, "tier3_threshold")
        if tier2 > tier3:
            raise ValidationError(
                f"tier2_threshold ({tier2}) must not exceed tier3_threshold ({tier3})",
                field="tier2_threshold",
            )
        object.__setattr__(self, "tier2_threshold", tier2)
        object.__setattr__(self, "tier3_threshold", tier3)

    @classmethod
    def from_values(cls, tier2: MoneyLike, tier3: MoneyLike) -> "ThresholdPolicy":
        return cls(tier2_threshold=tier2, tier3_threshold=tier3)

    def required_tiers(self, amount: Decimal) -> Tuple[Tier, ...]:
        """Return the ordered tiers required to approve ``amount``.

        The amount must already be validated as a finite, non-negative
        Decimal (see :func:`procurement.core.money.to_money`).
        """
        if amount >= self.tier3_threshold:
            return (Tier.TIER_2, Tier.TIER_3)
        if amount >= self.tier2_threshold:
            return (Tier.TIER_2,)
        return ()

    def threshold_for(self, tier: Tier) -> Decimal:
        """Get the amount at which ``tier`` becomes mandatory."""
        if tier == Tier.TIER_3:
            return self.tier3_threshold
        return self.tier2_threshold

    def describe(self, amount: Decimal) -> str:
        """Human-readable routing summary for an amount."""
        tiers = self.required_tiers(amount)
        if not tiers:
            return f"No approval required (under {self.tier2_threshold} threshold)"
        labels = " + ".join(f"Tier {t.level} ({t.label})" for t in tiers)
        return f"Requires {labels} approval"


def next_tier(required: Tuple[Tier, ...], current: Optional[Tier]) -> Optional[Tier]:
    """Return the tier that follows ``current`` in ``required``, if any."""
    if current is None:
        return required[0] if required else None
    index = required.index(current)
    if index + 1 < len(required):
        return required[index + 1]
    return None
