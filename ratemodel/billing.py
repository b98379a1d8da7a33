"""Tiered billing — usage allocation across positional rate tiers.

Tiers are processed in slot order. Every enabled tier except the last
consumes usage up to its limit; the last enabled tier absorbs whatever
remains, so allocated usage always sums to the input usage when at least
one tier is enabled. Disabled slots stay in the output as zero rows so
tier 1..4 indexing is stable for every consumer.

Malformed ordering (a limit at or below the previous limit) is clipped
to zero width rather than rejected; see validation.tier_ordering_problems
for the boundary check that reports it.
"""

from __future__ import annotations

from typing import Sequence

from ratemodel.config import affordability_settings
from ratemodel.constants import UNITS_PER_RATE_BLOCK
from ratemodel.types import RateStructure, RateTier, TierBreakdown, TierResult


def _empty_tier() -> TierResult:
    return {"gallons": 0.0, "rate": 0.0, "cost": 0.0, "enabled": False}


def compute_tier_breakdown(usage: float, tiers: Sequence[RateTier]) -> TierBreakdown:
    """Allocate `usage` across enabled tiers and price each band."""
    usage = max(0.0, usage)
    result: list[TierResult] = [_empty_tier() for _ in tiers]
    enabled = [i for i, t in enumerate(tiers) if t.enabled]

    remaining = usage
    previous_limit = 0.0
    total = 0.0
    for n, idx in enumerate(enabled):
        tier = tiers[idx]
        if n == len(enabled) - 1 or tier.limit is None:
            # last enabled tier (or an unbounded one) takes the rest
            tier_usage = remaining
        else:
            width = max(0.0, tier.limit - previous_limit)
            tier_usage = min(remaining, width)
            previous_limit = max(previous_limit, tier.limit)
        cost = tier_usage / UNITS_PER_RATE_BLOCK * tier.rate
        result[idx] = {
            "gallons": tier_usage,
            "rate": tier.rate,
            "cost": cost,
            "enabled": True,
        }
        total += cost
        remaining -= tier_usage

    return {"tiers": result, "total_cost": total}


def compute_monthly_bill(structure: RateStructure, usage: float) -> float:
    """Base rate + add-on fee + tiered usage charge."""
    breakdown = compute_tier_breakdown(usage, structure.tiers)
    return structure.base_rate + structure.addon_fee + breakdown["total_cost"]


def weighted_average_rate(structure: RateStructure, usage: float) -> float:
    """Effective all-in rate per 1000 units at `usage`.

    Falls back to the configured default rate when usage is not positive.
    """
    if usage <= 0:
        return affordability_settings().default_weighted_rate
    return compute_monthly_bill(structure, usage) * UNITS_PER_RATE_BLOCK / usage
