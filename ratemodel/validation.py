"""Input validation — gate checks run before a calculation pass.

Rules:
1. Required scalars — median income, customer count, average usage and
   operating cost must be positive.
2. Active tier — both rate structures need an enabled tier with rate > 0.
3. Tier ordering — enabled, bounded tiers before the last enabled one must
   have strictly increasing limits. Reported only: billing clips a
   malformed band to zero width.

Usage:
    from ratemodel.validation import validate_calculation_inputs

    issues = validate_calculation_inputs(cfg)
    if issues:
        ...  # skip the pass
"""

from __future__ import annotations

import logging
from typing import Sequence

from ratemodel.config import Configuration
from ratemodel.types import RateTier

logger = logging.getLogger(__name__)

_REQUIRED = (
    ("median_income", "Median household income"),
    ("customer_count", "Customer count"),
    ("avg_monthly_usage", "Average monthly usage"),
    ("operating_cost", "Operating cost"),
)


def tier_ordering_problems(tiers: Sequence[RateTier], *, label: str = "") -> list[str]:
    """Limits of enabled non-final tiers that fail to increase."""
    issues: list[str] = []
    prefix = f"[{label}] " if label else ""
    enabled = [(i, t) for i, t in enumerate(tiers) if t.enabled]
    previous = 0.0
    for n, (i, tier) in enumerate(enabled):
        if n == len(enabled) - 1:
            break
        if tier.limit is None:
            issues.append(
                f"{prefix}Tier {i + 1} is unbounded but is not the last enabled tier"
            )
            break
        if tier.limit <= previous:
            issues.append(
                f"{prefix}Tier {i + 1} limit {tier.limit:g} does not exceed "
                f"previous limit {previous:g}; band has zero width"
            )
        previous = max(previous, tier.limit)
    return issues


def validate_calculation_inputs(cfg: Configuration) -> list[str]:
    """Problems that block a calculation pass (empty = valid)."""
    issues: list[str] = []
    for attr, label in _REQUIRED:
        if not getattr(cfg, attr) > 0:
            issues.append(f"{label} must be greater than zero")
    if not cfg.current_rates.has_active_tier:
        issues.append("Current rate structure has no enabled tier with a rate above zero")
    if not cfg.future_rates.has_active_tier:
        issues.append("Future rate structure has no enabled tier with a rate above zero")
    return issues


def check_inputs(cfg: Configuration, context: str) -> bool:
    """Validate and log. False means the caller should skip its pass."""
    issues = validate_calculation_inputs(cfg)
    if issues:
        logger.warning(f"Invalid inputs for {context}: {'; '.join(issues)}")
        return False
    for key in ("current", "future"):
        for problem in tier_ordering_problems(cfg.rate_structure(key).tiers, label=key):
            logger.warning(problem)
    return True
