"""Calculation orchestrator — one recomputation over a configuration snapshot.

Architecture:
    PASS 1: Validate. Invalid input skips the whole pass (returns None).
    PASS 2: Rate-structure snapshots (current at year 0, what-if at year 1).
    PASS 3: Multi-year projection and, optionally, the rate recommendation.
    PASS 4: Read-only analytics (water loss, poverty, projection summary).

Nothing here mutates the configuration; running twice on the same
snapshot yields identical results.
"""

from __future__ import annotations

import logging

from ratemodel.analytics import poverty_summary, projection_summary, water_loss_summary
from ratemodel.config import Configuration
from ratemodel.debt import debt_obligations
from ratemodel.projection import run_projection
from ratemodel.recommend import recommend
from ratemodel.revenue import structure_results
from ratemodel.types import CalculationResults
from ratemodel.validation import check_inputs, tier_ordering_problems

logger = logging.getLogger(__name__)


def calculate_all(
    cfg: Configuration | dict | None = None,
    *,
    with_recommendations: bool = True,
) -> CalculationResults | None:
    """Run every calculation for `cfg` (a Configuration or an export dict).

    Defaults to the shipped baseline community.
    """
    if cfg is None:
        cfg = Configuration.load_baseline()
    elif isinstance(cfg, dict):
        cfg = Configuration.from_dict(cfg)

    # ═══ PASS 1: Validation ═══
    if not check_inputs(cfg, "calculation"):
        return None
    warnings = [
        problem
        for key in ("current", "future")
        for problem in tier_ordering_problems(cfg.rate_structure(key).tiers, label=key)
    ]

    # ═══ PASS 3 first: the what-if note depends on a recommendation ═══
    obligations = debt_obligations(cfg)
    projection = run_projection(cfg, obligations)
    recommendation = recommend(cfg, validate=False) if with_recommendations else None
    if recommendation is not None and recommendation.unconverged_years:
        warnings.append(
            "Rate recommendation left a shortfall in year(s) "
            + ", ".join(str(y) for y in recommendation.unconverged_years)
        )

    # ═══ PASS 2: Snapshots ═══
    current = structure_results(cfg, "current", obligations=obligations)
    future = structure_results(
        cfg, "future", obligations=obligations,
        with_recommendation=recommendation is not None,
    )

    # ═══ PASS 4: Analytics ═══
    results = CalculationResults(
        current_results=current,
        future_results=future,
        projection_results=projection,
        water_loss_results=water_loss_summary(cfg),
        poverty_results=poverty_summary(cfg, projection),
        projection_summary=projection_summary(projection),
        rate_recommendations=recommendation,
        warnings=warnings,
    )
    logger.debug(
        f"Calculation complete: {len(projection.years)} projection years, "
        f"recommendation={'yes' if recommendation else 'no'}"
    )
    return results
