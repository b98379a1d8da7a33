"""Post-calculation analytics — affordability, water loss, poverty burden.

Classification helpers are used inside the engine. The summaries are
READ-ONLY on completed output: they never feed back into the projection
or the solver.
"""

from __future__ import annotations

import logging
import math

import numpy as np

from ratemodel.billing import compute_monthly_bill, weighted_average_rate
from ratemodel.config import Configuration, affordability_settings
from ratemodel.constants import MONTHS_PER_YEAR, UNITS_PER_RATE_BLOCK
from ratemodel.types import (
    AffordabilityStatus,
    PovertySummary,
    ProjectionResult,
    WaterLossSummary,
)

logger = logging.getLogger(__name__)


# ── Classification ──────────────────────────────────────────────

def affordability_status(ratio: float) -> AffordabilityStatus:
    """EPA-style category for bill as a share of monthly MHI."""
    categories = affordability_settings().epa_categories
    for threshold, label, level in categories:
        if ratio <= threshold:
            return {"label": label, "level": level}
    _, label, level = categories[-1]
    return {"label": label, "level": level}


def poverty_burden_status(ratio: float) -> str:
    """Burden label for bill as a share of monthly poverty income."""
    s = affordability_settings()
    if ratio > s.poverty_high:
        return "High Burden"
    if ratio > s.poverty_moderate:
        return "Moderate Burden"
    return "Affordable"


# ── Water loss ──────────────────────────────────────────────────

def water_loss_volumes(billed: float, loss_percent: float) -> tuple[float, float]:
    """(produced, lost) for a billed volume and a loss share of production.

    lost = billed x loss / (1 - loss). Loss >= 100% is degenerate: lost = 0.
    """
    loss = loss_percent / 100.0
    if loss >= 1:
        logger.warning(f"Water loss of {loss_percent}% is not meaningful; lost volume set to 0")
        return billed, 0.0
    if loss <= 0:
        return billed, 0.0
    lost = billed * loss / (1 - loss)
    return billed + lost, lost


def water_loss_summary(cfg: Configuration) -> WaterLossSummary | None:
    """Revenue lost to non-revenue water under current and what-if rates."""
    if not (cfg.customer_count and cfg.avg_monthly_usage and cfg.water_loss_percent):
        logger.warning("Missing required data for water loss analysis")
        return None

    billed = cfg.customer_count * cfg.avg_monthly_usage * MONTHS_PER_YEAR
    _, lost = water_loss_volumes(billed, cfg.water_loss_percent)

    figures = {}
    for key in ("current", "future"):
        structure = cfg.rate_structure(key)
        bill = compute_monthly_bill(structure, cfg.avg_monthly_usage)
        rate = weighted_average_rate(structure, cfg.avg_monthly_usage)
        revenue = cfg.customer_count * bill * MONTHS_PER_YEAR
        loss_revenue = lost / UNITS_PER_RATE_BLOCK * rate
        figures[key] = (bill, rate, loss_revenue,
                        loss_revenue / revenue if revenue > 0 else 0.0)

    cur, fut = figures["current"], figures["future"]
    return WaterLossSummary(
        water_billed=billed,
        water_lost=lost,
        current_avg_bill=cur[0],
        future_avg_bill=fut[0],
        current_weighted_rate=cur[1],
        future_weighted_rate=fut[1],
        current_loss_revenue=cur[2],
        current_loss_share=cur[3],
        future_loss_revenue=fut[2],
        future_loss_share=fut[3],
        savings_10pct_reduction=cur[2] * 0.10,
        savings_25pct_reduction=cur[2] * 0.25,
    )


# ── Poverty ─────────────────────────────────────────────────────

def poverty_summary(cfg: Configuration,
                    projection: ProjectionResult | None = None) -> PovertySummary | None:
    """Bill as a share of monthly poverty-level income, now and per year."""
    if cfg.poverty_income <= 0:
        logger.warning("Missing poverty income for poverty affordability analysis")
        return None

    monthly_income = cfg.poverty_income / MONTHS_PER_YEAR
    current = compute_monthly_bill(cfg.current_rates, cfg.avg_monthly_usage) / monthly_income
    future = compute_monthly_bill(cfg.future_rates, cfg.avg_monthly_usage) / monthly_income

    summary = PovertySummary(
        monthly_poverty_income=monthly_income,
        current_percent=current,
        current_status=poverty_burden_status(current),
        future_percent=future,
        future_status=poverty_burden_status(future),
    )
    if projection is not None:
        for row in projection.years:
            summary.years.append(row["year"])
            summary.annual_bill.append(row["monthly_bill"] * MONTHS_PER_YEAR)
            summary.percent_of_income.append(row["affordability_low_income"])
            summary.status.append(row["poverty_status"])
    return summary


# ── Projection summary ──────────────────────────────────────────

def projection_summary(result: ProjectionResult) -> dict:
    """Headline metrics over a completed projection.

    coverage_min is the lowest revenue/need percentage across years with a
    positive need (None if no year has one).
    """
    if not result.years:
        return {
            "years": 0, "years_in_deficit": 0, "coverage_min": None,
            "final_reserve": 0.0, "min_reserve": 0.0,
            "peak_affordability_mhi": 0.0, "cumulative_gap": 0.0,
        }
    gap = np.array(result.series("revenue_gap"), dtype=float)
    need = np.array(result.series("needed_revenue"), dtype=float)
    revenue = np.array(result.series("expected_revenue"), dtype=float)
    reserve = np.array(result.series("reserve_balance"), dtype=float)
    mhi = np.array(result.series("affordability_mhi"), dtype=float)

    positive = need > 0
    coverage = revenue[positive] / need[positive] * 100 if positive.any() else None
    finite_mhi = mhi[np.isfinite(mhi)]
    return {
        "years": len(result.years),
        "years_in_deficit": int(np.count_nonzero(gap < 0)),
        "coverage_min": float(coverage.min()) if coverage is not None else None,
        "final_reserve": float(reserve[-1]),
        "min_reserve": float(reserve.min()),
        "peak_affordability_mhi": float(finite_mhi.max()) if finite_mhi.size else math.inf,
        "cumulative_gap": float(gap.sum()),
    }
