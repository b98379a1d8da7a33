"""Multi-year projection — year-by-year rate, revenue and reserve engine.

Single pass over years 0..projection_period. Year 0 uses the current
structure verbatim; later years interpolate linearly toward the what-if
structure, reaching it at target_year (or the end of the period).

Execution order per year:
    1. Rate structure for the year (current, or interpolated)
    2. Customers = base x (1 + growth)^Y   (local, never written back)
    3. Revenue need (inflated opex + consolidated debt + reserve - grants)
    4. Revenue = bill at average usage x customers x 12
    5. Reserve recurrence (interest, contribution, capital draw)
    6. Affordability, poverty and water-loss sub-series

The row builder is shared with the rate recommendation solver so both
engines report identical columns.
"""

from __future__ import annotations

import logging
from dataclasses import replace

from ratemodel.analytics import poverty_burden_status, water_loss_volumes
from ratemodel.billing import compute_monthly_bill, weighted_average_rate
from ratemodel.config import Configuration
from ratemodel.constants import MONTHS_PER_YEAR, UNITS_PER_RATE_BLOCK
from ratemodel.debt import (
    DebtObligations,
    debt_by_start_year,
    debt_obligations,
    debt_schedules,
    new_debt_for_year,
)
from ratemodel.formulas import (
    affordability_ratio,
    annual_revenue,
    growth_factor,
    interpolate,
    revenue_percentage,
    transition_factor,
)
from ratemodel.reserves import ReserveFund, ReservePolicy, ReserveStep
from ratemodel.revenue import RevenueNeed, capital_for_year, revenue_need_for_year
from ratemodel.types import (
    ProjectionResult,
    ProjectionYearResult,
    RateStructure,
    RateTier,
)
from ratemodel.validation import check_inputs

logger = logging.getLogger(__name__)


# ── Rate interpolation ──────────────────────────────────────────

def interpolate_structure(current: RateStructure, future: RateStructure,
                          fraction: float) -> RateStructure:
    """Blend two structures. Enabled flags come from `future`.

    Limits interpolate when both are bounded; otherwise the future limit wins.
    """
    tiers = []
    for cur, fut in zip(current.tiers, future.tiers):
        if cur.limit is not None and fut.limit is not None:
            limit = interpolate(cur.limit, fut.limit, fraction)
        else:
            limit = fut.limit
        tiers.append(RateTier(
            enabled=fut.enabled,
            limit=limit,
            rate=interpolate(cur.rate, fut.rate, fraction),
        ))
    return replace(
        current,
        base_rate=interpolate(current.base_rate, future.base_rate, fraction),
        addon_fee=interpolate(current.addon_fee, future.addon_fee, fraction),
        tiers=tuple(tiers),
    )


# ── Shared row builder ──────────────────────────────────────────

def customers_for_year(cfg: Configuration, year: int) -> float:
    return cfg.customer_count * growth_factor(cfg.customer_growth_rate, year)


def build_year_row(
    cfg: Configuration,
    year: int,
    structure: RateStructure,
    customers: float,
    need: RevenueNeed,
    reserve: ReserveStep,
    *,
    capital_improvements: float,
    new_debt: float,
) -> ProjectionYearResult:
    """One ProjectionYearResult from the year's already-computed parts."""
    bill = compute_monthly_bill(structure, cfg.avg_monthly_usage)
    revenue = annual_revenue(customers, bill)
    debt = need["debt"]

    inflation = growth_factor(cfg.inflation_rate, year)
    mhi = affordability_ratio(bill, cfg.median_income * inflation)
    low_income = affordability_ratio(bill, cfg.poverty_income * inflation)

    billed = customers * cfg.avg_monthly_usage * MONTHS_PER_YEAR
    produced, lost = water_loss_volumes(billed, cfg.water_loss_percent)
    loss_revenue = lost / UNITS_PER_RATE_BLOCK * weighted_average_rate(
        structure, cfg.avg_monthly_usage)

    row: dict = {
        "year": year,
        "calendar_year": cfg.start_year + year if cfg.start_year is not None else None,
        "base_rate": structure.base_rate,
        "addon_fee": structure.addon_fee,
    }
    for i, tier in enumerate(structure.tiers, start=1):
        row[f"tier{i}_rate"] = tier.rate if tier.enabled else None
        row[f"tier{i}_limit"] = tier.limit if tier.enabled else None
    row.update({
        "monthly_bill": bill,
        "capital_improvements": capital_improvements,
        "grants": need["grants"],
        "new_debt": new_debt,
        "existing_debt_service": debt["existing_from_year0"],
        "project_debt_service": debt["near_term_project_debt"],
        "new_loan_debt_service": debt["new_loan_debt"],
        "total_debt_service": debt["total"],
        "debt_by_start_year": debt_by_start_year(debt),
        "infrastructure_reserve": need["infrastructure_reserve"],
        "expected_revenue": revenue,
        "needed_revenue": need["need"],
        "revenue_gap": revenue - need["need"],
        "revenue_percentage": revenue_percentage(revenue, need["need"]),
        "reserve_opening": reserve.opening,
        "reserve_contribution": reserve.contribution,
        "reserve_interest": reserve.interest,
        "capital_from_reserves": reserve.capital_draw,
        "reserve_balance": reserve.closing,
        "customer_count": customers,
        "operating_cost": need["operating_cost"],
        "affordability_mhi": mhi,
        "affordability_low_income": low_income,
        "poverty_status": poverty_burden_status(low_income),
        "water_billed": billed,
        "water_produced": produced,
        "water_lost": lost,
        "water_loss_revenue": loss_revenue,
    })
    return row  # type: ignore[return-value]


def available_cash(revenue: float, need: RevenueNeed) -> float:
    """Cash left for the reserve after operating cost and debt service.

    Grants lower the revenue need but are not reserve cash.
    """
    return revenue - need["operating_cost"] - need["debt"]["total"]


# ── Engine ──────────────────────────────────────────────────────

def run_projection(cfg: Configuration,
                   obligations: DebtObligations | None = None) -> ProjectionResult:
    """Year loop without input validation. Deterministic, no shared state."""
    if obligations is None:
        obligations = debt_obligations(cfg)
    fund = ReserveFund(ReservePolicy.from_config(cfg))
    rows: list[ProjectionYearResult] = []

    for year in range(cfg.projection_period + 1):
        if year == 0:
            structure = cfg.current_rates
        else:
            fraction = transition_factor(year, cfg.target_year, cfg.projection_period)
            structure = interpolate_structure(cfg.current_rates, cfg.future_rates, fraction)

        customers = customers_for_year(cfg, year)
        need = revenue_need_for_year(cfg, year, obligations)
        revenue = annual_revenue(
            customers, compute_monthly_bill(structure, cfg.avg_monthly_usage))
        capital, from_reserves = capital_for_year(cfg, year)
        step = fund.advance(year, available_cash(revenue, need), from_reserves)

        row = build_year_row(
            cfg, year, structure, customers, need, step,
            capital_improvements=capital,
            new_debt=new_debt_for_year(cfg, year, obligations),
        )
        logger.debug(
            f"Projection Y{year}: revenue {row['expected_revenue']:,.0f} "
            f"need {row['needed_revenue']:,.0f} reserve {row['reserve_balance']:,.0f}"
        )
        rows.append(row)

    return ProjectionResult(years=rows, debt_schedules=debt_schedules(cfg, obligations))


def project(cfg: Configuration) -> ProjectionResult | None:
    """Multi-year projection, or None when inputs fail validation."""
    if not check_inputs(cfg, "long-term projection"):
        return None
    return run_projection(cfg)
