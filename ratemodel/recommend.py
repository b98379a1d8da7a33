"""Rate recommendation solver — ideal structure + bounded yearly transition.

Step 1 builds an "ideal" structure from the year-1 revenue need:
    - add-on fee pinned at its current value
    - remaining need split base / volumetric by the configured proportions
    - tier limits at fixed multiples of average usage, last tier unbounded
    - volumetric target spread across tiers by rate multipliers, weighted by
      the usage that falls in each tier
    - rescaled once if revenue misses the target by more than 1%, then
      scaled down (base + tiers only) to the EPA affordability ceiling

Step 2 folds over the projection years with an explicit accumulator
(customer count, reserve balance, previous year's rates). Each year steps
toward the ideal by 1/projection_period, clamped to the annual increase
band, then nudges base and tier rates upward while revenue falls short of
need. The iteration cap always binds; a deficit may remain.

Caps round down to cents and floors round up, so no stored rate ever
moves more than max_annual_increase_percent from the previous year.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, replace

from ratemodel.billing import compute_monthly_bill
from ratemodel.config import Configuration, RecommendationSettings
from ratemodel.constants import MONTHS_PER_YEAR, TIER_SLOTS, UNITS_PER_RATE_BLOCK
from ratemodel.debt import DebtObligations, debt_obligations, debt_schedules, new_debt_for_year
from ratemodel.formulas import (
    annual_revenue,
    ceil_currency,
    floor_currency,
    growth_factor,
    round_currency,
)
from ratemodel.projection import available_cash, build_year_row
from ratemodel.reserves import ReservePolicy
from ratemodel.revenue import capital_for_year, revenue_need_for_year
from ratemodel.types import (
    ProjectionResult,
    ProjectionYearResult,
    RateStructure,
    RateTier,
    Recommendation,
)
from ratemodel.validation import check_inputs

logger = logging.getLogger(__name__)


def _round_units(value: float) -> float:
    """Nearest whole usage unit, halves up."""
    return float(math.floor(value + 0.5))


def _scale(structure: RateStructure, factor: float) -> RateStructure:
    """Scale base and tier rates (never the add-on fee), rounded to cents."""
    return structure.with_rates(
        round_currency(structure.base_rate * factor),
        [round_currency(r * factor) for r in structure.tier_rates],
    )


# ── Step 1: ideal structure ─────────────────────────────────────

def ideal_rate_structure(cfg: Configuration, settings: RecommendationSettings,
                         obligations: DebtObligations | None = None) -> RateStructure:
    """Long-run target structure recovering the year-1 revenue need."""
    need = revenue_need_for_year(cfg, 1, obligations)["need"]
    addon = cfg.current_rates.addon_fee
    usage = cfg.avg_monthly_usage
    customers = cfg.customer_count

    if need <= 0 or customers <= 0 or usage <= 0:
        logger.warning("Zero revenue need, customers or usage; ideal structure is degenerate")
        tiers = [RateTier(enabled=True, limit=usage or 5000.0, rate=0.0)]
        tiers += [RateTier() for _ in range(TIER_SLOTS - 1)]
        return RateStructure(base_rate=0.0, addon_fee=addon, tiers=tuple(tiers))

    monthly_need = need / customers / MONTHS_PER_YEAR
    remaining = max(0.0, monthly_need - addon)
    proportion = settings.ideal_base_rate_percent + settings.ideal_volumetric_percent
    if proportion > 0:
        base = remaining * settings.ideal_base_rate_percent / proportion
        volumetric = remaining * settings.ideal_volumetric_percent / proportion
    else:
        base, volumetric = remaining, 0.0
        if remaining > 0:
            logger.warning("Base and volumetric proportions are zero; all need assigned to base rate")

    factors = list(settings.tier_limit_factors[:TIER_SLOTS - 1])
    limits: list[float | None] = [_round_units(usage * f) for f in factors]
    limits += [None] * (TIER_SLOTS - len(limits))
    multipliers = list(settings.tier_multipliers[:TIER_SLOTS])
    multipliers += [multipliers[-1] if multipliers else 1.0] * (TIER_SLOTS - len(multipliers))

    # revenue per unit rate, weighted by usage that falls in each tier
    weighted = 0.0
    left, previous = usage, 0.0
    for i, (limit, mult) in enumerate(zip(limits, multipliers)):
        cap = left if limit is None else max(0.0, limit - previous)
        in_tier = min(left, cap)
        if in_tier <= 0 and i > 0:
            break
        weighted += in_tier / UNITS_PER_RATE_BLOCK * mult
        left -= in_tier
        if limit is not None:
            previous = limit
    unit_rate = volumetric / weighted if weighted > 0 and volumetric > 0 else 0.0

    ideal = RateStructure(
        base_rate=round_currency(base),
        addon_fee=addon,
        tiers=tuple(
            RateTier(enabled=True, limit=limit, rate=round_currency(unit_rate * mult))
            for limit, mult in zip(limits, multipliers)
        ),
    )

    adjustable = annual_revenue(customers, compute_monthly_bill(replace(ideal, addon_fee=0.0), usage))
    target = need - addon * customers * MONTHS_PER_YEAR
    if adjustable > 0 and target > 0 and abs(adjustable - target) > 0.01 * target:
        ideal = _scale(ideal, target / adjustable)

    ceiling = cfg.median_income / MONTHS_PER_YEAR * settings.epa_affordability_threshold
    bill = compute_monthly_bill(ideal, usage)
    if ceiling > 0 and bill > ceiling:
        excess = bill - ceiling
        adjustable_bill = bill - addon
        if adjustable_bill > 0:
            ideal = _scale(ideal, max(0.0, (adjustable_bill - excess) / adjustable_bill))

    return ideal


# ── Step 2: yearly transition ───────────────────────────────────

def _bounded_step(previous: float, target: float, step: float, max_increase: float) -> float:
    if previous <= 0:
        return 0.0
    upper = floor_currency(previous * (1 + max_increase))
    lower = ceil_currency(previous * (1 - max_increase))
    proposed = round_currency(previous + (target - previous) * step)
    return min(max(proposed, lower), upper)


def step_towards_ideal(previous: RateStructure, ideal: RateStructure,
                       settings: RecommendationSettings, projection_period: int,
                       addon_fee: float) -> RateStructure:
    """One year's move toward `ideal`, clamped to the annual increase band.

    Tiers enabled in both structures move; others keep their previous values
    and stay disabled if either side disables them.
    """
    step = 1 / max(1, projection_period)
    m = settings.max_annual_increase_percent
    tiers = []
    for prev, target in zip(previous.tiers, ideal.tiers):
        if not (prev.enabled and target.enabled):
            tiers.append(replace(prev, enabled=False))
            continue
        if prev.limit is not None and target.limit is not None:
            limit = _round_units(prev.limit + (target.limit - prev.limit) * step)
        else:
            limit = target.limit
        tiers.append(RateTier(
            enabled=True,
            limit=limit,
            rate=_bounded_step(prev.rate, target.rate, step, m),
        ))
    return RateStructure(
        base_rate=_bounded_step(previous.base_rate, ideal.base_rate, step, m),
        addon_fee=addon_fee,
        tiers=tuple(tiers),
    )


@dataclass(frozen=True)
class SolvencyOutcome:
    rates: RateStructure
    revenue: float
    iterations: int
    converged: bool


def solvency_correction(tentative: RateStructure, previous: RateStructure,
                        need: float, customers: float, usage: float,
                        settings: RecommendationSettings) -> SolvencyOutcome:
    """Raise base and enabled tier rates until revenue covers `need`.

    Each pass scales by max(step, weight x shortfall / revenue), capped at
    the annual increase, and no component may exceed previous x (1 + max).
    Stops when the shortfall is under 1, on the iteration cap, or when
    rounding leaves every component unchanged.
    """
    m = settings.max_annual_increase_percent

    def bump(value: float, prior: float, factor: float) -> float:
        return min(round_currency(value * (1 + factor)), floor_currency(prior * (1 + m)))

    revenue = annual_revenue(customers, compute_monthly_bill(tentative, usage))
    iterations = 0
    while revenue < need and iterations < settings.max_solvency_iterations:
        shortfall = need - revenue
        if shortfall < 1.0:
            break
        factor = settings.solvency_adjustment_step
        if revenue > 0:
            factor = max(factor, shortfall * settings.solvency_shortfall_weight / revenue)
        factor = min(factor, m)

        base = bump(tentative.base_rate, previous.base_rate, factor)
        rates = [
            bump(t.rate, p.rate, factor) if t.enabled else t.rate
            for t, p in zip(tentative.tiers, previous.tiers)
        ]
        candidate = tentative.with_rates(base, rates)
        iterations += 1
        if candidate == tentative:
            break
        tentative = candidate
        revenue = annual_revenue(customers, compute_monthly_bill(tentative, usage))

    return SolvencyOutcome(
        rates=tentative,
        revenue=revenue,
        iterations=iterations,
        converged=need - revenue < 1.0,
    )


@dataclass(frozen=True)
class SolverState:
    """Accumulator carried from one solver year to the next."""
    customer_count: float
    reserve_balance: float
    prev_rates: RateStructure


def solve_rate_path(cfg: Configuration, ideal: RateStructure,
                    settings: RecommendationSettings,
                    obligations: DebtObligations | None = None) -> Recommendation:
    """Fold over years 0..projection_period from the current rates."""
    if obligations is None:
        obligations = debt_obligations(cfg)
    policy = ReservePolicy.from_config(cfg)
    addon = cfg.current_rates.addon_fee
    growth = growth_factor(cfg.customer_growth_rate, 1)

    state = SolverState(
        customer_count=cfg.customer_count,
        reserve_balance=0.0,
        prev_rates=cfg.current_rates,
    )
    rows: list[ProjectionYearResult] = []
    iterations: dict[int, int] = {}
    unconverged: list[int] = []

    for year in range(cfg.projection_period + 1):
        need = revenue_need_for_year(cfg, year, obligations)
        if year == 0:
            rates = cfg.current_rates
        else:
            tentative = step_towards_ideal(
                state.prev_rates, ideal, settings, cfg.projection_period, addon)
            outcome = solvency_correction(
                tentative, state.prev_rates, need["need"],
                state.customer_count, cfg.avg_monthly_usage, settings)
            rates = outcome.rates
            iterations[year] = outcome.iterations
            if not outcome.converged:
                unconverged.append(year)
                if settings.show_warnings:
                    logger.warning(
                        f"Year {year}: solvency correction stopped after "
                        f"{outcome.iterations} iterations with shortfall "
                        f"{need['need'] - outcome.revenue:,.2f}"
                    )
            logger.debug(f"Solver Y{year}: {outcome.iterations} iterations, "
                         f"revenue {outcome.revenue:,.0f} need {need['need']:,.0f}")

        revenue = annual_revenue(
            state.customer_count, compute_monthly_bill(rates, cfg.avg_monthly_usage))
        capital, from_reserves = capital_for_year(cfg, year)
        step = policy.step(year, state.reserve_balance,
                           available_cash(revenue, need), from_reserves)
        rows.append(build_year_row(
            cfg, year, rates, state.customer_count, need, step,
            capital_improvements=capital,
            new_debt=new_debt_for_year(cfg, year, obligations),
        ))
        state = SolverState(
            customer_count=state.customer_count * growth,
            reserve_balance=step.closing,
            prev_rates=rates,
        )

    return Recommendation(
        ideal_rates=ideal,
        projection=ProjectionResult(years=rows, debt_schedules=debt_schedules(cfg, obligations)),
        solver_iterations=iterations,
        unconverged_years=unconverged,
    )


def recommend(cfg: Configuration,
              settings: RecommendationSettings | None = None,
              *,
              validate: bool = True) -> Recommendation | None:
    """Ideal rates + solved year-by-year path, or None on invalid input.

    Pass validate=False when the caller has already run check_inputs.
    """
    if validate and not check_inputs(cfg, "rate recommendations"):
        return None
    if cfg.projection_period <= 0:
        logger.warning("Skipping rate recommendations: projection period must be positive")
        return None
    if settings is None:
        settings = cfg.recommendation_settings()
    obligations = debt_obligations(cfg)
    ideal = ideal_rate_structure(cfg, settings, obligations)
    return solve_rate_path(cfg, ideal, settings, obligations)
