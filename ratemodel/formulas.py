"""Generic financial formulas — stateless, no configuration knowledge."""

from __future__ import annotations

import math

from ratemodel.constants import MONTHS_PER_YEAR


def round_currency(value: float) -> float:
    """Round to cents, halves away from zero for positive amounts (0.125 -> 0.13)."""
    return math.floor(value * 100 + 0.5) / 100


def floor_currency(value: float) -> float:
    """Round down to cents. Used for upper caps so rounding never breaches them."""
    return math.floor(value * 100) / 100


def ceil_currency(value: float) -> float:
    """Round up to cents. Used for lower bounds."""
    return math.ceil(value * 100) / 100


def annual_payment(principal: float, rate_pct: float, term_years: float) -> float:
    """Level annual annuity payment.

    payment = P * r / (1 - (1+r)^-n), or P/n at zero interest.
    Returns 0 if principal or term is not positive.
    """
    if principal <= 0 or term_years <= 0:
        return 0.0
    r = rate_pct / 100.0
    if r <= 0:
        return principal / term_years
    return principal * r / (1 - (1 + r) ** -term_years)


def infrastructure_reserve(infrastructure_cost: float, asset_lifespan: float) -> float:
    """Straight-line annual reserve funding. Lifespan <= 0 -> 0."""
    if asset_lifespan <= 0:
        return 0.0
    return infrastructure_cost / asset_lifespan


def growth_factor(rate_pct: float, years: float) -> float:
    """Compound factor (1 + rate/100)^years."""
    return (1 + rate_pct / 100.0) ** years


def annual_revenue(customer_count: float, monthly_bill: float) -> float:
    return customer_count * monthly_bill * MONTHS_PER_YEAR


def annual_revenue_need(operating_cost: float, debt_service: float,
                        reserve_funding: float, grants: float) -> float:
    """O&M + debt + reserve funding - grants, floored at 0."""
    return max(0.0, operating_cost + debt_service + reserve_funding - grants)


def revenue_percentage(revenue: float, need: float) -> float:
    """Revenue as % of need. Need <= 0 -> 100 if any revenue, else 0."""
    if need > 0:
        return revenue / need * 100
    return 100.0 if revenue > 0 else 0.0


def affordability_ratio(monthly_bill: float, annual_income: float) -> float:
    """Monthly bill as a share of monthly income. Income <= 0 -> inf."""
    if annual_income <= 0:
        return math.inf
    return monthly_bill / (annual_income / MONTHS_PER_YEAR)


def interpolate(start: float, end: float, fraction: float) -> float:
    return start + (end - start) * fraction


def transition_factor(year: int, target_year: int, projection_period: int) -> float:
    """Fraction of the way from current to future rates in `year`."""
    horizon = target_year or projection_period
    if horizon <= 0:
        return 1.0
    return min(1.0, year / horizon)
