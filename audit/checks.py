"""Pure audit check functions for the water rate model.

Each function takes engine output and returns a list of check result tuples:
    (section: str, name: str, expected: float, actual: float, delta: float, passed: bool)

All checks read from completed engine output (StructureResults,
ProjectionResult, Recommendation), never from live state.
"""

from __future__ import annotations

from ratemodel.config import Configuration
from ratemodel.constants import MONTHS_PER_YEAR
from ratemodel.formulas import growth_factor
from ratemodel.types import ProjectionResult, Recommendation, StructureResults

TOLERANCE = 1.0      # currency
RATIO_TOLERANCE = 1e-9


# ── Helper ────────────────────────────────────────────────────────

def _check(results: list, section: str, name: str,
           expected: float, actual: float, tolerance: float = TOLERANCE) -> None:
    """Append a single check result to the results list."""
    delta = abs(expected - actual)
    ok = delta <= tolerance
    results.append((section, name, expected, actual, delta, ok))


# ── Classification ────────────────────────────────────────────────

def classify_check(section: str, name: str) -> str:
    """Return 'arithmetic' or 'model_design' for a check.

    Model design gaps are accepted properties, not bugs:
    - solver revenue short of need when the annual increase cap binds
    """
    if "revenue covers need" in name:
        return "model_design"
    return "arithmetic"


# ── Rate-structure snapshots ──────────────────────────────────────

def check_structure(cfg: Configuration, res: StructureResults) -> list[tuple]:
    """Bill and revenue identities for one structure snapshot."""
    results: list[tuple] = []
    sec = res.structure_key.upper()

    tier_total = sum(t["cost"] for t in res.tier_breakdown)
    _check(results, sec, "Bill = Base + Add-on + Tiers",
           res.base_rate_cost + res.addon_fee_cost + tier_total, res.total_bill,
           RATIO_TOLERANCE)

    gallons = sum(t["gallons"] for t in res.tier_breakdown)
    if any(t["enabled"] for t in res.tier_breakdown):
        _check(results, sec, "Tier usage = average usage",
               cfg.avg_monthly_usage, gallons, RATIO_TOLERANCE)

    _check(results, sec, "Revenue = Base + Add-on + Tiers",
           res.annual_revenue_from_base + res.annual_revenue_from_addon
           + res.annual_revenue_from_tiers, res.annual_revenue)
    _check(results, sec, "Revenue = Bill x Customers x 12",
           res.total_bill * cfg.customer_count * MONTHS_PER_YEAR, res.annual_revenue)
    _check(results, sec, "Gap = Revenue - Need",
           res.annual_revenue - res.annual_revenue_need, res.revenue_gap)
    _check(results, sec, "Debt = Existing + Project",
           res.existing_debt_payments + res.near_term_project_debt,
           res.total_debt_payments)
    return results


# ── Projection ────────────────────────────────────────────────────

def check_projection(cfg: Configuration, proj: ProjectionResult,
                     section: str = "PROJECTION") -> list[tuple]:
    """Per-year need, gap, debt, reserve and growth identities."""
    results: list[tuple] = []
    prev_closing = 0.0

    for row in proj.years:
        y = row["year"]
        reserve = row["infrastructure_reserve"] if cfg.include_reserve_in_revenue else 0.0
        expected_need = max(0.0, row["operating_cost"] + row["total_debt_service"]
                            + reserve - row["grants"])
        _check(results, section, f"Y{y} Need = OpEx + Debt + Reserve - Grants",
               expected_need, row["needed_revenue"])
        _check(results, section, f"Y{y} Gap = Revenue - Need",
               row["expected_revenue"] - row["needed_revenue"], row["revenue_gap"])
        _check(results, section, f"Y{y} Debt = Existing + Project + New loans",
               row["existing_debt_service"] + row["project_debt_service"]
               + row["new_loan_debt_service"], row["total_debt_service"])
        _check(results, section, f"Y{y} Debt by start year sums to total",
               sum(row["debt_by_start_year"].values()), row["total_debt_service"])
        _check(results, section, f"Y{y} Reserve Open = prior Close",
               prev_closing, row["reserve_opening"])
        _check(results, section, f"Y{y} Reserve Open+Contrib+Int-Capital = Close",
               row["reserve_opening"] + row["reserve_contribution"]
               + row["reserve_interest"] - row["capital_from_reserves"],
               row["reserve_balance"])
        _check(results, section, f"Y{y} Customers = Base x Growth^Y",
               cfg.customer_count * growth_factor(cfg.customer_growth_rate, y),
               row["customer_count"], 1e-6)
        _check(results, section, f"Y{y} Revenue = Bill x Customers x 12",
               row["monthly_bill"] * row["customer_count"] * MONTHS_PER_YEAR,
               row["expected_revenue"])
        prev_closing = row["reserve_balance"]
    return results


# ── Solver ────────────────────────────────────────────────────────

def _shock_excess(prev: float | None, cur: float | None, cap: float) -> float:
    """How far a year-on-year move exceeds the cap (0 when within it)."""
    if prev is None or cur is None or prev <= 0:
        return 0.0
    return max(0.0, abs(cur - prev) / prev - cap)


def check_solver(cfg: Configuration, rec: Recommendation) -> list[tuple]:
    """Rate-shock bound, add-on pinning, reserve recurrence, coverage."""
    results: list[tuple] = []
    sec = "SOLVER"
    cap = cfg.recommendation_settings().max_annual_increase_percent
    years = rec.projection.years
    addon = cfg.current_rates.addon_fee

    for prev, row in zip(years, years[1:]):
        y = row["year"]
        _check(results, sec, f"Y{y} Base rate within annual cap",
               0.0, _shock_excess(prev["base_rate"], row["base_rate"], cap),
               RATIO_TOLERANCE)
        for i in range(1, 5):
            key = f"tier{i}_rate"
            _check(results, sec, f"Y{y} Tier {i} rate within annual cap",
                   0.0, _shock_excess(prev[key], row[key], cap), RATIO_TOLERANCE)
    for row in years:
        y = row["year"]
        _check(results, sec, f"Y{y} Add-on fee pinned", addon, row["addon_fee"],
               RATIO_TOLERANCE)
        if y > 0:
            # one-sided: a surplus passes
            shortfall = max(0.0, row["needed_revenue"] - row["expected_revenue"])
            _check(results, sec, f"Y{y} Solver revenue covers need", 0.0, shortfall)

    results.extend(check_projection(cfg, rec.projection, section=sec))
    return results
