"""Revenue and revenue need — per-year cost build-up and rate-structure snapshots."""

from __future__ import annotations

from typing import TypedDict

from ratemodel.analytics import affordability_status
from ratemodel.billing import compute_tier_breakdown
from ratemodel.config import Configuration
from ratemodel.constants import MONTHS_PER_YEAR
from ratemodel.debt import DebtConsolidation, DebtObligations, consolidate_debt
from ratemodel.formulas import (
    affordability_ratio,
    annual_revenue_need,
    growth_factor,
    infrastructure_reserve,
    revenue_percentage,
)
from ratemodel.types import BillComparisonRow, RateStructure, StructureResults

_RECOMMENDATION_NOTE = (
    "The rate recommendation provides a solved rate structure and transition "
    "plan; use the what-if structure for experimentation only."
)


# ── Per-year cost build-up ──────────────────────────────────────

def grants_for_year(cfg: Configuration, year: int) -> float:
    return sum(g.amount for g in cfg.grants if g.year == year)


def capital_for_year(cfg: Configuration, year: int) -> tuple[float, float]:
    """(all capital improvements, reserve-funded capital) scheduled in `year`."""
    total = reserves = 0.0
    for p in cfg.projects:
        if p.year != year:
            continue
        total += p.cost
        if p.funding != "loan":
            reserves += p.cost
    return total, reserves


def operating_cost_for_year(cfg: Configuration, year: int) -> float:
    return cfg.operating_cost * growth_factor(cfg.inflation_rate, year)


class RevenueNeed(TypedDict):
    year: int
    operating_cost: float
    debt: DebtConsolidation
    infrastructure_reserve: float
    grants: float
    need: float


def revenue_need_for_year(cfg: Configuration, year: int,
                          obligations: DebtObligations | None = None) -> RevenueNeed:
    """Operating cost + debt service + reserve funding - grants, floored at 0.

    Reserve funding is excluded when include_reserve_in_revenue is off.
    """
    opex = operating_cost_for_year(cfg, year)
    debt = consolidate_debt(cfg, year, obligations)
    reserve = infrastructure_reserve(cfg.infrastructure_cost, cfg.asset_lifespan)
    grants = grants_for_year(cfg, year)
    funded_reserve = reserve if cfg.include_reserve_in_revenue else 0.0
    return {
        "year": year,
        "operating_cost": opex,
        "debt": debt,
        "infrastructure_reserve": reserve,
        "grants": grants,
        "need": annual_revenue_need(opex, debt["total"], funded_reserve, grants),
    }


# ── Revenue ─────────────────────────────────────────────────────

class StructureRevenue(TypedDict):
    base: float
    addon: float
    tiers: float
    total: float


def structure_revenue(structure: RateStructure, customers: float,
                      usage: float) -> StructureRevenue:
    """Annual revenue split by component for `customers` at `usage`."""
    if customers <= 0:
        return {"base": 0.0, "addon": 0.0, "tiers": 0.0, "total": 0.0}
    months = customers * MONTHS_PER_YEAR
    base = structure.base_rate * months
    addon = structure.addon_fee * months
    tiers = compute_tier_breakdown(usage, structure.tiers)["total_cost"] * months
    return {"base": base, "addon": addon, "tiers": tiers, "total": base + addon + tiers}


# ── Rate-structure snapshot ─────────────────────────────────────

def bill_comparison(cfg: Configuration, structure: RateStructure) -> list[BillComparisonRow]:
    """Bill and MHI affordability at each comparison usage level."""
    rows: list[BillComparisonRow] = []
    for usage in cfg.compare_usage_levels:
        tiers = compute_tier_breakdown(usage, structure.tiers)["total_cost"]
        bill = structure.base_rate + structure.addon_fee + tiers
        ratio = affordability_ratio(bill, cfg.median_income)
        rows.append({
            "usage": usage,
            "bill": bill,
            "affordability": ratio,
            "status": affordability_status(ratio),
        })
    return rows


def structure_results(cfg: Configuration, key: str,
                      analysis_year: int | None = None,
                      obligations: DebtObligations | None = None,
                      with_recommendation: bool = False) -> StructureResults:
    """Financial snapshot for the 'current' (year 0) or 'future' (year 1) structure."""
    structure = cfg.rate_structure(key)
    if analysis_year is None:
        analysis_year = 0 if key == "current" else 1

    breakdown = compute_tier_breakdown(cfg.avg_monthly_usage, structure.tiers)
    total_bill = structure.base_rate + structure.addon_fee + breakdown["total_cost"]
    ratio = affordability_ratio(total_bill, cfg.median_income)

    pie = [
        {"label": "Base Rate", "value": structure.base_rate},
        {"label": "Add-on Fee", "value": structure.addon_fee},
    ]
    for i, tier in enumerate(breakdown["tiers"]):
        if tier["enabled"] and tier["cost"] > 0:
            pie.append({"label": f"Tier {i + 1}", "value": tier["cost"]})

    revenue = structure_revenue(structure, cfg.customer_count, cfg.avg_monthly_usage)
    need = revenue_need_for_year(cfg, analysis_year, obligations)
    debt = need["debt"]

    note = None
    if with_recommendation and key == "future":
        note = _RECOMMENDATION_NOTE

    return StructureResults(
        structure_key=key,
        analysis_year=analysis_year,
        tier_breakdown=breakdown["tiers"],
        base_rate_cost=structure.base_rate,
        addon_fee_cost=structure.addon_fee,
        total_bill=total_bill,
        affordability_mhi=ratio,
        affordability_status=affordability_status(ratio),
        revenue_pie_data=pie,
        annual_revenue_from_base=revenue["base"],
        annual_revenue_from_addon=revenue["addon"],
        annual_revenue_from_tiers=revenue["tiers"],
        annual_revenue=revenue["total"],
        annual_revenue_need=need["need"],
        grants_for_year=need["grants"],
        operating_cost=need["operating_cost"],
        existing_debt_payments=debt["existing_debt"],
        near_term_project_debt=debt["near_term_project_debt"],
        total_debt_payments=debt["total"],
        infrastructure_reserve=need["infrastructure_reserve"],
        revenue_gap=revenue["total"] - need["need"],
        revenue_percentage=revenue_percentage(revenue["total"], need["need"]),
        bill_comparison=bill_comparison(cfg, structure),
        recommendation_note=note,
    )
