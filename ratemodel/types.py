"""Data shapes for the rate engine."""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import TypedDict

from ratemodel.constants import TIER_SLOTS


# ── Rate structure ──────────────────────────────────────────────

@dataclass(frozen=True)
class RateTier:
    enabled: bool = False
    limit: float | None = None   # upper usage bound; None = unbounded
    rate: float = 0.0            # currency per 1000 usage units

    def to_dict(self) -> dict:
        return {"enabled": self.enabled, "limit": self.limit, "rate": self.rate}


@dataclass(frozen=True)
class RateStructure:
    """Base rate + add-on fee + four positional tiers.

    Tiers are fixed slots: disabling a tier keeps its position so tier
    1..4 indexing stays stable in every downstream table.
    """
    base_rate: float = 0.0
    addon_fee: float = 0.0
    tiers: tuple[RateTier, ...] = field(
        default_factory=lambda: tuple(RateTier() for _ in range(TIER_SLOTS))
    )

    @property
    def has_active_tier(self) -> bool:
        """At least one enabled tier with a positive rate."""
        return any(t.enabled and t.rate > 0 for t in self.tiers)

    @property
    def tier_rates(self) -> list[float]:
        return [t.rate for t in self.tiers]

    def with_rates(self, base_rate: float, tier_rates: list[float]) -> "RateStructure":
        """Copy with new base and tier rates (limits and flags unchanged)."""
        tiers = tuple(
            replace(t, rate=r) for t, r in zip(self.tiers, tier_rates)
        )
        return replace(self, base_rate=base_rate, tiers=tiers)

    def to_dict(self) -> dict:
        return {
            "baseRate": self.base_rate,
            "addonFee": self.addon_fee,
            "tiers": [t.to_dict() for t in self.tiers],
        }


# ── Financial planning entries ──────────────────────────────────

@dataclass(frozen=True)
class Loan:
    name: str = ""
    amount: float = 0.0
    interest: float = 0.0   # whole-number percent (3.2 = 3.2%)
    term: int = 0           # years
    year: int = 0           # origination year relative to projection start

    def to_dict(self) -> dict:
        return {"name": self.name, "amount": self.amount,
                "interest": self.interest, "term": self.term, "year": self.year}


@dataclass(frozen=True)
class Project:
    name: str = ""
    cost: float = 0.0
    year: int = 0
    funding: str = "reserves"   # 'reserves' | 'loan'

    def to_dict(self) -> dict:
        return {"name": self.name, "cost": self.cost,
                "year": self.year, "funding": self.funding}


@dataclass(frozen=True)
class Grant:
    name: str = ""
    amount: float = 0.0
    year: int = 0

    def to_dict(self) -> dict:
        return {"name": self.name, "amount": self.amount, "year": self.year}


# ── Billing ─────────────────────────────────────────────────────

class TierResult(TypedDict):
    gallons: float
    rate: float
    cost: float
    enabled: bool


class TierBreakdown(TypedDict):
    tiers: list[TierResult]   # always TIER_SLOTS long
    total_cost: float


class AffordabilityStatus(TypedDict):
    label: str
    level: str      # success | warning | danger


class BillComparisonRow(TypedDict):
    usage: float
    bill: float
    affordability: float
    status: AffordabilityStatus


# ── Debt ────────────────────────────────────────────────────────

class AmortizationRow(TypedDict):
    year: int
    opening: float
    interest: float
    principal: float
    payment: float
    closing: float


class DebtBreakdownRow(TypedDict):
    name: str
    kind: str           # manual | loan | project_loan | project
    amount: float
    payment: float
    term: int
    start_year: int
    end_year: int


# ── Projection ──────────────────────────────────────────────────

class ProjectionYearResult(TypedDict):
    year: int
    calendar_year: int | None
    base_rate: float
    addon_fee: float
    tier1_rate: float | None
    tier1_limit: float | None
    tier2_rate: float | None
    tier2_limit: float | None
    tier3_rate: float | None
    tier3_limit: float | None
    tier4_rate: float | None
    tier4_limit: float | None
    monthly_bill: float
    capital_improvements: float
    grants: float
    new_debt: float
    existing_debt_service: float
    project_debt_service: float
    new_loan_debt_service: float
    total_debt_service: float
    debt_by_start_year: dict[int, float]
    infrastructure_reserve: float
    expected_revenue: float
    needed_revenue: float
    revenue_gap: float
    revenue_percentage: float
    reserve_opening: float
    reserve_contribution: float
    reserve_interest: float
    capital_from_reserves: float
    reserve_balance: float
    customer_count: float
    operating_cost: float
    affordability_mhi: float
    affordability_low_income: float
    poverty_status: str
    water_billed: float
    water_produced: float
    water_lost: float
    water_loss_revenue: float


# ── Results ─────────────────────────────────────────────────────

@dataclass
class StructureResults:
    """Financial snapshot of one rate structure (current or what-if)."""
    structure_key: str
    analysis_year: int
    tier_breakdown: list[TierResult]
    base_rate_cost: float
    addon_fee_cost: float
    total_bill: float
    affordability_mhi: float
    affordability_status: AffordabilityStatus
    revenue_pie_data: list[dict]
    annual_revenue_from_base: float
    annual_revenue_from_addon: float
    annual_revenue_from_tiers: float
    annual_revenue: float
    annual_revenue_need: float
    grants_for_year: float
    operating_cost: float
    existing_debt_payments: float
    near_term_project_debt: float
    total_debt_payments: float
    infrastructure_reserve: float
    revenue_gap: float
    revenue_percentage: float
    bill_comparison: list[BillComparisonRow]
    recommendation_note: str | None = None


@dataclass
class WaterLossSummary:
    water_billed: float
    water_lost: float
    current_avg_bill: float
    future_avg_bill: float
    current_weighted_rate: float
    future_weighted_rate: float
    current_loss_revenue: float
    current_loss_share: float
    future_loss_revenue: float
    future_loss_share: float
    savings_10pct_reduction: float
    savings_25pct_reduction: float


@dataclass
class PovertySummary:
    monthly_poverty_income: float
    current_percent: float
    current_status: str
    future_percent: float
    future_status: str
    years: list[int] = field(default_factory=list)
    annual_bill: list[float] = field(default_factory=list)
    percent_of_income: list[float] = field(default_factory=list)
    status: list[str] = field(default_factory=list)


@dataclass
class ProjectionResult:
    """Year-indexed output of the projection engine or the solver."""
    years: list[ProjectionYearResult]
    debt_schedules: dict[str, list[AmortizationRow]] = field(default_factory=dict)

    def series(self, key: str) -> list:
        return [row[key] for row in self.years]

    @property
    def dataframe(self):
        """Year rows as a DataFrame indexed by projection year. Lazy import."""
        import pandas as pd
        rows = [
            {k: v for k, v in row.items() if k != "debt_by_start_year"}
            for row in self.years
        ]
        return pd.DataFrame(rows).set_index("year")

    @property
    def dataframes(self) -> dict:
        """Projection + one amortization table per debt obligation."""
        import pandas as pd
        dfs = {"projection": self.dataframe}
        for name, schedule in self.debt_schedules.items():
            dfs[f"debt:{name}"] = pd.DataFrame(schedule)
        return dfs


@dataclass
class Recommendation:
    ideal_rates: RateStructure
    projection: ProjectionResult
    solver_iterations: dict[int, int] = field(default_factory=dict)
    unconverged_years: list[int] = field(default_factory=list)

    @property
    def converged(self) -> bool:
        return not self.unconverged_years


@dataclass
class CalculationResults:
    """Everything one recomputation produces, keyed the way views read it."""
    current_results: StructureResults
    future_results: StructureResults
    projection_results: ProjectionResult
    water_loss_results: WaterLossSummary | None
    poverty_results: PovertySummary | None
    projection_summary: dict = field(default_factory=dict)
    rate_recommendations: Recommendation | None = None
    warnings: list[str] = field(default_factory=list)
