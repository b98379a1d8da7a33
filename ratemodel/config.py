"""Model configuration — JSON settings and the flat input record, no UI."""

from __future__ import annotations

import json
import logging
import math
from dataclasses import dataclass, field
from functools import lru_cache
from pathlib import Path

from ratemodel.constants import TIER_SLOTS
from ratemodel.types import Grant, Loan, Project, RateStructure, RateTier

logger = logging.getLogger(__name__)

_SETTINGS_DIR = Path(__file__).resolve().parent / "settings"


@lru_cache(maxsize=16)
def load_config(name: str) -> dict:
    """Load a JSON settings file by name (without .json extension)."""
    path = _SETTINGS_DIR / f"{name}.json"
    with open(path, "r") as f:
        return json.load(f)


def load_recommendation() -> dict:
    return load_config("recommendation")


def load_affordability() -> dict:
    return load_config("affordability")


def load_baseline() -> dict:
    return load_config("baseline")


def _float(value, default: float = 0.0) -> float:
    """Coerce a form/export value to float; anything unparseable is `default`.

    Accepts "$1,250.00" and "3.5%" style strings.
    """
    if value is None:
        return default
    if isinstance(value, str):
        value = value.replace("$", "").replace(",", "").replace("%", "").strip()
        if not value:
            return default
    try:
        result = float(value)
    except (TypeError, ValueError):
        return default
    if not math.isfinite(result):
        return default
    return result


def _int(value, default: int = 0) -> int:
    return int(_float(value, default))


def _non_negative(value) -> float:
    return max(0.0, _float(value))


def _bool(value, default: bool = False) -> bool:
    if value is None:
        return default
    if isinstance(value, str):
        return value.strip().lower() in ("true", "1", "yes", "on")
    return bool(value)


def _list(data: dict, *keys: str) -> list:
    """Return the first present key as a list; None/absent -> []."""
    for key in keys:
        if key in data:
            value = data[key]
            if value is None:
                return []
            if not isinstance(value, (list, tuple)):
                raise TypeError(
                    f"'{keys[0]}' must be a list, got {type(value).__name__}"
                )
            return list(value)
    return []


def _mapping(entry, what: str) -> dict:
    if not isinstance(entry, dict):
        raise TypeError(f"{what} entries must be mappings, got {type(entry).__name__}")
    return entry


# ── Tunables ────────────────────────────────────────────────────

@dataclass(frozen=True)
class RecommendationSettings:
    """Rate recommendation solver tunables (recommendation.json)."""
    epa_affordability_threshold: float = 0.025
    target_dsrc: float = 1.2                    # informational
    ideal_base_rate_percent: float = 0.3
    ideal_addon_fee_percent: float = 0.2        # informational; add-on is pinned
    ideal_volumetric_percent: float = 0.5
    tier_multipliers: tuple[float, ...] = (1.0, 1.5, 2.5, 4.0)
    tier_limit_factors: tuple[float, ...] = (0.5, 1.2, 2.5)
    max_annual_increase_percent: float = 0.12
    solvency_adjustment_step: float = 0.005
    solvency_shortfall_weight: float = 0.1
    max_solvency_iterations: int = 200
    show_warnings: bool = False

    @classmethod
    def from_mapping(cls, data: dict | None) -> "RecommendationSettings":
        """Build from UPPER_CASE (file) or lower_case keys; missing keys keep defaults."""
        if not data:
            return cls()
        norm = {str(k).lower(): v for k, v in data.items()}
        d = cls()
        return cls(
            epa_affordability_threshold=_float(
                norm.get("epa_affordability_threshold"), d.epa_affordability_threshold),
            target_dsrc=_float(norm.get("target_dsrc"), d.target_dsrc),
            ideal_base_rate_percent=_float(
                norm.get("ideal_base_rate_percent"), d.ideal_base_rate_percent),
            ideal_addon_fee_percent=_float(
                norm.get("ideal_addon_fee_percent"), d.ideal_addon_fee_percent),
            ideal_volumetric_percent=_float(
                norm.get("ideal_volumetric_percent"), d.ideal_volumetric_percent),
            tier_multipliers=tuple(
                _float(m) for m in norm.get("tier_multipliers", d.tier_multipliers)),
            tier_limit_factors=tuple(
                _float(m) for m in norm.get("tier_limit_factors", d.tier_limit_factors)),
            max_annual_increase_percent=_float(
                norm.get("max_annual_increase_percent"), d.max_annual_increase_percent),
            solvency_adjustment_step=_float(
                norm.get("solvency_adjustment_step"), d.solvency_adjustment_step),
            solvency_shortfall_weight=_float(
                norm.get("solvency_shortfall_weight"), d.solvency_shortfall_weight),
            max_solvency_iterations=max(0, _int(
                norm.get("max_solvency_iterations"), d.max_solvency_iterations)),
            show_warnings=_bool(norm.get("show_warnings"), d.show_warnings),
        )

    @classmethod
    def load(cls, overrides: dict | None = None) -> "RecommendationSettings":
        merged = dict(load_recommendation())
        if overrides:
            merged.update({str(k).upper(): v for k, v in overrides.items()})
        return cls.from_mapping(merged)


@dataclass(frozen=True)
class AffordabilitySettings:
    """Affordability classification and defaults (affordability.json)."""
    # (upper threshold inclusive, label, level) in ascending threshold order
    epa_categories: tuple[tuple[float, str, str], ...] = (
        (0.015, "Affordable", "success"),
        (0.025, "Moderate", "warning"),
        (1.0, "Burdensome", "danger"),
    )
    poverty_moderate: float = 0.03
    poverty_high: float = 0.05
    default_project_loan_interest_pct: float = 3.0
    default_project_loan_term_years: int = 20
    default_weighted_rate: float = 5.0

    @classmethod
    def load(cls) -> "AffordabilitySettings":
        cfg = load_affordability()
        d = cls()
        cats = tuple(
            (_float(c["threshold"]), c["label"], c.get("level", "danger"))
            for c in cfg.get("epa_categories", [])
        ) or d.epa_categories
        burden = cfg.get("poverty_burden", {})
        return cls(
            epa_categories=cats,
            poverty_moderate=_float(burden.get("moderate"), d.poverty_moderate),
            poverty_high=_float(burden.get("high"), d.poverty_high),
            default_project_loan_interest_pct=_float(
                cfg.get("default_project_loan_interest_pct"),
                d.default_project_loan_interest_pct),
            default_project_loan_term_years=_int(
                cfg.get("default_project_loan_term_years"),
                d.default_project_loan_term_years),
            default_weighted_rate=_float(
                cfg.get("default_weighted_rate"), d.default_weighted_rate),
        )


@lru_cache(maxsize=1)
def affordability_settings() -> AffordabilitySettings:
    return AffordabilitySettings.load()


# ── Input record ────────────────────────────────────────────────

# (export name, attribute, clamp at zero)
_SCALARS: tuple[tuple[str, str, bool], ...] = (
    ("medianIncome", "median_income", True),
    ("povertyIncome", "poverty_income", True),
    ("belowPovertyPercent", "below_poverty_percent", True),
    ("customerCount", "customer_count", True),
    ("avgMonthlyUsage", "avg_monthly_usage", True),
    ("waterLossPercent", "water_loss_percent", True),
    ("operatingCost", "operating_cost", True),
    ("debtPayments", "debt_payments", True),
    ("infrastructureCost", "infrastructure_cost", True),
    ("interestRate", "interest_rate", True),
    ("assetLifespan", "asset_lifespan", True),
    ("inflationRate", "inflation_rate", False),
    ("customerGrowthRate", "customer_growth_rate", False),
    ("interestAdjustment", "interest_adjustment", False),
    ("targetReserve", "target_reserve", True),
)

_INTEGERS: tuple[tuple[str, str, int], ...] = (
    ("projectionPeriod", "projection_period", 0),
    ("targetYear", "target_year", 0),
    ("debtTerm", "debt_term", 20),
)

_DEFAULT_COMPARE_USAGE = (2000.0, 5800.0, 12000.0)


def _get(data: dict, camel: str, snake: str, default=None):
    if camel in data:
        return data[camel]
    return data.get(snake, default)


def _tier(entry) -> RateTier:
    entry = _mapping(entry, "tier")
    limit = entry.get("limit")
    if limit is None or (isinstance(limit, str) and not limit.strip()):
        parsed_limit = None
    else:
        parsed_limit = _non_negative(limit)
    return RateTier(
        enabled=_bool(entry.get("enabled")),
        limit=parsed_limit,
        rate=_non_negative(entry.get("rate")),
    )


def _structure(data: dict, prefix: str) -> RateStructure:
    tiers = [_tier(t) for t in _list(data, f"{prefix}Tiers", f"{prefix}_tiers")]
    tiers = tiers[:TIER_SLOTS]
    tiers += [RateTier() for _ in range(TIER_SLOTS - len(tiers))]
    return RateStructure(
        base_rate=_non_negative(_get(data, f"{prefix}BaseRate", f"{prefix}_base_rate")),
        addon_fee=_non_negative(_get(data, f"{prefix}AddonFee", f"{prefix}_addon_fee")),
        tiers=tuple(tiers),
    )


def _loan(entry) -> Loan:
    entry = _mapping(entry, "loan")
    return Loan(
        name=str(entry.get("name") or ""),
        amount=_non_negative(entry.get("amount")),
        interest=_non_negative(entry.get("interest")),
        term=max(0, _int(entry.get("term"))),
        year=max(0, _int(entry.get("year"))),
    )


def _project(entry) -> Project:
    entry = _mapping(entry, "project")
    funding = str(entry.get("funding") or "reserves").strip().lower()
    return Project(
        name=str(entry.get("name") or ""),
        cost=_non_negative(entry.get("cost")),
        year=max(0, _int(entry.get("year"))),
        funding="loan" if funding == "loan" else "reserves",
    )


def _grant(entry) -> Grant:
    entry = _mapping(entry, "grant")
    return Grant(
        name=str(entry.get("name") or ""),
        amount=_non_negative(entry.get("amount")),
        year=max(0, _int(entry.get("year"))),
    )


@dataclass(frozen=True)
class Configuration:
    """Flat, normalized input snapshot. Every computation reads only this."""
    community_name: str = ""
    # Demographics
    median_income: float = 0.0
    poverty_income: float = 0.0
    below_poverty_percent: float = 0.0
    # System
    customer_count: float = 0.0
    avg_monthly_usage: float = 0.0
    water_loss_percent: float = 0.0
    compare_usage_levels: tuple[float, ...] = _DEFAULT_COMPARE_USAGE
    # Financial
    operating_cost: float = 0.0
    debt_payments: float = 0.0
    debt_term: int = 20
    infrastructure_cost: float = 0.0
    interest_rate: float = 0.0          # percent
    asset_lifespan: float = 0.0         # years
    projection_period: int = 0
    inflation_rate: float = 0.0         # percent
    customer_growth_rate: float = 0.0   # percent
    interest_adjustment: float = 0.0    # percentage points per year
    target_reserve: float = 0.0
    target_year: int = 0
    include_reserve_in_revenue: bool = True
    start_year: int | None = None
    # Planning entries
    loans: tuple[Loan, ...] = ()
    projects: tuple[Project, ...] = ()
    grants: tuple[Grant, ...] = ()
    # Rate structures
    current_rates: RateStructure = field(default_factory=RateStructure)
    future_rates: RateStructure = field(default_factory=RateStructure)
    recommendation_overrides: dict | None = None

    @classmethod
    def from_dict(cls, data: dict) -> "Configuration":
        """Normalize an export/form record. Bad scalars become 0, never raise."""
        if not isinstance(data, dict):
            raise TypeError(
                f"configuration must be a mapping, got {type(data).__name__}"
            )
        kwargs: dict = {}
        for camel, attr, clamp in _SCALARS:
            raw = _get(data, camel, attr)
            kwargs[attr] = _non_negative(raw) if clamp else _float(raw)
        for camel, attr, default in _INTEGERS:
            raw = _get(data, camel, attr)
            kwargs[attr] = max(0, _int(raw, default)) if raw is not None else default
        if kwargs["debt_term"] <= 0:
            kwargs["debt_term"] = 20

        levels = _list(data, "compareUsageLevels", "compare_usage_levels")
        kwargs["compare_usage_levels"] = (
            tuple(_non_negative(v) for v in levels) if levels else _DEFAULT_COMPARE_USAGE
        )

        start = _get(data, "startYear", "start_year")
        kwargs["start_year"] = _int(start) if start not in (None, "") else None
        kwargs["community_name"] = str(_get(data, "communityName", "community_name") or "")
        include = _get(data, "includeReserveInRevenue", "include_reserve_in_revenue")
        kwargs["include_reserve_in_revenue"] = _bool(include, default=True)

        kwargs["loans"] = tuple(_loan(e) for e in _list(data, "loans"))
        kwargs["projects"] = tuple(_project(e) for e in _list(data, "projects"))
        kwargs["grants"] = tuple(_grant(e) for e in _list(data, "grants"))
        kwargs["current_rates"] = _structure(data, "current")
        kwargs["future_rates"] = _structure(data, "future")

        overrides = _get(data, "recommendationSettings", "recommendation_settings")
        if overrides is not None and not isinstance(overrides, dict):
            raise TypeError("'recommendationSettings' must be a mapping")
        kwargs["recommendation_overrides"] = dict(overrides) if overrides else None

        cfg = cls(**kwargs)
        logger.debug(
            f"Configuration normalized: {len(cfg.loans)} loans, "
            f"{len(cfg.projects)} projects, {len(cfg.grants)} grants"
        )
        return cfg

    @classmethod
    def load_baseline(cls) -> "Configuration":
        """Shipped default community (settings/baseline.json)."""
        return cls.from_dict(load_baseline())

    def to_dict(self) -> dict:
        out: dict = {"communityName": self.community_name}
        for camel, attr, _ in _SCALARS:
            out[camel] = getattr(self, attr)
        for camel, attr, _ in _INTEGERS:
            out[camel] = getattr(self, attr)
        out["compareUsageLevels"] = list(self.compare_usage_levels)
        out["includeReserveInRevenue"] = self.include_reserve_in_revenue
        out["startYear"] = self.start_year
        out["loans"] = [l.to_dict() for l in self.loans]
        out["projects"] = [p.to_dict() for p in self.projects]
        out["grants"] = [g.to_dict() for g in self.grants]
        for key, rs in (("current", self.current_rates), ("future", self.future_rates)):
            out[f"{key}BaseRate"] = rs.base_rate
            out[f"{key}AddonFee"] = rs.addon_fee
            out[f"{key}Tiers"] = [t.to_dict() for t in rs.tiers]
        if self.recommendation_overrides:
            out["recommendationSettings"] = dict(self.recommendation_overrides)
        return out

    def rate_structure(self, key: str) -> RateStructure:
        if key == "current":
            return self.current_rates
        if key == "future":
            return self.future_rates
        raise ValueError(f"Unknown rate structure '{key}' (expected 'current' or 'future')")

    def recommendation_settings(self) -> RecommendationSettings:
        return RecommendationSettings.load(self.recommendation_overrides)
