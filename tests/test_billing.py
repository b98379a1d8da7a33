"""
Unit tests for tiered billing.

Hand-checked scenario: base 18.50, add-on 7.25, tier 1 up to 4,000 at
5.20, tier 2 to 10,000 at 5.80, usage 5,800 -> bill 56.99.
"""

import pytest

from ratemodel.billing import (
    compute_monthly_bill,
    compute_tier_breakdown,
    weighted_average_rate,
)
from ratemodel.formulas import annual_revenue
from ratemodel.types import RateStructure, RateTier


def _tiers(*specs):
    tiers = [RateTier(enabled=e, limit=l, rate=r) for e, l, r in specs]
    tiers += [RateTier() for _ in range(4 - len(tiers))]
    return tuple(tiers)


# ---- Scenario Tests ----

class TestScenarioBill:

    def test_tier_allocation(self, scenario):
        """4,000 units in tier 1, the remaining 1,800 in tier 2."""
        result = compute_tier_breakdown(5800, scenario.current_rates.tiers)
        t1, t2, t3, t4 = result["tiers"]
        assert t1["gallons"] == 4000
        assert abs(t1["cost"] - 20.80) < 1e-9
        assert t2["gallons"] == 1800
        assert abs(t2["cost"] - 10.44) < 1e-9
        assert t3 == {"gallons": 0.0, "rate": 0.0, "cost": 0.0, "enabled": False}
        assert t4["enabled"] is False

    def test_monthly_bill(self, scenario):
        """18.50 + 7.25 + 20.80 + 10.44 = 56.99."""
        assert compute_monthly_bill(scenario.current_rates, 5800) == pytest.approx(56.99)

    def test_annual_revenue(self, scenario):
        """56.99 x 6,200 x 12 = 4,240,056."""
        bill = compute_monthly_bill(scenario.current_rates, 5800)
        assert abs(annual_revenue(6200, bill) - 4240056) < 0.01


# ---- Allocation Tests ----

class TestTierAllocation:

    @pytest.mark.parametrize("usage", [0, 1500, 4000, 9999, 50000])
    def test_usage_conserved(self, scenario, usage):
        """Allocated usage always sums to the input usage."""
        tiers = compute_tier_breakdown(usage, scenario.current_rates.tiers)["tiers"]
        assert sum(t["gallons"] for t in tiers) == pytest.approx(usage)

    def test_last_enabled_tier_absorbs_remainder(self):
        """A bounded last tier still takes usage beyond its limit."""
        tiers = _tiers((True, 4000, 5.0), (True, 10000, 6.0))
        result = compute_tier_breakdown(20000, tiers)["tiers"]
        assert result[1]["gallons"] == 16000

    def test_disabled_middle_tier_is_placeholder(self):
        """A disabled slot keeps its position and takes nothing."""
        tiers = _tiers((True, 2000, 4.0), (False, 5000, 9.0), (True, 8000, 6.0))
        result = compute_tier_breakdown(6000, tiers)["tiers"]
        assert result[0]["gallons"] == 2000
        assert result[1]["gallons"] == 0.0 and result[1]["enabled"] is False
        assert result[2]["gallons"] == 4000
        assert result[3]["enabled"] is False

    def test_non_increasing_limit_has_zero_width(self):
        """A limit below the previous one is clipped, never negative."""
        tiers = _tiers((True, 5000, 4.0), (True, 3000, 5.0), (True, None, 6.0))
        result = compute_tier_breakdown(8000, tiers)["tiers"]
        assert result[0]["gallons"] == 5000
        assert result[1]["gallons"] == 0.0
        assert result[2]["gallons"] == 3000

    def test_no_enabled_tier(self):
        """Without enabled tiers the bill is base + add-on only."""
        structure = RateStructure(base_rate=10.0, addon_fee=2.0, tiers=_tiers())
        result = compute_tier_breakdown(5000, structure.tiers)
        assert result["total_cost"] == 0.0
        assert compute_monthly_bill(structure, 5000) == 12.0

    def test_negative_usage_treated_as_zero(self, scenario):
        result = compute_tier_breakdown(-100, scenario.current_rates.tiers)
        assert result["total_cost"] == 0.0

    def test_bill_is_monotonic(self, scenario):
        """More usage never lowers the bill."""
        bills = [compute_monthly_bill(scenario.current_rates, u)
                 for u in range(0, 30001, 500)]
        assert all(b2 >= b1 for b1, b2 in zip(bills, bills[1:]))


# ---- Weighted Rate Tests ----

class TestWeightedAverageRate:

    def test_all_in_rate(self, scenario):
        """Bill x 1000 / usage."""
        rate = weighted_average_rate(scenario.current_rates, 5800)
        assert rate == pytest.approx(56.99 * 1000 / 5800)

    def test_zero_usage_falls_back_to_default(self, scenario):
        """No usage uses the configured default of 5.0."""
        assert weighted_average_rate(scenario.current_rates, 0) == 5.0
