"""
Tests for input validation rules.
"""

import logging

from ratemodel.types import RateTier
from ratemodel.validation import (
    check_inputs,
    tier_ordering_problems,
    validate_calculation_inputs,
)


class TestValidateInputs:

    def test_baseline_is_valid(self, baseline):
        assert validate_calculation_inputs(baseline) == []

    def test_missing_scalars(self, make_config):
        """Each required scalar reports its own problem."""
        issues = validate_calculation_inputs(make_config(medianIncome=0, operatingCost=None))
        assert len(issues) == 2
        assert any("Median household income" in i for i in issues)
        assert any("Operating cost" in i for i in issues)

    def test_no_active_tier(self, make_config):
        """Enabled tiers with zero rates do not count."""
        cfg = make_config(futureTiers=[{"enabled": True, "limit": None, "rate": 0}])
        issues = validate_calculation_inputs(cfg)
        assert issues == ["Future rate structure has no enabled tier with a rate above zero"]

    def test_check_inputs_logs(self, make_config, caplog):
        with caplog.at_level(logging.WARNING):
            assert check_inputs(make_config(customerCount=0), "unit test") is False
        assert "Invalid inputs for unit test" in caplog.text


class TestTierOrdering:

    def test_increasing_limits_pass(self, scenario):
        assert tier_ordering_problems(scenario.current_rates.tiers) == []

    def test_non_increasing_limit(self):
        tiers = [RateTier(True, 5000, 1), RateTier(True, 3000, 2), RateTier(True, None, 3)]
        problems = tier_ordering_problems(tiers, label="current")
        assert len(problems) == 1
        assert problems[0].startswith("[current] Tier 2")

    def test_unbounded_before_last(self):
        tiers = [RateTier(True, None, 1), RateTier(True, 3000, 2)]
        assert "unbounded" in tier_ordering_problems(tiers)[0]

    def test_disabled_tiers_ignored(self):
        tiers = [RateTier(True, 5000, 1), RateTier(False, 1000, 2), RateTier(True, 9000, 3)]
        assert tier_ordering_problems(tiers) == []

    def test_ordering_warned_not_blocking(self, make_config, caplog):
        """Malformed ordering is logged but the pass proceeds."""
        cfg = make_config(currentTiers=[
            {"enabled": True, "limit": 5000, "rate": 5},
            {"enabled": True, "limit": 3000, "rate": 6},
            {"enabled": True, "limit": None, "rate": 7},
        ])
        assert check_inputs(cfg, "unit test") is True
        assert "does not exceed previous limit" in caplog.text
