"""
End-to-end tests for a full recomputation.
"""

import logging

import pytest

import ratemodel
from ratemodel.orchestrator import calculate_all


class TestCalculateAll:

    def test_baseline_default(self):
        """No argument runs the shipped baseline community."""
        result = calculate_all()
        assert result.current_results.total_bill == pytest.approx(56.99)
        assert len(result.projection_results.years) == 16
        assert result.rate_recommendations is not None
        assert result.future_results.recommendation_note

    def test_accepts_export_dict(self, scenario_data):
        result = calculate_all(scenario_data)
        assert abs(result.current_results.annual_revenue - 4240056) < 0.01

    def test_without_recommendations(self, scenario):
        result = calculate_all(scenario, with_recommendations=False)
        assert result.rate_recommendations is None
        assert result.future_results.recommendation_note is None

    def test_invalid_returns_none(self, make_config):
        assert calculate_all(make_config(avgMonthlyUsage=0)) is None

    def test_tier_problems_reported(self, make_config):
        cfg = make_config(currentTiers=[
            {"enabled": True, "limit": 5000, "rate": 5},
            {"enabled": True, "limit": 3000, "rate": 6},
            {"enabled": True, "limit": None, "rate": 7},
        ])
        result = calculate_all(cfg, with_recommendations=False)
        assert any(w.startswith("[current] Tier 2") for w in result.warnings)

    def test_analytics_attached(self, scenario):
        result = calculate_all(scenario)
        assert result.water_loss_results is not None
        assert result.poverty_results.years == list(range(11))

    def test_package_entry_points(self, scenario):
        """Top-level helpers delegate to the engine modules."""
        assert ratemodel.calculate_all(scenario).current_results.total_bill == pytest.approx(56.99)
        assert len(ratemodel.project(scenario).years) == 11
        assert ratemodel.recommend(scenario).ideal_rates.addon_fee == 7.25

    def test_projection_summary_attached(self, baseline):
        result = calculate_all(baseline, with_recommendations=False)
        summary = result.projection_summary
        assert summary["years"] == len(result.projection_results.years)
        assert summary["final_reserve"] == pytest.approx(
            result.projection_results.years[-1]["reserve_balance"])

    def test_tier_warnings_logged_once(self, make_config, caplog):
        """Validation runs once per recomputation, recommendation included."""
        cfg = make_config(currentTiers=[
            {"enabled": True, "limit": 5000, "rate": 5},
            {"enabled": True, "limit": 3000, "rate": 6},
            {"enabled": True, "limit": None, "rate": 7},
        ])
        caplog.set_level(logging.WARNING)
        result = calculate_all(cfg)
        assert result.rate_recommendations is not None
        logged = [r.getMessage() for r in caplog.records
                  if r.getMessage().startswith("[current] Tier 2")]
        assert len(logged) == 1
