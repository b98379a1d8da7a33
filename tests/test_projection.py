"""
Tests for the multi-year projection engine.
"""

import pytest

from ratemodel.projection import interpolate_structure, project, run_projection
from ratemodel.types import RateStructure, RateTier


# ---- Rate Path Tests ----

class TestRatePath:

    def test_one_row_per_year(self, scenario):
        result = project(scenario)
        assert [r["year"] for r in result.years] == list(range(11))

    def test_year_zero_uses_current_rates(self, scenario):
        """Year 0 is the current structure verbatim."""
        row = project(scenario).years[0]
        assert row["base_rate"] == 18.50
        assert row["tier1_rate"] == 5.20
        assert row["monthly_bill"] == pytest.approx(56.99)
        assert abs(row["expected_revenue"] - 4240056) < 0.01

    def test_midpoint_interpolation(self, scenario):
        """Halfway through a 10-year period the base rate is halfway."""
        row = project(scenario).years[5]
        assert row["base_rate"] == pytest.approx(19.25)
        assert row["tier1_rate"] == pytest.approx(5.35)
        assert row["tier1_limit"] == pytest.approx(3500)

    def test_final_year_reaches_future_rates(self, scenario):
        row = project(scenario).years[-1]
        assert row["base_rate"] == pytest.approx(20.00)
        assert row["tier2_rate"] == pytest.approx(7.20)

    def test_target_year_reached_early(self, make_config):
        """From the target year on, the future structure applies."""
        result = project(make_config(targetYear=4))
        for row in result.years[4:]:
            assert row["base_rate"] == pytest.approx(20.00)

    def test_disabled_tiers_are_blank(self, scenario):
        row = project(scenario).years[3]
        assert row["tier3_rate"] is None
        assert row["tier4_limit"] is None

    def test_calendar_year(self, make_config):
        result = project(make_config(startYear=2025))
        assert result.years[3]["calendar_year"] == 2028


class TestInterpolateStructure:

    def test_unbounded_limit_takes_future(self):
        """Limits only blend when both sides are bounded."""
        cur = RateStructure(1.0, 0.0, (RateTier(True, None, 2.0),))
        fut = RateStructure(3.0, 0.0, (RateTier(False, 5000, 4.0),))
        blended = interpolate_structure(cur, fut, 0.5)
        assert blended.base_rate == 2.0
        assert blended.tiers[0] == RateTier(False, 5000, 3.0)


# ---- Growth and Need Tests ----

class TestProjectionYears:

    def test_customer_growth(self, make_config):
        result = project(make_config(customerGrowthRate=1.0))
        assert result.years[2]["customer_count"] == pytest.approx(6200 * 1.0201)

    def test_configuration_unchanged(self, make_config):
        """Growth is computed per year and never written back."""
        cfg = make_config(customerGrowthRate=1.0)
        project(cfg)
        assert cfg.customer_count == 6200

    def test_gap_and_percentage(self, scenario):
        for row in project(scenario).years:
            assert row["revenue_gap"] == pytest.approx(
                row["expected_revenue"] - row["needed_revenue"])
            assert row["revenue_percentage"] == pytest.approx(
                row["expected_revenue"] / row["needed_revenue"] * 100)

    def test_affordability_uses_inflated_income(self, make_config):
        cfg = make_config(inflationRate=3.0)
        row = project(cfg).years[2]
        monthly = 43500 * 1.03 ** 2 / 12
        assert row["affordability_mhi"] == pytest.approx(row["monthly_bill"] / monthly)

    def test_water_loss_columns(self, scenario):
        row = project(scenario).years[0]
        assert row["water_billed"] == 6200 * 5800 * 12
        assert row["water_lost"] == pytest.approx(row["water_billed"] * 0.22 / 0.78)
        assert row["water_produced"] == pytest.approx(row["water_billed"] + row["water_lost"])


# ---- Reserve Tests ----

class TestProjectionReserve:

    def test_reserve_chain(self, baseline):
        """Each year opens at the prior close; the recurrence balances."""
        years = project(baseline).years
        assert years[0]["reserve_opening"] == 0.0
        for prev, row in zip(years, years[1:]):
            assert row["reserve_opening"] == prev["reserve_balance"]
        for row in years:
            assert row["reserve_balance"] == pytest.approx(
                row["reserve_opening"] + row["reserve_contribution"]
                + row["reserve_interest"] - row["capital_from_reserves"])

    def test_reserve_funded_capital(self, make_config):
        cfg = make_config(projects=[
            {"name": "Meters", "cost": 80000, "year": 2, "funding": "reserves"}])
        row = project(cfg).years[2]
        assert row["capital_improvements"] == 80000
        assert row["capital_from_reserves"] == 80000

    def test_contribution_hand_computed(self, make_config):
        """Year 0: target 2,000,000 / 5; cash 4,240,056 - 3,850,000 binds."""
        row = project(make_config(targetReserve=2000000, targetYear=5)).years[0]
        assert row["reserve_opening"] == 0.0
        assert row["reserve_interest"] == 0.0
        assert row["reserve_contribution"] == pytest.approx(390056, abs=0.01)
        assert row["reserve_balance"] == pytest.approx(390056, abs=0.01)

    def test_grants_not_reserve_cash(self, make_config):
        """A grant lowers the need but leaves the contribution unchanged."""
        grant = [{"name": "G", "amount": 750000, "year": 2}]
        cfg = make_config(targetReserve=2000000, targetYear=5, grants=grant)
        row = project(cfg).years[2]
        ref = project(make_config(targetReserve=2000000, targetYear=5)).years[2]

        assert row["grants"] == 750000
        assert row["needed_revenue"] == pytest.approx(ref["needed_revenue"] - 750000)
        assert row["reserve_contribution"] == pytest.approx(ref["reserve_contribution"])

        target = (2000000 - row["reserve_opening"]) / 3
        cash = row["expected_revenue"] - row["operating_cost"] - row["total_debt_service"]
        assert row["reserve_contribution"] == pytest.approx(min(target, cash))


# ---- Determinism Tests ----

class TestDeterminism:

    def test_idempotent(self, baseline):
        """Two passes over the same snapshot are identical."""
        assert run_projection(baseline).years == run_projection(baseline).years

    def test_invalid_input_skips(self, make_config, caplog):
        cfg = make_config(medianIncome=0)
        assert project(cfg) is None
        assert "Median household income" in caplog.text

    def test_debt_schedules_attached(self, baseline):
        result = project(baseline)
        assert "Water Treatment Plant Upgrade" in result.debt_schedules
        assert "Distribution Pipeline Replacement" in result.debt_schedules


# ---- DataFrame Tests ----

class TestProjectionFrames:

    def test_dataframe_indexed_by_year(self, scenario):
        df = project(scenario).dataframe
        assert df.index.name == "year"
        assert len(df) == 11
        assert "debt_by_start_year" not in df.columns

    def test_dataframes_include_debt_tables(self, baseline):
        dfs = project(baseline).dataframes
        assert "projection" in dfs
        assert "debt:Water Treatment Plant Upgrade" in dfs
