"""
Unit tests for the capital reserve recurrence.
"""

import pytest

from ratemodel.reserves import ReserveFund, ReservePolicy


@pytest.fixture
def policy():
    # 2% rising 0.5 points a year, glide to 1,000 by year 4, then 100/yr
    return ReservePolicy(interest_rate=2, interest_adjustment=0.5,
                         target_reserve=1000, target_year=4, maintenance=100)


# ---- Rate Tests ----

class TestReserveRate:

    def test_rate_adjusts_per_year(self, policy):
        assert policy.rate_for_year(2) == 3.0

    def test_rate_never_negative(self):
        """A falling adjustment bottoms out at 0%."""
        policy = ReservePolicy(interest_rate=1, interest_adjustment=-1)
        assert policy.rate_for_year(3) == 0.0

    def test_no_interest_on_negative_balance(self, policy):
        assert policy.interest(-100, 1) == 0.0


# ---- Target Tests ----

class TestContributionTarget:

    def test_glide_path(self, policy):
        """Remaining gap spread evenly over the years left."""
        assert policy.target_contribution(0, 0) == 250
        assert policy.target_contribution(2, 500) == 250

    def test_already_funded(self, policy):
        """Above target before the target year: contribute nothing."""
        assert policy.target_contribution(1, 2000) == 0.0

    def test_maintenance_after_target_year(self, policy):
        assert policy.target_contribution(4, 0) == 100


# ---- Step Tests ----

class TestReserveStep:

    def test_first_year(self, policy):
        """Zero opening: no interest, contribution equals target."""
        step = policy.step(0, 0.0, available_cash=1000)
        assert step.interest == 0.0
        assert step.contribution == 250
        assert step.closing == 250

    def test_second_year(self, policy):
        """250 x 2.5% interest, then (1000 - 250) / 3 contribution."""
        step = policy.step(1, 250.0, available_cash=1000)
        assert step.interest == pytest.approx(6.25)
        assert step.contribution == pytest.approx(250)
        assert step.closing == pytest.approx(506.25)

    def test_contribution_limited_by_cash(self, policy):
        step = policy.step(0, 0.0, available_cash=100)
        assert step.contribution == 100

    def test_deficit_draws_down(self, policy):
        """Negative available cash is a negative contribution."""
        step = policy.step(0, 0.0, available_cash=-50)
        assert step.contribution == -50
        assert step.closing == -50

    def test_uncovered_capital_added_to_target(self, policy):
        """Capital beyond the balance is funded by contribution that year.

        Interest 300 x 4.5% = 13.5; uncovered 1000 - 313.5 = 686.5;
        target 100 + 686.5; closing 300 + 786.5 + 13.5 - 1000 = 100.
        """
        step = policy.step(5, 300.0, available_cash=10000, capital_draw=1000)
        assert step.interest == pytest.approx(13.5)
        assert step.target == pytest.approx(786.5)
        assert step.closing == pytest.approx(100)

    def test_negative_opening_maintenance_without_capital(self):
        """A deficit with no capital draw leaves the maintenance target alone."""
        step = ReservePolicy(maintenance=100).step(1, -500.0, available_cash=10000)
        assert step.interest == 0.0
        assert step.target == pytest.approx(100)
        assert step.contribution == pytest.approx(100)
        assert step.closing == pytest.approx(-400)

    def test_negative_opening_glide_without_capital(self):
        """The glide path alone closes the deficit: (1000 + 100) / 4."""
        policy = ReservePolicy(target_reserve=1000, target_year=4)
        step = policy.step(0, -100.0, available_cash=10000)
        assert step.target == pytest.approx(275)
        assert step.closing == pytest.approx(175)

    def test_negative_opening_with_capital(self):
        """All capital is uncovered when the balance is below zero."""
        step = ReservePolicy(maintenance=100).step(1, -500.0, available_cash=10000,
                                                   capital_draw=300)
        assert step.target == pytest.approx(400)
        assert step.closing == pytest.approx(-400)

    def test_step_identity(self, policy):
        """Closing = Opening + Contribution + Interest - Capital."""
        step = policy.step(3, 720.0, available_cash=40, capital_draw=15)
        assert step.closing == pytest.approx(
            step.opening + step.contribution + step.interest - step.capital_draw)


# ---- Fund Tests ----

class TestReserveFund:

    def test_advance_carries_balance(self, policy):
        fund = ReserveFund(policy)
        fund.advance(0, 1000)
        fund.advance(1, 1000)
        assert fund.balance == pytest.approx(506.25)
        assert [s.year for s in fund.history] == [0, 1]
        assert fund.history[1].opening == fund.history[0].closing
