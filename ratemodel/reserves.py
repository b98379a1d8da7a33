"""Capital reserve fund — interest accrual, contribution targets, capital draws.

One recurrence per projection year:
    Interest     = Opening x rate(Y)            (only on a positive opening)
    Target       = glide path to target_reserve by target_year,
                   then straight-line maintenance (cost / lifespan)
                   + reserve-funded capital beyond the positive balance
    Contribution = min(Target, Revenue - OpEx - Debt)  (negative = drawdown)
    Closing      = Opening + Contribution + Interest - Capital draw

rate(Y) = max(0, interest_rate + interest_adjustment x Y), in percent.

ReservePolicy.step() is the pure form used by the solver's fold;
ReserveFund carries the balance for the projection engine.
"""

from __future__ import annotations

from dataclasses import dataclass

from ratemodel.config import Configuration
from ratemodel.formulas import infrastructure_reserve


@dataclass
class ReserveAccrual:
    """Output of the reserve's year-start accrual step."""
    opening: float
    interest: float
    balance_after_interest: float  # = opening + interest
    target: float                  # contribution target for the year


@dataclass
class ReserveStep:
    """One full year of the reserve recurrence."""
    year: int
    opening: float
    interest: float
    target: float
    contribution: float
    capital_draw: float
    closing: float


@dataclass(frozen=True)
class ReservePolicy:
    interest_rate: float = 0.0          # percent
    interest_adjustment: float = 0.0    # percentage points per year
    target_reserve: float = 0.0
    target_year: int = 0
    maintenance: float = 0.0            # annual contribution after the target year

    @classmethod
    def from_config(cls, cfg: Configuration) -> "ReservePolicy":
        return cls(
            interest_rate=cfg.interest_rate,
            interest_adjustment=cfg.interest_adjustment,
            target_reserve=cfg.target_reserve,
            target_year=cfg.target_year,
            maintenance=infrastructure_reserve(cfg.infrastructure_cost, cfg.asset_lifespan),
        )

    def rate_for_year(self, year: int) -> float:
        return max(0.0, self.interest_rate + self.interest_adjustment * year)

    def interest(self, opening: float, year: int) -> float:
        if opening <= 0:
            return 0.0
        return opening * self.rate_for_year(year) / 100.0

    def target_contribution(self, year: int, opening: float) -> float:
        if self.target_year > 0 and self.target_reserve > 0 and year < self.target_year:
            return max(0.0, (self.target_reserve - opening) / (self.target_year - year))
        return self.maintenance

    def accrue(self, year: int, opening: float) -> ReserveAccrual:
        interest = self.interest(opening, year)
        balance = opening + interest
        return ReserveAccrual(
            opening=opening,
            interest=interest,
            balance_after_interest=balance,
            target=self.target_contribution(year, opening),
        )

    def step(self, year: int, opening: float, available_cash: float,
             capital_draw: float = 0.0) -> ReserveStep:
        """Apply one year of the recurrence to `opening`. Pure."""
        acc = self.accrue(year, opening)
        target = acc.target
        if capital_draw > 0:
            # capital beyond the positive balance is funded this year
            uncovered = capital_draw - max(acc.balance_after_interest, 0.0)
            if uncovered > 0:
                target += uncovered
        contribution = min(target, available_cash)
        closing = opening + contribution + acc.interest - capital_draw
        return ReserveStep(
            year=year,
            opening=opening,
            interest=acc.interest,
            target=target,
            contribution=contribution,
            capital_draw=capital_draw,
            closing=closing,
        )


class ReserveFund:
    """Stateful reserve account for a single projection pass.

    Opening balance at year 0 is zero. Each pass builds its own fund so
    replaying a projection never sees a previous pass's balance.
    """

    def __init__(self, policy: ReservePolicy, opening: float = 0.0):
        self.policy = policy
        self.balance = opening
        self.history: list[ReserveStep] = []

    def advance(self, year: int, available_cash: float, capital_draw: float = 0.0) -> ReserveStep:
        step = self.policy.step(year, self.balance, available_cash, capital_draw)
        self.balance = step.closing
        self.history.append(step)
        return step
