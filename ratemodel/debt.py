"""Debt consolidation — manual debt, itemized loans and loan-funded projects.

Three sources feed annual debt service:
    1. Existing debt: the manual `debt_payments` figure while year < debt_term,
       otherwise the amortized payments of itemized loans that are not
       project financing.
    2. Project loans: itemized loans whose name matches a loan-funded project
       (case-insensitive, trimmed). Attributed to the project's year.
    3. Synthetic project loans: loan-funded projects with no matching loan,
       financed at the system interest rate over the asset lifespan.

A project and its named loan are one obligation, never two.
"""

from __future__ import annotations

from collections import defaultdict
from dataclasses import dataclass
from typing import TypedDict

from ratemodel.config import Configuration, affordability_settings
from ratemodel.formulas import annual_payment
from ratemodel.types import AmortizationRow, DebtBreakdownRow, Loan


def _normalize_name(name: str) -> str:
    return name.strip().lower()


def annual_loan_payment(loan: Loan) -> float:
    """Level annual payment for an itemized loan."""
    return annual_payment(loan.amount, loan.interest, loan.term)


# ── Obligations ─────────────────────────────────────────────────

@dataclass(frozen=True)
class DebtObligation:
    """One amortizing obligation with a fixed origination year."""
    name: str
    kind: str           # loan | project_loan | project
    amount: float
    interest: float     # percent
    term: int
    start_year: int

    @property
    def payment(self) -> float:
        return annual_payment(self.amount, self.interest, self.term)

    @property
    def end_year(self) -> int:
        return self.start_year + self.term

    def is_active(self, year: int) -> bool:
        return self.start_year <= year < self.end_year

    def breakdown_row(self) -> DebtBreakdownRow:
        return {
            "name": self.name, "kind": self.kind, "amount": self.amount,
            "payment": self.payment, "term": self.term,
            "start_year": self.start_year, "end_year": self.end_year,
        }


@dataclass(frozen=True)
class DebtObligations:
    existing: tuple[DebtObligation, ...]   # itemized loans, not project financing
    projects: tuple[DebtObligation, ...]   # project loans + synthetic project loans

    @property
    def all(self) -> tuple[DebtObligation, ...]:
        return self.existing + self.projects


def debt_obligations(cfg: Configuration) -> DebtObligations:
    """Split loans and loan-funded projects into existing and project debt."""
    defaults = affordability_settings()
    project_years: dict[str, int] = {}
    for p in cfg.projects:
        if p.funding == "loan" and p.name.strip():
            project_years.setdefault(_normalize_name(p.name), p.year)
    loan_names = {_normalize_name(l.name) for l in cfg.loans if l.name.strip()}

    existing: list[DebtObligation] = []
    projects: list[DebtObligation] = []
    for loan in cfg.loans:
        key = _normalize_name(loan.name)
        if key and key in project_years:
            projects.append(DebtObligation(
                name=loan.name, kind="project_loan", amount=loan.amount,
                interest=loan.interest, term=loan.term,
                start_year=project_years[key],
            ))
        else:
            existing.append(DebtObligation(
                name=loan.name or "Unnamed Loan", kind="loan", amount=loan.amount,
                interest=loan.interest, term=loan.term, start_year=loan.year,
            ))

    interest = cfg.interest_rate or defaults.default_project_loan_interest_pct
    term = (int(cfg.asset_lifespan) if cfg.asset_lifespan >= 1
            else defaults.default_project_loan_term_years)
    for p in cfg.projects:
        if p.funding != "loan":
            continue
        if p.name.strip() and _normalize_name(p.name) in loan_names:
            continue
        projects.append(DebtObligation(
            name=p.name or "Unnamed Project", kind="project", amount=p.cost,
            interest=interest, term=term, start_year=p.year,
        ))

    return DebtObligations(existing=tuple(existing), projects=tuple(projects))


# ── Consolidation ───────────────────────────────────────────────

class DebtConsolidation(TypedDict):
    existing_debt: float            # manual entry or itemized loans
    existing_from_year0: float      # part of existing_debt originating in year 0
    new_loan_debt: float            # part of existing_debt from loans starting later
    near_term_project_debt: float
    total: float
    manual_used: bool
    breakdown: list[DebtBreakdownRow]


def consolidate_debt(cfg: Configuration, year: int,
                     obligations: DebtObligations | None = None) -> DebtConsolidation:
    """Annual debt service for `year`, split by source."""
    if obligations is None:
        obligations = debt_obligations(cfg)
    breakdown: list[DebtBreakdownRow] = []

    manual_used = cfg.debt_payments > 0 and year < cfg.debt_term
    if manual_used:
        existing = cfg.debt_payments
        from_year0, new_loans = existing, 0.0
        breakdown.append({
            "name": "Existing debt payments", "kind": "manual",
            "amount": 0.0, "payment": existing, "term": cfg.debt_term,
            "start_year": 0, "end_year": cfg.debt_term,
        })
    else:
        from_year0 = new_loans = 0.0
        for ob in obligations.existing:
            if not ob.is_active(year):
                continue
            if ob.start_year == 0:
                from_year0 += ob.payment
            else:
                new_loans += ob.payment
            breakdown.append(ob.breakdown_row())
        existing = from_year0 + new_loans

    project_debt = 0.0
    for ob in obligations.projects:
        if ob.is_active(year):
            project_debt += ob.payment
            breakdown.append(ob.breakdown_row())

    return {
        "existing_debt": existing,
        "existing_from_year0": from_year0,
        "new_loan_debt": new_loans,
        "near_term_project_debt": project_debt,
        "total": existing + project_debt,
        "manual_used": manual_used,
        "breakdown": breakdown,
    }


def new_debt_for_year(cfg: Configuration, year: int,
                      obligations: DebtObligations | None = None) -> float:
    """Principal originated in `year` across all obligations."""
    if obligations is None:
        obligations = debt_obligations(cfg)
    return sum(ob.amount for ob in obligations.all if ob.start_year == year)


def debt_by_start_year(consolidation: DebtConsolidation) -> dict[int, float]:
    """Active debt service for one year grouped by origination year."""
    by_year: dict[int, float] = defaultdict(float)
    for row in consolidation["breakdown"]:
        by_year[row["start_year"]] += row["payment"]
    return dict(sorted(by_year.items()))


# ── Amortization schedules ──────────────────────────────────────

def build_amortization_schedule(ob: DebtObligation) -> list[AmortizationRow]:
    """Year-by-year level-payment schedule for one obligation.

    Closing = Opening - (Payment - Interest). Final row clears residual.
    """
    schedule: list[AmortizationRow] = []
    if ob.amount <= 0 or ob.term <= 0:
        return schedule
    payment = ob.payment
    r = max(0.0, ob.interest) / 100.0
    balance = ob.amount
    for i in range(ob.term):
        opening = balance
        interest = opening * r
        principal = payment - interest
        if i == ob.term - 1:
            principal = opening
        balance = opening - principal
        if abs(balance) < 0.01:
            balance = 0.0
        schedule.append({
            "year": ob.start_year + i,
            "opening": opening,
            "interest": interest,
            "principal": principal,
            "payment": interest + principal,
            "closing": balance,
        })
    return schedule


def debt_schedules(cfg: Configuration,
                   obligations: DebtObligations | None = None) -> dict[str, list[AmortizationRow]]:
    """Amortization schedule per obligation, keyed by a unique label."""
    if obligations is None:
        obligations = debt_obligations(cfg)
    schedules: dict[str, list[AmortizationRow]] = {}
    for ob in obligations.all:
        label = ob.name
        n = 2
        while label in schedules:
            label = f"{ob.name} ({n})"
            n += 1
        schedules[label] = build_amortization_schedule(ob)
    return schedules
