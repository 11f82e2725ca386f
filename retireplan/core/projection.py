# retireplan/core/projection.py
"""
Deterministic year-by-year retirement projection.

One record per age from current_age through life_expectancy (inclusive).
Each year:
  1. escalate living expenses (inflation) and salary (salary growth), skipped year 1
  2. service the mortgage (fixed annual payment, interest on start-of-year balance)
  3. collect income: Social Security per benefit start age, pension/other at
     retirement, salary only before retirement
  4. take the RMD (age >= 73) from the start-of-year tax-deferred balance
  5. reinvest any surplus into brokerage, otherwise withdraw the shortfall in
     the configured account order, grossing up taxed withdrawals
  6. grow every account at growth_rate unless the year is depleted

A depleted year (shortfall left after every account is empty) is the last
record emitted.
"""

from __future__ import annotations

from dataclasses import dataclass, field
import logging
from typing import Dict, List, Optional, Sequence

import pandas as pd

from .accounts import (
    ALL_KINDS,
    DEFAULT_WITHDRAWAL_ORDER,
    AccountKind,
    AssetState,
    validate_withdrawal_order,
)
from .formulas import required_minimum_distribution
from .liabilities import LiabilityState
from .params import PlanParameters

logger = logging.getLogger(__name__)

# shortfall (in dollars) below which a year still counts as funded
DEPLETION_TOLERANCE = 1.0
# gross-up round trips leave residues around 1e-12; treat them as covered
_RESIDUE = 1e-9


def _remaining(need: float, proceeds: float) -> float:
    left = need - proceeds
    return left if left > _RESIDUE else 0.0


@dataclass(frozen=True)
class YearRecord:
    """One row of the projection ledger. Balances are end of year."""

    year: int
    age: int
    is_retired: bool

    # spending
    spending: float
    living_expenses: float
    mortgage_payment: float

    # income
    social_security_income: float
    pension_income: float
    salary_income: float

    # withdrawals and tax
    rmd: float
    total_gross_withdrawal: float
    withdrawals: Dict[AccountKind, float]
    taxable_withdrawals: float
    estimated_tax: float
    surplus_reinvested: float

    # end-of-year state
    end_balances: Dict[AccountKind, float]
    mortgage_balance: float
    is_depleted: bool

    @property
    def total_assets(self) -> float:
        return sum(self.end_balances.values())

    def to_dict(self) -> dict:
        """Flatten to a plain dict (account keys like `tax_deferred_eoy`)."""
        row = {
            "year": self.year,
            "age": self.age,
            "is_retired": self.is_retired,
            "spending": self.spending,
            "living_expenses": self.living_expenses,
            "mortgage_payment": self.mortgage_payment,
            "social_security_income": self.social_security_income,
            "pension_income": self.pension_income,
            "salary_income": self.salary_income,
            "rmd": self.rmd,
            "total_gross_withdrawal": self.total_gross_withdrawal,
            "taxable_withdrawals": self.taxable_withdrawals,
            "estimated_tax": self.estimated_tax,
            "surplus_reinvested": self.surplus_reinvested,
        }
        for kind in ALL_KINDS:
            row[f"{kind.key}_withdrawal"] = self.withdrawals[kind]
        for kind in ALL_KINDS:
            row[f"{kind.key}_eoy"] = self.end_balances[kind]
        row["total_assets_eoy"] = self.total_assets
        row["mortgage_balance_eoy"] = self.mortgage_balance
        row["is_depleted"] = self.is_depleted
        return row


@dataclass
class _Withdrawals:
    """Running totals for one year's withdrawals."""

    tax_rate: float
    by_kind: Dict[AccountKind, float] = field(
        default_factory=lambda: {k: 0.0 for k in ALL_KINDS}
    )
    gross: float = 0.0
    taxable: float = 0.0
    tax: float = 0.0

    def record(self, kind: AccountKind, amount: float, taxed: bool) -> float:
        """Book a withdrawal and return its after-tax proceeds."""
        self.by_kind[kind] += amount
        self.gross += amount
        if not taxed:
            return amount
        tax = amount * self.tax_rate
        self.taxable += amount
        self.tax += tax
        return amount - tax


class ProjectionEngine:
    """Runs one deterministic projection. State is private to the instance."""

    def __init__(
        self,
        params: PlanParameters,
        withdrawal_order: Sequence[AccountKind] = DEFAULT_WITHDRAWAL_ORDER,
    ):
        self.params = params
        self.withdrawal_order = validate_withdrawal_order(withdrawal_order)

    def run(self) -> List[YearRecord]:
        p = self.params
        assets = AssetState.from_balances(p.starting_balances())
        mortgage = LiabilityState(
            balance=p.mortgage_balance,
            years_left=p.mortgage_years_left,
            annual_payment=p.annual_mortgage_payment,
            rate=p.mortgage_rate,
        )

        # spending_target includes the mortgage payment while one is owed
        living = p.spending_target
        if mortgage.balance > 0:
            living = max(0.0, living - p.annual_mortgage_payment)
        salary = p.salary + p.spouse_salary
        start_year = p.resolved_start_year

        records: List[YearRecord] = []
        for age in range(p.current_age, p.life_expectancy + 1):
            if age > p.current_age:
                living *= 1 + p.inflation_rate
                salary *= 1 + p.salary_growth_rate

            record = self._project_year(
                age=age,
                year=start_year + (age - p.current_age),
                living=living,
                salary=salary,
                assets=assets,
                mortgage=mortgage,
            )
            records.append(record)
            logger.debug(
                "age %d: spending %.2f, withdrawn %.2f, assets %.2f",
                age, record.spending, record.total_gross_withdrawal, record.total_assets,
            )
            if record.is_depleted:
                logger.info("Portfolio depleted at age %d", age)
                break

        logger.info("Projected %d years (ages %d-%d)",
                    len(records), p.current_age, records[-1].age)
        return records

    def _project_year(self, age: int, year: int, living: float, salary: float,
                      assets: AssetState, mortgage: LiabilityState) -> YearRecord:
        p = self.params
        spouse_age = p.spouse_age_at(age)

        mortgage_payment = mortgage.service().payment
        spending = living + mortgage_payment

        is_retired = age >= p.retirement_age

        # income
        social_security = 0.0
        if age >= p.primary_ss_start_age:
            social_security += p.primary_ss_benefit
        if spouse_age >= p.spouse_ss_start_age:
            social_security += p.spouse_ss_benefit

        pension = 0.0
        if age >= p.retirement_age:
            pension += p.pension_income + p.other_income
        if spouse_age >= p.spouse_retirement_age_resolved:
            pension += p.spouse_pension_income

        salary_income = 0.0 if is_retired else salary

        # RMD on the start-of-year balance
        rmd = required_minimum_distribution(assets.balance(AccountKind.TAX_DEFERRED), age)

        need = spending - social_security - pension - salary_income
        surplus = 0.0
        if need < 0:
            surplus = -need
            assets.deposit(AccountKind.BROKERAGE, surplus)
            need = 0.0

        w = _Withdrawals(tax_rate=p.tax_rate)

        # forced distribution, whether or not it is needed
        rmd_taken = assets.withdraw(AccountKind.TAX_DEFERRED, rmd)
        rmd_net = w.record(AccountKind.TAX_DEFERRED, rmd_taken, taxed=True)
        need = _remaining(need, rmd_net)

        for kind in self.withdrawal_order:
            if need <= 0 or assets.balance(kind) <= 0:
                continue
            wanted = need / (1 - p.tax_rate) if kind.taxed else need
            taken = assets.withdraw(kind, wanted)
            need = _remaining(need, w.record(kind, taken, taxed=kind.taxed))

        is_depleted = need > DEPLETION_TOLERANCE
        if not is_depleted:
            assets.grow(p.growth_rate)

        return YearRecord(
            year=year,
            age=age,
            is_retired=is_retired,
            spending=spending,
            living_expenses=living,
            mortgage_payment=mortgage_payment,
            social_security_income=social_security,
            pension_income=pension,
            salary_income=salary_income,
            rmd=rmd,
            total_gross_withdrawal=w.gross,
            withdrawals=dict(w.by_kind),
            taxable_withdrawals=w.taxable,
            estimated_tax=w.tax,
            surplus_reinvested=surplus,
            end_balances=assets.snapshot(),
            mortgage_balance=mortgage.balance,
            is_depleted=is_depleted,
        )


def project(
    params: PlanParameters,
    withdrawal_order: Sequence[AccountKind] = DEFAULT_WITHDRAWAL_ORDER,
) -> List[YearRecord]:
    """Run the deterministic projection for `params`."""
    return ProjectionEngine(params, withdrawal_order).run()


def projection_to_dataframe(records: Sequence[YearRecord]) -> pd.DataFrame:
    """Export records as a DataFrame indexed by age (e.g. for CSV export)."""
    df = pd.DataFrame([r.to_dict() for r in records])
    if not df.empty:
        df = df.set_index("age")
    return df


@dataclass(frozen=True)
class ProjectionSummary:
    years_projected: int
    depletion_age: Optional[int]
    lifetime_tax: float
    lifetime_gross_withdrawals: float
    final_total_assets: float
    peak_total_assets: float

    @property
    def depleted(self) -> bool:
        return self.depletion_age is not None


def summarize_projection(records: Sequence[YearRecord]) -> ProjectionSummary:
    if not records:
        return ProjectionSummary(0, None, 0.0, 0.0, 0.0, 0.0)
    last = records[-1]
    return ProjectionSummary(
        years_projected=len(records),
        depletion_age=last.age if last.is_depleted else None,
        lifetime_tax=sum(r.estimated_tax for r in records),
        lifetime_gross_withdrawals=sum(r.total_gross_withdrawal for r in records),
        final_total_assets=last.total_assets,
        peak_total_assets=max(r.total_assets for r in records),
    )
