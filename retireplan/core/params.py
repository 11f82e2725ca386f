# retireplan/core/params.py
"""
Plan parameters shared by the deterministic and Monte Carlo engines.

All rates are decimals, not %. Amounts are annual unless the field name says
otherwise (mortgage_payment is monthly, like a statement).

Validation runs in __post_init__, so an inconsistent plan never reaches an
engine.
"""

from __future__ import annotations

import datetime
from dataclasses import asdict, dataclass, fields, replace
from typing import Any, Dict, Optional

from .accounts import AccountKind
from .errors import PlanValidationError

# ---------- Defaults ----------

DEFAULT_GROWTH_RATE = 0.07
DEFAULT_INFLATION_RATE = 0.025
DEFAULT_TAX_RATE = 0.15
DEFAULT_RETURN_MEAN = 0.07
DEFAULT_RETURN_STD = 0.15
DEFAULT_TRIAL_COUNT = 1000
DEFAULT_SS_START_AGE = 67


@dataclass(frozen=True)
class PlanParameters:
    # ages
    current_age: int
    retirement_age: int
    life_expectancy: int
    spouse_current_age: Optional[int] = None      # None -> same as current_age
    spouse_retirement_age: Optional[int] = None   # None -> same as retirement_age

    # social security (annual benefits)
    primary_ss_start_age: int = DEFAULT_SS_START_AGE
    primary_ss_benefit: float = 0.0
    spouse_ss_start_age: int = DEFAULT_SS_START_AGE
    spouse_ss_benefit: float = 0.0

    # starting balances
    tax_deferred_balance: float = 0.0
    roth_balance: float = 0.0
    brokerage_balance: float = 0.0
    cash_balance: float = 0.0

    # mortgage
    mortgage_balance: float = 0.0
    mortgage_payment: float = 0.0   # monthly
    mortgage_rate: float = 0.0      # annual
    mortgage_years_left: int = 0

    # income
    salary: float = 0.0
    spouse_salary: float = 0.0
    salary_growth_rate: float = 0.0
    pension_income: float = 0.0
    spouse_pension_income: float = 0.0
    other_income: float = 0.0

    # spending: first-year total, mortgage payment included while one is active
    spending_target: float = 0.0

    # rates
    growth_rate: float = DEFAULT_GROWTH_RATE
    inflation_rate: float = DEFAULT_INFLATION_RATE
    tax_rate: float = DEFAULT_TAX_RATE

    # monte carlo
    trial_count: int = DEFAULT_TRIAL_COUNT
    return_mean: float = DEFAULT_RETURN_MEAN
    return_std: float = DEFAULT_RETURN_STD
    annual_contribution: float = 0.0
    adjust_withdrawals_for_inflation: bool = True
    include_pre_retirement: bool = True

    start_year: Optional[int] = None

    def __post_init__(self):
        """Validate the plan."""
        if self.current_age < 0:
            raise PlanValidationError("current_age must be non-negative")
        if self.retirement_age < self.current_age:
            raise PlanValidationError("retirement_age must not precede current_age")
        if self.life_expectancy < self.retirement_age:
            raise PlanValidationError("life_expectancy must not precede retirement_age")

        if self.spouse_current_age is not None and self.spouse_current_age < 0:
            raise PlanValidationError("spouse_current_age must be non-negative")
        if self.spouse_retirement_age is not None and (
            self.spouse_retirement_age < self.spouse_age_at(self.current_age)
        ):
            raise PlanValidationError(
                "spouse_retirement_age must not precede spouse_current_age"
            )

        for name in ("primary_ss_start_age", "spouse_ss_start_age", "mortgage_years_left"):
            if getattr(self, name) < 0:
                raise PlanValidationError(f"{name} must be non-negative")

        for name in (
            "primary_ss_benefit", "spouse_ss_benefit",
            "tax_deferred_balance", "roth_balance", "brokerage_balance", "cash_balance",
            "mortgage_balance", "mortgage_payment",
            "salary", "spouse_salary", "pension_income", "spouse_pension_income",
            "other_income", "spending_target", "annual_contribution",
        ):
            if getattr(self, name) < 0:
                raise PlanValidationError(f"{name} must be non-negative")

        for name in ("growth_rate", "inflation_rate", "tax_rate", "mortgage_rate",
                     "salary_growth_rate", "return_mean", "return_std"):
            if getattr(self, name) < 0:
                raise PlanValidationError(f"{name} must be non-negative")
        if self.tax_rate >= 1:
            raise PlanValidationError("tax_rate must be below 1")

        if self.trial_count < 1:
            raise PlanValidationError("trial_count must be at least 1")

    # ---------- Derived values ----------

    @property
    def years_to_retirement(self) -> int:
        return self.retirement_age - self.current_age

    @property
    def annual_mortgage_payment(self) -> float:
        return self.mortgage_payment * 12

    @property
    def total_social_security(self) -> float:
        return self.primary_ss_benefit + self.spouse_ss_benefit

    @property
    def total_starting_assets(self) -> float:
        return sum(self.starting_balances().values())

    @property
    def resolved_start_year(self) -> int:
        if self.start_year is not None:
            return self.start_year
        return datetime.date.today().year

    def spouse_age_at(self, age: int) -> int:
        """Spouse's age in the year the primary is `age`."""
        if self.spouse_current_age is None:
            return age
        return self.spouse_current_age + (age - self.current_age)

    @property
    def spouse_retirement_age_resolved(self) -> int:
        if self.spouse_retirement_age is None:
            return self.retirement_age
        return self.spouse_retirement_age

    def starting_balances(self) -> Dict[AccountKind, float]:
        return {
            AccountKind.TAX_DEFERRED: self.tax_deferred_balance,
            AccountKind.ROTH: self.roth_balance,
            AccountKind.BROKERAGE: self.brokerage_balance,
            AccountKind.CASH: self.cash_balance,
        }

    def with_overrides(self, **changes) -> "PlanParameters":
        """Copy with some fields replaced (re-validated)."""
        return replace(self, **changes)

    # ---------- Serialization ----------

    def to_dict(self) -> dict:
        """Convert to dictionary for serialization."""
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "PlanParameters":
        """Create from dictionary; unknown keys are rejected."""
        known = {f.name for f in fields(cls)}
        unknown = sorted(set(data) - known)
        if unknown:
            raise PlanValidationError(f"Unknown plan fields: {unknown}")
        try:
            return cls(**data)
        except TypeError as e:
            raise PlanValidationError(str(e)) from e
