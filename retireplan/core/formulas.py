# retireplan/core/formulas.py
"""
Stateless financial formulas.

- future_value(...)               -> monthly-compounded balance
- estimate_social_security(...)   -> monthly benefit estimate (whole dollars)
- readiness_score(...)            -> 0..100 score against a 4%-rule nest egg
- required_minimum_distribution(...)
- monthly_retirement_income(...), income_replacement_rate(...)
- project_retirement_income(...)  -> simple drawdown income schedule

These are rules of thumb, not tax or benefit law.
"""

from dataclasses import dataclass
import math
from typing import List, Optional, Sequence

RMD_START_AGE = 73
RMD_TERMINAL_AGE = 115

FULL_RETIREMENT_AGE = 67
EARLY_RETIREMENT_FACTOR = 0.93
DELAYED_RETIREMENT_FACTOR = 1.08
MAX_MONTHLY_SS_BENEFIT = 3500

# (upper income bound, replacement rate); lower incomes replace more
SS_REPLACEMENT_BRACKETS = (
    (30_000, 0.45),
    (60_000, 0.40),
    (100_000, 0.35),
    (math.inf, 0.30),
)

SAFE_WITHDRAWAL_RATE = 0.04
NEST_EGG_MULTIPLE = 25  # 1 / 4% rule


def _round_half_up(x: float) -> int:
    return int(math.floor(x + 0.5))


def future_value(principal: float, annual_rate: float, years: float,
                 monthly_contribution: float = 0.0) -> float:
    """Grow `principal` monthly for `years`, adding the contribution after growth."""
    monthly_rate = annual_rate / 12
    value = float(principal)
    for _ in range(max(0, math.ceil(years * 12))):
        value = value * (1 + monthly_rate) + monthly_contribution
    return value


def estimate_social_security(age: int, income: float,
                             retirement_age: int = FULL_RETIREMENT_AGE) -> int:
    """
    Estimated monthly Social Security benefit.

    Bracketed replacement rate on current income, scaled for claiming before
    or after full retirement age and capped at MAX_MONTHLY_SS_BENEFIT. `age`
    is accepted for call-site symmetry; the estimate does not depend on it.
    """
    rate = next(r for bound, r in SS_REPLACEMENT_BRACKETS if income <= bound)

    if retirement_age < FULL_RETIREMENT_AGE:
        adjustment = EARLY_RETIREMENT_FACTOR
    elif retirement_age > FULL_RETIREMENT_AGE:
        adjustment = DELAYED_RETIREMENT_FACTOR
    else:
        adjustment = 1.0

    monthly = income * rate / 12 * adjustment
    return min(_round_half_up(monthly), MAX_MONTHLY_SS_BENEFIT)


def readiness_score(current_age: int, retirement_age: int, current_savings: float,
                    annual_contributions: float, current_income: float,
                    desired_replacement_rate: float = 0.8,
                    goal_monthly_incomes: Optional[Sequence[float]] = None,
                    assumed_return: float = 0.07) -> int:
    """
    Projected savings at retirement as a % of the required nest egg (0..100).

    Required nest egg = 25x the annual need, less 25x the annual Social
    Security estimate. The annual need is `current_income *
    desired_replacement_rate` unless declared goals (monthly income targets)
    are given, in which case their sum x 12 is used instead.
    """
    years_until = max(0, retirement_age - current_age)
    projected = future_value(current_savings, assumed_return, years_until,
                             annual_contributions / 12)

    goal_total = sum(goal_monthly_incomes) if goal_monthly_incomes else 0.0
    if goal_total > 0:
        annual_need = goal_total * 12
    else:
        annual_need = current_income * desired_replacement_rate

    annual_ss = estimate_social_security(current_age, current_income, retirement_age) * 12
    required = max(0.0, (annual_need - annual_ss) * NEST_EGG_MULTIPLE)
    if required <= 0:
        return 100

    score = projected / required * 100
    return _round_half_up(min(100.0, max(0.0, score)))


def required_minimum_distribution(balance: float, age: int) -> float:
    """balance / (115 - age) from age 73; an approximation of the IRS table."""
    if age < RMD_START_AGE or balance <= 0:
        return 0.0
    divisor = max(1, RMD_TERMINAL_AGE - age)
    return balance / divisor


def monthly_retirement_income(portfolio_value: float,
                              withdrawal_rate: float = SAFE_WITHDRAWAL_RATE) -> int:
    return _round_half_up(portfolio_value * withdrawal_rate / 12)


def income_replacement_rate(monthly_income: float, current_income: float) -> float:
    """Retirement monthly income as a fraction of current monthly pay."""
    if current_income <= 0:
        return 0.0
    return monthly_income / (current_income / 12)


@dataclass(frozen=True)
class IncomeProjection:
    age: int
    portfolio_income: int   # monthly
    social_security: int    # monthly
    total: int


def project_retirement_income(retirement_age: int, portfolio_value: float,
                              social_security_benefit: float,
                              withdrawal_rate: float = SAFE_WITHDRAWAL_RATE,
                              inflation_rate: float = 0.025,
                              years: int = 30,
                              portfolio_return: float = 0.06) -> List[IncomeProjection]:
    """
    Monthly income by age from a fixed-percentage drawdown plus Social
    Security (monthly, inflated from the second year).
    """
    rows = []
    value = portfolio_value
    ss = social_security_benefit
    for year in range(years):
        withdrawal = value * withdrawal_rate
        monthly_portfolio = withdrawal / 12
        value = (value - withdrawal) * (1 + portfolio_return)
        if year > 0:
            ss *= 1 + inflation_rate
        rows.append(IncomeProjection(
            age=retirement_age + year,
            portfolio_income=_round_half_up(monthly_portfolio),
            social_security=_round_half_up(ss),
            total=_round_half_up(monthly_portfolio + ss),
        ))
    return rows
