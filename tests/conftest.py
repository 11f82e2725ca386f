"""Shared plan fixtures."""
import pytest

from retireplan.core.params import PlanParameters


@pytest.fixture
def baseline_plan():
    """Couple at 60, retiring at 65, spread across all four account kinds."""
    return PlanParameters(
        current_age=60,
        retirement_age=65,
        life_expectancy=90,
        primary_ss_start_age=67,
        primary_ss_benefit=24000,
        spouse_ss_start_age=67,
        spouse_ss_benefit=12000,
        tax_deferred_balance=400000,
        roth_balance=100000,
        brokerage_balance=200000,
        cash_balance=50000,
        salary=90000,
        spending_target=60000,
        growth_rate=0.05,
        inflation_rate=0.025,
        tax_rate=0.15,
        start_year=2025,
    )


@pytest.fixture
def retiree_plan():
    """Already retired, one consolidated pot, flat markets."""
    return PlanParameters(
        current_age=65,
        retirement_age=65,
        life_expectancy=95,
        brokerage_balance=100000,
        tax_deferred_balance=100000,
        roth_balance=100000,
        cash_balance=100000,
        spending_target=17000,
        growth_rate=0.0,
        inflation_rate=0.0,
        tax_rate=0.15,
        start_year=2025,
    )
