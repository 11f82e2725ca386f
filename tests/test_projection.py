"""
Tests for the deterministic year-by-year projection.
"""
import pytest
import numpy as np
import pandas as pd
from retireplan.core.accounts import AccountKind
from retireplan.core.errors import PlanValidationError
from retireplan.core.params import PlanParameters
from retireplan.core.projection import (
    DEPLETION_TOLERANCE,
    project,
    projection_to_dataframe,
    summarize_projection,
)

BROKERAGE = AccountKind.BROKERAGE
TAX_DEFERRED = AccountKind.TAX_DEFERRED
ROTH = AccountKind.ROTH
CASH = AccountKind.CASH


def _depleting_plan():
    return PlanParameters(
        current_age=65, retirement_age=65, life_expectancy=95,
        cash_balance=10000, spending_target=50000, start_year=2025,
    )


@pytest.mark.unit
class TestProjectionShape:
    """Tests for record sequencing and invariants."""

    def test_runs_through_life_expectancy(self, baseline_plan):
        records = project(baseline_plan)
        assert records[0].age == 60
        assert records[0].year == 2025
        assert not records[-1].is_depleted
        assert records[-1].age == 90
        assert len(records) == 31

    def test_ages_step_by_one(self, baseline_plan):
        records = project(baseline_plan)
        ages = [r.age for r in records]
        assert ages == list(range(ages[0], ages[0] + len(ages)))
        years = [r.year for r in records]
        assert years == list(range(2025, 2025 + len(years)))

    @pytest.mark.parametrize("plan_name", ["baseline", "retiree", "depleting"])
    def test_balances_never_negative(self, plan_name, baseline_plan, retiree_plan):
        plan = {
            "baseline": baseline_plan,
            "retiree": retiree_plan,
            "depleting": _depleting_plan(),
        }[plan_name]
        for r in project(plan):
            assert all(b >= 0 for b in r.end_balances.values())
            assert all(w >= 0 for w in r.withdrawals.values())
            assert r.mortgage_balance >= 0

    def test_idempotent(self, baseline_plan):
        assert project(baseline_plan) == project(baseline_plan)

    def test_params_untouched(self, baseline_plan):
        before = baseline_plan.to_dict()
        project(baseline_plan)
        assert baseline_plan.to_dict() == before


@pytest.mark.unit
class TestDepletion:
    """Depletion is a terminal outcome, not an error."""

    def test_depleted_year_is_last(self):
        records = project(_depleting_plan())
        assert len(records) == 1
        last = records[0]
        assert last.is_depleted
        assert last.withdrawals[CASH] == pytest.approx(10000)
        assert last.total_assets == 0

    def test_only_final_record_depleted(self, retiree_plan):
        records = project(retiree_plan)
        assert all(not r.is_depleted for r in records[:-1])
        assert records[-1].is_depleted or records[-1].age == 95

    def test_depleted_year_does_not_grow(self):
        plan = _depleting_plan().with_overrides(roth_balance=5000, growth_rate=0.5)
        records = project(plan)
        assert records[-1].is_depleted
        assert records[-1].end_balances[ROTH] == 0

    def test_shortfall_within_tolerance_is_funded(self):
        plan = PlanParameters(
            current_age=65, retirement_age=65, life_expectancy=66,
            cash_balance=50000 - DEPLETION_TOLERANCE / 2,
            spending_target=50000, growth_rate=0.0, start_year=2025,
        )
        records = project(plan)
        assert not records[0].is_depleted


@pytest.mark.unit
class TestWithdrawalOrder:
    """Tests for the ordered, grossed-up withdrawal policy."""

    def test_brokerage_first_grossed_up(self, retiree_plan):
        first = project(retiree_plan)[0]
        assert first.withdrawals[BROKERAGE] == pytest.approx(20000)
        assert first.withdrawals[TAX_DEFERRED] == 0
        assert first.withdrawals[ROTH] == 0
        assert first.withdrawals[CASH] == 0
        assert first.taxable_withdrawals == pytest.approx(20000)
        assert first.estimated_tax == pytest.approx(3000)
        assert first.total_gross_withdrawal == pytest.approx(20000)

    def test_spills_into_next_account(self, retiree_plan):
        plan = retiree_plan.with_overrides(brokerage_balance=10000)
        first = project(plan)[0]
        # brokerage nets 8500, leaving 8500 to gross up from tax-deferred
        assert first.withdrawals[BROKERAGE] == pytest.approx(10000)
        assert first.withdrawals[TAX_DEFERRED] == pytest.approx(10000)
        assert first.estimated_tax == pytest.approx(3000)

    def test_tax_free_accounts_not_grossed_up(self, retiree_plan):
        plan = retiree_plan.with_overrides(brokerage_balance=0, tax_deferred_balance=0)
        first = project(plan)[0]
        assert first.withdrawals[ROTH] == pytest.approx(17000)
        assert first.estimated_tax == 0
        assert first.taxable_withdrawals == 0

    def test_cash_used_last(self, retiree_plan):
        plan = retiree_plan.with_overrides(
            brokerage_balance=0, tax_deferred_balance=0, roth_balance=7000
        )
        first = project(plan)[0]
        assert first.withdrawals[ROTH] == pytest.approx(7000)
        assert first.withdrawals[CASH] == pytest.approx(10000)

    def test_custom_order(self, retiree_plan):
        order = (ROTH, CASH, BROKERAGE, TAX_DEFERRED)
        first = project(retiree_plan, withdrawal_order=order)[0]
        assert first.withdrawals[ROTH] == pytest.approx(17000)
        assert first.withdrawals[BROKERAGE] == 0
        assert first.estimated_tax == 0

    def test_invalid_order_rejected(self, retiree_plan):
        with pytest.raises(PlanValidationError):
            project(retiree_plan, withdrawal_order=(ROTH, CASH))


@pytest.mark.unit
class TestRequiredMinimumDistributions:
    """Tests for forced distributions from the tax-deferred account."""

    def test_rmd_zero_without_tax_deferred_balance(self):
        plan = PlanParameters(
            current_age=72, retirement_age=72, life_expectancy=95,
            roth_balance=1_000_000, spending_target=40000, start_year=2025,
        )
        for r in project(plan):
            assert r.rmd == 0
            assert r.withdrawals[TAX_DEFERRED] == 0

    def test_rmd_taken_even_without_need(self):
        plan = PlanParameters(
            current_age=73, retirement_age=73, life_expectancy=80,
            tax_deferred_balance=420000, spending_target=0,
            growth_rate=0.0, start_year=2025,
        )
        first = project(plan)[0]
        assert first.rmd == pytest.approx(10000)
        assert first.withdrawals[TAX_DEFERRED] == pytest.approx(10000)
        assert first.taxable_withdrawals == pytest.approx(10000)
        assert first.estimated_tax == pytest.approx(1500)
        assert first.end_balances[TAX_DEFERRED] == pytest.approx(410000)

    def test_rmd_proceeds_reduce_need(self):
        plan = PlanParameters(
            current_age=73, retirement_age=73, life_expectancy=80,
            tax_deferred_balance=420000, brokerage_balance=100000,
            spending_target=8500, growth_rate=0.0, start_year=2025,
        )
        first = project(plan)[0]
        # 10000 RMD nets 8500, which covers spending on its own
        assert first.withdrawals[BROKERAGE] == 0
        assert first.total_gross_withdrawal == pytest.approx(10000)

    def test_no_rmd_before_73(self, baseline_plan):
        for r in project(baseline_plan):
            if r.age < 73:
                assert r.rmd == 0


@pytest.mark.unit
class TestIncomeAndSurplus:
    """Tests for income phases and surplus reinvestment."""

    def test_surplus_flows_to_brokerage(self):
        plan = PlanParameters(
            current_age=40, retirement_age=65, life_expectancy=90,
            salary=100000, spending_target=60000,
            growth_rate=0.0, inflation_rate=0.0, salary_growth_rate=0.0,
            start_year=2025,
        )
        pre = [r for r in project(plan) if r.age < 65]
        assert len(pre) == 25
        prev = 0.0
        for r in pre:
            assert r.total_gross_withdrawal == 0
            assert r.surplus_reinvested == pytest.approx(40000)
            assert r.end_balances[BROKERAGE] - prev == pytest.approx(40000)
            assert r.end_balances[BROKERAGE] > prev
            prev = r.end_balances[BROKERAGE]

    def test_salary_only_before_retirement(self, baseline_plan):
        for r in project(baseline_plan):
            if r.age < 65:
                assert r.salary_income > 0
                assert not r.is_retired
            else:
                assert r.salary_income == 0
                assert r.is_retired

    def test_salary_grows(self):
        plan = PlanParameters(
            current_age=40, retirement_age=45, life_expectancy=50,
            salary=100000, salary_growth_rate=0.03, start_year=2025,
        )
        records = project(plan)
        assert records[0].salary_income == pytest.approx(100000)
        assert records[2].salary_income == pytest.approx(100000 * 1.03 ** 2)

    def test_social_security_starts_per_benefit(self):
        plan = PlanParameters(
            current_age=65, retirement_age=65, life_expectancy=75,
            primary_ss_start_age=67, primary_ss_benefit=24000,
            spouse_ss_start_age=70, spouse_ss_benefit=12000,
            roth_balance=1_000_000, spending_target=50000, start_year=2025,
        )
        by_age = {r.age: r for r in project(plan)}
        assert by_age[66].social_security_income == 0
        assert by_age[67].social_security_income == 24000
        assert by_age[70].social_security_income == 36000

    def test_social_security_uses_spouse_age(self):
        plan = PlanParameters(
            current_age=65, retirement_age=65, life_expectancy=70,
            spouse_current_age=62, spouse_ss_start_age=65, spouse_ss_benefit=12000,
            roth_balance=1_000_000, spending_target=50000, start_year=2025,
        )
        by_age = {r.age: r for r in project(plan)}
        assert by_age[67].social_security_income == 0
        assert by_age[68].social_security_income == 12000

    def test_pension_starts_at_retirement(self):
        plan = PlanParameters(
            current_age=60, retirement_age=65, life_expectancy=70,
            pension_income=20000, other_income=5000, salary=80000,
            roth_balance=500000, spending_target=50000, start_year=2025,
        )
        for r in project(plan):
            expected = 25000 if r.age >= 65 else 0
            assert r.pension_income == expected

    def test_spending_inflates_after_first_year(self, baseline_plan):
        records = project(baseline_plan)
        assert records[0].spending == pytest.approx(60000)
        assert records[1].spending == pytest.approx(60000 * 1.025)


@pytest.mark.unit
class TestMortgage:
    """Mortgage amortization alongside the portfolio."""

    def _plan(self):
        return PlanParameters(
            current_age=50, retirement_age=65, life_expectancy=80,
            mortgage_balance=200000, mortgage_payment=1500,
            mortgage_rate=0.04, mortgage_years_left=15,
            salary=200000, spending_target=50000, inflation_rate=0.0,
            start_year=2025,
        )

    def test_amortizes_within_fifteen_years(self):
        records = project(self._plan())
        balances = [r.mortgage_balance for r in records]
        assert balances[13] > 0
        assert all(b == 0 for b in balances[14:])
        assert all(later <= earlier for earlier, later in zip(balances, balances[1:]))

    def test_payment_is_part_of_spending(self):
        records = project(self._plan())
        assert records[0].mortgage_payment == 18000
        assert records[0].living_expenses == pytest.approx(32000)
        assert records[0].spending == pytest.approx(50000)
        assert records[15].mortgage_payment == 0
        assert records[15].spending == pytest.approx(32000)


@pytest.mark.unit
class TestProjectionExport:
    """Tests for the DataFrame export and summary."""

    def test_dataframe(self, baseline_plan):
        records = project(baseline_plan)
        df = projection_to_dataframe(records)
        assert isinstance(df, pd.DataFrame)
        assert len(df) == len(records)
        assert df.index.name == "age"
        for col in ("brokerage_eoy", "roth_withdrawal", "estimated_tax", "is_depleted"):
            assert col in df.columns
        np.testing.assert_almost_equal(
            df["total_assets_eoy"].iloc[0], records[0].total_assets
        )

    def test_empty_dataframe(self):
        assert projection_to_dataframe([]).empty

    def test_summary(self):
        summary = summarize_projection(project(_depleting_plan()))
        assert summary.years_projected == 1
        assert summary.depleted
        assert summary.depletion_age == 65
        assert summary.final_total_assets == 0

    def test_summary_totals(self, baseline_plan):
        records = project(baseline_plan)
        summary = summarize_projection(records)
        assert summary.lifetime_tax == pytest.approx(sum(r.estimated_tax for r in records))
        assert summary.peak_total_assets >= summary.final_total_assets
