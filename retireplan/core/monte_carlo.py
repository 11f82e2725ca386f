# retireplan/core/monte_carlo.py
"""
Monte Carlo engine for retirement portfolio survival.

Each trial tracks one consolidated balance (all accounts together) so that
only return-sequence risk varies between trials:
- pre-retirement:  balance = balance * (1 + r) + annual_contribution
- retirement:      net = max(0, withdrawal - other income)
                   balance < net -> trial fails, balance = 0, trial stops
                   else balance = (balance - net) * (1 + r)
where r ~ Normal(return_mean, return_std) is drawn from the trial's
RandomSource every year, and withdrawal/other income are inflated by the
cumulative inflation factor.

Inputs (from PlanParameters, all decimals, not %):
- total_starting_assets, annual_contribution, spending_target
- primary/spouse Social Security + pensions + other_income (retirement income)
- inflation_rate, return_mean, return_std, trial_count
- adjust_withdrawals_for_inflation, include_pre_retirement

Outputs (MonteCarloResult):
- runs: one SimulationRun per trial, ordered by run_id
- aggregate: success rate, min/median/max end balance, and per-year
  10th/50th/90th percentile bands

Trials are independent: `workers > 1` splits them across a thread pool and
the aggregate is computed over the unordered set of runs, so it does not
depend on the worker count. A `threading.Event` passed as `cancel_event` is
checked between trials; a set event raises SimulationCancelled once the
in-flight trials finish.
"""

from __future__ import annotations

from collections import defaultdict
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
import logging
import math
import threading
from typing import Dict, Iterable, List, Optional

import numpy as np
import pandas as pd

from .errors import PlanValidationError, SimulationCancelled
from .params import PlanParameters
from .random_source import RandomSource, SeededSourceFactory, SourceFactory

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TrialYear:
    year_index: int          # years since current_age
    age: int
    balance: float           # nominal, end of year
    real_balance: float      # balance / cumulative_inflation
    withdrawal: float        # net withdrawal taken this year
    cumulative_inflation: float
    is_retired: bool


@dataclass(frozen=True)
class SimulationRun:
    run_id: int
    years: List[TrialYear]
    end_balance: float
    real_end_balance: float
    success: bool

    @property
    def failure_year_index(self) -> Optional[int]:
        if self.success or not self.years:
            return None
        return self.years[-1].year_index


@dataclass(frozen=True)
class PercentileBand:
    year_index: int
    age: int
    pessimistic: float   # 10th
    median: float        # 50th
    optimistic: float    # 90th
    sample_size: int


@dataclass(frozen=True)
class AggregateResult:
    trial_count: int
    success_rate: float
    min_end_balance: float
    median_end_balance: float
    max_end_balance: float
    bands: List[PercentileBand]

    @property
    def failure_rate(self) -> float:
        return 1.0 - self.success_rate

    def bands_to_dataframe(self) -> pd.DataFrame:
        """Percentile bands as a DataFrame indexed by age."""
        df = pd.DataFrame([
            {
                "year_index": b.year_index,
                "age": b.age,
                "p10": b.pessimistic,
                "p50": b.median,
                "p90": b.optimistic,
                "n": b.sample_size,
            }
            for b in self.bands
        ])
        if not df.empty:
            df = df.set_index("age")
        return df


@dataclass(frozen=True)
class MonteCarloResult:
    runs: List[SimulationRun]
    aggregate: AggregateResult

    @property
    def success_rate(self) -> float:
        return self.aggregate.success_rate


# ---------- Single trial ----------

def run_trial(params: PlanParameters, source: RandomSource, run_id: int = 0) -> SimulationRun:
    p = params
    if p.include_pre_retirement:
        age = p.current_age
        total_years = p.life_expectancy - p.current_age
    else:
        age = p.retirement_age
        total_years = p.life_expectancy - p.retirement_age
    year_index = age - p.current_age

    other_income = (p.total_social_security + p.pension_income
                    + p.spouse_pension_income + p.other_income)

    balance = p.total_starting_assets
    cumulative_inflation = 1.0
    success = True
    years: List[TrialYear] = []

    for _ in range(total_years):
        cumulative_inflation *= 1 + p.inflation_rate
        r = source.next_normal(p.return_mean, p.return_std)
        is_retired = age >= p.retirement_age

        net_withdrawal = 0.0
        if not is_retired:
            balance = balance * (1 + r) + p.annual_contribution
        else:
            desired = p.spending_target
            if p.adjust_withdrawals_for_inflation:
                desired *= cumulative_inflation
            income = other_income * cumulative_inflation
            net_withdrawal = max(desired - income, 0.0)

            if balance < net_withdrawal:
                success = False
                balance = 0.0
            else:
                balance = (balance - net_withdrawal) * (1 + r)

        # a return below -100% would otherwise leave a negative balance
        balance = max(0.0, balance)

        years.append(TrialYear(
            year_index=year_index,
            age=age,
            balance=balance,
            real_balance=balance / cumulative_inflation,
            withdrawal=net_withdrawal,
            cumulative_inflation=cumulative_inflation,
            is_retired=is_retired,
        ))
        year_index += 1
        age += 1

        if balance <= 0:
            break

    return SimulationRun(
        run_id=run_id,
        years=years,
        end_balance=balance,
        real_end_balance=balance / cumulative_inflation,
        success=success,
    )


def _run_trials(params: PlanParameters, trial_ids: Iterable[int],
                factory: SourceFactory,
                cancel_event: Optional[threading.Event]) -> List[SimulationRun]:
    runs = []
    for i in trial_ids:
        if cancel_event is not None and cancel_event.is_set():
            break
        runs.append(run_trial(params, factory(i), run_id=i))
    return runs


# ---------- Aggregation ----------

def percentile_indices(n: int):
    """Sorted-sample indices used for the (10th, 50th, 90th) bands."""
    p10 = max(0, math.floor(n * 0.1) - 1)
    p50 = math.floor(n * 0.5)
    p90 = min(n - 1, math.floor(n * 0.9))
    return p10, p50, p90


def aggregate_runs(runs: List[SimulationRun]) -> AggregateResult:
    n = len(runs)
    if n == 0:
        raise ValueError("No simulation runs to aggregate.")

    success_rate = sum(1 for r in runs if r.success) / n

    end_balances = np.sort(np.array([r.end_balance for r in runs], dtype=float))

    by_year: Dict[int, List[float]] = defaultdict(list)
    ages: Dict[int, int] = {}
    for run in runs:
        for y in run.years:
            by_year[y.year_index].append(y.balance)
            ages[y.year_index] = y.age

    bands = []
    for year_index in sorted(by_year):
        values = np.sort(np.array(by_year[year_index], dtype=float))
        i10, i50, i90 = percentile_indices(len(values))
        bands.append(PercentileBand(
            year_index=year_index,
            age=ages[year_index],
            pessimistic=float(values[i10]),
            median=float(values[i50]),
            optimistic=float(values[i90]),
            sample_size=len(values),
        ))

    return AggregateResult(
        trial_count=n,
        success_rate=success_rate,
        min_end_balance=float(end_balances[0]),
        median_end_balance=float(end_balances[n // 2]),
        max_end_balance=float(end_balances[-1]),
        bands=bands,
    )


# ---------- Batch ----------

def simulate(
    params: PlanParameters,
    trial_count: Optional[int] = None,
    *,
    seed: Optional[int] = None,
    source_factory: Optional[SourceFactory] = None,
    workers: int = 1,
    cancel_event: Optional[threading.Event] = None,
) -> MonteCarloResult:
    """
    Run `trial_count` trials (defaults to params.trial_count).

    Randomness comes from `source_factory(trial_index)`; by default a
    SeededSourceFactory(seed), which is reproducible for a fixed seed and
    non-deterministic for seed=None.

    `workers > 1` runs trials on a thread pool. Trials are pure Python, so
    under the GIL this only speeds things up on free-threaded builds; the
    pool shares `cancel_event` and closure factories without pickling.
    """
    n = params.trial_count if trial_count is None else trial_count
    if n < 1:
        raise PlanValidationError("trial_count must be at least 1")
    if workers < 1:
        raise PlanValidationError("workers must be at least 1")

    factory = source_factory if source_factory is not None else SeededSourceFactory(seed)

    if workers == 1:
        runs = _run_trials(params, range(n), factory, cancel_event)
    else:
        partitions = [range(w, n, workers) for w in range(min(workers, n))]
        with ThreadPoolExecutor(max_workers=len(partitions)) as executor:
            futures = [
                executor.submit(_run_trials, params, part, factory, cancel_event)
                for part in partitions
            ]
            chunks = [f.result() for f in futures]
        runs = sorted((r for chunk in chunks for r in chunk), key=lambda r: r.run_id)

    if len(runs) < n:
        logger.info("Monte Carlo cancelled after %d of %d trials", len(runs), n)
        raise SimulationCancelled(completed=len(runs), requested=n)

    aggregate = aggregate_runs(runs)
    logger.info("Monte Carlo: %d trials, success rate %.1f%%",
                n, aggregate.success_rate * 100)
    return MonteCarloResult(runs=runs, aggregate=aggregate)


def success_rate_by_age(result: MonteCarloResult) -> pd.Series:
    """Fraction of trials that have not failed by each simulated age."""
    n = len(result.runs)
    failures = [r.failure_year_index for r in result.runs]
    rates = {}
    for band in result.aggregate.bands:
        failed = sum(1 for f in failures if f is not None and f <= band.year_index)
        rates[band.age] = 1.0 - failed / n
    return pd.Series(rates, name="success_rate", dtype=float)
