"""
retireplan - multi-decade retirement projections.

- project(params)   -> year-by-year withdrawal ledger (list of YearRecord)
- simulate(params)  -> Monte Carlo success rate and percentile bands
"""

from .core.accounts import (
    AccountKind,
    AssetState,
    DEFAULT_WITHDRAWAL_ORDER,
)
from .core.errors import PlanValidationError, SimulationCancelled
from .core.formulas import (
    estimate_social_security,
    income_replacement_rate,
    monthly_retirement_income,
    project_retirement_income,
    future_value,
    readiness_score,
    required_minimum_distribution,
)
from .core.liabilities import LiabilityState
from .core.monte_carlo import (
    AggregateResult,
    MonteCarloResult,
    PercentileBand,
    SimulationRun,
    simulate,
    success_rate_by_age,
)
from .core.params import PlanParameters
from .core.projection import (
    YearRecord,
    project,
    projection_to_dataframe,
    summarize_projection,
)
from .core.random_source import BoxMullerSource, RandomSource, SeededSourceFactory

__version__ = "0.1.0"
__all__ = [
    # Parameters
    "PlanParameters",
    "PlanValidationError",
    # Accounts
    "AccountKind",
    "AssetState",
    "DEFAULT_WITHDRAWAL_ORDER",
    "LiabilityState",
    # Deterministic engine
    "YearRecord",
    "project",
    "projection_to_dataframe",
    "summarize_projection",
    # Monte Carlo
    "AggregateResult",
    "MonteCarloResult",
    "PercentileBand",
    "SimulationRun",
    "SimulationCancelled",
    "simulate",
    "success_rate_by_age",
    "RandomSource",
    "BoxMullerSource",
    "SeededSourceFactory",
    # Formulas
    "future_value",
    "estimate_social_security",
    "readiness_score",
    "required_minimum_distribution",
    "monthly_retirement_income",
    "income_replacement_rate",
    "project_retirement_income",
]
