"""Exceptions raised by the projection engines.

Depletion and failed Monte Carlo trials are outcomes recorded in the results,
not errors; nothing here is raised for them.
"""


class PlanValidationError(ValueError):
    """Plan parameters are inconsistent; raised before any simulation runs."""


class SimulationCancelled(RuntimeError):
    """A Monte Carlo batch was cancelled between trials."""

    def __init__(self, completed: int, requested: int):
        super().__init__(f"Simulation cancelled after {completed} of {requested} trials")
        self.completed = completed
        self.requested = requested
