"""Injectable randomness for the Monte Carlo engine.

The engine only ever asks a source for `next_normal(mean, std)`. Each trial
gets its own source from a factory (`trial_index -> RandomSource`), so a
fixed seed reproduces a batch regardless of how trials are split across
workers.
"""

from __future__ import annotations

import math
from typing import Callable, Iterable, Optional, Protocol

import numpy as np


class RandomSource(Protocol):
    def next_normal(self, mean: float, std: float) -> float:
        ...


SourceFactory = Callable[[int], RandomSource]


class BoxMullerSource:
    """Normal draws via the Box-Muller transform over two uniforms."""

    def __init__(self, seed=None):
        self.rng = np.random.default_rng(seed)

    def next_normal(self, mean: float, std: float) -> float:
        # Generator.random() is [0, 1); flip it so log() never sees 0
        u1 = 1.0 - self.rng.random()
        u2 = self.rng.random()
        z0 = math.sqrt(-2.0 * math.log(u1)) * math.cos(2.0 * math.pi * u2)
        return z0 * std + mean


class SeededSourceFactory:
    """One independent Box-Muller stream per trial index.

    With seed=None the batch draws fresh OS entropy once, so runs differ but
    trials inside a batch are still independent.
    """

    def __init__(self, seed: Optional[int] = None):
        self.seed_sequence = np.random.SeedSequence(seed)

    @property
    def entropy(self):
        return self.seed_sequence.entropy

    def __call__(self, trial_index: int) -> BoxMullerSource:
        child = np.random.SeedSequence(
            self.seed_sequence.entropy, spawn_key=(trial_index,)
        )
        return BoxMullerSource(child)


class ConstantSource:
    """Always returns the mean. Deterministic stand-in for tests and what-ifs."""

    def next_normal(self, mean: float, std: float) -> float:
        return mean


class SequenceSource:
    """Replays fixed standard-normal shocks: mean + std * z, cycling."""

    def __init__(self, shocks: Iterable[float]):
        self.shocks = list(shocks)
        if not self.shocks:
            raise ValueError("SequenceSource needs at least one shock")
        self._i = 0

    def next_normal(self, mean: float, std: float) -> float:
        z = self.shocks[self._i % len(self.shocks)]
        self._i += 1
        return mean + std * z
