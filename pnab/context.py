"""
pnab.context
============

Mutable state threaded through one search run.
"""

from __future__ import annotations

from dataclasses import dataclass

import numpy as np


@dataclass
class SearchContext:
    """
    State owned by the search driver for the duration of one run.

    Attributes
    ----------
    rng : numpy.random.Generator
        The only source of randomness in the run.
    coords : numpy.ndarray, shape (N, 3)
        The monomer geometry. Mutated in place by the sampler every trial and
        never rolled back.
    trials : int
        Trials finished so far.
    closed : int
        Trials that passed the closure-distance test.
    accepted : int
        Trials admitted to the ledger so far.
    """

    rng: np.random.Generator
    coords: np.ndarray
    trials: int = 0
    accepted: int = 0
    closed: int = 0

    @classmethod
    def create(cls, coords: np.ndarray, seed: int | None = None) -> SearchContext:
        """Seeded context with its own C-contiguous copy of ``coords``."""
        return cls(
            rng=np.random.default_rng(seed),
            coords=np.ascontiguousarray(coords, dtype=np.float64).copy(),
        )
