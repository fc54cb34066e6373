"""
pnab.sampler
============

Per-trial Monte Carlo move over all rotors of the monomer.

For each rotor in turn, angles are drawn uniformly from [0, 2π) until one is
accepted. A draw is accepted when it strictly improves on the best closure
distance seen *for this rotor* (which starts at +inf, so the first draw
always qualifies) or, failing that, with probability
``exp(-(current - best)**2 / k)``.

There is no cap on the per-rotor loop unless ``max_attempts`` is given; with
a cap, an exhausted rotor makes the whole trial inadmissible.
"""

from __future__ import annotations

import math

import numpy as np

from pnab.helical import HelicalParameters
from pnab.kernels import closure_distance_kernel
from pnab.rotors import Rotor, RotorList
from pnab.space import Angle, Interval

# Effective stiffness in Å^2 (0.59 kcal/mol over a 5.15 kcal/mol/Å^2 spring)
K_EFFECTIVE = 0.59 / 5.15


class ClosureDistance:
    """
    Distance between the head atom and the helically stepped tail atom.

    Parameters
    ----------
    head, tail : int
        1-based linker atoms.
    helical : HelicalParameters
        Supplies the step rotation and translation.
    """

    def __init__(self, head: int, tail: int, helical: HelicalParameters):
        self.head = int(head)
        self.tail = int(tail)
        self.rotation = np.ascontiguousarray(helical.step_rotation)
        self.translation = np.ascontiguousarray(helical.step_translation)

    def __call__(self, coords: np.ndarray) -> float:
        """
        Parameters
        ----------
        coords : numpy.ndarray, shape (N, 3) or (3 * N,)
            Monomer coordinates (Å).
        """
        return closure_distance_kernel(
            coords.reshape(-1), self.head, self.tail, self.rotation, self.translation
        )


class AcceptanceSampler:
    """
    Drive every rotor of the monomer to an accepted angle, in order.

    Parameters
    ----------
    rotors : RotorList
        Rotors visited in order each trial.
    closure : ClosureDistance
        Acceptance signal.
    stiffness : float, default=K_EFFECTIVE
        ``k`` in the Metropolis-like criterion (Å^2).
    max_attempts : int or None, default=None
        Per-rotor draw cap. ``None`` keeps the loop unbounded.
    """

    def __init__(
        self,
        rotors: RotorList,
        closure: ClosureDistance,
        stiffness: float = K_EFFECTIVE,
        max_attempts: int | None = None,
    ):
        if stiffness <= 0:
            raise ValueError("stiffness must be positive")
        if max_attempts is not None and max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        self.rotors = rotors
        self.closure = closure
        self.stiffness = stiffness
        self.max_attempts = max_attempts
        self.angles = Angle()
        self.unit = Interval(0.0, 1.0)

    def accept(self, current: float, best: float, rng: np.random.Generator) -> bool:
        """
        Strict improvement, else ``exp(-(current - best)^2 / k) > U[0, 1)``.

        The uniform number is only drawn when the move does not improve.
        """
        if current < best:
            return True
        diff = current - best
        return math.exp(-(diff * diff) / self.stiffness) > self.unit.generator(rng)

    def search_rotor(
        self, rotor: Rotor, coords: np.ndarray, rng: np.random.Generator
    ) -> float | None:
        """
        Draw angles for one rotor until one is accepted.

        Returns
        -------
        float or None
            Closure distance at the accepted angle, or ``None`` when
            ``max_attempts`` draws were all rejected.
        """
        best = math.inf
        attempts = 0
        while self.max_attempts is None or attempts < self.max_attempts:
            attempts += 1
            rotor.set_to_angle(coords, self.angles.generator(rng))
            current = self.closure(coords)
            if self.accept(current, best, rng):
                return current
        return None

    def sample(self, coords: np.ndarray, rng: np.random.Generator) -> float:
        """
        Run one trial over all rotors, mutating ``coords``.

        Returns
        -------
        float
            Closure distance of the final geometry; ``inf`` when there are no
            rotors or a rotor exhausted its attempts.
        """
        distance = math.inf
        for rotor in self.rotors:
            accepted = self.search_rotor(rotor, coords, rng)
            if accepted is None:
                return math.inf
            distance = accepted
        return distance
