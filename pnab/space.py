"""
pnab.space
==========

Sampling spaces for the rotor search.

Every space draws from a :class:`numpy.random.Generator` handed in by the
caller, so one seeded generator drives a whole run.

Classes
-------
Interval : Half-open interval [lower, upper).
Angle : Torsion angle space U(1), i.e. [0, 2π).

Examples
--------
>>> import numpy as np
>>> from pnab.space import Angle
>>> rng = np.random.default_rng(7)
>>> 0.0 <= Angle().generator(rng) < 2 * np.pi
True
"""

import numpy as np


class Interval:
    """
    Half-open interval ``[lower, upper)``.

    Parameters
    ----------
    lower, upper : float

    Attributes
    ----------
    lower_bound, upper_bound : float
        The interval ends.

    Examples
    --------
    >>> rng = np.random.default_rng(0)
    >>> 0.0 <= Interval(0.0, 1.0).generator(rng) < 1.0
    True
    """

    def __init__(self, lower, upper):
        self.lower_bound = lower
        self.upper_bound = upper

    def generator(self, rng):
        """
        Draw one uniform value. A single call to ``rng.uniform``.
        """
        return rng.uniform(self.lower_bound, self.upper_bound)


class Angle(Interval):
    """
    Torsion angle space: one angle in [0, 2π).
    """

    def __init__(self):
        super().__init__(0.0, 2 * np.pi)
