"""
pnab.helical
============

Rigid transforms describing one helical step and the global placement of a
monomer in the helical frame.

The helix axis is the global z axis. A monomer is first placed by the global
transform (displacement, then inclination/tip), after which every further
monomer of the strand is the previous one moved by the step transform
(twist about z, rise along z).

Examples
--------
>>> h = HelicalParameters.from_values(
...     rise=3.38, x_disp=-0.2, y_disp=0.0, inclination=0.0, tip=0.0, twist=36.0
... )
>>> h.step_translation
array([0.  , 0.  , 3.38])
"""

from __future__ import annotations

from dataclasses import dataclass, field

import numpy as np

from pnab.helpers import rotation_matrix
from pnab.kernels import transform

X_AXIS = np.array([1.0, 0.0, 0.0])
Y_AXIS = np.array([0.0, 1.0, 0.0])
Z_AXIS = np.array([0.0, 0.0, 1.0])


@dataclass(frozen=True)
class HelicalParameters:
    """
    Immutable helical frame for one run.

    Parameters
    ----------
    rise : float
        Translation along the helix axis per step (Å).
    x_disp, y_disp : float
        Displacement of the monomer from the helix axis (Å).
    inclination : float
        Rotation about the x axis (degrees).
    tip : float
        Rotation about the y axis (degrees).
    twist : float
        Rotation about the helix axis per step (degrees).

    Attributes
    ----------
    step_rotation : numpy.ndarray, shape (3, 3)
    step_translation : numpy.ndarray, shape (3,)
    global_rotation : numpy.ndarray, shape (3, 3)
    global_translation : numpy.ndarray, shape (3,)
    """

    rise: float
    x_disp: float
    y_disp: float
    inclination: float
    tip: float
    twist: float
    step_rotation: np.ndarray = field(init=False, repr=False, compare=False)
    step_translation: np.ndarray = field(init=False, repr=False, compare=False)
    global_rotation: np.ndarray = field(init=False, repr=False, compare=False)
    global_translation: np.ndarray = field(init=False, repr=False, compare=False)

    def __post_init__(self):
        step_rotation = rotation_matrix(Z_AXIS, np.deg2rad(self.twist))
        step_translation = np.array([0.0, 0.0, float(self.rise)])
        global_rotation = rotation_matrix(
            Y_AXIS, np.deg2rad(self.tip)
        ) @ rotation_matrix(X_AXIS, np.deg2rad(self.inclination))
        global_translation = np.array([float(self.x_disp), float(self.y_disp), 0.0])

        for name, value in (
            ("step_rotation", step_rotation),
            ("step_translation", step_translation),
            ("global_rotation", global_rotation),
            ("global_translation", global_translation),
        ):
            value.setflags(write=False)
            object.__setattr__(self, name, value)

    @classmethod
    def from_values(cls, **values: float) -> HelicalParameters:
        """Build from keyword values, coercing to float."""
        return cls(**{key: float(value) for key, value in values.items()})

    def place(self, positions: np.ndarray) -> np.ndarray:
        """
        Apply the global placement: translate first, then rotate.

        Returns a new ``(N, 3)`` array.
        """
        shifted = np.asarray(positions, dtype=float) + self.global_translation
        return transform(shifted, self.global_rotation, np.zeros(3))

    def step(self, positions: np.ndarray, times: int = 1) -> np.ndarray:
        """
        Apply the helical step ``times`` times. Returns a new ``(N, 3)`` array.
        """
        out = np.array(positions, dtype=float)
        for _ in range(times):
            out = transform(out, self.step_rotation, self.step_translation)
        return out
