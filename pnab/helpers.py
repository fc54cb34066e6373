# helpers.py
from __future__ import annotations

import numpy as np
from numpy.typing import ArrayLike
from openmm import unit
from openmm.unit import Quantity


def angstrom(array: ArrayLike) -> Quantity:
    """
    Attach Å units to a numeric array or vector.

    Parameters
    ----------
    array : array-like
        Numeric values interpreted as lengths in Å (unitless on input).

    Returns
    -------
    openmm.unit.Quantity
        The same values with units of Å (unit.angstrom).

    Notes
    -----
    This is the *only* place length units are attached to raw arrays.
    Coordinates are passed around unitless (Å) everywhere else.
    """
    return np.asarray(array, dtype=float) * unit.angstrom


def nostrom(quantity: Quantity) -> np.ndarray:
    """
    Strip units from a length vector/array, returning pure Å as floats.

    Parameters
    ----------
    quantity : openmm.unit.Quantity
        Length(s) with units (must be convertible to Å).

    Returns
    -------
    numpy.ndarray
        The numeric values in Å, without units.

    Raises
    ------
    AttributeError
        If a unitless array is passed. Keep this strict to avoid silent mistakes.
    """
    return np.asarray(quantity.value_in_unit(unit.angstrom), dtype=float)


def nokcal(quantity: Quantity) -> float:
    """
    Strip units from an energy, returning kcal/mol as a plain float.

    Parameters
    ----------
    quantity : openmm.unit.Quantity
        Energy with units.

    Returns
    -------
    float
        Numeric value in kcal/mol.
    """
    return float(quantity.value_in_unit(unit.kilocalories_per_mole))


def angle(array1: ArrayLike, array2: ArrayLike) -> float:
    """
    Return the unsigned angle between two vectors (radians).

    Parameters
    ----------
    array1, array2 : array-like
        Unitless vectors. If you have unit-bearing vectors, strip first with
        :func:`nostrom`.

    Returns
    -------
    float
        Angle in radians (0..π).
    """
    a = np.asarray(array1, dtype=float)
    b = np.asarray(array2, dtype=float)
    return float(
        np.arccos(
            np.clip(np.dot(a, b) / (np.linalg.norm(a) * np.linalg.norm(b)), -1.0, 1.0)
        )
    )


def rotation_matrix(axis: ArrayLike, theta: float) -> np.ndarray:
    """
    Right-handed rotation matrix about ``axis`` by ``theta`` radians.

    Parameters
    ----------
    axis : array-like, shape (3,)
        Rotation axis (normalized internally).
    theta : float
        Rotation angle in radians.

    Returns
    -------
    numpy.ndarray, shape (3, 3)
        Matrix ``R`` acting on column vectors, ``v' = R @ v``. For row-stacked
        coordinates use ``coords @ R.T``.

    Notes
    -----
    Built from the half-angle (quaternion) form of the Rodrigues formula.
    """
    x, y, z = np.asarray(axis, dtype=float) / np.linalg.norm(
        np.asarray(axis, dtype=float)
    )
    phi_2 = theta / 2.0
    s = np.sin(phi_2)
    c = np.cos(phi_2)
    return np.array(
        [
            [
                2 * (np.power(x, 2) - 1) * np.power(s, 2) + 1,
                2 * x * y * np.power(s, 2) - 2 * z * c * s,
                2 * x * z * np.power(s, 2) + 2 * y * c * s,
            ],
            [
                2 * x * y * np.power(s, 2) + 2 * z * c * s,
                2 * (np.power(y, 2) - 1) * np.power(s, 2) + 1,
                2 * z * y * np.power(s, 2) - 2 * x * c * s,
            ],
            [
                2 * x * z * np.power(s, 2) - 2 * y * c * s,
                2 * z * y * np.power(s, 2) + 2 * x * c * s,
                2 * (np.power(z, 2) - 1) * np.power(s, 2) + 1,
            ],
        ]
    )


def align_vectors(source: ArrayLike, target: ArrayLike) -> np.ndarray:
    """
    Smallest rotation taking the direction of ``source`` onto ``target``.

    Parameters
    ----------
    source, target : array-like, shape (3,)
        Unitless, non-zero vectors.

    Returns
    -------
    numpy.ndarray, shape (3, 3)
        Rotation matrix (column-vector convention).
    """
    a = np.asarray(source, dtype=float)
    b = np.asarray(target, dtype=float)
    axis = np.cross(a, b)
    if np.linalg.norm(axis) < 1e-12:
        if np.dot(a, b) > 0:
            return np.eye(3)
        # antiparallel: any axis perpendicular to a will do
        helper = np.array([1.0, 0.0, 0.0])
        if abs(np.dot(helper, a)) > 0.9 * np.linalg.norm(a):
            helper = np.array([0.0, 1.0, 0.0])
        return rotation_matrix(np.cross(a, helper), np.pi)
    return rotation_matrix(axis, angle(a, b))
