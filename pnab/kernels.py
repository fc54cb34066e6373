# Kompilierte Versionen der rechenintensiven Operationen
# Compiled versions of computationally intensive operations.

from __future__ import annotations

import math

import numpy as np
from numba import jit


@jit(nopython=True)
def rotate_kernel(positions, moving, origin, axis, angle):
    """
    Rotate selected rows of ``positions`` in place about an axis through a pivot.

    Parameters
    ----------
    positions : ndarray, shape (N, 3)
        Cartesian coordinates in Å as plain float64 (no units). Mutated.
    moving : ndarray of int
        Row indices to rotate.
    origin : ndarray, shape (3,)
        A point on the rotation axis.
    axis : ndarray, shape (3,)
        Axis direction (normalized internally).
    angle : float
        Right-handed rotation angle in radians.

    Notes
    -----
    Same half-angle matrix as :func:`pnab.helpers.rotation_matrix`, applied to
    column vectors (``v' = R v``).
    """
    norm = math.sqrt(axis[0] * axis[0] + axis[1] * axis[1] + axis[2] * axis[2])
    x = axis[0] / norm
    y = axis[1] / norm
    z = axis[2] / norm
    s = math.sin(angle / 2.0)
    c = math.cos(angle / 2.0)
    s2 = s * s

    r00 = 2 * (x * x - 1) * s2 + 1
    r01 = 2 * x * y * s2 - 2 * z * c * s
    r02 = 2 * x * z * s2 + 2 * y * c * s
    r10 = 2 * x * y * s2 + 2 * z * c * s
    r11 = 2 * (y * y - 1) * s2 + 1
    r12 = 2 * z * y * s2 - 2 * x * c * s
    r20 = 2 * x * z * s2 - 2 * y * c * s
    r21 = 2 * z * y * s2 + 2 * x * c * s
    r22 = 2 * (z * z - 1) * s2 + 1

    for k in range(moving.shape[0]):
        j = moving[k]
        px = positions[j, 0] - origin[0]
        py = positions[j, 1] - origin[1]
        pz = positions[j, 2] - origin[2]
        positions[j, 0] = r00 * px + r01 * py + r02 * pz + origin[0]
        positions[j, 1] = r10 * px + r11 * py + r12 * pz + origin[1]
        positions[j, 2] = r20 * px + r21 * py + r22 * pz + origin[2]


@jit(nopython=True)
def dihedral_kernel(positions, a, b, c, d):
    """
    Dihedral angle a-b-c-d in radians (-π..π).

    Positive when, looking down b→c, the d-side is turned counter-clockwise
    relative to a (right-handed about b→c), so rotating the d-side by +δ with
    :func:`rotate_kernel` about ``positions[c] - positions[b]`` adds δ.
    """
    b1x = positions[b, 0] - positions[a, 0]
    b1y = positions[b, 1] - positions[a, 1]
    b1z = positions[b, 2] - positions[a, 2]
    b2x = positions[c, 0] - positions[b, 0]
    b2y = positions[c, 1] - positions[b, 1]
    b2z = positions[c, 2] - positions[b, 2]
    b3x = positions[d, 0] - positions[c, 0]
    b3y = positions[d, 1] - positions[c, 1]
    b3z = positions[d, 2] - positions[c, 2]

    # n1 = b1 x b2, n2 = b2 x b3
    n1x = b1y * b2z - b1z * b2y
    n1y = b1z * b2x - b1x * b2z
    n1z = b1x * b2y - b1y * b2x
    n2x = b2y * b3z - b2z * b3y
    n2y = b2z * b3x - b2x * b3z
    n2z = b2x * b3y - b2y * b3x

    b2_norm = math.sqrt(b2x * b2x + b2y * b2y + b2z * b2z)
    y = b2_norm * (b1x * n2x + b1y * n2y + b1z * n2z)
    x = n1x * n2x + n1y * n2y + n1z * n2z
    return math.atan2(y, x)


@jit(nopython=True)
def closure_distance_kernel(coords, head, tail, step_rotation, step_translation):
    """
    Distance between the head atom and the helically stepped tail atom.

    Parameters
    ----------
    coords : ndarray, shape (3 * N,)
        Flat coordinate buffer (x0, y0, z0, x1, ...), Å.
    head, tail : int
        **1-based** atom indices.
    step_rotation : ndarray, shape (3, 3)
        Helical step rotation (column-vector convention).
    step_translation : ndarray, shape (3,)
        Helical step translation, Å.

    Returns
    -------
    float
        ``|head - (R_step @ tail + t_step)|``
    """
    hi = 3 * (head - 1)
    ti = 3 * (tail - 1)
    tx = coords[ti]
    ty = coords[ti + 1]
    tz = coords[ti + 2]
    sx = (
        step_rotation[0, 0] * tx
        + step_rotation[0, 1] * ty
        + step_rotation[0, 2] * tz
        + step_translation[0]
    )
    sy = (
        step_rotation[1, 0] * tx
        + step_rotation[1, 1] * ty
        + step_rotation[1, 2] * tz
        + step_translation[1]
    )
    sz = (
        step_rotation[2, 0] * tx
        + step_rotation[2, 1] * ty
        + step_rotation[2, 2] * tz
        + step_translation[2]
    )
    dx = coords[hi] - sx
    dy = coords[hi + 1] - sy
    dz = coords[hi + 2] - sz
    return math.sqrt(dx * dx + dy * dy + dz * dz)


@jit(nopython=True)
def rmsd_kernel(reference, sample):
    """
    Root-mean-square deviation between two flat coordinate buffers.

    Parameters
    ----------
    reference, sample : ndarray, shape (3 * N,)
        Flat buffers of equal length (not checked).

    Returns
    -------
    float
        ``sqrt(sum((reference - sample)**2) / N)``; no superposition is done.
    """
    total = 0.0
    for i in range(reference.shape[0]):
        diff = reference[i] - sample[i]
        total += diff * diff
    return math.sqrt(total / (reference.shape[0] // 3))


def transform(positions, rotation, translation) -> np.ndarray:
    """
    Apply ``x -> R @ x + t`` to row-stacked coordinates (returns a new array).
    """
    return np.asarray(positions, dtype=float) @ np.asarray(rotation).T + np.asarray(
        translation
    )
