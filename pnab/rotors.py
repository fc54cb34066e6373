"""
pnab.rotors
===========

Rotatable-bond enumeration for a :class:`~pnab.structure.Monomer`.

A bond is a rotor when it is a single (or unspecified-order) bond, is not part
of a ring, both of its atoms carry at least one other heavy neighbour, and it
is not entirely inside the fixed region. Rotating a rotor moves the side of
the bond that contains no fixed atom; bonds with fixed atoms on both sides are
skipped.

Examples
--------
>>> rotors = RotorList.from_monomer(monomer)  # doctest: +SKIP
>>> rotors[0].set_to_angle(coords, 1.2)  # doctest: +SKIP
"""

from __future__ import annotations

from collections import deque
from collections.abc import Iterable, Iterator, Sequence
from dataclasses import dataclass

import numpy as np
from openmm import app

from pnab.kernels import dihedral_kernel, rotate_kernel

NON_ROTATABLE_ORDERS = (
    app.Double,
    app.Triple,
    app.Aromatic,
    app.Amide,
)


@dataclass(frozen=True, eq=False)
class Rotor:
    """
    One rotatable bond ``b-c`` with its reference dihedral ``a-b-c-d``.

    Attributes
    ----------
    dihedral : tuple[int, int, int, int]
        0-based reference atoms; ``c`` and ``d`` sit on the moving side.
    moving : numpy.ndarray of int
        0-based atoms rotated by :meth:`set_to_angle`.
    """

    dihedral: tuple[int, int, int, int]
    moving: np.ndarray

    @property
    def bond(self) -> tuple[int, int]:
        return self.dihedral[1], self.dihedral[2]

    def angle(self, coords: np.ndarray) -> float:
        """Current reference dihedral (radians)."""
        a, b, c, d = self.dihedral
        return dihedral_kernel(coords, a, b, c, d)

    def set_to_angle(self, coords: np.ndarray, angle: float) -> None:
        """
        Rotate the moving side so that the reference dihedral equals ``angle``.

        Parameters
        ----------
        coords : numpy.ndarray, shape (N, 3)
            Monomer coordinates (float64, C-contiguous). **Mutated in place.**
        angle : float
            Target dihedral in radians.
        """
        a, b, c, d = self.dihedral
        delta = angle - dihedral_kernel(coords, a, b, c, d)
        origin = coords[b].copy()
        axis = coords[c] - origin
        rotate_kernel(coords, self.moving, origin, axis, delta)


def _side(neighbors: Sequence[Sequence[int]], start: int, blocked: int) -> set[int]:
    """Atoms reachable from ``start`` without crossing the bond to ``blocked``."""
    seen = {start}
    queue = deque([start])
    while queue:
        atom = queue.popleft()
        for other in neighbors[atom]:
            if atom == start and other == blocked:
                continue
            if other not in seen:
                seen.add(other)
                queue.append(other)
    return seen


def _reference(
    neighbors: Sequence[Sequence[int]], heavy: np.ndarray, atom: int, exclude: int
) -> int:
    candidates = sorted(n for n in neighbors[atom] if n != exclude)
    for n in candidates:
        if heavy[n]:
            return n
    return candidates[0]


def find_rotors(
    neighbors: Sequence[Sequence[int]],
    bonds: Iterable[tuple[int, int]],
    heavy: np.ndarray,
    fixed: Iterable[int] = (),
    orders: Sequence[object] | None = None,
) -> list[Rotor]:
    """
    Enumerate rotors of a bonded graph.

    Parameters
    ----------
    neighbors : sequence of sequence of int
        Adjacency list (0-based).
    bonds : iterable of (int, int)
        Bonds in enumeration order; rotors keep this order.
    heavy : numpy.ndarray of bool
        Non-hydrogen mask.
    fixed : iterable of int
        Atoms that must never move.
    orders : sequence, optional
        Bond order/type per bond (OpenMM bond ``order`` or ``type``); multiple
        and aromatic bonds are not rotatable.

    Returns
    -------
    list[Rotor]
    """
    fixed = set(fixed)
    rotors: list[Rotor] = []
    for k, (i, j) in enumerate(bonds):
        if orders is not None and _is_multiple(orders[k]):
            continue
        if i in fixed and j in fixed:
            continue
        heavy_i = sum(1 for n in neighbors[i] if n != j and heavy[n])
        heavy_j = sum(1 for n in neighbors[j] if n != i and heavy[n])
        if heavy_i == 0 or heavy_j == 0:
            continue

        side_j = _side(neighbors, j, i)
        if i in side_j:
            continue  # ring bond

        b, c, moving = i, j, side_j
        if moving & fixed:
            side_i = _side(neighbors, i, j)
            if side_i & fixed:
                continue
            b, c, moving = j, i, side_i

        a = _reference(neighbors, heavy, b, c)
        d = _reference(neighbors, heavy, c, b)
        rotors.append(
            Rotor(
                dihedral=(a, b, c, d),
                moving=np.array(sorted(moving), dtype=np.int64),
            )
        )
    return rotors


def _is_multiple(order: object) -> bool:
    if order is None:
        return False
    if isinstance(order, int):
        return order > 1
    return any(order is kind for kind in NON_ROTATABLE_ORDERS)


class RotorList:
    """
    Ordered rotors of one monomer, excluding its fixed (base) region.

    Parameters
    ----------
    rotors : list[Rotor]

    Notes
    -----
    Iteration order is the order rotors are visited by the sampler in every
    trial.
    """

    def __init__(self, rotors: list[Rotor]):
        self.rotors = list(rotors)

    @classmethod
    def from_monomer(cls, monomer) -> RotorList:
        """Enumerate rotors of a :class:`~pnab.structure.Monomer`."""
        return cls(
            find_rotors(
                monomer.neighbors,
                monomer.bonds,
                monomer.heavy,
                fixed=monomer.fixed_atoms,
                orders=monomer.bond_orders,
            )
        )

    def __iter__(self) -> Iterator[Rotor]:
        return iter(self.rotors)

    def __len__(self) -> int:
        return len(self.rotors)

    def __getitem__(self, index: int) -> Rotor:
        return self.rotors[index]

    @property
    def bonds(self) -> set[frozenset[int]]:
        """Rotatable bonds as unordered 0-based atom pairs."""
        return {frozenset(rotor.bond) for rotor in self.rotors}
