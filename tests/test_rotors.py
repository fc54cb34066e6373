"""
Tests for pnab.rotors module.

This module tests rotatable-bond enumeration and in-place torsion setting:
- find_rotors: terminal, ring, multiple and fixed-region bonds are skipped
- Rotor.set_to_angle: absolute dihedral, rigid moving side, fixed atoms still
- RotorList: ordering and bond set
"""

import math

import numpy as np
import pytest
from openmm import app

from pnab.rotors import RotorList, find_rotors


def _neighbors(n, bonds):
    neighbors = [[] for _ in range(n)]
    for i, j in bonds:
        neighbors[i].append(j)
        neighbors[j].append(i)
    return neighbors


def _same_angle(a, b):
    return math.isclose(math.cos(a), math.cos(b), abs_tol=1e-9) and math.isclose(
        math.sin(a), math.sin(b), abs_tol=1e-9
    )


class TestFindRotors:
    """Tests for find_rotors() on small graphs."""

    def test_butane_has_one_rotor(self):
        """Only the central bond of a four-carbon chain rotates."""
        bonds = [(0, 1), (1, 2), (2, 3)]
        rotors = find_rotors(_neighbors(4, bonds), bonds, np.ones(4, dtype=bool))
        assert [r.bond for r in rotors] == [(1, 2)]
        assert list(rotors[0].moving) == [2, 3]

    def test_hydrogens_do_not_count(self):
        """A bond to a carbon carrying only hydrogens is terminal."""
        bonds = [(0, 1), (1, 2), (2, 3), (2, 4)]
        heavy = np.array([True, True, True, False, False])
        assert find_rotors(_neighbors(5, bonds), bonds, heavy) == []

    def test_ring_bonds_skipped(self):
        """Bonds inside a ring never rotate; the exocyclic one does."""
        bonds = [(0, 1), (1, 2), (2, 3), (3, 0), (0, 4), (4, 5)]
        rotors = find_rotors(_neighbors(6, bonds), bonds, np.ones(6, dtype=bool))
        assert [r.bond for r in rotors] == [(0, 4)]

    def test_multiple_bond_skipped(self):
        """Double bonds are not rotors."""
        bonds = [(0, 1), (1, 2), (2, 3)]
        rotors = find_rotors(
            _neighbors(4, bonds),
            bonds,
            np.ones(4, dtype=bool),
            orders=[None, app.Double, None],
        )
        assert rotors == []

    def test_integer_order_skipped(self):
        bonds = [(0, 1), (1, 2), (2, 3)]
        rotors = find_rotors(
            _neighbors(4, bonds), bonds, np.ones(4, dtype=bool), orders=[1, 2, 1]
        )
        assert rotors == []

    def test_moving_side_avoids_fixed_atoms(self):
        """With the j-side fixed, the i-side is the one that moves."""
        bonds = [(0, 1), (1, 2), (2, 3)]
        rotors = find_rotors(
            _neighbors(4, bonds), bonds, np.ones(4, dtype=bool), fixed=[3]
        )
        assert rotors[0].bond == (2, 1)
        assert list(rotors[0].moving) == [0, 1]

    def test_fixed_on_both_sides(self):
        """A bond between two fixed regions is skipped."""
        bonds = [(0, 1), (1, 2), (2, 3)]
        rotors = find_rotors(
            _neighbors(4, bonds), bonds, np.ones(4, dtype=bool), fixed=[0, 3]
        )
        assert rotors == []


class TestMonomerRotors:
    """Rotors of the synthetic monomer from conftest."""

    def test_rotor_bonds(self, monomer):
        rotors = RotorList.from_monomer(monomer)
        assert len(rotors) == 4
        assert rotors.bonds == {
            frozenset({1, 2}),
            frozenset({2, 3}),
            frozenset({3, 4}),
            frozenset({2, 6}),
        }

    def test_no_rotor_moves_the_base(self, monomer):
        rotors = RotorList.from_monomer(monomer)
        for rotor in rotors:
            assert not set(rotor.moving.tolist()) & monomer.fixed_atoms

    @pytest.mark.parametrize("target", [0.0, 1.0, -2.5, 3.0, 5.9])
    def test_set_to_angle(self, monomer, target):
        """Every rotor reaches the requested dihedral."""
        rotors = RotorList.from_monomer(monomer)
        coords = monomer.positions.copy()
        for rotor in rotors:
            rotor.set_to_angle(coords, target)
            assert _same_angle(rotor.angle(coords), target)

    def test_fixed_atoms_and_bonds_preserved(self, monomer):
        """Base atoms stay put and bond lengths do not change."""
        rotors = RotorList.from_monomer(monomer)
        coords = monomer.positions.copy()
        before = coords.copy()
        for k, rotor in enumerate(rotors):
            rotor.set_to_angle(coords, 0.7 * (k + 1))
        np.testing.assert_allclose(coords[6:], before[6:])
        for i, j in monomer.bonds:
            assert np.linalg.norm(coords[i] - coords[j]) == pytest.approx(
                np.linalg.norm(before[i] - before[j])
            )

    def test_iteration_order_is_stable(self, monomer):
        a = [r.bond for r in RotorList.from_monomer(monomer)]
        b = [r.bond for r in RotorList.from_monomer(monomer)]
        assert a == b
        assert RotorList.from_monomer(monomer)[0].bond == (2, 1)
