"""
Pytest configuration for the pnab test suite.

This file provides shared fixtures and markers for all tests:
- `integration` marker: Tests that write files and run OpenMM end to end
- `slow` marker: Tests that take more than a few seconds
- A small synthetic backbone/base pair assembled into a monomer in memory

Synthetic monomer (1-based backbone numbering)::

    C1 - C2 - C3 - C4 - C5 - C6        head = C1, tail = C6
               |
               N1 - C2 (base)

It has four rotors: C2-C3, C3-C4, C4-C5 and the C3-N1 link to the base.
"""

import numpy as np
import pytest
from openmm import app

from pnab.energy import EnergyTerms
from pnab.helical import HelicalParameters
from pnab.helpers import angstrom
from pnab.structure import Fragment, build_monomer, build_topology


def pytest_configure(config):
    """Register custom markers to avoid warnings."""
    config.addinivalue_line(
        "markers", "integration: marks tests that run the full pipeline with OpenMM"
    )
    config.addinivalue_line("markers", "slow: marks tests as slow-running")


BACKBONE_POSITIONS = np.array(
    [
        [0.0, 0.0, 0.0],
        [1.5, 0.0, 0.0],
        [2.0, 1.4, 0.0],
        [3.5, 1.4, 0.3],
        [4.0, 2.8, 0.3],
        [5.5, 2.8, 0.0],
        [2.0, 2.0, 1.4],  # dummy for the base atom
    ]
)
BACKBONE_BONDS = [(0, 1), (1, 2), (2, 3), (3, 4), (4, 5), (2, 6)]

BASE_POSITIONS = np.array(
    [
        [0.0, 0.0, 0.0],
        [1.3, 0.5, 0.0],
        [-0.8, -1.2, 0.2],  # dummy for the backbone atom
    ]
)
BASE_BONDS = [(0, 1), (0, 2)]

INTERCONNECTS = (1, 6)
BASE_CONNECT = (3, 7)
BACKBONE_CONNECT = (1, 3)


# ---------------------------------------------------------------------------
# Shared Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def backbone_fragment():
    """Seven-atom carbon backbone with one dummy atom."""
    topology = build_topology(["C"] * 7, BACKBONE_BONDS, residue_name="BKB")
    return Fragment(topology, BACKBONE_POSITIONS.copy())


@pytest.fixture
def base_fragment():
    """Three-atom base with one dummy atom."""
    topology = build_topology(["N", "C", "C"], BASE_BONDS, residue_name="BSE")
    return Fragment(topology, BASE_POSITIONS.copy())


@pytest.fixture
def monomer(backbone_fragment, base_fragment):
    """Assembled eight-atom monomer (six backbone + two base atoms)."""
    return build_monomer(
        backbone_fragment,
        base_fragment,
        interconnects=INTERCONNECTS,
        base_connect=BASE_CONNECT,
        backbone_connect=BACKBONE_CONNECT,
        name="Adenine",
        residue_name="ADE",
    )


@pytest.fixture
def helical():
    """B-DNA-like helical frame."""
    return HelicalParameters.from_values(
        rise=3.38, x_disp=-0.2, y_disp=0.1, inclination=5.0, tip=-3.0, twist=36.0
    )


@pytest.fixture
def write_fragment(tmp_path):
    """Write a fragment to a PDB file (HETATM + CONECT records)."""

    def _write(fragment, filename):
        path = tmp_path / filename
        with open(path, "w") as f:
            app.PDBFile.writeFile(
                fragment.topology, angstrom(fragment.positions), file=f
            )
        return path

    return _write


class FakeOracle:
    """
    Deterministic stand-in for the OpenMM energy oracle.

    The total energy is a smooth function of the coordinates, so different
    geometries rank differently.
    """

    def __init__(self):
        self.calls = 0

    def evaluate(self, coords):
        self.calls += 1
        coords = np.asarray(coords)
        total = float(np.sum(coords[:, 0] ** 2) % 97.0)
        return EnergyTerms(
            total=total,
            bond=1.0,
            angle=2.0,
            torsion=0.5,
            vdw=-1.5,
            total_torsion=3.0,
        )


@pytest.fixture
def fake_oracle():
    return FakeOracle()
