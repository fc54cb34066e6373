"""
pnab.energy
===========

Force-field energies of candidate chains (via OpenMM) and the energy filter.

The oracle splits an OpenMM :class:`~openmm.System` into force groups so a
single set of positions yields every reported term:

========================  =====  ==========================================
term                      group  source
========================  =====  ==========================================
bond                      0      HarmonicBondForce
angle                     1      HarmonicAngleForce
total torsion             2      Periodic/RB/CMAP torsion forces
nonbonded                 3      NonbondedForce (Coulomb + LJ)
other                     4      anything else (implicit solvent, ...)
vdW (reporting only)      5      charge-free copy of each NonbondedForce
torsion (reporting only)  6      periodic torsions about searched rotors
========================  =====  ==========================================

The total energy is the sum of groups 0-4. All energies are in kcal/mol.
"""

from __future__ import annotations

import copy
import logging
import math
from collections.abc import Iterable, Sequence
from dataclasses import dataclass

import numpy as np
import openmm as mm
from openmm import app, unit

from pnab.helpers import angstrom, nokcal

logger = logging.getLogger(__name__)

BOND_GROUP = 0
ANGLE_GROUP = 1
TORSION_GROUP = 2
NONBONDED_GROUP = 3
OTHER_GROUP = 4
VDW_GROUP = 5
ROTOR_TORSION_GROUP = 6
TOTAL_GROUPS = {BOND_GROUP, ANGLE_GROUP, TORSION_GROUP, NONBONDED_GROUP, OTHER_GROUP}

TORSION_FORCES = (mm.PeriodicTorsionForce, mm.RBTorsionForce, mm.CMAPTorsionForce)


@dataclass(frozen=True)
class EnergyTerms:
    """
    Energy components of one conformer (kcal/mol).
    """

    total: float
    bond: float
    angle: float
    torsion: float
    vdw: float
    total_torsion: float


@dataclass(frozen=True)
class EnergyFilter:
    """
    Upper bounds on the energy components; ``None`` or ``inf`` never rejects.

    The torsion ceiling applies to the *total* torsion energy.

    Examples
    --------
    >>> f = EnergyFilter(max_total=100.0)
    >>> f.passes(EnergyTerms(100.0, 0.0, 0.0, 0.0, 0.0, 0.0))
    True
    """

    max_total: float | None = None
    max_angle: float | None = None
    max_bond: float | None = None
    max_vdw: float | None = None
    max_torsion: float | None = None

    def passes(self, terms: EnergyTerms) -> bool:
        """True when every component is at or below its ceiling."""
        checks = (
            (terms.total, self.max_total),
            (terms.angle, self.max_angle),
            (terms.bond, self.max_bond),
            (terms.vdw, self.max_vdw),
            (terms.total_torsion, self.max_torsion),
        )
        for value, ceiling in checks:
            if ceiling is None or math.isinf(ceiling) and ceiling > 0:
                continue
            if not value <= ceiling:
                return False
        return True


def _group_for(force: mm.Force) -> int:
    if isinstance(force, mm.HarmonicBondForce):
        return BOND_GROUP
    if isinstance(force, mm.HarmonicAngleForce):
        return ANGLE_GROUP
    if isinstance(force, TORSION_FORCES):
        return TORSION_GROUP
    if isinstance(force, mm.NonbondedForce):
        return NONBONDED_GROUP
    return OTHER_GROUP


def _vdw_copy(force: mm.NonbondedForce) -> mm.NonbondedForce:
    """Lennard-Jones part of ``force`` only (all charges set to zero)."""
    vdw = mm.NonbondedForce()
    vdw.setNonbondedMethod(force.getNonbondedMethod())
    vdw.setCutoffDistance(force.getCutoffDistance())
    vdw.setUseDispersionCorrection(force.getUseDispersionCorrection())
    for i in range(force.getNumParticles()):
        _charge, sigma, epsilon = force.getParticleParameters(i)
        vdw.addParticle(0.0, sigma, epsilon)
    for k in range(force.getNumExceptions()):
        p1, p2, _charge_prod, sigma, epsilon = force.getExceptionParameters(k)
        vdw.addException(p1, p2, 0.0, sigma, epsilon)
    vdw.setForceGroup(VDW_GROUP)
    return vdw


def _rotor_torsions(
    force: mm.PeriodicTorsionForce, rotor_bonds: set[frozenset[int]]
) -> mm.PeriodicTorsionForce:
    """Torsion terms of ``force`` whose central bond is a searched rotor."""
    subset = mm.PeriodicTorsionForce()
    for t in range(force.getNumTorsions()):
        p1, p2, p3, p4, periodicity, phase, k = force.getTorsionParameters(t)
        if frozenset((p2, p3)) in rotor_bonds:
            subset.addTorsion(p1, p2, p3, p4, periodicity, phase, k)
    subset.setForceGroup(ROTOR_TORSION_GROUP)
    return subset


class OpenMMEnergyOracle:
    """
    Evaluate :class:`EnergyTerms` for full-chain coordinates.

    Parameters
    ----------
    topology : openmm.app.Topology
        Chain topology (matches the coordinates passed to :meth:`evaluate`).
    system : openmm.System
        Parameterized system; copied, the caller's instance is not modified.
    rotor_bonds : iterable of frozenset[int], optional
        Chain-level atom pairs of the searched rotors (selects the torsion
        term).
    platform : str, optional
        OpenMM platform name (e.g. ``"Reference"``, ``"CPU"``). Default lets
        OpenMM choose.
    """

    def __init__(
        self,
        topology: app.Topology,
        system: mm.System,
        rotor_bonds: Iterable[frozenset[int]] = (),
        platform: str | None = None,
    ):
        self.system = copy.deepcopy(system)
        rotor_bonds = {frozenset(bond) for bond in rotor_bonds}

        extra: list[mm.Force] = []
        for force in self.system.getForces():
            force.setForceGroup(_group_for(force))
            if isinstance(force, mm.NonbondedForce):
                extra.append(_vdw_copy(force))
            elif isinstance(force, mm.PeriodicTorsionForce):
                extra.append(_rotor_torsions(force, rotor_bonds))
        for force in extra:
            self.system.addForce(force)

        self.integrator = mm.VerletIntegrator(0.001 * unit.picoseconds)
        if platform:
            self.simulation = app.Simulation(
                topology,
                self.system,
                self.integrator,
                mm.Platform.getPlatformByName(platform),
            )
        else:
            self.simulation = app.Simulation(topology, self.system, self.integrator)
        logger.debug(
            "Energy oracle on platform %s",
            self.simulation.context.getPlatform().getName(),
        )

    def _energy(self, groups: set[int]) -> float:
        state = self.simulation.context.getState(getEnergy=True, groups=groups)
        return nokcal(state.getPotentialEnergy())

    def evaluate(self, coords: np.ndarray) -> EnergyTerms:
        """
        Energies of the chain at ``coords``.

        Parameters
        ----------
        coords : numpy.ndarray, shape (N, 3)
            Chain coordinates in Å.

        Returns
        -------
        EnergyTerms
        """
        self.simulation.context.setPositions(angstrom(np.reshape(coords, (-1, 3))))
        return EnergyTerms(
            total=self._energy(TOTAL_GROUPS),
            bond=self._energy({BOND_GROUP}),
            angle=self._energy({ANGLE_GROUP}),
            torsion=self._energy({ROTOR_TORSION_GROUP}),
            vdw=self._energy({VDW_GROUP}),
            total_torsion=self._energy({TORSION_GROUP}),
        )


def build_system(
    topology: app.Topology, force_field_files: Sequence[str]
) -> mm.System:
    """
    Parameterize a chain topology with OpenMM force-field XML files.

    Parameters
    ----------
    topology : openmm.app.Topology
        Chain topology; every residue needs a template in the force field.
    force_field_files : sequence of str
        Built-in names (e.g. ``"amber14-all.xml"``) or paths to XML files.

    Returns
    -------
    openmm.System

    Raises
    ------
    ValueError
        From OpenMM when a residue has no matching template.
    """
    forcefield = app.ForceField(*force_field_files)
    return forcefield.createSystem(
        topology, nonbondedMethod=app.NoCutoff, constraints=None, rigidWater=False
    )
