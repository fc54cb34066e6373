"""
Monomer templates: one backbone + one base, assembled and indexed.

This module defines the **static chemistry** used by the search:
- Loading backbone/base fragments from PDB files (bonds from CONECT records)
- Assembling a base onto a backbone through two connect pairs
- Bookkeeping of the backbone range (rotatable) and base range (fixed)
- Head/tail linker atoms used by the helical closure test

Indexing conventions
--------------------
- Atom indices supplied by the user (``Interconnects``, ``Base_Connect``,
  ``Backbone_Connect``) are **1-based**, as in the input file.
- Internally atoms are **0-based**. Backbone atoms come first, then base atoms.
- ``Monomer.head`` and ``Monomer.tail`` stay **1-based**, which is what the
  closure-distance kernel expects.

Assembly
--------
The backbone carries a dummy atom where the base's connecting atom belongs,
and the base carries a dummy atom where the backbone's connecting atom
belongs. The base is rotated so that its ``dummy -> connect`` vector points
along the backbone's ``connect -> dummy`` vector, moved onto the backbone
dummy (or onto the requested bond length), and both dummies are removed.

Examples
--------
>>> top = build_topology(["C", "C", "N"], [(0, 1), (1, 2)], residue_name="X")
>>> top.getNumAtoms()
3
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING

import numpy as np
from openmm import app

from pnab.helpers import align_vectors, nostrom

if TYPE_CHECKING:
    from pnab.config import BackboneParameters, BaseDefinition

logger = logging.getLogger(__name__)


class StructureError(ValueError):
    """
    Raised when fragments or linker definitions cannot form a monomer.
    """

    pass


@dataclass
class Fragment:
    """
    A building block read from disk.

    Attributes
    ----------
    topology : openmm.app.Topology
        Atoms and bonds of the fragment.
    positions : numpy.ndarray, shape (N, 3)
        Coordinates in Å (unitless).
    """

    topology: app.Topology
    positions: np.ndarray

    @property
    def n_atoms(self) -> int:
        return self.topology.getNumAtoms()


def load_fragment(path: str | Path) -> Fragment:
    """
    Read a backbone or base fragment from a PDB file.

    Parameters
    ----------
    path : str or Path
        PDB file. Bonds are taken from its CONECT records.

    Returns
    -------
    Fragment

    Raises
    ------
    OSError
        If the file cannot be opened.
    """
    pdb = app.PDBFile(str(path))
    positions = nostrom(pdb.getPositions(asNumpy=True))
    return Fragment(pdb.topology, positions.reshape(-1, 3))


def build_topology(
    symbols: Sequence[str],
    bonds: Sequence[tuple[int, int]],
    residue_name: str = "UNK",
    names: Sequence[str] | None = None,
) -> app.Topology:
    """
    Create a one-residue OpenMM topology from element symbols and bonds.

    Parameters
    ----------
    symbols : sequence of str
        Element symbol per atom.
    bonds : sequence of (int, int)
        0-based atom pairs.
    residue_name : str, default="UNK"
    names : sequence of str, optional
        Atom names; defaults to ``<symbol><serial>``.

    Returns
    -------
    openmm.app.Topology
    """
    topology = app.Topology()
    chain = topology.addChain()
    residue = topology.addResidue(residue_name, chain)
    atoms = []
    for i, symbol in enumerate(symbols):
        name = names[i] if names is not None else f"{symbol}{i + 1}"
        atoms.append(
            topology.addAtom(name, app.Element.getBySymbol(symbol), residue)
        )
    for i, j in bonds:
        topology.addBond(atoms[i], atoms[j])
    return topology


def is_hydrogen(atom: app.topology.Atom) -> bool:
    return atom.element is not None and atom.element == app.element.hydrogen


class Monomer:
    """
    One assembled monomer: backbone atoms followed by base atoms.

    Parameters
    ----------
    topology : openmm.app.Topology
        Single-residue topology of the monomer.
    positions : array-like, shape (N, 3)
        Coordinates in Å.
    backbone_range : range
        0-based indices of the backbone atoms (rotatable region).
    base_range : range
        0-based indices of the base atoms (fixed during the search).
    head, tail : int
        1-based linker atoms; after one helical step the tail of the next
        monomer should coincide with this monomer's head.
    name : str, default=""
        Base name this monomer was built with.

    Attributes
    ----------
    bonds : list[tuple[int, int]]
        0-based bonded pairs in topology order.
    neighbors : list[list[int]]
        Adjacency list.
    heavy : numpy.ndarray of bool
        True for non-hydrogen atoms.
    """

    def __init__(
        self,
        topology: app.Topology,
        positions,
        backbone_range: range,
        base_range: range,
        head: int,
        tail: int,
        name: str = "",
    ):
        self.topology = topology
        self.positions = np.array(positions, dtype=float).reshape(-1, 3)
        self.backbone_range = backbone_range
        self.base_range = base_range
        self.head = int(head)
        self.tail = int(tail)
        self.name = name

        atoms = list(topology.atoms())
        if len(atoms) != len(self.positions):
            raise StructureError(
                f"Topology has {len(atoms)} atoms but {len(self.positions)} "
                "positions were given."
            )
        for label, index in (("head", self.head), ("tail", self.tail)):
            if not 1 <= index <= len(atoms):
                raise StructureError(
                    f"Linker {label} atom {index} is outside 1..{len(atoms)}."
                )
        if self.head == self.tail:
            raise StructureError("Head and tail linker atoms must differ.")

        self.bonds: list[tuple[int, int]] = [
            (bond[0].index, bond[1].index) for bond in topology.bonds()
        ]
        self.bond_orders = [
            bond.order if bond.order is not None else bond.type
            for bond in topology.bonds()
        ]
        self.neighbors: list[list[int]] = [[] for _ in atoms]
        for i, j in self.bonds:
            self.neighbors[i].append(j)
            self.neighbors[j].append(i)
        self.heavy = np.array([not is_hydrogen(atom) for atom in atoms])

    @property
    def n_atoms(self) -> int:
        return len(self.positions)

    @property
    def fixed_atoms(self) -> set[int]:
        """0-based atoms that must not move (the base)."""
        return set(self.base_range)

    @property
    def tail_neighbors(self) -> list[int]:
        """0-based atoms bonded to the tail linker."""
        return self.neighbors[self.tail - 1]


def _check_pair(pair: Sequence[int], n_atoms: int, label: str) -> tuple[int, int]:
    if len(pair) != 2:
        raise StructureError(f"{label} needs exactly two atom indices, got {pair}.")
    first, second = (int(i) for i in pair)
    for i in (first, second):
        if not 1 <= i <= n_atoms:
            raise StructureError(f"{label} atom {i} is outside 1..{n_atoms}.")
    if first == second:
        raise StructureError(f"{label} atoms must differ, got {pair}.")
    return first, second


def build_monomer(
    backbone: Fragment,
    base: Fragment,
    interconnects: Sequence[int],
    base_connect: Sequence[int],
    backbone_connect: Sequence[int],
    bond_length: float | None = None,
    name: str = "",
    residue_name: str | None = None,
) -> Monomer:
    """
    Assemble a base onto a backbone.

    Parameters
    ----------
    backbone, base : Fragment
        Building blocks.
    interconnects : (int, int)
        1-based ``(head, tail)`` linker atoms of the backbone.
    base_connect : (int, int)
        1-based ``(connect, dummy)`` backbone atoms: the atom that bonds to
        the base and the dummy marking where the base atom goes.
    backbone_connect : (int, int)
        1-based ``(connect, dummy)`` base atoms: the atom that bonds to the
        backbone and the dummy marking where the backbone atom sits.
    bond_length : float, optional
        Backbone–base bond length (Å). Defaults to the backbone dummy position.
    name : str
        Base name, kept on the monomer.
    residue_name : str, optional
        Residue name used in written structures (defaults to ``name[:3]``).

    Returns
    -------
    Monomer

    Raises
    ------
    StructureError
        If any index is out of range or a linker atom is a dummy.
    """
    head, tail = _check_pair(interconnects, backbone.n_atoms, "Interconnects")
    bb_connect, bb_dummy = _check_pair(base_connect, backbone.n_atoms, "Base_Connect")
    bs_connect, bs_dummy = _check_pair(
        backbone_connect, base.n_atoms, "Backbone_Connect"
    )
    if bb_dummy in (head, tail):
        raise StructureError("A linker atom cannot be the backbone dummy atom.")

    # 0-based from here on
    bb_connect, bb_dummy = bb_connect - 1, bb_dummy - 1
    bs_connect, bs_dummy = bs_connect - 1, bs_dummy - 1

    bb_pos = backbone.positions
    target = bb_pos[bb_dummy] - bb_pos[bb_connect]
    source = base.positions[bs_connect] - base.positions[bs_dummy]
    if np.linalg.norm(target) < 1e-8 or np.linalg.norm(source) < 1e-8:
        raise StructureError("Connect and dummy atoms overlap; cannot align base.")

    rot = align_vectors(source, target)
    base_pos = (base.positions - base.positions[bs_connect]) @ rot.T
    if bond_length is None:
        anchor = bb_pos[bb_dummy]
    else:
        anchor = bb_pos[bb_connect] + target / np.linalg.norm(target) * bond_length
    base_pos += anchor

    res_name = residue_name or (name[:3].upper() if name else "UNK")
    topology = app.Topology()
    chain = topology.addChain()
    residue = topology.addResidue(res_name, chain)

    mapping_bb: dict[int, app.topology.Atom] = {}
    mapping_bs: dict[int, app.topology.Atom] = {}
    positions = []
    for atom in backbone.topology.atoms():
        if atom.index == bb_dummy:
            continue
        mapping_bb[atom.index] = topology.addAtom(atom.name, atom.element, residue)
        positions.append(bb_pos[atom.index])
    n_backbone = len(mapping_bb)
    for atom in base.topology.atoms():
        if atom.index == bs_dummy:
            continue
        mapping_bs[atom.index] = topology.addAtom(atom.name, atom.element, residue)
        positions.append(base_pos[atom.index])

    for mapping, fragment in ((mapping_bb, backbone), (mapping_bs, base)):
        for bond in fragment.topology.bonds():
            i, j = bond[0].index, bond[1].index
            if i in mapping and j in mapping:
                topology.addBond(mapping[i], mapping[j], bond.type, bond.order)
    topology.addBond(mapping_bb[bb_connect], mapping_bs[bs_connect])

    def remap(index: int) -> int:
        return index - 1 if index - 1 > bb_dummy else index

    monomer = Monomer(
        topology,
        np.asarray(positions),
        backbone_range=range(0, n_backbone),
        base_range=range(n_backbone, n_backbone + len(mapping_bs)),
        head=remap(head),
        tail=remap(tail),
        name=name,
    )
    logger.debug(
        "Built monomer %r: %d backbone + %d base atoms",
        name,
        n_backbone,
        len(mapping_bs),
    )
    return monomer


def resolve_base(bases: Sequence[BaseDefinition], token: str) -> BaseDefinition:
    """
    Find a base by name or code (case-insensitive).

    Raises
    ------
    StructureError
        If no base matches.
    """
    key = token.strip().lower()
    for base in bases:
        if key in (base.name.lower(), base.code.lower()):
            return base
    raise StructureError(f'Base "{token}" in strand is not defined in BASE PARAMETERS.')


def load_monomers(
    backbone: BackboneParameters,
    bases: Sequence[BaseDefinition],
    names: Sequence[str],
    bond_length: float | None = None,
) -> dict[str, Monomer]:
    """
    Build one monomer per distinct base name, sharing one backbone fragment.

    Returns
    -------
    dict[str, Monomer]
        Keyed by the lower-cased name as given in ``names``.
    """
    backbone_fragment = load_fragment(backbone.file_path)
    fragments: dict[str, Fragment] = {}
    monomers: dict[str, Monomer] = {}
    for token in names:
        key = token.strip().lower()
        if key in monomers:
            continue
        base = resolve_base(bases, token)
        if base.file_path not in fragments:
            fragments[base.file_path] = load_fragment(base.file_path)
        monomers[key] = build_monomer(
            backbone_fragment,
            fragments[base.file_path],
            interconnects=backbone.interconnects,
            base_connect=backbone.base_connect,
            backbone_connect=base.backbone_connect,
            bond_length=bond_length,
            name=base.name,
            residue_name=base.code.upper(),
        )
    return monomers
