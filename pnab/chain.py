"""
pnab.chain
==========

Full-chain coordinates and topology built from one sampled monomer.

Every strand position reuses the sampled backbone geometry together with the
(fixed) base coordinates of the base named at that position. Position ``k`` is
the placed monomer moved by the helical step ``k`` times. The tail linker of
positions ``1..n-1`` lands on the head linker of the previous position, so it
is dropped and its bonds are rewired to that head atom.

A double strand adds a second chain: the same backbone geometry carrying the
complementary bases, turned by the dyad rotation (π about the x axis).
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping, Sequence

import numpy as np
from openmm import app

from pnab.helical import X_AXIS, HelicalParameters
from pnab.helpers import rotation_matrix
from pnab.kernels import transform
from pnab.structure import Monomer, StructureError

logger = logging.getLogger(__name__)

DYAD_ROTATION = rotation_matrix(X_AXIS, np.pi)


def expand_strand(strand: Sequence[str], chain_length: int | None = None) -> list[str]:
    """
    Lower-cased strand tokens; a single token is repeated ``chain_length`` times.

    Raises
    ------
    StructureError
        If the strand is empty, or ``chain_length`` conflicts with a strand of
        several bases.
    """
    tokens = [token.strip().lower() for token in strand if token.strip()]
    if not tokens:
        raise StructureError("Strand must name at least one base.")
    if chain_length is None:
        return tokens
    if chain_length < 1:
        raise StructureError("Chain_Length must be at least 1.")
    if len(tokens) == 1:
        return tokens * chain_length
    if len(tokens) != chain_length:
        raise StructureError(
            f"Strand has {len(tokens)} bases but Chain_Length is {chain_length}."
        )
    return tokens


class ChainTemplate:
    """
    Read-only recipe turning one monomer geometry into a full chain.

    Parameters
    ----------
    monomers : mapping of str to Monomer
        Monomers keyed by lower-cased strand token; all share one backbone.
    strand : sequence of str
        Lower-cased tokens, one per position. ``strand[0]`` names the monomer
        that is sampled.
    helical : HelicalParameters
    double_stranded : bool, default=False
    pairs : mapping of str to str, optional
        Complement token per token (double strand only). Missing entries pair
        a base with itself.

    Attributes
    ----------
    sampled : Monomer
        Monomer whose backbone the search perturbs.
    topology : openmm.app.Topology
        Topology of the whole chain.
    n_atoms : int
    """

    def __init__(
        self,
        monomers: Mapping[str, Monomer],
        strand: Sequence[str],
        helical: HelicalParameters,
        double_stranded: bool = False,
        pairs: Mapping[str, str] | None = None,
    ):
        if not strand:
            raise StructureError("Strand must name at least one base.")
        missing = sorted({key for key in strand if key not in monomers})
        if missing:
            raise StructureError(f"No monomer built for strand base(s) {missing}.")

        self.helical = helical
        self.strand = list(strand)
        self.double_stranded = double_stranded
        self.sampled = monomers[self.strand[0]]
        self.backbone_range = self.sampled.backbone_range

        pairs = pairs or {}
        self.complement = [pairs.get(key, key) for key in self.strand]
        if double_stranded:
            missing = sorted({key for key in self.complement if key not in monomers})
            if missing:
                raise StructureError(f"No monomer built for pair base(s) {missing}.")

        used = set(self.strand) | (set(self.complement) if double_stranded else set())
        for key in used:
            monomer = monomers[key]
            if (
                monomer.backbone_range != self.backbone_range
                or monomer.head != self.sampled.head
                or monomer.tail != self.sampled.tail
            ):
                raise StructureError(
                    f'Monomer "{key}" does not share the backbone of "{self.strand[0]}".'
                )
        self.monomers = {key: monomers[key] for key in used}
        self.bases = {
            key: helical.place(monomer.positions)[monomer.base_range]
            for key, monomer in self.monomers.items()
        }

        self.steps = self._step_transforms(len(self.strand))
        self.topology = app.Topology()
        self.index_maps: list[list[np.ndarray]] = []
        self.kept: list[list[np.ndarray]] = []
        self._build_strand(self.strand)
        if double_stranded:
            self._build_strand(self.complement)
        self.n_atoms = self.topology.getNumAtoms()
        logger.debug(
            "Chain template: %d positions, %d atoms, double stranded=%s",
            len(self.strand),
            self.n_atoms,
            double_stranded,
        )

    def _step_transforms(self, count: int) -> list[tuple[np.ndarray, np.ndarray]]:
        rotation = np.eye(3)
        translation = np.zeros(3)
        steps = []
        for _ in range(count):
            steps.append((rotation, translation))
            rotation = self.helical.step_rotation @ rotation
            translation = (
                self.helical.step_rotation @ translation + self.helical.step_translation
            )
        return steps

    def _build_strand(self, tokens: Sequence[str]) -> None:
        chain = self.topology.addChain()
        atoms = list(self.topology.atoms())
        head = self.sampled.head - 1
        tail = self.sampled.tail - 1
        maps: list[np.ndarray] = []
        kept: list[np.ndarray] = []
        for k, key in enumerate(tokens):
            monomer = self.monomers[key]
            residue_name = next(monomer.topology.residues()).name
            residue = self.topology.addResidue(residue_name, chain)
            index_map = np.full(monomer.n_atoms, -1, dtype=np.int64)
            for atom in monomer.topology.atoms():
                if k > 0 and atom.index == tail:
                    continue
                new = self.topology.addAtom(atom.name, atom.element, residue)
                atoms.append(new)
                index_map[atom.index] = new.index
            kept.append(np.flatnonzero(index_map >= 0))
            if k > 0:
                index_map[tail] = maps[k - 1][head]
            for i, j in monomer.bonds:
                self.topology.addBond(atoms[index_map[i]], atoms[index_map[j]])
            maps.append(index_map)
        self.index_maps.append(maps)
        self.kept.append(kept)

    def start_coordinates(self) -> np.ndarray:
        """Sampled monomer after the global helical placement."""
        return self.helical.place(self.sampled.positions)

    def generate_coordinates(self, monomer_coords: np.ndarray) -> np.ndarray:
        """
        Full-chain coordinates for one monomer geometry.

        Parameters
        ----------
        monomer_coords : numpy.ndarray, shape (N, 3)
            Sampled monomer (placed frame). Only its backbone atoms are used.

        Returns
        -------
        numpy.ndarray, shape (n_atoms, 3)
            A new buffer owned by the caller.
        """
        backbone = np.asarray(monomer_coords).reshape(-1, 3)[self.backbone_range]
        out = np.empty((self.n_atoms, 3))
        strands = [self.strand]
        if self.double_stranded:
            strands.append(self.complement)
        for s, tokens in enumerate(strands):
            for k, key in enumerate(tokens):
                rotation, translation = self.steps[k]
                coords = transform(
                    np.concatenate([backbone, self.bases[key]]), rotation, translation
                )
                if s == 1:
                    coords = transform(coords, DYAD_ROTATION, np.zeros(3))
                kept = self.kept[s][k]
                out[self.index_maps[s][k][kept]] = coords[kept]
        return out

    def map_bonds(self, bonds: Iterable[Iterable[int]]) -> set[frozenset[int]]:
        """
        Chain-level atom pairs for monomer-level bonds, at every position.
        """
        mapped: set[frozenset[int]] = set()
        for bond in bonds:
            i, j = tuple(bond)
            for maps in self.index_maps:
                for index_map in maps:
                    mapped.add(frozenset((int(index_map[i]), int(index_map[j]))))
        return mapped
