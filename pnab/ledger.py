"""
pnab.ledger
===========

Admitted conformers, kept ranked by energy.

Each admission writes ``conformer_<index>.pdb``, releases the chain buffer,
re-sorts the whole list, recomputes every RMSD against the new best and
rewrites ``energy_data.csv`` from scratch, so the files on disk always match
the in-memory ranking.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path

import numpy as np
from openmm import app

from pnab.energy import EnergyTerms
from pnab.helpers import angstrom
from pnab.kernels import rmsd_kernel

logger = logging.getLogger(__name__)

SUMMARY_FILE = "energy_data.csv"
SUMMARY_HEADER = (
    "Conformer Index, Energy (kcal/mol), Distance (A), Bond Energy, "
    "Angle Energy, Torsion Energy, VDW Energy, Total Torsion Energy, RMSD (A)"
)


class ConformerStateError(RuntimeError):
    """
    Raised when a conformer is persisted without chain coordinates.
    """

    pass


@dataclass
class ConformerRecord:
    """
    One admitted trial.

    Attributes
    ----------
    index : int
        Trial index that produced the conformer.
    distance : float
        Closure distance (Å).
    energies : EnergyTerms
        Energy components (kcal/mol).
    monomer_coords : numpy.ndarray, shape (N, 3)
        Sampled monomer geometry, kept for RMSD.
    chain_coords : numpy.ndarray or None
        Full-chain coordinates; ``None`` once written to disk.
    rmsd : float
        RMSD of ``monomer_coords`` against the current best conformer.
    """

    index: int
    distance: float
    energies: EnergyTerms
    monomer_coords: np.ndarray
    chain_coords: np.ndarray | None = None
    rmsd: float = 0.0

    @property
    def total_energy(self) -> float:
        return self.energies.total

    @property
    def sort_key(self) -> tuple[float, float, int]:
        """Total energy, then closure distance, then trial index."""
        return (self.energies.total, self.distance, self.index)

    @property
    def filename(self) -> str:
        return f"conformer_{self.index}.pdb"

    def summary_row(self) -> str:
        e = self.energies
        values = (
            e.total,
            self.distance,
            e.bond,
            e.angle,
            e.torsion,
            e.vdw,
            e.total_torsion,
            self.rmsd,
        )
        return ", ".join([str(self.index)] + ["%g" % value for value in values])


@dataclass
class ConformerLedger:
    """
    Ranked list of admitted conformers with its files on disk.

    Parameters
    ----------
    output_dir : Path
        Directory receiving PDB files and the summary.
    topology : openmm.app.Topology
        Chain topology used when writing PDB files.

    Attributes
    ----------
    records : list[ConformerRecord]
        Sorted by :attr:`ConformerRecord.sort_key`; ``records[0]`` is the best.
    """

    output_dir: Path
    topology: app.Topology
    records: list[ConformerRecord] = field(default_factory=list)

    def __post_init__(self):
        self.output_dir = Path(self.output_dir)
        self.output_dir.mkdir(parents=True, exist_ok=True)

    @property
    def summary_path(self) -> Path:
        return self.output_dir / SUMMARY_FILE

    @property
    def best(self) -> ConformerRecord | None:
        return self.records[0] if self.records else None

    def __len__(self) -> int:
        return len(self.records)

    def persist(self, record: ConformerRecord) -> Path:
        """
        Write the chain of ``record`` to ``conformer_<index>.pdb`` and release
        its chain buffer.

        Raises
        ------
        ConformerStateError
            If the record has no chain coordinates.
        """
        if record.chain_coords is None:
            raise ConformerStateError(
                "Trying to print conformer with no chain coordinates. Exiting..."
            )
        path = self.output_dir / record.filename
        with open(path, "w") as f:
            app.PDBFile.writeFile(self.topology, angstrom(record.chain_coords), file=f)
        record.chain_coords = None
        return path

    def admit(self, record: ConformerRecord) -> None:
        """
        Persist, insert, re-rank, refresh RMSDs and rewrite the summary.
        """
        self.persist(record)
        self.records.append(record)
        self.records.sort(key=lambda r: r.sort_key)
        reference = np.ascontiguousarray(self.records[0].monomer_coords).reshape(-1)
        for other in self.records:
            other.rmsd = rmsd_kernel(
                reference, np.ascontiguousarray(other.monomer_coords).reshape(-1)
            )
        self.write_summary()

    def write_summary(self) -> Path:
        """Rewrite ``energy_data.csv`` with the header and every record."""
        with open(self.summary_path, "w") as f:
            f.write(SUMMARY_HEADER + "\n")
            for record in self.records:
                f.write(record.summary_row() + "\n")
        return self.summary_path
