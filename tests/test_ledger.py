"""
Tests for pnab.ledger module.

This module tests the ranked conformer store and its files:
- ConformerRecord: ranking key, summary row formatting
- ConformerLedger.admit: persistence, re-sort, RMSD refresh, CSV rewrite
"""

import numpy as np
import pytest

from pnab.energy import EnergyTerms
from pnab.ledger import (
    SUMMARY_HEADER,
    ConformerLedger,
    ConformerRecord,
    ConformerStateError,
)
from pnab.structure import build_topology


def _terms(total):
    return EnergyTerms(
        total=total, bond=1.0, angle=2.0, torsion=0.25, vdw=-1.5, total_torsion=3.0
    )


def _record(index, total, distance=0.5, shift=0.0):
    monomer = np.zeros((2, 3))
    monomer[:, 0] += shift
    return ConformerRecord(
        index=index,
        distance=distance,
        energies=_terms(total),
        monomer_coords=monomer,
        chain_coords=np.array([[0.0, 0.0, 0.0], [1.5, 0.0, 0.0]]),
    )


@pytest.fixture
def ledger(tmp_path):
    topology = build_topology(["C", "C"], [(0, 1)], residue_name="ADE")
    return ConformerLedger(tmp_path / "out", topology)


def _rows(ledger):
    return ledger.summary_path.read_text().splitlines()


class TestConformerRecord:
    """Tests for ConformerRecord."""

    def test_sort_key_breaks_ties(self):
        """Energy first, then distance, then trial index."""
        records = [
            _record(7, 1.0, distance=0.3),
            _record(2, 1.0, distance=0.3),
            _record(5, 1.0, distance=0.1),
            _record(9, 0.5, distance=0.9),
        ]
        ordered = sorted(records, key=lambda r: r.sort_key)
        assert [r.index for r in ordered] == [9, 5, 2, 7]

    def test_summary_row_format(self):
        record = _record(3, -12.3456789, distance=0.25)
        record.rmsd = 0.125
        assert record.summary_row() == "3, -12.3457, 0.25, 1, 2, 0.25, -1.5, 3, 0.125"

    def test_filename(self):
        assert _record(42, 0.0).filename == "conformer_42.pdb"


class TestConformerLedger:
    """Tests for ConformerLedger."""

    def test_header_only_summary(self, ledger):
        """With nothing admitted the summary is just the header."""
        ledger.write_summary()
        assert _rows(ledger) == [SUMMARY_HEADER]

    def test_admit_persists_and_releases(self, ledger):
        record = _record(0, 5.0)
        ledger.admit(record)
        assert (ledger.output_dir / "conformer_0.pdb").exists()
        assert record.chain_coords is None
        assert record.monomer_coords is not None

    def test_persist_without_chain_raises(self, ledger):
        record = _record(0, 5.0)
        ledger.admit(record)
        with pytest.raises(ConformerStateError, match="no chain coordinates"):
            ledger.persist(record)

    def test_ranked_by_energy(self, ledger):
        for index, total in [(0, 5.0), (1, 1.0), (2, 3.0)]:
            ledger.admit(_record(index, total, shift=float(index)))
        assert [r.index for r in ledger.records] == [1, 2, 0]
        assert ledger.best.index == 1
        rows = _rows(ledger)
        assert rows[0] == SUMMARY_HEADER
        assert [row.split(", ")[0] for row in rows[1:]] == ["1", "2", "0"]

    def test_rmsd_against_current_best(self, ledger):
        """RMSDs are recomputed whenever the best conformer changes."""
        ledger.admit(_record(0, 5.0, shift=0.0))
        ledger.admit(_record(1, 9.0, shift=2.0))
        assert [r.rmsd for r in ledger.records] == [pytest.approx(0.0), pytest.approx(2.0)]
        ledger.admit(_record(2, 1.0, shift=3.0))
        rmsds = {r.index: r.rmsd for r in ledger.records}
        assert rmsds == {2: pytest.approx(0.0), 0: pytest.approx(3.0), 1: pytest.approx(1.0)}
        assert _rows(ledger)[1].endswith(", 0")

    def test_summary_rewritten_in_full(self, ledger):
        for index in range(4):
            ledger.admit(_record(index, float(10 - index)))
            assert len(_rows(ledger)) == index + 2
        assert len(ledger) == 4

    def test_written_pdb_has_chain_atoms(self, ledger):
        ledger.admit(_record(3, 1.0))
        text = (ledger.output_dir / "conformer_3.pdb").read_text()
        assert sum(1 for line in text.splitlines() if line.startswith("HETATM")) == 2
