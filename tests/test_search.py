"""
Tests for pnab.search module.

The driver is exercised end to end on the synthetic monomer with a fake
energy oracle, so no force field is needed:
- admission (closure tolerance, energy filter)
- ranking and summary contents
- determinism under a seed
- progress reporting
"""

import logging
import math

import numpy as np
import pytest

from pnab.chain import ChainTemplate
from pnab.context import SearchContext
from pnab.energy import EnergyFilter
from pnab.ledger import SUMMARY_HEADER, ConformerLedger
from pnab.rotors import RotorList
from pnab.sampler import AcceptanceSampler, ClosureDistance
from pnab.search import MonteCarloRotorSearch, SearchState


@pytest.fixture
def build_search(monomer, helical, fake_oracle, tmp_path):
    def _build(
        max_distance=math.inf,
        search_size=20,
        energy_filter=None,
        report_interval=100_000,
        out="out",
    ):
        template = ChainTemplate({"a": monomer}, ["a", "a"], helical)
        rotors = RotorList.from_monomer(template.sampled)
        sampler = AcceptanceSampler(
            rotors, ClosureDistance(monomer.head, monomer.tail, helical)
        )
        ledger = ConformerLedger(tmp_path / out, template.topology)
        search = MonteCarloRotorSearch(
            template,
            sampler,
            fake_oracle,
            energy_filter or EnergyFilter(),
            ledger,
            max_distance=max_distance,
            search_size=search_size,
            report_interval=report_interval,
        )
        return search, template

    return _build


def _rows(ledger):
    return ledger.summary_path.read_text().splitlines()


class TestMonteCarloRotorSearch:
    """End-to-end runs of the driver."""

    def test_everything_admitted_without_limits(self, build_search):
        search, template = build_search(search_size=15)
        context = SearchContext.create(template.start_coordinates(), seed=1)
        ledger = search.run(context)
        assert search.state is SearchState.COMPLETE
        assert context.trials == 15
        assert context.closed == 15
        assert context.accepted == len(ledger) == 15
        assert len(_rows(ledger)) == 16

    def test_ranked_summary(self, build_search):
        """Row 1 holds the lowest energy and RMSD 0."""
        search, template = build_search(search_size=25)
        ledger = search.run(SearchContext.create(template.start_coordinates(), seed=3))
        rows = [row.split(", ") for row in _rows(ledger)[1:]]
        energies = [float(row[1]) for row in rows]
        assert energies == sorted(energies)
        assert float(rows[0][8]) == 0.0
        best = ledger.best
        assert all(best.sort_key <= r.sort_key for r in ledger.records)

    def test_no_admission_writes_header_only(self, build_search):
        """A negative tolerance admits nothing; the summary still exists."""
        search, template = build_search(max_distance=-1.0, search_size=10)
        context = SearchContext.create(template.start_coordinates(), seed=0)
        ledger = search.run(context)
        assert context.closed == 0
        assert _rows(ledger) == [SUMMARY_HEADER]
        assert not list(ledger.output_dir.glob("conformer_*.pdb"))

    def test_energy_filter_rejects(self, build_search, fake_oracle):
        """Closed trials that fail the filter are scored but not admitted."""
        search, template = build_search(
            search_size=10, energy_filter=EnergyFilter(max_bond=0.5)
        )
        context = SearchContext.create(template.start_coordinates(), seed=0)
        ledger = search.run(context)
        assert context.closed == 10
        assert fake_oracle.calls == 10
        assert len(ledger) == 0

    def test_distance_boundary_inclusive(self, build_search):
        """A trial exactly at the tolerance is admitted."""
        search, template = build_search(search_size=1)
        context = SearchContext.create(template.start_coordinates(), seed=5)
        replay = SearchContext.create(template.start_coordinates(), seed=5)
        exact = search.sampler.sample(replay.coords, replay.rng)
        search.max_distance = exact
        assert search.trial(context, 0) is not None

    def test_persisted_files_match_records(self, build_search):
        search, template = build_search(search_size=8)
        ledger = search.run(SearchContext.create(template.start_coordinates(), seed=2))
        files = sorted(p.name for p in ledger.output_dir.glob("conformer_*.pdb"))
        assert files == sorted(r.filename for r in ledger.records)
        assert all(r.chain_coords is None for r in ledger.records)

    def test_deterministic_under_seed(self, build_search):
        a, template = build_search(search_size=12, out="a")
        b, _ = build_search(search_size=12, out="b")
        la = a.run(SearchContext.create(template.start_coordinates(), seed=42))
        lb = b.run(SearchContext.create(template.start_coordinates(), seed=42))
        assert la.summary_path.read_text() == lb.summary_path.read_text()

    def test_geometry_not_rolled_back(self, build_search):
        """Each trial starts from where the previous one ended."""
        search, template = build_search(max_distance=-1.0, search_size=1)
        context = SearchContext.create(template.start_coordinates(), seed=8)
        search.trial(context, 0)
        after_one = context.coords.copy()
        replay = SearchContext.create(template.start_coordinates(), seed=8)
        search.sampler.sample(replay.coords, replay.rng)
        np.testing.assert_array_equal(after_one, replay.coords)

    def test_progress_lines(self, build_search, caplog):
        """Progress is logged when index % interval == 0."""
        search, template = build_search(search_size=10, report_interval=4)
        with caplog.at_level(logging.INFO, logger="pnab.search"):
            search.run(SearchContext.create(template.start_coordinates(), seed=0))
        progress = [r.message for r in caplog.records if "Accepted:" in r.message]
        assert len(progress) == 3  # indices 0, 4, 8
        assert "conformer_" in progress[-1]
        assert any("Search complete" in r.message for r in caplog.records)

    def test_progress_percent_precision(self, build_search, caplog):
        """The percentage carries six significant digits."""
        search, template = build_search(search_size=3, report_interval=1)
        with caplog.at_level(logging.INFO, logger="pnab.search"):
            search.run(SearchContext.create(template.start_coordinates(), seed=0))
        progress = [r.message for r in caplog.records if "Accepted:" in r.message]
        assert progress[0].startswith("       0%\t")
        assert progress[1].startswith(" 33.3333%\t")
        assert progress[2].startswith(" 66.6667%\t")

    def test_bad_report_interval(self, build_search):
        with pytest.raises(ValueError):
            build_search(report_interval=0)
