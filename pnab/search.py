"""
pnab.search
===========

Monte Carlo rotor search driver.

One run goes through four states::

    INITIALIZING -> RUNNING -> (REPORTING -> RUNNING)* -> COMPLETE

Every trial perturbs each rotor of the monomer in turn (see
:mod:`pnab.sampler`). A trial whose closure distance is within
``max_distance`` is grown into a full chain, scored by the energy oracle and,
if it passes the energy filter, admitted to the ledger. The monomer geometry
is never rolled back: the next trial starts from wherever the last one ended.
"""

from __future__ import annotations

import logging
from enum import Enum
from typing import Protocol

import numpy as np

from pnab.chain import ChainTemplate
from pnab.context import SearchContext
from pnab.energy import EnergyFilter, EnergyTerms
from pnab.ledger import ConformerLedger, ConformerRecord
from pnab.sampler import AcceptanceSampler

REPORT_INTERVAL = 100_000


class EnergyOracle(Protocol):
    def evaluate(self, coords: np.ndarray) -> EnergyTerms: ...


class SearchState(Enum):
    INITIALIZING = "initializing"
    RUNNING = "running"
    REPORTING = "reporting"
    COMPLETE = "complete"


class MonteCarloRotorSearch:
    """
    Run ``search_size`` trials and fill a :class:`~pnab.ledger.ConformerLedger`.

    Parameters
    ----------
    template : ChainTemplate
        Grows a chain from the sampled monomer.
    sampler : AcceptanceSampler
        Per-trial rotor moves.
    oracle : EnergyOracle
        Anything with ``evaluate(chain_coords) -> EnergyTerms``.
    energy_filter : EnergyFilter
    ledger : ConformerLedger
    max_distance : float
        Closure tolerance (Å); admission needs ``distance <= max_distance``.
    search_size : int
        Number of trials.
    report_interval : int, default=100000
        Log progress when ``index % report_interval == 0``.
    logger : logging.Logger, optional
        Destination of progress lines (module logger by default).
    """

    def __init__(
        self,
        template: ChainTemplate,
        sampler: AcceptanceSampler,
        oracle: EnergyOracle,
        energy_filter: EnergyFilter,
        ledger: ConformerLedger,
        max_distance: float,
        search_size: int,
        report_interval: int = REPORT_INTERVAL,
        logger: logging.Logger | None = None,
    ):
        if report_interval < 1:
            raise ValueError("report_interval must be at least 1")
        self.template = template
        self.sampler = sampler
        self.oracle = oracle
        self.energy_filter = energy_filter
        self.ledger = ledger
        self.max_distance = max_distance
        self.search_size = search_size
        self.report_interval = report_interval
        self.logger = logger or logging.getLogger(__name__)
        self.state = SearchState.INITIALIZING

    def trial(self, context: SearchContext, index: int) -> ConformerRecord | None:
        """
        Run one trial; return the admitted record, if any.
        """
        distance = self.sampler.sample(context.coords, context.rng)
        context.trials += 1
        if not distance <= self.max_distance:
            return None
        context.closed += 1

        chain_coords = self.template.generate_coordinates(context.coords)
        energies = self.oracle.evaluate(chain_coords)
        if not self.energy_filter.passes(energies):
            return None

        record = ConformerRecord(
            index=index,
            distance=distance,
            energies=energies,
            monomer_coords=context.coords.copy(),
            chain_coords=chain_coords,
        )
        self.ledger.admit(record)
        context.accepted += 1
        return record

    def report(self, context: SearchContext, index: int) -> None:
        self.state = SearchState.REPORTING
        percent = 100.0 * index / self.search_size if self.search_size else 100.0
        best = self.ledger.best
        if best is None:
            self.logger.info("%8g%%\tAccepted: %8d", percent, context.accepted)
        else:
            self.logger.info(
                "%8g%%\tAccepted: %8d, Best Conformer (distance, energy): "
                "(%10g, %10g) -- %s",
                percent,
                context.accepted,
                best.distance,
                best.total_energy,
                best.filename,
            )
        self.state = SearchState.RUNNING

    def run(self, context: SearchContext) -> ConformerLedger:
        """
        Execute every trial. Exceptions from the oracle or from writing files
        propagate unchanged; the ledger keeps what was admitted so far.
        """
        self.state = SearchState.INITIALIZING
        self.ledger.write_summary()
        self.logger.info(
            "Monte Carlo search: %d trials, %d rotors, max distance %g A",
            self.search_size,
            len(self.sampler.rotors),
            self.max_distance,
        )
        self.state = SearchState.RUNNING
        for index in range(self.search_size):
            self.trial(context, index)
            if index % self.report_interval == 0:
                self.report(context, index)
        self.state = SearchState.COMPLETE
        self.logger.info(
            "Search complete: %d trials, %d closed, %d accepted",
            context.trials,
            context.closed,
            context.accepted,
        )
        return self.ledger
