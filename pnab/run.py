"""
pnab.run
========

Python API for the helical conformer search.

This module provides a programmatic interface to run a search without using
the CLI. Use :class:`SearchConfig` to configure the run and
:func:`run_search` to execute it.

Examples
--------
>>> from pnab.run import SearchConfig, run_search
>>> config = SearchConfig(input_path="input.dat", output_dir="out", seed=7)
>>> result = run_search(config)  # doctest: +SKIP
>>> result.best.index  # doctest: +SKIP
4211
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from datetime import datetime
from pathlib import Path

from pnab import __version__
from pnab.chain import ChainTemplate, expand_strand
from pnab.config import InputParameters, read_input
from pnab.context import SearchContext
from pnab.energy import OpenMMEnergyOracle, build_system
from pnab.ledger import ConformerLedger, ConformerRecord
from pnab.rotors import RotorList
from pnab.sampler import K_EFFECTIVE, AcceptanceSampler, ClosureDistance
from pnab.search import REPORT_INTERVAL, MonteCarloRotorSearch
from pnab.structure import load_monomers


@dataclass
class SearchConfig:
    """
    Configuration for one search run.

    Parameters
    ----------
    input_path : str
        Input file (categories and fields, see :mod:`pnab.config`).
    output_dir : str, default="."
        Directory for ``conformer_<index>.pdb``, ``energy_data.csv`` and the
        log file.
    name : str, default="pnab"
        Job name (used for the log file).
    seed : int, optional
        Overrides the ``Seed`` field of the input file. Without either, the
        run is seeded from the operating system.
    report_interval : int, default=100000
        Trials between progress lines.
    stiffness : float, default=0.59/5.15
        ``k`` of the acceptance criterion (Å^2).
    max_attempts : int, optional
        Per-rotor draw cap; ``None`` keeps drawing until acceptance.
    platform : str, optional
        OpenMM platform name.
    verbose : bool, default=True
        Whether to log progress to console.

    Examples
    --------
    >>> config = SearchConfig(input_path="input.dat", seed=1)
    >>> config.report_interval
    100000
    """

    input_path: str
    output_dir: str = "."
    name: str = "pnab"
    seed: int | None = None
    report_interval: int = REPORT_INTERVAL
    stiffness: float = K_EFFECTIVE
    max_attempts: int | None = None
    platform: str | None = None
    verbose: bool = True


@dataclass
class SearchResult:
    """
    Result of a search run.

    Attributes
    ----------
    records : list[ConformerRecord]
        Admitted conformers, best first.
    trials : int
        Trials run.
    closed : int
        Trials within the closure tolerance.
    config : SearchConfig
    parameters : InputParameters
    output_dir : Path
    summary_path : Path
        ``energy_data.csv``.
    """

    records: list[ConformerRecord]
    trials: int
    closed: int
    config: SearchConfig
    parameters: InputParameters
    output_dir: Path
    summary_path: Path

    @property
    def best(self) -> ConformerRecord | None:
        return self.records[0] if self.records else None

    @property
    def accepted(self) -> int:
        return len(self.records)


def _setup_logger(name: str, verbose: bool, directory: Path) -> logging.Logger:
    """
    Set up logging for the run.

    Handlers go on the ``pnab`` package logger so module loggers
    (``pnab.config``, ``pnab.search``, ...) reach the same log file as the
    returned ``pnab.<name>`` run logger.
    """
    package = logging.getLogger("pnab")
    package.setLevel(logging.INFO)
    for handler in list(package.handlers):
        handler.close()
    package.handlers.clear()

    # File handler
    file_handler = logging.FileHandler(directory / f"{name}_output.log", mode="w")
    file_handler.setFormatter(
        logging.Formatter(
            fmt="%(asctime)s [%(levelname)s] %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )
    )
    package.addHandler(file_handler)

    # Console handler (if verbose)
    if verbose:
        console = logging.StreamHandler()
        console.setFormatter(logging.Formatter("[%(levelname)s] %(message)s"))
        package.addHandler(console)

    return logging.getLogger(f"pnab.{name}")


def _resolve(path: str, base: Path) -> str:
    """Relative paths are taken relative to the input file's directory."""
    candidate = Path(path)
    if candidate.is_absolute():
        return path
    return str(base / candidate)


def _resolve_paths(parameters: InputParameters, base: Path) -> InputParameters:
    runtime = parameters.runtime
    parameter_file = runtime.force_field_parameter_file
    if parameter_file and (base / parameter_file).exists():
        runtime = replace(runtime, force_field_parameter_file=_resolve(parameter_file, base))
    backbone = replace(
        parameters.backbone, file_path=_resolve(parameters.backbone.file_path, base)
    )
    bases = tuple(replace(b, file_path=_resolve(b.file_path, base)) for b in parameters.bases)
    return replace(parameters, runtime=runtime, backbone=backbone, bases=bases)


def run_search(config: SearchConfig) -> SearchResult:
    """
    Run the Monte Carlo helical conformer search.

    Parameters
    ----------
    config : SearchConfig
        Configuration object specifying run parameters.

    Returns
    -------
    SearchResult
        Admitted conformers and run statistics.

    Raises
    ------
    pnab.config.ConfigError
        If the input file is unreadable or invalid.
    pnab.structure.StructureError
        If the fragments cannot form the requested chain.
    OSError
        If output files cannot be written.
    """
    output_dir = Path(config.output_dir)
    output_dir.mkdir(parents=True, exist_ok=True)
    logger = _setup_logger(config.name, config.verbose, output_dir)

    logger.info("pnab - helical conformer search")
    logger.info("Active version: %s", __version__)
    logger.info("Job: %s", config.name)
    logger.info("Input file: %s", config.input_path)

    parameters = _resolve_paths(
        read_input(config.input_path), Path(config.input_path).resolve().parent
    )
    logger.info("Input parameters:")
    for line in parameters.describe():
        logger.info("%s", line)
    runtime = parameters.runtime
    helical = runtime.helical_parameters()

    strand = expand_strand(runtime.strand, runtime.chain_length)
    pairs = parameters.pairs()
    tokens = list(strand)
    if runtime.is_double_stranded:
        tokens += [pairs.get(token, token) for token in strand]
    monomers = load_monomers(
        parameters.backbone,
        parameters.bases,
        tokens,
        runtime.base_to_backbone_bond_length,
    )
    template = ChainTemplate(
        monomers,
        strand,
        helical,
        double_stranded=runtime.is_double_stranded,
        pairs=pairs,
    )
    logger.info("Strand: %s (double stranded: %s)", ", ".join(strand), runtime.is_double_stranded)

    rotors = RotorList.from_monomer(template.sampled)
    logger.info("Rotatable bonds in monomer: %d", len(rotors))
    if len(rotors) == 0:
        logger.warning("Monomer has no rotatable bonds; no trial can close.")

    logger.info("Force field: %s", ", ".join(runtime.force_field_files))
    system = build_system(template.topology, runtime.force_field_files)
    oracle = OpenMMEnergyOracle(
        template.topology,
        system,
        rotor_bonds=template.map_bonds(rotors.bonds),
        platform=config.platform,
    )

    sampler = AcceptanceSampler(
        rotors,
        ClosureDistance(template.sampled.head, template.sampled.tail, helical),
        stiffness=config.stiffness,
        max_attempts=config.max_attempts,
    )
    ledger = ConformerLedger(output_dir, template.topology)
    search = MonteCarloRotorSearch(
        template,
        sampler,
        oracle,
        runtime.energy_filter(),
        ledger,
        max_distance=runtime.max_distance,
        search_size=runtime.search_size,
        report_interval=config.report_interval,
        logger=logger,
    )

    seed = config.seed if config.seed is not None else runtime.seed
    logger.info("Seed: %s", "from OS entropy" if seed is None else seed)
    context = SearchContext.create(template.start_coordinates(), seed)

    logger.info("Start time: %s", datetime.now())
    search.run(context)
    logger.info("End time: %s", datetime.now())
    if ledger.best is not None:
        logger.info(
            "Best conformer: %s (energy %g kcal/mol, distance %g A)",
            ledger.best.filename,
            ledger.best.total_energy,
            ledger.best.distance,
        )
    logger.info("Summary saved to: %s", ledger.summary_path)

    return SearchResult(
        records=list(ledger.records),
        trials=context.trials,
        closed=context.closed,
        config=config,
        parameters=parameters,
        output_dir=output_dir,
        summary_path=ledger.summary_path,
    )
