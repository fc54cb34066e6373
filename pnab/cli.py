#!/usr/bin/env python3
"""
Command-line entry point: ``pnab INPUT [options]``.
"""

import argparse
import logging
import sys

from pnab.config import ConfigError
from pnab.ledger import ConformerStateError
from pnab.run import SearchConfig, run_search

logger = logging.getLogger("pnab.cli")


def _console_logger() -> logging.Logger:
    if not logger.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter("[%(levelname)s] %(message)s"))
        logger.addHandler(handler)
        logger.propagate = False
    return logger


def parse_args(argv=None):
    parser = argparse.ArgumentParser(
        description="pnab - Monte Carlo search for helical polymer conformers"
    )
    parser.add_argument("input", type=str, help="Path to the input file.")
    parser.add_argument(
        "-n", "--name", type=str, default="pnab", help="Job name (log file prefix)."
    )
    parser.add_argument(
        "-o",
        "--output-dir",
        type=str,
        default=".",
        help="Directory for conformer PDB files and energy_data.csv.",
    )
    parser.add_argument(
        "-s", "--seed", type=int, default=None, help="Random seed (overrides Seed)."
    )
    parser.add_argument(
        "--max-attempts",
        type=int,
        default=None,
        help="Cap on angle draws per rotor and trial (default: unbounded).",
    )
    parser.add_argument(
        "--report-interval",
        type=int,
        default=100_000,
        help="Trials between progress lines.",
    )
    parser.add_argument(
        "--platform", type=str, default=None, help="OpenMM platform name."
    )
    parser.add_argument(
        "-q", "--quiet", action="store_true", help="Only log to the log file."
    )
    return parser.parse_args(argv)


def main(argv=None) -> int:
    args = parse_args(argv)
    config = SearchConfig(
        input_path=args.input,
        output_dir=args.output_dir,
        name=args.name,
        seed=args.seed,
        report_interval=args.report_interval,
        max_attempts=args.max_attempts,
        platform=args.platform,
        verbose=not args.quiet,
    )
    log = _console_logger()
    try:
        result = run_search(config)
    # ValueError covers StructureError and missing force-field templates
    except (ConfigError, ConformerStateError, OSError, ValueError) as e:
        log.error("%s", e)
        return 1
    except KeyboardInterrupt:
        log.error("Search interrupted.")
        return 130
    if not args.quiet:
        print(f"Accepted {result.accepted} conformers; summary: {result.summary_path}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
