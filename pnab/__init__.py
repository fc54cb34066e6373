"""
pnab - helical polymer backbone search
======================================

Monte Carlo search for backbone conformations of a repeating monomer that
close a helix, filtered and ranked by force-field energy.

Public API
----------
run_search : Run the search.
SearchConfig : Configuration for a search run.
SearchResult : Result of a search run.

Examples
--------
>>> from pnab import run_search, SearchConfig
>>> config = SearchConfig(input_path="input.dat", seed=42)
>>> result = run_search(config)  # doctest: +SKIP
"""

__version__ = "1.0.0"

from pnab.run import SearchConfig, SearchResult, run_search

__all__ = ["run_search", "SearchConfig", "SearchResult", "__version__"]
