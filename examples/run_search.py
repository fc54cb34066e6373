# examples/run_search.py

from pnab import SearchConfig, run_search

config = SearchConfig(
    input_path="input.dat",
    output_dir="pnab_output",
    name="example",
    seed=2024,
    report_interval=1000,
)
result = run_search(config)

print("Trials:", result.trials, "closed:", result.closed, "accepted:", result.accepted)
if result.best is not None:
    best = result.best
    print(
        f"Best: {best.filename}  E = {best.total_energy:g} kcal/mol, "
        f"d = {best.distance:g} A"
    )
