# examples/monomer_rotors.py

import numpy as np

from pnab.config import read_input
from pnab.rotors import RotorList
from pnab.sampler import AcceptanceSampler, ClosureDistance
from pnab.structure import load_monomers

params = read_input("input.dat")
runtime = params.runtime
helical = runtime.helical_parameters()

# Assemble the first base of the strand onto the backbone
monomers = load_monomers(params.backbone, params.bases, runtime.strand[:1])
monomer = next(iter(monomers.values()))

rotors = RotorList.from_monomer(monomer)
print("Rotatable bonds:", [rotor.bond for rotor in rotors])

# A few trials of the rotor sampler, without the energy step
closure = ClosureDistance(monomer.head, monomer.tail, helical)
sampler = AcceptanceSampler(rotors, closure)
coords = helical.place(monomer.positions)
rng = np.random.default_rng(0)
for trial in range(5):
    print(f"Trial {trial}: closure distance {sampler.sample(coords, rng):.3f} A")
