from __future__ import annotations
import re
from pathlib import Path
from typing import Dict

from rgeana.errors import BadFilename, BeamEnergyUnavailable

# Beam energy [GeV] per data run.
BEAM_ENERGIES: Dict[int, float] = {
    11983: 10.3894,  # 50 nA
    12016: 10.3894,  # 250 nA
    12439: 2.1864,   # 15 nA
}

# Simulation runs are numbered 999xxx.
SIMULATION_RUN_PREFIX = 999
SIMULATION_BEAM_ENERGY = 10.3894

_RUN_RE = re.compile(r"(\d+)$")


def is_simulation(run: int) -> bool:
    return run // 1000 == SIMULATION_RUN_PREFIX


def run_number_from_filename(path: str | Path) -> int:
    """Digits right before the extension, e.g. 'root_io/012016.root' -> 12016."""
    stem = Path(path).stem
    m = _RUN_RE.search(stem)
    if m is None:
        raise BadFilename(
            f"Couldn't extract a run number from '{path}'. Input filenames should end in the run number."
        )
    return int(m.group(1))


def beam_energy(run: int) -> float:
    if run in BEAM_ENERGIES:
        return BEAM_ENERGIES[run]
    if is_simulation(run):
        return SIMULATION_BEAM_ENERGY
    raise BeamEnergyUnavailable(run)
