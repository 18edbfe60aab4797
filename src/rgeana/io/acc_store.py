"""
Text serialization of acceptance count tables.

File layout (one record per line, whitespace-separated)
-------------------------------------------------------
  nq2 nnu nzh npt2 nphipq          bin counts per axis (AXES order)
  <q2 edges>                       one line per axis, AXES order
  <nu edges>
  <zh edges>
  <pt2 edges>
  <phipq edges>
  n_species
  <species codes>
  then per species, in the order above:
  <thrown counts>                  flattened row-major over the 5 axes
  <simulated counts>
"""
from __future__ import annotations
from pathlib import Path
from typing import List

import numpy as np

from rgeana.binning.counts import AcceptanceResult, CountTable
from rgeana.binning.edges import AXES, BinEdges
from rgeana.errors import BadAcceptanceFile, ConfigurationError, OutputExists


def _fmt_floats(values) -> str:
    return " ".join(f"{float(v):.17g}" for v in values)


def _fmt_ints(values) -> str:
    return " ".join(str(int(v)) for v in values)


def write_acc_corr(path: str | Path, result: AcceptanceResult, overwrite: bool = False) -> Path:
    path = Path(path)
    if path.exists() and not overwrite:
        raise OutputExists(str(path))
    path.parent.mkdir(parents=True, exist_ok=True)

    lines: List[str] = [_fmt_ints(result.edges.shape)]
    lines += [_fmt_floats(e) for e in result.edges.edges]
    lines.append(str(len(result.species)))
    lines.append(_fmt_ints(result.species))
    for code in result.species:
        lines.append(_fmt_ints(result.thrown[code].flat()))
        lines.append(_fmt_ints(result.simulated[code].flat()))
    path.write_text("\n".join(lines) + "\n")
    return path


def read_acc_corr(path: str | Path) -> AcceptanceResult:
    lines = Path(path).read_text().splitlines()
    try:
        shape = tuple(int(x) for x in lines[0].split())
        if len(shape) != len(AXES):
            raise BadAcceptanceFile(f"{path}: expected {len(AXES)} bin counts, found {len(shape)}.")
        edges = BinEdges.from_mapping({
            axis: [float(x) for x in lines[1 + k].split()] for k, axis in enumerate(AXES)
        })
        if edges.shape != shape:
            raise BadAcceptanceFile(f"{path}: bin counts {shape} do not match the edges {edges.shape}.")
        pos = 1 + len(AXES)
        n_species = int(lines[pos])
        species = [int(x) for x in lines[pos + 1].split()] if n_species else []
        if len(species) != n_species:
            raise BadAcceptanceFile(f"{path}: expected {n_species} species codes, found {len(species)}.")
        pos += 2
        result = AcceptanceResult(edges=edges, species=species)
        for code in species:
            result.thrown[code] = CountTable(shape, np.array(lines[pos].split(), dtype=np.int64))
            result.simulated[code] = CountTable(shape, np.array(lines[pos + 1].split(), dtype=np.int64))
            pos += 2
    except (IndexError, ValueError, ConfigurationError) as e:
        raise BadAcceptanceFile(f"{path}: malformed acceptance file ({e}).") from e
    return result
