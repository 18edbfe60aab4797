from __future__ import annotations

from pathlib import Path
from typing import Optional

from rgeana.binning.counts import SampleSpec, build_acceptance
from rgeana.binning.edges import BinEdges
from rgeana.config.load import load_config
from rgeana.errors import OutputExists
from rgeana.io.acc_store import write_acc_corr
from rgeana.io.ntuple_store import read_ntuples


def run_acc_corr(
    cfg_path: str,
    *,
    overwrite: bool = False,
    thrown_path: Optional[str] = None,
    simulated_path: Optional[str] = None,
    output_path: Optional[str] = None,
) -> Path:
    """
    Count thrown and simulated ntuples in the configured 5D binning and write
    the acceptance count file.

    Edges and the output path are checked before any sample is read.
    """
    cfg = load_config(cfg_path)
    acc = cfg.acceptance

    # ---- apply CLI overrides on top of TOML ----
    if thrown_path is not None:
        acc.thrown_path = thrown_path
    if simulated_path is not None:
        acc.simulated_path = simulated_path
    if output_path is not None:
        acc.output_path = output_path

    diag_level = cfg.run.diagnostics_level
    edges = BinEdges.from_mapping(acc.edges)
    out_path = Path(acc.output_path)
    if out_path.exists() and not overwrite:
        raise OutputExists(str(out_path))

    if diag_level >= 1:
        print(f"[acc] config = {cfg_path}")
        print(f"[acc] bins per axis = {edges.shape}")
        print(f"[acc] thrown={acc.thrown_path} simulated={acc.simulated_path} -> {out_path}")

    thrown_spec = SampleSpec("thrown", acc.thrown_phi_degrees, acc.thrown_columns)
    simulated_spec = SampleSpec("simulated", acc.simulated_phi_degrees, acc.simulated_columns)
    thrown = read_ntuples(acc.thrown_path)
    simulated = read_ntuples(acc.simulated_path)

    result = build_acceptance(thrown, simulated, edges, cfg.cuts, thrown_spec, simulated_spec,
                              progress=cfg.run.progress)

    if diag_level >= 1:
        print(f"[acc] species = {result.species}")
        for kind, diag in result.diagnostics.items():
            print(f"[acc] {kind}: counted={diag.counted} zero={diag.zero_rejected} "
                  f"cuts={diag.cut_rejected} out_of_range={diag.out_of_range}")
    if diag_level >= 2:
        for code in result.species:
            print(f"[acc] pid {code}: thrown={result.thrown[code].total()} "
                  f"simulated={result.simulated[code].total()}")

    write_acc_corr(out_path, result, overwrite=overwrite)
    if diag_level >= 1:
        print(f"[acc] Wrote {out_path}")
    return out_path
