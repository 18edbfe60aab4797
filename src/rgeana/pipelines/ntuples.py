from __future__ import annotations

from pathlib import Path
from typing import Optional

from tqdm import tqdm

from rgeana.config.load import load_config, snapshot_config_toml
from rgeana.errors import InvalidAuxTrackerLayers, MissingAuxTrackerBank
from rgeana.filters.fusion import AUX_TRACKER_LAYER_OPTIONS, FusionDiagnostics, FusionEngine
from rgeana.io.banks import FMT_TRACKS, BankSet, EventContext
from rgeana.io.calibration import calibration_path, load_run_calibration
from rgeana.io.ntuple_store import NtupleWriter, ntuple_filename
from rgeana.io.runinfo import beam_energy as lookup_beam_energy
from rgeana.io.runinfo import run_number_from_filename
from rgeana.io.sources import make_source
from rgeana.physics.classifier import Classifier
from rgeana.physics.kinematics import dis_variables, momentum, particle_row
from rgeana.physics.pid import PION_MINUS, PION_PLUS, get_name
from rgeana.physics.sampling_fraction import make_conformity_test


def run_make_ntuples(
    cfg_path: str,
    *,
    aux_tracker_layers: Optional[int] = None,
    fiducial_cut: Optional[bool] = None,
    n_events: Optional[int] = None,
    input_path: Optional[str] = None,
) -> Path:
    """
    Fuse, classify and write particle ntuples for one input file.

    CLI flags override the corresponding config fields when not None. Only
    events with a trigger electron are written: one row for the trigger and
    one per other classified particle.

    Returns
    -------
    Path to the written HDF5 ntuple file.
    """
    cfg = load_config(cfg_path)

    # ---- apply CLI overrides on top of TOML ----
    if aux_tracker_layers is not None:
        if aux_tracker_layers not in AUX_TRACKER_LAYER_OPTIONS:
            raise InvalidAuxTrackerLayers(aux_tracker_layers)
        cfg.fusion.aux_tracker_layers = aux_tracker_layers
    if fiducial_cut is not None:
        cfg.fusion.fiducial_cut = fiducial_cut
    if n_events is not None:
        cfg.run.n_events = n_events
    if input_path is not None:
        cfg.io.input_path = input_path

    diag_level = cfg.run.diagnostics_level
    layers = cfg.fusion.aux_tracker_layers

    run_no = cfg.run.run_number if cfg.run.run_number is not None else run_number_from_filename(cfg.io.input_path)
    e_beam = cfg.run.beam_energy if cfg.run.beam_energy is not None else lookup_beam_energy(run_no)

    # Calibration before any per-event work
    calib = load_run_calibration(cfg.io.data_dir, run_no)
    if diag_level >= 1:
        print(f"[calib] Loaded {calibration_path(cfg.io.data_dir, run_no)}")

    classifier = Classifier(calib, make_conformity_test(cfg.fusion.sf_test, cfg.fusion.sf_n_sigma))
    diagnostics = FusionDiagnostics()
    engine = FusionEngine(classifier, aux_tracker_layers=layers, fiducial_cut=cfg.fusion.fiducial_cut,
                          diagnostics=diagnostics)

    out_path = Path(cfg.io.output_dir) / ntuple_filename(run_no, layers)
    attrs = {
        "run_no": run_no,
        "beam_energy": e_beam,
        "aux_tracker_layers": layers,
        "fiducial_cut": cfg.fusion.fiducial_cut,
    }

    with make_source(cfg.io, n_events=cfg.run.n_events) as source:
        if layers > 0 and not source.has_bank(FMT_TRACKS):
            raise MissingAuxTrackerBank(FMT_TRACKS)

        n = source.n_events if cfg.run.n_events is None else min(cfg.run.n_events, source.n_events)
        if diag_level >= 1:
            print(f"[ntuples] run={run_no} beam_energy={e_beam} aux_tracker_layers={layers} "
                  f"fiducial_cut={cfg.fusion.fiducial_cut}")
            print(f"[ntuples] Processing {n} events from {cfg.io.input_path}")

        banks = BankSet.empty()
        with NtupleWriter(out_path, snapshot_config_toml(cfg_path), attrs) as writer:
            for ev in tqdm(range(n), desc="events", unit="ev", disable=not cfg.run.progress):
                banks.advance(EventContext(source, ev), include_aux=layers > 0)
                result = engine.process_event(banks, ev)
                trigger = result.trigger
                if trigger is None:
                    continue

                dis = dis_variables(e_beam, momentum(trigger))
                writer.append(particle_row(trigger, trigger, run_no, ev, e_beam, dis))
                diagnostics.count_species(trigger.pid)
                for part in result.others():
                    writer.append(particle_row(part, trigger, run_no, ev, e_beam, dis))
                    diagnostics.count_species(part.pid)

                if diag_level >= 2 and ev < 5:
                    print(f"[ntuples] event {ev}: {len(result.particles)} particles, "
                          f"trigger track row {trigger.track_pos}")
            n_rows = writer.n_rows

    # Species counters catch broken runs early
    if diag_level >= 1:
        print(f"[ntuples] e-  found: {diagnostics.events_with_trigger}")
        print(f"[ntuples] pi+ found: {diagnostics.species.get(get_name(PION_PLUS), 0)}")
        print(f"[ntuples] pi- found: {diagnostics.species.get(get_name(PION_MINUS), 0)}")
        print(f"[ntuples] skipped candidates: {diagnostics.reasons}")
        print(f"[ntuples] Wrote {n_rows} rows to {out_path}")
    return out_path
