import math

import numpy as np
import pytest
from typer.testing import CliRunner

from rgeana.cli.main import app
from rgeana.errors import InvalidCalorimeterLayer, MissingAuxTrackerBank, NoCalibrationData, OutputExists
from rgeana.io.acc_store import read_acc_corr
from rgeana.io.banks import REC_CALORIMETER
from rgeana.io.calibration import calibration_path, write_sf_params
from rgeana.io.ntuple_store import NtupleWriter, read_ntuple_attrs, read_ntuples
from rgeana.io.sources import write_hdf5_banks
from rgeana.pipelines.acceptance import run_acc_corr
from rgeana.pipelines.ntuples import run_make_ntuples
from rgeana.physics.pid import ELECTRON, PION_MINUS, PION_PLUS

from bankdata import CALIB, dis_event, event

EDGES_TOML = """
[acceptance.edges]
q2    = [1.0, 2.0, 4.0]
nu    = [2.0, 5.0, 9.0]
zh    = [0.0, 0.5, 1.0]
pt2   = [0.0, 0.5, 1.0]
phipq = [-3.1416, 0.0, 3.1416]
"""


def _setup_run(tmp_path, with_calibration=True, events=None):
    data = tmp_path / "data"
    out = tmp_path / "root_io"
    events = events or [
        dis_event(),
        dis_event(e_status=2110),                 # no trigger
        event(tracks=[dict(pindex=0)]),           # empty particle bank
        dis_event(second_electron=True),
    ]
    inp = write_hdf5_banks(tmp_path / "012016.h5", events)
    if with_calibration:
        write_sf_params(calibration_path(data, 12016), CALIB)

    cfg = tmp_path / "run.toml"
    cfg.write_text(f"""
[run]
diagnostics_level = 0
progress = false

[io]
input_path = "{inp.as_posix()}"
input_format = "hdf5"
output_dir = "{out.as_posix()}"
data_dir = "{data.as_posix()}"
""")
    return cfg


def test_make_ntuples_end_to_end(tmp_path):
    cfg = _setup_run(tmp_path)
    path = run_make_ntuples(str(cfg))
    assert path.name == "ntuples_dc_012016.h5"

    df = read_ntuples(path)
    # event 0: e-, pi+, pi-; event 3: e-, pi+, pi-, second e-
    assert df["event_no"].tolist() == [0, 0, 0, 3, 3, 3, 3]
    assert df["pid"].tolist() == [ELECTRON, PION_PLUS, PION_MINUS, ELECTRON, PION_PLUS, PION_MINUS, ELECTRON]
    assert (df["run_no"] == 12016).all()
    assert df["beam_energy"].iloc[0] == pytest.approx(10.3894)
    assert df["dtof"].iloc[0] == 0.0
    assert df["dtof"].iloc[1] == pytest.approx(4.0)
    assert np.isinf(df["dtof"].iloc[2])
    assert df["zh"].iloc[0] == 0.0 and df["zh"].iloc[1] > 0.0

    attrs = read_ntuple_attrs(path)
    assert attrs["run_no"] == 12016
    assert "[io]" in attrs["config_text"]


def test_make_ntuples_event_cap(tmp_path):
    cfg = _setup_run(tmp_path)
    df = read_ntuples(run_make_ntuples(str(cfg), n_events=1))
    assert len(df) == 3


def test_make_ntuples_needs_calibration(tmp_path):
    cfg = _setup_run(tmp_path, with_calibration=False)
    with pytest.raises(NoCalibrationData):
        run_make_ntuples(str(cfg))


def test_make_ntuples_needs_fmt_bank(tmp_path):
    cfg = _setup_run(tmp_path)
    with pytest.raises(MissingAuxTrackerBank):
        run_make_ntuples(str(cfg), aux_tracker_layers=2)


def _write_sample(path, kind, n, pid):
    cut = "w2" if kind == "simulated" else "w"
    cut_value = 5.0 if kind == "simulated" else math.sqrt(5.0)
    with NtupleWriter(path, variables=("pid", "q2", "nu", "zh", "pt2", "phipq", cut)) as w:
        for _ in range(n):
            w.append({"pid": pid, "q2": 1.5, "nu": 3.0, "zh": 0.25, "pt2": 0.75, "phipq": 1.0, cut: cut_value})


def _setup_acc(tmp_path):
    thrown = tmp_path / "thrown.h5"
    sim = tmp_path / "sim.h5"
    _write_sample(thrown, "thrown", 10, 211)
    _write_sample(sim, "simulated", 4, 211)
    out = tmp_path / "acc_corr.txt"
    cfg = tmp_path / "acc.toml"
    cfg.write_text(f"""
[run]
diagnostics_level = 0
progress = false

[acceptance]
thrown_path = "{thrown.as_posix()}"
simulated_path = "{sim.as_posix()}"
output_path = "{out.as_posix()}"
""" + EDGES_TOML)
    return cfg, out


def test_acc_corr_end_to_end(tmp_path):
    cfg, out = _setup_acc(tmp_path)
    assert run_acc_corr(str(cfg)) == out
    res = read_acc_corr(out)
    assert res.species == [211]
    assert res.thrown[211].total() == 10
    assert res.simulated[211][(0, 0, 0, 1, 1)] == 4

    with pytest.raises(OutputExists):
        run_acc_corr(str(cfg))
    run_acc_corr(str(cfg), overwrite=True)


def test_cli_reports_errors(tmp_path):
    runner = CliRunner()
    cfg, out = _setup_acc(tmp_path)
    ok = runner.invoke(app, ["acc-corr", str(cfg)])
    assert ok.exit_code == 0
    assert out.exists()

    again = runner.invoke(app, ["acc-corr", str(cfg)])
    assert again.exit_code == 1
    assert "Error." in again.output


def test_cli_make_ntuples(tmp_path):
    cfg = _setup_run(tmp_path)
    result = CliRunner().invoke(app, ["make-ntuples", str(cfg), "--n-events", "2"])
    assert result.exit_code == 0
    assert "ntuples_dc_012016.h5" in result.output


def test_make_ntuples_leaves_no_output_after_a_fatal_error(tmp_path):
    corrupt = dis_event()
    corrupt[REC_CALORIMETER]["layer"][0] = 5
    cfg = _setup_run(tmp_path, events=[dis_event(), corrupt])
    with pytest.raises(InvalidCalorimeterLayer):
        run_make_ntuples(str(cfg))
    out_dir = tmp_path / "root_io"
    assert not (out_dir / "ntuples_dc_012016.h5").exists()
    assert list(out_dir.glob("*")) == []
