"""
Sampling fraction calibration files.

One text file per run, `sf_params_<run:06d>.txt` (simulation runs share
`sf_params_mc.txt`), holding NSECTORS rows of 2*NSFPARAMS numbers: the four
mean-curve parameters followed by the four width-curve parameters.
"""
from __future__ import annotations
from pathlib import Path

import numpy as np

from rgeana.errors import BadCalibrationFile, NoCalibrationData
from rgeana.io.runinfo import is_simulation
from rgeana.physics.sampling_fraction import NSECTORS, NSFPARAMS

SHAPE = (NSECTORS, NSFPARAMS, 2)


def calibration_path(data_dir: str | Path, run: int) -> Path:
    name = "sf_params_mc.txt" if is_simulation(run) else f"sf_params_{run:06d}.txt"
    return Path(data_dir) / name


def load_sf_params(path: str | Path, run: int | None = None) -> np.ndarray:
    """
    Read a sampling fraction file into a (NSECTORS, NSFPARAMS, 2) float64 array.

    Raises NoCalibrationData if the file does not exist and BadCalibrationFile
    if it cannot be parsed into the expected shape.
    """
    path = Path(path)
    if not path.is_file():
        raise NoCalibrationData(-1 if run is None else run, str(path))
    try:
        raw = np.loadtxt(path, dtype=np.float64, ndmin=2)
    except ValueError as e:
        raise BadCalibrationFile(f"Sampling fraction file {path} is not numeric: {e}") from e
    if raw.shape != (NSECTORS, 2 * NSFPARAMS):
        raise BadCalibrationFile(
            f"Sampling fraction file {path} has shape {raw.shape}, expected ({NSECTORS}, {2 * NSFPARAMS})."
        )
    if not np.all(np.isfinite(raw)):
        raise BadCalibrationFile(f"Sampling fraction file {path} contains non-finite values.")
    # columns: mean a,b,c,d then width a,b,c,d
    return np.stack([raw[:, :NSFPARAMS], raw[:, NSFPARAMS:]], axis=-1)


def load_run_calibration(data_dir: str | Path, run: int) -> np.ndarray:
    return load_sf_params(calibration_path(data_dir, run), run=run)


def write_sf_params(path: str | Path, params: np.ndarray) -> Path:
    params = np.asarray(params, dtype=np.float64)
    if params.shape != SHAPE:
        raise BadCalibrationFile(f"Sampling fraction parameters have shape {params.shape}, expected {SHAPE}.")
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    flat = np.concatenate([params[..., 0], params[..., 1]], axis=1)
    np.savetxt(path, flat, fmt="%.12g")
    return path
