"""
HDF5 ntuple store.

Layout
------
/ntuples/<variable> : (N,) float32, one dataset per NTUPLE_VARIABLES entry,
                      resizable and appended in chunks
root attrs          : format_version, created_utc, software, config_text,
                      run_no, beam_energy, aux_tracker_layers, fiducial_cut, n_rows

The file is written as <name>.partial and renamed when the writer closes
cleanly.
"""
from __future__ import annotations
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Sequence

import h5py
import numpy as np
import pandas as pd

from rgeana.physics.kinematics import NTUPLE_VARIABLES

FORMAT_VERSION = "1.0"
SOFTWARE = "rgeana 0.1.0"


def ntuple_filename(run: int, aux_tracker_layers: int = 0) -> str:
    if aux_tracker_layers == 0:
        return f"ntuples_dc_{run:06d}.h5"
    return f"ntuples_fmt{aux_tracker_layers:d}_{run:06d}.h5"


class NtupleWriter:
    """
    Buffered writer of particle rows.

    Use as a context manager; rows are flushed every `chunk_size` appends and
    on close. Rows go to `<path>.partial`, which is renamed to `path` only by
    a clean close(); abort() (or leaving the context on an exception) deletes
    it, so an interrupted pass never leaves a finished-looking file.
    """

    def __init__(self, path: str | Path, config_text: str = "", attrs: Optional[Mapping[str, Any]] = None,
                 variables: Sequence[str] = NTUPLE_VARIABLES, chunk_size: int = 10000):
        self.path = Path(path)
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.variables = tuple(variables)
        self.chunk_size = int(chunk_size)
        self.n_rows = 0
        self._buf: List[Mapping[str, float]] = []

        self.partial_path = self.path.with_name(self.path.name + ".partial")
        self._f = h5py.File(self.partial_path, "w")
        self._f.attrs["format_version"] = FORMAT_VERSION
        self._f.attrs["created_utc"] = datetime.now(timezone.utc).isoformat()
        self._f.attrs["software"] = SOFTWARE
        self._f.attrs["config_text"] = config_text
        for k, v in (attrs or {}).items():
            self._f.attrs[k] = v

        grp = self._f.create_group("ntuples")
        for name in self.variables:
            grp.create_dataset(name, shape=(0,), maxshape=(None,), dtype=np.float32,
                               chunks=True, compression="gzip")

    def append(self, row: Mapping[str, float]) -> None:
        self._buf.append(row)
        if len(self._buf) >= self.chunk_size:
            self.flush()

    def extend(self, rows) -> None:
        for row in rows:
            self.append(row)

    def flush(self) -> None:
        if not self._buf:
            return
        n = len(self._buf)
        grp = self._f["ntuples"]
        for name in self.variables:
            data = np.fromiter((r[name] for r in self._buf), dtype=np.float32, count=n)
            ds = grp[name]
            ds.resize((self.n_rows + n,))
            ds[self.n_rows:] = data
        self.n_rows += n
        self._buf.clear()

    def close(self) -> None:
        if self._f is None:
            return
        self.flush()
        self._f.attrs["n_rows"] = self.n_rows
        self._f.close()
        self._f = None
        self.partial_path.replace(self.path)

    def abort(self) -> None:
        """Discard everything written so far."""
        if self._f is None:
            return
        self._buf.clear()
        self._f.close()
        self._f = None
        self.partial_path.unlink(missing_ok=True)

    def __enter__(self) -> "NtupleWriter":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        if exc_type is None:
            self.close()
        else:
            self.abort()


def read_ntuples(path: str | Path, columns: Optional[Sequence[str]] = None) -> pd.DataFrame:
    """Load /ntuples into a DataFrame (all variables unless `columns` is given)."""
    with h5py.File(path, "r") as f:
        grp = f["ntuples"]
        names = list(columns) if columns is not None else list(grp.keys())
        data: Dict[str, np.ndarray] = {name: grp[name][...] for name in names if name in grp}
    return pd.DataFrame(data)


def read_ntuple_attrs(path: str | Path) -> Dict[str, Any]:
    with h5py.File(path, "r") as f:
        return dict(f.attrs)
