"""
rgeana.io.sources

Random-access event sources that hand per-event detector bank rows to the
typed banks (rgeana.io.banks).

Entry points
------------
- class InMemoryEventSource: list of {bank: {column: values}} dicts (tests, tools).
- class HDF5EventSource: CSR-ragged bank layout written by write_hdf5_banks().
- class ROOTEventSource: per-event vector-branch TTree converted from HIPO
  (branches named "<bank>::<column>"), read with uproot.
- function make_source(io_cfg): factory from the [io] TOML section.

Layout of the HDF5 bank store
-----------------------------
/banks/<bank>/event_ptr : (N_events+1,) int64   CSR pointers into the flat columns
/banks/<bank>/<column>  : (M,) typed             flat column values (M = total rows)
root attr n_events      : int
"""
from __future__ import annotations
from pathlib import Path
from typing import Any, Dict, Iterable, Mapping, Optional, Sequence, Set

import h5py
import numpy as np
import uproot

from rgeana.config.schemas import IOCfg
from rgeana.io.banks import SCHEMAS, schema_for


# ---------------------------------------------------------------------------
# Base source API
# ---------------------------------------------------------------------------

class EventSource:
    """
    Abstract event source.

    Indexable by event number; read_bank() returns the column values of one
    bank for one event, or an empty mapping when the event has no such bank.
    """

    n_events: int = 0

    def read_bank(self, bank: str, event_index: int) -> Dict[str, np.ndarray]:
        raise NotImplementedError

    def has_bank(self, bank: str) -> bool:
        raise NotImplementedError

    def __len__(self) -> int:
        return self.n_events

    def _check_index(self, event_index: int) -> None:
        if event_index < 0 or event_index >= self.n_events:
            raise IndexError(f"Event {event_index} requested from a source with {self.n_events} events.")

    def close(self) -> None:
        pass

    def __enter__(self):
        return self

    def __exit__(self, *exc) -> None:
        self.close()


# ---------------------------------------------------------------------------
# In-memory source
# ---------------------------------------------------------------------------

class InMemoryEventSource(EventSource):
    """
    Events held as plain mappings:

      [{"REC::Particle": {"pid": [...], "px": [...], ...}, "REC::Track": {...}}, ...]

    Banks missing from an event read as empty.
    """

    def __init__(self, events: Sequence[Mapping[str, Mapping[str, Sequence[Any]]]],
                 banks: Optional[Iterable[str]] = None) -> None:
        self._events = list(events)
        self.n_events = len(self._events)
        known: Set[str] = set(banks or ())
        for ev in self._events:
            known.update(ev.keys())
        self._banks = known

    def read_bank(self, bank: str, event_index: int) -> Dict[str, np.ndarray]:
        self._check_index(event_index)
        cols = self._events[event_index].get(bank)
        if not cols:
            return {}
        return {k: np.asarray(v) for k, v in cols.items()}

    def has_bank(self, bank: str) -> bool:
        return bank in self._banks


# ---------------------------------------------------------------------------
# HDF5 ragged bank store
# ---------------------------------------------------------------------------

def _flatten_bank(events: Sequence[Mapping[str, Mapping[str, Sequence[Any]]]], bank: str
                  ) -> tuple[np.ndarray, Dict[str, np.ndarray]]:
    """
    Convert one bank across events into CSR pointers + flat typed columns.

    Returns:
      event_ptr: (N_events+1,) int64
      cols: dict column -> (M,) array typed per the bank schema
    """
    schema = schema_for(bank)
    n_events = len(events)
    ptr = np.zeros(n_events + 1, dtype=np.int64)
    # First pass: count rows per event
    k = 0
    for i, ev in enumerate(events):
        cols = ev.get(bank) or {}
        nrows = len(np.asarray(cols[schema.names[0]]).reshape(-1)) if cols else 0
        k += nrows
        ptr[i + 1] = k

    # Second pass: fill flat columns
    cols_out: Dict[str, np.ndarray] = {}
    for name in schema.names:
        flat = np.empty(int(k), dtype=schema.dtype(name))
        for i, ev in enumerate(events):
            cols = ev.get(bank) or {}
            if not cols:
                continue
            flat[ptr[i]:ptr[i + 1]] = np.asarray(cols[name]).reshape(-1)
        cols_out[name] = flat
    return ptr, cols_out


def write_hdf5_banks(path: str | Path,
                     events: Sequence[Mapping[str, Mapping[str, Sequence[Any]]]],
                     banks: Optional[Iterable[str]] = None) -> Path:
    """
    Write events to the CSR-ragged HDF5 bank layout read by HDF5EventSource.

    Banks default to every registered bank that appears in at least one event.
    """
    path = Path(path)
    if banks is None:
        present: Set[str] = set()
        for ev in events:
            present.update(ev.keys())
        banks = [b for b in SCHEMAS if b in present]

    with h5py.File(path, "w") as f:
        f.attrs["n_events"] = len(events)
        root = f.require_group("banks")
        for bank in banks:
            ptr, cols = _flatten_bank(events, bank)
            g = root.require_group(bank)
            g.create_dataset("event_ptr", data=ptr, dtype="i8")
            for name, arr in cols.items():
                g.create_dataset(name, data=arr, compression="gzip")
    return path


class HDF5EventSource(EventSource):
    """Read banks from the CSR-ragged HDF5 layout (see module docstring)."""

    def __init__(self, path: str | Path) -> None:
        self.path = Path(path)
        self._f = h5py.File(self.path, "r")
        self.n_events = int(self._f.attrs.get("n_events", 0))
        self._cache: Dict[str, tuple[np.ndarray, Dict[str, np.ndarray]]] = {}

    def has_bank(self, bank: str) -> bool:
        return "banks" in self._f and bank in self._f["banks"]

    def _load(self, bank: str) -> tuple[np.ndarray, Dict[str, np.ndarray]] | None:
        if bank in self._cache:
            return self._cache[bank]
        if not self.has_bank(bank):
            return None
        g = self._f["banks"][bank]
        ptr = np.asarray(g["event_ptr"][...], dtype=np.int64)
        cols = {name: np.asarray(g[name][...]) for name in g.keys() if name != "event_ptr"}
        self._cache[bank] = (ptr, cols)
        return self._cache[bank]

    def read_bank(self, bank: str, event_index: int) -> Dict[str, np.ndarray]:
        self._check_index(event_index)
        loaded = self._load(bank)
        if loaded is None:
            return {}
        ptr, cols = loaded
        start, end = int(ptr[event_index]), int(ptr[event_index + 1])
        if end <= start:
            return {}
        return {name: arr[start:end] for name, arr in cols.items()}

    def close(self) -> None:
        if self._f:
            self._f.close()


# ---------------------------------------------------------------------------
# ROOT source
# ---------------------------------------------------------------------------

class ROOTEventSource(EventSource):
    """
    Read the per-event vector-branch TTree produced by the HIPO -> ROOT converter.

    Each TTree entry is one event; each bank column is a branch holding a
    variable-length vector. Branch names follow "<bank>::<column>"; the
    "<bank>_<column>" spelling is accepted as well.

    Parameters
    ----------
    tree : TTree key (default "Tree")
    entry_stop : optional cap on the number of entries read
    """

    def __init__(self, path: str | Path, tree: str = "Tree", entry_stop: Optional[int] = None) -> None:
        self.path = Path(path)
        self._file = uproot.open(str(self.path))
        try:
            self._tree = self._file[tree]
        except KeyError:
            first_key = next(iter(self._file.keys()))
            self._tree = self._file[first_key]
        n = int(self._tree.num_entries)
        self.n_events = n if entry_stop is None else min(n, int(entry_stop))
        self._branches = set(self._tree.keys())
        self._cache: Dict[str, Dict[str, np.ndarray]] = {}

    def _branch_name(self, bank: str, column: str) -> Optional[str]:
        for candidate in (f"{bank}::{column}", f"{bank.replace('::', '_')}_{column}"):
            if candidate in self._branches:
                return candidate
        return None

    def has_bank(self, bank: str) -> bool:
        schema = schema_for(bank)
        return self._branch_name(bank, schema.names[0]) is not None

    def _load(self, bank: str) -> Dict[str, np.ndarray]:
        if bank in self._cache:
            return self._cache[bank]
        schema = schema_for(bank)
        names = {col: self._branch_name(bank, col) for col in schema.names}
        present = [b for b in names.values() if b is not None]
        if not present:
            self._cache[bank] = {}
            return self._cache[bank]
        arrays = self._tree.arrays(present, library="np", entry_stop=self.n_events)
        # Columns missing from the file stay missing; Bank.load reports them.
        self._cache[bank] = {col: arrays[b] for col, b in names.items() if b is not None}
        return self._cache[bank]

    def read_bank(self, bank: str, event_index: int) -> Dict[str, np.ndarray]:
        self._check_index(event_index)
        cols = self._load(bank)
        if not cols:
            return {}
        out = {col: np.asarray(arr[event_index]).reshape(-1) for col, arr in cols.items()}
        if all(v.size == 0 for v in out.values()):
            return {}
        return out

    def close(self) -> None:
        self._file.close()


# ---------------------------------------------------------------------------
# Factory
# ---------------------------------------------------------------------------

def make_source(io_cfg: IOCfg, n_events: Optional[int] = None) -> EventSource:
    """
    Create an event source from the [io] config section.

    [io.adapter] keys:
      tree: TTree name for ROOT inputs (default "Tree")
    """
    fmt = io_cfg.input_format.lower()
    if fmt == "root":
        return ROOTEventSource(
            io_cfg.input_path,
            tree=io_cfg.adapter.get("tree", "Tree"),
            entry_stop=n_events,
        )
    if fmt == "hdf5":
        return HDF5EventSource(io_cfg.input_path)
    raise ValueError(f"Unknown input format: {io_cfg.input_format}")
