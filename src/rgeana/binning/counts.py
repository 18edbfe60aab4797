"""
Dense 5D count tables and the acceptance accumulation pass.

Entry points
------------
- class CountTable: flat int64 counts over the product of the five axis bin counts.
- function discover_species(thrown): species codes present in the thrown sample.
- function count_entries(sample, spec, species, edges, cuts): one (species, sample kind) pass.
- function build_acceptance(thrown, simulated, edges, cuts): every species, both kinds.
- function acceptance_ratio(result, pid): simulated / thrown per bin.

Filter stages of count_entries, in order
----------------------------------------
1. species match, |pid - code| <= 0.5
2. reject rows where any of the five binning variables is exactly 0
3. Q2 >= q2_min, and W2 >= w2_min (simulated) or W >= sqrt(w2_min) (thrown)
4. phi_PQ degrees -> radians when the sample is flagged as degree-valued
5. 5-axis bin lookup; a row out of range on any axis is discarded
"""
from __future__ import annotations
from dataclasses import dataclass, field
from typing import Dict, List, Literal, Mapping, Optional, Sequence
import math

import numpy as np
import pandas as pd
from tqdm import tqdm

from rgeana.config.schemas import CutsCfg
from rgeana.errors import SampleError
from .edges import AXES, OUT_OF_RANGE, BinEdges, find_pos_array

SampleKind = Literal["thrown", "simulated"]
SPECIES_TOLERANCE = 0.5


# ---------------------------------------------------------------------------
# Count table
# ---------------------------------------------------------------------------

class CountTable:
    """
    Dense counts for one (species, sample kind) pair.

    Stored as a flat int64 array in row-major order over `shape`; the shape is
    validated once here and every index is bounds-checked against it.
    """

    def __init__(self, shape: Sequence[int], data: Optional[np.ndarray] = None):
        shape = tuple(int(n) for n in shape)
        if len(shape) != len(AXES) or any(n < 1 for n in shape):
            raise ValueError(f"CountTable shape must be {len(AXES)} positive bin counts, got {shape}.")
        self.shape = shape
        self.size = int(np.prod(shape))
        if data is None:
            self._data = np.zeros(self.size, dtype=np.int64)
        else:
            data = np.asarray(data, dtype=np.int64).reshape(-1)
            if data.size != self.size:
                raise ValueError(f"CountTable data has {data.size} cells, expected {self.size}.")
            if np.any(data < 0):
                raise ValueError("CountTable data must be non-negative.")
            self._data = data.copy()

    def flat_index(self, idx: Sequence[int]) -> int:
        idx = tuple(int(i) for i in idx)
        if len(idx) != len(self.shape) or any(i < 0 or i >= n for i, n in zip(idx, self.shape)):
            raise IndexError(f"Bin index {idx} is outside a count table of shape {self.shape}.")
        return int(np.ravel_multi_index(idx, self.shape))

    def increment(self, idx: Sequence[int], n: int = 1) -> None:
        if n < 0:
            raise ValueError("Counts can only increase.")
        self._data[self.flat_index(idx)] += n

    def add_many(self, idx: np.ndarray) -> None:
        """Increment one cell per row of an (N, 5) index array."""
        idx = np.asarray(idx, dtype=np.int64).reshape(-1, len(self.shape))
        if idx.shape[0] == 0:
            return
        if np.any(idx < 0) or np.any(idx >= np.asarray(self.shape)):
            raise IndexError(f"Bin indices outside a count table of shape {self.shape}.")
        flat = np.ravel_multi_index(tuple(idx.T), self.shape)
        self._data += np.bincount(flat, minlength=self.size)

    def merge(self, other: "CountTable") -> "CountTable":
        """Element-wise add another table of the same shape (in place)."""
        if other.shape != self.shape:
            raise ValueError(f"Cannot merge count tables of shapes {self.shape} and {other.shape}.")
        self._data += other._data
        return self

    def __add__(self, other: "CountTable") -> "CountTable":
        return CountTable(self.shape, self._data).merge(other)

    def __getitem__(self, idx: Sequence[int]) -> int:
        return int(self._data[self.flat_index(idx)])

    def __eq__(self, other) -> bool:
        if not isinstance(other, CountTable):
            return NotImplemented
        return self.shape == other.shape and np.array_equal(self._data, other._data)

    def total(self) -> int:
        return int(self._data.sum())

    def flat(self) -> np.ndarray:
        return self._data.copy()

    def as_array(self) -> np.ndarray:
        return self._data.reshape(self.shape).copy()

    def __repr__(self) -> str:
        return f"CountTable(shape={self.shape}, total={self.total()})"


# ---------------------------------------------------------------------------
# Samples
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class SampleSpec:
    """
    How to read one ntuple sample.

    columns maps logical names (pid, q2, nu, zh, pt2, phipq, w2, w) to the
    sample's column names when they differ.
    """
    kind: SampleKind
    phi_degrees: bool = False
    columns: Mapping[str, str] = field(default_factory=dict)

    def column(self, logical: str) -> str:
        return self.columns.get(logical, logical)

    @property
    def cut_variable(self) -> str:
        return "w2" if self.kind == "simulated" else "w"

    def required(self) -> List[str]:
        return [self.column("pid"), *(self.column(a) for a in AXES), self.column(self.cut_variable)]


def _check_columns(sample: pd.DataFrame, spec: SampleSpec) -> None:
    missing = [c for c in spec.required() if c not in sample.columns]
    if missing:
        raise SampleError(f"The {spec.kind} sample is missing column(s) {', '.join(missing)}.")


@dataclass
class BinningDiagnostics:
    rows_seen: int = 0
    species_rejected: int = 0
    zero_rejected: int = 0
    cut_rejected: int = 0
    out_of_range: int = 0
    counted: int = 0
    reasons: Dict[str, int] = field(default_factory=dict)

    def inc(self, reason: str, n: int = 1) -> None:
        self.reasons[reason] = self.reasons.get(reason, 0) + n


def discover_species(thrown: pd.DataFrame, column: str = "pid") -> List[int]:
    """Distinct species codes (rounded to the nearest integer) in order of first appearance."""
    if column not in thrown.columns:
        raise SampleError(f"The thrown sample is missing column {column}.")
    codes = thrown[column].to_numpy(dtype=np.float64)
    codes = codes[np.isfinite(codes)]
    return [int(c) for c in pd.unique(np.rint(codes))]


def count_entries(sample: pd.DataFrame, spec: SampleSpec, species: int, edges: BinEdges,
                  cuts: CutsCfg, diagnostics: Optional[BinningDiagnostics] = None) -> CountTable:
    """Accumulate one (species, sample kind) count table; see the module docstring for the stages."""
    _check_columns(sample, spec)
    diag = diagnostics if diagnostics is not None else BinningDiagnostics()
    table = CountTable(edges.shape)
    n = len(sample)
    diag.rows_seen += n

    # 1. species
    pid = sample[spec.column("pid")].to_numpy(dtype=np.float64)
    keep = np.abs(pid - species) <= SPECIES_TOLERANCE
    diag.species_rejected += int(n - keep.sum())

    # 2. exact zeros
    values = np.column_stack([sample[spec.column(a)].to_numpy(dtype=np.float64) for a in AXES])
    zero = np.any(values == 0.0, axis=1) & keep
    diag.zero_rejected += int(zero.sum())
    diag.inc("zero_variable", int(zero.sum()))
    keep &= ~zero

    # 3. Q2 and W2 / W
    q2 = values[:, AXES.index("q2")]
    cut_var = sample[spec.column(spec.cut_variable)].to_numpy(dtype=np.float64)
    w_min = cuts.w2_min if spec.kind == "simulated" else math.sqrt(cuts.w2_min)
    passed = (q2 >= cuts.q2_min) & (cut_var >= w_min)
    failed = keep & ~passed
    diag.cut_rejected += int(failed.sum())
    diag.inc("q2_w_cut", int(failed.sum()))
    keep &= passed

    # 4. phi units
    if spec.phi_degrees:
        values = values.copy()
        values[:, AXES.index("phipq")] = np.deg2rad(values[:, AXES.index("phipq")])

    # 5. bin lookup
    sel = values[keep]
    idx = np.column_stack([find_pos_array(sel[:, k], e) for k, e in enumerate(edges.edges)])
    inside = np.all(idx != OUT_OF_RANGE, axis=1)
    diag.out_of_range += int((~inside).sum())
    diag.inc("out_of_range", int((~inside).sum()))

    table.add_many(idx[inside])
    diag.counted += int(inside.sum())
    return table


# ---------------------------------------------------------------------------
# Full acceptance pass
# ---------------------------------------------------------------------------

@dataclass
class AcceptanceResult:
    edges: BinEdges
    species: List[int]
    thrown: Dict[int, CountTable] = field(default_factory=dict)
    simulated: Dict[int, CountTable] = field(default_factory=dict)
    diagnostics: Dict[str, BinningDiagnostics] = field(default_factory=dict)


def build_acceptance(thrown: pd.DataFrame, simulated: pd.DataFrame, edges: BinEdges, cuts: CutsCfg,
                     thrown_spec: Optional[SampleSpec] = None, simulated_spec: Optional[SampleSpec] = None,
                     progress: bool = False) -> AcceptanceResult:
    """Discover species in the thrown sample and count both samples once per species."""
    thrown_spec = thrown_spec or SampleSpec("thrown")
    simulated_spec = simulated_spec or SampleSpec("simulated")
    _check_columns(thrown, thrown_spec)
    _check_columns(simulated, simulated_spec)

    species = discover_species(thrown, thrown_spec.column("pid"))
    result = AcceptanceResult(
        edges=edges,
        species=species,
        diagnostics={"thrown": BinningDiagnostics(), "simulated": BinningDiagnostics()},
    )
    for code in tqdm(species, desc="species", disable=not progress):
        result.thrown[code] = count_entries(thrown, thrown_spec, code, edges, cuts,
                                            result.diagnostics["thrown"])
        result.simulated[code] = count_entries(simulated, simulated_spec, code, edges, cuts,
                                               result.diagnostics["simulated"])
    return result


def acceptance_ratio(result: AcceptanceResult, pid: int) -> np.ndarray:
    """Simulated / thrown counts per bin, NaN where nothing was thrown."""
    thrown = result.thrown[pid].as_array().astype(np.float64)
    sim = result.simulated[pid].as_array().astype(np.float64)
    out = np.full(thrown.shape, np.nan)
    np.divide(sim, thrown, out=out, where=thrown > 0)
    return out
