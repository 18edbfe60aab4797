"""
Per-axis bin edges and bin lookup for the 5D acceptance binning.

Bins are half-open [e[i], e[i+1]) except the last one, which is closed on
both ends. Values outside [e[0], e[-1]] (and NaN) map to OUT_OF_RANGE.
"""
from __future__ import annotations
from dataclasses import dataclass
from typing import Dict, Mapping, Sequence, Tuple

import numpy as np

from rgeana.errors import BadEdges, NoEdge

AXES: Tuple[str, ...] = ("q2", "nu", "zh", "pt2", "phipq")
OUT_OF_RANGE = -1


def validate_edges(axis: str, values: Sequence[float]) -> np.ndarray:
    e = np.asarray(values, dtype=np.float64).reshape(-1)
    if e.size < 2:
        raise BadEdges(axis, f"{e.size} value(s) given, at least 2 are needed.")
    if not np.all(np.isfinite(e)):
        raise BadEdges(axis, "edges must be finite.")
    bad = np.nonzero(np.diff(e) <= 0)[0]
    if bad.size:
        i = int(bad[0])
        raise BadEdges(axis, f"edges must be strictly increasing, but e[{i}]={e[i]} >= e[{i + 1}]={e[i + 1]}.")
    return e


def find_pos(v: float, edges: Sequence[float]) -> int:
    """Bin index of `v` in `edges`, or OUT_OF_RANGE."""
    e = edges
    n = len(e)
    if not (e[0] <= v <= e[n - 1]):
        return OUT_OF_RANGE
    if v == e[n - 1]:
        return n - 2
    lo, hi = 0, n - 1
    # e[lo] <= v < e[hi]
    while hi - lo > 1:
        mid = (lo + hi) // 2
        if e[mid] <= v:
            lo = mid
        else:
            hi = mid
    return lo


def find_pos_array(values: np.ndarray, edges: np.ndarray) -> np.ndarray:
    """Vectorized find_pos over a 1D array; returns int64 indices."""
    v = np.asarray(values, dtype=np.float64)
    e = np.asarray(edges, dtype=np.float64)
    idx = np.searchsorted(e, v, side="right") - 1
    idx = np.where(v == e[-1], e.size - 2, idx)
    inside = (v >= e[0]) & (v <= e[-1])  # False for NaN
    return np.where(inside, idx, OUT_OF_RANGE).astype(np.int64)


@dataclass(frozen=True)
class BinEdges:
    """Validated edges for every axis in AXES, in AXES order."""
    edges: Tuple[np.ndarray, ...]

    @classmethod
    def from_mapping(cls, mapping: Mapping[str, Sequence[float]]) -> "BinEdges":
        for axis in AXES:
            if axis not in mapping or mapping[axis] is None:
                raise NoEdge(axis, AXES)
        return cls(tuple(validate_edges(axis, mapping[axis]) for axis in AXES))

    @property
    def shape(self) -> Tuple[int, ...]:
        return tuple(int(e.size) - 1 for e in self.edges)

    def __getitem__(self, axis: str) -> np.ndarray:
        return self.edges[AXES.index(axis)]

    def as_dict(self) -> Dict[str, list]:
        return {axis: e.tolist() for axis, e in zip(AXES, self.edges)}

    def locate(self, values: Sequence[float]) -> Tuple[int, ...]:
        """Per-axis find_pos for one 5-vector of values."""
        return tuple(find_pos(v, e) for v, e in zip(values, self.edges))
