"""
rgeana.io.banks

Typed columnar banks: one table per detector and event, with named columns of
fixed primitive type and one row per hit/track.

A Bank is filled for one event at a time through an explicit EventContext
(source + event index). Consumers never assume a row ordering; they scan the
full row range. Column lookup by name only happens at the source boundary;
fusion code works on the typed row views (ParticleRow, TrackRow, ...).
"""
from __future__ import annotations
from dataclasses import dataclass, fields
from enum import IntEnum
from typing import Any, Dict, Iterator, List, Mapping, Optional, Tuple, Type, TYPE_CHECKING

import numpy as np

from rgeana.errors import BankError, IndexOutOfRange, InvalidColumn, UnknownBank, UnsupportedColumnType

if TYPE_CHECKING:  # pragma: no cover
    from rgeana.io.sources import EventSource

# Bank names as written by the reconstruction.
REC_PARTICLE = "REC::Particle"
REC_TRACK = "REC::Track"
REC_CALORIMETER = "REC::Calorimeter"
REC_CHERENKOV = "REC::Cherenkov"
REC_SCINTILLATOR = "REC::Scintillator"
FMT_TRACKS = "FMT::Tracks"


class ColumnType(IntEnum):
    BYTE = 0
    SHORT = 1
    INT = 2
    FLOAT = 3


_DTYPES: Dict[ColumnType, np.dtype] = {
    ColumnType.BYTE: np.dtype(np.int8),
    ColumnType.SHORT: np.dtype(np.int16),
    ColumnType.INT: np.dtype(np.int32),
    ColumnType.FLOAT: np.dtype(np.float32),
}


# ---------------------------------------------------------------------------
# Typed row views (one struct per bank kind)
# ---------------------------------------------------------------------------

@dataclass(frozen=True, slots=True)
class ParticleRow:
    pid: int
    px: float
    py: float
    pz: float
    vx: float
    vy: float
    vz: float
    vt: float
    charge: int
    beta: float
    chi2pid: float
    status: int


@dataclass(frozen=True, slots=True)
class TrackRow:
    index: int
    pindex: int
    sector: int
    detector: int
    status: int
    q: int
    chi2: float
    NDF: int


@dataclass(frozen=True, slots=True)
class CalorimeterRow:
    index: int
    pindex: int
    detector: int
    sector: int
    layer: int
    energy: float
    time: float
    path: float


@dataclass(frozen=True, slots=True)
class CherenkovRow:
    index: int
    pindex: int
    detector: int
    sector: int
    nphe: float
    time: float
    path: float


@dataclass(frozen=True, slots=True)
class ScintillatorRow:
    index: int
    pindex: int
    detector: int
    sector: int
    layer: int
    component: int
    energy: float
    time: float
    path: float


@dataclass(frozen=True, slots=True)
class AuxTrackRow:
    """FMT (auxiliary tracker) segment attached to a DC track via `index`."""
    index: int
    sector: int
    status: int
    charge: int
    chi2: float
    NDF: int
    Vtx0_x: float
    Vtx0_y: float
    Vtx0_z: float
    p0_x: float
    p0_y: float
    p0_z: float


# ---------------------------------------------------------------------------
# Schemas
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class BankSchema:
    """Ordered (name, type) column list plus the typed row view for a bank."""
    name: str
    columns: Tuple[Tuple[str, ColumnType], ...]
    row_type: Optional[Type] = None

    def __post_init__(self) -> None:
        for col, typ in self.columns:
            if typ not in _DTYPES:
                raise UnsupportedColumnType(f"Column '{col}' of bank '{self.name}' has unsupported type {typ!r}.")
        if self.row_type is not None:
            row_fields = [f.name for f in fields(self.row_type)]
            if row_fields != list(self.names):
                raise BankError(f"Row type {self.row_type.__name__} does not match schema of '{self.name}'.")

    @property
    def names(self) -> Tuple[str, ...]:
        return tuple(c for c, _ in self.columns)

    def __contains__(self, column: str) -> bool:
        return column in self.names

    def dtype(self, column: str) -> np.dtype:
        for c, typ in self.columns:
            if c == column:
                return _DTYPES[typ]
        raise InvalidColumn(self.name, column)


B, S, I, F = ColumnType.BYTE, ColumnType.SHORT, ColumnType.INT, ColumnType.FLOAT

SCHEMAS: Dict[str, BankSchema] = {
    REC_PARTICLE: BankSchema(REC_PARTICLE, (
        ("pid", I), ("px", F), ("py", F), ("pz", F), ("vx", F), ("vy", F), ("vz", F),
        ("vt", F), ("charge", B), ("beta", F), ("chi2pid", F), ("status", S),
    ), ParticleRow),
    REC_TRACK: BankSchema(REC_TRACK, (
        ("index", S), ("pindex", S), ("sector", B), ("detector", B), ("status", S),
        ("q", B), ("chi2", F), ("NDF", S),
    ), TrackRow),
    REC_CALORIMETER: BankSchema(REC_CALORIMETER, (
        ("index", S), ("pindex", S), ("detector", B), ("sector", B), ("layer", B),
        ("energy", F), ("time", F), ("path", F),
    ), CalorimeterRow),
    REC_CHERENKOV: BankSchema(REC_CHERENKOV, (
        ("index", S), ("pindex", S), ("detector", B), ("sector", B), ("nphe", F),
        ("time", F), ("path", F),
    ), CherenkovRow),
    REC_SCINTILLATOR: BankSchema(REC_SCINTILLATOR, (
        ("index", S), ("pindex", S), ("detector", B), ("sector", B), ("layer", B),
        ("component", S), ("energy", F), ("time", F), ("path", F),
    ), ScintillatorRow),
    FMT_TRACKS: BankSchema(FMT_TRACKS, (
        ("index", S), ("sector", B), ("status", B), ("charge", B), ("chi2", F), ("NDF", I),
        ("Vtx0_x", F), ("Vtx0_y", F), ("Vtx0_z", F), ("p0_x", F), ("p0_y", F), ("p0_z", F),
    ), AuxTrackRow),
}

del B, S, I, F


def schema_for(name: str) -> BankSchema:
    try:
        return SCHEMAS[name]
    except KeyError:
        raise UnknownBank(name) from None


# ---------------------------------------------------------------------------
# Event cursor
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class EventContext:
    """Explicit cursor handed to every bank when moving to a new event."""
    source: "EventSource"
    event_index: int


# ---------------------------------------------------------------------------
# Bank
# ---------------------------------------------------------------------------

class Bank:
    """
    Rows of one detector bank for the currently loaded event.

    Parameters
    ----------
    schema : BankSchema or bank name
    """

    def __init__(self, schema: BankSchema | str) -> None:
        self.schema = schema_for(schema) if isinstance(schema, str) else schema
        self._cols: Dict[str, np.ndarray] = {
            name: np.zeros(0, dtype=self.schema.dtype(name)) for name in self.schema.names
        }
        self._nrows = 0
        self._rows: Optional[List[Any]] = None
        self._loaded_from: Optional[Tuple[int, int]] = None  # (id(source), event_index)

    @property
    def name(self) -> str:
        return self.schema.name

    @property
    def nrows(self) -> int:
        return self._nrows

    def row_count(self) -> int:
        return self._nrows

    def __len__(self) -> int:
        return self._nrows

    def __repr__(self) -> str:
        return f"Bank({self.name!r}, nrows={self._nrows})"

    # --- filling -----------------------------------------------------------

    def load(self, columns: Mapping[str, Any]) -> None:
        """
        Replace the bank contents with the given column values.

        An empty mapping loads zero rows. Otherwise every schema column must be
        present and all columns must share the same length; extra columns are
        ignored.
        """
        if not columns:
            new = {name: np.zeros(0, dtype=self.schema.dtype(name)) for name in self.schema.names}
            n = 0
        else:
            new = {}
            n = None
            for name in self.schema.names:
                if name not in columns:
                    raise InvalidColumn(self.name, name)
                raw = np.asarray(columns[name]).reshape(-1)
                dtype = self.schema.dtype(name)
                arr = raw.astype(dtype)
                # integer columns must hold their values exactly (no wrap-around)
                if dtype.kind == "i" and arr.size and not np.array_equal(arr, raw):
                    bad = raw[arr != raw][0]
                    raise BankError(
                        f"Value {bad} does not fit column '{name}' ({dtype}) of bank '{self.name}'."
                    )
                if n is None:
                    n = arr.size
                elif arr.size != n:
                    raise BankError(
                        f"Ragged columns in bank '{self.name}': '{name}' has {arr.size} rows, expected {n}."
                    )
                new[name] = arr
        self._cols = new
        self._nrows = int(n or 0)
        self._rows = None
        self._loaded_from = None

    def advance(self, ctx: EventContext) -> None:
        """Load the rows of ctx.event_index from ctx.source (no-op if already loaded)."""
        key = (id(ctx.source), int(ctx.event_index))
        if self._loaded_from == key:
            return
        self.load(ctx.source.read_bank(self.name, int(ctx.event_index)))
        self._loaded_from = key

    def clear(self) -> None:
        self.load({})

    # --- access ------------------------------------------------------------

    def _check(self, column: str, row: int) -> np.ndarray:
        col = self._cols.get(column)
        if col is None:
            raise InvalidColumn(self.name, column)
        if row < 0 or row >= self._nrows:
            raise IndexOutOfRange(self.name, row, self._nrows)
        return col

    def get(self, column: str, row: int) -> int | float:
        """Return one value, widened to int (integer columns) or float."""
        col = self._check(column, row)
        v = col[row]
        if col.dtype.kind == "f":
            return float(v)
        return int(v)

    def get_int(self, column: str, row: int) -> int:
        return int(self._check(column, row)[row])

    def get_float(self, column: str, row: int) -> float:
        return float(self._check(column, row)[row])

    def column(self, name: str) -> np.ndarray:
        try:
            return self._cols[name]
        except KeyError:
            raise InvalidColumn(self.name, name) from None

    def row(self, i: int):
        """Typed row view for row i."""
        if self.schema.row_type is None:
            raise BankError(f"Bank '{self.name}' has no typed row view.")
        if i < 0 or i >= self._nrows:
            raise IndexOutOfRange(self.name, i, self._nrows)
        return self.schema.row_type(**{name: self.get(name, i) for name in self.schema.names})

    def rows(self) -> List[Any]:
        """Typed views of every row, built once per load."""
        if self._rows is None:
            self._rows = [self.row(i) for i in range(self._nrows)]
        return list(self._rows)

    def __iter__(self) -> Iterator[Any]:
        if self._rows is None:
            self.rows()
        return iter(self._rows)


@dataclass
class BankSet:
    """The detector banks needed to fuse one event."""
    particle: Bank
    track: Bank
    calorimeter: Bank
    cherenkov: Bank
    scintillator: Bank
    aux_tracks: Bank

    @classmethod
    def empty(cls) -> "BankSet":
        return cls(
            particle=Bank(REC_PARTICLE),
            track=Bank(REC_TRACK),
            calorimeter=Bank(REC_CALORIMETER),
            cherenkov=Bank(REC_CHERENKOV),
            scintillator=Bank(REC_SCINTILLATOR),
            aux_tracks=Bank(FMT_TRACKS),
        )

    def advance(self, ctx: EventContext, include_aux: bool = False) -> None:
        self.particle.advance(ctx)
        self.track.advance(ctx)
        self.calorimeter.advance(ctx)
        self.cherenkov.advance(ctx)
        self.scintillator.advance(ctx)
        if include_aux:
            self.aux_tracks.advance(ctx)
        else:
            self.aux_tracks.clear()
