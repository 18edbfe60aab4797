"""Typed exceptions for rgeana.

Every failure that the analysis can surface to an operator has its own
exception type, carrying a message that names the violated contract. Callers
that treat a condition as recoverable (skip a candidate, skip an event) catch
the specific subclass and count it; everything else propagates to the CLI.
"""
from __future__ import annotations

from typing import Optional, Sequence


class RGEError(Exception):
    """Base exception for all rgeana errors."""


# ---------------------------------------------------------------------------
# Bank access
# ---------------------------------------------------------------------------

class BankError(RGEError):
    """Raised on invalid access to a typed columnar bank."""


class UnknownBank(BankError):
    """Raised when a bank name has no registered schema."""

    def __init__(self, name: str):
        self.name = name
        super().__init__(f"Unknown bank '{name}'. Check the registered bank schemas.")


class InvalidColumn(BankError):
    """Raised when a column name is absent from a bank schema."""

    def __init__(self, bank: str, column: str):
        self.bank = bank
        self.column = column
        super().__init__(f"Column '{column}' is not part of bank '{bank}'.")


class IndexOutOfRange(BankError):
    """Raised when a row index is outside the rows loaded for the event."""

    def __init__(self, bank: str, row: int, nrows: int):
        self.bank = bank
        self.row = row
        self.nrows = nrows
        super().__init__(f"Row {row} requested from bank '{bank}', which holds {nrows} rows.")


class UnsupportedColumnType(BankError):
    """Raised when a schema declares a primitive type the bank cannot store."""


# ---------------------------------------------------------------------------
# Detector corruption (fatal to the enclosing pass)
# ---------------------------------------------------------------------------

class CorruptBankError(RGEError):
    """Detector bank content violates the fixed detector-schema assumptions."""


class InvalidCalorimeterLayer(CorruptBankError):
    def __init__(self, layer: int, row: int, pindex: int):
        self.layer = layer
        self.row = row
        self.pindex = pindex
        super().__init__(
            f"Invalid layer {layer} in the calorimeter bank (row {row}, pindex {pindex}). "
            "Check bank integrity."
        )


class InvalidCherenkovId(CorruptBankError):
    def __init__(self, detector: int, row: int, pindex: int):
        self.detector = detector
        self.row = row
        self.pindex = pindex
        super().__init__(
            f"Invalid detector ID {detector} in the cherenkov bank (row {row}, pindex {pindex}). "
            "Check bank integrity."
        )


class MissingAuxTrackerBank(RGEError):
    """Raised when FMT tracks are required but the input has no FMT bank."""

    def __init__(self, bank: str):
        super().__init__(
            f"{bank} bank not found in input. No FMT analysis is available for this input file."
        )


# ---------------------------------------------------------------------------
# Geometry / identification
# ---------------------------------------------------------------------------

class AngleConversionError(RGEError):
    """Raised when an angle cannot be converted (degenerate geometry or out of range)."""


class UnsupportedParticleId(RGEError):
    """Raised when a candidate cannot be identified with the supported particle table."""

    def __init__(self, pid: int, charge: Optional[int] = None):
        self.pid = pid
        self.charge = charge
        detail = f"PID {pid}" if charge is None else f"PID {pid} with charge {charge}"
        super().__init__(
            f"Tried to identify a particle with an unsupported {detail}. "
            "Check that all hypotheses are in the particle table."
        )


# ---------------------------------------------------------------------------
# Calibration
# ---------------------------------------------------------------------------

class CalibrationError(RGEError):
    """Base class for calibration-provider failures."""


class NoCalibrationData(CalibrationError):
    def __init__(self, run: int, path: str):
        self.run = run
        self.path = path
        super().__init__(
            f"No sampling fraction file is available for run {run} (looked for {path})."
        )


class BadCalibrationFile(CalibrationError):
    """Raised when a sampling fraction file exists but is structurally invalid."""


# ---------------------------------------------------------------------------
# Configuration
# ---------------------------------------------------------------------------

class ConfigurationError(RGEError):
    """Base class for errors detected before any processing starts."""


class NoEdge(ConfigurationError):
    def __init__(self, axis: str, expected: Sequence[str]):
        self.axis = axis
        super().__init__(
            f"Edges for axis '{axis}' are missing. Edges for all binning variables "
            f"({', '.join(expected)}) should be specified."
        )


class BadEdges(ConfigurationError):
    def __init__(self, axis: str, reason: str):
        self.axis = axis
        super().__init__(f"Bad edges for axis '{axis}': {reason}")


class InvalidAuxTrackerLayers(ConfigurationError):
    def __init__(self, value: int):
        super().__init__(
            f"Number of FMT layers is invalid ({value}). Options are 0 (tracked only by DC), 2, and 3."
        )


class BadFilename(ConfigurationError):
    """Raised when a run number cannot be extracted from an input filename."""


class BeamEnergyUnavailable(ConfigurationError):
    def __init__(self, run: int):
        self.run = run
        super().__init__(f"No beam energy available for run {run}. Add it to the run table.")


class OutputExists(ConfigurationError):
    def __init__(self, path: str):
        super().__init__(f"Output file {path} already exists.")


class SampleError(RGEError):
    """Raised when an ntuple sample lacks a column the binning engine needs."""


class BadAcceptanceFile(RGEError):
    """Raised when an acceptance file does not follow the expected layout."""
