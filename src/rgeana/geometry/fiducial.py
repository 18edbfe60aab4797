"""
FMT fiducial geometry cut.

The FMT disks cover a ring between FMT_RMIN and FMT_RMAX at z = FMT_Z0 (cm,
lab frame). A track from vertex z `vz` crosses that ring only if its polar
angle lies inside

    theta_lim = to_rad(FMT_ANGLE * atan(r / (FMT_Z0 - vz)))   r in {RMIN, RMAX}

FMT_ANGLE is the rad -> deg factor the window limits are expressed with.
"""
from __future__ import annotations
import math
from typing import Tuple

from rgeana.errors import AngleConversionError

FMT_RMIN = 4.2575
FMT_RMAX = 18.48
FMT_Z0 = 26.1197
FMT_ANGLE = 57.29

# Vertices within this distance of the reference plane [cm] have no window.
# Bank vertices are float32.
FMT_Z0_TOLERANCE = 1e-5


def to_rad(deg: float) -> float:
    """Degrees -> radians; raises AngleConversionError outside [-180, 180] or for non-finite input."""
    if not math.isfinite(deg) or deg < -180.0 or deg > 180.0:
        raise AngleConversionError(f"Cannot convert {deg} degrees to radians (valid range is [-180, 180]).")
    return deg * math.pi / 180.0


def fmt_theta_window(vz: float) -> Tuple[float, float]:
    """Return (theta_min, theta_max) [rad] for a track from vertex z `vz` [cm]."""
    dz = FMT_Z0 - vz
    if abs(dz) < FMT_Z0_TOLERANCE:
        raise AngleConversionError(
            f"Vertex z {vz} lies on the FMT reference plane; the FMT acceptance angle is undefined."
        )
    theta_min = to_rad(FMT_ANGLE * math.atan(FMT_RMIN / dz))
    theta_max = to_rad(FMT_ANGLE * math.atan(FMT_RMAX / dz))
    return theta_min, theta_max


def in_fmt_window(vz: float, theta: float) -> bool:
    """Closed-window test of a lab polar angle [rad] against fmt_theta_window(vz)."""
    theta_min, theta_max = fmt_theta_window(vz)
    return theta_min <= theta <= theta_max


def apply_fmt_geometry_cut(vz: float, px: float, py: float, pz: float) -> bool:
    """True if the track passes the FMT geometry cut."""
    theta = math.atan2(math.sqrt(px * px + py * py), pz)
    return in_fmt_window(vz, theta)
