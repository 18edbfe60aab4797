from __future__ import annotations
import numpy as np

# Calibration table shape: (NSECTORS, NSFPARAMS, 2); [..., 0] mean curve, [..., 1] width curve.
NSECTORS = 6
NSFPARAMS = 4
SF_CHI2_CONFORMITY = 2.0


def sf_curve(params: np.ndarray, p: float) -> float:
    """a * (b + c/p + d/p^2) for params (a, b, c, d)."""
    a, b, c, d = (float(x) for x in params)
    return a * (b + c / p + d / (p * p))


def sector_params(table: np.ndarray, sector: int) -> np.ndarray | None:
    """(NSFPARAMS, 2) block for a 1-based sector, or None when the sector has no row."""
    if sector < 1 or sector > table.shape[0]:
        return None
    return table[sector - 1]

# --- Interfaces -------------------------------------------------------------

class ConformityTest:
    """Base protocol: decide whether E_tot/p is compatible with a sector's curves."""
    name: str

    def conforms(self, p: float, energy_total: float, params: np.ndarray) -> bool:
        raise NotImplementedError

# --- Implementations --------------------------------------------------------

class CurveConformity(ConformityTest):
    """|E/p - mu(p)| <= n_sigma * sigma(p) with mu, sigma from sf_curve."""
    name = "curve"
    def __init__(self, n_sigma: float = SF_CHI2_CONFORMITY):
        self.n_sigma = n_sigma

    def conforms(self, p, energy_total, params):
        if p <= 0.0:
            return False
        mu = sf_curve(params[:, 0], p)
        sigma = abs(sf_curve(params[:, 1], p))
        return abs(energy_total / p - mu) <= self.n_sigma * sigma

class WindowConformity(ConformityTest):
    """Fixed E/p window, ignoring the calibration curves (quick looks at uncalibrated runs)."""
    name = "window"
    def __init__(self, lo: float = 0.17, hi: float = 0.30):
        self.lo = lo
        self.hi = hi

    def conforms(self, p, energy_total, params):
        if p <= 0.0:
            return False
        return self.lo <= energy_total / p <= self.hi

# --- Factory ----------------------------------------------------------------

def make_conformity_test(kind: str = "curve", n_sigma: float = SF_CHI2_CONFORMITY) -> ConformityTest:
    if kind == "curve":
        return CurveConformity(n_sigma)
    elif kind == "window":
        return WindowConformity()
    else:
        raise ValueError(f"Unknown sampling fraction test {kind}")
